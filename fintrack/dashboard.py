"""Streamlit app for FinTrack.

The app signs in as the user id given in the sidebar (defaulting to
``FINTRACK_USER_ID``), books any recurring expenses that fell due since
the last visit and then shows the dashboard and reports views.  All
figures come from :mod:`fintrack.aggregation`; this module only lays
them out.

To run the app from the command line::

    streamlit run fintrack/dashboard.py
"""

from __future__ import annotations

import os
import sys
from datetime import date
from typing import Any, Dict, Optional

import streamlit as st

# Support both ``streamlit run fintrack/dashboard.py`` and package imports.
if __package__:
    from . import config
    from . import visualization as viz
    from .dates import to_date
    from .db import RecurringStore, SettingsStore, TransactionStore
    from .errors import FinTrackError
    from .formatting import describe_schedule, describe_top_day, format_currency, format_percentage
    from .tracker import BudgetTracker
else:
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from fintrack import config  # type: ignore
    from fintrack import visualization as viz  # type: ignore
    from fintrack.dates import to_date  # type: ignore
    from fintrack.db import RecurringStore, SettingsStore, TransactionStore  # type: ignore
    from fintrack.errors import FinTrackError  # type: ignore
    from fintrack.formatting import describe_schedule, describe_top_day, format_currency, format_percentage  # type: ignore
    from fintrack.tracker import BudgetTracker  # type: ignore

FILTER_LABELS = {'all': 'All', 'today': 'Today', 'week': 'This Week', 'month': 'This Month'}


def build_tracker(user_id: Optional[str], db_path=None) -> BudgetTracker:
    return BudgetTracker(
        user_id,
        TransactionStore(db_path),
        RecurringStore(db_path),
        SettingsStore(db_path),
    )


def _rerun() -> None:
    rerun = getattr(st, 'rerun', None) or getattr(st, 'experimental_rerun', None)
    if rerun is not None:
        rerun()


def _ensure_session(tracker: BudgetTracker) -> None:
    """Book due recurring expenses once per user per day."""
    key = f"session_started::{tracker.user_id}"
    today = date.today().isoformat()
    if st.session_state.get(key) == today:
        tracker.refresh()
        return
    booked = tracker.start_session()
    st.session_state[key] = today
    if booked:
        st.toast(f"Booked {len(booked)} recurring expense(s)")


def _render_dashboard(tracker: BudgetTracker, date_filter: str, search: str) -> None:
    view = tracker.dashboard(date_filter, search)
    cols = st.columns(3)
    cols[0].metric("Monthly budget", format_currency(view.budget))
    cols[1].metric("Spent", format_currency(view.total_expense), format_percentage(view.spending_percentage))
    cols[2].metric("Safe to spend", format_currency(view.safe_to_spend))
    if view.is_over_budget:
        st.warning("You have spent more than your budget.")

    left, right = st.columns(2)
    left.plotly_chart(viz.create_budget_gauge(view), use_container_width=True)
    right.plotly_chart(viz.create_category_bar_chart(view.top_categories), use_container_width=True)

    st.subheader("Transactions")
    if view.transactions.empty:
        st.info("No transactions match the current filters.")
        return
    table = view.transactions[['id', 'Transaction Date', 'Description', 'Category', 'Amount']]
    st.dataframe(table.set_index('id'), use_container_width=True)

    with st.expander("Edit a transaction"):
        _render_edit_expense(tracker, view.transactions)

    with st.expander("Delete a transaction"):
        choice = st.selectbox(
            "Transaction",
            options=list(view.transactions['id']),
            format_func=lambda tid: _transaction_label(view.transactions, tid),
        )
        if st.button("Delete", type="primary"):
            _run(lambda: tracker.delete_expense(str(choice)), "Transaction deleted")


def _edited_fields(row, amount: str, description: str, category: str, when) -> Dict[str, Any]:
    """Form values that differ from the stored row; unchanged fields are left out."""
    fields: Dict[str, Any] = {}
    if amount.strip() != f"{float(row['Amount']):g}":
        fields['amount'] = amount
    if description.strip() != row['Description']:
        fields['description'] = description
    if category != row['Category']:
        fields['category'] = category
    if when != to_date(row['Transaction Date']):
        fields['date'] = when
    return fields


def _render_edit_expense(tracker: BudgetTracker, frame) -> None:
    choice = st.selectbox(
        "Transaction",
        options=list(frame['id']),
        format_func=lambda tid: _transaction_label(frame, tid),
        key="edit_choice",
    )
    row = frame[frame['id'] == choice].iloc[0]
    categories = list(config.DEFAULT_CATEGORIES)
    if row['Category'] not in categories:
        categories.append(row['Category'])
    with st.form(f"edit_expense_{choice}"):
        amount = st.text_input("Amount", value=f"{float(row['Amount']):g}")
        description = st.text_input("Description", value=row['Description'])
        category = st.selectbox("Category", options=categories, index=categories.index(row['Category']))
        when = st.date_input("Date", value=to_date(row['Transaction Date']) or date.today())
        if st.form_submit_button("Save changes"):
            fields = _edited_fields(row, amount, description, category, when)
            if not fields:
                st.info("Nothing to update.")
            else:
                _run(lambda: tracker.edit_expense(str(choice), fields), "Transaction updated")


def _transaction_label(frame, transaction_id) -> str:
    row = frame[frame['id'] == transaction_id].iloc[0]
    return f"{row['Description']} - {format_currency(row['Amount'])}"


def _render_report(tracker: BudgetTracker) -> None:
    report = tracker.report()
    cols = st.columns(3)
    cols[0].metric("Daily average", f"{format_currency(report.daily_average)}/day")
    cols[1].metric("Last 7 days", format_currency(report.last_7_days), f"{format_currency(report.weekly_average)}/day")
    cols[2].metric("Top spending day", describe_top_day(report.top_spending_day))
    if report.projected_over_budget:
        st.warning(f"On track to exceed budget by {format_currency(report.projected_excess)}")
    else:
        st.success(f"Projected spend this month: {format_currency(report.projected_monthly)}")

    cols = st.columns(3)
    cols[0].metric("Budget", format_currency(report.budget))
    cols[1].metric("This month", format_currency(report.monthly_expense))
    cols[2].metric("Saved this month", format_currency(report.monthly_savings))

    left, right = st.columns(2)
    left.plotly_chart(viz.create_category_donut_chart(report.categories), use_container_width=True)
    right.plotly_chart(viz.create_weekday_chart(report.weekday_totals), use_container_width=True)

    st.subheader("Category budgets")
    status = tracker.category_budgets()
    if not status.empty:
        st.dataframe(status.set_index('Category'), use_container_width=True)


def _render_add_expense(tracker: BudgetTracker) -> None:
    with st.form("add_expense", clear_on_submit=True):
        amount = st.text_input("Amount")
        description = st.text_input("Description")
        category = st.selectbox("Category", options=config.DEFAULT_CATEGORIES)
        when = st.date_input("Date", value=date.today())
        if st.form_submit_button("Add expense"):
            fields = {'amount': amount, 'description': description, 'category': category, 'date': when}
            _run(lambda: tracker.add_expense(fields), "Expense added")


def _render_recurring(tracker: BudgetTracker) -> None:
    st.caption("Recurring bills, rent and subscriptions are booked automatically each period.")
    with st.form("add_recurring", clear_on_submit=True):
        amount = st.text_input("Amount")
        description = st.text_input("Description")
        category = st.selectbox("Category", options=config.RECURRING_CATEGORIES)
        frequency = st.radio("Frequency", options=['monthly', 'weekly', 'biweekly'], horizontal=True)
        day_of_month = st.number_input("Day of month", min_value=1, max_value=31, value=1)
        if st.form_submit_button("Add recurring expense"):
            fields = {
                'amount': amount,
                'description': description,
                'category': category,
                'frequency': frequency,
                'dayOfMonth': int(day_of_month) if frequency == 'monthly' else None,
            }
            _run(lambda: tracker.add_recurring(fields), "Recurring expense added")

    for item in tracker.recurring():
        cols = st.columns([4, 1, 1])
        cols[0].markdown(
            f"**{item.description}** · {item.category}  \n"
            f"{format_currency(item.amount)} / {item.frequency} · {describe_schedule(item.frequency, item.day_of_month)}"
        )
        label = "Pause" if item.is_active else "Resume"
        if cols[1].button(label, key=f"toggle_{item.id}"):
            _run(lambda item_id=item.id: tracker.toggle_recurring(item_id), None)
        if cols[2].button("Delete", key=f"delete_{item.id}"):
            _run(lambda item_id=item.id: tracker.remove_recurring(item_id), "Recurring expense deleted")


def _render_budget(tracker: BudgetTracker) -> None:
    with st.form("monthly_budget"):
        value = st.text_input("Monthly income / budget", value=str(tracker.monthly_budget or ''))
        if st.form_submit_button("Save budget"):
            _run(lambda: tracker.save_budget(value), "Monthly budget saved")
    with st.form("category_budget"):
        category = st.selectbox("Category", options=config.DEFAULT_CATEGORIES)
        amount = st.text_input("Category budget")
        if st.form_submit_button("Save category budget"):
            _run(lambda: tracker.set_category_budget(category, amount), "Category budget saved")


def _run(action, success_message: Optional[str]) -> None:
    try:
        action()
    except FinTrackError as exc:
        st.error(str(exc))
        return
    if success_message:
        st.success(success_message)
    _rerun()


def main() -> None:
    """Entry point for the Streamlit app."""
    config.configure_logging()
    st.set_page_config(page_title="FinTrack", layout="wide", initial_sidebar_state="expanded")
    st.title("FinTrack")

    user_id = st.sidebar.text_input("User id", value=config.default_user_id() or '').strip() or None
    if not user_id:
        st.info("Enter a user id in the sidebar to continue.")
        st.stop()

    date_filter = st.sidebar.radio(
        "Period", options=list(config.DATE_FILTERS), format_func=lambda key: FILTER_LABELS[key]
    )
    search = st.sidebar.text_input("Search description or category")

    tracker = build_tracker(user_id)
    try:
        _ensure_session(tracker)
    except FinTrackError as exc:
        st.error(f"Failed to load data: {exc}")
        st.stop()

    tabs = st.tabs(["Dashboard", "Reports", "Add expense", "Recurring", "Budget"])
    with tabs[0]:
        _render_dashboard(tracker, date_filter, search)
    with tabs[1]:
        _render_report(tracker)
    with tabs[2]:
        _render_add_expense(tracker)
    with tabs[3]:
        _render_recurring(tracker)
    with tabs[4]:
        _render_budget(tracker)


if __name__ == "__main__":
    main()

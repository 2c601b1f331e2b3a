"""Budget aggregation over transaction lists.

The functions in this module turn the raw transaction records fetched
from the store into the figures shown on the dashboard and reports
screens: totals, safe-to-spend, category rankings and the spending
insights (daily average, projection, last seven days, busiest weekday).

Every function accepts either a list of records (dictionaries or
:class:`~fintrack.models.Transaction` objects) or a DataFrame already
produced by :func:`transactions_frame`, and none of them mutate their
input.  Amounts that cannot be parsed count as zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .config import DASHBOARD_TOP_CATEGORIES, DATE_FILTERS
from .dates import WEEKDAY_NAMES, days_in_month, to_datetime_series
from .errors import ValidationError
from .models import EXPENSE, Transaction

FRAME_COLUMNS = ['id', 'Amount', 'Description', 'Category', 'Type', 'Transaction Date']
BREAKDOWN_COLUMNS = ['Category', 'Total', 'Count', 'Average', 'Percentage']

_RECORD_KEYS = {
    'id': 'id',
    'amount': 'Amount',
    'description': 'Description',
    'category': 'Category',
    'type': 'Type',
    'date': 'Transaction Date',
}

Transactions = Union[pd.DataFrame, Iterable[Union[Mapping[str, Any], Transaction]]]


def transactions_frame(transactions: Transactions) -> pd.DataFrame:
    """Normalise transaction records into the frame used by every aggregate."""
    if isinstance(transactions, pd.DataFrame):
        if set(FRAME_COLUMNS).issubset(transactions.columns):
            return transactions
        rows = transactions.to_dict('records')
    else:
        rows = [
            item.to_record() if isinstance(item, Transaction) else dict(item)
            for item in (transactions or [])
        ]

    frame = pd.DataFrame(rows)
    frame = frame.rename(columns=_RECORD_KEYS)
    for column in FRAME_COLUMNS:
        if column not in frame.columns:
            frame[column] = None

    amounts = pd.to_numeric(frame['Amount'], errors='coerce')
    frame['Amount'] = amounts.replace([np.inf, -np.inf], np.nan).fillna(0.0).astype(float)
    frame['Description'] = frame['Description'].fillna('').astype(str)
    frame['Category'] = frame['Category'].fillna('').astype(str)
    frame['Type'] = frame['Type'].fillna('').astype(str)
    frame['Transaction Date'] = to_datetime_series(frame['Transaction Date'])
    extra = [col for col in frame.columns if col not in FRAME_COLUMNS]
    return frame[FRAME_COLUMNS + extra].reset_index(drop=True)


def _expense_rows(df: pd.DataFrame) -> pd.DataFrame:
    return df[df['Type'] == EXPENSE]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def filter_by_date(transactions: Transactions, date_filter: str = 'all', now: Optional[datetime] = None) -> pd.DataFrame:
    """Restrict transactions to a date window relative to ``now``.

    ``today`` compares local calendar dates, ``week`` is a rolling
    window of the last 7×24 hours (not aligned to week boundaries) and
    ``month`` keeps the calendar month of ``now``.  ``all`` returns
    every row in its original order.
    """
    if date_filter not in DATE_FILTERS:
        raise ValidationError(
            f"Unknown date filter '{date_filter}'; expected one of {', '.join(DATE_FILTERS)}",
            field='dateFilter',
        )
    df = transactions_frame(transactions)
    if date_filter == 'all' or df.empty:
        return df.copy()

    now = now or datetime.now()
    dates = df['Transaction Date']
    if date_filter == 'today':
        mask = dates.dt.date == now.date()
    elif date_filter == 'week':
        mask = dates >= pd.Timestamp(now) - pd.Timedelta(days=7)
    else:
        mask = (dates.dt.month == now.month) & (dates.dt.year == now.year)
    return df[mask.fillna(False).astype(bool)].copy()


def filter_by_search(transactions: Transactions, query: Optional[str]) -> pd.DataFrame:
    """Case-insensitive substring match against description or category."""
    df = transactions_frame(transactions)
    if not query:
        return df.copy()
    needle = query.lower()
    mask = (
        df['Description'].str.lower().str.contains(needle, regex=False)
        | df['Category'].str.lower().str.contains(needle, regex=False)
    )
    return df[mask].copy()


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------


def total_expense(transactions: Transactions) -> float:
    df = transactions_frame(transactions)
    return float(_expense_rows(df)['Amount'].sum())


def safe_to_spend(budget: float, total: float) -> float:
    """Budget left after ``total``; negative values signal overspending."""
    return float(budget) - float(total)


def spending_percentage(total: float, budget: float) -> float:
    if budget <= 0:
        return 0.0
    return float(total) / float(budget) * 100


def monthly_expense(transactions: Transactions, now: Optional[datetime] = None) -> float:
    return total_expense(filter_by_date(transactions, 'month', now))


def category_breakdown(transactions: Transactions, limit: Optional[int] = None) -> pd.DataFrame:
    """Rank expense categories by total spent.

    Returns a DataFrame with ``Category``, ``Total``, ``Count``,
    ``Average`` and ``Percentage`` (share of all expenses, 0 when
    nothing was spent).  Ties keep first-encountered order.
    """
    expenses = _expense_rows(transactions_frame(transactions))
    if expenses.empty:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS)

    grouped = expenses.groupby('Category', sort=False)['Amount'].agg(['sum', 'count'])
    breakdown = grouped.reset_index().rename(columns={'sum': 'Total', 'count': 'Count'})
    breakdown['Average'] = breakdown['Total'] / breakdown['Count']
    overall = float(breakdown['Total'].sum())
    breakdown['Percentage'] = (breakdown['Total'] / overall * 100) if overall else 0.0
    breakdown = breakdown.sort_values('Total', ascending=False, kind='stable')
    if limit is not None:
        breakdown = breakdown.head(limit)
    return breakdown[BREAKDOWN_COLUMNS].reset_index(drop=True)


def category_budget_status(transactions: Transactions, category_budgets: Mapping[str, float]) -> pd.DataFrame:
    """Per-category spend against the budgets set for each category.

    Categories with spending but no budget get a budget of 0, so their
    remaining amount is negative.  Budgeted categories without spending
    are listed after them.
    """
    spent = category_breakdown(transactions)[['Category', 'Total']].rename(columns={'Total': 'Spent'})
    seen = set(spent['Category'])
    budgeted = [name for name in category_budgets if name not in seen]
    if budgeted:
        spent = pd.concat(
            [spent, pd.DataFrame({'Category': budgeted, 'Spent': [0.0] * len(budgeted)})],
            ignore_index=True,
        )
    spent['Budget'] = spent['Category'].map(lambda name: float(category_budgets.get(name, 0.0)))
    spent['Remaining'] = spent['Budget'] - spent['Spent']
    spent['Over Budget'] = spent['Remaining'] < 0
    return spent.reset_index(drop=True)


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


def daily_average(month_total: float, current_day: int) -> float:
    if current_day <= 0:
        return 0.0
    return float(month_total) / current_day


def projected_monthly(average_per_day: float, month_days: int) -> float:
    return float(average_per_day) * month_days


def last_7_days_spending(transactions: Transactions, now: Optional[datetime] = None) -> Tuple[float, float]:
    """Expenses dated within the last seven whole days and their per-day average.

    The average always divides by 7, regardless of how many of those
    days actually had spending.
    """
    now = now or datetime.now()
    expenses = _expense_rows(transactions_frame(transactions))
    if expenses.empty:
        return 0.0, 0.0
    elapsed = (pd.Timestamp(now) - expenses['Transaction Date']) / pd.Timedelta(days=1)
    days = np.floor(elapsed)
    recent = expenses[(days >= 0) & (days < 7)]
    total = float(recent['Amount'].sum())
    return total, total / 7


def spending_by_weekday(transactions: Transactions) -> pd.Series:
    """Summed expenses per weekday name, in first-encountered order."""
    expenses = _expense_rows(transactions_frame(transactions))
    expenses = expenses.dropna(subset=['Transaction Date'])
    if expenses.empty:
        return pd.Series(dtype=float, name='Amount')
    weekdays = expenses['Transaction Date'].dt.weekday.map(lambda idx: WEEKDAY_NAMES[idx])
    return expenses.groupby(weekdays.rename('Weekday'), sort=False)['Amount'].sum()


def top_spending_day(transactions: Transactions) -> Optional[Tuple[str, float]]:
    """Weekday with the largest total spend across all history, or ``None``."""
    by_day = spending_by_weekday(transactions)
    if by_day.empty:
        return None
    name = by_day.idxmax()
    return str(name), float(by_day[name])


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


@dataclass
class BudgetView:
    """Figures shown on the dashboard for the active filter window."""

    transactions: pd.DataFrame
    budget: float
    total_expense: float
    safe_to_spend: float
    spending_percentage: float
    progress: float
    top_categories: pd.DataFrame
    date_filter: str = 'all'
    search_query: str = ''

    @property
    def is_over_budget(self) -> bool:
        return self.safe_to_spend < 0


@dataclass
class SpendingReport:
    """All-history summary plus the current month's insights."""

    budget: float
    total_expense: float
    remaining: float
    categories: pd.DataFrame
    monthly_expense: float
    monthly_savings: float
    daily_average: float
    projected_monthly: float
    last_7_days: float
    weekly_average: float
    top_spending_day: Optional[Tuple[str, float]] = None
    weekday_totals: pd.Series = field(default_factory=lambda: pd.Series(dtype=float))

    @property
    def projected_over_budget(self) -> bool:
        return self.projected_monthly > self.budget

    @property
    def projected_excess(self) -> float:
        return self.projected_monthly - self.budget if self.projected_over_budget else 0.0


def build_budget_view(
    transactions: Transactions,
    budget: float,
    date_filter: str = 'all',
    search_query: str = '',
    now: Optional[datetime] = None,
    top_n: int = DASHBOARD_TOP_CATEGORIES,
) -> BudgetView:
    """Apply the date filter then the search, and summarise what is left."""
    filtered = filter_by_search(filter_by_date(transactions, date_filter, now), search_query)
    total = total_expense(filtered)
    percentage = spending_percentage(total, budget)
    return BudgetView(
        transactions=filtered,
        budget=float(budget),
        total_expense=total,
        safe_to_spend=safe_to_spend(budget, total),
        spending_percentage=percentage,
        progress=min(percentage, 100.0),
        top_categories=category_breakdown(filtered, limit=top_n),
        date_filter=date_filter,
        search_query=search_query or '',
    )


def build_report(transactions: Transactions, budget: float, now: Optional[datetime] = None) -> SpendingReport:
    now = now or datetime.now()
    df = transactions_frame(transactions)
    total = total_expense(df)
    month_total = monthly_expense(df, now)
    average = daily_average(month_total, now.day)
    projection = projected_monthly(average, days_in_month(now.year, now.month))
    recent, weekly = last_7_days_spending(df, now)
    return SpendingReport(
        budget=float(budget),
        total_expense=total,
        remaining=safe_to_spend(budget, total),
        categories=category_breakdown(df),
        monthly_expense=month_total,
        monthly_savings=safe_to_spend(budget, month_total),
        daily_average=average,
        projected_monthly=projection,
        last_7_days=recent,
        weekly_average=weekly,
        top_spending_day=top_spending_day(df),
        weekday_totals=spending_by_weekday(df),
    )


def summary_dict(view: Union[BudgetView, SpendingReport]) -> Dict[str, Any]:
    """Scalar fields of a view, for logging and JSON export."""
    return {
        name: value
        for name, value in vars(view).items()
        if not isinstance(value, (pd.DataFrame, pd.Series))
    }

import contextlib
import types
from datetime import date

from fintrack import aggregation as agg
from fintrack import config, dashboard
from fintrack.errors import ValidationError
from fintrack.tracker import BudgetTracker


def test_build_tracker_uses_given_database(tmp_path):
    tracker = dashboard.build_tracker('alice', tmp_path / 'app.db')
    assert isinstance(tracker, BudgetTracker)
    tracker.add_expense({'amount': 3, 'description': 'Gum', 'category': 'Other'})
    assert (tmp_path / 'app.db').exists()


def test_rerun_prefers_streamlit_rerun(monkeypatch):
    called = {}
    st_mock = types.SimpleNamespace(rerun=lambda: called.setdefault('method', 'rerun'))
    monkeypatch.setattr(dashboard, 'st', st_mock, raising=False)
    dashboard._rerun()
    assert called['method'] == 'rerun'


def test_rerun_falls_back_to_experimental(monkeypatch):
    called = {}
    st_mock = types.SimpleNamespace(experimental_rerun=lambda: called.setdefault('method', 'experimental'))
    monkeypatch.setattr(dashboard, 'st', st_mock, raising=False)
    dashboard._rerun()
    assert called['method'] == 'experimental'


def test_run_reports_errors_without_rerunning(monkeypatch):
    messages = {}

    def fail():
        raise ValidationError("'amount' is required", field='amount')

    st_mock = types.SimpleNamespace(
        error=lambda text: messages.setdefault('error', text),
        success=lambda text: messages.setdefault('success', text),
        rerun=lambda: messages.setdefault('rerun', True),
    )
    monkeypatch.setattr(dashboard, 'st', st_mock, raising=False)
    dashboard._run(fail, 'Saved')
    assert messages == {'error': "'amount' is required"}


def test_session_books_recurring_once_per_day(monkeypatch, tmp_path):
    state = {}
    st_mock = types.SimpleNamespace(session_state=state, toast=lambda text: None)
    monkeypatch.setattr(dashboard, 'st', st_mock, raising=False)
    tracker = dashboard.build_tracker('alice', tmp_path / 'app.db')
    calls = []
    monkeypatch.setattr(tracker, 'start_session', lambda: calls.append('start') or [])

    dashboard._ensure_session(tracker)
    dashboard._ensure_session(tracker)

    assert calls == ['start']
    assert 'session_started::alice' in state


def test_edit_form_sends_only_changed_fields(tmp_path):
    tracker = dashboard.build_tracker('alice', tmp_path / 'app.db')
    new_id = tracker.add_expense({'amount': 12.5, 'description': 'Coffee', 'category': 'Food', 'date': '2024-03-15'})
    row = agg.transactions_frame(tracker.records).iloc[0]

    assert dashboard._edited_fields(row, '12.5', 'Coffee', 'Food', date(2024, 3, 15)) == {}

    fields = dashboard._edited_fields(row, '15', 'Coffee', 'Groceries', date(2024, 3, 16))
    assert fields == {'amount': '15', 'category': 'Groceries', 'date': date(2024, 3, 16)}

    tracker.edit_expense(new_id, fields)
    record = tracker.records[0]
    assert (record['amount'], record['category'], record['date']) == (15.0, 'Groceries', '2024-03-16')
    assert record['description'] == 'Coffee'


def test_recurring_form_offers_bill_categories(monkeypatch, tmp_path):
    offered = {}
    st_mock = types.SimpleNamespace(
        caption=lambda text: None,
        form=lambda *args, **kwargs: contextlib.nullcontext(),
        text_input=lambda label, **kwargs: '',
        selectbox=lambda label, options, **kwargs: offered.setdefault(label, list(options))[0],
        radio=lambda label, options, **kwargs: options[0],
        number_input=lambda label, **kwargs: 1,
        form_submit_button=lambda label: False,
    )
    monkeypatch.setattr(dashboard, 'st', st_mock, raising=False)

    dashboard._render_recurring(dashboard.build_tracker('alice', tmp_path / 'app.db'))

    assert offered['Category'] == config.RECURRING_CATEGORIES
    assert config.RECURRING_CATEGORIES == [
        'Rent', 'Bills', 'Utilities', 'Subscriptions', 'Insurance', 'Loan Payment', 'Other',
    ]

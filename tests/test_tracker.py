from datetime import date, datetime

import pytest

from fintrack.db import RecurringStore, SettingsStore, TransactionStore
from fintrack.errors import AuthError, StorageError, ValidationError
from fintrack.models import RecurringDefinition
from fintrack.tracker import BudgetTracker

NOW = datetime(2024, 3, 15, 12, 0)


def _tracker(tmp_path, user_id='alice', transactions=None):
    db_path = tmp_path / 'fintrack.db'
    return BudgetTracker(
        user_id,
        transactions or TransactionStore(db_path),
        RecurringStore(db_path),
        SettingsStore(db_path),
    )


def test_add_expense_refreshes_snapshot(tmp_path):
    tracker = _tracker(tmp_path)
    tracker.save_budget('2000')
    tracker.add_expense({'amount': '500', 'description': 'Groceries run', 'category': 'Food', 'date': '2024-03-15'})
    tracker.add_expense({'amount': 300, 'description': 'Dinner', 'category': 'Food', 'date': '2024-03-14'})
    tracker.add_expense({'amount': 200, 'description': 'Bus pass', 'category': 'Transport', 'date': '2024-03-01'})

    view = tracker.dashboard('month', now=NOW)

    assert len(tracker.records) == 3
    assert view.budget == 2000
    assert view.total_expense == 1000
    assert view.safe_to_spend == 1000
    assert view.top_categories.iloc[0]['Category'] == 'Food'


def test_add_expense_validates_before_writing(tmp_path):
    tracker = _tracker(tmp_path)
    with pytest.raises(ValidationError):
        tracker.add_expense({'amount': '', 'description': 'Lunch', 'category': 'Food'})
    with pytest.raises(ValidationError):
        tracker.add_expense({'amount': 5, 'description': 'Lunch', 'category': 'Food', 'date': 'someday'})
    assert tracker.transactions.list_for_user('alice') == []


def test_add_expense_defaults_to_today(tmp_path):
    tracker = _tracker(tmp_path)
    tracker.add_expense({'amount': 5, 'description': 'Tea', 'category': 'Food'})
    assert tracker.records[0]['date'] == date.today().isoformat()


def test_signed_out_tracker_reads_nothing_and_cannot_write(tmp_path):
    tracker = _tracker(tmp_path, user_id=None)
    tracker.start_session(date(2024, 3, 15))
    assert tracker.records == []
    assert tracker.monthly_budget == 0
    with pytest.raises(AuthError):
        tracker.add_expense({'amount': 5, 'description': 'Tea', 'category': 'Food'})
    with pytest.raises(AuthError):
        tracker.save_budget(100)


class _FailingCreateStore(TransactionStore):
    def create(self, user_id, record):
        raise StorageError('permission denied')


def test_failed_write_leaves_snapshot_unchanged(tmp_path):
    store = _FailingCreateStore(tmp_path / 'fintrack.db')
    TransactionStore.create(store, 'alice', {
        'amount': 10.0, 'description': 'Existing', 'category': 'Food', 'type': 'expense', 'date': '2024-03-01',
    })
    tracker = _tracker(tmp_path, transactions=store)
    tracker.refresh()
    before = list(tracker.records)

    with pytest.raises(StorageError):
        tracker.add_expense({'amount': 5, 'description': 'Tea', 'category': 'Food'})

    assert tracker.records == before


def test_edit_and_delete_expense(tmp_path):
    tracker = _tracker(tmp_path)
    new_id = tracker.add_expense({'amount': 5, 'description': 'Tea', 'category': 'Food', 'date': '2024-03-15'})

    tracker.edit_expense(new_id, {'amount': '7.25', 'description': 'Chai'})
    assert tracker.records[0]['amount'] == 7.25
    assert tracker.records[0]['description'] == 'Chai'

    with pytest.raises(ValidationError):
        tracker.edit_expense(new_id, {'createdAt': 'yesterday'})

    tracker.delete_expense(new_id)
    assert tracker.records == []


@pytest.mark.parametrize('value', ['', 'abc', 0, -50, 'nan'])
def test_save_budget_rejects_invalid_values(tmp_path, value):
    tracker = _tracker(tmp_path)
    with pytest.raises(ValidationError):
        tracker.save_budget(value)
    assert tracker.settings.get('alice') == {}


def test_category_budget_merges_with_monthly_budget(tmp_path):
    tracker = _tracker(tmp_path)
    tracker.save_budget(1500)
    tracker.set_category_budget('Food', '250')
    tracker.add_expense({'amount': 300, 'description': 'Feast', 'category': 'Food', 'date': '2024-03-15'})

    status = tracker.category_budgets().set_index('Category')

    assert tracker.monthly_budget == 1500
    assert status.loc['Food', 'Remaining'] == -50
    with pytest.raises(ValidationError):
        tracker.set_category_budget('', 10)
    with pytest.raises(ValidationError):
        tracker.set_category_budget('Food', -1)


def test_start_session_books_due_recurring_expenses(tmp_path):
    tracker = _tracker(tmp_path)
    tracker.recurrence.recurring_store.replace_all('alice', [
        RecurringDefinition(
            amount=1200.0, description='Rent', category='Bills', frequency='monthly',
            day_of_month=1, created_at='2024-01-15T08:00:00',
        ),
    ])

    booked = tracker.start_session(date(2024, 3, 15))

    assert len(booked) == 2
    assert sorted(r['date'] for r in tracker.records) == ['2024-02-01', '2024-03-01']
    assert tracker.start_session(date(2024, 3, 15)) == []

    report = tracker.report(NOW)
    assert report.total_expense == 2400
    assert report.monthly_expense == 1200


def test_recurring_management_through_tracker(tmp_path):
    tracker = _tracker(tmp_path)
    added = tracker.add_recurring({'amount': 9.99, 'description': 'Music', 'category': 'Entertainment',
                                   'frequency': 'monthly', 'dayOfMonth': 20})
    assert tracker.toggle_recurring(added.id).is_active is False
    tracker.remove_recurring(added.id)
    assert tracker.recurring() == []

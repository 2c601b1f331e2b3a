"""Session facade tying the stores to the aggregation and recurrence engines."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from . import aggregation as agg
from .errors import AuthError, ValidationError
from .models import (
    BudgetSetting,
    RecurringDefinition,
    validate_category_budget,
    validate_expense,
    validate_expense_update,
    validate_monthly_income,
)
from .recurring import RecurrenceEngine

logger = logging.getLogger(__name__)


class BudgetTracker:
    """Holds one user's most recently fetched data and computes views over it.

    Writes go to the store first and the snapshot is only replaced by a
    fresh fetch after they succeed, so a failed write leaves the
    snapshot untouched.
    """

    def __init__(self, user_id: Optional[str], transactions, recurring, settings):
        self.user_id = user_id
        self.transactions = transactions
        self.settings = settings
        self.recurrence = RecurrenceEngine(recurring, transactions)
        self.records: List[Dict[str, Any]] = []
        self.budget = BudgetSetting()

    @property
    def monthly_budget(self) -> float:
        return self.budget.monthly_income

    def _require_user(self) -> str:
        if not self.user_id:
            raise AuthError()
        return self.user_id

    def start_session(self, today: Optional[date] = None) -> List[str]:
        """Book due recurring expenses, then load the snapshot."""
        booked = self.recurrence.run_due(self.user_id, today)
        self.refresh()
        return booked

    def refresh(self) -> None:
        records = self.transactions.list_for_user(self.user_id)
        budget = BudgetSetting.from_record(self.settings.get(self.user_id))
        self.records = records
        self.budget = budget
        logger.debug("Loaded %d transactions for user %s", len(records), self.user_id)

    # -- transactions ---------------------------------------------------------

    def add_expense(self, fields: Mapping[str, Any]) -> str:
        owner = self._require_user()
        record = validate_expense(fields)
        new_id = self.transactions.create(owner, record)
        logger.info("Added expense '%s' (%.2f)", record['description'], record['amount'])
        self.refresh()
        return new_id

    def edit_expense(self, transaction_id: str, fields: Mapping[str, Any]) -> None:
        owner = self._require_user()
        updates = validate_expense_update(fields)
        self.transactions.update(owner, transaction_id, updates)
        logger.info("Updated expense %s", transaction_id)
        self.refresh()

    def delete_expense(self, transaction_id: str) -> None:
        owner = self._require_user()
        self.transactions.delete(owner, transaction_id)
        logger.info("Deleted expense %s", transaction_id)
        self.refresh()

    # -- budget settings -------------------------------------------------------

    def save_budget(self, monthly_income: Any) -> float:
        owner = self._require_user()
        value = validate_monthly_income(monthly_income)
        self.settings.merge(owner, {'monthlyIncome': value})
        logger.info("Saved monthly budget %.2f for user %s", value, owner)
        self.refresh()
        return value

    def set_category_budget(self, category: str, amount: Any) -> float:
        owner = self._require_user()
        name = (category or '').strip()
        if not name:
            raise ValidationError("'category' is required", field='category')
        value = validate_category_budget(amount)
        self.settings.merge(owner, {'categoryBudgets': {name: value}})
        self.refresh()
        return value

    # -- recurring -----------------------------------------------------------

    def recurring(self) -> List[RecurringDefinition]:
        return self.recurrence.list(self.user_id)

    def add_recurring(self, fields: Mapping[str, Any]) -> RecurringDefinition:
        self._require_user()
        return self.recurrence.add(self.user_id, fields)

    def toggle_recurring(self, definition_id: str, today: Optional[date] = None) -> RecurringDefinition:
        self._require_user()
        return self.recurrence.toggle(self.user_id, definition_id, today)

    def remove_recurring(self, definition_id: str) -> None:
        self._require_user()
        self.recurrence.remove(self.user_id, definition_id)

    # -- views ---------------------------------------------------------------

    def dashboard(self, date_filter: str = 'all', search_query: str = '', now: Optional[datetime] = None) -> agg.BudgetView:
        return agg.build_budget_view(self.records, self.monthly_budget, date_filter, search_query, now)

    def report(self, now: Optional[datetime] = None) -> agg.SpendingReport:
        return agg.build_report(self.records, self.monthly_budget, now)

    def category_budgets(self) -> pd.DataFrame:
        return agg.category_budget_status(self.records, self.budget.category_budgets)

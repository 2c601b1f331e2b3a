"""Recurring expenses such as rent, bills and subscriptions.

A user's recurring definitions are stored as one aggregate document:
every change reads the whole collection, builds an updated copy and
writes the whole collection back.

Occurrences are never scheduled in the background.  Instead
:meth:`RecurrenceEngine.run_due` is called when a session starts; it
walks forward from each definition's ``last_materialized_date`` cursor
to today and books every occurrence that fell due in between, so
calling it twice on the same day books nothing the second time.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import Any, List, Mapping, Optional

from .dates import effective_day_of_month
from .errors import NotFoundError
from .models import EXPENSE, FREQUENCY_INTERVAL_DAYS, RecurringDefinition

logger = logging.getLogger(__name__)


def is_due(definition: RecurringDefinition, evaluation_date: date, last_materialized: Optional[date] = None) -> bool:
    """Return True when ``definition`` should book an occurrence on ``evaluation_date``.

    Monthly definitions fire on their day of the month, or on the last
    day when the month is shorter (31 -> 28/29 February), at most once
    per month.  Weekly and biweekly definitions fire on their creation
    date and then every 7 or 14 days after the last occurrence.  Nothing is
    due before the creation date or, for a resumed definition, before the
    day it was resumed.
    """
    if not definition.is_active:
        return False
    starts = definition.starts_on
    if starts is not None and evaluation_date < starts:
        return False

    if definition.frequency == 'monthly':
        if definition.day_of_month is None:
            return False
        target = effective_day_of_month(definition.day_of_month, evaluation_date.year, evaluation_date.month)
        if evaluation_date.day != target:
            return False
        if last_materialized is None:
            return True
        return (last_materialized.year, last_materialized.month) != (evaluation_date.year, evaluation_date.month)

    interval = FREQUENCY_INTERVAL_DAYS.get(definition.frequency)
    if interval is None:
        return False
    if last_materialized is None:
        return True
    return (evaluation_date - last_materialized).days >= interval


class RecurrenceEngine:
    """Maintains recurring definitions and books their occurrences."""

    def __init__(self, recurring_store, transaction_store):
        self.recurring_store = recurring_store
        self.transaction_store = transaction_store

    def list(self, user_id: Optional[str]) -> List[RecurringDefinition]:
        return self.recurring_store.get_all(user_id)

    def add(self, user_id: Optional[str], fields: Mapping[str, Any]) -> RecurringDefinition:
        definition = RecurringDefinition.create(fields)
        current = self.recurring_store.get_all(user_id)
        self.recurring_store.replace_all(user_id, [*current, definition])
        logger.info("Added %s recurring expense '%s' for user %s", definition.frequency, definition.description, user_id)
        return definition

    def toggle(self, user_id: Optional[str], definition_id: str, today: Optional[date] = None) -> RecurringDefinition:
        current = self.recurring_store.get_all(user_id)
        index = self._index_of(current, definition_id)
        toggled = current[index].toggled(today)
        updated = current[:index] + [toggled] + current[index + 1:]
        self.recurring_store.replace_all(user_id, updated)
        logger.info("Recurring expense %s is now %s", definition_id, 'active' if toggled.is_active else 'inactive')
        return toggled

    def remove(self, user_id: Optional[str], definition_id: str) -> None:
        current = self.recurring_store.get_all(user_id)
        self._index_of(current, definition_id)
        remaining = [item for item in current if item.id != definition_id]
        self.recurring_store.replace_all(user_id, remaining)
        logger.info("Removed recurring expense %s", definition_id)

    def materialize(self, user_id: Optional[str], definition: RecurringDefinition, evaluation_date: date) -> str:
        """Book one occurrence of ``definition`` dated ``evaluation_date``."""
        record = {
            'amount': definition.amount,
            'description': definition.description,
            'category': definition.category,
            'type': EXPENSE,
            'date': evaluation_date.isoformat(),
        }
        new_id = self.transaction_store.create(user_id, record)
        logger.info("Booked recurring expense '%s' on %s", definition.description, evaluation_date)
        return new_id

    def run_due(self, user_id: Optional[str], today: Optional[date] = None) -> List[str]:
        """Book every occurrence due since each definition's cursor, up to ``today``.

        Returns the ids of the created transactions.  The collection is
        written back once at the end; if a booking fails, the cursors
        advanced so far are still saved before the error propagates.
        """
        if not user_id:
            return []
        today = today or date.today()
        definitions = self.recurring_store.get_all(user_id)
        created: List[str] = []
        updated = list(definitions)
        dirty = False
        try:
            for index, definition in enumerate(definitions):
                if not definition.is_active:
                    continue
                cursor = definition.last_materialized_date
                day = self._first_candidate(definition, today)
                while day <= today:
                    if is_due(definition, day, cursor):
                        created.append(self.materialize(user_id, definition, day))
                        cursor = day
                        updated[index] = replace(definition, last_materialized_date=cursor)
                        dirty = True
                    day += timedelta(days=1)
        finally:
            if dirty:
                self.recurring_store.replace_all(user_id, updated)
        if created:
            logger.info("Booked %d recurring occurrence(s) for user %s", len(created), user_id)
        return created

    @staticmethod
    def _first_candidate(definition: RecurringDefinition, today: date) -> date:
        if definition.last_materialized_date is not None:
            start = definition.last_materialized_date + timedelta(days=1)
        else:
            start = definition.created_on or today
        if definition.resumed_on is not None and definition.resumed_on > start:
            start = definition.resumed_on
        return start

    @staticmethod
    def _index_of(definitions: List[RecurringDefinition], definition_id: str) -> int:
        for index, item in enumerate(definitions):
            if item.id == definition_id:
                return index
        raise NotFoundError(f"Recurring expense {definition_id} not found")

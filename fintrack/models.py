"""Record types for transactions, recurring definitions and budget settings.

Records travel to and from the stores as plain dictionaries using the
document field names (``userId``, ``createdAt`` ...).  The dataclasses
below are the typed view used inside the engine.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, Mapping, Optional

from .dates import iso_now, to_amount, to_date
from .errors import ValidationError

EXPENSE = 'expense'
FREQUENCIES = ('monthly', 'weekly', 'biweekly')
FREQUENCY_INTERVAL_DAYS = {'weekly': 7, 'biweekly': 14}

# Fields a user may change on an existing transaction.
EDITABLE_TRANSACTION_FIELDS = ('amount', 'description', 'category', 'type', 'date')


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _require_text(fields: Mapping[str, Any], name: str) -> str:
    value = fields.get(name)
    text = str(value).strip() if value is not None else ''
    if not text:
        raise ValidationError(f"'{name}' is required", field=name)
    return text


def _require_positive_amount(value: Any, name: str = 'amount') -> float:
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"'{name}' is required", field=name)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{name}' must be a number", field=name) from None
    if not math.isfinite(number) or number <= 0:
        raise ValidationError(f"'{name}' must be greater than zero", field=name)
    return number


def validate_expense(fields: Mapping[str, Any], default_date: Optional[date] = None) -> Dict[str, Any]:
    """Validate user input for a new expense and return the cleaned record."""
    amount = _require_positive_amount(fields.get('amount'))
    description = _require_text(fields, 'description')
    category = _require_text(fields, 'category')
    raw_date = fields.get('date')
    when = to_date(raw_date) if raw_date is not None else (default_date or date.today())
    if when is None:
        raise ValidationError("'date' is not a valid date", field='date')
    return {
        'amount': amount,
        'description': description,
        'category': category,
        'type': str(fields.get('type') or EXPENSE),
        'date': when.isoformat(),
    }


def validate_expense_update(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a partial edit; only editable fields that are present are checked."""
    cleaned: Dict[str, Any] = {}
    unknown = set(fields) - set(EDITABLE_TRANSACTION_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    if 'amount' in fields:
        cleaned['amount'] = _require_positive_amount(fields['amount'])
    for name in ('description', 'category', 'type'):
        if name in fields:
            cleaned[name] = _require_text(fields, name)
    if 'date' in fields:
        when = to_date(fields['date'])
        if when is None:
            raise ValidationError("'date' is not a valid date", field='date')
        cleaned['date'] = when.isoformat()
    return cleaned


def validate_monthly_income(value: Any) -> float:
    """A saved budget must be a positive number."""
    return _require_positive_amount(value, 'monthlyIncome')


def validate_category_budget(value: Any) -> float:
    """Category budgets may be zero, which clears the limit."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError("'budget' must be a number", field='budget') from None
    if not math.isfinite(number) or number < 0:
        raise ValidationError("'budget' must be zero or a positive number", field='budget')
    return number


def _stored_day_of_month(value: Any) -> Optional[int]:
    """Read a stored ``dayOfMonth``; anything outside 1-31 counts as unset."""
    number = to_amount(value)
    if not number.is_integer() or not 1 <= number <= 31:
        return None
    return int(number)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Transaction:
    amount: float
    description: str
    category: str
    date: Optional[date]
    type: str = EXPENSE
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'amount': self.amount,
            'description': self.description,
            'category': self.category,
            'type': self.type,
            'date': self.date.isoformat() if self.date else None,
            'userId': self.user_id,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }


@dataclass
class RecurringDefinition:
    amount: float
    description: str
    category: str
    frequency: str
    day_of_month: Optional[int] = None
    is_active: bool = True
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=iso_now)
    last_materialized_date: Optional[date] = None
    resumed_on: Optional[date] = None

    @property
    def created_on(self) -> Optional[date]:
        return to_date(self.created_at)

    @property
    def starts_on(self) -> Optional[date]:
        """Earliest date an occurrence may fall on: creation, or the last resume."""
        created = self.created_on
        if self.resumed_on is None:
            return created
        if created is None:
            return self.resumed_on
        return max(created, self.resumed_on)

    @classmethod
    def create(cls, fields: Mapping[str, Any]) -> 'RecurringDefinition':
        """Validate user input and build a new active definition."""
        amount = _require_positive_amount(fields.get('amount'))
        description = _require_text(fields, 'description')
        category = _require_text(fields, 'category')
        frequency = str(fields.get('frequency') or '').strip().lower()
        if frequency not in FREQUENCIES:
            raise ValidationError(
                f"'frequency' must be one of {', '.join(FREQUENCIES)}", field='frequency'
            )
        day_of_month = None
        if frequency == 'monthly':
            raw_day = fields.get('dayOfMonth', fields.get('day_of_month'))
            try:
                day_of_month = int(raw_day)
            except (TypeError, ValueError):
                raise ValidationError("'dayOfMonth' must be a whole number", field='dayOfMonth') from None
            if isinstance(raw_day, float) and not raw_day.is_integer():
                raise ValidationError("'dayOfMonth' must be a whole number", field='dayOfMonth')
            if not 1 <= day_of_month <= 31:
                raise ValidationError("'dayOfMonth' must be between 1 and 31", field='dayOfMonth')
        return cls(
            amount=amount,
            description=description,
            category=category,
            frequency=frequency,
            day_of_month=day_of_month,
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'RecurringDefinition':
        return cls(
            id=str(record.get('id') or uuid.uuid4().hex),
            amount=to_amount(record.get('amount')),
            description=str(record.get('description') or ''),
            category=str(record.get('category') or ''),
            frequency=str(record.get('frequency') or 'monthly'),
            day_of_month=_stored_day_of_month(record.get('dayOfMonth')),
            is_active=bool(record.get('isActive', True)),
            created_at=str(record.get('createdAt') or iso_now()),
            last_materialized_date=to_date(record.get('lastMaterializedDate')),
            resumed_on=to_date(record.get('resumedOn')),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'amount': self.amount,
            'description': self.description,
            'category': self.category,
            'frequency': self.frequency,
            'dayOfMonth': self.day_of_month,
            'isActive': self.is_active,
            'createdAt': self.created_at,
            'lastMaterializedDate': (
                self.last_materialized_date.isoformat() if self.last_materialized_date else None
            ),
            'resumedOn': self.resumed_on.isoformat() if self.resumed_on else None,
        }

    def toggled(self, today: Optional[date] = None) -> 'RecurringDefinition':
        """Flip ``is_active``; resuming records ``today`` so the paused period is never booked."""
        if self.is_active:
            return replace(self, is_active=False)
        return replace(self, is_active=True, resumed_on=today or date.today())


@dataclass
class BudgetSetting:
    monthly_income: float = 0.0
    category_budgets: Dict[str, float] = field(default_factory=dict)
    updated_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: Optional[Mapping[str, Any]]) -> 'BudgetSetting':
        record = record or {}
        budgets: Dict[str, float] = {}
        for name, value in (record.get('categoryBudgets') or {}).items():
            budgets[str(name)] = to_amount(value)
        return cls(
            monthly_income=to_amount(record.get('monthlyIncome')),
            category_budgets=budgets,
            updated_at=record.get('updatedAt'),
        )

"""Date and amount coercion helpers shared by the aggregation and recurrence engines.

Dates are compared as naive local times.  Stored values that carry a UTC
offset (``2024-03-15T10:00:00.000Z``) are converted to local time first;
values without one are already local.
"""

from __future__ import annotations

import calendar
import math
import re
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

WEEKDAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']

_OFFSET_SUFFIX = re.compile(r'\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?\s*(?:Z|[+-]\d{2}(?::?\d{2})?)$', re.IGNORECASE)


def _has_offset(value: Any) -> bool:
    if isinstance(value, datetime):
        return value.tzinfo is not None
    if isinstance(value, str):
        return bool(_OFFSET_SUFFIX.search(value.strip()))
    return False


def _to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _as_local(aware: pd.Series) -> pd.Series:
    local = aware.map(lambda ts: _to_local_naive(ts.to_pydatetime()) if pd.notna(ts) else pd.NaT)
    return pd.to_datetime(local).astype('datetime64[ns]')


def to_date(value: Any) -> Optional[date]:
    """Coerce ``value`` to a local calendar date, returning ``None`` when unparsable."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if hasattr(value, 'to_pydatetime'):
        if pd.isna(value):
            return None
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        return _to_local_naive(value).date()
    if isinstance(value, date):
        return value
    ts = pd.to_datetime(value, errors='coerce')
    if pd.isna(ts):
        return None
    return _to_local_naive(ts.to_pydatetime()).date()


def to_datetime_series(series: pd.Series) -> pd.Series:
    """Parse a column of dates into naive local timestamps (``NaT`` when unparsable).

    Offset-carrying and plain values may be mixed in one column.
    """
    if series.empty:
        return pd.Series(pd.NaT, index=series.index, dtype='datetime64[ns]')
    if isinstance(series.dtype, pd.DatetimeTZDtype):
        return _as_local(series)

    values = series.astype(object)
    aware = values.map(_has_offset).astype(bool)
    parsed = pd.to_datetime(values.where(~aware), errors='coerce', format='mixed').astype('datetime64[ns]')
    if aware.any():
        utc = pd.to_datetime(values[aware], errors='coerce', format='mixed', utc=True)
        parsed[aware] = _as_local(utc)
    return parsed


def to_amount(value: Any) -> float:
    """Parse an amount, substituting zero for anything non-numeric or non-finite."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def effective_day_of_month(day_of_month: int, year: int, month: int) -> int:
    """Clamp ``day_of_month`` to the last day of a short month (31 -> 28 in February)."""
    return min(int(day_of_month), days_in_month(year, month))


def iso_now() -> str:
    return datetime.now().isoformat(timespec='seconds')

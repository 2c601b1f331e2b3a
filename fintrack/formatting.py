"""Formatting utilities for currency and percentage display."""

from __future__ import annotations

from typing import Optional, Tuple, Union

CURRENCY_SYMBOL = '₱'


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format an amount with thousands separators and two decimals.

    Example:
        >>> format_currency(1234.5)
        '₱1,234.50'
        >>> format_currency(-20, include_sign=False)
        '-20.00'
    """
    formatted = f"{abs(amount):,.2f}"
    prefix = '-' if amount < 0 else ''
    return f"{prefix}{CURRENCY_SYMBOL}{formatted}" if include_sign else f"{prefix}{formatted}"


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def ordinal(day: int) -> str:
    """``1`` -> ``1st``, ``22`` -> ``22nd``, ``13`` -> ``13th``."""
    if 11 <= day % 100 <= 13:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(day % 10, 'th')
    return f"{day}{suffix}"


def describe_schedule(frequency: str, day_of_month: Optional[int]) -> str:
    if frequency == 'monthly' and day_of_month:
        return f"Every {ordinal(day_of_month)} of the month"
    if frequency == 'biweekly':
        return 'Every two weeks'
    if frequency == 'weekly':
        return 'Every week'
    return frequency.title()


def describe_top_day(top_day: Optional[Tuple[str, float]]) -> str:
    if not top_day:
        return 'No spending yet'
    name, total = top_day
    return f"{name} ({format_currency(total)} total)"

"""Fiscal year and fiscal month arithmetic.

A client's fiscal year starts in fiscal_year_start_month. When that month is
January the fiscal year equals the calendar year; otherwise the fiscal year is
named after the calendar year in which it ends. For a July start, July 2025 is
month 0 of fiscal year 2026 and June 2026 is month 11.

Periods are identified as "YYYY-MM" with the fiscal year and the 0-based
fiscal month index ("2026-00" is July 2025 for a July start).
"""

import calendar
from datetime import date

from sams.api.errors import ValidationError

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def _validate_start_month(start_month: int) -> None:
    if not 1 <= start_month <= 12:
        raise ValidationError(f"Invalid fiscal year start month: {start_month}")


def _validate_month_index(month_index: int) -> None:
    if not 0 <= month_index <= 11:
        raise ValidationError(f"Invalid fiscal month index: {month_index} (expected 0-11)")


def get_fiscal_year(value: date, start_month: int = 1) -> int:
    """Return the fiscal year a calendar date falls in."""
    _validate_start_month(start_month)
    if start_month == 1:
        return value.year
    return value.year + 1 if value.month >= start_month else value.year


def get_fiscal_month_index(value: date, start_month: int = 1) -> int:
    """Return the 0-based fiscal month of a calendar date."""
    _validate_start_month(start_month)
    return (value.month - start_month) % 12


def fiscal_to_calendar(fiscal_year: int, month_index: int, start_month: int = 1) -> tuple[int, int]:
    """Convert a fiscal period to (calendar_year, calendar_month).

    Example:
        >>> fiscal_to_calendar(2026, 0, 7)
        (2025, 7)
        >>> fiscal_to_calendar(2026, 6, 7)
        (2026, 1)
    """
    _validate_start_month(start_month)
    _validate_month_index(month_index)
    months_from_january = start_month - 1 + month_index
    first_calendar_year = fiscal_year if start_month == 1 else fiscal_year - 1
    return first_calendar_year + months_from_january // 12, months_from_january % 12 + 1


def fiscal_month_start(fiscal_year: int, month_index: int, start_month: int = 1) -> date:
    """First calendar day of a fiscal month."""
    year, month = fiscal_to_calendar(fiscal_year, month_index, start_month)
    return date(year, month, 1)


def get_fiscal_year_bounds(fiscal_year: int, start_month: int = 1) -> tuple[date, date]:
    """Return (first_day, last_day) of a fiscal year."""
    first = fiscal_month_start(fiscal_year, 0, start_month)
    last_year, last_month = fiscal_to_calendar(fiscal_year, 11, start_month)
    last = date(last_year, last_month, calendar.monthrange(last_year, last_month)[1])
    return first, last


def fiscal_month_name(month_index: int, start_month: int = 1) -> str:
    """Abbreviated calendar month name of a fiscal month ("Jul")."""
    _validate_month_index(month_index)
    return MONTH_ABBREVIATIONS[(start_month - 1 + month_index) % 12]


def fiscal_month_label(fiscal_year: int, month_index: int, start_month: int = 1) -> str:
    """Month and calendar year label of a fiscal period ("Jul 2025")."""
    year, month = fiscal_to_calendar(fiscal_year, month_index, start_month)
    return f"{MONTH_ABBREVIATIONS[month - 1]} {year}"


def period_id(fiscal_year: int, month_index: int) -> str:
    """Format a fiscal period as "YYYY-MM"."""
    _validate_month_index(month_index)
    return f"{fiscal_year}-{month_index:02d}"


def parse_period_id(value: str) -> tuple[int, int]:
    """Parse "YYYY-MM" into (fiscal_year, month_index)."""
    try:
        year_part, month_part = value.split("-")
        fiscal_year, month_index = int(year_part), int(month_part)
    except ValueError:
        raise ValidationError(f"Invalid period id: {value!r} (expected YYYY-MM)")
    _validate_month_index(month_index)
    return fiscal_year, month_index


def previous_period(fiscal_year: int, month_index: int) -> tuple[int, int]:
    """Fiscal period immediately before the given one."""
    if month_index == 0:
        return fiscal_year - 1, 11
    return fiscal_year, month_index - 1


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end, never negative."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(0, months)


__all__ = [
    "get_fiscal_year",
    "get_fiscal_month_index",
    "fiscal_to_calendar",
    "fiscal_month_start",
    "get_fiscal_year_bounds",
    "fiscal_month_name",
    "fiscal_month_label",
    "period_id",
    "parse_period_id",
    "previous_period",
    "months_between",
]

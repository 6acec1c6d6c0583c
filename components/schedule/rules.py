"""
Date rules for recurring maintenance.

Weekdays follow the 0=Sunday..6=Saturday convention used by the plan
records. Nothing here raises for missing schedule data: absence is
returned as None.
"""

from datetime import date, timedelta
from typing import Iterable, NamedTuple, Optional

from components.core.exceptions import InvalidRecurrence

DEFAULT_WEEKDAY = 1  # Monday
DEFAULT_WEEK_OF_MONTH = 1


class DueMonth(NamedTuple):
    month: int
    next_year: bool


def sunday_based_weekday(day: date) -> int:
    """Weekday of a date with Sunday as 0."""
    return (day.weekday() + 1) % 7


def validate_recurrence(weekday: Optional[int], week_of_month: Optional[int]) -> None:
    """Reject a recurrence rule before it reaches the date functions."""
    if weekday is not None and not 0 <= weekday <= 6:
        raise InvalidRecurrence(f"preferred_weekday must be between 0 and 6 (got {weekday})")
    if week_of_month is not None and not 1 <= week_of_month <= 4:
        raise InvalidRecurrence(f"preferred_week_of_month must be between 1 and 4 (got {week_of_month})")


def preferred_date_in_month(
    year: int,
    month: int,
    weekday: Optional[int] = None,
    week_of_month: Optional[int] = None,
) -> date:
    """
    Resolve the n-th occurrence of a weekday in a month.

    The result is not clamped to the month: asking for an occurrence the
    month does not have spills into the next one (the 5th Friday of
    February 2025 is 2025-03-07).
    """
    if weekday is None:
        weekday = DEFAULT_WEEKDAY
    if week_of_month is None:
        week_of_month = DEFAULT_WEEK_OF_MONTH

    first = date(year, month, 1)
    offset = (weekday - sunday_based_weekday(first) + 7) % 7
    return first + timedelta(days=offset + (week_of_month - 1) * 7)


def next_due_month(months: Iterable[int], current_month: int) -> Optional[DueMonth]:
    """
    Pick the next month of a seasonal schedule.

    Returns the smallest listed month not before current_month, or wraps
    to the first listed month of the following year.
    """
    ordered = sorted(set(months))
    if not ordered:
        return None
    for month in ordered:
        if month >= current_month:
            return DueMonth(month, False)
    return DueMonth(ordered[0], True)


def next_due_date(
    months: Iterable[int],
    current_year: int,
    current_month: int,
    weekday: Optional[int] = None,
    week_of_month: Optional[int] = None,
) -> Optional[date]:
    due = next_due_month(months, current_month)
    if due is None:
        return None
    year = current_year + 1 if due.next_year else current_year
    return preferred_date_in_month(year, due.month, weekday, week_of_month)

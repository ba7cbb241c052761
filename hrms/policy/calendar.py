"""Calendar resolution: which calendar days count as working days.

Pure functions over already-fetched data. ``policy`` is anything carrying
``working_days`` (weekday indices, 0 = Sunday) and ``special_holidays``;
``None`` means the default Monday–Friday week with no special holidays.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable, Iterator, Optional

DEFAULT_WORKING_DAYS = frozenset({1, 2, 3, 4, 5})


def weekday_index(day: date) -> int:
    """Sunday-based weekday index (0 = Sunday … 6 = Saturday)."""
    return day.isoweekday() % 7


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Every calendar date in the closed range ``[start, end]``."""
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)


def working_weekdays(policy: Optional[Any]) -> frozenset[int]:
    if policy is None or policy.working_days is None:
        return DEFAULT_WORKING_DAYS
    return frozenset(int(d) for d in policy.working_days)


def special_holiday_dates(policy: Optional[Any]) -> set[date]:
    """Dates of the policy's special holidays.

    Entries are ``{"date": ..., "description": ...}`` objects; bare ISO
    strings are accepted too.
    """
    if policy is None or not policy.special_holidays:
        return set()
    dates: set[date] = set()
    for entry in policy.special_holidays:
        raw = entry.get("date") if isinstance(entry, dict) else entry
        if isinstance(raw, date):
            dates.add(raw)
        elif raw:
            dates.add(date.fromisoformat(str(raw)[:10]))
    return dates


def is_working_weekday(day: date, policy: Optional[Any]) -> bool:
    return weekday_index(day) in working_weekdays(policy)


def is_working_day(
    day: date,
    policy: Optional[Any],
    holidays: Iterable[date] = (),
) -> bool:
    """True iff the weekday is scheduled and ``day`` is not a holiday."""
    if not is_working_weekday(day, policy):
        return False
    return day not in set(holidays) and day not in special_holiday_dates(policy)


def count_working_days(
    start: date,
    end: date,
    policy: Optional[Any],
    holidays: Iterable[date] = (),
) -> int:
    """Number of working days in ``[start, end]``; 0 when ``start > end``."""
    weekdays = working_weekdays(policy)
    off = set(holidays) | special_holiday_dates(policy)
    return sum(
        1 for d in iter_dates(start, end)
        if weekday_index(d) in weekdays and d not in off
    )

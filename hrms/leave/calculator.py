"""Leave day calculator — turns (start, end, start half, end half) into a day count.

A single working day costs 0.5 when either half-day flag is set, else 1.0.
Across several working days each half-day flag takes 0.5 off the count, but
only when it sits on a working day.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from hrms.common.constants import DAYS_QUANTUM, HALF_DAY, DayPart, LeaveDuration
from hrms.common.exceptions import ValidationException
from hrms.policy.calendar import count_working_days, is_working_day

ZERO_DAYS = Decimal("0.00")
FULL_DAY = frozenset({DayPart.morning, DayPart.afternoon})
_HALF_PARTS = {
    LeaveDuration.half_morning: DayPart.morning,
    LeaveDuration.half_afternoon: DayPart.afternoon,
}


def calculate_total_days(
    start: date,
    end: date,
    start_duration: LeaveDuration,
    end_duration: LeaveDuration,
    policy: Optional[Any],
    holidays: Iterable[date] = (),
) -> Decimal:
    if start > end:
        raise ValidationException(
            {"end_date": ["End date must be on or after the start date."]}
        )

    holidays = frozenset(holidays)
    working = count_working_days(start, end, policy, holidays)
    if working == 0:
        return ZERO_DAYS

    if working == 1:
        if start_duration.is_half or end_duration.is_half:
            total = HALF_DAY
        else:
            total = Decimal(1)
    else:
        total = Decimal(working)
        if start_duration.is_half and is_working_day(start, policy, holidays):
            total -= HALF_DAY
        if end_duration.is_half and is_working_day(end, policy, holidays):
            total -= HALF_DAY

    return max(total, Decimal(0)).quantize(DAYS_QUANTUM, rounding=ROUND_HALF_UP)


def durations_on(
    start: date,
    end: date,
    start_duration: LeaveDuration,
    end_duration: LeaveDuration,
    day: date,
) -> tuple[LeaveDuration, ...]:
    """Duration flags of a leave that apply to ``day``; empty outside ``[start, end]``."""
    if day < start or day > end:
        return ()
    if start == end:
        return (start_duration, end_duration)
    if day == start:
        return (start_duration,)
    if day == end:
        return (end_duration,)
    return (LeaveDuration.full,)


def day_parts_on(
    start: date,
    end: date,
    start_duration: LeaveDuration,
    end_duration: LeaveDuration,
    day: date,
) -> frozenset[DayPart]:
    """Which halves of ``day`` a leave covers."""
    flags = durations_on(start, end, start_duration, end_duration, day)
    if not flags:
        return frozenset()
    parts = {_HALF_PARTS[f] for f in flags if f.is_half}
    return frozenset(parts) if parts else FULL_DAY

"""Clock abstraction — every "today" and lateness comparison goes through here."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from functools import cached_property
from zoneinfo import ZoneInfo

from hrms.config import settings


class Clock:
    """System clock in the policy-local time zone."""

    def __init__(self, tz_name: str | None = None) -> None:
        self.tz_name = tz_name or settings.TIMEZONE

    @cached_property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def at(self, day: date, moment: time) -> datetime:
        """Combine a calendar date and a policy time-of-day into an aware datetime."""
        return datetime.combine(day, moment, tzinfo=self.tz)

    def localize(self, value: datetime) -> datetime:
        """Return ``value`` in local time; naive values are taken as UTC."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.tz)


system_clock = Clock()

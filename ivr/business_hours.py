"""Business-hours oracle: open/closed status and time until the next opening.

The schedule is fixed: Monday to Friday, ``open_hour`` to ``close_hour``
in one business timezone.  Opening is inclusive, closing exclusive, so with
the default 10–17 schedule 16:59 is open and 17:00 is closed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from ivr.config import Settings

log = logging.getLogger("ivr.business_hours")

WEEKDAYS = frozenset(range(0, 5))  # Monday=0 .. Friday=4


def format_hour(hour: int) -> str:
    """24h hour → spoken 12h form: 10 → "10 AM", 17 → "5 PM", 12 → "12 PM"."""
    suffix = "AM" if hour < 12 or hour == 24 else "PM"
    display = hour % 12 or 12
    return f"{display} {suffix}"


def spoken_date(day: date) -> str:
    """Format a date the way it is read to callers: "Tuesday, October 20, 2026"."""
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


@dataclass(frozen=True)
class OpenCountdown:
    """Result of :meth:`BusinessHours.time_until_open`."""

    days_ahead: int
    message: str


@dataclass(frozen=True)
class BusinessHours:
    timezone: str = "America/Los_Angeles"
    timezone_label: str = "Pacific Time"
    open_hour: int = 10
    close_hour: int = 17
    location: str = "Portland, Oregon"

    @classmethod
    def from_settings(cls, settings: Settings) -> "BusinessHours":
        return cls(
            timezone=settings.business_timezone,
            timezone_label=settings.business_timezone_label,
            open_hour=settings.business_open_hour,
            close_hour=settings.business_close_hour,
            location=settings.business_location,
        )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def hours_text(self) -> str:
        return (
            f"Monday to Friday, {format_hour(self.open_hour)} to "
            f"{format_hour(self.close_hour)} {self.timezone_label}"
        )

    def local(self, now: datetime) -> datetime:
        """Convert ``now`` to business time. Naive datetimes are taken as local already."""
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def is_open(self, now: datetime) -> bool:
        local = self.local(now)
        if local.weekday() not in WEEKDAYS:
            return False
        return self.open_hour <= local.hour < self.close_hour

    def time_until_open(self, now: datetime) -> OpenCountdown:
        local = self.local(now)
        opens_at = format_hour(self.open_hour)

        if self.is_open(local):
            return OpenCountdown(
                0,
                f"We're open now until {format_hour(self.close_hour)} {self.timezone_label}",
            )

        if local.weekday() in WEEKDAYS and local.hour < self.open_hour:
            return OpenCountdown(0, f"We open today at {opens_at} {self.timezone_label}")

        days_ahead = self._days_to_next_open_day(local.date())
        if days_ahead == 1:
            message = f"We open tomorrow at {opens_at} {self.timezone_label}"
        else:
            weekday = (local.date() + timedelta(days=days_ahead)).strftime("%A")
            message = f"We open on {weekday} at {opens_at} {self.timezone_label}"
        return OpenCountdown(days_ahead, message)

    def next_business_day(self, now: datetime) -> date:
        """First weekday strictly after today, the next bookable date."""
        today = self.local(now).date()
        return today + timedelta(days=self._days_to_next_open_day(today))

    def status(self, now: datetime) -> dict:
        """Snapshot for logs and the reporting API."""
        local = self.local(now)
        return {
            "is_open": self.is_open(local),
            "next_open": self.time_until_open(local).message,
            "current_time": local.strftime("%Y-%m-%d %I:%M %p"),
            "hours": self.hours_text,
            "location": self.location,
        }

    @staticmethod
    def _days_to_next_open_day(today: date) -> int:
        days = 1
        while (today + timedelta(days=days)).weekday() not in WEEKDAYS:
            days += 1
        return days

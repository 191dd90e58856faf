"""Reminder scheduler — phones each customer the day before their appointment.

Every ``interval_seconds`` the scheduler lists all appointments and, for
each one whose reminder time (the day before at ``reminder_hour``, business
time) falls within ``tolerance`` of now, places one outbound call that
reads the appointment back.  The reminder log is checked before every call
and written after it, so an appointment is called at most once even when
polls overlap the reminder window more than once.

Dates are stored as spoken free text; one that cannot be parsed is skipped
with a warning.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
import threading
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from ivr.business_hours import BusinessHours
from ivr.config import Settings
from ivr.models.appointment import Appointment, normalize_phone, redact_phone
from ivr.stores.base import AppointmentStore, AppointmentStoreError
from ivr.telephony.base import CallPlacer, NotificationError
from ivr.twiml import say_document

log = logging.getLogger("ivr.reminders")

CALL_INITIATED = "CALL_INITIATED"
TEST_CALL_INITIATED = "TEST_CALL_INITIATED"

_DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%B %d %Y", "%b %d %Y", "%m/%d/%Y", "%Y-%m-%d")
_YEARLESS_FORMATS = ("%B %d", "%b %d")
_ORDINAL = re.compile(r"\b(\d{1,2})(st|nd|rd|th)\b", re.IGNORECASE)
_WEEKDAYS = {"monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"}


def parse_appointment_date(text: str, today: date | None = None) -> date | None:
    """Best-effort parse of a stored appointment date.

    Accepts "Tuesday, October 20, 2026", "Oct 20 2026", "October 20th, 2026",
    "10/20/2026", "2026-10-20" and, without a year, "October 20" (the next
    such date on or after ``today``).  Returns None when nothing matches.
    """
    cleaned = _ORDINAL.sub(r"\1", (text or "").strip())
    parts = [p.strip() for p in cleaned.split(",")]
    if parts and parts[0].lower() in _WEEKDAYS:
        parts = parts[1:]
    cleaned = " ".join(", ".join(parts).split())
    if not cleaned:
        return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue

    today = today or date.today()
    for fmt in _YEARLESS_FORMATS:
        try:
            parsed = datetime.strptime(f"{cleaned} {today.year}", f"{fmt} %Y").date()
        except ValueError:
            continue
        if parsed < today:
            with contextlib.suppress(ValueError):
                parsed = parsed.replace(year=today.year + 1)
        return parsed
    return None


def reminder_instant(appointment_day: date, hours: BusinessHours, reminder_hour: int) -> datetime:
    """The moment a reminder is due: the previous day at ``reminder_hour``, business time."""
    return datetime.combine(appointment_day - timedelta(days=1), time(reminder_hour), tzinfo=hours.tz)


class ReminderLogError(Exception):
    """The reminder log could not be read or written."""


class ReminderLog:
    """Append-only JSON list of reminder attempts."""

    def __init__(self, path: str | Path, clock: Callable[[], datetime] | None = None) -> None:
        self._path = Path(path)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            raise ReminderLogError(f"Cannot read reminder log {self._path}: {e}") from e
        if not isinstance(data, list):
            raise ReminderLogError(f"Reminder log {self._path} is not a list")
        return data

    def records(self) -> list[dict[str, Any]]:
        with self._lock:
            return self._load()

    def has_initiated(self, phone: str, appointment_date: str) -> bool:
        """Whether a real reminder call already went out for this appointment."""
        digits = normalize_phone(phone)
        with self._lock:
            entries = self._load()
        return any(
            normalize_phone(entry.get("phone")) == digits
            and (entry.get("appointment") or {}).get("date") == appointment_date
            and entry.get("status") == CALL_INITIATED
            for entry in entries
        )

    def record(self, appointment: Appointment, status: str, call_sid: str = "") -> dict[str, Any]:
        entry = {
            "phone": appointment.phone,
            "appointment": {"name": appointment.name, "date": appointment.date, "time": appointment.time},
            "timestamp": self._clock().isoformat(),
            "status": status,
        }
        if call_sid:
            entry["callSid"] = call_sid
        with self._lock:
            entries = self._load()
            entries.append(entry)
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._path.write_text(json.dumps(entries, indent=2), encoding="utf-8")
            except OSError as e:
                raise ReminderLogError(f"Cannot write reminder log {self._path}: {e}") from e
        return entry


class ReminderScheduler:
    def __init__(
        self,
        store: AppointmentStore,
        call_placer: CallPlacer,
        reminder_log: ReminderLog,
        hours: BusinessHours,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.call_placer = call_placer
        self.reminder_log = reminder_log
        self.hours = hours
        self.settings = settings
        self.reminder_hour = settings.reminder_hour
        self.interval = settings.reminder_interval_seconds
        self.tolerance = timedelta(minutes=settings.reminder_tolerance_minutes)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._run_lock = asyncio.Lock()
        # (phone, date) pairs called by this process, checked even when the log write failed
        self._called: set[tuple[str, str]] = set()
        self._task: asyncio.Task | None = None

    def script(self, appointment: Appointment) -> str:
        business = self.settings.business_name
        text = (
            f"Hello, this is {business} calling to remind you about your appointment "
            f"scheduled for {appointment.date} at {appointment.time}. Please call us if you "
            f"need to reschedule. Thank you for choosing {business}!"
        )
        return say_document(text, self.settings)

    def is_due(self, appointment: Appointment, now: datetime) -> bool:
        day = parse_appointment_date(appointment.date, today=self.hours.local(now).date())
        if day is None:
            log.warning(
                "Cannot parse appointment date %r for %s, skipping",
                appointment.date, redact_phone(appointment.phone),
            )
            return False
        due = reminder_instant(day, self.hours, self.reminder_hour)
        return abs(now - due) < self.tolerance

    async def run_once(self, now: datetime | None = None) -> list[str]:
        """One poll. Returns the phones that were called."""
        async with self._run_lock:
            now = now or self._clock()
            if now.tzinfo is None:
                now = now.replace(tzinfo=self.hours.tz)
            try:
                appointments = await self.store.list_all()
            except AppointmentStoreError as e:
                log.error("Reminder check skipped, store unavailable: %s", e)
                return []

            called = []
            for appointment in appointments:
                if not self.is_due(appointment, now):
                    continue
                key = (normalize_phone(appointment.phone), appointment.date.strip())
                if key in self._called:
                    log.info("Reminder already sent to %s", redact_phone(appointment.phone))
                    continue
                try:
                    if self.reminder_log.has_initiated(appointment.phone, appointment.date):
                        log.info("Reminder already sent to %s", redact_phone(appointment.phone))
                        continue
                except ReminderLogError as e:
                    log.error("Reminder for %s skipped: %s", redact_phone(appointment.phone), e)
                    continue

                try:
                    sid = await self.call_placer.place_call(appointment.phone, self.script(appointment))
                except NotificationError as e:
                    log.error("Reminder call to %s failed: %s", redact_phone(appointment.phone), e)
                    self._record(appointment, f"ERROR: {e}")
                    continue
                self._called.add(key)
                self._record(appointment, CALL_INITIATED, sid)
                called.append(appointment.phone)
            return called

    def _record(self, appointment: Appointment, status: str, call_sid: str = "") -> None:
        try:
            self.reminder_log.record(appointment, status, call_sid)
        except ReminderLogError as e:
            log.error("%s", e)

    async def trigger_test(self, phone: str) -> dict[str, Any] | None:
        """Call ``phone`` now with its reminder. None when it has no appointment.

        Raises NotificationError when the call cannot be placed.
        """
        appointment = await self.store.find(phone)
        if appointment is None:
            return None
        sid = await self.call_placer.place_call(appointment.phone, self.script(appointment))
        self._record(appointment, TEST_CALL_INITIATED, sid)
        return {"callSid": sid, "appointment": appointment.model_dump(mode="json")}

    async def _loop(self) -> None:
        log.info(
            "Reminder scheduler running every %ss (reminders at %s:00 the day before)",
            self.interval, self.reminder_hour,
        )
        while True:
            try:
                await self.run_once()
            except Exception:
                log.exception("Reminder check failed")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

"""Daily call log — one JSON document per business-local day.

Each document holds per-action counters and the newest ``MAX_CALLS_PER_DAY``
call records.  It feeds the reporting endpoints only; a failure to read or
write it is logged and never affects a call.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable
from zoneinfo import ZoneInfo

from ivr.models.appointment import redact_phone

log = logging.getLogger("ivr.call_log")

MAX_CALLS_PER_DAY = 500

_LOG_NAME = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class CallAction(str, Enum):
    CALL_RECEIVED = "CALL_RECEIVED"
    APPOINTMENT_SCHEDULED = "APPOINTMENT_SCHEDULED"
    APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
    APPOINTMENT_RESCHEDULE_STARTED = "APPOINTMENT_RESCHEDULE_STARTED"
    CALLBACK_REQUESTED = "CALLBACK_REQUESTED"
    AFTER_HOURS_CALLBACK_REQUESTED = "AFTER_HOURS_CALLBACK_REQUESTED"
    REPRESENTATIVE_SELECTED = "REPRESENTATIVE_SELECTED"
    CREATIVE_DIRECTOR_SELECTED = "CREATIVE_DIRECTOR_SELECTED"
    PARTNERSHIP_INQUIRY = "PARTNERSHIP_INQUIRY"
    VOICE_MESSAGE_RECORDED = "VOICE_MESSAGE_RECORDED"
    SERIOUS_QUESTION_DETECTED = "SERIOUS_QUESTION_DETECTED"
    ERROR = "ERROR"


# action -> counter it bumps (besides totalCalls)
_COUNTERS = {
    CallAction.APPOINTMENT_SCHEDULED: "appointmentsMade",
    CallAction.CALLBACK_REQUESTED: "callbackRequests",
    CallAction.AFTER_HOURS_CALLBACK_REQUESTED: "callbackRequests",
    CallAction.REPRESENTATIVE_SELECTED: "representativeCalls",
    CallAction.CREATIVE_DIRECTOR_SELECTED: "creativeDirectorCalls",
    CallAction.PARTNERSHIP_INQUIRY: "partnershipInquiries",
    CallAction.VOICE_MESSAGE_RECORDED: "voiceMessages",
    CallAction.SERIOUS_QUESTION_DETECTED: "seriousQuestions",
}

STAT_KEYS = (
    "totalCalls",
    "appointmentsMade",
    "callbackRequests",
    "representativeCalls",
    "creativeDirectorCalls",
    "partnershipInquiries",
    "afterHoursCalls",
    "voiceMessages",
    "seriousQuestions",
)


class DailyCallLog:
    def __init__(
        self,
        directory: str | Path,
        timezone_name: str = "America/Los_Angeles",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._dir = Path(directory)
        self._tz = ZoneInfo(timezone_name)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()

    # ── Paths and dates ──────────────────────────────────────────

    def _now(self) -> datetime:
        return self._clock().astimezone(self._tz)

    def _path_for(self, date_string: str) -> Path:
        return self._dir / f"{date_string}.json"

    def _empty_log(self, now: datetime) -> dict[str, Any]:
        log_data: dict[str, Any] = {
            "date": now.strftime("%Y-%m-%d"),
            "formattedDate": f"{now:%A}, {now:%B} {now.day}, {now.year}",
        }
        log_data.update({key: 0 for key in STAT_KEYS})
        log_data["calls"] = []
        return log_data

    def _set_aside(self, path: Path) -> None:
        """Move an unreadable log out of the way so its records survive."""
        target = path.with_name(f"{path.stem}.corrupt.json")
        n = 1
        while target.exists():
            n += 1
            target = path.with_name(f"{path.stem}.corrupt{n}.json")
        try:
            path.rename(target)
            log.warning("Moved unreadable daily log to %s", target.name)
        except OSError as e:
            log.error("Could not move unreadable daily log %s: %s", path, e)

    def _read(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            log.error("Error loading daily log %s: %s", path, e)
            return None
        if not isinstance(data, dict):
            log.error("Daily log %s is not an object", path)
            return None
        return data

    # ── Writing ──────────────────────────────────────────────────

    def log_call(self, phone: str, action: CallAction | str, details: dict | None = None) -> dict:
        """Append a call record to today's log and update the counters."""
        action = CallAction(action)
        details = dict(details or {})
        now = self._now()
        record = {
            "phone": phone,
            "action": action.value,
            "details": details,
            "timestamp": now.astimezone(timezone.utc).isoformat(),
            "localTime": now.strftime("%I:%M:%S %p"),
            "date": now.strftime("%Y-%m-%d"),
        }

        with self._lock:
            path = self._path_for(record["date"])
            today = self._read(path)
            if today is None:
                if path.exists():
                    self._set_aside(path)
                today = self._empty_log(now)
            today["totalCalls"] = today.get("totalCalls", 0) + 1
            counter = _COUNTERS.get(action)
            if counter:
                today[counter] = today.get(counter, 0) + 1
            if action is CallAction.CALL_RECEIVED and not details.get("isWithinBusinessHours", True):
                today["afterHoursCalls"] = today.get("afterHoursCalls", 0) + 1

            calls = today.get("calls") or []
            calls.append(record)
            today["calls"] = calls[-MAX_CALLS_PER_DAY:]

            try:
                self._dir.mkdir(parents=True, exist_ok=True)
                path.write_text(json.dumps(today, indent=2), encoding="utf-8")
            except OSError as e:
                log.error("Error saving daily log %s: %s", path, e)

        log.info("Call logged: %s %s", redact_phone(phone), action.value)
        return record

    # ── Reporting ────────────────────────────────────────────────

    def today_stats(self) -> dict[str, Any]:
        now = self._now()
        today = self._read(self._path_for(now.strftime("%Y-%m-%d"))) or self._empty_log(now)
        stats = {"date": today.get("formattedDate", today.get("date"))}
        stats.update({key: today.get(key, 0) for key in STAT_KEYS})
        return stats

    def log_dates(self) -> list[str]:
        """Dates that have a log file, newest first."""
        if not self._dir.is_dir():
            return []
        return sorted(
            (p.stem for p in self._dir.glob("*.json") if _LOG_NAME.match(p.stem)), reverse=True
        )

    def log_for_date(self, date_string: str) -> dict[str, Any] | None:
        return self._read(self._path_for(date_string))

    def stats_for_period(self, start: str, end: str) -> dict[str, Any]:
        """Sum the counters over every logged day with ``start <= date <= end``."""
        dates = sorted(d for d in self.log_dates() if start <= d <= end)
        stats: dict[str, Any] = {"startDate": start, "endDate": end, "totalDays": len(dates)}
        stats.update({key: 0 for key in STAT_KEYS})
        daily = []
        for date_string in dates:
            day = self.log_for_date(date_string)
            if not day:
                continue
            for key in STAT_KEYS:
                stats[key] += day.get(key, 0) or 0
            daily.append({
                "date": day.get("formattedDate", date_string),
                "totalCalls": day.get("totalCalls", 0),
                "appointmentsMade": day.get("appointmentsMade", 0),
                "callbackRequests": day.get("callbackRequests", 0),
            })
        stats["dailyLogs"] = daily
        return stats

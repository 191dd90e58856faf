"""Tests for the daily call log and its reporting queries."""

import json
from datetime import datetime, timezone

import pytest

from ivr.call_log import MAX_CALLS_PER_DAY, CallAction, DailyCallLog

from conftest import CALLER, Clock, TUESDAY_MORNING


@pytest.fixture
def log_clock():
    return Clock(TUESDAY_MORNING)


@pytest.fixture
def call_log(tmp_path, log_clock):
    return DailyCallLog(tmp_path / "daily_logs", "America/Los_Angeles", clock=log_clock)


class TestLogCall:
    def test_counters(self, call_log):
        call_log.log_call(CALLER, CallAction.CALL_RECEIVED, {"isWithinBusinessHours": True})
        call_log.log_call(CALLER, CallAction.APPOINTMENT_SCHEDULED)
        call_log.log_call(CALLER, "CALLBACK_REQUESTED")
        stats = call_log.today_stats()
        assert stats["date"] == "Tuesday, October 20, 2026"
        assert stats["totalCalls"] == 3
        assert stats["appointmentsMade"] == 1
        assert stats["callbackRequests"] == 1
        assert stats["afterHoursCalls"] == 0

    def test_after_hours_counter(self, call_log):
        call_log.log_call(CALLER, CallAction.CALL_RECEIVED, {"isWithinBusinessHours": False})
        assert call_log.today_stats()["afterHoursCalls"] == 1

    def test_record_shape(self, call_log):
        record = call_log.log_call(CALLER, CallAction.PARTNERSHIP_INQUIRY, {"details": "print shop"})
        assert record["action"] == "PARTNERSHIP_INQUIRY"
        assert record["date"] == "2026-10-20"
        assert record["localTime"] == "11:00:00 AM"
        assert record["details"] == {"details": "print shop"}

    def test_unknown_action_rejected(self, call_log):
        with pytest.raises(ValueError):
            call_log.log_call(CALLER, "DANCED")

    def test_keeps_newest_calls(self, call_log):
        for _ in range(MAX_CALLS_PER_DAY + 3):
            call_log.log_call(CALLER, CallAction.CALL_RECEIVED)
        day = call_log.log_for_date("2026-10-20")
        assert len(day["calls"]) == MAX_CALLS_PER_DAY
        assert day["totalCalls"] == MAX_CALLS_PER_DAY + 3

    def test_day_boundary_is_business_local(self, call_log, log_clock):
        # 06:30 UTC Wednesday is still Tuesday evening in Portland
        log_clock.now = datetime(2026, 10, 21, 6, 30, tzinfo=timezone.utc)
        call_log.log_call(CALLER, CallAction.CALL_RECEIVED)
        assert call_log.log_dates() == ["2026-10-20"]

    def test_corrupt_file_starts_fresh(self, call_log, tmp_path):
        directory = tmp_path / "daily_logs"
        directory.mkdir()
        (directory / "2026-10-20.json").write_text("[oops")
        call_log.log_call(CALLER, CallAction.CALL_RECEIVED)
        assert call_log.today_stats()["totalCalls"] == 1
        assert (directory / "2026-10-20.corrupt.json").read_text() == "[oops"
        assert call_log.log_dates() == ["2026-10-20"]

    def test_second_corrupt_file_kept_separately(self, call_log, tmp_path):
        directory = tmp_path / "daily_logs"
        directory.mkdir()
        (directory / "2026-10-20.corrupt.json").write_text("first")
        (directory / "2026-10-20.json").write_text("second")
        call_log.log_call(CALLER, CallAction.CALL_RECEIVED)
        assert (directory / "2026-10-20.corrupt.json").read_text() == "first"
        assert (directory / "2026-10-20.corrupt2.json").read_text() == "second"


class TestReporting:
    def test_empty(self, call_log):
        assert call_log.log_dates() == []
        assert call_log.log_for_date("2026-10-20") is None
        assert call_log.today_stats()["totalCalls"] == 0

    def test_stats_for_period(self, call_log, log_clock):
        for day, count in ((19, 2), (20, 1), (23, 4)):
            log_clock.now = datetime(2026, 10, day, 18, 0, tzinfo=timezone.utc)
            for _ in range(count):
                call_log.log_call(CALLER, CallAction.APPOINTMENT_SCHEDULED)

        stats = call_log.stats_for_period("2026-10-19", "2026-10-20")
        assert stats["totalDays"] == 2
        assert stats["totalCalls"] == 3
        assert stats["appointmentsMade"] == 3
        assert [d["date"] for d in stats["dailyLogs"]] == [
            "Monday, October 19, 2026",
            "Tuesday, October 20, 2026",
        ]

    def test_log_dates_newest_first(self, call_log, log_clock):
        for day in (19, 21, 20):
            log_clock.now = datetime(2026, 10, day, 18, 0, tzinfo=timezone.utc)
            call_log.log_call(CALLER, CallAction.CALL_RECEIVED)
        assert call_log.log_dates() == ["2026-10-21", "2026-10-20", "2026-10-19"]

    def test_file_is_plain_json(self, call_log, tmp_path):
        call_log.log_call(CALLER, CallAction.CALL_RECEIVED)
        data = json.loads((tmp_path / "daily_logs" / "2026-10-20.json").read_text())
        assert data["formattedDate"] == "Tuesday, October 20, 2026"

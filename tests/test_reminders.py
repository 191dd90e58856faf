"""Tests for reminder scheduling, the reminder log and date parsing."""

import json
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from ivr.business_hours import BusinessHours
from ivr.reminders import (
    CALL_INITIATED,
    TEST_CALL_INITIATED,
    ReminderLog,
    ReminderLogError,
    ReminderScheduler,
    parse_appointment_date,
    reminder_instant,
)

from conftest import CALLER, FakeCallPlacer, make_appointment

PACIFIC = ZoneInfo("America/Los_Angeles")
# Appointment on Wednesday Oct 21 → reminder Tuesday Oct 20 at 2 PM Pacific
DUE = datetime(2026, 10, 20, 14, 0, tzinfo=PACIFIC)


@pytest.fixture
def placer():
    return FakeCallPlacer()


@pytest.fixture
def reminder_log(tmp_path):
    return ReminderLog(tmp_path / "reminders_log.json")


@pytest.fixture
def scheduler(store, placer, reminder_log, settings):
    return ReminderScheduler(
        store=store,
        call_placer=placer,
        reminder_log=reminder_log,
        hours=BusinessHours.from_settings(settings),
        settings=settings,
    )


# ── Date parsing ───────────────────────────────────────────────────


class TestParseAppointmentDate:
    @pytest.mark.parametrize(
        "text",
        [
            "Wednesday, October 21, 2026",
            "October 21, 2026",
            "Oct 21 2026",
            "October 21st, 2026",
            "10/21/2026",
            "2026-10-21",
        ],
    )
    def test_formats(self, text):
        assert parse_appointment_date(text) == date(2026, 10, 21)

    def test_without_year_is_next_occurrence(self):
        assert parse_appointment_date("October 21", today=date(2026, 10, 19)) == date(2026, 10, 21)
        assert parse_appointment_date("Tuesday, January 5", today=date(2026, 10, 19)) == date(2027, 1, 5)

    @pytest.mark.parametrize("text", ["", "next Tuesday", "soon", "13/45/2026"])
    def test_unparseable(self, text):
        assert parse_appointment_date(text) is None

    def test_reminder_instant(self):
        due = reminder_instant(date(2026, 10, 21), BusinessHours(), 14)
        assert due == DUE


# ── Scheduler ──────────────────────────────────────────────────────


class TestReminderScheduler:
    async def test_calls_when_due(self, scheduler, store, placer, reminder_log):
        await store.add(make_appointment())
        called = await scheduler.run_once(DUE + timedelta(minutes=2))
        assert called == ["15035551234"]
        to, twiml = placer.calls[0]
        assert to == "15035551234"
        assert "remind you about your appointment scheduled for Wednesday, October 21, 2026 at 2 PM Pacific Time" in twiml
        entry = reminder_log.records()[0]
        assert entry["status"] == CALL_INITIATED
        assert entry["callSid"] == "CA0001"
        assert entry["appointment"]["date"] == "Wednesday, October 21, 2026"

    async def test_at_most_once_across_polls(self, scheduler, store, placer):
        await store.add(make_appointment())
        await scheduler.run_once(DUE - timedelta(minutes=4))
        await scheduler.run_once(DUE + timedelta(minutes=1))
        await scheduler.run_once(DUE + timedelta(minutes=4))
        assert len(placer.calls) == 1

    async def test_overlapping_runs_call_once(self, scheduler, store, placer):
        import asyncio

        await store.add(make_appointment())
        await asyncio.gather(scheduler.run_once(DUE), scheduler.run_once(DUE))
        assert len(placer.calls) == 1

    async def test_outside_window_not_called(self, scheduler, store, placer):
        await store.add(make_appointment())
        assert await scheduler.run_once(DUE - timedelta(minutes=5)) == []
        assert await scheduler.run_once(DUE + timedelta(minutes=6)) == []
        assert await scheduler.run_once(DUE - timedelta(days=1)) == []
        assert placer.calls == []

    async def test_utc_clock(self, scheduler, store, placer):
        await store.add(make_appointment())
        # 2 PM PDT == 21:00 UTC
        await scheduler.run_once(datetime(2026, 10, 20, 21, 1, tzinfo=timezone.utc))
        assert len(placer.calls) == 1

    async def test_unparseable_date_skipped(self, scheduler, store, placer):
        await store.add(make_appointment(date="sometime next week"))
        await store.add(make_appointment(phone="+15035559999"))
        called = await scheduler.run_once(DUE)
        assert called == ["15035559999"]

    async def test_call_failure_recorded_and_retried(self, scheduler, store, placer, reminder_log):
        await store.add(make_appointment())
        placer.fail = True
        assert await scheduler.run_once(DUE) == []
        assert reminder_log.records()[0]["status"].startswith("ERROR: ")
        placer.fail = False
        assert await scheduler.run_once(DUE + timedelta(minutes=1)) == ["15035551234"]

    async def test_failed_log_write_does_not_call_twice(self, scheduler, store, placer, reminder_log, monkeypatch):
        def disk_full(*args, **kwargs):
            raise ReminderLogError("disk full")

        await store.add(make_appointment())
        monkeypatch.setattr(reminder_log, "record", disk_full)
        assert await scheduler.run_once(DUE) == ["15035551234"]
        assert await scheduler.run_once(DUE + timedelta(minutes=1)) == []
        assert len(placer.calls) == 1

    async def test_store_down_skips_run(self, scheduler, store, placer):
        store.fail = True
        assert await scheduler.run_once(DUE) == []

    async def test_unreadable_log_skips_call(self, scheduler, store, placer, reminder_log):
        await store.add(make_appointment())
        reminder_log.path.write_text("{broken")
        assert await scheduler.run_once(DUE) == []
        assert placer.calls == []

    async def test_test_call_does_not_block_real_reminder(self, scheduler, store, placer, reminder_log):
        await store.add(make_appointment())
        result = await scheduler.trigger_test(CALLER)
        assert result["callSid"] == "CA0001"
        assert reminder_log.records()[0]["status"] == TEST_CALL_INITIATED
        assert await scheduler.run_once(DUE) == ["15035551234"]

    async def test_trigger_test_without_appointment(self, scheduler):
        assert await scheduler.trigger_test(CALLER) is None

    async def test_start_and_stop(self, scheduler):
        scheduler.interval = 3600
        scheduler.start()
        assert scheduler._task is not None
        await scheduler.stop()
        assert scheduler._task is None


class TestReminderLog:
    def test_missing_file(self, reminder_log):
        assert reminder_log.records() == []
        assert reminder_log.has_initiated(CALLER, "Wednesday, October 21, 2026") is False

    def test_has_initiated_matches_date(self, reminder_log):
        reminder_log.record(make_appointment(), CALL_INITIATED, "CA1")
        assert reminder_log.has_initiated("+1 (503) 555-1234", "Wednesday, October 21, 2026")
        assert not reminder_log.has_initiated(CALLER, "Thursday, October 22, 2026")

    def test_file_is_json_list(self, reminder_log):
        reminder_log.record(make_appointment(), CALL_INITIATED)
        assert isinstance(json.loads(reminder_log.path.read_text()), list)

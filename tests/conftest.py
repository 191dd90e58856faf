"""Shared fakes and a scripted caller for the call-flow tests."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from urllib.parse import parse_qs, unquote, urlsplit

import pytest

from ivr.business_hours import BusinessHours
from ivr.call_log import DailyCallLog
from ivr.config import Settings
from ivr.controller import FlowController
from ivr.flows.base import CallServices
from ivr.models.appointment import Appointment, normalize_phone
from ivr.responder import AIResponder, AIResponderError
from ivr.stores.base import AppointmentStore, AppointmentStoreError
from ivr.telephony.base import CallPlacer, NotificationError, Notifier

CALLER = "+15035551234"
ADMIN = "+15035550000"

# Tuesday, October 20, 2026, 11:00 AM Pacific (open)
TUESDAY_MORNING = datetime(2026, 10, 20, 18, 0, tzinfo=timezone.utc)
# Saturday, October 24, 2026, noon Pacific (closed)
SATURDAY_NOON = datetime(2026, 10, 24, 19, 0, tzinfo=timezone.utc)


# ── Fakes ──────────────────────────────────────────────────────────


class FakeStore(AppointmentStore):
    def __init__(self, appointments: list[Appointment] | None = None):
        self.appointments = {a.phone: a for a in appointments or []}
        self.fail = False

    def _check(self):
        if self.fail:
            raise AppointmentStoreError("store offline")

    async def find(self, phone):
        self._check()
        return self.appointments.get(normalize_phone(phone))

    async def add(self, appointment):
        self._check()
        self.appointments[appointment.phone] = appointment
        return appointment

    async def delete(self, phone):
        self._check()
        return self.appointments.pop(normalize_phone(phone), None) is not None

    async def list_all(self):
        self._check()
        return sorted(self.appointments.values(), key=lambda a: a.created_at)


class RecordingNotifier(Notifier):
    def __init__(self, admin_numbers=None):
        super().__init__(admin_numbers if admin_numbers is not None else [ADMIN])
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send_sms(self, to, body):
        if self.fail:
            raise NotificationError("sms gateway down")
        self.sent.append((to, body))

    def bodies_to(self, number):
        return [body for to, body in self.sent if to == number]


class FakeResponder(AIResponder):
    def __init__(self, reply="We offer branding, web design and marketing.", error=None):
        super().__init__(max_chars=320)
        self.reply = reply
        self.error = error
        self.questions: list[str] = []

    async def _complete(self, persona, utterance):
        self.questions.append(utterance)
        if self.error:
            raise AIResponderError(self.error)
        return self.reply


class FakeCallPlacer(CallPlacer):
    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    async def place_call(self, to, twiml):
        if self.fail:
            raise NotificationError("carrier rejected the call")
        self.calls.append((to, twiml))
        return f"CA{len(self.calls):04d}"


class Clock:
    """Settable clock handed to services under test."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ── Scripted caller ────────────────────────────────────────────────


class CallSimulator:
    """Drives a FlowController the way the call provider would.

    Follows <Redirect> automatically, posts input to the current <Gather>
    or <Record> action, and keeps every spoken line in ``transcript``.
    """

    MAX_REDIRECTS = 25

    def __init__(self, controller: FlowController, caller: str = CALLER):
        self.controller = controller
        self.caller = caller
        self.root: ET.Element | None = None
        self.transcript: list[str] = []
        self.steps: list[str] = []

    # -- inspection --

    @property
    def spoken(self) -> list[str]:
        return [el.text or "" for el in self.root.iter("Say")]

    @property
    def last_spoken(self) -> str:
        return " ".join(self.spoken)

    @property
    def gather(self) -> ET.Element | None:
        return self.root.find("Gather")

    @property
    def hung_up(self) -> bool:
        return self.root.find("Hangup") is not None and self.root.find("Record") is None

    @property
    def context(self) -> dict[str, str]:
        """Session Context carried by the current input address."""
        target = self.gather if self.gather is not None else self.root.find("Record")
        return self._split(target.get("action"))[1]

    # -- actions --

    async def start(self):
        doc = await self.controller.start_call({}, {"From": self.caller, "CallSid": "CA-test"})
        await self._load(doc, "main_menu")

    async def press(self, digits: str):
        await self._answer({"Digits": digits})

    async def say(self, speech: str):
        await self._answer({"SpeechResult": speech})

    async def record(self, url: str):
        record = self.root.find("Record")
        assert record is not None, "no <Record> in the current document"
        await self._post(record.get("action"), {"RecordingUrl": url})

    async def silence(self):
        assert self.gather is not None, "no <Gather> in the current document"
        await self._post(self.root.find("Redirect").text, {})

    async def _answer(self, form):
        assert self.gather is not None, f"no <Gather>; caller heard: {self.last_spoken}"
        await self._post(self.gather.get("action"), form)

    # -- plumbing --

    @staticmethod
    def _split(url: str) -> tuple[str, dict[str, str]]:
        parts = urlsplit(url)
        step = unquote(parts.path.rsplit("/", 1)[-1])
        query = {k: v[0] for k, v in parse_qs(parts.query).items()}
        return step, query

    async def _post(self, url: str, form: dict[str, str]):
        step, query = self._split(url)
        doc = await self.controller.handle(step, query, {"From": self.caller, **form})
        await self._load(doc, step)

    async def _load(self, doc: str, step: str):
        for _ in range(self.MAX_REDIRECTS):
            self.steps.append(step)
            self.root = ET.fromstring(doc.encode("utf-8"))
            self.transcript.extend(self.spoken)
            redirect = self.root.find("Redirect")
            if redirect is None or self.gather is not None or self.root.find("Record") is not None:
                return
            step, query = self._split(redirect.text)
            doc = await self.controller.handle(step, query, {"From": self.caller})
        raise AssertionError(f"redirect loop: {self.steps[-self.MAX_REDIRECTS:]}")


# ── Fixtures ───────────────────────────────────────────────────────


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path),
        admin_phone_numbers=ADMIN,
        llm_provider="none",
        admin_api_key="",
        debug=False,
        notify_retries=0,
        notify_timeout_seconds=1.0,
        ai_timeout_seconds=1.0,
    )


@pytest.fixture
def clock():
    return Clock(TUESDAY_MORNING)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def responder():
    return FakeResponder()


@pytest.fixture
def services(settings, store, notifier, responder, clock, tmp_path):
    return CallServices(
        settings=settings,
        store=store,
        notifier=notifier,
        hours=BusinessHours.from_settings(settings),
        call_log=DailyCallLog(tmp_path / "daily_logs", settings.business_timezone, clock=clock),
        responder=responder,
        clock=clock,
    )


@pytest.fixture
def controller(services):
    return FlowController(services)


@pytest.fixture
def call(controller):
    return CallSimulator(controller)


def make_appointment(phone=CALLER, **overrides) -> Appointment:
    data = {
        "name": "Maria Lopez",
        "phone": phone,
        "date": "Wednesday, October 21, 2026",
        "time": "2 PM Pacific Time",
        "business_type": "bakery",
        "service_type": "branding",
        "created_at": TUESDAY_MORNING,
    }
    data.update(overrides)
    return Appointment(**data)

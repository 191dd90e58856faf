"""Step handler contract.

A step handler implements one node of the call-flow graph::

    async def handler(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome

It gets the Session Context decoded from the request, whatever the caller
just said or pressed (possibly nothing), and the external collaborators.
It returns one of:

  Prompt     speak, gather input, post it to ``next_step``
  Redirect   (optionally speak, then) go to ``next_step`` without input
  Record     speak, record a voice message, post it to ``next_step``
  Terminate  speak and hang up

``patch`` fields are merged into the context carried to the next step.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union

from ivr.business_hours import BusinessHours
from ivr.call_log import DailyCallLog
from ivr.config import Settings
from ivr.models.context import SessionContext
from ivr.responder import AIResponder
from ivr.side_effects import best_effort
from ivr.stores.base import AppointmentStore
from ivr.telephony.base import Notifier

_TRAILING_PUNCT = re.compile(r"[\s.!?,;:]+$")


@dataclass(frozen=True)
class StepInput:
    """What the caller supplied on this step."""

    digits: str = ""
    speech: str = ""
    recording_url: str = ""

    @property
    def text(self) -> str:
        """Digits if pressed, else the recognized speech without trailing punctuation."""
        if self.digits:
            return self.digits
        return _TRAILING_PUNCT.sub("", self.speech.strip())

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class Prompt:
    text: str
    next_step: str
    patch: dict[str, str] = field(default_factory=dict)
    no_input_step: str = ""  # empty: re-run the step that produced the prompt
    input_mode: str = "speech"  # "speech", "dtmf" or "speech dtmf"
    num_digits: Optional[int] = None
    hints: str = ""


@dataclass(frozen=True)
class Redirect:
    next_step: str
    patch: dict[str, str] = field(default_factory=dict)
    text: str = ""


@dataclass(frozen=True)
class Record:
    text: str
    next_step: str
    max_length: int = 120
    patch: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Terminate:
    text: str


StepOutcome = Union[Prompt, Redirect, Record, Terminate]


@dataclass
class CallServices:
    """External collaborators the step handlers may consult."""

    settings: Settings
    store: AppointmentStore
    notifier: Notifier
    hours: BusinessHours
    call_log: DailyCallLog
    responder: Optional[AIResponder] = None
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self.hours.local(self.clock())

    def is_open(self) -> bool:
        return self.hours.is_open(self.clock())

    async def alert_admins(self, action: str, body: str, phone: str = "") -> bool:
        return await best_effort(
            action,
            lambda: self.notifier.notify_admins(body),
            phone=phone,
            retries=self.settings.notify_retries,
            timeout=self.settings.notify_timeout_seconds,
        )

    async def text_caller(self, action: str, phone: str, body: str) -> bool:
        return await best_effort(
            action,
            lambda: self.notifier.send_sms(phone, body),
            phone=phone,
            retries=self.settings.notify_retries,
            timeout=self.settings.notify_timeout_seconds,
        )


StepHandler = Callable[[SessionContext, StepInput, CallServices], Awaitable[StepOutcome]]

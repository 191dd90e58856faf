"""Reusable free-text questions.

``Question`` asks for one context field and advances once the answer is
non-empty.  ``ConfirmedQuestion`` adds a yes/no read-back:

    collect_<key>        ask
    collect_<key>_reply  empty → re-ask; else read back (stores the value)
    confirm_<key>        read back the stored value again (no-input fallback)
    confirm_<key>_reply  yes → next_step; no → collect_<key>; unclear → confirm_<key>

Both expose their handlers through ``steps()`` for the step table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ivr.models.appointment import redact_phone
from ivr.models.context import SessionContext

from . import messages
from .base import CallServices, Prompt, Redirect, StepHandler, StepInput, StepOutcome

log = logging.getLogger("ivr.flows.questions")


@dataclass(frozen=True)
class Question:
    field: str
    ask: str
    next_step: str
    key: str = ""
    hints: str = ""

    @property
    def slug(self) -> str:
        return self.key or self.field

    @property
    def ask_step(self) -> str:
        return f"collect_{self.slug}"

    @property
    def reply_step(self) -> str:
        return f"collect_{self.slug}_reply"

    async def ask_handler(self, ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
        return Prompt(self.ask, next_step=self.reply_step, hints=self.hints)

    async def reply_handler(self, ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
        if said.is_empty:
            log.info("Empty answer for %s from %s, asking again", self.field, redact_phone(ctx.phone))
            return Redirect(self.ask_step, text=messages.NOT_UNDERSTOOD)
        return self.accept(said.text)

    def accept(self, value: str) -> StepOutcome:
        return Redirect(self.next_step, patch={self.field: value})

    def steps(self) -> dict[str, StepHandler]:
        return {self.ask_step: self.ask_handler, self.reply_step: self.reply_handler}


@dataclass(frozen=True)
class ConfirmedQuestion(Question):
    confirm: str = "I heard {value}. Is that correct? Please say yes or no."
    retry: str = "Okay, let's try that again."

    @property
    def confirm_step(self) -> str:
        return f"confirm_{self.slug}"

    @property
    def confirm_reply_step(self) -> str:
        return f"confirm_{self.slug}_reply"

    def _read_back(self, value: str, patch: dict[str, str] | None = None) -> Prompt:
        return Prompt(
            self.confirm.format(value=value),
            next_step=self.confirm_reply_step,
            patch=patch or {},
            no_input_step=self.confirm_step,
            input_mode="speech dtmf",
            num_digits=1,
            hints="yes, no",
        )

    def accept(self, value: str) -> StepOutcome:
        return self._read_back(value, patch={self.field: value})

    async def confirm_handler(self, ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
        value = getattr(ctx, self.field)
        if not value:
            return Redirect(self.ask_step)
        return self._read_back(value)

    async def confirm_reply_handler(self, ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
        answer = messages.yes_or_no(said.text)
        if answer is True and getattr(ctx, self.field):
            return Redirect(self.next_step)
        if answer is False:
            return Redirect(self.ask_step, text=self.retry)
        return Redirect(self.confirm_step, text=messages.NOT_UNDERSTOOD)

    def steps(self) -> dict[str, StepHandler]:
        steps = super().steps()
        steps[self.confirm_step] = self.confirm_handler
        steps[self.confirm_reply_step] = self.confirm_reply_handler
        return steps

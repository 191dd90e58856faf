"""Flow controller — one webhook request in, one TwiML document out.

Each request is handled independently: decode the Session Context and the
caller's input, run the named step, render its outcome.  Anything a step
raises is logged and turned into a spoken apology plus hang-up, so the
provider always gets a well-formed document.
"""

from __future__ import annotations

import logging
from typing import Mapping

from ivr.call_log import CallAction
from ivr.flows import messages
from ivr.flows.base import CallServices, Redirect, StepHandler, StepInput, StepOutcome, Terminate
from ivr.flows.codec import decode
from ivr.flows.graph import FIRST_STEP, STEPS
from ivr.models.appointment import redact_phone
from ivr.models.context import SessionContext
from ivr.twiml import render

log = logging.getLogger("ivr.controller")


class FlowController:
    def __init__(self, services: CallServices, steps: dict[str, StepHandler] | None = None) -> None:
        self.services = services
        self.steps = steps if steps is not None else STEPS

    async def start_call(self, query: Mapping[str, str], form: Mapping[str, str]) -> str:
        """Entry webhook: record the call, then run the first step."""
        ctx, _ = decode(query, form)
        if ctx.phone:
            is_open = self.services.is_open()
            log.info("Incoming call from %s (open=%s)", redact_phone(ctx.phone), is_open)
            self.services.call_log.log_call(
                ctx.phone,
                CallAction.CALL_RECEIVED,
                {"isWithinBusinessHours": is_open, "callSid": str(form.get("CallSid") or "")},
            )
        return await self.handle(FIRST_STEP, query, form)

    async def handle(self, step: str, query: Mapping[str, str], form: Mapping[str, str]) -> str:
        ctx, said = decode(query, form)
        outcome = await self.run_step(step, ctx, said)
        try:
            return render(outcome, ctx, step, self.services.settings)
        except (KeyError, TypeError) as e:
            log.error("Step %s produced an unusable outcome: %s", step, e)
            return render(Terminate(messages.GENERIC_APOLOGY), ctx, step, self.services.settings)

    async def run_step(self, step: str, ctx: SessionContext, said: StepInput) -> StepOutcome:
        if not ctx.phone:
            log.warning("Step %s requested without a caller number", step)
            return Terminate(messages.GENERIC_APOLOGY)

        handler = self.steps.get(step)
        if handler is None:
            log.warning("Unknown step %r from %s, back to the menu", step, redact_phone(ctx.phone))
            return Redirect(FIRST_STEP)

        try:
            outcome = await handler(ctx, said, self.services)
        except Exception:
            log.exception("Step %s failed for %s", step, redact_phone(ctx.phone))
            self.services.call_log.log_call(ctx.phone, CallAction.ERROR, {"step": step})
            return Terminate(messages.GENERIC_APOLOGY)

        log.info(
            "step=%s caller=%s outcome=%s next=%s",
            step,
            redact_phone(ctx.phone),
            type(outcome).__name__,
            getattr(outcome, "next_step", "-"),
        )
        return outcome

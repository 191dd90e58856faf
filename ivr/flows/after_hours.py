"""What a caller gets when a live option is chosen outside business hours."""

from __future__ import annotations

import logging

from ivr.call_log import CallAction
from ivr.models.appointment import redact_phone, to_e164
from ivr.models.context import SessionContext

from . import messages
from .base import CallServices, Prompt, Record, Redirect, StepInput, StepOutcome, Terminate

log = logging.getLogger("ivr.flows.after_hours")

VOICE_MESSAGE_MAX_SECONDS = 120


async def closed_hours_menu(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    countdown = services.hours.time_until_open(services.clock())
    return Prompt(
        f"We're currently closed. {countdown.message}. "
        f"Our hours are {services.hours.hours_text}. "
        "Press 1 to request a callback, or press 2 to leave a voice message.",
        next_step="closed_hours_menu_reply",
        input_mode="dtmf",
        num_digits=1,
    )


async def closed_hours_menu_reply(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    choice = said.digits.strip()[:1]
    if choice == "1":
        countdown = services.hours.time_until_open(services.clock())
        await services.alert_admins(
            "after-hours callback alert",
            f"After-hours callback requested by {to_e164(ctx.phone)}. {countdown.message}.",
            phone=ctx.phone,
        )
        services.call_log.log_call(ctx.phone, CallAction.AFTER_HOURS_CALLBACK_REQUESTED)
        return Terminate(
            "Thank you. We'll call you back as soon as we open. Goodbye!"
        )
    if choice == "2":
        return Redirect("voice_message")
    return Redirect("closed_hours_menu", text=messages.INVALID_OPTION)


async def voice_message(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    return Record(
        "Please leave your message after the beep. Press the pound key when you're finished.",
        next_step="voice_message_done",
        max_length=VOICE_MESSAGE_MAX_SECONDS,
    )


async def voice_message_done(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    if not said.recording_url:
        log.info("No recording received from %s", redact_phone(ctx.phone))
        return Redirect("closed_hours_menu", text=messages.NO_INPUT)

    await services.alert_admins(
        "voice message alert",
        f"New voice message from {to_e164(ctx.phone)}: {said.recording_url}",
        phone=ctx.phone,
    )
    services.call_log.log_call(
        ctx.phone, CallAction.VOICE_MESSAGE_RECORDED, {"recordingUrl": said.recording_url}
    )
    return Terminate(
        "Thank you, your message has been recorded. We'll get back to you soon. Goodbye!"
    )

"""Main menu and the one-shot callback option."""

from __future__ import annotations

import logging

from ivr.call_log import CallAction
from ivr.models.appointment import redact_phone, to_e164
from ivr.models.context import SessionContext
from ivr.stores.base import AppointmentStoreError

from . import messages
from .base import CallServices, Prompt, Redirect, StepInput, StepOutcome, Terminate

log = logging.getLogger("ivr.flows.menu")

MENU_OPTIONS = (
    "Press 1 to book or manage an appointment. "
    "Press 2 to speak with a representative. "
    "Press 3 to request a callback. "
    "Press 4 for partnership inquiries. "
    "Press 5 to speak with our creative director. "
    "Press 9 to hear these options again."
)

# digit -> entry step
ROUTES = {
    "1": "appointment",
    "2": "representative",
    "3": "callback",
    "4": "collect_partnership",
    "5": "creative_director",
    "9": "main_menu",
}

_SELECTION_LOG = {
    "representative": CallAction.REPRESENTATIVE_SELECTED,
    "creative_director": CallAction.CREATIVE_DIRECTOR_SELECTED,
}


async def main_menu(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    business = services.settings.business_name
    greeting = f"Thank you for calling {business}."
    try:
        existing = await services.store.find(ctx.phone)
    except AppointmentStoreError as e:
        log.warning("Returning-caller lookup failed for %s: %s", redact_phone(ctx.phone), e)
        existing = None
    if existing:
        greeting = f"Welcome back to {business}, {existing.name}."
    return Prompt(
        f"{greeting} {MENU_OPTIONS}",
        next_step="main_menu_reply",
        input_mode="dtmf",
        num_digits=1,
    )


async def main_menu_reply(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    step = ROUTES.get(said.digits.strip()[:1])
    if step is None:
        log.info("Invalid menu choice %r from %s", said.text, redact_phone(ctx.phone))
        return Redirect("main_menu", text=messages.INVALID_OPTION)

    action = _SELECTION_LOG.get(step)
    if action:
        services.call_log.log_call(
            ctx.phone, action, {"isWithinBusinessHours": services.is_open()}
        )
    return Redirect(step)


async def callback(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    now = services.now()
    await services.alert_admins(
        "callback alert",
        f"Callback requested by {to_e164(ctx.phone)} at {now:%I:%M %p} on {now:%A}.",
        phone=ctx.phone,
    )
    services.call_log.log_call(ctx.phone, CallAction.CALLBACK_REQUESTED)
    return Terminate(
        "Thank you. A member of our team will call you back as soon as possible. Goodbye!"
    )

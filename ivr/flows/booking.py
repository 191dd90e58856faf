"""Appointment booking and management.

    appointment ─┬─ existing ──> manage_appointment ─> keep | reschedule | cancel
                 └─ none ─────> collect_name ─> collect_business_type
                                ─> collect_service_type ─> offer_next_date
                                ─> collect_time ─> save_appointment

Each collect step is a :class:`ConfirmedQuestion` except the time, which is
taken as spoken.
"""

from __future__ import annotations

import logging

from ivr.business_hours import format_hour, spoken_date
from ivr.call_log import CallAction
from ivr.models.appointment import Appointment, redact_phone, to_e164
from ivr.models.context import SessionContext
from ivr.stores.base import AppointmentStoreError

from . import messages
from .base import CallServices, Prompt, Redirect, StepInput, StepOutcome, Terminate
from .questions import ConfirmedQuestion

log = logging.getLogger("ivr.flows.booking")

NAME = ConfirmedQuestion(
    field="name",
    ask="Great, let's get you booked. Please say your full name.",
    next_step="collect_business_type",
    confirm="I heard {value}. Is that correct? Please say yes or no.",
)
BUSINESS_TYPE = ConfirmedQuestion(
    field="business_type",
    ask="What type of business do you run?",
    next_step="collect_service_type",
    confirm="You said your business is {value}. Is that right?",
)
SERVICE_TYPE = ConfirmedQuestion(
    field="service_type",
    ask="Which service are you interested in? For example branding, web design, or marketing.",
    next_step="offer_next_date",
    hints="branding, web design, marketing, social media, logo design, photography",
    confirm="You're interested in {value}. Is that correct?",
)

TIME_HINTS = "10 AM, 11 AM, noon, 1 PM, 2 PM, 3 PM, 4 PM"


async def _find_existing(ctx: SessionContext, services: CallServices) -> Appointment | None:
    return await services.store.find(ctx.phone)


async def appointment(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    try:
        existing = await _find_existing(ctx, services)
    except AppointmentStoreError as e:
        log.error("Appointment lookup failed for %s: %s", redact_phone(ctx.phone), e)
        return Terminate(messages.STORE_UNAVAILABLE)
    if existing:
        return Redirect("manage_appointment")
    return Redirect(NAME.ask_step)


async def manage_appointment(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    try:
        existing = await _find_existing(ctx, services)
    except AppointmentStoreError as e:
        log.error("Appointment lookup failed for %s: %s", redact_phone(ctx.phone), e)
        return Terminate(messages.STORE_UNAVAILABLE)
    if existing is None:
        return Redirect(NAME.ask_step)
    return Prompt(
        f"You have an appointment on {existing.date} at {existing.time}. "
        "Press 1 to keep it, press 2 to reschedule, or press 3 to cancel it.",
        next_step="manage_appointment_reply",
        input_mode="speech dtmf",
        num_digits=1,
        hints="keep, reschedule, cancel",
    )


async def manage_appointment_reply(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    choice = said.text.lower()
    if choice == "1" or "keep" in choice:
        return Terminate("Great, we'll see you then. Goodbye!")
    if choice == "2" or "reschedule" in choice:
        return await _release(ctx, services, rescheduling=True)
    if choice == "3" or "cancel" in choice:
        return await _release(ctx, services, rescheduling=False)
    return Redirect("manage_appointment", text=messages.INVALID_OPTION)


async def _release(ctx: SessionContext, services: CallServices, rescheduling: bool) -> StepOutcome:
    """Delete the caller's appointment, then either rebook or say goodbye."""
    try:
        existing = await services.store.find(ctx.phone)
        if existing is None:
            return Redirect("appointment")
        await services.store.delete(ctx.phone)
    except AppointmentStoreError as e:
        log.error("Could not release appointment for %s: %s", redact_phone(ctx.phone), e)
        return Terminate(messages.STORE_UNAVAILABLE)

    caller = to_e164(ctx.phone)
    details = {"name": existing.name, "date": existing.date, "time": existing.time}
    if rescheduling:
        await services.alert_admins(
            "reschedule alert",
            f"{existing.name} ({caller}) is rescheduling their {existing.date} {existing.time} appointment.",
            phone=ctx.phone,
        )
        services.call_log.log_call(ctx.phone, CallAction.APPOINTMENT_RESCHEDULE_STARTED, details)
        return Redirect(
            NAME.ask_step,
            text="Okay, let's find you a new time. Your previous appointment has been released.",
        )

    await services.alert_admins(
        "cancellation alert",
        f"Cancelled: {existing.name} ({caller}) on {existing.date} at {existing.time}.",
        phone=ctx.phone,
    )
    services.call_log.log_call(ctx.phone, CallAction.APPOINTMENT_CANCELLED, details)
    return Terminate("Your appointment has been cancelled. Thank you for calling. Goodbye!")


async def offer_next_date(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    hours = services.hours
    day = spoken_date(hours.next_business_day(services.clock()))
    return Prompt(
        f"Our next available date is {day}. What time works best for you? "
        f"We take appointments between {format_hour(hours.open_hour)} and "
        f"{format_hour(hours.close_hour)} {hours.timezone_label}.",
        next_step="collect_time",
        patch={"date": day},
        hints=TIME_HINTS,
    )


async def collect_time(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    if said.is_empty:
        return Redirect("offer_next_date", text=messages.NOT_UNDERSTOOD)
    label = services.hours.timezone_label
    spoken = said.text
    if label.lower() not in spoken.lower():
        spoken = f"{spoken} {label}"
    return Redirect("save_appointment", patch={"time": spoken})


async def save_appointment(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    if not ctx.name:
        return Redirect(NAME.ask_step)
    if not (ctx.date and ctx.time):
        return Redirect("offer_next_date")

    try:
        if await services.store.find(ctx.phone):
            log.info("Appointment already on file for %s, not booking twice", redact_phone(ctx.phone))
            return Redirect(
                "main_menu",
                text="It looks like you already have an appointment with us. "
                "To change it, choose option 1.",
            )
        booked = Appointment(
            name=ctx.name,
            phone=ctx.phone,
            date=ctx.date,
            time=ctx.time,
            business_type=ctx.business_type,
            service_type=ctx.service_type,
            created_at=services.clock(),
        )
        await services.store.add(booked)
    except AppointmentStoreError as e:
        log.error("Could not save appointment for %s: %s", redact_phone(ctx.phone), e)
        return Terminate(messages.STORE_UNAVAILABLE)

    log.info("Booked %s for %s at %s", redact_phone(ctx.phone), booked.date, booked.time)
    await services.alert_admins(
        "booking alert",
        f"New appointment: {booked.name} ({to_e164(booked.phone)}) on {booked.date} at {booked.time}. "
        f"Business: {booked.business_type or 'n/a'}. Service: {booked.service_type or 'n/a'}.",
        phone=ctx.phone,
    )
    business = services.settings.business_name
    if services.settings.send_customer_confirmations:
        await services.text_caller(
            "customer confirmation",
            ctx.phone,
            f"Hi {booked.name}, your appointment with {business} is booked for "
            f"{booked.date} at {booked.time}. Call us if you need to make changes.",
        )
    services.call_log.log_call(
        ctx.phone,
        CallAction.APPOINTMENT_SCHEDULED,
        {
            "name": booked.name,
            "date": booked.date,
            "time": booked.time,
            "businessType": booked.business_type,
            "serviceType": booked.service_type,
        },
    )
    return Terminate(
        f"Thank you, {booked.name}. Your appointment is booked for {booked.date} at {booked.time}. "
        f"We'll call you the day before as a reminder. Thank you for choosing {business}. Goodbye!"
    )

"""The step table: every node of the call-flow graph by name."""

from __future__ import annotations

from . import after_hours, assistance, booking, menu
from .base import StepHandler

FIRST_STEP = "main_menu"

QUESTIONS = (
    booking.NAME,
    booking.BUSINESS_TYPE,
    booking.SERVICE_TYPE,
    assistance.REASON,
    assistance.DIRECTOR_QUESTION,
    assistance.PARTNERSHIP,
)
CHATS = (assistance.REP_CHAT, assistance.DIRECTOR_CHAT)


def build_steps() -> dict[str, StepHandler]:
    steps: dict[str, StepHandler] = {
        "main_menu": menu.main_menu,
        "main_menu_reply": menu.main_menu_reply,
        "callback": menu.callback,
        "appointment": booking.appointment,
        "manage_appointment": booking.manage_appointment,
        "manage_appointment_reply": booking.manage_appointment_reply,
        "offer_next_date": booking.offer_next_date,
        "collect_time": booking.collect_time,
        "save_appointment": booking.save_appointment,
        "representative": assistance.representative,
        "creative_director": assistance.creative_director,
        "partnership_submit": assistance.partnership_submit,
        "closed_hours_menu": after_hours.closed_hours_menu,
        "closed_hours_menu_reply": after_hours.closed_hours_menu_reply,
        "voice_message": after_hours.voice_message,
        "voice_message_done": after_hours.voice_message_done,
    }
    for question in QUESTIONS:
        steps.update(question.steps())
    for chat in CHATS:
        steps.update(chat.steps())
    return steps


STEPS = build_steps()

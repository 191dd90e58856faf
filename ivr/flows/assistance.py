"""Live-assistance options: representative, creative director, partnerships.

The representative and creative director are AI-answered question loops
that only run during business hours.  Each answer is followed by an offer
to ask another question; the loop ends on "no", on a request for the menu
or booking, on a serious topic (handed to a human), or after
``ai_max_turns`` answers.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

from ivr.call_log import CallAction
from ivr.models.appointment import redact_phone, to_e164
from ivr.models.context import SessionContext
from ivr.responder import AIResponderError

from . import messages
from .base import CallServices, Prompt, Redirect, StepHandler, StepInput, StepOutcome, Terminate
from .questions import ConfirmedQuestion, Question

log = logging.getLogger("ivr.flows.assistance")

SERIOUS_KEYWORDS = (
    "lawyer",
    "lawsuit",
    "legal",
    "refund",
    "complaint",
    "emergency",
    "urgent",
    "sue",
    "suing",
    "fraud",
)
_SERIOUS = re.compile(r"\b(" + "|".join(SERIOUS_KEYWORDS) + r")\b", re.IGNORECASE)
_DONE_PHRASES = ("that's all", "that is all", "nothing else", "goodbye")
_SHORT_REPLY_WORDS = 4

REP_PERSONA = (
    "You are a friendly phone representative for {business_name}, {business_description}, "
    "located in {location}. Business hours are {hours}. Answer the caller's question in one "
    "or two short sentences meant to be spoken aloud. No lists, no markdown, no URLs. If you "
    "don't know the answer, say a team member will follow up."
)
DIRECTOR_PERSONA = (
    "You are the creative director at {business_name}, {business_description}, located in "
    "{location}. Give thoughtful but brief creative guidance in one or two sentences meant to "
    "be spoken aloud. No lists, no markdown. Suggest booking a consultation for anything that "
    "needs a detailed plan."
)

REASON = ConfirmedQuestion(
    field="reason",
    ask="You've reached our representative line. What can we help you with today?",
    next_step="rep_answer",
    confirm="You'd like help with {value}. Is that right?",
)
DIRECTOR_QUESTION = Question(
    field="question",
    ask="You've reached our creative director. What would you like to discuss?",
    next_step="director_answer",
)
PARTNERSHIP = Question(
    field="details",
    key="partnership",
    ask=(
        "Thanks for your interest in partnering with us. Please tell us your name, "
        "your company, and the partnership you have in mind."
    ),
    next_step="partnership_submit",
)


def is_serious(text: str) -> bool:
    return bool(_SERIOUS.search(text))


@dataclass(frozen=True)
class AssistantChat:
    """Answer loop for one persona. Steps: ``<prefix>_answer``, ``_followup``, ``_followup_reply``."""

    prefix: str
    persona: str
    field: str
    label: str

    @property
    def answer_step(self) -> str:
        return f"{self.prefix}_answer"

    @property
    def followup_step(self) -> str:
        return f"{self.prefix}_followup"

    @property
    def followup_reply_step(self) -> str:
        return f"{self.prefix}_followup_reply"

    def system_prompt(self, services: CallServices) -> str:
        s = services.settings
        return self.persona.format(
            business_name=s.business_name,
            business_description=s.business_description,
            location=services.hours.location,
            hours=services.hours.hours_text,
        )

    async def answer_handler(self, ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
        question = getattr(ctx, self.field)
        if not question:
            return Redirect("main_menu")
        return await self._answer(ctx, question, services)

    async def followup_handler(self, ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
        return Prompt(
            "Do you have another question? Go ahead and ask, say menu for the main menu, "
            "or say no to finish.",
            next_step=self.followup_reply_step,
            hints="no, menu, appointment",
        )

    async def followup_reply_handler(self, ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
        if said.is_empty:
            return Redirect(self.followup_step, text=messages.NOT_UNDERSTOOD)
        text = said.text
        short = len(text.split()) <= _SHORT_REPLY_WORDS
        if short and messages.mentions(text, ("menu",)):
            return Redirect("main_menu")
        if short and messages.mentions(text, ("appointment", "book")):
            return Redirect("appointment")
        if short and (messages.yes_or_no(text) is False or messages.mentions(text, _DONE_PHRASES)):
            return Terminate(messages.GOODBYE)
        if short and messages.yes_or_no(text) is True:
            return Prompt(
                "Sure, what's your question?",
                next_step=self.followup_reply_step,
                no_input_step=self.followup_step,
            )
        return await self._answer(ctx, text, services)

    async def _answer(self, ctx: SessionContext, question: str, services: CallServices) -> StepOutcome:
        turns = ctx.turn_count + 1

        if is_serious(question):
            log.info("Serious topic from %s, handing off", redact_phone(ctx.phone))
            await services.alert_admins(
                "serious question alert",
                f"Urgent: {to_e164(ctx.phone)} asked the {self.label}: \"{question}\". Please call back.",
                phone=ctx.phone,
            )
            services.call_log.log_call(
                ctx.phone, CallAction.SERIOUS_QUESTION_DETECTED, {"question": question, "line": self.label}
            )
            return Terminate(
                "That sounds important, so I've asked a member of our team to call you back "
                "personally. Thank you for calling. Goodbye!"
            )

        if turns > services.settings.ai_max_turns:
            await services.alert_admins(
                "follow-up alert",
                f"{to_e164(ctx.phone)} had more questions for the {self.label}. Last one: \"{question}\".",
                phone=ctx.phone,
            )
            return Terminate(
                "I've shared your questions with our team and someone will follow up with you. "
                "Thank you for calling. Goodbye!"
            )

        responder = services.responder
        if responder is None:
            return Redirect("appointment", text=messages.AI_UNAVAILABLE)
        try:
            reply = await asyncio.wait_for(
                responder.respond(self.system_prompt(services), question),
                services.settings.ai_timeout_seconds,
            )
        except asyncio.TimeoutError:
            log.warning("%s answer timed out for %s", self.label, redact_phone(ctx.phone))
            return Redirect("appointment", text=messages.AI_UNAVAILABLE)
        except AIResponderError as e:
            log.warning("%s answer failed for %s: %s", self.label, redact_phone(ctx.phone), e)
            return Redirect("appointment", text=messages.AI_UNAVAILABLE)

        return Prompt(
            f"{reply} Do you have another question? You can ask it now, say menu for the "
            "main menu, or say no to finish.",
            next_step=self.followup_reply_step,
            patch={"turns": str(turns)},
            no_input_step=self.followup_step,
            hints="no, menu, appointment",
        )

    def steps(self) -> dict[str, StepHandler]:
        return {
            self.answer_step: self.answer_handler,
            self.followup_step: self.followup_handler,
            self.followup_reply_step: self.followup_reply_handler,
        }


REP_CHAT = AssistantChat(prefix="rep", persona=REP_PERSONA, field="reason", label="representative")
DIRECTOR_CHAT = AssistantChat(
    prefix="director", persona=DIRECTOR_PERSONA, field="question", label="creative director"
)


async def representative(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    if not services.is_open():
        return Redirect("closed_hours_menu")
    return Redirect(REASON.ask_step)


async def creative_director(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    if not services.is_open():
        return Redirect("closed_hours_menu")
    return Redirect(DIRECTOR_QUESTION.ask_step)


async def partnership_submit(ctx: SessionContext, said: StepInput, services: CallServices) -> StepOutcome:
    if not ctx.details:
        return Redirect(PARTNERSHIP.ask_step)
    await services.alert_admins(
        "partnership alert",
        f"Partnership inquiry from {to_e164(ctx.phone)}: {ctx.details}",
        phone=ctx.phone,
    )
    services.call_log.log_call(ctx.phone, CallAction.PARTNERSHIP_INQUIRY, {"details": ctx.details})
    return Terminate(
        "Thank you. Our partnerships team will review your inquiry and get back to you. Goodbye!"
    )

"""Step outcomes → TwiML documents for the call provider."""

from __future__ import annotations

from twilio.twiml.voice_response import VoiceResponse

from ivr.config import Settings
from ivr.flows import messages
from ivr.flows.base import Prompt, Record, Redirect, StepOutcome, Terminate
from ivr.flows.codec import encode
from ivr.models.context import SessionContext


def _say(node, text: str, settings: Settings) -> None:
    node.say(text, voice=settings.voice, language=settings.language)


def render(outcome: StepOutcome, ctx: SessionContext, current_step: str, settings: Settings) -> str:
    """Build the document for ``outcome``.

    Every address the caller can be sent to carries ``ctx`` with the
    outcome's patch merged in.
    """
    base = settings.public_base_url
    response = VoiceResponse()

    if isinstance(outcome, Terminate):
        _say(response, outcome.text, settings)
        response.hangup()

    elif isinstance(outcome, Redirect):
        next_ctx = ctx.merge(outcome.patch)
        if outcome.text:
            _say(response, outcome.text, settings)
        response.redirect(encode(next_ctx, outcome.next_step, base), method="POST")

    elif isinstance(outcome, Prompt):
        next_ctx = ctx.merge(outcome.patch)
        gather_args = {
            "input": outcome.input_mode,
            "action": encode(next_ctx, outcome.next_step, base),
            "method": "POST",
            "timeout": settings.gather_timeout,
            "language": settings.language,
        }
        if "speech" in outcome.input_mode:
            gather_args["speech_timeout"] = "auto"
        if outcome.num_digits:
            gather_args["num_digits"] = outcome.num_digits
        if outcome.hints:
            gather_args["hints"] = outcome.hints
        gather = response.gather(**gather_args)
        _say(gather, outcome.text, settings)
        # reached only when the gather times out with no input
        _say(response, messages.NO_INPUT, settings)
        response.redirect(
            encode(next_ctx, outcome.no_input_step or current_step, base), method="POST"
        )

    elif isinstance(outcome, Record):
        next_ctx = ctx.merge(outcome.patch)
        _say(response, outcome.text, settings)
        response.record(
            action=encode(next_ctx, outcome.next_step, base),
            method="POST",
            max_length=outcome.max_length,
            play_beep=True,
            finish_on_key="#",
        )
        _say(response, messages.GOODBYE, settings)
        response.hangup()

    else:
        raise TypeError(f"Unknown step outcome: {type(outcome).__name__}")

    return str(response)


def say_document(text: str, settings: Settings) -> str:
    """A call script that speaks ``text`` and hangs up (reminder calls)."""
    response = VoiceResponse()
    _say(response, text, settings)
    response.hangup()
    return str(response)

"""Session Context ⇄ step address.

The context rides in the query string of the address the call provider
posts the next step to::

    /voice/step/confirm_name?phone=15035551234&name=Maria%20Lopez

``decode`` reads the context back from that query string and the caller's
input from the form body.  The caller id comes from the provider's ``From``
field when present and falls back to the address.  A value the caller
supplies on this step reaches the context through the handler's ``patch``,
which the controller merges over the decoded context, so fresh input wins
for the field being collected and every other field comes from the address.

Starlette hands over query values already unescaped; ``encode`` escapes
each raw value exactly once.
"""

from __future__ import annotations

from typing import Mapping
from urllib.parse import quote, urlencode

from ivr.models.context import CONTEXT_FIELDS, SessionContext

from .base import StepInput

STEP_PATH = "/voice/step"


def encode(context: SessionContext, next_step: str, base_url: str = "") -> str:
    """Address of ``next_step`` carrying every non-empty context field."""
    query = urlencode(context.filled(), quote_via=quote)
    address = f"{base_url.rstrip('/')}{STEP_PATH}/{quote(next_step, safe='')}"
    return f"{address}?{query}" if query else address


def decode(
    query: Mapping[str, str],
    form: Mapping[str, str],
) -> tuple[SessionContext, StepInput]:
    """Rebuild the context and this step's input. Never raises on missing fields."""
    fields = {name: str(query.get(name) or "") for name in CONTEXT_FIELDS}
    caller = str(form.get("From") or "").strip()
    if caller:
        fields["phone"] = caller
    said = StepInput(
        digits=str(form.get("Digits") or "").strip(),
        speech=str(form.get("SpeechResult") or "").strip(),
        recording_url=str(form.get("RecordingUrl") or "").strip(),
    )
    return SessionContext(**fields), said

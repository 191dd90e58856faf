"""Session Context — the facts gathered about one in-progress call.

Nothing is stored server-side between webhook requests; the context is
written into every "next step" address and read back from the request the
call provider sends for that step (see ``ivr.flows.codec``).
"""

from __future__ import annotations

from typing import Mapping

from pydantic import BaseModel, ConfigDict

CONTEXT_FIELDS: tuple[str, ...] = (
    "phone",
    "name",
    "business_type",
    "service_type",
    "date",
    "time",
    "reason",
    "question",
    "details",
    "turns",
)


class SessionContext(BaseModel):
    """Immutable bag of string fields; empty string means absent."""

    model_config = ConfigDict(frozen=True)

    phone: str = ""
    name: str = ""
    business_type: str = ""
    service_type: str = ""
    date: str = ""
    time: str = ""
    reason: str = ""
    question: str = ""
    details: str = ""
    turns: str = ""

    def merge(self, patch: Mapping[str, str] | None) -> "SessionContext":
        """Return a new context with ``patch`` applied.

        Empty values in the patch are ignored, so a step can add or replace
        a field but never clear one.
        """
        if not patch:
            return self
        update: dict[str, str] = {}
        for key, value in patch.items():
            if key not in CONTEXT_FIELDS:
                raise KeyError(f"Unknown session context field: {key}")
            if not isinstance(value, str):
                raise TypeError(f"Session context values must be strings, got {type(value).__name__} for {key}")
            if value:
                update[key] = value
        return self.model_copy(update=update) if update else self

    def filled(self) -> dict[str, str]:
        """Non-empty fields only, in declaration order."""
        return {k: v for k, v in self.model_dump().items() if v}

    @property
    def turn_count(self) -> int:
        try:
            return int(self.turns)
        except ValueError:
            return 0

"""Pydantic model for a stored appointment, plus phone helpers."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone(value: str | None) -> str:
    """Strip everything but digits to get the appointment store's key."""
    return _NON_DIGITS.sub("", value or "")


def to_e164(value: str) -> str:
    """Format a stored phone for dialing. Ten digits are assumed to be US/Canada."""
    digits = normalize_phone(value)
    if not digits:
        return ""
    if len(digits) == 10:
        return "+1" + digits
    return "+" + digits


def redact_phone(value: str | None) -> str:
    """Mask a phone number for logging, keeping the last 4 digits only."""
    digits = normalize_phone(value)
    if len(digits) <= 4:
        return "***"
    return "***" + digits[-4:]


class Appointment(BaseModel):
    """One booked appointment. At most one exists per normalized phone."""

    name: str
    phone: str
    date: str  # free text, e.g. "Tuesday, October 20, 2026"
    time: str  # free text with timezone label, e.g. "2 PM Pacific Time"
    business_type: str = ""
    service_type: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("phone")
    @classmethod
    def _normalize(cls, value: str) -> str:
        digits = normalize_phone(value)
        if not digits:
            raise ValueError("appointment phone must contain digits")
        return digits

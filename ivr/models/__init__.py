"""Data models for the call flow."""

from .appointment import Appointment, normalize_phone, redact_phone, to_e164
from .context import CONTEXT_FIELDS, SessionContext

__all__ = [
    "Appointment",
    "CONTEXT_FIELDS",
    "SessionContext",
    "normalize_phone",
    "redact_phone",
    "to_e164",
]

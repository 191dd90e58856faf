"""Call-flow graph: step handlers, their outcomes and the context codec."""

from .base import CallServices, Prompt, Record, Redirect, StepInput, StepOutcome, Terminate
from .graph import FIRST_STEP, STEPS, build_steps

__all__ = [
    "CallServices",
    "FIRST_STEP",
    "Prompt",
    "Record",
    "Redirect",
    "STEPS",
    "StepInput",
    "StepOutcome",
    "Terminate",
    "build_steps",
]

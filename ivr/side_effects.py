"""Best-effort side effects (admin alerts, confirmations).

A side effect gets a bounded timeout and a fixed number of retries.  Its
failure is logged and reported as ``False``; it never raises into the call
flow, so what the caller hears does not depend on it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from ivr.models.appointment import redact_phone

log = logging.getLogger("ivr.side_effects")


def _log_attempt(action: str, phone: str, attempts: int) -> Callable[[RetryCallState], None]:
    def after(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        reason = "timed out" if isinstance(error, asyncio.TimeoutError) else f"failed: {error}"
        log.warning(
            "%s %s for %s (attempt %d/%d)",
            action, reason, redact_phone(phone), state.attempt_number, attempts,
        )

    return after


async def best_effort(
    action: str,
    make_call: Callable[[], Awaitable[object]],
    *,
    phone: str = "",
    retries: int = 1,
    timeout: float = 10.0,
) -> bool:
    """Await ``make_call()`` up to ``retries + 1`` times. True on success."""
    attempts = retries + 1
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception_type(Exception),
            after=_log_attempt(action, phone, attempts),
            reraise=True,
        ):
            with attempt:
                await asyncio.wait_for(make_call(), timeout)
    except Exception:
        log.error("%s gave up for %s", action, redact_phone(phone))
        return False
    return True

"""Twilio REST implementations of Notifier and CallPlacer.

The Twilio helper library is synchronous, so every request runs in the
default thread pool to keep the event loop free for webhooks.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from ivr.models.appointment import redact_phone, to_e164

from .base import CallPlacer, NotificationError, Notifier

log = logging.getLogger("ivr.telephony.twilio")


async def _run_in_executor(func, *args, **kwargs) -> Any:
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))
    except TwilioException as e:
        raise NotificationError(str(e)) from e
    except OSError as e:
        raise NotificationError(f"Twilio unreachable: {e}") from e


class TwilioNotifier(Notifier):
    def __init__(
        self,
        client: Client,
        from_number: str,
        admin_numbers: list[str] | None = None,
    ) -> None:
        super().__init__(admin_numbers)
        self._client = client
        self._from = from_number

    async def send_sms(self, to: str, body: str) -> None:
        message = await _run_in_executor(
            self._client.messages.create, body=body, from_=self._from, to=to_e164(to)
        )
        log.info("SMS sent to %s (sid=%s)", redact_phone(to), message.sid)


class TwilioCallPlacer(CallPlacer):
    def __init__(self, client: Client, from_number: str) -> None:
        self._client = client
        self._from = from_number

    async def place_call(self, to: str, twiml: str) -> str:
        call = await _run_in_executor(
            self._client.calls.create, twiml=twiml, to=to_e164(to), from_=self._from
        )
        log.info("Outbound call to %s initiated (sid=%s)", redact_phone(to), call.sid)
        return call.sid

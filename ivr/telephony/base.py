"""Abstract outbound telephony: text messages and reminder calls."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from ivr.models.appointment import redact_phone

log = logging.getLogger("ivr.telephony")


class NotificationError(Exception):
    """Sending a message or placing a call failed."""


class Notifier(ABC):
    """Sends short text messages.

    ``admin_numbers`` are the fixed destinations for operator alerts
    (new booking, callback request, voicemail).
    """

    def __init__(self, admin_numbers: list[str] | None = None) -> None:
        self.admin_numbers = list(admin_numbers or [])

    @abstractmethod
    async def send_sms(self, to: str, body: str) -> None:
        """Send ``body`` to one number. Raises NotificationError on failure."""

    async def notify_admins(self, body: str) -> None:
        """Send ``body`` to every admin number; raises if any send failed."""
        failures = []
        for number in self.admin_numbers:
            try:
                await self.send_sms(number, body)
            except NotificationError as e:
                log.warning("Admin alert to %s failed: %s", redact_phone(number), e)
                failures.append(number)
        if failures:
            raise NotificationError(f"{len(failures)} of {len(self.admin_numbers)} admin alerts failed")


class LogOnlyNotifier(Notifier):
    """Used when Twilio is not configured; messages only reach the log."""

    async def send_sms(self, to: str, body: str) -> None:
        log.info("SMS (not sent) to %s: %s", redact_phone(to), body)

    async def notify_admins(self, body: str) -> None:
        log.info("Admin alert (not sent): %s", body)


class CallPlacer(ABC):
    """Originates outbound calls that speak a fixed script."""

    @abstractmethod
    async def place_call(self, to: str, twiml: str) -> str:
        """Dial ``to`` and run ``twiml``. Returns the provider's call id."""

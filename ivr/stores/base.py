"""Abstract base class for appointment stores.

Any persistence backend (local JSON file, Google Sheets, a database)
implements this ABC.  The call flow only ever talks to this interface.
"""

from abc import ABC, abstractmethod

from ivr.models.appointment import Appointment


class AppointmentStoreError(Exception):
    """The backend is unreachable or returned something that is not appointment data."""


class AppointmentStore(ABC):
    """Keyed by normalized phone; holds at most one appointment per phone.

    Every method may raise :class:`AppointmentStoreError`.
    """

    @abstractmethod
    async def find(self, phone: str) -> Appointment | None:
        """Return the appointment for ``phone`` (any formatting), or None."""

    @abstractmethod
    async def add(self, appointment: Appointment) -> Appointment:
        """Store ``appointment``, replacing any existing one for the same phone."""

    @abstractmethod
    async def delete(self, phone: str) -> bool:
        """Remove the appointment for ``phone``.

        Returns:
            True if an appointment was removed, False if there was none.
        """

    @abstractmethod
    async def list_all(self) -> list[Appointment]:
        """Every stored appointment, oldest first."""

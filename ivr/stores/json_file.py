"""Appointment store backed by a local JSON file (a list of objects)."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from ivr.models.appointment import Appointment, normalize_phone, redact_phone

from .base import AppointmentStore, AppointmentStoreError

logger = logging.getLogger(__name__)


class JsonFileAppointmentStore(AppointmentStore):
    """The whole file is read and rewritten on each change.

    Read-modify-write sequences run under one ``asyncio.Lock`` so two
    requests in the same process cannot lose each other's update.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self) -> list[Appointment]:
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            raise AppointmentStoreError(f"Cannot read {self._path}: {e}") from e
        if not isinstance(raw, list):
            raise AppointmentStoreError(
                f"{self._path} holds {type(raw).__name__}, expected a list"
            )
        try:
            return [Appointment(**item) for item in raw]
        except (TypeError, ValidationError) as e:
            raise AppointmentStoreError(f"Malformed appointment in {self._path}: {e}") from e

    def _save(self, appointments: list[Appointment]) -> None:
        data = [a.model_dump(mode="json") for a in appointments]
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as e:
            raise AppointmentStoreError(f"Cannot write {self._path}: {e}") from e

    # ------------------------------------------------------------------
    # AppointmentStore interface
    # ------------------------------------------------------------------

    async def find(self, phone: str) -> Appointment | None:
        key = normalize_phone(phone)
        async with self._lock:
            for appointment in self._load():
                if appointment.phone == key:
                    return appointment
        return None

    async def add(self, appointment: Appointment) -> Appointment:
        async with self._lock:
            kept = [a for a in self._load() if a.phone != appointment.phone]
            kept.append(appointment)
            self._save(kept)
        logger.info("Saved appointment for %s", redact_phone(appointment.phone))
        return appointment

    async def delete(self, phone: str) -> bool:
        key = normalize_phone(phone)
        async with self._lock:
            current = self._load()
            kept = [a for a in current if a.phone != key]
            if len(kept) == len(current):
                return False
            self._save(kept)
        logger.info("Deleted appointment for %s", redact_phone(key))
        return True

    async def list_all(self) -> list[Appointment]:
        async with self._lock:
            return self._load()

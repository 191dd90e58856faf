"""Google Sheets appointment store.

Uses a Google Cloud service account to read and write one worksheet via
the Sheets API v4.  Row 1 is a header; each following row is one
appointment in the column order of ``COLUMNS``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timezone
from functools import partial
from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from pydantic import ValidationError

from ivr.models.appointment import Appointment, normalize_phone, redact_phone

from .base import AppointmentStore, AppointmentStoreError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

COLUMNS = ["phone", "name", "date", "time", "business_type", "service_type", "created_at"]


class GoogleSheetsAppointmentStore(AppointmentStore):
    """AppointmentStore backed by a Google Sheets worksheet."""

    def __init__(
        self,
        spreadsheet_id: str,
        service_account_path: str = "",
        worksheet: str = "Appointments",
        service: Any = None,
    ) -> None:
        if not spreadsheet_id:
            raise ValueError("A spreadsheet id is required for the Google Sheets store.")
        self._spreadsheet_id = spreadsheet_id
        self._worksheet = worksheet
        if service is None:
            if not service_account_path:
                raise ValueError(
                    "Google service account JSON path must be provided via "
                    "GOOGLE_SERVICE_ACCOUNT_JSON."
                )
            credentials = Credentials.from_service_account_file(
                service_account_path, scopes=SCOPES
            )
            service = build("sheets", "v4", credentials=credentials)
        self._service = service
        self._sheet_id: int | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Google API call in the default thread pool."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(func, *args, **kwargs))
        except HttpError as e:
            raise AppointmentStoreError(f"Google Sheets request failed: {e}") from e
        except (OSError, httplib2.HttpLib2Error) as e:
            raise AppointmentStoreError(f"Google Sheets unreachable: {e}") from e
        except GoogleAuthError as e:
            raise AppointmentStoreError(f"Google Sheets authentication failed: {e}") from e

    async def _read_rows(self) -> list[list[str]]:
        response = await self._run_in_executor(
            self._service.spreadsheets()
            .values()
            .get(spreadsheetId=self._spreadsheet_id, range=f"{self._worksheet}!A2:G")
            .execute
        )
        if not isinstance(response, dict):
            raise AppointmentStoreError(
                f"Google Sheets returned {type(response).__name__}, expected an object"
            )
        rows = response.get("values", [])
        if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
            raise AppointmentStoreError("Google Sheets 'values' is not a list of rows")
        return rows

    @staticmethod
    def _row_to_appointment(row: list[str]) -> Appointment | None:
        cells = [str(c) for c in row] + [""] * (len(COLUMNS) - len(row))
        data = dict(zip(COLUMNS, cells))
        if not normalize_phone(data["phone"]):
            return None
        if not data["created_at"]:
            data.pop("created_at")
        try:
            return Appointment(**data)
        except ValidationError:
            logger.warning("Skipping malformed sheet row for %s", redact_phone(data["phone"]))
            return None

    @staticmethod
    def _appointment_to_row(appointment: Appointment) -> list[str]:
        created = appointment.created_at.astimezone(timezone.utc).isoformat()
        return [
            appointment.phone,
            appointment.name,
            appointment.date,
            appointment.time,
            appointment.business_type,
            appointment.service_type,
            created,
        ]

    async def _get_sheet_id(self) -> int:
        if self._sheet_id is not None:
            return self._sheet_id
        response = await self._run_in_executor(
            self._service.spreadsheets()
            .get(spreadsheetId=self._spreadsheet_id, fields="sheets.properties")
            .execute
        )
        if not isinstance(response, dict):
            raise AppointmentStoreError(
                f"Google Sheets returned {type(response).__name__}, expected an object"
            )
        for sheet in response.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") == self._worksheet:
                self._sheet_id = int(props["sheetId"])
                return self._sheet_id
        raise AppointmentStoreError(f"Worksheet {self._worksheet!r} not found")

    async def _delete_rows(self, phone: str) -> int:
        rows = await self._read_rows()
        # Data starts on row 2; the API's row index is zero-based.
        indexes = [
            i + 1 for i, row in enumerate(rows) if row and normalize_phone(str(row[0])) == phone
        ]
        if not indexes:
            return 0
        sheet_id = await self._get_sheet_id()
        requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": index,
                        "endIndex": index + 1,
                    }
                }
            }
            for index in sorted(indexes, reverse=True)
        ]
        await self._run_in_executor(
            self._service.spreadsheets()
            .batchUpdate(spreadsheetId=self._spreadsheet_id, body={"requests": requests})
            .execute
        )
        return len(indexes)

    # ------------------------------------------------------------------
    # AppointmentStore interface
    # ------------------------------------------------------------------

    async def find(self, phone: str) -> Appointment | None:
        key = normalize_phone(phone)
        async with self._lock:
            rows = await self._read_rows()
        for row in rows:
            appointment = self._row_to_appointment(row)
            if appointment and appointment.phone == key:
                return appointment
        return None

    async def add(self, appointment: Appointment) -> Appointment:
        async with self._lock:
            removed = await self._delete_rows(appointment.phone)
            if removed:
                logger.info(
                    "Replaced %d existing row(s) for %s", removed, redact_phone(appointment.phone)
                )
            await self._run_in_executor(
                self._service.spreadsheets()
                .values()
                .append(
                    spreadsheetId=self._spreadsheet_id,
                    range=f"{self._worksheet}!A:G",
                    valueInputOption="RAW",
                    insertDataOption="INSERT_ROWS",
                    body={"values": [self._appointment_to_row(appointment)]},
                )
                .execute
            )
        logger.info("Appended appointment row for %s", redact_phone(appointment.phone))
        return appointment

    async def delete(self, phone: str) -> bool:
        async with self._lock:
            removed = await self._delete_rows(normalize_phone(phone))
        return removed > 0

    async def list_all(self) -> list[Appointment]:
        async with self._lock:
            rows = await self._read_rows()
        appointments = [a for a in (self._row_to_appointment(r) for r in rows) if a]
        return sorted(appointments, key=lambda a: a.created_at)

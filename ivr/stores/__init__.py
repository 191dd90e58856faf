"""Appointment persistence backends."""

from .base import AppointmentStore, AppointmentStoreError
from .json_file import JsonFileAppointmentStore

__all__ = ["AppointmentStore", "AppointmentStoreError", "JsonFileAppointmentStore"]

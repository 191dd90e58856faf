"""Outbound messaging and call placement."""

from .base import CallPlacer, LogOnlyNotifier, NotificationError, Notifier

__all__ = ["CallPlacer", "LogOnlyNotifier", "NotificationError", "Notifier"]

"""Notification and event delivery for backup events."""

from .email_notifier import EmailNotifier
from .events import EventChannel
from .log_notifier import LogNotifier, build_notifier

__all__ = ["EmailNotifier", "EventChannel", "LogNotifier", "build_notifier"]

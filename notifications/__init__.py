"""Waitlist notifications."""

from .waitlist_notifier import (
    TelegramNotificationDispatcher,
    WaitlistNotification,
    WaitlistNotifier,
)

__all__ = [
    "TelegramNotificationDispatcher",
    "WaitlistNotification",
    "WaitlistNotifier",
]

"""Best-effort notices to the head of a waitlist when a machine frees up.

Core operations only append to an in-process outbox; delivery happens later on
the event loop through :class:`TelegramNotificationDispatcher`, so a slow or
failing chat API can never hold the state lock or fail a request.
"""

from __future__ import annotations
from tracking import t

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from telegram import Bot
from telegram.error import TelegramError

from infrastructure.constants import AVERAGE_CYCLE_MINUTES


@dataclass(frozen=True)
class WaitlistNotification:
    """A single "a machine is free" notice for one waiting student."""

    machine_type: str
    student_id: str
    phone: str
    machine_id: Optional[int]
    created_at: datetime
    queue_length: int = 1

    def message(self) -> str:
        t('notifications.waitlist_notifier.WaitlistNotification.message')
        kind = self.machine_type.capitalize()
        where = f"{kind} {self.machine_id}" if self.machine_id is not None else f"A {self.machine_type}"
        lines = [
            f"🧺 {where} is now free.",
            f"Student {self.student_id} ({self.phone}) is first on the {self.machine_type} waitlist.",
        ]
        others = self.queue_length - 1
        if others > 0:
            wait = AVERAGE_CYCLE_MINUTES.get(self.machine_type, 0)
            lines.append(f"{others} more waiting (about {wait} min per cycle).")
        return "\n".join(lines)


class WaitlistNotifier:
    """Thread-safe outbox of pending waitlist notifications."""

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        t('notifications.waitlist_notifier.WaitlistNotifier.__init__')
        self.logger = logger or logging.getLogger('WaitlistNotifier')
        self._lock = threading.Lock()
        self._outbox: List[WaitlistNotification] = []

    def notify(self, notification: WaitlistNotification) -> None:
        t('notifications.waitlist_notifier.WaitlistNotifier.notify')
        with self._lock:
            self._outbox.append(notification)
        self.logger.info(
            "WAITLIST NOTICE QUEUED - %s free, head of queue: %s",
            notification.machine_type,
            notification.student_id,
        )

    @property
    def pending(self) -> List[WaitlistNotification]:
        with self._lock:
            return list(self._outbox)

    def drain(self) -> List[WaitlistNotification]:
        """Remove and return everything in the outbox."""
        t('notifications.waitlist_notifier.WaitlistNotifier.drain')
        with self._lock:
            drained, self._outbox = self._outbox, []
        return drained


class TelegramNotificationDispatcher:
    """Deliver queued notices to a Telegram chat (the dorm laundry group)."""

    def __init__(
        self,
        notifier: WaitlistNotifier,
        *,
        bot_token: str = "",
        chat_id: str = "",
        bot: Optional[Bot] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        t('notifications.waitlist_notifier.TelegramNotificationDispatcher.__init__')
        self.notifier = notifier
        self.chat_id = chat_id
        self.logger = logger or logging.getLogger('NotificationDispatcher')
        self.bot = bot
        if self.bot is None and bot_token and chat_id:
            self.bot = Bot(token=bot_token)
        self.sent = 0
        self.dropped = 0

    @property
    def enabled(self) -> bool:
        return self.bot is not None and bool(self.chat_id)

    async def flush(self) -> int:
        """Send every queued notice once; return how many were delivered."""
        t('notifications.waitlist_notifier.TelegramNotificationDispatcher.flush')
        notifications = self.notifier.drain()
        if not notifications:
            return 0

        if not self.enabled:
            self.dropped += len(notifications)
            self.logger.debug(
                "Telegram not configured; dropping %s waitlist notice(s)",
                len(notifications),
            )
            return 0

        delivered = 0
        for notification in notifications:
            try:
                await self.bot.send_message(chat_id=self.chat_id, text=notification.message())
            except TelegramError as exc:
                self.dropped += 1
                self.logger.warning(
                    "Failed to deliver waitlist notice for %s: %s",
                    notification.student_id,
                    exc,
                )
                continue
            delivered += 1

        self.sent += delivered
        return delivered

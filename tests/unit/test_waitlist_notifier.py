import pytest
from telegram.error import TelegramError

from notifications.waitlist_notifier import (
    TelegramNotificationDispatcher,
    WaitlistNotification,
    WaitlistNotifier,
)
from tests.helpers import START


class FakeBot:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send_message(self, chat_id, text):
        if any(student in text for student in self.fail_for):
            raise TelegramError("chat not found")
        self.sent.append((chat_id, text))


def notice(student_id="S1", machine_id=2, queue_length=1) -> WaitlistNotification:
    return WaitlistNotification(
        machine_type="washer",
        student_id=student_id,
        phone="0123",
        machine_id=machine_id,
        created_at=START,
        queue_length=queue_length,
    )


def test_message_mentions_machine_and_student():
    text = notice(queue_length=3).message()
    assert "Washer 2 is now free" in text
    assert "S1" in text
    assert "2 more waiting" in text


def test_outbox_drain_empties_queue():
    notifier = WaitlistNotifier()
    notifier.notify(notice("S1"))
    notifier.notify(notice("S2"))

    assert [n.student_id for n in notifier.drain()] == ["S1", "S2"]
    assert notifier.pending == []


@pytest.mark.asyncio
async def test_dispatcher_sends_queued_notices():
    notifier = WaitlistNotifier()
    bot = FakeBot()
    dispatcher = TelegramNotificationDispatcher(notifier, chat_id="-100", bot=bot)
    notifier.notify(notice("S1"))

    assert await dispatcher.flush() == 1
    assert bot.sent[0][0] == "-100"
    assert dispatcher.sent == 1
    assert await dispatcher.flush() == 0


@pytest.mark.asyncio
async def test_dispatcher_drops_failed_deliveries():
    notifier = WaitlistNotifier()
    dispatcher = TelegramNotificationDispatcher(notifier, chat_id="-100", bot=FakeBot(fail_for={"S1"}))
    notifier.notify(notice("S1"))
    notifier.notify(notice("S2"))

    assert await dispatcher.flush() == 1
    assert dispatcher.dropped == 1
    assert notifier.pending == []


@pytest.mark.asyncio
async def test_unconfigured_dispatcher_discards_notices():
    notifier = WaitlistNotifier()
    dispatcher = TelegramNotificationDispatcher(notifier)
    notifier.notify(notice("S1"))

    assert dispatcher.enabled is False
    assert await dispatcher.flush() == 0
    assert dispatcher.dropped == 1

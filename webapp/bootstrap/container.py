"""Dependency container wiring the laundry runtime components together."""

from __future__ import annotations
from tracking import t

import os
from dataclasses import dataclass
from typing import Any, Optional

from infrastructure.settings import AppSettings
from issues.tracker import IssueTracker
from machines.registry import MachineRegistry
from machines.services import MachineReservationService
from machines.timer import Clock, TimerEngine
from monitoring.state_sweeper import StateSweeper
from notifications.waitlist_notifier import TelegramNotificationDispatcher, WaitlistNotifier
from state.store import SharedStateStore
from usage.sink import UsageRecordSink, build_usage_sink
from waitlists.manager import WaitlistManager
from webapp.events import EventDispatcher


@dataclass(frozen=True)
class LaundryDependencies:
    """Concrete dependency snapshot for one laundry service process."""

    settings: AppSettings
    store: SharedStateStore
    timer: TimerEngine
    registry: MachineRegistry
    notifier: WaitlistNotifier
    dispatcher: TelegramNotificationDispatcher
    waitlists: WaitlistManager
    issues: IssueTracker
    sink: UsageRecordSink
    reservations: MachineReservationService
    events: EventDispatcher
    sweeper: StateSweeper


def build_dependencies(
    settings: AppSettings,
    *,
    clock: Optional[Clock] = None,
    sink: Optional[UsageRecordSink] = None,
    bot: Any = None,
) -> LaundryDependencies:
    """
    Build every runtime component from ``settings``.

    ``clock``, ``sink`` and ``bot`` are injection points for tests; by default
    the wall clock, the configured usage sink and a real Telegram bot (when a
    token is configured) are used.
    """
    t('webapp.bootstrap.container.build_dependencies')

    state_dir = os.path.dirname(settings.state_file)
    if state_dir:
        os.makedirs(state_dir, exist_ok=True)

    timer = TimerEngine(clock)
    store = SharedStateStore(settings.state_file)
    registry = MachineRegistry(store, timer)
    notifier = WaitlistNotifier()
    dispatcher = TelegramNotificationDispatcher(
        notifier,
        bot_token=settings.telegram_bot_token,
        chat_id=settings.telegram_chat_id,
        bot=bot,
    )
    waitlists = WaitlistManager(store, notifier=notifier, timer=timer)
    issues = IssueTracker(store, timer=timer, timezone=settings.timezone)
    usage_sink = sink if sink is not None else build_usage_sink(settings)
    reservations = MachineReservationService(
        store,
        registry,
        waitlists,
        settings,
        timer=timer,
        sink=usage_sink,
    )
    events = EventDispatcher(reservations, waitlists, issues)
    sweeper = StateSweeper(
        registry,
        interval=settings.sweep_interval_seconds,
        dispatcher=dispatcher,
    )

    return LaundryDependencies(
        settings=settings,
        store=store,
        timer=timer,
        registry=registry,
        notifier=notifier,
        dispatcher=dispatcher,
        waitlists=waitlists,
        issues=issues,
        sink=usage_sink,
        reservations=reservations,
        events=events,
        sweeper=sweeper,
    )


__all__ = ['LaundryDependencies', 'build_dependencies']

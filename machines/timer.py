"""Wall-clock countdown for running machines.

Remaining time is always derived from the absolute ``started_at`` timestamp and
the cycle length, never from a counter that something has to decrement. A
process restart, a missed sweep, or a client that polls once a minute all see
the same answer. A machine whose remaining time reaches zero is moved to
``pending-collection`` by whichever read observes it first.
"""

from __future__ import annotations
from tracking import t

import logging
import math
from datetime import datetime
from typing import Callable, Iterable, List, Optional

import pytz

from machines.models import Machine, MachineStatus

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware UTC now."""
    return datetime.now(pytz.UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value


class TimerEngine:
    """Derives ``time_left_seconds`` for running machines from the clock."""

    def __init__(self, clock: Optional[Clock] = None, *, logger=None) -> None:
        t('machines.timer.TimerEngine.__init__')
        self._clock = clock or utc_now
        self.logger = logger or logging.getLogger('TimerEngine')

    def now(self) -> datetime:
        return ensure_aware(self._clock())

    def remaining_seconds(self, machine: Machine, now: Optional[datetime] = None) -> int:
        """Return whole seconds left for ``machine`` at ``now``.

        Partial seconds round up so a freshly started 30 minute cycle reads
        1800 rather than 1799.
        """
        t('machines.timer.TimerEngine.remaining_seconds')
        if machine.started_at is None or not machine.original_duration_minutes:
            return 0

        now = ensure_aware(now or self.now())
        elapsed = (now - ensure_aware(machine.started_at)).total_seconds()
        elapsed = max(elapsed, 0.0)
        total = machine.original_duration_minutes * 60
        return max(0, int(math.ceil(total - elapsed)))

    def refresh_machine(self, machine: Machine, now: Optional[datetime] = None) -> bool:
        """Recompute the countdown for one machine.

        Returns ``True`` when this call moved the machine from ``running`` to
        ``pending-collection``.
        """
        t('machines.timer.TimerEngine.refresh_machine')
        if machine.status != MachineStatus.RUNNING:
            return False

        remaining = self.remaining_seconds(machine, now)
        # Never count back up, even if the wall clock stepped backwards.
        if machine.time_left_seconds > 0:
            remaining = min(remaining, machine.time_left_seconds)
        machine.time_left_seconds = remaining

        if remaining > 0:
            return False

        machine.status = MachineStatus.PENDING_COLLECTION
        machine.time_left_seconds = 0
        self.logger.info(
            """CYCLE FINISHED
        Machine: %s
        Owner: %s
        Mode: %s
        Started at: %s
        """,
            machine.label(),
            machine.owner_student_id,
            machine.mode,
            machine.started_at.isoformat() if machine.started_at else None,
        )
        return True

    def refresh_all(self, machines: Iterable[Machine], now: Optional[datetime] = None) -> List[Machine]:
        """Refresh every running machine; return those that just finished."""
        t('machines.timer.TimerEngine.refresh_all')
        now = ensure_aware(now or self.now())
        return [machine for machine in machines if self.refresh_machine(machine, now)]

    def start_countdown(self, machine: Machine, duration_minutes: int, now: Optional[datetime] = None) -> None:
        """Stamp the start time and full duration onto ``machine``."""
        t('machines.timer.TimerEngine.start_countdown')
        machine.started_at = ensure_aware(now or self.now())
        machine.original_duration_minutes = duration_minutes
        machine.time_left_seconds = duration_minutes * 60

    @staticmethod
    def clear_countdown(machine: Machine) -> None:
        t('machines.timer.TimerEngine.clear_countdown')
        machine.started_at = None
        machine.original_duration_minutes = None
        machine.time_left_seconds = 0

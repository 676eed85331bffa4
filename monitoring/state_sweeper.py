"""Background sweep that keeps timers converging when nobody is polling."""

from __future__ import annotations
from tracking import t

import asyncio
import logging
from typing import Optional

from machines.registry import MachineRegistry
from notifications.waitlist_notifier import TelegramNotificationDispatcher


class StateSweeper:
    """Refresh every running machine at a fixed interval.

    Every read already recomputes timers, so the sweep only makes state
    converge (and waitlist notices go out) without client traffic. Re-running a
    tick is harmless because remaining time is derived from ``started_at``.
    """

    def __init__(
        self,
        registry: MachineRegistry,
        *,
        interval: float = 1.0,
        dispatcher: Optional[TelegramNotificationDispatcher] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        t('monitoring.state_sweeper.StateSweeper.__init__')
        self.registry = registry
        self.interval = interval
        self.dispatcher = dispatcher
        self.logger = logger or logging.getLogger('StateSweeper')
        self.running = False
        self.iterations = 0
        self._task: Optional[asyncio.Task] = None

    async def tick(self) -> int:
        """Run one sweep; return how many machines finished."""
        t('monitoring.state_sweeper.StateSweeper.tick')
        finished = self.registry.refresh()
        self.iterations += 1
        if finished:
            self.logger.info(
                "Sweep %s moved %s machine(s) to pending-collection: %s",
                self.iterations,
                len(finished),
                ", ".join(machine.label() for machine in finished),
            )
        if self.dispatcher is not None:
            await self.dispatcher.flush()
        return len(finished)

    async def run(self) -> None:
        """Loop until stopped; a failing tick is logged and the loop continues."""
        t('monitoring.state_sweeper.StateSweeper.run')
        self.running = True
        self.logger.info("State sweeper started (interval %.2fs)", self.interval)
        while self.running:
            try:
                await self.tick()
            except Exception as exc:  # pragma: no cover
                self.logger.error("Sweep error: %s", exc, exc_info=True)
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        """Schedule :meth:`run` on the running event loop."""
        t('monitoring.state_sweeper.StateSweeper.start')
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="StateSweeper")
        return self._task

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        t('monitoring.state_sweeper.StateSweeper.stop')
        self.running = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("State sweeper stopped after %s iteration(s)", self.iterations)

"""Lifecycle orchestration for the laundry service runtime."""

from __future__ import annotations
from tracking import t

import asyncio
import logging
from collections import Counter
from typing import Any, Dict, Optional

from webapp.bootstrap import LaundryDependencies


class LifecycleManager:
    """Manage startup, shutdown, and periodic tasks for the API process."""

    def __init__(
        self,
        dependencies: LaundryDependencies,
        *,
        metrics_interval: float = 300.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        t('webapp.runtime.lifecycle.LifecycleManager.__init__')
        self.dependencies = dependencies
        self.metrics_interval = metrics_interval
        self.logger = logger or logging.getLogger('LifecycleManager')
        self.sweeper_task: Optional[asyncio.Task] = None
        self.metrics_task: Optional[asyncio.Task] = None

    async def startup(self) -> None:
        """Start the state sweeper and metrics loop on the running event loop."""

        t('webapp.runtime.lifecycle.LifecycleManager.startup')
        settings = self.dependencies.settings

        if settings.sweep_enabled:
            self.sweeper_task = self.dependencies.sweeper.start()
            self.logger.info("State sweeper task created in main event loop")
        else:
            self.logger.info("State sweeper disabled; timers refresh on read only")

        if self.metrics_interval > 0:
            self.metrics_task = asyncio.create_task(self._metrics_loop())
            self.logger.info("Metrics monitoring started (%.0fs intervals)", self.metrics_interval)

        self.logger.info("Laundry service started - awaiting requests...")

    async def shutdown(self) -> None:
        """Stop background tasks, deliver pending notices and flush the state."""

        t('webapp.runtime.lifecycle.LifecycleManager.shutdown')
        self.logger.info("🔴 Starting laundry service shutdown sequence...")

        if self.metrics_task:
            self.metrics_task.cancel()
            try:
                await self.metrics_task
            except asyncio.CancelledError:
                pass
            self.logger.info("✅ Metrics monitoring stopped")
            self.metrics_task = None

        if self.sweeper_task:
            self.logger.info("🔄 Stopping state sweeper...")
            await self.dependencies.sweeper.stop()
            self.logger.info("✅ State sweeper stopped")
            self.sweeper_task = None

        delivered = await self.dependencies.dispatcher.flush()
        if delivered:
            self.logger.info("Delivered %s pending waitlist notice(s) before exit", delivered)

        self.dependencies.sink.close()
        if not self.dependencies.store.save():
            self.logger.warning("⚠️ Final state save failed; last good snapshot kept on disk")

        self.logger.info("✅ Laundry service shutdown sequence completed")

    def collect_metrics(self) -> Dict[str, Any]:
        """Gather key operational numbers from the shared state."""

        t('webapp.runtime.lifecycle.LifecycleManager.collect_metrics')
        store = self.dependencies.store
        with store.read() as state:
            statuses = Counter(machine.status.value for machine in state.machines)
            waitlists = {key: len(entries) for key, entries in state.waitlists.items()}
            open_issues = sum(1 for issue in state.reported_issues if not issue.resolved)
            usage_records = len(state.usage_history)

        dispatcher = self.dependencies.dispatcher
        return {
            'statuses': dict(statuses),
            'waitlists': waitlists,
            'open_issues': open_issues,
            'usage_records': usage_records,
            'notices_sent': dispatcher.sent,
            'notices_dropped': dispatcher.dropped,
            'sweeps': self.dependencies.sweeper.iterations,
            'last_save_ok': store.last_save_ok,
        }

    async def log_metrics(self) -> None:
        """Collect and log key operational metrics."""

        t('webapp.runtime.lifecycle.LifecycleManager.log_metrics')
        metrics = self.collect_metrics()
        self.logger.info(
            "=== LAUNDRY METRICS REPORT ===\n"
            f"🧺 Machines: {metrics['statuses']}\n"
            f"📋 Waitlists: {metrics['waitlists']}\n"
            f"🛠 Open issues: {metrics['open_issues']}\n"
            f"🧾 Usage records: {metrics['usage_records']}\n"
            f"📨 Notices sent/dropped: {metrics['notices_sent']}/{metrics['notices_dropped']}\n"
            f"🔁 Sweeps: {metrics['sweeps']}\n"
            f"💾 Last save ok: {metrics['last_save_ok']}\n"
            "=============================="
        )

    async def _metrics_loop(self) -> None:
        """Periodic metrics logging loop."""

        t('webapp.runtime.lifecycle.LifecycleManager._metrics_loop')
        try:
            while True:
                await asyncio.sleep(self.metrics_interval)
                await self.log_metrics()
        except asyncio.CancelledError:
            self.logger.info("Metrics logging task cancelled")
            raise


__all__ = ['LifecycleManager']

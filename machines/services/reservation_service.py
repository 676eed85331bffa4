"""Domain service implementing the machine reservation state machine.

Per machine: ``available -> running -> pending-collection -> available``, with
an admin-controlled side branch to ``maintenance``. Each public method is one
transaction on the shared store, so two requests racing for the same machine
are serialized and only the first to observe ``available`` wins.
"""

from __future__ import annotations
from tracking import t

import copy
import logging
from typing import List, Optional

from infrastructure.settings import AppSettings
from machines.errors import InvalidRequest
from machines.machine_transitions import apply_lock, occupy, release
from machines.machine_validation import (
    ensure_available,
    ensure_no_active_machine,
    ensure_owner,
    ensure_pending_collection,
    resolve_duration,
)
from machines.models import Machine, MachineStatus, SharedAppState, UsageRecord
from machines.registry import MachineRegistry, locate
from machines.timer import TimerEngine
from state.store import SharedStateStore
from usage.history import mark_cancelled, mark_completed, record_start
from usage.sink import NullUsageSink, UsageRecordSink
from waitlists.manager import WaitlistManager

ADMIN_STATUSES = {MachineStatus.AVAILABLE, MachineStatus.MAINTENANCE}


class MachineReservationService:
    """High-level API for starting, cancelling, collecting and locking machines."""

    def __init__(
        self,
        store: SharedStateStore,
        registry: MachineRegistry,
        waitlists: WaitlistManager,
        settings: AppSettings,
        *,
        timer: Optional[TimerEngine] = None,
        sink: Optional[UsageRecordSink] = None,
    ) -> None:
        t('machines.services.reservation_service.MachineReservationService.__init__')
        self.logger = logging.getLogger(self.__class__.__name__)
        self.store = store
        self.registry = registry
        self.waitlists = waitlists
        self.settings = settings
        self.timer = timer or registry.timer
        self.sink = sink or NullUsageSink()
        if self.registry.on_cycle_complete is None:
            self.registry.on_cycle_complete = self._close_finished_cycles

    # ------------------------------------------------------------------
    # Student operations
    # ------------------------------------------------------------------
    def start(
        self,
        machine_id: int,
        machine_type: str,
        mode: str,
        duration_minutes: Optional[int],
        student_id: str,
        phone: str,
    ) -> Machine:
        """
        Start a cycle on an available machine.

        Raises:
            MachineNotFound: unknown machine
            MachineConflict: machine not available or locked
            AlreadyActive: student already owns a running or uncollected machine
            InvalidRequest: bad mode/duration or missing student id
        """
        t('machines.services.reservation_service.MachineReservationService.start')
        if not student_id:
            raise InvalidRequest("A student id is required to start a machine")
        mode = (mode or '').strip() or 'Normal'
        duration = resolve_duration(mode, duration_minutes)

        with self.store.transaction() as state:
            self.registry.refresh_state(state)
            machine = locate(state, machine_type, machine_id)
            ensure_available(machine, logger=self.logger)
            ensure_no_active_machine(state.machines, student_id=student_id, logger=self.logger)

            now = self.timer.now()
            occupy(
                machine,
                timer=self.timer,
                mode=mode,
                duration_minutes=duration,
                student_id=student_id,
                phone=phone,
                now=now,
            )
            record = record_start(
                state.usage_history,
                machine,
                student_id=student_id,
                phone=phone,
                mode=mode,
                duration_minutes=duration,
                price=self.settings.cycle_price(machine.machine_type.value),
                now=now,
                timezone=self.settings.timezone,
            )
            removed = self.waitlists.remove_everywhere(state, student_id)
            started = copy.copy(machine)

        self.logger.info(f"""MACHINE STARTED
        Machine: {started.label()}
        Student: {student_id}
        Mode: {mode} ({duration} min)
        Usage record: {record.id}
        Waitlist entries removed: {removed}
        """)
        self.sink.record_started(record)
        return started

    def cancel(self, machine_id: int, machine_type: str, student_id: str) -> Machine:
        """
        Release a machine the student owns before collection.

        A cycle still running is recorded as cancelled with spending refunded.

        Raises:
            MachineNotFound, MachineConflict (machine not in use), NotOwner
        """
        t('machines.services.reservation_service.MachineReservationService.cancel')
        with self.store.transaction() as state:
            self.registry.refresh_state(state)
            machine = locate(state, machine_type, machine_id)
            ensure_owner(machine, student_id=student_id, logger=self.logger)

            previous_status = machine.status
            if previous_status == MachineStatus.RUNNING:
                record = mark_cancelled(state.usage_history, machine, student_id)
            else:
                record = mark_completed(state.usage_history, machine, student_id)
            release(machine)
            self.waitlists.notify_head(state, machine.machine_type.value, machine.id)
            released = copy.copy(machine)

        self.logger.info(f"""MACHINE CANCELLED
        Machine: {released.label()}
        Student: {student_id}
        Status Change: {previous_status.value} → {released.status.value}
        """)
        if record is not None:
            self.sink.record_status_changed(record)
        return released

    def mark_collected(self, machine_id: int, machine_type: str, student_id: str) -> Machine:
        """
        Free a finished machine once its owner has collected the clothes.

        Raises:
            MachineNotFound, NotOwner, MachineConflict (cycle not finished)
        """
        t('machines.services.reservation_service.MachineReservationService.mark_collected')
        with self.store.transaction() as state:
            self.registry.refresh_state(state)
            machine = locate(state, machine_type, machine_id)
            ensure_owner(machine, student_id=student_id, logger=self.logger)
            ensure_pending_collection(machine)

            record = mark_completed(state.usage_history, machine, student_id)
            release(machine)
            notification = self.waitlists.notify_head(state, machine.machine_type.value, machine.id)
            collected = copy.copy(machine)

        self.logger.info(f"""CLOTHES COLLECTED
        Machine: {collected.label()}
        Student: {student_id}
        Waitlist notified: {notification.student_id if notification else 'nobody waiting'}
        """)
        if record is not None:
            self.sink.record_status_changed(record)
        return collected

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------
    def set_lock(self, machine_id: int, machine_type: str, locked: bool) -> Machine:
        """Lock (maintenance, evicting any owner) or unlock a machine."""
        t('machines.services.reservation_service.MachineReservationService.set_lock')
        with self.store.transaction() as state:
            self.registry.refresh_state(state)
            machine = locate(state, machine_type, machine_id)
            evicted = self._evict(state, machine) if locked else None
            apply_lock(machine, locked)
            if not locked and machine.status == MachineStatus.AVAILABLE:
                self.waitlists.notify_head(state, machine.machine_type.value, machine.id)
            updated = copy.copy(machine)

        self.logger.info(
            "ADMIN %s %s (status now %s)",
            "LOCKED" if locked else "UNLOCKED",
            updated.label(),
            updated.status.value,
        )
        if evicted is not None:
            self.sink.record_status_changed(evicted)
        return updated

    def set_maintenance(self, machine_id: int, machine_type: str, status: str) -> Machine:
        """
        Directly override a machine's status to ``available`` or ``maintenance``.

        ``maintenance`` also locks the machine; ``available`` unlocks it. Either
        way any current owner is evicted.
        """
        t('machines.services.reservation_service.MachineReservationService.set_maintenance')
        try:
            target = MachineStatus(str(status).strip().lower())
        except ValueError:
            target = None
        if target not in ADMIN_STATUSES:
            raise InvalidRequest(f"Admin status must be 'available' or 'maintenance', got {status!r}")

        with self.store.transaction() as state:
            self.registry.refresh_state(state)
            machine = locate(state, machine_type, machine_id)
            previous_status = machine.status
            evicted = self._evict(state, machine)
            if target == MachineStatus.MAINTENANCE:
                apply_lock(machine, True)
            else:
                machine.locked = False
                release(machine, status=MachineStatus.AVAILABLE)
                self.waitlists.notify_head(state, machine.machine_type.value, machine.id)
            updated = copy.copy(machine)

        self.logger.info(f"""ADMIN STATUS OVERRIDE
        Machine: {updated.label()}
        Status Change: {previous_status.value} → {updated.status.value}
        Locked: {updated.locked}
        Evicted owner: {evicted.student_id if evicted else None}
        """)
        if evicted is not None:
            self.sink.record_status_changed(evicted)
        return updated

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _evict(self, state: SharedAppState, machine: Machine) -> Optional[UsageRecord]:
        """Close the owner's usage record before an admin takes the machine over."""
        if machine.owner_student_id is None:
            return None
        owner = machine.owner_student_id
        if machine.status == MachineStatus.RUNNING:
            record = mark_cancelled(state.usage_history, machine, owner)
        else:
            record = mark_completed(state.usage_history, machine, owner)
        self.logger.warning(
            "Admin action evicted student %s from %s (%s)",
            owner,
            machine.label(),
            machine.status.value,
        )
        return record

    def _close_finished_cycles(self, state: SharedAppState, machines: List[Machine]) -> None:
        """Registry callback: mark usage complete for machines that just finished."""
        for machine in machines:
            if machine.owner_student_id is None:
                continue
            record = mark_completed(state.usage_history, machine, machine.owner_student_id)
            if record is not None:
                self.sink.record_status_changed(record)

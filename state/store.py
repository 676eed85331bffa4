"""
Shared State Store

This module provides the SharedStateStore class, the single authoritative
owner of the in-memory laundry state. Every mutation runs inside
:meth:`SharedStateStore.transaction`, which holds the store lock for the whole
read-modify-write and writes the snapshot through to disk before releasing it.
"""
from tracking import t

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Set

from infrastructure.constants import WAITLIST_KEYS
from machines.errors import PersistenceFailure
from machines.models import (
    ACTIVE_STATUSES,
    MachineStatus,
    SharedAppState,
    default_machines,
)
from state.serializer import StateSerializer
from state.state_repository import StateRepository
from usage.history import close_orphaned_records


class SharedStateStore:
    """
    Owns the :class:`SharedAppState` aggregate and its durable snapshot.

    A store is created once per process and handed to every service that
    needs the state; nothing reaches the state through module globals.

    Attributes:
        file_path (str): Path to the JSON snapshot
        repository (StateRepository): Snapshot reader/writer
        last_save_ok (bool): Whether the most recent snapshot write succeeded
        logger (logging.Logger): Logger instance for this class
    """

    def __init__(
        self,
        file_path: str = 'data/state.json',
        *,
        repository: Optional[StateRepository] = None,
        serializer: Optional[StateSerializer] = None,
    ):
        t('state.store.SharedStateStore.__init__')
        self.logger = logging.getLogger('SharedStateStore')
        self._lock = threading.RLock()
        self._serializer = serializer or StateSerializer()
        self.repository = repository or StateRepository(file_path, logger=self.logger)
        self.file_path = file_path
        self.last_save_ok = True
        self._dirty = False
        self._state = self._load_state()
        repaired = self._serializer.repaired + self._normalise_loaded_state(self._state)
        if repaired:
            self.logger.warning(
                "Normalised %s state entries that were missing or inconsistent",
                repaired,
            )
            self.save()
        self.logger.info(f"""SHARED STATE INITIALIZED
        File: {self.file_path}
        Machines: {len(self._state.machines)}
        Status breakdown: {self._get_status_counts()}
        Waitlists: {self._get_waitlist_sizes()}
        Open issues: {sum(1 for issue in self._state.reported_issues if not issue.resolved)}
        """)

    @property
    def state(self) -> SharedAppState:
        """The live aggregate. Mutate it only inside :meth:`transaction`."""
        return self._state

    @contextmanager
    def read(self) -> Iterator[SharedAppState]:
        """Hold the store lock while reading without persisting."""
        with self._lock:
            yield self._state

    @contextmanager
    def transaction(self) -> Iterator[SharedAppState]:
        """
        Run one logical read-modify-write against the state.

        The snapshot is saved when the block exits normally. If the block
        raises, validation happened before mutation so the requested change is
        not applied; anything recorded with :meth:`mark_dirty` before the
        failure (timer expiries observed by the refresh pass) is still saved.
        """
        t('state.store.SharedStateStore.transaction')
        with self._lock:
            try:
                yield self._state
            except Exception:
                if self._dirty:
                    self.save()
                raise
            self.save()

    def mark_dirty(self) -> None:
        """Flag in-memory changes that must reach disk even if the current block aborts."""
        with self._lock:
            self._dirty = True

    def save(self) -> bool:
        """
        Write the current state to disk.

        A failed write is logged and reported through ``last_save_ok`` but
        does not undo the in-memory mutation.
        """
        t('state.store.SharedStateStore.save')
        with self._lock:
            payload = self._serializer.to_storage(self._state, include_stats=False)
            try:
                self.repository.save(payload)
            except PersistenceFailure as exc:
                self.last_save_ok = False
                self.logger.error(
                    "STATE NOT PERSISTED - in-memory state kept, durability degraded: %s",
                    exc,
                )
                return False
            self.last_save_ok = True
            self._dirty = False
            return True

    def snapshot(self) -> Dict[str, Any]:
        """Serialized copy of the current state for API responses."""
        t('state.store.SharedStateStore.snapshot')
        with self._lock:
            return self._serializer.to_storage(self._state)

    def _load_state(self) -> SharedAppState:
        payload = self.repository.load()
        if payload is None:
            self._serializer.repaired = 0
            return SharedAppState()
        return self._serializer.from_storage(payload)

    def _normalise_loaded_state(self, state: SharedAppState) -> int:
        """Repair a loaded snapshot so every state invariant holds again."""

        t('state.store.SharedStateStore._normalise_loaded_state')
        repaired = 0

        # Fixed inventory: keep the first copy of each known machine, add missing ones.
        known = {(machine.machine_type, machine.id): machine for machine in reversed(state.machines)}
        machines = []
        for template in default_machines():
            machine = known.get((template.machine_type, template.id))
            if machine is None:
                machine = template
                repaired += 1
            machines.append(machine)
        if len(state.machines) != len(machines):
            repaired += abs(len(state.machines) - len(machines))
        state.machines = machines

        finished_keys = []
        for machine in machines:
            modified = False
            previous_status = machine.status

            if machine.locked and machine.status != MachineStatus.MAINTENANCE:
                machine.status = MachineStatus.MAINTENANCE
                modified = True

            if machine.status in ACTIVE_STATUSES and machine.owner_student_id is None:
                machine.status = MachineStatus.AVAILABLE
                modified = True

            if machine.status not in ACTIVE_STATUSES:
                if machine.owner_student_id is not None or machine.owner_phone is not None:
                    if previous_status == MachineStatus.PENDING_COLLECTION:
                        finished_keys.append((machine.machine_type.value, machine.id))
                    machine.owner_student_id = None
                    machine.owner_phone = None
                    modified = True
                if machine.started_at is not None or machine.time_left_seconds:
                    machine.started_at = None
                    machine.original_duration_minutes = None
                    machine.time_left_seconds = 0
                    machine.mode = None
                    modified = True

            if machine.status == MachineStatus.PENDING_COLLECTION and machine.time_left_seconds:
                machine.time_left_seconds = 0
                modified = True

            if modified:
                self.logger.warning("Repaired inconsistent snapshot entry for %s", machine.label())
                repaired += 1

        owners = {
            (machine.machine_type.value, machine.id): machine.owner_student_id
            for machine in machines
            if machine.owner_student_id is not None
        }
        closed = close_orphaned_records(state.usage_history, owners, finished=finished_keys)
        for record in closed:
            self.logger.warning(
                "Closed orphaned usage record %s for %s on %s-%s as %s",
                record.id,
                record.student_id,
                record.machine_type,
                record.machine_id,
                record.status.value,
            )
        repaired += len(closed)

        for key in WAITLIST_KEYS.values():
            seen: Set[str] = set()
            unique = []
            for entry in state.waitlists.get(key, []):
                if entry.student_id in seen:
                    repaired += 1
                    continue
                seen.add(entry.student_id)
                unique.append(entry)
            state.waitlists[key] = unique

        return repaired

    def _get_status_counts(self) -> Dict[str, int]:
        return dict(Counter(machine.status.value for machine in self._state.machines))

    def _get_waitlist_sizes(self) -> Dict[str, int]:
        return {key: len(entries) for key, entries in self._state.waitlists.items()}


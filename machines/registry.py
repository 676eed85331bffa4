"""Machine registry: the fixed inventory and its live, refreshed status."""

from __future__ import annotations
from tracking import t

import copy
import logging
from typing import Callable, List, Optional

from machines.errors import InvalidRequest, MachineNotFound
from machines.models import Machine, MachineType, SharedAppState
from machines.timer import TimerEngine
from state.store import SharedStateStore

CycleCompleteCallback = Callable[[SharedAppState, List[Machine]], None]


def parse_machine_type(raw: object) -> MachineType:
    """Turn ``'washer'``/``'dryer'`` (any case) into a :class:`MachineType`."""
    t('machines.registry.parse_machine_type')
    try:
        return MachineType(str(raw).strip().lower())
    except ValueError:
        raise InvalidRequest(f"Unknown machine type: {raw!r}") from None


def locate(state: SharedAppState, machine_type: object, machine_id: object) -> Machine:
    """Find a machine in ``state`` or raise :class:`MachineNotFound`."""
    t('machines.registry.locate')
    kind = parse_machine_type(machine_type)
    try:
        number = int(machine_id)
    except (TypeError, ValueError):
        raise MachineNotFound(f"Unknown {kind.value} {machine_id!r}") from None

    for machine in state.machines:
        if machine.machine_type == kind and machine.id == number:
            return machine
    raise MachineNotFound(f"Unknown {kind.value} {number}")


class MachineRegistry:
    """Read access to machines. Every read refreshes running timers first.

    ``on_cycle_complete`` is invoked (with the store lock held) for machines the
    refresh pass just moved to ``pending-collection``; the reservation service
    uses it to close the matching usage records.
    """

    def __init__(
        self,
        store: SharedStateStore,
        timer: TimerEngine,
        *,
        on_cycle_complete: Optional[CycleCompleteCallback] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        t('machines.registry.MachineRegistry.__init__')
        self.store = store
        self.timer = timer
        self.on_cycle_complete = on_cycle_complete
        self.logger = logger or logging.getLogger('MachineRegistry')

    def refresh(self) -> List[Machine]:
        """Recompute countdowns; persist if any machine finished."""
        t('machines.registry.MachineRegistry.refresh')
        with self.store.read() as state:
            finished = self.refresh_state(state)
            if finished:
                self.store.save()
            return [copy.copy(machine) for machine in finished]

    def refresh_state(self, state: SharedAppState) -> List[Machine]:
        """Refresh timers on an already-locked ``state``; the caller saves."""
        t('machines.registry.MachineRegistry.refresh_state')
        finished = self.timer.refresh_all(state.machines)
        if finished:
            self.store.mark_dirty()
            self.logger.debug(
                "Refresh pass finished %s machine(s): %s",
                len(finished),
                [machine.key for machine in finished],
            )
            if self.on_cycle_complete is not None:
                self.on_cycle_complete(state, finished)
        return finished

    def list_machines(self) -> List[Machine]:
        """Return copies of every machine with time fields refreshed."""
        t('machines.registry.MachineRegistry.list_machines')
        with self.store.read() as state:
            if self.refresh_state(state):
                self.store.save()
            return [copy.copy(machine) for machine in state.machines]

    def find_machine(self, machine_type: object, machine_id: object) -> Optional[Machine]:
        t('machines.registry.MachineRegistry.find_machine')
        try:
            return self.get_machine(machine_type, machine_id)
        except MachineNotFound:
            return None

    def get_machine(self, machine_type: object, machine_id: object) -> Machine:
        """Return a refreshed copy of one machine or raise ``MachineNotFound``."""
        t('machines.registry.MachineRegistry.get_machine')
        with self.store.read() as state:
            if self.refresh_state(state):
                self.store.save()
            return copy.copy(locate(state, machine_type, machine_id))

    def snapshot(self):
        """Refresh, then return the serialized state for polling clients."""
        t('machines.registry.MachineRegistry.snapshot')
        with self.store.read() as state:
            if self.refresh_state(state):
                self.store.save()
            return self.store.snapshot()

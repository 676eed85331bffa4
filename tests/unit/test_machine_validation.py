import logging

import pytest

from machines.errors import AlreadyActive, InvalidRequest, MachineConflict, NotOwner
from machines.machine_transitions import apply_lock, occupy, release
from machines.machine_validation import (
    ensure_available,
    ensure_no_active_machine,
    ensure_owner,
    ensure_pending_collection,
    resolve_duration,
)
from machines.models import Machine, MachineStatus, MachineType
from machines.timer import TimerEngine
from tests.helpers import DummyLogger, FakeClock

LOGGER = logging.getLogger("test")


def occupied(machine_id=1, machine_type=MachineType.WASHER, student_id="S1") -> Machine:
    machine = Machine(id=machine_id, machine_type=machine_type)
    occupy(
        machine,
        timer=TimerEngine(FakeClock()),
        mode="Normal",
        duration_minutes=30,
        student_id=student_id,
        phone="0123",
    )
    return machine


def test_ensure_available_rejects_running_and_locked_machines():
    logger = DummyLogger()
    with pytest.raises(MachineConflict):
        ensure_available(occupied(), logger=logger)
    assert logger.levels() == ["warning"]

    locked = Machine(id=2, machine_type=MachineType.WASHER, locked=True, status=MachineStatus.MAINTENANCE)
    with pytest.raises(MachineConflict, match="locked"):
        ensure_available(locked, logger=LOGGER)

    ensure_available(Machine(id=3, machine_type=MachineType.WASHER), logger=LOGGER)


def test_ensure_no_active_machine_system_wide_and_per_type():
    machines = [occupied(machine_type=MachineType.DRYER, student_id="S1")]

    with pytest.raises(AlreadyActive):
        ensure_no_active_machine(machines, student_id="S1", logger=LOGGER)

    # Scoped to washers, the dryer does not count
    ensure_no_active_machine(machines, student_id="S1", machine_type="washer", logger=LOGGER)
    ensure_no_active_machine(machines, student_id="S2", logger=LOGGER)


def test_ensure_owner():
    machine = occupied(student_id="S1")
    ensure_owner(machine, student_id="S1", logger=LOGGER)

    with pytest.raises(NotOwner):
        ensure_owner(machine, student_id="S2", logger=LOGGER)

    with pytest.raises(MachineConflict):
        ensure_owner(Machine(id=5, machine_type=MachineType.WASHER), student_id="S1", logger=LOGGER)


def test_ensure_pending_collection():
    machine = occupied()
    with pytest.raises(MachineConflict):
        ensure_pending_collection(machine)

    machine.status = MachineStatus.PENDING_COLLECTION
    ensure_pending_collection(machine)


@pytest.mark.parametrize(
    "mode, duration, expected",
    [
        ("Normal", None, 30),
        ("extra 10 min", None, 40),
        ("Custom", 55, 55),
        ("Normal", 180, 180),
        ("Normal", 1, 1),
    ],
)
def test_resolve_duration(mode, duration, expected):
    assert resolve_duration(mode, duration) == expected


@pytest.mark.parametrize("mode, duration", [("Custom", None), ("Normal", 0), ("Normal", 181), ("Normal", -5)])
def test_resolve_duration_rejects_bad_values(mode, duration):
    with pytest.raises(InvalidRequest):
        resolve_duration(mode, duration)


def test_release_clears_owner_and_timer():
    machine = occupied()
    release(machine)

    assert machine.status == MachineStatus.AVAILABLE
    assert machine.owner_student_id is None
    assert machine.owner_phone is None
    assert machine.mode is None
    assert machine.started_at is None
    assert machine.time_left_seconds == 0


def test_apply_lock_forces_maintenance_and_unlock_restores_availability():
    machine = occupied()
    apply_lock(machine, True)
    assert machine.locked is True
    assert machine.status == MachineStatus.MAINTENANCE
    assert machine.owner_student_id is None

    apply_lock(machine, False)
    assert machine.locked is False
    assert machine.status == MachineStatus.AVAILABLE

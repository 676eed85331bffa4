"""Scenario tests for the machine reservation state machine."""

import threading

import pytest

from machines.errors import AlreadyActive, InvalidRequest, MachineConflict, MachineNotFound, NotOwner
from machines.models import MachineStatus, UsageStatus
from state.store import SharedStateStore
from tests.helpers import FakeClock, RecordingSink, build_services


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def deps(tmp_path, clock, sink):
    return build_services(tmp_path, clock=clock, sink=sink)


def test_washer_three_full_cycle(deps, clock, sink):
    started = deps.reservations.start(3, "washer", "Normal", 30, "S1", "0123456789")

    assert started.status == MachineStatus.RUNNING
    assert started.owner_student_id == "S1"
    assert started.owner_phone == "0123456789"
    assert started.time_left_seconds == 1800
    assert len(sink.started) == 1
    record = deps.store.state.usage_history[0]
    assert record.status == UsageStatus.IN_PROGRESS
    assert record.spending == 5.0
    assert record.machine_id == 3

    clock.advance(minutes=10)
    assert deps.registry.get_machine("washer", 3).time_left_seconds == 1200

    clock.advance(minutes=20)
    finished = deps.registry.get_machine("washer", 3)
    assert finished.status == MachineStatus.PENDING_COLLECTION
    assert finished.time_left_seconds == 0
    assert finished.owner_student_id == "S1"
    assert deps.store.state.usage_history[0].status == UsageStatus.COMPLETED

    collected = deps.reservations.mark_collected(3, "washer", "S1")
    assert collected.status == MachineStatus.AVAILABLE
    assert collected.owner_student_id is None
    assert collected.started_at is None


def test_non_owner_cancel_leaves_state_unchanged(deps):
    deps.reservations.start(2, "dryer", "Normal", None, "S1", "0123")
    before = deps.store.snapshot()

    with pytest.raises(NotOwner):
        deps.reservations.cancel(2, "dryer", "S2")

    assert deps.store.snapshot() == before


def test_start_removes_student_from_every_waitlist(deps):
    deps.waitlists.join("washer", "S1", "0123")
    deps.waitlists.join("dryer", "S1", "0123")
    deps.waitlists.join("washer", "S2", "0456")

    deps.reservations.start(1, "washer", "Normal", None, "S1", "0123")

    washers = [entry.student_id for entry in deps.waitlists.entries("washer")]
    dryers = [entry.student_id for entry in deps.waitlists.entries("dryer")]
    assert washers == ["S2"]
    assert dryers == []

    with pytest.raises(MachineConflict):
        deps.reservations.start(1, "washer", "Normal", None, "S2", "0456")


def test_student_may_own_only_one_active_machine(deps):
    deps.reservations.start(1, "washer", "Normal", None, "S1", "0123")

    with pytest.raises(AlreadyActive):
        deps.reservations.start(1, "dryer", "Normal", None, "S1", "0123")

    assert deps.registry.get_machine("dryer", 1).status == MachineStatus.AVAILABLE


def test_cancel_running_cycle_refunds_usage(deps, sink):
    deps.reservations.start(4, "washer", "Extra 10 min", None, "S1", "0123")
    released = deps.reservations.cancel(4, "washer", "S1")

    assert released.status == MachineStatus.AVAILABLE
    record = deps.store.state.usage_history[0]
    assert record.status == UsageStatus.CANCELLED
    assert record.spending == 0.0
    assert record.duration_minutes == 40
    assert sink.changed == [record]
    assert deps.store.snapshot()["stats"] == {"totalWashes": 0, "totalMinutes": 0}


def test_cancel_after_finish_keeps_completed_record(deps, clock):
    deps.reservations.start(4, "washer", "Normal", None, "S1", "0123")
    clock.advance(minutes=31)

    deps.reservations.cancel(4, "washer", "S1")

    record = deps.store.state.usage_history[0]
    assert record.status == UsageStatus.COMPLETED
    assert record.spending == 5.0


def test_cancel_idle_machine_is_conflict(deps):
    with pytest.raises(MachineConflict):
        deps.reservations.cancel(5, "washer", "S1")


def test_collect_requires_finished_cycle(deps):
    deps.reservations.start(5, "dryer", "Normal", None, "S1", "0123")
    with pytest.raises(MachineConflict):
        deps.reservations.mark_collected(5, "dryer", "S1")


def test_collect_by_someone_else_is_rejected(deps, clock):
    deps.reservations.start(5, "dryer", "Normal", None, "S1", "0123")
    clock.advance(minutes=30)
    with pytest.raises(NotOwner):
        deps.reservations.mark_collected(5, "dryer", "S2")


def test_unknown_machine_and_bad_input(deps):
    with pytest.raises(MachineNotFound):
        deps.reservations.start(7, "washer", "Normal", None, "S1", "0123")
    with pytest.raises(InvalidRequest):
        deps.reservations.start(1, "ironing-board", "Normal", None, "S1", "0123")
    with pytest.raises(InvalidRequest):
        deps.reservations.start(1, "washer", "Normal", 500, "S1", "0123")
    with pytest.raises(InvalidRequest):
        deps.reservations.start(1, "washer", "Normal", None, "", "0123")


def test_locking_evicts_owner_and_blocks_starts(deps, sink):
    deps.reservations.start(6, "washer", "Normal", None, "S1", "0123")

    locked = deps.reservations.set_lock(6, "washer", True)
    assert locked.status == MachineStatus.MAINTENANCE
    assert locked.locked is True
    assert locked.owner_student_id is None
    assert deps.store.state.usage_history[0].status == UsageStatus.CANCELLED
    assert sink.changed[-1].status == UsageStatus.CANCELLED

    with pytest.raises(MachineConflict):
        deps.reservations.start(6, "washer", "Normal", None, "S2", "0456")

    unlocked = deps.reservations.set_lock(6, "washer", False)
    assert unlocked.status == MachineStatus.AVAILABLE
    assert unlocked.locked is False


def test_unlock_notifies_head_of_waitlist(deps):
    deps.reservations.set_lock(2, "washer", True)
    deps.waitlists.join("washer", "S7", "0777")

    deps.reservations.set_lock(2, "washer", False)

    pending = deps.notifier.pending
    assert len(pending) == 1
    assert pending[0].student_id == "S7"
    assert pending[0].machine_id == 2


def test_admin_status_override(deps):
    deps.reservations.start(1, "dryer", "Normal", None, "S1", "0123")

    maintenance = deps.reservations.set_maintenance(1, "dryer", "maintenance")
    assert maintenance.status == MachineStatus.MAINTENANCE
    assert maintenance.locked is True
    assert maintenance.owner_student_id is None

    available = deps.reservations.set_maintenance(1, "dryer", "available")
    assert available.status == MachineStatus.AVAILABLE
    assert available.locked is False

    with pytest.raises(InvalidRequest):
        deps.reservations.set_maintenance(1, "dryer", "running")


def test_collect_notifies_waitlist_head(deps, clock):
    for machine_id in range(1, 7):
        deps.reservations.start(machine_id, "dryer", "Normal", None, f"S{machine_id}", "0")
    deps.waitlists.join("dryer", "W1", "0999")
    deps.waitlists.join("dryer", "W2", "0888")

    clock.advance(minutes=30)
    deps.reservations.mark_collected(3, "dryer", "S3")

    pending = deps.notifier.pending
    assert [n.student_id for n in pending] == ["W1"]
    assert pending[0].queue_length == 2
    # The head keeps its place until it starts a machine
    assert [e.student_id for e in deps.waitlists.entries("dryer")] == ["W1", "W2"]


def test_single_owner_invariant_holds_through_mixed_operations(deps, clock):
    deps.reservations.start(1, "washer", "Normal", None, "A", "1")
    deps.reservations.start(2, "washer", "Extra 5 min", None, "B", "2")
    deps.reservations.start(1, "dryer", "Normal", 10, "C", "3")
    clock.advance(minutes=12)
    deps.reservations.cancel(2, "washer", "B")
    deps.reservations.start(2, "washer", "Normal", None, "D", "4")
    deps.reservations.set_lock(1, "washer", True)
    deps.reservations.mark_collected(1, "dryer", "C")

    for machine in deps.registry.list_machines():
        owned = machine.owner_student_id is not None
        assert owned == (machine.status in (MachineStatus.RUNNING, MachineStatus.PENDING_COLLECTION))
        if machine.status == MachineStatus.MAINTENANCE:
            assert machine.locked

    owners = [m.owner_student_id for m in deps.registry.list_machines() if m.owner_student_id]
    assert len(owners) == len(set(owners))


def test_concurrent_starts_admit_exactly_one_owner(deps, sink):
    workers = 8
    barrier = threading.Barrier(workers)
    outcomes = []
    outcomes_lock = threading.Lock()

    def attempt(student_id):
        barrier.wait()
        try:
            deps.reservations.start(1, "washer", "Normal", None, student_id, "0")
            outcome = "ok"
        except MachineConflict:
            outcome = "conflict"
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt, args=(f"S{n}",)) for n in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == workers - 1
    assert len(deps.store.state.usage_history) == 1
    assert len(sink.started) == 1
    owner = deps.store.state.usage_history[0].student_id
    assert deps.registry.get_machine("washer", 1).owner_student_id == owner


def test_rejected_start_still_persists_finished_cycle(deps, clock):
    deps.reservations.start(1, "washer", "Normal", None, "S1", "0123")
    clock.advance(minutes=31)

    with pytest.raises(MachineConflict):
        deps.reservations.start(1, "washer", "Normal", None, "S2", "0456")

    reloaded = SharedStateStore(deps.settings.state_file)
    machine = reloaded.state.machines[0]
    assert machine.status == MachineStatus.PENDING_COLLECTION
    assert machine.owner_student_id == "S1"
    assert reloaded.state.usage_history[0].status == UsageStatus.COMPLETED

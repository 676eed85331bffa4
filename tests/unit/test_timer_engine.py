from datetime import datetime

from machines.models import Machine, MachineStatus, MachineType
from machines.timer import TimerEngine, ensure_aware
from tests.helpers import FakeClock


def running_machine(timer: TimerEngine, minutes: int = 30) -> Machine:
    machine = Machine(id=3, machine_type=MachineType.WASHER, status=MachineStatus.RUNNING)
    machine.owner_student_id = "S1"
    timer.start_countdown(machine, minutes)
    return machine


def test_fresh_cycle_reports_full_duration():
    clock = FakeClock()
    timer = TimerEngine(clock)
    machine = running_machine(timer)

    assert machine.time_left_seconds == 1800
    assert timer.remaining_seconds(machine) == 1800

    clock.advance(seconds=0.4)
    assert timer.remaining_seconds(machine) == 1800


def test_remaining_time_derived_from_start():
    clock = FakeClock()
    timer = TimerEngine(clock)
    machine = running_machine(timer)

    clock.advance(minutes=10)
    assert timer.refresh_machine(machine) is False
    assert machine.time_left_seconds == 1200
    assert machine.status == MachineStatus.RUNNING


def test_countdown_never_increases_when_clock_steps_back():
    clock = FakeClock()
    timer = TimerEngine(clock)
    machine = running_machine(timer)

    clock.advance(minutes=5)
    timer.refresh_machine(machine)
    assert machine.time_left_seconds == 1500

    clock.rewind(seconds=120)
    timer.refresh_machine(machine)
    assert machine.time_left_seconds == 1500

    clock.advance(minutes=10)
    timer.refresh_machine(machine)
    assert machine.time_left_seconds == 1020


def test_expiry_moves_machine_to_pending_collection():
    clock = FakeClock()
    timer = TimerEngine(clock)
    machine = running_machine(timer)

    clock.advance(minutes=30)
    assert timer.refresh_machine(machine) is True
    assert machine.status == MachineStatus.PENDING_COLLECTION
    assert machine.time_left_seconds == 0
    assert machine.owner_student_id == "S1"

    # Only the first observation reports the transition
    clock.advance(minutes=1)
    assert timer.refresh_machine(machine) is False


def test_refresh_all_returns_only_finished_machines():
    clock = FakeClock()
    timer = TimerEngine(clock)
    short = running_machine(timer, minutes=1)
    long = running_machine(timer, minutes=45)
    idle = Machine(id=1, machine_type=MachineType.DRYER)

    clock.advance(minutes=2)
    finished = timer.refresh_all([short, long, idle])

    assert finished == [short]
    assert long.status == MachineStatus.RUNNING
    assert idle.status == MachineStatus.AVAILABLE


def test_machine_without_start_has_no_time_left():
    timer = TimerEngine(FakeClock())
    machine = Machine(id=2, machine_type=MachineType.WASHER)
    assert timer.remaining_seconds(machine) == 0


def test_naive_datetimes_are_treated_as_utc():
    naive = datetime(2024, 3, 4, 8, 0, 0)
    aware = ensure_aware(naive)
    assert aware.tzinfo is not None
    assert aware.utcoffset().total_seconds() == 0

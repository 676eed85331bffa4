"""State transition helpers for machines."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from tracking import t

from machines.models import Machine, MachineStatus
from machines.timer import TimerEngine


def occupy(
    machine: Machine,
    *,
    timer: TimerEngine,
    mode: str,
    duration_minutes: int,
    student_id: str,
    phone: str,
    now: Optional[datetime] = None,
) -> Machine:
    """Mark ``machine`` as running for ``student_id``."""

    t('machines.machine_transitions.occupy')
    machine.status = MachineStatus.RUNNING
    machine.mode = mode
    machine.owner_student_id = student_id
    machine.owner_phone = phone
    timer.start_countdown(machine, duration_minutes, now)
    return machine


def release(machine: Machine, *, status: MachineStatus = MachineStatus.AVAILABLE) -> Machine:
    """Clear owner and timer fields and move the machine to ``status``."""

    t('machines.machine_transitions.release')
    machine.status = status
    machine.mode = None
    machine.owner_student_id = None
    machine.owner_phone = None
    TimerEngine.clear_countdown(machine)
    return machine


def apply_lock(machine: Machine, locked: bool) -> Machine:
    """Set the admin lock. Locking always forces maintenance."""

    t('machines.machine_transitions.apply_lock')
    machine.locked = locked
    if locked:
        release(machine, status=MachineStatus.MAINTENANCE)
    elif machine.owner_student_id is None:
        machine.status = MachineStatus.AVAILABLE
    return machine

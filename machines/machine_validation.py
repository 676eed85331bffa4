"""Validation helpers for machine state transitions."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from tracking import t

from infrastructure.constants import (
    MAX_CYCLE_MINUTES,
    MIN_CYCLE_MINUTES,
    preset_duration,
)
from machines.errors import (
    AlreadyActive,
    InvalidRequest,
    MachineConflict,
    NotOwner,
)
from machines.models import Machine, MachineStatus


def ensure_available(machine: Machine, *, logger: Any) -> None:
    """Raise ``MachineConflict`` unless ``machine`` can be started."""

    t('machines.machine_validation.ensure_available')
    if machine.locked or machine.status != MachineStatus.AVAILABLE:
        logger.warning(
            "START REJECTED - %s is %s (locked=%s, owner=%s)",
            machine.label(),
            machine.status.value,
            machine.locked,
            machine.owner_student_id,
        )
        reason = "locked for maintenance" if machine.locked else machine.status.value
        raise MachineConflict(f"{machine.label()} is not available ({reason})")


def ensure_no_active_machine(
    machines: Iterable[Machine],
    *,
    student_id: str,
    machine_type: Optional[str] = None,
    logger: Any,
) -> None:
    """Raise ``AlreadyActive`` if the student already owns an active machine.

    With ``machine_type`` the check is limited to that type; otherwise it is
    system-wide.
    """

    t('machines.machine_validation.ensure_no_active_machine')
    for existing in machines:
        if existing.owner_student_id != student_id or not existing.is_active:
            continue
        if machine_type is not None and existing.machine_type.value != machine_type:
            continue
        logger.warning(
            """DUPLICATE MACHINE REJECTED
            Student %s already owns %s (%s)
            """,
            student_id,
            existing.label(),
            existing.status.value,
        )
        raise AlreadyActive(
            f"You already have {existing.label()} in use; collect it before starting another"
        )


def ensure_owner(machine: Machine, *, student_id: str, logger: Any) -> None:
    """Raise unless ``student_id`` owns ``machine``."""

    t('machines.machine_validation.ensure_owner')
    if machine.owner_student_id is None:
        raise MachineConflict(f"{machine.label()} is not in use")
    if machine.owner_student_id != student_id:
        logger.warning(
            "OWNERSHIP CHECK FAILED - %s owned by %s, requested by %s",
            machine.label(),
            machine.owner_student_id,
            student_id,
        )
        raise NotOwner(f"{machine.label()} belongs to another student")


def ensure_pending_collection(machine: Machine) -> None:
    t('machines.machine_validation.ensure_pending_collection')
    if machine.status != MachineStatus.PENDING_COLLECTION:
        raise MachineConflict(
            f"{machine.label()} is {machine.status.value}, not ready for collection"
        )


def resolve_duration(mode: str, duration_minutes: Optional[int]) -> int:
    """Return the cycle length to use for ``mode``.

    An explicit duration wins; otherwise the preset for the mode is used.
    """

    t('machines.machine_validation.resolve_duration')
    if duration_minutes is None:
        duration_minutes = preset_duration(mode)
        if duration_minutes is None:
            raise InvalidRequest(f"Unknown mode {mode!r}; a duration is required")

    if not MIN_CYCLE_MINUTES <= duration_minutes <= MAX_CYCLE_MINUTES:
        raise InvalidRequest(
            f"Duration must be between {MIN_CYCLE_MINUTES} and {MAX_CYCLE_MINUTES} minutes"
        )
    return duration_minutes

"""Domain dataclasses for machines and the shared laundry state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from infrastructure.constants import (
    DRYER,
    MACHINE_NUMBERS,
    MACHINE_TYPES,
    WASHER,
    WAITLIST_KEYS,
)

from .records import ReportedIssue, UsageRecord


class MachineType(str, Enum):
    """Kinds of machine in the laundry room"""
    WASHER = WASHER
    DRYER = DRYER


class MachineStatus(str, Enum):
    """Lifecycle states of a single machine"""
    AVAILABLE = "available"                      # Free to start
    RUNNING = "running"                          # Cycle counting down
    PENDING_COLLECTION = "pending-collection"    # Cycle done, clothes inside
    MAINTENANCE = "maintenance"                  # Locked by an admin


ACTIVE_STATUSES = frozenset({MachineStatus.RUNNING, MachineStatus.PENDING_COLLECTION})


@dataclass
class Machine:
    """A washer or dryer slot, keyed by ``(machine_type, id)``."""

    id: int
    machine_type: MachineType
    status: MachineStatus = MachineStatus.AVAILABLE
    mode: Optional[str] = None
    started_at: Optional[datetime] = None
    original_duration_minutes: Optional[int] = None
    time_left_seconds: int = 0
    locked: bool = False
    owner_student_id: Optional[str] = None
    owner_phone: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.machine_type.value}-{self.id}"

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def label(self) -> str:
        return f"{self.machine_type.value.capitalize()} {self.id}"


@dataclass
class WaitlistEntry:
    """One student waiting for the next free machine of a type."""

    student_id: str
    phone: str
    joined_at: Optional[datetime] = None


def default_machines() -> List[Machine]:
    """Return the fixed inventory: 6 washers followed by 6 dryers."""
    return [
        Machine(id=number, machine_type=MachineType(machine_type))
        for machine_type in MACHINE_TYPES
        for number in MACHINE_NUMBERS
    ]


def empty_waitlists() -> Dict[str, List[WaitlistEntry]]:
    return {key: [] for key in WAITLIST_KEYS.values()}


@dataclass
class SharedAppState:
    """Aggregate root mutated by every laundry operation."""

    machines: List[Machine] = field(default_factory=default_machines)
    waitlists: Dict[str, List[WaitlistEntry]] = field(default_factory=empty_waitlists)
    reported_issues: List[ReportedIssue] = field(default_factory=list)
    usage_history: List[UsageRecord] = field(default_factory=list)



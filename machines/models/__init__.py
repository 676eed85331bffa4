"""Domain model definitions for the laundry room."""

from .machine import (
    ACTIVE_STATUSES,
    Machine,
    MachineStatus,
    MachineType,
    SharedAppState,
    WaitlistEntry,
    default_machines,
    empty_waitlists,
)
from .records import ReportedIssue, UsageRecord, UsageStatus

__all__ = [
    "ACTIVE_STATUSES",
    "Machine",
    "MachineStatus",
    "MachineType",
    "SharedAppState",
    "WaitlistEntry",
    "default_machines",
    "empty_waitlists",
    "ReportedIssue",
    "UsageRecord",
    "UsageStatus",
]

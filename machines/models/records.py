"""Append-only records kept alongside the machine state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class UsageStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class UsageRecord:
    """One machine start, kept for history and spending summaries."""

    id: str
    machine_type: str
    machine_id: int
    mode: str
    duration_minutes: int
    student_id: str
    started_at_date: str
    timestamp: int
    spending: float
    status: UsageStatus = UsageStatus.IN_PROGRESS
    phone: Optional[str] = None
    day: Optional[str] = None
    time: Optional[str] = None


@dataclass
class ReportedIssue:
    """A problem reported against a machine."""

    id: str
    machine_type: str
    machine_id: int
    reported_by: str
    phone: str
    description: str
    timestamp: int
    date: str
    resolved: bool = False

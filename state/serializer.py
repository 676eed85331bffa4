"""Serialize and hydrate the shared laundry state.

The wire and snapshot format keeps the camelCase keys the polling clients
already understand; Python code only ever sees the dataclasses.
"""

from __future__ import annotations
from tracking import t

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from infrastructure.constants import ALMOST_DONE_SECONDS, WAITLIST_KEYS
from machines.models import (
    Machine,
    MachineStatus,
    MachineType,
    ReportedIssue,
    SharedAppState,
    UsageRecord,
    UsageStatus,
    WaitlistEntry,
)
from machines.timer import ensure_aware
from usage.history import aggregate_stats

E = TypeVar("E", bound=Enum)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_aware(value).isoformat()


def _parse_datetime(raw: Any) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return ensure_aware(datetime.fromisoformat(str(raw)))
    except (TypeError, ValueError):
        return None


def _optional_str(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    value = str(raw)
    return value or None


def _optional_int(raw: Any) -> Optional[int]:
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        return None


class StateSerializer:
    """Convert :class:`SharedAppState` to and from plain dictionaries."""

    def __init__(self) -> None:
        self.repaired = 0

    # ------------------------------------------------------------------
    # Dataclass -> payload
    # ------------------------------------------------------------------
    def to_storage(self, state: SharedAppState, *, include_stats: bool = True) -> Dict[str, Any]:
        t('state.serializer.StateSerializer.to_storage')
        payload: Dict[str, Any] = {
            "machines": [self.machine_to_payload(machine) for machine in state.machines],
            "waitlists": {
                key: [self.waitlist_entry_to_payload(entry) for entry in state.waitlists.get(key, [])]
                for key in WAITLIST_KEYS.values()
            },
            "reportedIssues": [self.issue_to_payload(issue) for issue in state.reported_issues],
            "usageHistory": [self.usage_to_payload(record) for record in state.usage_history],
        }
        if include_stats:
            payload["stats"] = aggregate_stats(state.usage_history)
        return payload

    @staticmethod
    def machine_to_payload(machine: Machine) -> Dict[str, Any]:
        return {
            "id": machine.id,
            "type": machine.machine_type.value,
            "status": machine.status.value,
            "mode": machine.mode,
            "startedAt": _format_datetime(machine.started_at),
            "originalDuration": machine.original_duration_minutes,
            "timeLeft": machine.time_left_seconds,
            "almostDone": (
                machine.status == MachineStatus.RUNNING
                and 0 < machine.time_left_seconds <= ALMOST_DONE_SECONDS
            ),
            "locked": machine.locked,
            "userStudentId": machine.owner_student_id,
            "userPhone": machine.owner_phone,
        }

    @staticmethod
    def waitlist_entry_to_payload(entry: WaitlistEntry) -> Dict[str, Any]:
        return {
            "studentId": entry.student_id,
            "phone": entry.phone,
            "joinedAt": _format_datetime(entry.joined_at),
        }

    @staticmethod
    def issue_to_payload(issue: ReportedIssue) -> Dict[str, Any]:
        return {
            "id": issue.id,
            "machineType": issue.machine_type,
            "machineId": issue.machine_id,
            "reportedBy": issue.reported_by,
            "phone": issue.phone,
            "description": issue.description,
            "timestamp": issue.timestamp,
            "date": issue.date,
            "resolved": issue.resolved,
        }

    @staticmethod
    def usage_to_payload(record: UsageRecord) -> Dict[str, Any]:
        return {
            "id": record.id,
            "machineType": record.machine_type,
            "machineId": record.machine_id,
            "mode": record.mode,
            "duration": record.duration_minutes,
            "studentId": record.student_id,
            "phone": record.phone,
            "date": record.started_at_date,
            "day": record.day,
            "time": record.time,
            "timestamp": record.timestamp,
            "spending": record.spending,
            "status": record.status.value,
        }

    # ------------------------------------------------------------------
    # Payload -> dataclass
    # ------------------------------------------------------------------
    def from_storage(self, payload: Mapping[str, Any]) -> SharedAppState:
        """Hydrate a state snapshot, counting every value that had to be coerced."""

        t('state.serializer.StateSerializer.from_storage')
        self.repaired = 0
        state = SharedAppState(machines=[], usage_history=[], reported_issues=[])

        for raw in self._list_section(payload, "machines"):
            machine = self.machine_from_payload(raw)
            if machine is not None:
                state.machines.append(machine)

        raw_waitlists = payload.get("waitlists")
        if raw_waitlists is None:
            raw_waitlists = {}
        elif not isinstance(raw_waitlists, Mapping):
            self.repaired += 1
            raw_waitlists = {}
        for key in WAITLIST_KEYS.values():
            entries: List[WaitlistEntry] = []
            for raw in self._list_section(raw_waitlists, key):
                entry = self.waitlist_entry_from_payload(raw)
                if entry is not None:
                    entries.append(entry)
            state.waitlists[key] = entries

        for raw in self._list_section(payload, "reportedIssues"):
            issue = self.issue_from_payload(raw)
            if issue is not None:
                state.reported_issues.append(issue)

        for raw in self._list_section(payload, "usageHistory"):
            record = self.usage_from_payload(raw)
            if record is not None:
                state.usage_history.append(record)

        return state

    def _list_section(self, container: Mapping[str, Any], key: str) -> List[Any]:
        """Return the list stored under ``key``; anything else counts as a repair."""
        raw = container.get(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            self.repaired += 1
            return []
        return raw

    def machine_from_payload(self, raw: Any) -> Optional[Machine]:
        if not isinstance(raw, Mapping):
            self.repaired += 1
            return None
        machine_id = _optional_int(raw.get("id"))
        machine_type = self._coerce_enum(raw.get("type"), MachineType, None)
        if machine_id is None or machine_type is None:
            self.repaired += 1
            return None

        time_left = _optional_int(raw.get("timeLeft", raw.get("timeLeftSeconds"))) or 0
        return Machine(
            id=machine_id,
            machine_type=machine_type,
            status=self._coerce_enum(raw.get("status"), MachineStatus, MachineStatus.AVAILABLE),
            mode=_optional_str(raw.get("mode")),
            started_at=_parse_datetime(raw.get("startedAt")),
            original_duration_minutes=_optional_int(raw.get("originalDuration")),
            time_left_seconds=max(time_left, 0),
            locked=bool(raw.get("locked", False)),
            owner_student_id=_optional_str(raw.get("userStudentId")),
            owner_phone=_optional_str(raw.get("userPhone")),
        )

    def waitlist_entry_from_payload(self, raw: Any) -> Optional[WaitlistEntry]:
        if not isinstance(raw, Mapping) or not raw.get("studentId"):
            self.repaired += 1
            return None
        return WaitlistEntry(
            student_id=str(raw["studentId"]),
            phone=str(raw.get("phone") or ""),
            joined_at=_parse_datetime(raw.get("joinedAt")),
        )

    def issue_from_payload(self, raw: Any) -> Optional[ReportedIssue]:
        if not isinstance(raw, Mapping) or not raw.get("id"):
            self.repaired += 1
            return None
        return ReportedIssue(
            id=str(raw["id"]),
            machine_type=str(raw.get("machineType") or ""),
            machine_id=_optional_int(raw.get("machineId")) or 0,
            reported_by=str(raw.get("reportedBy") or ""),
            phone=str(raw.get("phone") or ""),
            description=str(raw.get("description") or ""),
            timestamp=_optional_int(raw.get("timestamp")) or 0,
            date=str(raw.get("date") or ""),
            resolved=bool(raw.get("resolved", False)),
        )

    def usage_from_payload(self, raw: Any) -> Optional[UsageRecord]:
        if not isinstance(raw, Mapping) or not raw.get("id"):
            self.repaired += 1
            return None
        try:
            spending = float(raw.get("spending") or 0)
        except (TypeError, ValueError):
            spending = 0.0
            self.repaired += 1
        return UsageRecord(
            id=str(raw["id"]),
            machine_type=str(raw.get("machineType") or ""),
            machine_id=_optional_int(raw.get("machineId")) or 0,
            mode=str(raw.get("mode") or ""),
            duration_minutes=_optional_int(raw.get("duration")) or 0,
            student_id=str(raw.get("studentId") or ""),
            started_at_date=str(raw.get("date") or ""),
            timestamp=_optional_int(raw.get("timestamp")) or 0,
            spending=spending,
            status=self._coerce_enum(raw.get("status"), UsageStatus, UsageStatus.COMPLETED),
            phone=_optional_str(raw.get("phone")),
            day=_optional_str(raw.get("day")),
            time=_optional_str(raw.get("time")),
        )

    def _coerce_enum(self, raw: Any, enum_type: Type[E], default: Optional[E]) -> Optional[E]:
        try:
            return enum_type(raw)
        except (TypeError, ValueError):
            self.repaired += 1
            return default



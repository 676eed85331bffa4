"""Usage history bookkeeping and spending summaries."""

from __future__ import annotations
from tracking import t

import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pytz

from machines.models import Machine, UsageRecord, UsageStatus


def _local(now: datetime, timezone: str) -> datetime:
    return now.astimezone(pytz.timezone(timezone))


def record_start(
    history: List[UsageRecord],
    machine: Machine,
    *,
    student_id: str,
    phone: str,
    mode: str,
    duration_minutes: int,
    price: float,
    now: datetime,
    timezone: str,
) -> UsageRecord:
    """Append an in-progress record for a machine that just started."""

    t('usage.history.record_start')
    local_now = _local(now, timezone)
    record = UsageRecord(
        id=uuid.uuid4().hex,
        machine_type=machine.machine_type.value,
        machine_id=machine.id,
        mode=mode,
        duration_minutes=duration_minutes,
        student_id=student_id,
        started_at_date=local_now.strftime('%Y-%m-%d'),
        timestamp=int(now.timestamp() * 1000),
        spending=round(float(price), 2),
        status=UsageStatus.IN_PROGRESS,
        phone=phone,
        day=local_now.strftime('%A'),
        time=local_now.strftime('%H:%M'),
    )
    history.append(record)
    return record


def latest_in_progress(
    history: Iterable[UsageRecord],
    *,
    machine_type: str,
    machine_id: int,
    student_id: str,
) -> Optional[UsageRecord]:
    """Return the most recent in-progress record for a machine and student."""

    t('usage.history.latest_in_progress')
    for record in reversed(list(history)):
        if (
            record.status == UsageStatus.IN_PROGRESS
            and record.machine_type == machine_type
            and record.machine_id == machine_id
            and record.student_id == student_id
        ):
            return record
    return None


def mark_cancelled(history: List[UsageRecord], machine: Machine, student_id: str) -> Optional[UsageRecord]:
    """Cancel the open record for ``machine``; spending is refunded to zero."""

    t('usage.history.mark_cancelled')
    record = latest_in_progress(
        history,
        machine_type=machine.machine_type.value,
        machine_id=machine.id,
        student_id=student_id,
    )
    if record is None:
        return None
    record.status = UsageStatus.CANCELLED
    record.spending = 0.0
    return record


def mark_completed(history: List[UsageRecord], machine: Machine, student_id: str) -> Optional[UsageRecord]:
    t('usage.history.mark_completed')
    record = latest_in_progress(
        history,
        machine_type=machine.machine_type.value,
        machine_id=machine.id,
        student_id=student_id,
    )
    if record is None:
        return None
    record.status = UsageStatus.COMPLETED
    return record


def _counted(records: Iterable[UsageRecord]) -> List[UsageRecord]:
    return [record for record in records if record.status != UsageStatus.CANCELLED]


def aggregate_stats(history: Iterable[UsageRecord]) -> Dict[str, int]:
    """Room-wide totals over every cycle that was not cancelled."""

    t('usage.history.aggregate_stats')
    counted = _counted(history)
    return {
        "totalWashes": len(counted),
        "totalMinutes": sum(record.duration_minutes for record in counted),
    }


def student_summary(history: Iterable[UsageRecord], student_id: str) -> Dict[str, Any]:
    """Per-student totals, spending, and favourite mode."""

    t('usage.history.student_summary')
    counted = [record for record in _counted(history) if record.student_id == student_id]
    mode_counts = Counter(record.mode for record in counted if record.mode)
    most_used: Optional[str] = None
    if mode_counts:
        most_used = mode_counts.most_common(1)[0][0]
    return {
        "studentId": student_id,
        "totalWashes": len(counted),
        "totalMinutes": sum(record.duration_minutes for record in counted),
        "totalSpending": round(sum(record.spending for record in counted), 2),
        "mostUsedMode": most_used,
        "modeCounts": dict(mode_counts),
    }


def close_orphaned_records(
    history: Iterable[UsageRecord],
    owners: Mapping[Tuple[str, int], str],
    *,
    finished: Iterable[Tuple[str, int]] = (),
) -> List[UsageRecord]:
    """Close in-progress records whose machine is no longer held by that student.

    ``owners`` maps ``(machine_type, machine_id)`` to the student currently
    holding the machine. Only the newest open record per machine and owner
    stays in progress. Records on machines listed in ``finished`` become
    completed; every other orphan is cancelled with spending zeroed.
    """

    t('usage.history.close_orphaned_records')
    finished_keys = set(finished)
    claimed = set()
    closed: List[UsageRecord] = []
    for record in reversed(list(history)):
        if record.status != UsageStatus.IN_PROGRESS:
            continue
        key = (record.machine_type, record.machine_id)
        if owners.get(key) == record.student_id and key not in claimed:
            claimed.add(key)
            continue
        if key in finished_keys:
            record.status = UsageStatus.COMPLETED
        else:
            record.status = UsageStatus.CANCELLED
            record.spending = 0.0
        closed.append(record)
    return closed

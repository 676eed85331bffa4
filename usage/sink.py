"""One-way mirror of usage records to an external reporting store.

The sink is fire-and-forget: records are handed to a single background worker
and any failure is logged, never raised back into the state machine.
"""

from __future__ import annotations
from tracking import t

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional, Protocol

import httpx

from machines.models import UsageRecord, UsageStatus

# Status labels used by the reporting table.
_REPORTING_STATUS = {
    UsageStatus.IN_PROGRESS: "In Progress",
    UsageStatus.COMPLETED: "Completed",
    UsageStatus.CANCELLED: "cancelled",
}


class UsageRecordSink(Protocol):
    def record_started(self, record: UsageRecord) -> None: ...

    def record_status_changed(self, record: UsageRecord) -> None: ...

    def close(self) -> None: ...


class NullUsageSink:
    """Sink used when no reporting store is configured."""

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger('UsageSink')
        self._warned = False

    def _warn_once(self) -> None:
        if not self._warned:
            self.logger.warning("Supabase credentials not configured. Skipping database sync.")
            self._warned = True

    def record_started(self, record: UsageRecord) -> None:
        self._warn_once()

    def record_status_changed(self, record: UsageRecord) -> None:
        self._warn_once()

    def close(self) -> None:
        return None


def to_reporting_row(record: UsageRecord) -> Dict[str, Any]:
    """Map a usage record onto the reporting table's snake_case columns."""
    t('usage.sink.to_reporting_row')
    return {
        "id": record.id,
        "studentid": record.student_id,
        "phone_number": record.phone or "",
        "type": record.machine_type,
        "machine_id": record.machine_id,
        "mode": record.mode,
        "duration": record.duration_minutes,
        "spending": record.spending,
        "status": _REPORTING_STATUS[record.status],
        "date": record.started_at_date,
        "day": record.day or "",
        "time": record.time or "",
        "timestamp": record.timestamp,
    }


class SupabaseUsageSink:
    """Mirror usage records into a Supabase ``usage_history`` table via PostgREST."""

    TABLE = "usage_history"

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        timeout: float = 3.0,
        client: Optional[httpx.Client] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        t('usage.sink.SupabaseUsageSink.__init__')
        self.logger = logger or logging.getLogger('UsageSink')
        self._endpoint = f"{url.rstrip('/')}/rest/v1/{self.TABLE}"
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Prefer": "return=minimal",
            },
        )
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="usage-sink")

    def record_started(self, record: UsageRecord) -> Future:
        t('usage.sink.SupabaseUsageSink.record_started')
        return self._executor.submit(self._insert, to_reporting_row(record))

    def record_status_changed(self, record: UsageRecord) -> Future:
        t('usage.sink.SupabaseUsageSink.record_status_changed')
        row = to_reporting_row(record)
        changes = {"status": row["status"], "spending": row["spending"]}
        return self._executor.submit(self._update, record.id, changes)

    def close(self) -> None:
        t('usage.sink.SupabaseUsageSink.close')
        self._executor.shutdown(wait=True)
        self._client.close()

    def _insert(self, row: Dict[str, Any]) -> bool:
        try:
            response = self._client.post(self._endpoint, json=[row])
            response.raise_for_status()
        except httpx.HTTPError as exc:
            self.logger.error("Error inserting usage record %s: %s", row.get("id"), exc)
            return False
        self.logger.debug("Mirrored usage record %s", row.get("id"))
        return True

    def _update(self, record_id: str, changes: Dict[str, Any]) -> bool:
        try:
            response = self._client.patch(
                self._endpoint,
                params={"id": f"eq.{record_id}"},
                json=changes,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            self.logger.error("Error updating usage record %s: %s", record_id, exc)
            return False
        self.logger.debug("Updated mirrored usage record %s -> %s", record_id, changes["status"])
        return True


def build_usage_sink(settings, *, logger: Optional[logging.Logger] = None) -> UsageRecordSink:
    """Return a Supabase sink when credentials are configured, else a null sink."""
    t('usage.sink.build_usage_sink')
    if settings.supabase_enabled:
        return SupabaseUsageSink(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.supabase_timeout_seconds,
            logger=logger,
        )
    return NullUsageSink(logger=logger)

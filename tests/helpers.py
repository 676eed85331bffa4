"""Shared fakes and utilities for unit tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import pytz

from infrastructure.settings import AppSettings, load_settings
from webapp.bootstrap import LaundryDependencies, build_dependencies

START = datetime(2024, 3, 4, 8, 0, 0, tzinfo=pytz.UTC)


class DummyLogger:
    """Lightweight stand-in for ``logging.Logger`` that records calls."""

    def __init__(self) -> None:
        self.records: List[Tuple[str, Tuple[Any, ...], Dict[str, Any]]] = []

    def _record(self, level: str, *args: Any, **kwargs: Any) -> None:
        self.records.append((level, args, kwargs))

    def debug(self, *args: Any, **kwargs: Any) -> None:
        self._record("debug", *args, **kwargs)

    def info(self, *args: Any, **kwargs: Any) -> None:
        self._record("info", *args, **kwargs)

    def warning(self, *args: Any, **kwargs: Any) -> None:
        self._record("warning", *args, **kwargs)

    def error(self, *args: Any, **kwargs: Any) -> None:
        self._record("error", *args, **kwargs)

    def levels(self) -> List[str]:
        return [level for level, _, _ in self.records]


class FakeClock:
    """Controllable replacement for the wall clock."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, *, minutes: float = 0, seconds: float = 0) -> datetime:
        self.current = self.current + timedelta(minutes=minutes, seconds=seconds)
        return self.current

    def rewind(self, *, seconds: float) -> datetime:
        self.current = self.current - timedelta(seconds=seconds)
        return self.current


class RecordingSink:
    """Usage sink that keeps everything it is handed."""

    def __init__(self) -> None:
        self.started: List[Any] = []
        self.changed: List[Any] = []
        self.closed = False

    def record_started(self, record) -> None:
        self.started.append(record)

    def record_status_changed(self, record) -> None:
        self.changed.append(record)

    def close(self) -> None:
        self.closed = True


def make_settings(tmp_path, **overrides: str) -> AppSettings:
    env = {
        "STATE_FILE": str(tmp_path / "state.json"),
        "DATA_DIRECTORY": str(tmp_path),
        "SWEEP_ENABLED": "false",
        "LAUNDRY_TIMEZONE": "Asia/Kuala_Lumpur",
    }
    env.update(overrides)
    return load_settings(env)


def build_services(
    tmp_path,
    *,
    clock: Optional[FakeClock] = None,
    sink: Optional[RecordingSink] = None,
    bot: Any = None,
    **overrides: str,
) -> LaundryDependencies:
    """Wire a full dependency set against a snapshot under ``tmp_path``."""
    return build_dependencies(
        make_settings(tmp_path, **overrides),
        clock=clock or FakeClock(),
        sink=sink or RecordingSink(),
        bot=bot,
    )

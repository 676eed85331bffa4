"""Persistence helpers for the shared state snapshot."""

from __future__ import annotations

import json
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, Optional

from tracking import t

from machines.errors import PersistenceFailure


class StateRepository:
    """Read/write the state snapshot to a JSON backing file."""

    def __init__(self, file_path: str, *, logger: Any) -> None:
        t('state.state_repository.StateRepository.__init__')
        self._path = Path(file_path)
        self._logger = logger

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[Dict[str, Any]]:
        """Load the snapshot from disk, returning ``None`` when unusable."""

        t('state.state_repository.StateRepository.load')
        if not self._path.exists():
            self._logger.debug(
                "State file %s does not exist; starting from defaults",
                self._path,
            )
            return None

        try:
            with self._path.open('r', encoding='utf-8') as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            self._logger.error("Failed to load state from %s: %s", self._path, exc)
            return None

        if not isinstance(payload, dict):
            self._logger.warning(
                "Invalid state format in %s; expected object, received %s",
                self._path,
                type(payload).__name__,
            )
            return None

        self._logger.debug("Loaded state snapshot from %s", self._path)
        return payload

    def save(self, payload: Dict[str, Any]) -> None:
        """Atomically replace the snapshot on disk.

        Raises:
            PersistenceFailure: if the snapshot could not be written.
        """

        t('state.state_repository.StateRepository.save')
        tmp_path: Optional[Path] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(
                'w', encoding='utf-8', dir=self._path.parent, delete=False, suffix='.tmp'
            ) as handle:
                tmp_path = Path(handle.name)
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.write('\n')
                handle.flush()
            tmp_path.replace(self._path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
            raise PersistenceFailure(f"Failed to save state to {self._path}: {exc}") from exc

        self._logger.debug("State saved to %s", self._path)

"""Checkpoint store implementations for source positions."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock, RLock
from typing import Dict, Optional, Protocol, Union

logger = logging.getLogger(__name__)


class CheckpointStore(Protocol):
    def load(self, resource: str) -> Optional[str]: ...

    def save(self, resource: str, position: str) -> None: ...

    def clear(self, resource: str) -> None: ...


class InMemoryCheckpointStore:
    """Volatile checkpoint store keeping the last acknowledged position in-memory."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._positions: Dict[str, str] = {}

    def load(self, resource: str) -> Optional[str]:
        with self._lock:
            return self._positions.get(resource)

    def save(self, resource: str, position: str) -> None:
        with self._lock:
            self._positions[resource] = position

    def clear(self, resource: str) -> None:
        with self._lock:
            self._positions.pop(resource, None)


class PersistentCheckpointStore:
    """Durable checkpoint store that persists positions to disk atomically.

    Positions are opaque to the store; the iterators decide ordering, so the
    last saved value always wins.
    """

    def __init__(self, path: Union[Path, str], *, fsync: bool = False) -> None:
        self._path = Path(path)
        self._fsync = fsync
        self._lock = RLock()
        self._positions: Dict[str, str] = {}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - only raised on permission issues
            logger.warning(
                "unable to create checkpoint directory %s: %s",
                self._path.parent,
                exc,
            )
        self._load_from_disk()

    @property
    def path(self) -> Path:
        return self._path

    def load(self, resource: str) -> Optional[str]:
        with self._lock:
            return self._positions.get(resource)

    def save(self, resource: str, position: str) -> None:
        with self._lock:
            if self._positions.get(resource) == position:
                return
            self._positions[resource] = position
            self._write_locked()

    def clear(self, resource: str) -> None:
        with self._lock:
            if resource not in self._positions:
                return
            self._positions.pop(resource)
            self._write_locked()

    def _load_from_disk(self) -> None:
        if not self._path.exists():
            return
        try:
            raw = self._path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw else {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "failed to load checkpoint file %s: %s", self._path, exc, exc_info=False
            )
            return
        if not isinstance(data, dict):
            logger.warning("checkpoint file %s has invalid format; ignoring", self._path)
            return
        filtered = {
            key: value
            for key, value in data.items()
            if isinstance(key, str) and isinstance(value, str)
        }
        with self._lock:
            self._positions = filtered

    def _write_locked(self) -> None:
        temp_fd: Optional[int] = None
        temp_path: Optional[str] = None
        try:
            temp_fd, temp_path = tempfile.mkstemp(
                prefix=f".{self._path.name}.", dir=str(self._path.parent)
            )
            with os.fdopen(temp_fd, "w", encoding="utf-8") as tmp:
                temp_fd = None  # ownership transferred to file object
                json.dump(self._positions, tmp, sort_keys=True)
                tmp.flush()
                if self._fsync:
                    os.fsync(tmp.fileno())
            os.replace(temp_path, self._path)
            temp_path = None
            if self._fsync:
                self._fsync_directory()
        except OSError as exc:
            logger.error("failed to persist checkpoint file %s: %s", self._path, exc)
            raise
        finally:
            if temp_fd is not None:
                try:
                    os.close(temp_fd)
                except OSError:
                    pass
            if temp_path is not None:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass

    def _fsync_directory(self) -> None:
        try:
            dir_fd = os.open(self._path.parent, os.O_RDONLY)
        except OSError:  # pragma: no cover - platform dependent
            return
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)


def build_checkpoint_store(
    backend: str, path: Union[Path, str], *, fsync: bool = False
) -> CheckpointStore:
    if backend == "memory":
        return InMemoryCheckpointStore()
    return PersistentCheckpointStore(path, fsync=fsync)


__all__ = [
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "PersistentCheckpointStore",
    "build_checkpoint_store",
]

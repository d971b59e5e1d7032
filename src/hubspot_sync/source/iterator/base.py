"""Shared machinery for iterators fed by a background poll thread.

Each iterator owns a bounded record queue, a single-slot error cell and a
stop event. One daemon thread produces records by re-running the load step
on a fixed interval while the host thread consumes them through
``has_next``/``next``.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import deque
from datetime import datetime
from typing import Callable, Deque, Dict, Mapping, Optional

from ...hubspot.resources import RESULTS_FIELD_ID
from ...timestamps import format_rfc3339
from .errors import (
    AsyncIteratorError,
    ItemIDNotNumericError,
    ItemIDNotStringError,
    IteratorCancelledError,
    IteratorExhaustedError,
    IteratorStoppedError,
)
from .pagination import PaginationStrategy
from .records import Record

logger = logging.getLogger(__name__)

_WAIT_SLICE_SECONDS = 0.1
_MIN_POLL_INTERVAL_SECONDS = 0.01
_NUMERIC_ID_RE = re.compile(r"-?\d+")


def parse_item_id(item: Mapping[str, object]) -> int:
    """Return the numeric identity of ``item``; ids are documented as numeric strings."""
    raw_id = item.get(RESULTS_FIELD_ID)
    if not isinstance(raw_id, str):
        raise ItemIDNotStringError(f"item's id is not a string: {raw_id!r}")
    if not _NUMERIC_ID_RE.fullmatch(raw_id):
        raise ItemIDNotNumericError(f"item's id {raw_id!r} is not numeric")
    return int(raw_id)


def record_metadata(resource: str, created_at: datetime) -> Dict[str, str]:
    return {"created_at": format_rfc3339(created_at), "resource": resource}


class PollingIterator:
    """Single-producer/single-consumer bridge between a poll thread and the host."""

    kind = "iterator"

    def __init__(
        self,
        strategy: PaginationStrategy,
        *,
        buffer_size: int,
        poll_interval: float,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        if poll_interval < 0:
            raise ValueError("poll_interval must be >= 0")
        self._strategy = strategy
        self._buffer_size = buffer_size
        self._poll_interval = max(poll_interval, _MIN_POLL_INTERVAL_SECONDS)
        self._monotonic = monotonic
        self._records: Deque[Record] = deque()
        self._cond = threading.Condition()
        self._error: Optional[BaseException] = None
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

    @property
    def resource(self) -> str:
        return self._strategy.resource

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    # ------------------------------------------------------------------ Lifecycle
    def start(self) -> None:
        if self._worker and self._worker.is_alive():
            return
        self._stop_event.clear()
        self._worker = threading.Thread(
            target=self._run_loop,
            name=f"{self.kind}-poll-{self.resource}",
            daemon=True,
        )
        self._worker.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        with self._cond:
            self._cond.notify_all()
        worker = self._worker
        if worker and worker.is_alive() and worker is not threading.current_thread():
            worker.join(timeout=timeout)
        self._worker = None

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    # ------------------------------------------------------------------ Consumer side
    def pending(self) -> int:
        with self._cond:
            return len(self._records)

    def has_next(self, *, cancel: Optional[threading.Event] = None) -> bool:
        if cancel is not None and cancel.is_set():
            raise IteratorCancelledError(f"{self.kind} has next: cancelled")
        with self._cond:
            return (
                bool(self._records) or self._error is not None or self._more_pending()
            )

    def next(
        self,
        *,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> Record:
        """Pop the next record, blocking until one arrives or a failure surfaces."""
        deadline = None if timeout is None else self._monotonic() + timeout
        with self._cond:
            while True:
                if self._error is not None:
                    error, self._error = self._error, None
                    self._cond.notify_all()
                    raise AsyncIteratorError(f"load records: {error}") from error
                if self._records:
                    record = self._records.popleft()
                    self._cond.notify_all()
                    return record
                if cancel is not None and cancel.is_set():
                    raise IteratorCancelledError(f"{self.kind} next: cancelled")
                if self._stop_event.is_set():
                    raise IteratorStoppedError(f"{self.kind} iterator stopped")
                if self._exhausted():
                    raise IteratorExhaustedError(f"{self.kind} has no more records")
                wait = _WAIT_SLICE_SECONDS
                if deadline is not None:
                    remaining = deadline - self._monotonic()
                    if remaining <= 0:
                        raise IteratorCancelledError(f"{self.kind} next: timed out")
                    wait = min(wait, remaining)
                self._cond.wait(timeout=wait)

    # ------------------------------------------------------------------ Producer side
    def _more_pending(self) -> bool:
        """Whether more records are known to exist beyond the queue (caller holds lock)."""
        return False

    def _exhausted(self) -> bool:
        """Whether nothing more will ever be queued (caller holds lock)."""
        return False

    def _load_records(self) -> None:
        raise NotImplementedError

    def _check_stopped(self) -> None:
        if self._stop_event.is_set():
            raise IteratorStoppedError(f"{self.kind} iterator stopped")

    def _enqueue(
        self, record: Record, on_commit: Optional[Callable[[], None]] = None
    ) -> None:
        # Blocks while the queue is full so a slow consumer throttles polling.
        # on_commit runs under the same lock as the append.
        with self._cond:
            while len(self._records) >= self._buffer_size:
                self._check_stopped()
                self._cond.wait(timeout=_WAIT_SLICE_SECONDS)
            self._check_stopped()
            self._records.append(record)
            if on_commit is not None:
                on_commit()
            self._cond.notify_all()

    def _set_error(self, error: BaseException) -> None:
        with self._cond:
            while self._error is not None and not self._stop_event.is_set():
                self._cond.wait(timeout=_WAIT_SLICE_SECONDS)
            if self._stop_event.is_set():
                return
            self._error = error
            self._cond.notify_all()

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self._poll_interval):
            try:
                self._load_records()
            except IteratorStoppedError:
                return
            except Exception as exc:  # noqa: BLE001 - surfaced to the consumer via next()
                logger.debug("%s poll for %s failed: %s", self.kind, self.resource, exc)
                self._set_error(exc)


__all__ = ["PollingIterator", "parse_item_id", "record_metadata"]

"""Combined iterator owning the one-way snapshot to CDC handoff."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Sequence, Union

from ...hubspot.client import HubSpotClient
from ...hubspot.resources import ResourceCatalog
from ...timestamps import utc_now
from .cdc import CDCIterator
from .errors import (
    AsyncIteratorError,
    IteratorError,
    IteratorExhaustedError,
    NoInitializedIteratorError,
)
from .pagination import PaginationStrategy, strategy_for
from .position import Position, PositionMode
from .records import Record
from .snapshot import SnapshotIterator

logger = logging.getLogger(__name__)


class CombinedState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SNAPSHOT_ACTIVE = "snapshot"
    CDC_ACTIVE = "cdc"


class CombinedIterator:
    """Single entry point for the host; snapshots first, then switches to CDC."""

    def __init__(
        self,
        client: HubSpotClient,
        resource: str,
        *,
        buffer_size: int,
        poll_interval: float,
        position: Optional[Position] = None,
        extra_properties: Sequence[str] = (),
        snapshot: bool = True,
        catalog: Optional[ResourceCatalog] = None,
        clock: Callable[[], datetime] = utc_now,
        strategy: Optional[PaginationStrategy] = None,
    ) -> None:
        self._resource = resource
        self._buffer_size = buffer_size
        self._poll_interval = poll_interval
        self._clock = clock
        self._strategy = strategy or strategy_for(
            client, resource, catalog=catalog, extra_properties=extra_properties
        )
        self._state = CombinedState.UNINITIALIZED
        self._snapshot: Optional[SnapshotIterator] = None
        self._cdc: Optional[CDCIterator] = None

        if position is not None:
            position.validate()

        if snapshot and (position is None or position.mode is PositionMode.SNAPSHOT):
            self._snapshot = SnapshotIterator(
                self._strategy,
                buffer_size=buffer_size,
                poll_interval=poll_interval,
                position=position,
                clock=clock,
            )
            self._state = CombinedState.SNAPSHOT_ACTIVE
        else:
            # snapshots disabled, or resuming a CDC position
            self._cdc = self._build_cdc(self._cdc_seed(position))
            self._state = CombinedState.CDC_ACTIVE

    @property
    def state(self) -> CombinedState:
        return self._state

    @property
    def active_iterator(self) -> Optional[Union[SnapshotIterator, CDCIterator]]:
        if self._state is CombinedState.SNAPSHOT_ACTIVE:
            return self._snapshot
        if self._state is CombinedState.CDC_ACTIVE:
            return self._cdc
        return None

    def has_next(self, *, cancel: Optional[threading.Event] = None) -> bool:
        """Report whether a record can be read, switching to CDC once the snapshot drains."""
        if self._state is CombinedState.SNAPSHOT_ACTIVE:
            assert self._snapshot is not None
            if self._snapshot.has_next(cancel=cancel):
                return True
            logger.debug("switching %s to the CDC mode", self._resource)
            self._switch_to_cdc()
            assert self._cdc is not None
            return self._cdc.has_next(cancel=cancel)

        if self._state is CombinedState.CDC_ACTIVE:
            assert self._cdc is not None
            return self._cdc.has_next(cancel=cancel)

        return False

    def next(
        self,
        *,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> Record:
        iterator = self.active_iterator
        if iterator is None:
            raise NoInitializedIteratorError("no initialized iterator")
        try:
            return self._next_from(iterator, cancel, timeout)
        except IteratorExhaustedError:
            if self._state is not CombinedState.SNAPSHOT_ACTIVE:
                raise

        logger.debug("switching %s to the CDC mode", self._resource)
        self._switch_to_cdc()
        assert self._cdc is not None
        return self._next_from(self._cdc, cancel, timeout)

    def stop(self) -> None:
        if self._snapshot is not None:
            self._snapshot.stop()
        if self._cdc is not None:
            self._cdc.stop()

    # ------------------------------------------------------------------ Internal helpers
    def _cdc_seed(self, position: Optional[Position]) -> Optional[Position]:
        # A snapshot position resumed with snapshots disabled continues from its cut.
        if position is not None and position.mode is PositionMode.SNAPSHOT:
            return Position(mode=PositionMode.CDC, timestamp=position.initial_timestamp)
        return position

    def _build_cdc(self, position: Optional[Position]) -> CDCIterator:
        return CDCIterator(
            self._strategy,
            buffer_size=self._buffer_size,
            poll_interval=self._poll_interval,
            position=position,
            clock=self._clock,
        )

    @staticmethod
    def _next_from(
        iterator: Union[SnapshotIterator, CDCIterator],
        cancel: Optional[threading.Event],
        timeout: Optional[float],
    ) -> Record:
        try:
            return iterator.next(cancel=cancel, timeout=timeout)
        except AsyncIteratorError as exc:
            raise AsyncIteratorError(f"{iterator.kind} next: {exc}") from exc

    def _switch_to_cdc(self) -> None:
        assert self._snapshot is not None
        seed = Position(
            mode=PositionMode.CDC, timestamp=self._snapshot.initial_timestamp
        )
        try:
            self._cdc = self._build_cdc(seed)
        except Exception as exc:
            raise IteratorError(f"switch to cdc iterator: {exc}") from exc

        self._snapshot.stop()
        self._snapshot = None
        self._state = CombinedState.CDC_ACTIVE


__all__ = ["CombinedIterator", "CombinedState"]

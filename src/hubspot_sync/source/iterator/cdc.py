"""Change data capture over items changed after a watermark."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Mapping, Optional

from ...timestamps import ONE_MILLISECOND, utc_now
from .base import PollingIterator, parse_item_id, record_metadata
from .errors import IteratorError
from .pagination import PaginationStrategy
from .position import Position, PositionMode
from .records import Operation, Record

logger = logging.getLogger(__name__)


def classify(
    created_at: datetime,
    deleted_at: Optional[datetime],
    watermark: datetime,
) -> Operation:
    """Deletes win, then items created after the watermark are creates."""
    if deleted_at is not None:
        return Operation.DELETE
    if created_at > watermark:
        return Operation.CREATE
    return Operation.UPDATE


class CDCIterator(PollingIterator):
    """Polls for changed items and emits create/update/delete records.

    The watermark always advances to the update time of the last emitted
    item since results are sorted by update time.
    """

    kind = "cdc"

    def __init__(
        self,
        strategy: PaginationStrategy,
        *,
        buffer_size: int,
        poll_interval: float,
        position: Optional[Position] = None,
        clock: Callable[[], datetime] = utc_now,
        auto_start: bool = True,
    ) -> None:
        super().__init__(strategy, buffer_size=buffer_size, poll_interval=poll_interval)
        if position is None or position.timestamp is None:
            position = Position(mode=PositionMode.CDC, timestamp=clock())
        elif position.mode is not PositionMode.CDC:
            position = replace(position, mode=PositionMode.CDC, initial_timestamp=None)
        self._position = position
        self._initial_watermark: datetime = position.timestamp

        try:
            self._load_records()
        except Exception as exc:
            raise IteratorError(f"initial load records: {exc}") from exc
        if auto_start:
            self.start()

    @property
    def initial_watermark(self) -> datetime:
        return self._initial_watermark

    @property
    def position(self) -> Position:
        return self._position

    @property
    def watermark(self) -> datetime:
        assert self._position.timestamp is not None
        return self._position.timestamp

    def _load_records(self) -> None:
        self._check_stopped()
        position = self._position
        watermark = self.watermark
        # "after" filters are inclusive; shift by one millisecond to skip the
        # item the watermark was taken from.
        updated_after = watermark + ONE_MILLISECOND

        page = self._strategy.fetch_changes_page(updated_after, limit=self._buffer_size)

        for item in page.results:
            item_id = parse_item_id(item)
            created_at = self._strategy.created_at(item)
            updated_at = self._strategy.updated_at(item)
            deleted_at = self._strategy.deleted_at(item)
            if updated_at < updated_after:
                logger.debug(
                    "skipping item %s of %s already behind watermark %s",
                    item_id,
                    self.resource,
                    watermark,
                )
                continue

            operation = classify(created_at, deleted_at, watermark)
            new_position = Position(
                mode=PositionMode.CDC,
                item_id=item_id,
                timestamp=max(updated_at, position.timestamp or updated_at),
            )
            self._enqueue(
                self._build_record(operation, item, item_id, new_position, created_at)
            )
            self._position = position = new_position

    def _build_record(
        self,
        operation: Operation,
        item: Mapping[str, object],
        item_id: int,
        position: Position,
        created_at: datetime,
    ) -> Record:
        return Record(
            operation=operation,
            position=position.marshal(),
            key={"id": item_id},
            payload=None if operation is Operation.DELETE else dict(item),
            metadata=record_metadata(self.resource, created_at),
        )


__all__ = ["CDCIterator", "classify"]

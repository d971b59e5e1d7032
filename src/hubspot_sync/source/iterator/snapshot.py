"""Point-in-time snapshot of a resource's existing items."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Tuple

from ...timestamps import utc_now
from .base import PollingIterator, parse_item_id, record_metadata
from .errors import IteratorError
from .pagination import PaginationStrategy
from .position import Position, PositionMode
from .records import Operation, Record

logger = logging.getLogger(__name__)


class SnapshotIterator(PollingIterator):
    """Emits every item created before ``initial_timestamp`` exactly once.

    Timestamp-based resources follow next links within a session and resume
    from the last emitted creation time; search-based resources resume from
    the last emitted item id.
    """

    kind = "snapshot"

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
        self._clock = clock
        if (
            position is not None
            and position.mode is PositionMode.SNAPSHOT
            and position.initial_timestamp is not None
        ):
            self._initial_timestamp = position.initial_timestamp
            self._position = position
        else:
            self._initial_timestamp = clock()
            self._position = Position(
                mode=PositionMode.SNAPSHOT, initial_timestamp=self._initial_timestamp
            )
        self._next_link: Optional[str] = None
        self._has_more_items = False
        self._page_committed = False

        try:
            self._load_records()
        except Exception as exc:
            raise IteratorError(f"initial load records: {exc}") from exc
        if auto_start:
            self.start()

    @property
    def initial_timestamp(self) -> datetime:
        return self._initial_timestamp

    @property
    def position(self) -> Position:
        return self._position

    def _more_pending(self) -> bool:
        return self._has_more_items

    def _exhausted(self) -> bool:
        return not self._has_more_items

    def _last_item_id(self) -> Optional[int]:
        item_id = self._position.item_id
        if item_id is None:
            return None
        return int(item_id)

    def _load_records(self) -> None:
        self._check_stopped()
        if self._page_committed and not self._has_more_items:
            # the last page is already queued; re-querying would repeat items
            return
        start = self._position
        last_item_id = self._last_item_id()
        cursor = self._next_link

        after_item_id: Optional[int] = None
        created_after: Optional[datetime] = None
        if self._strategy.bounds_by_item_id:
            if last_item_id is not None:
                # skip the last processed item and start from the next one
                after_item_id = last_item_id + 1
        elif not cursor:
            created_after = start.timestamp

        page = self._strategy.fetch_snapshot_page(
            self._initial_timestamp,
            limit=self._buffer_size,
            cursor=cursor,
            created_after=created_after,
            after_item_id=after_item_id,
        )

        pending: List[Tuple[Record, Position]] = []
        position = start
        for item in page.results:
            item_id = parse_item_id(item)
            created_at = self._creation_time(item, item_id)
            if (
                created_after is not None
                and item_id == last_item_id
                and created_at == start.timestamp
            ):
                continue

            position = position.with_item(item_id, created_at)
            record = Record(
                operation=Operation.SNAPSHOT,
                position=position.marshal(),
                key={"id": item_id},
                payload=dict(item),
                metadata=record_metadata(self.resource, created_at),
            )
            pending.append((record, position))

        def commit_paging() -> None:
            self._has_more_items = page.has_more
            self._page_committed = True
            self._next_link = page.next_link

        # Paging state moves together with the last record of the page so the
        # consumer never sees the page drained while the old state says "more".
        if not pending:
            with self._cond:
                commit_paging()
                self._cond.notify_all()
            return
        last_index = len(pending) - 1
        for index, (record, new_position) in enumerate(pending):
            self._enqueue(record, commit_paging if index == last_index else None)
            self._position = new_position

    def _creation_time(self, item: Mapping[str, object], item_id: int) -> datetime:
        try:
            return self._strategy.created_at(item)
        except (KeyError, ValueError) as exc:
            logger.warning(
                "item %s of %s has no usable creation time (%s); using current time",
                item_id,
                self.resource,
                exc,
            )
            return self._clock()


__all__ = ["SnapshotIterator"]

"""Snapshot, CDC and combined iterators over a single HubSpot resource."""

from .cdc import CDCIterator, classify
from .combined import CombinedIterator, CombinedState
from .errors import (
    AsyncIteratorError,
    EmptyPositionError,
    InvalidPositionModeError,
    ItemIDNotNumericError,
    ItemIDNotStringError,
    IteratorCancelledError,
    IteratorError,
    IteratorExhaustedError,
    IteratorStoppedError,
    NoInitializedIteratorError,
    PositionParseError,
)
from .pagination import Page, PaginationStrategy, SearchPaged, TimestampPaged, strategy_for
from .position import Position, PositionMode, parse_position
from .records import Operation, Record
from .snapshot import SnapshotIterator

__all__ = [
    "AsyncIteratorError",
    "CDCIterator",
    "CombinedIterator",
    "CombinedState",
    "EmptyPositionError",
    "InvalidPositionModeError",
    "ItemIDNotNumericError",
    "ItemIDNotStringError",
    "IteratorCancelledError",
    "IteratorError",
    "IteratorExhaustedError",
    "IteratorStoppedError",
    "NoInitializedIteratorError",
    "Operation",
    "Page",
    "PaginationStrategy",
    "Position",
    "PositionMode",
    "PositionParseError",
    "Record",
    "SearchPaged",
    "SnapshotIterator",
    "TimestampPaged",
    "classify",
    "parse_position",
    "strategy_for",
]

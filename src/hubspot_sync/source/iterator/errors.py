"""Error taxonomy for the snapshot/CDC iterators."""

from __future__ import annotations


class IteratorError(RuntimeError):
    """Base class for iterator failures."""


class EmptyPositionError(IteratorError):
    """Raised by ``parse_position`` for zero-length input (a cold start)."""


class PositionParseError(IteratorError, ValueError):
    """Raised when a non-empty position cannot be decoded."""


class InvalidPositionModeError(PositionParseError):
    """Raised when a position's mode cannot drive the combined iterator."""


class ItemIDNotStringError(IteratorError, TypeError):
    """Raised when the API returns an item whose id is not a string."""


class ItemIDNotNumericError(IteratorError, ValueError):
    """Raised when an item's string id cannot be read as an integer."""


class NoInitializedIteratorError(IteratorError):
    """Raised when the combined iterator has no active sub-iterator."""


class IteratorCancelledError(IteratorError):
    """Raised when a blocking call is cancelled or times out."""


class IteratorStoppedError(IteratorError):
    """Raised inside a load step once the iterator has been stopped."""


class IteratorExhaustedError(IteratorError):
    """Raised by `next` once an iterator has nothing queued and nothing left to load."""


class AsyncIteratorError(IteratorError):
    """Wraps a failure raised by the background poll loop.

    The original exception is available as ``__cause__``.
    """


__all__ = [
    "AsyncIteratorError",
    "EmptyPositionError",
    "InvalidPositionModeError",
    "ItemIDNotNumericError",
    "ItemIDNotStringError",
    "IteratorCancelledError",
    "IteratorError",
    "IteratorExhaustedError",
    "IteratorStoppedError",
    "NoInitializedIteratorError",
    "PositionParseError",
]

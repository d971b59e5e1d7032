"""Destination connector writing change records back to HubSpot."""

from .destination import Destination, DestinationWriteError
from .writer import (
    CompositeKeysNotSupportedError,
    EmptyKeyError,
    EmptyPayloadError,
    KeyNotStringError,
    Writer,
    WriterError,
)

__all__ = [
    "CompositeKeysNotSupportedError",
    "Destination",
    "DestinationWriteError",
    "EmptyKeyError",
    "EmptyPayloadError",
    "KeyNotStringError",
    "Writer",
    "WriterError",
]

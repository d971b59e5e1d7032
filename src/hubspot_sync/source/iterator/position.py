"""Resumable iterator positions and their JSON wire format."""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from ...timestamps import ensure_utc, format_rfc3339, parse_rfc3339
from .errors import EmptyPositionError, InvalidPositionModeError, PositionParseError

ItemID = Union[int, str]


class PositionMode(str, Enum):
    SNAPSHOT = "snapshot"
    CDC = "cdc"


@dataclass(frozen=True)
class Position:
    """Checkpoint exchanged with the host as opaque bytes.

    ``initial_timestamp`` is the snapshot cut and is set for snapshot
    positions. ``timestamp`` is the CDC watermark, or the creation time of
    the last emitted snapshot item. ``item_id`` identifies the last item
    processed.
    """

    mode: PositionMode
    item_id: Optional[ItemID] = None
    initial_timestamp: Optional[datetime] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "mode", PositionMode(self.mode))
        except ValueError as exc:
            raise InvalidPositionModeError(
                f"invalid position mode {self.mode!r}"
            ) from exc
        if self.initial_timestamp is not None:
            object.__setattr__(
                self, "initial_timestamp", ensure_utc(self.initial_timestamp)
            )
        if self.timestamp is not None:
            object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))

    def validate(self) -> None:
        """Check the timestamp each mode needs to resume from."""
        if self.mode is PositionMode.SNAPSHOT and self.initial_timestamp is None:
            raise InvalidPositionModeError("snapshot position has no initial timestamp")
        if self.mode is PositionMode.CDC and self.timestamp is None:
            raise InvalidPositionModeError("cdc position has no timestamp")

    def with_item(self, item_id: ItemID, timestamp: datetime) -> "Position":
        return replace(self, item_id=item_id, timestamp=timestamp)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"mode": self.mode.value}
        if self.item_id is not None:
            data["itemId"] = self.item_id
        if self.initial_timestamp is not None:
            data["initialTimestamp"] = format_rfc3339(self.initial_timestamp)
        if self.timestamp is not None:
            data["timestamp"] = format_rfc3339(self.timestamp)
        return data

    def marshal(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":"), sort_keys=True).encode(
            "utf-8"
        )


def _parse_optional_timestamp(data: Dict[str, Any], key: str) -> Optional[datetime]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PositionParseError(f"position field {key!r} must be a string")
    try:
        return parse_rfc3339(value)
    except ValueError as exc:
        raise PositionParseError(f"parse position field {key!r}: {exc}") from exc


def parse_position(raw: Optional[Union[bytes, str]]) -> Position:
    """Decode a position previously produced by :meth:`Position.marshal`.

    Zero-length input raises :class:`EmptyPositionError` (nothing to resume
    from); anything else that cannot be decoded raises
    :class:`PositionParseError`.
    """
    if not raw:
        raise EmptyPositionError("position is empty")
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PositionParseError(f"unmarshal position: {exc}") from exc
    if not isinstance(data, dict):
        raise PositionParseError("position must be a JSON object")

    item_id = data.get("itemId")
    if item_id is not None and (
        isinstance(item_id, bool) or not isinstance(item_id, (int, str))
    ):
        raise PositionParseError("position field 'itemId' must be a string or integer")

    return Position(
        mode=data.get("mode"),
        item_id=item_id,
        initial_timestamp=_parse_optional_timestamp(data, "initialTimestamp"),
        timestamp=_parse_optional_timestamp(data, "timestamp"),
    )


__all__ = ["ItemID", "Position", "PositionMode", "parse_position"]

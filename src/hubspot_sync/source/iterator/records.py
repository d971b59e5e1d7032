"""Change records emitted by the iterators."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class Operation(str, Enum):
    SNAPSHOT = "snapshot"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Record:
    """A single change event; ``payload`` is ``None`` for deletes."""

    operation: Operation
    position: bytes
    key: Dict[str, Any]
    payload: Optional[Dict[str, Any]] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation.value,
            "position": self.position.decode("utf-8"),
            "key": dict(self.key),
            "payload": dict(self.payload) if self.payload is not None else None,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        raw_position = data.get("position") or b""
        if isinstance(raw_position, str):
            raw_position = raw_position.encode("utf-8")
        raw_key = data.get("key")
        raw_payload = data.get("payload")
        raw_metadata = data.get("metadata")
        return cls(
            operation=Operation(data.get("operation")),
            position=bytes(raw_position),
            key=dict(raw_key) if isinstance(raw_key, Mapping) else {},
            payload=dict(raw_payload) if isinstance(raw_payload, Mapping) else None,
            metadata=(
                {str(k): str(v) for k, v in raw_metadata.items()}
                if isinstance(raw_metadata, Mapping)
                else {}
            ),
        )


__all__ = ["Operation", "Record"]

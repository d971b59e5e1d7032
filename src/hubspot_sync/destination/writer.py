"""Routes change records to HubSpot create/update/delete calls."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Union

from ..source.iterator.records import Operation, Record

logger = logging.getLogger(__name__)


class WriterError(RuntimeError):
    """Base class for records the writer cannot apply."""


class EmptyPayloadError(WriterError):
    def __init__(self) -> None:
        super().__init__("payload is empty")


class CompositeKeysNotSupportedError(WriterError):
    def __init__(self) -> None:
        super().__init__("composite keys not yet supported")


class KeyNotStringError(WriterError, TypeError):
    def __init__(self, value: Any) -> None:
        super().__init__(f"key is not a string: {value!r}")


class EmptyKeyError(WriterError):
    def __init__(self) -> None:
        super().__init__("key is empty")


class ItemWriter(Protocol):
    def create(self, resource: str, item: Mapping[str, Any]) -> None: ...

    def update(self, resource: str, item_id: str, item: Mapping[str, Any]) -> None: ...

    def delete(self, resource: str, item_id: str) -> None: ...


StructuredInput = Union[Mapping[str, Any], bytes, str, None]


def structurize(data: StructuredInput) -> Optional[Dict[str, Any]]:
    """Return ``data`` as a dict, decoding raw JSON; empty input yields ``None``."""
    if data is None:
        return None
    if isinstance(data, Mapping):
        return dict(data) if data else None
    if not data:
        return None
    try:
        decoded = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise WriterError(f"unmarshal data into structured data: {exc}") from exc
    if not isinstance(decoded, dict):
        raise WriterError(f"structured data must be a JSON object, got {type(decoded).__name__}")
    return decoded or None


def key_value(key: Optional[Mapping[str, Any]]) -> str:
    """Return the single key value as a string; ints and floats are truncated to ints."""
    if not key:
        return ""
    if len(key) > 1:
        raise CompositeKeysNotSupportedError()
    value = next(iter(key.values()))
    if isinstance(value, bool):
        raise KeyNotStringError(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(int(value))
    raise KeyNotStringError(value)


class Writer:
    """Applies records to one resource through an :class:`ItemWriter`."""

    def __init__(self, client: ItemWriter, resource: str) -> None:
        self._client = client
        self._resource = resource

    @property
    def resource(self) -> str:
        return self._resource

    def write(self, record: Record) -> None:
        if record.operation in (Operation.CREATE, Operation.SNAPSHOT):
            self._insert(record)
        elif record.operation is Operation.UPDATE:
            self._update(record)
        elif record.operation is Operation.DELETE:
            self._delete(record)
        else:  # pragma: no cover - Operation is closed
            raise WriterError(f"unknown operation {record.operation!r}")

    def _insert(self, record: Record) -> None:
        payload = structurize(record.payload)
        if payload is None:
            raise EmptyPayloadError()
        try:
            self._client.create(self._resource, payload)
        except Exception as exc:
            raise WriterError(f"create {self._resource!r} item: {exc}") from exc

    def _update(self, record: Record) -> None:
        item_id = self._item_id(record)
        payload = structurize(record.payload)
        if payload is None:
            raise EmptyPayloadError()
        try:
            self._client.update(self._resource, item_id, payload)
        except Exception as exc:
            raise WriterError(f"update {self._resource!r} item: {exc}") from exc

    def _delete(self, record: Record) -> None:
        item_id = self._item_id(record)
        try:
            self._client.delete(self._resource, item_id)
        except Exception as exc:
            raise WriterError(f"delete {self._resource!r} item: {exc}") from exc

    def _item_id(self, record: Record) -> str:
        value = key_value(structurize(record.key))
        if not value:
            raise EmptyKeyError()
        return value


__all__ = [
    "CompositeKeysNotSupportedError",
    "EmptyKeyError",
    "EmptyPayloadError",
    "ItemWriter",
    "KeyNotStringError",
    "Writer",
    "WriterError",
    "key_value",
    "structurize",
]

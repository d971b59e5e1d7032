from __future__ import annotations

import logging

import pytest

from hubspot_sync.config import parse_source_config
from hubspot_sync.source import BackoffRetry, Source
from hubspot_sync.source.iterator import (
    Operation,
    Position,
    PositionMode,
    PositionParseError,
    Record,
)

from hubspot_fakes import at


class _FakeClient:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


class _ScriptedIterator:
    def __init__(self, records) -> None:
        self.records = list(records)
        self.stopped = False

    def has_next(self, *, cancel=None) -> bool:
        return bool(self.records)

    def next(self, *, cancel=None, timeout=None) -> Record:
        return self.records.pop(0)

    def stop(self) -> None:
        self.stopped = True


class _Harness:
    def __init__(self, records=()) -> None:
        self.client = _FakeClient()
        self.iterator = _ScriptedIterator(records)
        self.positions = []

    def source(self) -> Source:
        def iterator_factory(client, config, position):
            assert client is self.client
            self.positions.append(position)
            return self.iterator

        source = Source(
            client_factory=lambda config: self.client,
            iterator_factory=iterator_factory,
        )
        source.configure({"accessToken": "token", "resource": "crm.contacts"})
        return source


def _record(item_id: int) -> Record:
    position = Position(mode=PositionMode.CDC, item_id=item_id, timestamp=at(item_id))
    return Record(
        operation=Operation.UPDATE,
        position=position.marshal(),
        key={"id": item_id},
        payload={"id": str(item_id)},
    )


@pytest.mark.unit
def test_read_returns_records_then_asks_for_backoff() -> None:
    harness = _Harness([_record(1)])
    source = harness.source()
    source.open()

    assert source.read().key == {"id": 1}
    with pytest.raises(BackoffRetry):
        source.read()


@pytest.mark.unit
def test_open_without_position_starts_from_scratch(caplog) -> None:
    harness = _Harness()
    source = harness.source()

    with caplog.at_level(logging.INFO, logger="hubspot_sync.source.source"):
        source.open(None)

    assert harness.positions == [None]
    assert "starting crm.contacts from scratch" in caplog.text


@pytest.mark.unit
def test_open_passes_the_parsed_position() -> None:
    harness = _Harness()
    source = harness.source()
    saved = Position(mode=PositionMode.CDC, item_id=9, timestamp=at(9))

    source.open(saved.marshal())

    assert harness.positions[0].mode is PositionMode.CDC
    assert harness.positions[0].timestamp == at(9)


@pytest.mark.unit
def test_open_rejects_malformed_positions() -> None:
    harness = _Harness()
    source = harness.source()

    with pytest.raises(PositionParseError):
        source.open(b"not json")
    assert harness.positions == []


@pytest.mark.unit
def test_open_closes_the_client_when_the_iterator_fails() -> None:
    client = _FakeClient()

    def broken_factory(client, config, position):
        raise RuntimeError("initial load failed")

    source = Source(client_factory=lambda config: client, iterator_factory=broken_factory)
    source.configure(parse_source_config({"accessToken": "t", "resource": "crm.deals"}))

    with pytest.raises(RuntimeError, match="initial load failed"):
        source.open()
    assert client.closed


@pytest.mark.unit
def test_teardown_stops_iterator_and_closes_client() -> None:
    harness = _Harness()
    source = harness.source()
    source.open()

    source.teardown()
    source.teardown()

    assert harness.iterator.stopped
    assert harness.client.closed
    with pytest.raises(RuntimeError, match="not open"):
        source.read()


@pytest.mark.unit
def test_source_requires_configuration() -> None:
    with pytest.raises(RuntimeError, match="not configured"):
        Source().open()

import json
import logging

import pytest

from hubspot_sync.checkpoint import (
    InMemoryCheckpointStore,
    PersistentCheckpointStore,
    build_checkpoint_store,
)

POSITION = '{"mode":"cdc","item_id":"7","timestamp":"2024-01-01T00:00:01Z"}'


@pytest.mark.unit
def test_persistent_store_persists_across_instances(tmp_path):
    store_path = tmp_path / "positions.json"
    store = PersistentCheckpointStore(store_path)

    store.save("crm.contacts", POSITION)
    assert store.load("crm.contacts") == POSITION

    persisted = json.loads(store_path.read_text())
    assert persisted == {"crm.contacts": POSITION}

    reloaded = PersistentCheckpointStore(store_path)
    assert reloaded.load("crm.contacts") == POSITION
    assert reloaded.load("crm.deals") is None


@pytest.mark.unit
def test_last_saved_position_wins(tmp_path):
    store = PersistentCheckpointStore(tmp_path / "positions.json", fsync=True)

    store.save("crm.contacts", "second")
    store.save("crm.contacts", "first")
    store.save("cms.blogs.posts", "other")

    contents = json.loads((tmp_path / "positions.json").read_text())
    assert contents == {"cms.blogs.posts": "other", "crm.contacts": "first"}


@pytest.mark.unit
def test_clear_removes_only_the_named_resource(tmp_path):
    path = tmp_path / "nested" / "positions.json"
    store = PersistentCheckpointStore(path)
    store.save("crm.contacts", "a")
    store.save("crm.deals", "b")

    store.clear("crm.contacts")
    store.clear("crm.unknown")

    assert PersistentCheckpointStore(path).load("crm.contacts") is None
    assert json.loads(path.read_text()) == {"crm.deals": "b"}


@pytest.mark.unit
def test_corrupt_checkpoint_file_is_ignored(tmp_path, caplog):
    path = tmp_path / "positions.json"
    path.write_text("{not json")

    with caplog.at_level(logging.WARNING, logger="hubspot_sync.checkpoint"):
        store = PersistentCheckpointStore(path)

    assert store.load("crm.contacts") is None
    assert "failed to load checkpoint file" in caplog.text


@pytest.mark.unit
def test_non_string_entries_are_dropped(tmp_path):
    path = tmp_path / "positions.json"
    path.write_text(json.dumps({"crm.contacts": POSITION, "crm.deals": 12}))

    store = PersistentCheckpointStore(path)

    assert store.load("crm.contacts") == POSITION
    assert store.load("crm.deals") is None


@pytest.mark.unit
def test_backend_selection(tmp_path):
    memory = build_checkpoint_store("memory", tmp_path / "unused.json")
    memory.save("crm.contacts", POSITION)

    assert isinstance(memory, InMemoryCheckpointStore)
    assert memory.load("crm.contacts") == POSITION
    assert not (tmp_path / "unused.json").exists()

    durable = build_checkpoint_store("file", tmp_path / "positions.json")
    assert isinstance(durable, PersistentCheckpointStore)
    assert durable.path == tmp_path / "positions.json"

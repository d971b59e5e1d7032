from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from typing import Dict, List

import httpx
import pytest

from hubspot_sync.checkpoint import PersistentCheckpointStore
from hubspot_sync.config import ConnectorConfig, Settings, SourceConfig
from hubspot_sync.destination import Destination
from hubspot_sync.hubspot import HubSpotClient
from hubspot_sync.service import SourceRuntime, write_records
from hubspot_sync.source import Source
from hubspot_sync.source.iterator import Operation, PositionMode, Record, parse_position
from hubspot_sync.timestamps import EPOCH, format_rfc3339, parse_rfc3339

pytestmark = pytest.mark.integration

LIVE = format_rfc3339(EPOCH)


def day(n: int) -> datetime:
    return datetime(2024, 1, n, tzinfo=timezone.utc)


def _post(item_id: int, created: datetime, updated: datetime, **fields) -> Dict[str, object]:
    post = {
        "id": str(item_id),
        "created": format_rfc3339(created),
        "updated": format_rfc3339(updated),
        "deletedAt": LIVE,
    }
    post.update(fields)
    return post


class FakeBlogApi:
    """In-memory stand-in for the CMS blog posts list and write endpoints."""

    def __init__(self, posts: List[Dict[str, object]]) -> None:
        self.posts = {str(post["id"]): post for post in posts}
        self.writes: List[tuple] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method != "GET":
            self.writes.append((request.method, request.url.path, request.content))
            return httpx.Response(204)

        params = request.url.params
        limit = int(params.get("limit", "100"))
        results = list(self.posts.values())
        if "createdBefore" in params:
            cut = parse_rfc3339(params["createdBefore"])
            results = [p for p in results if parse_rfc3339(p["created"]) < cut]
        if "createdAfter" in params:
            after = parse_rfc3339(params["createdAfter"])
            results = [p for p in results if parse_rfc3339(p["created"]) >= after]
        if "updatedAfter" in params:
            after = parse_rfc3339(params["updatedAfter"])
            results = [p for p in results if parse_rfc3339(p["updated"]) >= after]
        sort_field = "updated" if "updatedAfter" in params else "created"
        results.sort(key=lambda p: (parse_rfc3339(p[sort_field]), int(p["id"])))
        return httpx.Response(200, json={"results": results[:limit]})

    def client(self, _config=None) -> HubSpotClient:
        return HubSpotClient(
            "token",
            base_url="https://hubspot.test",
            http_client=httpx.Client(transport=httpx.MockTransport(self)),
        )


def _settings(tmp_path) -> Settings:
    return Settings(
        source=SourceConfig(
            connector=ConnectorConfig(access_token="token", resource="cms.blogs.posts"),
            polling_period_seconds=0.01,
            buffer_size=10,
        ),
        checkpoint_backend="file",
        checkpoint_path=tmp_path / "positions.json",
    )


def _run(settings: Settings, api: FakeBlogApi, max_records: int) -> List[dict]:
    output = io.StringIO()
    runtime = SourceRuntime(
        settings,
        output=output,
        source=Source(client_factory=api.client),
        checkpoints=PersistentCheckpointStore(settings.checkpoint_path),
    )
    runtime.run(max_records=max_records)
    return [json.loads(line) for line in output.getvalue().splitlines()]


def test_snapshot_then_changes_survive_a_restart(tmp_path) -> None:
    future = datetime(2100, 1, 1, tzinfo=timezone.utc)
    api = FakeBlogApi(
        [
            _post(1, day(1), day(1), name="first"),
            _post(2, day(2), day(3), name="second"),
        ]
    )
    settings = _settings(tmp_path)

    first_run = _run(settings, api, max_records=2)

    assert [(line["operation"], line["key"]) for line in first_run] == [
        ("snapshot", {"id": 1}),
        ("snapshot", {"id": 2}),
    ]
    saved = PersistentCheckpointStore(settings.checkpoint_path).load("cms.blogs.posts")
    assert parse_position(saved).mode is PositionMode.SNAPSHOT

    api.posts["3"] = _post(3, future, future, name="third")
    api.posts["2"] = _post(2, day(2), future.replace(second=5), name="second, edited")

    second_run = _run(settings, api, max_records=2)

    assert [(line["operation"], line["key"]) for line in second_run] == [
        ("create", {"id": 3}),
        ("update", {"id": 2}),
    ]
    assert second_run[1]["payload"]["name"] == "second, edited"
    resumed = PersistentCheckpointStore(settings.checkpoint_path).load("cms.blogs.posts")
    assert parse_position(resumed).mode is PositionMode.CDC
    assert parse_position(resumed).timestamp == future.replace(second=5)


def test_records_read_from_one_portal_can_be_written_to_another(tmp_path) -> None:
    source_api = FakeBlogApi([_post(1, day(1), day(1), name="copied")])
    target_api = FakeBlogApi([])
    settings = _settings(tmp_path)

    lines = _run(settings, source_api, max_records=1)
    records = [Record.from_dict(line) for line in lines]
    assert records[0].operation is Operation.SNAPSHOT

    written = write_records(
        settings, records, destination=Destination(client_factory=target_api.client)
    )

    assert written == 1
    method, path, body = target_api.writes[0]
    assert (method, path) == ("POST", "/cms/v3/blogs/posts")
    assert json.loads(body)["name"] == "copied"

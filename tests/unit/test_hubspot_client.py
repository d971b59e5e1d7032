from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import List

import httpx
import pytest

from hubspot_sync.hubspot import (
    FieldNotExistError,
    HubSpotClient,
    ListOptions,
    RetryPolicy,
    UnexpectedStatusCodeError,
    UnsupportedResourceError,
    get_time_field,
)

CREATED_BEFORE = datetime(2024, 1, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)


def _client(handler, *, attempts: int = 2, sleeps: List[float] = None) -> HubSpotClient:
    recorded = sleeps if sleeps is not None else []
    return HubSpotClient(
        "secret-token",
        base_url="https://hubspot.test",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        retry_policy=RetryPolicy(attempts=attempts, jitter=lambda limit: limit),
        sleep=recorded.append,
    )


@pytest.mark.unit
def test_list_sends_filters_and_parses_paging() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "results": [{"id": "1", "created": "2023-12-01T00:00:00Z"}],
                "paging": {"next": {"after": "1", "link": "https://hubspot.test/next?after=1"}},
                "total": 5,
            },
        )

    response = _client(handler).list(
        "cms.blogs.posts",
        ListOptions(limit=10, created_before=CREATED_BEFORE, sort="created"),
    )

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/cms/v3/blogs/posts"
    assert dict(request.url.params) == {
        "limit": "10",
        "createdBefore": "2024-01-01T12:00:00.250Z",
        "sort": "created",
    }
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert response.results == [{"id": "1", "created": "2023-12-01T00:00:00Z"}]
    assert response.paging is not None
    assert response.paging.next_link == "https://hubspot.test/next?after=1"
    assert response.total == 5


@pytest.mark.unit
def test_list_without_paging_section_reports_no_more_pages() -> None:
    client = _client(lambda request: httpx.Response(200, json={"results": []}))

    response = client.list("cms.blogs.posts", ListOptions(archived=True))

    assert response.paging is None
    assert response.results == []


@pytest.mark.unit
def test_next_links_are_followed_verbatim() -> None:
    seen: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"results": []})

    _client(handler).list_by_next_link(
        "https://hubspot.test/cms/v3/blogs/posts?after=abc&createdBefore=x"
    )

    assert seen == ["https://hubspot.test/cms/v3/blogs/posts?after=abc&createdBefore=x"]


@pytest.mark.unit
def test_search_by_updated_after_filters_on_milliseconds() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"results": [], "total": 0})

    _client(handler).search_by_updated_after(
        "crm.contacts",
        datetime(2022, 9, 30, 15, 18, 47, 170000, tzinfo=timezone.utc),
        25,
        properties=["email"],
    )

    method, path, body = bodies[0]
    assert (method, path) == ("POST", "/crm/v3/objects/contacts/search")
    assert body == {
        "limit": 25,
        "filterGroups": [
            {
                "filters": [
                    {
                        "propertyName": "lastmodifieddate",
                        "operator": "GTE",
                        "value": "1664551127170",
                    }
                ]
            }
        ],
        "sorts": [{"propertyName": "lastmodifieddate", "direction": "ASCENDING"}],
        "properties": ["email"],
    }


@pytest.mark.unit
def test_search_by_created_before_bounds_by_object_id() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"results": []})

    client = _client(handler)
    client.search_by_created_before("crm.deals", CREATED_BEFORE, 10)
    client.search_by_created_before("crm.deals", CREATED_BEFORE, 10, after_item_id=43)

    first_filters = bodies[0]["filterGroups"][0]["filters"]
    second_filters = bodies[1]["filterGroups"][0]["filters"]
    assert first_filters == [
        {"propertyName": "createdate", "operator": "LT", "value": "1704110400250"}
    ]
    assert second_filters[1] == {
        "propertyName": "hs_object_id",
        "operator": "GTE",
        "value": "43",
    }
    assert bodies[1]["sorts"] == [{"propertyName": "createdate", "direction": "ASCENDING"}]


@pytest.mark.unit
def test_server_errors_are_retried_with_backoff() -> None:
    statuses = [503, 429, 200]
    sleeps: List[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, json={"results": [{"id": "9"}]})

    response = _client(handler, sleeps=sleeps).list("crm.contacts")

    assert response.results == [{"id": "9"}]
    assert sleeps == [1.0, 2.0]


@pytest.mark.unit
def test_retries_give_up_after_the_configured_attempts() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, content=b"boom")

    with pytest.raises(UnexpectedStatusCodeError) as excinfo:
        _client(handler, attempts=2).list("crm.contacts")

    assert len(calls) == 3
    assert excinfo.value.status_code == 500
    assert excinfo.value.body == b"boom"


@pytest.mark.unit
def test_client_errors_are_not_retried() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401, json={"message": "expired"})

    with pytest.raises(UnexpectedStatusCodeError) as excinfo:
        _client(handler).list("crm.contacts")

    assert len(calls) == 1
    assert excinfo.value.retriable is False


@pytest.mark.unit
def test_transport_errors_are_retried() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"results": []})

    assert _client(handler).list("crm.contacts").results == []
    assert len(attempts) == 2


@pytest.mark.unit
def test_write_operations_use_resource_paths() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.content))
        return httpx.Response(204)

    client = _client(handler)
    client.create("crm.contacts", {"properties": {"email": "a@example.com"}})
    client.update("crm.contacts", "17", {"properties": {"firstname": "Ada"}})
    client.update("settings.users", "5", {"role": "admin"})
    client.delete("cms.hubdb.tables", "8")

    assert [(method, path) for method, path, _ in seen] == [
        ("POST", "/crm/v3/objects/contacts"),
        ("PATCH", "/crm/v3/objects/contacts/17"),
        ("PUT", "/settings/v3/users/5"),
        ("DELETE", "/cms/v3/hubdb/tables/8/draft"),
    ]
    assert json.loads(seen[0][2]) == {"properties": {"email": "a@example.com"}}


@pytest.mark.unit
def test_unsupported_resources_fail_before_any_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    client = _client(handler)

    with pytest.raises(UnsupportedResourceError):
        client.list("crm.unknown")
    with pytest.raises(UnsupportedResourceError):
        client.search_by_updated_after("cms.blogs.posts", CREATED_BEFORE, 10)
    with pytest.raises(UnsupportedResourceError):
        client.delete("marketing.unknown", "1")


@pytest.mark.unit
def test_get_time_field_reports_missing_and_malformed_values() -> None:
    assert get_time_field({"createdAt": "2024-01-01T00:00:00.123456789Z"}, "createdAt") == (
        datetime(2024, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc)
    )
    with pytest.raises(FieldNotExistError):
        get_time_field({}, "createdAt")
    with pytest.raises(ValueError):
        get_time_field({"createdAt": "not a time"}, "createdAt")

"""HubSpot API v3 client with bounded retries."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import httpx

from ..timestamps import format_query_timestamp, parse_rfc3339, to_unix_millis
from .errors import FieldNotExistError, UnexpectedStatusCodeError, UnsupportedResourceError
from .resources import DEFAULT_CATALOG, OBJECT_ID_PLACEHOLDER, ResourceCatalog, SearchResource

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.hubapi.com"

GTE_OPERATOR = "GTE"
LT_OPERATOR = "LT"
ASCENDING = "ASCENDING"

Item = Dict[str, Any]


def get_time_field(item: Mapping[str, Any], name: str) -> datetime:
    """Return the RFC3339 field ``name`` of ``item`` as an aware UTC datetime."""
    value = item.get(name)
    if not isinstance(value, str):
        raise FieldNotExistError(name)
    try:
        return parse_rfc3339(value)
    except ValueError as exc:
        raise ValueError(f"parse field {name!r}: {exc}") from exc


@dataclass(frozen=True)
class ListOptions:
    """Query parameters accepted by list endpoints."""

    limit: Optional[int] = None
    after: Optional[str] = None
    created_after: Optional[datetime] = None
    updated_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    sort: Optional[str] = None
    archived: bool = False

    def to_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.limit:
            params["limit"] = str(self.limit)
        if self.after:
            params["after"] = self.after
        if self.created_after is not None:
            params["createdAfter"] = format_query_timestamp(self.created_after)
        if self.updated_after is not None:
            params["updatedAfter"] = format_query_timestamp(self.updated_after)
        if self.created_before is not None:
            params["createdBefore"] = format_query_timestamp(self.created_before)
        if self.sort:
            params["sort"] = self.sort
        if self.archived:
            params["archived"] = "true"
        return params


@dataclass(frozen=True)
class Paging:
    next_after: str = ""
    next_link: str = ""


@dataclass(frozen=True)
class ListResponse:
    """Common shape of list and search responses."""

    results: List[Item] = field(default_factory=list)
    paging: Optional[Paging] = None
    total: int = 0

    @classmethod
    def from_json(cls, data: Any) -> "ListResponse":
        if not isinstance(data, Mapping):
            raise ValueError("list response must be a JSON object")
        raw_results = data.get("results") or []
        if not isinstance(raw_results, list):
            raise ValueError("list response 'results' must be an array")
        results = [dict(entry) for entry in raw_results if isinstance(entry, Mapping)]
        paging: Optional[Paging] = None
        raw_paging = data.get("paging")
        if isinstance(raw_paging, Mapping):
            raw_next = raw_paging.get("next")
            if isinstance(raw_next, Mapping):
                paging = Paging(
                    next_after=str(raw_next.get("after") or ""),
                    next_link=str(raw_next.get("link") or ""),
                )
            else:
                paging = Paging()
        total = data.get("total")
        return cls(
            results=results,
            paging=paging,
            total=total if isinstance(total, int) else len(results),
        )


def search_filter(property_name: str, operator: str, value: str) -> Dict[str, str]:
    return {"propertyName": property_name, "operator": operator, "value": value}


class RetryPolicy:
    """Exponential backoff with jitter helper."""

    def __init__(
        self,
        *,
        attempts: int,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter: Optional[Callable[[float], float]] = None,
    ) -> None:
        if attempts < 0:
            raise ValueError("attempts must be >= 0")
        if base_delay <= 0 or max_delay <= 0:
            raise ValueError("delays must be positive")
        self._retries = attempts
        self._jitter_fn = jitter or (lambda limit: random.uniform(0, limit))
        self._limits: List[float] = []
        delay = base_delay
        for _ in range(self._retries):
            self._limits.append(min(delay, max_delay))
            delay = min(delay * 2, max_delay)

    @property
    def max_attempts(self) -> int:
        """Return the total attempts (first try + retries)."""
        return self._retries + 1

    def next_delay(self, attempt: int) -> float:
        """Return the backoff delay (seconds) before ``attempt``."""
        if attempt <= 1:
            return 0.0
        index = min(attempt - 2, len(self._limits) - 1)
        if index < 0:
            return 0.0
        return max(0.0, self._jitter_fn(self._limits[index]))


class HubSpotClient:
    """Thin wrapper around ``httpx`` for the HubSpot CRM and CMS endpoints."""

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        max_retries: int = 4,
        timeout_seconds: float = 10.0,
        catalog: ResourceCatalog = DEFAULT_CATALOG,
        http_client: Optional[httpx.Client] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not access_token:
            raise ValueError("access_token must be provided")
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        self._catalog = catalog
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout_seconds)
        self._retry_policy = retry_policy or RetryPolicy(attempts=max_retries)
        self._sleep = sleep

    @property
    def catalog(self) -> ResourceCatalog:
        return self._catalog

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HubSpotClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ Reading
    def list(self, resource: str, options: Optional[ListOptions] = None) -> ListResponse:
        """List items of ``resource`` applying the optional query ``options``."""
        path = self._catalog.list_paths.get(resource)
        if path is None:
            raise UnsupportedResourceError(resource, "list")
        params = options.to_params() if options else None
        return ListResponse.from_json(self._request("GET", path, params=params))

    def list_by_next_link(self, next_link: str) -> ListResponse:
        """Follow a continuation link; it embeds every filter of the first call."""
        return ListResponse.from_json(self._request("GET", next_link))

    def search(self, resource: str, request: Mapping[str, Any]) -> ListResponse:
        search_resource = self._search_resource(resource)
        return ListResponse.from_json(
            self._request("POST", search_resource.path, json=dict(request))
        )

    def search_by_updated_after(
        self,
        resource: str,
        updated_after: datetime,
        limit: int,
        properties: Sequence[str] = (),
    ) -> ListResponse:
        """Search items updated at or after ``updated_after``, oldest change first."""
        search_resource = self._search_resource(resource)
        request: Dict[str, Any] = {
            "limit": limit,
            "filterGroups": [
                {
                    "filters": [
                        search_filter(
                            search_resource.updated_at_sort_property,
                            GTE_OPERATOR,
                            str(to_unix_millis(updated_after)),
                        )
                    ]
                }
            ],
            "sorts": [
                {
                    "propertyName": search_resource.updated_at_sort_property,
                    "direction": ASCENDING,
                }
            ],
        }
        if properties:
            request["properties"] = list(properties)
        return self.search(resource, request)

    def search_by_created_before(
        self,
        resource: str,
        created_before: datetime,
        limit: int,
        after_item_id: Optional[int] = None,
        properties: Sequence[str] = (),
    ) -> ListResponse:
        """Search items created before ``created_before`` with ids >= ``after_item_id``."""
        search_resource = self._search_resource(resource)
        filters = [
            search_filter(
                search_resource.created_at_property,
                LT_OPERATOR,
                str(to_unix_millis(created_before)),
            )
        ]
        if after_item_id is not None:
            filters.append(
                search_filter(
                    search_resource.object_id_property, GTE_OPERATOR, str(after_item_id)
                )
            )
        request: Dict[str, Any] = {
            "limit": limit,
            "filterGroups": [{"filters": filters}],
            "sorts": [
                {
                    "propertyName": search_resource.created_at_property,
                    "direction": ASCENDING,
                }
            ],
        }
        if properties:
            request["properties"] = list(properties)
        return self.search(resource, request)

    # ------------------------------------------------------------------ Writing
    def create(self, resource: str, item: Mapping[str, Any]) -> None:
        path = self._catalog.create_paths.get(resource)
        if path is None:
            raise UnsupportedResourceError(resource, "create")
        self._request("POST", path, json=dict(item))

    def update(self, resource: str, item_id: str, item: Mapping[str, Any]) -> None:
        update_path = self._catalog.update_paths.get(resource)
        if update_path is None:
            raise UnsupportedResourceError(resource, "update")
        path = update_path.path.replace(OBJECT_ID_PLACEHOLDER, item_id)
        self._request(update_path.method, path, json=dict(item))

    def delete(self, resource: str, item_id: str) -> None:
        path = self._catalog.delete_paths.get(resource)
        if path is None:
            raise UnsupportedResourceError(resource, "delete")
        self._request("DELETE", path.replace(OBJECT_ID_PLACEHOLDER, item_id))

    # ------------------------------------------------------------------ Internal helpers
    def _search_resource(self, resource: str) -> SearchResource:
        search_resource = self._catalog.search_resources.get(resource)
        if search_resource is None:
            raise UnsupportedResourceError(resource, "search")
        return search_resource

    def _resolve_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self._base_url}{path}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        url = self._resolve_url(path)
        attempt = 1
        while True:
            try:
                response = self._client.request(
                    method, url, params=params, json=json, headers=self._headers
                )
                if not response.is_success:
                    raise UnexpectedStatusCodeError(response.status_code, response.content)
            except (UnexpectedStatusCodeError, httpx.RequestError) as exc:
                retriable = isinstance(exc, httpx.RequestError) or exc.retriable
                if not retriable or attempt >= self._retry_policy.max_attempts:
                    raise
                delay = self._retry_policy.next_delay(attempt + 1)
                logger.debug(
                    "%s %s failed (%s); retrying in %.2fs", method, url, exc, delay
                )
                if delay > 0:
                    self._sleep(delay)
                attempt += 1
                continue
            if not response.content:
                return None
            return response.json()


__all__ = [
    "DEFAULT_BASE_URL",
    "HubSpotClient",
    "Item",
    "ListOptions",
    "ListResponse",
    "Paging",
    "RetryPolicy",
    "get_time_field",
    "search_filter",
]

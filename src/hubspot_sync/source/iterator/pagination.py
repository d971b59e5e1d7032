"""Pagination strategies translating iterator queries into HubSpot requests.

Timestamp-based resources page with list filters and opaque next links;
search-based resources page with a search request bounded by object id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional, Protocol, Sequence, Tuple

from ...hubspot.client import HubSpotClient, Item, ListOptions, ListResponse, get_time_field
from ...hubspot.errors import FieldNotExistError
from ...hubspot.resources import ResourceCatalog, SearchResource, TimestampResource
from ...timestamps import EPOCH, parse_rfc3339
from .errors import IteratorError


@dataclass(frozen=True)
class Page:
    results: Sequence[Item] = field(default_factory=list)
    has_more: bool = False
    next_link: Optional[str] = None


class PaginationStrategy(Protocol):
    """Uniform view over both pagination capabilities."""

    resource: str
    supports_deletes: bool
    bounds_by_item_id: bool

    def fetch_snapshot_page(
        self,
        created_before: datetime,
        *,
        limit: int,
        cursor: Optional[str] = None,
        created_after: Optional[datetime] = None,
        after_item_id: Optional[int] = None,
    ) -> Page: ...

    def fetch_changes_page(self, updated_after: datetime, *, limit: int) -> Page: ...

    def created_at(self, item: Mapping[str, object]) -> datetime: ...

    def updated_at(self, item: Mapping[str, object]) -> datetime: ...

    def deleted_at(self, item: Mapping[str, object]) -> Optional[datetime]: ...


def _page_from(response: ListResponse, *, keep_link: bool) -> Page:
    paging = response.paging
    next_link = paging.next_link if (paging is not None and keep_link) else None
    return Page(
        results=list(response.results),
        has_more=paging is not None,
        next_link=next_link or None,
    )


class TimestampPaged:
    """List endpoint paging keyed by creation/update filters and next links."""

    bounds_by_item_id = False

    def __init__(
        self, client: HubSpotClient, resource: str, capability: TimestampResource
    ) -> None:
        self._client = client
        self.resource = resource
        self._capability = capability

    @property
    def supports_deletes(self) -> bool:
        return self._capability.supports_deletes

    def fetch_snapshot_page(
        self,
        created_before: datetime,
        *,
        limit: int,
        cursor: Optional[str] = None,
        created_after: Optional[datetime] = None,
        after_item_id: Optional[int] = None,
    ) -> Page:
        try:
            if cursor:
                response = self._client.list_by_next_link(cursor)
            else:
                response = self._client.list(
                    self.resource,
                    ListOptions(
                        limit=limit,
                        created_before=created_before,
                        created_after=created_after,
                        sort=self._capability.created_at_field,
                    ),
                )
        except Exception as exc:
            raise IteratorError(f"list timestamp items: {exc}") from exc
        return _page_from(response, keep_link=True)

    def fetch_changes_page(self, updated_after: datetime, *, limit: int) -> Page:
        try:
            response = self._client.list(
                self.resource,
                ListOptions(
                    limit=limit,
                    updated_after=updated_after,
                    sort=self._capability.updated_at_sort_key,
                    archived=True,
                ),
            )
        except Exception as exc:
            raise IteratorError(f"list timestamp items: {exc}") from exc
        return _page_from(response, keep_link=False)

    def created_at(self, item: Mapping[str, object]) -> datetime:
        return get_time_field(item, self._capability.created_at_field)

    def updated_at(self, item: Mapping[str, object]) -> datetime:
        return get_time_field(item, self._capability.updated_at_field)

    def deleted_at(self, item: Mapping[str, object]) -> Optional[datetime]:
        # Live items carry the Unix epoch in their deletion field.
        field_name = self._capability.deleted_at_field
        if not field_name:
            return None
        value = item.get(field_name)
        if value is None:
            return None
        if not isinstance(value, str):
            raise FieldNotExistError(field_name)
        deleted_at = parse_rfc3339(value)
        if deleted_at <= EPOCH:
            return None
        return deleted_at


class SearchPaged:
    """Search endpoint paging bounded by the last seen object id."""

    bounds_by_item_id = True
    supports_deletes = False

    def __init__(
        self,
        client: HubSpotClient,
        resource: str,
        capability: SearchResource,
        extra_properties: Sequence[str] = (),
    ) -> None:
        self._client = client
        self.resource = resource
        self._capability = capability
        self._properties: Tuple[str, ...] = tuple(extra_properties)

    def fetch_snapshot_page(
        self,
        created_before: datetime,
        *,
        limit: int,
        cursor: Optional[str] = None,
        created_after: Optional[datetime] = None,
        after_item_id: Optional[int] = None,
    ) -> Page:
        try:
            response = self._client.search_by_created_before(
                self.resource,
                created_before,
                limit,
                after_item_id=after_item_id,
                properties=self._properties,
            )
        except Exception as exc:
            raise IteratorError(f"list search items: {exc}") from exc
        return _page_from(response, keep_link=False)

    def fetch_changes_page(self, updated_after: datetime, *, limit: int) -> Page:
        try:
            response = self._client.search_by_updated_after(
                self.resource, updated_after, limit, properties=self._properties
            )
        except Exception as exc:
            raise IteratorError(f"list search items: {exc}") from exc
        return _page_from(response, keep_link=False)

    def created_at(self, item: Mapping[str, object]) -> datetime:
        return get_time_field(item, self._capability.created_at_field)

    def updated_at(self, item: Mapping[str, object]) -> datetime:
        return get_time_field(item, self._capability.updated_at_field)

    def deleted_at(self, item: Mapping[str, object]) -> Optional[datetime]:
        return None


def strategy_for(
    client: HubSpotClient,
    resource: str,
    *,
    catalog: Optional[ResourceCatalog] = None,
    extra_properties: Sequence[str] = (),
) -> PaginationStrategy:
    """Pick the pagination strategy declared for ``resource``."""
    capability = (catalog or client.catalog).capability(resource)
    if isinstance(capability, TimestampResource):
        return TimestampPaged(client, resource, capability)
    return SearchPaged(client, resource, capability, extra_properties)


__all__ = [
    "Page",
    "PaginationStrategy",
    "SearchPaged",
    "TimestampPaged",
    "strategy_for",
]

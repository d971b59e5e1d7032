"""Static capability tables describing how each HubSpot resource is read and written.

The tables are exposed through an immutable :class:`ResourceCatalog` so callers
can inject an alternative catalog (tests do) instead of patching module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Union

from .errors import UnsupportedResourceError

OBJECT_ID_PLACEHOLDER = "{objectId}"

RESULTS_FIELD_ID = "id"
RESULTS_FIELD_CREATED_AT = "createdAt"


@dataclass(frozen=True)
class TimestampResource:
    """Resource listed with ``createdBefore``/``updatedAfter`` filters and next links."""

    created_at_field: str
    updated_at_field: str
    deleted_at_field: Optional[str] = None
    updated_at_sort_key: str = "updatedAt"

    @property
    def supports_deletes(self) -> bool:
        return bool(self.deleted_at_field)


@dataclass(frozen=True)
class SearchResource:
    """Resource read through a CRM search endpoint with filter groups."""

    path: str
    created_at_field: str = "createdAt"
    updated_at_field: str = "updatedAt"
    created_at_property: str = "createdate"
    updated_at_sort_property: str = "hs_lastmodifieddate"
    object_id_property: str = "hs_object_id"

    @property
    def supports_deletes(self) -> bool:
        return False


@dataclass(frozen=True)
class ResourceUpdatePath:
    path: str
    method: str = "PATCH"


ResourceCapability = Union[TimestampResource, SearchResource]


def _freeze(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ResourceCatalog:
    """Read-only lookup of resource paths and pagination capabilities."""

    timestamp_resources: Mapping[str, TimestampResource] = field(default_factory=dict)
    search_resources: Mapping[str, SearchResource] = field(default_factory=dict)
    list_paths: Mapping[str, str] = field(default_factory=dict)
    create_paths: Mapping[str, str] = field(default_factory=dict)
    update_paths: Mapping[str, ResourceUpdatePath] = field(default_factory=dict)
    delete_paths: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in (
            "timestamp_resources",
            "search_resources",
            "list_paths",
            "create_paths",
            "update_paths",
            "delete_paths",
        ):
            object.__setattr__(self, name, _freeze(getattr(self, name)))

    def capability(self, resource: str) -> ResourceCapability:
        """Return the pagination capability for ``resource``.

        Timestamp-based listing wins when a resource declares both.
        """
        timestamp_resource = self.timestamp_resources.get(resource)
        if timestamp_resource is not None:
            return timestamp_resource
        search_resource = self.search_resources.get(resource)
        if search_resource is not None:
            return search_resource
        raise UnsupportedResourceError(resource, "reading")

    def is_readable(self, resource: str) -> bool:
        return resource in self.timestamp_resources or resource in self.search_resources

    def is_supported(self, resource: str) -> bool:
        return (
            resource in self.list_paths
            or resource in self.create_paths
            or resource in self.update_paths
            or resource in self.delete_paths
        )


def _crm_search(object_path: str, updated_sort: str = "hs_lastmodifieddate") -> SearchResource:
    return SearchResource(
        path=f"/crm/v3/objects/{object_path}/search",
        updated_at_sort_property=updated_sort,
    )


_CMS_BLOG_FIELDS = TimestampResource(
    created_at_field="created",
    updated_at_field="updated",
    deleted_at_field="deletedAt",
)
_CMS_PAGE_FIELDS = TimestampResource(
    created_at_field="createdAt",
    updated_at_field="updatedAt",
    deleted_at_field="deletedAt",
)
_CMS_PLAIN_FIELDS = TimestampResource(
    created_at_field="createdAt",
    updated_at_field="updatedAt",
)

_CRM_OBJECTS = {
    "crm.companies": "companies",
    "crm.contacts": "contacts",
    "crm.deals": "deals",
    "crm.feedbackSubmissions": "feedback_submissions",
    "crm.lineItems": "line_items",
    "crm.products": "products",
    "crm.tickets": "tickets",
    "crm.quotes": "quotes",
    "crm.calls": "calls",
    "crm.emails": "emails",
    "crm.meetings": "meetings",
    "crm.notes": "notes",
    "crm.tasks": "tasks",
}

_CMS_LIST_PATHS = {
    "cms.blogs.authors": "/cms/v3/blogs/authors",
    "cms.blogs.posts": "/cms/v3/blogs/posts",
    "cms.blogs.tags": "/cms/v3/blogs/tags",
    "cms.pages.landing": "/cms/v3/pages/landing-pages",
    "cms.pages.site": "/cms/v3/pages/site-pages",
    "cms.hubdb.tables": "/cms/v3/hubdb/tables",
    "cms.urlRedirects": "/cms/v3/url-redirects",
}

_CRM_PATHS = {name: f"/crm/v3/objects/{path}" for name, path in _CRM_OBJECTS.items()}

_WRITE_ONLY_PATHS = {
    "cms.domains": "/cms/v3/domains",
    "conversations.channels": "/conversations/v3/conversations/channels",
    "conversations.channelAccounts": "/conversations/v3/conversations/channel-accounts",
    "conversations.inboxes": "/conversations/v3/conversations/inboxes",
    "conversations.threads": "/conversations/v3/conversations/threads",
    "marketing.forms": "/marketing/v3/forms",
    "settings.users": "/settings/v3/users",
}

_ITEM_PATHS = {
    **{name: f"{path}/{OBJECT_ID_PLACEHOLDER}" for name, path in _CMS_LIST_PATHS.items()},
    **{name: f"{path}/{OBJECT_ID_PLACEHOLDER}" for name, path in _CRM_PATHS.items()},
    "cms.hubdb.tables": f"/cms/v3/hubdb/tables/{OBJECT_ID_PLACEHOLDER}/draft",
    "conversations.threads": (
        f"/conversations/v3/conversations/threads/{OBJECT_ID_PLACEHOLDER}"
    ),
    "marketing.forms": f"/marketing/v3/forms/{OBJECT_ID_PLACEHOLDER}",
    "settings.users": f"/settings/v3/users/{OBJECT_ID_PLACEHOLDER}",
}

_UPDATE_PATHS = {
    name: ResourceUpdatePath(path=path, method="PUT" if name == "settings.users" else "PATCH")
    for name, path in _ITEM_PATHS.items()
}


DEFAULT_CATALOG = ResourceCatalog(
    timestamp_resources={
        "cms.blogs.authors": _CMS_BLOG_FIELDS,
        "cms.blogs.posts": _CMS_BLOG_FIELDS,
        "cms.blogs.tags": _CMS_BLOG_FIELDS,
        "cms.pages.landing": _CMS_PAGE_FIELDS,
        "cms.pages.site": _CMS_PAGE_FIELDS,
        "cms.hubdb.tables": _CMS_PLAIN_FIELDS,
        "cms.urlRedirects": _CMS_PLAIN_FIELDS,
    },
    search_resources={
        name: _crm_search(
            path,
            "lastmodifieddate" if name == "crm.contacts" else "hs_lastmodifieddate",
        )
        for name, path in _CRM_OBJECTS.items()
    },
    list_paths={**_CMS_LIST_PATHS, **_CRM_PATHS},
    create_paths={**_CMS_LIST_PATHS, **_CRM_PATHS, **_WRITE_ONLY_PATHS},
    update_paths=_UPDATE_PATHS,
    delete_paths=_ITEM_PATHS,
)


__all__ = [
    "DEFAULT_CATALOG",
    "OBJECT_ID_PLACEHOLDER",
    "RESULTS_FIELD_CREATED_AT",
    "RESULTS_FIELD_ID",
    "ResourceCapability",
    "ResourceCatalog",
    "ResourceUpdatePath",
    "SearchResource",
    "TimestampResource",
]

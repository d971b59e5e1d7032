"""HubSpot API v3 client and resource capability tables."""

from .client import (
    DEFAULT_BASE_URL,
    HubSpotClient,
    ListOptions,
    ListResponse,
    Paging,
    RetryPolicy,
    get_time_field,
)
from .errors import (
    FieldNotExistError,
    HubSpotError,
    UnexpectedStatusCodeError,
    UnsupportedResourceError,
)
from .resources import (
    DEFAULT_CATALOG,
    RESULTS_FIELD_CREATED_AT,
    RESULTS_FIELD_ID,
    ResourceCatalog,
    ResourceUpdatePath,
    SearchResource,
    TimestampResource,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_CATALOG",
    "FieldNotExistError",
    "HubSpotClient",
    "HubSpotError",
    "ListOptions",
    "ListResponse",
    "Paging",
    "RESULTS_FIELD_CREATED_AT",
    "RESULTS_FIELD_ID",
    "ResourceCatalog",
    "ResourceUpdatePath",
    "RetryPolicy",
    "SearchResource",
    "TimestampResource",
    "UnexpectedStatusCodeError",
    "UnsupportedResourceError",
    "get_time_field",
]

"""Errors raised by the HubSpot API client."""

from __future__ import annotations

from typing import Optional


class HubSpotError(RuntimeError):
    """Base class for HubSpot client failures."""


class UnexpectedStatusCodeError(HubSpotError):
    """Raised when the HubSpot API answers with a non-2xx status code."""

    def __init__(self, status_code: int, body: bytes = b"") -> None:
        super().__init__(f"unexpected status code {status_code}")
        self.status_code = status_code
        self.body = body

    @property
    def retriable(self) -> bool:
        return self.status_code >= 500 or self.status_code == 429


class UnsupportedResourceError(HubSpotError, ValueError):
    """Raised when a resource has no mapping for the requested operation."""

    def __init__(self, resource: str, operation: Optional[str] = None) -> None:
        message = f"unsupported resource {resource!r}"
        if operation:
            message = f"{message} for {operation}"
        super().__init__(message)
        self.resource = resource
        self.operation = operation


class FieldNotExistError(HubSpotError, KeyError):
    """Raised when an item lacks a field required to order or classify it."""

    def __init__(self, field_name: str) -> None:
        super().__init__(field_name)
        self.field_name = field_name

    def __str__(self) -> str:
        return f"field {self.field_name!r} does not exist"


__all__ = [
    "FieldNotExistError",
    "HubSpotError",
    "UnexpectedStatusCodeError",
    "UnsupportedResourceError",
]

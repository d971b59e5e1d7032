"""RFC3339 helpers shared by the API client and iterator positions."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MILLISECOND = timedelta(milliseconds=1)

_RFC3339_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC3339 timestamp, tolerating nanosecond fractions."""
    match = _RFC3339_RE.match(value.strip())
    if match is None:
        raise ValueError(f"invalid RFC3339 timestamp {value!r}")
    fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
    offset = match.group("offset")
    if offset in {"Z", "z"}:
        offset = "+00:00"
    parsed = datetime.fromisoformat(
        f"{match.group('date')}T{match.group('time')}.{fraction}{offset}"
    )
    return parsed.astimezone(timezone.utc)


def format_rfc3339(value: datetime) -> str:
    """Format ``value`` in UTC using the shortest lossless fraction."""
    value = ensure_utc(value)
    if not value.microsecond:
        timespec = "seconds"
    elif value.microsecond % 1000 == 0:
        timespec = "milliseconds"
    else:
        timespec = "microseconds"
    return value.isoformat(timespec=timespec).replace("+00:00", "Z")


def format_query_timestamp(value: datetime) -> str:
    """Millisecond precision layout expected by list endpoint filters."""
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_unix_millis(value: datetime) -> int:
    return int((ensure_utc(value) - EPOCH) // ONE_MILLISECOND)


__all__ = [
    "EPOCH",
    "ONE_MILLISECOND",
    "ensure_utc",
    "format_query_timestamp",
    "format_rfc3339",
    "parse_rfc3339",
    "to_unix_millis",
    "utc_now",
]

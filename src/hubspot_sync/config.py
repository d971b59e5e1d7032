"""Runtime configuration helpers for the HubSpot sync connector."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .hubspot.client import DEFAULT_BASE_URL
from .hubspot.resources import DEFAULT_CATALOG, ResourceCatalog

KEY_ACCESS_TOKEN = "accessToken"
KEY_RESOURCE = "resource"
KEY_MAX_RETRIES = "maxRetries"
KEY_BASE_URL = "baseUrl"
KEY_REQUEST_TIMEOUT = "requestTimeout"
KEY_POLLING_PERIOD = "pollingPeriod"
KEY_BUFFER_SIZE = "bufferSize"
KEY_EXTRA_PROPERTIES = "extraProperties"
KEY_SNAPSHOT = "snapshot"

DEFAULT_MAX_RETRIES = 4
DEFAULT_POLLING_PERIOD_SECONDS = 5.0
DEFAULT_BUFFER_SIZE = 100
MAX_BUFFER_SIZE = 100
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class ConfigError(ValueError):
    """Raised when configuration values are missing or out of range."""


@dataclass(frozen=True)
class ConnectorConfig:
    """Settings shared by the source and the destination."""

    access_token: str
    resource: str
    max_retries: int = DEFAULT_MAX_RETRIES
    base_url: str = DEFAULT_BASE_URL
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS


@dataclass(frozen=True)
class SourceConfig:
    """Source-specific settings layered on top of :class:`ConnectorConfig`."""

    connector: ConnectorConfig
    polling_period_seconds: float = DEFAULT_POLLING_PERIOD_SECONDS
    buffer_size: int = DEFAULT_BUFFER_SIZE
    extra_properties: Tuple[str, ...] = ()
    snapshot: bool = True


@dataclass(frozen=True)
class Settings:
    """Immutable container for service configuration."""

    source: SourceConfig
    checkpoint_backend: str = "file"
    checkpoint_path: Path = Path("hubspot_positions.json")
    checkpoint_fsync: bool = False
    log_level: str = "INFO"

    @property
    def connector(self) -> ConnectorConfig:
        return self.source.connector


def parse_duration(value: str) -> float:
    """Parse Go-style durations such as ``5s``, ``250ms`` or ``1m30s`` into seconds."""
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    try:
        return float(text)
    except ValueError:
        pass
    total = 0.0
    position = 0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "t", "true", "yes", "on"}:
        return True
    if normalized in {"0", "f", "false", "no", "off"}:
        return False
    raise ValueError(f"invalid boolean {value!r}")


def _as_bool(value: Optional[str], default: bool) -> bool:
    """Convert environment strings to booleans."""
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no"}


def _split_properties(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(entry for entry in re.split(r"[,\s]+", value) if entry)


def _parse_connector(
    cfg: Mapping[str, str], catalog: ResourceCatalog, problems: List[str]
) -> ConnectorConfig:
    access_token = (cfg.get(KEY_ACCESS_TOKEN) or "").strip()
    resource = (cfg.get(KEY_RESOURCE) or "").strip()
    if not access_token:
        problems.append(f"{KEY_ACCESS_TOKEN!r} value must be set")
    if not resource:
        problems.append(f"{KEY_RESOURCE!r} value must be set")
    elif not catalog.is_supported(resource):
        problems.append(f"{KEY_RESOURCE!r} value {resource!r} is not a supported resource")

    max_retries = DEFAULT_MAX_RETRIES
    raw_retries = cfg.get(KEY_MAX_RETRIES)
    if raw_retries:
        try:
            max_retries = int(raw_retries)
        except ValueError:
            problems.append(f"{KEY_MAX_RETRIES!r} value {raw_retries!r} is not an integer")
        else:
            if max_retries < 1:
                problems.append(f"{KEY_MAX_RETRIES!r} value must be greater than or equal to 1")

    timeout = DEFAULT_REQUEST_TIMEOUT_SECONDS
    raw_timeout = cfg.get(KEY_REQUEST_TIMEOUT)
    if raw_timeout:
        try:
            timeout = parse_duration(raw_timeout)
        except ValueError:
            problems.append(f"{KEY_REQUEST_TIMEOUT!r} value {raw_timeout!r} is not a duration")

    base_url = (cfg.get(KEY_BASE_URL) or DEFAULT_BASE_URL).strip().rstrip("/")

    return ConnectorConfig(
        access_token=access_token,
        resource=resource,
        max_retries=max_retries,
        base_url=base_url,
        request_timeout_seconds=timeout,
    )


def parse_connector_config(
    cfg: Mapping[str, str], *, catalog: ResourceCatalog = DEFAULT_CATALOG
) -> ConnectorConfig:
    """Parse the settings shared by source and destination from a string map."""
    problems: List[str] = []
    config = _parse_connector(cfg, catalog, problems)
    if problems:
        raise ConfigError("; ".join(problems))
    return config


def parse_source_config(
    cfg: Mapping[str, str], *, catalog: ResourceCatalog = DEFAULT_CATALOG
) -> SourceConfig:
    """Parse and validate source settings from a string map."""
    problems: List[str] = []
    connector = _parse_connector(cfg, catalog, problems)
    if connector.resource and catalog.is_supported(connector.resource):
        if not catalog.is_readable(connector.resource):
            problems.append(
                f"{KEY_RESOURCE!r} value {connector.resource!r} cannot be read"
            )

    polling_period = DEFAULT_POLLING_PERIOD_SECONDS
    raw_period = cfg.get(KEY_POLLING_PERIOD)
    if raw_period:
        try:
            parsed_period = parse_duration(raw_period)
        except ValueError:
            problems.append(f"{KEY_POLLING_PERIOD!r} value {raw_period!r} is not a duration")
        else:
            if parsed_period < 0:
                problems.append(f"{KEY_POLLING_PERIOD!r} value must be greater than or equal to 0")
            elif parsed_period > 0:
                polling_period = parsed_period

    buffer_size = DEFAULT_BUFFER_SIZE
    raw_buffer = cfg.get(KEY_BUFFER_SIZE)
    if raw_buffer:
        try:
            buffer_size = int(raw_buffer)
        except ValueError:
            problems.append(f"{KEY_BUFFER_SIZE!r} value {raw_buffer!r} is not an integer")
        else:
            if buffer_size < 1:
                problems.append(f"{KEY_BUFFER_SIZE!r} value must be greater than or equal to 1")
            elif buffer_size > MAX_BUFFER_SIZE:
                problems.append(
                    f"{KEY_BUFFER_SIZE!r} value must be less than or equal to {MAX_BUFFER_SIZE}"
                )

    snapshot = True
    raw_snapshot = cfg.get(KEY_SNAPSHOT)
    if raw_snapshot:
        try:
            snapshot = _parse_bool(raw_snapshot)
        except ValueError:
            problems.append(f"{KEY_SNAPSHOT!r} value {raw_snapshot!r} is not a boolean")

    if problems:
        raise ConfigError("; ".join(problems))

    return SourceConfig(
        connector=connector,
        polling_period_seconds=polling_period,
        buffer_size=buffer_size,
        extra_properties=_split_properties(cfg.get(KEY_EXTRA_PROPERTIES)),
        snapshot=snapshot,
    )


def _coerce_checkpoint_backend(value: Optional[str]) -> str:
    if value is None:
        return "file"
    normalized = value.strip().lower()
    if normalized in {"memory", "file"}:
        return normalized
    return "file"


def load_settings() -> Settings:
    """Load configuration from the environment (and `.env`)."""
    load_dotenv()
    env_map = {
        KEY_ACCESS_TOKEN: os.getenv("HUBSPOT_ACCESS_TOKEN", ""),
        KEY_RESOURCE: os.getenv("HUBSPOT_RESOURCE", ""),
        KEY_MAX_RETRIES: os.getenv("HUBSPOT_MAX_RETRIES", ""),
        KEY_BASE_URL: os.getenv("HUBSPOT_BASE_URL", ""),
        KEY_REQUEST_TIMEOUT: os.getenv("HUBSPOT_REQUEST_TIMEOUT_SECONDS", ""),
        KEY_POLLING_PERIOD: os.getenv("SOURCE_POLLING_PERIOD", ""),
        KEY_BUFFER_SIZE: os.getenv("SOURCE_BUFFER_SIZE", ""),
        KEY_EXTRA_PROPERTIES: os.getenv("SOURCE_EXTRA_PROPERTIES", ""),
        KEY_SNAPSHOT: os.getenv("SOURCE_SNAPSHOT", ""),
    }
    source = parse_source_config(env_map)

    return Settings(
        source=source,
        checkpoint_backend=_coerce_checkpoint_backend(os.getenv("CHECKPOINT_BACKEND")),
        checkpoint_path=Path(os.getenv("CHECKPOINT_PATH", "hubspot_positions.json")),
        checkpoint_fsync=_as_bool(os.getenv("CHECKPOINT_FSYNC"), False),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


__all__ = [
    "ConfigError",
    "ConnectorConfig",
    "Settings",
    "SourceConfig",
    "load_settings",
    "parse_connector_config",
    "parse_duration",
    "parse_source_config",
]

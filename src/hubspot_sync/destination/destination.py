"""HubSpot destination connector."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Mapping, Optional, Union

from ..config import ConnectorConfig, parse_connector_config
from ..hubspot.client import HubSpotClient
from ..source.iterator.records import Record
from .writer import Writer, WriterError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ConnectorConfig], HubSpotClient]


def _default_client(config: ConnectorConfig) -> HubSpotClient:
    return HubSpotClient(
        config.access_token,
        base_url=config.base_url,
        max_retries=config.max_retries,
        timeout_seconds=config.request_timeout_seconds,
    )


class DestinationWriteError(WriterError):
    """Raised when a batch stops part-way; ``written`` counts applied records."""

    def __init__(self, written: int, cause: BaseException) -> None:
        super().__init__(f"write record: {cause}")
        self.written = written


class Destination:
    def __init__(self, *, client_factory: ClientFactory = _default_client) -> None:
        self._client_factory = client_factory
        self._config: Optional[ConnectorConfig] = None
        self._client: Optional[HubSpotClient] = None
        self._writer: Optional[Writer] = None

    def configure(self, cfg: Union[Mapping[str, str], ConnectorConfig]) -> None:
        if isinstance(cfg, ConnectorConfig):
            self._config = cfg
        else:
            self._config = parse_connector_config(cfg)

    def open(self) -> None:
        if self._config is None:
            raise RuntimeError("destination is not configured")
        self._client = self._client_factory(self._config)
        self._writer = Writer(self._client, self._config.resource)

    def write(self, records: Iterable[Record]) -> int:
        """Apply ``records`` in order, stopping at the first failure."""
        if self._writer is None:
            raise RuntimeError("destination is not open")
        written = 0
        for record in records:
            try:
                self._writer.write(record)
            except WriterError as exc:
                raise DestinationWriteError(written, exc) from exc
            written += 1
        return written

    def teardown(self) -> None:
        logger.debug("got teardown")
        if self._client is not None:
            self._client.close()
            self._client = None
        self._writer = None


__all__ = ["Destination", "DestinationWriteError"]

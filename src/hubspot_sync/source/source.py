"""HubSpot source connector driving the combined iterator."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Mapping, Optional, Protocol, Union

from ..config import SourceConfig, parse_source_config
from ..hubspot.client import HubSpotClient
from .iterator import CombinedIterator, EmptyPositionError, Position, Record, parse_position

logger = logging.getLogger(__name__)


class BackoffRetry(Exception):
    """Signals the host that no record is ready and it should retry later."""


class Iterator(Protocol):
    def has_next(self, *, cancel: Optional[threading.Event] = None) -> bool: ...

    def next(
        self,
        *,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> Record: ...

    def stop(self) -> None: ...


IteratorFactory = Callable[[HubSpotClient, SourceConfig, Optional[Position]], Iterator]
ClientFactory = Callable[[SourceConfig], HubSpotClient]


def _default_client(config: SourceConfig) -> HubSpotClient:
    connector = config.connector
    return HubSpotClient(
        connector.access_token,
        base_url=connector.base_url,
        max_retries=connector.max_retries,
        timeout_seconds=connector.request_timeout_seconds,
    )


def _default_iterator(
    client: HubSpotClient, config: SourceConfig, position: Optional[Position]
) -> Iterator:
    return CombinedIterator(
        client,
        config.connector.resource,
        buffer_size=config.buffer_size,
        poll_interval=config.polling_period_seconds,
        position=position,
        extra_properties=config.extra_properties,
        snapshot=config.snapshot,
        catalog=client.catalog,
    )


class Source:
    """Reads change records for one HubSpot resource.

    ``read`` never blocks waiting for the API: when nothing is queued it raises
    :class:`BackoffRetry` and the host decides how long to wait.
    """

    def __init__(
        self,
        *,
        client_factory: ClientFactory = _default_client,
        iterator_factory: IteratorFactory = _default_iterator,
    ) -> None:
        self._client_factory = client_factory
        self._iterator_factory = iterator_factory
        self._config: Optional[SourceConfig] = None
        self._client: Optional[HubSpotClient] = None
        self._iterator: Optional[Iterator] = None

    @property
    def config(self) -> SourceConfig:
        if self._config is None:
            raise RuntimeError("source is not configured")
        return self._config

    def configure(self, cfg: Union[Mapping[str, str], SourceConfig]) -> None:
        if isinstance(cfg, SourceConfig):
            self._config = cfg
        else:
            self._config = parse_source_config(cfg)

    def open(self, position: Optional[bytes] = None) -> None:
        config = self.config
        resumed: Optional[Position] = None
        try:
            resumed = parse_position(position)
        except EmptyPositionError:
            logger.info("starting %s from scratch", config.connector.resource)

        self._client = self._client_factory(config)
        try:
            self._iterator = self._iterator_factory(self._client, config, resumed)
        except Exception:
            self._client.close()
            self._client = None
            raise

    def read(self, *, cancel: Optional[threading.Event] = None) -> Record:
        if self._iterator is None:
            raise RuntimeError("source is not open")
        if not self._iterator.has_next(cancel=cancel):
            raise BackoffRetry("no records available")
        return self._iterator.next(cancel=cancel)

    def ack(self, position: bytes) -> None:
        logger.debug("got ack: %s", position.decode("utf-8", errors="replace"))

    def teardown(self) -> None:
        if self._iterator is not None:
            self._iterator.stop()
            self._iterator = None
        if self._client is not None:
            self._client.close()
            self._client = None


__all__ = ["BackoffRetry", "Iterator", "Source"]

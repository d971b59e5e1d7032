"""Runtime that drives the HubSpot source and destination from the command line."""

from __future__ import annotations

import json
import logging
import sys
import threading
from typing import IO, Iterable, Iterator, Optional

from .checkpoint import CheckpointStore, build_checkpoint_store
from .config import Settings, load_settings
from .destination import Destination
from .source import BackoffRetry, Source
from .source.iterator import IteratorCancelledError, Record

logger = logging.getLogger(__name__)


class SourceRuntime:
    """Reads records for the configured resource and emits them as JSON lines.

    Each record's position is checkpointed after it has been written, so a
    restart resumes right after the last emitted record.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        output: Optional[IO[str]] = None,
        source: Optional[Source] = None,
        checkpoints: Optional[CheckpointStore] = None,
    ) -> None:
        self.settings = settings
        self._output = output if output is not None else sys.stdout
        self._source = source or Source()
        self._checkpoints = checkpoints or build_checkpoint_store(
            settings.checkpoint_backend,
            settings.checkpoint_path,
            fsync=settings.checkpoint_fsync,
        )
        self._stop_event = threading.Event()
        self.records_emitted = 0

    @property
    def resource(self) -> str:
        return self.settings.connector.resource

    def run(self, *, max_records: Optional[int] = None) -> int:
        """Read until stopped (or ``max_records`` are emitted); returns the count."""
        saved = self._checkpoints.load(self.resource)
        self._source.configure(self.settings.source)
        self._source.open(saved.encode("utf-8") if saved else None)
        if saved:
            logger.info("resuming %s from checkpoint", self.resource)
        try:
            while not self._stop_event.is_set():
                if max_records is not None and self.records_emitted >= max_records:
                    break
                try:
                    record = self._source.read(cancel=self._stop_event)
                except BackoffRetry:
                    self._stop_event.wait(self.settings.source.polling_period_seconds)
                    continue
                except IteratorCancelledError:
                    if self._stop_event.is_set():
                        break
                    raise
                self._emit(record)
        except KeyboardInterrupt:
            logger.info("shutdown requested (KeyboardInterrupt)")
        finally:
            self._source.teardown()
        return self.records_emitted

    def stop(self) -> None:
        self._stop_event.set()

    def _emit(self, record: Record) -> None:
        self._output.write(json.dumps(record.to_dict(), sort_keys=True) + "\n")
        self._output.flush()
        self._checkpoints.save(self.resource, record.position.decode("utf-8"))
        self._source.ack(record.position)
        self.records_emitted += 1


def iter_records(stream: IO[str]) -> Iterator[Record]:
    """Yield records from JSON lines, skipping blank lines."""
    for line_number, line in enumerate(stream, start=1):
        text = line.strip()
        if not text:
            continue
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"line {line_number}: invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"line {line_number}: record must be a JSON object")
        yield Record.from_dict(data)


def write_records(
    settings: Settings,
    records: Iterable[Record],
    *,
    destination: Optional[Destination] = None,
) -> int:
    destination = destination or Destination()
    destination.configure(settings.connector)
    destination.open()
    try:
        written = destination.write(records)
    finally:
        destination.teardown()
    logger.info("wrote %d record(s) to %s", written, settings.connector.resource)
    return written


def configure_logging(level: str = "INFO") -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        )


def main() -> None:
    """Entrypoint used by both python -m and the console script hook."""
    settings = load_settings()
    configure_logging(settings.log_level)
    runtime = SourceRuntime(settings)
    runtime.run()


__all__ = [
    "SourceRuntime",
    "configure_logging",
    "iter_records",
    "main",
    "write_records",
]

"""Source connector reading HubSpot resources as change records."""

from .source import BackoffRetry, Iterator, Source

__all__ = ["BackoffRetry", "Iterator", "Source"]

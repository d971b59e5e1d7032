"""Change capture connector for HubSpot CRM and CMS resources."""

from .source.iterator import CombinedIterator, Position, Record, parse_position


def main() -> None:
    """Entrypoint proxy that defers importing the service until needed."""

    from .service import main as _service_main

    _service_main()


__all__ = ["main", "CombinedIterator", "Position", "Record", "parse_position"]

"""Command line interface for the HubSpot sync connector."""

from __future__ import annotations

import argparse
import sys
from typing import Optional

from .config import ConfigError, load_settings
from .service import SourceRuntime, configure_logging, iter_records, write_records


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HubSpot change capture connector")
    subparsers = parser.add_subparsers(dest="command", required=True)

    read_parser = subparsers.add_parser(
        "read", help="Stream change records for the configured resource to stdout"
    )
    read_parser.add_argument(
        "--max-records",
        type=int,
        default=None,
        help="Stop after emitting this many records",
    )

    subparsers.add_parser(
        "write", help="Apply JSON-lines records from stdin to the configured resource"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2
    configure_logging(settings.log_level)

    if args.command == "read":
        runtime = SourceRuntime(settings)
        runtime.run(max_records=args.max_records)
        return 0

    if args.command == "write":
        written = write_records(settings, iter_records(sys.stdin))
        print(f"Wrote {written} record(s)")
        return 0

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":
    sys.exit(main())

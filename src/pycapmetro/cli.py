"""Command-line entry point.

Usage::

    pycapmetro run                      # poll forever
    pycapmetro stats                    # print store row counts
    pycapmetro import-stops stops.txt   # load a GTFS stop catalog

Configuration comes from ``CMDATA_*`` environment variables; the options
below override them.
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pycapmetro import __version__
from pycapmetro.collector import run
from pycapmetro.config import CapMetroConfig
from pycapmetro.exceptions import CapMetroConfigError, StoreConnectionError, StoreError
from pycapmetro.models import Stop
from pycapmetro.store import open_store

_logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pycapmetro", description="Transit vehicle position collector")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--store", dest="store_url", help="Store URL (default: $CMDATA_STORE_URL)")

    sub = parser.add_subparsers(dest="command", required=True)

    run_parser = sub.add_parser("run", help="Poll the feed and derive stop times forever")
    run_parser.add_argument("--feed-url", help="Feed URL template with a {route} placeholder")
    run_parser.add_argument("--routes", help="Comma-separated route ids to poll")

    sub.add_parser("stats", help="Print store statistics")

    import_parser = sub.add_parser("import-stops", help="Load stops from a GTFS stops.txt file")
    import_parser.add_argument("path", type=Path, help="CSV file with stop_id, stop_lat, stop_lon columns")
    return parser


def _config_from_args(args: argparse.Namespace) -> CapMetroConfig:
    overrides: dict[str, Any] = {}
    if args.store_url:
        overrides["store_url"] = args.store_url
    if getattr(args, "feed_url", None):
        overrides["feed_url"] = args.feed_url
    if getattr(args, "routes", None):
        routes = tuple(part.strip() for part in args.routes.split(",") if part.strip())
        overrides["routes"] = routes
    return CapMetroConfig.from_env(**overrides)


def read_stops(path: Path) -> tuple[list[Stop], int]:
    """Parse a GTFS ``stops.txt``; returns the stops and the number of rows skipped."""
    stops: list[Stop] = []
    skipped = 0
    with path.open(newline="", encoding="utf-8-sig") as fh:
        for line_no, row in enumerate(csv.DictReader(fh), start=2):
            try:
                stops.append(Stop.model_validate(row))
            except ValidationError as exc:
                skipped += 1
                _logger.warning("Skipping %s line %d: %s", path.name, line_no, exc.errors()[0]["msg"])
    return stops, skipped


async def _print_stats(config: CapMetroConfig) -> None:
    store = open_store(config.store_url)
    await store.connect()
    try:
        stats = await store.stats()
    finally:
        await store.close()
    latest = stats.latest_position.isoformat() if stats.latest_position else "-"
    print(f"vehicle positions:  {stats.positions}")
    print(f"vehicles:           {stats.vehicles}")
    print(f"stops:              {stats.stops}")
    print(f"vehicle stop times: {stats.stop_times}")
    print(f"latest position:    {latest}")


async def _import_stops(config: CapMetroConfig, path: Path) -> None:
    stops, skipped = read_stops(path)
    store = open_store(config.store_url)
    await store.connect()
    try:
        inserted = await store.insert_stops(stops)
    finally:
        await store.close()
    _logger.info("Imported %d stops from %s (%d rows skipped)", inserted, path, skipped)


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _config_from_args(args)
        if args.command == "run":
            asyncio.run(run(config))
        elif args.command == "stats":
            asyncio.run(_print_stats(config))
        elif args.command == "import-stops":
            asyncio.run(_import_stops(config, args.path))
    except CapMetroConfigError as exc:
        _logger.error("Configuration error: %s", exc)
        return 2
    except StoreConnectionError as exc:
        _logger.error("%s", exc)
        return 1
    except StoreError as exc:
        _logger.error("Store error: %s", exc)
        return 1
    except OSError as exc:
        _logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        _logger.info("Interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Command line entry point.

Usage:
    py-cellgroups serve [--host HOST] [--port PORT]
    py-cellgroups groups ARCHIVE [--occupied ID ...] [--extract-dir DIR]
"""

import argparse
import json
import sys
import tempfile
from pathlib import Path

import structlog

from .config import settings
from .core.errors import DatasetLoadError
from .core.occupancy import OccupancyManager
from .dataset.loader import read_shapefile_zip
from .utils.logging import configure_logging

logger = structlog.get_logger()


def run_server(args: argparse.Namespace) -> int:
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "py_cellgroups.api.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
    )
    return 0


def print_groups(args: argparse.Namespace) -> int:
    """Load an archive offline and print the free areas as JSON."""
    manager = OccupancyManager(area_label=args.label, cell_key=args.cell_key)

    with tempfile.TemporaryDirectory() as scratch:
        extract_dir = Path(args.extract_dir) if args.extract_dir else Path(scratch)
        try:
            records = read_shapefile_zip(Path(args.archive), extract_dir)
        except DatasetLoadError as e:
            logger.error("Failed to load geometry dataset", error=str(e))
            return 1

    manager.load(records)
    areas = manager.update(args.occupied or [])
    json.dump([area.to_payload() for area in areas], sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Free cell grouping service")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve.add_argument("--host", help="Bind address (defaults to API_HOST)")
    serve.add_argument("--port", type=int, help="Port (defaults to API_PORT)")
    serve.set_defaults(func=run_server)

    groups = subparsers.add_parser("groups", help="Print free areas for a dataset archive")
    groups.add_argument("archive", help="ZIP archive holding the shapefile")
    groups.add_argument("--occupied", nargs="*", default=[], help="Occupied cell identifiers")
    groups.add_argument("--extract-dir", help="Where to extract the archive (temporary by default)")
    groups.add_argument("--cell-key", default=settings.cell_key_field, help="Identifier attribute")
    groups.add_argument("--label", default=settings.area_label, help="Area label")
    groups.set_defaults(func=print_groups)

    return parser


def main(argv=None) -> int:
    """Main function."""
    args = build_parser().parse_args(argv)
    # logs go to stderr so the JSON output stays clean
    configure_logging(settings.log_level, settings.log_format, stream=sys.stderr)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

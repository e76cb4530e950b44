"""CLI entry point for searchsync."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="searchsync",
        description="searchsync — search index synchronization and query tool",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"searchsync {_get_version()}",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("setup-schema", help="Register the index schema (idempotent)")
    commands.add_parser("health", help="Report search engine health")

    get = commands.add_parser("get", help="Fetch an indexed document by record id")
    get.add_argument("record_id", help="Record identifier")

    search = commands.add_parser("search", help="Search the index")
    search.add_argument("--name", default=None, help="Text query over the name (partial tokens allowed)")
    search.add_argument(
        "--property",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        type=_parse_property,
        help="Exact property constraint; repeat to AND several",
    )
    search.add_argument("--taxon", action="append", default=None, help="Taxon id; repeat to match any of several")
    search.add_argument("--price-min", type=float, default=None, help="Inclusive lower price bound")
    search.add_argument("--price-max", type=float, default=None, help="Inclusive upper price bound")
    search.add_argument("--page", type=int, default=1, help="1-based page number")
    search.add_argument("--page-size", type=int, default=None, help="Hits per page")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    from pydantic import ValidationError

    from searchsync.adapters.base.exceptions import AdapterError, DocumentNotFoundError
    from searchsync.config.settings import Settings
    from searchsync.observability.logging import setup_logging

    try:
        if args.config:
            config_path = Path(args.config)
            if not config_path.exists():
                print(f"Error: Config file not found: {config_path}", file=sys.stderr)
                return 1
            settings = Settings.from_yaml(config_path)
        else:
            settings = Settings()
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.log_level:
        settings.observability.log_level = args.log_level
    setup_logging(settings.observability)

    try:
        output = asyncio.run(_run(args, settings))
    except DocumentNotFoundError as e:
        print(f"Not found: {e}", file=sys.stderr)
        return 1
    except AdapterError as e:
        hint = " (transient, safe to retry)" if e.retryable else ""
        print(f"Error: {e}{hint}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"Invalid request: {e}", file=sys.stderr)
        return 2

    print(json.dumps(output, indent=2, default=str))
    return 0


async def _run(args: argparse.Namespace, settings: Any) -> dict[str, Any]:
    from searchsync.core.engine import SearchSyncEngine
    from searchsync.models.query import SearchRequest

    engine = SearchSyncEngine(settings)
    await engine.initialize(setup_schema=args.command == "setup-schema")
    try:
        if args.command == "setup-schema":
            return {"document_type": engine.document_type, "schema": engine.mapper.schema()}
        if args.command == "health":
            return (await engine.health_check()).model_dump()
        if args.command == "get":
            return (await engine.get(args.record_id)).model_dump(mode="json")

        request = SearchRequest(
            name_query=args.name,
            property_filters=args.property,
            taxon_filter=args.taxon,
            price_min=args.price_min,
            price_max=args.price_max,
            page=args.page,
            page_size=args.page_size,
        )
        return (await engine.search(request)).to_dict()
    finally:
        await engine.shutdown()


def _parse_property(value: str) -> dict[str, str]:
    key, sep, prop_value = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got {value!r}")
    return {key: prop_value}


def _get_version() -> str:
    """Get the package version."""
    try:
        from searchsync import __version__

        return __version__
    except ImportError:
        return "unknown"


if __name__ == "__main__":
    sys.exit(main())

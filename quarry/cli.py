"""CLI entry point for quarry."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Sequence

from quarry.config.loader import initialize_config, load_config
from quarry.core.logging import configure_logging
from quarry.store.database import Database
from quarry.store.errors import QuarryError
from quarry.store.values import to_json_safe


def _add_store_arguments(parser: argparse.ArgumentParser, *, seedable: bool = True) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config path (defaults to $QUARRY_CONFIG, then the packaged defaults)",
    )
    if seedable:
        parser.add_argument("--no-seed", action="store_true", help="Start from empty collections")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quarry")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create starter config")
    init_parser.add_argument("--config", type=Path, default=Path("./config/quarry.yml"))
    init_parser.add_argument("--force", action="store_true")

    collections_parser = subparsers.add_parser("collections", help="List collections and document counts")
    _add_store_arguments(collections_parser)

    find_parser = subparsers.add_parser("find", help="Query a collection of the in-memory store")
    find_parser.add_argument("collection", type=str, help="Model name (User) or collection name (users)")
    _add_store_arguments(find_parser)
    find_parser.add_argument("--filter", type=str, default="{}", help="JSON filter document")
    find_parser.add_argument("--select", type=str, default=None, help="Projection, e.g. 'email name -_id'")
    find_parser.add_argument(
        "--sort",
        type=str,
        default=None,
        help="Sort, e.g. --sort=-createdAt (descending keys need the '=' form)",
    )
    find_parser.add_argument("--limit", type=int, default=20)

    aggregate_parser = subparsers.add_parser("aggregate", help="Run an aggregation pipeline")
    aggregate_parser.add_argument("collection", type=str, help="Model name (User) or collection name (users)")
    _add_store_arguments(aggregate_parser)
    aggregate_parser.add_argument("--pipeline", type=str, required=True, help="JSON pipeline array")

    logs_parser = subparsers.add_parser("logs", help="Show log sink configuration")
    _add_store_arguments(logs_parser, seedable=False)
    return parser


def _load_json(raw: str, *, expected: type, label: str) -> Any:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{label} is not valid JSON: {exc.msg}") from exc
    if not isinstance(value, expected):
        raise ValueError(f"{label} must be a JSON {expected.__name__}")
    return value


def _open_database(config_path: Path | None, *, no_seed: bool = False) -> Database:
    overrides = {"store.seed_fixtures": False} if no_seed else None
    config = load_config(config_path, overrides=overrides)
    configure_logging(config.logging)
    database = Database(config.store)
    database.initialize()
    return database


def _print_error(message: str) -> int:
    print(json.dumps({"error": message}, indent=2))
    return 1


def cmd_init(config_path: Path, force: bool) -> int:
    initialize_config(config_path, force=force)
    print(f"wrote config: {config_path}")
    return 0


def cmd_collections(config_path: Path | None, *, no_seed: bool = False) -> int:
    database = _open_database(config_path, no_seed=no_seed)
    payload = {
        "identity_field": database.config.identity_field,
        "collections": {name: len(database.collection(name)) for name in database.collection_names()},
        "models": dict(database.config.models),
    }
    print(json.dumps(payload, indent=2))
    return 0


def cmd_find(
    config_path: Path | None,
    collection: str,
    *,
    filter_json: str,
    select: str | None,
    sort: str | None,
    limit: int,
    no_seed: bool = False,
) -> int:
    try:
        query = _load_json(filter_json, expected=dict, label="filter")
    except ValueError as exc:
        return _print_error(str(exc))
    database = _open_database(config_path, no_seed=no_seed)
    try:
        cursor = database.model(collection).find(query).lean().limit(limit)
    except QuarryError as exc:
        return _print_error(str(exc))
    if select:
        cursor = cursor.select(select)
    if sort:
        cursor = cursor.sort(sort)
    documents = asyncio.run(cursor.exec())
    print(json.dumps({"collection": collection, "count": len(documents), "documents": to_json_safe(documents)}, indent=2))
    return 0


def cmd_aggregate(config_path: Path | None, collection: str, *, pipeline_json: str, no_seed: bool = False) -> int:
    try:
        pipeline = _load_json(pipeline_json, expected=list, label="pipeline")
    except ValueError as exc:
        return _print_error(str(exc))
    database = _open_database(config_path, no_seed=no_seed)
    try:
        proxy = database.model(collection)
        results = asyncio.run(proxy.aggregate(pipeline))
    except QuarryError as exc:
        return _print_error(str(exc))
    print(json.dumps({"collection": collection, "results": to_json_safe(results)}, indent=2))
    return 0


def cmd_logs(config_path: Path | None) -> int:
    config = load_config(config_path)
    payload = {
        "format": config.logging.fmt,
        "level": config.logging.level,
        "sink": config.logging.sink,
        "file_path": config.logging.file_path,
        "service_name": config.logging.service_name,
    }
    print(json.dumps(payload, indent=2))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args.config, args.force)
    if args.command == "collections":
        return cmd_collections(args.config, no_seed=args.no_seed)
    if args.command == "find":
        return cmd_find(
            args.config,
            args.collection,
            filter_json=args.filter,
            select=args.select,
            sort=args.sort,
            limit=args.limit,
            no_seed=args.no_seed,
        )
    if args.command == "aggregate":
        return cmd_aggregate(args.config, args.collection, pipeline_json=args.pipeline, no_seed=args.no_seed)
    if args.command == "logs":
        return cmd_logs(args.config)

    parser.error(f"unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())

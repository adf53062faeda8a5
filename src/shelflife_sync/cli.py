"""Command line interface for inspecting and editing synced collections.

Results go to stdout; logs and diagnostics go to stderr.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from .config_schema import LoggingConfig, build_config
from .core.client import DocumentStoreClient
from .domain import Repositories, build_repositories
from .logger import setup_logging
from .lifespan import store_lifespan
from .sync import (
    HttpDocumentStore,
    SyncRepository,
    format_mutation_result,
    format_snapshot,
    snapshot_to_json,
)

logger = logging.getLogger(__name__)

KINDS = ("recipes", "households", "food-items")


def _print_snapshot(repo: SyncRepository, as_json: bool) -> None:
    entities = repo.snapshot()
    selected = repo.selected()
    if as_json:
        print(json.dumps(snapshot_to_json(entities, selected), indent=2), flush=True)
    else:
        print(format_snapshot(repo.store.collection, entities, selected), flush=True)


def _select_repository(kind: str, repos: Repositories) -> SyncRepository:
    match kind:
        case "recipes":
            return repos.recipes
        case "households":
            return repos.households
        case "food-items":
            if repos.food_items is None:
                raise ValueError("--household is required for food-items")
            return repos.food_items
        case _:
            raise ValueError(f"Unknown kind: {kind}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_fetch(args: argparse.Namespace, repo: SyncRepository) -> int:
    """Load the given uids (or a whole household) once and print them."""
    if args.uids:
        await repo.initialize(args.uids, selected_uid=args.select)
    else:
        await repo.initialize_household(selected_uid=args.select)
    _print_snapshot(repo, args.json)
    return 0


async def cmd_watch(args: argparse.Namespace, repo: SyncRepository) -> int:
    """Print every snapshot delivered until --count is reached or the watch fails."""
    done = asyncio.Event()
    delivered = 0

    def on_change(_state: Any) -> None:
        nonlocal delivered
        delivered += 1
        _print_snapshot(repo, args.json)
        if not repo.listening or (args.count and delivered >= args.count):
            done.set()

    unsubscribe = repo.subscribe(on_change)
    try:
        if args.uids:
            repo.start_listening(args.uids)
        else:
            repo.start_listening_household()
        await done.wait()
    finally:
        unsubscribe()

    if not repo.listening and not (args.count and delivered >= args.count):
        logger.error("Watch terminated after %d snapshot(s)", delivered)
        return 1
    return 0


async def cmd_delete(args: argparse.Namespace, repo: SyncRepository) -> int:
    """Optimistically delete one entity; exit status 1 when rolled back."""
    await repo.initialize([args.uid])
    result = await repo.delete(args.uid)
    print(format_mutation_result(result), flush=True)
    return 0 if result.committed else 1


COMMANDS = {
    "fetch": cmd_fetch,
    "watch": cmd_watch,
    "delete": cmd_delete,
}


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def _config_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.url:
        overrides["url"] = args.url
    if args.token:
        overrides["api_token"] = args.token
    if args.insecure:
        overrides["insecure"] = True
    if args.debug:
        overrides["debug"] = True
    return overrides


def _file_logging_config() -> LoggingConfig:
    """The ``logging`` section of the YAML config, or its defaults."""
    if not discover_config_files():
        return LoggingConfig()
    try:
        return build_config(load_hierarchical_config()).logging
    except ValueError:
        # Reported with full detail once the lifespan loads the config
        return LoggingConfig()


async def main(args: argparse.Namespace) -> int:
    """Run one store-backed command and return its exit status."""
    log_config = _file_logging_config()
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or log_config.file,
        debug_format=log_config.format,
        level=log_config.level,
    )

    overrides = _config_overrides(args)
    if overrides:
        logger.debug(
            "Config overrides from CLI: %s",
            ", ".join(k for k in overrides if k != "api_token"),
        )

    async with store_lifespan(config_overrides=overrides or None) as ctx:
        client: DocumentStoreClient = ctx["client"]
        config = ctx["config"]
        stores: list[HttpDocumentStore] = []

        def store_factory(entity_type: type, collection: str) -> HttpDocumentStore:
            store = HttpDocumentStore(
                client,
                entity_type,
                collection,
                poll_interval=config.poll_interval,
            )
            stores.append(store)
            return store

        repos = build_repositories(
            store_factory,
            args.household,
            serialize_per_uid=config.serialize_per_uid,
        )
        try:
            repo = _select_repository(args.kind, repos)
            return await COMMANDS[args.command](args, repo)
        finally:
            await repos.close()
            for store in stores:
                await store.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shelflife-sync",
        description="Inspect and edit ShelfLife collections through the local-first sync layer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print two recipes
  shelflife-sync fetch recipes r1 r2

  # Follow two of a household's food items, stopping after 3 snapshots
  shelflife-sync --household h1 watch food-items f1 f2 --count 3

  # Print every food item of a household
  shelflife-sync --household h1 fetch food-items

  # Delete a recipe (exit status 1 if the delete is rolled back)
  shelflife-sync delete recipes r1

  # Write a starter config to .shelflife/config.yml
  shelflife-sync init-config
        """,
    )
    parser.add_argument(
        "--url",
        help="Override store URL (takes precedence over SHELFLIFE_STORE_URL env var and config files)",
    )
    parser.add_argument(
        "--token",
        help="Override API token (visible in process list -- prefer SHELFLIFE_API_TOKEN)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--household",
        help="Household uid whose food items to use (required for food-items)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--version",
        action="version",
        version=f"shelflife-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Load entities once and print them")
    fetch.add_argument("kind", choices=KINDS)
    fetch.add_argument(
        "uids", nargs="*", metavar="UID", help="Omit for every food item of --household"
    )
    fetch.add_argument("--select", metavar="UID", help="Mark this entity as selected")
    fetch.add_argument("--json", action="store_true", help="Print JSON")

    watch = sub.add_parser("watch", help="Print every snapshot pushed by the store")
    watch.add_argument("kind", choices=KINDS)
    watch.add_argument(
        "uids", nargs="*", metavar="UID", help="Omit for every food item of --household"
    )
    watch.add_argument("--json", action="store_true", help="Print JSON")
    watch.add_argument(
        "--count", type=int, default=0, help="Stop after N snapshots (default: run until interrupted)"
    )

    delete = sub.add_parser("delete", help="Delete one entity")
    delete.add_argument("kind", choices=KINDS)
    delete.add_argument("uid", metavar="UID")

    init = sub.add_parser("init-config", help="Write a starter YAML config")
    init.add_argument("path", nargs="?", help="Target file (default: .shelflife/config.yml)")

    return parser


def run(argv: list[str] | None = None) -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init-config":
        path = ensure_config(Path(args.path) if args.path else None)
        print(f"Config file: {path}")
        sys.exit(0)

    if args.kind == "food-items" and not args.household:
        parser.error("--household is required for food-items")

    listing = args.command in ("fetch", "watch") and not args.uids
    if listing and args.kind != "food-items":
        parser.error(f"UIDs are required for {args.kind}")

    try:
        code = asyncio.run(main(args))
    except RuntimeError:
        # Error already printed to stderr by the lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)
    sys.exit(code)


if __name__ == "__main__":
    run()

"""Command line front end for the catalog mirror.

Subcommands:
    sync [--no-wait]             Run the remote sync job and wait for it
    list content|theme [--json]  Print a collection
    set-theme CONTENT_ID THEME_ID
                                 Reassign a content item
    token set|show|clear         Manage the stored access token

All diagnostics go to stderr; stdout carries only command output.
"""

import argparse
import asyncio
import json
import logging
import sys
import time

from . import __version__
from .config import Config
from .config_loader import resolve_config
from .core.async_utils import init_semaphore
from .formatting import format_item, format_session
from .logger import setup_logging
from .mirror import CatalogMirror
from .models import EntityKind, TokenSet
from .sync.session import SyncSession, SyncState
from .token_store import TokenStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _err(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def _mask(token: str) -> str:
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_sync(mirror: CatalogMirror, args: argparse.Namespace) -> int:
    """Start the sync job; unless --no-wait, poll until it ends."""
    seen: list[tuple] = []

    def report(session: SyncSession) -> None:
        key = (session.state, session.progress)
        if seen and seen[-1] == key:
            return
        seen.append(key)
        if session.progress is not None:
            _err(f"  {session.state.value}: {session.progress:.0f}%")
        else:
            _err(f"  {session.state.value}")

    unsubscribe = mirror.sync.subscribe(report)
    try:
        session = await mirror.sync.start()
        if args.no_wait:
            if session.state is SyncState.POLLING:
                print("Sync job started.")
                return EXIT_OK
        else:
            session = await mirror.sync.wait()
            await mirror.wait_for_refresh()
    finally:
        unsubscribe()

    print(format_session(session))
    if session.state is SyncState.SUCCEEDED:
        return EXIT_OK
    return EXIT_FAILED


async def cmd_list(mirror: CatalogMirror, args: argparse.Namespace) -> int:
    kind = EntityKind(args.kind)
    store = mirror.store(kind)
    outcome = await store.fetch()
    if not outcome.ok:
        _err(f"Error ({outcome.kind.value}): {outcome.error.message}")
        return EXIT_FAILED

    if args.json:
        payload = [
            item.model_dump(by_alias=True, mode="json")
            for item in store.items
        ]
        print(json.dumps(payload, indent=2))
    elif not store.items:
        print(f"No {kind.value} items.")
    else:
        for item in store.items:
            print(format_item(item))
    return EXIT_OK


async def cmd_set_theme(
    mirror: CatalogMirror, args: argparse.Namespace
) -> int:
    loaded = await mirror.content.fetch()
    if not loaded.ok:
        _err(f"Error ({loaded.kind.value}): {loaded.error.message}")
        return EXIT_FAILED

    outcome = await mirror.set_theme(args.content_id, args.theme_id)
    if not outcome.ok:
        _err(f"Error ({outcome.kind.value}): {outcome.error.message}")
        return EXIT_FAILED
    print(format_item(outcome.value))
    return EXIT_OK


def cmd_token(config: Config, args: argparse.Namespace) -> int:
    """Manage the token file. Never touches the network."""
    store = TokenStore(config.token_file)

    match args.token_command:
        case "set":
            tokens = TokenSet(
                access_token=args.access_token,
                refresh_token=args.refresh_token or "",
                expires_at=time.time() + args.expires_in,
            )
            store.save(tokens)
            print(f"Token saved to {store.path}")
        case "show":
            tokens = store.load()
            if tokens is None:
                print("No token stored.")
                return EXIT_FAILED
            state = "expired" if tokens.is_expired(time.time()) else "valid"
            expires = time.strftime(
                "%Y-%m-%d %H:%M:%S", time.localtime(tokens.expires_at)
            )
            print(f"Access token: {_mask(tokens.access_token)}")
            print(f"Expires:      {expires} ({state})")
            print(f"File:         {store.path}")
        case "clear":
            store.clear()
            print("Token cleared.")
    return EXIT_OK


_ASYNC_COMMANDS = {
    "sync": cmd_sync,
    "list": cmd_list,
    "set-theme": cmd_set_theme,
}


async def run_command(config: Config, args: argparse.Namespace) -> int:
    """Build a mirror from *config* and run one network command."""
    logger.debug("Running %s against %s", args.command, config.api_url)
    init_semaphore(config.max_parallel_requests)
    mirror = CatalogMirror.from_config(config, TokenStore(config.token_file))
    try:
        return await _ASYNC_COMMANDS[args.command](mirror, args)
    finally:
        await mirror.close()


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-mirror",
        description="Catalog Mirror - mirror and manage the content catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  catalog-mirror token set eyJhbGciOi... --expires-in 3600
  catalog-mirror sync
  catalog-mirror list theme --json
  catalog-mirror set-theme c-102 t-7
        """,
    )
    parser.add_argument("--url", help="Override catalog API URL")
    parser.add_argument(
        "--env",
        dest="environment",
        choices=["development", "production", "test"],
        help="Deployment environment (overrides CATALOG_ENV)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log line format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"catalog-mirror version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Run the remote sync job")
    sync.add_argument(
        "--no-wait",
        action="store_true",
        help="Return once the job is accepted instead of polling it",
    )

    lst = sub.add_parser("list", help="Print content items or themes")
    lst.add_argument("kind", choices=[k.value for k in EntityKind])
    lst.add_argument("--json", action="store_true", help="Print JSON")

    set_theme = sub.add_parser(
        "set-theme", help="Assign a content item to a theme"
    )
    set_theme.add_argument("content_id")
    set_theme.add_argument("theme_id")

    token = sub.add_parser("token", help="Manage the stored access token")
    token_sub = token.add_subparsers(dest="token_command", required=True)
    token_set = token_sub.add_parser("set", help="Store an access token")
    token_set.add_argument("access_token")
    token_set.add_argument("--refresh-token", default="")
    token_set.add_argument(
        "--expires-in",
        type=float,
        default=3600.0,
        help="Seconds until the access token expires (default: 3600)",
    )
    token_sub.add_parser("show", help="Show the stored token (masked)")
    token_sub.add_parser("clear", help="Delete the stored token")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``catalog-mirror`` command."""
    args = build_parser().parse_args(argv)
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )

    overrides = {
        "url": args.url,
        "environment": args.environment,
        "insecure": args.insecure,
        "debug": args.debug,
    }
    try:
        config = resolve_config(overrides)
    except ValueError as e:
        _err(f"Configuration error: {e}")
        return EXIT_USAGE

    if args.command == "token":
        return cmd_token(config, args)

    try:
        return asyncio.run(run_command(config, args))
    except KeyboardInterrupt:
        _err("\nInterrupted.")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())

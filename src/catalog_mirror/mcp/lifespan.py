"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..config_loader import resolve_config
from ..core.async_utils import init_semaphore
from ..mirror import CatalogMirror
from ..models import EntityKind
from ..token_store import TokenStore

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Resolve configuration: CLI > env vars > .env > YAML > defaults
    - Build the CatalogMirror with the stored auth token
    - Load content and themes; fail fast if the API is unreachable

    On shutdown:
    - Cancel any running sync job and pending refresh

    Args:
        config_overrides: Optional dict with config values from CLI
            (url, environment, insecure, debug, token_file)

    Yields:
        Dict with 'mirror' and 'config' keys

    Raises:
        RuntimeError: If configuration is invalid or the API is unreachable.
    """
    logger.info("MCP server starting...")
    _stderr_print("Catalog Mirror MCP Server starting...")

    try:
        config = resolve_config(config_overrides)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(
            f"Configuration error: {e}. Check CATALOG_API_URL and CATALOG_ENV."
        ) from e

    logger.info("Catalog API: %s (%s)", config.api_url, config.environment)
    _stderr_print(f"  Catalog API: {config.api_url}")

    token_store = TokenStore(config.token_file)
    if token_store.load() is None:
        _stderr_print(
            "  No access token stored; requests are unauthenticated."
        )

    init_semaphore(config.max_parallel_requests)
    mirror = CatalogMirror.from_config(config, token_store)

    _stderr_print("  Loading catalog...")
    outcomes = await mirror.refresh()
    for kind in (EntityKind.CONTENT, EntityKind.THEME):
        outcome = outcomes[kind]
        if not outcome.ok:
            logger.error(
                "Failed to load %s: %s", kind.value, outcome.error.message
            )
            _stderr_print(f"ERROR: Could not load {kind.value}.")
            _stderr_print(f"  {outcome.error.message}")
            await mirror.close()
            raise RuntimeError(
                f"Catalog API unreachable: {outcome.error.message}. "
                "Check CATALOG_API_URL and the stored access token."
            ) from outcome.error
        _stderr_print(f"  Loaded {len(outcome.value)} {kind.value} item(s)")

    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"mirror": mirror, "config": config}
    finally:
        logger.info("MCP server shutting down")
        await mirror.close()
        _stderr_print("Catalog Mirror MCP Server shutting down.")

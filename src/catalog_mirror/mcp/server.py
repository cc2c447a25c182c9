"""MCP Server for the catalog mirror using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents browse the mirrored catalog, reassign content to themes and drive
the remote sync job.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import setup_logging
from ..mirror import CatalogMirror
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("catalog-mirror")

# Global mirror instance (initialized in main)
_mirror: CatalogMirror | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- reload the catalog to test connectivity."""
    outcomes = await mirror.refresh()
    failed = [o.error for o in outcomes.values() if not o.ok]
    if failed:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Catalog API connection failed: {failed[0].message}. Check CATALOG_API_URL and the stored access token.",
                )
            ],
            isError=True,
        )
    counts = ", ".join(
        f"{len(mirror.store(kind).items)} {kind.value}" for kind in outcomes
    )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Catalog mirror connected successfully ({counts}).",
            )
        ]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test catalog API connectivity and report collection sizes",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    mutating=False,
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_mirror() -> CatalogMirror:
    """Get the global CatalogMirror instance.

    Raises:
        RuntimeError: If the mirror is not initialized
    """
    if _mirror is None:
        raise RuntimeError(
            "CatalogMirror not initialized. Server lifespan not started."
        )
    return _mirror


def set_mirror(mirror: CatalogMirror | None) -> None:
    global _mirror
    _mirror = mirror


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


def build_registry(read_only: bool = False) -> ToolRegistry:
    return ToolRegistry([PING_SPEC] + ALL_SPECS, read_only=read_only)


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available catalog tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    mirror = get_mirror()
    try:
        return await get_registry().call_tool(name, arguments, mirror)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Args:
        config_overrides: Optional dict with config values to override
            (url, environment, insecure, debug, log_file, read_only)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    read_only = overrides.pop("read_only", False)

    # Must run before stdio_server: stdout belongs to the protocol
    setup_logging(
        mode="mcp", debug=overrides.get("debug", False), log_file=log_file
    )

    registry = build_registry(read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(ALL_SPECS) + 1,
    )
    if read_only:
        print(
            f"Read-only mode ({registry.tool_count()} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_mirror() is called here rather than in the lifespan so running
    # this file as __main__ still updates this module's globals.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_mirror(ctx["mirror"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="catalog-mirror",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_mirror(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-mirror-mcp",
        description="Catalog Mirror MCP Server - Model Context Protocol server for the content catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or config.yml)
  catalog-mirror-mcp

  # Override API URL
  catalog-mirror-mcp --url https://catalog.example.com

  # Expose only read-only tools
  catalog-mirror-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument(
        "--url",
        help="Override catalog API URL (takes precedence over CATALOG_API_URL and config files)",
    )
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
    parser.add_argument(
        "--log-file",
        default="/tmp/catalog-mirror.log",
        help="Log file path (default: /tmp/catalog-mirror.log)",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Hide tools that change remote state",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"catalog-mirror-mcp version {__version__}",
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict:
    """Collect only the options the user actually set."""
    overrides = {}
    if args.url:
        overrides["url"] = args.url
    if args.environment:
        overrides["environment"] = args.environment
    if args.insecure:
        overrides["insecure"] = True
    if args.debug:
        overrides["debug"] = True
    if args.log_file:
        overrides["log_file"] = args.log_file
    if args.read_only:
        overrides["read_only"] = True
    return overrides


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = build_parser().parse_args()
    config_overrides = overrides_from_args(args)

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()

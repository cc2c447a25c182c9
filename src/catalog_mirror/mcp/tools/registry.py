"""ToolSpec and ToolRegistry for the catalog tools.

- ToolSpec: Immutable dataclass linking a Tool definition, whether it
  changes remote state, and an async handler with standardized signature
  (mirror, args) -> CallToolResult.
- ToolRegistry: Drops mutating tools in read-only mode, then provides
  list_tools() and call_tool() dispatch with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...errors import CatalogError
from ...mirror import CatalogMirror

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        mutating: True if the tool changes remote state.
        handler: Async handler with signature (mirror, args) -> CallToolResult.
    """

    tool: types.Tool
    mutating: bool
    handler: Callable[[CatalogMirror, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs, optionally restricted to read-only tools."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {
            spec.tool.name: spec
            for spec in specs
            if not (read_only and spec.mutating)
        }

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        mirror: CatalogMirror,
    ) -> types.CallToolResult:
        """Dispatch a tool call to its handler.

        Raises:
            ValueError: If the tool name is unknown or filtered out.
        """
        from .errors import build_error_response, translate_catalog_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(mirror, args)
        except CatalogError as e:
            logger.warning("Catalog error in %s: %r", name, e)
            return translate_catalog_error(e, _domain_from_tool_name(name, args))
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Retry later or contact the catalog administrator.",
            )


def _domain_from_tool_name(name: str, args: dict) -> str:
    """Map a tool name to its error domain ("content", "theme", "sync")."""
    if name.startswith("sync_"):
        return "sync"
    if name.startswith("theme_"):
        return "theme"
    if name.startswith("catalog_"):
        return "theme" if args.get("kind") == "theme" else "content"
    return "content"

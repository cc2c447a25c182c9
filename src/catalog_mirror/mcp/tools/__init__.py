"""MCP tool handlers for the catalog mirror.

Each module exposes a ``*_SPECS`` list of ToolSpecs whose handlers take
the shared CatalogMirror and return structured results.
"""

from .catalog import CATALOG_SPECS
from .errors import build_error_response, translate_catalog_error
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS

ALL_SPECS: list[ToolSpec] = CATALOG_SPECS + SYNC_SPECS

__all__ = [
    "build_error_response",
    "translate_catalog_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # Spec lists
    "ALL_SPECS",
    "CATALOG_SPECS",
    "SYNC_SPECS",
]

"""Catalog tool handlers: list, refresh and mutate content and themes.

Mutations go through the mirror's optimistic stores, so the local view
changes immediately and is rolled back when the server rejects the call.
"""

from typing import Any

import mcp.types as types
from pydantic import BaseModel

from ...errors import Outcome
from ...formatting import format_item
from ...mirror import CatalogMirror
from ...models import EntityKind
from .errors import translate_catalog_error
from .registry import ToolSpec

_KIND_SCHEMA = {
    "type": "string",
    "enum": ["content", "theme"],
    "description": "Collection to operate on",
}


def _text_result(text: str, structured: dict | None = None) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


def _parse_kind(args: dict, default: str | None = None) -> EntityKind:
    raw = args.get("kind", default)
    if raw is None:
        raise ValueError("kind is required")
    try:
        return EntityKind(raw)
    except ValueError:
        raise ValueError(
            f"Invalid kind '{raw}': must be 'content' or 'theme'"
        ) from None


def _require(args: dict, key: str) -> Any:
    value = args.get(key)
    if value is None or value == "":
        raise ValueError(f"{key} is required")
    return value


def _dump(item: BaseModel) -> dict:
    return item.model_dump(by_alias=True, mode="json")


def _failure(outcome: Outcome, kind: EntityKind) -> types.CallToolResult:
    return translate_catalog_error(outcome.error, kind.value)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_list(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle catalog_list."""
    kind = _parse_kind(args)
    store = mirror.store(kind)
    pending_ids = store.pending_ids
    items = store.items
    if args.get("pending_only", False):
        items = tuple(i for i in items if i.id in pending_ids)

    structured = {
        "kind": kind.value,
        "items": [_dump(i) for i in items],
        "pending": sorted(pending_ids),
    }
    if not items:
        return _text_result(f"No {kind.value} items.", structured)

    lines = [f"{len(items)} {kind.value} item(s):"]
    lines.extend(format_item(i, i.id in pending_ids) for i in items)
    if store.last_error is not None:
        lines.append(f"\nLast error: {store.last_error.message}")
    return _text_result("\n".join(lines), structured)


async def _handle_refresh(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle catalog_refresh."""
    if args.get("kind") in (None, "all"):
        outcomes = await mirror.refresh()
    else:
        kind = _parse_kind(args)
        outcomes = {kind: await mirror.store(kind).fetch()}

    lines = []
    structured: dict[str, Any] = {}
    for kind, outcome in outcomes.items():
        if not outcome.ok:
            return _failure(outcome, kind)
        if outcome.stale:
            lines.append(f"{kind.value}: superseded by a newer refresh")
        else:
            lines.append(f"{kind.value}: {len(outcome.value)} item(s)")
        structured[kind.value] = {
            "count": len(mirror.store(kind).items),
            "stale": outcome.stale,
        }
    return _text_result("Refreshed " + "; ".join(lines), structured)


async def _handle_set_theme(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle content_set_theme."""
    content_id = str(_require(args, "content_id"))
    theme_id = args.get("theme_id")
    if theme_id is not None:
        theme_id = str(theme_id)

    outcome = await mirror.set_theme(content_id, theme_id)
    if not outcome.ok:
        return _failure(outcome, EntityKind.CONTENT)

    content = outcome.value
    target = f"theme {content.theme_id}" if content.theme_id else "no theme"
    return _text_result(
        f"Content {content.id} now assigned to {target}.", _dump(content)
    )


async def _handle_update(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle catalog_update."""
    kind = _parse_kind(args)
    entity_id = str(_require(args, "id"))
    patch = args.get("patch")
    if not isinstance(patch, dict) or not patch:
        raise ValueError("patch must be a non-empty object")

    outcome = await mirror.store(kind).apply(entity_id, patch)
    if not outcome.ok:
        return _failure(outcome, kind)
    return _text_result(
        f"Updated {kind.value} {entity_id}:\n{format_item(outcome.value)}",
        _dump(outcome.value),
    )


async def _handle_create_theme(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle theme_create."""
    data: dict[str, Any] = {"name": _require(args, "name")}
    if args.get("confidence") is not None:
        data["confidence"] = args["confidence"]

    outcome = await mirror.create_theme(data)
    if not outcome.ok:
        return _failure(outcome, EntityKind.THEME)
    theme = outcome.value
    return _text_result(
        f"Created theme {theme.id} '{theme.name}'.", _dump(theme)
    )


async def _handle_delete(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle catalog_delete."""
    kind = _parse_kind(args)
    entity_id = str(_require(args, "id"))

    outcome = await mirror.store(kind).remove(entity_id)
    if not outcome.ok:
        return _failure(outcome, kind)
    return _text_result(
        f"Deleted {kind.value} {entity_id}.",
        {"kind": kind.value, "id": entity_id, "deleted": True},
    )


CATALOG_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="catalog_list",
            description="List the locally mirrored content items or themes, including optimistic changes not yet confirmed by the server (marked 'pending').",
            inputSchema={
                "type": "object",
                "properties": {
                    "kind": _KIND_SCHEMA,
                    "pending_only": {
                        "type": "boolean",
                        "description": "Only list items with unconfirmed changes (default: false)",
                        "default": False,
                    },
                },
                "required": ["kind"],
            },
            annotations=types.ToolAnnotations(readOnlyHint=True),
        ),
        mutating=False,
        handler=_handle_list,
    ),
    ToolSpec(
        tool=types.Tool(
            name="catalog_refresh",
            description="Reload content and/or themes from the catalog API. Unconfirmed local changes stay applied on top of the new data.",
            inputSchema={
                "type": "object",
                "properties": {
                    "kind": {
                        "type": "string",
                        "enum": ["content", "theme", "all"],
                        "description": "Collection to reload (default: all)",
                        "default": "all",
                    },
                },
                "required": [],
            },
            annotations=types.ToolAnnotations(readOnlyHint=True),
        ),
        mutating=False,
        handler=_handle_refresh,
    ),
    ToolSpec(
        tool=types.Tool(
            name="content_set_theme",
            description="Assign a content item to a theme, or clear its theme with theme_id=null. Applied locally at once and rolled back if the server rejects it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "content_id": {
                        "type": "string",
                        "description": "Content item id (required)",
                    },
                    "theme_id": {
                        "type": ["string", "null"],
                        "description": "Theme id, or null to clear",
                    },
                },
                "required": ["content_id", "theme_id"],
            },
        ),
        mutating=True,
        handler=_handle_set_theme,
    ),
    ToolSpec(
        tool=types.Tool(
            name="catalog_update",
            description="Patch fields of a content item or theme (e.g. {'name': 'Travel'} or {'text': '...'}). Field names may be camelCase or snake_case; id cannot be changed.",
            inputSchema={
                "type": "object",
                "properties": {
                    "kind": _KIND_SCHEMA,
                    "id": {
                        "type": "string",
                        "description": "Entity id (required)",
                    },
                    "patch": {
                        "type": "object",
                        "description": "Fields to change",
                    },
                },
                "required": ["kind", "id", "patch"],
            },
        ),
        mutating=True,
        handler=_handle_update,
    ),
    ToolSpec(
        tool=types.Tool(
            name="theme_create",
            description="Create a new theme. The server assigns the id.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Theme name (required)",
                    },
                    "confidence": {
                        "type": "number",
                        "minimum": 0,
                        "maximum": 1,
                        "description": "Classification confidence (optional)",
                    },
                },
                "required": ["name"],
            },
        ),
        mutating=True,
        handler=_handle_create_theme,
    ),
    ToolSpec(
        tool=types.Tool(
            name="catalog_delete",
            description="Delete a content item or theme. Removed locally at once and restored if the server rejects it. Warning: This cannot be undone.",
            inputSchema={
                "type": "object",
                "properties": {
                    "kind": _KIND_SCHEMA,
                    "id": {
                        "type": "string",
                        "description": "Entity id (required)",
                    },
                },
                "required": ["kind", "id"],
            },
            annotations=types.ToolAnnotations(destructiveHint=True),
        ),
        mutating=True,
        handler=_handle_delete,
    ),
]

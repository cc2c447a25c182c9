"""Error responses for MCP tool handlers.

Classified errors become structured results with a corrective action,
so an agent can recover without inspecting stack traces.
"""

import mcp.types as types

from ...errors import CatalogError, ErrorKind, RemoteError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied,
            version_conflict, validation_error, network_error, timeout,
            cancelled, server_error)
        message: Human-readable error description
        corrective_action: What the agent can do next

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "No content with id '7'", "Use catalog_list to find ids.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


_DOMAIN_MESSAGES: dict[str, dict[str, str]] = {
    "content": {
        "not_found": "Use catalog_list(kind='content') to verify the content id.",
        "conflict": "Run catalog_refresh(kind='content'), then retry the update.",
    },
    "theme": {
        "not_found": "Use catalog_list(kind='theme') to verify the theme id.",
        "conflict": "Run catalog_refresh(kind='theme'), then retry.",
    },
    "sync": {
        "not_found": "Run sync_start to begin a new sync job.",
        "conflict": "A sync job may already be running; check sync_status.",
    },
}

_COMMON_MESSAGES = {
    "permission": "Store a valid access token with 'catalog-mirror token set', then retry.",
    "network": "Check that the catalog API is reachable (CATALOG_API_URL) and retry.",
    "validation": "Check parameter values and retry.",
    "timeout": "The sync job is still running remotely; check sync_status later or run sync_start again.",
    "cancelled": "Run sync_start to begin a new sync job.",
    "server": "Retry later or contact the catalog administrator.",
}


def translate_catalog_error(
    error: CatalogError, domain: str = "content"
) -> types.CallToolResult:
    """Translate a classified error into a structured error response.

    Args:
        error: Classified error from the store or controller.
        domain: "content", "theme" or "sync".

    Returns:
        CallToolResult with isError=True and corrective action
    """
    msgs = _DOMAIN_MESSAGES.get(domain, _DOMAIN_MESSAGES["content"])

    match error.kind:
        case ErrorKind.NETWORK:
            return build_error_response(
                "network_error", error.message, _COMMON_MESSAGES["network"]
            )
        case ErrorKind.VALIDATION:
            return build_error_response(
                "validation_error",
                error.message,
                _COMMON_MESSAGES["validation"],
            )
        case ErrorKind.TIMEOUT:
            return build_error_response(
                "timeout", error.message, _COMMON_MESSAGES["timeout"]
            )
        case ErrorKind.CANCELLED:
            return build_error_response(
                "cancelled", error.message, _COMMON_MESSAGES["cancelled"]
            )
        case ErrorKind.REMOTE if isinstance(error, RemoteError):
            return _translate_remote(error, msgs)
        case _:
            return build_error_response(
                "server_error", error.message, _COMMON_MESSAGES["server"]
            )


def _translate_remote(
    error: RemoteError, msgs: dict[str, str]
) -> types.CallToolResult:
    detail = error.message
    if error.status is not None:
        detail = f"{error.message} (HTTP {error.status})"

    match error.status:
        case 404:
            return build_error_response(
                "not_found", detail, msgs["not_found"]
            )
        case 401 | 403:
            return build_error_response(
                "permission_denied", detail, _COMMON_MESSAGES["permission"]
            )
        case 409 | 412:
            return build_error_response(
                "version_conflict", detail, msgs["conflict"]
            )
        case _:
            return build_error_response(
                "server_error", detail, _COMMON_MESSAGES["server"]
            )

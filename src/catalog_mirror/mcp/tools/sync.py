"""Sync job tool handlers.

- ``sync_start``: start (or restart) the remote sync job, optionally
  waiting for it to finish.
- ``sync_status``: report the controller's current session.
- ``sync_cancel``: stop polling. The remote job itself keeps running.
"""

import mcp.types as types

from ...formatting import format_session, session_payload
from ...mirror import CatalogMirror
from ...sync.session import SyncSession, SyncState
from .errors import translate_catalog_error
from .registry import ToolSpec


def _session_result(session: SyncSession) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_session(session))],
        structuredContent=session_payload(session),
    )


async def _handle_start(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle sync_start."""
    session = await mirror.sync.start()
    if args.get("wait", False) and session.state is SyncState.POLLING:
        session = await mirror.sync.wait()
        if session.state is SyncState.SUCCEEDED:
            await mirror.wait_for_refresh()

    error = mirror.sync.last_exception
    if session.state in (SyncState.FAILED, SyncState.TIMED_OUT) and error:
        return translate_catalog_error(error, "sync")
    return _session_result(session)


async def _handle_status(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle sync_status."""
    return _session_result(mirror.sync.session)


async def _handle_cancel(
    mirror: CatalogMirror, args: dict
) -> types.CallToolResult:
    """Handle sync_cancel. Safe to call when nothing is running."""
    was_running = mirror.sync.is_running
    session = mirror.sync.cancel()
    text = format_session(session)
    if not was_running:
        text = "No sync job running.\n" + text
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=session_payload(session),
    )


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="sync_start",
            description="Start the remote catalog sync job and poll it in the background. An active job is cancelled first. With wait=true, returns only once the job succeeds, fails or times out; the catalog is refreshed after a successful sync.",
            inputSchema={
                "type": "object",
                "properties": {
                    "wait": {
                        "type": "boolean",
                        "description": "Wait for the job to finish (default: false)",
                        "default": False,
                    },
                },
                "required": [],
            },
        ),
        mutating=True,
        handler=_handle_start,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_status",
            description="Report the state of the current sync job: state, progress, number of status checks and last error.",
            inputSchema={
                "type": "object",
                "properties": {},
                "required": [],
            },
            annotations=types.ToolAnnotations(readOnlyHint=True),
        ),
        mutating=False,
        handler=_handle_status,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_cancel",
            description="Stop tracking the running sync job. No effect if nothing is running.",
            inputSchema={
                "type": "object",
                "properties": {},
                "required": [],
            },
        ),
        mutating=True,
        handler=_handle_cancel,
    ),
]

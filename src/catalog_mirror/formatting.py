"""Plain-text rendering shared by the CLI and the MCP tools."""

from pydantic import BaseModel

from .models import Content, Theme
from .sync.session import SyncSession

_TEXT_WIDTH = 60


def format_item(item: BaseModel, pending: bool = False) -> str:
    """One-line summary of a content item or theme."""
    marker = " (pending)" if pending else ""
    match item:
        case Content():
            theme = item.theme_id or "-"
            text = item.text
            if len(text) > _TEXT_WIDTH:
                text = text[: _TEXT_WIDTH - 3] + "..."
            return f"- {item.id} [{item.type}] theme={theme}: {text}{marker}"
        case Theme():
            confidence = (
                f", confidence {item.confidence:.2f}"
                if item.confidence is not None
                else ""
            )
            return (
                f"- {item.id} {item.name} "
                f"({item.content_count} items{confidence}){marker}"
            )
        case _:
            return f"- {item!r}{marker}"


def format_session(session: SyncSession) -> str:
    """Multi-line summary of a sync session."""
    progress = (
        f"{session.progress:.0f}%" if session.progress is not None else "n/a"
    )
    lines = [
        f"Sync state: {session.state.value}",
        f"  Progress:      {progress}",
        f"  Status checks: {session.poll_count}",
    ]
    if session.retry_count:
        lines.append(f"  Retries:       {session.retry_count}")
    if session.message:
        kind = session.last_error.value if session.last_error else "error"
        lines.append(f"  Last error:    {session.message} ({kind})")
    return "\n".join(lines)


def session_payload(session: SyncSession) -> dict:
    """JSON-ready dict of a sync session."""
    return {
        "state": session.state.value,
        "progress": session.progress,
        "poll_count": session.poll_count,
        "retry_count": session.retry_count,
        "last_error": session.last_error.value if session.last_error else None,
        "message": session.message,
    }

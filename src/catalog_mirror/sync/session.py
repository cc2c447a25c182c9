"""State, snapshot and policy types for the sync controller.

``SyncSession`` is immutable: every transition produces a new snapshot,
so a subscriber can keep the one it was handed without it changing
underneath.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

from ..errors import ErrorKind
from ..models import SyncStatus


class SyncState(str, Enum):
    """Lifecycle of one synchronization job."""

    IDLE = "idle"
    STARTING = "starting"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in (SyncState.STARTING, SyncState.POLLING)

    @property
    def is_terminal(self) -> bool:
        return self in (
            SyncState.SUCCEEDED,
            SyncState.FAILED,
            SyncState.TIMED_OUT,
            SyncState.CANCELLED,
        )


class SyncSession(BaseModel):
    """Read-only snapshot of the controller.

    Attributes:
        state: Current lifecycle state.
        poll_count: Status checks that reported an incomplete job.
        retry_count: Consecutive failed status checks in the current tick.
        last_error: Kind of the error that ended the session, if any.
        message: Human-readable description of the last error.
        status: Last status reported by the server.
        generation: Incremented on every start and cancel.
    """

    state: SyncState = SyncState.IDLE
    poll_count: int = 0
    retry_count: int = 0
    last_error: ErrorKind | None = None
    message: str | None = None
    status: SyncStatus = Field(
        default_factory=lambda: SyncStatus(complete=False)
    )
    generation: int = 0

    model_config = {"frozen": True}

    @property
    def progress(self) -> float | None:
        return self.status.progress


@dataclass(frozen=True)
class SyncPolicy:
    """Timing and retry limits, all durations in seconds.

    Attributes:
        interval: Delay between status checks.
        max_polls: Incomplete status checks before the job times out.
        max_retries: Retries of one failed status check.
        backoff_base: Delay before the first retry; doubled per retry.
    """

    interval: float = 5.0
    max_polls: int = 60
    max_retries: int = 3
    backoff_base: float = 1.0

    def backoff(self, retry_count: int) -> float:
        return self.backoff_base * (2**retry_count)

"""State machine driving one remote synchronization job.

Lifecycle::

    IDLE --start()--> STARTING --begin ok--> POLLING --complete--> SUCCEEDED
                          |                     |---poll cap----> TIMED_OUT
                          |                     |---errors------> FAILED
                          '--begin failed--> FAILED
    STARTING/POLLING --cancel()--> CANCELLED

At most one poll task exists per controller.  Every suspension point
(gateway call or sleep) is followed by a generation check: once a
session is cancelled or replaced, whatever its in-flight calls return is
dropped, because cancelling a task does not stop a request already
running in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from ..errors import (
    CancelledOperationError,
    CatalogError,
    ErrorKind,
    PollTimeoutError,
    RemoteError,
    classify_error,
)
from ..models import SyncStatus
from .session import SyncPolicy, SyncSession, SyncState

if TYPE_CHECKING:
    from ..core.gateway import RemoteGateway

logger = logging.getLogger(__name__)

SessionListener = Callable[[SyncSession], None]


class SyncController:
    """Start, poll and terminate a synchronization job.

    Args:
        gateway: Remote calls ``begin_sync()`` and ``check_status()``.
        policy: Poll interval, poll cap, retry cap and backoff.
        sleep: Awaitable delay function; injectable for tests.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        policy: SyncPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._policy = policy or SyncPolicy()
        self._sleep = sleep
        self._session = SyncSession()
        self._generation = 0
        self._task: asyncio.Task | None = None
        self._listeners: list[SessionListener] = []
        self._last_exception: CatalogError | None = None
        # Resolved with the terminal snapshot of the latest session
        self._done: asyncio.Future[SyncSession] | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def session(self) -> SyncSession:
        return self._session

    @property
    def policy(self) -> SyncPolicy:
        return self._policy

    @property
    def last_exception(self) -> CatalogError | None:
        """Classified error that ended the current session, if any."""
        return self._last_exception

    @property
    def is_running(self) -> bool:
        return self._session.state.is_active

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call *listener* with every new snapshot.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self) -> SyncSession:
        """Begin a new job, cancelling any active one first.

        Returns:
            ``POLLING`` once the job is accepted, ``FAILED`` when the
            server refused to start it, or this session's ``CANCELLED``
            snapshot if it was cancelled or replaced by another
            ``start()`` while the start request was in flight.
        """
        if self._session.state.is_active:
            logger.info("Sync restart requested, cancelling active session")
            self.cancel()

        self._generation += 1
        generation = self._generation
        self._last_exception = None
        self._session = SyncSession(generation=generation)
        done = self._done = asyncio.get_running_loop().create_future()
        self._publish(state=SyncState.STARTING)

        try:
            started = await self._gateway.begin_sync()
        except asyncio.CancelledError:
            if self._is_current(generation):
                self.cancel()
            raise
        except Exception as e:
            if not self._is_current(generation):
                return _final(done, self._session)
            return self._terminate(SyncState.FAILED, classify_error(e))

        if not self._is_current(generation):
            logger.debug("Dropping begin_sync result of a stale session")
            return _final(done, self._session)

        logger.info("Sync job started (server status: %s)", started.status)
        self._publish(state=SyncState.POLLING)
        self._task = asyncio.create_task(self._poll_loop(generation))
        return self._session

    async def wait(self) -> SyncSession:
        """Wait until the current session is terminal and return it.

        Covers ``STARTING`` as well as ``POLLING``.  If the session is
        replaced by a restart meanwhile, waits for the new one.  Returns
        immediately when the controller is idle or already terminal.
        """
        while self._session.state.is_active:
            done = self._done
            if done is None:
                break
            # A cancelled waiter must leave the shared future intact
            await asyncio.wait([done])
        return self._session

    async def run(self) -> SyncSession:
        """``start()`` then ``wait()``."""
        await self.start()
        return await self.wait()

    def cancel(self) -> SyncSession:
        """Stop the active session immediately.

        No-op (and no error) when the controller is idle or terminal.
        """
        if not self._session.state.is_active:
            return self._session

        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

        error = CancelledOperationError("Sync cancelled")
        self._last_exception = error
        logger.debug("Sync session cancelled")
        return self._publish(
            state=SyncState.CANCELLED,
            generation=self._generation,
            last_error=ErrorKind.CANCELLED,
            message=error.message,
        )

    # ------------------------------------------------------------------
    # Poll loop
    # ------------------------------------------------------------------

    async def _poll_loop(self, generation: int) -> None:
        try:
            await self._poll(generation)
        except Exception as e:
            # Gateway failures are handled in _check_status; this is
            # anything else going wrong inside the loop.
            if self._is_current(generation):
                logger.exception("Sync poll loop crashed")
                self._terminate(SyncState.FAILED, classify_error(e))

    async def _poll(self, generation: int) -> None:
        policy = self._policy
        while True:
            await self._sleep(policy.interval)
            if not self._is_current(generation):
                return

            status = await self._check_status(generation)
            if status is None:
                return

            if status.error:
                self._terminate(
                    SyncState.FAILED,
                    RemoteError(None, status.error, code="sync_failed"),
                    status=status,
                )
                return

            if status.complete:
                logger.info(
                    "Sync completed after %d status checks",
                    self._session.poll_count + 1,
                )
                self._publish(state=SyncState.SUCCEEDED, status=status)
                return

            poll_count = self._session.poll_count + 1
            self._publish(status=status, poll_count=poll_count)
            if not self._is_current(generation):
                return
            logger.debug(
                "Sync in progress: %s%% (check %d/%d)",
                status.progress,
                poll_count,
                policy.max_polls,
            )
            if poll_count >= policy.max_polls:
                self._terminate(
                    SyncState.TIMED_OUT, PollTimeoutError(poll_count)
                )
                return

    async def _check_status(self, generation: int) -> SyncStatus | None:
        """Run one status check, retrying transient failures with backoff.

        Returns:
            The status, or ``None`` when the session ended (terminal
            failure recorded, or superseded while waiting).
        """
        policy = self._policy
        retry_count = 0
        while True:
            try:
                status = await self._gateway.check_status()
            except Exception as e:
                if not self._is_current(generation):
                    return None
                error = classify_error(e)
                if not error.retryable or retry_count >= policy.max_retries:
                    self._terminate(SyncState.FAILED, error)
                    return None
                delay = policy.backoff(retry_count)
                retry_count += 1
                logger.warning(
                    "Status check failed (%s), retry %d/%d in %.1fs",
                    error.message,
                    retry_count,
                    policy.max_retries,
                    delay,
                )
                self._publish(retry_count=retry_count)
                await self._sleep(delay)
                if not self._is_current(generation):
                    return None
                continue

            if not self._is_current(generation):
                return None
            if retry_count:
                self._publish(retry_count=0)
            return status

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _terminate(
        self, state: SyncState, error: CatalogError, **changes
    ) -> SyncSession:
        self._last_exception = error
        if state is SyncState.TIMED_OUT:
            logger.warning("Sync timed out: %s", error.message)
        else:
            logger.error(
                "Sync failed (%s): %s", error.kind.value, error.message
            )
        return self._publish(
            state=state,
            last_error=error.kind,
            message=error.message,
            **changes,
        )

    def _publish(self, **changes) -> SyncSession:
        self._session = self._session.model_copy(update=changes)
        done = self._done
        if (
            self._session.state.is_terminal
            and done is not None
            and not done.done()
        ):
            done.set_result(self._session)
        for listener in list(self._listeners):
            try:
                listener(self._session)
            except Exception:
                logger.exception("Sync listener raised")
        return self._session


def _final(done: asyncio.Future, fallback: SyncSession) -> SyncSession:
    """Terminal snapshot of a superseded session."""
    return done.result() if done.done() else fallback

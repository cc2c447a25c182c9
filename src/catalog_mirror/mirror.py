"""Wiring of the catalog mirror: two stores and one sync controller.

A successful sync job changes the server-side catalog, so when the
controller reaches ``SUCCEEDED`` both stores are refreshed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from .config import Config
from .core.client import CatalogClient
from .core.gateway import HttpGateway, RemoteGateway
from .errors import Outcome
from .models import Content, EntityKind, Theme
from .store.optimistic import OptimisticStore
from .sync.controller import SyncController
from .sync.session import SyncPolicy, SyncSession, SyncState
from .token_store import TokenStore

logger = logging.getLogger(__name__)


class CatalogMirror:
    """Local view of the content and theme collections.

    Args:
        gateway: Remote calls shared by stores and controller.
        policy: Sync controller timing.
        sleep: Delay function handed to the controller.
        clock: Time source handed to the stores.
        refresh_on_sync: Refresh both stores after a successful sync.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        policy: SyncPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        refresh_on_sync: bool = True,
    ) -> None:
        self.gateway = gateway
        self.content: OptimisticStore[Content] = OptimisticStore(
            EntityKind.CONTENT, gateway, clock=clock
        )
        self.themes: OptimisticStore[Theme] = OptimisticStore(
            EntityKind.THEME, gateway, clock=clock
        )
        self.sync = SyncController(gateway, policy, sleep=sleep)
        self._refresh_task: asyncio.Task | None = None
        if refresh_on_sync:
            self.sync.subscribe(self._on_sync_session)

    @classmethod
    def from_config(
        cls, config: Config, token_store: TokenStore | None = None
    ) -> CatalogMirror:
        client = CatalogClient(config, token_store)
        return cls(HttpGateway(client), config.sync_policy())

    def store(self, kind: EntityKind | str) -> OptimisticStore:
        return (
            self.content
            if EntityKind(kind) is EntityKind.CONTENT
            else self.themes
        )

    async def refresh(self) -> dict[EntityKind, Outcome]:
        """Refresh both collections concurrently."""
        content, themes = await asyncio.gather(
            self.content.fetch(), self.themes.fetch()
        )
        return {EntityKind.CONTENT: content, EntityKind.THEME: themes}

    async def set_theme(
        self, content_id: str, theme_id: str | None
    ) -> Outcome[Content]:
        """Assign (or clear, with ``None``) the theme of a content item."""
        return await self.content.apply(content_id, {"themeId": theme_id})

    async def create_theme(self, data: dict[str, Any]) -> Outcome[Theme]:
        return await self.themes.create(data)

    async def wait_for_refresh(self) -> None:
        """Wait for a refresh triggered by sync completion, if any."""
        task = self._refresh_task
        if task is not None and not task.done():
            await asyncio.wait([task])

    async def close(self) -> None:
        """Cancel the sync job and any pending post-sync refresh."""
        self.sync.cancel()
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])

    def _on_sync_session(self, session: SyncSession) -> None:
        if session.state is not SyncState.SUCCEEDED:
            return
        logger.info("Sync succeeded, refreshing catalog")
        previous = self._refresh_task
        if previous is not None and not previous.done():
            previous.cancel()
        self._refresh_task = asyncio.create_task(self.refresh())

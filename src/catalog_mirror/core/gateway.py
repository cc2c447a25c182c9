"""The remote boundary consumed by the sync controller and the stores.

``RemoteGateway`` is the contract: async calls that return validated
models or raise a ``CatalogError`` subclass.  ``HttpGateway`` fulfils it
by running ``CatalogClient`` calls in worker threads.
"""

from __future__ import annotations

from typing import Any, Protocol

from ..errors import classify_error
from ..models import EntityKind, SyncStarted, SyncStatus
from .async_utils import run_sync_limited
from .client import CatalogClient


class RemoteGateway(Protocol):
    async def fetch_collection(self, kind: EntityKind) -> list[Any]: ...

    async def begin_sync(self) -> SyncStarted: ...

    async def check_status(self) -> SyncStatus: ...

    async def mutate(
        self, kind: EntityKind, entity_id: str, patch: dict[str, Any]
    ) -> Any: ...

    async def create(self, kind: EntityKind, data: dict[str, Any]) -> Any: ...

    async def delete(self, kind: EntityKind, entity_id: str) -> None: ...


class HttpGateway:
    """``RemoteGateway`` backed by a blocking ``CatalogClient``."""

    def __init__(self, client: CatalogClient):
        self.client = client

    async def _call(self, func, *args):
        try:
            return await run_sync_limited(func, *args)
        except Exception as e:
            classified = classify_error(e)
            if classified is e:
                raise
            raise classified from e

    async def fetch_collection(self, kind: EntityKind) -> list[Any]:
        return await self._call(self.client.fetch_collection, kind)

    async def begin_sync(self) -> SyncStarted:
        return await self._call(self.client.begin_sync)

    async def check_status(self) -> SyncStatus:
        return await self._call(self.client.check_status)

    async def mutate(
        self, kind: EntityKind, entity_id: str, patch: dict[str, Any]
    ) -> Any:
        return await self._call(self.client.mutate, kind, entity_id, patch)

    async def create(self, kind: EntityKind, data: dict[str, Any]) -> Any:
        return await self._call(self.client.create, kind, data)

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        await self._call(self.client.delete, kind, entity_id)

"""Optimistic local collection kept consistent with the server.

The store keeps two things:

* the **base**: the last collection known to be good (server refresh
  results plus confirmed mutations), and
* the **pending** mutations, in the order they were issued.

The visible collection is always the base with the pending mutations
replayed on top, in issue order.  Consequences:

* A mutation is visible as soon as ``apply()`` is called, before the
  network call resolves.
* A failed mutation just drops out of the pending list.  When it was
  the only one in flight and nothing else touched the base, the exact
  pre-image tuple is restored.
* A confirmation only lands in the base if no later-issued mutation of
  the same entity already confirmed, so a slow early response cannot
  clobber a newer confirmed value.
* A refresh never overwrites an entity confirmed after the refresh was
  issued, pending mutations stay overlaid on the refreshed base, and a
  refresh superseded by a newer one is discarded.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from pydantic import BaseModel

from ..errors import (
    CancelledOperationError,
    CatalogError,
    Outcome,
    SchemaValidationError,
    classify_error,
)
from ..models import (
    EntityKind,
    apply_patch,
    entity_model,
    normalize_patch,
    patch_to_wire,
)

if TYPE_CHECKING:
    from ..core.gateway import RemoteGateway

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

ItemsListener = Callable[[tuple], None]


@dataclass(frozen=True)
class MutationRecord(Generic[T]):
    """One in-flight mutation.

    Attributes:
        seq: Issue order within the store.
        entity_id: Target entity.
        patch: Validated field values, or ``None`` for a removal.
        previous_snapshot: Visible collection just before the mutation.
        applied_at: Clock time the optimistic change was published.
        base_version: Base version when the mutation was issued.
        exclusive: True if nothing else was pending at issue time.
    """

    seq: int
    entity_id: str
    patch: dict[str, Any] | None
    previous_snapshot: tuple[T, ...]
    applied_at: float
    base_version: int
    exclusive: bool

    @property
    def is_removal(self) -> bool:
        return self.patch is None


class OptimisticStore(Generic[T]):
    """Collection of one entity kind with optimistic mutations.

    Args:
        kind: Which collection this store mirrors.
        gateway: Remote calls for fetch, mutate, create and delete.
        clock: Returns the current time; stamps mutation records.
    """

    def __init__(
        self,
        kind: EntityKind | str,
        gateway: RemoteGateway,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.kind = EntityKind(kind)
        self.model = entity_model(self.kind)
        self._gateway = gateway
        self._clock = clock

        self._base: tuple[T, ...] = ()
        self._base_version = 0
        self._items: tuple[T, ...] = ()
        self._pending: dict[int, MutationRecord[T]] = {}
        self._seq = 0
        self._confirmed_seq: dict[str, int] = {}

        self._refresh_token = 0
        self._write_epoch = 0
        self._touched: dict[str, int] = {}

        self._loading = False
        self._last_error: CatalogError | None = None
        self._listeners: list[ItemsListener] = []

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    @property
    def pending_ids(self) -> frozenset[str]:
        """Ids with an unconfirmed optimistic change."""
        return frozenset(r.entity_id for r in self._pending.values())

    @property
    def pending(self) -> tuple[MutationRecord[T], ...]:
        return tuple(self._pending.values())

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def last_error(self) -> CatalogError | None:
        return self._last_error

    def get(self, entity_id: str) -> T | None:
        return _find(self._items, entity_id)

    def subscribe(self, listener: ItemsListener) -> Callable[[], None]:
        """Call *listener* with the visible collection on every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def fetch(self) -> Outcome[tuple[T, ...]]:
        """Replace the base with the server's collection.

        Returns:
            The new visible collection; ``stale=True`` (and the current
            collection) when a newer refresh was issued meanwhile.
        """
        self._refresh_token += 1
        token = self._refresh_token
        epoch = self._write_epoch
        self._loading = True

        try:
            fresh = await self._gateway.fetch_collection(self.kind)
        except asyncio.CancelledError:
            if token == self._refresh_token:
                self._loading = False
            raise
        except Exception as e:
            error = classify_error(e)
            if token != self._refresh_token:
                return Outcome.failure(error)
            self._loading = False
            self._last_error = error
            logger.error(
                "Failed to load %s: %s", self.kind.value, error.message
            )
            return Outcome.failure(error)

        if token != self._refresh_token:
            logger.debug(
                "Discarding stale %s refresh #%d", self.kind.value, token
            )
            return Outcome.success(self._items, stale=True)

        self._base = self._merge_refresh(fresh, epoch)
        self._base_version += 1
        self._loading = False
        self._last_error = None
        self._publish(self._compose())
        logger.info(
            "Loaded %d %s item(s)", len(self._base), self.kind.value
        )
        return Outcome.success(self._items)

    def _merge_refresh(self, fresh: list[T], epoch: int) -> tuple[T, ...]:
        """Server result, except entities confirmed after *epoch*."""
        merged = {entity.id: entity for entity in fresh}
        for entity_id, written_at in self._touched.items():
            if written_at <= epoch:
                continue
            local = _find(self._base, entity_id)
            if local is None:
                merged.pop(entity_id, None)
            else:
                merged[entity_id] = local
        self._touched = {
            k: v for k, v in self._touched.items() if v > epoch
        }
        return tuple(merged.values())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def apply(
        self, entity_id: str, patch: dict[str, Any]
    ) -> Outcome[T]:
        """Patch one entity optimistically, then confirm or roll back.

        The patched collection is published before the first await.
        An unknown id or an invalid patch fails without publishing or
        calling the server.

        Returns:
            The server's canonical entity, or the classified error.
        """
        current = self.get(entity_id)
        if current is None:
            return self._reject(
                SchemaValidationError(
                    f"No {self.kind.value} with id '{entity_id}'"
                )
            )
        try:
            fields = normalize_patch(self.model, patch)
            patched = apply_patch(current, fields)
        except CatalogError as e:
            return self._reject(e)

        values = {name: getattr(patched, name) for name in fields}
        record = self._begin(entity_id, values)
        try:
            canonical = await self._gateway.mutate(
                self.kind, entity_id, patch_to_wire(self.model, values)
            )
        except asyncio.CancelledError:
            self._rollback(record, CancelledOperationError())
            raise
        except Exception as e:
            error = classify_error(e)
            self._rollback(record, error)
            return Outcome.failure(error)

        self._confirm(record, canonical)
        return Outcome.success(canonical)

    async def remove(self, entity_id: str) -> Outcome[None]:
        """Delete one entity optimistically."""
        if self.get(entity_id) is None:
            return self._reject(
                SchemaValidationError(
                    f"No {self.kind.value} with id '{entity_id}'"
                )
            )
        record = self._begin(entity_id, None)
        try:
            await self._gateway.delete(self.kind, entity_id)
        except asyncio.CancelledError:
            self._rollback(record, CancelledOperationError())
            raise
        except Exception as e:
            error = classify_error(e)
            self._rollback(record, error)
            return Outcome.failure(error)

        self._confirm(record, None)
        return Outcome.success(None)

    async def create(self, data: dict[str, Any]) -> Outcome[T]:
        """Create an entity and append the server's copy.

        Not optimistic: the id is assigned by the server.
        """
        try:
            created = await self._gateway.create(self.kind, data)
        except Exception as e:
            return self._reject(classify_error(e))

        self._write_epoch += 1
        self._touched[created.id] = self._write_epoch
        self._base = _replace(self._base, created)
        self._base_version += 1
        self._publish(self._compose())
        logger.info("Created %s %s", self.kind.value, created.id)
        return Outcome.success(created)

    # ------------------------------------------------------------------
    # Mutation lifecycle
    # ------------------------------------------------------------------

    def _begin(
        self, entity_id: str, patch: dict[str, Any] | None
    ) -> MutationRecord[T]:
        self._seq += 1
        record = MutationRecord(
            seq=self._seq,
            entity_id=entity_id,
            patch=patch,
            previous_snapshot=self._items,
            applied_at=self._clock(),
            base_version=self._base_version,
            exclusive=not self._pending,
        )
        self._pending[record.seq] = record
        self._publish(self._compose())
        return record

    def _confirm(self, record: MutationRecord[T], canonical: T | None) -> None:
        del self._pending[record.seq]
        entity_id = record.entity_id

        if record.seq > self._confirmed_seq.get(entity_id, 0):
            self._confirmed_seq[entity_id] = record.seq
            self._write_epoch += 1
            self._touched[entity_id] = self._write_epoch
            if record.is_removal:
                self._base = tuple(
                    e for e in self._base if e.id != entity_id
                )
            elif canonical is not None:
                self._base = _replace(self._base, canonical)
            self._base_version += 1
        else:
            logger.debug(
                "Ignoring late confirmation #%d for %s %s",
                record.seq,
                self.kind.value,
                entity_id,
            )

        self._publish(self._compose())

    def _rollback(self, record: MutationRecord[T], error: CatalogError) -> None:
        del self._pending[record.seq]
        self._last_error = error

        untouched = (
            record.exclusive
            and not self._pending
            and record.base_version == self._base_version
        )
        self._publish(record.previous_snapshot if untouched else self._compose())

        if isinstance(error, CancelledOperationError):
            logger.debug(
                "Mutation of %s %s cancelled, rolled back",
                self.kind.value,
                record.entity_id,
            )
        else:
            logger.warning(
                "Mutation of %s %s failed (%s), rolled back: %s",
                self.kind.value,
                record.entity_id,
                error.kind.value,
                error.message,
            )

    def _reject(self, error: CatalogError) -> Outcome:
        self._last_error = error
        logger.warning(
            "%s operation rejected (%s): %s",
            self.kind.value.capitalize(),
            error.kind.value,
            error.message,
        )
        return Outcome.failure(error)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _compose(self) -> tuple[T, ...]:
        """Base with pending mutations replayed in issue order."""
        if not self._pending:
            return self._base
        items = list(self._base)
        for record in self._pending.values():
            if record.seq < self._confirmed_seq.get(record.entity_id, 0):
                continue
            index = _index(items, record.entity_id)
            if index is None:
                continue
            if record.is_removal:
                del items[index]
            else:
                items[index] = items[index].model_copy(update=record.patch)
        return tuple(items)

    def _publish(self, items: tuple[T, ...]) -> None:
        self._items = items
        for listener in list(self._listeners):
            try:
                listener(items)
            except Exception:
                logger.exception("%s listener raised", self.kind.value)


def _index(items, entity_id: str) -> int | None:
    for i, entity in enumerate(items):
        if entity.id == entity_id:
            return i
    return None


def _find(items, entity_id: str):
    index = _index(items, entity_id)
    return None if index is None else items[index]


def _replace(items: tuple, entity) -> tuple:
    """Swap in *entity* by id, appending it when absent."""
    index = _index(items, entity.id)
    if index is None:
        return items + (entity,)
    return items[:index] + (entity,) + items[index + 1 :]

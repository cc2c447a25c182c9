"""Shared pytest fixtures for catalog-mirror tests."""

import asyncio
from typing import Any

import pytest

from catalog_mirror.config import Config
from catalog_mirror.core.async_utils import reset_semaphore
from catalog_mirror.errors import RemoteError
from catalog_mirror.mirror import CatalogMirror
from catalog_mirror.models import (
    Content,
    EntityKind,
    SyncStarted,
    SyncStatus,
    Theme,
    entity_model,
)
from catalog_mirror.sync.session import SyncPolicy


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live catalog API",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _no_semaphore():
    """Each test starts without a request semaphore."""
    reset_semaphore()
    yield
    reset_semaphore()


@pytest.fixture
def mock_config(tmp_path):
    """Create a Config instance for testing."""
    return Config(
        api_url="https://catalog.example.com",
        environment="test",
        token_file=str(tmp_path / "tokens.json"),
    )


def make_content(
    id: str = "c1", theme_id: str | None = "A", text: str = "hello"
) -> Content:
    return Content(
        id=id,
        type="post",
        text=text,
        themeId=theme_id,
        createdAt="2024-05-01T10:00:00Z",
    )


def make_theme(id: str = "A", name: str = "Travel", count: int = 0) -> Theme:
    return Theme(id=id, name=name, contentCount=count)


class FakeGateway:
    """In-memory RemoteGateway.

    Results are queued per call; a queued exception is raised instead of
    returned.  When ``hold`` is set for a call, the call blocks on a
    future the test resolves through ``release()``.
    """

    def __init__(self):
        self.collections: dict[EntityKind, list] = {
            EntityKind.CONTENT: [],
            EntityKind.THEME: [],
        }
        self.status_results: list[Any] = []
        self.begin_results: list[Any] = []
        self.mutate_errors: list[Exception | None] = []
        self.calls: list[tuple] = []
        self.held: dict[str, list[asyncio.Future]] = {}
        self.hold_calls: set[str] = set()
        self.fetch_error: Exception | None = None
        self._next_id = 100

    async def _maybe_hold(self, name: str):
        if name in self.hold_calls:
            fut = asyncio.get_running_loop().create_future()
            self.held.setdefault(name, []).append(fut)
            return await fut
        return None

    def release(self, name: str, value: Any = None, index: int = 0):
        fut = self.held[name].pop(index)
        if isinstance(value, BaseException):
            fut.set_exception(value)
        else:
            fut.set_result(value)

    async def fetch_collection(self, kind):
        kind = EntityKind(kind)
        self.calls.append(("fetch", kind))
        if "fetch" in self.hold_calls:
            return await self._maybe_hold("fetch")
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.collections[kind])

    async def begin_sync(self):
        self.calls.append(("begin",))
        if "begin" in self.hold_calls:
            return await self._maybe_hold("begin")
        if self.begin_results:
            result = self.begin_results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return SyncStarted(status="started")

    async def check_status(self):
        self.calls.append(("status",))
        result = self.status_results.pop(0) if self.status_results else (
            SyncStatus(complete=False)
        )
        if isinstance(result, Exception):
            raise result
        return result

    async def mutate(self, kind, entity_id, patch):
        kind = EntityKind(kind)
        self.calls.append(("mutate", kind, entity_id, patch))
        if "mutate" in self.hold_calls:
            result = await self._maybe_hold("mutate")
            if result is not None:
                return result
        elif self.mutate_errors:
            error = self.mutate_errors.pop(0)
            if error is not None:
                raise error
        return self._apply_remote(kind, entity_id, patch)

    def _apply_remote(self, kind, entity_id, patch):
        items = self.collections[kind]
        for i, entity in enumerate(items):
            if entity.id == entity_id:
                data = entity.model_dump(by_alias=True)
                data.update(patch)
                updated = entity_model(kind).model_validate(data)
                items[i] = updated
                return updated
        raise RemoteError(404, f"{kind.value} {entity_id} not found")

    async def create(self, kind, data):
        kind = EntityKind(kind)
        self.calls.append(("create", kind, data))
        self._next_id += 1
        payload = {"id": f"n{self._next_id}", **data}
        if kind is EntityKind.THEME:
            payload.setdefault("contentCount", 0)
        created = entity_model(kind).model_validate(payload)
        self.collections[kind].append(created)
        return created

    async def delete(self, kind, entity_id):
        kind = EntityKind(kind)
        self.calls.append(("delete", kind, entity_id))
        if "delete" in self.hold_calls:
            await self._maybe_hold("delete")
            return None
        if self.mutate_errors:
            error = self.mutate_errors.pop(0)
            if error is not None:
                raise error
        self.collections[kind] = [
            e for e in self.collections[kind] if e.id != entity_id
        ]
        return None

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class RecordingSleep:
    """Sleep replacement that records delays and yields to the loop."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def seeded_mirror(gateway, fake_sleep):
    """CatalogMirror over the fake gateway with two items and two themes."""
    gateway.collections[EntityKind.CONTENT] = [
        make_content("c1", "A"),
        make_content("c2", None, text="unsorted"),
    ]
    gateway.collections[EntityKind.THEME] = [
        make_theme("A", "Travel", 1),
        make_theme("B", "Food"),
    ]
    return CatalogMirror(gateway, SyncPolicy(max_polls=3), sleep=fake_sleep)

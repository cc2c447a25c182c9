from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import requests

from ..errors import SchemaValidationError, classify_error
from ..models import (
    CREATE_MODELS,
    Content,
    EntityKind,
    SyncStarted,
    SyncStatus,
    Theme,
    entity_model,
    parse_as,
)
from ..token_store import TokenStore

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)

_COLLECTION_PATHS = {
    EntityKind.CONTENT: "/content",
    EntityKind.THEME: "/themes",
}


def _entity_path(kind: EntityKind, entity_id: str) -> str:
    """Path of one entity, with the id percent-encoded."""
    return f"{_COLLECTION_PATHS[kind]}/{quote(entity_id, safe='')}"


class CatalogClient:
    """Blocking HTTP/JSON client for the catalog API.

    Every method either returns schema-validated data or raises a
    ``CatalogError`` subclass; raw ``requests`` or pydantic exceptions
    never escape.
    """

    def __init__(
        self, config: Config, token_store: TokenStore | None = None
    ):
        self.config = config
        self.token_store = token_store
        self.base_url = config.api_url.rstrip("/")
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = not self.config.insecure
        session.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )
        return session

    def _auth_headers(self) -> dict[str, str]:
        if self.token_store is None:
            return {}
        tokens = self.token_store.load()
        if tokens is None:
            return {}
        return {"Authorization": f"Bearer {tokens.access_token}"}

    def _request(
        self, method: str, path: str, body: Any | None = None
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Returns ``None`` for empty bodies (e.g. 204 No Content).

        Raises:
            NetworkError: No response (connection refused, timeout...).
            RemoteError: Non-2xx status.
            SchemaValidationError: 2xx with a body that is not JSON.
        """
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self._get_session().request(
                method,
                url,
                json=body,
                headers=self._auth_headers(),
                timeout=(
                    self.config.connect_timeout,
                    self.config.read_timeout,
                ),
            )
            response.raise_for_status()
        except requests.RequestException as e:
            error = classify_error(e)
            logger.debug("%s %s failed: %r", method, url, error)
            raise error from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise SchemaValidationError(
                f"Response from {path} is not valid JSON"
            ) from e

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def fetch_collection(self, kind: EntityKind | str) -> list[Any]:
        kind = EntityKind(kind)
        data = self._request("GET", _COLLECTION_PATHS[kind])
        return parse_as(list[entity_model(kind)], data)

    def fetch_content(self) -> list[Content]:
        return self.fetch_collection(EntityKind.CONTENT)

    def fetch_themes(self) -> list[Theme]:
        return self.fetch_collection(EntityKind.THEME)

    # ------------------------------------------------------------------
    # Sync job
    # ------------------------------------------------------------------

    def begin_sync(self) -> SyncStarted:
        """Ask the server to start a synchronization job."""
        return parse_as(
            SyncStarted, self._request("POST", "/content/sync")
        )

    def check_status(self) -> SyncStatus:
        """Fetch the progress of the running synchronization job."""
        return parse_as(
            SyncStatus, self._request("GET", "/content/sync/status")
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_theme(self, content_id: str, theme_id: str | None) -> Content:
        """Assign a theme to a content item.

        Returns:
            The server's canonical content item.
        """
        data = self._request(
            "PUT",
            f"{_entity_path(EntityKind.CONTENT, content_id)}/theme",
            {"themeId": theme_id},
        )
        return parse_as(Content, data)

    def mutate(
        self,
        kind: EntityKind | str,
        entity_id: str,
        patch: dict[str, Any],
    ) -> Any:
        """Apply a partial update; *patch* uses wire (camelCase) names.

        A content patch that only changes ``themeId`` goes through the
        dedicated theme-assignment endpoint.
        """
        kind = EntityKind(kind)
        if kind is EntityKind.CONTENT and set(patch) == {"themeId"}:
            return self.update_theme(entity_id, patch["themeId"])
        data = self._request(
            "PATCH", _entity_path(kind, entity_id), patch
        )
        return parse_as(entity_model(kind), data)

    def create(self, kind: EntityKind | str, data: dict[str, Any]) -> Any:
        """Create an entity; the server assigns its id."""
        kind = EntityKind(kind)
        payload = parse_as(CREATE_MODELS[kind], data).model_dump(
            by_alias=True, exclude_none=True
        )
        created = self._request("POST", _COLLECTION_PATHS[kind], payload)
        return parse_as(entity_model(kind), created)

    def delete(self, kind: EntityKind | str, entity_id: str) -> None:
        kind = EntityKind(kind)
        self._request(
            "DELETE", _entity_path(kind, entity_id)
        )

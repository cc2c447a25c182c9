"""Pydantic schemas for everything the catalog API returns or accepts.

Wire names are camelCase (``themeId``, ``contentCount``); Python
attributes are snake_case.  Both spellings are accepted on input.

Entity models are frozen so a published collection can never be
modified in place -- a change always produces a new object.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .errors import SchemaValidationError, classify_error


class EntityKind(str, Enum):
    """Collections mirrored from the catalog."""

    CONTENT = "content"
    THEME = "theme"


_ENTITY_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    extra="ignore",
)


class Theme(BaseModel):
    """A theme grouping catalog content."""

    id: str
    name: str
    content_count: int = Field(alias="contentCount", ge=0)
    confidence: float | None = Field(default=None, ge=0, le=1)

    model_config = _ENTITY_CONFIG


class Content(BaseModel):
    """A single content item (post, repost, like or bookmark)."""

    id: str
    type: Literal["post", "repost", "like", "bookmark"]
    text: str
    theme_id: str | None = Field(default=None, alias="themeId")
    created_at: str = Field(alias="createdAt")

    model_config = _ENTITY_CONFIG


class NewTheme(BaseModel):
    """Payload for creating a theme; the server assigns the id."""

    name: str = Field(min_length=1)
    content_count: int = Field(default=0, alias="contentCount", ge=0)
    confidence: float | None = Field(default=None, ge=0, le=1)

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class NewContent(BaseModel):
    """Payload for creating a content item."""

    type: Literal["post", "repost", "like", "bookmark"]
    text: str
    theme_id: str | None = Field(default=None, alias="themeId")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class SyncStatus(BaseModel):
    """Progress report of the remote synchronization job."""

    complete: bool
    progress: float | None = Field(default=None, ge=0, le=100)
    error: str | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class SyncStarted(BaseModel):
    """Acknowledgement returned when a sync job is started."""

    status: str

    model_config = ConfigDict(frozen=True, extra="ignore")


class TokenSet(BaseModel):
    """Auth tokens kept in the local token store."""

    access_token: str
    refresh_token: str
    expires_at: float

    model_config = ConfigDict(frozen=True)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


ENTITY_MODELS: dict[EntityKind, type[BaseModel]] = {
    EntityKind.CONTENT: Content,
    EntityKind.THEME: Theme,
}

CREATE_MODELS: dict[EntityKind, type[BaseModel]] = {
    EntityKind.CONTENT: NewContent,
    EntityKind.THEME: NewTheme,
}

_adapters: dict[Any, TypeAdapter] = {}


def _adapter(schema: Any) -> TypeAdapter:
    if schema not in _adapters:
        _adapters[schema] = TypeAdapter(schema)
    return _adapters[schema]


def parse_as(schema: Any, data: Any) -> Any:
    """Validate *data* against *schema* or raise SchemaValidationError.

    Args:
        schema: A model class or typing construct (``list[Theme]``).
        data: Decoded JSON.

    Returns:
        The validated value.
    """
    try:
        return _adapter(schema).validate_python(data)
    except pydantic.ValidationError as e:
        raise classify_error(e) from e


def entity_model(kind: EntityKind | str) -> type[BaseModel]:
    return ENTITY_MODELS[EntityKind(kind)]


def normalize_patch(
    model: type[BaseModel], patch: dict[str, Any]
) -> dict[str, Any]:
    """Turn a patch into a field-name keyed dict, validating field names.

    Accepts either wire aliases or attribute names.  The ``id`` field can
    never be patched.

    Raises:
        SchemaValidationError: Empty patch, unknown field, or ``id``.
    """
    if not patch:
        raise SchemaValidationError("Patch must change at least one field")
    by_alias = {
        (info.alias or name): name
        for name, info in model.model_fields.items()
    }
    normalized: dict[str, Any] = {}
    for key, value in patch.items():
        name = by_alias.get(key, key)
        if name not in model.model_fields:
            raise SchemaValidationError(
                f"Unknown field '{key}' for {model.__name__}"
            )
        if name == "id":
            raise SchemaValidationError("The id field cannot be patched")
        normalized[name] = value
    return normalized


def apply_patch(entity: BaseModel, patch: dict[str, Any]) -> BaseModel:
    """Return a re-validated copy of *entity* with *patch* applied.

    *patch* must already be normalized (see ``normalize_patch``).
    """
    data = entity.model_dump()
    data.update(patch)
    return parse_as(type(entity), data)


def patch_to_wire(
    model: type[BaseModel], patch: dict[str, Any]
) -> dict[str, Any]:
    """Rename normalized patch keys to their wire aliases."""
    fields = model.model_fields
    return {(fields[name].alias or name): v for name, v in patch.items()}

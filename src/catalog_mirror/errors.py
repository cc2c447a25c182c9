"""Classified errors and the tagged result type.

Every failure that crosses the gateway boundary is one of the
``CatalogError`` subclasses below, each tagged with a fixed
``ErrorKind``.  Callers decide behaviour from ``error.kind`` alone.

``classify_error()`` is the single place where raw exceptions
(``requests`` transport errors, pydantic validation errors, anything
unexpected) are turned into classified ones.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

import pydantic
import requests

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Fixed error kinds used to drive behaviour."""

    NETWORK = "network"
    REMOTE = "remote"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"


class CatalogError(Exception):
    """Base class for all classified errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def retryable(self) -> bool:
        """Whether the sync controller may retry after this error."""
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class NetworkError(CatalogError):
    """Transport-level failure: no response was received."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str = "Network request failed"):
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return True


class RemoteError(CatalogError):
    """The server answered with a failure status."""

    kind = ErrorKind.REMOTE

    def __init__(
        self,
        status: int | None,
        message: str = "API request failed",
        code: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.code = code

    def __repr__(self) -> str:
        return (
            f"RemoteError(status={self.status}, "
            f"message={self.message!r}, code={self.code!r})"
        )


class SchemaValidationError(CatalogError):
    """A payload did not match its schema. Never partially trusted."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str = "Invalid data received", details=None):
        super().__init__(message)
        self.details = details or []


class PollTimeoutError(CatalogError):
    """The sync job did not complete within the poll cap."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, polls: int):
        super().__init__(
            f"Sync did not complete after {polls} status checks"
        )
        self.polls = polls


class CancelledOperationError(CatalogError):
    """The operation was cancelled by the caller."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message)


class UnexpectedError(CatalogError):
    """Wraps an exception that fits no other kind."""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, original: BaseException | None = None):
        super().__init__(message)
        self.original = original


def _remote_error_from_response(
    response: requests.Response,
) -> RemoteError:
    """Build a RemoteError from an HTTP error response.

    The body is expected to be ``{"message": ..., "code": ...}`` but is
    not required to be JSON at all.
    """
    message = "API request failed"
    code = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if isinstance(body.get("message"), str) and body["message"]:
            message = body["message"]
        if body.get("code") is not None:
            code = str(body["code"])
    return RemoteError(response.status_code, message, code)


def classify_error(exc: BaseException) -> CatalogError:
    """Map any exception onto the classified hierarchy.

    Args:
        exc: The raised exception.

    Returns:
        ``exc`` itself when already classified, otherwise a new
        ``CatalogError`` chained to it.
    """
    match exc:
        case CatalogError():
            return exc
        case asyncio.CancelledError():
            return CancelledOperationError()
        case requests.HTTPError() if exc.response is not None:
            return _remote_error_from_response(exc.response)
        case (
            requests.ConnectionError()
            | requests.Timeout()
            | ConnectionError()
            | TimeoutError()
        ):
            return NetworkError(str(exc) or "Network request failed")
        case pydantic.ValidationError():
            return SchemaValidationError(
                f"Invalid data received: {exc.error_count()} error(s)",
                details=exc.errors(include_url=False),
            )
        case requests.RequestException():
            return NetworkError(str(exc) or "Network request failed")
        case _:
            return UnexpectedError(
                f"An unexpected error occurred: {exc}", original=exc
            )


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Tagged success/failure value returned by store operations.

    Attributes:
        value: Result on success.
        error: Classified error on failure.
        stale: True when a refresh result was superseded and discarded.
    """

    value: T | None = None
    error: CatalogError | None = None
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, raising the classified error on failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T, stale: bool = False) -> Outcome[T]:
        return cls(value=value, stale=stale)

    @classmethod
    def failure(cls, error: CatalogError) -> Outcome[T]:
        return cls(error=error)

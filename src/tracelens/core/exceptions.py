"""Shared exceptions for the tracelens package."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tracelens.core.models import ProviderType


class TracelensError(Exception):
    """Base class for all tracelens errors."""


class ValidationError(TracelensError, ValueError):
    """Raised when a required input is missing or malformed.

    Validation errors indicate a caller bug and are never swallowed.
    """


class DimensionMismatchError(TracelensError):
    """Raised when two embedding vectors of different lengths are compared."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimensions must match: expected {expected}, got {actual}"
        )


class StorageError(TracelensError):
    """Raised when the local document store fails to read or write."""


class RetrievalError(TracelensError):
    """Raised when embedding or searching fails during a live query."""


class ProviderError(TracelensError):
    """Raised when a model or embedding provider call fails.

    ``transient`` marks failures worth retrying: timeouts, dropped
    connections, rate limits and server-side errors.
    """

    def __init__(
        self,
        message: str,
        provider_type: ProviderType | None = None,
        *,
        transient: bool = False,
    ) -> None:
        self.provider_type = provider_type
        self.transient = transient
        super().__init__(message)


class NoContextError(TracelensError):
    """Raised when a user query arrives before any test failure context exists."""

    def __init__(self) -> None:
        super().__init__(
            "No test failure context available. "
            "Please run a test first to establish context for AI analysis."
        )

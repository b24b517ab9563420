"""Base protocol for embedding providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tracelens.core.models import ProviderType


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for turning text into a fixed-length float vector."""

    @property
    def provider_type(self) -> ProviderType:
        """Backend whose vector space this provider produces."""
        ...

    @property
    def dimension(self) -> int:
        """Length of every vector returned by :meth:`embed`."""
        ...

    async def embed(self, text: str, api_key: str) -> list[float]:
        """
        Embed text.

        Args:
            text: Text to embed; must not be blank.
            api_key: API key for the backend.

        Returns:
            Embedding vector.

        Raises:
            ValidationError: If text is blank.
            ProviderError: If the backend call fails or returns no vector.
        """
        ...

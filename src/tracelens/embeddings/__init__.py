"""Embedding providers keyed by provider type."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tracelens.core.models import ProviderType
from tracelens.embeddings.base import EmbeddingProvider
from tracelens.embeddings.gemini import GeminiEmbeddingProvider
from tracelens.embeddings.openai import OpenAIEmbeddingProvider

if TYPE_CHECKING:
    import httpx

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "GeminiEmbeddingProvider",
    "create_embedding_providers",
]


def create_embedding_providers(
    http_client: httpx.AsyncClient | None = None,
) -> dict[ProviderType, EmbeddingProvider]:
    """Create one embedding provider per built-in provider type."""
    return {
        ProviderType.OPENAI: OpenAIEmbeddingProvider(http_client=http_client),
        ProviderType.GEMINI: GeminiEmbeddingProvider(),
    }

"""Model provider abstraction layer."""

from __future__ import annotations

import httpx

from tracelens.core.exceptions import ValidationError
from tracelens.core.models import ProviderType
from tracelens.llm.providers.base import ModelProvider
from tracelens.llm.providers.gemini import GeminiProvider
from tracelens.llm.providers.openai import OpenAIProvider
from tracelens.llm.providers.registry import ProviderRegistry

__all__ = [
    "ModelProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "ProviderRegistry",
    "create_provider",
    "create_default_registry",
]

# Connect timeout for the shared HTTP client; per-request timeouts are set by providers
HTTP_CONNECT_TIMEOUT = 10.0
HTTP_READ_TIMEOUT = 30.0


def create_provider(
    provider_type: ProviderType,
    *,
    max_tokens: int | None = None,
    temperature: float | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ModelProvider:
    """
    Factory function to create model providers.

    Args:
        provider_type: Backend to create a provider for.
        max_tokens: Optional max tokens override.
        temperature: Optional temperature override.
        http_client: Shared HTTP client (used by providers whose SDK accepts one).

    Returns:
        ModelProvider instance.

    Raises:
        ValidationError: If provider type is unknown.
    """
    if provider_type is ProviderType.OPENAI:
        return OpenAIProvider(
            max_tokens=max_tokens,
            temperature=temperature,
            http_client=http_client,
        )
    if provider_type is ProviderType.GEMINI:
        return GeminiProvider(max_tokens=max_tokens, temperature=temperature)

    valid = ", ".join(sorted(p.value for p in ProviderType))
    raise ValidationError(f"Unknown provider: {provider_type}. Valid providers: {valid}")


def create_default_registry(http_client: httpx.AsyncClient | None = None) -> ProviderRegistry:
    """Create a registry with every built-in provider sharing one HTTP client."""
    if http_client is None:
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(HTTP_READ_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT)
        )
    registry = ProviderRegistry(http_client=http_client)
    for provider_type in ProviderType:
        registry.register(create_provider(provider_type, http_client=http_client))
    return registry

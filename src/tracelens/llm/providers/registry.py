"""Lookup of model providers keyed by provider type."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tracelens.core.exceptions import ValidationError

if TYPE_CHECKING:
    import httpx

    from tracelens.core.models import ProviderType
    from tracelens.llm.providers.base import ModelProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Holds one ModelProvider per provider type.

    Adding a backend means registering one more provider; callers only ever
    look providers up by type.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self._providers: dict[ProviderType, ModelProvider] = {}
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient | None:
        """Shared HTTP client owned by this registry, if any."""
        return self._http_client

    def register(self, provider: ModelProvider) -> None:
        """Register a provider, replacing any provider of the same type."""
        if provider is None:
            raise ValidationError("Provider cannot be None")
        provider_type = provider.provider_type
        if provider_type in self._providers:
            logger.info("provider_replaced: type=%s", provider_type.value)
        self._providers[provider_type] = provider

    def unregister(self, provider_type: ProviderType) -> ModelProvider | None:
        """Remove and return the provider for a type, if registered."""
        if provider_type is None:
            raise ValidationError("Provider type cannot be None")
        return self._providers.pop(provider_type, None)

    def has_provider(self, provider_type: ProviderType) -> bool:
        if provider_type is None:
            raise ValidationError("Provider type cannot be None")
        return provider_type in self._providers

    def get_provider(self, provider_type: ProviderType) -> ModelProvider | None:
        if provider_type is None:
            raise ValidationError("Provider type cannot be None")
        return self._providers.get(provider_type)

    def registered_types(self) -> list[ProviderType]:
        return list(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, provider_type: object) -> bool:
        return provider_type in self._providers

    async def aclose(self) -> None:
        """Close providers and the shared HTTP client."""
        for provider in self._providers.values():
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()
        if self._http_client is not None:
            await self._http_client.aclose()

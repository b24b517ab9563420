"""OpenAI embedding provider."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tracelens.core.exceptions import ProviderError, ValidationError
from tracelens.core.models import ProviderType
from tracelens.llm.config import PROVIDER_CONFIGS
from tracelens.llm.errors import LLM_RECOVERABLE_ERRORS, is_transient_error

if TYPE_CHECKING:
    import httpx
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider:
    """Embeds text with OpenAI's embeddings endpoint."""

    def __init__(
        self,
        model: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        config = PROVIDER_CONFIGS[ProviderType.OPENAI]
        self._model = model or config.embedding_model
        self._dimension = config.embedding_dimension
        self._timeout = timeout or config.request_timeout
        self._http_client = http_client
        self._clients: dict[str, AsyncOpenAI] = {}

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model(self) -> str:
        return self._model

    def _get_async_client(self, api_key: str) -> AsyncOpenAI:
        """Get or create an asynchronous OpenAI client for an API key."""
        client = self._clients.get(api_key)
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key, http_client=self._http_client, max_retries=0)
            self._clients[api_key] = client
        return client

    async def embed(self, text: str, api_key: str) -> list[float]:
        """Embed text with the configured OpenAI embedding model."""
        if not text or not text.strip():
            raise ValidationError("Text to embed cannot be empty")

        client = self._get_async_client(api_key)
        logger.debug("openai_embed_request: model=%s, chars=%d", self._model, len(text))

        try:
            response = await asyncio.wait_for(
                client.embeddings.create(model=self._model, input=text),
                timeout=self._timeout,
            )
        except LLM_RECOVERABLE_ERRORS as e:
            raise ProviderError(
                f"OpenAI embedding request failed: {e}",
                self.provider_type,
                transient=is_transient_error(e),
            ) from e

        if not response.data or not response.data[0].embedding:
            raise ProviderError("OpenAI returned no embedding", self.provider_type)
        return [float(value) for value in response.data[0].embedding]

"""Google Gemini embedding provider."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tracelens.core.exceptions import ProviderError, ValidationError
from tracelens.core.models import ProviderType
from tracelens.llm.config import PROVIDER_CONFIGS
from tracelens.llm.errors import LLM_RECOVERABLE_ERRORS, is_transient_error

if TYPE_CHECKING:
    from google.genai import Client

logger = logging.getLogger(__name__)


class GeminiEmbeddingProvider:
    """Embeds text with Gemini's embed_content API."""

    def __init__(self, model: str | None = None, timeout: float | None = None) -> None:
        config = PROVIDER_CONFIGS[ProviderType.GEMINI]
        self._model = model or config.embedding_model
        self._dimension = config.embedding_dimension
        self._timeout = timeout or config.request_timeout
        self._clients: dict[str, Client] = {}

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GEMINI

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self, api_key: str) -> Client:
        """Get or create a Gemini client for an API key."""
        client = self._clients.get(api_key)
        if client is None:
            from google import genai

            client = genai.Client(api_key=api_key)
            self._clients[api_key] = client
        return client

    async def embed(self, text: str, api_key: str) -> list[float]:
        """Embed text with the configured Gemini embedding model."""
        if not text or not text.strip():
            raise ValidationError("Text to embed cannot be empty")

        client = self._get_client(api_key)
        logger.debug("gemini_embed_request: model=%s, chars=%d", self._model, len(text))

        try:
            response = await asyncio.wait_for(
                client.aio.models.embed_content(model=self._model, contents=text),
                timeout=self._timeout,
            )
        except LLM_RECOVERABLE_ERRORS as e:
            raise ProviderError(
                f"Gemini embedding request failed: {e}",
                self.provider_type,
                transient=is_transient_error(e),
            ) from e

        embeddings = response.embeddings or []
        if not embeddings or not embeddings[0].values:
            raise ProviderError("Gemini returned no embedding", self.provider_type)
        return [float(value) for value in embeddings[0].values]

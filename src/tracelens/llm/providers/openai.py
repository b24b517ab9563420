"""OpenAI model provider."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from openai import OpenAIError

from tracelens.core.exceptions import ProviderError
from tracelens.core.models import AnalysisResult, ProviderType
from tracelens.llm.config import PROVIDER_CONFIGS
from tracelens.llm.errors import LLM_RECOVERABLE_ERRORS, is_transient_error

if TYPE_CHECKING:
    import httpx
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

CHAT_MODEL_PREFIX = "gpt-"


class OpenAIProvider:
    """Model provider for OpenAI's GPT models."""

    def __init__(
        self,
        max_tokens: int | None = None,
        temperature: float | None = None,
        request_timeout: float | None = None,
        validation_timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize OpenAI provider.

        Args:
            max_tokens: Maximum tokens in response. Defaults to config default.
            temperature: Temperature for sampling. Defaults to config default.
            request_timeout: Seconds allowed for analyze and discovery calls.
            validation_timeout: Seconds allowed for the connectivity check.
            http_client: Shared HTTP client handed to the SDK.
        """
        config = PROVIDER_CONFIGS[ProviderType.OPENAI]
        self._max_tokens = max_tokens if max_tokens is not None else config.max_tokens
        self._temperature = temperature if temperature is not None else config.temperature
        self._request_timeout = request_timeout or config.request_timeout
        self._validation_timeout = validation_timeout or config.validation_timeout
        self._http_client = http_client
        self._clients: dict[str, AsyncOpenAI] = {}

    @property
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        return ProviderType.OPENAI

    def _get_async_client(self, api_key: str) -> AsyncOpenAI:
        """Get or create an asynchronous OpenAI client for an API key."""
        client = self._clients.get(api_key)
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key, http_client=self._http_client, max_retries=0)
            self._clients[api_key] = client
        return client

    async def validate_connection(self, api_key: str) -> bool:
        """List models as a connectivity check; True only when it answers successfully."""
        if not api_key or not api_key.strip():
            return False

        async def _list_models() -> None:
            client = self._get_async_client(api_key)
            await client.models.list()

        try:
            await asyncio.wait_for(_list_models(), timeout=self._validation_timeout)
        except (*LLM_RECOVERABLE_ERRORS, OpenAIError) as e:
            logger.info("openai_validate_failed: error=%s", type(e).__name__)
            return False

        logger.debug("openai_validate_succeeded")
        return True

    async def analyze(self, prompt: str, model_id: str, api_key: str) -> AnalysisResult:
        """
        Analyze using OpenAI chat completions.

        Args:
            prompt: User prompt containing the analysis request.
            model_id: OpenAI model identifier.
            api_key: OpenAI API key.

        Returns:
            AnalysisResult with response content and elapsed time.

        Raises:
            ProviderError: If the request fails or returns no content.
        """
        started = time.perf_counter()
        client = self._get_async_client(api_key)

        logger.debug(
            "openai_analyze_request: model=%s, max_tokens=%d, prompt_chars=%d",
            model_id,
            self._max_tokens,
            len(prompt),
        )

        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=model_id,
                    max_tokens=self._max_tokens,
                    temperature=self._temperature,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=self._request_timeout,
            )
        except TimeoutError as e:
            raise ProviderError(
                f"OpenAI request timed out after {self._request_timeout:g}s",
                self.provider_type,
                transient=True,
            ) from e
        except LLM_RECOVERABLE_ERRORS as e:
            raise ProviderError(
                f"OpenAI request failed: {e}",
                self.provider_type,
                transient=is_transient_error(e),
            ) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ProviderError("OpenAI returned an empty response", self.provider_type)

        elapsed_ms = int((time.perf_counter() - started) * 1000)

        logger.debug(
            "openai_analyze_response: model=%s, elapsed_ms=%d, chars=%d",
            model_id,
            elapsed_ms,
            len(content),
        )

        return AnalysisResult(
            analysis=content.strip(),
            provider_type=self.provider_type,
            model_id=model_id,
            processing_time_ms=elapsed_ms,
        )

    async def discover_available_models(self, api_key: str) -> list[str]:
        """Return the GPT chat model ids visible to this API key."""
        client = self._get_async_client(api_key)

        async def _collect() -> list[str]:
            return [model.id async for model in client.models.list()]

        try:
            model_ids = await asyncio.wait_for(_collect(), timeout=self._request_timeout)
        except LLM_RECOVERABLE_ERRORS as e:
            raise ProviderError(
                f"OpenAI model discovery failed: {e}",
                self.provider_type,
                transient=is_transient_error(e),
            ) from e

        chat_models = sorted(m for m in model_ids if m.startswith(CHAT_MODEL_PREFIX))
        logger.debug("openai_discovered_models: count=%d", len(chat_models))
        return chat_models

    async def aclose(self) -> None:
        """Close SDK clients created by this provider."""
        clients = list(self._clients.values())
        self._clients.clear()
        if self._http_client is None:
            for client in clients:
                await client.close()

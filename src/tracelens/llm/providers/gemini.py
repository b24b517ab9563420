"""Google Gemini model provider."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from tracelens.core.exceptions import ProviderError
from tracelens.core.models import AnalysisResult, ProviderType
from tracelens.llm.config import PROVIDER_CONFIGS
from tracelens.llm.errors import LLM_RECOVERABLE_ERRORS, is_transient_error

if TYPE_CHECKING:
    from google.genai import Client

logger = logging.getLogger(__name__)

GENERATE_CONTENT_ACTION = "generateContent"
MODEL_NAME_PREFIX = "models/"


def strip_model_prefix(name: str) -> str:
    """Turn ``models/gemini-2.0-flash`` into ``gemini-2.0-flash``."""
    return name[len(MODEL_NAME_PREFIX) :] if name.startswith(MODEL_NAME_PREFIX) else name


class GeminiProvider:
    """Model provider for Google's Gemini models."""

    def __init__(
        self,
        max_tokens: int | None = None,
        temperature: float | None = None,
        request_timeout: float | None = None,
        validation_timeout: float | None = None,
    ) -> None:
        """
        Initialize Gemini provider.

        Args:
            max_tokens: Maximum tokens in response. Defaults to config default.
            temperature: Temperature for sampling. Defaults to config default.
            request_timeout: Seconds allowed for analyze and discovery calls.
            validation_timeout: Seconds allowed for the connectivity check.
        """
        config = PROVIDER_CONFIGS[ProviderType.GEMINI]
        self._max_tokens = max_tokens if max_tokens is not None else config.max_tokens
        self._temperature = temperature if temperature is not None else config.temperature
        self._request_timeout = request_timeout or config.request_timeout
        self._validation_timeout = validation_timeout or config.validation_timeout
        self._clients: dict[str, Client] = {}

    @property
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        return ProviderType.GEMINI

    def _get_client(self, api_key: str) -> Client:
        """Get or create a Gemini client for an API key."""
        client = self._clients.get(api_key)
        if client is None:
            from google import genai

            client = genai.Client(api_key=api_key)
            self._clients[api_key] = client
        return client

    def _get_config(self) -> Any:
        """Create generate content config."""
        from google.genai import types

        return types.GenerateContentConfig(
            max_output_tokens=self._max_tokens,
            temperature=self._temperature,
        )

    async def validate_connection(self, api_key: str) -> bool:
        """List one model page; True only when the catalog answers successfully."""
        if not api_key or not api_key.strip():
            return False

        async def _list_models() -> None:
            client = self._get_client(api_key)
            await client.aio.models.list(config={"page_size": 1})

        try:
            await asyncio.wait_for(_list_models(), timeout=self._validation_timeout)
        except (*LLM_RECOVERABLE_ERRORS, ValueError) as e:
            logger.info("gemini_validate_failed: error=%s", type(e).__name__)
            return False

        logger.debug("gemini_validate_succeeded")
        return True

    async def analyze(self, prompt: str, model_id: str, api_key: str) -> AnalysisResult:
        """
        Analyze using Gemini generate_content.

        Args:
            prompt: User prompt containing the analysis request.
            model_id: Gemini model identifier (with or without ``models/``).
            api_key: Google API key.

        Returns:
            AnalysisResult with response content and elapsed time.

        Raises:
            ProviderError: If the request fails or returns no content.
        """
        started = time.perf_counter()
        client = self._get_client(api_key)
        model_id = strip_model_prefix(model_id)

        logger.debug(
            "gemini_analyze_request: model=%s, max_tokens=%d, prompt_chars=%d",
            model_id,
            self._max_tokens,
            len(prompt),
        )

        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=model_id,
                    contents=prompt,
                    config=self._get_config(),
                ),
                timeout=self._request_timeout,
            )
        except TimeoutError as e:
            raise ProviderError(
                f"Gemini request timed out after {self._request_timeout:g}s",
                self.provider_type,
                transient=True,
            ) from e
        except LLM_RECOVERABLE_ERRORS as e:
            raise ProviderError(
                f"Gemini request failed: {e}",
                self.provider_type,
                transient=is_transient_error(e),
            ) from e

        content = response.text
        if not content or not content.strip():
            raise ProviderError("Gemini returned an empty response", self.provider_type)

        elapsed_ms = int((time.perf_counter() - started) * 1000)

        logger.debug(
            "gemini_analyze_response: model=%s, elapsed_ms=%d, chars=%d",
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
        """Return ids of models that support content generation."""
        client = self._get_client(api_key)

        async def _collect() -> list[str]:
            model_ids = []
            async for model in await client.aio.models.list():
                actions = getattr(model, "supported_actions", None) or []
                if GENERATE_CONTENT_ACTION in actions and model.name:
                    model_ids.append(strip_model_prefix(model.name))
            return model_ids

        try:
            model_ids = await asyncio.wait_for(_collect(), timeout=self._request_timeout)
        except LLM_RECOVERABLE_ERRORS as e:
            raise ProviderError(
                f"Gemini model discovery failed: {e}",
                self.provider_type,
                transient=is_transient_error(e),
            ) from e

        logger.debug("gemini_discovered_models: count=%d", len(model_ids))
        return sorted(model_ids)

    async def aclose(self) -> None:
        """Drop cached clients."""
        self._clients.clear()

"""Integration tests against the real OpenAI and Gemini APIs.

These tests make paid API calls. They are skipped unless --run-integration
is given, and each provider's tests also need its API key in the environment.

Run with: pytest tests/e2e --run-integration
"""

from __future__ import annotations

import pytest

from tests.factories import make_config, make_document, make_failure_info
from tracelens.config import Settings, SettingsApiKeyLookup
from tracelens.core.models import AnalysisStatus, ProviderType
from tracelens.embeddings import GeminiEmbeddingProvider, OpenAIEmbeddingProvider
from tracelens.llm.config import PROVIDER_CONFIGS
from tracelens.llm.providers import GeminiProvider, OpenAIProvider, create_default_registry
from tracelens.orchestrator import AnalysisOrchestrator
from tracelens.retrieval.ingest import refresh_document_store
from tracelens.retrieval.service import DOCUMENT_CONTEXT_HEADER, RetrievalService

pytestmark = pytest.mark.integration

SETTINGS = Settings()
OPENAI_KEY = SETTINGS.api_key_for(ProviderType.OPENAI)
GEMINI_KEY = SETTINGS.api_key_for(ProviderType.GEMINI)

needs_openai = pytest.mark.skipif(not OPENAI_KEY, reason="OPENAI_API_KEY not set")
needs_gemini = pytest.mark.skipif(not GEMINI_KEY, reason="GEMINI_API_KEY not set")

SHORT_PROMPT = "Reply with one sentence: why might a Selenium click raise ElementNotInteractable?"


@needs_openai
class TestOpenAIIntegration:
    """Live calls to the OpenAI API."""

    @pytest.mark.asyncio
    async def test_validate_connection(self):
        provider = OpenAIProvider()
        try:
            assert await provider.validate_connection(OPENAI_KEY) is True
        finally:
            await provider.aclose()

    @pytest.mark.asyncio
    async def test_discovers_chat_models(self):
        provider = OpenAIProvider()
        try:
            models = await provider.discover_available_models(OPENAI_KEY)
        finally:
            await provider.aclose()

        assert models
        assert all(model.startswith("gpt-") for model in models)

    @pytest.mark.asyncio
    async def test_analyze_returns_text(self):
        provider = OpenAIProvider()
        model_id = PROVIDER_CONFIGS[ProviderType.OPENAI].default_model
        try:
            result = await provider.analyze(SHORT_PROMPT, model_id, OPENAI_KEY)
        finally:
            await provider.aclose()

        assert result.status is AnalysisStatus.COMPLETED
        assert result.analysis.strip()

    @pytest.mark.asyncio
    async def test_embedding_has_configured_dimension(self):
        provider = OpenAIEmbeddingProvider()

        vector = await provider.embed("Stale element reference exception", OPENAI_KEY)

        assert len(vector) == provider.dimension

    @pytest.mark.asyncio
    async def test_failure_analysis_with_retrieval(self, store):
        api_keys = SettingsApiKeyLookup(SETTINGS)
        embedders = {ProviderType.OPENAI: OpenAIEmbeddingProvider()}
        await refresh_document_store(
            store, [make_document(title="Stale element reference")], embedders, api_keys
        )
        retrieval = RetrievalService(store, embedders, api_keys, similarity_threshold=0.0)
        registry = create_default_registry()
        orchestrator = AnalysisOrchestrator(
            make_config(retrieval_enabled=True, show_prompt=True, analysis_timeout_seconds=60),
            registry,
            api_keys,
            retrieval=retrieval,
        )
        try:
            orchestrator.on_test_run_started()
            result = await orchestrator.analyze_failure(make_failure_info())
        finally:
            await registry.aclose()

        assert result.status is AnalysisStatus.COMPLETED, result.analysis
        assert DOCUMENT_CONTEXT_HEADER in result.prompt


@needs_gemini
class TestGeminiIntegration:
    """Live calls to the Gemini API."""

    @pytest.mark.asyncio
    async def test_validate_connection(self):
        assert await GeminiProvider().validate_connection(GEMINI_KEY) is True

    @pytest.mark.asyncio
    async def test_discovers_generation_models(self):
        models = await GeminiProvider().discover_available_models(GEMINI_KEY)

        assert models
        assert not any(model.startswith("models/") for model in models)

    @pytest.mark.asyncio
    async def test_analyze_returns_text(self):
        model_id = PROVIDER_CONFIGS[ProviderType.GEMINI].default_model

        result = await GeminiProvider().analyze(SHORT_PROMPT, model_id, GEMINI_KEY)

        assert result.status is AnalysisStatus.COMPLETED
        assert result.analysis.strip()

    @pytest.mark.asyncio
    async def test_embedding_has_configured_dimension(self):
        provider = GeminiEmbeddingProvider()

        vector = await provider.embed("Database deadlock detected", GEMINI_KEY)

        assert len(vector) == provider.dimension

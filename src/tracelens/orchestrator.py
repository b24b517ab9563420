"""Analysis orchestrator: gates, sequences and combines retrieval with model calls.

The orchestrator receives three inbound events from the host application:

- ``on_test_run_started()`` resets all per-run state.
- ``on_failure_detected(failure)`` establishes the failure context for the
  current run and schedules the initial analysis. Only the first failure of a
  run is analyzed; later ones are counted and ignored.
- ``on_user_query(text)`` answers a follow-up question using the sliding
  conversation window.

Provider, timeout and configuration problems never escape as exceptions;
they come back as FAILED :class:`AnalysisResult` values.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from enum import Enum
from typing import TYPE_CHECKING

from tracelens.config import AnalysisConfig
from tracelens.conversation import ConversationContext
from tracelens.core.exceptions import (
    NoContextError,
    ProviderError,
    RetrievalError,
    ValidationError,
)
from tracelens.core.failure_context import build_failure_context, build_retrieval_query
from tracelens.core.models import AnalysisMode, AnalysisResult, AnalysisStatus, ProviderType
from tracelens.llm.errors import LLM_RECOVERABLE_ERRORS
from tracelens.llm.prompts import (
    build_initial_prompt,
    build_user_query_prompt,
    estimate_token_count,
    insert_document_context,
)
from tracelens.logging import get_logger, mask_api_key, test_run_id_ctx
from tracelens.retrieval.service import format_document_context

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from tracelens.config import ApiKeyLookup
    from tracelens.core.models import FailureInfo
    from tracelens.llm.catalog import ModelCatalog
    from tracelens.llm.providers.registry import ProviderRegistry
    from tracelens.retrieval.service import RetrievalService

logger = get_logger(__name__)


class RunState(Enum):
    """Lifecycle of the analysis for one test run."""

    IDLE = "idle"
    CONTEXT_ESTABLISHED = "context_established"
    RETRIEVAL_PENDING = "retrieval_pending"
    PROVIDER_PENDING = "provider_pending"
    COMPLETED = "completed"
    FAILED = "failed"


def new_test_run_id() -> str:
    """Identifier for a test run: wall-clock millis plus a random suffix."""
    return f"test_run_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class AnalysisOrchestrator:
    """Coordinates failure analysis for the current test run."""

    def __init__(
        self,
        config: AnalysisConfig,
        registry: ProviderRegistry,
        api_keys: ApiKeyLookup,
        *,
        catalog: ModelCatalog | None = None,
        retrieval: RetrievalService | None = None,
        conversation: ConversationContext | None = None,
        raise_on_missing_context: bool = False,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            config: Read-only analysis configuration.
            registry: Model providers keyed by provider type.
            api_keys: Credential lookup.
            catalog: Optional model catalog used when no default model id is configured.
            retrieval: Optional retrieval service; required for document augmentation.
            conversation: Conversation context; a new one sized from config by default.
            raise_on_missing_context: Raise NoContextError instead of returning a
                NO_CONTEXT result when a query arrives before any failure.
        """
        self._config = config
        self._registry = registry
        self._api_keys = api_keys
        self._catalog = catalog
        self._retrieval = retrieval
        self._conversation = conversation or ConversationContext(config.window_size)
        self._raise_on_missing_context = raise_on_missing_context

        self._state = RunState.IDLE
        self._generation = 0
        self._test_run_id: str | None = None
        self._current_failure: FailureInfo | None = None
        self._last_result: AnalysisResult | None = None
        self._dropped_failure_count = 0

    @property
    def config(self) -> AnalysisConfig:
        return self._config

    @property
    def conversation(self) -> ConversationContext:
        return self._conversation

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def test_run_id(self) -> str | None:
        return self._test_run_id

    @property
    def current_failure(self) -> FailureInfo | None:
        return self._current_failure

    @property
    def has_context(self) -> bool:
        return self._current_failure is not None

    @property
    def last_result(self) -> AnalysisResult | None:
        return self._last_result

    @property
    def dropped_failure_count(self) -> int:
        """Failures ignored in the current run because an earlier one already won."""
        return self._dropped_failure_count

    def on_test_run_started(self) -> str:
        """Reset all per-run state. Returns the new test run id."""
        self._generation += 1
        self._test_run_id = new_test_run_id()
        self._current_failure = None
        self._last_result = None
        self._dropped_failure_count = 0
        self._state = RunState.IDLE
        self._conversation.clear()
        test_run_id_ctx.set(self._test_run_id)
        logger.info("test_run_started", test_run_id=self._test_run_id)
        return self._test_run_id

    def on_failure_detected(
        self,
        failure: FailureInfo,
        mode: AnalysisMode = AnalysisMode.FULL,
    ) -> asyncio.Task[AnalysisResult] | None:
        """
        Establish the failure context and schedule the initial analysis.

        Context is recorded before this method returns, so a duplicate
        notification arriving while the analysis is still in flight is
        rejected. Must be called from within a running event loop.

        Args:
            failure: The failure captured by the test listener.
            mode: OVERVIEW for a short summary, FULL for a detailed analysis.

        Returns:
            Task resolving to the AnalysisResult, or None when the failure was
            ignored because the run already has one.
        """
        if failure is None:
            raise ValidationError("FailureInfo cannot be None")
        loop = asyncio.get_running_loop()

        if not self._config.feature_enabled:
            logger.debug("analysis_disabled", scenario=failure.scenario_name)
            return loop.create_task(self._disabled_result())

        if self._current_failure is not None:
            self._dropped_failure_count += 1
            logger.info(
                "duplicate_failure_ignored",
                scenario=failure.scenario_name,
                test_run_id=self._test_run_id,
                dropped=self._dropped_failure_count,
            )
            return None

        if self._test_run_id is None:
            self._test_run_id = new_test_run_id()
            test_run_id_ctx.set(self._test_run_id)
        self._current_failure = failure
        self._conversation.set_failure_context(build_failure_context(failure))
        self._state = RunState.CONTEXT_ESTABLISHED
        logger.info(
            "failure_context_established",
            scenario=failure.scenario_name,
            test_run_id=self._test_run_id,
            mode=mode.value,
        )

        generation = self._generation
        return loop.create_task(
            self._guarded(self._run_initial_analysis(failure, mode, generation), generation)
        )

    async def analyze_failure(
        self, failure: FailureInfo, mode: AnalysisMode = AnalysisMode.FULL
    ) -> AnalysisResult | None:
        """Awaitable form of :meth:`on_failure_detected`."""
        task = self.on_failure_detected(failure, mode)
        return await task if task is not None else None

    async def on_user_query(
        self, text: str, mode: AnalysisMode = AnalysisMode.FULL
    ) -> AnalysisResult:
        """
        Answer a follow-up question about the current failure.

        Args:
            text: The user's question.
            mode: Retrieval depth used when augmenting the prompt.

        Returns:
            AnalysisResult; NO_CONTEXT when no failure has been analyzed yet.

        Raises:
            ValidationError: If text is blank.
            NoContextError: If there is no failure context and the orchestrator
                was configured to raise instead of returning a result.
        """
        if text is None or not text.strip():
            raise ValidationError("Query text cannot be empty")

        if not self._config.feature_enabled:
            return await self._disabled_result()

        failure = self._current_failure
        if failure is None or not self._conversation.has_failure_context:
            if self._raise_on_missing_context:
                raise NoContextError()
            logger.info("user_query_without_context")
            return AnalysisResult.no_context()

        self._conversation.add_user_query(text)
        context_block = self._conversation.build_context_string(text)
        generation = self._generation

        return await self._guarded(
            self._run_user_query(failure, context_block, text, mode, generation), generation
        )

    async def _disabled_result(self) -> AnalysisResult:
        return AnalysisResult.disabled()

    async def _guarded(self, work: Awaitable[AnalysisResult], generation: int) -> AnalysisResult:
        """Turn any unexpected exception into a FAILED result."""
        started = time.perf_counter()
        try:
            result = await work
        except Exception as e:
            logger.exception("analysis_crashed", error=str(e))
            result = AnalysisResult.failed(
                f"AI analysis failed: {e}", processing_time_ms=_elapsed_ms(started)
            )
        self._finish(result, generation)
        return result

    async def _run_initial_analysis(
        self, failure: FailureInfo, mode: AnalysisMode, generation: int
    ) -> AnalysisResult:
        started = time.perf_counter()
        prompt = build_initial_prompt(failure, mode, self._config.custom_instructions)
        if self._config.retrieval_enabled:
            prompt = await self._augment_with_documents(
                prompt, build_retrieval_query(failure), mode, generation
            )
        return await self._call_provider(prompt, generation, started)

    async def _run_user_query(
        self,
        failure: FailureInfo,
        context_block: str,
        text: str,
        mode: AnalysisMode,
        generation: int,
    ) -> AnalysisResult:
        started = time.perf_counter()
        prompt = build_user_query_prompt(
            failure, context_block, text, self._config.custom_instructions
        )
        if self._config.retrieval_enabled:
            prompt = await self._augment_with_documents(prompt, text, mode, generation)
        return await self._call_provider(prompt, generation, started)

    async def _augment_with_documents(
        self, prompt: str, query: str, mode: AnalysisMode, generation: int
    ) -> str:
        """Merge retrieved documents into the prompt; failures leave it unchanged."""
        if self._retrieval is None:
            return prompt
        if not self._retrieval.is_ready():
            logger.info("retrieval_skipped", reason="no embedded documents")
            return prompt

        self._set_state(RunState.RETRIEVAL_PENDING, generation)
        try:
            hits = await self._retrieval.retrieve_relevant_documents(query, detail_level=mode)
        except RetrievalError as e:
            logger.warning("retrieval_failed", error=str(e))
            return prompt

        logger.info("retrieval_merged", documents=len(hits))
        return insert_document_context(prompt, format_document_context(hits))

    def _resolve_model(self) -> tuple[ProviderType, str] | None:
        """Pick provider and model: configured id first, then the catalog default."""
        model_id = self._config.default_model_id
        if model_id:
            model = self._catalog.get_model(model_id) if self._catalog else None
            if model is not None:
                return model.provider_type, model.model_id
            return self._config.preferred_provider, model_id

        if self._catalog is not None:
            default = self._catalog.get_default_model()
            if default is not None:
                return default.provider_type, default.model_id
        return None

    async def _call_provider(self, prompt: str, generation: int, started: float) -> AnalysisResult:
        visible_prompt = prompt if self._config.show_prompt else None

        resolved = self._resolve_model()
        if resolved is None:
            return AnalysisResult.failed(
                "No default model is configured. Please add and select a model in the AI settings.",
                processing_time_ms=_elapsed_ms(started),
                prompt=visible_prompt,
            )
        provider_type, model_id = resolved

        api_key = self._api_keys.get_api_key(provider_type)
        if not api_key:
            return AnalysisResult.failed(
                f"API key not configured for {provider_type.display_name}. "
                "Please configure your API key in the settings.",
                provider_type=provider_type,
                processing_time_ms=_elapsed_ms(started),
                prompt=visible_prompt,
            )

        provider = self._registry.get_provider(provider_type)
        if provider is None:
            return AnalysisResult.failed(
                f"No AI provider available for {provider_type.display_name}",
                provider_type=provider_type,
                processing_time_ms=_elapsed_ms(started),
                prompt=visible_prompt,
            )

        self._set_state(RunState.PROVIDER_PENDING, generation)
        logger.info(
            "provider_call_started",
            provider=provider_type.value,
            model=model_id,
            api_key=mask_api_key(api_key),
            estimated_tokens=estimate_token_count(prompt),
        )

        timeout = self._config.analysis_timeout_seconds
        try:
            result = await asyncio.wait_for(
                provider.analyze(prompt, model_id, api_key), timeout=timeout
            )
        except TimeoutError:
            logger.warning("provider_call_timed_out", provider=provider_type.value, timeout=timeout)
            return AnalysisResult.failed(
                f"AI analysis failed: request timed out after {timeout:g} seconds",
                provider_type=provider_type,
                processing_time_ms=_elapsed_ms(started),
                prompt=visible_prompt,
            )
        except (ProviderError, *LLM_RECOVERABLE_ERRORS) as e:
            logger.warning("provider_call_failed", provider=provider_type.value, error=str(e))
            return AnalysisResult.failed(
                f"AI analysis failed: {e}",
                provider_type=provider_type,
                processing_time_ms=_elapsed_ms(started),
                prompt=visible_prompt,
            )

        logger.info(
            "provider_call_completed",
            provider=provider_type.value,
            model=model_id,
            processing_time_ms=result.processing_time_ms,
        )
        return result.with_prompt(visible_prompt)

    def _set_state(self, state: RunState, generation: int) -> None:
        # Results of a previous run must not move the current run's state
        if generation == self._generation:
            self._state = state

    def _finish(self, result: AnalysisResult, generation: int) -> None:
        if generation != self._generation:
            logger.info("stale_result_discarded", status=result.status.value)
            return
        self._last_result = result
        if result.status is AnalysisStatus.COMPLETED:
            self._state = RunState.COMPLETED
        elif result.status is AnalysisStatus.FAILED:
            self._state = RunState.FAILED

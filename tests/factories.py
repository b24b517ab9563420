"""Test data factories for tracelens tests.

This module provides factory functions and in-process fakes for creating
test data objects. Use these instead of defining fixtures locally in each
test file.

Usage:
    from tests.factories import make_failure_info, FakeModelProvider

    def test_something():
        failure = make_failure_info(error_message="boom")
        provider = FakeModelProvider(response="analysis")
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from tracelens.config import AnalysisConfig, StaticApiKeyLookup
from tracelens.core.exceptions import ProviderError, ValidationError
from tracelens.core.models import (
    AnalysisResult,
    AnalysisStatus,
    DocumentEntry,
    FailureInfo,
    GherkinScenarioInfo,
    ProviderType,
    StepDefinitionInfo,
)
from tracelens.llm.providers.registry import ProviderRegistry

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

SAMPLE_STACK_TRACE = """org.opentest4j.AssertionFailedError: expected: <Welcome> but was: <Login>
    at com.example.steps.LoginSteps.verifyWelcome(LoginSteps.java:42)
    at com.example.runner.CucumberRunner.run(CucumberRunner.java:17)"""


def make_failure_info(
    scenario_name: str = "User logs in with valid credentials",
    failed_step_text: str | None = "Then the welcome page is shown",
    error_message: str | None = "expected: <Welcome> but was: <Login>",
    stack_trace: str | None = SAMPLE_STACK_TRACE,
    expected_value: str | None = None,
    actual_value: str | None = None,
    source_file_path: str | None = "/home/ci/project/src/test/java/LoginSteps.java",
    line_number: int = 42,
    with_gherkin: bool = False,
    with_step_definition: bool = False,
) -> FailureInfo:
    """Create FailureInfo for testing.

    Args:
        scenario_name: Scenario name.
        failed_step_text: Text of the failed step.
        error_message: Error message.
        stack_trace: Stack trace.
        expected_value: Expected value of a failed assertion.
        actual_value: Actual value of a failed assertion.
        source_file_path: Path of the failing source file.
        line_number: Line of the failure.
        with_gherkin: Attach a Gherkin scenario.
        with_step_definition: Attach a step definition.

    Returns:
        FailureInfo instance.
    """
    builder = (
        FailureInfo.builder()
        .with_scenario_name(scenario_name)
        .with_failed_step_text(failed_step_text)
        .with_error_message(error_message)
        .with_stack_trace(stack_trace)
        .with_expected_value(expected_value)
        .with_actual_value(actual_value)
        .with_source_file_path(source_file_path)
        .with_line_number(line_number)
    )
    if with_gherkin:
        builder.with_gherkin_scenario_info(
            GherkinScenarioInfo(
                feature_name="Login",
                scenario_name=scenario_name,
                steps=(
                    "Given the login page is open",
                    "When the user signs in",
                    "Then the welcome page is shown",
                ),
                tags=("@smoke",),
            )
        )
    if with_step_definition:
        builder.with_step_definition_info(
            StepDefinitionInfo(
                method_name="verifyWelcome",
                class_name="LoginSteps",
                step_pattern="the welcome page is shown",
                method_text='assertEquals("Welcome", page.title());',
            )
        )
    return builder.build()


def make_document(
    title: str = "Stale element reference",
    category: str = "selenium",
    content: str = "### Title: Stale element reference\nFull write-up.",
    summary: str | None = "The element was re-rendered between lookup and use.",
    root_causes: str | None = "DOM re-rendered",
    resolution_steps: str | None = "Re-locate the element",
    tags: str | None = "selenium, flaky",
) -> DocumentEntry:
    """Create DocumentEntry for testing."""
    return DocumentEntry(
        category=category,
        title=title,
        content=content,
        summary=summary,
        root_causes=root_causes,
        resolution_steps=resolution_steps,
        tags=tags,
    )


def make_analysis_result(
    analysis: str = "The login button was never clicked.",
    provider_type: ProviderType | None = ProviderType.OPENAI,
    model_id: str = "gpt-4o",
    processing_time_ms: int = 120,
    status: AnalysisStatus = AnalysisStatus.COMPLETED,
) -> AnalysisResult:
    """Create AnalysisResult for testing."""
    return AnalysisResult(
        analysis=analysis,
        provider_type=provider_type,
        model_id=model_id,
        processing_time_ms=processing_time_ms,
        status=status,
    )


def make_config(**overrides) -> AnalysisConfig:
    """Create AnalysisConfig for testing; retrieval is off unless requested."""
    values = {
        "feature_enabled": True,
        "retrieval_enabled": False,
        "preferred_provider": ProviderType.OPENAI,
        "default_model_id": "gpt-4o",
        "show_prompt": False,
        "analysis_timeout_seconds": 5.0,
    }
    values.update(overrides)
    return AnalysisConfig(**values)


def make_api_keys(
    openai: str | None = "sk-test-openai-key",
    gemini: str | None = None,
) -> StaticApiKeyLookup:
    """Create a credential lookup for testing."""
    return StaticApiKeyLookup({ProviderType.OPENAI: openai, ProviderType.GEMINI: gemini})


class FakeModelProvider:
    """In-process ModelProvider that records prompts and returns a canned answer."""

    def __init__(
        self,
        provider_type: ProviderType = ProviderType.OPENAI,
        response: str = "The login button was never clicked.",
        delay: float = 0.0,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
        models: Sequence[str] = (),
    ) -> None:
        self._provider_type = provider_type
        self.response = response
        self.delay = delay
        self.error = error
        self.gate = gate
        self.models = list(models)
        self.prompts: list[str] = []
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    @property
    def provider_type(self) -> ProviderType:
        return self._provider_type

    async def validate_connection(self, api_key: str) -> bool:
        return bool(api_key) and self.error is None

    async def analyze(self, prompt: str, model_id: str, api_key: str) -> AnalysisResult:
        self.prompts.append(prompt)
        self.calls.append((model_id, api_key))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return AnalysisResult(
            analysis=self.response,
            provider_type=self._provider_type,
            model_id=model_id,
            processing_time_ms=5,
        )

    async def discover_available_models(self, api_key: str) -> list[str]:
        if self.error is not None:
            raise ProviderError(str(self.error), self._provider_type)
        return list(self.models)

    async def aclose(self) -> None:
        self.closed = True


class FakeEmbeddingProvider:
    """In-process EmbeddingProvider returning fixed vectors per text."""

    def __init__(
        self,
        provider_type: ProviderType = ProviderType.OPENAI,
        vectors: Mapping[str, Sequence[float]] | None = None,
        default: Sequence[float] = (1.0, 0.0, 0.0),
        error: Exception | None = None,
        fail_times: int = 0,
    ) -> None:
        self._provider_type = provider_type
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.error = error
        self.fail_times = fail_times
        self.texts: list[str] = []

    @property
    def provider_type(self) -> ProviderType:
        return self._provider_type

    @property
    def dimension(self) -> int:
        return len(self.default)

    async def embed(self, text: str, api_key: str) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Text to embed cannot be empty")
        self.texts.append(text)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ProviderError(
                "temporary embedding failure", self._provider_type, transient=True
            )
        if self.error is not None:
            raise self.error
        for key, vector in self.vectors.items():
            if key in text:
                return list(vector)
        return list(self.default)


def make_registry(*providers: FakeModelProvider) -> ProviderRegistry:
    """Create a registry holding the given providers (one OpenAI fake by default)."""
    registry = ProviderRegistry()
    for provider in providers or (FakeModelProvider(),):
        registry.register(provider)
    return registry

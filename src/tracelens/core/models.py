"""Core data model for test failure analysis.

This module defines the values that flow through the analysis pipeline:
the failure captured from a test run, the knowledge-base documents used
for retrieval, the conversation entries of a chat session, the configured
AI models and the results handed back to the caller.

FailureInfo and its nested scenario/step values are immutable and are
created through FailureInfoBuilder. DocumentEntry and AIModel are mutable
records owned by the document store and the model catalog respectively.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from tracelens.core.exceptions import ValidationError


def _now() -> datetime:
    return datetime.now(UTC)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


class ProviderType(Enum):
    """Supported AI backends.

    Each provider type owns its own embedding vector space, so vectors of
    different provider types are never compared.
    """

    OPENAI = "openai"
    GEMINI = "gemini"

    @property
    def display_name(self) -> str:
        """Human readable backend name."""
        return _PROVIDER_DISPLAY_NAMES[self]

    @classmethod
    def default(cls) -> ProviderType:
        """Return the provider used when nothing else is configured."""
        return cls.OPENAI

    @classmethod
    def from_id(cls, value: str | None) -> ProviderType:
        """Resolve a provider id case-insensitively, falling back to the default."""
        if value:
            normalized = value.strip().lower()
            for provider_type in cls:
                if provider_type.value == normalized or provider_type.name.lower() == normalized:
                    return provider_type
        return cls.default()


_PROVIDER_DISPLAY_NAMES: MappingProxyType[ProviderType, str] = MappingProxyType(
    {
        ProviderType.OPENAI: "OpenAI",
        ProviderType.GEMINI: "Google Gemini",
    }
)


class AnalysisMode(Enum):
    """Depth of an analysis request."""

    OVERVIEW = "overview"
    FULL = "full"


class AnalysisStatus(Enum):
    """Terminal state of an analysis call."""

    COMPLETED = "completed"
    FAILED = "failed"
    DISABLED = "disabled"
    NO_CONTEXT = "no_context"


@dataclass(frozen=True)
class StepDefinitionInfo:
    """Location and source of the step definition that executed a failed step."""

    method_name: str | None = None
    class_name: str | None = None
    package_name: str | None = None
    source_file_path: str | None = None
    line_number: int = -1
    step_pattern: str | None = None
    parameters: tuple[str, ...] = ()
    method_text: str | None = None

    @property
    def full_method_name(self) -> str | None:
        """Return ``Class.method`` when both parts are known."""
        if self.class_name and self.method_name:
            return f"{self.class_name}.{self.method_name}"
        return self.method_name


@dataclass(frozen=True)
class GherkinScenarioInfo:
    """Gherkin scenario that contained the failed step."""

    feature_name: str | None = None
    scenario_name: str | None = None
    steps: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    background_steps: tuple[str, ...] = ()
    data_table: tuple[str, ...] = ()
    full_scenario_text: str | None = None
    is_scenario_outline: bool = False
    source_file_path: str | None = None
    line_number: int = -1
    feature_file_content: str | None = None


@dataclass(frozen=True)
class FailureInfo:
    """Immutable description of a single test failure.

    Only the scenario-identifying text is required and it must not be blank;
    every other field may be absent. Use :meth:`builder` to construct instances.
    """

    scenario_name: str
    failed_step_text: str | None = None
    stack_trace: str | None = None
    source_file_path: str | None = None
    line_number: int = -1
    step_definition_info: StepDefinitionInfo | None = None
    gherkin_scenario_info: GherkinScenarioInfo | None = None
    expected_value: str | None = None
    actual_value: str | None = None
    error_message: str | None = None
    parsing_time_ms: int = 0
    timestamp: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if _is_blank(self.scenario_name):
            raise ValidationError("FailureInfo requires a scenario name")
        object.__setattr__(self, "scenario_name", self.scenario_name.strip())

    @staticmethod
    def builder() -> FailureInfoBuilder:
        """Return a new builder."""
        return FailureInfoBuilder()

    @property
    def has_expected_actual(self) -> bool:
        """True when both expected and actual values were captured."""
        return self.expected_value is not None and self.actual_value is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        data: dict[str, Any] = {
            "scenario_name": self.scenario_name,
            "failed_step_text": self.failed_step_text,
            "stack_trace": self.stack_trace,
            "source_file_path": self.source_file_path,
            "line_number": self.line_number,
            "expected_value": self.expected_value,
            "actual_value": self.actual_value,
            "error_message": self.error_message,
            "parsing_time_ms": self.parsing_time_ms,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.step_definition_info:
            step = self.step_definition_info
            data["step_definition"] = {
                "method_name": step.method_name,
                "class_name": step.class_name,
                "package_name": step.package_name,
                "source_file_path": step.source_file_path,
                "line_number": step.line_number,
                "step_pattern": step.step_pattern,
                "parameters": list(step.parameters),
                "method_text": step.method_text,
            }
        if self.gherkin_scenario_info:
            scenario = self.gherkin_scenario_info
            data["gherkin_scenario"] = {
                "feature_name": scenario.feature_name,
                "scenario_name": scenario.scenario_name,
                "steps": list(scenario.steps),
                "tags": list(scenario.tags),
                "background_steps": list(scenario.background_steps),
                "data_table": list(scenario.data_table),
                "full_scenario_text": scenario.full_scenario_text,
                "is_scenario_outline": scenario.is_scenario_outline,
                "source_file_path": scenario.source_file_path,
                "line_number": scenario.line_number,
                "feature_file_content": scenario.feature_file_content,
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FailureInfo:
        """Deserialize from dictionary, validating through the builder."""
        builder = (
            cls.builder()
            .with_scenario_name(data.get("scenario_name"))
            .with_failed_step_text(data.get("failed_step_text"))
            .with_stack_trace(data.get("stack_trace"))
            .with_source_file_path(data.get("source_file_path"))
            .with_line_number(data.get("line_number", -1))
            .with_expected_value(data.get("expected_value"))
            .with_actual_value(data.get("actual_value"))
            .with_error_message(data.get("error_message"))
            .with_parsing_time_ms(data.get("parsing_time_ms", 0))
        )

        step_data = data.get("step_definition")
        if step_data:
            builder.with_step_definition_info(
                StepDefinitionInfo(
                    method_name=step_data.get("method_name"),
                    class_name=step_data.get("class_name"),
                    package_name=step_data.get("package_name"),
                    source_file_path=step_data.get("source_file_path"),
                    line_number=step_data.get("line_number", -1),
                    step_pattern=step_data.get("step_pattern"),
                    parameters=tuple(step_data.get("parameters", ())),
                    method_text=step_data.get("method_text"),
                )
            )

        scenario_data = data.get("gherkin_scenario")
        if scenario_data:
            builder.with_gherkin_scenario_info(
                GherkinScenarioInfo(
                    feature_name=scenario_data.get("feature_name"),
                    scenario_name=scenario_data.get("scenario_name"),
                    steps=tuple(scenario_data.get("steps", ())),
                    tags=tuple(scenario_data.get("tags", ())),
                    background_steps=tuple(scenario_data.get("background_steps", ())),
                    data_table=tuple(scenario_data.get("data_table", ())),
                    full_scenario_text=scenario_data.get("full_scenario_text"),
                    is_scenario_outline=scenario_data.get("is_scenario_outline", False),
                    source_file_path=scenario_data.get("source_file_path"),
                    line_number=scenario_data.get("line_number", -1),
                    feature_file_content=scenario_data.get("feature_file_content"),
                )
            )

        return builder.build()


class FailureInfoBuilder:
    """Fluent builder for :class:`FailureInfo`."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def _set(self, name: str, value: Any) -> FailureInfoBuilder:
        self._values[name] = value
        return self

    def with_scenario_name(self, value: str | None) -> FailureInfoBuilder:
        return self._set("scenario_name", value)

    def with_failed_step_text(self, value: str | None) -> FailureInfoBuilder:
        return self._set("failed_step_text", value)

    def with_stack_trace(self, value: str | None) -> FailureInfoBuilder:
        return self._set("stack_trace", value)

    def with_source_file_path(self, value: str | None) -> FailureInfoBuilder:
        return self._set("source_file_path", value)

    def with_line_number(self, value: int) -> FailureInfoBuilder:
        return self._set("line_number", value)

    def with_step_definition_info(self, value: StepDefinitionInfo | None) -> FailureInfoBuilder:
        return self._set("step_definition_info", value)

    def with_gherkin_scenario_info(self, value: GherkinScenarioInfo | None) -> FailureInfoBuilder:
        return self._set("gherkin_scenario_info", value)

    def with_expected_value(self, value: str | None) -> FailureInfoBuilder:
        return self._set("expected_value", value)

    def with_actual_value(self, value: str | None) -> FailureInfoBuilder:
        return self._set("actual_value", value)

    def with_error_message(self, value: str | None) -> FailureInfoBuilder:
        return self._set("error_message", value)

    def with_parsing_time_ms(self, value: int) -> FailureInfoBuilder:
        return self._set("parsing_time_ms", value)

    def with_timestamp(self, value: datetime) -> FailureInfoBuilder:
        return self._set("timestamp", value)

    def build(self) -> FailureInfo:
        """Create the FailureInfo.

        The scenario name falls back to the Gherkin scenario name when not
        set explicitly.

        Raises:
            ValidationError: If no scenario-identifying text is available.
        """
        values = dict(self._values)
        scenario_name = values.get("scenario_name")
        if _is_blank(scenario_name):
            gherkin = values.get("gherkin_scenario_info")
            scenario_name = gherkin.scenario_name if gherkin else None
        if _is_blank(scenario_name):
            raise ValidationError("FailureInfo requires a scenario name")
        values["scenario_name"] = scenario_name.strip()
        values = {key: value for key, value in values.items() if value is not None}
        return FailureInfo(**values)


@dataclass
class DocumentEntry:
    """Knowledge-base document describing a known failure pattern."""

    category: str
    title: str
    content: str
    summary: str | None = None
    root_causes: str | None = None
    resolution_steps: str | None = None
    tags: str | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def embedding_content(self) -> str:
        """Text used to compute the document's embedding vector."""
        parts = [
            ("Title", self.title),
            ("Summary", self.summary),
            ("Root Causes", self.root_causes),
            ("Resolution Steps", self.resolution_steps),
        ]
        return "".join(f"{label}: {value}\n" for label, value in parts if not _is_blank(value))

    @property
    def search_content(self) -> str:
        """Display/search text; omits the raw content."""
        parts = [self.title, self.summary, self.root_causes, self.resolution_steps, self.tags]
        return " ".join(part.strip() for part in parts if not _is_blank(part))

    @property
    def tag_list(self) -> list[str]:
        """Tags split on commas, lower-cased."""
        if _is_blank(self.tags):
            return []
        return [tag.strip().lower() for tag in self.tags.split(",") if tag.strip()]


@dataclass(frozen=True)
class SearchHit:
    """A document ranked by cosine similarity against a query vector."""

    document: DocumentEntry
    score: float


@dataclass(frozen=True)
class UserQuery:
    """A single free-text question asked in the chat."""

    text: str
    timestamp: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if _is_blank(self.text):
            raise ValidationError("Query text cannot be empty")
        object.__setattr__(self, "text", self.text.strip())


@dataclass(frozen=True)
class FailureContext:
    """The current failure context string held by the conversation."""

    text: str
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of an analysis call, successful or not."""

    analysis: str
    provider_type: ProviderType | None
    model_id: str
    prompt: str | None = None
    timestamp: datetime = field(default_factory=_now)
    processing_time_ms: int = 0
    status: AnalysisStatus = AnalysisStatus.COMPLETED

    @classmethod
    def disabled(cls) -> AnalysisResult:
        """Result returned when AI analysis is switched off."""
        return cls(
            analysis="AI analysis is disabled. Enable AI Analysis to run model calls.",
            provider_type=None,
            model_id="disabled",
            status=AnalysisStatus.DISABLED,
        )

    @classmethod
    def no_context(cls) -> AnalysisResult:
        """Result returned for a user query without an established failure."""
        return cls(
            analysis=(
                "No test failure context available. "
                "Please run a test first to establish context for AI analysis."
            ),
            provider_type=None,
            model_id="none",
            status=AnalysisStatus.NO_CONTEXT,
        )

    @classmethod
    def failed(
        cls,
        message: str,
        provider_type: ProviderType | None = None,
        model_id: str = "error",
        processing_time_ms: int = 0,
        prompt: str | None = None,
    ) -> AnalysisResult:
        """Result carrying a human-readable failure explanation."""
        return cls(
            analysis=message,
            provider_type=provider_type,
            model_id=model_id,
            prompt=prompt,
            processing_time_ms=processing_time_ms,
            status=AnalysisStatus.FAILED,
        )

    def with_prompt(self, prompt: str | None) -> AnalysisResult:
        """Return a copy with the prompt attached."""
        return replace(self, prompt=prompt)

    @property
    def has_prompt(self) -> bool:
        return not _is_blank(self.prompt)

    @property
    def is_failed(self) -> bool:
        return self.status is AnalysisStatus.FAILED

    @property
    def description(self) -> str:
        provider = self.provider_type.display_name if self.provider_type else "none"
        return f"Analysis by {provider} ({self.model_id}) - {self.processing_time_ms}ms"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "analysis": self.analysis,
            "prompt": self.prompt,
            "provider_type": self.provider_type.value if self.provider_type else None,
            "model_id": self.model_id,
            "timestamp": self.timestamp.isoformat(),
            "processing_time_ms": self.processing_time_ms,
            "status": self.status.value,
        }


@dataclass
class AIModel:
    """A configured model that can serve analysis requests."""

    name: str
    provider_type: ProviderType
    model_id: str
    enabled: bool = True
    is_default: bool = False
    notes: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_now)
    last_modified: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if _is_blank(self.name):
            raise ValidationError("Model name cannot be empty")
        if _is_blank(self.model_id):
            raise ValidationError("Model id cannot be empty")

    @property
    def full_display_name(self) -> str:
        return f"{self.name} ({self.provider_type.display_name} - {self.model_id})"

    def touch(self) -> None:
        """Refresh the last-modified timestamp."""
        self.last_modified = _now()

    def rename(self, name: str) -> None:
        if _is_blank(name):
            raise ValidationError("Model name cannot be empty")
        self.name = name.strip()
        self.touch()

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        self.touch()

    def set_notes(self, notes: str) -> None:
        self.notes = notes or ""
        self.touch()

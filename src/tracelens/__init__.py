"""tracelens - retrieval-augmented AI analysis of failed test runs."""

__version__ = "0.3.0"

from tracelens.config import AnalysisConfig, Settings, get_settings
from tracelens.conversation import ConversationContext
from tracelens.core.exceptions import (
    DimensionMismatchError,
    NoContextError,
    ProviderError,
    RetrievalError,
    StorageError,
    TracelensError,
    ValidationError,
)
from tracelens.core.models import (
    AIModel,
    AnalysisMode,
    AnalysisResult,
    AnalysisStatus,
    DocumentEntry,
    FailureInfo,
    GherkinScenarioInfo,
    ProviderType,
    StepDefinitionInfo,
    UserQuery,
)
from tracelens.orchestrator import AnalysisOrchestrator, RunState

__all__ = [
    "__version__",
    # Config
    "AnalysisConfig",
    "Settings",
    "get_settings",
    # Models
    "AIModel",
    "AnalysisMode",
    "AnalysisResult",
    "AnalysisStatus",
    "DocumentEntry",
    "FailureInfo",
    "GherkinScenarioInfo",
    "ProviderType",
    "StepDefinitionInfo",
    "UserQuery",
    # Pipeline
    "AnalysisOrchestrator",
    "ConversationContext",
    "RunState",
    # Errors
    "TracelensError",
    "ValidationError",
    "DimensionMismatchError",
    "StorageError",
    "RetrievalError",
    "ProviderError",
    "NoContextError",
]

"""Per-provider defaults for generation and embedding calls."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from tracelens.core.models import AnalysisMode, ProviderType


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for an AI provider."""

    default_model: str
    embedding_model: str
    embedding_dimension: int
    max_tokens: int = 2000
    temperature: float = 0.3
    request_timeout: float = 30.0
    validation_timeout: float = 10.0


# Provider configurations - single source of truth
PROVIDER_CONFIGS: MappingProxyType[ProviderType, ProviderConfig] = MappingProxyType(
    {
        ProviderType.OPENAI: ProviderConfig(
            default_model="gpt-4o",
            embedding_model="text-embedding-ada-002",
            embedding_dimension=1536,
        ),
        ProviderType.GEMINI: ProviderConfig(
            default_model="gemini-2.0-flash",
            embedding_model="gemini-embedding-001",
            embedding_dimension=3072,
        ),
    }
)

# Number of documents retrieved per analysis depth
TOP_K_BY_MODE: MappingProxyType[AnalysisMode, int] = MappingProxyType(
    {
        AnalysisMode.OVERVIEW: 2,
        AnalysisMode.FULL: 3,
    }
)

# Documents scoring below this cosine similarity are not merged into prompts
DEFAULT_SIMILARITY_THRESHOLD = 0.7

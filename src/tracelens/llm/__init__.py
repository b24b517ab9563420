"""Model providers, prompts and model catalog."""

from tracelens.llm.catalog import ModelCatalog
from tracelens.llm.config import (
    DEFAULT_SIMILARITY_THRESHOLD,
    PROVIDER_CONFIGS,
    TOP_K_BY_MODE,
    ProviderConfig,
)
from tracelens.llm.errors import LLM_RECOVERABLE_ERRORS
from tracelens.llm.providers import (
    GeminiProvider,
    ModelProvider,
    OpenAIProvider,
    ProviderRegistry,
    create_default_registry,
    create_provider,
)

__all__ = [
    # Config
    "DEFAULT_SIMILARITY_THRESHOLD",
    "PROVIDER_CONFIGS",
    "TOP_K_BY_MODE",
    "ProviderConfig",
    # Providers
    "ModelProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "ProviderRegistry",
    "create_provider",
    "create_default_registry",
    "LLM_RECOVERABLE_ERRORS",
    # Catalog
    "ModelCatalog",
]

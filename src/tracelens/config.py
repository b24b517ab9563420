"""Configuration settings for tracelens."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol, runtime_checkable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tracelens.core.models import ProviderType
from tracelens.llm.config import DEFAULT_SIMILARITY_THRESHOLD

DEFAULT_WINDOW_SIZE = 3
MAX_WINDOW_SIZE = 500


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRACELENS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_json_format: bool = False

    # Analysis
    feature_enabled: bool = True
    retrieval_enabled: bool = True
    preferred_provider: str = "openai"
    default_model_id: str | None = None
    window_size: int = DEFAULT_WINDOW_SIZE
    show_prompt: bool = False
    analysis_timeout_seconds: float = 60.0
    custom_instructions: str | None = None

    # Document store
    database_path: str = "tracelens-documents.db"
    documents_dir: str = "documents"
    similarity_threshold: float = Field(default=DEFAULT_SIMILARITY_THRESHOLD, ge=0.0, le=1.0)

    # External Services
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TRACELENS_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "TRACELENS_GEMINI_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY"
        ),
    )

    @field_validator("window_size")
    @classmethod
    def _clamp_window_size(cls, value: int) -> int:
        return max(1, min(value, MAX_WINDOW_SIZE))

    def api_key_for(self, provider_type: ProviderType) -> str | None:
        """Return the configured key for a provider, if any."""
        keys = {
            ProviderType.OPENAI: self.openai_api_key,
            ProviderType.GEMINI: self.gemini_api_key,
        }
        key = keys.get(provider_type)
        return key.strip() if key and key.strip() else None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@runtime_checkable
class ApiKeyLookup(Protocol):
    """Opaque credential lookup supplied by the host application."""

    def get_api_key(self, provider_type: ProviderType) -> str | None:
        """Return the API key for a provider, or None when not configured."""
        ...


class SettingsApiKeyLookup:
    """ApiKeyLookup backed by :class:`Settings` (environment / .env file)."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def get_api_key(self, provider_type: ProviderType) -> str | None:
        return self._settings.api_key_for(provider_type)


class StaticApiKeyLookup:
    """ApiKeyLookup over a fixed mapping, for embedding hosts and tests."""

    def __init__(self, keys: dict[ProviderType, str | None] | None = None) -> None:
        self._keys = dict(keys or {})

    def get_api_key(self, provider_type: ProviderType) -> str | None:
        key = self._keys.get(provider_type)
        return key if key and key.strip() else None


@dataclass(frozen=True)
class AnalysisConfig:
    """Read-only configuration consumed by the analysis orchestrator."""

    feature_enabled: bool = True
    retrieval_enabled: bool = True
    preferred_provider: ProviderType = ProviderType.OPENAI
    default_model_id: str | None = None
    window_size: int = DEFAULT_WINDOW_SIZE
    show_prompt: bool = False
    analysis_timeout_seconds: float = 60.0
    custom_instructions: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> AnalysisConfig:
        """Build the orchestrator configuration from application settings."""
        return cls(
            feature_enabled=settings.feature_enabled,
            retrieval_enabled=settings.retrieval_enabled,
            preferred_provider=ProviderType.from_id(settings.preferred_provider),
            default_model_id=settings.default_model_id,
            window_size=settings.window_size,
            show_prompt=settings.show_prompt,
            analysis_timeout_seconds=settings.analysis_timeout_seconds,
            custom_instructions=settings.custom_instructions,
        )

"""Base protocol for model providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tracelens.core.models import AnalysisResult, ProviderType


@runtime_checkable
class ModelProvider(Protocol):
    """Protocol for asynchronous model providers."""

    @property
    def provider_type(self) -> ProviderType:
        """Return the backend this provider talks to."""
        ...

    async def validate_connection(self, api_key: str) -> bool:
        """
        Check connectivity without generating anything.

        Args:
            api_key: API key to validate.

        Returns:
            True only when the backend answered with success. Never raises.
        """
        ...

    async def analyze(self, prompt: str, model_id: str, api_key: str) -> AnalysisResult:
        """
        Run a generation call.

        Args:
            prompt: Fully assembled prompt.
            model_id: Backend model identifier.
            api_key: API key for the backend.

        Returns:
            AnalysisResult with generated text, model id and elapsed time.

        Raises:
            ProviderError: If the call fails for any network or API reason.
        """
        ...

    async def discover_available_models(self, api_key: str) -> list[str]:
        """
        List generation-capable model identifiers.

        Args:
            api_key: API key for the backend.

        Returns:
            Model identifiers; empty when the backend reports none.

        Raises:
            ProviderError: If the catalog request fails.
        """
        ...

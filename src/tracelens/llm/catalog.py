"""In-memory catalog of configured AI models."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tracelens.core.exceptions import ProviderError, ValidationError
from tracelens.core.models import AIModel, ProviderType

if TYPE_CHECKING:
    from collections.abc import Callable

    from tracelens.config import ApiKeyLookup
    from tracelens.llm.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class ModelCatalog:
    """Holds the models a user can analyze with and tracks the default one.

    At most one model is flagged as default. When the default is deleted or
    disabled, the first enabled model takes its place.
    """

    def __init__(self, models: list[AIModel] | None = None) -> None:
        self._models: dict[str, AIModel] = {}
        self._default_id: str | None = None
        for model in models or []:
            self.add_model(model)

    def __len__(self) -> int:
        return len(self._models)

    @property
    def models(self) -> list[AIModel]:
        """All models in insertion order."""
        return list(self._models.values())

    def add_model(self, model: AIModel) -> AIModel:
        """Add a model; the first model added (or one flagged default) becomes default."""
        if model is None:
            raise ValidationError("Model cannot be None")
        if model.id in self._models:
            raise ValidationError(f"Model already exists: {model.id}")
        self._models[model.id] = model
        if model.is_default or self._default_id is None:
            self._set_default(model.id)
        logger.debug("model_added: name=%s, model_id=%s", model.name, model.model_id)
        return model

    def add_discovered_model(self, provider_type: ProviderType, model_id: str) -> AIModel | None:
        """Add a model found by discovery unless one with the same name exists."""
        if any(m.name == model_id for m in self._models.values()):
            return None
        model = AIModel(name=model_id, provider_type=provider_type, model_id=model_id)
        return self.add_model(model)

    def get_model(self, model_id: str) -> AIModel | None:
        """Look a model up by catalog id, falling back to its backend model id."""
        model = self._models.get(model_id)
        if model is not None:
            return model
        return next((m for m in self._models.values() if m.model_id == model_id), None)

    def get_default_model(self) -> AIModel | None:
        """Return the default model, or the first enabled model when it is unusable."""
        default = self._models.get(self._default_id) if self._default_id else None
        if default is not None and default.enabled:
            return default
        fallback = next((m for m in self._models.values() if m.enabled), None)
        if fallback is not None:
            self._set_default(fallback.id)
        return fallback

    def set_default_model(self, model_id: str) -> bool:
        """Mark a model as default. Disabled or unknown models are rejected."""
        model = self.get_model(model_id)
        if model is None or not model.enabled:
            return False
        self._set_default(model.id)
        return True

    def update_model(self, model: AIModel) -> bool:
        """Replace a stored model with an edited copy."""
        if model.id not in self._models:
            return False
        model.touch()
        self._models[model.id] = model
        if model.is_default:
            self._set_default(model.id)
        elif self._default_id == model.id and not model.enabled:
            self.get_default_model()
        return True

    def delete_model(self, model_id: str) -> bool:
        """Delete a model; reassigns the default when the default is removed."""
        model = self._models.pop(model_id, None)
        if model is None:
            return False
        if self._default_id == model_id:
            self._default_id = None
            self.get_default_model()
        return True

    def enabled_models(self, provider_type: ProviderType | None = None) -> list[AIModel]:
        return [
            m
            for m in self._models.values()
            if m.enabled and (provider_type is None or m.provider_type is provider_type)
        ]

    def best_available_model(self, has_key: Callable[[ProviderType], bool]) -> AIModel | None:
        """Default model if its provider has a key, else the first enabled model that does."""
        default = self.get_default_model()
        if default is not None and has_key(default.provider_type):
            return default
        return next((m for m in self.enabled_models() if has_key(m.provider_type)), None)

    async def discover(self, registry: ProviderRegistry, api_keys: ApiKeyLookup) -> int:
        """
        Populate the catalog from every provider that has an API key.

        Args:
            registry: Registered model providers.
            api_keys: Credential lookup.

        Returns:
            Number of newly added models.
        """
        added = 0
        for provider_type in registry.registered_types():
            api_key = api_keys.get_api_key(provider_type)
            if not api_key:
                continue
            provider = registry.get_provider(provider_type)
            try:
                model_ids = await provider.discover_available_models(api_key)
            except ProviderError as e:
                logger.warning(
                    "model_discovery_failed: provider=%s, error=%s", provider_type.value, e
                )
                continue
            for model_id in model_ids:
                if self.add_discovered_model(provider_type, model_id) is not None:
                    added += 1
        logger.info("model_discovery_completed: added=%d, total=%d", added, len(self._models))
        return added

    def _set_default(self, model_id: str) -> None:
        for model in self._models.values():
            model.is_default = model.id == model_id
        self._default_id = model_id

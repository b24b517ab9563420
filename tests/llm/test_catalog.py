"""Tests for the model catalog."""

from __future__ import annotations

import pytest

from tests.factories import FakeModelProvider, make_api_keys, make_registry
from tracelens.core.exceptions import ProviderError, ValidationError
from tracelens.core.models import AIModel, ProviderType
from tracelens.llm.catalog import ModelCatalog

OPENAI = ProviderType.OPENAI
GEMINI = ProviderType.GEMINI


def gpt(name: str = "GPT-4o", model_id: str = "gpt-4o", **kwargs) -> AIModel:
    return AIModel(name, OPENAI, model_id, **kwargs)


class TestDefaultModel:
    """Tests for default model tracking."""

    def test_first_model_becomes_default(self):
        catalog = ModelCatalog()
        first = catalog.add_model(gpt())
        catalog.add_model(gpt("Mini", "gpt-4o-mini"))

        assert catalog.get_default_model() is first
        assert first.is_default

    def test_model_flagged_default_takes_over(self):
        catalog = ModelCatalog([gpt()])
        flagged = catalog.add_model(gpt("Mini", "gpt-4o-mini", is_default=True))

        assert catalog.get_default_model() is flagged
        assert sum(m.is_default for m in catalog.models) == 1

    def test_set_default_rejects_disabled_model(self):
        catalog = ModelCatalog([gpt()])
        disabled = catalog.add_model(gpt("Mini", "gpt-4o-mini", enabled=False))

        assert catalog.set_default_model(disabled.id) is False
        assert catalog.set_default_model("unknown") is False

    def test_deleting_default_promotes_next_enabled(self):
        first = gpt()
        second = gpt("Mini", "gpt-4o-mini")
        catalog = ModelCatalog([first, second])

        assert catalog.delete_model(first.id) is True
        assert catalog.get_default_model() is second

    def test_disabling_default_promotes_next_enabled(self):
        first = gpt()
        second = gpt("Mini", "gpt-4o-mini")
        catalog = ModelCatalog([first, second])

        first.set_enabled(False)
        catalog.update_model(first)

        assert catalog.get_default_model() is second

    def test_empty_catalog_has_no_default(self):
        assert ModelCatalog().get_default_model() is None


class TestLookup:
    """Tests for model lookup and filtering."""

    def test_duplicate_id_rejected(self):
        model = gpt()
        catalog = ModelCatalog([model])

        with pytest.raises(ValidationError):
            catalog.add_model(model)

    def test_get_model_by_backend_id(self):
        model = gpt()
        catalog = ModelCatalog([model])

        assert catalog.get_model("gpt-4o") is model
        assert catalog.get_model(model.id) is model

    def test_enabled_models_by_provider(self):
        catalog = ModelCatalog(
            [
                gpt(),
                gpt("Off", "gpt-3.5-turbo", enabled=False),
                AIModel("Flash", GEMINI, "gemini-2.0-flash"),
            ]
        )

        assert [m.name for m in catalog.enabled_models(OPENAI)] == ["GPT-4o"]
        assert len(catalog.enabled_models()) == 2

    def test_best_available_model_needs_a_key(self):
        catalog = ModelCatalog([gpt(), AIModel("Flash", GEMINI, "gemini-2.0-flash")])

        best = catalog.best_available_model(lambda provider_type: provider_type is GEMINI)

        assert best.provider_type is GEMINI


class TestDiscover:
    """Tests for populating the catalog from providers."""

    @pytest.mark.asyncio
    async def test_adds_models_for_providers_with_keys(self):
        registry = make_registry(
            FakeModelProvider(OPENAI, models=["gpt-4o", "gpt-4o-mini"]),
            FakeModelProvider(GEMINI, models=["gemini-2.0-flash"]),
        )
        catalog = ModelCatalog([gpt("gpt-4o")])

        added = await catalog.discover(registry, make_api_keys(gemini=None))

        assert added == 1
        assert [m.model_id for m in catalog.models] == ["gpt-4o", "gpt-4o-mini"]

    @pytest.mark.asyncio
    async def test_provider_failure_is_skipped(self):
        registry = make_registry(
            FakeModelProvider(OPENAI, error=ProviderError("unauthorized", OPENAI)),
            FakeModelProvider(GEMINI, models=["gemini-2.0-flash"]),
        )
        catalog = ModelCatalog()

        added = await catalog.discover(registry, make_api_keys(gemini="gemini-key"))

        assert added == 1
        assert catalog.get_default_model().model_id == "gemini-2.0-flash"

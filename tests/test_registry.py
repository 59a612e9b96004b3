"""Tests for the provider registry."""

import logging
from unittest.mock import AsyncMock

import pytest

from llmkit.core.registry import ProviderRegistry, get_registry, reset_registry
from llmkit.exceptions import NoProvidersRegisteredError
from llmkit.providers import PROVIDER_CLASSES
from llmkit.providers.base import BaseProvider, model
from llmkit.types import CredentialContext, ProviderSettings


class StaticProvider(BaseProvider):
    """Adapter A: static catalog only."""

    name = "A"
    static_models = (model("m1", "Model One", "A"),)

    def get_model_instance(self, model, context=None):
        raise NotImplementedError


class DynamicProvider(BaseProvider):
    """Adapter B: dynamic catalog driven by an AsyncMock."""

    name = "B"

    def __init__(self, env=None, settings=None):
        super().__init__(env=env, settings=settings)
        self.fetch = AsyncMock(return_value=[model("m2", "Model Two", "B")])

    def supports_discovery(self):
        return True

    async def fetch_dynamic_models(self, context):
        return await self.fetch(context)

    def get_model_instance(self, model, context=None):
        raise NotImplementedError


class ExplodingRefreshProvider(DynamicProvider):
    """Adapter whose refresh raises past the base class guard."""

    async def refresh_dynamic_models(self, context=None):
        raise RuntimeError("listing endpoint on fire")


class BrokenProvider(BaseProvider):
    name = "Broken"

    def __init__(self, env=None, settings=None):
        raise RuntimeError("cannot construct")

    def get_model_instance(self, model, context=None):
        raise NotImplementedError


@pytest.fixture
def registry(settings):
    return ProviderRegistry(settings=settings)


class TestRegistration:
    def test_discover_registers_in_order(self, registry):
        registry.discover_and_register_all((StaticProvider, DynamicProvider))

        assert [p.name for p in registry.list_providers()] == ["A", "B"]
        assert len(registry) == 2
        assert "A" in registry
        assert [d.name for d in registry.get_model_list()] == ["m1"]

    def test_duplicate_keeps_first(self, registry, settings, caplog):
        first = StaticProvider(settings=settings)
        second = StaticProvider(settings=settings)

        registry.register(first)
        with caplog.at_level(logging.WARNING):
            registry.register(second)

        assert registry.get_provider("A") is first
        assert len(registry) == 1
        assert "already registered" in caplog.text

    def test_constructor_failure_skipped(self, registry, caplog):
        with caplog.at_level(logging.ERROR):
            registry.discover_and_register_all((BrokenProvider, StaticProvider))

        assert [p.name for p in registry.list_providers()] == ["A"]
        assert "BrokenProvider" in caplog.text

    def test_get_provider_returns_same_instance(self, registry):
        registry.discover_and_register_all((StaticProvider,))

        assert registry.get_provider("A") is registry.get_provider("A")

    def test_unknown_provider(self, registry):
        assert registry.get_provider("Nope") is None

    def test_environment_snapshot_passed_to_adapters(self, settings):
        registry = ProviderRegistry(env={"SOME_KEY": "v"}, settings=settings)
        registry.discover_and_register_all((StaticProvider,))

        assert registry.get_provider("A").env == {"SOME_KEY": "v"}


class TestDefaultProvider:
    def test_first_registered(self, registry):
        registry.discover_and_register_all((DynamicProvider, StaticProvider))

        assert registry.get_default_provider().name == "B"

    def test_empty_registry_raises(self, registry):
        with pytest.raises(NoProvidersRegisteredError):
            registry.get_default_provider()


class TestUpdateModelList:
    @pytest.mark.asyncio
    async def test_dynamic_before_static(self, registry):
        registry.discover_and_register_all((StaticProvider, DynamicProvider))

        models = await registry.update_model_list(CredentialContext())

        assert [d.key for d in models] == [("B", "m2"), ("A", "m1")]
        assert registry.get_model_list() == models

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_static(self, registry):
        registry.discover_and_register_all((StaticProvider, DynamicProvider))
        registry.get_provider("B").fetch.side_effect = RuntimeError("boom")

        models = await registry.update_model_list(CredentialContext())

        assert [d.key for d in models] == [("A", "m1")]

    @pytest.mark.asyncio
    async def test_raising_refresh_does_not_fail_aggregate(self, registry, caplog):
        registry.register(StaticProvider(settings=registry.settings))
        registry.register(ExplodingRefreshProvider(settings=registry.settings))

        with caplog.at_level(logging.ERROR):
            models = await registry.update_model_list()

        assert [d.key for d in models] == [("A", "m1")]
        assert "listing endpoint on fire" in caplog.text

    @pytest.mark.asyncio
    async def test_static_wins_over_dynamic_duplicate(self, registry):
        registry.discover_and_register_all((StaticProvider, DynamicProvider))
        provider = registry.get_provider("B")
        provider.static_models = (model("m2", "Static Two", "B", 1234),)

        models = await registry.update_model_list()

        m2 = [d for d in models if d.key == ("B", "m2")]
        assert len(m2) == 1
        assert m2[0].label == "Static Two"

    @pytest.mark.asyncio
    async def test_disabled_provider_skipped(self, registry):
        registry.discover_and_register_all((StaticProvider, DynamicProvider))
        context = CredentialContext(provider_settings={"B": ProviderSettings(enabled=False)})

        models = await registry.update_model_list(context)

        assert [d.key for d in models] == [("A", "m1")]
        registry.get_provider("B").fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_context_passed_to_adapters(self, registry):
        registry.discover_and_register_all((DynamicProvider,))
        context = CredentialContext(api_keys={"B": "key"})

        await registry.update_model_list(context)

        registry.get_provider("B").fetch.assert_awaited_once_with(context)


class TestFindProviderForModel:
    @pytest.mark.asyncio
    async def test_static_then_dynamic(self, registry):
        registry.discover_and_register_all((StaticProvider, DynamicProvider))

        assert registry.find_provider_for_model("m1").name == "A"
        assert registry.find_provider_for_model("m2") is None

        await registry.update_model_list()

        assert registry.find_provider_for_model("m2").name == "B"
        assert registry.find_provider_for_model("unknown") is None


class TestProcessRegistry:
    def test_singleton(self):
        first = get_registry({"OPENAI_API_KEY": "sk-test"})

        assert get_registry() is first
        assert get_registry().get_provider("OpenAI") is first.get_provider("OpenAI")

    def test_registers_every_adapter(self):
        registry = get_registry()

        assert [p.name for p in registry.list_providers()] == [cls.name for cls in PROVIDER_CLASSES]
        assert registry.get_default_provider().name == PROVIDER_CLASSES[0].name

    def test_env_merged_into_snapshot(self):
        registry = get_registry({"OLLAMA_API_BASE_URL": "http://localhost:11434"})

        assert registry.get_provider("Ollama").env["OLLAMA_API_BASE_URL"] == "http://localhost:11434"

    def test_reset(self):
        first = get_registry()
        reset_registry()

        assert get_registry() is not first

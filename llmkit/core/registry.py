"""Provider registry: one adapter per provider name, aggregated catalogs."""

import asyncio
import logging
import os
from typing import Mapping

from llmkit.core.config import Settings, get_settings
from llmkit.exceptions import NoProvidersRegisteredError
from llmkit.providers import PROVIDER_CLASSES
from llmkit.providers.base import BaseProvider
from llmkit.types import CredentialContext, ModelDescriptor

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Ordered set of provider adapters keyed by name.

    The first registered adapter is the default. The environment snapshot is
    captured once at construction and handed to every adapter.
    """

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.env: dict[str, str] = dict(env or {})
        self.settings = settings or get_settings()
        self._providers: dict[str, BaseProvider] = {}
        self._model_list: list[ModelDescriptor] = []

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def discover_and_register_all(
        self, provider_classes: tuple[type[BaseProvider], ...] | None = None
    ) -> None:
        """Instantiate and register every known adapter class.

        A class whose constructor fails is logged and skipped.
        """
        for provider_class in provider_classes if provider_classes is not None else PROVIDER_CLASSES:
            try:
                provider = provider_class(env=self.env, settings=self.settings)
            except Exception as e:
                logger.error("Failed to initialize provider %s: %s", provider_class.__name__, e)
                continue
            self.register(provider)

        self._model_list = self.get_static_model_list()
        logger.info("Registered %d providers", len(self._providers))

    def register(self, provider: BaseProvider) -> None:
        """Add ``provider``; a duplicate name keeps the first registration."""
        if provider.name in self._providers:
            logger.warning("Provider %s is already registered. Skipping.", provider.name)
            return

        logger.info("Registering provider: %s", provider.name)
        self._providers[provider.name] = provider

    def get_provider(self, name: str) -> BaseProvider | None:
        return self._providers.get(name)

    def list_providers(self) -> list[BaseProvider]:
        """All adapters in registration order."""
        return list(self._providers.values())

    def get_static_model_list(self) -> list[ModelDescriptor]:
        return [descriptor for provider in self._providers.values() for descriptor in provider.static_models]

    def get_model_list(self) -> list[ModelDescriptor]:
        """The catalog built by the last ``update_model_list`` call."""
        return list(self._model_list)

    async def update_model_list(self, context: CredentialContext | None = None) -> list[ModelDescriptor]:
        """Refresh every adapter's dynamic catalog concurrently and aggregate.

        Adapters disabled in the context's provider settings are skipped. A
        failing adapter contributes its static catalog only.
        """
        context = context or CredentialContext()
        providers = [
            provider
            for provider in self._providers.values()
            if (settings := context.settings_for(provider.name)) is None or settings.enabled
        ]

        results = await asyncio.gather(
            *(provider.refresh_dynamic_models(context) for provider in providers),
            return_exceptions=True,
        )

        dynamic: list[ModelDescriptor] = []
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                logger.error("Error getting dynamic models %s: %s", provider.name, result)
                continue
            dynamic.extend(result)

        static = [descriptor for provider in providers for descriptor in provider.static_models]
        static_keys = {descriptor.key for descriptor in static}
        # Static entries win over dynamic ones with the same (provider, name)
        self._model_list = [d for d in dynamic if d.key not in static_keys] + static

        logger.info(
            "Aggregated %d models (%d dynamic) from %d providers",
            len(self._model_list),
            len(self._model_list) - len(static),
            len(providers),
        )
        return list(self._model_list)

    def find_provider_for_model(self, model_name: str) -> BaseProvider | None:
        """Resolve which adapter serves ``model_name``: static catalogs first, then cached dynamic ones."""
        for provider in self._providers.values():
            if any(descriptor.name == model_name for descriptor in provider.static_models):
                return provider
        for provider in self._providers.values():
            cached = provider.cached_dynamic_models
            if cached is not None and any(descriptor.name == model_name for descriptor in cached.models):
                return provider
        return None

    def get_default_provider(self) -> BaseProvider:
        """The first registered adapter.

        Raises:
            NoProvidersRegisteredError: The registry is empty.
        """
        for provider in self._providers.values():
            return provider
        raise NoProvidersRegisteredError()


_registry: ProviderRegistry | None = None


def get_registry(env: Mapping[str, str] | None = None) -> ProviderRegistry:
    """Return the process-wide registry, building it on first use.

    ``env`` only matters on the first call; it is merged over ``os.environ``.
    """
    global _registry
    if _registry is None:
        registry = ProviderRegistry(env={**os.environ, **(env or {})})
        registry.discover_and_register_all()
        _registry = registry
    return _registry


def reset_registry() -> None:
    """Drop the process-wide registry (tests)."""
    global _registry
    _registry = None

"""Base class and configuration types for provider adapters."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple

import httpx

from llmkit.core.capabilities import detect_capabilities
from llmkit.core.config import Settings, get_settings
from llmkit.core.litellm_client import LiteLLMClient
from llmkit.exceptions import CatalogRefreshError, ConfigurationError
from llmkit.providers.handle import LiteLLMModelHandle, ModelHandle
from llmkit.types import CredentialContext, ModelCapabilities, ModelDescriptor, ProviderSettings

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 8000


@dataclass(frozen=True)
class ProviderConfig:
    """Names of the configuration values a provider reads.

    ``base_url_key`` and ``api_token_key`` are environment-style keys looked up
    in the request's server env and in the registry's environment snapshot.
    """

    base_url_key: str | None = None
    api_token_key: str | None = None
    base_url: str | None = None  # Built-in default endpoint


class ResolvedCredentials(NamedTuple):
    base_url: str | None
    api_key: str | None


@dataclass(frozen=True)
class CachedModels:
    cache_key: str
    models: tuple[ModelDescriptor, ...]


def model(
    name: str,
    label: str,
    provider: str,
    max_token_allowed: int = DEFAULT_MAX_TOKENS,
    **capabilities: bool,
) -> ModelDescriptor:
    """Shorthand for static catalog entries."""
    return ModelDescriptor(
        name=name,
        label=label,
        provider=provider,
        max_token_allowed=max_token_allowed,
        capabilities=ModelCapabilities(**capabilities),
    )


class BaseProvider(ABC):
    """Adapter for one LLM backend family.

    Knows how to resolve credentials for the backend, build a model handle,
    and (optionally) list the backend's models. Subclasses that support live
    discovery override ``fetch_dynamic_models`` and ``supports_discovery``.
    """

    name: str = ""
    config: ProviderConfig = ProviderConfig()
    static_models: tuple[ModelDescriptor, ...] = ()
    litellm_prefix: str = ""

    get_api_key_link: str | None = None
    label_for_get_api_key: str | None = None
    supports_managed_identity: bool = False

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            env: Process environment snapshot, consulted after the request's
                server env. Not re-read after construction.
            settings: Library settings; defaults to the cached settings.
        """
        if not self.name:
            raise ValueError(f"{type(self).__name__} does not define a provider name")
        self.env: dict[str, str] = dict(env or {})
        self.settings = settings or get_settings()
        self.cached_dynamic_models: CachedModels | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def env_value(self, key: str | None, context: CredentialContext | None = None) -> str | None:
        """Look up a configuration key in the request's server env, then the snapshot."""
        if not key:
            return None
        if context is not None and context.server_env.get(key):
            return context.server_env[key]
        return self.env.get(key) or None

    def provider_settings(self, context: CredentialContext | None) -> ProviderSettings | None:
        if context is None:
            return None
        return context.settings_for(self.name)

    def resolve_base_url_and_key(
        self,
        context: CredentialContext | None = None,
        *,
        base_url_key: str | None = None,
        api_token_key: str | None = None,
    ) -> ResolvedCredentials:
        """Resolve base URL and API key.

        Precedence, highest first: provider settings, the caller's key map
        (keys only), the request's server env, the environment snapshot, and
        finally the provider's built-in default URL. Empty strings count as unset.

        Returns:
            ResolvedCredentials with None for anything unresolved.
        """
        context = context or CredentialContext()
        settings = self.provider_settings(context)

        base_url = (
            (settings.base_url if settings else None)
            or self.env_value(base_url_key or self.config.base_url_key, context)
            or self.config.base_url
        )
        if base_url and base_url.endswith("/"):
            base_url = base_url[:-1]

        api_key = (
            (settings.api_key if settings else None)
            or context.api_key_for(self.name)
            or self.env_value(api_token_key or self.config.api_token_key, context)
        )

        return ResolvedCredentials(base_url=base_url or None, api_key=api_key or None)

    def require_api_key(self, api_key: str | None) -> str:
        if not api_key:
            raise ConfigurationError(f"Missing API key for {self.name} provider", provider=self.name)
        return api_key

    def require_base_url(self, base_url: str | None) -> str:
        if not base_url:
            raise ConfigurationError(f"No base URL configured for {self.name} provider", provider=self.name)
        return base_url

    def extra_headers(self, context: CredentialContext | None) -> dict[str, str]:
        settings = self.provider_settings(context)
        return dict(settings.headers) if settings else {}

    def has_env_api_key(self, context: CredentialContext | None = None) -> bool:
        """Whether the API key is available from the server side (env, not caller keys)."""
        return self.env_value(self.config.api_token_key, context) is not None

    def has_managed_identity(self, context: CredentialContext | None = None) -> bool:
        """Whether managed-identity authentication is configured for this provider."""
        return False

    # ------------------------------------------------------------------
    # Model handles
    # ------------------------------------------------------------------

    @abstractmethod
    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        """Build a handle for ``model`` bound to resolved credentials.

        Raises:
            ConfigurationError: A required credential or endpoint is missing.
        """

    def litellm_model_name(self, model: str) -> str:
        """Format model name with the provider's LiteLLM prefix."""
        prefix = self.litellm_prefix
        if prefix and not model.startswith(prefix):
            return f"{prefix}{model}"
        return model

    def build_handle(self, model: str, *, backend_model: str | None = None, **kwargs: Any) -> LiteLLMModelHandle:
        """Build a litellm handle; ``backend_model`` is sent instead of ``model`` when given."""
        return LiteLLMModelHandle(
            provider=self.name,
            model=model,
            litellm_model=self.litellm_model_name(backend_model or model),
            client=LiteLLMClient.from_settings(self.settings),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Catalogs
    # ------------------------------------------------------------------

    def supports_discovery(self) -> bool:
        """Return True if this provider can list models from its backend."""
        return False

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        """Query the backend's model listing.

        Implementations may raise; ``refresh_dynamic_models`` recovers.
        """
        raise NotImplementedError(f"{self.name} does not support model discovery")

    def get_dynamic_models_cache_key(self, context: CredentialContext) -> str:
        return context.cache_key_for(self.name)

    def get_models_from_cache(self, context: CredentialContext) -> list[ModelDescriptor] | None:
        """Return cached dynamic models if the cache key still matches.

        Any drift in the key drops the whole cache.
        """
        cached = self.cached_dynamic_models
        if cached is None:
            return None
        if cached.cache_key != self.get_dynamic_models_cache_key(context):
            self.cached_dynamic_models = None
            return None
        return list(cached.models)

    def store_dynamic_models(self, context: CredentialContext, models: list[ModelDescriptor]) -> None:
        self.cached_dynamic_models = CachedModels(
            cache_key=self.get_dynamic_models_cache_key(context),
            models=tuple(models),
        )

    def _cached_for(self, context: CredentialContext) -> list[ModelDescriptor]:
        """Cached models stored under this context's key, else an empty list."""
        cached = self.cached_dynamic_models
        if cached is None or cached.cache_key != self.get_dynamic_models_cache_key(context):
            return []
        return list(cached.models)

    async def refresh_dynamic_models(self, context: CredentialContext | None = None) -> list[ModelDescriptor]:
        """Return this provider's dynamic catalog, fetching it if the cache is stale.

        Never raises: on any failure the catalog cached for the same credentials
        (or an empty list) is returned and the error is logged. A catalog
        fetched with other credentials is never returned.
        """
        if not self.supports_discovery():
            return []

        context = context or CredentialContext()
        cached = self.get_models_from_cache(context)
        if cached is not None:
            return cached

        try:
            models = await self.fetch_dynamic_models(context)
        except httpx.HTTPStatusError as e:
            logger.error(
                "HTTP error refreshing models from %s: %s %s",
                self.name,
                e.response.status_code,
                e.response.text[:200] if e.response.text else "",
            )
            return self._cached_for(context)
        except httpx.RequestError as e:
            logger.error("Request error refreshing models from %s: %s", self.name, str(e))
            return self._cached_for(context)
        except (CatalogRefreshError, ConfigurationError) as e:
            logger.warning("Skipping model refresh for %s: %s", self.name, e)
            return self._cached_for(context)
        except Exception as e:
            logger.exception("Unexpected error refreshing models from %s: %s", self.name, str(e))
            return self._cached_for(context)

        self.store_dynamic_models(context, models)
        logger.info("Refreshed %d dynamic models from %s", len(models), self.name)
        return list(models)

    def find_model_descriptor(self, model_name: str) -> ModelDescriptor:
        """Look a model up in the static, then cached dynamic catalog.

        Unknown models get a synthesized descriptor so they stay usable.
        """
        for descriptor in self.static_models:
            if descriptor.name == model_name:
                return descriptor
        if self.cached_dynamic_models is not None:
            for descriptor in self.cached_dynamic_models.models:
                if descriptor.name == model_name:
                    return descriptor
        return ModelDescriptor(
            name=model_name,
            label=model_name,
            provider=self.name,
            max_token_allowed=self.settings.default_max_tokens,
            capabilities=detect_capabilities(model_name),
        )

    async def get_json(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """GET a JSON document from the backend."""
        async with httpx.AsyncClient(timeout=self.settings.catalog_timeout) as client:
            response = await client.get(url, headers=headers or {}, params=params)
            response.raise_for_status()
            try:
                return response.json()
            except ValueError as e:
                raise CatalogRefreshError(
                    f"Unparseable model listing from {self.name}: {e}", provider=self.name
                ) from e


def format_tokens(count: int | float | None) -> str:
    """Render a token count for catalog labels (e.g. 8k, 128k, 1.0M)."""
    if not count:
        return "0"
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.0f}k"
    return str(int(count))

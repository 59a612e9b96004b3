"""Azure OpenAI provider adapter.

Supports two authentication schemes:
- an ``api-key`` for the Azure OpenAI resource;
- a managed identity, exchanged for a short-lived Microsoft Entra token that
  is cached and renewed shortly before it expires.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import httpx

from llmkit.core.capabilities import detect_capabilities
from llmkit.exceptions import ConfigurationError
from llmkit.providers.base import BaseProvider, ProviderConfig
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext, ModelDescriptor

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-10-21"
DEPLOYMENT_MAX_TOKENS = 16384

COGNITIVE_SERVICES_RESOURCE = "https://cognitiveservices.azure.com"
IMDS_TOKEN_URL = "http://169.254.169.254/metadata/identity/oauth2/token"
IMDS_API_VERSION = "2018-02-01"
APP_SERVICE_API_VERSION = "2019-08-01"

MANAGED_IDENTITY_CLIENT_ID_KEY = "AZURE_OPENAI_USE_MI"


@dataclass(frozen=True)
class AccessToken:
    token: str
    expires_on: float  # Unix timestamp


@dataclass(frozen=True)
class AzureEndpointOptions:
    endpoint: str | None
    api_version: str
    client_id: str | None


class ManagedIdentityTokenProvider:
    """Fetch and cache managed-identity tokens for Azure Cognitive Services.

    Uses the App Service identity endpoint when ``IDENTITY_ENDPOINT`` and
    ``IDENTITY_HEADER`` are set, otherwise the VM instance metadata service.
    """

    def __init__(
        self,
        client_id: str,
        *,
        env: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        renewal_margin: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id
        self.env = dict(env or {})
        self.timeout = timeout
        self.renewal_margin = renewal_margin
        self._clock = clock
        self._token: AccessToken | None = None

    def needs_renewal(self) -> bool:
        return self._token is None or self._token.expires_on - self.renewal_margin < self._clock()

    async def get_token(self) -> str:
        """Return a valid token, renewing it if it expires within the margin."""
        if self.needs_renewal():
            logger.info("Renewing managed identity token for client %s", self.client_id)
            self._token = await self._request_token()
            logger.info(
                "Managed identity token expires in %.1f minutes",
                (self._token.expires_on - self._clock()) / 60,
            )
        return self._token.token

    def _request_args(self) -> tuple[str, dict[str, str], dict[str, str]]:
        identity_endpoint = self.env.get("IDENTITY_ENDPOINT")
        identity_header = self.env.get("IDENTITY_HEADER")
        params = {"resource": COGNITIVE_SERVICES_RESOURCE, "client_id": self.client_id}

        if identity_endpoint and identity_header:
            params["api-version"] = APP_SERVICE_API_VERSION
            return identity_endpoint, params, {"X-IDENTITY-HEADER": identity_header}

        params["api-version"] = IMDS_API_VERSION
        return IMDS_TOKEN_URL, params, {"Metadata": "true"}

    async def _request_token(self) -> AccessToken:
        url, params, headers = self._request_args()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()

        token = data.get("access_token")
        if not token:
            raise ValueError("Managed identity endpoint returned no access_token")

        if data.get("expires_on"):
            expires_on = float(data["expires_on"])
        else:
            expires_on = self._clock() + float(data.get("expires_in", 0))
        return AccessToken(token=token, expires_on=expires_on)


class AzureOpenAIProvider(BaseProvider):
    """Adapter for Azure OpenAI resources.

    The model name passed to ``get_model_instance`` is the deployment name,
    unless provider settings pin a ``deployment``.
    """

    name = "AzureOpenAI"
    get_api_key_link = "https://learn.microsoft.com/en-us/azure/ai-services/openai/reference#authentication"
    litellm_prefix = "azure/"
    supports_managed_identity = True

    config = ProviderConfig(
        base_url_key="AZURE_OPENAI_ENDPOINT",
        api_token_key="AZURE_OPENAI_API_KEY",
    )

    def __init__(self, env=None, settings=None) -> None:
        super().__init__(env=env, settings=settings)
        self._token_providers: dict[str, ManagedIdentityTokenProvider] = {}

    def endpoint_options(self, context: CredentialContext | None = None) -> AzureEndpointOptions:
        settings = self.provider_settings(context)
        base_url, _ = self.resolve_base_url_and_key(context)

        resource_name = (settings.resource_name if settings else None) or self.env_value(
            "AZURE_OPENAI_ENDPOINT_NAME", context
        )
        endpoint = base_url or (f"https://{resource_name}.openai.azure.com" if resource_name else None)

        return AzureEndpointOptions(
            endpoint=endpoint,
            api_version=(settings.api_version if settings else None)
            or self.env_value("AZURE_OPENAI_VERSION", context)
            or DEFAULT_API_VERSION,
            client_id=(settings.client_id if settings else None)
            or self.env_value(MANAGED_IDENTITY_CLIENT_ID_KEY, context),
        )

    def has_managed_identity(self, context: CredentialContext | None = None) -> bool:
        return self.endpoint_options(context).client_id is not None

    def token_provider(self, client_id: str, context: CredentialContext | None = None) -> ManagedIdentityTokenProvider:
        """Return the token cache for ``client_id``, shared across handles."""
        provider = self._token_providers.get(client_id)
        if provider is None:
            env = {**self.env, **(context.server_env if context else {})}
            provider = ManagedIdentityTokenProvider(
                client_id,
                env=env,
                timeout=self.settings.catalog_timeout,
                renewal_margin=self.settings.token_renewal_margin,
            )
            self._token_providers[client_id] = provider
        return provider

    def _auth(self, context: CredentialContext | None) -> tuple[str | None, AzureEndpointOptions]:
        _, api_key = self.resolve_base_url_and_key(context)
        options = self.endpoint_options(context)

        if not api_key and not options.client_id:
            raise ConfigurationError(
                f"For {self.name} provider: missing Api Key or Managed Identity configuration",
                provider=self.name,
            )
        if not options.endpoint:
            raise ConfigurationError(
                f"For {self.name} provider: missing endpoint or resource name", provider=self.name
            )
        return api_key, options

    def supports_discovery(self) -> bool:
        return True

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        """List base models from the resource's /openai/models endpoint."""
        api_key, options = self._auth(context)

        if api_key:
            # Azure uses api-key header, not Bearer token
            headers = {"api-key": api_key}
        else:
            token = await self.token_provider(options.client_id, context).get_token()
            headers = {"Authorization": f"Bearer {token}"}

        data = await self.get_json(
            f"{options.endpoint}/openai/models",
            headers=headers,
            params={"api-version": options.api_version},
        )

        models: list[ModelDescriptor] = []
        for model_data in data.get("data", []):
            model_id = model_data.get("id", "")
            capabilities = model_data.get("capabilities") or {}
            if not model_id or not capabilities.get("chat_completion", True):
                continue
            models.append(
                ModelDescriptor(
                    name=model_id,
                    label=model_id,
                    provider=self.name,
                    max_token_allowed=DEPLOYMENT_MAX_TOKENS,
                    capabilities=detect_capabilities(model_id),
                )
            )

        logger.info("Discovered %d models from Azure OpenAI at %s", len(models), options.endpoint)
        return models

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        api_key, options = self._auth(context)
        settings = self.provider_settings(context)
        deployment = (settings.deployment if settings else None) or model

        credential_provider = None
        if not api_key:
            tokens = self.token_provider(options.client_id, context)

            async def credential_provider() -> dict[str, Any]:
                return {"azure_ad_token": await tokens.get_token()}

        return self.build_handle(
            model,
            backend_model=deployment,
            api_key=api_key,
            api_base=options.endpoint,
            headers=self.extra_headers(context),
            extra_params={"api_version": options.api_version},
            credential_provider=credential_provider,
        )

"""Tests for the concrete provider adapters."""

import json
from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from llmkit.exceptions import ConfigurationError
from llmkit.providers import (
    PROVIDER_CLASSES,
    AmazonBedrockProvider,
    AnthropicProvider,
    AzureOpenAIProvider,
    GoogleProvider,
    OllamaProvider,
    OpenAIProvider,
    OpenRouterProvider,
    TogetherProvider,
    VertexAIProvider,
)
from llmkit.providers.anthropic import REASONING_SYSTEM_HINT
from llmkit.providers.azure_openai import (
    APP_SERVICE_API_VERSION,
    IMDS_TOKEN_URL,
    ManagedIdentityTokenProvider,
)
from llmkit.types import CredentialContext, ProviderSettings


@contextmanager
def mock_http(payload):
    """Patch httpx.AsyncClient so every GET returns ``payload``."""
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = MagicMock()
        mock_response = MagicMock()
        mock_response.json.return_value = payload
        mock_response.raise_for_status = MagicMock()
        mock_client.get = AsyncMock(return_value=mock_response)
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=None)
        mock_client_class.return_value = mock_client
        yield mock_client_class, mock_client


def keyed(provider, key="test-key"):
    return CredentialContext(api_keys={provider: key})


class TestMissingConfiguration:
    @pytest.mark.parametrize("provider_class", PROVIDER_CLASSES, ids=lambda cls: cls.name)
    def test_get_model_instance_without_credentials(self, provider_class, settings):
        provider = provider_class(settings=settings)
        model_name = provider.static_models[0].name if provider.static_models else "some-model"

        with patch("httpx.AsyncClient") as mock_client_class, patch(
            "llmkit.core.litellm_client.acompletion"
        ) as mock_completion:
            with pytest.raises(ConfigurationError) as exc_info:
                provider.get_model_instance(model_name, CredentialContext())

        assert exc_info.value.provider == provider.name
        assert provider.name in exc_info.value.message
        mock_client_class.assert_not_called()
        mock_completion.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "provider_class",
        [cls for cls in PROVIDER_CLASSES if cls is not OpenRouterProvider],
        ids=lambda cls: cls.name,
    )
    async def test_refresh_without_credentials_is_empty(self, provider_class, settings):
        provider = provider_class(settings=settings)

        with patch("httpx.AsyncClient") as mock_client_class:
            models = await provider.refresh_dynamic_models(CredentialContext())

        assert models == []
        mock_client_class.assert_not_called()

    def test_has_env_api_key(self, settings):
        provider = OpenAIProvider(env={"OPENAI_API_KEY": "sk-env"}, settings=settings)

        assert provider.has_env_api_key()
        assert not OpenAIProvider(settings=settings).has_env_api_key(keyed("OpenAI"))


class TestOpenAI:
    @pytest.mark.asyncio
    async def test_discovery_filters_to_new_chat_models(self, settings):
        payload = {
            "data": [
                {"id": "gpt-4o"},
                {"id": "gpt-4.1"},
                {"id": "text-embedding-3-small"},
                {"id": "gpt-4o-audio-preview"},
                {"id": "o3-mini"},
            ]
        }
        provider = OpenAIProvider(settings=settings)

        with mock_http(payload) as (_, mock_client):
            models = await provider.refresh_dynamic_models(keyed("OpenAI", "sk-test"))

        assert [m.name for m in models] == ["gpt-4.1", "o3-mini"]
        url = mock_client.get.call_args.args[0]
        assert url == "https://api.openai.com/v1/models"
        assert mock_client.get.call_args.kwargs["headers"]["Authorization"] == "Bearer sk-test"

    def test_default_base_not_forwarded(self, settings):
        handle = OpenAIProvider(settings=settings).get_model_instance("gpt-4o", keyed("OpenAI"))

        assert handle.api_base is None
        assert handle.api_key == "test-key"
        assert handle.litellm_model == "gpt-4o"

    def test_custom_base_forwarded(self, settings):
        context = CredentialContext(
            provider_settings={"OpenAI": ProviderSettings(base_url="https://proxy.local/v1/", api_key="sk-p")}
        )

        handle = OpenAIProvider(settings=settings).get_model_instance("gpt-4o", context)

        assert handle.api_base == "https://proxy.local/v1"
        assert handle.api_key == "sk-p"


class TestAnthropic:
    @pytest.mark.asyncio
    async def test_discovery(self, settings):
        payload = {
            "data": [
                {"id": "claude-3-7-sonnet-20250219", "type": "model"},
                {"id": "claude-sonnet-4-20250514", "type": "model", "display_name": "Claude Sonnet 4"},
                {"id": "something-else", "type": "other"},
            ]
        }
        provider = AnthropicProvider(settings=settings)

        with mock_http(payload) as (_, mock_client):
            models = await provider.refresh_dynamic_models(keyed("Anthropic", "sk-ant"))

        assert [(m.name, m.label, m.max_token_allowed) for m in models] == [
            ("claude-sonnet-4-20250514", "Claude Sonnet 4", 32000)
        ]
        headers = mock_client.get.call_args.kwargs["headers"]
        assert headers["x-api-key"] == "sk-ant"
        assert "anthropic-version" in headers

    def test_reasoning_model_gets_system_hint(self, settings):
        provider = AnthropicProvider(settings=settings)

        reasoning = provider.get_model_instance("claude-3-7-sonnet-20250219", keyed("Anthropic"))
        plain = provider.get_model_instance("claude-3-haiku-20240307", keyed("Anthropic"))

        assert reasoning.system_hint == REASONING_SYSTEM_HINT
        assert reasoning.litellm_model == "anthropic/claude-3-7-sonnet-20250219"
        assert plain.system_hint is None

    def test_env_key(self, settings):
        provider = AnthropicProvider(env={"ANTHROPIC_API_KEY": "from-env"}, settings=settings)

        assert provider.get_model_instance("claude-3-haiku-20240307").api_key == "from-env"


class TestGoogle:
    @pytest.mark.asyncio
    async def test_discovery(self, settings):
        payload = {
            "models": [
                {
                    "name": "models/gemini-2.5-pro",
                    "displayName": "Gemini 2.5 Pro",
                    "supportedGenerationMethods": ["generateContent", "countTokens"],
                    "outputTokenLimit": 65536,
                },
                {"name": "models/embedding-001", "supportedGenerationMethods": ["embedContent"]},
                {"name": "models/gemini-2.0-flash", "supportedGenerationMethods": ["generateContent"]},
            ]
        }
        provider = GoogleProvider(settings=settings)

        with mock_http(payload) as (_, mock_client):
            models = await provider.refresh_dynamic_models(keyed("Google", "g-key"))

        assert [(m.name, m.label, m.max_token_allowed) for m in models] == [
            ("gemini-2.5-pro", "Gemini 2.5 Pro", 65536)
        ]
        assert mock_client.get.call_args.kwargs["params"] == {"key": "g-key"}


class TestOpenRouter:
    @pytest.mark.asyncio
    async def test_public_listing_sorted_with_pricing(self, settings):
        payload = {
            "data": [
                {
                    "id": "openai/gpt-4o",
                    "name": "OpenAI: GPT-4o",
                    "pricing": {"prompt": "0.0000025", "completion": "0.00001"},
                    "context_length": 128000,
                },
                {
                    "id": "anthropic/claude-3.5-sonnet",
                    "name": "Anthropic: Claude 3.5 Sonnet",
                    "pricing": {"prompt": "0.000003", "completion": "0.000015"},
                    "context_length": 200000,
                },
            ]
        }
        provider = OpenRouterProvider(settings=settings)

        with mock_http(payload):
            models = await provider.refresh_dynamic_models(CredentialContext())

        assert [m.name for m in models] == ["anthropic/claude-3.5-sonnet", "openai/gpt-4o"]
        assert models[0].label == "Anthropic: Claude 3.5 Sonnet - in:$3.00 out:$15.00 - context 200k"


class TestTogether:
    @pytest.mark.asyncio
    async def test_only_chat_models(self, settings):
        payload = [
            {
                "id": "meta-llama/Llama-3-8b-chat-hf",
                "type": "chat",
                "display_name": "Llama 3 8B",
                "pricing": {"input": 0.2, "output": 0.6},
                "context_length": 8192,
            },
            {"id": "BAAI/bge-large-en-v1.5", "type": "embedding"},
            {"id": "", "type": "chat"},
        ]
        provider = TogetherProvider(settings=settings)

        with mock_http(payload) as (_, mock_client):
            models = await provider.refresh_dynamic_models(keyed("Together"))

        assert [m.label for m in models] == ["Llama 3 8B - in:$0.20 out:$0.60 - context 8k"]
        assert mock_client.get.call_args.args[0] == "https://api.together.xyz/v1/models"


class TestOllama:
    @pytest.mark.asyncio
    async def test_discovery_from_env_base_url(self, settings):
        payload = {"models": [{"name": "llama3:8b", "details": {"parameter_size": "8B"}}, {"name": "phi3"}]}
        provider = OllamaProvider(env={"OLLAMA_API_BASE_URL": "http://localhost:11434/"}, settings=settings)

        with mock_http(payload) as (_, mock_client):
            models = await provider.refresh_dynamic_models(CredentialContext())

        assert [m.label for m in models] == ["llama3:8b (8B)", "phi3"]
        assert mock_client.get.call_args.args[0] == "http://localhost:11434/api/tags"

    def test_handle_uses_base_url(self, settings):
        context = CredentialContext(server_env={"OLLAMA_API_BASE_URL": "http://gpu-box:11434"})

        handle = OllamaProvider(settings=settings).get_model_instance("llama3:8b", context)

        assert handle.api_base == "http://gpu-box:11434"
        assert handle.litellm_model == "ollama_chat/llama3:8b"


class TestAzureOpenAI:
    def test_api_key_handle(self, settings):
        context = CredentialContext(
            provider_settings={
                "AzureOpenAI": ProviderSettings(
                    api_key="az-key", resource_name="myres", deployment="prod-gpt4o", api_version="2024-06-01"
                )
            }
        )

        handle = AzureOpenAIProvider(settings=settings).get_model_instance("gpt-4o", context)

        assert handle.litellm_model == "azure/prod-gpt4o"
        assert handle.model == "gpt-4o"
        assert handle.api_base == "https://myres.openai.azure.com"
        assert handle.api_key == "az-key"
        assert handle.extra_params == {"api_version": "2024-06-01"}
        assert handle.credential_provider is None

    def test_missing_endpoint(self, settings):
        context = CredentialContext(api_keys={"AzureOpenAI": "az-key"})

        with pytest.raises(ConfigurationError, match="endpoint"):
            AzureOpenAIProvider(settings=settings).get_model_instance("gpt-4o", context)

    @pytest.mark.asyncio
    async def test_managed_identity_handle(self, settings):
        provider = AzureOpenAIProvider(
            env={"AZURE_OPENAI_USE_MI": "client-1", "AZURE_OPENAI_ENDPOINT_NAME": "myres"},
            settings=settings,
        )
        assert provider.has_managed_identity()
        provider.token_provider("client-1").get_token = AsyncMock(return_value="ad-token")

        handle = provider.get_model_instance("gpt-4o")

        assert handle.api_key is None
        assert await handle.credential_provider() == {"azure_ad_token": "ad-token"}

    @pytest.mark.asyncio
    async def test_discovery_with_api_key(self, settings):
        payload = {
            "data": [
                {"id": "gpt-4o", "capabilities": {"chat_completion": True}},
                {"id": "text-embedding-ada-002", "capabilities": {"chat_completion": False}},
            ]
        }
        provider = AzureOpenAIProvider(
            env={"AZURE_OPENAI_ENDPOINT": "https://myres.openai.azure.com", "AZURE_OPENAI_API_KEY": "az"},
            settings=settings,
        )

        with mock_http(payload) as (_, mock_client):
            models = await provider.refresh_dynamic_models(CredentialContext())

        assert [(m.name, m.max_token_allowed) for m in models] == [("gpt-4o", 16384)]
        assert mock_client.get.call_args.args[0] == "https://myres.openai.azure.com/openai/models"
        assert mock_client.get.call_args.kwargs["headers"] == {"api-key": "az"}


class TestManagedIdentityTokenProvider:
    @pytest.mark.asyncio
    async def test_token_cached_until_renewal_margin(self):
        now = [1_000_000.0]
        tokens = ManagedIdentityTokenProvider("client-1", renewal_margin=60, clock=lambda: now[0])

        with mock_http({"access_token": "t1", "expires_in": 3600}) as (_, mock_client):
            assert await tokens.get_token() == "t1"
            now[0] += 3000
            assert await tokens.get_token() == "t1"
            assert mock_client.get.await_count == 1

            mock_client.get.return_value.json.return_value = {"access_token": "t2", "expires_in": 3600}
            now[0] += 560  # 40s left, inside the margin
            assert tokens.needs_renewal()
            assert await tokens.get_token() == "t2"
            assert mock_client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_imds_request(self):
        tokens = ManagedIdentityTokenProvider("client-1", clock=lambda: 0.0)

        with mock_http({"access_token": "t", "expires_on": "4000"}) as (_, mock_client):
            await tokens.get_token()

        call = mock_client.get.call_args
        assert call.args[0] == IMDS_TOKEN_URL
        assert call.kwargs["headers"] == {"Metadata": "true"}
        assert call.kwargs["params"]["client_id"] == "client-1"
        assert not tokens.needs_renewal()

    def test_app_service_endpoint(self):
        tokens = ManagedIdentityTokenProvider(
            "client-1",
            env={"IDENTITY_ENDPOINT": "http://localhost:4141/msi/token", "IDENTITY_HEADER": "secret"},
        )

        url, params, headers = tokens._request_args()

        assert url == "http://localhost:4141/msi/token"
        assert params["api-version"] == APP_SERVICE_API_VERSION
        assert headers == {"X-IDENTITY-HEADER": "secret"}

    @pytest.mark.asyncio
    async def test_missing_access_token(self):
        tokens = ManagedIdentityTokenProvider("client-1")

        with mock_http({"error": "nope"}):
            with pytest.raises(ValueError):
                await tokens.get_token()


class TestVertexAI:
    ENV = {"VERTEX_AI_PROJECT_ID": "proj", "VERTEX_AI_LOCATION_ID": "us-central1"}

    def test_handle(self, settings):
        sa = {"type": "service_account", "project_id": "proj"}
        provider = VertexAIProvider(env={**self.ENV, "VERTEX_AI_SERVICE_ACCOUNT_JSON": json.dumps(sa)}, settings=settings)

        handle = provider.get_model_instance("gemini-1.5-pro")

        assert handle.litellm_model == "vertex_ai/gemini-1.5-pro"
        assert json.loads(handle.extra_params["vertex_credentials"]) == sa
        assert handle.extra_params["vertex_project"] == "proj"
        assert handle.extra_params["vertex_location"] == "us-central1"

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]"])
    def test_invalid_service_account_json(self, raw, settings):
        provider = VertexAIProvider(env=self.ENV, settings=settings)

        with pytest.raises(ConfigurationError, match="Invalid Vertex AI Service Account JSON"):
            provider.get_model_instance("gemini-1.5-pro", keyed("Vertex AI", raw))

    def test_missing_location(self, settings):
        provider = VertexAIProvider(env={"VERTEX_AI_PROJECT_ID": "proj"}, settings=settings)

        with pytest.raises(ConfigurationError, match="Location ID"):
            provider.get_model_instance("gemini-1.5-pro", keyed("Vertex AI", "{}"))

    def test_settings_override_env(self, settings):
        provider = VertexAIProvider(env=self.ENV, settings=settings)
        context = CredentialContext(
            api_keys={"Vertex AI": "{}"},
            provider_settings={"Vertex AI": ProviderSettings(project_id="other", location="europe-west4")},
        )

        handle = provider.get_model_instance("gemini-1.5-pro", context)

        assert handle.extra_params["vertex_project"] == "other"
        assert handle.extra_params["vertex_location"] == "europe-west4"


class TestAmazonBedrock:
    CONFIG = json.dumps({"region": "eu-west-1", "accessKeyId": "AKIA", "secretAccessKey": "secret"})

    @pytest.mark.parametrize(
        "settings_region, document_region, env, expected",
        [
            ("eu-west-1", "us-west-2", {"AWS_REGION": "ap-south-1"}, "eu-west-1"),
            (None, "us-west-2", {"AWS_REGION": "ap-south-1"}, "us-west-2"),
            (None, None, {"AWS_REGION": "ap-south-1"}, "ap-south-1"),
            (None, None, {}, "us-east-1"),
        ],
        ids=["settings", "document", "env", "default"],
    )
    def test_region_precedence(self, settings, settings_region, document_region, env, expected):
        document = {"accessKeyId": "AKIA", "secretAccessKey": "secret"}
        if document_region:
            document["region"] = document_region
        context = CredentialContext(
            api_keys={"AmazonBedrock": json.dumps(document)},
            provider_settings={"AmazonBedrock": ProviderSettings(region=settings_region)},
        )

        handle = AmazonBedrockProvider(env=env, settings=settings).get_model_instance("amazon.nova-pro-v1:0", context)

        assert handle.extra_params["aws_region_name"] == expected

    def test_parse_credentials_default_region(self, settings):
        raw = json.dumps({"accessKeyId": "AKIA", "secretAccessKey": "secret", "sessionToken": "tok"})

        credentials = AmazonBedrockProvider(settings=settings).parse_credentials(keyed("AmazonBedrock", raw))

        assert credentials.region == "us-east-1"
        assert credentials.session_token == "tok"

    @pytest.mark.parametrize("raw", ["not json", json.dumps({"region": "us-east-1"})])
    def test_invalid_configuration(self, raw, settings):
        with pytest.raises(ConfigurationError):
            AmazonBedrockProvider(settings=settings).get_model_instance("amazon.nova-pro-v1:0", keyed("AmazonBedrock", raw))

    def test_handle_params(self, settings):
        handle = AmazonBedrockProvider(env={"AWS_BEDROCK_CONFIG": self.CONFIG}, settings=settings).get_model_instance(
            "amazon.nova-pro-v1:0"
        )

        assert handle.litellm_model == "bedrock/amazon.nova-pro-v1:0"
        assert handle.extra_params == {
            "aws_access_key_id": "AKIA",
            "aws_secret_access_key": "secret",
            "aws_region_name": "eu-west-1",
        }

    @pytest.mark.asyncio
    async def test_discovery(self, settings):
        provider = AmazonBedrockProvider(settings=settings)
        summaries = {
            "modelSummaries": [
                {"modelId": "amazon.nova-pro-v1:0", "outputModalities": ["TEXT"]},
                {"modelId": "meta.llama3-70b-instruct-v1:0", "modelName": "Llama 3 70B", "outputModalities": ["TEXT"]},
                {"modelId": "stability.sd3-large-v1:0", "outputModalities": ["IMAGE"]},
            ]
        }

        with patch("llmkit.providers.amazon_bedrock.boto3.client") as mock_boto_client:
            mock_boto_client.return_value.list_foundation_models.return_value = summaries
            models = await provider.refresh_dynamic_models(keyed("AmazonBedrock", self.CONFIG))

        assert [(m.name, m.label) for m in models] == [("meta.llama3-70b-instruct-v1:0", "Llama 3 70B (Bedrock)")]
        assert mock_boto_client.call_args.kwargs["region_name"] == "eu-west-1"

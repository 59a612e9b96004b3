"""Ollama provider adapter.

Discovers locally installed models via Ollama's /api/tags endpoint.
Ref: https://docs.ollama.com/api/tags
"""

import logging

from llmkit.core.capabilities import detect_capabilities
from llmkit.providers.base import BaseProvider, ProviderConfig
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext, ModelDescriptor

logger = logging.getLogger(__name__)


class OllamaProvider(BaseProvider):
    """Adapter for a local or remote Ollama server.

    No authentication; the base URL is the only required setting.
    """

    name = "Ollama"
    get_api_key_link = "https://ollama.com/download"
    label_for_get_api_key = "Download Ollama"
    litellm_prefix = "ollama_chat/"

    config = ProviderConfig(base_url_key="OLLAMA_API_BASE_URL")

    def supports_discovery(self) -> bool:
        return True

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        base_url, _ = self.resolve_base_url_and_key(context)
        base_url = self.require_base_url(base_url)

        data = await self.get_json(f"{base_url}/api/tags")

        models: list[ModelDescriptor] = []
        for model_data in data.get("models", []):
            # Ollama model names follow format: name:tag (e.g., llama3:8b)
            model_name = model_data.get("name", "")
            if not model_name:
                continue
            details = model_data.get("details") or {}
            parameter_size = details.get("parameter_size")

            models.append(
                ModelDescriptor(
                    name=model_name,
                    label=f"{model_name} ({parameter_size})" if parameter_size else model_name,
                    provider=self.name,
                    max_token_allowed=self.settings.default_max_tokens,
                    capabilities=detect_capabilities(model_name),
                )
            )

        logger.info("Discovered %d models from Ollama at %s", len(models), base_url)
        return models

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        base_url, _ = self.resolve_base_url_and_key(context)
        base_url = self.require_base_url(base_url)

        return self.build_handle(model, api_base=base_url, headers=self.extra_headers(context))

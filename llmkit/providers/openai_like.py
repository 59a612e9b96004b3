"""Adapter for arbitrary OpenAI-compatible endpoints (vLLM, LM Studio, LiteLLM proxy...)."""

import logging

from llmkit.core.capabilities import detect_capabilities
from llmkit.providers.base import BaseProvider, ProviderConfig
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext, ModelDescriptor

logger = logging.getLogger(__name__)


class OpenAILikeProvider(BaseProvider):
    name = "OpenAILike"
    litellm_prefix = "openai/"

    config = ProviderConfig(
        base_url_key="OPENAI_LIKE_API_BASE_URL",
        api_token_key="OPENAI_LIKE_API_KEY",
    )

    def supports_discovery(self) -> bool:
        return True

    def _require_endpoint(self, context: CredentialContext | None) -> tuple[str, str]:
        base_url, api_key = self.resolve_base_url_and_key(context)
        return self.require_base_url(base_url), self.require_api_key(api_key)

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        base_url, api_key = self._require_endpoint(context)

        data = await self.get_json(
            f"{base_url}/models",
            headers={"Authorization": f"Bearer {api_key}"},
        )

        models = [
            ModelDescriptor(
                name=model_data["id"],
                label=model_data["id"],
                provider=self.name,
                max_token_allowed=self.settings.default_max_tokens,
                capabilities=detect_capabilities(model_data["id"]),
            )
            for model_data in data.get("data", [])
            if model_data.get("id")
        ]

        logger.info("Discovered %d models from %s at %s", len(models), self.name, base_url)
        return models

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        base_url, api_key = self._require_endpoint(context)

        return self.build_handle(
            model,
            api_key=api_key,
            api_base=base_url,
            headers=self.extra_headers(context),
        )

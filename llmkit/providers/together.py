"""Together AI provider adapter."""

import logging

from llmkit.core.capabilities import detect_capabilities
from llmkit.providers.base import BaseProvider, ProviderConfig, format_tokens, model
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext, ModelDescriptor

logger = logging.getLogger(__name__)

TOGETHER_API_BASE = "https://api.together.xyz/v1"


class TogetherProvider(BaseProvider):
    name = "Together"
    get_api_key_link = "https://api.together.xyz/settings/api-keys"
    litellm_prefix = "together_ai/"

    config = ProviderConfig(
        base_url_key="TOGETHER_API_BASE_URL",
        api_token_key="TOGETHER_API_KEY",
        base_url=TOGETHER_API_BASE,
    )

    static_models = (
        model("Qwen/Qwen2.5-Coder-32B-Instruct", "Qwen/Qwen2.5-Coder-32B-Instruct", "Together", 8000),
        model("meta-llama/Llama-3.2-90B-Vision-Instruct-Turbo", "meta-llama/Llama-3.2-90B-Vision-Instruct-Turbo",
              "Together", 8000, image_input=True),
        model("mistralai/Mixtral-8x7B-Instruct-v0.1", "Mixtral 8x7B Instruct", "Together", 8192),
    )

    def supports_discovery(self) -> bool:
        return True

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        """List chat models from ``{base_url}/models``."""
        base_url, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        data = await self.get_json(
            f"{base_url}/models",
            headers={"Authorization": f"Bearer {api_key}"},
        )
        # Together returns a bare list; OpenAI-style wrappers are accepted too
        entries = data.get("data", []) if isinstance(data, dict) else data

        models: list[ModelDescriptor] = []
        for model_data in entries:
            if model_data.get("type") != "chat":
                continue
            model_id = model_data.get("id", "")
            if not model_id:
                continue
            pricing = model_data.get("pricing") or {}
            label = (
                f"{model_data.get('display_name') or model_id} - "
                f"in:${float(pricing.get('input') or 0):.2f} "
                f"out:${float(pricing.get('output') or 0):.2f} - "
                f"context {format_tokens(model_data.get('context_length'))}"
            )
            models.append(
                ModelDescriptor(
                    name=model_id,
                    label=label,
                    provider=self.name,
                    max_token_allowed=self.settings.default_max_tokens,
                    capabilities=detect_capabilities(model_id),
                )
            )

        logger.info("Discovered %d chat models from %s", len(models), self.name)
        return models

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        base_url, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)
        base_url = self.require_base_url(base_url)

        return self.build_handle(
            model,
            api_key=api_key,
            api_base=base_url,
            headers=self.extra_headers(context),
        )

"""OpenRouter provider adapter.

The OpenRouter listing is public; an API key is only needed to invoke models.
"""

import logging

from llmkit.core.capabilities import detect_capabilities
from llmkit.providers.base import BaseProvider, ProviderConfig, format_tokens
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext, ModelDescriptor

logger = logging.getLogger(__name__)

OPENROUTER_API_BASE = "https://openrouter.ai/api/v1"


def _per_million(price: object) -> float:
    try:
        return float(price) * 1_000_000
    except (TypeError, ValueError):
        return 0.0


class OpenRouterProvider(BaseProvider):
    name = "OpenRouter"
    get_api_key_link = "https://openrouter.ai/settings/keys"
    litellm_prefix = "openrouter/"

    config = ProviderConfig(api_token_key="OPEN_ROUTER_API_KEY")

    def supports_discovery(self) -> bool:
        return True

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        """List all OpenRouter models sorted by display name, with pricing in the label."""
        data = await self.get_json(
            f"{OPENROUTER_API_BASE}/models",
            headers={"Content-Type": "application/json"},
        )

        entries = sorted(data.get("data") or [], key=lambda m: m.get("name") or m.get("id", ""))
        models: list[ModelDescriptor] = []
        for model_data in entries:
            model_id = model_data.get("id", "")
            if not model_id:
                continue
            pricing = model_data.get("pricing") or {}
            label = (
                f"{model_data.get('name') or model_id} - "
                f"in:${_per_million(pricing.get('prompt')):.2f} "
                f"out:${_per_million(pricing.get('completion')):.2f} - "
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

        logger.info("Discovered %d models from %s", len(models), self.name)
        return models

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        _, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        return self.build_handle(model, api_key=api_key, headers=self.extra_headers(context))

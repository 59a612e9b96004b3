"""Anthropic provider adapter.

Discovers models via Anthropic's /v1/models API endpoint.
Ref: https://docs.anthropic.com/en/api/models-list
"""

import logging

from llmkit.core.capabilities import detect_capabilities
from llmkit.providers.base import BaseProvider, ProviderConfig, model
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext, ModelCapabilities, ModelDescriptor

logger = logging.getLogger(__name__)

ANTHROPIC_API_BASE = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"

# Listed models outside the static catalog get the larger output limit
DYNAMIC_MAX_TOKENS = 32000

REASONING_SYSTEM_HINT = (
    "When you need to think step-by-step about a problem, "
    "please use the <think></think> XML tags to show your reasoning."
)


class AnthropicProvider(BaseProvider):
    """Adapter for the Anthropic API.

    Uses the x-api-key header for the model listing.
    """

    name = "Anthropic"
    get_api_key_link = "https://console.anthropic.com/settings/keys"
    litellm_prefix = "anthropic/"

    config = ProviderConfig(api_token_key="ANTHROPIC_API_KEY")

    static_models = (
        model("claude-3-7-sonnet-20250219", "Claude 3.7 Sonnet", "Anthropic", 8000,
              reasoning=True, image_input=True, structured_output=True, code_diff=True),
        model("claude-3-5-sonnet-latest", "Claude 3.5 Sonnet (new)", "Anthropic", 8000,
              image_input=True, structured_output=True, code_diff=True),
        model("claude-3-5-sonnet-20240620", "Claude 3.5 Sonnet (old)", "Anthropic", 8000,
              image_input=True, structured_output=True, code_diff=True),
        model("claude-3-5-haiku-latest", "Claude 3.5 Haiku (new)", "Anthropic", 8000, image_input=True),
        model("claude-3-opus-latest", "Claude 3 Opus", "Anthropic", 8000, image_input=True, code_diff=True),
        model("claude-3-sonnet-20240229", "Claude 3 Sonnet", "Anthropic", 8000, image_input=True),
        model("claude-3-haiku-20240307", "Claude 3 Haiku", "Anthropic", 8000, image_input=True),
    )

    def supports_discovery(self) -> bool:
        return True

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        """Fetch models from /v1/models that are not already in the static catalog."""
        _, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        data = await self.get_json(
            f"{ANTHROPIC_API_BASE}/v1/models",
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

        static_ids = {m.name for m in self.static_models}
        models: list[ModelDescriptor] = []
        for model_data in data.get("data", []):
            model_id = model_data.get("id", "")
            if model_data.get("type", "model") != "model" or not model_id or model_id in static_ids:
                continue

            detected = detect_capabilities(model_id)
            models.append(
                ModelDescriptor(
                    name=model_id,
                    label=model_data.get("display_name") or model_id,
                    provider=self.name,
                    max_token_allowed=DYNAMIC_MAX_TOKENS,
                    capabilities=ModelCapabilities(
                        reasoning="claude-3-7" in model_id or "claude-3-5" in model_id or detected.reasoning,
                        image_input="claude-3" in model_id or detected.image_input,
                        structured_output=detected.structured_output,
                        code_diff=detected.code_diff,
                    ),
                )
            )

        logger.info("Discovered %d models from %s", len(models), self.name)
        return models

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        _, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        descriptor = self.find_model_descriptor(model)
        headers = {"anthropic-version": ANTHROPIC_VERSION, **self.extra_headers(context)}

        return self.build_handle(
            model,
            api_key=api_key,
            headers=headers,
            system_hint=REASONING_SYSTEM_HINT if descriptor.capabilities.reasoning else None,
        )

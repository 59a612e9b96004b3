"""OpenAI provider adapter.

Bearer-token authentication; models discovered via the /v1/models endpoint.
"""

import logging

from llmkit.core.capabilities import detect_capabilities
from llmkit.providers.base import BaseProvider, ProviderConfig, model
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext, ModelDescriptor

logger = logging.getLogger(__name__)

OPENAI_API_BASE = "https://api.openai.com/v1"

# Listing returns embeddings, audio and image models as well
_CHAT_PREFIXES = ("gpt-", "o1", "o3", "o4", "chatgpt-")
_NON_CHAT_MARKERS = ("audio", "realtime", "tts", "transcribe", "search", "embedding", "image", "instruct")


class OpenAIProvider(BaseProvider):
    """Adapter for the OpenAI API."""

    name = "OpenAI"
    get_api_key_link = "https://platform.openai.com/api-keys"

    config = ProviderConfig(
        base_url_key="OPENAI_API_BASE_URL",
        api_token_key="OPENAI_API_KEY",
        base_url=OPENAI_API_BASE,
    )

    static_models = (
        model("gpt-4o", "GPT-4o", "OpenAI", 8000, image_input=True, structured_output=True, code_diff=True),
        model("gpt-4o-mini", "GPT-4o Mini", "OpenAI", 8000, image_input=True, structured_output=True),
        model("gpt-4-turbo", "GPT-4 Turbo", "OpenAI", 8000, image_input=True, code_diff=True),
        model("gpt-4", "GPT-4", "OpenAI", 8000, code_diff=True),
        model("gpt-3.5-turbo", "GPT-3.5 Turbo", "OpenAI", 8000),
    )

    def supports_discovery(self) -> bool:
        return True

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        base_url, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        data = await self.get_json(
            f"{base_url}/models",
            headers={"Authorization": f"Bearer {api_key}"},
        )

        static_ids = {m.name for m in self.static_models}
        models: list[ModelDescriptor] = []
        for model_data in data.get("data", []):
            model_id = model_data.get("id", "")
            if not model_id or model_id in static_ids:
                continue
            if not model_id.startswith(_CHAT_PREFIXES):
                continue
            if any(marker in model_id for marker in _NON_CHAT_MARKERS):
                continue
            models.append(
                ModelDescriptor(
                    name=model_id,
                    label=model_id,
                    provider=self.name,
                    max_token_allowed=self.settings.default_max_tokens,
                    capabilities=detect_capabilities(model_id),
                )
            )

        logger.info("Discovered %d chat models from OpenAI", len(models))
        return models

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        base_url, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        return self.build_handle(
            model,
            api_key=api_key,
            api_base=base_url if base_url != OPENAI_API_BASE else None,
            headers=self.extra_headers(context),
        )

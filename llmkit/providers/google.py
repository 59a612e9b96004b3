"""Google Generative AI (Gemini API) provider adapter."""

import logging

from llmkit.core.capabilities import detect_capabilities
from llmkit.providers.base import BaseProvider, ProviderConfig, model
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext, ModelDescriptor

logger = logging.getLogger(__name__)

GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class GoogleProvider(BaseProvider):
    """Adapter for Google AI Studio keys.

    The listing endpoint takes the key as a query parameter and returns
    names of the form ``models/<id>``.
    """

    name = "Google"
    get_api_key_link = "https://aistudio.google.com/app/apikey"
    litellm_prefix = "gemini/"

    config = ProviderConfig(api_token_key="GOOGLE_GENERATIVE_AI_API_KEY")

    static_models = (
        model("gemini-1.5-pro-latest", "Gemini 1.5 Pro", "Google", 8192, image_input=True),
        model("gemini-1.5-flash-latest", "Gemini 1.5 Flash", "Google", 8192, image_input=True),
        model("gemini-2.0-flash", "Gemini 2.0 Flash", "Google", 8192, image_input=True, structured_output=True),
    )

    def supports_discovery(self) -> bool:
        return True

    async def fetch_dynamic_models(self, context: CredentialContext) -> list[ModelDescriptor]:
        _, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        data = await self.get_json(f"{GOOGLE_API_BASE}/models", params={"key": api_key})

        static_ids = {m.name for m in self.static_models}
        models: list[ModelDescriptor] = []
        for model_data in data.get("models") or []:
            methods = model_data.get("supportedGenerationMethods") or []
            if methods and "generateContent" not in methods:
                continue

            model_id = model_data.get("name", "").removeprefix("models/")
            if not model_id or model_id in static_ids:
                continue

            models.append(
                ModelDescriptor(
                    name=model_id,
                    label=model_data.get("displayName") or model_id,
                    provider=self.name,
                    max_token_allowed=model_data.get("outputTokenLimit") or self.settings.default_max_tokens,
                    capabilities=detect_capabilities(model_id),
                )
            )

        logger.info("Discovered %d models from %s", len(models), self.name)
        return models

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        _, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        return self.build_handle(model, api_key=api_key, headers=self.extra_headers(context))

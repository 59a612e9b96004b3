"""Groq provider adapter (static catalog only)."""

from llmkit.providers.base import BaseProvider, ProviderConfig, model
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext


class GroqProvider(BaseProvider):
    name = "Groq"
    get_api_key_link = "https://console.groq.com/keys"
    litellm_prefix = "groq/"

    config = ProviderConfig(api_token_key="GROQ_API_KEY")

    static_models = (
        model("deepseek-r1-distill-llama-70b", "DeepSeek R1 Distill Llama 70b", "Groq", 8000),
        model("deepseek-r1-distill-qwen-32b", "DeepSeek R1 Distill Qwen 32b", "Groq", 8000),
        model("qwen-2.5-32b", "Qwen 2.5 32b", "Groq", 8000),
        model("llama-3.3-70b-versatile", "Llama 3.3 70b", "Groq", 8000),
        model("llama-3.1-8b-instant", "Llama 3.1 8b", "Groq", 8000),
    )

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        _, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        return self.build_handle(model, api_key=api_key, headers=self.extra_headers(context))

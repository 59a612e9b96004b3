"""DeepSeek provider adapter."""

from llmkit.providers.base import BaseProvider, ProviderConfig, model
from llmkit.providers.handle import ModelHandle
from llmkit.types import CredentialContext


class DeepseekProvider(BaseProvider):
    """Adapter for the DeepSeek API.

    DeepSeek models tend to leave their last code fence open; the middleware
    pipeline closes it (see ``llmkit.middleware.code_completion``).
    """

    name = "Deepseek"
    get_api_key_link = "https://platform.deepseek.com/apiKeys"
    litellm_prefix = "deepseek/"

    config = ProviderConfig(
        base_url_key="DEEPSEEK_BASE_URL",
        api_token_key="DEEPSEEK_API_KEY",
    )

    static_models = (
        model("deepseek-coder", "Deepseek-Coder", "Deepseek", 8000),
        model("deepseek-chat", "Deepseek-Chat", "Deepseek", 8000),
        model("deepseek-reasoner", "Deepseek-Reasoner", "Deepseek", 8000, reasoning=True),
    )

    def get_model_instance(self, model: str, context: CredentialContext | None = None) -> ModelHandle:
        base_url, api_key = self.resolve_base_url_and_key(context)
        api_key = self.require_api_key(api_key)

        return self.build_handle(
            model,
            api_key=api_key,
            api_base=base_url,
            headers=self.extra_headers(context),
        )

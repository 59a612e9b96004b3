"""Provider adapters.

``PROVIDER_CLASSES`` is the static list the registry instantiates; its order
decides the default provider.
"""

from llmkit.providers.amazon_bedrock import AmazonBedrockProvider
from llmkit.providers.anthropic import AnthropicProvider
from llmkit.providers.azure_openai import AzureOpenAIProvider
from llmkit.providers.base import BaseProvider, ProviderConfig
from llmkit.providers.deepseek import DeepseekProvider
from llmkit.providers.google import GoogleProvider
from llmkit.providers.groq import GroqProvider
from llmkit.providers.handle import LiteLLMModelHandle, ModelHandle
from llmkit.providers.ollama import OllamaProvider
from llmkit.providers.openai import OpenAIProvider
from llmkit.providers.openai_like import OpenAILikeProvider
from llmkit.providers.openrouter import OpenRouterProvider
from llmkit.providers.together import TogetherProvider
from llmkit.providers.vertex_ai import VertexAIProvider

PROVIDER_CLASSES: tuple[type[BaseProvider], ...] = (
    AnthropicProvider,
    OpenAIProvider,
    GoogleProvider,
    GroqProvider,
    DeepseekProvider,
    OpenRouterProvider,
    TogetherProvider,
    OllamaProvider,
    OpenAILikeProvider,
    AzureOpenAIProvider,
    VertexAIProvider,
    AmazonBedrockProvider,
)

__all__ = [
    "PROVIDER_CLASSES",
    "AmazonBedrockProvider",
    "AnthropicProvider",
    "AzureOpenAIProvider",
    "BaseProvider",
    "DeepseekProvider",
    "GoogleProvider",
    "GroqProvider",
    "LiteLLMModelHandle",
    "ModelHandle",
    "OllamaProvider",
    "OpenAILikeProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "ProviderConfig",
    "TogetherProvider",
    "VertexAIProvider",
]

"""llmkit: provider abstraction and capability middleware for LLM backends."""

from llmkit.core.registry import ProviderRegistry, get_registry, reset_registry
from llmkit.exceptions import (
    CatalogRefreshError,
    ConfigurationError,
    LLMKitError,
    NoProvidersRegisteredError,
    TransportError,
)
from llmkit.middleware import apply_middleware
from llmkit.types import (
    CredentialContext,
    GenerateResult,
    ModelCapabilities,
    ModelDescriptor,
    ProviderSettings,
    StreamPart,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ProviderRegistry",
    "get_registry",
    "reset_registry",
    "apply_middleware",
    "CredentialContext",
    "GenerateResult",
    "ModelCapabilities",
    "ModelDescriptor",
    "ProviderSettings",
    "StreamPart",
    "LLMKitError",
    "ConfigurationError",
    "CatalogRefreshError",
    "TransportError",
    "NoProvidersRegisteredError",
]

"""Request dependencies."""

from llmkit.core.registry import ProviderRegistry, get_registry


def get_provider_registry() -> ProviderRegistry:
    """Process-wide registry; overridden in tests via ``app.dependency_overrides``."""
    return get_registry()

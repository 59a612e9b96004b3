"""llmkit exceptions."""

from __future__ import annotations


class LLMKitError(Exception):
    """Base exception for all llmkit errors."""


class ConfigurationError(LLMKitError):
    """Raised when a provider is missing a credential, endpoint or identity setting.

    User-actionable and never retried. The message names the provider so it
    can be shown to the user as-is.
    """

    provider: str | None

    def __init__(self, message: str | None = None, *, provider: str | None = None) -> None:
        if message is None:
            message = f"API key for {provider or 'this provider'} is not configured"
        super().__init__(message)
        self.message = message
        self.provider = provider


class CatalogRefreshError(LLMKitError):
    """Raised when a dynamic model listing cannot be fetched or parsed.

    Always recovered inside the provider; callers of the catalog APIs never see it.
    """

    provider: str | None

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider


class TransportError(LLMKitError):
    """Raised when a model invocation fails (network, timeout or non-2xx status)."""

    provider: str | None
    model: str | None

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        model: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.model = model

    @property
    def user_message(self) -> str:
        target = self.provider or "the provider"
        return f"Request to {target} failed. Please try again."


class NoProvidersRegisteredError(LLMKitError):
    """Raised when the registry has no providers at all."""

    def __init__(self, message: str = "No providers registered") -> None:
        super().__init__(message)
        self.message = message

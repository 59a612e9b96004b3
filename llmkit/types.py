"""Core value types shared by providers, the registry and the middleware pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class ModelCapabilities:
    """Independent capability flags for one model."""

    reasoning: bool = False
    image_input: bool = False
    structured_output: bool = False
    code_diff: bool = False


@dataclass(frozen=True)
class ModelDescriptor:
    """Descriptor for one invokable model.

    Unique per ``(provider, name)``; the same name may exist under several
    providers. Descriptors are never mutated: a catalog refresh replaces them.
    """

    name: str  # Model identifier (e.g., "gpt-4o", "llama3:8b")
    label: str  # Human-readable label for model pickers
    provider: str  # Provider name (e.g., "OpenAI")
    max_token_allowed: int = 8000
    capabilities: ModelCapabilities = field(default_factory=ModelCapabilities)

    def __post_init__(self) -> None:
        if self.max_token_allowed <= 0:
            raise ValueError("max_token_allowed must be positive")

    @property
    def key(self) -> tuple[str, str]:
        return (self.provider, self.name)


class ProviderSettings(BaseModel):
    """Per-provider settings supplied by the caller for one request.

    Highest-precedence source for every credential a provider resolves.
    Unknown keys are kept so that provider-specific options survive.
    """

    model_config = ConfigDict(extra="allow")

    enabled: bool = True
    base_url: str | None = Field(None, description="Custom endpoint for the provider")
    api_key: str | None = Field(None, description="API key overriding the key map")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra request headers")
    project_id: str | None = Field(None, description="Cloud project identifier")
    location: str | None = Field(None, description="Cloud location / region for the project")
    region: str | None = Field(None, description="Provider region")
    resource_name: str | None = Field(None, description="Azure OpenAI resource name")
    api_version: str | None = Field(None, description="Provider API version")
    deployment: str | None = Field(None, description="Azure OpenAI deployment overriding the model name")
    client_id: str | None = Field(None, description="Managed identity client id")


class CredentialContext(BaseModel):
    """Ephemeral per-request credentials. Never persisted by llmkit.

    Resolution precedence, highest first: ``provider_settings[name]`` ->
    ``api_keys[name]`` -> ``server_env`` -> the registry's environment snapshot.
    """

    api_keys: dict[str, str] = Field(default_factory=dict)
    provider_settings: dict[str, ProviderSettings] = Field(default_factory=dict)
    server_env: dict[str, str] = Field(default_factory=dict)

    def api_key_for(self, provider: str) -> str | None:
        return self.api_keys.get(provider) or None

    def settings_for(self, provider: str) -> ProviderSettings | None:
        return self.provider_settings.get(provider)

    def cache_key_for(self, provider: str) -> str:
        """Serialize the inputs that determine one provider's dynamic catalog."""
        settings = self.settings_for(provider)
        return json.dumps(
            {
                "api_key": self.api_key_for(provider),
                "settings": settings.model_dump(exclude_none=True) if settings else None,
                "server_env": self.server_env,
            },
            sort_keys=True,
            default=str,
        )


@dataclass
class GenerateResult:
    """Result of a one-shot generation."""

    text: str = ""
    reasoning: str | None = None
    finish_reason: str | None = None
    usage: dict[str, Any] | None = None
    structured: Any = None
    diff: str | None = None
    raw: Any = None


@dataclass
class StreamPart:
    """One partial result of a streamed generation.

    ``text`` is the visible stream; ``reasoning``, ``structured`` and ``diff``
    are side channels filled by the middleware pipeline or by providers that
    return reasoning natively.
    """

    text: str = ""
    reasoning: str | None = None
    finish_reason: str | None = None
    usage: dict[str, Any] | None = None
    structured: Any = None
    diff: str | None = None
    raw: Any = None

    def has_side_data(self) -> bool:
        return any(
            value is not None
            for value in (self.reasoning, self.finish_reason, self.usage, self.structured, self.diff)
        )

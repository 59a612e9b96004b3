"""Pydantic schemas for the llmkit HTTP API."""

from typing import Any

from pydantic import BaseModel, Field

from llmkit.providers.base import BaseProvider
from llmkit.types import CredentialContext, ModelDescriptor


class CapabilitiesResponse(BaseModel):
    reasoning: bool = False
    image_input: bool = False
    structured_output: bool = False
    code_diff: bool = False


class ModelResponse(BaseModel):
    """Schema for one catalog entry."""

    name: str = Field(..., description="Model identifier", examples=["gpt-4o"])
    label: str = Field(..., description="Human-readable label")
    provider: str = Field(..., description="Provider name", examples=["OpenAI"])
    max_token_allowed: int = Field(..., description="Maximum output tokens")
    capabilities: CapabilitiesResponse = Field(default_factory=CapabilitiesResponse)

    @classmethod
    def from_descriptor(cls, descriptor: ModelDescriptor) -> "ModelResponse":
        caps = descriptor.capabilities
        return cls(
            name=descriptor.name,
            label=descriptor.label,
            provider=descriptor.provider,
            max_token_allowed=descriptor.max_token_allowed,
            capabilities=CapabilitiesResponse(
                reasoning=caps.reasoning,
                image_input=caps.image_input,
                structured_output=caps.structured_output,
                code_diff=caps.code_diff,
            ),
        )


class ModelListResponse(BaseModel):
    models: list[ModelResponse] = Field(default_factory=list, description="Aggregated catalog")
    total: int = Field(..., description="Total number of models")


class ProviderResponse(BaseModel):
    """Schema for a registered provider adapter."""

    name: str = Field(..., description="Provider name")
    static_models: list[ModelResponse] = Field(default_factory=list)
    supports_discovery: bool = Field(False, description="Whether models can be listed from the backend")
    supports_managed_identity: bool = False
    get_api_key_link: str | None = None
    label_for_get_api_key: str | None = None

    @classmethod
    def from_provider(cls, provider: BaseProvider) -> "ProviderResponse":
        return cls(
            name=provider.name,
            static_models=[ModelResponse.from_descriptor(m) for m in provider.static_models],
            supports_discovery=provider.supports_discovery(),
            supports_managed_identity=provider.supports_managed_identity,
            get_api_key_link=provider.get_api_key_link,
            label_for_get_api_key=provider.label_for_get_api_key,
        )


class ProviderListResponse(BaseModel):
    providers: list[ProviderResponse] = Field(default_factory=list)
    default_provider: str | None = Field(None, description="Name of the default provider")
    total: int = Field(..., description="Total number of providers")


class EnvKeyResponse(BaseModel):
    is_set: bool = Field(..., description="Whether the value is configured on the server")


class LLMCallRequest(BaseModel):
    """Schema for a one-shot or streamed generation request."""

    provider: str = Field(..., min_length=1, description="Provider name", examples=["OpenAI"])
    model: str = Field(..., min_length=1, description="Model identifier", examples=["gpt-4o"])
    message: str = Field(..., description="User message")
    system: str | None = Field(None, description="Optional system prompt")
    stream_output: bool = Field(False, description="Stream plain text instead of returning JSON")
    credentials: CredentialContext = Field(default_factory=CredentialContext)

    def to_messages(self) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if self.system:
            messages.append({"role": "system", "content": self.system})
        messages.append({"role": "user", "content": self.message})
        return messages


class LLMCallResponse(BaseModel):
    text: str
    reasoning: str | None = None
    finish_reason: str | None = None
    usage: dict[str, Any] | None = None
    structured: Any = None
    diff: str | None = None

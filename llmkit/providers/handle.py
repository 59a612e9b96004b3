"""Callable model handles bound to resolved credentials."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable

from llmkit.core.litellm_client import LiteLLMClient
from llmkit.exceptions import TransportError
from llmkit.types import GenerateResult, StreamPart

logger = logging.getLogger(__name__)

# Returns extra completion kwargs resolved at call time (e.g. a fresh AD token)
CredentialProvider = Callable[[], Awaitable[dict[str, Any]]]


class ModelHandle(ABC):
    """An invocation-ready reference to one model.

    ``messages`` follow the OpenAI chat shape; anything else in ``params`` is
    passed to the backend unchanged.
    """

    provider: str
    model: str

    @abstractmethod
    async def generate(self, messages: list[dict[str, Any]], **params: Any) -> GenerateResult:
        """Run one complete generation."""

    @abstractmethod
    def stream(self, messages: list[dict[str, Any]], **params: Any) -> AsyncIterator[StreamPart]:
        """Stream partial results in arrival order."""


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a litellm object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _usage_dict(usage: Any) -> dict[str, Any] | None:
    if usage is None:
        return None
    if isinstance(usage, dict):
        return dict(usage)
    if hasattr(usage, "model_dump"):
        return usage.model_dump()
    return {
        key: getattr(usage, key)
        for key in ("prompt_tokens", "completion_tokens", "total_tokens")
        if hasattr(usage, key)
    }


class LiteLLMModelHandle(ModelHandle):
    """Model handle that calls the backend through litellm."""

    def __init__(
        self,
        provider: str,
        model: str,
        litellm_model: str,
        *,
        api_key: str | None = None,
        api_base: str | None = None,
        headers: dict[str, str] | None = None,
        extra_params: dict[str, Any] | None = None,
        credential_provider: CredentialProvider | None = None,
        system_hint: str | None = None,
        max_tokens: int | None = None,
        client: LiteLLMClient | None = None,
    ) -> None:
        self.provider = provider
        self.model = model
        self.litellm_model = litellm_model
        self.api_key = api_key
        self.api_base = api_base
        self.headers = dict(headers or {})
        self.extra_params = dict(extra_params or {})
        self.credential_provider = credential_provider
        self.system_hint = system_hint
        self.max_tokens = max_tokens
        self.client = client or LiteLLMClient()

    def __repr__(self) -> str:
        return f"LiteLLMModelHandle(provider={self.provider!r}, model={self.litellm_model!r})"

    def _with_system_hint(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not self.system_hint:
            return list(messages)
        if messages and messages[0].get("role") == "system" and isinstance(messages[0].get("content"), str):
            first = dict(messages[0])
            first["content"] = f"{first['content']}\n\n{self.system_hint}"
            return [first, *messages[1:]]
        return [{"role": "system", "content": self.system_hint}, *messages]

    async def _call_kwargs(self, params: dict[str, Any]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "api_key": self.api_key,
            "api_base": self.api_base,
            "extra_headers": self.headers,
            **self.extra_params,
        }
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        if self.credential_provider is not None:
            try:
                kwargs.update(await self.credential_provider())
            except TransportError:
                raise
            except Exception as e:
                raise TransportError(
                    f"Could not obtain credentials for {self.provider}: {e}",
                    provider=self.provider,
                    model=self.model,
                ) from e
        kwargs.update(params)
        return kwargs

    def _tag(self, error: TransportError) -> TransportError:
        error.provider = error.provider or self.provider
        error.model = self.model
        return error

    async def generate(self, messages: list[dict[str, Any]], **params: Any) -> GenerateResult:
        kwargs = await self._call_kwargs(params)
        try:
            response = await self.client.complete(
                model=self.litellm_model,
                messages=self._with_system_hint(messages),
                **kwargs,
            )
        except TransportError as e:
            raise self._tag(e)

        choices = _field(response, "choices") or []
        choice = choices[0] if choices else None
        message = _field(choice, "message")
        return GenerateResult(
            text=_field(message, "content") or "",
            reasoning=_field(message, "reasoning_content"),
            finish_reason=_field(choice, "finish_reason"),
            usage=_usage_dict(_field(response, "usage")),
            raw=response,
        )

    async def stream(self, messages: list[dict[str, Any]], **params: Any) -> AsyncIterator[StreamPart]:
        kwargs = await self._call_kwargs(params)
        try:
            async for chunk in self.client.complete_stream(
                model=self.litellm_model,
                messages=self._with_system_hint(messages),
                **kwargs,
            ):
                choices = _field(chunk, "choices") or []
                choice = choices[0] if choices else None
                delta = _field(choice, "delta")
                yield StreamPart(
                    text=_field(delta, "content") or "",
                    reasoning=_field(delta, "reasoning_content"),
                    finish_reason=_field(choice, "finish_reason"),
                    usage=_usage_dict(_field(chunk, "usage")),
                    raw=chunk,
                )
        except TransportError as e:
            raise self._tag(e)

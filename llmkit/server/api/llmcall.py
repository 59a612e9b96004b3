"""Generation endpoint: resolve provider and model, apply middleware, generate."""

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from llmkit.core.registry import ProviderRegistry
from llmkit.exceptions import ConfigurationError, TransportError
from llmkit.middleware import apply_middleware
from llmkit.providers.base import BaseProvider
from llmkit.server.api.schemas import LLMCallRequest, LLMCallResponse
from llmkit.server.dependencies import get_provider_registry
from llmkit.types import CredentialContext, ModelDescriptor, StreamPart

logger = logging.getLogger(__name__)

router = APIRouter(tags=["llmcall"])


async def _find_descriptor(
    provider: BaseProvider, model: str, credentials: CredentialContext
) -> ModelDescriptor | None:
    for descriptor in provider.static_models:
        if descriptor.name == model:
            return descriptor
    for descriptor in await provider.refresh_dynamic_models(credentials):
        if descriptor.name == model:
            return descriptor
    return None


def _bad_gateway(error: TransportError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error.user_message)


@router.post("/llmcall", response_model=LLMCallResponse)
async def llm_call(
    request: LLMCallRequest,
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """Generate a response, as JSON or as a plain-text stream.

    Raises:
        HTTPException: 400 for an unknown provider, 401 for missing credentials,
            404 for an unknown model, 502 when the backend call fails
    """
    provider = registry.get_provider(request.provider)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Provider {request.provider} not found or not registered",
        )

    try:
        handle = provider.get_model_instance(request.model, request.credentials)
    except ConfigurationError as e:
        logger.warning("Configuration error for %s: %s", provider.name, e)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e

    descriptor = await _find_descriptor(provider, request.model, request.credentials)
    if descriptor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Model {request.model} not found for provider {provider.name}",
        )

    handle = apply_middleware(handle, descriptor)
    messages = request.to_messages()
    logger.info("Generating response with provider: %s, model: %s", provider.name, descriptor.name)

    if not request.stream_output:
        try:
            result = await handle.generate(messages, max_tokens=descriptor.max_token_allowed)
        except TransportError as e:
            logger.error("Generation failed for %s/%s: %s", provider.name, descriptor.name, e)
            raise _bad_gateway(e) from e
        return LLMCallResponse(
            text=result.text,
            reasoning=result.reasoning,
            finish_reason=result.finish_reason,
            usage=result.usage,
            structured=result.structured,
            diff=result.diff,
        )

    parts = handle.stream(messages, max_tokens=descriptor.max_token_allowed).__aiter__()
    # Pull the first part eagerly so an immediate failure still gets a 502
    try:
        first: StreamPart | None = await parts.__anext__()
    except StopAsyncIteration:
        first = None
    except TransportError as e:
        logger.error("Streaming failed for %s/%s: %s", provider.name, descriptor.name, e)
        raise _bad_gateway(e) from e

    async def text_stream() -> AsyncIterator[str]:
        if first is None:
            return
        if first.text:
            yield first.text
        try:
            async for part in parts:
                if part.text:
                    yield part.text
        except TransportError as e:
            logger.error("Stream interrupted for %s/%s: %s", provider.name, descriptor.name, e)

    return StreamingResponse(text_stream(), media_type="text/plain; charset=utf-8")

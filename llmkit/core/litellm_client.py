"""
LiteLLM async completion wrapper with streaming, error handling, and retries.

Every model handle invokes its backend through this client:
- Async streaming support
- Exponential backoff retry logic for transient failures
- Vendor errors surfaced as TransportError
- Timeout management
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import litellm
from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)

from llmkit.exceptions import TransportError

logger = logging.getLogger(__name__)

_RETRYABLE = (RateLimitError, Timeout, ServiceUnavailableError, APIConnectionError, APIError)


@dataclass
class CompletionConfig:
    """Configuration for LLM completion requests."""

    model: str
    messages: List[Dict[str, Any]]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = False
    timeout: float = 60.0
    max_retries: int = 3
    retry_delay: float = 1.0
    retry_multiplier: float = 2.0
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def to_kwargs(self, **kwargs) -> Dict[str, Any]:
        # api_key/api_base are omitted when unset (local providers like Ollama)
        completion_kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            "stream": self.stream,
            "timeout": self.timeout,
            **kwargs,
        }
        if self.temperature is not None:
            completion_kwargs["temperature"] = self.temperature
        if self.max_tokens is not None:
            completion_kwargs["max_tokens"] = self.max_tokens
        if self.api_key:
            completion_kwargs["api_key"] = self.api_key
        if self.api_base:
            completion_kwargs["api_base"] = self.api_base
        if self.extra_headers:
            completion_kwargs["extra_headers"] = dict(self.extra_headers)
        return completion_kwargs


class LiteLLMClient:
    """
    Async wrapper for LiteLLM with streaming, error handling, and retries.

    Usage:
        client = LiteLLMClient()

        # Non-streaming
        response = await client.complete(
            model="gpt-4o",
            messages=[{"role": "user", "content": "Hello"}]
        )

        # Streaming
        async for chunk in client.complete_stream(
            model="gpt-4o",
            messages=[{"role": "user", "content": "Hello"}]
        ):
            print(chunk)
    """

    def __init__(
        self,
        default_timeout: float = 60.0,
        default_max_retries: int = 3,
        default_retry_delay: float = 1.0,
        default_retry_multiplier: float = 2.0,
    ):
        """
        Initialize LiteLLM client.

        Args:
            default_timeout: Default request timeout in seconds
            default_max_retries: Default number of attempts
            default_retry_delay: Initial retry delay in seconds
            default_retry_multiplier: Exponential backoff multiplier
        """
        self.default_timeout = default_timeout
        self.default_max_retries = default_max_retries
        self.default_retry_delay = default_retry_delay
        self.default_retry_multiplier = default_retry_multiplier

        litellm.suppress_debug_info = True

    @classmethod
    def from_settings(cls, settings) -> "LiteLLMClient":
        return cls(
            default_timeout=settings.request_timeout,
            default_max_retries=settings.max_retries,
            default_retry_delay=settings.retry_delay,
            default_retry_multiplier=settings.retry_multiplier,
        )

    def _build_config(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        stream: bool,
        temperature: Optional[float],
        max_tokens: Optional[int],
        timeout: Optional[float],
        max_retries: Optional[int],
        api_key: Optional[str],
        api_base: Optional[str],
        extra_headers: Optional[Dict[str, str]],
    ) -> CompletionConfig:
        return CompletionConfig(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            stream=stream,
            timeout=timeout or self.default_timeout,
            max_retries=max_retries or self.default_max_retries,
            retry_delay=self.default_retry_delay,
            retry_multiplier=self.default_retry_multiplier,
            api_key=api_key,
            api_base=api_base,
            extra_headers=extra_headers or {},
        )

    async def complete(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> Any:
        """
        Execute non-streaming completion with retry logic.

        Args:
            model: LiteLLM model name (e.g., "gpt-4o", "anthropic/claude-3-opus")
            messages: List of message dicts with "role" and "content"
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            timeout: Request timeout in seconds
            max_retries: Number of attempts
            api_key: Optional API key override
            api_base: Optional API base URL override
            extra_headers: Optional extra HTTP headers
            **kwargs: Additional arguments passed to litellm.acompletion

        Returns:
            Completion response

        Raises:
            TransportError: The call failed (after retries for transient errors)
        """
        config = self._build_config(
            model, messages, False, temperature, max_tokens, timeout, max_retries,
            api_key, api_base, extra_headers,
        )
        return await self._execute_with_retry(config, **kwargs)

    async def complete_stream(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> AsyncIterator[Any]:
        """
        Execute streaming completion with retry logic.

        A retry only happens before the first chunk has been yielded; once
        output has reached the caller a failure is raised immediately.

        Yields:
            Streaming response chunks

        Raises:
            TransportError: The call failed
        """
        config = self._build_config(
            model, messages, True, temperature, max_tokens, timeout, max_retries,
            api_key, api_base, extra_headers,
        )
        async for chunk in self._execute_stream_with_retry(config, **kwargs):
            yield chunk

    async def _execute_with_retry(
        self,
        config: CompletionConfig,
        **kwargs,
    ) -> Any:
        """Execute non-streaming completion with exponential backoff retry."""
        last_exception: Optional[Exception] = None
        retry_delay = config.retry_delay

        for attempt in range(config.max_retries):
            try:
                logger.debug(
                    f"Completion attempt {attempt + 1}/{config.max_retries} "
                    f"for model {config.model}"
                )
                response = await acompletion(**config.to_kwargs(**kwargs))
                logger.debug(f"Completion successful for model {config.model}")
                return response

            except AuthenticationError as e:
                logger.error(f"Authentication failed for model {config.model}: {e}")
                raise TransportError(f"Authentication failed: {e}", model=config.model) from e

            except BadRequestError as e:
                logger.error(f"Bad request for model {config.model}: {e}")
                raise TransportError(f"Bad request: {e}", model=config.model) from e

            except _RETRYABLE as e:
                last_exception = e

                if attempt < config.max_retries - 1:
                    logger.warning(
                        f"Attempt {attempt + 1} failed for model {config.model}: {e}. "
                        f"Retrying in {retry_delay}s..."
                    )
                    await asyncio.sleep(retry_delay)
                    retry_delay *= config.retry_multiplier
                else:
                    logger.error(
                        f"All {config.max_retries} attempts failed for model {config.model}: {e}"
                    )

            except Exception as e:
                logger.error(f"Unexpected error for model {config.model}: {e}")
                raise TransportError(f"Unexpected error: {e}", model=config.model) from e

        raise TransportError(
            f"Completion failed after {config.max_retries} attempts for model {config.model}: "
            f"{last_exception}",
            model=config.model,
        ) from last_exception

    async def _execute_stream_with_retry(
        self,
        config: CompletionConfig,
        **kwargs,
    ) -> AsyncIterator[Any]:
        """Execute streaming completion with exponential backoff retry."""
        last_exception: Optional[Exception] = None
        retry_delay = config.retry_delay

        for attempt in range(config.max_retries):
            yielded = False
            try:
                logger.debug(
                    f"Streaming attempt {attempt + 1}/{config.max_retries} for model {config.model}"
                )
                response = await acompletion(**config.to_kwargs(**kwargs))

                async for chunk in response:
                    yielded = True
                    yield chunk

                logger.debug(f"Streaming completed for model {config.model}")
                return

            except AuthenticationError as e:
                logger.error(f"Authentication failed for model {config.model}: {e}")
                raise TransportError(f"Authentication failed: {e}", model=config.model) from e

            except BadRequestError as e:
                logger.error(f"Bad request for model {config.model}: {e}")
                raise TransportError(f"Bad request: {e}", model=config.model) from e

            except _RETRYABLE as e:
                last_exception = e

                if yielded:
                    logger.error(f"Stream for model {config.model} broke mid-response: {e}")
                    raise TransportError(f"Stream interrupted: {e}", model=config.model) from e

                if attempt < config.max_retries - 1:
                    logger.warning(
                        f"Streaming attempt {attempt + 1} failed for model {config.model}: {e}. "
                        f"Retrying in {retry_delay}s..."
                    )
                    await asyncio.sleep(retry_delay)
                    retry_delay *= config.retry_multiplier
                else:
                    logger.error(
                        f"All {config.max_retries} streaming attempts failed for model {config.model}: {e}"
                    )

            except Exception as e:
                logger.error(f"Unexpected streaming error for model {config.model}: {e}")
                raise TransportError(f"Unexpected streaming error: {e}", model=config.model) from e

        raise TransportError(
            f"Streaming failed after {config.max_retries} attempts for model {config.model}: "
            f"{last_exception}",
            model=config.model,
        ) from last_exception

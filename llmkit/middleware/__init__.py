"""Capability-driven post-processing of model handles."""

import logging

from llmkit.core.capabilities import is_deepseek_model, supports_code_diff
from llmkit.middleware.base import (
    BlockExtractionStage,
    BlockState,
    Middleware,
    MiddlewareModelHandle,
    StreamStage,
)
from llmkit.middleware.code_completion import CodeBlockCompletionMiddleware
from llmkit.middleware.diff import CodeDiffMiddleware
from llmkit.middleware.image import ImageInputMiddleware
from llmkit.middleware.reasoning import ReasoningMiddleware
from llmkit.middleware.structured import StructuredOutputMiddleware
from llmkit.providers.handle import ModelHandle
from llmkit.types import ModelDescriptor

logger = logging.getLogger(__name__)


def select_middlewares(descriptor: ModelDescriptor) -> list[Middleware]:
    """Pick middlewares for a model, in pipeline order."""
    capabilities = descriptor.capabilities
    middlewares: list[Middleware] = []

    if capabilities.reasoning:
        middlewares.append(ReasoningMiddleware())
    if capabilities.image_input:
        middlewares.append(ImageInputMiddleware())
    if capabilities.structured_output:
        middlewares.append(StructuredOutputMiddleware())
    # Diff support is also inferred from the name when the catalog does not declare it
    if capabilities.code_diff or supports_code_diff(descriptor.name):
        middlewares.append(CodeDiffMiddleware())
    if is_deepseek_model(descriptor.name):
        middlewares.append(CodeBlockCompletionMiddleware())

    return middlewares


def apply_middleware(handle: ModelHandle, descriptor: ModelDescriptor) -> ModelHandle:
    """Wrap ``handle`` with the middlewares ``descriptor`` calls for.

    Returns ``handle`` itself when nothing applies.
    """
    middlewares = select_middlewares(descriptor)
    if not middlewares:
        return handle

    logger.debug(
        "Applying middlewares %s to %s/%s",
        [m.name for m in middlewares],
        descriptor.provider,
        descriptor.name,
    )
    return MiddlewareModelHandle(handle, middlewares, descriptor)


__all__ = [
    "BlockExtractionStage",
    "BlockState",
    "CodeBlockCompletionMiddleware",
    "CodeDiffMiddleware",
    "ImageInputMiddleware",
    "Middleware",
    "MiddlewareModelHandle",
    "ReasoningMiddleware",
    "StreamStage",
    "StructuredOutputMiddleware",
    "apply_middleware",
    "select_middlewares",
]

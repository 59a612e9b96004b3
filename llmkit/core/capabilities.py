"""Heuristic model capability detection.

Maps a model identifier to capability flags from naming patterns and embedded
version numbers, without any network access. The classification is
best-effort: a missed capability only means the matching post-processing is
not applied.
"""

import re
from typing import Any

from llmkit.types import ModelCapabilities

# First "[.-]<number>" token in the identifier, e.g. "claude-3.5-sonnet" -> 3.5
_VERSION_PATTERN = re.compile(r"[.-](\d+(?:\.\d+)?)")

REASONING_FAMILIES: tuple[str, ...] = (
    "gpt-4o",
    "gpt-4-turbo",
    "gpt-4-vision",
    "claude-3",
    "anthropic.claude-3",
    "mistral-large",
    "deepseek-coder",
    "deepseek-v2",
    "deepseek-r1",
)

IMAGE_INPUT_FAMILIES: tuple[str, ...] = (
    "gpt-4o",
    "gpt-4-vision",
    "gpt-4-turbo",
    "claude-3",
    "gemini",
)

STRUCTURED_OUTPUT_FAMILIES: tuple[str, ...] = (
    "gpt-4",
    "gpt-3.5",
    "claude-3",
    "claude-2",
    "mistral",
    "gemini",
    "coder",
    "-code",
    "command",
    "deepseek",
)

CODE_DIFF_FAMILIES: tuple[str, ...] = (
    "gpt-4",
    "claude-3",
    "mistral-large",
    "mistral-medium",
    "coder",
    "-code",
    "gemini-1.5",
    "gemini-2",
    "deepseek",
)

DEEPSEEK_FAMILIES: tuple[str, ...] = (
    "deepseek-coder",
    "deepseek-chat",
    "deepseek-reasoner",
    "deepseek-v2",
    "deepseek-r1",
    "deepseek/",
    "deepseek-ai/",
)

REASONING_VERSION_THRESHOLD = 3.5
STRUCTURED_OUTPUT_VERSION_THRESHOLD = 2.0
CODE_DIFF_VERSION_THRESHOLD = 3.0


def _normalize(model_name: Any) -> str | None:
    if not isinstance(model_name, str):
        return None
    return model_name.lower()


def _version_number(name: str) -> float:
    match = _VERSION_PATTERN.search(name)
    if not match:
        return 0.0
    try:
        return float(match.group(1))
    except (ValueError, OverflowError):
        return 0.0


def _matches_any(name: str, families: tuple[str, ...]) -> bool:
    return any(family in name for family in families)


def supports_reasoning(model_name: str) -> bool:
    """Return True if the model is expected to emit extended reasoning output."""
    name = _normalize(model_name)
    if name is None:
        return False
    return (
        _matches_any(name, REASONING_FAMILIES)
        or _version_number(name) >= REASONING_VERSION_THRESHOLD
    )


def supports_image_input(model_name: str) -> bool:
    """Return True if the model is known to accept image input."""
    name = _normalize(model_name)
    if name is None:
        return False
    return _matches_any(name, IMAGE_INPUT_FAMILIES)


def supports_structured_output(model_name: str) -> bool:
    """Return True if the model is expected to produce usable JSON output."""
    name = _normalize(model_name)
    if name is None:
        return False
    return (
        _matches_any(name, STRUCTURED_OUTPUT_FAMILIES)
        or _version_number(name) >= STRUCTURED_OUTPUT_VERSION_THRESHOLD
    )


def supports_code_diff(model_name: str) -> bool:
    """Return True if the model is expected to produce unified diffs."""
    name = _normalize(model_name)
    if name is None:
        return False
    # claude-instant-1 is excluded, later claude-instant releases are not
    instant = "claude-instant" in name and "claude-instant-1" not in name
    return (
        _matches_any(name, CODE_DIFF_FAMILIES)
        or instant
        or _version_number(name) >= CODE_DIFF_VERSION_THRESHOLD
    )


def is_deepseek_model(model_name: str) -> bool:
    """Return True for DeepSeek models, which get code-block completion."""
    name = _normalize(model_name)
    if name is None:
        return False
    return _matches_any(name, DEEPSEEK_FAMILIES)


def detect_capabilities(model_name: str) -> ModelCapabilities:
    """Build the full capability set for a model identifier."""
    return ModelCapabilities(
        reasoning=supports_reasoning(model_name),
        image_input=supports_image_input(model_name),
        structured_output=supports_structured_output(model_name),
        code_diff=supports_code_diff(model_name),
    )

"""Normalize image content parts into the OpenAI ``image_url`` shape.

Accepted inputs in a message's content list:
- ``{"type": "image_url", "image_url": {"url": ...}}`` (unchanged)
- ``{"type": "image_url", "image_url": "..."}``
- ``{"type": "image", "image": <url | data URL | base64 str | bytes>, "mime_type": ...}``
"""

import base64
import logging
from typing import Any

from llmkit.middleware.base import Middleware

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME_TYPE = "image/png"


def _image_url(data: Any, mime_type: str) -> str:
    if isinstance(data, (bytes, bytearray)):
        return f"data:{mime_type};base64,{base64.b64encode(bytes(data)).decode('ascii')}"
    if isinstance(data, str) and (data.startswith(("http://", "https://", "data:"))):
        return data
    # Bare base64 payload
    return f"data:{mime_type};base64,{data}"


def normalize_content_part(part: Any) -> Any:
    if not isinstance(part, dict):
        return part

    part_type = part.get("type")
    if part_type == "image_url":
        value = part.get("image_url")
        if isinstance(value, str):
            return {"type": "image_url", "image_url": {"url": value}}
        return part

    if part_type == "image":
        mime_type = part.get("mime_type") or part.get("mimeType") or DEFAULT_IMAGE_MIME_TYPE
        data = part.get("image", part.get("data"))
        if data is None:
            logger.warning("Dropping image content part without data")
            return None
        return {"type": "image_url", "image_url": {"url": _image_url(data, mime_type)}}

    return part


def normalize_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Return copies of ``messages`` with image parts normalized."""
    normalized: list[dict[str, Any]] = []
    for message in messages:
        content = message.get("content")
        if not isinstance(content, list):
            normalized.append(message)
            continue
        parts = [normalize_content_part(part) for part in content]
        normalized.append({**message, "content": [part for part in parts if part is not None]})
    return normalized


class ImageInputMiddleware(Middleware):
    """Request-side only; responses pass through."""

    name = "image_input"

    def transform_messages(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return normalize_messages(messages)

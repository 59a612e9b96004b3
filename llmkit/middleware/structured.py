"""Parse ```json blocks, re-emit them pretty-printed and expose the parsed value."""

import json
import logging
from typing import Any

from llmkit.middleware.base import BlockExtractionStage, Middleware
from llmkit.types import StreamPart

logger = logging.getLogger(__name__)

JSON_FENCE = "```json"
FENCE = "```"

_CLOSING = {"{": "}", "[": "]"}


class JsonDepthTracker:
    """Track unclosed braces and brackets, ignoring those inside strings."""

    def __init__(self) -> None:
        self.stack: list[str] = []
        self.in_string = False
        self.escaped = False

    def update(self, text: str) -> None:
        for char in text:
            if self.in_string:
                if self.escaped:
                    self.escaped = False
                elif char == "\\":
                    self.escaped = True
                elif char == '"':
                    self.in_string = False
                continue

            if char == '"':
                self.in_string = True
            elif char in _CLOSING:
                self.stack.append(_CLOSING[char])
            elif self.stack and char == self.stack[-1]:
                self.stack.pop()

    def closing_suffix(self) -> str:
        suffix = '"' if self.in_string else ""
        return suffix + "".join(reversed(self.stack))


def render_json_block(value: Any) -> str:
    return f"{JSON_FENCE}\n{json.dumps(value, indent=2)}\n{FENCE}"


class StructuredOutputStage(BlockExtractionStage):
    open_markers = (JSON_FENCE,)

    def __init__(self) -> None:
        super().__init__()
        self.tracker = JsonDepthTracker()

    def close_marker(self, open_marker: str) -> str:
        return FENCE

    def on_block_start(self, open_marker: str) -> None:
        self.tracker = JsonDepthTracker()

    def on_block_data(self, text: str) -> None:
        self.tracker.update(text)

    def on_block_end(self, open_marker: str, body: str) -> list[StreamPart]:
        try:
            value = json.loads(body)
        except ValueError as e:
            logger.debug("Leaving malformed JSON block unchanged: %s", e)
            return [StreamPart(text=f"{open_marker}{body}{FENCE}")]
        return [StreamPart(text=render_json_block(value), structured=value)]

    def on_unterminated(self, open_marker: str, body: str) -> list[StreamPart]:
        repaired = body.rstrip() + self.tracker.closing_suffix()
        try:
            value = json.loads(repaired)
        except ValueError:
            separator = "" if repaired.endswith("\n") else "\n"
            return [StreamPart(text=f"{open_marker}{repaired}{separator}{FENCE}")]
        return [StreamPart(text=render_json_block(value), structured=value)]


class StructuredOutputMiddleware(Middleware):
    name = "structured_output"

    def create_stage(self) -> StructuredOutputStage:
        return StructuredOutputStage()

"""Extract reasoning blocks (``<think>...</think>`` and friends) into a side channel."""

from llmkit.middleware.base import BlockExtractionStage, Middleware
from llmkit.types import StreamPart

REASONING_TAGS = ("think", "thinking", "reasoning")

_CLOSERS: dict[str, str] = {}
for _tag in REASONING_TAGS:
    _CLOSERS[f"<{_tag}>"] = f"</{_tag}>"
    # Some backends HTML-escape the tags
    _CLOSERS[f"&lt;{_tag}&gt;"] = f"&lt;/{_tag}&gt;"


class ReasoningStage(BlockExtractionStage):
    open_markers = tuple(_CLOSERS)

    def close_marker(self, open_marker: str) -> str:
        return _CLOSERS[open_marker]

    def on_block_end(self, open_marker: str, body: str) -> list[StreamPart]:
        reasoning = body.strip()
        return [StreamPart(reasoning=reasoning)] if reasoning else []


class ReasoningMiddleware(Middleware):
    name = "reasoning"

    def create_stage(self) -> ReasoningStage:
        return ReasoningStage()

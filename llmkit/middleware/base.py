"""Stream stages and the handle that runs them.

A stage consumes ``StreamPart`` objects one at a time and returns the parts to
pass downstream. Block-extracting stages scan the visible text for an opening
marker, buffer everything up to the matching closing marker, and replace the
block with whatever ``on_block_end`` returns.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, AsyncIterator, Sequence

from llmkit.providers.handle import ModelHandle
from llmkit.types import GenerateResult, ModelDescriptor, StreamPart

logger = logging.getLogger(__name__)


class StreamStage:
    """Pass-through stage; subclasses override ``feed`` and ``finish``."""

    def feed(self, part: StreamPart) -> list[StreamPart]:
        return [part]

    def finish(self) -> list[StreamPart]:
        """Flush anything buffered at end of stream."""
        return []


class BlockState(enum.Enum):
    SCANNING = "scanning"
    IN_BLOCK = "in_block"
    BLOCK_ENDED = "block_ended"


def _side_data(part: StreamPart) -> dict[str, Any]:
    return {
        "reasoning": part.reasoning,
        "finish_reason": part.finish_reason,
        "usage": part.usage,
        "structured": part.structured,
        "diff": part.diff,
        "raw": part.raw,
    }


def _attach_side_data(emitted: list[StreamPart], part: StreamPart) -> list[StreamPart]:
    """Carry the incoming part's non-text fields over to the emitted parts."""
    if emitted and not emitted[-1].has_side_data():
        emitted[-1] = StreamPart(text=emitted[-1].text, **_side_data(part))
        return emitted
    if part.has_side_data():
        return [*emitted, StreamPart(**_side_data(part))]
    return emitted


class BlockExtractionStage(StreamStage):
    """Scan for delimited blocks, holding back markers split across chunks."""

    open_markers: tuple[str, ...] = ()

    def __init__(self) -> None:
        self.state = BlockState.SCANNING
        self._pending = ""  # Possible start of an opening marker
        self._open: str | None = None
        self._block = ""

    def close_marker(self, open_marker: str) -> str:
        raise NotImplementedError

    def on_block_start(self, open_marker: str) -> None:
        """Hook for per-block state."""

    def on_block_data(self, text: str) -> None:
        """Hook called with block content as it arrives."""

    def on_block_end(self, open_marker: str, body: str) -> list[StreamPart]:
        raise NotImplementedError

    def on_unterminated(self, open_marker: str, body: str) -> list[StreamPart]:
        return self.on_block_end(open_marker, body)

    def _find_open(self, text: str) -> tuple[int, str] | None:
        best: tuple[int, str] | None = None
        for marker in self.open_markers:
            index = text.find(marker)
            if index != -1 and (best is None or index < best[0]):
                best = (index, marker)
        return best

    def _held_back(self, text: str) -> int:
        """Length of the longest suffix of ``text`` that could start an opening marker."""
        longest = max((len(marker) for marker in self.open_markers), default=0)
        for size in range(min(len(text), longest - 1), 0, -1):
            suffix = text[-size:]
            if any(marker.startswith(suffix) for marker in self.open_markers):
                return size
        return 0

    def _close_block(self, handler: str, body: str) -> list[StreamPart]:
        open_marker = self._open or ""
        try:
            if handler == "end":
                return self.on_block_end(open_marker, body)
            return self.on_unterminated(open_marker, body)
        except Exception as e:
            logger.warning("%s failed on a block, passing it through: %s", type(self).__name__, e)
            closing = self.close_marker(open_marker) if handler == "end" else ""
            return [StreamPart(text=f"{open_marker}{body}{closing}")]

    def _process(self, text: str) -> list[StreamPart]:
        out: list[StreamPart] = []
        while text:
            if self.state is BlockState.BLOCK_ENDED:
                self.state = BlockState.SCANNING

            if self.state is BlockState.SCANNING:
                found = self._find_open(text)
                if found is None:
                    hold = self._held_back(text)
                    visible = text[: len(text) - hold]
                    self._pending = text[len(text) - hold :]
                    if visible:
                        out.append(StreamPart(text=visible))
                    return out

                index, marker = found
                if index:
                    out.append(StreamPart(text=text[:index]))
                self.state = BlockState.IN_BLOCK
                self._open = marker
                self._block = ""
                self.on_block_start(marker)
                text = text[index + len(marker) :]
                continue

            close = self.close_marker(self._open or "")
            search_from = max(0, len(self._block) - len(close) + 1)
            combined = self._block + text
            index = combined.find(close, search_from)
            if index == -1:
                self.on_block_data(text)
                self._block = combined
                return out

            self.on_block_data(combined[len(self._block) : index])
            out.extend(self._close_block("end", combined[:index]))
            text = combined[index + len(close) :]
            self._block = ""
            self._open = None
            self.state = BlockState.BLOCK_ENDED
        return out

    def feed(self, part: StreamPart) -> list[StreamPart]:
        text = self._pending + part.text
        self._pending = ""
        return _attach_side_data(self._process(text), part)

    def finish(self) -> list[StreamPart]:
        out: list[StreamPart] = []
        if self.state is BlockState.IN_BLOCK:
            out.extend(self._close_block("unterminated", self._block))
        elif self._pending:
            out.append(StreamPart(text=self._pending))
        self.state = BlockState.SCANNING
        self._pending = ""
        self._block = ""
        self._open = None
        return out


class Middleware:
    """One capability-specific transformation of a model handle."""

    name = "middleware"

    def transform_messages(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return messages

    def create_stage(self) -> StreamStage | None:
        """Return a fresh stage per call, or None for request-only middleware."""
        return None


def _feed_all(stages: Sequence[StreamStage], parts: list[StreamPart]) -> list[StreamPart]:
    for stage in stages:
        parts = [out for part in parts for out in stage.feed(part)]
    return parts


def _finish_all(stages: Sequence[StreamStage]) -> list[StreamPart]:
    # Output flushed by one stage still has to pass through the later ones
    pending: list[StreamPart] = []
    for stage in stages:
        pending = [out for part in pending for out in stage.feed(part)] + stage.finish()
    return pending


def _is_empty(part: StreamPart) -> bool:
    return not part.text and not part.has_side_data()


class MiddlewareModelHandle(ModelHandle):
    """Wrap a handle with an ordered middleware pipeline.

    The wrapped handle is used as-is and never modified.
    """

    def __init__(
        self,
        inner: ModelHandle,
        middlewares: Sequence[Middleware],
        descriptor: ModelDescriptor | None = None,
    ) -> None:
        self.inner = inner
        self.middlewares = tuple(middlewares)
        self.descriptor = descriptor
        self.provider = inner.provider
        self.model = inner.model

    def __repr__(self) -> str:
        names = ", ".join(m.name for m in self.middlewares)
        return f"MiddlewareModelHandle({self.inner!r}, middlewares=[{names}])"

    def _prepare(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        for middleware in self.middlewares:
            messages = middleware.transform_messages(messages)
        return messages

    def _stages(self) -> list[StreamStage]:
        return [stage for m in self.middlewares if (stage := m.create_stage()) is not None]

    async def generate(self, messages: list[dict[str, Any]], **params: Any) -> GenerateResult:
        result = await self.inner.generate(self._prepare(messages), **params)

        stages = self._stages()
        parts = _feed_all(stages, [StreamPart(text=result.text)]) + _finish_all(stages)

        reasoning = [result.reasoning] if result.reasoning else []
        reasoning.extend(part.reasoning for part in parts if part.reasoning)
        structured = [part.structured for part in parts if part.structured is not None]
        diffs = [part.diff for part in parts if part.diff is not None]

        return GenerateResult(
            text="".join(part.text for part in parts),
            reasoning="\n".join(reasoning) if reasoning else None,
            finish_reason=result.finish_reason,
            usage=result.usage,
            structured=structured[-1] if structured else result.structured,
            diff=diffs[-1] if diffs else result.diff,
            raw=result.raw,
        )

    async def stream(self, messages: list[dict[str, Any]], **params: Any) -> AsyncIterator[StreamPart]:
        stages = self._stages()
        async for part in self.inner.stream(self._prepare(messages), **params):
            for out in _feed_all(stages, [part]):
                if not _is_empty(out):
                    yield out
        for out in _finish_all(stages):
            if not _is_empty(out):
                yield out

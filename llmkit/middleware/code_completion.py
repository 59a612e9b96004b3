"""Close a code fence left open at the end of a response."""

from llmkit.middleware.base import Middleware, StreamStage
from llmkit.types import StreamPart

FENCE = "```"


class CodeBlockCompletionStage(StreamStage):
    """Pass text through while counting fences; close an odd one at the end."""

    def __init__(self) -> None:
        self.fences = 0
        self._run = 0  # Consecutive backticks, may span chunks
        self._last_char = ""

    def feed(self, part: StreamPart) -> list[StreamPart]:
        for char in part.text:
            if char == "`":
                self._run += 1
                if self._run == len(FENCE):
                    self.fences += 1
                    self._run = 0
            else:
                self._run = 0
        if part.text:
            self._last_char = part.text[-1]
        return [part]

    def finish(self) -> list[StreamPart]:
        if self.fences % 2 == 0:
            return []
        self.fences += 1
        prefix = "" if self._last_char in ("", "\n") else "\n"
        return [StreamPart(text=f"{prefix}{FENCE}")]


class CodeBlockCompletionMiddleware(Middleware):
    name = "code_block_completion"

    def create_stage(self) -> CodeBlockCompletionStage:
        return CodeBlockCompletionStage()

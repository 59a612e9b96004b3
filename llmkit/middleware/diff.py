"""Normalize ```diff / ```patch blocks to unified-diff line prefixes."""

from llmkit.middleware.base import BlockExtractionStage, Middleware
from llmkit.types import StreamPart

FENCE = "```"


def normalize_diff(body: str) -> str:
    """Rewrite ``<`` / ``>`` line prefixes (normal diff) to ``-`` / ``+``."""
    lines = body.split("\n")
    for i, line in enumerate(lines):
        if line.startswith("<"):
            lines[i] = "-" + line[1:]
        elif line.startswith(">"):
            lines[i] = "+" + line[1:]
    return "\n".join(lines)


class CodeDiffStage(BlockExtractionStage):
    open_markers = ("```diff", "```patch")

    def close_marker(self, open_marker: str) -> str:
        return FENCE

    def on_block_end(self, open_marker: str, body: str) -> list[StreamPart]:
        normalized = normalize_diff(body)
        return [StreamPart(text=f"{open_marker}{normalized}{FENCE}", diff=normalized.strip("\n"))]

    def on_unterminated(self, open_marker: str, body: str) -> list[StreamPart]:
        normalized = normalize_diff(body)
        separator = "" if normalized.endswith("\n") else "\n"
        return [
            StreamPart(
                text=f"{open_marker}{normalized}{separator}{FENCE}",
                diff=normalized.strip("\n"),
            )
        ]


class CodeDiffMiddleware(Middleware):
    name = "code_diff"

    def create_stage(self) -> CodeDiffStage:
        return CodeDiffStage()

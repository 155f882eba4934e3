"""
Segmentation service for prompt processing.

This module splits delimited prompt text into segments, classifies each
segment's bracket syntax and derives the normalized dictionary key. All
operations are pure.
"""
from __future__ import annotations

from dataclasses import dataclass

from promptsync.types import PromptSyncConfig, SyntaxType


def detect_syntax(text: str) -> SyntaxType:
    """
    Classify a segment by its enclosing brackets (first match wins).

    <...> is a LoRA reference, {...} a dynamic prompt, (...) and [...] are
    weight modifiers. Wrapping means the first and last character of the
    trimmed string.
    """
    t = text.strip()
    if t.startswith("<") and t.endswith(">"):
        return SyntaxType.LORA
    if t.startswith("{") and t.endswith("}"):
        return SyntaxType.DYNAMIC
    if (t.startswith("(") and t.endswith(")")) or (t.startswith("[") and t.endswith("]")):
        return SyntaxType.WEIGHTED
    return SyntaxType.NORMAL


@dataclass(frozen=True)
class SegmentSpan:
    """Character range of one segment within the raw text."""

    index: int
    start: int
    end: int
    text: str

    def contains(self, position: int) -> bool:
        return self.start <= position <= self.end

    def overlaps(self, start: int, end: int) -> bool:
        return self.start < end and self.end > start


class SegmentationService:
    """Pure segmentation service."""

    def __init__(self, config: PromptSyncConfig):
        self._config = config

    def split(self, text: str) -> list[str]:
        """Ordered, trimmed, non-empty segments of ``text``."""
        if not text:
            return []
        pieces = (piece.strip() for piece in self._config.split_pattern.split(text))
        return [piece for piece in pieces if piece]

    def join(self, raws: list[str]) -> str:
        return self._config.join_delimiter.join(raws)

    def detect_syntax(self, text: str) -> SyntaxType:
        return detect_syntax(text)

    def core_text(self, text: str) -> str:
        """
        Strip enclosing brackets and the inline weight suffix.

        "(masterpiece:1.2)" -> "masterpiece", "<lora:x:0.8>" -> "lora".
        Only ever used for dictionary matching, never for display.
        """
        cleaned = self._config.lookup_strip_pattern.sub("", text)
        cleaned = cleaned.split(":", 1)[0]
        return cleaned.strip()

    def lookup_key(self, text: str) -> str:
        return self.core_text(text).lower()

    def is_single_segment(self, text: str) -> bool:
        """True when ``text`` re-segments to exactly itself."""
        return self.split(text) == [text]

    def segment_spans(self, text: str) -> list[SegmentSpan]:
        """
        Character spans of every segment, indexed like ``split``.

        A span covers the whole piece between delimiters, surrounding
        whitespace included, so a caret resting next to a delimiter still
        belongs to the adjacent segment.
        """
        spans: list[SegmentSpan] = []
        position = 0
        pieces: list[tuple[int, int]] = []
        for match in self._config.split_pattern.finditer(text):
            pieces.append((position, match.start()))
            position = match.end()
        pieces.append((position, len(text)))

        for start, end in pieces:
            piece = text[start:end]
            if piece.strip():
                spans.append(SegmentSpan(index=len(spans), start=start, end=end, text=piece.strip()))
        return spans

"""Fixed-window, sentence and paragraph chunking."""

from __future__ import annotations

import math
import re

from rag_router.config import ChunkingConfig
from rag_router.types import TABULAR_FILE_TYPES, ChunkStrategy

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?。！？])\s+")
_SENTENCE_BOUNDARY = re.compile(r"[.!?。！？]\s")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n+|\n(?=[A-Z#])")
_WHITESPACE = re.compile(r"\s+")
_INLINE_WHITESPACE = re.compile(r"[^\S\n]+")


class TextChunker:
    """Splits raw text into overlapping passages.

    Three strategies are supported:

    1. ``fixed``: a sliding character window of ``max_size`` that advances by
       ``max_size - overlap``. Used for delimited/record formats where sentence
       structure carries no meaning. Concatenating the first chunk with the
       non-overlapping tail of every following chunk reproduces the input.

    2. ``sentence``: sentences are packed into a buffer until the next one
       would overflow ``max_size``. The flushed buffer's last ~10% of words seed
       the next buffer, so overlap is carried at word granularity.

    3. ``semantic``: blank lines and heading-like line starts delimit
       paragraphs, which are packed with the same overflow rule but no carried
       overlap.

    A single sentence or paragraph longer than ``max_size`` is emitted whole;
    chunks may therefore exceed ``max_size`` by at most one unit.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def detect_strategy(self, content: str, file_type: str) -> ChunkStrategy:
        if file_type.lower() in TABULAR_FILE_TYPES:
            return ChunkStrategy.FIXED
        if len(content) > self.config.sentence_min_length and _SENTENCE_BOUNDARY.search(content):
            return ChunkStrategy.SENTENCE
        return ChunkStrategy.SEMANTIC

    def chunk(
        self,
        text: str,
        *,
        max_size: int | None = None,
        overlap: int | None = None,
        strategy: ChunkStrategy = ChunkStrategy.SENTENCE,
    ) -> list[str]:
        size = self.config.max_size if max_size is None else max_size
        carried = self.config.overlap if overlap is None else overlap
        if size <= 0:
            raise ValueError("max_size must be positive")
        if not text.strip():
            return []

        if strategy is ChunkStrategy.FIXED:
            return self.chunk_fixed(text, size, carried)
        if strategy is ChunkStrategy.SEMANTIC:
            return self.chunk_semantic(text, size)
        return self.chunk_sentences(text, size)

    @staticmethod
    def chunk_fixed(text: str, max_size: int, overlap: int) -> list[str]:
        if overlap < 0 or overlap >= max_size:
            raise ValueError("overlap must satisfy 0 <= overlap < max_size")
        chunks: list[str] = []
        stride = max_size - overlap
        start = 0
        while start < len(text):
            end = min(start + max_size, len(text))
            chunks.append(text[start:end])
            if end >= len(text):
                break
            start += stride
        return chunks

    def chunk_sentences(self, text: str, max_size: int) -> list[str]:
        clean = _WHITESPACE.sub(" ", text).strip()
        sentences = [part for part in _SENTENCE_SPLIT.split(clean) if part.strip()]
        chunks: list[str] = []
        current = ""

        for sentence in sentences:
            if current and len(current) + len(sentence) > max_size:
                flushed = current.strip()
                chunks.append(flushed)
                seed = self._tail_words(flushed)
                current = f"{seed} {sentence}" if seed else sentence
            else:
                current = f"{current} {sentence}" if current else sentence

        if current.strip():
            chunks.append(current.strip())
        return chunks

    @staticmethod
    def chunk_semantic(text: str, max_size: int) -> list[str]:
        normalized = _INLINE_WHITESPACE.sub(" ", text.replace("\r\n", "\n"))
        paragraphs = [part.strip() for part in _PARAGRAPH_SPLIT.split(normalized) if part.strip()]
        chunks: list[str] = []
        current = ""

        for paragraph in paragraphs:
            if current and len(current) + len(paragraph) > max_size:
                chunks.append(current.strip())
                current = paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph

        if current.strip():
            chunks.append(current.strip())
        return chunks

    def _tail_words(self, chunk: str) -> str:
        words = chunk.split(" ")
        keep = math.ceil(len(words) * self.config.overlap_ratio)
        if keep <= 0:
            return ""
        return " ".join(words[-keep:])


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def estimate_tokens(text: str) -> int:
    """Rough token estimate (four characters per token)."""
    return math.ceil(len(text) / 4)

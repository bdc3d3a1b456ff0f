"""Cosine-similarity ranking of embedded chunks against a query."""

from __future__ import annotations

from math import sqrt

from rag_router.config import RetrievalConfig
from rag_router.ingest.embedder import EmbedFn
from rag_router.types import Chunk


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Dot product over the product of magnitudes.

    Returns 0.0 for empty, mismatched or zero-magnitude vectors; the result is
    clamped to [-1, 1] against floating-point drift.
    """
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(-1.0, min(1.0, numerator / (norm_a * norm_b)))


class SimilaritySearch:
    """Ranks chunks by similarity to one query embedding.

    Chunks without a vector are skipped. Ranking uses a stable sort, so
    equal scores keep the order in which chunks were passed in.
    """

    def __init__(self, embed: EmbedFn, config: RetrievalConfig | None = None) -> None:
        self._embed = embed
        self.config = config or RetrievalConfig()

    async def search(self, query: str, chunks: list[Chunk], top_k: int | None = None) -> list[Chunk]:
        return [chunk for chunk, _ in await self.search_scored(query, chunks, top_k)]

    async def search_scored(
        self, query: str, chunks: list[Chunk], top_k: int | None = None
    ) -> list[tuple[Chunk, float]]:
        limit = top_k if top_k is not None else self.config.top_k
        candidates = [chunk for chunk in chunks if chunk.embedding]
        if not candidates:
            return []

        query_embedding = await self._embed(query)
        scored = [
            (chunk, cosine_similarity(query_embedding, chunk.embedding or []))
            for chunk in candidates
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:limit]

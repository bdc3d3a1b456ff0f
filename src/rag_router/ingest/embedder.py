"""Deterministic baseline embedder and bounded-concurrency chunk embedding."""

from __future__ import annotations

import asyncio
from hashlib import blake2b
from math import sqrt
from typing import Awaitable, Callable

import structlog

from rag_router.config import EmbeddingConfig
from rag_router.ingest.chunker import estimate_tokens, normalize_whitespace
from rag_router.types import Chunk, ChunkStrategy

logger = structlog.get_logger(__name__)

EmbedFn = Callable[[str], Awaitable[list[float]]]


class HashingEmbedder:
    """Deterministic sparse-like embedding without external model calls.

    Used by the offline model service and by tests. In production the
    language-model service provides embeddings.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed_query(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = text.lower().split()
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


class ChunkEmbedder:
    """Turns chunk texts into `Chunk` records with embeddings.

    Chunks are embedded in batches of `batch_size`; calls inside a batch run
    concurrently and batches run one after another. A failed call degrades
    only its own chunk, which is returned without a vector.
    """

    def __init__(self, embed: EmbedFn, config: EmbeddingConfig | None = None) -> None:
        self._embed = embed
        self.config = config or EmbeddingConfig()

    async def embed_batch(
        self,
        chunks: list[str],
        source_id: str,
        strategy: ChunkStrategy = ChunkStrategy.SENTENCE,
    ) -> list[Chunk]:
        results: list[Chunk] = []
        total = len(chunks)
        size = self.config.batch_size

        for start in range(0, total, size):
            batch = chunks[start : start + size]
            built = await asyncio.gather(
                *(
                    self._embed_one(content, source_id, start + offset, total, strategy)
                    for offset, content in enumerate(batch)
                )
            )
            results.extend(built)

        failed = sum(1 for chunk in results if chunk.embedding is None)
        logger.info(
            "chunks_embedded",
            source_id=source_id,
            total=total,
            failed=failed,
            strategy=strategy.value,
        )
        return results

    async def _embed_one(
        self,
        content: str,
        source_id: str,
        index: int,
        total: int,
        strategy: ChunkStrategy,
    ) -> Chunk:
        embedding: list[float] | None
        try:
            embedding = await self._embed(normalize_whitespace(content))
        except Exception as exc:
            logger.warning(
                "chunk_embedding_failed",
                source_id=source_id,
                chunk_index=index,
                error=str(exc),
            )
            embedding = None

        return Chunk(
            chunk_id=f"{source_id}-{index}",
            content=content,
            source_id=source_id,
            index=index,
            total_count=total,
            strategy=strategy,
            approx_token_count=estimate_tokens(content),
            embedding=embedding or None,
        )

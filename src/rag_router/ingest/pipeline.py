"""Document processing pipeline: detect strategy -> chunk -> embed."""

from __future__ import annotations

import structlog

from rag_router.ingest.chunker import TextChunker
from rag_router.ingest.embedder import ChunkEmbedder
from rag_router.types import TABULAR_FILE_TYPES, Chunk

logger = structlog.get_logger(__name__)


class IngestPipeline:
    """Coordinates the chunker and chunk embedder for one document at a time.

    Tabular sources use the smaller window configured for record formats;
    everything else uses the default window.
    """

    def __init__(self, chunker: TextChunker, embedder: ChunkEmbedder) -> None:
        self._chunker = chunker
        self._embedder = embedder

    async def process_document(self, content: str, source_id: str, file_type: str) -> list[Chunk]:
        strategy = self._chunker.detect_strategy(content, file_type)
        config = self._chunker.config
        if file_type.lower() in TABULAR_FILE_TYPES:
            max_size, overlap = config.tabular_max_size, config.tabular_overlap
        else:
            max_size, overlap = config.max_size, config.overlap

        texts = self._chunker.chunk(content, max_size=max_size, overlap=overlap, strategy=strategy)
        logger.info(
            "document_chunked",
            source_id=source_id,
            strategy=strategy.value,
            chunk_count=len(texts),
        )
        return await self._embedder.embed_batch(texts, source_id, strategy)

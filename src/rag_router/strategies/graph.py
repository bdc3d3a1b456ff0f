"""Relational-graph strategy: answer from extracted relations, grow the graph cache."""

from __future__ import annotations

import asyncio
import json

import structlog

from rag_router.config import GraphConfig
from rag_router.graph.cache import GraphCacheStore
from rag_router.graph.extractor import RelationExtractor, extraction_from_payload
from rag_router.llm.service import DATA_SEPARATOR, LanguageModelService
from rag_router.strategies.base import Strategy, document_summary, file_citations
from rag_router.types import DocumentView, QueryContext, RetrievalResult

logger = structlog.get_logger(__name__)

NO_DATA_ANSWER = "No data uploaded yet. Please upload files to analyze relations."

_SYSTEM_PROMPT = """
You are a data analyst answering questions about relations in the user's data.

Rules:
1) Answer ONLY from the relations and data listed below.
2) Be direct: 3-5 sentences at most. Do not explain methods or give generic advice.
3) Describe the patterns you observe concisely; list relations as "A → relation → B".
4) If the listed relations do not contain the answer, say the data does not show it.
""".strip()

EXTRACTION_SYSTEM_PROMPT = """
You are a knowledge graph extractor. Return ONLY valid JSON with this shape:
{"entities": [{"name": "...", "type": "column|value|category"}],
 "relationships": [{"from": "...", "to": "...", "type": "has_value|belongs_to|relates_to"}]}
""".strip()


class RelationalGraphStrategy(Strategy):
    """Answers relationship questions from a bounded relation listing.

    Synthesis is awaited. Extraction into the session's graph cache runs as a
    separate background task whose failures are logged and never reach the
    answer; `drain` waits for outstanding extraction tasks.
    """

    name = "RelationalGraph"

    def __init__(
        self,
        *,
        model: LanguageModelService,
        extractor: RelationExtractor,
        cache_store: GraphCacheStore,
        config: GraphConfig | None = None,
    ) -> None:
        self.model = model
        self.extractor = extractor
        self.cache_store = cache_store
        self.config = config or GraphConfig()
        self._background: set[asyncio.Task[None]] = set()

    async def execute(self, query: str, context: QueryContext) -> RetrievalResult:
        documents = context.documents[: self.config.max_documents]
        if not documents:
            return RetrievalResult(
                answer=NO_DATA_ANSWER,
                trace="RelationalGraph: No files found in session",
            )

        relations = self.extractor.relation_lines(documents, limit=self.config.relation_listing_limit)
        data_block = "\n\n".join(
            document_summary(doc, sample_rows=self.config.sample_rows_in_prompt) for doc in documents
        )
        relation_block = "\n".join(relations) if relations else "(no relations could be derived)"

        if context.session_id:
            self._schedule_extraction(context.session_id, documents, data_block)

        answer = await self.model.generate(
            f"Question: {query}",
            context=(
                f"{_SYSTEM_PROMPT}{DATA_SEPARATOR}"
                f"Relations:\n{relation_block}\n\nData:\n{data_block}"
            ),
        )
        return RetrievalResult(
            answer=answer,
            cited_sources=file_citations(documents),
            trace=(
                f"RelationalGraph: Analyzed {len(documents)} file(s) → "
                f"Found {len(relations)} relation(s) → Generated response"
            ),
        )

    async def drain(self) -> None:
        if self._background:
            await asyncio.gather(*self._background)

    def _schedule_extraction(
        self, session_id: str, documents: list[DocumentView], data_block: str
    ) -> None:
        task = asyncio.create_task(self._extract_and_merge(session_id, documents, data_block))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _extract_and_merge(
        self, session_id: str, documents: list[DocumentView], data_block: str
    ) -> None:
        try:
            extraction = self.extractor.extract(documents)
        except Exception as exc:
            logger.warning("relation_extraction_failed", session_id=session_id, error=str(exc))
            return

        if self.config.model_extraction:
            try:
                payload = await self.model.generate_structured(
                    "From this data, extract entity relationships:\n"
                    + data_block
                    + "\n\nKnown columns: "
                    + json.dumps(sorted({c for doc in documents for c in doc.columns})),
                    EXTRACTION_SYSTEM_PROMPT,
                )
                extraction.extend(extraction_from_payload(payload))
            except Exception as exc:
                logger.warning(
                    "model_relation_extraction_failed", session_id=session_id, error=str(exc)
                )

        if extraction.empty:
            return
        try:
            await self.cache_store.merge(session_id, extraction)
        except Exception as exc:
            logger.warning("graph_cache_merge_failed", session_id=session_id, error=str(exc))

"""Similarity-retrieval strategy: answer from document summaries and ranked passages."""

from __future__ import annotations

from rag_router.config import RetrievalConfig
from rag_router.llm.service import DATA_SEPARATOR, LanguageModelService
from rag_router.retrieval.similarity import SimilaritySearch
from rag_router.strategies.base import Strategy, document_summary, file_citations, truncate
from rag_router.types import QueryContext, RetrievalResult, SourceNode

NO_DOCUMENTS_ANSWER = "No documents found for this session. Please upload files first."

_SYSTEM_PROMPT = """
You are a retrieval assistant answering from the user's uploaded documents.

Rules:
1) Use ONLY the document summaries and passages listed below.
2) Answer concisely, in a few sentences.
3) If the information is not present, say explicitly that the documents do not contain it.
   Never fabricate facts, numbers, or sources.
""".strip()


class SimilarityRetrievalStrategy(Strategy):
    """Default, always-safe strategy.

    Builds a compact summary of every session document and, when documents
    carry embedded chunks, adds the top-ranked passages for the query.
    """

    name = "SimilarityRetrieval"

    def __init__(
        self,
        *,
        model: LanguageModelService,
        search: SimilaritySearch,
        config: RetrievalConfig | None = None,
        max_documents: int = 10,
    ) -> None:
        self.model = model
        self.search = search
        self.config = config or RetrievalConfig()
        self.max_documents = max_documents

    async def execute(self, query: str, context: QueryContext) -> RetrievalResult:
        documents = context.documents[: self.max_documents]
        if not documents:
            return RetrievalResult(
                answer=NO_DOCUMENTS_ANSWER,
                trace="SimilarityRetrieval: No documents found in session",
            )

        chunks = [chunk for doc in documents for chunk in doc.chunks]
        passages = await self.search.search_scored(query, chunks, top_k=self.config.top_k)

        sections = ["Documents:", "\n\n".join(document_summary(doc) for doc in documents)]
        if passages:
            sections.append("Relevant passages:")
            sections.extend(
                f"[{chunk.chunk_id}] {truncate(chunk.content, 800)}" for chunk, _ in passages
            )

        answer = await self.model.generate(
            f"Question: {query}",
            context=_SYSTEM_PROMPT + DATA_SEPARATOR + "\n".join(sections),
        )

        cited = file_citations(documents)
        cited.extend(
            SourceNode(
                id=chunk.chunk_id,
                excerpt=truncate(chunk.content.replace("\n", " "), self.config.excerpt_chars),
                kind="chunk",
                score=score,
            )
            for chunk, score in passages
        )
        return RetrievalResult(
            answer=answer,
            cited_sources=cited,
            trace=(
                f"SimilarityRetrieval: Summarized {len(documents)} document(s) → "
                f"Ranked {len(passages)} passage(s) → Synthesized answer"
            ),
        )

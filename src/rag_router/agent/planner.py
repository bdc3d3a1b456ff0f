"""Query orchestration: resolve the session view, route, answer, record a trace."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

import structlog

from rag_router.agent.fallback import DirectAnswerFallback
from rag_router.agent.registry import StrategyName, StrategyRegistry
from rag_router.agent.router import RagRouter
from rag_router.config import GraphConfig, RetrievalConfig, RouterConfig
from rag_router.graph.cache import GraphCacheStore
from rag_router.graph.extractor import RelationExtractor
from rag_router.llm.service import LanguageModelService
from rag_router.obs.tracing import Timer, TraceStore
from rag_router.retrieval.similarity import SimilaritySearch
from rag_router.sessions import DocumentRepository
from rag_router.strategies.agentic import AgenticStrategy
from rag_router.strategies.graph import RelationalGraphStrategy
from rag_router.strategies.similarity import SimilarityRetrievalStrategy
from rag_router.types import QueryContext

logger = structlog.get_logger(__name__)


def build_registry(
    model: LanguageModelService,
    *,
    cache_store: GraphCacheStore,
    extractor: RelationExtractor | None = None,
    graph_config: GraphConfig | None = None,
    retrieval_config: RetrievalConfig | None = None,
    router_config: RouterConfig | None = None,
) -> StrategyRegistry:
    """Wire the three executors; MultiModal shares the similarity executor."""
    graph_config = graph_config or GraphConfig()
    retrieval_config = retrieval_config or RetrievalConfig()
    similarity = SimilarityRetrievalStrategy(
        model=model,
        search=SimilaritySearch(model.embed, retrieval_config),
        config=retrieval_config,
        max_documents=graph_config.max_documents,
    )
    return StrategyRegistry(
        {
            StrategyName.RELATIONAL_GRAPH: RelationalGraphStrategy(
                model=model,
                extractor=extractor or RelationExtractor(),
                cache_store=cache_store,
                config=graph_config,
            ),
            StrategyName.SIMILARITY_RETRIEVAL: similarity,
            StrategyName.MULTI_MODAL: similarity,
            StrategyName.AGENTIC: AgenticStrategy(model=model, config=router_config),
        }
    )


class QueryPlanner:
    """High-level orchestrator wrapping the router with tracing and fallback."""

    def __init__(
        self,
        *,
        model: LanguageModelService,
        registry: StrategyRegistry,
        documents: DocumentRepository,
        trace_store: TraceStore,
        config: RouterConfig | None = None,
    ) -> None:
        self.model = model
        self.registry = registry
        self.documents = documents
        self.trace_store = trace_store
        self.config = config or RouterConfig()
        self.router = RagRouter(model=model, registry=registry)
        self.fallback = DirectAnswerFallback(router=self.router, model=model)

    async def invoke(self, question: str, *, session_id: str | None = None) -> dict[str, Any]:
        """Answer one question and persist its trace.

        Returns:
            A structured payload containing the answer, cited sources, routing
            decision, trace id, latency, and whether the latency target (<8s by
            default) has been satisfied.
        """
        context = QueryContext(
            session_id=session_id, documents=self.documents.list_documents(session_id)
        )
        with Timer() as timer:
            result = await self.fallback.answer(question, context)

        record = self.trace_store.create_record(
            session_id=session_id,
            question=question,
            answer=result.answer,
            strategy_used=result.strategy_used,
            rationale=result.rationale,
            reasoning_trace=result.trace,
            citations=[source.id for source in result.cited_sources],
            plan=result.plan,
            latency_ms=timer.elapsed_ms,
        )
        logger.info(
            "query_answered",
            trace_id=record.trace_id,
            session_id=session_id,
            strategy=result.strategy_used,
            latency_ms=round(record.latency_ms, 2),
        )

        return {
            "answer": result.answer,
            "cited_sources": [asdict(source) for source in result.cited_sources],
            "strategy_used": result.strategy_used,
            "rationale": result.rationale,
            "trace": result.trace,
            "plan": result.plan,
            "trace_id": record.trace_id,
            "latency_ms": record.latency_ms,
            "latency_target_met": record.latency_ms
            <= (self.config.target_latency_seconds * 1000.0),
        }

    async def drain(self) -> None:
        """Wait for background graph extraction started by earlier queries."""
        strategy = self.registry.get(StrategyName.RELATIONAL_GRAPH)
        if isinstance(strategy, RelationalGraphStrategy):
            await strategy.drain()

"""FastAPI entrypoint for document registration, routed queries, graph and trace endpoints."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from rag_router.agent.planner import QueryPlanner, build_registry
from rag_router.config import (
    ChunkingConfig,
    EmbeddingConfig,
    GraphConfig,
    RetrievalConfig,
    RouterConfig,
    Settings,
    get_settings,
)
from rag_router.errors import GraphDatabaseUnavailable, LanguageModelError
from rag_router.graph.cache import InMemoryGraphCacheStore
from rag_router.graph.database import GraphDatabase, GraphPersistence, connect_graph_database
from rag_router.graph.visualization import build_visualization
from rag_router.ingest.chunker import TextChunker
from rag_router.ingest.embedder import ChunkEmbedder
from rag_router.ingest.pipeline import IngestPipeline
from rag_router.llm.deterministic import DeterministicModelService
from rag_router.llm.service import LanguageModelService, create_model_service
from rag_router.obs.logging import configure_logging
from rag_router.obs.tracing import TraceStore
from rag_router.retrieval.similarity import SimilaritySearch
from rag_router.sessions import InMemoryDocumentRepository
from rag_router.types import DocumentView

logger = structlog.get_logger(__name__)


class DocumentRequest(BaseModel):
    name: str = Field(min_length=1)
    document_id: str | None = None
    file_type: str = "text"
    content: str = ""
    columns: list[str] = Field(default_factory=list)
    sample_rows: list[dict[str, Any]] = Field(default_factory=list)
    summary: str = ""


class QueryRequest(BaseModel):
    question: str = Field(min_length=1)
    session_id: str | None = None


class SourceSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    session_id: str
    top_k: int = Field(default=5, ge=1, le=20)


def create_app(
    *,
    settings: Settings | None = None,
    model: LanguageModelService | None = None,
    graph_database: GraphDatabase | None = None,
) -> FastAPI:
    """Build the application with its own in-memory session state."""
    settings = settings or get_settings()
    model = model or create_model_service(settings)
    graph_config = GraphConfig()
    retrieval_config = RetrievalConfig()

    documents = InMemoryDocumentRepository()
    cache_store = InMemoryGraphCacheStore(relationship_cap=graph_config.relationship_cap)
    trace_store = TraceStore()
    pipeline = IngestPipeline(
        TextChunker(ChunkingConfig()), ChunkEmbedder(model.embed, EmbeddingConfig())
    )
    search = SimilaritySearch(model.embed, retrieval_config)
    planner = QueryPlanner(
        model=model,
        registry=build_registry(
            model,
            cache_store=cache_store,
            graph_config=graph_config,
            retrieval_config=retrieval_config,
        ),
        documents=documents,
        trace_store=trace_store,
        config=RouterConfig(),
    )
    persistence = GraphPersistence(graph_database)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        configure_logging(settings)
        logger.info(
            "app_started",
            model_mode=_model_mode(model),
            graph_database_connected=persistence.connected,
        )
        yield
        await planner.drain()
        await persistence.close()

    app = FastAPI(title="RAG Router", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": not isinstance(model, DeterministicModelService),
            "model_mode": _model_mode(model),
            "graph_database_connected": persistence.connected,
            "trace_count": len(trace_store.list_recent(limit=1000)),
        }

    @app.post("/sessions/{session_id}/documents")
    async def register_document(session_id: str, request: DocumentRequest) -> dict[str, Any]:
        document_id = request.document_id or uuid.uuid4().hex[:12]
        try:
            chunks = await pipeline.process_document(request.content, document_id, request.file_type)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        documents.add_document(
            session_id,
            DocumentView(
                document_id=document_id,
                name=request.name,
                file_type=request.file_type,
                columns=request.columns,
                sample_rows=request.sample_rows,
                summary=request.summary or request.content[:600],
                chunks=chunks,
            ),
        )
        return {
            "document_id": document_id,
            "chunks_created": len(chunks),
            "chunks_embedded": sum(1 for chunk in chunks if chunk.searchable),
            "chunk_ids": [chunk.chunk_id for chunk in chunks],
        }

    @app.delete("/sessions/{session_id}")
    async def delete_session(session_id: str) -> dict[str, Any]:
        removed = documents.delete_session(session_id)
        await cache_store.purge(session_id)
        return {"documents_removed": removed}

    @app.post("/query")
    async def query(request: QueryRequest) -> dict[str, Any]:
        return await planner.invoke(request.question, session_id=request.session_id)

    @app.post("/sources/search")
    async def source_search(request: SourceSearchRequest) -> dict[str, Any]:
        chunks = [
            chunk
            for document in documents.list_documents(request.session_id)
            for chunk in document.chunks
        ]
        try:
            hits = await search.search_scored(request.query, chunks, top_k=request.top_k)
        except LanguageModelError as exc:
            logger.error("source_search_failed", session_id=request.session_id, error=str(exc))
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {
            "items": [
                {
                    "chunk_id": chunk.chunk_id,
                    "source_id": chunk.source_id,
                    "score": score,
                    "text": chunk.content,
                    "strategy": chunk.strategy.value,
                }
                for chunk, score in hits
            ]
        }

    @app.get("/sessions/{session_id}/graph")
    async def session_graph(session_id: str) -> dict[str, Any]:
        await planner.drain()
        cache = await cache_store.get(session_id)
        return build_visualization(documents.list_documents(session_id), cache)

    @app.post("/sessions/{session_id}/graph/persist")
    async def persist_graph(session_id: str) -> dict[str, Any]:
        await planner.drain()
        cache = await cache_store.get(session_id)
        if cache is None:
            raise HTTPException(status_code=404, detail=f"No graph cache for session: {session_id}")
        try:
            stats = await persistence.persist(cache)
        except GraphDatabaseUnavailable as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return asdict(stats)

    @app.get("/traces")
    async def traces(limit: int = 20) -> dict[str, Any]:
        records = [asdict(record) for record in trace_store.list_recent(limit=limit)]
        return {"items": records}

    @app.get("/traces/{trace_id}")
    async def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = trace_store.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    async def metrics() -> dict[str, Any]:
        return trace_store.summary()

    return app


def _model_mode(model: LanguageModelService) -> str:
    return "deterministic" if isinstance(model, DeterministicModelService) else "langchain"


def _default_app() -> FastAPI:
    settings = get_settings()
    return create_app(settings=settings, graph_database=connect_graph_database(settings))


app = _default_app()

"""RAG router package."""

from .config import ChunkingConfig, GraphConfig, RetrievalConfig, RouterConfig

__all__ = ["ChunkingConfig", "GraphConfig", "RetrievalConfig", "RouterConfig"]

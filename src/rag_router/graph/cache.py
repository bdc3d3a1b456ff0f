"""Per-session, size-capped graph cache with dedup/append merge semantics."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

import structlog

from rag_router.graph.extractor import Extraction
from rag_router.types import GraphEntity, GraphRelationship

logger = structlog.get_logger(__name__)

DEFAULT_RELATIONSHIP_CAP = 500


@dataclass(slots=True)
class GraphCache:
    """Advisory graph artifact for one session."""

    session_id: str
    entities: list[GraphEntity] = field(default_factory=list)
    relationships: list[GraphRelationship] = field(default_factory=list)
    updated_at: str = ""

    def copy(self) -> "GraphCache":
        return GraphCache(
            session_id=self.session_id,
            entities=list(self.entities),
            relationships=list(self.relationships),
            updated_at=self.updated_at,
        )


@dataclass(slots=True)
class MergeStats:
    entities_added: int
    relationships_appended: int
    relationships_dropped: int


def merge_extraction(
    cache: GraphCache, extraction: Extraction, *, cap: int = DEFAULT_RELATIONSHIP_CAP
) -> MergeStats:
    """Merge `extraction` into `cache` in place.

    Entities are deduplicated by exact name; the first category written for a
    name is kept. Relationships are appended as-is and the list is then cut to
    its most recent `cap` entries.
    """
    known = {entity.name for entity in cache.entities}
    added = 0
    for entity in extraction.entities:
        if entity.name in known:
            continue
        known.add(entity.name)
        cache.entities.append(entity)
        added += 1

    cache.relationships.extend(extraction.relationships)
    dropped = max(0, len(cache.relationships) - cap)
    if dropped:
        cache.relationships = cache.relationships[-cap:]
    cache.updated_at = datetime.now(timezone.utc).isoformat()

    return MergeStats(
        entities_added=added,
        relationships_appended=len(extraction.relationships),
        relationships_dropped=dropped,
    )


class GraphCacheStore(Protocol):
    """Storage contract for graph caches.

    `merge` must be atomic per session: two merges for one session never
    interleave their read and write.
    """

    async def get(self, session_id: str) -> GraphCache | None:
        """Return a snapshot of the session's cache, if any."""

    async def merge(self, session_id: str, extraction: Extraction) -> GraphCache:
        """Create or update the session's cache and return a snapshot."""

    async def purge(self, session_id: str) -> None:
        """Drop the session's cache."""


class InMemoryGraphCacheStore:
    """Process-local store; each session's merges are serialized by its own lock."""

    def __init__(self, relationship_cap: int = DEFAULT_RELATIONSHIP_CAP) -> None:
        self.relationship_cap = relationship_cap
        self._caches: dict[str, GraphCache] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def get(self, session_id: str) -> GraphCache | None:
        cache = self._caches.get(session_id)
        return cache.copy() if cache is not None else None

    async def merge(self, session_id: str, extraction: Extraction) -> GraphCache:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            cache = self._caches.get(session_id)
            created = cache is None
            if cache is None:
                cache = GraphCache(session_id=session_id)
                self._caches[session_id] = cache
            stats = merge_extraction(cache, extraction, cap=self.relationship_cap)
            logger.info(
                "graph_cache_merged",
                session_id=session_id,
                created=created,
                entities_added=stats.entities_added,
                relationships_appended=stats.relationships_appended,
                relationships_dropped=stats.relationships_dropped,
                entity_count=len(cache.entities),
                relationship_count=len(cache.relationships),
            )
            return cache.copy()

    async def purge(self, session_id: str) -> None:
        self._caches.pop(session_id, None)
        self._locks.pop(session_id, None)

    def session_ids(self) -> list[str]:
        return list(self._caches)

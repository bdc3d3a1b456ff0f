"""Graph database contract, adapters, and the cache-to-database persistence path."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from rag_router.config import Settings, get_settings
from rag_router.errors import GraphDatabaseUnavailable
from rag_router.graph.cache import GraphCache
from rag_router.types import GraphEntity, GraphRelationship

logger = structlog.get_logger(__name__)


class GraphDatabase(Protocol):
    """Idempotent graph writes keyed on `(name)` and `(source, target, kind)`."""

    async def upsert_entity(
        self, name: str, entity_type: str, properties: dict[str, Any] | None = None
    ) -> bool:
        """Create or update an entity node; return True when it was created."""

    async def upsert_relationship(self, source: str, target: str, kind: str) -> bool:
        """Create the relationship unless it exists; return True when created."""

    async def query_entities(self, limit: int = 100) -> list[GraphEntity]:
        """Return stored entities for visualization."""

    async def query_relationships(self, limit: int = 200) -> list[GraphRelationship]:
        """Return stored relationships for visualization."""

    async def close(self) -> None:
        """Release driver resources."""


class InMemoryGraphDatabase:
    """Deterministic graph database used for tests and local prototyping."""

    def __init__(self) -> None:
        self._entities: dict[str, GraphEntity] = {}
        self._properties: dict[str, dict[str, Any]] = {}
        self._relationships: dict[tuple[str, str, str], GraphRelationship] = {}

    async def upsert_entity(
        self, name: str, entity_type: str, properties: dict[str, Any] | None = None
    ) -> bool:
        created = name not in self._entities
        if created:
            self._entities[name] = GraphEntity(name=name, category=entity_type)
        self._properties.setdefault(name, {}).update(properties or {})
        return created

    async def upsert_relationship(self, source: str, target: str, kind: str) -> bool:
        if source not in self._entities or target not in self._entities:
            return False
        key = (source, target, relationship_label(kind))
        if key in self._relationships:
            return False
        self._relationships[key] = GraphRelationship(
            source=source, target=target, relation_kind=key[2]
        )
        return True

    async def query_entities(self, limit: int = 100) -> list[GraphEntity]:
        return list(self._entities.values())[:limit]

    async def query_relationships(self, limit: int = 200) -> list[GraphRelationship]:
        return list(self._relationships.values())[:limit]

    async def close(self) -> None:
        return None


class Neo4jGraphDatabase:
    """Neo4j adapter over the official async driver.

    Keeps the same contract as `InMemoryGraphDatabase` so it can be swapped in
    with no changes to callers.
    """

    def __init__(self, uri: str, user: str, password: str, *, database: str = "neo4j") -> None:
        try:
            from neo4j import AsyncGraphDatabase
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "Neo4j driver is not available. Install the `neo4j` extra."
            ) from exc

        self._driver = AsyncGraphDatabase.driver(uri, auth=(user, password))
        self._database = database

    async def upsert_entity(
        self, name: str, entity_type: str, properties: dict[str, Any] | None = None
    ) -> bool:
        result = await self._driver.execute_query(
            """
            MERGE (e:Entity {name: $name})
            ON CREATE SET e.type = $type, e.createdAt = datetime()
            ON MATCH SET e.updatedAt = datetime()
            SET e += $properties
            RETURN e
            """,
            {"name": name, "type": entity_type, "properties": properties or {}},
            database_=self._database,
        )
        return result.summary.counters.nodes_created > 0

    async def upsert_relationship(self, source: str, target: str, kind: str) -> bool:
        # Relationship types cannot be parameterized; the label is sanitized instead.
        result = await self._driver.execute_query(
            f"""
            MATCH (a:Entity {{name: $source}})
            MATCH (b:Entity {{name: $target}})
            MERGE (a)-[r:`{relationship_label(kind)}`]->(b)
            ON CREATE SET r.createdAt = datetime()
            RETURN r
            """,
            {"source": source, "target": target},
            database_=self._database,
        )
        return result.summary.counters.relationships_created > 0

    async def query_entities(self, limit: int = 100) -> list[GraphEntity]:
        result = await self._driver.execute_query(
            "MATCH (e:Entity) RETURN e.name AS name, e.type AS type LIMIT $limit",
            {"limit": limit},
            database_=self._database,
        )
        return [
            GraphEntity(name=str(record["name"]), category=str(record["type"] or "Entity"))
            for record in result.records
        ]

    async def query_relationships(self, limit: int = 200) -> list[GraphRelationship]:
        result = await self._driver.execute_query(
            "MATCH (a:Entity)-[r]->(b:Entity) "
            "RETURN a.name AS source, type(r) AS kind, b.name AS target LIMIT $limit",
            {"limit": limit},
            database_=self._database,
        )
        return [
            GraphRelationship(
                source=str(record["source"]),
                target=str(record["target"]),
                relation_kind=str(record["kind"]),
            )
            for record in result.records
        ]

    async def close(self) -> None:
        await self._driver.close()


@dataclass(slots=True)
class PersistStats:
    entities_created: int
    relationships_created: int


class GraphPersistence:
    """Pushes session graph caches into an optional graph database.

    The handle is either a connected `GraphDatabase` or `None`; every
    operation checks it and raises `GraphDatabaseUnavailable` when
    disconnected.
    """

    def __init__(self, database: GraphDatabase | None) -> None:
        self._database = database

    @property
    def connected(self) -> bool:
        return self._database is not None

    def _require(self) -> GraphDatabase:
        if self._database is None:
            raise GraphDatabaseUnavailable("Graph database is not configured")
        return self._database

    async def persist(self, cache: GraphCache) -> PersistStats:
        database = self._require()
        entities_created = 0
        relationships_created = 0
        for entity in cache.entities:
            if await database.upsert_entity(
                entity.name, entity.category, {"sessionId": cache.session_id}
            ):
                entities_created += 1
        for rel in cache.relationships:
            if await database.upsert_relationship(rel.source, rel.target, rel.relation_kind):
                relationships_created += 1

        logger.info(
            "graph_cache_persisted",
            session_id=cache.session_id,
            entities_created=entities_created,
            relationships_created=relationships_created,
        )
        return PersistStats(
            entities_created=entities_created, relationships_created=relationships_created
        )

    async def snapshot(
        self, *, entity_limit: int = 100, relationship_limit: int = 200
    ) -> tuple[list[GraphEntity], list[GraphRelationship]]:
        database = self._require()
        entities = await database.query_entities(limit=entity_limit)
        relationships = await database.query_relationships(limit=relationship_limit)
        return entities, relationships

    async def close(self) -> None:
        if self._database is not None:
            await self._database.close()


def relationship_label(kind: str) -> str:
    label = re.sub(r"\W+", "_", kind.strip().upper()).strip("_")
    return label or "RELATES_TO"


def connect_graph_database(settings: Settings | None = None) -> GraphDatabase | None:
    """Return a Neo4j handle when credentials are configured, else None."""
    settings = settings or get_settings()
    if not (settings.NEO4J_URI and settings.NEO4J_USER and settings.NEO4J_PASSWORD):
        logger.warning("graph_database_disabled", reason="Neo4j credentials not configured")
        return None
    try:
        database = Neo4jGraphDatabase(
            settings.NEO4J_URI, settings.NEO4J_USER, settings.NEO4J_PASSWORD
        )
    except RuntimeError as exc:
        logger.error("graph_database_unavailable", error=str(exc))
        return None
    logger.info("graph_database_connected", uri=settings.NEO4J_URI)
    return database

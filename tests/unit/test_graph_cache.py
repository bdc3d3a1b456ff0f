import asyncio

import pytest

from rag_router.graph.cache import GraphCache, InMemoryGraphCacheStore, merge_extraction
from rag_router.graph.extractor import Extraction
from rag_router.types import GraphEntity, GraphRelationship


def _extraction(
    names: list[str], category: str = "value", relationships: int = 0, tag: str = "r"
) -> Extraction:
    extraction = Extraction()
    for name in names:
        extraction.add_entity(name, category)
    extraction.relationships.extend(
        GraphRelationship(source=f"{tag}{i}", target="X", relation_kind="links")
        for i in range(relationships)
    )
    return extraction


def test_merge_deduplicates_entities_first_writer_wins() -> None:
    cache = GraphCache(session_id="s1")

    merge_extraction(cache, _extraction(["A", "B"], category="first"))
    stats = merge_extraction(cache, _extraction(["B", "C"], category="second"))

    assert [entity.name for entity in cache.entities] == ["A", "B", "C"]
    assert cache.entities[1] == GraphEntity(name="B", category="first")
    assert stats.entities_added == 1
    assert cache.updated_at


def test_merge_keeps_most_recent_relationships_up_to_cap() -> None:
    cache = GraphCache(session_id="s1")

    merge_extraction(cache, _extraction([], relationships=300, tag="old"), cap=500)
    stats = merge_extraction(cache, _extraction([], relationships=300, tag="new"), cap=500)

    assert len(cache.relationships) == 500
    assert stats.relationships_dropped == 100
    assert cache.relationships[0].source == "old100"
    assert cache.relationships[-1].source == "new299"


def test_merge_appends_duplicate_relationships() -> None:
    cache = GraphCache(session_id="s1")

    merge_extraction(cache, _extraction([], relationships=1))
    merge_extraction(cache, _extraction([], relationships=1))

    assert len(cache.relationships) == 2


@pytest.mark.asyncio
async def test_store_returns_snapshots_and_purges() -> None:
    store = InMemoryGraphCacheStore()

    assert await store.get("s1") is None
    snapshot = await store.merge("s1", _extraction(["A"]))
    snapshot.entities.append(GraphEntity(name="Z", category="value"))

    cache = await store.get("s1")
    assert cache is not None
    assert [entity.name for entity in cache.entities] == ["A"]
    assert store.session_ids() == ["s1"]

    await store.purge("s1")
    assert await store.get("s1") is None


@pytest.mark.asyncio
async def test_concurrent_merges_for_one_session_lose_nothing() -> None:
    store = InMemoryGraphCacheStore(relationship_cap=500)

    await asyncio.gather(
        *(store.merge("s1", _extraction([f"E{i}"], relationships=2, tag=f"t{i}-")) for i in range(20))
    )

    cache = await store.get("s1")
    assert cache is not None
    assert len(cache.entities) == 20
    assert len(cache.relationships) == 40

import pytest

from rag_router.config import RetrievalConfig
from rag_router.retrieval.similarity import SimilaritySearch, cosine_similarity
from rag_router.types import Chunk, ChunkStrategy


def _chunk(index: int, embedding: list[float] | None) -> Chunk:
    return Chunk(
        chunk_id=f"doc-{index}",
        content=f"passage {index}",
        source_id="doc",
        index=index,
        total_count=5,
        strategy=ChunkStrategy.SENTENCE,
        approx_token_count=3,
        embedding=embedding,
    )


class _FixedQueryEmbed:
    def __init__(self, vector: list[float]) -> None:
        self.vector = vector
        self.calls = 0

    async def __call__(self, text: str) -> list[float]:
        self.calls += 1
        return self.vector


def test_cosine_similarity_bounds_and_degenerate_inputs() -> None:
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_similarity([], []) == 0.0
    assert -1.0 <= cosine_similarity([0.3, -0.7, 2.0], [5.0, 0.1, -0.2]) <= 1.0


@pytest.mark.asyncio
async def test_search_orders_by_similarity_with_stable_ties() -> None:
    chunks = [
        _chunk(0, [0.0, 1.0]),
        _chunk(1, [1.0, 0.0]),
        _chunk(2, None),
        _chunk(3, [0.7, 0.7]),
        _chunk(4, [2.0, 0.0]),
    ]
    search = SimilaritySearch(_FixedQueryEmbed([1.0, 0.0]), RetrievalConfig(top_k=5))

    ranked = await search.search("ledger", chunks)

    assert [chunk.chunk_id for chunk in ranked] == ["doc-1", "doc-4", "doc-3", "doc-0"]


@pytest.mark.asyncio
async def test_search_truncates_to_top_k_and_reports_scores() -> None:
    chunks = [_chunk(i, [1.0, float(i)]) for i in range(5)]
    search = SimilaritySearch(_FixedQueryEmbed([1.0, 0.0]))

    scored = await search.search_scored("ledger", chunks, top_k=2)

    assert [chunk.chunk_id for chunk, _ in scored] == ["doc-0", "doc-1"]
    assert scored[0][1] >= scored[1][1]


@pytest.mark.asyncio
async def test_search_without_embedded_chunks_skips_query_embedding() -> None:
    embed = _FixedQueryEmbed([1.0, 0.0])
    search = SimilaritySearch(embed)

    assert await search.search("ledger", [_chunk(0, None)]) == []
    assert embed.calls == 0


@pytest.mark.asyncio
async def test_explicit_zero_top_k_returns_nothing() -> None:
    chunks = [_chunk(i, [1.0, float(i)]) for i in range(3)]
    search = SimilaritySearch(_FixedQueryEmbed([1.0, 0.0]), RetrievalConfig(top_k=5))

    assert await search.search_scored("ledger", chunks, top_k=0) == []
    assert len(await search.search_scored("ledger", chunks)) == 3

import pytest

from rag_router.agent.registry import StrategyName, StrategyRegistry
from rag_router.strategies.base import Strategy
from rag_router.types import QueryContext, RetrievalResult


class _Echo(Strategy):
    def __init__(self, label: str) -> None:
        self.label = label

    async def execute(self, query: str, context: QueryContext) -> RetrievalResult:
        return RetrievalResult(answer=self.label)


def _handlers() -> dict[StrategyName, Strategy]:
    return {name: _Echo(name.value) for name in StrategyName}


def test_registry_requires_every_strategy() -> None:
    handlers = _handlers()
    del handlers[StrategyName.AGENTIC]

    with pytest.raises(ValueError, match="Agentic"):
        StrategyRegistry(handlers)


def test_registry_resolves_names_and_aliases() -> None:
    registry = StrategyRegistry(_handlers())

    assert registry.resolve("RelationalGraph")[0] is StrategyName.RELATIONAL_GRAPH
    assert registry.resolve("GraphRAG")[0] is StrategyName.RELATIONAL_GRAPH
    assert registry.resolve("advanced")[0] is StrategyName.SIMILARITY_RETRIEVAL
    assert registry.resolve("multi-modal")[0] is StrategyName.MULTI_MODAL
    assert registry.resolve(" agentic ")[0] is StrategyName.AGENTIC


def test_unknown_names_fall_back_to_default() -> None:
    registry = StrategyRegistry(_handlers())

    for raw in ("Quantum", "", None):
        name, strategy = registry.resolve(raw)
        assert name is StrategyName.SIMILARITY_RETRIEVAL
        assert strategy is registry.get(StrategyName.SIMILARITY_RETRIEVAL)

    assert StrategyName.parse("Quantum") is None
    assert len(registry.names()) == len(StrategyName)

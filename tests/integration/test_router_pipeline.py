from typing import Any

import pytest

from rag_router.agent.fallback import APOLOGY_ANSWER, answer_with_fallback
from rag_router.agent.planner import QueryPlanner, build_registry
from rag_router.agent.router import RagRouter
from rag_router.errors import RoutingError, StructuredOutputError
from rag_router.graph.cache import InMemoryGraphCacheStore
from rag_router.llm.deterministic import DeterministicModelService
from rag_router.obs.tracing import TraceStore
from rag_router.sessions import InMemoryDocumentRepository
from rag_router.types import DocumentView, QueryContext


class ScriptedModel:
    """Returns a fixed routing decision; generation can be made to fail."""

    def __init__(
        self,
        decision: dict[str, Any] | Exception,
        *,
        fail_generate: int = 0,
    ) -> None:
        self.decision = decision
        self.fail_generate = fail_generate
        self.generate_calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        return [1.0, float(len(text))]

    async def generate(self, prompt: str, context: str = "") -> str:
        self.generate_calls.append(prompt)
        if self.fail_generate:
            self.fail_generate -= 1
            raise RuntimeError("model unavailable")
        return f"answer to: {prompt}"

    async def generate_structured(self, prompt: str, system_instruction: str) -> dict[str, Any]:
        if '"relationships"' in system_instruction:
            return {"entities": [], "relationships": []}
        if isinstance(self.decision, Exception):
            raise self.decision
        return self.decision


def _decision(
    strategy: str, reasoning: str = "because", plan: list[str] | None = None
) -> dict[str, Any]:
    return {"strategy": strategy, "reasoning": reasoning, "plan": plan or []}


def _router(model: Any) -> RagRouter:
    return RagRouter(model=model, registry=build_registry(model, cache_store=InMemoryGraphCacheStore()))


def _context() -> QueryContext:
    return QueryContext(
        session_id="s1",
        documents=[
            DocumentView(
                document_id="products",
                name="products.csv",
                file_type="csv",
                columns=["id", "category"],
                sample_rows=[{"id": "P1", "category": "Books"}],
            )
        ],
    )


@pytest.mark.asyncio
async def test_router_trace_and_decision_annotation() -> None:
    model = ScriptedModel(_decision("RelationalGraph", "rows link products to categories"))

    result = await _router(model).route_and_execute("How are products related?", _context())

    assert result.strategy_used == "RelationalGraph"
    assert result.rationale == "rows link products to categories"
    assert result.trace.startswith(
        '[ROUTER] Decision: RelationalGraph because "rows link products to categories"\n'
        "RelationalGraph: "
    )


@pytest.mark.asyncio
async def test_unknown_strategy_falls_back_to_similarity_retrieval() -> None:
    model = ScriptedModel(_decision("QuantumRAG"))

    result = await _router(model).route_and_execute("Anything?", _context())

    assert result.strategy_used == "SimilarityRetrieval"
    assert "SimilarityRetrieval: " in result.trace


@pytest.mark.asyncio
async def test_missing_or_empty_strategy_falls_back_to_similarity_retrieval() -> None:
    for decision in (
        {"reasoning": "no strategy given", "plan": []},
        {"strategy": None, "reasoning": "null strategy", "plan": []},
        {"strategy": "", "reasoning": "empty strategy", "plan": []},
    ):
        result = await _router(ScriptedModel(decision)).route_and_execute("Anything?", _context())

        assert result.strategy_used == "SimilarityRetrieval"
        assert result.rationale == decision["reasoning"]
        assert "\nSimilarityRetrieval: " in result.trace


@pytest.mark.asyncio
async def test_multimodal_is_reported_but_runs_similarity_executor() -> None:
    model = ScriptedModel(_decision("MultiModal"))

    result = await _router(model).route_and_execute("Describe the image", _context())

    assert result.strategy_used == "MultiModal"
    assert "\nSimilarityRetrieval: " in result.trace


@pytest.mark.asyncio
async def test_router_passes_decision_plan_to_agentic_executor() -> None:
    model = ScriptedModel(_decision("Agentic", "multi step", ["Compare", "Calculate"]))

    result = await _router(model).route_and_execute("Compare then calculate", _context())

    assert result.strategy_used == "Agentic"
    assert result.plan == ["Compare", "Calculate"]


@pytest.mark.asyncio
async def test_malformed_decisions_raise_routing_error() -> None:
    for decision in (
        {"strategy": "Agentic"},
        {"strategy": "Agentic", "reasoning": "x", "plan": "step one"},
        StructuredOutputError("not json", raw="Graph, probably"),
    ):
        with pytest.raises(RoutingError):
            await _router(ScriptedModel(decision)).route_and_execute("Anything?", _context())


@pytest.mark.asyncio
async def test_deterministic_rules_route_compound_query_to_agentic() -> None:
    model = DeterministicModelService()

    result = await _router(model).route_and_execute("compare X and Y then calculate Z", _context())

    assert result.strategy_used == "Agentic"
    assert len(result.plan) >= 2


@pytest.mark.asyncio
async def test_fallback_answers_directly_when_routing_fails() -> None:
    model = ScriptedModel(StructuredOutputError("not json"))

    result = await answer_with_fallback(_router(model), model, "What is P1?", _context())

    assert result.strategy_used == "Direct"
    assert result.answer == "answer to: Answer this question: What is P1?"
    assert result.cited_sources == []


@pytest.mark.asyncio
async def test_fallback_apologizes_when_direct_generation_fails_too() -> None:
    model = ScriptedModel(_decision("SimilarityRetrieval"), fail_generate=2)

    result = await answer_with_fallback(_router(model), model, "What is P1?", _context())

    assert result.strategy_used == "Error"
    assert result.answer == APOLOGY_ANSWER
    assert len(model.generate_calls) == 2


@pytest.mark.asyncio
async def test_planner_records_trace_for_each_query() -> None:
    model = DeterministicModelService()
    documents = InMemoryDocumentRepository()
    for document in _context().documents:
        documents.add_document("s1", document)
    trace_store = TraceStore()
    planner = QueryPlanner(
        model=model,
        registry=build_registry(model, cache_store=InMemoryGraphCacheStore()),
        documents=documents,
        trace_store=trace_store,
    )

    payload = await planner.invoke("Which categories are linked to P1?", session_id="s1")
    await planner.drain()

    assert payload["strategy_used"] == "RelationalGraph"
    assert payload["cited_sources"][0]["id"] == "products"
    assert payload["latency_target_met"] is True
    record = trace_store.get(payload["trace_id"])
    assert record.citations == ["products"]
    assert record.reasoning_trace == payload["trace"]

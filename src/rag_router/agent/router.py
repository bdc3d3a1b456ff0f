"""Query router: classify once, dispatch to one strategy, annotate the result."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any

import structlog
from pydantic import ValidationError

from rag_router.agent.registry import StrategyName, StrategyRegistry
from rag_router.errors import RoutingError, StructuredOutputError
from rag_router.ingest.chunker import normalize_whitespace
from rag_router.llm.service import LanguageModelService
from rag_router.types import QueryContext, RoutedResult, RoutingDecision

logger = structlog.get_logger(__name__)

ROUTER_SYSTEM_PROMPT = """
You are the RAG Router, an expert judge of retrieval strategies.
Analyze the user's Query and the available File Metadata.

Decide the best strategy with these rules:
1. "RelationalGraph": the data or query involves relationships, ownership structures,
   hierarchies, "A implies B", or specific entities (companies, people) linked by actions.
2. "MultiModal": the inputs contain images, audio, or video files.
3. "SimilarityRetrieval": high-volume unstructured text retrieval or summarization
   (e.g. "Summarize this 100-page PDF").
4. "Agentic": the query demands a multi-step execution plan
   (e.g. "Compare X and Y, then calculate Z").

Output strictly in JSON format:
{
  "strategy": "RelationalGraph" | "SimilarityRetrieval" | "Agentic" | "MultiModal",
  "reasoning": "Brief explanation...",
  "plan": ["Step 1", "Step 2"]
}
""".strip()


class RagRouter:
    """Single entry point over the strategy executors.

    One request moves Idle → Classifying → Executing → Done with no retries.
    A malformed classifier response raises `RoutingError`; strategy failures
    propagate unchanged. Callers that need a guaranteed answer wrap this in
    `DirectAnswerFallback`.
    """

    def __init__(self, *, model: LanguageModelService, registry: StrategyRegistry) -> None:
        self.model = model
        self.registry = registry

    async def classify(self, query: str, descriptor: dict[str, Any]) -> RoutingDecision:
        prompt = (
            f'Query: "{normalize_whitespace(query)}"\n'
            f"File Metadata: {json.dumps(descriptor, ensure_ascii=False, default=str)}"
        )
        try:
            payload = await self.model.generate_structured(prompt, ROUTER_SYSTEM_PROMPT)
        except StructuredOutputError as exc:
            raise RoutingError(f"Classifier returned unparseable output: {exc}") from exc

        try:
            return RoutingDecision.model_validate(payload)
        except ValidationError as exc:
            raise RoutingError(f"Classifier returned a malformed decision: {exc}") from exc

    async def route_and_execute(self, query: str, context: QueryContext) -> RoutedResult:
        logger.info("routing_query", session_id=context.session_id, query_preview=query[:100])
        decision = await self.classify(query, context.describe())

        name, strategy = self.registry.resolve(decision.strategy)
        if StrategyName.parse(decision.strategy) is None:
            logger.warning(
                "unknown_strategy_fallback",
                requested=decision.strategy,
                fallback=name.value,
            )
        logger.info(
            "query_routed",
            strategy=name.value,
            reasoning=decision.reasoning,
            plan_steps=len(decision.plan),
        )

        result = await strategy.execute(query, replace(context, plan=list(decision.plan)))
        trace = f'[ROUTER] Decision: {name.value} because "{decision.reasoning}"\n{result.trace}'
        return RoutedResult.from_result(
            result,
            strategy_used=name.value,
            rationale=decision.reasoning,
            trace=trace,
        )

"""Direct-answer fallback applied when routing or strategy execution fails."""

from __future__ import annotations

import structlog

from rag_router.agent.router import RagRouter
from rag_router.llm.service import LanguageModelService
from rag_router.types import QueryContext, RoutedResult

logger = structlog.get_logger(__name__)

DIRECT_STRATEGY = "Direct"
ERROR_STRATEGY = "Error"
APOLOGY_ANSWER = (
    "I apologize, but I'm having trouble processing your request right now. "
    "Please check that the language model is configured correctly."
)


class DirectAnswerFallback:
    """Guarantees a complete `RoutedResult` for every query.

    The router runs first. If it raises, the question goes straight to the
    model without any routing (`strategy_used="Direct"`). If that also fails,
    a fixed apology is returned (`strategy_used="Error"`).
    """

    def __init__(self, *, router: RagRouter, model: LanguageModelService) -> None:
        self.router = router
        self.model = model

    async def answer(self, query: str, context: QueryContext) -> RoutedResult:
        try:
            return await self.router.route_and_execute(query, context)
        except Exception as exc:
            logger.error(
                "routing_failed",
                session_id=context.session_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return await self._direct(query, exc)

    async def _direct(self, query: str, cause: Exception) -> RoutedResult:
        try:
            answer = await self.model.generate(
                f"Answer this question: {query}", "You are a helpful AI assistant."
            )
        except Exception as exc:
            logger.error("direct_answer_failed", error_type=type(exc).__name__, error=str(exc))
            return RoutedResult(
                answer=APOLOGY_ANSWER,
                cited_sources=[],
                trace=f"Error: {cause}",
                plan=[],
                strategy_used=ERROR_STRATEGY,
                rationale=str(cause),
            )

        return RoutedResult(
            answer=answer,
            cited_sources=[],
            trace="Used fallback direct generation due to routing error.",
            plan=[],
            strategy_used=DIRECT_STRATEGY,
            rationale=str(cause),
        )


async def answer_with_fallback(
    router: RagRouter, model: LanguageModelService, query: str, context: QueryContext
) -> RoutedResult:
    return await DirectAnswerFallback(router=router, model=model).answer(query, context)

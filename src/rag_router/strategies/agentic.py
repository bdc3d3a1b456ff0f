"""Agentic strategy: execute a short ordered plan in one model call."""

from __future__ import annotations

from rag_router.config import RouterConfig
from rag_router.llm.service import DATA_SEPARATOR, LanguageModelService
from rag_router.strategies.base import Strategy, document_summary, file_citations
from rag_router.types import DocumentView, QueryContext, RetrievalResult

NO_DATA_VIEW = "No data has been uploaded for this session."


class AgenticStrategy(Strategy):
    name = "Agentic"

    def __init__(self, *, model: LanguageModelService, config: RouterConfig | None = None) -> None:
        self.model = model
        self.config = config or RouterConfig()

    async def execute(self, query: str, context: QueryContext) -> RetrievalResult:
        plan = [step for step in context.plan if step.strip()] or list(self.config.default_plan)
        document = representative_document(context.documents)
        data_view = document_summary(document) if document is not None else NO_DATA_VIEW

        system_prompt = (
            "You are an AI agent executing a multi-step plan.\n"
            f"Execution Plan: {' → '.join(plan)}\n\n"
            "Format response:\n"
            "## Steps Completed\n"
            "- Step 1: [brief result]\n"
            "- Step 2: [brief result]\n\n"
            "## Final Answer\n"
            "[Concise answer in 2-3 sentences]\n\n"
            "Report results only, not methodology. Keep the response under 200 words.\n"
            "If the data below lacks what a step needs, say the data does not contain it."
        )
        answer = await self.model.generate(
            f"Task: {query}\nExecute the plan and provide results.",
            context=system_prompt + DATA_SEPARATOR + data_view,
        )
        return RetrievalResult(
            answer=answer,
            cited_sources=file_citations([document]) if document is not None else [],
            trace=f"Agentic: {' → '.join(plan)} → Complete",
            plan=plan,
        )


def representative_document(documents: list[DocumentView]) -> DocumentView | None:
    """First tabular view with sample rows, else the first view."""
    for document in documents:
        if document.is_tabular and document.sample_rows:
            return document
    return documents[0] if documents else None

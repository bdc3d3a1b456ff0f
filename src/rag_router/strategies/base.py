"""Strategy executor contract and shared context-rendering helpers."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod

from rag_router.types import DocumentView, QueryContext, RetrievalResult, SourceNode


class Strategy(ABC):
    """One interchangeable query-answering algorithm."""

    name: str = "strategy"

    @abstractmethod
    async def execute(self, query: str, context: QueryContext) -> RetrievalResult:
        """Answer `query` from the session data in `context`."""


def file_citations(documents: list[DocumentView]) -> list[SourceNode]:
    return [SourceNode(id=doc.document_id, excerpt=doc.name, kind="file") for doc in documents]


def document_summary(
    document: DocumentView, *, sample_rows: int = 3, summary_chars: int = 600
) -> str:
    """Compact text rendering of one document view for prompt context."""
    lines = [f"File: {document.name} ({document.file_type})"]
    if document.columns:
        lines.append("Columns: " + ", ".join(document.columns))
    if document.summary:
        lines.append("Summary: " + truncate(document.summary, summary_chars))
    rows = document.sample_rows[:sample_rows]
    if rows:
        lines.append("Sample rows:")
        lines.extend(f"- {json.dumps(row, ensure_ascii=False, default=str)}" for row in rows)
    return "\n".join(lines)


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."

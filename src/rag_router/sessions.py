"""Session document views consumed by the router."""

from __future__ import annotations

from typing import Protocol

from rag_router.types import DocumentView


class DocumentRepository(Protocol):
    """Resolves the pre-extracted document views of a session."""

    def list_documents(self, session_id: str | None) -> list[DocumentView]:
        """Most recently added first."""

    def add_document(self, session_id: str, document: DocumentView) -> None:
        """Register a document view for a session."""


class InMemoryDocumentRepository:
    """Process-local session document store used by the API and tests."""

    def __init__(self) -> None:
        self._documents: dict[str, list[DocumentView]] = {}

    def list_documents(self, session_id: str | None) -> list[DocumentView]:
        if session_id is None:
            return []
        return list(reversed(self._documents.get(session_id, [])))

    def add_document(self, session_id: str, document: DocumentView) -> None:
        self._documents.setdefault(session_id, []).append(document)

    def delete_session(self, session_id: str) -> int:
        return len(self._documents.pop(session_id, []))

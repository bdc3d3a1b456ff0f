"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

TABULAR_FILE_TYPES = frozenset({"csv", "tsv", "json", "jsonl"})
MEDIA_FILE_TYPES = frozenset({"image", "audio", "video"})


class ChunkStrategy(str, Enum):
    FIXED = "fixed"
    SENTENCE = "sentence"
    SEMANTIC = "semantic"


@dataclass(frozen=True, slots=True)
class Chunk:
    """A bounded text segment plus optional embedding and positional metadata."""

    chunk_id: str
    content: str
    source_id: str
    index: int
    total_count: int
    strategy: ChunkStrategy
    approx_token_count: int
    embedding: list[float] | None = None

    @property
    def searchable(self) -> bool:
        return bool(self.embedding)


@dataclass(slots=True)
class SourceNode:
    """Provenance entry attached to an answer."""

    id: str
    excerpt: str
    kind: str
    score: float | None = None


@dataclass(slots=True)
class RetrievalResult:
    """Answer produced by one strategy executor for one query."""

    answer: str
    cited_sources: list[SourceNode] = field(default_factory=list)
    trace: str = ""
    plan: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RoutedResult:
    """A `RetrievalResult` annotated with the routing decision that produced it."""

    answer: str
    cited_sources: list[SourceNode]
    trace: str
    plan: list[str]
    strategy_used: str
    rationale: str

    @classmethod
    def from_result(
        cls, result: RetrievalResult, *, strategy_used: str, rationale: str, trace: str
    ) -> "RoutedResult":
        return cls(
            answer=result.answer,
            cited_sources=list(result.cited_sources),
            trace=trace,
            plan=list(result.plan),
            strategy_used=strategy_used,
            rationale=rationale,
        )


class RoutingDecision(BaseModel):
    """Fixed-shape decision object returned by the classifier.

    Extra keys are tolerated. A missing, null or empty strategy is left to the
    registry, which resolves it to the default arm; a missing or mistyped
    `reasoning` or `plan` is rejected.
    """

    model_config = ConfigDict(extra="ignore", strict=True)

    strategy: str | None = None
    reasoning: str
    plan: list[str]


@dataclass(frozen=True, slots=True)
class GraphEntity:
    name: str
    category: str


@dataclass(frozen=True, slots=True)
class GraphRelationship:
    source: str
    target: str
    relation_kind: str

    def as_line(self) -> str:
        return f"{self.source} → {self.relation_kind} → {self.target}"


@dataclass(slots=True)
class DocumentView:
    """Pre-extracted, per-session view of one uploaded document or table."""

    document_id: str
    name: str
    file_type: str = "text"
    columns: list[str] = field(default_factory=list)
    sample_rows: list[dict[str, Any]] = field(default_factory=list)
    summary: str = ""
    chunks: list[Chunk] = field(default_factory=list)

    @property
    def is_tabular(self) -> bool:
        return self.file_type.lower() in TABULAR_FILE_TYPES


@dataclass(slots=True)
class QueryContext:
    """Everything a strategy needs besides the query itself."""

    session_id: str | None = None
    documents: list[DocumentView] = field(default_factory=list)
    plan: list[str] = field(default_factory=list)

    def describe(self) -> dict[str, Any]:
        """Data-shape descriptor sent to the classifier."""
        file_types = sorted({doc.file_type.lower() for doc in self.documents})
        return {
            "fileCount": len(self.documents),
            "fileTypes": file_types,
            "hasRelationalData": any(doc.is_tabular for doc in self.documents),
            "hasMedia": any(ft in MEDIA_FILE_TYPES for ft in file_types),
            "files": [
                {"name": doc.name, "type": doc.file_type, "columns": doc.columns[:20]}
                for doc in self.documents
            ],
        }

"""Heuristic table-to-graph extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rag_router.errors import StructuredOutputError
from rag_router.types import DocumentView, GraphEntity, GraphRelationship


class SubjectColumnSelector(Protocol):
    """Chooses the column whose values act as the subject of each row."""

    def select(self, columns: list[str], sample_rows: list[dict[str, Any]]) -> str | None:
        """Return the subject column name, or None for a table without columns."""


class KeywordSubjectSelector:
    """Picks the first column whose name contains an identifying keyword.

    Falls back to the first column when no name matches.
    """

    keywords: tuple[str, ...] = ("id", "name", "title")

    def select(self, columns: list[str], sample_rows: list[dict[str, Any]]) -> str | None:
        del sample_rows
        for column in columns:
            lowered = column.lower()
            if any(keyword in lowered for keyword in self.keywords):
                return column
        return columns[0] if columns else None


@dataclass(slots=True)
class Extraction:
    """Entities and relationships produced from one or more tables."""

    entities: list[GraphEntity] = field(default_factory=list)
    relationships: list[GraphRelationship] = field(default_factory=list)

    def add_entity(self, name: str, category: str) -> None:
        if any(entity.name == name for entity in self.entities):
            return
        self.entities.append(GraphEntity(name=name, category=category))

    def extend(self, other: "Extraction") -> None:
        for entity in other.entities:
            self.add_entity(entity.name, entity.category)
        self.relationships.extend(other.relationships)

    @property
    def empty(self) -> bool:
        return not self.entities and not self.relationships


class RelationExtractor:
    """Derives entity/relationship triples from tabular samples.

    For each sample row the subject cell becomes an entity, and every
    non-empty attribute cell yields a value entity plus a relationship whose
    kind is the attribute column name. Tables without sample rows produce a
    coarser `file -[contains]-> column` listing instead.
    """

    def __init__(self, selector: SubjectColumnSelector | None = None) -> None:
        self.selector = selector or KeywordSubjectSelector()

    def extract(self, documents: list[DocumentView]) -> Extraction:
        combined = Extraction()
        for document in documents:
            combined.extend(self.extract_table(document))
        return combined

    def extract_table(self, document: DocumentView) -> Extraction:
        columns = _columns_of(document)
        if not document.sample_rows:
            return self._file_level(document.name, columns)

        extraction = Extraction()
        subject = self.selector.select(columns, document.sample_rows)
        if subject is None:
            return extraction

        for row in document.sample_rows:
            subject_value = _cell_text(row.get(subject))
            if not subject_value:
                continue
            extraction.add_entity(subject_value, subject)
            for column in columns:
                if column == subject:
                    continue
                value = _cell_text(row.get(column))
                if not value:
                    continue
                extraction.add_entity(value, column)
                extraction.relationships.append(
                    GraphRelationship(source=subject_value, target=value, relation_kind=column)
                )
        return extraction

    def relation_lines(self, documents: list[DocumentView], limit: int = 50) -> list[str]:
        """Deduplicated `A → kind → B` lines, at most `limit` of them."""
        lines: list[str] = []
        seen: set[str] = set()
        for document in documents:
            for relationship in self.extract_table(document).relationships:
                line = relationship.as_line()
                if line in seen:
                    continue
                seen.add(line)
                lines.append(line)
                if len(lines) >= limit:
                    return lines
        return lines

    @staticmethod
    def _file_level(file_name: str, columns: list[str]) -> Extraction:
        extraction = Extraction()
        if not columns:
            return extraction
        extraction.add_entity(file_name, "file")
        for column in columns:
            extraction.add_entity(column, "column")
            extraction.relationships.append(
                GraphRelationship(source=file_name, target=column, relation_kind="contains")
            )
        return extraction


class _EntityPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    type: str = "entity"


class _RelationshipPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source: str = Field(alias="from", min_length=1)
    target: str = Field(alias="to", min_length=1)
    type: str = "relates_to"


class _ExtractionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    entities: list[_EntityPayload] = Field(default_factory=list)
    relationships: list[_RelationshipPayload] = Field(default_factory=list)


def extraction_from_payload(payload: dict[str, Any]) -> Extraction:
    """Validate a model-produced `{"entities": [...], "relationships": [...]}` object."""
    try:
        parsed = _ExtractionPayload.model_validate(payload)
    except ValidationError as exc:
        raise StructuredOutputError(f"Malformed extraction payload: {exc}") from exc

    extraction = Extraction()
    for entity in parsed.entities:
        extraction.add_entity(entity.name.strip(), entity.type)
    for rel in parsed.relationships:
        extraction.relationships.append(
            GraphRelationship(
                source=rel.source.strip(), target=rel.target.strip(), relation_kind=rel.type
            )
        )
    return extraction


def _columns_of(document: DocumentView) -> list[str]:
    if document.columns:
        return list(document.columns)
    if document.sample_rows:
        return list(document.sample_rows[0].keys())
    return []


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()

"""Node/link payloads for rendering a session's documents and graph cache."""

from __future__ import annotations

import re
from typing import Any

from rag_router.graph.cache import GraphCache
from rag_router.types import DocumentView


def build_visualization(
    documents: list[DocumentView], cache: GraphCache | None
) -> dict[str, list[dict[str, Any]]]:
    """Files link to their columns; cached entities and relationships are overlaid.

    Relationship endpoints that were never registered as entities still get a
    node so every link resolves.
    """
    nodes: list[dict[str, Any]] = []
    links: list[dict[str, Any]] = []
    node_ids: set[str] = set()

    def _add_node(node_id: str, name: str, node_type: str, size: int, **extra: Any) -> None:
        if node_id in node_ids:
            return
        node_ids.add(node_id)
        nodes.append({"id": node_id, "name": name, "type": node_type, "val": size, **extra})

    for document in documents:
        file_id = f"file-{document.document_id}"
        _add_node(file_id, document.name, "file", 12, fileType=document.file_type)
        for column in document.columns:
            column_id = _entity_id(column)
            _add_node(column_id, column, "entity", 6)
            links.append({"source": file_id, "target": column_id, "label": "contains"})

    if cache is not None:
        for entity in cache.entities:
            _add_node(_entity_id(entity.name), entity.name, entity.category or "entity", 6)
        for rel in cache.relationships:
            source_id = _entity_id(rel.source)
            target_id = _entity_id(rel.target)
            _add_node(source_id, rel.source, "entity", 6)
            _add_node(target_id, rel.target, "entity", 6)
            links.append({"source": source_id, "target": target_id, "label": rel.relation_kind})

    return {"nodes": nodes, "links": links}


def _entity_id(name: str) -> str:
    return "entity-" + re.sub(r"\s+", "-", name.lower())

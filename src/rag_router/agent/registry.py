"""Closed enumeration of strategies and the handler registry over it."""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum

from rag_router.strategies.base import Strategy


class StrategyName(str, Enum):
    RELATIONAL_GRAPH = "RelationalGraph"
    SIMILARITY_RETRIEVAL = "SimilarityRetrieval"
    AGENTIC = "Agentic"
    MULTI_MODAL = "MultiModal"

    @classmethod
    def default(cls) -> "StrategyName":
        return cls.SIMILARITY_RETRIEVAL

    @classmethod
    def parse(cls, raw: str | None) -> "StrategyName | None":
        """Map a classifier-supplied name onto a member, or None when unknown."""
        if not raw:
            return None
        key = re.sub(r"[\s_\-]+", "", raw).lower()
        return _ALIASES.get(key)


_ALIASES: dict[str, StrategyName] = {
    "relationalgraph": StrategyName.RELATIONAL_GRAPH,
    "graph": StrategyName.RELATIONAL_GRAPH,
    "graphrag": StrategyName.RELATIONAL_GRAPH,
    "similarityretrieval": StrategyName.SIMILARITY_RETRIEVAL,
    "similarity": StrategyName.SIMILARITY_RETRIEVAL,
    "advanced": StrategyName.SIMILARITY_RETRIEVAL,
    "vector": StrategyName.SIMILARITY_RETRIEVAL,
    "vectorrag": StrategyName.SIMILARITY_RETRIEVAL,
    "agentic": StrategyName.AGENTIC,
    "agenticrag": StrategyName.AGENTIC,
    "multimodal": StrategyName.MULTI_MODAL,
}


class StrategyRegistry:
    """Maps every `StrategyName` to exactly one executor.

    Construction fails when any member lacks a handler, so an unhandled
    strategy surfaces at startup rather than on the query path.
    """

    def __init__(self, handlers: Mapping[StrategyName, Strategy]) -> None:
        missing = [name.value for name in StrategyName if name not in handlers]
        if missing:
            raise ValueError(f"No strategy registered for: {', '.join(missing)}")
        self._handlers: dict[StrategyName, Strategy] = dict(handlers)

    def resolve(self, raw: str | None) -> tuple[StrategyName, Strategy]:
        """Return the named strategy, or the default arm for unknown names."""
        name = StrategyName.parse(raw) or StrategyName.default()
        return name, self._handlers[name]

    def get(self, name: StrategyName) -> Strategy:
        return self._handlers[name]

    def names(self) -> list[StrategyName]:
        return list(self._handlers)

"""Deterministic language-model service used when no external model is configured."""

from __future__ import annotations

import json
import re
from typing import Any

from rag_router.ingest.chunker import normalize_whitespace
from rag_router.ingest.embedder import HashingEmbedder
from rag_router.llm.service import DATA_SEPARATOR

_WORD = re.compile(r"\w+", flags=re.UNICODE)
_QUERY_LINE = re.compile(r'^Query:\s*"(?P<query>.*)"\s*$', flags=re.MULTILINE)
_QUESTION_LINE = re.compile(r"^(?:Question|Task):\s*(?P<query>.+)$", flags=re.MULTILINE)
_STEP_SPLIT = re.compile(r",?\s+(?:and\s+)?then\s+|;\s*", flags=re.IGNORECASE)

_COMPOUND = re.compile(r"\bthen\b|\bafter that\b|\bstep[- ]by[- ]step\b|\bfollowed by\b", re.IGNORECASE)
_GRAPH_TERMS = re.compile(
    r"\b(relation(ship)?s?|related|connect(ed|ion|ions)?|link(ed|s)?|owns?|owner(ship)?|"
    r"hierarch(y|ies|ical)|parent|child(ren)?|belongs? to|depends? on|network|graph)\b",
    re.IGNORECASE,
)
_STOPWORDS = frozenset(
    "the a an and or of to in on for is are was were what which who how why with "
    "from this that these those be by as at it its do does".split()
)

NOT_FOUND_ANSWER = "The provided data does not contain information to answer this question."


class DeterministicModelService:
    """Offline stand-in for the language-model service.

    - `embed` uses `HashingEmbedder`.
    - `generate` answers extractively with the context lines that share the
      most words with the question, or states that nothing was found.
    - `generate_structured` applies the routing rubric with keyword rules, and
      returns an empty graph for entity/relationship extraction requests.

    The response contract is identical to `LangChainModelService`, which keeps
    every strategy usable in local and test environments.
    """

    def __init__(self, embedder: HashingEmbedder | None = None, max_lines: int = 3) -> None:
        self.embedder = embedder or HashingEmbedder()
        self.max_lines = max_lines

    async def embed(self, text: str) -> list[float]:
        clean = normalize_whitespace(text)
        if not clean:
            return []
        return self.embedder.embed_query(clean)

    async def generate(self, prompt: str, context: str = "") -> str:
        question = _extract_question(prompt)
        query_terms = _terms(question)
        scored: list[tuple[int, int, str]] = []
        for position, line in enumerate(_context_lines(prompt, context)):
            overlap = len(query_terms & _terms(line))
            if overlap:
                scored.append((overlap, -position, line))

        if not scored:
            return NOT_FOUND_ANSWER
        scored.sort(reverse=True)
        best = [line for _, _, line in scored[: self.max_lines]]
        return "\n".join(f"- {line}" for line in best)

    async def generate_structured(
        self, prompt: str, system_instruction: str
    ) -> dict[str, Any]:
        if '"relationships"' in system_instruction:
            return {"entities": [], "relationships": []}
        return classify_by_rules(prompt)


def classify_by_rules(prompt: str) -> dict[str, Any]:
    """Keyword rendition of the routing rubric."""
    match = _QUERY_LINE.search(prompt)
    query = match.group("query") if match else prompt
    metadata = _metadata_block(prompt)

    if _COMPOUND.search(query):
        steps = [step.strip(" .?!") for step in _STEP_SPLIT.split(query) if step.strip(" .?!")]
        plan = [step[:1].upper() + step[1:] for step in steps]
        if len(plan) < 2:
            plan = ["Analyze", "Execute", "Synthesize"]
        else:
            plan.append("Synthesize results")
        return {
            "strategy": "Agentic",
            "reasoning": "Query asks for a compound task executed in sequence.",
            "plan": plan,
        }
    if _GRAPH_TERMS.search(query):
        return {
            "strategy": "RelationalGraph",
            "reasoning": "Query asks about relationships between entities.",
            "plan": ["Extract relations", "Answer from relations"],
        }
    if metadata.get("hasMedia"):
        return {
            "strategy": "MultiModal",
            "reasoning": "Session contains media inputs.",
            "plan": ["Describe media", "Answer"],
        }
    return {
        "strategy": "SimilarityRetrieval",
        "reasoning": "General retrieval over uploaded content.",
        "plan": ["Retrieve relevant passages", "Synthesize answer"],
    }


def _metadata_block(prompt: str) -> dict[str, Any]:
    _, sep, tail = prompt.partition("File Metadata:")
    if not sep:
        return {}
    try:
        payload = json.loads(tail.strip())
    except json.JSONDecodeError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _extract_question(prompt: str) -> str:
    match = _QUESTION_LINE.search(prompt)
    return match.group("query") if match else prompt


def _context_lines(prompt: str, context: str) -> list[str]:
    # Instructions precede a `---` separator; only the data below it is quoted.
    source = context or prompt
    _, sep, data = source.rpartition(DATA_SEPARATOR)
    block = data if sep else source
    lines: list[str] = []
    for line in block.splitlines():
        line = line.strip(" -\t")
        if line and not _QUESTION_LINE.match(line):
            lines.append(line)
    return lines


def _terms(text: str) -> set[str]:
    return {
        token.lower()
        for token in _WORD.findall(text)
        if len(token) > 1 and token.lower() not in _STOPWORDS
    }

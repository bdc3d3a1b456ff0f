"""Language-model service contract and the LangChain-backed implementation."""

from __future__ import annotations

import json
from typing import Any, Protocol

import structlog
from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.utils.json import parse_json_markdown

from rag_router.config import Settings, get_settings
from rag_router.errors import LanguageModelError, StructuredOutputError
from rag_router.ingest.chunker import normalize_whitespace

logger = structlog.get_logger(__name__)

# Separates instructions from quoted data inside a generation context.
DATA_SEPARATOR = "\n---\n"


class LanguageModelService(Protocol):
    """Narrow request/response contract the core consumes."""

    async def embed(self, text: str) -> list[float]:
        """Return a fixed-dimension embedding for whitespace-normalized text."""

    async def generate(self, prompt: str, context: str = "") -> str:
        """Free-form generation of an answer to `prompt` given `context`."""

    async def generate_structured(
        self, prompt: str, system_instruction: str
    ) -> dict[str, Any]:
        """Generate a JSON object whose shape is mandated by `system_instruction`.

        Raises:
            StructuredOutputError: if the response is not a JSON object.
        """


_GENERATE_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", "{context}"),
        ("human", "{task}"),
    ]
)

_STRUCTURED_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", "{instruction}"),
        ("human", "{task}"),
    ]
)


class LangChainModelService:
    """Wraps a LangChain chat model and embeddings model.

    Any `BaseChatModel` / `Embeddings` pair works; `from_settings` builds the
    OpenAI pair used in production.
    """

    def __init__(self, *, chat_model: Any, embeddings: Any) -> None:
        self.chat_model = chat_model
        self.embeddings = embeddings
        self._text_chain = _GENERATE_PROMPT | chat_model | StrOutputParser()
        self._json_prompt = _STRUCTURED_PROMPT | chat_model

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "LangChainModelService":
        settings = settings or get_settings()
        from langchain_openai import ChatOpenAI, OpenAIEmbeddings

        chat_model = ChatOpenAI(
            model=settings.OPENAI_MODEL,
            temperature=settings.LLM_TEMPERATURE,
            api_key=settings.OPENAI_API_KEY,
        )
        embeddings = OpenAIEmbeddings(
            model=settings.OPENAI_EMBEDDING_MODEL,
            api_key=settings.OPENAI_API_KEY,
        )
        return cls(chat_model=chat_model, embeddings=embeddings)

    async def embed(self, text: str) -> list[float]:
        clean = normalize_whitespace(text)
        if not clean:
            return []
        try:
            vector = await self.embeddings.aembed_query(clean)
        except Exception as exc:
            logger.error("embedding_failed", error=str(exc), text_preview=clean[:80])
            raise LanguageModelError(f"Embedding request failed: {exc}") from exc
        return [float(value) for value in vector]

    async def generate(self, prompt: str, context: str = "") -> str:
        try:
            return await self._text_chain.ainvoke({"context": context, "task": prompt})
        except Exception as exc:
            logger.error("generation_failed", error=str(exc))
            raise LanguageModelError(f"Generation request failed: {exc}") from exc

    async def generate_structured(
        self, prompt: str, system_instruction: str
    ) -> dict[str, Any]:
        try:
            message = await self._json_prompt.ainvoke(
                {"instruction": system_instruction, "task": prompt}
            )
        except Exception as exc:
            logger.error("structured_generation_failed", error=str(exc))
            raise LanguageModelError(f"Structured generation failed: {exc}") from exc
        return parse_json_object(str(getattr(message, "content", message)))


def parse_json_object(raw: str) -> dict[str, Any]:
    """Parse a model response into a JSON object, never guessing on failure.

    Markdown fences are stripped, but the body must be complete JSON: a
    truncated response is an error, not a partial object.
    """
    try:
        payload = parse_json_markdown(raw, parser=json.loads)
    except (json.JSONDecodeError, OutputParserException) as exc:
        raise StructuredOutputError(f"Response is not valid JSON: {exc}", raw=raw) from exc
    if not isinstance(payload, dict):
        raise StructuredOutputError("Response JSON is not an object", raw=raw)
    return payload


def create_model_service(settings: Settings | None = None) -> LanguageModelService:
    """Return the OpenAI-backed service when a key is configured, else the offline one."""
    settings = settings or get_settings()
    if settings.OPENAI_API_KEY:
        logger.info("model_service_selected", mode="langchain", model=settings.OPENAI_MODEL)
        return LangChainModelService.from_settings(settings)

    from rag_router.llm.deterministic import DeterministicModelService

    logger.warning("model_service_selected", mode="deterministic", reason="OPENAI_API_KEY not set")
    return DeterministicModelService()

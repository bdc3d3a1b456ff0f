"""Configuration models for the routing engine."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChunkingConfig(BaseModel):
    """Configures character-window, sentence and paragraph chunking."""

    max_size: int = Field(default=1000, ge=1)
    overlap: int = Field(default=100, ge=0)
    tabular_max_size: int = Field(default=500, ge=1)
    tabular_overlap: int = Field(default=50, ge=0)
    sentence_min_length: int = Field(default=2000, ge=0)
    overlap_ratio: float = Field(default=0.1, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingConfig":
        if self.overlap >= self.max_size:
            raise ValueError("overlap must be less than max_size")
        if self.tabular_overlap >= self.tabular_max_size:
            raise ValueError("tabular_overlap must be less than tabular_max_size")
        return self


class EmbeddingConfig(BaseModel):
    """Configures bounded-concurrency embedding generation."""

    batch_size: int = Field(default=5, ge=1)


class RetrievalConfig(BaseModel):
    """Configures similarity search."""

    top_k: int = Field(default=5, ge=1)
    excerpt_chars: int = Field(default=220, ge=20)


class GraphConfig(BaseModel):
    """Configures relation extraction and the per-session graph cache."""

    relationship_cap: int = Field(default=500, ge=1)
    relation_listing_limit: int = Field(default=50, ge=1)
    max_documents: int = Field(default=10, ge=1)
    sample_rows_in_prompt: int = Field(default=3, ge=0)
    model_extraction: bool = True


class RouterConfig(BaseModel):
    """Configures classification and the default agentic plan."""

    default_plan: list[str] = Field(
        default_factory=lambda: ["Analyze", "Execute", "Synthesize"]
    )
    target_latency_seconds: float = Field(default=8.0, gt=0.0)


class Environment(str, Enum):
    development = "development"
    production = "production"


class Settings(BaseSettings):
    """Environment settings loaded from variables and an optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENVIRONMENT: Environment = Environment.development
    LOG_LEVEL: str = "INFO"

    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    LLM_TEMPERATURE: float = 0.2

    NEO4J_URI: str = ""
    NEO4J_USER: str = ""
    NEO4J_PASSWORD: str = ""


@lru_cache
def get_settings() -> Settings:
    return Settings()

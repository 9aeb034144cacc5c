"""
NewsAI - Domain Models
=======================
Typed records shared by the ingestion pipeline, the retrieval engine,
the session store and the query orchestrator.

Vector-store rows and session-store documents are validated into these
models at the adapter boundary; the rest of the core never handles
free-form dicts.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Category(str, Enum):
    """Topical label assigned to every article at ingestion time."""

    WORLD = "world"
    POLITICS = "politics"
    TECHNOLOGY = "technology"
    BUSINESS = "business"
    SPORTS = "sports"
    CRYPTO = "crypto"
    AI_SCIENCE = "ai_science"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DocumentChunk(BaseModel):
    """One ingested article plus its embedding."""

    id: str
    title: str
    body: str
    source_url: str
    source_name: str
    published_at: datetime
    category: Category
    embedding: list[float] = Field(default_factory=list)

    @field_validator("published_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def embedding_text(self) -> str:
        """Text the embedding is computed from."""
        return f"{self.title}\n{self.body}"


class RetrievalResult(BaseModel):
    """A ranked passage returned for a single query. Never persisted."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    title: str
    body: str
    source_url: str
    source_name: str
    category: Category
    published_at: datetime

    @field_validator("published_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


Role = Literal["user", "bot"]


class Message(BaseModel):
    """An immutable chat message owned by one session."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    content: str
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class SessionSummary(BaseModel):
    """Dashboard row describing one session."""

    session_id: str
    title: str
    message_count: int
    last_message: str
    timestamp: datetime


class SourceRef(BaseModel):
    """Attribution for one passage used in an answer."""

    title: str
    url: str
    source: str
    category: Category | None = None
    score: float


class QueryAnswer(BaseModel):
    """Structured result of a successful query."""

    role: Literal["bot"] = "bot"
    content: str
    sources: list[SourceRef] = Field(default_factory=list)
    processing_time_ms: int | None = None

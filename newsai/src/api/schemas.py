"""
NewsAI - API Schemas
=====================
Request/response contracts for the HTTP surface.  Field names on the
wire are camelCase; Python attributes stay snake_case.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from newsai.src.core.models import Category, Message, QueryAnswer, SessionSummary


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Requests ───────────────────────────────────────────────────────────
# Fields are optional so a missing value reaches the orchestrator and
# comes back as a 400 ``InvalidRequest`` rather than a 422.

class QueryRequest(_CamelModel):
    session_id: str | None = None
    message: str | None = None


class ResetSessionRequest(_CamelModel):
    session_id: str | None = None


# ── Responses ──────────────────────────────────────────────────────────

class CreateSessionResponse(_CamelModel):
    session_id: str


class MessageOut(_CamelModel):
    role: str
    content: str
    timestamp: datetime

    @classmethod
    def from_message(cls, message: Message) -> MessageOut:
        return cls(role=message.role, content=message.content, timestamp=message.timestamp)


class SessionHistoryResponse(_CamelModel):
    session_id: str
    messages: list[MessageOut]


class ResetSessionResponse(_CamelModel):
    success: bool
    message: str = "Session reset successfully"


class SessionSummaryOut(_CamelModel):
    session_id: str
    title: str
    message_count: int
    last_message: str
    timestamp: datetime

    @classmethod
    def from_summary(cls, summary: SessionSummary) -> SessionSummaryOut:
        return cls(**summary.model_dump())


class SessionListResponse(_CamelModel):
    sessions: list[SessionSummaryOut]


class SourceOut(_CamelModel):
    title: str
    url: str
    source: str
    category: Category | None = None
    score: float


class QueryResponse(_CamelModel):
    role: str = "bot"
    content: str
    sources: list[SourceOut] = Field(default_factory=list)
    processing_time_ms: int | None = None

    @classmethod
    def from_answer(cls, answer: QueryAnswer) -> QueryResponse:
        return cls(role=answer.role, content=answer.content, sources=[SourceOut(**s.model_dump()) for s in answer.sources], processing_time_ms=answer.processing_time_ms)


class IngestResponse(_CamelModel):
    success: bool
    articles_ingested: int
    failed_sources: list[str] = Field(default_factory=list)


class CollectionStats(_CamelModel):
    table: str
    points_count: int


class StatsResponse(_CamelModel):
    success: bool
    stats: CollectionStats


class ErrorResponse(BaseModel):
    error: str

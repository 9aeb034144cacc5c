"""
NewsAI - Error Taxonomy
========================
Every failure the query pipeline can surface to a caller is one of the
classes below.  Each carries:

* ``public_message`` — safe to show to end users (no internals).
* ``status_code``    — the HTTP status the API layer maps it to.
* ``details``        — free-form context for logs only.

Hierarchy::

    NewsAIError
    ├── InvalidRequest            400
    ├── SessionNotFound           404
    ├── SessionStoreUnavailable   503
    ├── RetrievalUnavailable      503
    │   └── EmbeddingUnavailable  503
    ├── GenerationFailed          502
    └── IngestionPartialFailure   (reported, never fatal)
"""

from __future__ import annotations

from typing import Any

from newsai.config.prompt_templates import GENERIC_FAILURE_MESSAGE


class NewsAIError(Exception):
    """Base exception for all NewsAI errors."""

    status_code: int = 500
    public_message: str = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InvalidRequest(NewsAIError):
    """Missing or malformed input; the caller can fix it."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return self.message


class SessionNotFound(NewsAIError):
    """The session id is unknown or has expired."""

    status_code = 404
    public_message = "Session not found"

    def __init__(self, session_id: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["session_id"] = session_id
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}", details)


class SessionStoreUnavailable(NewsAIError):
    """The session database could not be reached."""

    status_code = 503


class RetrievalUnavailable(NewsAIError):
    """The vector index (or the embedding step in front of it) failed."""

    status_code = 503


class EmbeddingUnavailable(RetrievalUnavailable):
    """The embedding provider failed and fail-open is disabled."""


class GenerationFailed(NewsAIError):
    """Every generation attempt timed out or errored."""

    status_code = 502

    def __init__(self, message: str, attempts: int, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["attempts"] = attempts
        self.attempts = attempts
        super().__init__(message, details)


class IngestionPartialFailure(NewsAIError):
    """Some feeds could not be scraped; the rest were ingested."""

    def __init__(self, failed_sources: dict[str, str]) -> None:
        self.failed_sources = dict(failed_sources)
        super().__init__(f"{len(self.failed_sources)} feed source(s) failed", {"failed_sources": sorted(self.failed_sources)})

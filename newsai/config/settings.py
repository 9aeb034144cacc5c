"""
NewsAI - Centralized Configuration
===================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``
  with a clear error message.  The raw value is never exposed in repr,
  logs, or tracebacks.
- ``MONGO_URI`` is also ``SecretStr`` — connection strings contain
  credentials and must never leak into logs.
- ``ADMIN_KEY`` is optional.  When set, the admin HTTP routes require a
  matching ``X-Admin-Key`` header.

Retrieval & Generation
----------------------
``RETRIEVAL_STRATEGY`` selects between category-filtered search with a
general fallback (``category_fallback``) and plain similarity search
(``similarity``).  ``EMBEDDING_FAIL_OPEN`` decides whether an embedding
provider outage degrades to synthetic vectors or surfaces as an error.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required** — the app will refuse
    to start until they are provided.

    Attributes
    ----------
    LOG_LEVEL : str | None
        Overrides the level derived from ``ENV`` for every NewsAI logger.
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini + embeddings).  **Required.**
    MONGO_URI : SecretStr
        MongoDB connection string.  **Required.**
    SESSION_TTL_SECONDS : int
        Sliding inactivity window after which a session expires.
    EMBEDDING_DIMENSION : int
        Expected vector length; provider output of any other length is
        treated as a failure.
    EMBEDDING_FAIL_OPEN : bool
        Degrade to deterministic synthetic vectors on provider failure.
    EMBEDDING_CACHE_SIZE : int
        LRU entries kept for document and query embeddings (``0`` disables
        the cache).
    GENERATION_TIMEOUT_SECONDS : float
        Hard ceiling for one LLM attempt.
    GENERATION_MAX_ATTEMPTS : int
        Attempts (first try included) before ``GenerationFailed``.
    SEARCH_RESULTS_LIMIT : int
        Passages retrieved per query.
    HISTORY_FETCH_LIMIT : int
        Messages read back from the session store per query.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None

    # ── API Keys (REQUIRED — no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr
    ADMIN_KEY: SecretStr | None = None

    # ── MongoDB (REQUIRED — no default) ────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "newsai"
    MONGO_SESSION_COLLECTION: str = "sessions"
    SESSION_TTL_SECONDS: int = 24 * 3600

    # ── Embeddings ─────────────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    EMBEDDING_DIMENSION: int = 768
    EMBEDDING_BATCH_SIZE: int = 64
    EMBEDDING_FAIL_OPEN: bool = True
    EMBEDDING_CACHE_SIZE: int = 256

    # ── Generation ─────────────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.3
    GENERATION_TIMEOUT_SECONDS: float = 10.0
    GENERATION_MAX_ATTEMPTS: int = 3
    GENERATION_BACKOFF_BASE_SECONDS: float = 0.5
    GENERATION_BACKOFF_MAX_SECONDS: float = 4.0

    # ── LanceDB ────────────────────────────────────────────────────────
    LANCEDB_TABLE_NAME: str = "news_embeddings"

    # ── Retrieval ──────────────────────────────────────────────────────
    RETRIEVAL_STRATEGY: Literal["category_fallback", "similarity"] = "category_fallback"
    SEARCH_RESULTS_LIMIT: int = 5
    MIN_SIMILARITY_SCORE: float | None = None

    # ── Context Budget ─────────────────────────────────────────────────
    HISTORY_FETCH_LIMIT: int = 10
    CONTEXT_MAX_PASSAGES: int = 5
    CONTEXT_MAX_EXCERPT_CHARS: int = 800
    CONTEXT_MAX_HISTORY_TURNS: int = 5
    CONTEXT_MAX_HISTORY_CHARS: int = 500
    MAX_MESSAGE_CHARS: int = 2000

    # ── Ingestion ──────────────────────────────────────────────────────
    INGEST_ARTICLES_PER_CATEGORY: int = 15
    INGEST_MAX_ARTICLES: int = 200
    # Exclusive minimums: stored titles and bodies are longer than these.
    INGEST_MIN_TITLE_CHARS: int = 10
    INGEST_MIN_BODY_CHARS: int = 50
    INGEST_MAX_BODY_CHARS: int = 2000
    INGEST_REQUEST_TIMEOUT_SECONDS: float = 10.0
    INGEST_USER_AGENT: str = "NewsAI-Bot/1.0"

    # ── Concurrency ────────────────────────────────────────────────────
    MAX_WORKERS: int = 4

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("EMBEDDING_DIMENSION", "EMBEDDING_BATCH_SIZE", "SEARCH_RESULTS_LIMIT", "GENERATION_MAX_ATTEMPTS", "SESSION_TTL_SECONDS")
    @classmethod
    def _strictly_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be >= 1, got {v}")
        return v


    @field_validator("GENERATION_TIMEOUT_SECONDS")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"GENERATION_TIMEOUT_SECONDS must be > 0, got {v}")
        return v


    @field_validator("MIN_SIMILARITY_SCORE")
    @classmethod
    def _score_range(cls, v: float | None) -> float | None:
        if v is not None and not -1.0 <= v <= 1.0:
            raise ValueError(f"MIN_SIMILARITY_SCORE must be within [-1, 1], got {v}")
        return v


    @field_validator("MAX_WORKERS")
    @classmethod
    def _workers_range(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"MAX_WORKERS must be 1-16, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from newsai.config.settings import settings
settings = Settings()

"""
NewsAI - Query Orchestrator
============================
Top-level state machine for one chat query.

States
------
::

    VALIDATING → RETRIEVING → GENERATING → PERSISTING → DONE
         └────────────┴────────────┴──────→ ERRORED

1. **VALIDATING** — non-empty ``session_id`` / ``message``
   (``InvalidRequest``); session must exist (``SessionNotFound``).
2. **RETRIEVING** — vector search and history fetch run concurrently;
   the first failure is re-raised with its kind preserved.
3. **GENERATING** — context assembled; no passages → fixed
   "no matching articles" answer without an LLM call.  Otherwise the
   generator is called under a hard timeout, retried with exponential
   backoff, and ``GenerationFailed`` is raised once attempts run out.
4. **PERSISTING** — the user/bot pair is written with one atomic
   ``add_exchange``.  Failures are logged and swallowed: the caller
   already has an answer.  Nothing is written when generation fails.
5. **DONE** — ``QueryAnswer`` with sources and processing time.

The orchestrator holds no request-scoped state and is safe for
concurrent use.

Usage:
    orchestrator = QueryOrchestrator(retriever, session_store, generator)
    answer = await orchestrator.query(session_id, "Who won the NBA finals?")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import Enum

from newsai.config.prompt_templates import NO_MATCHING_ARTICLES_RESPONSE
from newsai.config.settings import settings
from newsai.src.core.context import ContextLimits, build_context
from newsai.src.core.errors import GenerationFailed, InvalidRequest, NewsAIError, RetrievalUnavailable, SessionNotFound, SessionStoreUnavailable
from newsai.src.core.generation import TextGenerator
from newsai.src.core.models import Message, QueryAnswer, SessionSummary
from newsai.src.core.retriever import RetrievalEngine
from newsai.src.database.session_store import MongoSessionStore
from newsai.src.utils.logger import get_logger

logger = get_logger(__name__)

# Default number of messages returned by the history endpoint.
_DEFAULT_HISTORY_PAGE = 50


class QueryState(str, Enum):
    VALIDATING = "validating"
    RETRIEVING = "retrieving"
    GENERATING = "generating"
    PERSISTING = "persisting"
    DONE = "done"
    ERRORED = "errored"


class QueryOrchestrator:
    """
    Orchestrates validate → retrieve ‖ history → generate → persist.

    Parameters
    ----------
    retriever
        ``RetrievalEngine``.
    session_store
        ``MongoSessionStore`` (or compatible).
    generator
        ``TextGenerator``.
    limits
        Context budget.  Defaults to ``ContextLimits.from_settings()``.
    search_limit, history_limit
        Passages / messages fetched per query.
    timeout, max_attempts, backoff_base, backoff_max
        Generation retry policy (seconds / count).  Explicit values are
        used as given; a zero timeout or attempt count raises ``ValueError``.
    sleep
        Awaitable sleep used between attempts.
    """

    __slots__ = ("_retriever", "_sessions", "_generator", "_limits", "_search_limit", "_history_limit", "_timeout", "_max_attempts", "_backoff_base", "_backoff_max", "_max_message_chars", "_sleep")

    def __init__(
        self,
        retriever: RetrievalEngine,
        session_store: MongoSessionStore,
        generator: TextGenerator,
        limits: ContextLimits | None = None,
        search_limit: int | None = None,
        history_limit: int | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        backoff_max: float | None = None,
        max_message_chars: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._retriever = retriever
        self._sessions = session_store
        self._generator = generator
        self._limits = limits or ContextLimits.from_settings()
        self._search_limit = settings.SEARCH_RESULTS_LIMIT if search_limit is None else search_limit
        self._history_limit = settings.HISTORY_FETCH_LIMIT if history_limit is None else history_limit
        self._timeout = settings.GENERATION_TIMEOUT_SECONDS if timeout is None else timeout
        self._max_attempts = settings.GENERATION_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self._backoff_base = settings.GENERATION_BACKOFF_BASE_SECONDS if backoff_base is None else backoff_base
        self._backoff_max = settings.GENERATION_BACKOFF_MAX_SECONDS if backoff_max is None else backoff_max
        self._max_message_chars = settings.MAX_MESSAGE_CHARS if max_message_chars is None else max_message_chars
        self._sleep = sleep

        if self._timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self._timeout}")
        for name, value in (("max_attempts", self._max_attempts), ("search_limit", self._search_limit), ("max_message_chars", self._max_message_chars)):
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")


    async def query(self, session_id: str, message: str) -> QueryAnswer:
        """
        Answer *message* within *session_id*.

        Raises
        ------
        InvalidRequest, SessionNotFound, SessionStoreUnavailable,
        RetrievalUnavailable, GenerationFailed
        """
        t_start = time.perf_counter()
        state = QueryState.VALIDATING

        try:
            # ── 1. Validate ───────────────────────────────────────────
            session_id, message = self._validate(session_id, message)
            if not await self._sessions.exists(session_id):
                raise SessionNotFound(session_id)

            # ── 2. Retrieve ‖ history ─────────────────────────────────
            state = QueryState.RETRIEVING
            t_retrieve = time.perf_counter()
            passages_or_exc, history_or_exc = await asyncio.gather(self._retriever.search(message, self._search_limit), self._sessions.get_history(session_id, self._history_limit), return_exceptions=True)
            passages = self._unwrap(passages_or_exc, RetrievalUnavailable, "Retrieval failed")
            history = self._unwrap(history_or_exc, SessionStoreUnavailable, "History fetch failed")
            retrieve_ms = (time.perf_counter() - t_retrieve) * 1000
            logger.info("[QUERY] %d passage(s), %d history message(s) in %.1fms", len(passages), len(history), retrieve_ms)

            # ── 3. Generate ───────────────────────────────────────────
            state = QueryState.GENERATING
            context = build_context(passages, history, message, self._limits, self._retriever.classify(message))
            t_llm = time.perf_counter()
            if context.has_passages:
                content = await self._generate(context.prompt)
            else:
                logger.warning("[QUERY] No matching articles, returning fallback answer.")
                content = NO_MATCHING_ARTICLES_RESPONSE
            llm_ms = (time.perf_counter() - t_llm) * 1000

            # ── 4. Persist (best effort) ──────────────────────────────
            state = QueryState.PERSISTING
            await self._persist(session_id, message, content)

        except NewsAIError as exc:
            logger.warning("[QUERY] %s -> %s: %s", state.value, QueryState.ERRORED.value, exc)
            raise

        # ── 5. Done ───────────────────────────────────────────────────
        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[QUERY] %s for session %s: total %.1fms (retrieve=%.1f, llm=%.1f)", QueryState.DONE.value, session_id, total_ms, retrieve_ms, llm_ms)
        return QueryAnswer(content=content, sources=context.sources, processing_time_ms=int(total_ms))

    # ══════════════════════════════════════════════════════════════════
    #  SESSION PASS-THROUGHS
    # ══════════════════════════════════════════════════════════════════

    async def create_session(self) -> str:
        return await self._sessions.create_session()


    async def get_session_history(self, session_id: str, limit: int = _DEFAULT_HISTORY_PAGE) -> list[Message]:
        session_id = self._require_session_id(session_id)
        if not await self._sessions.exists(session_id):
            raise SessionNotFound(session_id)
        return await self._sessions.get_history(session_id, limit)


    async def reset_session(self, session_id: str) -> bool:
        session_id = self._require_session_id(session_id)
        if not await self._sessions.exists(session_id):
            raise SessionNotFound(session_id)
        return await self._sessions.reset(session_id)


    async def list_sessions(self) -> list[SessionSummary]:
        return await self._sessions.list_sessions()

    # ══════════════════════════════════════════════════════════════════
    #  INTERNALS
    # ══════════════════════════════════════════════════════════════════

    def _validate(self, session_id: str | None, message: str | None) -> tuple[str, str]:
        session_id = self._require_session_id(session_id)
        if not isinstance(message, str) or not message.strip():
            raise InvalidRequest("Session ID and message are required", field="message")
        message = message.strip()
        if len(message) > self._max_message_chars:
            raise InvalidRequest(f"Message exceeds {self._max_message_chars} characters", field="message")
        return session_id, message


    @staticmethod
    def _require_session_id(session_id: str | None) -> str:
        if not isinstance(session_id, str) or not session_id.strip():
            raise InvalidRequest("Session ID is required", field="sessionId")
        return session_id.strip()


    @staticmethod
    def _unwrap(outcome: object, wrap_as: type[NewsAIError], message: str):
        """Return a gathered result, or raise the error it carries."""
        if isinstance(outcome, NewsAIError):
            raise outcome
        if isinstance(outcome, Exception):
            raise wrap_as(message, {"cause": type(outcome).__name__}) from outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


    async def _generate(self, prompt: str) -> str:
        last_error = "unknown"
        for attempt in range(self._max_attempts):
            try:
                text = await asyncio.wait_for(self._generator.generate(prompt), timeout=self._timeout)
                if text and text.strip():
                    if attempt:
                        logger.info("[GENERATION] Succeeded on attempt %d/%d", attempt + 1, self._max_attempts)
                    return text.strip()
                last_error = "empty response"
            except asyncio.TimeoutError:
                last_error = f"timeout after {self._timeout:.1f}s"
            except Exception as exc:
                last_error = f"{type(exc).__name__}: {exc}"

            logger.warning("[GENERATION] Attempt %d/%d failed: %s", attempt + 1, self._max_attempts, last_error)
            if attempt < self._max_attempts - 1:
                await self._sleep(min(self._backoff_base * (2 ** attempt), self._backoff_max))

        raise GenerationFailed(f"Generation failed after {self._max_attempts} attempt(s)", attempts=self._max_attempts, details={"last_error": last_error})


    async def _persist(self, session_id: str, user_content: str, bot_content: str) -> None:
        try:
            await self._sessions.add_exchange(session_id, user_content, bot_content)
        except Exception:
            logger.exception("[QUERY] Failed to persist exchange for session %s, answer still returned.", session_id)

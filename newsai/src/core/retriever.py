"""
NewsAI - Retrieval Engine
==========================
Turns a user question into a ranked list of news passages.

Strategies
----------
``CATEGORY_FALLBACK`` (default)
    1. Embed the query.
    2. Classify it against the ordered ``CATEGORY_KEYWORDS`` table.
    3. Category found → filtered search for ``2 × limit`` candidates.
       If that yields fewer than ``limit``, run an unfiltered search for
       ``limit`` and append unseen ids until ``limit`` is reached.
    4. No category → single unfiltered search for ``limit``.

``SIMILARITY``
    Always a single unfiltered search (step 4).

Either way the merged list is stable-sorted by descending score and,
if ``min_score`` is set, thresholded.

Failure semantics
-----------------
A vector-index failure raises ``RetrievalUnavailable``; an empty list
always means "nothing relevant", never "search failed".
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from enum import Enum

from newsai.config.prompt_templates import CATEGORY_KEYWORDS
from newsai.config.settings import settings
from newsai.src.core.embedding import EmbeddingGateway
from newsai.src.core.errors import InvalidRequest, RetrievalUnavailable
from newsai.src.core.models import Category, RetrievalResult
from newsai.src.database.vector_store import NewsVectorStore
from newsai.src.utils.logger import get_logger
from newsai.src.utils.text_utils import detect_category

logger = get_logger(__name__)

# Over-fetch factor for the category-filtered search.
_FILTERED_OVERFETCH = 2


class RetrievalStrategy(str, Enum):
    CATEGORY_FALLBACK = "category_fallback"
    SIMILARITY = "similarity"


def classify_query(query: str, keyword_table: Sequence[tuple[str, Sequence[str]]] = CATEGORY_KEYWORDS) -> Category | None:
    """Return the first category whose keywords occur in *query*, if any."""
    name = detect_category(query, keyword_table)
    return Category(name) if name is not None else None


class RetrievalEngine:
    """
    Category-aware semantic search over the news table.

    Parameters
    ----------
    gateway
        ``EmbeddingGateway`` used to embed the query.
    store
        ``NewsVectorStore`` (or anything exposing the same ``search``).
    strategy
        ``RetrievalStrategy``.  Defaults to ``settings.RETRIEVAL_STRATEGY``.
    min_score
        Optional similarity floor.  Defaults to ``settings.MIN_SIMILARITY_SCORE``.
    keyword_table
        Ordered ``(category, keywords)`` pairs.
    """

    __slots__ = ("_gateway", "_store", "_strategy", "_min_score", "_keyword_table")

    def __init__(self, gateway: EmbeddingGateway, store: NewsVectorStore, strategy: RetrievalStrategy | str | None = None, min_score: float | None = None, keyword_table: Sequence[tuple[str, Sequence[str]]] = CATEGORY_KEYWORDS) -> None:
        self._gateway = gateway
        self._store = store
        self._strategy = RetrievalStrategy(strategy or settings.RETRIEVAL_STRATEGY)
        self._min_score = settings.MIN_SIMILARITY_SCORE if min_score is None else min_score
        self._keyword_table = keyword_table


    @property
    def strategy(self) -> RetrievalStrategy:
        return self._strategy


    def classify(self, query: str) -> Category | None:
        return classify_query(query, self._keyword_table)


    async def search(self, query: str, limit: int) -> list[RetrievalResult]:
        """
        Return at most *limit* passages ordered by descending score.

        Raises
        ------
        InvalidRequest
            If *query* is blank or *limit* < 1.
        RetrievalUnavailable
            If embedding (fail-closed) or the vector index fails.
        """
        if not query or not query.strip():
            raise InvalidRequest("Query must not be empty", field="query")
        if limit < 1:
            raise InvalidRequest(f"limit must be >= 1, got {limit}", field="limit")

        t_start = time.perf_counter()
        vector = await self._gateway.embed_query(query)

        category = self.classify(query) if self._strategy is RetrievalStrategy.CATEGORY_FALLBACK else None

        if category is None:
            results = await self._nearest(vector, limit)
        else:
            results = await self._category_then_general(vector, limit, category)

        results = sorted(results, key=lambda r: r.score, reverse=True)
        if self._min_score is not None:
            results = [r for r in results if r.score >= self._min_score]

        logger.info("[RETRIEVAL] '%s' (category=%s) -> %d result(s) in %.1fms", query[:60], category.value if category else "general", len(results), (time.perf_counter() - t_start) * 1000)
        return results

    # ── Internals ──────────────────────────────────────────────────────

    async def _category_then_general(self, vector: list[float], limit: int, category: Category) -> list[RetrievalResult]:
        filtered = await self._nearest(vector, limit * _FILTERED_OVERFETCH, category)
        if len(filtered) >= limit:
            return filtered[:limit]

        logger.info("[RETRIEVAL] Only %d %s article(s), supplementing with general search.", len(filtered), category.value)
        general = await self._nearest(vector, limit)

        merged = list(filtered)
        seen = {r.id for r in merged}
        for hit in general:
            if len(merged) >= limit:
                break
            if hit.id not in seen:
                merged.append(hit)
                seen.add(hit.id)
        return merged


    async def _nearest(self, vector: list[float], limit: int, category: Category | None = None) -> list[RetrievalResult]:
        try:
            return await asyncio.to_thread(self._store.search, vector, limit, category)
        except Exception as exc:
            logger.error("[RETRIEVAL] Vector index search failed: %s", exc)
            raise RetrievalUnavailable("Vector index unavailable", {"category": category.value if category else None}) from exc

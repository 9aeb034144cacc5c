"""
NewsAI - Embedding Gateway
===========================
Thin async façade over a LangChain-compatible embedding model
(``GoogleGenerativeAIEmbeddings`` in production).

Responsibilities
----------------
• **Batching** — inputs are sent in slices of ``batch_size``.
• **Shape check** — every returned vector must have ``dimension`` entries.
• **Failure policy** — ``fail_open=True`` degrades to deterministic
  synthetic vectors so the pipeline stays structurally functional;
  ``fail_open=False`` raises ``EmbeddingUnavailable``.
• **Cache** — optional LRU keyed by (kind, text).  Purely an optimisation:
  ``clear_cache()`` can be called at any time.

The provider call is synchronous, so it runs in a worker thread and
never blocks the event loop.

Usage:
    gateway = EmbeddingGateway(embedder, dimension=768)
    vectors = await gateway.embed(["first text", "second text"])
    query_vec = await gateway.embed_query("latest football scores")
"""

from __future__ import annotations

import asyncio
import hashlib
import math
import random
from collections import OrderedDict
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from newsai.config.settings import settings
from newsai.src.core.errors import EmbeddingUnavailable
from newsai.src.utils.logger import get_logger

logger = get_logger(__name__)

Vector = list[float]

# Cache key prefixes; document and query vectors differ for the same text.
_DOCUMENT = "document"
_QUERY = "query"


# ── Embedder Protocol ─────────────────────────────────────────────────

@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


def synthetic_vector(text: str, dimension: int) -> Vector:
    """
    Deterministic unit vector derived from *text*.

    Used only as a degraded-mode stand-in when the provider is down;
    it carries no semantic meaning.
    """
    seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
    rng = random.Random(seed)
    raw = [rng.gauss(0.0, 1.0) for _ in range(dimension)]
    norm = math.sqrt(sum(x * x for x in raw)) or 1.0
    return [x / norm for x in raw]


class EmbeddingGateway:
    """
    Converts text into fixed-dimension vectors.

    Parameters
    ----------
    embedder
        Object satisfying the ``Embedder`` protocol.
    dimension
        Expected vector length.  Defaults to ``settings.EMBEDDING_DIMENSION``.
    batch_size
        Texts per provider call.  Defaults to ``settings.EMBEDDING_BATCH_SIZE``.
    fail_open
        Default failure policy.  Defaults to ``settings.EMBEDDING_FAIL_OPEN``.
    cache_size
        LRU capacity; ``0`` disables caching.
    """

    __slots__ = ("_embedder", "_dimension", "_batch_size", "_fail_open", "_cache", "_cache_size")

    def __init__(self, embedder: Embedder, dimension: int | None = None, batch_size: int | None = None, fail_open: bool | None = None, cache_size: int | None = None) -> None:
        self._embedder = embedder
        self._dimension = dimension or settings.EMBEDDING_DIMENSION
        self._batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
        self._fail_open = settings.EMBEDDING_FAIL_OPEN if fail_open is None else fail_open
        self._cache_size = settings.EMBEDDING_CACHE_SIZE if cache_size is None else cache_size
        self._cache: OrderedDict[tuple[str, str], Vector] = OrderedDict()


    @property
    def dimension(self) -> int:
        return self._dimension


    async def embed(self, texts: Sequence[str], fail_open: bool | None = None) -> list[Vector]:
        """
        Embed *texts* as documents, preserving order and count.

        Raises
        ------
        ValueError
            If any text is empty or blank.
        EmbeddingUnavailable
            If the provider fails and fail-open is disabled.
        """
        if any(not t or not t.strip() for t in texts):
            raise ValueError("Cannot embed empty text.")
        if not texts:
            return []

        use_fail_open = self._fail_open if fail_open is None else fail_open
        results: list[Vector | None] = [self._cache_get((_DOCUMENT, t)) for t in texts]
        missing = [i for i, vec in enumerate(results) if vec is None]

        if missing:
            logger.debug("[EMBED] %d text(s), %d cache hit(s).", len(texts), len(texts) - len(missing))

        for start in range(0, len(missing), self._batch_size):
            indexes = missing[start : start + self._batch_size]
            batch = [texts[i] for i in indexes]
            try:
                vectors = await asyncio.to_thread(self._embedder.embed_documents, batch)
                self._check_shape(vectors, len(batch))
            except Exception as exc:
                for i, vec in zip(indexes, self._degrade(exc, batch, use_fail_open)):
                    results[i] = vec
                continue

            for i, text, vec in zip(indexes, batch, vectors):
                vec = [float(x) for x in vec]
                results[i] = vec
                self._cache_put((_DOCUMENT, text), vec)

        return [vec for vec in results if vec is not None]


    async def embed_one(self, text: str, fail_open: bool | None = None) -> Vector:
        """Embed a single text as a document."""
        return (await self.embed([text], fail_open=fail_open))[0]


    async def embed_query(self, text: str, fail_open: bool | None = None) -> Vector:
        """
        Embed a search query.

        Goes through the provider's ``embed_query`` so retrieval-tuned
        models see the query task type.  Same cache, shape check and
        failure policy as ``embed``.
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text.")

        use_fail_open = self._fail_open if fail_open is None else fail_open
        cached = self._cache_get((_QUERY, text))
        if cached is not None:
            return cached

        try:
            vec = await asyncio.to_thread(self._embedder.embed_query, text)
            self._check_shape([vec], 1)
        except Exception as exc:
            return self._degrade(exc, [text], use_fail_open)[0]

        vec = [float(x) for x in vec]
        self._cache_put((_QUERY, text), vec)
        return vec


    def clear_cache(self) -> None:
        """Drop every cached vector."""
        self._cache.clear()


    def evict(self, text: str) -> None:
        """Drop the cached document and query vectors for *text*, if any."""
        self._cache.pop((_DOCUMENT, text), None)
        self._cache.pop((_QUERY, text), None)

    # ── Internals ──────────────────────────────────────────────────────

    def _degrade(self, exc: Exception, batch: list[str], fail_open: bool) -> list[Vector]:
        if not fail_open:
            logger.error("[EMBED] Provider failed for batch of %d: %s", len(batch), exc)
            raise EmbeddingUnavailable("Embedding provider failed", {"batch_size": len(batch)}) from exc
        logger.warning("[EMBED] Provider failed (%s), using %d synthetic vector(s).", type(exc).__name__, len(batch))
        return [synthetic_vector(text, self._dimension) for text in batch]


    def _check_shape(self, vectors: list[list[float]], expected_count: int) -> None:
        if len(vectors) != expected_count:
            raise ValueError(f"Provider returned {len(vectors)} vectors for {expected_count} inputs.")
        for vec in vectors:
            if len(vec) != self._dimension:
                raise ValueError(f"Provider returned a {len(vec)}-dim vector, expected {self._dimension}.")


    def _cache_get(self, key: tuple[str, str]) -> Vector | None:
        if not self._cache_size:
            return None
        vec = self._cache.get(key)
        if vec is not None:
            self._cache.move_to_end(key)
        return vec


    def _cache_put(self, key: tuple[str, str], vec: Vector) -> None:
        if not self._cache_size:
            return
        self._cache[key] = vec
        self._cache.move_to_end(key)
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

"""
NewsAI - NewsIngestionPipeline
===============================
Best-effort pipeline that scrapes RSS / Atom feeds, validates and
cleans each item, embeds it, and upserts it into the ``NewsVectorStore``.

Key design decisions:
    • **Dependency Injection** – receives ``EmbeddingGateway`` +
      ``NewsVectorStore`` (+ optional ``requests.Session``).
    • **Concurrency** – feeds are fetched in parallel via
      ``ThreadPoolExecutor`` (network-bound).  Items are then assembled
      in ``FEED_SOURCES`` order so per-category caps are deterministic.
    • **Partial failure** – one unreachable feed is logged and skipped;
      it never aborts the others.  ``strict=True`` raises
      ``IngestionPartialFailure`` *after* the healthy feeds are stored.
    • **Idempotent ids** – ``uuid5`` of the article link, so re-ingesting
      the same item overwrites instead of duplicating.
    • **No synthetic vectors** – embeddings are requested fail-closed;
      an embedding outage aborts the run before anything is written.

Usage:
    pipeline = NewsIngestionPipeline(gateway, store)
    summary  = await pipeline.run()
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import Counter
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from newsai.config.news_sources import FEED_SOURCES
from newsai.config.settings import settings
from newsai.src.core.embedding import EmbeddingGateway
from newsai.src.core.errors import IngestionPartialFailure
from newsai.src.core.models import Category, DocumentChunk
from newsai.src.database.vector_store import NewsVectorStore
from newsai.src.utils.logger import get_logger
from newsai.src.utils.text_utils import clean_text, truncate

logger = get_logger(__name__)

_ACCEPT_HEADER = "application/rss+xml, application/xml, text/xml"


def parse_published(value: str | None) -> datetime:
    """Parse RFC-822 (RSS) or ISO-8601 (Atom) dates; fall back to *now*."""
    if value:
        parsed: datetime | None = None
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                logger.debug("[INGEST] Unparseable date '%s', using now.", value)
        if parsed is not None:
            return parsed.astimezone(timezone.utc) if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def article_id(link: str | None, source_name: str, title: str) -> str:
    """Stable id for a feed item."""
    key = link or f"{source_name}:{title}"
    return str(uuid.uuid5(uuid.NAMESPACE_URL, key))


class NewsIngestionPipeline:
    """
    End-to-end feed ingestion: fetch → parse → validate → embed → upsert.

    Parameters
    ----------
    gateway
        ``EmbeddingGateway`` used fail-closed.
    store
        ``NewsVectorStore`` to upsert into.
    sources
        ``{category: [feed_url, ...]}``.  Defaults to ``FEED_SOURCES``.
    http
        ``requests.Session`` for fetching feeds.  Owned by the caller;
        without one, each ``scrape`` opens and closes its own.
    max_workers
        Parallel feed fetches.  Defaults to ``settings.MAX_WORKERS``.
    """

    def __init__(self, gateway: EmbeddingGateway, store: NewsVectorStore, sources: Mapping[str, Sequence[str]] | None = None, http: requests.Session | None = None, max_workers: int | None = None) -> None:
        self._gateway = gateway
        self._store = store
        self._sources = sources if sources is not None else FEED_SOURCES
        self._http = http
        self._max_workers = max_workers or settings.MAX_WORKERS

        self._per_category = settings.INGEST_ARTICLES_PER_CATEGORY
        self._max_total = settings.INGEST_MAX_ARTICLES
        self._min_title = settings.INGEST_MIN_TITLE_CHARS
        self._min_body = settings.INGEST_MIN_BODY_CHARS
        self._max_body = settings.INGEST_MAX_BODY_CHARS
        self._timeout = settings.INGEST_REQUEST_TIMEOUT_SECONDS

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    async def run(self, strict: bool = False) -> dict[str, Any]:
        """
        Execute the full ingestion pipeline.

        Returns
        -------
        dict
            Execution summary with keys ``total_sources``,
            ``failed_sources``, ``articles_scraped``, ``articles_stored``,
            ``by_category`` and ``elapsed_seconds``.

        Raises
        ------
        IngestionPartialFailure
            Only with ``strict=True``, after storing what succeeded.
        EmbeddingUnavailable
            If the embedding provider is down (nothing is stored).
        """
        t_start = time.perf_counter()
        total_sources = sum(len(urls) for urls in self._sources.values())
        logger.info("[INGEST] Starting news ingestion: %d feed(s) in %d categories.", total_sources, len(self._sources))

        articles, failed = await asyncio.to_thread(self.scrape)

        stored = 0
        if articles:
            t_embed = time.perf_counter()
            vectors = await self._gateway.embed([a.embedding_text for a in articles], fail_open=False)
            for article, vector in zip(articles, vectors):
                article.embedding = vector
            embed_ms = (time.perf_counter() - t_embed) * 1000

            stored = await asyncio.to_thread(self._store.upsert, articles)
            logger.info("[INGEST] Embedded %d article(s) in %.1fms.", len(articles), embed_ms)
        else:
            logger.warning("[INGEST] No articles were scraped!")

        by_category = dict(Counter(a.category.value for a in articles))
        summary = self._summary(total_sources, failed, len(articles), stored, by_category, time.perf_counter() - t_start)
        logger.info("[INGEST] Ingestion complete: %d stored, %d feed(s) failed, by category: %s", stored, len(failed), by_category)

        if failed:
            partial = IngestionPartialFailure(failed)
            logger.warning("[INGEST] %s", partial)
            if strict:
                raise partial
        return summary

    # ══════════════════════════════════════════════════════════════════
    #  SCRAPING
    # ══════════════════════════════════════════════════════════════════

    def scrape(self) -> tuple[list[DocumentChunk], dict[str, str]]:
        """
        Fetch every feed and collect valid articles under the caps.

        Returns
        -------
        tuple
            ``(articles, failed_sources)`` where ``failed_sources`` maps
            feed URL → error description.
        """
        jobs = [(category, url) for category, urls in self._sources.items() for url in urls]
        fetched: dict[str, list[DocumentChunk]] = {}
        failed: dict[str, str] = {}

        http = self._http or self._default_session()
        try:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                future_to_url = {pool.submit(self._fetch_feed, http, category, url): url for category, url in jobs}
                for future in as_completed(future_to_url):
                    url = future_to_url[future]
                    try:
                        fetched[url] = future.result()
                    except Exception as exc:
                        logger.error("[INGEST] Error scraping %s: %s", url, exc)
                        failed[url] = f"{type(exc).__name__}: {exc}"
        finally:
            if self._http is None:
                http.close()

        articles: list[DocumentChunk] = []
        seen: set[str] = set()
        for category, urls in self._sources.items():
            category_count = 0
            for url in urls:
                for item in fetched.get(url, []):
                    if category_count >= self._per_category or len(articles) >= self._max_total:
                        break
                    if item.id in seen:
                        continue
                    seen.add(item.id)
                    articles.append(item)
                    category_count += 1
            logger.info("[INGEST] Category %s: %d article(s) added", category, category_count)

        logger.info("[INGEST] Total articles scraped: %d", len(articles))
        return articles, failed


    def _fetch_feed(self, http: requests.Session, category: str, url: str) -> list[DocumentChunk]:
        logger.info("[INGEST] Fetching: %s", url)
        response = http.get(url, headers={"Accept": _ACCEPT_HEADER}, timeout=self._timeout)
        response.raise_for_status()
        items = self.parse_feed(response.text, category, url)
        logger.info("[INGEST] %d valid item(s) in %s", len(items), url)
        return items


    def parse_feed(self, xml: str, category: str, feed_url: str) -> list[DocumentChunk]:
        """
        Parse RSS ``<item>`` / Atom ``<entry>`` elements into articles.

        Items are kept only when the cleaned title is longer than
        ``INGEST_MIN_TITLE_CHARS`` and the body longer than
        ``INGEST_MIN_BODY_CHARS``; bodies are truncated to
        ``INGEST_MAX_BODY_CHARS``.
        """
        soup = BeautifulSoup(xml, "xml")
        source_name = urlparse(feed_url).hostname or feed_url
        cat = Category(category)

        articles: list[DocumentChunk] = []
        for item in soup.find_all(["item", "entry"]):
            title = clean_text(self._text(item, "title"))
            body = clean_text(self._text(item, "description", "summary", "content"))
            if len(title) <= self._min_title or len(body) <= self._min_body:
                logger.debug("[INGEST] Skipped short item: %.40s", title)
                continue

            link_tag = item.find("link")
            link = ""
            if link_tag is not None:
                link = link_tag.get_text(strip=True) or str(link_tag.get("href") or "")

            articles.append(
                DocumentChunk(
                    id=article_id(link or None, source_name, title),
                    title=title,
                    body=truncate(body, self._max_body),
                    source_url=link or feed_url,
                    source_name=source_name,
                    published_at=parse_published(self._text(item, "pubDate", "published", "updated") or None),
                    category=cat,
                )
            )
        return articles

    # ── Helpers ────────────────────────────────────────────────────────

    @staticmethod
    def _text(item: Any, *names: str) -> str:
        """Text of the first child tag among *names* that exists."""
        for name in names:
            tag = item.find(name)
            if tag is not None:
                return tag.get_text().strip()
        return ""


    @staticmethod
    def _default_session() -> requests.Session:
        session = requests.Session()
        session.headers.update({"User-Agent": settings.INGEST_USER_AGENT})
        return session


    @staticmethod
    def _summary(total_sources: int, failed: dict[str, str], scraped: int, stored: int, by_category: dict[str, int], elapsed: float) -> dict[str, Any]:
        return {
            "total_sources": total_sources,
            "failed_sources": failed,
            "articles_scraped": scraped,
            "articles_stored": stored,
            "by_category": by_category,
            "elapsed_seconds": round(elapsed, 2),
        }

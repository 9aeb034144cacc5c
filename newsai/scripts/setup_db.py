"""
NewsAI - Vector Table Setup & News Ingestion Script
====================================================
CLI entry point that orchestrates:
    1. Validate settings (fail-fast on a missing ``GOOGLE_API_KEY``).
    2. Open ``NewsVectorStore`` (optionally drop the existing table).
    3. Run the ``NewsIngestionPipeline`` over every configured feed.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --drop       Drop the LanceDB table before ingesting.
    --drop-only  Drop the table and exit immediately (no ingestion).
    --stats      Print the table row count and exit.
    --strict     Exit non-zero if any feed failed.
    --verbose    Log at DEBUG level.

Usage:
    python -m newsai.scripts.setup_db              # Normal ingestion
    python -m newsai.scripts.setup_db --drop       # Drop table, re-ingest
    python -m newsai.scripts.setup_db --drop-only  # Drop table and exit
    python -m newsai.scripts.setup_db --stats      # Row count only
"""

from __future__ import annotations

import argparse
import logging
import asyncio
import sys
import time
from pathlib import Path
from typing import Any

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="NewsAI: initialise the vector table and ingest news feeds.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the LanceDB table before ingesting.")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the LanceDB table and exit (no ingestion).")
    parser.add_argument("--stats", action="store_true", default=False, help="Print the number of stored articles and exit.")
    parser.add_argument("--strict", action="store_true", default=False, help="Exit with status 2 if any feed could not be scraped.")
    parser.add_argument("-v", "--verbose", action="store_true", default=False, help="Log at DEBUG level regardless of ENV / LOG_LEVEL.")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from newsai.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    # Now that settings is loaded, we can safely import the logger
    from newsai.src.utils.logger import get_logger, quiet_third_party, set_level
    logger = get_logger(__name__)
    quiet_third_party()
    if args.verbose:
        set_level(logging.DEBUG)

    logger.info("[CLI] Settings loaded in %.1fms", settings_ms)

    # ── 1. Open NewsVectorStore (timed) ────────────────────────────────
    from newsai.src.database.vector_store import NewsVectorStore

    t_lancedb = time.perf_counter()
    logger.info("[CLI] Connecting to LanceDB at: %s", settings.LANCEDB_PATH)
    store = NewsVectorStore()
    lancedb_ms = (time.perf_counter() - t_lancedb) * 1000

    if args.stats:
        store.ensure_table()
        print(f"\n  Table '{store.table_name}': {store.count()} article(s)\n")
        return 0

    _print_header(settings)

    if args.drop or args.drop_only:
        logger.warning("[CLI] Dropping table '%s' as requested.", store.table_name)
        store.drop_table()
        if args.drop_only:
            logger.info("[CLI] --drop-only: Table dropped. Exiting.")
            return 0

    store.ensure_table()

    # ── 2. Initialise embedder (timed) ─────────────────────────────────
    t_embedder = time.perf_counter()
    logger.info("[CLI] Initialising embedding model: %s", settings.EMBEDDING_MODEL)
    try:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    except Exception:
        logger.exception("[CLI] Failed to initialise embedding model.")
        return 1
    embedder_ms = (time.perf_counter() - t_embedder) * 1000

    startup_ms = settings_ms + lancedb_ms + embedder_ms
    logger.info("[CLI] Total startup time: %.1fms (settings: %.1fms, lancedb: %.1fms, embedder: %.1fms)", startup_ms, settings_ms, lancedb_ms, embedder_ms)

    # ── 3. Run NewsIngestionPipeline ───────────────────────────────────
    from newsai.src.core.embedding import EmbeddingGateway
    from newsai.src.core.errors import IngestionPartialFailure, NewsAIError
    from newsai.src.core.ingestor import NewsIngestionPipeline

    pipeline = NewsIngestionPipeline(EmbeddingGateway(embedder), store)
    try:
        summary = asyncio.run(pipeline.run(strict=args.strict))
    except IngestionPartialFailure as exc:
        logger.error("[CLI] Strict mode: %s", exc)
        for url, reason in sorted(exc.failed_sources.items()):
            print(f"  FAILED {url}: {reason}")
        return 2
    except NewsAIError as exc:
        logger.error("[CLI] Ingestion aborted: %s", exc)
        return 1

    # ── 4. Print execution summary ─────────────────────────────────────
    _print_footer(summary, store.count(), time.perf_counter() - t_start, startup_ms)
    return 0


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: Any) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    print()
    print("=" * 60)
    print("  NEWSAI — Vector Table Setup & News Ingestion")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")
    print(f"  Embedding    : {settings.EMBEDDING_MODEL} ({settings.EMBEDDING_DIMENSION} dims)")
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")
    print(f"  Table        : {settings.LANCEDB_TABLE_NAME}")
    print(f"  Per category : {settings.INGEST_ARTICLES_PER_CATEGORY} (max {settings.INGEST_MAX_ARTICLES} total)")
    print(f"  Workers      : {settings.MAX_WORKERS}")
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(summary: dict[str, Any], table_rows: int, elapsed: float, startup_ms: float) -> None:
    processing_s = elapsed - (startup_ms / 1000)

    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Feeds configured     : {summary['total_sources']}")
    print(f"  Feeds failed         : {len(summary['failed_sources'])}")
    print(f"  Articles scraped     : {summary['articles_scraped']}")
    print(f"  Articles stored      : {summary['articles_stored']}")
    print(f"  Rows in table        : {table_rows}")
    for category, count in sorted(summary["by_category"].items()):
        print(f"    {category:<18} : {count}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Startup time (total) : {startup_ms:>8.1f}ms")
    print(f"  Processing time      : {processing_s:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())

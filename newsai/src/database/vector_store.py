"""
NewsAI - NewsVectorStore
=========================
OOP wrapper around LanceDB providing a clean interface for:
  • Idempotent table creation with a strict PyArrow schema
  • Upsert-by-id of embedded news articles
  • Cosine nearest-neighbour search with an optional category filter

Design decisions:
  • **Injected connection** — the ``lancedb.DBConnection`` is passed in
    (or opened from ``db_path``); nothing here is a process-wide singleton.
  • **Vectors in, vectors out** — embedding happens upstream in the
    ``EmbeddingGateway``; this class only stores and searches vectors.
  • **Validated rows** — search hits are converted into
    ``RetrievalResult`` records here.  Rows that fail validation are
    dropped with a warning instead of leaking into the pipeline.
  • **Synchronous API** — LanceDB is an embedded library; async callers
    wrap these methods in ``asyncio.to_thread``.

Usage:
    store = NewsVectorStore(dimension=768)
    store.upsert(chunks)
    hits = store.search(query_vector, limit=5, category=Category.SPORTS)
"""

from __future__ import annotations

from collections.abc import Sequence

import lancedb
import pyarrow as pa
from pydantic import ValidationError

from newsai.config.settings import settings
from newsai.src.core.models import Category, DocumentChunk, RetrievalResult
from newsai.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
ArticleRecord = dict[str, str | list[float]]

_PAYLOAD_COLUMNS = ["id", "title", "body", "source_url", "source_name", "published_at", "category"]


def build_schema(dimension: int) -> pa.Schema:
    """Arrow schema for the news table; the vector column is fixed-size."""
    return pa.schema([
        pa.field("id", pa.utf8()),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("title", pa.utf8()),
        pa.field("body", pa.utf8()),
        pa.field("source_url", pa.utf8()),
        pa.field("source_name", pa.utf8()),
        pa.field("published_at", pa.utf8()),
        pa.field("category", pa.utf8()),
    ])


class NewsVectorStore:
    """
    High-level abstraction over a LanceDB vector table.

    Parameters
    ----------
    dimension
        Vector length.  Defaults to ``settings.EMBEDDING_DIMENSION``.
    db_path
        Database directory.  Defaults to ``settings.LANCEDB_PATH``.
    table_name
        Table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.
    db
        Pre-opened connection (takes precedence over ``db_path``).
    """

    __slots__ = ("_dimension", "_db_path", "_table_name", "_schema", "db", "table")

    def __init__(self, dimension: int | None = None, db_path: str | None = None, table_name: str | None = None, db: lancedb.DBConnection | None = None) -> None:
        self._dimension: int = dimension or settings.EMBEDDING_DIMENSION
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self._schema: pa.Schema = build_schema(self._dimension)
        self.db: lancedb.DBConnection = db if db is not None else lancedb.connect(self._db_path)
        self.table: lancedb.table.Table | None = None


    @property
    def table_name(self) -> str:
        return self._table_name


    def ensure_table(self) -> None:
        """Create the table if needed, or open the existing one."""
        try:
            self.table = self.db.create_table(self._table_name, schema=self._schema, exist_ok=True)
            logger.info("[VECTOR] Table '%s' ready (%d rows).", self._table_name, self.table.count_rows())
        except OSError as exc:
            logger.error("[VECTOR] LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise


    def upsert(self, chunks: Sequence[DocumentChunk]) -> int:
        """
        Insert or overwrite *chunks* by ``id``.

        Returns
        -------
        int
            Number of rows written.

        Raises
        ------
        ValueError
            If a chunk's embedding does not match the table dimension.
        """
        if not chunks:
            return 0
        table = self._require_table()

        records: list[ArticleRecord] = []
        for chunk in chunks:
            if len(chunk.embedding) != self._dimension:
                raise ValueError(f"Chunk {chunk.id} has a {len(chunk.embedding)}-dim embedding, expected {self._dimension}.")
            records.append({"id": chunk.id, "vector": chunk.embedding, "title": chunk.title, "body": chunk.body, "source_url": chunk.source_url, "source_name": chunk.source_name, "published_at": chunk.published_at.isoformat(), "category": chunk.category.value})

        data = pa.Table.from_pylist(records, schema=self._schema)
        table.merge_insert("id").when_matched_update_all().when_not_matched_insert_all().execute(data)
        logger.info("[VECTOR] Upserted %d row(s) into '%s'.", len(records), self._table_name)
        return len(records)


    def search(self, vector: Sequence[float], limit: int, category: Category | None = None) -> list[RetrievalResult]:
        """
        Cosine nearest-neighbour search.

        Parameters
        ----------
        vector
            Query embedding.
        limit
            Maximum hits.
        category
            Restrict the search to one category (pre-filtered).

        Returns
        -------
        list[RetrievalResult]
            Hits ordered by descending similarity (``score = 1 - distance``).
        """
        table = self._require_table()
        query = table.search(list(vector), vector_column_name="vector").distance_type("cosine").select(_PAYLOAD_COLUMNS).limit(limit)

        if category is not None:
            query = query.where(f"category = '{Category(category).value}'", prefilter=True)

        rows = query.to_list()
        results = [hit for hit in (self._to_result(row) for row in rows) if hit is not None]
        logger.debug("[VECTOR] Search (limit=%d, category=%s) -> %d hit(s).", limit, category.value if category else "-", len(results))
        return results


    def count(self) -> int:
        """Return the total number of rows in the table."""
        if self.table is None:
            return 0
        return self.table.count_rows()


    def ping(self) -> bool:
        """Cheap connectivity probe used by the health check."""
        self.db.table_names()
        return True


    def drop_table(self) -> None:
        """Drop the vector table (useful for testing / re-ingestion)."""
        try:
            self.db.drop_table(self._table_name)
            logger.info("[VECTOR] Dropped table '%s'.", self._table_name)
        except (ValueError, FileNotFoundError):
            logger.warning("[VECTOR] Table '%s' does not exist, nothing to drop.", self._table_name)
        self.table = None

    # ── Internals ──────────────────────────────────────────────────────

    def _require_table(self) -> lancedb.table.Table:
        if self.table is None:
            self.ensure_table()
        return self.table  # type: ignore[return-value]


    @staticmethod
    def _to_result(row: dict) -> RetrievalResult | None:
        distance = row.get("_distance")
        if distance is None:
            logger.warning("[VECTOR] Row %s has no distance, skipped.", row.get("id"))
            return None
        try:
            return RetrievalResult.model_validate({**{k: row.get(k) for k in _PAYLOAD_COLUMNS}, "score": 1.0 - float(distance)})
        except ValidationError as exc:
            logger.warning("[VECTOR] Invalid row %s skipped: %d error(s).", row.get("id"), exc.error_count())
            return None


    def __repr__(self) -> str:
        return f"NewsVectorStore(db='{self._db_path}', table='{self._table_name}', rows={self.count()})"

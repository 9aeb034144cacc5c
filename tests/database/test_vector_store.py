"""
Test suite for NewsVectorStore.

Uses a real embedded LanceDB database under ``tmp_path`` with
four-dimensional vectors.
"""

from datetime import datetime, timezone

import pytest

from newsai.src.core.models import Category, DocumentChunk
from newsai.src.database.vector_store import NewsVectorStore


def _chunk(id: str, vector: list[float], category: Category, title: str | None = None) -> DocumentChunk:
    return DocumentChunk(
        id=id,
        title=title or f"Headline {id}",
        body=f"Body of article {id}.",
        source_url=f"https://news.example.com/{id}",
        source_name="news.example.com",
        published_at=datetime(2025, 6, 1, 8, 30, tzinfo=timezone.utc),
        category=category,
        embedding=vector,
    )


@pytest.fixture
def store(tmp_path) -> NewsVectorStore:
    store = NewsVectorStore(dimension=4, db_path=str(tmp_path / "lancedb"), table_name="test_news")
    store.ensure_table()
    return store


@pytest.fixture
def seeded_store(store) -> NewsVectorStore:
    store.upsert([
        _chunk("sports-1", [1.0, 0.0, 0.0, 0.0], Category.SPORTS),
        _chunk("sports-2", [0.9, 0.1, 0.0, 0.0], Category.SPORTS),
        _chunk("tech-1", [0.0, 1.0, 0.0, 0.0], Category.TECHNOLOGY),
        _chunk("world-1", [0.7, 0.0, 0.7, 0.0], Category.WORLD),
    ])
    return store


class TestUpsert:

    def test_upsert_should_store_rows(self, seeded_store) -> None:
        assert seeded_store.count() == 4

    def test_upsert_should_overwrite_existing_id(self, seeded_store) -> None:
        seeded_store.upsert([_chunk("tech-1", [0.0, 1.0, 0.0, 0.0], Category.TECHNOLOGY, title="Updated headline")])

        hits = seeded_store.search([0.0, 1.0, 0.0, 0.0], limit=1)

        assert seeded_store.count() == 4
        assert hits[0].id == "tech-1"
        assert hits[0].title == "Updated headline"

    def test_upsert_should_reject_wrong_dimension(self, store) -> None:
        with pytest.raises(ValueError):
            store.upsert([_chunk("bad", [1.0, 0.0], Category.WORLD)])

    def test_upsert_should_ignore_empty_input(self, store) -> None:
        assert store.upsert([]) == 0


class TestSearch:

    def test_search_should_rank_by_cosine_similarity(self, seeded_store) -> None:
        hits = seeded_store.search([1.0, 0.0, 0.0, 0.0], limit=3)

        assert [h.id for h in hits] == ["sports-1", "sports-2", "world-1"]
        assert hits[0].score == pytest.approx(1.0, abs=1e-5)
        assert hits[0].score >= hits[1].score >= hits[2].score

    def test_search_should_respect_category_filter(self, seeded_store) -> None:
        hits = seeded_store.search([1.0, 0.0, 0.0, 0.0], limit=5, category=Category.TECHNOLOGY)

        assert [h.id for h in hits] == ["tech-1"]
        assert hits[0].category is Category.TECHNOLOGY

    def test_search_should_return_typed_results(self, seeded_store) -> None:
        (hit,) = seeded_store.search([0.0, 1.0, 0.0, 0.0], limit=1)

        assert hit.source_url == "https://news.example.com/tech-1"
        assert hit.published_at == datetime(2025, 6, 1, 8, 30, tzinfo=timezone.utc)

    def test_search_should_skip_rows_without_distance(self) -> None:
        assert NewsVectorStore._to_result({"id": "x", "title": "t"}) is None


class TestLifecycle:

    def test_ensure_table_should_be_idempotent(self, seeded_store) -> None:
        seeded_store.ensure_table()

        assert seeded_store.count() == 4

    def test_drop_table_should_remove_rows(self, seeded_store) -> None:
        seeded_store.drop_table()
        seeded_store.ensure_table()

        assert seeded_store.count() == 0

    def test_ping_should_succeed(self, store) -> None:
        assert store.ping() is True

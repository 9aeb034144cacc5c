"""
Shared test fixtures and configuration for the NewsAI test suite.

Provides: fake embedding model, fake vector store, in-memory MongoDB
collection, mocked generator and sample retrieval results.
Dependencies: pytest, unittest.mock
System role: Test infrastructure and fixture management
"""

import os

# Settings are instantiated at import time and require these.
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ["ENV"] = "dev"

import copy
import itertools
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from newsai.src.core.embedding import EmbeddingGateway
from newsai.src.core.models import Category, RetrievalResult
from newsai.src.database.session_store import MongoSessionStore

TEST_DIMENSION = 8


# ── Embedding model ────────────────────────────────────────────────────

class FakeEmbedder:
    """LangChain-shaped embedder returning deterministic vectors."""

    def __init__(self, dimension: int = TEST_DIMENSION):
        self.dimension = dimension
        self.calls: list[list[str]] = []
        self.methods: list[str] = []
        self.error: Exception | None = None
        self.wrong_dimension = False

    def vector_for(self, text: str) -> list[float]:
        return [float((len(text) + i) % 5 + 1) for i in range(self.dimension)]

    def _embed(self, method: str, texts: list[str]) -> list[list[float]]:
        self.methods.append(method)
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        vectors = [self.vector_for(text) for text in texts]
        return [vec + [0.0] for vec in vectors] if self.wrong_dimension else vectors

    def embed_documents(self, texts):
        return self._embed("embed_documents", texts)

    def embed_query(self, text):
        # Distinct from the document vector for the same text.
        return [x + 0.5 for x in self._embed("embed_query", [text])[0]]


# ── Vector store ───────────────────────────────────────────────────────

class FakeVectorStore:
    """Serves canned hits per category and records every search."""

    table_name = "news_embeddings"

    def __init__(self):
        self.by_category: dict[Category, list[RetrievalResult]] = {}
        self.general: list[RetrievalResult] = []
        self.calls: list[tuple[int, Category | None]] = []
        self.error: Exception | None = None

    def search(self, vector, limit, category=None):
        self.calls.append((limit, category))
        if self.error is not None:
            raise self.error
        hits = self.general if category is None else self.by_category.get(category, [])
        return list(hits[:limit])

    def count(self):
        return len(self.general)

    def ping(self):
        if self.error is not None:
            raise self.error
        return True


# ── MongoDB collection ─────────────────────────────────────────────────

class FakeCursor:
    def __init__(self, docs, project):
        self._docs = docs
        self._project = project

    def sort(self, key, direction):
        self._docs.sort(key=lambda d: d.get(key, ""), reverse=direction < 0)
        return self

    async def to_list(self, length=None):
        docs = self._docs[:length] if length is not None else self._docs
        return [self._project(d) for d in docs]


class FakeCollection:
    """
    In-memory stand-in for an ``AsyncIOMotorCollection``.

    Supports exactly the operators the session store issues:
    ``$push``/``$each``, ``$inc``, ``$set`` and ``$slice`` projections.
    """

    def __init__(self):
        self.docs: list[dict] = []
        self.indexes: list[tuple[str, dict]] = []
        self.error: Exception | None = None
        self._ids = itertools.count(1)
        self.database = SimpleNamespace(command=self._command)

    async def _command(self, name):
        self._raise_if_down()
        return {"ok": 1}

    def _raise_if_down(self):
        if self.error is not None:
            raise self.error

    def _match(self, query):
        return [d for d in self.docs if all(d.get(k) == v for k, v in query.items())]

    @staticmethod
    def _project(doc, projection):
        if not projection:
            return copy.deepcopy(doc)
        included = [k for k, v in projection.items() if v == 1]
        if included:
            out = {k: copy.deepcopy(doc[k]) for k in included if k in doc}
        else:
            out = {k: copy.deepcopy(v) for k, v in doc.items() if k != "_id"}
        slicer = projection.get("messages")
        if isinstance(slicer, dict) and "$slice" in slicer:
            n = slicer["$slice"]
            messages = doc.get("messages", [])
            out["messages"] = copy.deepcopy(messages[n:] if n < 0 else messages[:n])
        return out

    async def create_index(self, key, **kwargs):
        self._raise_if_down()
        self.indexes.append((key, kwargs))
        return f"{key}_1"

    async def insert_one(self, doc):
        self._raise_if_down()
        stored = copy.deepcopy(doc)
        stored["_id"] = next(self._ids)
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one(self, query, projection=None):
        self._raise_if_down()
        matches = self._match(query)
        return self._project(matches[0], projection) if matches else None

    def find(self, query, projection=None):
        self._raise_if_down()
        return FakeCursor(self._match(query), lambda d: self._project(d, projection))

    async def update_one(self, query, update):
        self._raise_if_down()
        matches = self._match(query)
        if not matches:
            return SimpleNamespace(matched_count=0, modified_count=0)
        doc = matches[0]
        for field, value in update.get("$push", {}).items():
            items = value["$each"] if isinstance(value, dict) and "$each" in value else [value]
            doc.setdefault(field, []).extend(copy.deepcopy(items))
        for field, amount in update.get("$inc", {}).items():
            doc[field] = doc.get(field, 0) + amount
        for field, value in update.get("$set", {}).items():
            doc[field] = copy.deepcopy(value)
        return SimpleNamespace(matched_count=1, modified_count=1)


# ── Fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def gateway(fake_embedder: FakeEmbedder) -> EmbeddingGateway:
    """Fail-closed gateway over the fake embedder."""
    return EmbeddingGateway(fake_embedder, dimension=TEST_DIMENSION, batch_size=4, fail_open=False, cache_size=16)


@pytest.fixture
def fake_vector_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture
def session_collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def session_store(session_collection: FakeCollection) -> MongoSessionStore:
    return MongoSessionStore(session_collection, ttl_seconds=3600)


@pytest.fixture
def mongo_down() -> Exception:
    return ServerSelectionTimeoutError("connection refused")


@pytest.fixture
def generator() -> MagicMock:
    """Mocked ``TextGenerator`` answering with a fixed string."""
    gen = MagicMock()
    gen.generate = AsyncMock(return_value="The Lakers won the NBA finals.")
    return gen


@pytest.fixture
def make_result():
    """Factory for ``RetrievalResult`` records."""

    def _make(id: str, score: float, category: Category = Category.SPORTS, title: str | None = None, body: str = "Full article body text.") -> RetrievalResult:
        return RetrievalResult(
            id=id,
            score=score,
            title=title or f"Headline {id}",
            body=body,
            source_url=f"https://news.example.com/{id}",
            source_name="news.example.com",
            category=category,
            published_at=datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc),
        )

    return _make

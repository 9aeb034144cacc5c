"""
NewsAI - Service Container
===========================
The single place where external clients are constructed and wired
together.  Everything downstream receives its collaborators through
constructors; no module keeps its own client singleton.
"""

from __future__ import annotations

import asyncio
from typing import Any

from newsai.config.settings import settings
from newsai.src.core.embedding import EmbeddingGateway
from newsai.src.core.generation import GeminiGenerator, TextGenerator
from newsai.src.core.health import HealthReport, check_health
from newsai.src.core.ingestor import NewsIngestionPipeline
from newsai.src.core.orchestrator import QueryOrchestrator
from newsai.src.core.retriever import RetrievalEngine
from newsai.src.database.session_store import MongoSessionStore, create_mongo_client
from newsai.src.database.vector_store import NewsVectorStore
from newsai.src.utils.logger import get_logger

logger = get_logger(__name__)


class ServiceContainer:
    """Holds the wired service graph for one application instance."""

    def __init__(self, gateway: EmbeddingGateway, vector_store: NewsVectorStore, session_store: MongoSessionStore, generator: TextGenerator, mongo_client: Any | None = None) -> None:
        self.gateway = gateway
        self.vector_store = vector_store
        self.session_store = session_store
        self.generator = generator
        self.retriever = RetrievalEngine(gateway, vector_store)
        self.orchestrator = QueryOrchestrator(self.retriever, session_store, generator)
        self._mongo_client = mongo_client


    @classmethod
    def from_settings(cls) -> ServiceContainer:
        """Build production clients from ``settings``."""
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
        mongo_client = create_mongo_client()
        return cls(
            gateway=EmbeddingGateway(embedder),
            vector_store=NewsVectorStore(),
            session_store=MongoSessionStore.from_client(mongo_client),
            generator=GeminiGenerator(),
            mongo_client=mongo_client,
        )


    async def startup(self) -> None:
        await self.session_store.ensure_indexes()
        await asyncio.to_thread(self.vector_store.ensure_table)
        logger.info("[APP] Services ready (strategy=%s).", self.retriever.strategy.value)


    def close(self) -> None:
        if self._mongo_client is not None:
            self._mongo_client.close()
            logger.info("[APP] MongoDB client closed.")


    def ingestion_pipeline(self) -> NewsIngestionPipeline:
        return NewsIngestionPipeline(self.gateway, self.vector_store)


    async def health(self) -> HealthReport:
        return await check_health({
            "mongodb": self.session_store.ping,
            "lancedb": lambda: asyncio.to_thread(self.vector_store.ping),
        })

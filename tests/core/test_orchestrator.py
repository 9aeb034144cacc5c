"""
Test suite for the query orchestrator.

Wires the real retrieval engine, context assembler and session store
to in-memory collaborators and a mocked generator.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from newsai.config.prompt_templates import NO_MATCHING_ARTICLES_RESPONSE
from newsai.src.core.context import ContextLimits
from newsai.src.core.errors import GenerationFailed, InvalidRequest, RetrievalUnavailable, SessionNotFound, SessionStoreUnavailable
from newsai.src.core.models import Category
from newsai.src.core.orchestrator import QueryOrchestrator
from newsai.src.core.retriever import RetrievalEngine
from newsai.src.database.session_store import MongoSessionStore


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def orchestrator(gateway, fake_vector_store, session_store, generator, sleep) -> QueryOrchestrator:
    retriever = RetrievalEngine(gateway, fake_vector_store, strategy="category_fallback")
    limits = ContextLimits(max_passages=5, max_excerpt_chars=800, max_history_turns=5, max_history_chars=500)
    return QueryOrchestrator(retriever, session_store, generator, limits=limits, search_limit=3, history_limit=10, timeout=0.2, max_attempts=3, backoff_base=0.5, backoff_max=4.0, max_message_chars=200, sleep=sleep)


class TestQueryHappyPath:

    @pytest.mark.asyncio
    async def test_query_should_answer_and_persist_exchange(self, orchestrator, session_store, fake_vector_store, make_result) -> None:
        session_id = await session_store.create_session()
        fake_vector_store.by_category[Category.SPORTS] = [make_result(f"s{i}", 0.9 - i * 0.1) for i in range(3)]

        answer = await orchestrator.query(session_id, "Who won the NBA finals?")

        assert answer.role == "bot"
        assert answer.content == "The Lakers won the NBA finals."
        assert [s.url for s in answer.sources] == [f"https://news.example.com/s{i}" for i in range(3)]
        assert answer.processing_time_ms is not None
        history = await session_store.get_history(session_id)
        assert [(m.role, m.content) for m in history] == [("user", "Who won the NBA finals?"), ("bot", "The Lakers won the NBA finals.")]

    @pytest.mark.asyncio
    async def test_sports_query_should_search_sports_first(self, orchestrator, session_store, fake_vector_store, make_result) -> None:
        session_id = await session_store.create_session()
        fake_vector_store.by_category[Category.SPORTS] = [make_result("s1", 0.8)]
        fake_vector_store.general = [make_result("w1", 0.6, Category.WORLD)]

        answer = await orchestrator.query(session_id, "Who won the NBA finals?")

        assert fake_vector_store.calls[0] == (6, Category.SPORTS)
        assert [s.category for s in answer.sources] == [Category.SPORTS, Category.WORLD]

    @pytest.mark.asyncio
    async def test_single_sports_chunk_should_reach_the_answer(self, orchestrator, session_store, fake_vector_store, make_result) -> None:
        session_id = await session_store.create_session()
        fake_vector_store.by_category[Category.SPORTS] = [make_result("finals", 0.88, title="Lakers take the NBA finals")]

        answer = await orchestrator.query(session_id, "Tell me about the NBA finals")

        assert fake_vector_store.calls == [(6, Category.SPORTS), (3, None)]
        assert [s.title for s in answer.sources] == ["Lakers take the NBA finals"]

    @pytest.mark.asyncio
    async def test_prompt_should_include_history_and_passages(self, orchestrator, session_store, generator, fake_vector_store, make_result) -> None:
        session_id = await session_store.create_session()
        fake_vector_store.general = [make_result("w1", 0.6, Category.WORLD, title="Summit ends")]
        await orchestrator.query(session_id, "Tell me about the summit")

        await orchestrator.query(session_id, "And what came after?")

        prompt = generator.generate.await_args.args[0]
        assert "User: Tell me about the summit" in prompt
        assert "Assistant: The Lakers won the NBA finals." in prompt
        assert "Title: Summit ends" in prompt
        assert "User Question: And what came after?" in prompt


class TestNoMatchingArticles:

    @pytest.mark.asyncio
    async def test_query_without_passages_should_return_fallback(self, orchestrator, session_store, generator) -> None:
        session_id = await session_store.create_session()

        answer = await orchestrator.query(session_id, "What's on at the zoo?")

        assert answer.content == NO_MATCHING_ARTICLES_RESPONSE
        assert answer.sources == []
        generator.generate.assert_not_awaited()
        history = await session_store.get_history(session_id)
        assert [m.content for m in history] == ["What's on at the zoo?", NO_MATCHING_ARTICLES_RESPONSE]


class TestGenerationPolicy:

    @pytest.mark.asyncio
    async def test_generation_timeout_should_fail_without_persisting(self, orchestrator, session_store, generator, fake_vector_store, make_result) -> None:
        session_id = await session_store.create_session()
        fake_vector_store.general = [make_result("w1", 0.6, Category.WORLD)]

        async def _hang(prompt):
            await asyncio.sleep(5)

        generator.generate.side_effect = _hang

        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.query(session_id, "What's on at the zoo?")

        assert exc_info.value.attempts == 3
        assert exc_info.value.status_code == 502
        assert await session_store.get_history(session_id) == []

    @pytest.mark.asyncio
    async def test_generation_should_retry_with_exponential_backoff(self, orchestrator, session_store, generator, sleep, fake_vector_store, make_result) -> None:
        session_id = await session_store.create_session()
        fake_vector_store.general = [make_result("w1", 0.6, Category.WORLD)]
        generator.generate.side_effect = [RuntimeError("503 from provider"), "", "Recovered answer"]

        answer = await orchestrator.query(session_id, "What's on at the zoo?")

        assert answer.content == "Recovered answer"
        assert generator.generate.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_backoff_should_be_capped(self, gateway, fake_vector_store, session_store, generator, sleep, make_result) -> None:
        retriever = RetrievalEngine(gateway, fake_vector_store, strategy="similarity")
        orchestrator = QueryOrchestrator(retriever, session_store, generator, max_attempts=4, backoff_base=1.0, backoff_max=2.5, timeout=0.2, sleep=sleep)
        session_id = await session_store.create_session()
        fake_vector_store.general = [make_result("w1", 0.6, Category.WORLD)]
        generator.generate.side_effect = RuntimeError("always down")

        with pytest.raises(GenerationFailed):
            await orchestrator.query(session_id, "anything new?")

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 2.5]


class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [None, "", "   "])
    async def test_blank_message_should_be_invalid(self, orchestrator, session_store, message) -> None:
        session_id = await session_store.create_session()

        with pytest.raises(InvalidRequest):
            await orchestrator.query(session_id, message)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("session_id", [None, ""])
    async def test_missing_session_id_should_be_invalid(self, orchestrator, session_id) -> None:
        with pytest.raises(InvalidRequest):
            await orchestrator.query(session_id, "hello")

    @pytest.mark.asyncio
    async def test_overlong_message_should_be_invalid(self, orchestrator, session_store) -> None:
        session_id = await session_store.create_session()

        with pytest.raises(InvalidRequest):
            await orchestrator.query(session_id, "x" * 201)

    @pytest.mark.asyncio
    async def test_unknown_session_should_raise_not_found(self, orchestrator, fake_vector_store) -> None:
        with pytest.raises(SessionNotFound):
            await orchestrator.query("does-not-exist", "hello")
        assert fake_vector_store.calls == []

    @pytest.mark.parametrize("overrides", [{"timeout": 0}, {"max_attempts": 0}, {"search_limit": 0}])
    def test_zero_policy_values_should_be_rejected(self, gateway, fake_vector_store, session_store, generator, overrides) -> None:
        retriever = RetrievalEngine(gateway, fake_vector_store, strategy="similarity")

        with pytest.raises(ValueError):
            QueryOrchestrator(retriever, session_store, generator, **overrides)

    @pytest.mark.asyncio
    async def test_single_attempt_should_not_retry(self, gateway, fake_vector_store, session_store, generator, sleep, make_result) -> None:
        retriever = RetrievalEngine(gateway, fake_vector_store, strategy="similarity")
        orchestrator = QueryOrchestrator(retriever, session_store, generator, max_attempts=1, timeout=0.2, sleep=sleep)
        session_id = await session_store.create_session()
        fake_vector_store.general = [make_result("w1", 0.6, Category.WORLD)]
        generator.generate.side_effect = RuntimeError("down")

        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.query(session_id, "anything new?")

        assert exc_info.value.attempts == 1
        sleep.assert_not_awaited()


class TestFailurePropagation:

    @pytest.mark.asyncio
    async def test_retrieval_failure_should_surface_and_skip_persistence(self, orchestrator, session_store, fake_vector_store, generator) -> None:
        session_id = await session_store.create_session()
        fake_vector_store.error = OSError("lancedb gone")

        with pytest.raises(RetrievalUnavailable):
            await orchestrator.query(session_id, "What's on at the zoo?")

        generator.generate.assert_not_awaited()
        assert await session_store.get_history(session_id) == []

    @pytest.mark.asyncio
    async def test_history_failure_should_surface_as_store_unavailable(self, orchestrator, session_store, monkeypatch) -> None:
        session_id = await session_store.create_session()
        monkeypatch.setattr(MongoSessionStore, "get_history", AsyncMock(side_effect=SessionStoreUnavailable("down")))

        with pytest.raises(SessionStoreUnavailable):
            await orchestrator.query(session_id, "What's on at the zoo?")

    @pytest.mark.asyncio
    async def test_persistence_failure_should_still_return_answer(self, orchestrator, session_store, monkeypatch, fake_vector_store, make_result) -> None:
        session_id = await session_store.create_session()
        fake_vector_store.general = [make_result("w1", 0.6, Category.WORLD)]
        monkeypatch.setattr(MongoSessionStore, "add_exchange", AsyncMock(side_effect=SessionStoreUnavailable("write failed")))

        answer = await orchestrator.query(session_id, "What's on at the zoo?")

        assert answer.content == "The Lakers won the NBA finals."


class TestSessionOperations:

    @pytest.mark.asyncio
    async def test_reset_session_should_clear_history(self, orchestrator, session_store) -> None:
        session_id = await orchestrator.create_session()
        await session_store.add_exchange(session_id, "q", "a")

        assert await orchestrator.reset_session(session_id)
        assert await orchestrator.get_session_history(session_id) == []

    @pytest.mark.asyncio
    async def test_history_of_unknown_session_should_raise_not_found(self, orchestrator) -> None:
        with pytest.raises(SessionNotFound):
            await orchestrator.get_session_history("missing")

    @pytest.mark.asyncio
    async def test_list_sessions_should_include_new_session(self, orchestrator) -> None:
        session_id = await orchestrator.create_session()

        summaries = await orchestrator.list_sessions()

        assert [s.session_id for s in summaries] == [session_id]

"""
NewsAI - MongoSessionStore
===========================
Async chat-history store backed by MongoDB via ``motor``.

One document per session holds its metadata *and* its message log, so
"append message + increment counter + refresh expiry" is a single
atomic ``update_one``.

Collection schema (``sessions``)::

    {
        "session_id":    str,                 # uuid4, unique index
        "created_at":    str,                 # ISO-8601 UTC
        "updated_at":    str,                 # ISO-8601 UTC
        "message_count": int,
        "messages":      [{"id", "role", "content", "timestamp"}, ...],
        "expires_at":    datetime             # TTL index
    }

Messages are appended in chronological order and read back with a
negative ``$slice`` projection, so only the requested tail crosses the
wire.

Expiry is *sliding*: every appended message pushes ``expires_at``
forward by ``ttl_seconds``.  ``reset`` leaves it untouched.  The MongoDB
TTL monitor deletes expired documents lazily, so ``exists`` also checks
``expires_at`` in-process.

Any ``PyMongoError`` is surfaced as ``SessionStoreUnavailable``.
"""

from __future__ import annotations

import functools
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

import motor.motor_asyncio
from pymongo.errors import PyMongoError

from newsai.config.settings import settings
from newsai.src.core.errors import SessionNotFound, SessionStoreUnavailable
from newsai.src.core.models import Message, Role, SessionSummary
from newsai.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
MessageDocument = dict[str, str]
SessionDocument = dict[str, Any]

_T = TypeVar("_T")

_TITLE_PREVIEW_CHARS = 50
_NEW_SESSION_TITLE = "New chat"
_NO_MESSAGES_PREVIEW = "No messages yet"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # pymongo hands back naive UTC datetimes unless the client is tz_aware
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def create_mongo_client(uri: str | None = None) -> motor.motor_asyncio.AsyncIOMotorClient:
    """Open an async MongoDB client.  Callers own its lifecycle."""
    client = motor.motor_asyncio.AsyncIOMotorClient(uri or settings.MONGO_URI.get_secret_value(), tz_aware=True, serverSelectionTimeoutMS=5000)
    logger.info("[SESSION] MongoDB async client created.")
    return client


def _translate_errors(func: Callable[..., Awaitable[_T]]) -> Callable[..., Awaitable[_T]]:
    @functools.wraps(func)
    async def wrapper(self: MongoSessionStore, *args: Any, **kwargs: Any) -> _T:
        try:
            return await func(self, *args, **kwargs)
        except PyMongoError as exc:
            logger.error("[SESSION] %s failed: %s", func.__name__, exc)
            raise SessionStoreUnavailable("Session store unavailable", {"operation": func.__name__}) from exc
    return wrapper


class MongoSessionStore:
    """
    Session + message-log persistence.

    Parameters
    ----------
    collection
        The ``sessions`` collection (``AsyncIOMotorCollection``).
    ttl_seconds
        Sliding inactivity TTL.  Defaults to ``settings.SESSION_TTL_SECONDS``.
    clock
        Returns "now" as an aware UTC datetime.
    """

    __slots__ = ("_collection", "_ttl", "_clock")

    def __init__(self, collection: Any, ttl_seconds: int | None = None, clock: Callable[[], datetime] = _utcnow) -> None:
        self._collection = collection
        self._ttl = timedelta(seconds=ttl_seconds or settings.SESSION_TTL_SECONDS)
        self._clock = clock


    @classmethod
    def from_client(cls, client: motor.motor_asyncio.AsyncIOMotorClient, db_name: str | None = None, collection_name: str | None = None, ttl_seconds: int | None = None) -> MongoSessionStore:
        db = client[db_name or settings.MONGO_DB_NAME]
        return cls(db[collection_name or settings.MONGO_SESSION_COLLECTION], ttl_seconds=ttl_seconds)


    @_translate_errors
    async def ensure_indexes(self) -> None:
        """Unique ``session_id`` and TTL on ``expires_at``."""
        await self._collection.create_index("session_id", unique=True)
        await self._collection.create_index("expires_at", expireAfterSeconds=0)
        logger.info("[SESSION] Indexes ensured.")


    @_translate_errors
    async def create_session(self) -> str:
        """Create an empty session and return its id."""
        session_id = str(uuid.uuid4())
        now = self._clock()
        await self._collection.insert_one({"session_id": session_id, "created_at": now.isoformat(), "updated_at": now.isoformat(), "message_count": 0, "messages": [], "expires_at": now + self._ttl})
        logger.info("[SESSION] Created session %s", session_id)
        return session_id


    async def add_message(self, session_id: str, role: Role, content: str) -> Message:
        """Append one message; refreshes the sliding expiry."""
        (message,) = await self._append(session_id, [(role, content)])
        return message


    async def add_exchange(self, session_id: str, user_content: str, bot_content: str) -> tuple[Message, Message]:
        """Append a user message and its bot reply in one atomic update."""
        user_msg, bot_msg = await self._append(session_id, [("user", user_content), ("bot", bot_content)])
        return user_msg, bot_msg


    @_translate_errors
    async def get_history(self, session_id: str, limit: int | None = None) -> list[Message]:
        """Return the last *limit* messages, oldest first."""
        limit = settings.HISTORY_FETCH_LIMIT if limit is None else limit
        if limit <= 0:
            return []
        doc = await self._collection.find_one({"session_id": session_id}, {"_id": 0, "messages": {"$slice": -limit}})
        if doc is None:
            return []
        return [Message.model_validate(m) for m in doc.get("messages", [])]


    @_translate_errors
    async def reset(self, session_id: str) -> bool:
        """Clear messages and zero the counter.  Identity and expiry are kept."""
        result = await self._collection.update_one({"session_id": session_id}, {"$set": {"messages": [], "message_count": 0, "updated_at": self._clock().isoformat()}})
        if result.matched_count:
            logger.info("[SESSION] Reset session %s", session_id)
        return result.matched_count > 0


    @_translate_errors
    async def exists(self, session_id: str) -> bool:
        doc = await self._collection.find_one({"session_id": session_id}, {"_id": 0, "expires_at": 1})
        if doc is None:
            return False
        return not self._is_expired(doc)


    @_translate_errors
    async def list_sessions(self, limit: int = 100) -> list[SessionSummary]:
        """Dashboard summaries, most recent activity first."""
        cursor = self._collection.find({}, {"_id": 0, "session_id": 1, "created_at": 1, "message_count": 1, "expires_at": 1, "messages": {"$slice": -1}}).sort("updated_at", -1)
        docs = await cursor.to_list(length=limit)

        summaries: list[SessionSummary] = []
        for doc in docs:
            if self._is_expired(doc):
                continue
            messages = doc.get("messages") or []
            last = Message.model_validate(messages[-1]) if messages else None
            summaries.append(
                SessionSummary(
                    session_id=doc["session_id"],
                    title=last.content[:_TITLE_PREVIEW_CHARS] + "..." if last else _NEW_SESSION_TITLE,
                    message_count=int(doc.get("message_count", 0)),
                    last_message=last.content if last else _NO_MESSAGES_PREVIEW,
                    timestamp=last.timestamp if last else doc["created_at"],
                )
            )

        summaries.sort(key=lambda s: s.timestamp, reverse=True)
        return summaries


    @_translate_errors
    async def ping(self) -> bool:
        await self._collection.database.command("ping")
        return True

    # ── Internals ──────────────────────────────────────────────────────

    @_translate_errors
    async def _append(self, session_id: str, entries: list[tuple[Role, str]]) -> list[Message]:
        now = self._clock()
        messages = [Message(id=str(uuid.uuid4()), role=role, content=content, timestamp=now) for role, content in entries]
        docs: list[MessageDocument] = [{"id": m.id, "role": m.role, "content": m.content, "timestamp": m.timestamp.isoformat()} for m in messages]

        result = await self._collection.update_one(
            {"session_id": session_id},
            {"$push": {"messages": {"$each": docs}}, "$inc": {"message_count": len(docs)}, "$set": {"updated_at": now.isoformat(), "expires_at": now + self._ttl}},
        )
        if result.matched_count == 0:
            raise SessionNotFound(session_id)

        logger.debug("[SESSION] Appended %d message(s) to %s (%s)", len(docs), session_id, "/".join(m.role for m in messages))
        return messages


    def _is_expired(self, doc: SessionDocument) -> bool:
        expires_at = doc.get("expires_at")
        if expires_at is None:
            return False
        return _aware(expires_at) <= self._clock()

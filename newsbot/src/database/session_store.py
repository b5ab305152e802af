"""
Newsbot - Session Store
========================
Per-session conversation log with idle expiry.

One interface, two interchangeable backends, chosen **once** at startup
by ``create_session_store``:

``MongoSessionStore``
    Durable store backed by ``motor``.  One document per session::

        {
            "session_id": str,
            "messages": [{"message": str, "role": str, "timestamp": int}, ...],
            "created_at": datetime,
            "updated_at": datetime,
            "expires_at": datetime
        }

    Every append is a single ``$push``/``$each`` upsert that also slides
    ``expires_at``.  A TTL index purges idle sessions; reads filter on
    ``expires_at`` so expiry is exact between TTL-monitor sweeps.
    Connection-level failures surface as ``StoreUnavailable``; there is
    no per-call failover to memory.

``InMemorySessionStore``
    Process-local dict of turn lists.  Each append cancels and
    re-schedules the session's expiry timer on the running event loop
    with no ``await`` in between, so a timer can never fire on a session
    that was just written.

Both stamp turns on write, return history oldest-first, skip malformed
entries instead of failing, and treat ``reset`` as idempotent.

Usage:
    from newsbot.src.database.session_store import create_session_store
    store = create_session_store()
    await store.append("s-1", ConversationTurn(message="hi", role="user"))
    turns = await store.history("s-1")
    await store.close()
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import motor.motor_asyncio
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import ConnectionFailure

from newsbot.config.settings import Settings, settings
from newsbot.src.core.errors import StoreUnavailable
from newsbot.src.core.models import ConversationTurn, now_ms
from newsbot.src.utils.logger import get_logger

logger = get_logger(__name__)


def _parse_turns(session_id: str, raw: Iterable[object]) -> list[ConversationTurn]:
    """Validate stored entries, dropping any that do not parse."""
    turns: list[ConversationTurn] = []
    for entry in raw:
        try:
            turns.append(ConversationTurn.model_validate(entry))
        except PydanticValidationError:
            logger.warning("[SESSION] Skipping malformed entry in session '%s': %.80r", session_id, entry)
    return turns


def _stamp(turn: ConversationTurn) -> ConversationTurn:
    return turn.model_copy(update={"timestamp": now_ms()})


# ══════════════════════════════════════════════════════════════════════
#  INTERFACE
# ══════════════════════════════════════════════════════════════════════


class SessionStore(ABC):
    """Append-only, TTL-bounded conversation log keyed by session id."""

    async def append(self, session_id: str, turn: ConversationTurn) -> ConversationTurn:
        """Stamp *turn* with the current time, append it, and restart the session TTL."""
        (stamped,) = await self.append_many(session_id, [turn])
        return stamped


    @abstractmethod
    async def append_many(self, session_id: str, turns: Sequence[ConversationTurn]) -> list[ConversationTurn]:
        """Stamp and append *turns* in one write: either all of them land or none do."""

    @abstractmethod
    async def history(self, session_id: str) -> list[ConversationTurn]:
        """Full log, oldest first.  Empty for unknown or expired sessions."""

    @abstractmethod
    async def reset(self, session_id: str) -> None:
        """Delete the log and any pending expiry.  Idempotent."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""


# ══════════════════════════════════════════════════════════════════════
#  MONGODB BACKEND
# ══════════════════════════════════════════════════════════════════════


class MongoSessionStore(SessionStore):
    """
    Durable session store on MongoDB via ``motor``.

    Parameters
    ----------
    client
        An ``AsyncIOMotorClient`` (or compatible) owned by this store.
    db_name, collection_name
        Where session documents live.
    ttl_seconds
        Idle lifetime, restarted by every append.
    """

    __slots__ = ("_client", "_collection", "_ttl", "_indexes_ready")

    def __init__(self, client: motor.motor_asyncio.AsyncIOMotorClient, db_name: str, collection_name: str, ttl_seconds: float) -> None:
        self._client = client
        self._collection = client[db_name][collection_name]
        self._ttl = timedelta(seconds=ttl_seconds)
        self._indexes_ready = False


    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except ConnectionFailure as exc:
            logger.error("[SESSION] MongoDB unreachable during %s: %s", operation, exc)
            raise StoreUnavailable(f"session store unavailable during {operation}") from exc


    async def _ensure_indexes(self) -> None:
        if self._indexes_ready:
            return
        await self._collection.create_index("session_id", unique=True)
        await self._collection.create_index("expires_at", expireAfterSeconds=0)
        self._indexes_ready = True
        logger.info("[SESSION] MongoDB indexes ensured (TTL on expires_at).")


    async def append_many(self, session_id: str, turns: Sequence[ConversationTurn]) -> list[ConversationTurn]:
        stamped = [_stamp(turn) for turn in turns]
        now = datetime.now(timezone.utc)
        with self._guard("append"):
            await self._ensure_indexes()
            # An expired log not yet swept by the TTL monitor must not be revived
            await self._collection.delete_one({"session_id": session_id, "expires_at": {"$lte": now}})
            await self._collection.update_one(
                {"session_id": session_id},
                {"$push": {"messages": {"$each": [t.model_dump() for t in stamped]}}, "$set": {"updated_at": now, "expires_at": now + self._ttl}, "$setOnInsert": {"created_at": now}},
                upsert=True,
            )
        logger.debug("[SESSION] Appended %d turn(s) to '%s'.", len(stamped), session_id)
        return stamped


    async def history(self, session_id: str) -> list[ConversationTurn]:
        now = datetime.now(timezone.utc)
        with self._guard("history"):
            doc = await self._collection.find_one({"session_id": session_id, "expires_at": {"$gt": now}}, {"messages": 1})
        if doc is None:
            return []
        return _parse_turns(session_id, doc.get("messages", []))


    async def reset(self, session_id: str) -> None:
        with self._guard("reset"):
            result = await self._collection.delete_one({"session_id": session_id})
        logger.info("[SESSION] Reset session '%s' (removed=%s).", session_id, result.deleted_count > 0)


    async def close(self) -> None:
        self._client.close()
        logger.info("[SESSION] MongoDB client closed.")


# ══════════════════════════════════════════════════════════════════════
#  IN-PROCESS BACKEND
# ══════════════════════════════════════════════════════════════════════


class InMemorySessionStore(SessionStore):
    """
    Process-local session store with per-session expiry timers.

    Must be used from a single running event loop; timers are scheduled
    with ``loop.call_later``.
    """

    __slots__ = ("_ttl", "_logs", "_timers")

    def __init__(self, ttl_seconds: float) -> None:
        self._ttl = ttl_seconds
        self._logs: dict[str, list[ConversationTurn]] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}


    def _touch(self, session_id: str) -> None:
        """Cancel and re-arm the expiry timer for *session_id*."""
        pending = self._timers.pop(session_id, None)
        if pending is not None:
            pending.cancel()
        loop = asyncio.get_running_loop()
        self._timers[session_id] = loop.call_later(self._ttl, self._expire, session_id)


    def _expire(self, session_id: str) -> None:
        self._logs.pop(session_id, None)
        self._timers.pop(session_id, None)
        logger.debug("[SESSION] Session '%s' expired.", session_id)


    async def append_many(self, session_id: str, turns: Sequence[ConversationTurn]) -> list[ConversationTurn]:
        stamped = [_stamp(turn) for turn in turns]
        self._logs.setdefault(session_id, []).extend(stamped)
        self._touch(session_id)
        logger.debug("[SESSION] Appended %d turn(s) to '%s' (in-memory).", len(stamped), session_id)
        return stamped


    async def history(self, session_id: str) -> list[ConversationTurn]:
        return _parse_turns(session_id, self._logs.get(session_id, []))


    async def reset(self, session_id: str) -> None:
        self._logs.pop(session_id, None)
        pending = self._timers.pop(session_id, None)
        if pending is not None:
            pending.cancel()


    async def close(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._logs.clear()
        logger.info("[SESSION] In-memory store closed.")


    def __len__(self) -> int:
        return len(self._logs)


# ══════════════════════════════════════════════════════════════════════
#  FACTORY
# ══════════════════════════════════════════════════════════════════════


def create_session_store(config: Settings = settings) -> SessionStore:
    """Pick the backend once, from configuration presence."""
    if config.MONGO_URI is not None:
        client = motor.motor_asyncio.AsyncIOMotorClient(config.MONGO_URI.get_secret_value(), serverSelectionTimeoutMS=5000)
        logger.info("[SESSION] Using MongoDB session store (db=%s, ttl=%ds).", config.MONGO_DB_NAME, config.SESSION_TTL_SECONDS)
        return MongoSessionStore(client, config.MONGO_DB_NAME, config.MONGO_COLLECTION, config.SESSION_TTL_SECONDS)

    logger.warning("[SESSION] MONGO_URI not set, using in-memory session store (ttl=%ds).", config.SESSION_TTL_SECONDS)
    return InMemorySessionStore(config.SESSION_TTL_SECONDS)

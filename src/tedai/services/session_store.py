import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncContextManager, AsyncIterator, Callable, Dict, List

from ..models import ChatTurn
from .redis import RedisService

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"


def truncate_history(history: List[ChatTurn], max_len: int) -> List[ChatTurn]:
    """Keep the newest ``max_len`` turns, never starting on an orphaned tool result."""
    trimmed = history[-max_len:] if max_len > 0 else []
    start = 0
    while start < len(trimmed) and trimmed[start].role == "tool":
        start += 1
    return trimmed[start:]


class SessionStore(ABC):
    """Session id -> ordered chat history.

    ``get_or_create``, ``append``, ``truncate`` and ``clear`` are each atomic
    for their session. ``session`` holds the per-session lock for a whole
    request and yields the mutable history, which is persisted on exit.
    """

    @abstractmethod
    async def get_or_create(self, session_id: str) -> List[ChatTurn]:
        ...

    @abstractmethod
    async def append(self, session_id: str, turn: ChatTurn) -> None:
        ...

    @abstractmethod
    async def truncate(self, session_id: str, max_len: int) -> None:
        ...

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        ...

    @abstractmethod
    def session(self, session_id: str) -> AsyncContextManager[List[ChatTurn]]:
        ...

    async def close(self) -> None:
        """Release backend resources. No-op by default."""


@dataclass
class _Entry:
    turns: List[ChatTurn] = field(default_factory=list)
    touched_at: float = 0.0


class InMemorySessionStore(SessionStore):
    """Process-local store with per-session asyncio locks, idle TTL and LRU cap.

    A session's lock lives as long as some caller holds or waits on it;
    sessions with such callers are never expired or evicted.
    """

    def __init__(
        self,
        ttl_seconds: int = 86400,
        max_sessions: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_sessions = max_sessions
        self._clock = clock
        self._sessions: "OrderedDict[str, _Entry]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def _busy(self, session_id: str) -> bool:
        return self._users.get(session_id, 0) > 0

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[None]:
        # Count waiters as users so the lock cannot be dropped under them.
        self._users[session_id] = self._users.get(session_id, 0) + 1
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        try:
            async with lock:
                yield
        finally:
            self._users[session_id] -= 1
            if self._users[session_id] == 0:
                del self._users[session_id]
                del self._locks[session_id]

    def _purge_expired(self, now: float) -> None:
        if self._ttl <= 0:
            return
        # Entries are kept in least-recently-used order, so expired ones lead.
        for session_id, entry in list(self._sessions.items()):
            if now - entry.touched_at < self._ttl:
                break
            if self._busy(session_id):
                continue
            logger.info("Session expired session_id=%s", session_id)
            del self._sessions[session_id]

    def _evict_overflow(self, keep: str) -> None:
        if self._max_sessions <= 0:
            return
        for session_id in list(self._sessions):
            if len(self._sessions) <= self._max_sessions:
                break
            if session_id == keep or self._busy(session_id):
                continue
            logger.info("Session evicted (LRU) session_id=%s", session_id)
            del self._sessions[session_id]

    def _entry(self, session_id: str) -> _Entry:
        now = self._clock()
        self._purge_expired(now)
        entry = self._sessions.get(session_id)
        if entry is None:
            entry = self._sessions[session_id] = _Entry()
            logger.debug("Session created session_id=%s", session_id)
        entry.touched_at = now
        self._sessions.move_to_end(session_id)
        self._evict_overflow(keep=session_id)
        return entry

    async def get_or_create(self, session_id: str) -> List[ChatTurn]:
        return self._entry(session_id).turns

    async def append(self, session_id: str, turn: ChatTurn) -> None:
        async with self._locked(session_id):
            self._entry(session_id).turns.append(turn)

    async def truncate(self, session_id: str, max_len: int) -> None:
        async with self._locked(session_id):
            entry = self._entry(session_id)
            entry.turns[:] = truncate_history(entry.turns, max_len)

    async def clear(self, session_id: str) -> None:
        async with self._locked(session_id):
            self._sessions.pop(session_id, None)

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[List[ChatTurn]]:
        async with self._locked(session_id):
            entry = self._entry(session_id)
            try:
                yield entry.turns
            finally:
                entry.touched_at = self._clock()


def _dump_turns(turns: List[ChatTurn]) -> str:
    return json.dumps([t.to_message() for t in turns])


def _load_turns(raw: str) -> List[ChatTurn]:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise TypeError("stored history is not a list")
    return [ChatTurn.from_message(item) for item in data]


class RedisSessionStore(SessionStore):
    """Redis-backed store; history is JSON under ``session:{id}`` with a sliding TTL."""

    def __init__(self, redis: RedisService, ttl_seconds: int) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    def _key(self, session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    async def _load(self, session_id: str) -> List[ChatTurn] | None:
        raw = await self._redis.get(self._key(session_id))
        if raw is None:
            return None
        try:
            return _load_turns(raw)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Invalid session data for %s: %s", session_id, e)
            return None

    async def _save(self, session_id: str, turns: List[ChatTurn]) -> None:
        await self._redis.set(self._key(session_id), _dump_turns(turns), ttl_seconds=self._ttl)

    async def get_or_create(self, session_id: str) -> List[ChatTurn]:
        async with self._redis.lock(self._key(session_id)):
            turns = await self._load(session_id)
            if turns is None:
                turns = []
                await self._save(session_id, turns)
            return turns

    async def append(self, session_id: str, turn: ChatTurn) -> None:
        async with self._redis.lock(self._key(session_id)):
            turns = await self._load(session_id) or []
            turns.append(turn)
            await self._save(session_id, turns)

    async def truncate(self, session_id: str, max_len: int) -> None:
        async with self._redis.lock(self._key(session_id)):
            turns = await self._load(session_id) or []
            await self._save(session_id, truncate_history(turns, max_len))

    async def clear(self, session_id: str) -> None:
        async with self._redis.lock(self._key(session_id)):
            await self._redis.delete(self._key(session_id))

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[List[ChatTurn]]:
        async with self._redis.lock(self._key(session_id)):
            turns = await self._load(session_id) or []
            try:
                yield turns
            finally:
                await self._save(session_id, turns)

    async def close(self) -> None:
        await self._redis.close()

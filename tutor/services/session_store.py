"""
Session store: lifecycle, storage and per-session exclusive mutation of tutoring sessions.

Lifecycle: created → active (first append) → closed (cleared or evicted)

Concurrency guarantees:
  - One asyncio.Lock per session guards appends, completion marking and teardown.
  - A second per-session lock serializes whole turns, so two turns on one
    session never read the same transcript.
  - No global lock: unrelated sessions proceed independently.
  - A session is visible to lookups as soon as create() returns.
"""

import json
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence
import asyncio

from shared.utils.exceptions import InvalidInputError, SessionNotFoundError
from tutor.models.messages import DEFAULT_DIFFICULTY_MODE, DifficultyMode, Message, ParsedProblem
from tutor.models.session_state import TutoringSession

logger = logging.getLogger("tutor.session_store")


class SessionStore(ABC):
    """Storage abstraction the orchestrator depends on.

    Sessions handed out are snapshots; all mutation goes through the store.
    """

    @abstractmethod
    async def create(
        self,
        problem: ParsedProblem,
        difficulty_mode: DifficultyMode = DEFAULT_DIFFICULTY_MODE,
        owner_id: Optional[str] = None,
    ) -> TutoringSession:
        ...

    @abstractmethod
    async def get(self, session_id: str, owner_id: Optional[str] = None) -> TutoringSession:
        """Raises SessionNotFoundError when missing or owned by someone else."""

    @abstractmethod
    async def append_message(self, session_id: str, message: Message) -> Message:
        ...

    @abstractmethod
    async def append_messages(self, session_id: str, messages: Sequence[Message]) -> List[Message]:
        """Append a batch atomically; returns the messages as stored."""

    @abstractmethod
    async def mark_completed(self, session_id: str, completed_at: Optional[datetime] = None) -> bool:
        """Record completion. Returns True only for the call that set it."""

    @abstractmethod
    async def clear(self, session_id: str, owner_id: Optional[str] = None) -> bool:
        """Tear a session down. Idempotent; returns whether anything was removed."""

    @abstractmethod
    async def list_active(self) -> List[TutoringSession]:
        ...

    @abstractmethod
    async def evict_idle(self, now: Optional[datetime] = None) -> List[str]:
        """Remove sessions idle beyond the TTL; returns the evicted ids."""

    @abstractmethod
    def turn_lock(self, session_id: str):
        """Async context manager serializing turns on one session."""


class InMemorySessionStore(SessionStore):
    """Process-local session store."""

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, TutoringSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._turn_locks: Dict[str, asyncio.Lock] = {}

    # ─── Creation & lookup ────────────────────────────────────────────

    async def create(
        self,
        problem: ParsedProblem,
        difficulty_mode: DifficultyMode = DEFAULT_DIFFICULTY_MODE,
        owner_id: Optional[str] = None,
    ) -> TutoringSession:
        if not problem.text or not problem.text.strip():
            raise InvalidInputError("problem", "problem text must not be empty")

        now = self._clock()
        session = TutoringSession(
            owner_id=owner_id,
            problem=problem,
            difficulty_mode=difficulty_mode,
            created_at=now,
            last_activity_at=now,
        )
        # Registered before returning, with no suspension point in between.
        self._locks[session.session_id] = asyncio.Lock()
        self._turn_locks[session.session_id] = asyncio.Lock()
        self._sessions[session.session_id] = session

        logger.info(json.dumps({
            "event": "session_created",
            "session_id": session.session_id,
            "owner": owner_id is not None,
            "problem_type": problem.type,
            "difficulty_mode": difficulty_mode,
        }))
        return session.model_copy(deep=True)

    async def get(self, session_id: str, owner_id: Optional[str] = None) -> TutoringSession:
        session = self._sessions.get(session_id)
        if session is None or not session.is_accessible_by(owner_id):
            raise SessionNotFoundError(session_id)
        return session.model_copy(deep=True)

    async def list_active(self) -> List[TutoringSession]:
        return [
            session.model_copy(deep=True)
            for session in list(self._sessions.values())
            if session.state != "closed"
        ]

    # ─── Mutation ─────────────────────────────────────────────────────

    async def append_message(self, session_id: str, message: Message) -> Message:
        stored = await self.append_messages(session_id, [message])
        return stored[0]

    async def append_messages(self, session_id: str, messages: Sequence[Message]) -> List[Message]:
        lock = self._lock_for(session_id)
        async with lock:
            session = self._live_session(session_id)

            last_stamp = session.messages[-1].timestamp if session.messages else session.created_at
            stored: List[Message] = []
            for message in messages:
                stamp = max(self._clock(), last_stamp)
                stamped = message.model_copy(update={"timestamp": stamp})
                stored.append(stamped)
                last_stamp = stamp

            session.messages.extend(stored)
            if stored:
                session.last_activity_at = last_stamp
                session.state = "active"
            return stored

    async def mark_completed(self, session_id: str, completed_at: Optional[datetime] = None) -> bool:
        lock = self._lock_for(session_id)
        async with lock:
            session = self._live_session(session_id)
            if session.completed_at is not None:
                return False
            session.completed_at = completed_at or self._clock()
            return True

    # ─── Teardown ─────────────────────────────────────────────────────

    async def clear(self, session_id: str, owner_id: Optional[str] = None) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        if not session.is_accessible_by(owner_id):
            raise SessionNotFoundError(session_id)

        lock = self._locks.get(session_id)
        if lock is None:
            return False
        async with lock:
            removed = self._remove(session_id)

        if removed:
            logger.info(json.dumps({"event": "session_cleared", "session_id": session_id}))
        return removed

    async def evict_idle(self, now: Optional[datetime] = None) -> List[str]:
        now = now or self._clock()
        evicted: List[str] = []

        for session_id, session in list(self._sessions.items()):
            if now - session.last_activity_at <= self.ttl:
                continue

            lock = self._locks.get(session_id)
            turn_lock = self._turn_locks.get(session_id)
            if lock is None or lock.locked() or (turn_lock is not None and turn_lock.locked()):
                continue

            async with lock:
                current = self._sessions.get(session_id)
                if current is None or now - current.last_activity_at <= self.ttl:
                    continue
                if self._remove(session_id):
                    evicted.append(session_id)

        if evicted:
            logger.info(json.dumps({
                "event": "sessions_evicted",
                "count": len(evicted),
                "session_ids": evicted,
            }))
        return evicted

    # ─── Turn serialization ───────────────────────────────────────────

    @asynccontextmanager
    async def turn_lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._turn_locks.get(session_id)
        if lock is None:
            raise SessionNotFoundError(session_id)
        async with lock:
            # Cleared while waiting for the previous turn.
            self._live_session(session_id)
            yield

    # ─── Helpers ──────────────────────────────────────────────────────

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFoundError(session_id)
        return lock

    def _live_session(self, session_id: str) -> TutoringSession:
        session = self._sessions.get(session_id)
        if session is None or session.state == "closed":
            raise SessionNotFoundError(session_id)
        return session

    def _remove(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)
        self._turn_locks.pop(session_id, None)
        if session is None:
            return False
        session.state = "closed"
        return True

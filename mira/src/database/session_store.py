"""
Mira - Session Store
=====================
Async, in-memory conversation history keyed by ``session_id``.

Invariants:
  • A session holds at most ``max_history`` messages (oldest evicted first).
  • ``recent(sid, n)`` returns the last ``n`` messages, oldest first;
    ``n <= 0`` gives ``[]``.
  • Unknown ids are created implicitly on ``append`` / ``recent``.

Concurrency: every session has its own ``asyncio.Lock`` so writes to one
session are serialised while different sessions proceed independently.

Idle eviction: sessions untouched for ``ttl_seconds`` are dropped by a
lazy sweep run from ``append`` at most once every ``sweep_interval``
seconds.  ``ttl_seconds=0`` disables eviction; a session whose lock is
held is never evicted.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from mira.src.utils.logger import get_logger

logger = get_logger(__name__)

Role = Literal["user", "assistant"]


@dataclass(frozen=True, slots=True)
class Message:
    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp.isoformat()}


@dataclass(slots=True)
class Session:
    session_id: str
    messages: deque[Message]
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_active: float = field(default_factory=time.monotonic)


class SessionStore:
    """
    Parameters
    ----------
    max_history
        Hard cap on messages kept per session.
    ttl_seconds
        Idle time before a session is evicted (``0`` disables).
    sweep_interval
        Minimum seconds between two eviction sweeps.
    """

    __slots__ = ("_max_history", "_ttl", "_sweep_interval", "_sessions", "_last_sweep")

    def __init__(self, max_history: int = 10, ttl_seconds: float = 0, sweep_interval: float = 60) -> None:
        if max_history < 1:
            raise ValueError(f"max_history must be ≥ 1, got {max_history}")
        self._max_history = max_history
        self._ttl = ttl_seconds
        self._sweep_interval = sweep_interval
        self._sessions: dict[str, Session] = {}
        self._last_sweep = time.monotonic()


    @property
    def max_history(self) -> int:
        return self._max_history


    async def append(self, session_id: str, message: Message) -> None:
        self._maybe_sweep()
        while True:
            session = self._get_or_create(session_id)
            async with session.lock:
                # A clear or sweep may have detached this session while we waited.
                if self._sessions.get(session_id) is not session:
                    continue
                session.messages.append(message)
                session.last_active = time.monotonic()
                return


    async def add_message(self, session_id: str, role: Role, content: str) -> Message:
        message = Message(role=role, content=content)
        await self.append(session_id, message)
        return message


    async def recent(self, session_id: str, n: int) -> list[Message]:
        """Last *n* messages; reading counts as activity for idle eviction."""
        while True:
            session = self._get_or_create(session_id)
            async with session.lock:
                if self._sessions.get(session_id) is not session:
                    continue
                session.last_active = time.monotonic()
                return list(session.messages)[-n:] if n > 0 else []



    async def history(self, session_id: str) -> list[Message]:
        """Every stored message of an existing session (``[]`` if unknown)."""
        session = self._sessions.get(session_id)
        if session is None:
            return []
        async with session.lock:
            return list(session.messages)


    async def clear(self, session_id: str) -> bool:
        """Delete a session entirely.  Returns True if it existed."""
        session = self._sessions.get(session_id)
        if session is None:
            return False
        async with session.lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info("[SESSION] Cleared session '%s'.", session_id)
        return removed


    def list_sessions(self) -> list[dict[str, Any]]:
        """All sessions, most recently active first."""
        ordered = sorted(self._sessions.values(), key=lambda s: s.last_active, reverse=True)
        return [{"session_id": s.session_id, "messages": len(s.messages), "created_at": s.created_at.isoformat()} for s in ordered]


    def session_count(self) -> int:
        return len(self._sessions)

    # ── Internals ──────────────────────────────────────────────────────

    def _get_or_create(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(session_id=session_id, messages=deque(maxlen=self._max_history))
            self._sessions[session_id] = session
            logger.debug("[SESSION] New session: %s", session_id)
        return session


    def _maybe_sweep(self) -> None:
        if self._ttl <= 0:
            return
        now = time.monotonic()
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now

        expired = [sid for sid, s in self._sessions.items() if not s.lock.locked() and now - s.last_active > self._ttl]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("[SESSION] Evicted %d idle session(s).", len(expired))


    def __repr__(self) -> str:
        return f"SessionStore(sessions={len(self._sessions)}, max_history={self._max_history})"

"""MCP session store.

Sessions are minted by a successful ``initialize`` and renewed by every request
that presents a valid ``Mcp-Session-Id``. The TTL is a sliding window: each
``touch`` restarts it. An expired session is indistinguishable from one that
never existed.

The store is the only shared mutable state of the server. The in-memory
implementation guards its dict with an ``asyncio.Lock`` and never awaits
anything else while holding it.
"""

from __future__ import annotations

import abc
import asyncio
import secrets
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

from mido_mcp.utils import get_logger

Clock = Callable[[], float]


@dataclass(frozen=True)
class Session:
    """Metadata for one MCP session. Timestamps are epoch seconds."""

    session_id: str
    created_at: float
    last_activity: float


class SessionStore(abc.ABC):
    """Keyed, TTL-based session store."""

    @abc.abstractmethod
    async def create(self) -> str:
        """Mint a new session and return its id."""

    @abc.abstractmethod
    async def validate(self, session_id: str) -> Optional[Session]:
        """Return the live session, or None when unknown or expired."""

    @abc.abstractmethod
    async def touch(self, session_id: str) -> Optional[Session]:
        """Renew ``last_activity`` and restart the TTL window."""

    @abc.abstractmethod
    async def delete(self, session_id: str) -> None:
        """Remove a session. Deleting an unknown id is a no-op."""

    @abc.abstractmethod
    async def count(self) -> int:
        """Number of live sessions."""


@dataclass
class _Entry:
    session: Session
    expires_at: float


class InMemorySessionStore(SessionStore):
    """Process-local store with lazy expiry plus an optional background sweeper."""

    def __init__(self, ttl_sec: float = 3600, clock: Clock = time.time):
        self.ttl_sec = float(ttl_sec)
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        self._sweeper: asyncio.Task | None = None
        self.logger = get_logger("mcp.session")

    def _live(self, session_id: str, now: float) -> Optional[_Entry]:
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[session_id]
            self.logger.debug("session_expired", session_id=session_id)
            return None
        return entry

    async def create(self) -> str:
        async with self._lock:
            session_id = secrets.token_hex(16)
            while session_id in self._entries:
                session_id = secrets.token_hex(16)
            now = self._clock()
            self._entries[session_id] = _Entry(
                session=Session(session_id=session_id, created_at=now, last_activity=now),
                expires_at=now + self.ttl_sec,
            )
        self.logger.info("session_created", session_id=session_id)
        return session_id

    async def validate(self, session_id: str) -> Optional[Session]:
        async with self._lock:
            entry = self._live(session_id, self._clock())
            return entry.session if entry else None

    async def touch(self, session_id: str) -> Optional[Session]:
        async with self._lock:
            now = self._clock()
            entry = self._live(session_id, now)
            if entry is None:
                return None
            # Replace in one step under the lock; there is no window in which
            # the id is absent.
            renewed = replace(entry.session, last_activity=now)
            self._entries[session_id] = _Entry(session=renewed, expires_at=now + self.ttl_sec)
            return renewed

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            removed = self._entries.pop(session_id, None)
        if removed is not None:
            self.logger.info("session_deleted", session_id=session_id)

    async def count(self) -> int:
        async with self._lock:
            now = self._clock()
            return sum(1 for e in self._entries.values() if e.expires_at > now)

    async def purge_expired(self) -> int:
        """Drop every lapsed entry. Returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [sid for sid, e in self._entries.items() if e.expires_at <= now]
            for sid in expired:
                del self._entries[sid]
        if expired:
            self.logger.debug("sessions_purged", count=len(expired))
        return len(expired)

    async def _sweep_loop(self, interval_sec: float) -> None:
        while True:
            try:
                await asyncio.sleep(interval_sec)
                await self.purge_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error("session_sweep_error", error=str(e))

    def start_sweeper(self, interval_sec: float = 60) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(max(1.0, float(interval_sec))))

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

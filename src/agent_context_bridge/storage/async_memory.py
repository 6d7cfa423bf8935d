"""Async in-memory session storage backend.

Stores sessions in a plain Python dict guarded by ``asyncio.Lock``.
All data is lost when the process exits.  This backend is primarily
useful for tests and local prototyping.

Classes
-------
- AsyncInMemoryBackend  — dict-backed ephemeral async storage
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, Sequence

from agent_context_bridge.context.payload import utc_now
from agent_context_bridge.storage.async_base import AsyncStorageBackend


class AsyncInMemoryBackend(AsyncStorageBackend):
    """Ephemeral async in-process storage backend backed by a Python dict.

    Parameters
    ----------
    clock:
        Supplies modification times when callers do not pass one.
        Defaults to the UTC wall clock.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._store: dict[str, tuple[str, datetime]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()
        self._clock = clock or utc_now

    # ------------------------------------------------------------------
    # AsyncStorageBackend interface
    # ------------------------------------------------------------------

    async def save(
        self, session_id: str, payload: str, *, modified_at: datetime | None = None
    ) -> None:
        """Store ``payload`` under ``session_id``, overwriting if present."""
        async with self._lock:
            self._store[session_id] = (payload, modified_at or self._clock())

    async def load(self, session_id: str) -> str:
        """Return the payload for ``session_id``.

        Raises
        ------
        KeyError
            If ``session_id`` is not in the store.
        """
        async with self._lock:
            if session_id not in self._store:
                raise KeyError(f"Session {session_id!r} not found in AsyncInMemoryBackend.")
            return self._store[session_id][0]

    async def list_sessions(self) -> Sequence[str]:
        """Return all stored session IDs in insertion order."""
        async with self._lock:
            return list(self._store)

    async def delete(self, session_id: str, *, if_unmodified_since: datetime | None = None) -> bool:
        async with self._lock:
            entry = self._store.get(session_id)
            if entry is None:
                return False
            if if_unmodified_since is not None and entry[1] > if_unmodified_since:
                return False
            del self._store[session_id]
            return True

    async def exists(self, session_id: str) -> bool:
        async with self._lock:
            return session_id in self._store

    async def last_modified(self, session_id: str) -> datetime:
        async with self._lock:
            if session_id not in self._store:
                raise KeyError(f"Session {session_id!r} not found in AsyncInMemoryBackend.")
            return self._store[session_id][1]

    async def size(self, session_id: str) -> int:
        payload = await self.load(session_id)
        return len(payload.encode("utf-8"))

    async def touch(self, session_id: str, when: datetime | None = None) -> None:
        async with self._lock:
            if session_id not in self._store:
                raise KeyError(f"Session {session_id!r} not found in AsyncInMemoryBackend.")
            payload, _ = self._store[session_id]
            self._store[session_id] = (payload, when or self._clock())

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    async def clear(self) -> None:
        """Remove all stored sessions."""
        async with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"AsyncInMemoryBackend(sessions={len(self._store)})"


__all__ = ["AsyncInMemoryBackend"]

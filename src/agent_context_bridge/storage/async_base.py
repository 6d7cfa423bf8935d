"""Abstract base class for async session storage backends.

The raw payload exchanged with a backend is a UTF-8 string (a JSON
session document).  Besides the payload, every backend tracks a
modification time per key; the session store uses it as the record's
"last accessed" time.

Classes
-------
- AsyncStorageBackend  — abstract base for all async backends
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Sequence


class AsyncStorageBackend(ABC):
    """Protocol for async reading and writing of raw session payloads.

    Implementations must make ``save`` atomic per key: a concurrent
    ``load`` of the same key observes either the previous or the new
    payload, never a mixture.
    """

    @abstractmethod
    async def save(
        self, session_id: str, payload: str, *, modified_at: datetime | None = None
    ) -> None:
        """Persist ``payload`` under ``session_id``, overwriting any entry.

        Parameters
        ----------
        session_id:
            Unique session identifier used as the storage key.
        payload:
            UTF-8 string to persist.
        modified_at:
            Modification time to record.  Defaults to the current time.
        """

    @abstractmethod
    async def load(self, session_id: str) -> str:
        """Return the raw payload stored under ``session_id``.

        Raises
        ------
        KeyError
            If no entry exists for ``session_id``.
        """

    @abstractmethod
    async def list_sessions(self) -> Sequence[str]:
        """Return all stored session IDs.  Order is implementation-defined."""

    @abstractmethod
    async def delete(self, session_id: str, *, if_unmodified_since: datetime | None = None) -> bool:
        """Remove the entry for ``session_id``.

        Parameters
        ----------
        session_id:
            The session to remove.
        if_unmodified_since:
            When given, the entry is only removed if its modification time
            is not later than this value.  Evaluated atomically with the
            removal.

        Returns
        -------
        bool
            True if the entry existed and was deleted, False otherwise.
        """

    @abstractmethod
    async def exists(self, session_id: str) -> bool:
        """Return True if an entry for ``session_id`` exists."""

    @abstractmethod
    async def last_modified(self, session_id: str) -> datetime:
        """Return the modification time of ``session_id`` as an aware datetime.

        Raises
        ------
        KeyError
            If no entry exists for ``session_id``.
        """

    @abstractmethod
    async def size(self, session_id: str) -> int:
        """Return the stored payload size in bytes.

        Raises
        ------
        KeyError
            If no entry exists for ``session_id``.
        """

    @abstractmethod
    async def touch(self, session_id: str, when: datetime | None = None) -> None:
        """Set the modification time of ``session_id`` without changing content.

        Raises
        ------
        KeyError
            If no entry exists for ``session_id``.
        """

    def location(self, session_id: str) -> str:
        """Return a human-readable location for ``session_id``."""
        return session_id


__all__ = ["AsyncStorageBackend"]

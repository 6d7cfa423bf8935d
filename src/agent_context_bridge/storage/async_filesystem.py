"""Async filesystem storage backend.

Persists each session as an individual JSON file under a configurable
directory, ``<storage_dir>/<session_id>.json``.  Blocking file I/O runs
in worker threads via ``asyncio.to_thread``.

Writes and deletes of one key are serialised by a ``<name>.json.lock``
sentinel; content is published with an atomic rename, so readers never
need the lock and never observe a partial document.

Classes
-------
- AsyncFilesystemBackend  — JSON-file-per-session async storage
"""
from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from agent_context_bridge.storage.async_base import AsyncStorageBackend
from agent_context_bridge.storage.atomic import atomic_write_text
from agent_context_bridge.storage.locking import FileLock

logger = logging.getLogger(__name__)

_FILE_EXTENSION = ".json"
_LOCK_SUFFIX = ".lock"


class AsyncFilesystemBackend(AsyncStorageBackend):
    """Stores sessions as individual JSON files.

    Parameters
    ----------
    storage_dir:
        Directory for session files.  Created on first write if absent.
    lock_timeout:
        Seconds to wait for a per-key lock before failing.  Default: 10.
    """

    def __init__(self, storage_dir: str | Path, lock_timeout: float = 10.0) -> None:
        self._storage_dir: Path = Path(storage_dir)
        self._lock_timeout = lock_timeout

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_dir(self) -> None:
        self._storage_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, session_id: str) -> Path:
        """Return the file path for ``session_id``.

        Only the final path component of ``session_id`` is used, which
        keeps every key inside ``storage_dir``.
        """
        safe_name = os.path.basename(session_id)
        return self._storage_dir / f"{safe_name}{_FILE_EXTENSION}"

    def _lock_for(self, path: Path) -> FileLock:
        return FileLock(path.with_name(path.name + _LOCK_SUFFIX), timeout=self._lock_timeout)

    def _save_sync(self, session_id: str, payload: str, modified_at: datetime | None) -> None:
        self._ensure_dir()
        path = self._path_for(session_id)
        with self._lock_for(path):
            atomic_write_text(path, payload, modified_at)

    def _load_sync(self, session_id: str) -> str:
        path = self._path_for(session_id)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise KeyError(f"Session {session_id!r} not found at {path}") from None

    def _list_sync(self) -> list[str]:
        if not self._storage_dir.exists():
            return []
        return sorted(
            path.stem
            for path in self._storage_dir.glob(f"*{_FILE_EXTENSION}")
            if path.is_file() and not path.name.startswith(".")
        )

    def _delete_sync(self, session_id: str, if_unmodified_since: datetime | None) -> bool:
        path = self._path_for(session_id)
        if not path.exists():
            return False
        with self._lock_for(path):
            try:
                modified = _mtime(path.stat())
            except FileNotFoundError:
                return False
            if if_unmodified_since is not None and modified > if_unmodified_since:
                logger.debug("Skipping delete of %r: modified after %s", session_id, if_unmodified_since)
                return False
            path.unlink()
            return True

    def _stat_sync(self, session_id: str) -> os.stat_result:
        path = self._path_for(session_id)
        try:
            return path.stat()
        except FileNotFoundError:
            raise KeyError(f"Session {session_id!r} not found at {path}") from None

    def _touch_sync(self, session_id: str, when: datetime | None) -> None:
        path = self._path_for(session_id)
        if not path.exists():
            raise KeyError(f"Session {session_id!r} not found at {path}")
        with self._lock_for(path):
            try:
                if when is None:
                    os.utime(path)
                else:
                    stamp = when.timestamp()
                    os.utime(path, (stamp, stamp))
            except FileNotFoundError:
                raise KeyError(f"Session {session_id!r} not found at {path}") from None

    # ------------------------------------------------------------------
    # AsyncStorageBackend interface
    # ------------------------------------------------------------------

    async def save(
        self, session_id: str, payload: str, *, modified_at: datetime | None = None
    ) -> None:
        """Atomically write ``payload`` to ``<storage_dir>/<session_id>.json``."""
        await asyncio.to_thread(self._save_sync, session_id, payload, modified_at)

    async def load(self, session_id: str) -> str:
        """Return the file contents for ``session_id``.

        Raises
        ------
        KeyError
            If the file does not exist.
        """
        return await asyncio.to_thread(self._load_sync, session_id)

    async def list_sessions(self) -> Sequence[str]:
        """Return session IDs derived from file stems, sorted."""
        return await asyncio.to_thread(self._list_sync)

    async def delete(self, session_id: str, *, if_unmodified_since: datetime | None = None) -> bool:
        """Remove the file for ``session_id`` under its lock."""
        return await asyncio.to_thread(self._delete_sync, session_id, if_unmodified_since)

    async def exists(self, session_id: str) -> bool:
        return await asyncio.to_thread(self._path_for(session_id).is_file)

    async def last_modified(self, session_id: str) -> datetime:
        return _mtime(await asyncio.to_thread(self._stat_sync, session_id))

    async def size(self, session_id: str) -> int:
        stat = await asyncio.to_thread(self._stat_sync, session_id)
        return stat.st_size

    async def touch(self, session_id: str, when: datetime | None = None) -> None:
        await asyncio.to_thread(self._touch_sync, session_id, when)

    def location(self, session_id: str) -> str:
        return str(self._path_for(session_id))

    def __repr__(self) -> str:
        return f"AsyncFilesystemBackend(storage_dir={str(self._storage_dir)!r})"


def _mtime(stat: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)


__all__ = ["AsyncFilesystemBackend"]

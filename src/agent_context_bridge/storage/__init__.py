"""Storage backends for the session store.

Public surface
--------------
- AsyncStorageBackend     — abstract async base
- AsyncFilesystemBackend  — JSON-file-per-session, atomic replace, per-key locks
- AsyncInMemoryBackend    — dict-backed, for tests and prototyping
- FileLock                — cross-process advisory lock
"""
from __future__ import annotations

from agent_context_bridge.storage.async_base import AsyncStorageBackend
from agent_context_bridge.storage.async_filesystem import AsyncFilesystemBackend
from agent_context_bridge.storage.async_memory import AsyncInMemoryBackend
from agent_context_bridge.storage.locking import FileLock

__all__ = [
    "AsyncFilesystemBackend",
    "AsyncInMemoryBackend",
    "AsyncStorageBackend",
    "FileLock",
]

"""Cross-platform advisory file locking for session documents.

A lock is a sentinel ``.lock`` file created with exclusive-create
semantics.  It serialises writers and deleters of one key across threads
and processes; readers never take it because writes are published with
an atomic rename.

Classes
-------
FileLock
    Acquires an exclusive lock on a sentinel file.  Supports explicit
    ``acquire``/``release`` and the context-manager protocol.
"""
from __future__ import annotations

import os
import time
from pathlib import Path

_POLL_INTERVAL_SECONDS: float = 0.01


class FileLock:
    """Advisory lock backed by exclusive creation of ``lock_path``.

    Parameters
    ----------
    lock_path:
        Path of the sentinel file, created on acquire and removed on release.
    timeout:
        Seconds to wait before raising :class:`TimeoutError`.  Default: 10.
    """

    def __init__(self, lock_path: str | Path, timeout: float = 10.0) -> None:
        self._lock_path: Path = Path(lock_path)
        self._timeout: float = timeout
        self._fd: int | None = None

    @property
    def path(self) -> Path:
        return self._lock_path

    @property
    def locked(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Block until the lock is held or the timeout expires.

        Raises
        ------
        TimeoutError
            If the lock cannot be acquired within the timeout.
        """
        start = time.monotonic()
        while True:
            try:
                self._fd = os.open(self._lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                os.write(self._fd, str(os.getpid()).encode("ascii"))
                return
            except FileExistsError:
                if time.monotonic() - start >= self._timeout:
                    raise TimeoutError(
                        f"Could not acquire lock {self._lock_path} within {self._timeout}s"
                    ) from None
                time.sleep(_POLL_INTERVAL_SECONDS)

    def release(self) -> None:
        """Release the lock.  Safe to call when the lock is not held."""
        if self._fd is None:
            return
        os.close(self._fd)
        self._fd = None
        try:
            self._lock_path.unlink()
        except FileNotFoundError:
            pass

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"FileLock(lock_path={str(self._lock_path)!r}, locked={self.locked})"

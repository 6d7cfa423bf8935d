"""Atomic file replacement.

Documents are written to a temporary sibling and published with
``os.replace`` so that a concurrent reader sees either the old file or
the new one in full.
"""
from __future__ import annotations

import os
import tempfile
from datetime import datetime
from pathlib import Path


def atomic_write_text(path: Path, text: str, modified_at: datetime | None = None) -> int:
    """Atomically replace ``path`` with ``text`` (UTF-8).

    Parameters
    ----------
    path:
        Destination file.  Its parent directory must exist.
    text:
        Content to write.
    modified_at:
        Optional modification time stamped on the file before it is
        published.

    Returns
    -------
    int
        Number of bytes written.
    """
    data = text.encode("utf-8")
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if modified_at is not None:
            stamp = modified_at.timestamp()
            os.utime(tmp_name, (stamp, stamp))
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return len(data)

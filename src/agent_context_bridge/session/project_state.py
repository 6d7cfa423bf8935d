"""Per-project state documents and checkpoints.

Layout under ``base_dir``::

    projects/<project>/current_state.json
    projects/<project>/checkpoint_<epoch_ms>_<rand>.json

``current_state.json`` holds the latest project state, a bounded history
of previous states and the context it was created with.  A checkpoint is
a frozen copy of the current state plus the context supplied when it was
taken.

Classes
-------
- CheckpointInfo       — listing entry for one checkpoint
- ProjectStateTracker  — create, update, read and checkpoint project state
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

from agent_context_bridge.context.payload import parse_timestamp, to_epoch_ms, utc_now
from agent_context_bridge.errors import SessionNotFoundError, StorageError
from agent_context_bridge.storage.atomic import atomic_write_text
from agent_context_bridge.storage.locking import FileLock
from agent_context_bridge.validation import ensure_json_object, require_key

logger = logging.getLogger(__name__)

STATE_VERSION = "2.0.0"
_STATE_FILE = "current_state.json"
_CHECKPOINT_PREFIX = "checkpoint_"


@dataclass
class CheckpointInfo:
    """Metadata about a stored checkpoint."""

    checkpoint_id: str
    created_at: str
    size: int
    file: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "checkpointId": self.checkpoint_id,
            "createdAt": self.created_at,
            "size": self.size,
            "file": self.file,
        }


class ProjectStateTracker:
    """Manage project state documents and their checkpoints.

    Parameters
    ----------
    base_dir:
        Root directory; ``projects/`` and ``admin_sync/`` live under it.
    max_state_history:
        Cap on retained history entries and on listed checkpoints.
    lock_timeout:
        Seconds a writer waits for the project lock.
    clock:
        Source of "now".  Defaults to the UTC wall clock.
    """

    def __init__(
        self,
        base_dir: str | Path,
        max_state_history: int = 10,
        lock_timeout: float = 10.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.projects_dir = self.base_dir / "projects"
        self.admin_sync_dir = self.base_dir / "admin_sync"
        self.max_state_history = max_state_history
        self._lock_timeout = lock_timeout
        self._clock = clock or utc_now

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def init_system(self) -> dict[str, str]:
        """Create the directory tree.  Idempotent."""

        def _init() -> dict[str, str]:
            for directory in (self.base_dir, self.projects_dir, self.admin_sync_dir):
                directory.mkdir(parents=True, exist_ok=True)
            return {
                "baseDir": str(self.base_dir),
                "projectsDir": str(self.projects_dir),
                "adminSyncDir": str(self.admin_sync_dir),
            }

        return await self._run(_init, "init_system")

    async def create_project_state(
        self,
        project_name: str,
        state: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Write a fresh ``current_state.json`` for ``project_name``.

        An existing state document is replaced.
        """
        operation = "create_project_state"
        project_dir = self._project_dir(project_name, operation)
        now = self._clock().isoformat()
        document = {
            "projectName": project_name,
            "state": ensure_json_object(state, "state", operation),
            "context": ensure_json_object(context, "context", operation),
            "created": now,
            "lastUpdated": now,
            "version": STATE_VERSION,
            "history": [],
        }

        def _create() -> dict[str, Any]:
            project_dir.mkdir(parents=True, exist_ok=True)
            state_file = project_dir / _STATE_FILE
            with self._lock(state_file):
                atomic_write_text(state_file, json.dumps(document, indent=2, ensure_ascii=False))
            return {"projectName": project_name, "stateFile": str(state_file)}

        result = await self._run(_create, operation)
        logger.debug("ProjectStateTracker: created state for project %r", project_name)
        return result

    async def update_state(self, project_name: str, state: dict[str, Any]) -> dict[str, Any]:
        """Merge ``state`` into the project's current state.

        The previous state is pushed onto ``history`` (newest last, capped
        at ``max_state_history``).

        Raises
        ------
        SessionNotFoundError
            If the project has no state document.
        """
        operation = "update_state"
        project_dir = self._project_dir(project_name, operation)
        updates = ensure_json_object(state, "state", operation)
        now = self._clock().isoformat()

        def _update() -> dict[str, Any]:
            state_file = project_dir / _STATE_FILE
            if not state_file.exists():
                raise SessionNotFoundError(project_name, operation, kind="Project")
            with self._lock(state_file):
                document = self._read_state(state_file, project_name, operation)
                history = list(document.get("history") or [])
                history.append(
                    {"state": document.get("state", {}), "lastUpdated": document.get("lastUpdated")}
                )
                document["history"] = history[-self.max_state_history :]
                document["state"] = {**(document.get("state") or {}), **updates}
                document["lastUpdated"] = now
                atomic_write_text(state_file, json.dumps(document, indent=2, ensure_ascii=False))
            return document

        result = await self._run(_update, operation)
        logger.debug("ProjectStateTracker: updated state for project %r", project_name)
        return result

    async def get_current_state(self, project_name: str) -> dict[str, Any]:
        """Return the project's state document.

        Raises
        ------
        SessionNotFoundError
            If the project has no state document.
        """
        operation = "get_current_state"
        state_file = self._project_dir(project_name, operation) / _STATE_FILE

        def _get() -> dict[str, Any]:
            if not state_file.exists():
                raise SessionNotFoundError(project_name, operation, kind="Project")
            return self._read_state(state_file, project_name, operation)

        return await self._run(_get, operation)

    async def create_checkpoint(
        self, project_name: str, context: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Snapshot the current state into a new checkpoint file.

        Raises
        ------
        SessionNotFoundError
            If the project has no state document.
        """
        operation = "create_checkpoint"
        project_dir = self._project_dir(project_name, operation)
        checkpoint_context = ensure_json_object(context, "context", operation)
        current = await self.get_current_state(project_name)
        now = self._clock()
        checkpoint_id = f"{_CHECKPOINT_PREFIX}{to_epoch_ms(now)}_{uuid4().hex[:9]}"
        document = {
            **current,
            "checkpointId": checkpoint_id,
            "context": checkpoint_context,
            "createdAt": now.isoformat(),
        }

        def _write() -> dict[str, Any]:
            checkpoint_file = project_dir / f"{checkpoint_id}.json"
            atomic_write_text(checkpoint_file, json.dumps(document, indent=2, ensure_ascii=False))
            return {
                "checkpointId": checkpoint_id,
                "projectName": project_name,
                "file": str(checkpoint_file),
            }

        result = await self._run(_write, operation)
        logger.debug(
            "ProjectStateTracker: created checkpoint %r for project %r", checkpoint_id, project_name
        )
        return result

    async def list_checkpoints(self, project_name: str) -> tuple[list[CheckpointInfo], int]:
        """Return checkpoints newest first, capped at ``max_state_history``.

        Returns
        -------
        tuple
            ``(checkpoints, total)`` where ``total`` counts every readable
            checkpoint before the cap.

        Raises
        ------
        SessionNotFoundError
            If the project directory does not exist.
        """
        operation = "list_checkpoints"
        project_dir = self._project_dir(project_name, operation)

        def _list() -> list[CheckpointInfo]:
            if not project_dir.is_dir():
                raise SessionNotFoundError(project_name, operation, kind="Project")
            found: list[CheckpointInfo] = []
            for path in sorted(project_dir.glob(f"{_CHECKPOINT_PREFIX}*.json")):
                try:
                    data = json.loads(path.read_text(encoding="utf-8"))
                    found.append(
                        CheckpointInfo(
                            checkpoint_id=str(data["checkpointId"]),
                            created_at=str(data["createdAt"]),
                            size=path.stat().st_size,
                            file=path.name,
                        )
                    )
                except (OSError, ValueError, KeyError, TypeError) as exc:
                    logger.warning("Skipping unreadable checkpoint %s: %s", path.name, exc)
            return found

        checkpoints = await self._run(_list, operation)
        checkpoints.sort(key=_checkpoint_sort_key, reverse=True)
        return checkpoints[: self.max_state_history], len(checkpoints)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _project_dir(self, project_name: Any, operation: str) -> Path:
        return self.projects_dir / require_key(project_name, "projectName", operation)

    def _lock(self, state_file: Path) -> FileLock:
        return FileLock(state_file.with_name(state_file.name + ".lock"), timeout=self._lock_timeout)

    @staticmethod
    def _read_state(state_file: Path, project_name: str, operation: str) -> dict[str, Any]:
        try:
            document = json.loads(state_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise SessionNotFoundError(project_name, operation, kind="Project") from None
        except ValueError as exc:
            raise StorageError(f"State for project {project_name!r} is corrupt: {exc}", operation) from exc
        if not isinstance(document, dict):
            raise StorageError(f"State for project {project_name!r} is not a JSON object", operation)
        return document

    @staticmethod
    async def _run(func: Callable[[], Any], operation: str) -> Any:
        try:
            return await asyncio.to_thread(func)
        except (OSError, TimeoutError) as exc:
            raise StorageError(f"{operation} failed: {exc}", operation) from exc

    def __repr__(self) -> str:
        return f"ProjectStateTracker(base_dir={str(self.base_dir)!r})"


def _checkpoint_sort_key(info: CheckpointInfo) -> tuple[float, str]:
    created = parse_timestamp(info.created_at)
    return (created.timestamp() if created else 0.0, info.checkpoint_id)


"""Session store: capture, restore, freshness-ranked listing and expiry.

``SessionStore`` is the only owner of session records.  Callers receive
copies; the persisted JSON document is the single source of truth and
its storage modification time is the record's "last accessed" time.

Classes
-------
- SessionStore  — async facade over an ``AsyncStorageBackend``
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from agent_context_bridge.context.freshness import FreshnessScorer
from agent_context_bridge.context.payload import to_epoch_ms, utc_now
from agent_context_bridge.errors import (
    ProjectMismatchError,
    SessionNotFoundError,
    StorageError,
    ValidationError,
)
from agent_context_bridge.session.record import (
    CaptureReceipt,
    CleanupEntry,
    CleanupReport,
    CleanupStrategy,
    ListingResult,
    ScoredSession,
    SessionRecord,
)
from agent_context_bridge.storage.async_base import AsyncStorageBackend
from agent_context_bridge.storage.async_filesystem import AsyncFilesystemBackend
from agent_context_bridge.storage.atomic import atomic_write_text
from agent_context_bridge.validation import ensure_json_object, require_key

if TYPE_CHECKING:
    from agent_context_bridge.config import StoreConfig

logger = logging.getLogger(__name__)


class SessionStore:
    """Persist, list and expire session records.

    Parameters
    ----------
    backend:
        Where session documents live.
    session_timeout:
        Records idle for longer than this are removed by
        ``cleanup_expired``.  Default: 30 minutes.
    max_active_sessions:
        Default cap for ``list_active``.  Default: 5.
    freshness_decay_factor:
        Per-day decay applied to listing scores.  Default: 0.1.
    priority_boost / priority_window_hours:
        Recency boost for listing scores.  Default: no boost.
    touch_on_restore:
        Refresh last-accessed time on ``restore``.  Default: True.
    archive_dir:
        Destination for the ``smart_archive`` cleanup strategy.
    clock:
        Source of "now" (aware UTC).  Defaults to the wall clock.
    """

    def __init__(
        self,
        backend: AsyncStorageBackend,
        *,
        session_timeout: timedelta = timedelta(minutes=30),
        max_active_sessions: int = 5,
        freshness_decay_factor: float = 0.1,
        priority_boost: float = 1.0,
        priority_window_hours: float = 0.0,
        touch_on_restore: bool = True,
        archive_dir: str | Path | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._backend = backend
        self.session_timeout = session_timeout
        self.max_active_sessions = max_active_sessions
        self.touch_on_restore = touch_on_restore
        self._archive_dir = Path(archive_dir) if archive_dir is not None else None
        self._clock = clock or utc_now
        self._scorer = FreshnessScorer(
            decay_factor=freshness_decay_factor,
            priority_window_hours=priority_window_hours,
            priority_boost=priority_boost,
            clock=self._clock,
        )

    @classmethod
    def from_config(
        cls, config: StoreConfig, clock: Callable[[], datetime] | None = None
    ) -> SessionStore:
        """Build a filesystem-backed store from ``StoreConfig``."""
        backend = AsyncFilesystemBackend(
            config.context_cache_dir, lock_timeout=config.lock_timeout_seconds
        )
        return cls(
            backend,
            session_timeout=timedelta(minutes=config.session_timeout_minutes),
            max_active_sessions=config.max_active_sessions,
            freshness_decay_factor=config.freshness_decay_factor,
            priority_boost=config.session_priority_boost,
            priority_window_hours=config.session_priority_window_hours,
            touch_on_restore=config.touch_on_restore,
            archive_dir=config.archive_dir,
            clock=clock,
        )

    @property
    def backend(self) -> AsyncStorageBackend:
        return self._backend

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Capture / restore
    # ------------------------------------------------------------------

    async def capture(
        self,
        session_id: str,
        project_name: str,
        context: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CaptureReceipt:
        """Write a session record, replacing any record with the same id.

        Raises
        ------
        ValidationError
            If an id is missing or a payload is not a JSON object.
        StorageError
            If the backing medium cannot be written.
        """
        operation = "capture_session"
        require_key(session_id, "sessionId", operation)
        if not isinstance(project_name, str) or not project_name.strip():
            raise ValidationError("projectName is required", operation)
        context_tree = ensure_json_object(context, "context", operation)
        metadata_tree = ensure_json_object(metadata, "metadata", operation)

        now = self._clock()
        record = SessionRecord(
            session_id=session_id,
            project_name=project_name,
            context=context_tree,
            metadata=metadata_tree,
            captured_at=now,
            last_accessed=now,
        )
        payload = json.dumps(record.to_document(), indent=2, ensure_ascii=False)
        try:
            await self._backend.save(session_id, payload, modified_at=now)
        except (OSError, TimeoutError) as exc:
            raise StorageError(f"Could not write session {session_id!r}: {exc}", operation) from exc

        logger.debug("SessionStore: captured session %r for project %r", session_id, project_name)
        return CaptureReceipt(
            record=record.model_copy(deep=True),
            location=self._backend.location(session_id),
            size=len(payload.encode("utf-8")),
        )

    async def restore(self, session_id: str, project_name: str | None = None) -> SessionRecord:
        """Return the stored record for ``session_id``.

        Parameters
        ----------
        session_id:
            The session to restore.
        project_name:
            When given, the stored project must be exactly equal.

        Raises
        ------
        SessionNotFoundError
            If the session does not exist.
        ProjectMismatchError
            If ``project_name`` differs from the stored value.
        StorageError
            If the document cannot be read or parsed.
        """
        operation = "restore_session"
        require_key(session_id, "sessionId", operation)
        try:
            raw = await self._backend.load(session_id)
        except KeyError:
            raise SessionNotFoundError(session_id, operation) from None
        except (OSError, TimeoutError) as exc:
            raise StorageError(f"Could not read session {session_id!r}: {exc}", operation) from exc

        try:
            record = SessionRecord.from_document(json.loads(raw))
        except ValueError as exc:
            raise StorageError(f"Session {session_id!r} is corrupt: {exc}", operation) from exc

        if project_name and record.project_name != project_name:
            raise ProjectMismatchError(session_id, project_name, record.project_name, operation)

        record.last_accessed = await self._mark_accessed(session_id)
        logger.debug("SessionStore: restored session %r", session_id)
        return record

    async def _mark_accessed(self, session_id: str) -> datetime | None:
        try:
            if self.touch_on_restore:
                now = self._clock()
                await self._backend.touch(session_id, now)
                return now
            return await self._backend.last_modified(session_id)
        except KeyError:
            # Removed by a concurrent cleanup after we read it.
            return None
        except (OSError, TimeoutError) as exc:
            logger.warning("SessionStore: could not update access time of %r: %s", session_id, exc)
            return None

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def load_all(
        self, project_name: str | None = None
    ) -> tuple[list[tuple[SessionRecord, int]], list[str]]:
        """Load every readable record, optionally for one project.

        Empty and corrupt documents are skipped and reported in the
        returned warnings list instead of raising.

        Returns
        -------
        tuple
            ``([(record, size_bytes), ...], warnings)`` in backend order.
        """
        try:
            session_ids = await self._backend.list_sessions()
        except (OSError, TimeoutError) as exc:
            raise StorageError(f"Could not enumerate sessions: {exc}", "list_active_sessions") from exc

        loaded: list[tuple[SessionRecord, int]] = []
        warnings: list[str] = []
        for session_id in session_ids:
            try:
                size = await self._backend.size(session_id)
                if size == 0:
                    message = f"Skipping empty session file: {session_id}"
                    logger.warning(message)
                    warnings.append(message)
                    continue
                raw = await self._backend.load(session_id)
                modified = await self._backend.last_modified(session_id)
                record = SessionRecord.from_document(json.loads(raw), last_accessed=modified)
            except KeyError:
                continue
            except (ValueError, OSError) as exc:
                message = f"Skipping corrupted session file: {session_id} - {exc}"
                logger.warning(message)
                warnings.append(message)
                continue
            if project_name and record.project_name != project_name:
                continue
            loaded.append((record, size))
        return loaded, warnings

    async def list_active(
        self, project_name: str | None = None, max_results: int | None = None
    ) -> ListingResult:
        """Return sessions ranked by freshness of their last access.

        Every record gets base score 1.0 decayed by the age of its
        last-accessed time.  The project filter is an exact match.

        Parameters
        ----------
        project_name:
            Only include sessions of this project.
        max_results:
            Cap on returned sessions.  Defaults to ``max_active_sessions``.
        """
        if max_results is not None and max_results <= 0:
            raise ValidationError("maxResults must be positive", "list_active_sessions")
        limit = max_results or self.max_active_sessions
        now = self._clock()

        loaded, warnings = await self.load_all(project_name)
        scored = [
            ScoredSession(record=record, score=self._scorer.score(1.0, record.last_accessed, now), size=size)
            for record, size in loaded
        ]
        scored.sort(key=lambda item: item.score, reverse=True)
        return ListingResult(sessions=scored[:limit], total=len(scored), warnings=warnings)

    async def count(self) -> int:
        """Return the number of stored session documents."""
        try:
            return len(await self._backend.list_sessions())
        except (OSError, TimeoutError) as exc:
            raise StorageError(f"Could not enumerate sessions: {exc}", "count_sessions") from exc

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    async def cleanup_expired(
        self, strategy: CleanupStrategy | str = CleanupStrategy.TIMESTAMP
    ) -> CleanupReport:
        """Remove every session idle for longer than ``session_timeout``.

        ``timestamp`` deletes outright; ``smart_archive`` first copies the
        document into ``archive_dir``.  A session re-captured while the
        sweep runs is left alone.

        Raises
        ------
        ValidationError
            For an unknown strategy, or ``smart_archive`` without an
            archive directory.
        StorageError
            If the sessions cannot be enumerated.  A session that cannot be
            locked or removed is reported in ``warnings`` and skipped.
        """
        operation = "cleanup_expired"
        try:
            chosen = CleanupStrategy(strategy)
        except ValueError:
            valid = ", ".join(member.value for member in CleanupStrategy)
            raise ValidationError(
                f"Unknown cleanup strategy {strategy!r}; expected one of: {valid}", operation
            ) from None
        if chosen is CleanupStrategy.SMART_ARCHIVE and self._archive_dir is None:
            raise ValidationError("smart_archive requires an archive directory", operation)

        now = self._clock()
        report = CleanupReport(strategy=chosen)
        try:
            session_ids = list(await self._backend.list_sessions())
        except (OSError, TimeoutError) as exc:
            raise StorageError(f"Cleanup failed: {exc}", operation) from exc

        for session_id in session_ids:
            try:
                entry = await self._expire_one(session_id, chosen, now)
            except (OSError, TimeoutError) as exc:
                message = f"Skipped {session_id}: {exc}"
                logger.warning("SessionStore: %s", message)
                report.warnings.append(message)
                continue
            if entry is not None:
                report.removed.append(entry)
        return report

    async def _expire_one(
        self, session_id: str, strategy: CleanupStrategy, now: datetime
    ) -> CleanupEntry | None:
        try:
            modified = await self._backend.last_modified(session_id)
        except KeyError:
            return None
        age = now - modified
        if age <= self.session_timeout:
            return None
        action = "deleted"
        if strategy is CleanupStrategy.SMART_ARCHIVE:
            try:
                raw = await self._backend.load(session_id)
            except KeyError:
                return None
            await self._archive(session_id, raw, now)
            action = "archived"
        if not await self._backend.delete(session_id, if_unmodified_since=modified):
            return None
        logger.debug("SessionStore: %s expired session %r", action, session_id)
        return CleanupEntry(
            session_id=session_id,
            action=action,
            age_minutes=round(age.total_seconds() / 60),
        )

    async def _archive(self, session_id: str, raw: str, now: datetime) -> Path:
        archive_dir = self._archive_dir
        assert archive_dir is not None
        target = archive_dir / f"{session_id}_{to_epoch_ms(now)}.json"

        def _write() -> Path:
            archive_dir.mkdir(parents=True, exist_ok=True)
            atomic_write_text(target, raw)
            return target

        return await asyncio.to_thread(_write)

    def __repr__(self) -> str:
        return (
            f"SessionStore(backend={self._backend!r}, "
            f"session_timeout={self.session_timeout}, "
            f"max_active_sessions={self.max_active_sessions})"
        )


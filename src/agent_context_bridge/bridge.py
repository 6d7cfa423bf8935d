"""Facade wiring the session store, project tracker, search and pipeline.

``ContextBridge`` is the single object the tool surface and the CLI talk
to.  It owns nothing the components do not already own; it only builds
them from one ``BridgeConfig`` and offers the two composite operations
that span several of them.

Example
-------
::

    bridge = ContextBridge.from_config(load_config())
    await bridge.store.capture("s1", "payments", {"task": "refund flow"})
    context = await bridge.get_relevant_context("payments", "refund")
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

import httpx

from agent_context_bridge.config import BridgeConfig
from agent_context_bridge.context.payload import utc_now
from agent_context_bridge.errors import SessionNotFoundError, StorageError
from agent_context_bridge.pipeline import ContextPipeline
from agent_context_bridge.search.aggregator import SearchAggregator
from agent_context_bridge.search.base import SearchBackend
from agent_context_bridge.search.messages import MessageStoreBackend
from agent_context_bridge.search.models import QueryConfig
from agent_context_bridge.search.qdrant import QdrantTextBackend
from agent_context_bridge.search.sessions import SessionCacheBackend
from agent_context_bridge.session.project_state import ProjectStateTracker
from agent_context_bridge.session.record import CleanupStrategy
from agent_context_bridge.session.store import SessionStore
from agent_context_bridge.validation import ensure_json_object

logger = logging.getLogger(__name__)

ENHANCED_VERSION = "2.0"


class ContextBridge:
    """Composition root for one context-retrieval deployment.

    Parameters
    ----------
    store:
        Session store.
    tracker:
        Project state tracker.
    aggregator:
        Search aggregator with its adapters registered.
    pipeline:
        Context pipeline.
    query_config:
        Default ranking configuration for searches.
    clock:
        Source of "now" for envelope timestamps.
    """

    def __init__(
        self,
        store: SessionStore,
        tracker: ProjectStateTracker,
        aggregator: SearchAggregator,
        pipeline: ContextPipeline,
        query_config: QueryConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.tracker = tracker
        self.aggregator = aggregator
        self.pipeline = pipeline
        self.query_config = query_config or QueryConfig()
        self._clock = clock or utc_now

    @classmethod
    def from_config(
        cls,
        config: BridgeConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> ContextBridge:
        """Build every component from ``config``.

        The ``sessions`` adapter is always registered; the vector-store
        and message-store adapters follow their ``enabled`` flags.
        """
        config = config or BridgeConfig()
        store = SessionStore.from_config(config.store, clock=clock)
        tracker = ProjectStateTracker(
            config.store.base_dir,
            max_state_history=config.store.max_state_history,
            lock_timeout=config.store.lock_timeout_seconds,
            clock=clock,
        )
        backends: list[SearchBackend] = [
            SessionCacheBackend(store, timeout=config.sessions_backend_timeout_seconds)
        ]
        if config.qdrant.enabled:
            backends.append(QdrantTextBackend.from_config(config.qdrant, client=http_client))
        if config.messages.enabled:
            backends.append(MessageStoreBackend.from_config(config.messages))

        return cls(
            store,
            tracker,
            SearchAggregator(backends, clock=clock),
            ContextPipeline(store, clock=clock),
            query_config=config.search,
            clock=clock,
        )

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Composite operations
    # ------------------------------------------------------------------

    async def get_relevant_context(
        self,
        project_name: str,
        query: str | None = None,
        query_config: QueryConfig | None = None,
    ) -> dict[str, Any]:
        """Collect everything known about ``project_name`` for one turn.

        Returns the ranked active sessions, the project's current state
        (``None`` when it has none or it cannot be read) and, when
        ``query`` is given, the freshness-ranked search results.

        Raises
        ------
        StorageError
            Only if the session listing itself fails.
        """
        listing = await self.store.list_active(project_name)

        state: dict[str, Any] | None
        try:
            state = await self.tracker.get_current_state(project_name)
        except SessionNotFoundError:
            state = None
        except StorageError as exc:
            logger.warning("Project state for %r unavailable: %s", project_name, exc)
            state = None

        search: dict[str, Any] | None = None
        if query and query.strip():
            ranked = await self.aggregator.search_with_freshness(
                query, query_config or self.query_config
            )
            search = ranked.to_dict()

        return {
            "projectName": project_name,
            "activeSessions": listing.to_dict(),
            "currentState": state,
            "search": search,
        }

    async def capture_session_smart(
        self,
        session_id: str,
        project_name: str,
        context: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Capture a session, then archive every expired one.

        ``metadata`` is stamped with ``enhancedVersion``.
        """
        stamped = {
            **ensure_json_object(metadata, "metadata", "capture_session"),
            "enhancedVersion": ENHANCED_VERSION,
        }
        receipt = await self.store.capture(session_id, project_name, context, stamped)
        report = await self.store.cleanup_expired(CleanupStrategy.SMART_ARCHIVE)
        return {"capture": receipt.to_dict(), "cleanup": report.to_dict()}

    async def aclose(self) -> None:
        await self.aggregator.aclose()

    def __repr__(self) -> str:
        return f"ContextBridge(store={self.store!r}, aggregator={self.aggregator!r})"

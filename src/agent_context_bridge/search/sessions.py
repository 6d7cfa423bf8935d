"""Text-match adapter over the session store's own cache.

Lets cached sessions compete with external sources in one ranked list.
Each record's context is serialised and scored with the same
term-overlap heuristic as the vector-store adapter, so scores are
directly comparable.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from agent_context_bridge.context.payload import dumps
from agent_context_bridge.context.relevance import term_overlap_score
from agent_context_bridge.search.base import SearchBackend
from agent_context_bridge.search.models import SearchResult

if TYPE_CHECKING:
    from agent_context_bridge.session.store import SessionStore

logger = logging.getLogger(__name__)


class SessionCacheBackend(SearchBackend):
    """Search captured sessions by context text.

    Parameters
    ----------
    store:
        The session store to scan.
    project_name:
        Restrict the scan to one project (exact match).
    timeout:
        Per-call timeout in seconds.
    """

    tag = "sessions"

    def __init__(
        self, store: SessionStore, project_name: str | None = None, timeout: float = 5.0
    ) -> None:
        super().__init__(timeout=timeout)
        self._store = store
        self.project_name = project_name

    async def _query(self, query: str, limit: int) -> list[SearchResult]:
        loaded, warnings = await self._store.load_all(self.project_name)
        for warning in warnings:
            logger.debug("SessionCacheBackend: %s", warning)
        results: list[SearchResult] = []
        for record, size in loaded:
            score = term_overlap_score(query, dumps(record.context))
            if score <= 0:
                continue
            results.append(
                SearchResult(
                    id=record.session_id,
                    source=self.tag,
                    payload={
                        "projectName": record.project_name,
                        "context": record.context,
                        "metadata": record.metadata,
                        "captureTime": record.captured_at.isoformat(),
                        "size": size,
                    },
                    base_score=score,
                    observed_at=record.captured_at,
                )
            )
        results.sort(key=lambda result: result.base_score, reverse=True)
        return results[:limit]

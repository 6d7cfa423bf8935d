"""Text-match adapter over a vector store's HTTP scroll API.

The vector store is used here as a filtered scan: each configured
collection is scrolled with a full-text ``match`` filter on the
``content`` payload field, and every returned point is scored locally
with the term-overlap heuristic.  No embeddings are involved.

Classes
-------
- QdrantTextBackend — ``tag = "qdrant"``
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from agent_context_bridge.context.relevance import term_overlap_score
from agent_context_bridge.errors import BackendError
from agent_context_bridge.search.base import SearchBackend, observed_at_from
from agent_context_bridge.search.models import SearchResult

if TYPE_CHECKING:
    from agent_context_bridge.config import QdrantConfig

logger = logging.getLogger(__name__)


class QdrantTextBackend(SearchBackend):
    """Scroll-and-score search over one or more collections.

    Result ids are ``<collection>/<point id>`` so that points from
    different collections never collide.

    Parameters
    ----------
    base_url:
        Root URL of the HTTP API, e.g. ``http://localhost:6333``.
    collections:
        Collections to scroll, in order.
    timeout:
        Per-call timeout in seconds (also used as the HTTP timeout).
    max_scroll_limit:
        Upper bound on the ``limit`` sent to the scroll endpoint.
    api_key:
        Sent as the ``api-key`` header when set.
    client:
        Pre-built ``httpx.AsyncClient``.  When omitted a short-lived
        client is opened per search.  An injected client is not closed
        by this adapter.
    """

    tag = "qdrant"

    def __init__(
        self,
        base_url: str = "http://localhost:6333",
        collections: list[str] | None = None,
        *,
        timeout: float = 5.0,
        max_scroll_limit: int = 50,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout=timeout)
        self.base_url = base_url.rstrip("/")
        self.collections = list(collections) if collections else ["lessons-learned", "development-docs"]
        self.max_scroll_limit = max_scroll_limit
        self._api_key = api_key
        self._client = client

    @classmethod
    def from_config(
        cls, config: QdrantConfig, client: httpx.AsyncClient | None = None
    ) -> QdrantTextBackend:
        return cls(
            config.base_url,
            config.collections,
            timeout=config.timeout_seconds,
            max_scroll_limit=config.max_scroll_limit,
            api_key=config.api_key,
            client=client,
        )

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def scroll_url(self, collection: str) -> str:
        return f"{self.base_url}/collections/{collection}/points/scroll"

    def scroll_body(self, query: str, limit: int) -> dict[str, Any]:
        return {
            "limit": min(limit, self.max_scroll_limit),
            "with_payload": True,
            "with_vector": False,
            "filter": {"must": [{"key": "content", "match": {"text": query}}]},
        }

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["api-key"] = self._api_key
        return headers

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def _query(self, query: str, limit: int) -> list[SearchResult]:
        if self._client is not None:
            results = await self._scroll_all(self._client, query, limit)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                results = await self._scroll_all(client, query, limit)

        # Stable: equal scores keep collection order.
        results.sort(key=lambda result: result.base_score, reverse=True)
        return results[:limit]

    async def _scroll_all(
        self, client: httpx.AsyncClient, query: str, limit: int
    ) -> list[SearchResult]:
        results: list[SearchResult] = []
        for collection in self.collections:
            results.extend(await self._scroll_collection(client, collection, query, limit))
        return results

    async def _scroll_collection(
        self, client: httpx.AsyncClient, collection: str, query: str, limit: int
    ) -> list[SearchResult]:
        response = await client.post(
            self.scroll_url(collection),
            json=self.scroll_body(query, limit),
            headers=self._headers(),
        )
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as exc:
            raise BackendError(
                f"Collection {collection!r} returned a non-JSON body", source=self.tag
            ) from exc

        result = data.get("result") if isinstance(data, dict) else None
        points = result.get("points") if isinstance(result, dict) else None
        if not isinstance(points, list):
            logger.debug("Collection %r returned no points", collection)
            return []

        hits: list[SearchResult] = []
        for point in points:
            if not isinstance(point, dict):
                continue
            payload = point.get("payload")
            if not isinstance(payload, dict):
                payload = {}
            content = payload.get("content")
            hits.append(
                SearchResult(
                    id=f"{collection}/{point.get('id', '')}",
                    source=self.tag,
                    payload={**payload, "collection": collection},
                    base_score=term_overlap_score(query, content if isinstance(content, str) else ""),
                    observed_at=observed_at_from(payload),
                )
            )
        return hits

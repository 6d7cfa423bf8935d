"""Search subpackage.

All adapters implement the ``SearchBackend`` ABC and are combined by
``SearchAggregator``.

Public surface
--------------
- SearchBackend        — adapter base class (timeout + failure isolation)
- QdrantTextBackend    — text-match adapter over a vector store (httpx)
- MessageStoreBackend  — regex/field adapter over SQLite (aiosqlite)
- SessionCacheBackend  — text-match adapter over cached sessions
- SearchAggregator     — concurrent fan-out and freshness ranking
- QueryConfig          — per-request ranking configuration
"""
from __future__ import annotations

from agent_context_bridge.search.models import (
    AggregateResult,
    BackendResponse,
    QueryConfig,
    RankedResult,
    SearchResult,
)
from agent_context_bridge.search.base import SearchBackend, observed_at_from
from agent_context_bridge.search.aggregator import SearchAggregator, rank_results
from agent_context_bridge.search.messages import MessageStoreBackend
from agent_context_bridge.search.qdrant import QdrantTextBackend
from agent_context_bridge.search.sessions import SessionCacheBackend

__all__ = [
    "AggregateResult",
    "BackendResponse",
    "MessageStoreBackend",
    "QdrantTextBackend",
    "QueryConfig",
    "RankedResult",
    "SearchAggregator",
    "SearchBackend",
    "SearchResult",
    "SessionCacheBackend",
    "observed_at_from",
    "rank_results",
]

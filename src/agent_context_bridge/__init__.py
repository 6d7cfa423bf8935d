"""agent-context-bridge — Freshness-aware context retrieval for agent sessions.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import agent_context_bridge
>>> agent_context_bridge.__version__
'0.1.0'
"""
from __future__ import annotations

# Errors
from agent_context_bridge.errors import (
    BackendError,
    BridgeError,
    ProjectMismatchError,
    SessionNotFoundError,
    StorageError,
    ValidationError,
)

# Configuration
from agent_context_bridge.config import (
    BridgeConfig,
    MessageStoreConfig,
    QdrantConfig,
    StoreConfig,
    load_config,
)

# Scoring
from agent_context_bridge.context.freshness import FreshnessScorer, freshness_score
from agent_context_bridge.context.relevance import query_coverage, term_overlap_score

# Session core
from agent_context_bridge.session.record import CleanupStrategy, SessionRecord
from agent_context_bridge.session.store import SessionStore
from agent_context_bridge.session.project_state import ProjectStateTracker

# Storage backends
from agent_context_bridge.storage.async_base import AsyncStorageBackend
from agent_context_bridge.storage.async_filesystem import AsyncFilesystemBackend
from agent_context_bridge.storage.async_memory import AsyncInMemoryBackend

# Search
from agent_context_bridge.search.models import QueryConfig, SearchResult
from agent_context_bridge.search.base import SearchBackend
from agent_context_bridge.search.aggregator import SearchAggregator
from agent_context_bridge.search.qdrant import QdrantTextBackend
from agent_context_bridge.search.messages import MessageStoreBackend
from agent_context_bridge.search.sessions import SessionCacheBackend

# Pipeline, facade and tool surface
from agent_context_bridge.pipeline import ContextPipeline, PipelineStage
from agent_context_bridge.bridge import ContextBridge
from agent_context_bridge.tools import Operation, ToolDispatcher

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Errors
    "BackendError",
    "BridgeError",
    "ProjectMismatchError",
    "SessionNotFoundError",
    "StorageError",
    "ValidationError",
    # Configuration
    "BridgeConfig",
    "MessageStoreConfig",
    "QdrantConfig",
    "StoreConfig",
    "load_config",
    # Scoring
    "FreshnessScorer",
    "freshness_score",
    "query_coverage",
    "term_overlap_score",
    # Session core
    "CleanupStrategy",
    "ProjectStateTracker",
    "SessionRecord",
    "SessionStore",
    # Storage
    "AsyncFilesystemBackend",
    "AsyncInMemoryBackend",
    "AsyncStorageBackend",
    # Search
    "MessageStoreBackend",
    "QdrantTextBackend",
    "QueryConfig",
    "SearchAggregator",
    "SearchBackend",
    "SearchResult",
    "SessionCacheBackend",
    # Pipeline, facade and tool surface
    "ContextBridge",
    "ContextPipeline",
    "Operation",
    "PipelineStage",
    "ToolDispatcher",
]

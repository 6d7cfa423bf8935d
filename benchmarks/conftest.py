"""Shared bootstrap for agent-context-bridge benchmarks."""
from __future__ import annotations

import sys
from pathlib import Path

_REPO_ROOT = Path(__file__).parent.parent
_SRC = _REPO_ROOT / "src"
_BENCHMARKS = _REPO_ROOT / "benchmarks"

for _path in [str(_SRC), str(_BENCHMARKS)]:
    if _path not in sys.path:
        sys.path.insert(0, _path)

from agent_context_bridge.context.freshness import FreshnessScorer
from agent_context_bridge.search.aggregator import rank_results
from agent_context_bridge.session.store import SessionStore
from agent_context_bridge.storage.async_memory import AsyncInMemoryBackend

__all__ = ["AsyncInMemoryBackend", "FreshnessScorer", "SessionStore", "rank_results"]

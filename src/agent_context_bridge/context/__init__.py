"""Context processing subpackage.

Public surface
--------------
- FreshnessScorer     — exponential decay with a recency boost
- freshness_score     — the pure scoring function
- term_overlap_score  — score-compatible text heuristic for raw content
- query_coverage      — fraction of query words present in a context
"""
from __future__ import annotations

from agent_context_bridge.context.freshness import FreshnessScorer, age_hours, freshness_score
from agent_context_bridge.context.relevance import query_coverage, term_overlap_score

__all__ = [
    "FreshnessScorer",
    "age_hours",
    "freshness_score",
    "query_coverage",
    "term_overlap_score",
]

"""Deterministic text relevance heuristics.

Two heuristics live here:

- ``term_overlap_score`` is the score-compatible heuristic shared by every
  backend that returns raw content without a native score.  It must stay
  arithmetically identical across backends.
- ``query_coverage`` is the coarse "fraction of query words present"
  measure used to annotate a context object in the pipeline.

Neither is a learned ranker; both are pure functions of their inputs.
"""
from __future__ import annotations

import re
from typing import Any

from agent_context_bridge.context.payload import dumps

# Tokens of this length or shorter are ignored by the overlap heuristic.
MIN_TOKEN_LENGTH = 2
OCCURRENCE_WEIGHT = 2.0
MULTI_MATCH_BONUS = 1.5
PHRASE_MATCH_BONUS = 10.0


def query_tokens(query: str) -> list[str]:
    """Lowercase, whitespace-split ``query`` without any filtering."""
    return query.lower().split()


def term_overlap_score(query: str, content: str) -> float:
    """Score ``content`` against ``query`` by exact term overlap.

    For each query token longer than two characters, every word-boundary
    occurrence in the content is worth 2 points.  When more than one
    distinct token matched, ``1.5 * distinct_matches`` is added.  A
    multi-word query that appears verbatim in the content earns a flat
    10-point phrase bonus.

    Parameters
    ----------
    query:
        Free-text query.
    content:
        Candidate text.

    Returns
    -------
    float
        Score >= 0; 0.0 when ``content`` is empty.

    Example
    -------
    >>> term_overlap_score("boss rag", "BOSS RAG system is enterprise grade")
    17.0
    """
    if not content:
        return 0.0

    words = query_tokens(query)
    content_lower = content.lower()

    score = 0.0
    distinct_matches = 0
    for word in words:
        if len(word) <= MIN_TOKEN_LENGTH:
            continue
        matches = len(re.findall(rf"\b{re.escape(word)}\b", content_lower))
        score += matches * OCCURRENCE_WEIGHT
        if matches > 0:
            distinct_matches += 1

    if distinct_matches > 1:
        score += distinct_matches * MULTI_MATCH_BONUS

    phrase = query.strip().lower()
    if len(words) > 1 and phrase in content_lower:
        score += PHRASE_MATCH_BONUS

    return score


def query_coverage(query: str, context: Any) -> float | None:
    """Return the fraction of query words found in the serialised context.

    Matching is case-insensitive substring containment against the
    canonical JSON text of ``context``.  Returns ``None`` for an empty
    query so callers can tell "no query" from "nothing matched".
    """
    words = query_tokens(query)
    if not words:
        return None
    haystack = dumps(context).lower()
    found = sum(1 for word in words if word in haystack)
    return found / len(words)

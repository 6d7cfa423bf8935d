"""Search aggregator: concurrent fan-out, merge and freshness ranking.

``search_all`` issues one call per requested backend without waiting on
the others and assembles the aggregate only after every call settled.
``search_with_freshness`` flattens the per-backend lists in request
order, re-scores every hit with one ``FreshnessScorer`` and returns a
single ranked list.

Classes
-------
- SearchAggregator — registry of adapters plus the two search operations
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, Sequence

from agent_context_bridge.context.freshness import FreshnessScorer
from agent_context_bridge.context.payload import utc_now
from agent_context_bridge.errors import ValidationError
from agent_context_bridge.search.base import SearchBackend
from agent_context_bridge.search.models import (
    AggregateResult,
    BackendResponse,
    QueryConfig,
    RankedResult,
    SearchResult,
)

logger = logging.getLogger(__name__)


class SearchAggregator:
    """Fan a query out to registered adapters and merge their results.

    Parameters
    ----------
    backends:
        Adapters to register.  Later registrations with the same tag
        replace earlier ones.
    clock:
        Source of "now" for freshness scoring.  Defaults to the UTC
        wall clock.

    Example
    -------
    ::

        aggregator = SearchAggregator([QdrantTextBackend(), SessionCacheBackend(store)])
        ranked = await aggregator.search_with_freshness(
            "deploy checklist", QueryConfig(target_backends=("qdrant", "sessions"))
        )
    """

    def __init__(
        self,
        backends: Iterable[SearchBackend] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._backends: dict[str, SearchBackend] = {}
        self._clock = clock or utc_now
        for backend in backends:
            self.register(backend)

    def register(self, backend: SearchBackend) -> None:
        """Add ``backend`` under its ``tag``."""
        self._backends[backend.tag] = backend

    @property
    def tags(self) -> list[str]:
        return list(self._backends)

    def get(self, tag: str) -> SearchBackend | None:
        return self._backends.get(tag)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def search_all(
        self, query: str, backend_tags: Sequence[str] | None = None, limit: int = 10
    ) -> AggregateResult:
        """Query every requested backend concurrently.

        Parameters
        ----------
        query:
            Free-text query; must be non-empty.
        backend_tags:
            Tags to query, in order.  Defaults to every registered tag.
            Unknown tags are reported as failed sources.
        limit:
            Per-backend result cap.

        Returns
        -------
        AggregateResult
            One ``BackendResponse`` per requested tag, keyed in request
            order, plus the summary counts.

        Raises
        ------
        ValidationError
            If ``query`` is blank or ``limit`` is not positive.
        """
        if not query or not query.strip():
            raise ValidationError("query is required", "search_all")
        if limit <= 0:
            raise ValidationError("limit must be positive", "search_all")

        tags = list(dict.fromkeys(backend_tags)) if backend_tags is not None else self.tags
        known = [tag for tag in tags if tag in self._backends]

        settled = await asyncio.gather(
            *(self._backends[tag].search(query, limit) for tag in known),
            return_exceptions=True,
        )
        by_tag: dict[str, BackendResponse] = {}
        for tag, outcome in zip(known, settled):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error("Search backend %r raised unexpectedly", tag, exc_info=outcome)
                outcome = BackendResponse(
                    source=tag, success=False, error=f"{type(outcome).__name__}: {outcome}"
                )
            by_tag[tag] = outcome

        backends: dict[str, BackendResponse] = {}
        for tag in tags:
            if tag in by_tag:
                backends[tag] = by_tag[tag]
            else:
                logger.warning("Unknown search backend requested: %r", tag)
                backends[tag] = BackendResponse(
                    source=tag, success=False, error=f"Unknown backend: {tag}"
                )

        aggregate = AggregateResult(query=query, backends=backends)
        logger.debug(
            "search_all %r: %d/%d sources succeeded, %d result(s)",
            query,
            aggregate.successful_sources,
            aggregate.total_sources,
            aggregate.total_results,
        )
        return aggregate

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    async def search_with_freshness(
        self, query: str, config: QueryConfig | None = None
    ) -> RankedResult:
        """Search, merge and rank results by freshness-adjusted score.

        Results are flattened in ``config.target_backends`` order and
        de-duplicated by ``(source, id)`` keeping the first occurrence.
        The sort is stable, so ties keep backend order.  ``total`` is the
        merged count before truncation to ``config.limit``.
        """
        config = config or QueryConfig()
        aggregate = await self.search_all(query, config.target_backends, config.limit)

        merged: list[SearchResult] = []
        seen: set[tuple[str, str]] = set()
        for response in aggregate.backends.values():
            for result in response.results:
                key = (result.source, result.id)
                if key in seen:
                    continue
                seen.add(key)
                merged.append(result)

        ranked = rank_results(merged, config, self._clock())
        return RankedResult(
            query=query,
            results=ranked[: config.limit],
            total=len(ranked),
            freshness_applied=config.freshness_enabled,
            decay_factor=config.decay_factor,
            aggregate=aggregate,
        )

    async def aclose(self) -> None:
        for backend in self._backends.values():
            await backend.aclose()

    def __repr__(self) -> str:
        return f"SearchAggregator(backends={self.tags!r})"


def rank_results(
    results: Iterable[SearchResult], config: QueryConfig, now: datetime
) -> list[SearchResult]:
    """Return copies of ``results`` with ``adjusted_score`` set, best first."""
    scorer = FreshnessScorer(
        decay_factor=config.decay_factor,
        priority_window_hours=config.priority_window_hours,
        priority_boost=config.priority_boost,
    )
    scored: list[SearchResult] = []
    for result in results:
        if config.freshness_enabled:
            adjusted = scorer.score(result.base_score, result.observed_at, now)
        else:
            adjusted = result.base_score
        scored.append(result.model_copy(update={"adjusted_score": adjusted}))
    scored.sort(key=lambda result: result.adjusted_score or 0.0, reverse=True)
    return scored

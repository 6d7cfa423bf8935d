"""Context pipeline: live-signal injection, relevance, compression, bounding.

One retrieval turn runs four stages strictly in order, each consuming a
deep copy of the previous stage's output:

1. **injection**   — attach live signals under ``realtime_data``
2. **relevance**   — annotate the context with ``relevance_score``
3. **compression** — drop signal sources that only carry an error marker
4. **bounding**    — drop the raw epoch timestamp superseded by
   ``injection_time``

If a stage raises, the pipeline stops and returns the output of the last
successful stage with ``success=False``.

Classes
-------
- PipelineStage   — stage names, in execution order
- InjectionResult — output of the injection stage
- PipelineResult  — output of a full turn
- ContextPipeline — the stage runner
"""
from __future__ import annotations

import copy
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping

from agent_context_bridge.context.freshness import age_hours
from agent_context_bridge.context.payload import (
    byte_size,
    parse_timestamp,
    to_epoch_ms,
    token_count,
    utc_now,
)
from agent_context_bridge.context.relevance import query_coverage
from agent_context_bridge.validation import ensure_json_object

if TYPE_CHECKING:
    from agent_context_bridge.session.store import SessionStore

logger = logging.getLogger(__name__)

REALTIME_KEY = "realtime_data"
ENHANCEMENT_VERSION = "1.0"
TARGET_REDUCTION = 0.6

# Sessions above this count mark the current load as "high".
HIGH_LOAD_SESSIONS = 3
BUSINESS_HOURS = range(9, 18)

SignalSource = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class PipelineStage(str, Enum):
    INJECTION = "injection"
    RELEVANCE = "relevance"
    COMPRESSION = "compression"
    BOUNDING = "bounding"


@dataclass
class InjectionResult:
    """Context enriched with live signals, plus injection statistics."""

    context: dict[str, Any]
    sources_injected: int
    injection_ms: float
    data_size: int

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "sources_injected": self.sources_injected,
            "injection_ms": round(self.injection_ms, 3),
            "data_size": self.data_size,
        }

    def to_dict(self) -> dict[str, Any]:
        return {"enhancedContext": self.context, "injectionStats": self.stats}


@dataclass
class PipelineResult:
    """Outcome of one pipeline turn.

    ``context`` always holds the output of the last stage that completed,
    so a failed turn still carries everything computed before the failure.
    """

    query: str
    context: dict[str, Any]
    success: bool = True
    stats: dict[str, Any] = field(default_factory=dict)
    completed_stages: list[PipelineStage] = field(default_factory=list)
    failed_stage: PipelineStage | None = None
    error: str | None = None
    total_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "query": self.query,
            "enhancedContext": self.context,
            "pipeline": {
                "stages": [stage.value for stage in self.completed_stages],
                "injectionStats": self.stats.get(PipelineStage.INJECTION.value),
                "relevanceScore": self.stats.get(PipelineStage.RELEVANCE.value),
                "compressionStats": self.stats.get(PipelineStage.COMPRESSION.value),
                "tokenStats": self.stats.get(PipelineStage.BOUNDING.value),
                "totalProcessingMs": round(self.total_ms, 3),
            },
        }
        if not self.success:
            data["error"] = self.error
            data["failedStage"] = self.failed_stage.value if self.failed_stage else None
        return data


def classify_freshness(observed_at: Any, now: datetime) -> str:
    """Bucket the age of ``observed_at`` into a coarse freshness label."""
    if observed_at is None or parse_timestamp(observed_at) is None:
        return "unknown"
    hours = age_hours(observed_at, now)
    if hours < 1:
        return "very-fresh"
    if hours < 24:
        return "fresh"
    if hours < 48:
        return "acceptable"
    return "stale"


class ContextPipeline:
    """Run the four-stage enrichment pipeline for one query.

    Parameters
    ----------
    store:
        Session store consulted by the default session-activity signal.
        When omitted the active session count is reported as 0.
    signal_sources:
        Mapping of source name to an async callable receiving the
        incoming context and returning a JSON object.  Replaces the
        default sources entirely when given.
    clock:
        Source of "now" (aware UTC).
    target_reduction:
        Compression target recorded in the compression statistics.
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        signal_sources: Mapping[str, SignalSource] | None = None,
        clock: Callable[[], datetime] | None = None,
        target_reduction: float = TARGET_REDUCTION,
    ) -> None:
        self._store = store
        self._clock = clock or utc_now
        self.target_reduction = target_reduction
        if signal_sources is None:
            signal_sources = {
                "service_status": self._service_status,
                "session_activity": self._session_activity,
                "context_metrics": self._context_metrics,
            }
        self._sources: dict[str, SignalSource] = dict(signal_sources)

    @property
    def source_names(self) -> list[str]:
        return list(self._sources)

    # ------------------------------------------------------------------
    # Default signal sources
    # ------------------------------------------------------------------

    async def _service_status(self, context: dict[str, Any]) -> dict[str, Any]:
        load_1, load_5, load_15 = os.getloadavg()
        return {
            "healthy": True,
            "system_load": [load_1, load_5, load_15],
            "cpu_count": os.cpu_count(),
            "last_check": self._clock().isoformat(),
        }

    async def _session_activity(self, context: dict[str, Any]) -> dict[str, Any]:
        active = await self._store.count() if self._store is not None else 0
        hour = self._clock().hour
        return {
            "active_sessions": active,
            "peak_hour": "business-hours" if hour in BUSINESS_HOURS else "off-hours",
            "current_load": "high" if active > HIGH_LOAD_SESSIONS else "normal",
        }

    async def _context_metrics(self, context: dict[str, Any]) -> dict[str, Any]:
        return {
            "avg_session_length": context.get("session_length", 0),
            "data_freshness": classify_freshness(context.get("timestamp"), self._clock()),
            "relevancy_score": context.get("relevance_score", 0.0),
        }

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def inject_realtime_data(self, context: Any = None) -> InjectionResult:
        """Attach live signals to a copy of ``context``.

        A failing signal source is recorded as ``{"error": message}``
        under its name; it never fails the injection.

        Raises
        ------
        ValidationError
            If ``context`` is not a JSON object.
        """
        base = ensure_json_object(context, "context", "inject_realtime_data")
        started = time.perf_counter()
        now = self._clock()

        sources: dict[str, Any] = {}
        for name, source in self._sources.items():
            try:
                sources[name] = await source(copy.deepcopy(base))
            except Exception as exc:  # noqa: BLE001 - recorded inline per source
                logger.warning("Signal source %r failed: %s", name, exc)
                sources[name] = {"error": str(exc) or type(exc).__name__}

        realtime = {
            "timestamp": to_epoch_ms(now),
            "injection_time": now.isoformat(),
            "sources": sources,
        }
        enhanced = {
            **base,
            REALTIME_KEY: realtime,
            "last_injection": to_epoch_ms(now),
            "enhancement_version": ENHANCEMENT_VERSION,
        }
        result = InjectionResult(
            context=enhanced,
            sources_injected=len(sources),
            injection_ms=(time.perf_counter() - started) * 1000.0,
            data_size=byte_size(realtime),
        )
        logger.debug("Injected %d signal source(s)", result.sources_injected)
        return result

    def filter_by_relevance(self, query: str, context: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``context`` annotated with ``relevance_score``.

        No data is removed.  The score is ``None`` for an empty query.
        """
        annotated = copy.deepcopy(context)
        annotated["relevance_score"] = query_coverage(query, context)
        return annotated

    def compress(self, context: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        """Drop error-only signal sources from a copy of ``context``."""
        original_size = byte_size(context)
        compressed = copy.deepcopy(context)
        realtime = compressed.get(REALTIME_KEY)
        if isinstance(realtime, dict) and isinstance(realtime.get("sources"), dict):
            sources = realtime["sources"]
            for name in [key for key, value in sources.items() if _is_error_marker(value)]:
                del sources[name]

        compressed_size = byte_size(compressed)
        stats = {
            "original_size": original_size,
            "compressed_size": compressed_size,
            "target_reduction": self.target_reduction,
            "actual_reduction": _reduction(original_size, compressed_size),
        }
        return compressed, stats

    def bound(self, context: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        """Drop the raw injection timestamp from a copy of ``context``."""
        original_tokens = token_count(context)
        bounded = copy.deepcopy(context)
        realtime = bounded.get(REALTIME_KEY)
        if isinstance(realtime, dict):
            realtime.pop("timestamp", None)

        optimized_tokens = token_count(bounded)
        stats = {
            "original_tokens": original_tokens,
            "optimized_tokens": optimized_tokens,
            "token_reduction": _reduction(original_tokens, optimized_tokens),
        }
        return bounded, stats

    # ------------------------------------------------------------------
    # Full turn
    # ------------------------------------------------------------------

    async def process_query(self, query: str, context: Any = None) -> PipelineResult:
        """Run every stage in order for ``query``.

        Raises
        ------
        ValidationError
            If ``context`` is not a JSON object.  Stage failures do not
            raise; they are reported on the returned ``PipelineResult``.
        """
        current = ensure_json_object(context, "context", "process_query_realtime")
        started = time.perf_counter()
        result = PipelineResult(query=query, context=current)

        stage = PipelineStage.INJECTION
        try:
            injected = await self.inject_realtime_data(current)
            current = injected.context
            self._complete(result, stage, current, injected.stats)

            stage = PipelineStage.RELEVANCE
            current = self.filter_by_relevance(query, current)
            self._complete(result, stage, current, current["relevance_score"])

            stage = PipelineStage.COMPRESSION
            current, compression_stats = self.compress(current)
            self._complete(result, stage, current, compression_stats)

            stage = PipelineStage.BOUNDING
            current, token_stats = self.bound(current)
            self._complete(result, stage, current, token_stats)
        except Exception as exc:  # noqa: BLE001 - partial result is returned
            logger.exception("Pipeline stage %r failed", stage.value)
            result.success = False
            result.failed_stage = stage
            result.error = str(exc) or type(exc).__name__

        result.total_ms = (time.perf_counter() - started) * 1000.0
        return result

    @staticmethod
    def _complete(
        result: PipelineResult, stage: PipelineStage, context: dict[str, Any], stats: Any
    ) -> None:
        result.context = context
        result.stats[stage.value] = stats
        result.completed_stages.append(stage)
        logger.debug("Pipeline stage %r complete", stage.value)

    def __repr__(self) -> str:
        return f"ContextPipeline(sources={self.source_names!r})"


def _is_error_marker(value: Any) -> bool:
    return isinstance(value, dict) and bool(value.get("error"))


def _reduction(before: int, after: int) -> float:
    if before <= 0:
        return 0.0
    return (before - after) / before

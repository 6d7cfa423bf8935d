"""Search domain models.

Classes
-------
- SearchResult     — one normalised hit from a backend
- BackendResponse  — one backend's reply (success flag, results, error)
- QueryConfig      — immutable per-request ranking configuration
- AggregateResult  — per-backend replies for one fan-out plus a summary
- RankedResult     — merged, freshness-ranked hits
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Payload fields consulted, in order, for a result's observation time.
TIMESTAMP_FIELDS: tuple[str, ...] = (
    "created_at",
    "upload_timestamp",
    "updated_at",
    "timestamp",
    "captureTime",
)


class SearchResult(BaseModel):
    """A normalised search hit.

    Parameters
    ----------
    id:
        Backend-local identifier.
    source:
        Tag of the backend that produced the hit.
    payload:
        Retrieved content and fields, uninterpreted.
    base_score:
        Backend-assigned or heuristic score (>= 0).
    observed_at:
        Time used for freshness decay.  ``None`` means "equally fresh".
    adjusted_score:
        Set by the freshness scorer; ``None`` until ranking runs.
    """

    id: str
    source: str
    payload: dict[str, Any] = Field(default_factory=dict)
    base_score: float = Field(default=0.0, ge=0.0)
    observed_at: datetime | None = None
    adjusted_score: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return str(value)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "payload": self.payload,
            "score": self.base_score,
            "observedAt": self.observed_at.isoformat() if self.observed_at else None,
        }
        if self.adjusted_score is not None:
            data["adjustedScore"] = self.adjusted_score
        return data


class BackendResponse(BaseModel):
    """Reply from one backend adapter."""

    source: str
    success: bool
    results: list[SearchResult] = Field(default_factory=list)
    error: str | None = None
    elapsed_ms: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "source": self.source,
            "success": self.success,
            "results": [result.to_dict() for result in self.results],
            "total": self.total,
            "elapsedMs": round(self.elapsed_ms, 3),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


class QueryConfig(BaseModel):
    """Immutable ranking configuration for one request.

    Parameters
    ----------
    limit:
        Maximum number of ranked results.  Default: 10.
    decay_factor:
        Exponential decay rate per day; 0 disables decay.  Default: 0.1.
    priority_window_hours:
        Results at most this old receive ``priority_boost``.  Default: 48.
    priority_boost:
        Multiplier for results inside the window (>= 1).  Default: 1.5.
    target_backends:
        Ordered backend tags to query.  Order is the tie-break order.
    freshness_enabled:
        When False, ``adjusted_score`` equals ``base_score``.
    """

    limit: int = Field(default=10, gt=0)
    decay_factor: float = Field(default=0.1, ge=0.0)
    priority_window_hours: float = 48.0
    priority_boost: float = Field(default=1.5, ge=1.0)
    target_backends: tuple[str, ...] = ("qdrant",)
    freshness_enabled: bool = True

    model_config = ConfigDict(frozen=True)

    @field_validator("target_backends", mode="before")
    @classmethod
    def _dedupe_backends(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple, set, frozenset)):
            ordered = sorted(value) if isinstance(value, (set, frozenset)) else value
            return tuple(dict.fromkeys(str(tag) for tag in ordered))
        return value

    @field_validator("target_backends")
    @classmethod
    def _require_backend(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("target_backends must name at least one backend")
        return value


class AggregateResult(BaseModel):
    """Per-backend replies of one fan-out, keyed by backend tag."""

    query: str
    backends: dict[str, BackendResponse] = Field(default_factory=dict)

    @property
    def total_sources(self) -> int:
        return len(self.backends)

    @property
    def successful_sources(self) -> int:
        return sum(1 for response in self.backends.values() if response.success)

    @property
    def total_results(self) -> int:
        return sum(response.total for response in self.backends.values())

    def summary(self) -> dict[str, int]:
        return {
            "totalSources": self.total_sources,
            "successfulSources": self.successful_sources,
            "totalResults": self.total_results,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "databases": {tag: response.to_dict() for tag, response in self.backends.items()},
            "summary": self.summary(),
        }


class RankedResult(BaseModel):
    """Merged and freshness-ranked search hits."""

    query: str
    results: list[SearchResult] = Field(default_factory=list)
    total: int = 0
    freshness_applied: bool = True
    decay_factor: float = 0.0
    aggregate: AggregateResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "results": [result.to_dict() for result in self.results],
            "total": self.total,
            "freshnessApplied": self.freshness_applied,
            "decayFactor": self.decay_factor,
            "summary": self.aggregate.summary(),
            "sources": {
                tag: {"success": response.success, "error": response.error, "total": response.total}
                for tag, response in self.aggregate.backends.items()
            },
        }

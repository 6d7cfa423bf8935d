"""Freshness scoring for recency-correct retrieval.

Maps a base relevance score and the age of the underlying data to an
adjusted score::

    age_hours = (now - observed_at) / 1h          (clamped at 0)
    boost     = priority_boost if age_hours <= priority_window_hours else 1
    decay     = exp(-decay_factor * age_hours / 24)
    adjusted  = base * decay * boost

A ``decay_factor`` of 0 disables ageing.  A missing or malformed
``observed_at`` is treated as "observed now".

Classes
-------
- FreshnessScorer — scorer bound to one set of decay/boost parameters

Functions
---------
- freshness_score — the pure scoring function
- age_hours       — clamped age helper
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Callable, Iterable

from agent_context_bridge.context.payload import parse_timestamp, utc_now

_SECONDS_PER_HOUR = 3600.0
_HOURS_PER_DAY = 24.0


def age_hours(observed_at: Any, now: datetime) -> float:
    """Return the non-negative age of ``observed_at`` relative to ``now``.

    Future timestamps (clock skew) and unparseable values give 0.0.
    """
    observed = parse_timestamp(observed_at)
    current = parse_timestamp(now)
    if observed is None or current is None:
        return 0.0
    return max(0.0, (current - observed).total_seconds() / _SECONDS_PER_HOUR)


def freshness_score(
    base: float,
    observed_at: Any,
    now: datetime,
    decay_factor: float,
    priority_window_hours: float,
    priority_boost: float,
) -> float:
    """Return ``base`` adjusted for the age of ``observed_at``.

    Parameters
    ----------
    base:
        Backend-assigned or heuristic score (>= 0).
    observed_at:
        When the data was last updated.  Anything ``parse_timestamp``
        accepts; malformed values count as "now".
    now:
        Reference time.
    decay_factor:
        Exponential decay rate per day.  0 disables decay.
    priority_window_hours:
        Results at most this old (inclusive) receive ``priority_boost``.
    priority_boost:
        Multiplier (>= 1) for results inside the priority window.

    Returns
    -------
    float
        The adjusted score.  Never raises.
    """
    hours = age_hours(observed_at, now)
    boost = priority_boost if hours <= priority_window_hours else 1.0
    decay = math.exp(-decay_factor * (hours / _HOURS_PER_DAY)) if decay_factor else 1.0
    return base * decay * boost


class FreshnessScorer:
    """Score many items with the same decay and boost parameters.

    Parameters
    ----------
    decay_factor:
        Exponential decay rate per day.  Default: 0.1.
    priority_window_hours:
        Recency window that earns the boost.  Default: 48.
    priority_boost:
        Multiplier applied inside the window.  Default: 1.5.
    clock:
        Returns the reference "now".  Defaults to the UTC wall clock.
    """

    def __init__(
        self,
        decay_factor: float = 0.1,
        priority_window_hours: float = 48.0,
        priority_boost: float = 1.5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if decay_factor < 0:
            raise ValueError("decay_factor must be >= 0")
        if priority_boost < 1:
            raise ValueError("priority_boost must be >= 1")
        self.decay_factor = decay_factor
        self.priority_window_hours = priority_window_hours
        self.priority_boost = priority_boost
        self._clock = clock or utc_now

    @property
    def max_score_multiplier(self) -> float:
        """Upper bound of ``adjusted / base``."""
        return self.priority_boost

    def score(self, base: float, observed_at: Any, now: datetime | None = None) -> float:
        """Return the adjusted score for one item."""
        return freshness_score(
            base,
            observed_at,
            now if now is not None else self._clock(),
            self.decay_factor,
            self.priority_window_hours,
            self.priority_boost,
        )

    def score_many(
        self, items: Iterable[tuple[float, Any]], now: datetime | None = None
    ) -> list[float]:
        """Score ``(base, observed_at)`` pairs against one shared ``now``."""
        reference = now if now is not None else self._clock()
        return [self.score(base, observed, reference) for base, observed in items]

    def __repr__(self) -> str:
        return (
            f"FreshnessScorer(decay_factor={self.decay_factor}, "
            f"priority_window_hours={self.priority_window_hours}, "
            f"priority_boost={self.priority_boost})"
        )

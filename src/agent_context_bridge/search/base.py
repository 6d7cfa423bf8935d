"""Abstract base class for search backend adapters.

Every adapter turns ``(query, limit)`` into a backend-specific request and
normalises the reply into ``SearchResult`` objects.  The public
``search`` method wraps the adapter's private ``_query`` with a per-call
timeout and converts every expected failure into a ``BackendResponse``
with ``success=False``, so one adapter can never abort its siblings.

Classes
-------
- SearchBackend — adapter ABC

Functions
---------
- observed_at_from — first parseable timestamp field of a payload
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping

import httpx

from agent_context_bridge.context.payload import parse_timestamp
from agent_context_bridge.errors import BridgeError
from agent_context_bridge.search.models import TIMESTAMP_FIELDS, BackendResponse, SearchResult

logger = logging.getLogger(__name__)


def observed_at_from(payload: Mapping[str, Any]) -> datetime | None:
    """Return the first parseable timestamp among ``TIMESTAMP_FIELDS``.

    Returns ``None`` when no field is present or none parses, which the
    freshness scorer treats as "equally fresh".
    """
    for field_name in TIMESTAMP_FIELDS:
        if field_name in payload:
            parsed = parse_timestamp(payload[field_name])
            if parsed is not None:
                return parsed
    return None


class SearchBackend(ABC):
    """Base class for all search adapters.

    Subclasses set ``tag`` and implement ``_query``.  They may raise
    any ``BridgeError`` (or let ``httpx``/``sqlite3`` errors escape); the
    base class reports those as a failed source.

    Parameters
    ----------
    timeout:
        Seconds allowed for one ``search`` call.  Default: 5.0.
    """

    tag: str = "backend"

    def __init__(self, timeout: float = 5.0) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.timeout = timeout

    @abstractmethod
    async def _query(self, query: str, limit: int) -> list[SearchResult]:
        """Run the backend request and return normalised results."""

    async def search(self, query: str, limit: int) -> BackendResponse:
        """Query the backend with an independent timeout and failure domain.

        Parameters
        ----------
        query:
            Free-text query.
        limit:
            Maximum number of results this backend should return.

        Returns
        -------
        BackendResponse
            ``success=True`` with at most ``limit`` results, or
            ``success=False`` with a human-readable ``error``.
        """
        started = time.perf_counter()
        error: str | None = None
        results: list[SearchResult] = []
        try:
            results = await asyncio.wait_for(self._query(query, limit), timeout=self.timeout)
        except asyncio.TimeoutError:
            error = f"{self.tag} timed out after {self.timeout:g}s"
        except BridgeError as exc:
            error = exc.message
        except httpx.HTTPError as exc:
            error = f"HTTP error: {exc}"
        except (sqlite3.Error, OSError, ValueError) as exc:
            error = f"{type(exc).__name__}: {exc}"

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        if error is not None:
            logger.warning("Search backend %r failed: %s", self.tag, error)
            return BackendResponse(source=self.tag, success=False, error=error, elapsed_ms=elapsed_ms)

        logger.debug("Search backend %r returned %d result(s)", self.tag, len(results))
        return BackendResponse(
            source=self.tag,
            success=True,
            results=results[:limit],
            elapsed_ms=elapsed_ms,
        )

    async def aclose(self) -> None:
        """Release any resources held by the adapter.  Default: no-op."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tag={self.tag!r}, timeout={self.timeout})"

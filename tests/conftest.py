"""Shared fixtures: a controllable clock for time-dependent behaviour."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current += timedelta(**delta)
        return self.current


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()

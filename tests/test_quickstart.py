"""End-to-end checks of the public API, the way the quickstart uses it."""
from __future__ import annotations

from pathlib import Path

import pytest

from tests.conftest import FakeClock


def test_quickstart_import() -> None:
    import agent_context_bridge

    assert agent_context_bridge.__version__ == "0.1.0"
    assert "ContextBridge" in agent_context_bridge.__all__


@pytest.mark.asyncio
async def test_session_expires_after_timeout(tmp_path: Path, clock: FakeClock) -> None:
    from agent_context_bridge import AsyncFilesystemBackend, SessionNotFoundError, SessionStore

    store = SessionStore(AsyncFilesystemBackend(tmp_path), clock=clock)
    await store.capture("s1", "payments", {"task": "refund flow"})

    clock.advance(minutes=10)
    listing = await store.list_active("payments")
    assert [scored.record.session_id for scored in listing.sessions] == ["s1"]
    assert listing.sessions[0].score > 0.999

    clock.advance(minutes=30)
    report = await store.cleanup_expired()
    assert report.count == 1

    with pytest.raises(SessionNotFoundError):
        await store.restore("s1")


@pytest.mark.asyncio
async def test_restored_session_survives_cleanup(tmp_path: Path, clock: FakeClock) -> None:
    from agent_context_bridge import AsyncFilesystemBackend, SessionStore

    store = SessionStore(AsyncFilesystemBackend(tmp_path), clock=clock)
    await store.capture("s1", "payments")
    clock.advance(minutes=25)
    await store.restore("s1")
    clock.advance(minutes=25)

    report = await store.cleanup_expired()

    assert report.count == 0
    assert (await store.restore("s1")).session_id == "s1"


@pytest.mark.asyncio
async def test_one_failing_backend_does_not_hide_the_rest(tmp_path: Path, clock: FakeClock) -> None:
    from agent_context_bridge import (
        AsyncInMemoryBackend,
        MessageStoreBackend,
        QueryConfig,
        SearchAggregator,
        SessionCacheBackend,
        SessionStore,
    )

    store = SessionStore(AsyncInMemoryBackend(clock=clock), clock=clock)
    await store.capture("s1", "platform", {"task": "deploy checklist"})
    aggregator = SearchAggregator(
        [SessionCacheBackend(store), MessageStoreBackend(tmp_path / "absent.db")], clock=clock
    )

    ranked = await aggregator.search_with_freshness(
        "deploy", QueryConfig(target_backends=("messages", "sessions"))
    )

    assert ranked.aggregate.summary()["successfulSources"] == 1
    assert ranked.aggregate.summary()["totalSources"] == 2
    assert [result.id for result in ranked.results] == ["s1"]

"""Unit tests for the search backend adapters."""
from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

import httpx
import pytest

from agent_context_bridge.errors import BackendError
from agent_context_bridge.search.base import SearchBackend, observed_at_from
from agent_context_bridge.search.messages import MessageStoreBackend
from agent_context_bridge.search.models import SearchResult
from agent_context_bridge.search.qdrant import QdrantTextBackend
from agent_context_bridge.search.sessions import SessionCacheBackend
from agent_context_bridge.session.store import SessionStore
from agent_context_bridge.storage.async_memory import AsyncInMemoryBackend
from tests.conftest import FakeClock


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _SlowBackend(SearchBackend):
    tag = "slow"

    async def _query(self, query: str, limit: int) -> list[SearchResult]:
        await asyncio.sleep(5)
        return []


class _RaisingBackend(SearchBackend):
    tag = "broken"

    async def _query(self, query: str, limit: int) -> list[SearchResult]:
        raise BackendError("upstream unavailable", source=self.tag)


class _ListBackend(SearchBackend):
    tag = "list"

    def __init__(self, count: int) -> None:
        super().__init__()
        self.count = count

    async def _query(self, query: str, limit: int) -> list[SearchResult]:
        return [SearchResult(id=str(i), source=self.tag, base_score=1.0) for i in range(self.count)]


def _qdrant_client(handler: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _seed_messages(db_path: Path) -> None:
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE messages (id INTEGER PRIMARY KEY, message_id TEXT, body TEXT,"
            " sender TEXT, recipient TEXT, timestamp TEXT)"
        )
        conn.executemany(
            "INSERT INTO messages (id, message_id, body, sender, recipient, timestamp)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            [
                (1, "m-1", "Deploy finished", "ops", "team", "2024-03-01T10:00:00Z"),
                (2, "m-2", "lunch?", "deploy-bot", "alice", "2024-03-01T11:00:00Z"),
                (3, "m-3", None, "bob", None, None),
                (4, "m-4", "unrelated", "carol", "dave", "2024-02-01T00:00:00Z"),
            ],
        )


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


class TestSearchBackendBase:
    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            _SlowBackend(timeout=0)

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_response(self) -> None:
        response = await _SlowBackend(timeout=0.05).search("q", 5)
        assert response.success is False
        assert response.error == "slow timed out after 0.05s"
        assert response.results == []

    @pytest.mark.asyncio
    async def test_bridge_error_becomes_failed_response(self) -> None:
        response = await _RaisingBackend().search("q", 5)
        assert response.success is False
        assert response.error == "upstream unavailable"

    @pytest.mark.asyncio
    async def test_results_capped_at_limit(self) -> None:
        response = await _ListBackend(8).search("q", 3)
        assert response.success is True
        assert response.total == 3
        assert response.elapsed_ms >= 0.0

    def test_observed_at_uses_first_parseable_field(self) -> None:
        payload = {"created_at": "garbage", "updated_at": "2024-03-01T00:00:00Z"}
        observed = observed_at_from(payload)
        assert observed is not None
        assert observed.isoformat() == "2024-03-01T00:00:00+00:00"

    def test_observed_at_missing(self) -> None:
        assert observed_at_from({"content": "x"}) is None


# ---------------------------------------------------------------------------
# Vector store scroll adapter
# ---------------------------------------------------------------------------


class TestQdrantTextBackend:
    @pytest.mark.asyncio
    async def test_scores_and_normalises_points(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "result": {
                        "points": [
                            {"id": 1, "payload": {"content": "unrelated words"}},
                            {
                                "id": 7,
                                "payload": {
                                    "content": "BOSS RAG system is enterprise grade",
                                    "created_at": "2024-03-01T00:00:00Z",
                                },
                            },
                        ]
                    }
                },
            )

        async with _qdrant_client(handler) as client:
            backend = QdrantTextBackend("http://qdrant:6333/", ["docs"], client=client)
            response = await backend.search("boss rag", 10)

        assert response.success is True
        top = response.results[0]
        assert top.id == "docs/7"
        assert top.base_score == 17.0
        assert top.payload["collection"] == "docs"
        assert top.observed_at is not None
        assert response.results[1].base_score == 0.0

        assert str(requests[0].url) == "http://qdrant:6333/collections/docs/points/scroll"
        body = json.loads(requests[0].content)
        assert body["filter"] == {"must": [{"key": "content", "match": {"text": "boss rag"}}]}
        assert body["with_payload"] is True

    @pytest.mark.asyncio
    async def test_scroll_limit_is_bounded(self) -> None:
        backend = QdrantTextBackend(max_scroll_limit=50)
        assert backend.scroll_body("q", 500)["limit"] == 50
        assert backend.scroll_body("q", 5)["limit"] == 5

    @pytest.mark.asyncio
    async def test_collections_scrolled_in_order(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path.split("/")[2])
            return httpx.Response(200, json={"result": {"points": [{"id": 1, "payload": {"content": "cache"}}]}})

        async with _qdrant_client(handler) as client:
            backend = QdrantTextBackend(collections=["a", "b"], client=client)
            response = await backend.search("cache", 10)

        assert seen == ["a", "b"]
        assert [result.id for result in response.results] == ["a/1", "b/1"]

    @pytest.mark.asyncio
    async def test_api_key_header(self) -> None:
        headers: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers.get("api-key"))
            return httpx.Response(200, json={"result": {"points": []}})

        async with _qdrant_client(handler) as client:
            await QdrantTextBackend(collections=["a"], api_key="secret", client=client).search("q", 1)

        assert headers == ["secret"]

    @pytest.mark.asyncio
    async def test_http_error_status_is_failed_source(self) -> None:
        async with _qdrant_client(lambda request: httpx.Response(500, text="boom")) as client:
            response = await QdrantTextBackend(collections=["a"], client=client).search("q", 5)
        assert response.success is False
        assert response.error is not None and response.error.startswith("HTTP error")

    @pytest.mark.asyncio
    async def test_non_json_body_is_failed_source(self) -> None:
        async with _qdrant_client(lambda request: httpx.Response(200, text="<html>")) as client:
            response = await QdrantTextBackend(collections=["a"], client=client).search("q", 5)
        assert response.success is False
        assert "non-JSON" in (response.error or "")

    @pytest.mark.asyncio
    async def test_missing_points_is_empty_success(self) -> None:
        async with _qdrant_client(lambda request: httpx.Response(200, json={"status": "ok"})) as client:
            response = await QdrantTextBackend(collections=["a"], client=client).search("q", 5)
        assert response.success is True
        assert response.results == []

    @pytest.mark.asyncio
    async def test_connection_error_is_failed_source(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _qdrant_client(handler) as client:
            response = await QdrantTextBackend(collections=["a"], client=client).search("q", 5)
        assert response.success is False


# ---------------------------------------------------------------------------
# Message store adapter
# ---------------------------------------------------------------------------


class TestMessageStoreBackend:
    @pytest.mark.asyncio
    async def test_regex_matches_body_and_sender(self, tmp_path: Path) -> None:
        db_path = tmp_path / "messages.db"
        _seed_messages(db_path)
        response = await MessageStoreBackend(db_path).search("deploy", 10)

        assert response.success is True
        assert [result.id for result in response.results] == ["1", "2"]
        first = response.results[0]
        assert first.base_score == 1.0
        assert first.payload == {
            "content": "Deploy finished",
            "from": "ops",
            "to": "team",
            "timestamp": "2024-03-01T10:00:00Z",
            "messageId": "m-1",
        }
        assert first.observed_at is not None

    @pytest.mark.asyncio
    async def test_pattern_syntax(self, tmp_path: Path) -> None:
        db_path = tmp_path / "messages.db"
        _seed_messages(db_path)
        response = await MessageStoreBackend(db_path).search("^(bob|carol)$", 10)
        assert [result.id for result in response.results] == ["3", "4"]
        assert response.results[0].observed_at is None

    @pytest.mark.asyncio
    async def test_limit(self, tmp_path: Path) -> None:
        db_path = tmp_path / "messages.db"
        _seed_messages(db_path)
        response = await MessageStoreBackend(db_path).search(".", 2)
        assert response.total == 2

    @pytest.mark.asyncio
    async def test_invalid_regex_is_failed_source(self, tmp_path: Path) -> None:
        db_path = tmp_path / "messages.db"
        _seed_messages(db_path)
        response = await MessageStoreBackend(db_path).search("(unclosed", 10)
        assert response.success is False
        assert "Invalid regular expression" in (response.error or "")

    @pytest.mark.asyncio
    async def test_missing_database(self, tmp_path: Path) -> None:
        response = await MessageStoreBackend(tmp_path / "absent.db").search("x", 10)
        assert response.success is False
        assert "Message store not found" in (response.error or "")

    @pytest.mark.asyncio
    async def test_missing_table_is_failed_source(self, tmp_path: Path) -> None:
        db_path = tmp_path / "empty.db"
        sqlite3.connect(db_path).close()
        response = await MessageStoreBackend(db_path).search("x", 10)
        assert response.success is False

    def test_table_name_validated(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            MessageStoreBackend(tmp_path / "m.db", table="messages; DROP TABLE x")


# ---------------------------------------------------------------------------
# Session cache adapter
# ---------------------------------------------------------------------------


class TestSessionCacheBackend:
    @pytest.mark.asyncio
    async def test_scores_session_context(self, clock: FakeClock) -> None:
        store = SessionStore(AsyncInMemoryBackend(clock=clock), clock=clock)
        await store.capture("s1", "shop", {"task": "deploy checklist"})
        await store.capture("s2", "shop", {"task": "write docs"})
        await store.capture("s3", "blog", {"task": "deploy blog"})

        response = await SessionCacheBackend(store).search("deploy", 10)

        assert response.success is True
        assert sorted(result.id for result in response.results) == ["s1", "s3"]
        assert all(result.base_score == 2.0 for result in response.results)
        assert response.results[0].observed_at == clock.current

    @pytest.mark.asyncio
    async def test_project_scope(self, clock: FakeClock) -> None:
        store = SessionStore(AsyncInMemoryBackend(clock=clock), clock=clock)
        await store.capture("s1", "shop", {"task": "deploy checklist"})
        await store.capture("s3", "blog", {"task": "deploy blog"})

        response = await SessionCacheBackend(store, project_name="blog").search("deploy", 10)

        assert [result.id for result in response.results] == ["s3"]
        assert response.results[0].payload["projectName"] == "blog"

    @pytest.mark.asyncio
    async def test_corrupt_session_is_logged_and_skipped(
        self, clock: FakeClock, caplog: pytest.LogCaptureFixture
    ) -> None:
        backend = AsyncInMemoryBackend(clock=clock)
        store = SessionStore(backend, clock=clock)
        await store.capture("s1", "shop", {"task": "deploy checklist"})
        await backend.save("broken", "{not json")

        with caplog.at_level(logging.DEBUG, logger="agent_context_bridge.search.sessions"):
            response = await SessionCacheBackend(store).search("deploy", 10)

        assert [result.id for result in response.results] == ["s1"]
        assert any(
            record.name == "agent_context_bridge.search.sessions" and "broken" in record.getMessage()
            for record in caplog.records
        )

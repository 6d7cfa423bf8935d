#!/usr/bin/env python3
"""Example: Multi-backend search with freshness ranking

Fans one query out to the session cache and a SQLite message store,
then prints the merged list ranked by freshness-adjusted score.  A
third, unreachable vector store shows how a failing source is reported
without affecting the others.

Usage:
    python examples/02_freshness_search.py

Requirements:
    pip install agent-context-bridge
"""
from __future__ import annotations

import asyncio
import sqlite3
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from agent_context_bridge import (
    AsyncInMemoryBackend,
    MessageStoreBackend,
    QdrantTextBackend,
    QueryConfig,
    SearchAggregator,
    SessionCacheBackend,
    SessionStore,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def seed_messages(db_path: Path) -> None:
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE messages (id INTEGER PRIMARY KEY, message_id TEXT, body TEXT,"
            " sender TEXT, recipient TEXT, timestamp TEXT)"
        )
        conn.executemany(
            "INSERT INTO messages (message_id, body, sender, recipient, timestamp)"
            " VALUES (?, ?, ?, ?, ?)",
            [
                ("m-1", "deploy window moved to Friday", "ops", "team",
                 (NOW - timedelta(days=9)).isoformat()),
                ("m-2", "deploy finished, all green", "ci-bot", "team",
                 (NOW - timedelta(hours=2)).isoformat()),
            ],
        )


async def main() -> None:
    store = SessionStore(AsyncInMemoryBackend(clock=lambda: NOW), clock=lambda: NOW)
    await store.capture("s-42", "platform", {"task": "deploy checklist for the new cluster"})

    with tempfile.TemporaryDirectory() as tmp:
        db_path = Path(tmp) / "messages.db"
        seed_messages(db_path)

        aggregator = SearchAggregator(
            [
                SessionCacheBackend(store),
                MessageStoreBackend(db_path),
                QdrantTextBackend("http://127.0.0.1:9", timeout=0.5),
            ],
            clock=lambda: NOW,
        )
        config = QueryConfig(target_backends=("sessions", "messages", "qdrant"), limit=5)
        ranked = await aggregator.search_with_freshness("deploy", config)

    summary = ranked.aggregate.summary()
    print(f"Sources: {summary['successfulSources']}/{summary['totalSources']} succeeded")
    for tag, response in ranked.aggregate.backends.items():
        if not response.success:
            print(f"  {tag} failed: {response.error}")

    print(f"\nTop {len(ranked.results)} of {ranked.total} results:")
    for result in ranked.results:
        print(
            f"  [{result.source:8}] {result.id:6} "
            f"base={result.base_score:5.2f} adjusted={result.adjusted_score:5.2f}"
        )


if __name__ == "__main__":
    asyncio.run(main())

#!/usr/bin/env python3
"""Example: Quickstart — agent-context-bridge

Minimal working example: capture two sessions, list them ranked by
freshness, restore one, and expire the stale one.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install agent-context-bridge
"""
from __future__ import annotations

import asyncio
import tempfile
from datetime import datetime, timedelta, timezone

import agent_context_bridge
from agent_context_bridge import AsyncFilesystemBackend, SessionStore


class SteppingClock:
    """A clock the example can move forward by hand."""

    def __init__(self) -> None:
        self.now = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


async def main() -> None:
    print(f"agent-context-bridge version: {agent_context_bridge.__version__}")
    clock = SteppingClock()

    with tempfile.TemporaryDirectory() as base_dir:
        store = SessionStore(AsyncFilesystemBackend(base_dir), clock=clock)

        # Step 1: Capture a session, then a second one 40 minutes later
        await store.capture("session-001", "payments", {"task": "refund flow"})
        clock.now += timedelta(minutes=40)
        receipt = await store.capture("session-002", "payments", {"task": "chargeback review"})
        print(f"Captured '{receipt.record.session_id}' ({receipt.size} bytes)")

        # Step 2: List active sessions, freshest first
        listing = await store.list_active("payments")
        for scored in listing.sessions:
            print(f"  {scored.record.session_id}: score={scored.score:.5f}")

        # Step 3: Restore the newer session
        record = await store.restore("session-002", "payments")
        print(f"\nRestored context: {record.context}")

        # Step 4: Expire everything idle for longer than the 30 minute timeout
        report = await store.cleanup_expired()
        print(f"Expired: {[entry.session_id for entry in report.removed]}")


if __name__ == "__main__":
    asyncio.run(main())

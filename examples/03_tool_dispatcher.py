#!/usr/bin/env python3
"""Example: Driving the bridge through the tool surface

Every operation is a flat JSON mapping with an ``operation`` field, and
every reply is a JSON envelope.  This is the same path the CLI's
``call`` command uses.

Usage:
    python examples/03_tool_dispatcher.py

Requirements:
    pip install agent-context-bridge
"""
from __future__ import annotations

import asyncio
import json
import tempfile
from pathlib import Path

from agent_context_bridge import (
    BridgeConfig,
    ContextBridge,
    QdrantConfig,
    QueryConfig,
    StoreConfig,
    ToolDispatcher,
)


async def main() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        config = BridgeConfig(
            store=StoreConfig(base_dir=Path(tmp)),
            qdrant=QdrantConfig(enabled=False),
            search=QueryConfig(target_backends=("sessions",)),
        )
        bridge = ContextBridge.from_config(config)
        dispatcher = ToolDispatcher(bridge)

        calls = [
            {"operation": "init_system"},
            {
                "operation": "capture_session",
                "sessionId": "s1",
                "projectName": "payments",
                "context": {"task": "refund flow", "step": 3},
            },
            {"operation": "create_project_state", "projectName": "payments", "state": {"phase": "build"}},
            {"operation": "get_relevant_context", "projectName": "payments", "query": "refund"},
            {"operation": "process_query_realtime", "query": "refund", "context": {"task": "refund flow"}},
            {"operation": "restore_session", "sessionId": "missing"},
        ]
        try:
            for params in calls:
                reply = await dispatcher.execute(params)
                status = "ok" if reply["success"] else f"failed ({reply['errorType']})"
                print(f"{params['operation']}: {status}")
            print("\nLast reply:")
            print(json.dumps(reply, indent=2))
        finally:
            await bridge.aclose()


if __name__ == "__main__":
    asyncio.run(main())

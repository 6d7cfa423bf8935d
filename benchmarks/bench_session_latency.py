"""Benchmark: Session capture and listing latency — p50/p99.

Measures the per-call latency of SessionStore.capture() on the
filesystem backend, then the latency of one ranked list_active() over
the populated store.
"""
from __future__ import annotations

import asyncio
import json
import sys
import tempfile
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from agent_context_bridge.session.store import SessionStore
from agent_context_bridge.storage.async_filesystem import AsyncFilesystemBackend

_WARMUP: int = 50
_ITERATIONS: int = 1_000
_LIST_ROUNDS: int = 20


def _percentile(sorted_values: list[float], fraction: float) -> float:
    n = len(sorted_values)
    return sorted_values[min(int(n * fraction), n - 1)]


async def _bench(base_dir: Path) -> dict[str, object]:
    store = SessionStore(AsyncFilesystemBackend(base_dir), max_active_sessions=10)
    context = {"task": "refund flow", "notes": ["step"] * 20}

    for i in range(_WARMUP):
        await store.capture(f"warmup-{i}", "bench", context)

    capture_ms: list[float] = []
    for i in range(_ITERATIONS):
        t0 = time.perf_counter()
        await store.capture(f"session-{i}", "bench", context)
        capture_ms.append((time.perf_counter() - t0) * 1000)

    list_ms: list[float] = []
    for _ in range(_LIST_ROUNDS):
        t0 = time.perf_counter()
        await store.list_active("bench")
        list_ms.append((time.perf_counter() - t0) * 1000)

    capture_sorted = sorted(capture_ms)
    total = sum(capture_ms) / 1000
    return {
        "operation": "session_capture_latency",
        "iterations": _ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
        "p50_latency_ms": round(_percentile(capture_sorted, 0.50), 4),
        "p99_latency_ms": round(_percentile(capture_sorted, 0.99), 4),
        "list_sessions": _WARMUP + _ITERATIONS,
        "list_avg_ms": round(sum(list_ms) / len(list_ms), 4),
    }


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    with tempfile.TemporaryDirectory() as tmp:
        result = asyncio.run(_bench(Path(tmp)))
    print(
        f"[bench_session_latency] {result['operation']}: "
        f"p50={result['p50_latency_ms']:.4f}ms  "
        f"p99={result['p99_latency_ms']:.4f}ms  "
        f"list={result['list_avg_ms']:.2f}ms"
    )
    return result


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "latency_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")

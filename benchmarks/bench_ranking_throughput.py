"""Benchmark: Freshness ranking throughput.

Measures how many search results per second rank_results() can score
and sort, using a spread of observation times across thirty days.
"""
from __future__ import annotations

import json
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from agent_context_bridge.search.aggregator import rank_results
from agent_context_bridge.search.models import QueryConfig, SearchResult

_RESULTS_PER_ROUND: int = 2_000
_ROUNDS: int = 50


def bench_ranking_throughput() -> dict[str, object]:
    """Benchmark rank_results() over synthetic results.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second.
    """
    now = datetime(2024, 3, 1, tzinfo=timezone.utc)
    results = [
        SearchResult(
            id=str(i),
            source="bench",
            base_score=float(i % 17),
            observed_at=now - timedelta(minutes=(i * 37) % (30 * 24 * 60)),
        )
        for i in range(_RESULTS_PER_ROUND)
    ]
    config = QueryConfig(target_backends=("bench",))

    t0 = time.perf_counter()
    for _ in range(_ROUNDS):
        rank_results(results, config, now)
    total = time.perf_counter() - t0

    scored = _RESULTS_PER_ROUND * _ROUNDS
    result: dict[str, object] = {
        "operation": "freshness_ranking",
        "iterations": scored,
        "total_seconds": round(total, 4),
        "ops_per_second": round(scored / total, 1),
    }
    print(
        f"[bench_ranking_throughput] {result['operation']}: "
        f"{result['ops_per_second']:,.0f} results/s"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_ranking_throughput()


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "ranking_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")

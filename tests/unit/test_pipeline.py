"""Unit tests for agent_context_bridge.pipeline."""
from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest

from agent_context_bridge.errors import ValidationError
from agent_context_bridge.pipeline import (
    ENHANCEMENT_VERSION,
    REALTIME_KEY,
    ContextPipeline,
    PipelineStage,
    classify_freshness,
)
from agent_context_bridge.session.store import SessionStore
from agent_context_bridge.storage.async_memory import AsyncInMemoryBackend
from tests.conftest import T0, FakeClock


async def _healthy(context: dict[str, Any]) -> dict[str, Any]:
    return {"ok": True}


async def _broken(context: dict[str, Any]) -> dict[str, Any]:
    raise RuntimeError("source offline")


class _FailingCompression(ContextPipeline):
    def compress(self, context: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        raise RuntimeError("compression exploded")


@pytest.fixture()
def pipeline(clock: FakeClock) -> ContextPipeline:
    return ContextPipeline(signal_sources={"healthy": _healthy, "broken": _broken}, clock=clock)


class TestInjection:
    @pytest.mark.asyncio
    async def test_attaches_signals_without_touching_input(self, pipeline: ContextPipeline) -> None:
        original = {"task": "refund"}
        result = await pipeline.inject_realtime_data(original)

        assert original == {"task": "refund"}
        realtime = result.context[REALTIME_KEY]
        assert realtime["sources"]["healthy"] == {"ok": True}
        assert realtime["injection_time"] == T0.isoformat()
        assert realtime["timestamp"] == int(T0.timestamp() * 1000)
        assert result.context["enhancement_version"] == ENHANCEMENT_VERSION
        assert result.context["task"] == "refund"

    @pytest.mark.asyncio
    async def test_failing_source_is_recorded_inline(self, pipeline: ContextPipeline) -> None:
        result = await pipeline.inject_realtime_data({})
        assert result.context[REALTIME_KEY]["sources"]["broken"] == {"error": "source offline"}
        assert result.sources_injected == 2

    @pytest.mark.asyncio
    async def test_stats_and_envelope(self, pipeline: ContextPipeline) -> None:
        payload = (await pipeline.inject_realtime_data(None)).to_dict()
        assert set(payload) == {"enhancedContext", "injectionStats"}
        assert payload["injectionStats"]["sources_injected"] == 2
        assert payload["injectionStats"]["data_size"] > 0

    @pytest.mark.asyncio
    async def test_non_object_context_rejected(self, pipeline: ContextPipeline) -> None:
        with pytest.raises(ValidationError):
            await pipeline.inject_realtime_data(["not", "a", "dict"])

    @pytest.mark.asyncio
    async def test_default_sources(self, clock: FakeClock) -> None:
        store = SessionStore(AsyncInMemoryBackend(clock=clock), clock=clock)
        for index in range(4):
            await store.capture(f"s{index}", "shop")
        pipeline = ContextPipeline(store=store, clock=clock)
        context = {"session_length": 12, "timestamp": (T0 - timedelta(minutes=30)).isoformat()}

        sources = (await pipeline.inject_realtime_data(context)).context[REALTIME_KEY]["sources"]

        assert pipeline.source_names == ["service_status", "session_activity", "context_metrics"]
        assert sources["session_activity"] == {
            "active_sessions": 4,
            "peak_hour": "business-hours",
            "current_load": "high",
        }
        assert sources["context_metrics"] == {
            "avg_session_length": 12,
            "data_freshness": "very-fresh",
            "relevancy_score": 0.0,
        }
        assert sources["service_status"]["healthy"] is True


class TestStages:
    def test_relevance_annotates_without_removing(self, pipeline: ContextPipeline) -> None:
        context = {"task": "refund the order"}
        annotated = pipeline.filter_by_relevance("refund zebra", context)
        assert annotated["relevance_score"] == 0.5
        assert annotated["task"] == "refund the order"
        assert "relevance_score" not in context

    def test_relevance_for_empty_query(self, pipeline: ContextPipeline) -> None:
        assert pipeline.filter_by_relevance("", {"a": 1})["relevance_score"] is None

    def test_compress_drops_error_sources(self, pipeline: ContextPipeline) -> None:
        context = {REALTIME_KEY: {"sources": {"good": {"ok": 1}, "bad": {"error": "x"}}}}
        compressed, stats = pipeline.compress(context)
        assert list(compressed[REALTIME_KEY]["sources"]) == ["good"]
        assert stats["compressed_size"] < stats["original_size"]
        assert 0 < stats["actual_reduction"] < 1
        assert stats["target_reduction"] == 0.6

    def test_compress_without_signals_is_identity(self, pipeline: ContextPipeline) -> None:
        compressed, stats = pipeline.compress({"a": 1})
        assert compressed == {"a": 1}
        assert stats["actual_reduction"] == 0.0

    def test_bound_drops_raw_timestamp(self, pipeline: ContextPipeline) -> None:
        context = {REALTIME_KEY: {"timestamp": 1, "injection_time": "t"}}
        bounded, stats = pipeline.bound(context)
        assert bounded[REALTIME_KEY] == {"injection_time": "t"}
        assert stats["optimized_tokens"] < stats["original_tokens"]
        assert context[REALTIME_KEY]["timestamp"] == 1


class TestProcessQuery:
    @pytest.mark.asyncio
    async def test_runs_every_stage_in_order(self, pipeline: ContextPipeline) -> None:
        result = await pipeline.process_query("refund", {"task": "refund"})

        assert result.success is True
        assert result.completed_stages == list(PipelineStage)
        assert result.context["relevance_score"] == 1.0
        assert "broken" not in result.context[REALTIME_KEY]["sources"]
        assert "timestamp" not in result.context[REALTIME_KEY]

        pipeline_info = result.to_dict()["pipeline"]
        assert pipeline_info["stages"] == ["injection", "relevance", "compression", "bounding"]
        assert pipeline_info["relevanceScore"] == 1.0
        assert pipeline_info["injectionStats"]["sources_injected"] == 2

    @pytest.mark.asyncio
    async def test_stage_failure_keeps_partial_result(self, clock: FakeClock) -> None:
        pipeline = _FailingCompression(signal_sources={"healthy": _healthy}, clock=clock)
        result = await pipeline.process_query("refund", {"task": "refund"})

        assert result.success is False
        assert result.failed_stage is PipelineStage.COMPRESSION
        assert result.error == "compression exploded"
        assert result.completed_stages == [PipelineStage.INJECTION, PipelineStage.RELEVANCE]
        assert result.context["relevance_score"] == 1.0
        assert REALTIME_KEY in result.context

        payload = result.to_dict()
        assert payload["failedStage"] == "compression"
        assert payload["pipeline"]["compressionStats"] is None

    @pytest.mark.asyncio
    async def test_invalid_context_rejected_before_any_stage(self, pipeline: ContextPipeline) -> None:
        with pytest.raises(ValidationError):
            await pipeline.process_query("q", "not an object")


@pytest.mark.parametrize(
    ("age", "label"),
    [
        (timedelta(minutes=10), "very-fresh"),
        (timedelta(hours=5), "fresh"),
        (timedelta(hours=30), "acceptable"),
        (timedelta(days=3), "stale"),
    ],
)
def test_classify_freshness(age: timedelta, label: str) -> None:
    assert classify_freshness((T0 - age).isoformat(), T0) == label


@pytest.mark.parametrize("value", [None, "not a time"])
def test_classify_freshness_unknown(value: object) -> None:
    assert classify_freshness(value, T0) == "unknown"

"""Unit tests for agent_context_bridge.context.payload."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from agent_context_bridge.context.payload import (
    byte_size,
    dumps,
    ensure_json_tree,
    parse_timestamp,
    to_epoch_ms,
    token_count,
)


class TestSerialisedSizes:
    def test_dumps_keeps_key_order(self) -> None:
        assert dumps({"b": 1, "a": 2}) == '{"b": 1, "a": 2}'

    def test_token_count_splits_on_spaces(self) -> None:
        assert token_count({"a": 1}) == 2

    def test_byte_size_counts_utf8_bytes(self) -> None:
        assert byte_size({"k": "é"}) == 11

    def test_dumps_falls_back_to_str(self) -> None:
        moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert "2024-01-01" in dumps({"at": moment})


class TestEnsureJsonTree:
    def test_returns_deep_copy(self) -> None:
        original = {"nested": {"items": [1, 2]}}
        copied = ensure_json_tree(original)
        copied["nested"]["items"].append(3)  # type: ignore[index]
        assert original["nested"]["items"] == [1, 2]

    def test_tuples_become_lists(self) -> None:
        assert ensure_json_tree({"t": (1, "x")}) == {"t": [1, "x"]}

    def test_non_finite_float_rejected(self) -> None:
        with pytest.raises(TypeError, match="non-finite"):
            ensure_json_tree({"x": float("nan")})

    def test_non_string_key_rejected(self) -> None:
        with pytest.raises(TypeError, match="non-string key"):
            ensure_json_tree({1: "x"})

    def test_unsupported_type_rejected(self) -> None:
        with pytest.raises(TypeError, match="set"):
            ensure_json_tree({"x": {1, 2}}, field_name="context")


class TestParseTimestamp:
    def test_iso_with_z(self) -> None:
        parsed = parse_timestamp("2024-01-02T03:04:05Z")
        assert parsed == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_naive_iso_is_utc(self) -> None:
        parsed = parse_timestamp("2024-01-02T03:04:05")
        assert parsed is not None and parsed.tzinfo is not None

    def test_epoch_seconds_and_millis_agree(self) -> None:
        assert parse_timestamp(1_700_000_000) == parse_timestamp(1_700_000_000_000)

    def test_numeric_string(self) -> None:
        assert parse_timestamp("1700000000000") == parse_timestamp(1_700_000_000)

    def test_year_like_string_is_not_an_epoch(self) -> None:
        assert parse_timestamp("2024") is None

    def test_numeric_string_in_seconds(self) -> None:
        assert parse_timestamp("1700000000") == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)

    def test_naive_datetime_gets_utc(self) -> None:
        parsed = parse_timestamp(datetime(2024, 1, 1))
        assert parsed == datetime(2024, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday", True, [], {"a": 1}, float("inf")])
    def test_malformed_is_none(self, value: object) -> None:
        assert parse_timestamp(value) is None


def test_to_epoch_ms() -> None:
    assert to_epoch_ms(datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)) == 1000

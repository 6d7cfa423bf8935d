"""JSON payload helpers.

Context and search payloads are opaque JSON trees: ``None``, ``bool``,
numbers, strings, lists and string-keyed dicts.  This module gives them
one canonical serialised form so that size accounting in the pipeline
is well defined, and parses the assorted timestamp encodings found in
payloads.

Functions
---------
- dumps             — canonical compact JSON text
- byte_size         — UTF-8 length of the canonical form
- token_count       — space-delimited piece count of the canonical form
- ensure_json_tree  — validate and deep-copy a JSON tree
- parse_timestamp   — datetime / ISO-8601 / epoch value -> aware datetime
- to_epoch_ms       — aware datetime -> integer epoch milliseconds
"""
from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from typing import Any, Union

JSONScalar = Union[None, bool, int, float, str]
JSONValue = Union[JSONScalar, list["JSONValue"], dict[str, "JSONValue"]]
JSONObject = dict[str, JSONValue]

# Epoch values above this are taken to be milliseconds (year ~2286 in seconds).
_EPOCH_MS_THRESHOLD = 10_000_000_000

# Numeric strings below this (2001-09-09 in seconds) are not epoch values.
_EPOCH_STRING_FLOOR = 1_000_000_000

def dumps(value: Any) -> str:
    """Return the canonical serialised form of ``value``.

    Key order is preserved (dicts are ordered mappings) and separators
    are the standard ``", "`` / ``": "`` pair so that the space-delimited
    token estimate stays meaningful.
    """
    return json.dumps(value, ensure_ascii=False, default=str)


def byte_size(value: Any) -> int:
    """Return the UTF-8 byte length of the canonical form of ``value``."""
    return len(dumps(value).encode("utf-8"))


def token_count(value: Any) -> int:
    """Return a token-count-style size: space-delimited pieces of ``dumps``."""
    return len(dumps(value).split(" "))


def ensure_json_tree(value: Any, *, field_name: str = "value") -> JSONValue:
    """Validate that ``value`` is a JSON tree and return a deep copy.

    Tuples are accepted and become lists.  Non-finite floats and
    non-string mapping keys are rejected.

    Raises
    ------
    TypeError
        If ``value`` contains anything that is not representable as JSON.
    """
    if value is None or isinstance(value, (bool, str, int)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise TypeError(f"{field_name} contains a non-finite float")
        return value
    if isinstance(value, (list, tuple)):
        return [ensure_json_tree(item, field_name=field_name) for item in value]
    if isinstance(value, dict):
        copied: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{field_name} has a non-string key {key!r}")
            copied[key] = ensure_json_tree(item, field_name=field_name)
        return copied
    raise TypeError(f"{field_name} contains unsupported type {type(value).__name__}")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a payload timestamp into an aware UTC datetime.

    Accepts ``datetime`` objects (naive ones are taken as UTC), ISO-8601
    strings (a trailing ``Z`` is allowed), numeric strings and numbers
    holding epoch seconds or epoch milliseconds.  Short numeric strings
    such as ``"2024"`` are not epochs and go through the ISO parser.
    Returns ``None`` for
    anything malformed; callers treat that as "observed now".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            pass
        else:
            if abs(number) >= _EPOCH_STRING_FLOOR:
                return _from_epoch(number)
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _from_epoch(raw: float) -> datetime | None:
    if not math.isfinite(raw):
        return None
    seconds = raw / 1000.0 if abs(raw) >= _EPOCH_MS_THRESHOLD else raw
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def to_epoch_ms(moment: datetime) -> int:
    """Return ``moment`` as integer milliseconds since the Unix epoch."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(round(moment.timestamp() * 1000))


def utc_now() -> datetime:
    """Default clock: the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)

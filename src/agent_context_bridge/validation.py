"""Parameter validation shared by the store and the project tracker."""
from __future__ import annotations

import os
from typing import Any

from agent_context_bridge.context.payload import ensure_json_tree
from agent_context_bridge.errors import ValidationError


def require_key(value: Any, label: str, operation: str) -> str:
    """Return ``value`` if it is a non-empty, single path component.

    Keys become file names, so separators and leading dots are refused.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required", operation)
    if os.path.basename(value) != value or "\\" in value or value.startswith("."):
        raise ValidationError(f"Invalid {label} {value!r}", operation)
    return value


def ensure_json_object(value: Any, field_name: str, operation: str) -> dict[str, Any]:
    """Return a validated deep copy of a JSON object parameter.

    ``None`` becomes an empty dict.
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{field_name} must be a JSON object", operation)
    try:
        tree = ensure_json_tree(value, field_name=field_name)
    except TypeError as exc:
        raise ValidationError(str(exc), operation) from exc
    assert isinstance(tree, dict)
    return tree

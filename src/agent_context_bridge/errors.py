"""Error taxonomy shared by every component.

Component methods raise these; the tool boundary in
``agent_context_bridge.tools`` converts them into structured failure
envelopes so that nothing propagates past the caller-facing surface.

Classes
-------
- BridgeError            — common base
- SessionNotFoundError   — a session or project is absent
- ProjectMismatchError   — strict project-name check failed on restore
- StorageError           — I/O failure on the persistence medium
- BackendError           — a single search backend failed
- ValidationError        — malformed or missing parameter
"""
from __future__ import annotations


class BridgeError(Exception):
    """Base class for all agent-context-bridge errors.

    Parameters
    ----------
    message:
        Human-readable description.
    operation:
        Name of the operation that produced the error, when known.
    """

    error_type: str = "BridgeError"

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        return self.message


class SessionNotFoundError(BridgeError, KeyError):
    """Raised when a session (or project state) does not exist."""

    error_type = "NotFound"

    def __init__(self, key: str, operation: str | None = None, kind: str = "Session") -> None:
        self.key = key
        super().__init__(f"{kind} {key!r} not found.", operation)


class ProjectMismatchError(BridgeError):
    """Raised when a restore names a project other than the stored one."""

    error_type = "ProjectMismatch"

    def __init__(
        self,
        session_id: str,
        expected: str,
        actual: str,
        operation: str | None = None,
    ) -> None:
        self.session_id = session_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Session project mismatch: expected {expected!r}, got {actual!r}",
            operation,
        )


class StorageError(BridgeError):
    """Raised when the persistence medium cannot be read or written."""

    error_type = "StorageError"


class BackendError(BridgeError):
    """Raised inside a search adapter; never crosses into sibling adapters."""

    error_type = "BackendError"

    def __init__(self, message: str, source: str = "", operation: str | None = None) -> None:
        self.source = source
        super().__init__(message, operation)


class ValidationError(BridgeError, ValueError):
    """Raised for malformed or missing parameters."""

    error_type = "ValidationError"


__all__ = [
    "BackendError",
    "BridgeError",
    "ProjectMismatchError",
    "SessionNotFoundError",
    "StorageError",
    "ValidationError",
]

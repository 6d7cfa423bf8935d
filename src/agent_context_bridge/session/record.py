"""Session record domain models.

``SessionRecord`` is a Pydantic model so that documents read back from
disk are validated before use.  The small result containers returned by
the store are plain dataclasses with ``to_dict`` helpers for the tool
envelope.

Classes
-------
- SessionRecord    — one persisted session snapshot
- CaptureReceipt   — acknowledgement returned by ``capture``
- ScoredSession    — a record paired with its freshness score
- ListingResult    — output of ``list_active``
- CleanupEntry     — one removed session
- CleanupReport    — output of ``cleanup_expired``
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agent_context_bridge.context.payload import parse_timestamp, to_epoch_ms

SCHEMA_VERSION = "1.0.0"


class CleanupStrategy(str, Enum):
    """Deletion policies for expired sessions."""

    TIMESTAMP = "timestamp"
    SMART_ARCHIVE = "smart_archive"


class SessionRecord(BaseModel):
    """A persisted snapshot of project/session context.

    Parameters
    ----------
    session_id:
        Unique key within the store.
    project_name:
        Groups sessions; checked strictly on restore.
    context:
        Opaque nested mapping supplied by the caller.
    metadata:
        Free-form mapping supplied by the caller.
    captured_at:
        When the record was written.  Immutable once stored.
    version:
        Document schema version.
    last_accessed:
        Storage modification time.  Not part of the stored document.
    """

    session_id: str = Field(alias="sessionId", min_length=1)
    project_name: str = Field(alias="projectName")
    context: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    captured_at: datetime = Field(alias="captureTime")
    version: str = SCHEMA_VERSION
    last_accessed: datetime | None = Field(default=None, exclude=True)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("context", "metadata", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_document(self) -> dict[str, Any]:
        """Return the on-disk JSON document for this record."""
        return {
            "sessionId": self.session_id,
            "projectName": self.project_name,
            "context": self.context,
            "metadata": self.metadata,
            "captureTime": self.captured_at.isoformat(),
            "timestamp": to_epoch_ms(self.captured_at),
            "version": self.version,
        }

    @classmethod
    def from_document(
        cls, data: Any, last_accessed: datetime | None = None
    ) -> SessionRecord:
        """Build a record from a stored document.

        ``captureTime`` is preferred; the epoch-millisecond ``timestamp``
        is the fallback.

        Raises
        ------
        ValueError
            If the document is not a mapping or lacks a usable capture time.
        """
        if not isinstance(data, dict):
            raise ValueError("session document is not a JSON object")
        captured = parse_timestamp(data.get("captureTime")) or parse_timestamp(
            data.get("timestamp")
        )
        if captured is None:
            raise ValueError("session document has no capture time")
        return cls(
            session_id=data.get("sessionId"),
            project_name=data.get("projectName"),
            context=data.get("context"),
            metadata=data.get("metadata"),
            captured_at=captured,
            version=str(data.get("version", SCHEMA_VERSION)),
            last_accessed=last_accessed,
        )

    def summary(self) -> dict[str, Any]:
        """Return the restore payload used by the tool surface."""
        return {
            "sessionId": self.session_id,
            "projectName": self.project_name,
            "context": self.context,
            "metadata": self.metadata,
            "captureTime": self.captured_at.isoformat(),
            "lastAccessed": self.last_accessed.isoformat() if self.last_accessed else None,
        }


@dataclass
class CaptureReceipt:
    """Acknowledgement for a successful capture."""

    record: SessionRecord
    location: str
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.record.session_id,
            "projectName": self.record.project_name,
            "filePath": self.location,
            "size": self.size,
            "captureTime": self.record.captured_at.isoformat(),
        }


@dataclass
class ScoredSession:
    """A session record with its freshness-adjusted score."""

    record: SessionRecord
    score: float
    size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.record.session_id,
            "projectName": self.record.project_name,
            "lastAccessed": self.record.last_accessed.isoformat()
            if self.record.last_accessed
            else None,
            "size": self.size,
            "relevanceScore": self.score,
        }


@dataclass
class ListingResult:
    """Ranked active sessions plus any per-file warnings."""

    sessions: list[ScoredSession] = field(default_factory=list)
    total: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessions": [session.to_dict() for session in self.sessions],
            "total": self.total,
            "warnings": list(self.warnings),
        }


@dataclass
class CleanupEntry:
    """A session removed by ``cleanup_expired``."""

    session_id: str
    action: str
    age_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "action": self.action,
            "age": f"{self.age_minutes} minutes",
        }


@dataclass
class CleanupReport:
    """Outcome of an expiry sweep."""

    strategy: CleanupStrategy
    removed: list[CleanupEntry] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.removed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "cleaned": self.count,
            "sessions": [entry.to_dict() for entry in self.removed],
            "warnings": list(self.warnings),
        }

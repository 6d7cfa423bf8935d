"""Session subpackage.

Public surface
--------------
- SessionStore         — capture, restore, ranked listing, expiry
- SessionRecord        — persisted session snapshot
- ProjectStateTracker  — per-project state documents and checkpoints
"""
from __future__ import annotations

from agent_context_bridge.session.project_state import CheckpointInfo, ProjectStateTracker
from agent_context_bridge.session.record import (
    CaptureReceipt,
    CleanupEntry,
    CleanupReport,
    CleanupStrategy,
    ListingResult,
    ScoredSession,
    SessionRecord,
)
from agent_context_bridge.session.store import SessionStore

__all__ = [
    "CaptureReceipt",
    "CheckpointInfo",
    "CleanupEntry",
    "CleanupReport",
    "CleanupStrategy",
    "ListingResult",
    "ProjectStateTracker",
    "ScoredSession",
    "SessionRecord",
    "SessionStore",
]

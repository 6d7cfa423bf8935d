"""Configuration models and loader.

All settings are Pydantic models with documented defaults.  A YAML file
can override any subset::

    store:
      base_dir: /var/lib/context-bridge
      session_timeout_minutes: 45
    qdrant:
      base_url: http://qdrant:6333
    search:
      target_backends: [qdrant, sessions]

Environment
-----------
- ``AGENT_CONTEXT_BRIDGE_CONFIG`` — default path of the YAML file
- ``AGENT_CONTEXT_BRIDGE_HOME``   — overrides ``store.base_dir``
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from agent_context_bridge.errors import ValidationError
from agent_context_bridge.search.models import QueryConfig

CONFIG_ENV_VAR = "AGENT_CONTEXT_BRIDGE_CONFIG"
HOME_ENV_VAR = "AGENT_CONTEXT_BRIDGE_HOME"

_DEFAULT_BASE_DIR: Path = Path.home() / ".agent-context-bridge"


class StoreConfig(BaseModel):
    """Session store and project state settings.

    Parameters
    ----------
    base_dir:
        Root of the on-disk layout (``context_cache/``, ``projects/``,
        ``archive/``, ``admin_sync/``).
    session_timeout_minutes:
        Sessions idle for longer than this are removed by cleanup.
    max_active_sessions:
        Default cap for ``list_active``.
    freshness_decay_factor:
        Decay rate per day applied to session listings.
    session_priority_boost / session_priority_window_hours:
        Optional recency boost for session listings.  The default boost
        of 1.0 leaves listing scores as pure decay.
    touch_on_restore:
        Refresh a session's last-accessed time on restore.
    max_state_history:
        Cap for project state history and checkpoint listings.
    lock_timeout_seconds:
        How long writers wait for a per-key lock.
    """

    base_dir: Path = _DEFAULT_BASE_DIR
    session_timeout_minutes: float = Field(default=30.0, gt=0)
    max_active_sessions: int = Field(default=5, gt=0)
    freshness_decay_factor: float = Field(default=0.1, ge=0.0)
    session_priority_boost: float = Field(default=1.0, ge=1.0)
    session_priority_window_hours: float = 0.0
    touch_on_restore: bool = True
    max_state_history: int = Field(default=10, gt=0)
    lock_timeout_seconds: float = Field(default=10.0, gt=0)

    @property
    def context_cache_dir(self) -> Path:
        return self.base_dir / "context_cache"

    @property
    def projects_dir(self) -> Path:
        return self.base_dir / "projects"

    @property
    def archive_dir(self) -> Path:
        return self.base_dir / "archive"

    @property
    def admin_sync_dir(self) -> Path:
        return self.base_dir / "admin_sync"


class QdrantConfig(BaseModel):
    """Vector store reached through its HTTP scroll API."""

    enabled: bool = True
    base_url: str = "http://localhost:6333"
    collections: list[str] = Field(
        default_factory=lambda: ["lessons-learned", "development-docs"]
    )
    timeout_seconds: float = Field(default=5.0, gt=0)
    max_scroll_limit: int = Field(default=50, gt=0)
    api_key: str | None = None


class MessageStoreConfig(BaseModel):
    """SQLite message store searched with regular expressions."""

    enabled: bool = False
    db_path: Path = _DEFAULT_BASE_DIR / "messages.db"
    table: str = Field(default="messages", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    timeout_seconds: float = Field(default=5.0, gt=0)


class BridgeConfig(BaseModel):
    """Top-level configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    messages: MessageStoreConfig = Field(default_factory=MessageStoreConfig)
    search: QueryConfig = Field(default_factory=QueryConfig)
    sessions_backend_timeout_seconds: float = Field(default=5.0, gt=0)


def load_config(path: str | Path | None = None) -> BridgeConfig:
    """Load a ``BridgeConfig`` from YAML.

    Parameters
    ----------
    path:
        YAML file to read.  When omitted, ``$AGENT_CONTEXT_BRIDGE_CONFIG``
        is used if set and present; otherwise defaults apply.

    Raises
    ------
    ValidationError
        If an explicit ``path`` does not exist, the YAML is not a mapping,
        or any value fails validation.
    """
    data: dict[str, Any] = {}
    explicit = path is not None
    config_path = Path(path) if path is not None else _env_path()

    if config_path is not None:
        if config_path.exists():
            data = _read_yaml(config_path)
        elif explicit:
            raise ValidationError(f"Config file not found: {config_path}", "load_config")

    home = os.environ.get(HOME_ENV_VAR)
    if home:
        data.setdefault("store", {})
        if not isinstance(data["store"], dict):
            raise ValidationError("'store' section must be a mapping", "load_config")
        data["store"]["base_dir"] = home

    try:
        return BridgeConfig.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid configuration: {exc}", "load_config") from exc


def _env_path() -> Path | None:
    raw = os.environ.get(CONFIG_ENV_VAR)
    return Path(raw) if raw else None


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValidationError(f"Malformed YAML in {config_path}: {exc}", "load_config") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValidationError(f"Config file {config_path} must contain a mapping", "load_config")
    return loaded

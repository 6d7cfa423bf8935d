"""Unit tests for agent_context_bridge.config."""
from __future__ import annotations

from pathlib import Path

import pytest

from agent_context_bridge.config import (
    CONFIG_ENV_VAR,
    HOME_ENV_VAR,
    BridgeConfig,
    StoreConfig,
    load_config,
)
from agent_context_bridge.errors import ValidationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(HOME_ENV_VAR, raising=False)


class TestDefaults:
    def test_bridge_defaults(self) -> None:
        config = BridgeConfig()
        assert config.store.session_timeout_minutes == 30.0
        assert config.store.max_active_sessions == 5
        assert config.qdrant.enabled is True
        assert config.qdrant.collections == ["lessons-learned", "development-docs"]
        assert config.messages.enabled is False
        assert config.search.target_backends == ("qdrant",)
        assert config.search.decay_factor == 0.1

    def test_store_layout(self, tmp_path: Path) -> None:
        store = StoreConfig(base_dir=tmp_path)
        assert store.context_cache_dir == tmp_path / "context_cache"
        assert store.projects_dir == tmp_path / "projects"
        assert store.archive_dir == tmp_path / "archive"
        assert store.admin_sync_dir == tmp_path / "admin_sync"

    def test_load_without_file_uses_defaults(self) -> None:
        assert load_config() == BridgeConfig()


class TestLoadConfig:
    def test_yaml_overrides(self, tmp_path: Path) -> None:
        config_file = tmp_path / "bridge.yaml"
        config_file.write_text(
            "store:\n"
            f"  base_dir: {tmp_path}\n"
            "  session_timeout_minutes: 45\n"
            "qdrant:\n"
            "  enabled: false\n"
            "search:\n"
            "  target_backends: [sessions, qdrant]\n"
            "  limit: 3\n",
            encoding="utf-8",
        )
        config = load_config(config_file)
        assert config.store.base_dir == tmp_path
        assert config.store.session_timeout_minutes == 45
        assert config.qdrant.enabled is False
        assert config.search.target_backends == ("sessions", "qdrant")
        assert config.search.limit == 3

    def test_path_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "bridge.yaml"
        config_file.write_text("store:\n  max_active_sessions: 9\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file))
        assert load_config().store.max_active_sessions == 9

    def test_missing_environment_file_falls_back(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "absent.yaml"))
        assert load_config() == BridgeConfig()

    def test_home_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(HOME_ENV_VAR, str(tmp_path / "home"))
        assert load_config().store.base_dir == tmp_path / "home"

    def test_empty_file_is_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("", encoding="utf-8")
        assert load_config(config_file) == BridgeConfig()

    def test_explicit_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ValidationError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_non_mapping_document(self, tmp_path: Path) -> None:
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValidationError, match="mapping"):
            load_config(config_file)

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("store: [unclosed\n", encoding="utf-8")
        with pytest.raises(ValidationError, match="Malformed YAML"):
            load_config(config_file)

    @pytest.mark.parametrize(
        "body",
        [
            "store:\n  session_timeout_minutes: 0\n",
            "search:\n  priority_boost: 0.5\n",
            "messages:\n  table: 'bad table'\n",
        ],
    )
    def test_invalid_values(self, tmp_path: Path, body: str) -> None:
        config_file = tmp_path / "invalid.yaml"
        config_file.write_text(body, encoding="utf-8")
        with pytest.raises(ValidationError, match="Invalid configuration"):
            load_config(config_file)

"""Unit tests for agent_context_bridge.session.project_state."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from agent_context_bridge.errors import SessionNotFoundError, StorageError, ValidationError
from agent_context_bridge.session.project_state import STATE_VERSION, ProjectStateTracker
from tests.conftest import T0, FakeClock


@pytest.fixture()
def tracker(tmp_path: Path, clock: FakeClock) -> ProjectStateTracker:
    return ProjectStateTracker(tmp_path, max_state_history=3, clock=clock)


class TestInitSystem:
    @pytest.mark.asyncio
    async def test_creates_directories(self, tracker: ProjectStateTracker, tmp_path: Path) -> None:
        result = await tracker.init_system()
        assert (tmp_path / "projects").is_dir()
        assert (tmp_path / "admin_sync").is_dir()
        assert result["projectsDir"] == str(tmp_path / "projects")

    @pytest.mark.asyncio
    async def test_idempotent(self, tracker: ProjectStateTracker) -> None:
        first = await tracker.init_system()
        second = await tracker.init_system()
        assert first == second


class TestProjectState:
    @pytest.mark.asyncio
    async def test_create_and_read(self, tracker: ProjectStateTracker) -> None:
        await tracker.create_project_state("shop", {"phase": "design"}, {"owner": "ops"})
        document = await tracker.get_current_state("shop")
        assert document["state"] == {"phase": "design"}
        assert document["context"] == {"owner": "ops"}
        assert document["created"] == T0.isoformat()
        assert document["version"] == STATE_VERSION
        assert document["history"] == []

    @pytest.mark.asyncio
    async def test_update_merges_and_records_history(
        self, tracker: ProjectStateTracker, clock: FakeClock
    ) -> None:
        await tracker.create_project_state("shop", {"phase": "design", "owner": "ops"})
        clock.advance(minutes=5)
        document = await tracker.update_state("shop", {"phase": "build"})
        assert document["state"] == {"phase": "build", "owner": "ops"}
        assert document["lastUpdated"] == clock.current.isoformat()
        assert document["history"] == [
            {"state": {"phase": "design", "owner": "ops"}, "lastUpdated": T0.isoformat()}
        ]

    @pytest.mark.asyncio
    async def test_history_is_capped(self, tracker: ProjectStateTracker) -> None:
        await tracker.create_project_state("shop", {"n": 0})
        for n in range(1, 6):
            await tracker.update_state("shop", {"n": n})
        document = await tracker.get_current_state("shop")
        assert [entry["state"]["n"] for entry in document["history"]] == [2, 3, 4]
        assert document["state"] == {"n": 5}

    @pytest.mark.asyncio
    async def test_update_unknown_project(self, tracker: ProjectStateTracker) -> None:
        with pytest.raises(SessionNotFoundError, match="Project"):
            await tracker.update_state("ghost", {"x": 1})

    @pytest.mark.asyncio
    async def test_read_unknown_project(self, tracker: ProjectStateTracker) -> None:
        with pytest.raises(SessionNotFoundError):
            await tracker.get_current_state("ghost")

    @pytest.mark.asyncio
    async def test_corrupt_state_is_storage_error(self, tracker: ProjectStateTracker, tmp_path: Path) -> None:
        project_dir = tmp_path / "projects" / "shop"
        project_dir.mkdir(parents=True)
        (project_dir / "current_state.json").write_text("[1, 2", encoding="utf-8")
        with pytest.raises(StorageError):
            await tracker.get_current_state("shop")

    @pytest.mark.asyncio
    async def test_invalid_project_name(self, tracker: ProjectStateTracker) -> None:
        with pytest.raises(ValidationError):
            await tracker.create_project_state("../escape")

    @pytest.mark.asyncio
    async def test_state_must_be_object(self, tracker: ProjectStateTracker) -> None:
        with pytest.raises(ValidationError):
            await tracker.create_project_state("shop", "not a dict")  # type: ignore[arg-type]


class TestCheckpoints:
    @pytest.mark.asyncio
    async def test_checkpoint_snapshots_state(
        self, tracker: ProjectStateTracker, tmp_path: Path
    ) -> None:
        await tracker.create_project_state("shop", {"phase": "design"})
        result = await tracker.create_checkpoint("shop", {"note": "before refactor"})
        assert result["checkpointId"].startswith("checkpoint_")
        stored = json.loads(Path(result["file"]).read_text(encoding="utf-8"))
        assert stored["state"] == {"phase": "design"}
        assert stored["context"] == {"note": "before refactor"}
        assert stored["createdAt"] == T0.isoformat()

    @pytest.mark.asyncio
    async def test_checkpoint_without_state(self, tracker: ProjectStateTracker) -> None:
        with pytest.raises(SessionNotFoundError):
            await tracker.create_checkpoint("ghost")

    @pytest.mark.asyncio
    async def test_list_newest_first_and_capped(
        self, tracker: ProjectStateTracker, clock: FakeClock
    ) -> None:
        await tracker.create_project_state("shop")
        created = []
        for _ in range(5):
            clock.advance(minutes=1)
            created.append((await tracker.create_checkpoint("shop"))["checkpointId"])

        checkpoints, total = await tracker.list_checkpoints("shop")

        assert total == 5
        assert [info.checkpoint_id for info in checkpoints] == list(reversed(created))[:3]
        first = checkpoints[0].to_dict()
        assert set(first) == {"checkpointId", "createdAt", "size", "file"}
        assert first["file"] == f"{created[-1]}.json"

    @pytest.mark.asyncio
    async def test_unreadable_checkpoint_is_skipped(
        self, tracker: ProjectStateTracker, tmp_path: Path
    ) -> None:
        await tracker.create_project_state("shop")
        await tracker.create_checkpoint("shop")
        (tmp_path / "projects" / "shop" / "checkpoint_broken.json").write_text("{", encoding="utf-8")
        checkpoints, total = await tracker.list_checkpoints("shop")
        assert total == 1
        assert len(checkpoints) == 1

    @pytest.mark.asyncio
    async def test_list_for_unknown_project(self, tracker: ProjectStateTracker) -> None:
        with pytest.raises(SessionNotFoundError):
            await tracker.list_checkpoints("ghost")

    @pytest.mark.asyncio
    async def test_state_file_is_not_a_checkpoint(self, tracker: ProjectStateTracker) -> None:
        await tracker.create_project_state("shop")
        checkpoints, total = await tracker.list_checkpoints("shop")
        assert checkpoints == []
        assert total == 0

"""Unit tests for the backlog.yaml registry."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from devbrain.core.backlog import BacklogStore
from devbrain.core.errors import (
    BacklogParseError,
    TaskAlreadyExistsError,
    TaskError,
    TaskNotFoundError,
    TaskValidationError,
)
from devbrain.core.models import Priority, TaskEntry, TaskStatus, TaskType


def _entry(task_id: str, **fields) -> TaskEntry:
    fields.setdefault("title", f"title {task_id}")
    return TaskEntry(id=task_id, **fields)


class TestPersistence:
    """Load/save behaviour."""

    def test_missing_file_is_empty_registry(self, tmp_path: Path) -> None:
        store = BacklogStore(tmp_path)

        store.load()

        assert store.get_all_tasks() == []

    def test_round_trip_preserves_fields(self, tmp_path: Path) -> None:
        store = BacklogStore(tmp_path)
        store.load()
        store.add_task(
            _entry(
                "TASK-00001",
                type=TaskType.BUG,
                priority=Priority.P0,
                owner="sam",
                repo="github.com/org/repo",
                branch="fix/🐛 crash",
                tags=["urgent"],
                blocked_by=["TASK-00002"],
                source="slack",
            )
        )
        store.save()

        reloaded = BacklogStore(tmp_path)
        reloaded.load()
        entry = reloaded.get_task("TASK-00001")

        assert entry.type == TaskType.BUG
        assert entry.priority == Priority.P0
        assert entry.owner == "sam"
        assert entry.branch == "fix/🐛 crash"
        assert entry.tags == ["urgent"]
        assert entry.blocked_by == ["TASK-00002"]
        assert entry.source == "slack"

    def test_document_layout(self, tmp_path: Path) -> None:
        store = BacklogStore(tmp_path)
        store.load()
        store.add_task(_entry("TASK-00002"))
        store.add_task(_entry("TASK-00001"))
        store.save()

        raw = yaml.safe_load((tmp_path / "backlog.yaml").read_text(encoding="utf-8"))

        assert raw["version"] == "1.0"
        assert list(raw["tasks"]) == ["TASK-00001", "TASK-00002"]
        assert raw["tasks"]["TASK-00001"]["status"] == "backlog"
        assert "pre_archive_status" not in raw["tasks"]["TASK-00001"]

    def test_malformed_yaml_raises_parse_error(self, tmp_path: Path) -> None:
        (tmp_path / "backlog.yaml").write_text("tasks: [unclosed\n", encoding="utf-8")
        store = BacklogStore(tmp_path)

        with pytest.raises(BacklogParseError) as exc_info:
            store.load()

        assert "yaml" in str(exc_info.value).lower()
        assert store.get_all_tasks() == []

    def test_invalid_entry_raises_parse_error(self, tmp_path: Path) -> None:
        (tmp_path / "backlog.yaml").write_text(
            "version: '1.0'\ntasks:\n  TASK-00001:\n    status: sleeping\n", encoding="utf-8"
        )

        with pytest.raises(BacklogParseError):
            BacklogStore(tmp_path).load()

    def test_save_refused_after_failed_load(self, tmp_path: Path) -> None:
        path = tmp_path / "backlog.yaml"
        path.write_text("tasks: [unclosed\n", encoding="utf-8")
        store = BacklogStore(tmp_path)
        with pytest.raises(BacklogParseError):
            store.load()

        with pytest.raises(TaskError):
            store.save()
        assert path.read_text(encoding="utf-8") == "tasks: [unclosed\n"

    def test_unknown_keys_are_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "backlog.yaml").write_text(
            "version: '1.0'\ntasks:\n  TASK-00001:\n    title: t\n    legacy_field: 1\n", encoding="utf-8"
        )
        store = BacklogStore(tmp_path)

        store.load()

        assert store.get_task("TASK-00001").title == "t"


class TestMutation:
    """add_task / update_task."""

    def test_add_duplicate_raises(self, tmp_path: Path) -> None:
        store = BacklogStore(tmp_path)
        store.add_task(_entry("TASK-00001"))

        with pytest.raises(TaskAlreadyExistsError):
            store.add_task(_entry("TASK-00001"))

    def test_add_empty_id_raises(self, tmp_path: Path) -> None:
        with pytest.raises(TaskAlreadyExistsError):
            BacklogStore(tmp_path).add_task(_entry(""))

    def test_failed_add_leaves_file_untouched(self, tmp_path: Path) -> None:
        store = BacklogStore(tmp_path)
        store.load()
        store.add_task(_entry("TASK-00001"))
        store.save()
        before = (tmp_path / "backlog.yaml").read_bytes()

        with pytest.raises(TaskAlreadyExistsError):
            store.add_task(_entry("TASK-00001", title="other"))
        with pytest.raises(TaskAlreadyExistsError):
            store.add_task(_entry(""))

        assert (tmp_path / "backlog.yaml").read_bytes() == before
        assert store.get_task("TASK-00001").title == "title TASK-00001"

    def test_update_merges_changes(self, tmp_path: Path) -> None:
        store = BacklogStore(tmp_path)
        store.add_task(_entry("TASK-00001", owner="sam"))

        updated = store.update_task("TASK-00001", status=TaskStatus.REVIEW)

        assert updated.status == TaskStatus.REVIEW
        assert updated.owner == "sam"
        assert store.get_task("TASK-00001").status == TaskStatus.REVIEW

    def test_update_missing_raises(self, tmp_path: Path) -> None:
        with pytest.raises(TaskNotFoundError):
            BacklogStore(tmp_path).update_task("TASK-00404", status=TaskStatus.DONE)

    def test_update_rejects_unknown_field_and_id_change(self, tmp_path: Path) -> None:
        store = BacklogStore(tmp_path)
        store.add_task(_entry("TASK-00001"))

        with pytest.raises(TaskValidationError):
            store.update_task("TASK-00001", colour="red")
        with pytest.raises(TaskValidationError):
            store.update_task("TASK-00001", id="TASK-00002")

    def test_update_rejects_invalid_value(self, tmp_path: Path) -> None:
        store = BacklogStore(tmp_path)
        store.add_task(_entry("TASK-00001"))

        with pytest.raises(TaskValidationError):
            store.update_task("TASK-00001", priority="P9")


class TestQueries:
    """get/filter."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> BacklogStore:
        store = BacklogStore(tmp_path)
        store.add_task(_entry("A", status=TaskStatus.IN_PROGRESS, priority=Priority.P0, owner="sam", tags=["x", "y"]))
        store.add_task(_entry("B", status=TaskStatus.BACKLOG, priority=Priority.P0, owner="kim", tags=["x"]))
        store.add_task(_entry("C", status=TaskStatus.IN_PROGRESS, priority=Priority.P2, owner="sam", repo="r"))
        return store

    def test_get_task_normalizes_id(self, tmp_path: Path) -> None:
        store = BacklogStore(tmp_path)
        store.add_task(_entry("github.com/org/repo/x"))

        assert store.has_task("github.com\\org\\repo\\x/")
        assert store.get_task("github.com/org/repo/x/").id == "github.com/org/repo/x"

    def test_get_missing_raises(self, store: BacklogStore) -> None:
        with pytest.raises(TaskNotFoundError):
            store.get_task("Z")

    def test_filters_are_conjunctive(self, store: BacklogStore) -> None:
        result = store.filter_tasks(status=TaskStatus.IN_PROGRESS, owner="sam")

        assert [t.id for t in result] == ["A", "C"]
        assert [t.id for t in store.filter_tasks(status="in_progress", priority="P0")] == ["A"]

    def test_filter_accepts_multiple_values(self, store: BacklogStore) -> None:
        result = store.filter_tasks(status=[TaskStatus.BACKLOG, TaskStatus.IN_PROGRESS], repo="r")

        assert [t.id for t in result] == ["C"]

    def test_filter_by_tags_requires_all(self, store: BacklogStore) -> None:
        assert [t.id for t in store.filter_tasks(tags=["x"])] == ["A", "B"]
        assert [t.id for t in store.filter_tasks(tags=["x", "y"])] == ["A"]

    def test_no_filters_returns_all(self, store: BacklogStore) -> None:
        assert [t.id for t in store.filter_tasks()] == ["A", "B", "C"]

    def test_invalid_filter_value_raises(self, store: BacklogStore) -> None:
        with pytest.raises(TaskValidationError):
            store.filter_tasks(status="sleeping")

"""Unit tests for .taskconfig loading and TaskManager wiring."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from devbrain.app import build_task_manager
from devbrain.config import load_workspace_config, resolve_base_path
from devbrain.config.loader import expand_env_vars
from devbrain.core.errors import TaskValidationError
from devbrain.core.models import Priority, TaskType
from devbrain.logging_config import setup_logging


def _write_config(base: Path, body: str) -> None:
    (base / ".taskconfig").write_text(body, encoding="utf-8")


class TestLoadWorkspaceConfig:
    """load_workspace_config."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_workspace_config(tmp_path)

        assert config.task_id.prefix == "TASK"
        assert config.task_id.pad_width == 5
        assert config.defaults.priority == Priority.P2
        assert config.templates == {}

    def test_values_are_parsed(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            "task_id:\n  prefix: DEV\n  pad_width: 3\ndefaults:\n  priority: P1\n  owner: sam\n"
            "templates:\n  bug: my-bug.md\n",
        )

        config = load_workspace_config(tmp_path)

        assert config.task_id.prefix == "DEV"
        assert config.task_id.pad_width == 3
        assert config.defaults.priority == Priority.P1
        assert config.defaults.owner == "sam"
        assert config.templates == {TaskType.BUG: "my-bug.md"}

    @pytest.mark.parametrize(
        "body",
        [
            "task_id:\n  prefix: dev\n",
            "task_id:\n  prefix: ABCDEFGHIJK\n",
            "task_id:\n  pad_width: 11\n",
            "defaults:\n  priority: P5\n",
            "templates:\n  chore: x.md\n",
        ],
    )
    def test_invalid_values_raise(self, tmp_path: Path, body: str) -> None:
        _write_config(tmp_path, body)

        with pytest.raises(TaskValidationError):
            load_workspace_config(tmp_path)

    def test_unparsable_file_falls_back_to_defaults(self, tmp_path: Path, caplog) -> None:
        _write_config(tmp_path, "task_id: [oops\n")

        with caplog.at_level(logging.WARNING, logger="devbrain"):
            config = load_workspace_config(tmp_path)

        assert config.task_id.prefix == "TASK"
        assert "Failed to read config file" in caplog.text

    def test_env_vars_expanded_from_dotenv(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.delenv("DEVBRAIN_TEST_OWNER", raising=False)
        (tmp_path / ".env").write_text("DEVBRAIN_TEST_OWNER=kim\n", encoding="utf-8")
        _write_config(tmp_path, "defaults:\n  owner: ${DEVBRAIN_TEST_OWNER}\n")

        try:
            config = load_workspace_config(tmp_path)
        finally:
            monkeypatch.delenv("DEVBRAIN_TEST_OWNER", raising=False)

        assert config.defaults.owner == "kim"


def test_expand_env_vars_leaves_unknown(monkeypatch) -> None:
    monkeypatch.setenv("KNOWN", "yes")
    monkeypatch.delenv("UNKNOWN_DEVBRAIN_VAR", raising=False)

    result = expand_env_vars({"a": ["${KNOWN}", "${UNKNOWN_DEVBRAIN_VAR}"], "b": 3})

    assert result == {"a": ["yes", "${UNKNOWN_DEVBRAIN_VAR}"], "b": 3}


def test_resolve_base_path_prefers_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DEVBRAIN_HOME", str(tmp_path))

    assert resolve_base_path() == tmp_path
    assert resolve_base_path(tmp_path / "other") == tmp_path / "other"


def test_build_task_manager_applies_config(tmp_path: Path) -> None:
    (tmp_path / "bug-notes.md").write_text("# Our bug notes\n", encoding="utf-8")
    _write_config(
        tmp_path,
        "task_id:\n  prefix: OPS\n  pad_width: 2\ndefaults:\n  owner: sam\ntemplates:\n  bug: bug-notes.md\n",
    )
    manager = build_task_manager(tmp_path)

    task = manager.create_task("bug", "fix/x")

    assert task.id == "OPS-01"
    assert task.owner == "sam"
    notes = (tmp_path / "tickets" / "OPS-01" / "notes.md").read_text(encoding="utf-8")
    assert notes == "# Our bug notes\n"


def test_build_task_manager_missing_template_raises(tmp_path: Path) -> None:
    _write_config(tmp_path, "templates:\n  feat: nope.md\n")

    with pytest.raises(TaskValidationError):
        build_task_manager(tmp_path)


def test_setup_logging_honours_env(monkeypatch) -> None:
    monkeypatch.setenv("DEVBRAIN_LOG_LEVEL", "DEBUG")
    logger = logging.getLogger("devbrain")
    original_level = logger.level
    original_handlers = list(logger.handlers)
    try:
        setup_logging()
        setup_logging()

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == len(original_handlers) + 1
    finally:
        logger.setLevel(original_level)
        logger.handlers = original_handlers

"""Shared fixtures for task core tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock

import pytest

from devbrain.core.backlog import BacklogStore
from devbrain.core.bootstrap import BootstrapSystem
from devbrain.core.task_id import TaskIDGenerator
from devbrain.core.task_manager import TaskManager
from devbrain.core.templates import TemplateManager


@pytest.fixture
def make_manager(tmp_path: Path) -> Callable[..., TaskManager]:
    """Build a TaskManager over tmp_path with optional collaborators."""

    def _make(*, creator=None, remover=None, context_store=None, **defaults) -> TaskManager:
        bootstrap = BootstrapSystem(tmp_path, TaskIDGenerator(tmp_path), TemplateManager(tmp_path), creator)
        return TaskManager(
            tmp_path,
            bootstrap,
            BacklogStore(tmp_path),
            context_store=context_store,
            worktree_remover=remover,
            **defaults,
        )

    return _make


@pytest.fixture
def manager(make_manager: Callable[..., TaskManager]) -> TaskManager:
    """TaskManager with no worktree integration."""
    return make_manager()


@pytest.fixture
def worktree_creator(tmp_path: Path) -> MagicMock:
    creator = MagicMock()
    creator.create_worktree.side_effect = lambda repo, branch, task_id, base="": str(tmp_path / "work" / task_id)
    return creator

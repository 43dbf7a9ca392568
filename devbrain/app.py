"""Wire a TaskManager for a workspace from its .taskconfig."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from devbrain.config import load_workspace_config, resolve_base_path
from devbrain.core.backlog import BacklogStore
from devbrain.core.bootstrap import BootstrapSystem
from devbrain.core.context_store import FileContextStore
from devbrain.core.task_id import TaskIDGenerator
from devbrain.core.task_manager import TaskManager
from devbrain.core.templates import TemplateManager
from devbrain.integration.worktree import GitWorktreeManager

logger = logging.getLogger(__name__)


def build_task_manager(base_path: Optional[Path] = None) -> TaskManager:
    """Build a TaskManager rooted at base_path (or $DEVBRAIN_HOME, or the cwd).

    Raises:
        TaskValidationError: .taskconfig holds invalid values or names a missing template.
    """
    base = resolve_base_path(base_path)
    config = load_workspace_config(base)

    templates = TemplateManager(base)
    for task_type, template_path in config.templates.items():
        templates.register_template(task_type, template_path)

    worktrees = GitWorktreeManager(base)
    bootstrap = BootstrapSystem(
        base,
        TaskIDGenerator(base, prefix=config.task_id.prefix, pad_width=config.task_id.pad_width),
        templates,
        worktree_creator=worktrees,
    )
    logger.debug("Task manager ready at %s (prefix=%s)", base, config.task_id.prefix)
    return TaskManager(
        base,
        bootstrap,
        BacklogStore(base),
        context_store=FileContextStore(base),
        worktree_remover=worktrees,
        default_priority=config.defaults.priority,
        default_owner=config.defaults.owner,
    )

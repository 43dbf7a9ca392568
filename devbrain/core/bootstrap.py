"""Materialize new tickets: ID, folder scaffold and optional worktree."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import yaml

from devbrain.core.errors import TaskAlreadyExistsError
from devbrain.core.models import BootstrapConfig, BootstrapResult, TaskEntry, TaskStatus, utc_now
from devbrain.core.protocols import WorktreeCreator
from devbrain.core.task_id import TaskIDGenerator, normalize_task_id, validate_path_task_id
from devbrain.core.templates import TemplateManager
from devbrain.core.ticket_path import active_ticket_dir, archived_ticket_dir

logger = logging.getLogger(__name__)

STATUS_FILENAME = "status.yaml"
COMMUNICATIONS_DIR = "communications"


def write_status_file(ticket_dir: Path, entry: TaskEntry) -> None:
    """Write the task entry to <ticket_dir>/status.yaml."""
    content = yaml.safe_dump(entry.to_yaml_dict(), default_flow_style=False, allow_unicode=True, sort_keys=False)
    (ticket_dir / STATUS_FILENAME).write_text(content, encoding="utf-8")


class BootstrapSystem:
    """Creates the on-disk record of a new task.

    Steps run in order: allocate an ID, scaffold ``tickets/<id>/``, then
    create a worktree when a repository was given. A failed worktree step
    does not undo the scaffold; the error is returned in the result instead.
    """

    def __init__(
        self,
        base_path: str | Path,
        id_generator: TaskIDGenerator,
        templates: TemplateManager,
        worktree_creator: WorktreeCreator | None = None,
    ) -> None:
        self._base_path = Path(base_path)
        self._id_generator = id_generator
        self._templates = templates
        self._worktree_creator = worktree_creator

    def allocate_id(self, requested: str | None = None, registered: Callable[[str], bool] | None = None) -> str:
        """Use the caller's hierarchical ID when given, otherwise the next sequential one.

        ``registered`` reports IDs already in the backlog; a clash raises instead of
        silently reusing or skipping an ID.
        """
        if requested is not None:
            task_id = normalize_task_id(requested)
            validate_path_task_id(task_id)
        else:
            task_id = self._id_generator.next_id()

        if registered is not None and registered(task_id):
            raise TaskAlreadyExistsError(task_id, f"task {task_id} is already registered in the backlog")
        for existing in (active_ticket_dir(self._base_path, task_id), archived_ticket_dir(self._base_path, task_id)):
            if existing.exists():
                raise TaskAlreadyExistsError(task_id, f"ticket for {task_id} already exists at {existing}")
        return task_id

    def create_ticket(
        self, config: BootstrapConfig, registered: Callable[[str], bool] | None = None
    ) -> BootstrapResult:
        task_id = self.allocate_id(config.task_id, registered)
        ticket_dir = active_ticket_dir(self._base_path, task_id)

        (ticket_dir / COMMUNICATIONS_DIR).mkdir(parents=True)
        self._templates.apply_template(ticket_dir, config.task_type, task_id=task_id, title=config.title)

        now = utc_now()
        entry = TaskEntry(
            id=task_id,
            title=config.title,
            type=config.task_type,
            status=TaskStatus.BACKLOG,
            repo=config.repo_path,
            branch=config.branch_name,
            ticket_path=str(ticket_dir),
            created=now,
            updated=now,
        )
        write_status_file(ticket_dir, entry)
        logger.info("Created ticket %s at %s", task_id, ticket_dir)

        if not config.repo_path or not config.branch_name or self._worktree_creator is None:
            return BootstrapResult(task_id=task_id, ticket_path=str(ticket_dir))

        try:
            worktree_path = self._worktree_creator.create_worktree(
                config.repo_path, config.branch_name, task_id, config.base_branch
            )
        except Exception as exc:
            logger.warning("Worktree creation failed for %s (repo=%s): %s", task_id, config.repo_path, exc)
            return BootstrapResult(task_id=task_id, ticket_path=str(ticket_dir), worktree_error=exc)

        logger.info("Created worktree for %s at %s", task_id, worktree_path)
        return BootstrapResult(task_id=task_id, ticket_path=str(ticket_dir), worktree_path=worktree_path)

"""Error taxonomy for the task lifecycle core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devbrain.core.models import TaskEntry


class TaskError(Exception):
    """Base class for task lifecycle failures."""


class TaskNotFoundError(TaskError):
    """Raised when an operation references a task ID that is not registered."""

    def __init__(self, task_id: str, message: str | None = None) -> None:
        self.task_id = task_id
        super().__init__(message or f"task {task_id} not found")


class TaskAlreadyExistsError(TaskError):
    """Raised when adding a task whose ID is empty or already taken."""

    def __init__(self, task_id: str, message: str | None = None) -> None:
        self.task_id = task_id
        super().__init__(message or f"task {task_id} already exists")


class TaskAlreadyArchivedError(TaskError):
    """Raised when archiving (or resuming) a task that is already archived."""

    def __init__(self, task_id: str, message: str | None = None) -> None:
        self.task_id = task_id
        super().__init__(message or f"task {task_id} is already archived")


class TaskNotArchivedError(TaskError):
    """Raised when unarchiving a task that is not archived."""

    def __init__(self, task_id: str, status: str) -> None:
        self.task_id = task_id
        self.status = status
        super().__init__(f"task {task_id} is not archived (status: {status})")


class BacklogParseError(TaskError):
    """Raised when backlog.yaml cannot be parsed."""


class TaskValidationError(TaskError, ValueError):
    """Raised for invalid values: unknown status/priority codes, bad config, bad IDs."""


class TaskIDError(TaskError):
    """Raised when the persisted ID counter cannot be read or written."""


class TaskOperationError(TaskError):
    """Raised when a filesystem step of a lifecycle operation fails."""


class TaskWorktreeError(TaskError):
    """Raised after a task was registered but its worktree could not be created.

    The task exists (ticket folder and backlog entry); ``task`` holds the
    registered entry, without a worktree path.
    """

    def __init__(self, task: TaskEntry, message: str) -> None:
        self.task = task
        super().__init__(message)

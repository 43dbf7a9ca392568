"""Task lifecycle core: registry, ID allocation, ticket bootstrap and state machine."""

from devbrain.core.backlog import BacklogStore
from devbrain.core.bootstrap import BootstrapSystem
from devbrain.core.errors import (
    BacklogParseError,
    TaskAlreadyArchivedError,
    TaskAlreadyExistsError,
    TaskError,
    TaskIDError,
    TaskNotArchivedError,
    TaskNotFoundError,
    TaskOperationError,
    TaskValidationError,
    TaskWorktreeError,
)
from devbrain.core.models import Priority, TaskEntry, TaskStatus, TaskType
from devbrain.core.task_id import TaskIDGenerator
from devbrain.core.task_manager import TaskManager
from devbrain.core.templates import TemplateManager

__all__ = [
    "BacklogParseError",
    "BacklogStore",
    "BootstrapSystem",
    "Priority",
    "TaskAlreadyArchivedError",
    "TaskAlreadyExistsError",
    "TaskEntry",
    "TaskError",
    "TaskIDError",
    "TaskIDGenerator",
    "TaskManager",
    "TaskNotArchivedError",
    "TaskNotFoundError",
    "TaskOperationError",
    "TaskStatus",
    "TaskType",
    "TaskValidationError",
    "TaskWorktreeError",
    "TemplateManager",
]

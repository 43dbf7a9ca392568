"""Pydantic models for task entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from devbrain.core.errors import TaskValidationError


class TaskType(str, Enum):
    FEAT = "feat"
    BUG = "bug"
    SPIKE = "spike"
    REFACTOR = "refactor"


class TaskStatus(str, Enum):
    BACKLOG = "backlog"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    REVIEW = "review"
    DONE = "done"
    ARCHIVED = "archived"


class Priority(str, Enum):
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


# Highest first; reorder_priorities hands these out by position.
PRIORITY_ORDER: tuple[Priority, ...] = (Priority.P0, Priority.P1, Priority.P2, Priority.P3)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce(enum_cls: type[Enum], value: object, label: str) -> Enum:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(str(member.value) for member in enum_cls)  # type: ignore[attr-defined]
        raise TaskValidationError(f"invalid {label} {value!r}, must be one of: {allowed}") from exc


def parse_task_type(value: TaskType | str) -> TaskType:
    return _coerce(TaskType, value, "task type")  # type: ignore[return-value]


def parse_status(value: TaskStatus | str) -> TaskStatus:
    return _coerce(TaskStatus, value, "status")  # type: ignore[return-value]


def parse_priority(value: Priority | str) -> Priority:
    return _coerce(Priority, value, "priority")  # type: ignore[return-value]


class TaskEntry(BaseModel):
    """One task as recorded in backlog.yaml and mirrored to status.yaml."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: str
    title: str = ""
    type: TaskType = TaskType.FEAT
    status: TaskStatus = TaskStatus.BACKLOG
    priority: Priority = Priority.P2
    owner: str = ""
    repo: str = ""
    branch: str = ""
    worktree_path: str = ""
    ticket_path: str = ""
    created: datetime = Field(default_factory=utc_now)
    updated: datetime = Field(default_factory=utc_now)
    tags: list[str] = Field(default_factory=list)
    blocked_by: list[str] = Field(default_factory=list)
    related: list[str] = Field(default_factory=list)
    source: str = ""
    # Status held before archiving; only set while status is archived.
    pre_archive_status: Optional[TaskStatus] = None

    def to_yaml_dict(self) -> dict[str, object]:
        """Return a plain dict suitable for yaml.safe_dump."""
        data = self.model_dump(mode="json")
        if data.get("pre_archive_status") is None:
            data.pop("pre_archive_status", None)
        return data


@dataclass(frozen=True)
class BootstrapConfig:
    """Parameters for materializing a new ticket."""

    task_type: TaskType
    title: str = ""
    branch_name: str = ""
    repo_path: str = ""
    base_branch: str = ""
    task_id: str | None = None


@dataclass(frozen=True)
class BootstrapResult:
    """Outcome of BootstrapSystem.create_ticket.

    ``worktree_error`` is set when the ticket was created but the worktree step
    failed; ``worktree_path`` is then None.
    """

    task_id: str
    ticket_path: str
    worktree_path: str | None = None
    worktree_error: Exception | None = None

"""YAML-backed task registry (backlog.yaml)."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import ValidationError

from devbrain.core.errors import (
    BacklogParseError,
    TaskAlreadyExistsError,
    TaskError,
    TaskNotFoundError,
    TaskValidationError,
)
from devbrain.core.file_io import atomic_write_text
from devbrain.core.models import Priority, TaskEntry, TaskStatus
from devbrain.core.task_id import normalize_task_id

logger = logging.getLogger(__name__)

BACKLOG_FILENAME = "backlog.yaml"
BACKLOG_VERSION = "1.0"

_E = TypeVar("_E", TaskStatus, Priority)


def _as_set(value: _E | str | Iterable[_E | str] | None, enum_cls: type[_E]) -> set[_E] | None:
    if value is None:
        return None
    if isinstance(value, (str, enum_cls)):
        return {enum_cls(value)}
    return {enum_cls(item) for item in value}


class BacklogStore:
    """Registry of every task, active and archived, keyed by task ID.

    The in-memory view is only as fresh as the last ``load()``. ``save()``
    rewrites the whole document, so edits made to the file by another process
    between a load and the next save are lost (last writer wins).
    """

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)
        self._tasks: dict[str, TaskEntry] = {}
        self._load_failed = False

    @property
    def path(self) -> Path:
        return self._base_path / BACKLOG_FILENAME

    # ---- persistence ----

    def load(self) -> None:
        """Replace the in-memory registry with the file contents.

        A missing file is an empty registry. On malformed input the store is
        left empty and refuses to save until a later load succeeds.
        """
        path = self.path
        self._tasks = {}
        self._load_failed = True
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._load_failed = False
            return
        except OSError as exc:
            raise TaskError(f"loading backlog {path}: {exc}") from exc

        try:
            raw = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise BacklogParseError(f"loading backlog {path}: parsing YAML: {exc}") from exc

        self._tasks = self._parse_document(raw, path)
        self._load_failed = False
        logger.debug("Loaded %d tasks from %s", len(self._tasks), path)

    @staticmethod
    def _parse_document(raw: object, path: Path) -> dict[str, TaskEntry]:
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise BacklogParseError(f"loading backlog {path}: YAML document must be a mapping")
        raw_tasks = raw.get("tasks")
        if raw_tasks is None:
            return {}
        if not isinstance(raw_tasks, dict):
            raise BacklogParseError(f"loading backlog {path}: YAML field 'tasks' must be a mapping")

        tasks: dict[str, TaskEntry] = {}
        for key, item in raw_tasks.items():
            if not isinstance(item, dict):
                raise BacklogParseError(f"loading backlog {path}: YAML entry {key!r} must be a mapping")
            payload = {"id": str(key), **item}
            try:
                entry = TaskEntry.model_validate(payload)
            except ValidationError as exc:
                raise BacklogParseError(f"loading backlog {path}: invalid YAML entry {key!r}: {exc}") from exc
            tasks[normalize_task_id(entry.id)] = entry
        return tasks

    def save(self) -> None:
        """Atomically rewrite backlog.yaml from the in-memory registry."""
        path = self.path
        if self._load_failed:
            raise TaskError(f"refusing to save backlog {path}: last load failed, fix the file first")
        document = {
            "version": BACKLOG_VERSION,
            "tasks": {task_id: entry.to_yaml_dict() for task_id, entry in sorted(self._tasks.items())},
        }
        body = yaml.safe_dump(document, default_flow_style=False, allow_unicode=True, sort_keys=False)
        try:
            atomic_write_text(path, body)
        except OSError as exc:
            raise TaskError(f"saving backlog {path}: {exc}") from exc
        logger.debug("Saved %d tasks to %s", len(self._tasks), path)

    # ---- mutation ----

    def add_task(self, entry: TaskEntry) -> None:
        task_id = normalize_task_id(entry.id)
        if not task_id:
            raise TaskAlreadyExistsError(task_id, "adding task: ID must not be empty")
        if task_id in self._tasks:
            raise TaskAlreadyExistsError(task_id, f"adding task: task {task_id} already exists")
        self._tasks[task_id] = entry.model_copy(update={"id": task_id})

    def update_task(self, task_id: str, **changes: object) -> TaskEntry:
        """Merge ``changes`` over the stored entry and return the result."""
        task_id = normalize_task_id(task_id)
        existing = self._tasks.get(task_id)
        if existing is None:
            raise TaskNotFoundError(task_id, f"updating task: task {task_id} not found")

        unknown = set(changes) - set(TaskEntry.model_fields)
        if unknown:
            raise TaskValidationError(f"updating task {task_id}: unknown fields {sorted(unknown)}")
        if "id" in changes and changes["id"] != task_id:
            raise TaskValidationError(f"updating task {task_id}: the ID cannot be changed")

        try:
            merged = TaskEntry.model_validate({**existing.model_dump(), **changes})
        except ValidationError as exc:
            raise TaskValidationError(f"updating task {task_id}: {exc}") from exc
        self._tasks[task_id] = merged
        return merged

    # ---- queries ----

    def get_task(self, task_id: str) -> TaskEntry:
        task_id = normalize_task_id(task_id)
        entry = self._tasks.get(task_id)
        if entry is None:
            raise TaskNotFoundError(task_id)
        return entry

    def has_task(self, task_id: str) -> bool:
        return normalize_task_id(task_id) in self._tasks

    def get_all_tasks(self) -> list[TaskEntry]:
        """All entries sorted by ID."""
        return [self._tasks[task_id] for task_id in sorted(self._tasks)]

    def filter_tasks(
        self,
        *,
        status: TaskStatus | str | Iterable[TaskStatus | str] | None = None,
        priority: Priority | str | Iterable[Priority | str] | None = None,
        owner: str | None = None,
        repo: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[TaskEntry]:
        """Entries matching every supplied criterion; omitted criteria match all."""
        try:
            statuses = _as_set(status, TaskStatus)
            priorities = _as_set(priority, Priority)
        except ValueError as exc:
            raise TaskValidationError(f"filtering tasks: {exc}") from exc
        required_tags = set(tags) if tags is not None else None

        result: list[TaskEntry] = []
        for entry in self.get_all_tasks():
            if statuses is not None and entry.status not in statuses:
                continue
            if priorities is not None and entry.priority not in priorities:
                continue
            if owner is not None and entry.owner != owner:
                continue
            if repo is not None and entry.repo != repo:
                continue
            if required_tags is not None and not required_tags.issubset(entry.tags):
                continue
            result.append(entry)
        return result

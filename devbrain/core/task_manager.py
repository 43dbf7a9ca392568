"""Task lifecycle state machine.

States: backlog, in_progress, blocked, review, done, archived.

The backlog registry is the system of record for status and priority. Each
mutation reloads it, applies the change, saves the whole document and then
mirrors the entry into the ticket's status.yaml.

Archive and unarchive span two stores (the tickets/ tree and backlog.yaml).
They move the ticket folder first and save the registry second; if the save
fails in-process the move is reversed. A crash between the two steps leaves
the folder in the other location, which ``resolve_ticket_dir`` still finds;
the registry value is authoritative and nothing reconciles it automatically.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from devbrain.core.backlog import BacklogStore
from devbrain.core.bootstrap import BootstrapSystem, write_status_file
from devbrain.core.errors import (
    TaskAlreadyArchivedError,
    TaskAlreadyExistsError,
    TaskError,
    TaskNotArchivedError,
    TaskNotFoundError,
    TaskOperationError,
    TaskValidationError,
    TaskWorktreeError,
)
from devbrain.core.handoff import HANDOFF_FILENAME, write_handoff
from devbrain.core.models import (
    PRIORITY_ORDER,
    BootstrapConfig,
    Priority,
    TaskEntry,
    TaskStatus,
    TaskType,
    parse_priority,
    parse_status,
    parse_task_type,
    utc_now,
)
from devbrain.core.protocols import ContextStore, WorktreeRemover
from devbrain.core.task_id import (
    build_path_task_id,
    description_from_task_id,
    normalize_task_id,
    validate_path_task_id,
)
from devbrain.core.ticket_path import active_ticket_dir, archived_ticket_dir, is_archived_location, resolve_ticket_dir

logger = logging.getLogger(__name__)


def _move_dir(src: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(src), str(dest))


def _discard_handoff(ticket_dir: Path) -> None:
    """Drop a handoff.md left in an active ticket by an archive that did not complete."""
    (ticket_dir / HANDOFF_FILENAME).unlink(missing_ok=True)


class TaskManager:
    """Orchestrates task creation and lifecycle transitions."""

    def __init__(
        self,
        base_path: str | Path,
        bootstrap: BootstrapSystem,
        backlog: BacklogStore,
        context_store: ContextStore | None = None,
        worktree_remover: WorktreeRemover | None = None,
        *,
        default_priority: Priority | str = Priority.P2,
        default_owner: str = "",
    ) -> None:
        self._base_path = Path(base_path)
        self._bootstrap = bootstrap
        self._backlog = backlog
        self._context_store = context_store
        self._worktree_remover = worktree_remover
        self._default_priority = parse_priority(default_priority)
        self._default_owner = default_owner

    # ---- creation ----

    def create_task(
        self,
        task_type: TaskType | str,
        branch: str = "",
        repo: str = "",
        *,
        title: str | None = None,
        priority: Priority | str | None = None,
        owner: str | None = None,
        tags: Iterable[str] = (),
        blocked_by: Iterable[str] = (),
        related: Iterable[str] = (),
        source: str = "",
        base_branch: str = "",
        task_id: str | None = None,
        id_prefix: str | None = None,
    ) -> TaskEntry:
        """Bootstrap a ticket and register it in the backlog with status backlog.

        ``task_id`` supplies a hierarchical ID (e.g. ``github.com/org/repo/feature``)
        instead of the next sequential one. ``id_prefix`` builds one instead from the
        prefix and a sanitized title (or branch). The branch name is stored verbatim.

        Raises:
            TaskValidationError: The requested ID is empty or malformed, or both
                ``task_id`` and ``id_prefix`` were given.
            TaskAlreadyExistsError: The ID is already registered or its folder exists.
            TaskWorktreeError: The task was created but its worktree was not;
                ``exc.task`` is the registered entry.
        """
        resolved_type = parse_task_type(task_type)
        resolved_priority = parse_priority(priority) if priority is not None else self._default_priority
        requested_id = self._requested_id(task_id, id_prefix, title or branch)

        self._backlog.load()
        if requested_id and self._backlog.has_task(requested_id):
            raise TaskAlreadyExistsError(requested_id, f"creating task: task {requested_id} already exists")

        resolved_title = title or branch or (description_from_task_id(requested_id) if requested_id else "")
        result = self._bootstrap.create_ticket(
            BootstrapConfig(
                task_type=resolved_type,
                title=resolved_title,
                branch_name=branch,
                repo_path=repo,
                base_branch=base_branch,
                task_id=requested_id,
            ),
            registered=self._backlog.has_task,
        )

        now = utc_now()
        entry = TaskEntry(
            id=result.task_id,
            title=resolved_title or result.task_id,
            type=resolved_type,
            status=TaskStatus.BACKLOG,
            priority=resolved_priority,
            owner=self._default_owner if owner is None else owner,
            repo=repo,
            branch=branch,
            worktree_path=result.worktree_path or "",
            ticket_path=result.ticket_path,
            created=now,
            updated=now,
            tags=list(tags),
            blocked_by=list(blocked_by),
            related=list(related),
            source=source,
        )
        self._backlog.add_task(entry)
        self._backlog.save()
        self._mirror_status(entry)
        logger.info("Created %s task %s (branch=%r, repo=%r)", resolved_type.value, entry.id, branch, repo)

        if result.worktree_error is not None:
            raise TaskWorktreeError(
                entry,
                f"creating task {entry.id}: task registered without a worktree: {result.worktree_error}",
            ) from result.worktree_error
        return entry

    # ---- lifecycle transitions ----

    def resume_task(self, task_id: str) -> TaskEntry:
        """Load the task's context and mark it in_progress (no-op if it already is)."""
        self._backlog.load()
        entry = self._backlog.get_task(task_id)
        if entry.status == TaskStatus.ARCHIVED:
            raise TaskAlreadyArchivedError(
                entry.id, f"resuming task {entry.id}: task is already archived, unarchive it first"
            )

        if self._context_store is not None:
            self._context_store.load_context(entry.id)

        if entry.status == TaskStatus.IN_PROGRESS:
            return entry

        updated = self._backlog.update_task(entry.id, status=TaskStatus.IN_PROGRESS, updated=utc_now())
        self._backlog.save()
        self._mirror_status(updated)
        logger.info("Resumed task %s (%s -> in_progress)", entry.id, entry.status.value)
        return updated

    def update_task_status(self, task_id: str, status: TaskStatus | str) -> TaskEntry:
        """Set any non-archived status directly. Archiving goes through archive_task."""
        resolved = parse_status(status)
        if resolved == TaskStatus.ARCHIVED:
            raise TaskValidationError(f"updating task status {task_id}: use archive_task to archive")

        self._backlog.load()
        entry = self._backlog.get_task(task_id)
        if entry.status == TaskStatus.ARCHIVED:
            raise TaskAlreadyArchivedError(
                entry.id, f"updating task status {entry.id}: task is already archived, unarchive it first"
            )

        updated = self._backlog.update_task(entry.id, status=resolved, updated=utc_now())
        self._backlog.save()
        self._mirror_status(updated)
        logger.info("Task %s status %s -> %s", entry.id, entry.status.value, resolved.value)
        return updated

    def archive_task(self, task_id: str) -> TaskEntry:
        """Write handoff.md, move the ticket to tickets/_archived and mark it archived."""
        self._backlog.load()
        entry = self._backlog.get_task(task_id)
        if entry.status == TaskStatus.ARCHIVED:
            raise TaskAlreadyArchivedError(entry.id, f"archiving task {entry.id}: task is already archived")

        source = resolve_ticket_dir(self._base_path, entry.id)
        dest = archived_ticket_dir(self._base_path, entry.id)
        moved = False
        if is_archived_location(self._base_path, source):
            logger.warning("Ticket folder for %s already sits in the archive; only updating the backlog", entry.id)
        elif source.is_dir():
            try:
                write_handoff(source, entry)
                _move_dir(source, dest)
            except OSError as exc:
                _discard_handoff(source)
                raise TaskOperationError(f"archiving task {entry.id}: moving ticket to {dest}: {exc}") from exc
            moved = True
        else:
            logger.warning("No ticket folder found for %s; archiving backlog entry only", entry.id)

        updated = self._backlog.update_task(
            entry.id,
            status=TaskStatus.ARCHIVED,
            pre_archive_status=entry.status,
            ticket_path=str(dest) if dest.is_dir() else entry.ticket_path,
            updated=utc_now(),
        )
        try:
            self._save_or_revert(entry.id, moved, src=dest, dest=source)
        except TaskError:
            if moved:
                _discard_handoff(source)
            raise
        self._mirror_status(updated)
        logger.info("Archived task %s (was %s)", entry.id, entry.status.value)
        return updated

    def unarchive_task(self, task_id: str) -> TaskEntry:
        """Restore the pre-archive status and move the ticket back to tickets/."""
        self._backlog.load()
        entry = self._backlog.get_task(task_id)
        if entry.status != TaskStatus.ARCHIVED:
            raise TaskNotArchivedError(entry.id, entry.status.value)

        restored = entry.pre_archive_status
        if restored is None:
            logger.warning("Task %s has no recorded pre-archive status; restoring to backlog", entry.id)
            restored = TaskStatus.BACKLOG

        source = resolve_ticket_dir(self._base_path, entry.id)
        dest = active_ticket_dir(self._base_path, entry.id)
        moved = False
        if is_archived_location(self._base_path, source):
            try:
                _move_dir(source, dest)
            except OSError as exc:
                raise TaskOperationError(f"unarchiving task {entry.id}: moving ticket to {dest}: {exc}") from exc
            moved = True

        updated = self._backlog.update_task(
            entry.id,
            status=restored,
            pre_archive_status=None,
            ticket_path=str(dest) if dest.is_dir() else entry.ticket_path,
            updated=utc_now(),
        )
        self._save_or_revert(entry.id, moved, src=dest, dest=source)
        self._mirror_status(updated)
        logger.info("Unarchived task %s (restored %s)", entry.id, restored.value)
        return updated

    # ---- priorities ----

    def update_task_priority(self, task_id: str, priority: Priority | str) -> TaskEntry:
        resolved = parse_priority(priority)
        self._backlog.load()
        entry = self._backlog.get_task(task_id)
        updated = self._backlog.update_task(entry.id, priority=resolved, updated=utc_now())
        self._backlog.save()
        self._mirror_status(updated)
        logger.info("Task %s priority %s -> %s", entry.id, entry.priority.value, resolved.value)
        return updated

    def reorder_priorities(self, task_ids: Iterable[str]) -> list[TaskEntry]:
        """Give P0..P3 to the first four IDs in order and P3 to the rest.

        All IDs are checked before anything changes. A repeated ID keeps the
        priority of its first position.
        """
        ordered = [normalize_task_id(task_id) for task_id in task_ids]
        self._backlog.load()
        for task_id in ordered:
            if not self._backlog.has_task(task_id):
                raise TaskNotFoundError(task_id, f"reordering priorities: task {task_id} not found")

        now = utc_now()
        seen: set[str] = set()
        updated_entries: list[TaskEntry] = []
        for position, task_id in enumerate(ordered):
            if task_id in seen:
                continue
            seen.add(task_id)
            priority = PRIORITY_ORDER[position] if position < len(PRIORITY_ORDER) else Priority.P3
            updated_entries.append(self._backlog.update_task(task_id, priority=priority, updated=now))

        self._backlog.save()
        for entry in updated_entries:
            self._mirror_status(entry)
        logger.info("Reordered priorities for %d tasks", len(updated_entries))
        return updated_entries

    # ---- worktrees ----

    def cleanup_worktree(self, task_id: str) -> TaskEntry:
        """Remove the task's recorded worktree and clear it from the registry."""
        self._backlog.load()
        entry = self._backlog.get_task(task_id)
        if not entry.worktree_path:
            logger.info("Task %s has no worktree recorded; nothing to clean up", entry.id)
            return entry

        if self._worktree_remover is not None:
            self._worktree_remover.remove_worktree(entry.worktree_path)
        elif Path(entry.worktree_path).exists():
            raise TaskError(f"cleaning up worktree for {entry.id}: no worktree remover configured")
        else:
            logger.info("Worktree %s for %s is already gone", entry.worktree_path, entry.id)

        updated = self._backlog.update_task(entry.id, worktree_path="", updated=utc_now())
        self._backlog.save()
        self._mirror_status(updated)
        logger.info("Cleaned up worktree for task %s", entry.id)
        return updated

    # ---- queries ----

    def get_task(self, task_id: str) -> TaskEntry:
        self._backlog.load()
        return self._backlog.get_task(task_id)

    def get_all_tasks(self) -> list[TaskEntry]:
        self._backlog.load()
        return self._backlog.get_all_tasks()

    def get_tasks_by_status(self, status: TaskStatus | str) -> list[TaskEntry]:
        resolved = parse_status(status)
        self._backlog.load()
        return self._backlog.filter_tasks(status=resolved)

    # ---- helpers ----

    @staticmethod
    def _requested_id(task_id: str | None, id_prefix: str | None, description: str) -> str | None:
        if task_id is not None and id_prefix is not None:
            raise TaskValidationError("creating task: pass either task_id or id_prefix, not both")
        if id_prefix is not None:
            task_id = build_path_task_id(normalize_task_id(id_prefix), description)
        if task_id is None:
            return None
        requested = normalize_task_id(task_id)
        validate_path_task_id(requested)
        return requested

    def _save_or_revert(self, task_id: str, moved: bool, *, src: Path, dest: Path) -> None:
        """Save the backlog; if that fails, move the ticket folder back from src to dest."""
        try:
            self._backlog.save()
        except TaskError:
            if moved:
                logger.error("Backlog save failed for %s; moving ticket back to %s", task_id, dest)
                _move_dir(src, dest)
            raise

    def _mirror_status(self, entry: TaskEntry) -> None:
        ticket_dir = resolve_ticket_dir(self._base_path, entry.id)
        if not ticket_dir.is_dir():
            logger.warning("No ticket folder for %s; status.yaml not updated", entry.id)
            return
        try:
            write_status_file(ticket_dir, entry)
        except OSError as exc:
            raise TaskOperationError(f"writing status.yaml for {entry.id}: {exc}") from exc

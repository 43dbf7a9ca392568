"""File-backed task context: context.md, notes.md and communications/."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from devbrain.core.errors import TaskNotFoundError
from devbrain.core.models import utc_now
from devbrain.core.ticket_path import resolve_ticket_dir


@dataclass
class TaskContext:
    task_id: str
    context: str
    notes: str
    communications: list[str] = field(default_factory=list)
    loaded_at: datetime = field(default_factory=utc_now)


class FileContextStore:
    """Reads a task's working context from its ticket folder, active or archived."""

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)

    def load_context(self, task_id: str) -> TaskContext:
        ticket_dir = resolve_ticket_dir(self._base_path, task_id)
        if not ticket_dir.is_dir():
            raise TaskNotFoundError(task_id, f"loading context for {task_id}: no ticket folder at {ticket_dir}")

        comms_dir = ticket_dir / "communications"
        communications: list[str] = []
        if comms_dir.is_dir():
            communications = sorted(p.name for p in comms_dir.iterdir() if p.is_file() and not p.name.startswith("."))

        return TaskContext(
            task_id=task_id,
            context=_read_optional(ticket_dir / "context.md"),
            notes=_read_optional(ticket_dir / "notes.md"),
            communications=communications,
        )


def _read_optional(path: Path) -> str:
    if not path.exists():
        return ""
    return path.read_text(encoding="utf-8")

"""Ticket directory resolution for active and archived tasks.

Active tickets live at ``<base>/tickets/<id>``; archived ones are moved to
``<base>/tickets/_archived/<id>``. Readers that only know a task ID call
``resolve_ticket_dir`` and never need to branch on the task's status.
Hierarchical IDs (``github.com/org/repo/feature``) nest naturally.
"""

from __future__ import annotations

from pathlib import Path

TICKETS_DIR = "tickets"
ARCHIVED_DIR = "_archived"


def active_ticket_dir(base_path: str | Path, task_id: str) -> Path:
    return Path(base_path) / TICKETS_DIR / task_id


def archived_ticket_dir(base_path: str | Path, task_id: str) -> Path:
    return Path(base_path) / TICKETS_DIR / ARCHIVED_DIR / task_id


def resolve_ticket_dir(base_path: str | Path, task_id: str) -> Path:
    """Return the active dir if present, else the archived dir if present, else the active dir."""
    active = active_ticket_dir(base_path, task_id)
    if active.exists():
        return active
    archived = archived_ticket_dir(base_path, task_id)
    if archived.exists():
        return archived
    return active


def is_archived_location(base_path: str | Path, ticket_dir: Path) -> bool:
    """Check whether ticket_dir sits under tickets/_archived."""
    archive_root = Path(base_path) / TICKETS_DIR / ARCHIVED_DIR
    return ticket_dir == archive_root or archive_root in ticket_dir.parents

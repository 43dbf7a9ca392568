"""Task ID allocation and helpers for hierarchical (path-based) IDs."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from devbrain.core.errors import TaskIDError, TaskValidationError
from devbrain.core.file_io import atomic_write_text, exclusive_lock
from devbrain.core.ticket_path import ARCHIVED_DIR

logger = logging.getLogger(__name__)

COUNTER_FILENAME = ".task_counter"
DEFAULT_PREFIX = "TASK"
DEFAULT_PAD_WIDTH = 5

_UNSAFE_SEGMENT_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_DASH_RUN = re.compile(r"-{2,}")


class TaskIDGenerator:
    """Allocates ``<prefix>-<counter>`` IDs from a counter persisted in ``.task_counter``.

    Each call is one load/increment/persist cycle under an advisory lock; the
    counter file is replaced atomically so a crash can neither roll the
    counter back nor leave it unreadable.
    """

    def __init__(
        self,
        base_path: str | Path,
        *,
        prefix: str = DEFAULT_PREFIX,
        pad_width: int = DEFAULT_PAD_WIDTH,
    ) -> None:
        if pad_width < 0:
            raise TaskValidationError(f"pad_width must be non-negative, got {pad_width}")
        self._base_path = Path(base_path)
        self._prefix = prefix
        self._pad_width = pad_width

    @property
    def counter_path(self) -> Path:
        return self._base_path / COUNTER_FILENAME

    def current(self) -> int:
        """Return the last allocated counter value (0 when nothing was allocated)."""
        path = self.counter_path
        try:
            raw = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return 0
        except OSError as exc:
            raise TaskIDError(f"reading task counter {path}: {exc}") from exc
        try:
            value = int(raw)
        except ValueError as exc:
            raise TaskIDError(f"parsing task counter {path}: {raw!r} is not an integer") from exc
        if value < 0:
            raise TaskIDError(f"parsing task counter {path}: negative value {value}")
        return value

    def next_id(self, prefix: str | None = None) -> str:
        """Allocate and persist the next sequential ID."""
        resolved_prefix = prefix or self._prefix
        lock_path = self._base_path / f"{COUNTER_FILENAME}.lock"
        with exclusive_lock(lock_path):
            counter = self.current() + 1
            try:
                atomic_write_text(self.counter_path, str(counter))
            except OSError as exc:
                raise TaskIDError(f"writing task counter {self.counter_path}: {exc}") from exc
        task_id = format_task_id(resolved_prefix, counter, self._pad_width)
        logger.debug("Allocated task id %s", task_id)
        return task_id


def format_task_id(prefix: str, counter: int, pad_width: int = DEFAULT_PAD_WIDTH) -> str:
    if pad_width > 0:
        return f"{prefix}-{counter:0{pad_width}d}"
    return f"{prefix}-{counter}"


def normalize_task_id(task_id: str) -> str:
    """Use forward slashes and drop trailing slashes so lookups are stable."""
    return task_id.replace("\\", "/").rstrip("/")


def validate_path_task_id(task_id: str) -> None:
    """Reject IDs that would escape or confuse the tickets/ tree."""
    if not task_id:
        raise TaskValidationError("task ID must not be empty")
    if task_id.startswith("/") or task_id.endswith("/"):
        raise TaskValidationError(f"task ID {task_id!r} must not start or end with /")
    if task_id.split("/", 1)[0] == ARCHIVED_DIR:
        raise TaskValidationError(f"task ID {task_id!r} must not start with the reserved segment {ARCHIVED_DIR!r}")
    for segment in task_id.split("/"):
        if not segment:
            raise TaskValidationError(f"task ID {task_id!r} contains empty segment")
        if segment in (".", ".."):
            raise TaskValidationError(f"task ID {task_id!r} contains invalid segment {segment!r}")


def sanitize_path_segment(value: str) -> str:
    value = _UNSAFE_SEGMENT_CHARS.sub("-", value.lower())
    value = _DASH_RUN.sub("-", value)
    return value.strip("-")


def build_path_task_id(prefix: str, description: str) -> str:
    """Join a prefix (e.g. ``github.com/org/repo``) and a sanitized description."""
    segment = sanitize_path_segment(description)
    if not segment:
        raise TaskValidationError(f"cannot build task ID from {description!r}: no usable characters")
    if not prefix:
        return segment
    return f"{prefix.rstrip('/')}/{segment}"


def description_from_task_id(task_id: str) -> str:
    return task_id.rsplit("/", 1)[-1]

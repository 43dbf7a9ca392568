"""Type-specific markdown templates for new tickets."""

from __future__ import annotations

import logging
from pathlib import Path

from devbrain.core.errors import TaskValidationError
from devbrain.core.models import TaskType, parse_task_type

logger = logging.getLogger(__name__)


def _templates_root() -> Path:
    return Path(__file__).resolve().parent.parent / "templates" / "tickets"


def _read_template(*parts: str) -> str:
    return _templates_root().joinpath(*parts).read_text(encoding="utf-8")


class TemplateManager:
    """Renders notes.md, design.md and context.md for a task type.

    Built-in templates ship with the package. ``register_template`` swaps the
    notes template of one type for a user file, which is copied verbatim.
    """

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)
        self._custom_notes: dict[TaskType, Path] = {}

    def register_template(self, task_type: TaskType | str, template_path: str | Path) -> None:
        resolved_type = parse_task_type(task_type)
        path = Path(template_path).expanduser()
        if not path.is_absolute():
            path = self._base_path / path
        if not path.is_file():
            raise TaskValidationError(f"custom template for {resolved_type.value} not found: {path}")
        self._custom_notes[resolved_type] = path
        logger.info("Registered custom %s template %s", resolved_type.value, path)

    def render_notes(self, task_type: TaskType, *, task_id: str, title: str = "") -> str:
        custom = self._custom_notes.get(task_type)
        if custom is not None:
            return custom.read_text(encoding="utf-8")
        return _read_template(task_type.value, "notes.md").format(task_id=task_id, title=title)

    def render_design(self, task_type: TaskType, *, task_id: str, title: str = "") -> str:
        return _read_template(task_type.value, "design.md").format(task_id=task_id, title=title)

    def render_context(self, *, task_id: str, title: str = "") -> str:
        return _read_template("context.md").format(task_id=task_id, title=title)

    def apply_template(self, ticket_dir: Path, task_type: TaskType, *, task_id: str, title: str = "") -> None:
        """Write the markdown scaffold files into ticket_dir."""
        ticket_dir.mkdir(parents=True, exist_ok=True)
        files = {
            "notes.md": self.render_notes(task_type, task_id=task_id, title=title),
            "design.md": self.render_design(task_type, task_id=task_id, title=title),
            "context.md": self.render_context(task_id=task_id, title=title),
        }
        for name, content in files.items():
            (ticket_dir / name).write_text(content, encoding="utf-8")

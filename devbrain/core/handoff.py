"""Handoff summary written into a ticket when it is archived."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from devbrain.core.models import TaskEntry, utc_now

HANDOFF_FILENAME = "handoff.md"

_SECTION_HEADING = re.compile(r"^##\s+(.*?)\s*$")


@dataclass
class HandoffDocument:
    task_id: str
    summary: str = ""
    completed_work: list[str] = field(default_factory=list)
    open_items: list[str] = field(default_factory=list)
    learnings: list[str] = field(default_factory=list)
    related_docs: list[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=utc_now)


def extract_list_items(content: str) -> list[str]:
    """Top-level ``- item`` lines, minus checkbox markers and template placeholders."""
    items: list[str] = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped.startswith("- "):
            continue
        item = stripped[2:]
        for marker in ("[ ] ", "[x] "):
            if item.startswith(marker):
                item = item[len(marker) :]
        item = item.strip()
        if item and not item.startswith("["):
            items.append(item)
    return items


def extract_section_items(content: str, heading: str) -> list[str]:
    """List items under ``## <heading>`` up to the next ``##`` heading."""
    collected: list[str] = []
    inside = False
    for line in content.splitlines():
        match = _SECTION_HEADING.match(line)
        if match:
            inside = match.group(1) == heading
            continue
        if inside:
            collected.append(line)
    return extract_list_items("\n".join(collected))


def build_handoff(ticket_dir: Path, task: TaskEntry) -> HandoffDocument:
    handoff = HandoffDocument(task_id=task.id)

    notes_path = ticket_dir / "notes.md"
    if notes_path.exists():
        handoff.summary = f"Task {task.id} ({task.type.value}): {task.title}"
        handoff.learnings = extract_list_items(notes_path.read_text(encoding="utf-8"))

    context_path = ticket_dir / "context.md"
    if context_path.exists():
        content = context_path.read_text(encoding="utf-8")
        handoff.open_items = extract_section_items(content, "Open Questions")
        handoff.completed_work = extract_section_items(content, "Recent Progress")

    if (ticket_dir / "design.md").exists():
        handoff.related_docs.append(f"tickets/{task.id}/design.md")
    return handoff


def _bullets(items: list[str], empty: str, prefix: str = "- ") -> list[str]:
    if not items:
        return [f"- {empty}"]
    return [f"{prefix}{item}" for item in items]


def render_handoff(doc: HandoffDocument) -> str:
    lines = [
        f"# Handoff: {doc.task_id}",
        "",
        f"**Generated:** {doc.generated_at.strftime('%Y-%m-%dT%H:%M:%SZ')}",
        "**Status:** Archived",
        "",
        "## Summary",
        doc.summary,
        "",
        "## Completed Work",
        *_bullets(doc.completed_work, "No completed work items recorded"),
        "",
        "## Open Items",
        *_bullets(doc.open_items, "No open items", prefix="- [ ] "),
        "",
        "## Key Learnings",
        *_bullets(doc.learnings, "No learnings recorded"),
        "",
        "## Related Documentation",
        *_bullets(doc.related_docs, "No related documentation"),
        "",
    ]
    return "\n".join(lines)


def write_handoff(ticket_dir: Path, task: TaskEntry) -> Path:
    """Render and write handoff.md into the ticket folder; returns its path."""
    path = ticket_dir / HANDOFF_FILENAME
    path.write_text(render_handoff(build_handoff(ticket_dir, task)), encoding="utf-8")
    return path

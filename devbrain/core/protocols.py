"""Capabilities the lifecycle core consumes from collaborators.

Implementations are injected at construction, so the core never imports
the git integration or context storage directly.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class WorktreeCreator(Protocol):
    """Creates an isolated working directory for a task's branch."""

    def create_worktree(self, repo_path: str, branch_name: str, task_id: str, base_branch: str = "") -> str:
        """Create the worktree and return its path.

        Raises:
            Exception: Any failure; the caller records the task without a worktree.
        """
        ...


@runtime_checkable
class WorktreeRemover(Protocol):
    """Removes a worktree previously created for a task."""

    def remove_worktree(self, worktree_path: str) -> None:
        """Remove the worktree. An already-absent worktree is not an error."""
        ...


@runtime_checkable
class ContextStore(Protocol):
    """Loads the persisted working context of a task."""

    def load_context(self, task_id: str) -> object:
        ...

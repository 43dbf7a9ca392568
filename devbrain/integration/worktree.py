"""Git worktree management for tasks.

Worktrees live at ``<base>/work/<task_id>``. A repository is either an
absolute path to a local clone or a ``platform/org/repo`` identifier
resolved under ``<base>/repos/``. Nothing is cloned or fetched here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

logger = logging.getLogger(__name__)

WORK_DIR = "work"
REPOS_DIR = "repos"


class WorktreeError(RuntimeError):
    """Raised when a worktree cannot be created, listed or removed."""


@dataclass(frozen=True)
class Worktree:
    path: str
    branch: str
    task_id: str
    repo_path: str


def normalize_repo_path(repo_path: str) -> str:
    """Reduce URL and path spellings of a repository to ``platform/org/repo``.

    Handles ``https://``, ``git@host:org/repo.git``, a ``repos/`` prefix, a
    ``.git`` suffix and backslashes.
    """
    cleaned = repo_path.strip()
    for prefix in ("https://", "http://", "git@", "repos/"):
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix) :]
    host, sep, rest = cleaned.partition(":")
    if sep and "/" not in host:
        cleaned = f"{host}/{rest}"
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]
    return cleaned.replace("\\", "/").rstrip("/")


class GitWorktreeManager:
    """Creates and removes task worktrees with GitPython."""

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)

    def worktree_path(self, task_id: str) -> Path:
        return self._base_path / WORK_DIR / task_id

    def resolve_repo_dir(self, repo_path: str) -> Path:
        """Map a repo reference to the local clone it names."""
        candidate = Path(repo_path).expanduser()
        if candidate.is_absolute():
            return candidate
        parts = normalize_repo_path(repo_path).split("/")
        if len(parts) < 3:
            raise WorktreeError(f"invalid repo path {repo_path!r}: expected platform/org/repo or an absolute path")
        return self._base_path / REPOS_DIR / Path(*parts[-3:])

    def create_worktree(self, repo_path: str, branch_name: str, task_id: str, base_branch: str = "") -> str:
        if not repo_path:
            raise WorktreeError("repo path must not be empty")
        if not task_id:
            raise WorktreeError("task ID must not be empty")
        if not branch_name:
            raise WorktreeError(f"cannot create worktree for {task_id}: branch name is empty")

        repo_dir = self.resolve_repo_dir(repo_path)
        try:
            repo = Repo(repo_dir)
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            msg = f"Cannot create worktree: {repo_dir} is not a git repository"
            logger.error(msg)
            raise WorktreeError(msg) from exc

        path = self.worktree_path(task_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        args = ["add", "-b", branch_name, str(path)]
        if base_branch:
            args.append(base_branch)
        try:
            repo.git.worktree(*args)
        except GitCommandError as exc:
            msg = f"Failed to create worktree at {path}: {exc.stderr.strip() if exc.stderr else exc}"
            logger.error(msg)
            raise WorktreeError(msg) from exc

        logger.info("Created worktree at %s (branch %s)", path, branch_name)
        return str(path)

    def remove_worktree(self, worktree_path: str) -> None:
        """Remove a worktree. A path that no longer exists is treated as already removed."""
        if not worktree_path:
            raise WorktreeError("worktree path must not be empty")

        path = Path(worktree_path)
        if not path.exists():
            logger.info("Worktree %s already absent, skipping removal", path)
            return

        try:
            # Run from the owning repository, not from inside the worktree being removed.
            owner = Repo(Repo(path).common_dir)
        except InvalidGitRepositoryError as exc:
            raise WorktreeError(f"Cannot remove worktree: {path} is not a git worktree") from exc

        try:
            owner.git.worktree("remove", str(path))
        except GitCommandError as exc:
            msg = f"Failed to remove worktree at {path}: {exc.stderr.strip() if exc.stderr else exc}"
            logger.error(msg)
            raise WorktreeError(msg) from exc
        logger.info("Removed worktree at %s", path)

    def list_worktrees(self, repo_path: str) -> list[Worktree]:
        """Parse ``git worktree list --porcelain`` for a repository."""
        repo_dir = self.resolve_repo_dir(repo_path)
        try:
            output = Repo(repo_dir).git.worktree("list", "--porcelain")
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise WorktreeError(f"Cannot list worktrees: {repo_dir} is not a git repository") from exc
        except GitCommandError as exc:
            raise WorktreeError(f"Failed to list worktrees for {repo_dir}: {exc}") from exc
        return parse_worktree_list(output, str(repo_dir), self._base_path / WORK_DIR)


def parse_worktree_list(output: str, repo_path: str, work_root: Path) -> list[Worktree]:
    """Task IDs are recovered from paths under work_root; other worktrees get an empty ID."""
    worktrees: list[Worktree] = []
    for block in output.strip().split("\n\n"):
        if not block.strip():
            continue
        path = ""
        branch = ""
        for line in block.splitlines():
            line = line.strip()
            if line.startswith("worktree "):
                path = line[len("worktree ") :]
            elif line.startswith("branch refs/heads/"):
                branch = line[len("branch refs/heads/") :]
        task_id = ""
        if path and work_root in Path(path).parents:
            task_id = Path(path).relative_to(work_root).as_posix()
        worktrees.append(Worktree(path=path, branch=branch, task_id=task_id, repo_path=repo_path))
    return worktrees

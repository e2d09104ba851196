"""Read-only git queries used for revision-based change detection.

All queries degrade gracefully: outside a repository, or when git itself
fails, they return empty or false results instead of raising.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, TypeVar

from git import (
    GitCommandError,
    GitCommandNotFound,
    InvalidGitRepositoryError,
    NoSuchPathError,
    Repo,
)

from .scanner import matches_any_pattern

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that mean "no usable repository or revision"
GIT_ERRORS = (
    GitCommandError,
    GitCommandNotFound,
    InvalidGitRepositoryError,
    NoSuchPathError,
)


class GitChangeStatus(str, Enum):
    """Kind of change reported by git for a path."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class GitFileChange:
    """A path changed between two revisions, relative to the repository root."""

    path: str
    status: GitChangeStatus


@dataclass(frozen=True)
class GitInfo:
    """Identity of the current repository checkout."""

    commit: str = ""
    branch: str = ""
    is_repo: bool = False


def parse_name_status(output: str) -> list[GitFileChange]:
    """Parse the output of ``git diff --name-status -z``.

    Fields are NUL-separated and paths are emitted verbatim. Each entry is a
    status followed by one path, or by two paths for renames and copies.
    Renames and copies report the new path as modified; a rename also reports
    its old path as deleted.

    Args:
        output: Raw command output

    Returns:
        List of file changes in output order
    """
    fields = output.split("\0")
    changes: list[GitFileChange] = []
    i = 0
    while i < len(fields):
        status = fields[i].strip()
        i += 1
        if not status:
            continue

        code = status[0]
        if code in ("R", "C"):
            if i + 1 >= len(fields) or not fields[i] or not fields[i + 1]:
                break
            old_path, new_path = fields[i], fields[i + 1]
            i += 2
            if code == "R":
                changes.append(GitFileChange(old_path, GitChangeStatus.DELETED))
            changes.append(GitFileChange(new_path, GitChangeStatus.MODIFIED))
            continue

        if i >= len(fields) or not fields[i]:
            break
        path = fields[i]
        i += 1
        if code == "A":
            changes.append(GitFileChange(path, GitChangeStatus.ADDED))
        elif code == "D":
            changes.append(GitFileChange(path, GitChangeStatus.DELETED))
        else:
            changes.append(GitFileChange(path, GitChangeStatus.MODIFIED))
    return changes


class GitRepository:
    """Queries the git repository containing a working directory."""

    def __init__(self, cwd: Optional[Path] = None):
        """Initialize the repository wrapper.

        Args:
            cwd: Directory inside the repository (defaults to the process
                working dir)
        """
        self.cwd = cwd or Path.cwd()

    async def _query(self, query: Callable[[Repo], T]) -> T:
        """Open the repository and run a blocking query in a thread.

        Raises:
            InvalidGitRepositoryError: If cwd is not inside a repository
            NoSuchPathError: If cwd does not exist
            GitCommandError: If a git command fails
        """

        def run() -> T:
            with Repo(self.cwd, search_parent_directories=True) as repo:
                return query(repo)

        return await asyncio.to_thread(run)

    async def is_repo(self) -> bool:
        """Check whether the working directory is inside a git work tree."""
        try:
            return await self._query(lambda repo: repo.working_tree_dir is not None)
        except GIT_ERRORS:
            return False

    async def current_commit(self) -> str:
        """Return the HEAD commit hash, or an empty string."""
        try:
            return await self._query(lambda repo: repo.head.commit.hexsha)
        except (*GIT_ERRORS, ValueError) as e:
            # ValueError: HEAD has no commit yet
            logger.debug(f"Failed to get current commit: {e}")
            return ""

    async def current_branch(self) -> str:
        """Return the current branch name, ``HEAD`` when detached, or ''."""

        def branch(repo: Repo) -> str:
            if repo.head.is_detached:
                return "HEAD"
            return repo.active_branch.name

        try:
            return await self._query(branch)
        except (*GIT_ERRORS, TypeError, ValueError) as e:
            logger.debug(f"Failed to get current branch: {e}")
            return ""

    async def root(self) -> Optional[Path]:
        """Return the repository root directory, or None outside a repository."""
        try:
            top = await self._query(lambda repo: repo.working_tree_dir)
        except GIT_ERRORS:
            return None
        return Path(top) if top else None

    async def get_info(self) -> GitInfo:
        """Collect commit, branch and repository status."""
        if not await self.is_repo():
            return GitInfo()
        commit, branch = await asyncio.gather(
            self.current_commit(), self.current_branch()
        )
        return GitInfo(commit=commit, branch=branch, is_repo=True)

    async def normalize_patterns(self, patterns: list[str]) -> list[str]:
        """Rewrite local glob patterns relative to the repository root.

        git reports paths relative to the repository root, so patterns given
        relative to a subdirectory must be prefixed with that subdirectory.

        Args:
            patterns: Patterns relative to the working directory

        Returns:
            Patterns relative to the repository root
        """
        git_root = await self.root()
        if git_root is None:
            return patterns

        cwd = self.cwd.resolve()
        relative_to_root = os.path.relpath(cwd, git_root.resolve())

        normalized: list[str] = []
        for pattern in patterns:
            if os.path.isabs(pattern):
                rel = os.path.relpath(pattern, git_root.resolve())
            elif relative_to_root == ".":
                rel = pattern
            else:
                rel = os.path.join(relative_to_root, pattern)
            rel = rel.replace(os.sep, "/")
            if rel.startswith("./"):
                rel = rel[2:]
            normalized.append(os.path.normpath(rel).replace(os.sep, "/"))
        return normalized

    async def changed_files(
        self, from_revision: str, patterns: Optional[list[str]] = None
    ) -> list[GitFileChange]:
        """List files changed between a revision and HEAD.

        Args:
            from_revision: Revision to diff from (commit, tag, branch, HEAD~n)
            patterns: Repository-root-relative glob patterns to filter by

        Returns:
            Changed files, or an empty list if the revision does not exist or
            git fails
        """
        try:
            output = await self._query(
                lambda repo: repo.git(c="core.quotePath=false").diff(
                    "--name-status", "-z", "-M", from_revision, "HEAD"
                )
            )
        except GIT_ERRORS as e:
            logger.warning(f"Could not list git changes since {from_revision}: {e}")
            return []

        changes = parse_name_status(output)
        if not patterns:
            return changes
        return [c for c in changes if matches_any_pattern(c.path, patterns)]

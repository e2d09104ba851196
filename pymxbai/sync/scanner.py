"""Local file discovery and glob pattern matching for sync operations."""

import glob
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from .hashing import hash_file

logger = logging.getLogger(__name__)

_MAGIC_CHARS = re.compile(r"[*?\[]")


def has_magic(pattern: str) -> bool:
    """Check whether a pattern contains glob wildcards."""
    return _MAGIC_CHARS.search(pattern) is not None


def to_logical_path(path: Path, base_dir: Path) -> str:
    """Convert an absolute local path to the logical path stored remotely.

    Paths inside the base directory are stored relative to it with forward
    slashes; paths outside keep their absolute POSIX form.

    Args:
        path: Absolute local path
        base_dir: Sync base directory

    Returns:
        Logical path string
    """
    try:
        return path.relative_to(base_dir).as_posix()
    except ValueError:
        return path.as_posix()


def from_logical_path(logical_path: str, base_dir: Path) -> Path:
    """Convert a logical path back to an absolute local path."""
    path = Path(logical_path)
    if path.is_absolute():
        return path
    return base_dir / path


@dataclass
class LocalFile:
    """Represents a local file discovered by pattern expansion."""

    path: Path
    """Absolute path to the file"""

    logical_path: str
    """Path relative to the sync base directory (forward slashes)"""

    size: int
    """File size in bytes at discovery time"""

    fingerprint: Optional[str] = None
    """Content fingerprint, computed on first use"""

    @classmethod
    def from_path(cls, file_path: Path, base_dir: Path) -> "LocalFile":
        """Create a LocalFile by stat-ing a path.

        Raises:
            OSError: If the file no longer exists or cannot be stat-ed
        """
        stat = file_path.stat()
        return cls(
            path=file_path,
            logical_path=to_logical_path(file_path, base_dir),
            size=stat.st_size,
        )

    async def get_fingerprint(self) -> str:
        """Return the content fingerprint, hashing the file on first call."""
        if self.fingerprint is None:
            self.fingerprint = await hash_file(self.path)
        return self.fingerprint


@lru_cache(maxsize=256)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a glob pattern with ``**`` support into a regex."""
    i = 0
    n = len(pattern)
    parts: list[str] = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    i += 1
                    parts.append("(?:.*/)?")
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append(f"[{body}]")
                i = end
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("".join(parts) + r"\Z")


def _clean_pattern(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern.rstrip("/")


def matches_pattern(path: str, pattern: str) -> bool:
    """Check whether a forward-slash path matches a glob pattern.

    A pattern without wildcards matches the path itself and, as folder
    shorthand, everything below it.

    Examples:
        >>> matches_pattern("docs/a/b.md", "docs/**/*.md")
        True
        >>> matches_pattern("docs/a/b.md", "docs")
        True
        >>> matches_pattern("src/b.md", "*.md")
        False
    """
    pattern = _clean_pattern(pattern)
    if pattern in ("", "."):
        return True
    if not has_magic(pattern):
        return path == pattern or path.startswith(pattern + "/")
    return _compile_pattern(pattern).match(path) is not None


def matches_any_pattern(path: str, patterns: list[str]) -> bool:
    """Check whether a path matches at least one pattern."""
    return any(matches_pattern(path, pattern) for pattern in patterns)


def is_hidden(path: Path, root: Path) -> bool:
    """Check whether any component of path below root starts with a dot."""
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        parts = path.parts
    return any(part.startswith(".") for part in parts)


def names_hidden(pattern: str) -> bool:
    """Check whether a pattern spells out a dot-prefixed path component.

    Such patterns opt in to hidden files, as in ``docs/.env`` or ``.github/*``.
    """
    return any(
        part.startswith(".") and part not in (".", "..")
        for part in _clean_pattern(pattern).split("/")
    )


def expand_patterns(patterns: list[str], base_dir: Optional[Path] = None) -> list[Path]:
    """Expand glob patterns into a sorted, de-duplicated list of files.

    Supports recursive wildcards (``**``) and folder shorthand: a pattern
    naming an existing directory expands to every non-hidden file below it.

    Args:
        patterns: Glob patterns, file paths or directory paths
        base_dir: Directory relative patterns are resolved against
            (defaults to the working directory)

    Returns:
        Absolute, resolved file paths
    """
    base_dir = (base_dir or Path.cwd()).resolve()
    found: dict[Path, None] = {}

    for pattern in patterns:
        candidate = Path(pattern)
        if not candidate.is_absolute():
            candidate = base_dir / candidate

        if not has_magic(pattern) and candidate.is_dir():
            matches = [
                p
                for p in candidate.rglob("*")
                if p.is_file() and not is_hidden(p, candidate)
            ]
        elif not has_magic(pattern):
            matches = [candidate] if candidate.is_file() else []
        else:
            matches = [
                base_dir / m
                for m in glob.glob(pattern, root_dir=base_dir, recursive=True)
            ]
            matches = [m for m in matches if m.is_file()]

        if not matches:
            logger.debug(f"Pattern {pattern!r} matched no files")
        for match in matches:
            found[match.resolve()] = None

    return sorted(found)


def discover_local_files(
    patterns: list[str], base_dir: Optional[Path] = None
) -> list[LocalFile]:
    """Expand patterns and stat every match.

    Files that disappear between expansion and stat are left out.

    Args:
        patterns: Glob patterns, file paths or directory paths
        base_dir: Sync base directory (defaults to the working directory)

    Returns:
        LocalFile objects sorted by path
    """
    base_dir = (base_dir or Path.cwd()).resolve()
    local_files: list[LocalFile] = []
    for file_path in expand_patterns(patterns, base_dir):
        try:
            local_files.append(LocalFile.from_path(file_path, base_dir))
        except FileNotFoundError:
            logger.debug(f"File vanished before analysis: {file_path}")
    return local_files

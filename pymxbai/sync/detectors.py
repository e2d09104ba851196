"""Change detection strategies for sync operations.

Each detector turns local files and the remote sync state into change
records. The analyzer picks one detector per run with ``select_detector``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..metadata import MetadataResolver
from .git import GitChangeStatus, GitInfo, GitRepository
from .hashing import hashes_match
from .scanner import (
    LocalFile,
    discover_local_files,
    from_logical_path,
    is_hidden,
    matches_any_pattern,
    names_hidden,
    to_logical_path,
)
from .state import RemoteFileRecord, SyncState

logger = logging.getLogger(__name__)

# Number of files hashed concurrently during hash-based detection
DEFAULT_HASH_CONCURRENCY = 16


class ChangeKind(str, Enum):
    """Classification of a file by change detection."""

    ADDED = "added"
    """File is not tracked remotely"""

    MODIFIED = "modified"
    """File is tracked remotely and must be replaced"""

    DELETED = "deleted"
    """Tracked file no longer exists locally"""

    UNCHANGED = "unchanged"
    """Tracked file matches its remote copy"""


@dataclass
class ChangeRecord:
    """A single file classified by change detection."""

    path: Path
    """Absolute local path"""

    logical_path: str
    """Path stored in the sync marker"""

    kind: ChangeKind
    """Change classification"""

    size: Optional[int] = None
    """Size in bytes at analysis time (absent for deletions)"""

    local_fingerprint: Optional[str] = None
    """Local content fingerprint, if already computed"""

    remote_fingerprint: Optional[str] = None
    """Fingerprint recorded by the previous sync"""

    file_id: Optional[str] = None
    """Remote file identifier (modified and deleted files)"""

    @classmethod
    def added(cls, local_file: LocalFile) -> "ChangeRecord":
        return cls(
            path=local_file.path,
            logical_path=local_file.logical_path,
            kind=ChangeKind.ADDED,
            size=local_file.size,
            local_fingerprint=local_file.fingerprint,
        )

    @classmethod
    def tracked(
        cls, local_file: LocalFile, remote: RemoteFileRecord, kind: ChangeKind
    ) -> "ChangeRecord":
        return cls(
            path=local_file.path,
            logical_path=local_file.logical_path,
            kind=kind,
            size=local_file.size,
            local_fingerprint=local_file.fingerprint,
            remote_fingerprint=remote.fingerprint,
            file_id=remote.file_id,
        )

    @classmethod
    def deleted(cls, remote: RemoteFileRecord, base_dir: Path) -> "ChangeRecord":
        return cls(
            path=from_logical_path(remote.file_path, base_dir),
            logical_path=remote.file_path,
            kind=ChangeKind.DELETED,
            remote_fingerprint=remote.fingerprint,
            file_id=remote.file_id,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert the record to a JSON-serializable dict."""
        data: dict[str, Any] = {"path": self.logical_path, "type": self.kind.value}
        if self.size is not None:
            data["size"] = self.size
        if self.local_fingerprint:
            data["local_hash"] = self.local_fingerprint
        if self.remote_fingerprint:
            data["remote_hash"] = self.remote_fingerprint
        if self.file_id:
            data["file_id"] = self.file_id
        return data


def _deleted_records(
    synced_files: SyncState, present: set[str], base_dir: Path
) -> list[ChangeRecord]:
    return [
        ChangeRecord.deleted(remote, base_dir)
        for logical_path, remote in synced_files.items()
        if logical_path not in present
    ]


class ChangeDetector(ABC):
    """Strategy that classifies files as added, modified, deleted or unchanged."""

    name: str = ""

    def __init__(self, base_dir: Optional[Path] = None):
        """Initialize the detector.

        Args:
            base_dir: Sync base directory (defaults to the working directory)
        """
        self.base_dir = (base_dir or Path.cwd()).resolve()

    @abstractmethod
    async def detect(
        self, patterns: list[str], synced_files: SyncState
    ) -> list[ChangeRecord]:
        """Classify the files selected by patterns.

        Args:
            patterns: Glob patterns selecting local files
            synced_files: Remote sync state keyed by logical path

        Returns:
            Change records, including unchanged files
        """


class HashDetector(ChangeDetector):
    """Compares local content fingerprints with the recorded remote ones.

    When user metadata is supplied, a file whose content is unchanged but whose
    stored user metadata differs from the metadata it would be uploaded with
    is classified as modified as well.
    """

    name = "hash"

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        metadata: Optional[MetadataResolver] = None,
        concurrency: int = DEFAULT_HASH_CONCURRENCY,
    ):
        super().__init__(base_dir)
        self.metadata = metadata
        self.concurrency = concurrency

    def _metadata_changed(self, local_file: LocalFile, remote: RemoteFileRecord) -> bool:
        if self.metadata is None or self.metadata.is_empty:
            return False
        return self.metadata.for_path(local_file.logical_path) != remote.user_metadata

    async def _classify(
        self,
        local_file: LocalFile,
        remote: RemoteFileRecord,
        semaphore: asyncio.Semaphore,
    ) -> Optional[ChangeRecord]:
        async with semaphore:
            try:
                fingerprint = await local_file.get_fingerprint()
            except FileNotFoundError:
                logger.debug(f"File vanished while hashing: {local_file.path}")
                return None

        if not hashes_match(fingerprint, remote.fingerprint):
            logger.debug(f"Modified (content): {local_file.logical_path}")
            return ChangeRecord.tracked(local_file, remote, ChangeKind.MODIFIED)
        if self._metadata_changed(local_file, remote):
            logger.debug(f"Modified (metadata): {local_file.logical_path}")
            return ChangeRecord.tracked(local_file, remote, ChangeKind.MODIFIED)
        return ChangeRecord.tracked(local_file, remote, ChangeKind.UNCHANGED)

    async def detect(
        self, patterns: list[str], synced_files: SyncState
    ) -> list[ChangeRecord]:
        local_files = await asyncio.to_thread(
            discover_local_files, patterns, self.base_dir
        )
        records: list[ChangeRecord] = []
        tracked: list[tuple[LocalFile, RemoteFileRecord]] = []
        for local_file in local_files:
            remote = synced_files.get(local_file.logical_path)
            if remote is None:
                logger.debug(f"Added: {local_file.logical_path}")
                records.append(ChangeRecord.added(local_file))
            else:
                tracked.append((local_file, remote))

        semaphore = asyncio.Semaphore(self.concurrency)
        classified = await asyncio.gather(
            *(self._classify(lf, remote, semaphore) for lf, remote in tracked)
        )
        present = {lf.logical_path for lf in local_files}
        for (local_file, _), record in zip(tracked, classified):
            if record is None:
                present.discard(local_file.logical_path)
            else:
                records.append(record)

        records.extend(_deleted_records(synced_files, present, self.base_dir))
        return records


class ForceDetector(ChangeDetector):
    """Re-uploads every local file regardless of its fingerprint.

    Tracked files are modified (their old copy is deleted first), untracked
    files are added. Files removed locally are still deleted.
    """

    name = "force"

    async def detect(
        self, patterns: list[str], synced_files: SyncState
    ) -> list[ChangeRecord]:
        local_files = await asyncio.to_thread(
            discover_local_files, patterns, self.base_dir
        )
        records: list[ChangeRecord] = []
        for local_file in local_files:
            remote = synced_files.get(local_file.logical_path)
            if remote is None:
                records.append(ChangeRecord.added(local_file))
            else:
                records.append(
                    ChangeRecord.tracked(local_file, remote, ChangeKind.MODIFIED)
                )

        present = {lf.logical_path for lf in local_files}
        records.extend(_deleted_records(synced_files, present, self.base_dir))
        return records


class RevisionDetector(ChangeDetector):
    """Trusts git to report which files changed since a revision.

    Only files in the git change list (restricted to the patterns) are
    considered; untouched files are never hashed. A git deletion is emitted
    only when the file is tracked remotely. Hidden files are skipped unless a
    pattern names them, matching what hash-based discovery selects.
    """

    name = "git"

    def __init__(
        self,
        from_revision: str,
        base_dir: Optional[Path] = None,
        repository: Optional[GitRepository] = None,
    ):
        super().__init__(base_dir)
        self.from_revision = from_revision
        self.repository = repository or GitRepository(self.base_dir)

    async def detect(
        self, patterns: list[str], synced_files: SyncState
    ) -> list[ChangeRecord]:
        git_root = await self.repository.root()
        if git_root is None:
            logger.warning("Not inside a git repository; no git changes to sync")
            return []

        normalized = await self.repository.normalize_patterns(patterns)
        changes = await self.repository.changed_files(self.from_revision, normalized)
        logger.debug(f"git reports {len(changes)} change(s) since {self.from_revision}")

        hidden_patterns = [p for p in patterns if names_hidden(p)]
        records: list[ChangeRecord] = []
        seen: set[str] = set()
        for change in changes:
            file_path = (git_root / change.path).resolve()
            logical_path = to_logical_path(file_path, self.base_dir)
            if logical_path in seen:
                continue
            seen.add(logical_path)
            remote = synced_files.get(logical_path)

            if change.status == GitChangeStatus.DELETED:
                if file_path.exists():
                    logger.debug(f"git deletion of existing file ignored: {logical_path}")
                elif remote is not None:
                    records.append(ChangeRecord.deleted(remote, self.base_dir))
                continue

            if is_hidden(file_path, self.base_dir) and not matches_any_pattern(
                logical_path, hidden_patterns
            ):
                logger.debug(f"Skipping hidden file: {logical_path}")
                continue

            try:
                local_file = LocalFile.from_path(file_path, self.base_dir)
            except FileNotFoundError:
                logger.debug(f"Changed file no longer exists: {logical_path}")
                continue

            if remote is None:
                records.append(ChangeRecord.added(local_file))
            else:
                records.append(
                    ChangeRecord.tracked(local_file, remote, ChangeKind.MODIFIED)
                )
        return records


def select_detector(
    git_info: GitInfo,
    from_revision: Optional[str] = None,
    force_upload: bool = False,
    base_dir: Optional[Path] = None,
    metadata: Optional[MetadataResolver] = None,
    repository: Optional[GitRepository] = None,
) -> ChangeDetector:
    """Pick the change detector for a sync run.

    Force mode wins over revision-based detection, which in turn is only used
    inside a git repository. Everything else falls back to hash comparison.
    """
    if force_upload:
        return ForceDetector(base_dir)
    if from_revision and git_info.is_repo:
        return RevisionDetector(from_revision, base_dir, repository)
    if from_revision:
        logger.warning(
            f"Revision {from_revision} requested outside a git repository; "
            "falling back to hash comparison"
        )
    return HashDetector(base_dir, metadata)

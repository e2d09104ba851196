"""Change analysis: turns patterns and remote sync state into a change set."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..metadata import MetadataResolver
from .detectors import ChangeKind, ChangeRecord, select_detector
from .git import GitInfo, GitRepository
from .state import SyncState

logger = logging.getLogger(__name__)


@dataclass
class ChangeSet:
    """The diff between local files and the remote store."""

    added: list[ChangeRecord] = field(default_factory=list)
    """Files to upload that are not tracked remotely"""

    modified: list[ChangeRecord] = field(default_factory=list)
    """Tracked files to delete and upload again"""

    deleted: list[ChangeRecord] = field(default_factory=list)
    """Tracked files to delete"""

    unchanged: int = 0
    """Number of tracked files that need no action"""

    total_size: int = 0
    """Bytes to upload (added and modified files)"""

    @classmethod
    def from_records(cls, records: list[ChangeRecord]) -> "ChangeSet":
        """Group change records by kind, ordered by logical path."""
        change_set = cls()
        for record in sorted(records, key=lambda r: r.logical_path):
            if record.kind == ChangeKind.ADDED:
                change_set.added.append(record)
            elif record.kind == ChangeKind.MODIFIED:
                change_set.modified.append(record)
            elif record.kind == ChangeKind.DELETED:
                change_set.deleted.append(record)
            else:
                change_set.unchanged += 1
                continue
            if record.kind != ChangeKind.DELETED:
                change_set.total_size += record.size or 0
        return change_set

    @property
    def uploads(self) -> list[ChangeRecord]:
        return self.added + self.modified

    @property
    def deletions(self) -> list[ChangeRecord]:
        """Remote files to delete: superseded copies first, then removals."""
        return self.modified + self.deleted

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted)

    @property
    def is_empty(self) -> bool:
        return self.total_changes == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": [r.to_dict() for r in self.added],
            "modified": [r.to_dict() for r in self.modified],
            "deleted": [r.to_dict() for r in self.deleted],
            "unchanged": self.unchanged,
            "total_size": self.total_size,
        }


class ChangeAnalyzer:
    """Computes the change set for a sync run."""

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        metadata: Optional[MetadataResolver] = None,
        repository: Optional[GitRepository] = None,
    ):
        """Initialize the analyzer.

        Args:
            base_dir: Sync base directory (defaults to the working directory)
            metadata: User metadata, enables metadata change detection
            repository: Git repository used for revision-based detection
        """
        self.base_dir = (base_dir or Path.cwd()).resolve()
        self.metadata = metadata
        self.repository = repository

    async def analyze(
        self,
        patterns: list[str],
        synced_files: SyncState,
        git_info: GitInfo,
        from_revision: Optional[str] = None,
        force_upload: bool = False,
    ) -> ChangeSet:
        """Classify local files against the remote sync state.

        Args:
            patterns: Glob patterns selecting local files
            synced_files: Remote sync state keyed by logical path
            git_info: Current repository identity
            from_revision: Use git changes since this revision
            force_upload: Re-upload every local file

        Returns:
            ChangeSet with added, modified and deleted files

        Raises:
            OSError: If a local file cannot be read for fingerprinting
        """
        detector = select_detector(
            git_info,
            from_revision=from_revision,
            force_upload=force_upload,
            base_dir=self.base_dir,
            metadata=self.metadata,
            repository=self.repository,
        )
        logger.debug(f"Analyzing changes with {detector.name} detection")
        records = await detector.detect(patterns, synced_files)
        change_set = ChangeSet.from_records(records)
        logger.debug(
            f"Analysis: {len(change_set.added)} added, "
            f"{len(change_set.modified)} modified, {len(change_set.deleted)} deleted, "
            f"{change_set.unchanged} unchanged"
        )
        return change_set

"""Remote sync state reconstructed from store file metadata.

The store itself is the only persistence layer: every file uploaded by a sync
carries a sync marker under the reserved ``sync`` metadata key. Listing the
store and reading those markers back yields the state of the previous sync.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from ..exceptions import MxbaiAPIError, RemoteStateError
from ..utils import DEFAULT_PAGE_SIZE, parse_iso_timestamp, utc_now_iso
from .git import GitInfo

logger = logging.getLogger(__name__)

SYNC_METADATA_KEY = "sync"

# Marker fields written at the top level of metadata by older clients
LEGACY_MARKER_FIELDS = frozenset(
    {"file_path", "file_hash", "git_commit", "git_branch", "uploaded_at", "synced"}
)


class StoreFileLister(Protocol):
    """Part of the remote client needed to read sync state."""

    def iter_store_files(self, store: str, page_size: int = ...) -> Any: ...


@dataclass(frozen=True)
class SyncMarker:
    """Reserved metadata identifying a sync-managed remote file."""

    file_path: str
    """Logical local path the file was uploaded from"""

    file_hash: str
    """Content fingerprint at upload time"""

    uploaded_at: str
    """ISO timestamp of the upload"""

    git_commit: Optional[str] = None
    """Commit checked out when the file was uploaded"""

    git_branch: Optional[str] = None
    """Branch checked out when the file was uploaded"""

    @classmethod
    def build(
        cls,
        file_path: str,
        file_hash: str,
        git_info: Optional[GitInfo] = None,
        uploaded_at: Optional[str] = None,
    ) -> "SyncMarker":
        """Create a marker for a file about to be uploaded."""
        commit = git_info.commit if git_info and git_info.is_repo else None
        branch = git_info.branch if git_info and git_info.is_repo else None
        return cls(
            file_path=file_path,
            file_hash=file_hash,
            uploaded_at=uploaded_at or utc_now_iso(),
            git_commit=commit or None,
            git_branch=branch or None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert the marker to its metadata representation."""
        data: dict[str, Any] = {
            "file_path": self.file_path,
            "file_hash": self.file_hash,
            "uploaded_at": self.uploaded_at,
            "synced": True,
        }
        if self.git_commit:
            data["git_commit"] = self.git_commit
        if self.git_branch:
            data["git_branch"] = self.git_branch
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SyncMarker"]:
        """Parse a marker, returning None if required fields are missing."""
        if not isinstance(data, dict) or data.get("synced") is not True:
            return None
        file_path = data.get("file_path")
        file_hash = data.get("file_hash")
        if not isinstance(file_path, str) or not file_path:
            return None
        if not isinstance(file_hash, str) or not file_hash:
            return None
        uploaded_at = data.get("uploaded_at")
        commit = data.get("git_commit")
        branch = data.get("git_branch")
        return cls(
            file_path=file_path,
            file_hash=file_hash,
            uploaded_at=uploaded_at if isinstance(uploaded_at, str) else "",
            git_commit=commit if isinstance(commit, str) else None,
            git_branch=branch if isinstance(branch, str) else None,
        )

    @classmethod
    def from_metadata(cls, metadata: Any) -> Optional["SyncMarker"]:
        """Extract the marker from a remote file's metadata.

        The nested ``sync`` layout is preferred; the legacy flat layout is
        accepted when no nested marker is present.
        """
        if not isinstance(metadata, dict):
            return None
        if SYNC_METADATA_KEY in metadata:
            return cls.from_dict(metadata[SYNC_METADATA_KEY])
        return cls.from_dict(metadata)


def build_file_metadata(
    marker: SyncMarker, user_metadata: Optional[dict[str, Any]] = None
) -> dict[str, Any]:
    """Merge user metadata with a sync marker.

    The marker is stored under the reserved key and always wins over a user
    supplied value for that key.
    """
    metadata = dict(user_metadata or {})
    if SYNC_METADATA_KEY in metadata:
        logger.debug(f"Ignoring user metadata key {SYNC_METADATA_KEY!r} (reserved)")
    metadata[SYNC_METADATA_KEY] = marker.to_dict()
    return metadata


def extract_user_metadata(metadata: Any) -> dict[str, Any]:
    """Return the user-provided part of a remote file's metadata."""
    if not isinstance(metadata, dict):
        return {}
    if SYNC_METADATA_KEY in metadata:
        return {k: v for k, v in metadata.items() if k != SYNC_METADATA_KEY}
    return {k: v for k, v in metadata.items() if k not in LEGACY_MARKER_FIELDS}


@dataclass
class RemoteFileRecord:
    """A sync-managed file as stored remotely."""

    file_id: str
    """Remote file identifier"""

    marker: SyncMarker
    """Sync marker read back from metadata"""

    user_metadata: dict[str, Any] = field(default_factory=dict)
    """Metadata fields other than the sync marker"""

    @property
    def file_path(self) -> str:
        return self.marker.file_path

    @property
    def fingerprint(self) -> str:
        return self.marker.file_hash

    @property
    def git_commit(self) -> Optional[str]:
        return self.marker.git_commit

    @property
    def git_branch(self) -> Optional[str]:
        return self.marker.git_branch

    @property
    def uploaded_at(self) -> Optional[datetime]:
        return parse_iso_timestamp(self.marker.uploaded_at)

    @classmethod
    def from_store_file(cls, store_file: Any) -> Optional["RemoteFileRecord"]:
        """Build a record from a store file object, or None if unmanaged."""
        if not isinstance(store_file, dict):
            return None
        file_id = store_file.get("id")
        if not file_id:
            return None
        metadata = store_file.get("metadata")
        marker = SyncMarker.from_metadata(metadata)
        if marker is None:
            return None
        return cls(
            file_id=str(file_id),
            marker=marker,
            user_metadata=extract_user_metadata(metadata),
        )


SyncState = dict[str, RemoteFileRecord]
"""Mapping of logical local path to its remote record."""


def _prefer(existing: RemoteFileRecord, candidate: RemoteFileRecord) -> bool:
    """Return True if candidate should replace existing for the same path."""
    existing_time = existing.uploaded_at
    candidate_time = candidate.uploaded_at
    if existing_time is not None and candidate_time is not None:
        if candidate_time != existing_time:
            return candidate_time > existing_time
    return True


class SyncStateReader:
    """Reads the sync state of a store from its file listing."""

    def __init__(self, client: StoreFileLister, page_size: int = DEFAULT_PAGE_SIZE):
        """Initialize the reader.

        Args:
            client: Remote store client
            page_size: Number of files requested per listing page
        """
        self.client = client
        self.page_size = page_size

    async def list_synced_files(self, store_id: str) -> SyncState:
        """List all sync-managed files of a store, keyed by logical path.

        Files without a valid sync marker are ignored. When two files claim
        the same logical path, the most recently uploaded one wins; ties fall
        back to the one listed last.

        Args:
            store_id: Store identifier

        Returns:
            Mapping of logical path to RemoteFileRecord

        Raises:
            RemoteStateError: If the store files cannot be listed
        """
        state: SyncState = {}
        listed = 0
        try:
            async for store_file in self.client.iter_store_files(
                store_id, page_size=self.page_size
            ):
                listed += 1
                record = RemoteFileRecord.from_store_file(store_file)
                if record is None:
                    file_id = (
                        store_file.get("id") if isinstance(store_file, dict) else None
                    )
                    logger.debug(f"Skipping file {file_id} without sync marker")
                    continue

                existing = state.get(record.file_path)
                if existing is not None:
                    logger.warning(
                        f"Duplicate remote entries for {record.file_path}: "
                        f"{existing.file_id} and {record.file_id}"
                    )
                    if not _prefer(existing, record):
                        continue
                state[record.file_path] = record
        except MxbaiAPIError as e:
            raise RemoteStateError(
                f"Failed to list files of store {store_id}: {e}"
            ) from e

        logger.debug(f"Listed {listed} remote file(s), {len(state)} sync-managed")
        return state

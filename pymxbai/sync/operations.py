"""Per-file remote operations performed by a sync."""

import logging
from typing import Any, Optional, Protocol

from .detectors import ChangeRecord
from .git import GitInfo
from .hashing import hash_file
from .state import SyncMarker, build_file_metadata

logger = logging.getLogger(__name__)


class StoreFileClient(Protocol):
    """Part of the remote client needed to apply changes."""

    async def upload_file(
        self,
        store: str,
        file_path: Any,
        metadata: Optional[dict[str, Any]] = None,
        strategy: Optional[str] = None,
    ) -> Any: ...

    async def delete_store_file(self, store: str, file_id: str) -> Any: ...


class EmptyFileError(Exception):
    """Raised when a file has no content and cannot be uploaded."""


class SyncOperations:
    """Uploads and deletes single files on behalf of the executor."""

    def __init__(self, client: StoreFileClient):
        """Initialize sync operations.

        Args:
            client: Remote store client
        """
        self.client = client

    async def upload(
        self,
        store_id: str,
        record: ChangeRecord,
        strategy: Optional[str] = None,
        user_metadata: Optional[dict[str, Any]] = None,
        git_info: Optional[GitInfo] = None,
    ) -> Any:
        """Upload one added or modified file with its sync marker.

        Args:
            store_id: Store identifier
            record: Change record of the file
            strategy: Parsing strategy
            user_metadata: Metadata merged under the sync marker
            git_info: Repository identity recorded in the marker

        Returns:
            The created store file

        Raises:
            EmptyFileError: If the file had no content at analysis time
        """
        if record.size == 0:
            raise EmptyFileError(f"{record.logical_path} is empty")

        fingerprint = record.local_fingerprint or await hash_file(record.path)
        marker = SyncMarker.build(record.logical_path, fingerprint, git_info)
        metadata = build_file_metadata(marker, user_metadata)

        logger.debug(f"Uploading {record.logical_path} ({fingerprint})")
        return await self.client.upload_file(
            store_id, record.path, metadata=metadata, strategy=strategy
        )

    async def delete(self, store_id: str, record: ChangeRecord) -> Any:
        """Delete the remote copy of a modified or deleted file."""
        if not record.file_id:
            raise ValueError(f"No remote file id for {record.logical_path}")
        logger.debug(f"Deleting {record.logical_path} ({record.file_id})")
        return await self.client.delete_store_file(store_id, record.file_id)

"""Applies a change set to a store with bounded concurrency.

Deletions run first as one batch, uploads second as another. Both batches
share a single semaphore, so at most ``concurrency`` operations are in flight
at any time. Every operation settles into a ``SyncResult``; a failing file
never cancels its siblings.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..metadata import MetadataResolver
from ..utils import MAX_PARALLEL, MIN_PARALLEL
from .analyzer import ChangeSet
from .detectors import ChangeRecord
from .git import GitInfo
from .operations import EmptyFileError, StoreFileClient, SyncOperations

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 100


@dataclass
class SyncResult:
    """Outcome of one upload or delete."""

    record: ChangeRecord
    """Change record the operation was performed for"""

    success: bool
    """Whether the operation succeeded"""

    skipped: bool = False
    """True for empty files that were not uploaded"""

    error: Optional[str] = None
    """Error message of a failed operation"""

    def to_dict(self) -> dict[str, Any]:
        data = {"path": self.record.logical_path, "success": self.success}
        if self.skipped:
            data["skipped"] = True
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class PhaseResults:
    """Results of one phase, split by outcome."""

    successful: list[SyncResult] = field(default_factory=list)
    failed: list[SyncResult] = field(default_factory=list)

    def add(self, result: SyncResult) -> None:
        if result.success:
            self.successful.append(result)
        else:
            self.failed.append(result)

    @property
    def skipped(self) -> list[SyncResult]:
        return [r for r in self.failed if r.skipped]

    @property
    def errors(self) -> list[SyncResult]:
        """Failed results that were not skipped."""
        return [r for r in self.failed if not r.skipped]

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": [r.to_dict() for r in self.successful],
            "failed": [r.to_dict() for r in self.failed],
        }


@dataclass
class SyncResults:
    """Aggregated results of a sync execution."""

    deletions: PhaseResults = field(default_factory=PhaseResults)
    uploads: PhaseResults = field(default_factory=PhaseResults)

    @property
    def has_failures(self) -> bool:
        """True if any operation failed for a reason other than an empty file."""
        return bool(self.deletions.errors or self.uploads.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "deletions": self.deletions.to_dict(),
            "uploads": self.uploads.to_dict(),
        }


ResultCallback = Callable[[str, SyncResult], None]


class SyncExecutor:
    """Executes the uploads and deletions of a change set."""

    def __init__(
        self,
        client: StoreFileClient,
        concurrency: int = DEFAULT_CONCURRENCY,
        on_result: Optional[ResultCallback] = None,
    ):
        """Initialize the executor.

        Args:
            client: Remote store client
            concurrency: Maximum number of operations in flight
            on_result: Called with the phase name and result of each operation

        Raises:
            ValueError: If concurrency is outside the allowed range
        """
        if not MIN_PARALLEL <= concurrency <= MAX_PARALLEL:
            raise ValueError(
                f"Concurrency must be between {MIN_PARALLEL} and {MAX_PARALLEL}"
            )
        self.operations = SyncOperations(client)
        self.concurrency = concurrency
        self.on_result = on_result

    async def _settle(
        self,
        phase: str,
        record: ChangeRecord,
        operation: Callable[[], Awaitable[Any]],
        semaphore: asyncio.Semaphore,
    ) -> SyncResult:
        async with semaphore:
            start = time.monotonic()
            try:
                await operation()
                result = SyncResult(record, success=True)
            except EmptyFileError:
                result = SyncResult(
                    record, success=False, skipped=True, error="Empty file"
                )
            except Exception as e:
                result = SyncResult(record, success=False, error=str(e) or repr(e))
            elapsed = time.monotonic() - start

        status = "ok" if result.success else ("skipped" if result.skipped else "failed")
        logger.debug(f"{phase} {record.logical_path}: {status} in {elapsed:.2f}s")
        if self.on_result:
            try:
                self.on_result(phase, result)
            except Exception as e:
                logger.warning(
                    f"Result callback failed for {record.logical_path}: {e!r}"
                )
        return result

    async def execute(
        self,
        store_id: str,
        change_set: ChangeSet,
        strategy: Optional[str] = None,
        metadata: Optional[MetadataResolver] = None,
        git_info: Optional[GitInfo] = None,
    ) -> SyncResults:
        """Apply a change set.

        Args:
            store_id: Store identifier
            change_set: Changes to apply
            strategy: Parsing strategy for uploads
            metadata: User metadata attached to uploaded files
            git_info: Repository identity recorded in sync markers

        Returns:
            SyncResults with per-file outcomes of both phases
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        results = SyncResults()
        git_info = git_info if git_info and git_info.is_repo else None

        deletions = change_set.deletions
        if deletions:
            logger.debug(f"Deleting {len(deletions)} remote file(s)")
            for result in await asyncio.gather(
                *(
                    self._settle(
                        "delete",
                        record,
                        lambda r=record: self.operations.delete(store_id, r),
                        semaphore,
                    )
                    for record in deletions
                )
            ):
                results.deletions.add(result)

        uploads = change_set.uploads
        if uploads:
            logger.debug(f"Uploading {len(uploads)} file(s)")
            for result in await asyncio.gather(
                *(
                    self._settle(
                        "upload",
                        record,
                        lambda r=record: self.operations.upload(
                            store_id,
                            r,
                            strategy=strategy,
                            user_metadata=(
                                metadata.for_path(r.logical_path) if metadata else None
                            ),
                            git_info=git_info,
                        ),
                        semaphore,
                    )
                    for record in uploads
                )
            ):
                results.uploads.add(result)

        return results

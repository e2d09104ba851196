"""End-to-end sync invocation.

A run moves through resolving the store, loading its remote state, analyzing
local changes, an optional confirmation, executing and reporting. Setup
failures move the engine to ``FAILED`` before anything remote is changed.
"""

import inspect
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Union

from ..exceptions import RevisionUnavailableError
from ..metadata import MetadataResolver
from ..store import resolve_store
from .analyzer import ChangeAnalyzer, ChangeSet
from .executor import DEFAULT_CONCURRENCY, SyncExecutor, SyncResult, SyncResults
from .git import GitInfo, GitRepository
from .report import SyncReporter
from .state import SyncStateReader

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[ChangeSet], Union[bool, Awaitable[bool]]]


class ExecutionProgress(Protocol):
    """Receives progress while a change set is executed."""

    def start(self, change_set: ChangeSet) -> None: ...

    def advance(self, phase: str, result: SyncResult) -> None: ...

    def stop(self) -> None: ...


class SyncPhase(str, Enum):
    """States of a sync invocation."""

    IDLE = "idle"
    RESOLVING = "resolving"
    LOADING = "loading"
    ANALYZING = "analyzing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING = "executing"
    REPORTING = "reporting"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class SyncOutcome:
    """Result of a sync invocation."""

    phase: SyncPhase
    """Terminal phase reached"""

    store: dict[str, Any]
    """Resolved store object"""

    change_set: ChangeSet
    """Computed changes"""

    git_info: GitInfo
    """Repository identity at sync time"""

    results: Optional[SyncResults] = None
    """Execution results (None for dry runs, empty diffs and cancellations)"""

    dry_run: bool = False

    @property
    def cancelled(self) -> bool:
        return self.phase == SyncPhase.CANCELLED

    @property
    def has_failures(self) -> bool:
        return self.results is not None and self.results.has_failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "store": self.store.get("id"),
            "phase": self.phase.value,
            "dry_run": self.dry_run,
            "changes": self.change_set.to_dict(),
            "results": self.results.to_dict() if self.results else None,
        }


class SyncEngine:
    """Runs a sync of local files into a store."""

    def __init__(
        self,
        client: Any,
        base_dir: Optional[Path] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        repository: Optional[GitRepository] = None,
        reporter: Optional[SyncReporter] = None,
        progress: Optional[ExecutionProgress] = None,
    ):
        """Initialize the sync engine.

        Args:
            client: Remote store client
            base_dir: Sync base directory (defaults to the working directory)
            concurrency: Maximum number of remote operations in flight
            repository: Git repository (defaults to one at base_dir)
            reporter: Receives human-readable progress, None for silent runs
            progress: Receives execution progress, None to disable
        """
        self.client = client
        self.base_dir = (base_dir or Path.cwd()).resolve()
        self.concurrency = concurrency
        self.repository = repository or GitRepository(self.base_dir)
        self.reporter = reporter
        self.progress = progress
        self.phase = SyncPhase.IDLE

    def _enter(self, phase: SyncPhase) -> None:
        logger.debug(f"Sync phase: {self.phase.value} -> {phase.value}")
        self.phase = phase

    async def run(
        self,
        store: str,
        patterns: list[str],
        strategy: Optional[str] = None,
        from_revision: Optional[str] = None,
        dry_run: bool = False,
        force: bool = False,
        assume_yes: bool = False,
        metadata: Optional[MetadataResolver] = None,
        confirm: Optional[ConfirmCallback] = None,
    ) -> SyncOutcome:
        """Sync files matching patterns into a store.

        Args:
            store: Store name, alias or identifier
            patterns: Glob patterns selecting local files
            strategy: Parsing strategy for uploads
            from_revision: Detect changes with git since this revision
            dry_run: Analyze and report without changing anything
            force: Re-upload every matched file
            assume_yes: Skip the confirmation step
            metadata: User metadata attached to uploaded files
            confirm: Asked before executing; returning False cancels

        Returns:
            SyncOutcome describing the run

        Raises:
            SyncSetupError: If the store, its remote state or the requested
                git revision is unavailable
        """
        try:
            return await self._run(
                store,
                patterns,
                strategy,
                from_revision,
                dry_run,
                force,
                assume_yes,
                metadata,
                confirm,
            )
        except BaseException:
            self._enter(SyncPhase.FAILED)
            raise

    async def _run(
        self,
        store_name: str,
        patterns: list[str],
        strategy: Optional[str],
        from_revision: Optional[str],
        dry_run: bool,
        force: bool,
        assume_yes: bool,
        metadata: Optional[MetadataResolver],
        confirm: Optional[ConfirmCallback],
    ) -> SyncOutcome:
        self._enter(SyncPhase.RESOLVING)
        store = await resolve_store(self.client, store_name)
        store_id = store["id"]
        logger.debug(f"Resolved store {store_name!r} to {store_id}")

        self._enter(SyncPhase.LOADING)
        git_info = await self.repository.get_info()
        if from_revision and not git_info.is_repo and not force:
            raise RevisionUnavailableError(
                f"Changes since {from_revision} requested, but {self.base_dir} "
                "is not inside a git repository"
            )
        synced_files = await SyncStateReader(self.client).list_synced_files(store_id)
        logger.debug(f"Found {len(synced_files)} synced file(s) in store")

        self._enter(SyncPhase.ANALYZING)
        if self.reporter:
            self.reporter.detection_mode(git_info, from_revision, force)
        analyzer = ChangeAnalyzer(self.base_dir, metadata, self.repository)
        change_set = await analyzer.analyze(
            patterns,
            synced_files,
            git_info,
            from_revision=from_revision,
            force_upload=force,
        )
        outcome = SyncOutcome(
            phase=SyncPhase.DONE,
            store=store,
            change_set=change_set,
            git_info=git_info,
            dry_run=dry_run,
        )

        if change_set.is_empty:
            if self.reporter:
                self.reporter.nothing_to_do()
            self._enter(SyncPhase.DONE)
            return outcome

        if dry_run:
            self._enter(SyncPhase.REPORTING)
            if self.reporter:
                self.reporter.change_set(change_set)
                self.reporter.dry_run()
            self._enter(SyncPhase.DONE)
            return outcome

        if self.reporter:
            self.reporter.change_set(change_set)

        if not assume_yes and confirm is not None:
            self._enter(SyncPhase.AWAITING_CONFIRMATION)
            answer = confirm(change_set)
            if inspect.isawaitable(answer):
                answer = await answer
            if not answer:
                if self.reporter:
                    self.reporter.cancelled()
                self._enter(SyncPhase.CANCELLED)
                outcome.phase = SyncPhase.CANCELLED
                return outcome

        self._enter(SyncPhase.EXECUTING)
        on_result = self.progress.advance if self.progress else None
        executor = SyncExecutor(self.client, self.concurrency, on_result)
        if self.progress:
            self.progress.start(change_set)
        try:
            outcome.results = await executor.execute(
                store_id,
                change_set,
                strategy=strategy,
                metadata=metadata,
                git_info=git_info,
            )
        finally:
            if self.progress:
                self.progress.stop()

        self._enter(SyncPhase.REPORTING)
        if self.reporter:
            self.reporter.results(outcome.results, git_info, from_revision, strategy)
        self._enter(SyncPhase.DONE)
        return outcome

"""CLI progress display for sync execution.

Provides a Rich progress bar fed by the sync executor's per-file results.
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.analyzer import ChangeSet
from .sync.executor import SyncResult


class SyncProgressDisplay:
    """Rich-based progress display for sync operations.

    Shows one bar counting finished operations: every deletion and every
    upload counts once, so a modified file advances the bar twice.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the progress display.

        Args:
            console: Console to render on (defaults to stderr)
        """
        self.console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self.failed = 0

    def start(self, change_set: ChangeSet) -> None:
        """Start the display for a change set."""
        total = len(change_set.deletions) + len(change_set.uploads)
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[cyan]{task.fields[current]}"),
            TimeElapsedColumn(),
            console=self.console,
            refresh_per_second=4,
        )
        self._progress.start()
        self._task = self._progress.add_task("Syncing", total=total, current="")

    def advance(self, phase: str, result: SyncResult) -> None:
        """Record one finished operation."""
        if self._progress is None or self._task is None:
            return
        if not result.success and not result.skipped:
            self.failed += 1
        verb = "Deleted" if phase == "delete" else "Uploaded"
        if result.skipped:
            verb = "Skipped"
        elif not result.success:
            verb = "Failed"
        self._progress.update(
            self._task,
            advance=1,
            current=f"{verb} {result.record.logical_path}",
        )

    def stop(self) -> None:
        """Stop the display."""
        if self._progress is None:
            return
        if self._task is not None:
            description = "Sync complete" if not self.failed else "Sync finished"
            self._progress.update(self._task, description=description, current="")
        self._progress.stop()
        self._progress = None
        self._task = None

"""Human-readable summaries of change sets and sync results."""

from typing import Optional

from ..output import OutputFormatter
from ..utils import format_count, format_size
from .analyzer import ChangeSet
from .detectors import ChangeRecord
from .executor import SyncResults
from .git import GitInfo


def _file_line(record: ChangeRecord) -> str:
    size = f" ({format_size(record.size)})" if record.size else ""
    return f"    • {record.logical_path}{size}"


def format_change_summary(change_set: ChangeSet) -> list[str]:
    """Format a change set as summary lines.

    A modification counts as two changes: the old copy is deleted and the new
    one uploaded.
    """
    lines = ["[bold]Changes to apply:[/bold]"]
    sections = [
        ("[yellow]Updated:[/yellow]", change_set.modified),
        ("[green]New:[/green]", change_set.added),
        ("[red]Deleted:[/red]", change_set.deleted),
    ]
    for label, records in sections:
        if not records:
            continue
        lines.append(f"  {label} ({format_count(len(records), 'file')})")
        lines.extend(_file_line(record) for record in records)
        lines.append("")

    total_changes = (
        len(change_set.added) + len(change_set.modified) * 2 + len(change_set.deleted)
    )
    lines.append(
        f"Total: {format_count(total_changes, 'change')} "
        f"({format_count(len(change_set.uploads), 'file')} to upload, "
        f"{format_count(len(change_set.deletions), 'file')} to delete)"
    )
    lines.append(f"Upload size: {format_size(change_set.total_size)}")
    return lines


class SyncReporter:
    """Reports sync progress through an OutputFormatter."""

    def __init__(self, out: OutputFormatter):
        self.out = out

    def detection_mode(
        self, git_info: GitInfo, from_revision: Optional[str], force: bool
    ) -> None:
        if force:
            self.out.success("Force upload enabled - all files will be re-uploaded")
        elif from_revision and git_info.is_repo:
            self.out.success(
                f"Git-based detection enabled (from {from_revision[:7]})"
            )
        else:
            self.out.success("Hash-based detection enabled (comparing file contents)")

    def change_set(self, change_set: ChangeSet) -> None:
        for line in format_change_summary(change_set):
            self.out.print(line)
        self.out.print()

    def nothing_to_do(self) -> None:
        self.out.success("Store is already in sync - no changes needed!")

    def dry_run(self) -> None:
        self.out.warning("Dry run complete: no changes were made")

    def cancelled(self) -> None:
        self.out.warning("Sync cancelled by user")

    def results(
        self,
        results: SyncResults,
        git_info: Optional[GitInfo] = None,
        from_revision: Optional[str] = None,
        strategy: Optional[str] = None,
    ) -> None:
        """Print the final summary with counts and per-file failures."""
        uploads = results.uploads
        deletions = results.deletions

        items = [
            ("Uploaded", format_count(len(uploads.successful), "file")),
            ("Deleted", format_count(len(deletions.successful), "file")),
        ]
        if uploads.skipped:
            items.append(("Skipped (empty)", format_count(len(uploads.skipped), "file")))
        if uploads.errors:
            items.append(("Failed uploads", format_count(len(uploads.errors), "file")))
        if deletions.errors:
            items.append(
                ("Failed deletions", format_count(len(deletions.errors), "file"))
            )
        if strategy:
            items.append(("Strategy", strategy))
        if git_info and git_info.is_repo:
            revision = f"{(git_info.commit or '')[:7]} ({git_info.branch})"
            if from_revision:
                revision = f"{from_revision} → {revision}"
            items.append(("Git", revision))
        self.out.print_summary("Sync Summary", items)

        for result in uploads.skipped:
            self.out.warning(f"Skipped {result.record.logical_path}: empty file")
        for result in deletions.errors:
            self.out.error(
                f"Failed to delete {result.record.logical_path}: {result.error}"
            )
        for result in uploads.errors:
            self.out.error(
                f"Failed to upload {result.record.logical_path}: {result.error}"
            )

        if results.has_failures:
            self.out.error("Sync completed with errors")
        else:
            self.out.success("Sync completed successfully")

"""Tests for change summaries, sync reports and the progress display."""

from io import StringIO
from pathlib import Path

from rich.console import Console

from pymxbai.cli_progress import SyncProgressDisplay
from pymxbai.output import OutputFormatter
from pymxbai.sync.analyzer import ChangeSet
from pymxbai.sync.detectors import ChangeKind, ChangeRecord
from pymxbai.sync.executor import PhaseResults, SyncResult, SyncResults
from pymxbai.sync.git import GitInfo
from pymxbai.sync.report import SyncReporter, format_change_summary


def _record(logical: str, kind: ChangeKind, size=None, file_id=None):
    return ChangeRecord(
        path=Path("/base") / logical,
        logical_path=logical,
        kind=kind,
        size=size,
        file_id=file_id,
    )


def _formatter(quiet: bool = False) -> tuple[OutputFormatter, StringIO]:
    buffer = StringIO()
    console = Console(file=buffer, width=120, color_system=None)
    return OutputFormatter(quiet=quiet, console=console, err_console=console), buffer


class TestFormatChangeSummary:
    """Tests for change set summary lines."""

    def test_sections_and_totals(self):
        change_set = ChangeSet.from_records(
            [
                _record("new.md", ChangeKind.ADDED, size=2048),
                _record("mod.md", ChangeKind.MODIFIED, size=10, file_id="f1"),
                _record("gone.md", ChangeKind.DELETED, file_id="f2"),
            ]
        )

        lines = format_change_summary(change_set)
        text = "\n".join(lines)

        assert "Updated:[/yellow] (1 file)" in text
        assert "New:[/green] (1 file)" in text
        assert "Deleted:[/red] (1 file)" in text
        assert "new.md (2.0 KB)" in text
        assert "Total: 4 changes (2 files to upload, 2 files to delete)" in text
        assert lines[-1] == "Upload size: 2.0 KB"

    def test_empty_sections_are_omitted(self):
        change_set = ChangeSet.from_records([_record("a.md", ChangeKind.ADDED, 1)])

        text = "\n".join(format_change_summary(change_set))

        assert "Updated" not in text
        assert "Deleted:" not in text
        assert "Total: 1 change (1 file to upload, 0 files to delete)" in text


class TestSyncReporter:
    """Tests for the sync reporter."""

    def test_results_summary(self):
        out, buffer = _formatter()
        uploads = PhaseResults()
        uploads.add(SyncResult(_record("a.md", ChangeKind.ADDED), success=True))
        uploads.add(
            SyncResult(
                _record("e.md", ChangeKind.ADDED),
                success=False,
                skipped=True,
                error="Empty file",
            )
        )
        deletions = PhaseResults()
        deletions.add(
            SyncResult(
                _record("x.md", ChangeKind.DELETED, file_id="f1"),
                success=False,
                error="File f1 not found",
            )
        )
        results = SyncResults(deletions=deletions, uploads=uploads)
        git_info = GitInfo(commit="abcdef123456", branch="main", is_repo=True)

        SyncReporter(out).results(results, git_info, "HEAD~1", "fast")

        text = buffer.getvalue()
        assert "Sync Summary" in text
        assert "Uploaded: 1 file" in text
        assert "Skipped (empty): 1 file" in text
        assert "Failed deletions: 1 file" in text
        assert "HEAD~1 → abcdef1 (main)" in text
        assert "Failed to delete x.md: File f1 not found" in text
        assert "Sync completed with errors" in text

    def test_success_message(self):
        out, buffer = _formatter()

        SyncReporter(out).results(SyncResults())

        assert "Sync completed successfully" in buffer.getvalue()

    def test_detection_modes(self):
        out, buffer = _formatter()
        reporter = SyncReporter(out)
        repo = GitInfo(commit="abc", branch="main", is_repo=True)

        reporter.detection_mode(repo, None, True)
        reporter.detection_mode(repo, "v1.0", False)
        reporter.detection_mode(GitInfo(), None, False)

        text = buffer.getvalue()
        assert "Force upload enabled" in text
        assert "Git-based detection enabled (from v1.0)" in text
        assert "Hash-based detection enabled" in text

    def test_quiet_still_prints_errors(self):
        out, buffer = _formatter(quiet=True)
        failed = PhaseResults()
        failed.add(
            SyncResult(_record("a.md", ChangeKind.ADDED), success=False, error="boom")
        )

        SyncReporter(out).results(SyncResults(uploads=failed))

        text = buffer.getvalue()
        assert "Sync Summary" not in text
        assert "Failed to upload a.md: boom" in text


class TestSyncProgressDisplay:
    """Tests for the progress display."""

    def test_counts_every_operation(self):
        console = Console(file=StringIO(), width=100)
        display = SyncProgressDisplay(console=console)
        change_set = ChangeSet.from_records(
            [
                _record("a.md", ChangeKind.ADDED, 1),
                _record("m.md", ChangeKind.MODIFIED, 1, "f1"),
            ]
        )

        display.start(change_set)
        task = display._progress.tasks[0]
        assert task.total == 3

        display.advance(
            "delete", SyncResult(_record("m.md", ChangeKind.MODIFIED), success=True)
        )
        display.advance(
            "upload",
            SyncResult(_record("a.md", ChangeKind.ADDED), success=False, error="x"),
        )
        assert task.completed == 2
        assert display.failed == 1

        display.stop()
        assert display._progress is None

    def test_advance_before_start_is_ignored(self):
        display = SyncProgressDisplay(console=Console(file=StringIO()))

        display.advance(
            "upload", SyncResult(_record("a.md", ChangeKind.ADDED), success=True)
        )
        display.stop()

        assert display.failed == 0

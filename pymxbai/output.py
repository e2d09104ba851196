"""Output formatting for the pymxbai CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Formats human-readable and JSON output.

    Human-readable messages are written to stderr so that ``--json`` output on
    stdout stays machine-parseable.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Whether results are emitted as JSON
            quiet: Suppress non-essential output
            console: Console for primary output (stdout)
            err_console: Console for status messages (stderr)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def print(self, message: str = "") -> None:
        """Print a plain line unless quiet."""
        if not self.quiet:
            self.err_console.print(message, highlight=False)

    def info(self, message: str) -> None:
        """Print an informational message unless quiet."""
        if not self.quiet:
            self.err_console.print(message, highlight=False)

    def success(self, message: str) -> None:
        """Print a success message unless quiet."""
        if not self.quiet:
            self.err_console.print(f"[green]✓[/green] {message}", highlight=False)

    def warning(self, message: str) -> None:
        """Print a warning message unless quiet."""
        if not self.quiet:
            self.err_console.print(f"[yellow]⚠[/yellow] {message}", highlight=False)

    def error(self, message: str) -> None:
        """Print an error message. Errors are never suppressed."""
        self.err_console.print(f"[red]✗[/red] {message}", highlight=False)

    def output_json(self, data: Any) -> None:
        """Write data as indented JSON to stdout."""
        self.console.print_json(json.dumps(data, default=str))

    def print_table(
        self, title: str, columns: list[str], rows: list[list[str]]
    ) -> None:
        """Print a table of rows.

        Args:
            title: Table title
            columns: Column headers
            rows: Table rows, one list of cell strings per row
        """
        table = Table(title=title, show_lines=False)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled key/value summary unless quiet."""
        if self.quiet:
            return
        self.err_console.print(f"\n[bold]{title}[/bold]")
        for key, value in items:
            self.err_console.print(f"  {key}: {value}", highlight=False)

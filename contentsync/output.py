"""Console output formatting for the command line interface."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Formats messages, tables and summaries for the terminal.

    Messages go to stderr so that listings and JSON output on stdout stay
    machine readable.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def info(self, message: str) -> None:
        """Print an informational message (suppressed when quiet)."""
        if not self.quiet and not self.json_output:
            self.err_console.print(message, highlight=False)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.err_console.print(f"[green]{message}[/green]", highlight=False)

    def warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]{message}[/yellow]", highlight=False)

    def error(self, message: str) -> None:
        self.err_console.print(f"[bold red]Error:[/bold red] {message}", highlight=False)

    def print(self, message: str) -> None:
        """Print a result line to stdout (never suppressed)."""
        self.console.print(message, highlight=False, markup=False)

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data, default=str))

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            items: (label, value) rows
        """
        if self.quiet:
            return
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Label", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.err_console.print(table)

"""Console output formatting for the CLI."""

import json
import sys
from typing import Any

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Writes user-facing messages, honouring quiet and JSON modes."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress informational messages
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    def print(self, message: str = "") -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        if not self.json_output:
            self.err_console.print(f"[yellow]warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]{message}[/red]")

    def output_json(self, data: Any) -> None:
        sys.stdout.write(json.dumps(data, indent=2) + "\n")

    def file_list(self, title: str, paths: list[str]) -> None:
        """Print a heading followed by one ``- path`` line per file."""
        if self.json_output:
            self.output_json(paths)
            return
        self.console.print(title)
        for path in paths:
            self.console.print(f"- {path}", markup=False)

    def error_map(self, title: str, errors: dict[str, Exception]) -> None:
        """Print a heading followed by one ``- path: error`` line per file."""
        if self.json_output:
            self.output_json({key: str(error) for key, error in errors.items()})
            return
        self.err_console.print(f"[red]{title}[/red]")
        for key in sorted(errors):
            self.err_console.print(f"- {key}: {errors[key]}", markup=False)

    def themes_table(self, themes: list[dict[str, Any]]) -> None:
        """Print themes as a table."""
        if self.json_output:
            self.output_json(themes)
            return
        table = Table("ID", "Role", "Name")
        for theme in themes:
            table.add_row(
                str(theme.get("id", "")),
                str(theme.get("role", "")),
                str(theme.get("name", "")),
            )
        self.console.print(table)

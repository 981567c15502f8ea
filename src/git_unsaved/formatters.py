"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from .core import RepositoryReport, ScanConfig, ScanSummary, StatusVector

# (symbol, style) per status flag, in StatusVector order
SYMBOLS = (
    ("↑", "bold cyan"),
    ("!", "bold red"),
    ("~", "bold yellow"),
    ("*", "bold green"),
)


def format_symbols(status: StatusVector) -> str:
    """Render the four flag columns, a space for each false flag."""
    parts = []
    for (symbol, style), flag in zip(SYMBOLS, status.as_tuple()):
        parts.append(f"[{style}]{symbol}[/]" if flag else " ")
    return "".join(parts)


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def _print_plain(self, text: str):
        if text:
            self.console.print(text, markup=False)

    def _print_section(self, title: str, lines: list[str]):
        self.console.print(f"{title}:", markup=False)
        for line in lines:
            self.console.print(line, markup=False)

    def print_report(self, report: RepositoryReport, config: ScanConfig):
        """Print one repository line followed by any detail sections."""
        status = report.status
        self.console.print(f"{format_symbols(status)} [cyan]{escape(str(report.path))}[/]")

        if config.very_verbose:
            self._print_plain(report.sync_output)

        if config.verbose:
            if status.untracked_files:
                self._print_section("Untracked files", report.untracked_files)
            if status.uncommitted_changes:
                self._print_section("Uncommitted changes", report.dirty_files)
            if report.references:
                self._print_section("Unpushed references", [str(r) for r in report.references])
            if config.very_verbose:
                self._print_plain(report.status_text)
            self.console.print()

    def print_json(self, reports: list[RepositoryReport], summary: ScanSummary):
        """Print all reports as a single JSON document."""
        output = {
            "repositories": [r.to_dict() for r in reports],
            "summary": summary.to_dict(),
        }
        self.console.print_json(json.dumps(output))

"""Console rendering for the CLI, built on rich."""

import json
import logging
from typing import Any, Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.box import ROUNDED, SIMPLE

from linearkit.domain.models.batch import BatchResult
from linearkit.domain.models.common import OperationStats, ValidationReport
from linearkit.domain.models.session import OperationRecord

logger = logging.getLogger(__name__)


class ConsoleDisplay:
    """Renders query results, stats and validation reports."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        return self._console

    def display_info(self, message: str) -> None:
        self._console.print(f"[cyan]{message}[/cyan]")

    def display_error(self, message: str) -> None:
        self._console.print(Panel(message, title="Error", border_style="red", box=ROUNDED))

    def display_data(self, data: Any, title: str = "Result") -> None:
        rendered = json.dumps(data, indent=2, default=str, ensure_ascii=False)
        self._console.print(Panel(Syntax(rendered, "json", word_wrap=True), title=title, box=ROUNDED))

    def display_validation(self, report: ValidationReport, graph: dict) -> None:
        table = Table(title="Module dependencies", box=SIMPLE)
        table.add_column("Module", style="bold")
        table.add_column("Depends on")
        for name, deps in graph.items():
            table.add_row(name, ", ".join(deps) or "-")
        self._console.print(table)
        if report["valid"]:
            self._console.print("[green]Dependency graph is valid.[/green]")
        else:
            for error in report["errors"]:
                self._console.print(f"[red]{error}[/red]")

    def display_stats(self, stats: OperationStats, recent: Iterable[OperationRecord] = ()) -> None:
        summary = Table(title="Operation stats", box=SIMPLE, show_header=False)
        summary.add_row("Total", str(stats["total"]))
        summary.add_row("Successful", str(stats["successful"]))
        summary.add_row("Failed", str(stats["failed"]))
        summary.add_row("Success rate", f"{stats['success_rate']:.1f}%")
        summary.add_row("Avg duration", f"{stats['avg_duration_ms']:.1f} ms")
        self._console.print(summary)

        records = list(recent)
        if records:
            table = Table(title="Recent operations", box=SIMPLE)
            table.add_column("When")
            table.add_column("Operation")
            table.add_column("Result")
            table.add_column("Duration", justify="right")
            for record in records:
                table.add_row(
                    record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                    record.name,
                    "[green]ok[/green]" if record.success else "[red]failed[/red]",
                    f"{record.duration_ms:.0f} ms",
                )
            self._console.print(table)

    def display_batch_result(self, result: BatchResult) -> None:
        table = Table(title=f"Batch {result.batch_id}", box=SIMPLE)
        table.add_column("#", justify="right")
        table.add_column("Result")
        table.add_column("Detail")
        for item in result.results:
            detail = item.error if not item.success else json.dumps(item.data, default=str)[:80]
            table.add_row(str(item.index), "[green]ok[/green]" if item.success else "[red]failed[/red]", detail or "")
        self._console.print(table)
        self._console.print(f"{result.successful}/{result.total} successful, {result.failed} failed")

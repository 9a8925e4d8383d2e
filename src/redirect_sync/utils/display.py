"""
Rich Terminal Display Components.

Provides console UI for:
- Batch progress bar with ETA
- Summary reports
- Status messages
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table


console = Console()


class ProgressDisplay:
    """
    Rich progress bar for committed batches.

    One bar per run; a resumed run starts the bar at its checkpoint so the
    operator sees how much was already done by earlier invocations.

    Example:
        with ProgressDisplay() as display:
            engine = SyncEngine(settings, client, on_progress=display.update)
            await engine.import_redirects(path)
    """

    def __init__(self, target: Console | None = None) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            TaskProgressColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=target or console,
        )
        self._tasks: dict[str, Any] = {}
        self._started = False

    def start(self) -> None:
        """Start rendering."""
        if not self._started:
            self.progress.start()
            self._started = True

    def stop(self) -> None:
        """Stop rendering."""
        if self._started:
            self.progress.stop()
            self._started = False

    def update(self, kind: str, committed: int, total: int) -> None:
        """Progress sink for SyncEngine: record committed batches of a run."""
        self.start()
        task_id = self._tasks.get(kind)
        if task_id is None:
            label = "Importing redirects..." if kind == "imports" else "Deleting redirects..."
            task_id = self.progress.add_task(label, total=total, completed=committed)
            self._tasks[kind] = task_id
        else:
            self.progress.update(task_id, total=total, completed=committed)

    def __enter__(self) -> "ProgressDisplay":
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()


def print_summary(stats: dict[str, Any]) -> None:
    """Print a summary table after a run."""
    table = Table(title="Sync Summary", border_style="green")

    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Operation", stats.get("operation", "N/A"))
    table.add_row("Duration", f"{stats.get('duration', 0):.1f}s")
    table.add_row("Attempts", str(stats.get("attempts", 0)))
    table.add_row(
        "Batches",
        f"{stats.get('batches_committed', 0)}/{stats.get('batches_total', 0)}",
    )
    table.add_row("Resumed From Batch", str(stats.get("resumed_from", 0)))
    table.add_row("Redirects", f"{stats.get('records_total', 0):,}")

    console.print(table)


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red bold]Error:[/red bold] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green bold]✓[/green bold] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow bold]⚠[/yellow bold] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")

"""Console rendering and progress helpers for the mediajob CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import Completed, Failed, Job, Processing, UploadState, Uploading
from .utils.strings import capitalize_first

console = Console()


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]mediajob[/bold green]",
        subtitle="[dim]upload & process[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_jobs(jobs: Iterable[Job], total: int) -> None:
    """Render a job listing."""
    table = Table(title=f"Jobs ({total})")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Created", style="dim")

    for job in jobs:
        percentage = f"{job.progress.percentage:.0f}%" if job.progress else "-"
        table.add_row(job.id, capitalize_first(job.status), percentage, job.created_at or "-")

    console.print(table)


def render_results(state: Completed) -> None:
    """Print download URLs of a completed job."""
    console.print(f"[green]Completed:[/green] job {state.job.id}")
    urls = state.download_urls
    for variant, versions in urls.commercial_images.items():
        for version, url in versions.items():
            console.print(f"  [bold]{variant}[/bold]/{version}: {url}")
    for frame in urls.frames:
        console.print(f"  [dim]frame {frame.frame_id}:[/dim] {frame.download_url}")


class JobProgressDisplay:
    """Two-phase progress renderer (upload bar, then processing bar)."""

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)
        self.filename = self.file_path.name
        try:
            self.file_size = self.file_path.stat().st_size
        except OSError:
            self.file_size = 0
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.description}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("{task.fields[step]}"),
            TimeElapsedColumn(),
            expand=False,
            console=console,
        )
        self._upload_task: Optional[TaskID] = None
        self._process_task: Optional[TaskID] = None
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self._progress.start()
        self._upload_task = self._progress.add_task(
            f"Uploading {self.filename[:40]}",
            total=100,
            step=_human_size(self.file_size),
        )
        self._started = True

    def stop(self) -> None:
        if self._started:
            self._progress.stop()
            self._started = False

    def on_state(self, state: UploadState) -> None:
        if not self._started:
            self.start()

        if isinstance(state, Uploading):
            self._progress.update(self._upload_task, completed=state.progress * 100)
            return

        if isinstance(state, Processing):
            self._progress.update(self._upload_task, completed=100)
            if self._process_task is None:
                self._process_task = self._progress.add_task("Processing", total=100, step="")
            self._progress.update(
                self._process_task,
                completed=state.progress,
                step=state.step,
            )

    def complete(self, state: UploadState) -> None:
        self.stop()
        if isinstance(state, Completed):
            render_results(state)
        elif isinstance(state, Failed):
            console.print(f"[red]Failed:[/red] {self.filename} - {state.message}")
        else:
            console.print(f"[yellow]{state.status.capitalize()}:[/yellow] {self.filename}")

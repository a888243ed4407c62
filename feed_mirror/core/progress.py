"""
Progress bar handling for feed-mirror using Rich library.

The append loop of a sync pass can take a while on large first syncs
(one API call plus a throttling delay per video), so the CLI shows a
progress bar while it runs. The sync engine itself never imports Rich:
it receives a progress factory and defaults to NullProgress.

Usage:
    from feed_mirror.core.progress import AppendProgressBar

    with AppendProgressBar(total=12) as progress:
        for video_id in pending:
            outcome = append(video_id)
            progress.update(outcome)
"""

from typing import Optional

from rich import get_console
from rich.console import OverflowMethod
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskID,
)
from rich.style import StyleType
from rich.text import Text
from rich.theme import Theme


# Outcome labels passed to update()
OUTCOME_ADDED = "added"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_FAILED = "failed"


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(204,0,0)",  # YouTube red
    "bar.finished": "rgb(114,156,31)",  # Green when done
    "bar.pulse": "rgb(204,0,0)",
    "progress.percentage": "white",
})


class SizedTextColumn(ProgressColumn):
    """
    Markup text column padded or cut to a fixed width.
    """

    def __init__(
        self,
        text_format: str,
        width: int,
        style: StyleType = "none",
        overflow: OverflowMethod = "ellipsis",
    ) -> None:
        self.text_format = text_format
        self.width = width
        self.style = style
        self.overflow: OverflowMethod = overflow
        super().__init__()

    def render(self, task: Task) -> Text:
        text = Text.from_markup(self.text_format.format(task=task), style=self.style)
        text.truncate(max_width=self.width, overflow=self.overflow, pad=True)
        return text


class NullProgress:
    """Progress object that does nothing; the engine's default."""

    def __init__(self, total: int = 0, description: str = "") -> None:
        self.total = total

    def __enter__(self) -> "NullProgress":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        pass

    def update(self, outcome: str) -> None:
        pass


class AppendProgressBar:
    """
    Progress bar for the append loop.

    Displays:
    - Description (e.g., "Adding")
    - Status: ✓ added, = already in playlist, ✗ failed
    - Progress bar
    - Percentage

    Example:
        Adding          ✓ 7  = 1  ✗ 0           ━━━━━━━━━━━━━━━━━  66%
    """

    def __init__(self, total: int, description: str = "Adding", status_width: int = 30) -> None:
        """
        Initialize the progress bar.

        Args:
            total: Total number of videos to append.
            description: Description to show on the left.
            status_width: Width of the status column.
        """
        self.total = total
        self.description = description
        self.completed = 0
        self.added = 0
        self.duplicates = 0
        self.failed = 0

        self.console = get_console()

        self.progress = Progress(
            SizedTextColumn("[white]{task.description}", width=15),
            SizedTextColumn("{task.fields[status]}", width=status_width, style="white"),
            BarColumn(bar_width=40, finished_style="green"),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            transient=False,
            refresh_per_second=10,
        )

        self.task_id: Optional[TaskID] = None
        self._started = False

    def __enter__(self) -> "AppendProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        """Start the progress bar (can be called manually)."""
        if not self._started:
            self.console.push_theme(PROGRESS_THEME)
            self.progress.start()
            self.task_id = self.progress.add_task(
                description=self.description,
                total=self.total,
                status=self._get_status_text(),
            )
            self._started = True

    def stop(self) -> None:
        if self._started:
            self.progress.stop()
            self.console.pop_theme()
            self._started = False

    def _get_status_text(self) -> str:
        return (
            f"[green]✓ {self.added}[/green]  "
            f"[yellow]= {self.duplicates}[/yellow]  "
            f"[red]✗ {self.failed}[/red]"
        )

    def update(self, outcome: str) -> None:
        """
        Record one processed video.

        Args:
            outcome: OUTCOME_ADDED, OUTCOME_DUPLICATE or OUTCOME_FAILED.
        """
        self.completed += 1
        if outcome == OUTCOME_ADDED:
            self.added += 1
        elif outcome == OUTCOME_DUPLICATE:
            self.duplicates += 1
        else:
            self.failed += 1

        if self.task_id is not None:
            self.progress.update(
                self.task_id,
                completed=self.completed,
                status=self._get_status_text(),
            )

"""Render progress, matches, and the final statistics to the terminal."""

import json
import os
import sys
from typing import List, Optional, TextIO

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)
from rich.text import Text

from .resolve import MatchListener
from .utils.types import Color, FindResult, Summary


def make_console(color: Color = Color.AUTO, file: Optional[TextIO] = None) -> Console:
    """Return a console honoring the color choice."""
    if color == Color.ALWAYS:
        return Console(file=file, force_terminal=True, highlight=False)
    if color == Color.NEVER:
        return Console(file=file, color_system=None, highlight=False)
    return Console(file=file, highlight=False)


def display_path(path: str) -> str:
    """Return `path` printable on any UTF-8 stream.

    Undecodable bytes in a name (surrogate escapes from `os.scandir`)
    are shown as U+FFFD.
    """
    return os.fsencode(path).decode("utf-8", "replace")


def summarize(result: FindResult) -> Summary:
    """Compute the statistics block for `result`."""
    if result.elapsed > 0:
        rate = round(result.symlinks_scanned / result.elapsed)
    else:
        rate = result.symlinks_scanned
    return {
        "folders": result.directories_visited,
        "files": result.files_visited,
        "symlinks": result.symlinks_scanned,
        "matches": len(result.matches),
        "elapsed": result.elapsed,
        "rate": rate,
    }


class Reporter(MatchListener):
    """Reporting sink: spinner while walking, bar while checking, streamed matches.

    Notifications arrive from many worker threads; rich's progress and
    console output are internally locked.
    """

    def __init__(self, console: Console, tui: bool = True, stream: bool = True):
        self.console = console
        self.stream = stream
        self.streamed = 0
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self.tui = tui and console.is_terminal

    # MatchListener ------------------------------------------------------------------

    def walk_started(self) -> None:
        if not self.tui:
            return
        self._progress = Progress(
            SpinnerColumn(style="green"),
            TextColumn("{task.description}"),
            BarColumn(bar_width=40, style="blue", complete_style="cyan"),
            MofNCompleteColumn(),
            console=self.console,
            transient=True,
        )
        self._progress.start()
        self._task = self._progress.add_task("Walking filesystem…", total=None)

    def walk_finished(self, n_candidates: int) -> None:
        if self._progress is None or self._task is None:
            return
        self._progress.update(
            self._task, description="Checking symlinks", total=n_candidates, completed=0
        )

    def begin_results(self) -> None:
        self.console.print("")

    def match_found(self, path: str) -> None:
        self.streamed += 1
        self.console.print(Text(display_path(path), style="bold white"), soft_wrap=True)

    def candidate_checked(self) -> None:
        if self._progress is not None and self._task is not None:
            self._progress.advance(self._task)

    # Output -------------------------------------------------------------------------

    def close(self) -> None:
        """Remove the progress display."""
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task = None

    def fatal(self, message: str) -> None:
        """Report the one error that aborts a run."""
        self.close()
        Console(stderr=True, highlight=False).print(f"[bold red]Error:[/bold red] {escape(message)}")

    def render(self, result: FindResult) -> None:
        """Print the matches (unless already streamed) and the statistics."""
        self.close()
        streamed_any = self.stream and self.streamed > 0
        if streamed_any:
            self.console.print("")
        else:
            self.render_box(result.matches)
            self.console.print("")
        self.render_stats(summarize(result))

    def render_box(self, matches: List[str]) -> None:
        """Print the matches in a bordered box."""
        if matches:
            body = Text(
                "\n".join(display_path(m) for m in matches), style="bold white", no_wrap=True
            )
        else:
            body = Text("No matches found.", style="yellow")
        self.console.print(Panel.fit(body, box=box.SQUARE, border_style="cyan"))

    def render_stats(self, summary: Summary) -> None:
        """Print the statistics block."""
        lines = [
            ("Folders traversed:", f"{summary['folders']:,}", "bold cyan"),
            ("Files traversed:", f"{summary['files']:,}", "bold cyan"),
            ("Symlinks scanned:", f"{summary['symlinks']:,}", "bold cyan"),
            ("Matches:", f"{summary['matches']:,}", "bold green"),
        ]
        for label, value, style in lines:
            self.console.print(Text.assemble((label, "dim"), " ", (value, style)))
        self.console.print(Text.assemble(("Elapsed:", "dim"), f" {summary['elapsed']:.2f}s"))
        self.console.print(
            Text.assemble(
                ("Rate:", "dim"),
                " ",
                (f"{summary['rate']:,}", "bold magenta"),
                " ",
                ("symlinks/s", "dim"),
            )
        )


def render_json(matches: List[str], file: Optional[TextIO] = None) -> None:
    """Print the sorted matches as a JSON array."""
    print(json.dumps(matches, indent=2), file=file or sys.stdout)

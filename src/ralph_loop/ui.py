"""Terminal rendering for the loop."""

from __future__ import annotations

import sys
import threading
import time
from typing import TextIO

import rich_click as click

from ralph_loop.git import GitDiffStats

PROGRESS_BAR_WIDTH = 24
SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
SPINNER_INTERVAL_SECONDS = 0.08
_CLEAR_LINE = "\r\x1b[K"


def render_progress_bar(completed: int, total: int) -> str:
    ratio = 0.0 if total == 0 else completed / total
    filled = int(PROGRESS_BAR_WIDTH * ratio + 0.5)
    empty = PROGRESS_BAR_WIDTH - filled
    bar = click.style("█" * filled, fg="green") + click.style("░" * empty, dim=True)
    return f" {bar}  {completed}/{total} tasks"


def format_duration(seconds: float) -> str:
    """Format as ``12s`` or ``3m 4s``."""

    whole_seconds = int(seconds)
    minutes, remaining = divmod(whole_seconds, 60)
    if minutes > 0:
        return f"{minutes}m {remaining}s"
    return f"{whole_seconds}s"


def render_git_diff_inline(stats: GitDiffStats) -> str:
    if stats.files_changed == 0:
        return ""
    files = f"{stats.files_changed} file{'' if stats.files_changed == 1 else 's'}"
    insertions = click.style(f"+{stats.insertions}", fg="green")
    deletions = click.style(f"-{stats.deletions}", fg="red")
    return f"  {click.style(files, dim=True)} {insertions} {deletions}"


def render_agent_output(output: str) -> str:
    indented = "\n".join(f"   {line}" for line in output.strip().split("\n"))
    return click.style(indented, dim=True)


def render_error(message: str) -> str:
    return f" {click.style('✗', fg='red')} {message}"


class IterationSpinner:
    """Single-line status shown while the agent runs.

    The frame is redrawn from a background thread only when the stream is a
    terminal. ``stop`` is idempotent and safe to call from a signal handler.
    """

    def __init__(self, stream: TextIO | None = None, *, animate: bool | None = None) -> None:
        self._stream = stream
        self._animate = animate
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._frame_index = 0
        self._started_at = 0.0
        self._stats = GitDiffStats()
        self._running = False

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            self._started_at = time.monotonic()
            self._frame_index = 0
            self._stop_event.clear()
            self._running = True
            animate = self._animate
            if animate is None:
                animate = self.stream.isatty()
            if not animate:
                return
            self._render()
            self._thread = threading.Thread(
                target=self._spin,
                name="ralph-spinner",
                daemon=True,
            )
            self._thread.start()

    def update_stats(self, stats: GitDiffStats) -> None:
        with self._lock:
            self._stats = stats

    def elapsed_seconds(self) -> float:
        return time.monotonic() - self._started_at

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
            click.echo(_CLEAR_LINE, nl=False, file=self.stream)

    def succeed(self, message: str) -> None:
        self._finish(click.style("✓", fg="green"), message)

    def warn(self, message: str) -> None:
        self._finish(click.style("!", fg="yellow"), message)

    def fail(self, message: str) -> None:
        self.stop()
        click.echo(render_error(message), file=self.stream)

    def _finish(self, symbol: str, message: str) -> None:
        self.stop()
        elapsed = click.style(format_duration(self.elapsed_seconds()), dim=True)
        with self._lock:
            diff = render_git_diff_inline(self._stats)
        click.echo(f" {symbol} {message}  {elapsed}{diff}", file=self.stream)

    def _spin(self) -> None:
        while not self._stop_event.wait(SPINNER_INTERVAL_SECONDS):
            with self._lock:
                if not self._running:
                    return
                self._frame_index = (self._frame_index + 1) % len(SPINNER_FRAMES)
                self._render()

    def _render(self) -> None:
        frame = click.style(SPINNER_FRAMES[self._frame_index], fg="cyan")
        elapsed = click.style(format_duration(self.elapsed_seconds()), dim=True)
        diff = render_git_diff_inline(self._stats)
        click.echo(
            f"{_CLEAR_LINE} {frame} Running agent...  {elapsed}{diff}",
            nl=False,
            file=self.stream,
        )

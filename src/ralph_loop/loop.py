"""Iteration loop: read the backlog, check the budget, run the agent, observe the result."""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
import rich_click as click

from ralph_loop.agents import AgentRunner
from ralph_loop.backlog import has_remaining_tasks, next_task, parse_backlog
from ralph_loop.budget import BudgetLimiter, BudgetState
from ralph_loop.config import RalphPaths, read_text_lossy
from ralph_loop.git import GitInspector
from ralph_loop.ui import IterationSpinner, render_agent_output, render_progress_bar

logger = logging.getLogger(__name__)

DEFAULT_STATS_POLL_SECONDS = 2.0
DEFAULT_ITERATION_DELAY_SECONDS = 1.0
STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LoopOutcome(str, Enum):
    """Terminal states of a run."""

    COMPLETED = "completed"
    BUDGET_EXHAUSTED = "budget_exhausted"
    AGENT_FAILED = "agent_failed"
    INTERRUPTED = "interrupted"


class AgentInvocationError(RuntimeError):
    """The agent failed to start or exited non-zero; the loop stops."""

    def __init__(self, output: str, *, iterations: int) -> None:
        super().__init__(output)
        self.output = output
        self.iterations = iterations


@dataclass(slots=True)
class LoopSummary:
    """How a run ended."""

    outcome: LoopOutcome
    iterations: int = 0
    commits: int = 0
    reason: str | None = None


class StatsPoller:
    """Periodically pushes git stats into the spinner while the agent runs.

    After :meth:`cancel` returns no further update reaches the spinner, even if a
    git query was already in flight.
    """

    def __init__(
        self,
        *,
        inspector: GitInspector,
        spinner: IterationSpinner,
        interval_seconds: float = DEFAULT_STATS_POLL_SECONDS,
    ) -> None:
        self.inspector = inspector
        self.spinner = spinner
        self.interval_seconds = interval_seconds
        self._lock = threading.RLock()
        self._cancelled = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._poll, name="ralph-git-stats", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _poll(self) -> None:
        while not self._cancelled.wait(self.interval_seconds):
            stats = self.inspector.combined_stats()
            with self._lock:
                if self._cancelled.is_set():
                    return
                self.spinner.update_stats(stats)


class RalphLoop:
    """Runs the agent once per iteration until the backlog is done or the budget runs out."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        paths: RalphPaths,
        agent: AgentRunner,
        limiter: BudgetLimiter,
        inspector: GitInspector | None = None,
        budget_state: BudgetState | None = None,
        spinner_factory: Callable[[], IterationSpinner] = IterationSpinner,
        stats_poll_seconds: float = DEFAULT_STATS_POLL_SECONDS,
        iteration_delay_seconds: float = DEFAULT_ITERATION_DELAY_SECONDS,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self.paths = paths
        self.agent = agent
        self.limiter = limiter
        self.inspector = inspector or GitInspector(paths.folder.parent)
        self.budget_state = budget_state or limiter.create_state()
        self.spinner_factory = spinner_factory
        self.stats_poll_seconds = stats_poll_seconds
        self.iteration_delay_seconds = iteration_delay_seconds
        self._echo = echo
        self._stop_requested = False
        self._stop_signal_name: str | None = None
        self._spinner: IterationSpinner | None = None
        self._poller: StatsPoller | None = None

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self, *, signal_name: str = "manual") -> None:
        """Ask the loop to exit at its next checkpoint and clear the display."""

        self._stop_requested = True
        self._stop_signal_name = signal_name
        self._release_display()

    def run(self) -> LoopSummary:
        """Iterate until a terminal state.

        Raises :class:`AgentInvocationError` when the agent fails. An interrupt that
        arrives while the agent is running takes effect once the agent returns.
        """

        summary = LoopSummary(outcome=LoopOutcome.COMPLETED)
        with self._stop_on_signals():
            while True:
                if self._stop_requested:
                    return self._interrupted(summary)

                prompt_text = read_text_lossy(self.paths.prompt)
                backlog_text = read_text_lossy(self.paths.backlog)
                notepad_text = read_text_lossy(self.paths.notepad)
                backlog = parse_backlog(backlog_text)
                progress = render_progress_bar(backlog.completed_count, backlog.total_count)

                if not has_remaining_tasks(backlog):
                    self._echo(progress)
                    self._echo("")
                    self._echo(click.style("All tasks completed!", fg="green"))
                    summary.outcome = LoopOutcome.COMPLETED
                    return summary

                decision = self.limiter.check(self.budget_state)
                if not decision.allowed:
                    self._echo(progress)
                    self._echo("")
                    self._echo(click.style(decision.reason or "Budget exhausted.", fg="yellow"))
                    logger.info("Stopping: %s", decision.reason)
                    summary.outcome = LoopOutcome.BUDGET_EXHAUSTED
                    summary.reason = decision.reason
                    return summary

                upcoming = next_task(backlog)
                self._echo(progress)
                if upcoming is not None:
                    self._echo(click.style(f" Next: {upcoming.text}", dim=True))
                self._echo("")
                logger.info(
                    "Iteration %d: %d/%d tasks done",
                    summary.iterations + 1,
                    backlog.completed_count,
                    backlog.total_count,
                )

                committed = self._run_iteration(
                    build_prompt(prompt_text, notepad_text, backlog_text),
                    iterations_done=summary.iterations,
                )
                if committed is None:
                    return self._interrupted(summary)
                summary.iterations += 1
                if committed:
                    summary.commits += 1
                self.limiter.increment(self.budget_state)

                if self._stop_requested:
                    return self._interrupted(summary)
                self._pause(self.iteration_delay_seconds)

    def _run_iteration(self, prompt: str, *, iterations_done: int) -> bool | None:
        """Invoke the agent once; return whether it produced a new commit.

        ``None`` means a stop was requested: either before the agent started, in which
        case it is never invoked, or while it ran, in which case its result is discarded.
        """

        head_before = self.inspector.head_revision()
        if self._stop_requested:
            return None
        with self._active_display() as spinner:
            if self._stop_requested:
                return None
            result = self.agent.run(prompt)
            poller = self._poller
            if poller is not None:
                poller.cancel()
            if self._stop_requested:
                return None

            if not result.success:
                logger.error("%s agent failed", self.agent.name)
                spinner.fail("Agent failed")
                self._echo(render_agent_output(result.output))
                raise AgentInvocationError(result.output, iterations=iterations_done)

            final_stats = self.inspector.combined_stats()
            head_after = self.inspector.head_revision()
            has_new_commit = head_after is not None and head_after != head_before
            spinner.update_stats(final_stats)
            if has_new_commit:
                spinner.succeed(self.inspector.last_commit_summary() or "Iteration complete")
            else:
                logger.warning("Agent finished without a new commit")
                spinner.warn("No new commit detected")

        if result.output:
            self._echo("")
            self._echo(render_agent_output(result.output))
        self._echo("")
        return has_new_commit

    @contextmanager
    def _active_display(self) -> Iterator[IterationSpinner]:
        spinner = self.spinner_factory()
        poller = StatsPoller(
            inspector=self.inspector,
            spinner=spinner,
            interval_seconds=self.stats_poll_seconds,
        )
        self._spinner = spinner
        self._poller = poller
        spinner.start()
        poller.start()
        try:
            yield spinner
        finally:
            self._release_display()
            poller.cancel()
            spinner.stop()

    def _release_display(self) -> None:
        poller, self._poller = self._poller, None
        spinner, self._spinner = self._spinner, None
        if poller is not None:
            poller.cancel()
        if spinner is not None:
            spinner.stop()

    def _interrupted(self, summary: LoopSummary) -> LoopSummary:
        self._release_display()
        logger.info("Stopped by %s after %d iteration(s)", self._stop_signal_name, summary.iterations)
        self._echo("")
        self._echo(click.style("Interrupted", dim=True))
        summary.outcome = LoopOutcome.INTERRUPTED
        summary.reason = self._stop_signal_name
        return summary

    def _pause(self, seconds: float) -> None:
        """Wait between iterations, returning early once a stop is requested."""

        remaining = seconds
        while remaining > 0 and not self._stop_requested:
            step = min(0.1, remaining)
            time.sleep(step)
            remaining -= step

    @contextmanager
    def _stop_on_signals(self) -> Iterator[None]:
        """Route SIGINT and SIGTERM to :meth:`request_stop` for the duration of a run."""

        previous: dict[signal.Signals, object] = {}
        try:
            for signum in STOP_SIGNALS:
                previous[signum] = signal.signal(signum, self._on_signal)
        except ValueError:
            # Outside the main thread; the caller keeps its own handlers.
            logger.debug("Signal handlers not installed: not in the main thread")
        try:
            yield
        finally:
            for signum, handler in previous.items():
                if handler is not None:
                    signal.signal(signum, handler)

    def _on_signal(self, signum: int, _frame: object | None) -> None:
        # Tears the spinner and stats poller down before returning to the interrupted frame.
        self.request_stop(signal_name=signal.Signals(signum).name)


def build_prompt(base_prompt: str, notepad: str, backlog: str) -> str:
    """Join instructions, notepad and backlog into one agent prompt."""

    return (
        f"{base_prompt}\n"
        f"\n"
        f"---\n"
        f"\n"
        f"## Current Notepad\n"
        f"\n"
        f"{notepad}\n"
        f"\n"
        f"---\n"
        f"\n"
        f"## Current Backlog\n"
        f"\n"
        f"{backlog}\n"
    )

"""Controllers for ralph CLI commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import rich_click as click

from ralph_loop.agents import create_agent
from ralph_loop.backlog import next_task, parse_backlog
from ralph_loop.budget import BudgetConfig, BudgetLimiter
from ralph_loop.config import (
    ConfigurationError,
    Settings,
    parse_budget_value,
    read_text_lossy,
)
from ralph_loop.git import GitInspector
from ralph_loop.loop import AgentInvocationError, LoopOutcome, RalphLoop
from ralph_loop.scaffold import init_folder
from ralph_loop.ui import render_progress_bar

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class InitCommand:
    """CLI input for folder scaffolding."""

    workdir: Path | None = None


@dataclass(slots=True)
class StatusCommand:
    """CLI input for backlog status."""

    workdir: Path | None = None


@dataclass(slots=True)
class RunCommand:
    """CLI input for the iteration loop."""

    agent: str | None = None
    hourly_budget: str | None = None
    daily_budget: str | None = None
    workdir: Path | None = None


@dataclass(slots=True)
class CommandResult:
    """Lines to print and the process exit code."""

    lines: list[str] = field(default_factory=list)
    exit_code: int = 0
    outcome: LoopOutcome | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class RalphCliController:
    """Turns parsed CLI commands into scaffolding, status reports and loop runs."""

    def init(self, command: InitCommand) -> CommandResult:
        try:
            settings = Settings.from_env(command.workdir)
        except ConfigurationError as error:
            return CommandResult(lines=[str(error)], exit_code=1)
        result = init_folder(settings.paths)
        folder = settings.folder_name
        if not result.created:
            return CommandResult(lines=[click.style(f"{folder} folder already exists", fg="yellow")])

        return CommandResult(
            lines=[
                click.style(f"Initialized {folder}", fg="green"),
                "",
                f"  {_bold('backlog.md')}   {_dim('Your task list. Add tasks as [ ] checkboxes.')}",
                f"  {_bold('notepad.md')}   {_dim('Agent memory. It writes here to remember things.')}",
                f"  {_bold('prompt.md')}    {_dim('Instructions for the agent. Customize if needed.')}",
                "",
                _dim("Quick start:"),
                f"  1. Edit {_bold(f'{folder}/backlog.md')} and add your tasks",
                f"  2. Run {_bold('r0 run')} to start the loop",
                "",
                _dim("Example with all options:"),
                "",
                "    "
                + click.style("r0 run --agent claude --hourly-budget 10 --daily-budget 50", fg="cyan"),
                "",
                _dim("The agent will pick tasks one by one until the backlog is empty."),
            ],
        )

    def status(self, command: StatusCommand) -> CommandResult:
        try:
            settings = Settings.from_env(command.workdir)
            paths = settings.paths
            paths.validate()
        except ConfigurationError as error:
            return CommandResult(lines=[str(error)], exit_code=1)

        backlog = parse_backlog(read_text_lossy(paths.backlog))
        lines = [render_progress_bar(backlog.completed_count, backlog.total_count), ""]
        upcoming = next_task(backlog)
        if upcoming is None:
            lines.append(click.style("All tasks completed!", fg="green"))
        else:
            lines.append(f"Next task (line {upcoming.line_index + 1}): {upcoming.text}")
        return CommandResult(lines=lines)

    def run(self, command: RunCommand) -> CommandResult:
        try:
            loop = self._build_loop(command)
        except ConfigurationError as error:
            logger.error("Configuration error: %s", error)
            return CommandResult(lines=[str(error)], exit_code=1)

        try:
            summary = loop.run()
        except AgentInvocationError as error:
            return CommandResult(
                lines=[f"Agent failed after {error.iterations} completed iteration(s)."],
                exit_code=1,
                outcome=LoopOutcome.AGENT_FAILED,
            )
        logger.info(
            "Loop finished: outcome=%s iterations=%d commits=%d",
            summary.outcome.value,
            summary.iterations,
            summary.commits,
        )
        return CommandResult(outcome=summary.outcome)

    def _build_loop(self, command: RunCommand) -> RalphLoop:
        settings = Settings.from_env(command.workdir)
        settings.validate()
        budget_config = BudgetConfig(
            hourly_limit=parse_budget_value(
                command.hourly_budget
                if command.hourly_budget is not None
                else settings.budget.hourly_budget,
                "hourly-budget",
            ),
            daily_limit=parse_budget_value(
                command.daily_budget
                if command.daily_budget is not None
                else settings.budget.daily_budget,
                "daily-budget",
            ),
        )
        agent_name = command.agent or settings.agents.default_agent
        agent = create_agent(agent_name, settings.agents)
        paths = settings.paths
        paths.validate()

        click.echo("")
        click.echo(click.style(f"Using agent: {agent.name}", dim=True))
        click.echo("")
        return RalphLoop(
            paths=paths,
            agent=agent,
            limiter=BudgetLimiter(budget_config),
            inspector=GitInspector(settings.workdir),
            stats_poll_seconds=settings.loop.stats_poll_seconds,
            iteration_delay_seconds=settings.loop.iteration_delay_seconds,
        )


def _bold(text: str) -> str:
    return click.style(text, bold=True)


def _dim(text: str) -> str:
    return click.style(text, dim=True)

"""CLI entrypoint for the ralph loop."""

import logging
import os

import rich_click as click

from ralph_loop import __version__
from ralph_loop.agents import SUPPORTED_AGENTS
from ralph_loop.controllers import (
    CommandResult,
    InitCommand,
    RalphCliController,
    RunCommand,
    StatusCommand,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = RalphCliController()


@click.group()
@click.version_option(version=__version__, prog_name="r0")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=lambda: os.getenv("RALPH_LOOP_LOG_LEVEL", "WARNING").upper(),
    show_default="WARNING",
    help="Diagnostic log level (stderr).",
)
def ralph(log_level: str) -> None:
    """A minimalistic Ralph Loop: run a coding agent until the backlog is empty."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@ralph.command("init")
def ralph_init() -> None:
    """Initialize a `.ralph` folder with starter templates."""

    _finish(CONTROLLER.init(InitCommand()))


@ralph.command("status")
def ralph_status() -> None:
    """Show backlog progress and the next unchecked task."""

    _finish(CONTROLLER.status(StatusCommand()))


@ralph.command("run")
@click.option(
    "--agent",
    "-a",
    default=None,
    help=f"Agent to use: {', '.join(SUPPORTED_AGENTS)} (default: claude).",
)
@click.option("--hourly-budget", default=None, help="Max iterations per hour.")
@click.option("--daily-budget", default=None, help="Max iterations per day.")
def ralph_run(agent: str | None, hourly_budget: str | None, daily_budget: str | None) -> None:
    """Run the loop until the backlog is empty or a budget is exhausted."""

    _finish(
        CONTROLLER.run(
            RunCommand(
                agent=agent,
                hourly_budget=hourly_budget,
                daily_budget=daily_budget,
            ),
        ),
    )


def _finish(result: CommandResult) -> None:
    if result.success:
        _emit_lines(result.lines)
        return
    for line in result.lines[:-1]:
        click.echo(line, err=True)
    raise click.ClickException(result.lines[-1] if result.lines else "Command failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    ralph()

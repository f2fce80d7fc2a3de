"""Subprocess-based runner for CLI coding agents."""

from __future__ import annotations

import logging
import shlex
import subprocess

from ralph_loop.agents.base import AgentResult
from ralph_loop.config import ConfigurationError

logger = logging.getLogger(__name__)


class CliAgentRunner:
    """Run an external agent built from a ``{prompt}`` command template."""

    def __init__(self, name: str, command_template: str) -> None:
        self.name = name
        self.command_template = command_template
        # Render once with a placeholder so template errors surface at startup.
        build_run_args(command_template=command_template, prompt="")

    def run(self, prompt: str) -> AgentResult:
        run_args = build_run_args(command_template=self.command_template, prompt=prompt)

        logger.debug("Starting %s agent: %s", self.name, run_args[0])
        try:
            completed = subprocess.run(  # noqa: S603
                run_args,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError:
            return AgentResult(
                success=False,
                output=f"Agent command not found: {run_args[0]}",
            )
        except OSError as error:
            return AgentResult(
                success=False,
                output=f"Failed to start {self.name} agent: {error}",
            )

        if completed.returncode != 0:
            logger.info("%s agent exited with code %s", self.name, completed.returncode)
            return AgentResult(
                success=False,
                output=completed.stderr
                or completed.stdout
                or f"Agent exited with non-zero code {completed.returncode}",
            )
        return AgentResult(success=True, output=completed.stdout.strip())


def build_run_args(*, command_template: str, prompt: str) -> list[str]:
    """Substitute the shell-quoted prompt into the template and split it into argv."""

    stripped = command_template.strip()
    if not stripped:
        raise ConfigurationError("Agent command template is empty.")
    if "{prompt}" not in stripped:
        raise ConfigurationError("Agent command template must include {prompt}.")
    try:
        rendered = stripped.format(prompt=shlex.quote(prompt))
    except (KeyError, IndexError) as error:
        raise ConfigurationError(
            f"Unsupported command template placeholder: {error}",
        ) from error

    argv = shlex.split(rendered)
    if not argv:
        raise ConfigurationError("Agent command template rendered empty command.")
    return argv

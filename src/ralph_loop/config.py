"""Runtime configuration for the ralph loop."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_FOLDER_NAME = ".ralph"
PROMPT_FILE_NAME = "prompt.md"
BACKLOG_FILE_NAME = "backlog.md"
NOTEPAD_FILE_NAME = "notepad.md"

DEFAULT_CLAUDE_COMMAND = "claude --print --dangerously-skip-permissions {prompt}"
DEFAULT_CODEX_COMMAND = "codex exec --full-auto {prompt}"


class ConfigurationError(ValueError):
    """Invalid user input or missing files, detected before the loop starts."""


@dataclass(slots=True)
class AgentSettings:
    """External agent command templates."""

    default_agent: str = "claude"
    claude_command_template: str = DEFAULT_CLAUDE_COMMAND
    codex_command_template: str = DEFAULT_CODEX_COMMAND

    def command_template(self, agent: str) -> str:
        templates = {
            "claude": self.claude_command_template,
            "codex": self.codex_command_template,
        }
        try:
            return templates[agent]
        except KeyError as error:
            raise ConfigurationError(f"No command template for agent: {agent}") from error


@dataclass(slots=True)
class LoopSettings:
    """Timing of the iteration loop."""

    stats_poll_seconds: float = 2.0
    iteration_delay_seconds: float = 1.0


@dataclass(slots=True)
class BudgetSettings:
    """Raw budget fallbacks; validated by :func:`parse_budget_value`."""

    hourly_budget: str | None = None
    daily_budget: str | None = None


@dataclass(slots=True)
class RalphPaths:
    """Locations of the files the loop reads every iteration."""

    folder: Path
    prompt: Path
    backlog: Path
    notepad: Path

    @classmethod
    def in_folder(cls, folder: Path) -> RalphPaths:
        return cls(
            folder=folder,
            prompt=folder / PROMPT_FILE_NAME,
            backlog=folder / BACKLOG_FILE_NAME,
            notepad=folder / NOTEPAD_FILE_NAME,
        )

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` if the folder or a file is missing."""

        if not self.folder.is_dir():
            raise ConfigurationError(
                f"Ralph folder not found: {self.folder.name}. Run `r0 init` to create it.",
            )
        for path in (self.prompt, self.backlog, self.notepad):
            if not path.is_file():
                raise ConfigurationError(f"Missing file: {path}")


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    workdir: Path = field(default_factory=Path.cwd)
    folder_name: str = DEFAULT_FOLDER_NAME
    agents: AgentSettings = field(default_factory=AgentSettings)
    loop: LoopSettings = field(default_factory=LoopSettings)
    budget: BudgetSettings = field(default_factory=BudgetSettings)

    @property
    def paths(self) -> RalphPaths:
        return RalphPaths.in_folder(self.workdir / self.folder_name)

    @classmethod
    def from_env(cls, workdir: Path | None = None) -> Settings:
        """Load settings from ``RALPH_LOOP_*`` environment variables."""

        return cls(
            workdir=(workdir or Path.cwd()).resolve(),
            folder_name=os.getenv("RALPH_LOOP_FOLDER", DEFAULT_FOLDER_NAME).strip()
            or DEFAULT_FOLDER_NAME,
            agents=AgentSettings(
                default_agent=os.getenv("RALPH_LOOP_DEFAULT_AGENT", "claude").strip().lower(),
                claude_command_template=os.getenv(
                    "RALPH_LOOP_CLAUDE_COMMAND",
                    DEFAULT_CLAUDE_COMMAND,
                ),
                codex_command_template=os.getenv(
                    "RALPH_LOOP_CODEX_COMMAND",
                    DEFAULT_CODEX_COMMAND,
                ),
            ),
            loop=LoopSettings(
                stats_poll_seconds=_env_float("RALPH_LOOP_STATS_POLL_SECONDS", 2.0),
                iteration_delay_seconds=_env_float("RALPH_LOOP_ITERATION_DELAY_SECONDS", 1.0),
            ),
            budget=BudgetSettings(
                hourly_budget=_env_optional("RALPH_LOOP_HOURLY_BUDGET"),
                daily_budget=_env_optional("RALPH_LOOP_DAILY_BUDGET"),
            ),
        )

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` on unusable timing values."""

        if self.loop.stats_poll_seconds <= 0:
            raise ConfigurationError("RALPH_LOOP_STATS_POLL_SECONDS must be > 0.")
        if self.loop.iteration_delay_seconds < 0:
            raise ConfigurationError("RALPH_LOOP_ITERATION_DELAY_SECONDS must be >= 0.")


def parse_budget_value(raw: str | int | None, label: str) -> int | None:
    """Return a positive integer budget, ``None`` when unset."""

    if raw is None:
        return None
    text = str(raw).strip()
    try:
        value = int(text)
    except ValueError as error:
        raise ConfigurationError(
            f"Invalid {label}: {raw}. Must be a positive integer.",
        ) from error
    if value <= 0:
        raise ConfigurationError(f"Invalid {label}: {raw}. Must be a positive integer.")
    return value


def _env_optional(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ConfigurationError(f"Invalid float value for {name}: {value!r}") from error


def read_text_lossy(path: Path) -> str:
    """Read a ralph file as UTF-8; undecodable bytes become U+FFFD."""

    return path.read_text("utf-8", errors="replace")

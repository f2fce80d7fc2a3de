"""Agent backends and the registry that builds them by name."""

from __future__ import annotations

from collections.abc import Callable

from ralph_loop.agents.base import AgentResult, AgentRunner
from ralph_loop.agents.cli_agent import CliAgentRunner, build_run_args
from ralph_loop.config import AgentSettings, ConfigurationError

AgentFactory = Callable[[AgentSettings], AgentRunner]

AGENT_REGISTRY: dict[str, AgentFactory] = {
    "claude": lambda settings: CliAgentRunner("claude", settings.command_template("claude")),
    "codex": lambda settings: CliAgentRunner("codex", settings.command_template("codex")),
}
SUPPORTED_AGENTS = tuple(AGENT_REGISTRY)


def create_agent(name: str, settings: AgentSettings | None = None) -> AgentRunner:
    """Build the agent registered under ``name``."""

    normalized = name.strip().lower()
    factory = AGENT_REGISTRY.get(normalized)
    if factory is None:
        raise ConfigurationError(
            f"Invalid agent: {name}. Must be one of: {', '.join(SUPPORTED_AGENTS)}.",
        )
    return factory(settings or AgentSettings())


__all__ = [
    "AGENT_REGISTRY",
    "SUPPORTED_AGENTS",
    "AgentResult",
    "AgentRunner",
    "CliAgentRunner",
    "build_run_args",
    "create_agent",
]

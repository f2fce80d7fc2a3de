"""Agent capability interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class AgentResult:
    """Outcome of one agent invocation."""

    success: bool
    output: str


class AgentRunner(Protocol):
    """Protocol implemented by agent backends."""

    name: str

    def run(self, prompt: str) -> AgentResult:
        """Run the agent on ``prompt``; failures are reported, never raised."""

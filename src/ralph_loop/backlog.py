"""Checkbox backlog parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Optional indent, optional list marker (-, *, + or "N."), then [ ], [x] or [X].
TASK_PATTERN = re.compile(r"^\s*(?:[-*+]|\d+\.)?\s*\[([ xX])\]\s*(.+)$")


@dataclass(frozen=True, slots=True)
class Task:
    """One checkbox line of the backlog."""

    text: str
    completed: bool
    line_index: int


@dataclass(frozen=True, slots=True)
class BacklogState:
    """Snapshot of the backlog derived from its raw text."""

    tasks: tuple[Task, ...] = field(default_factory=tuple)

    @property
    def total_count(self) -> int:
        return len(self.tasks)

    @property
    def completed_count(self) -> int:
        return sum(1 for task in self.tasks if task.completed)


def parse_backlog(text: str) -> BacklogState:
    """Parse checkbox lines from ``text``; every other line is ignored."""

    tasks: list[Task] = []
    for index, line in enumerate(text.split("\n")):
        match = TASK_PATTERN.match(line)
        if match is None:
            continue
        tasks.append(
            Task(
                text=match.group(2).strip(),
                completed=match.group(1).lower() == "x",
                line_index=index,
            ),
        )
    return BacklogState(tasks=tuple(tasks))


def next_task(state: BacklogState) -> Task | None:
    """Return the first unchecked task in document order."""

    return next((task for task in state.tasks if not task.completed), None)


def has_remaining_tasks(state: BacklogState) -> bool:
    """Whether unchecked work remains; an empty backlog counts as done."""

    return state.completed_count < state.total_count

"""Shared test fixtures."""

from __future__ import annotations

import io
import os
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from ralph_loop.config import RalphPaths
from ralph_loop.git import GitDiffStats
from ralph_loop.scaffold import init_folder
from ralph_loop.ui import IterationSpinner


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Drop RALPH_LOOP_* variables inherited from the developer shell."""

    for name in list(os.environ):
        if name.startswith("RALPH_LOOP_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def ralph_paths(tmp_path: Path) -> RalphPaths:
    paths = RalphPaths.in_folder(tmp_path / ".ralph")
    init_folder(paths)
    return paths


@pytest.fixture()
def quiet_spinner():
    """Spinner factory writing to an in-memory stream without animation."""

    stream = io.StringIO()

    def _factory() -> IterationSpinner:
        return IterationSpinner(stream=stream, animate=False)

    _factory.stream = stream
    return _factory


@dataclass
class StubInspector:
    """In-memory stand-in for GitInspector."""

    revisions: list[str | None] = field(default_factory=lambda: [None])
    summary: str | None = None
    stats: GitDiffStats = field(default_factory=GitDiffStats)
    head_calls: int = 0

    def combined_stats(self) -> GitDiffStats:
        return self.stats

    def head_revision(self) -> str | None:
        index = min(self.head_calls, len(self.revisions) - 1)
        self.head_calls += 1
        return self.revisions[index]

    def last_commit_summary(self) -> str | None:
        return self.summary


@pytest.fixture()
def stub_inspector() -> StubInspector:
    return StubInspector()

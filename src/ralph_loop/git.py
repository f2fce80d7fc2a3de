"""Best-effort git queries used to report iteration progress."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True, slots=True)
class GitDiffStats:
    """Aggregated working tree changes."""

    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0


@dataclass(frozen=True, slots=True)
class FileDiffStats:
    """Line counts for one path."""

    insertions: int = 0
    deletions: int = 0


def parse_numstat(output: str) -> dict[str, FileDiffStats]:
    """Parse ``git diff --numstat`` output into per-path counts.

    Paths may contain tabs, so everything after the second tab is the path.
    Binary files report ``-`` instead of numbers and count as zero.
    """

    stats_by_path: dict[str, FileDiffStats] = {}
    for line in output.strip().split("\n"):
        if not line:
            continue
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        path = "\t".join(parts[2:]).strip()
        if not path:
            continue
        stats_by_path[path] = _add(
            stats_by_path.get(path),
            FileDiffStats(
                insertions=_parse_count(parts[0]),
                deletions=_parse_count(parts[1]),
            ),
        )
    return stats_by_path


def merge_file_stats(*sources: Mapping[str, FileDiffStats]) -> dict[str, FileDiffStats]:
    """Sum per-path counts from several numstat listings."""

    merged: dict[str, FileDiffStats] = {}
    for source in sources:
        for path, stats in source.items():
            merged[path] = _add(merged.get(path), stats)
    return merged


def summarize_file_stats(stats_by_path: Mapping[str, FileDiffStats]) -> GitDiffStats:
    insertions = deletions = 0
    for stats in stats_by_path.values():
        insertions += stats.insertions
        deletions += stats.deletions
    return GitDiffStats(
        files_changed=len(stats_by_path),
        insertions=insertions,
        deletions=deletions,
    )


class GitInspector:
    """Reads repository state with the ``git`` executable.

    Every query degrades to empty stats or ``None`` when git is missing, the
    directory is not a repository, or the command fails.
    """

    def __init__(self, cwd: Path | None = None, *, executable: str = "git") -> None:
        self.cwd = cwd
        self.executable = executable

    def combined_stats(self) -> GitDiffStats:
        """Staged plus unstaged changes, counted once per path."""

        unstaged = parse_numstat(self._run("diff", "--numstat") or "")
        staged = parse_numstat(self._run("diff", "--cached", "--numstat") or "")
        return summarize_file_stats(merge_file_stats(unstaged, staged))

    def head_revision(self) -> str | None:
        return _first_line(self._run("rev-parse", "HEAD"))

    def last_commit_summary(self) -> str | None:
        return _first_line(self._run("log", "-1", "--pretty=%s"))

    def _run(self, *args: str) -> str | None:
        try:
            completed = subprocess.run(  # noqa: S603
                [self.executable, *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as error:
            logger.debug("git %s failed to start: %s", " ".join(args), error)
            return None
        if completed.returncode != 0:
            logger.debug(
                "git %s exited with %s: %s",
                " ".join(args),
                completed.returncode,
                completed.stderr.strip(),
            )
            return None
        return completed.stdout


def _add(existing: FileDiffStats | None, extra: FileDiffStats) -> FileDiffStats:
    if existing is None:
        return extra
    return FileDiffStats(
        insertions=existing.insertions + extra.insertions,
        deletions=existing.deletions + extra.deletions,
    )


def _parse_count(raw: str) -> int:
    match = _LEADING_INT.match(raw)
    return int(match.group(1)) if match else 0


def _first_line(output: str | None) -> str | None:
    if output is None:
        return None
    stripped = output.strip()
    return stripped or None

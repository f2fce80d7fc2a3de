"""Starter files for a new ralph folder."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ralph_loop.config import RalphPaths

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """\
You are operating in an automated loop. Each iteration, you start with fresh context - \
your only memory is what's written in the notepad.

## Your Task

1. Read `{folder}/notepad.md` to understand what happened in previous iterations
2. Read `{folder}/backlog.md` to see all pending tasks
3. Choose the **next logical** unchecked task and implement it
4. Update `{folder}/notepad.md`
5. Mark the completed task with `[x]` in `{folder}/backlog.md`
6. Commit your changes with a conventional commit message (e.g., `feat:`, `fix:`, `refactor:`)

### Notepad

Your scratchpad. The only thing that survives between iterations.

Write it like you're catching up a coworker who just joined mid-project:
- Where are we? What's built, what's the current state of things.
- What just happened? What you did this iteration and any relevant context.
- What do we know? Learnings, gotchas, decisions that would bite someone who didn't know.
- What's on your mind? Internal todos, next steps, open threads to pick up.

Keep it alive:
- Rewrite sections as things evolve. Old news becomes noise.
- If it doesn't help the next iteration, delete it.
- This isn't a log. It's a living briefing.

### Task Workflow
- Once you picked a task, read all relevant files first and become an expert of the topic.
- Make a practical plan. Break down the task into smaller steps. \
Feel free to persist any thoughts in your notepad.
- Implement the changes.
- Once you feel like you're done, read all the changed files again. Look for oversights, \
functional flaws and wrong assumptions, and fix them. Check for files that should have \
changed but did not. Make sure the implementation fits the bigger picture.
- Once you're confident, mark the task as complete and commit your changes.

### Important

- Focus on ONE task only.
- The notepad is your long-term memory. Keep it concise but complete.
- Always commit your work before exiting.
"""

BACKLOG_TEMPLATE = """\
# Backlog

[ ] Your first task here
"""

NOTEPAD_TEMPLATE = """\
# Notepad

This is the start of the project. No iterations have been completed yet.
"""


@dataclass(slots=True)
class ScaffoldResult:
    """What ``init`` did."""

    created: bool
    paths: RalphPaths


def init_folder(paths: RalphPaths) -> ScaffoldResult:
    """Create the folder with starter files; leave an existing folder untouched."""

    if paths.folder.exists():
        logger.info("Ralph folder already exists: %s", paths.folder)
        return ScaffoldResult(created=False, paths=paths)

    paths.folder.mkdir(parents=True)
    paths.prompt.write_text(PROMPT_TEMPLATE.format(folder=paths.folder.name), "utf-8")
    paths.backlog.write_text(BACKLOG_TEMPLATE, "utf-8")
    paths.notepad.write_text(NOTEPAD_TEMPLATE, "utf-8")
    logger.info("Initialized ralph folder: %s", paths.folder)
    return ScaffoldResult(created=True, paths=paths)

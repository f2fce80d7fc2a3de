from __future__ import annotations

import shlex
import sys
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from ralph_loop.main import ralph

pytestmark = [
    allure.epic("Ralph Loop"),
    allure.feature("Command Line"),
]

_FAKE_AGENT = """
import sys
from pathlib import Path

prompt = sys.argv[1]
if "## Current Backlog" not in prompt:
    print("prompt is missing the backlog section", file=sys.stderr)
    sys.exit(4)
backlog = Path(".ralph") / "backlog.md"
lines = backlog.read_text("utf-8").split("\\n")
for index, line in enumerate(lines):
    if "[ ]" in line:
        lines[index] = line.replace("[ ]", "[x]", 1)
        print("completed: " + line.split("]", 1)[1].strip())
        break
backlog.write_text("\\n".join(lines), "utf-8")
"""

_FAILING_AGENT = """
import sys
print("model overloaded", file=sys.stderr)
sys.exit(1)
"""


@pytest.fixture()
def project(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RALPH_LOOP_ITERATION_DELAY_SECONDS", "0")
    return tmp_path


def _use_agent_script(project: Path, monkeypatch, source: str) -> None:
    script = project / "fake_agent.py"
    script.write_text(source.strip() + "\n", "utf-8")
    monkeypatch.setenv(
        "RALPH_LOOP_CLAUDE_COMMAND",
        f"{shlex.quote(sys.executable)} {shlex.quote(str(script))} {{prompt}}",
    )


def test_init_creates_templates_once(project: Path) -> None:
    runner = CliRunner()

    first = runner.invoke(ralph, ["init"])
    assert first.exit_code == 0
    assert "Initialized .ralph" in first.output
    backlog = (project / ".ralph" / "backlog.md").read_text("utf-8")
    assert "[ ] Your first task here" in backlog
    assert "`.ralph/notepad.md`" in (project / ".ralph" / "prompt.md").read_text("utf-8")

    (project / ".ralph" / "backlog.md").write_text("- [ ] keep me\n", "utf-8")
    second = runner.invoke(ralph, ["init"])
    assert second.exit_code == 0
    assert ".ralph folder already exists" in second.output
    assert (project / ".ralph" / "backlog.md").read_text("utf-8") == "- [ ] keep me\n"


def test_status_shows_progress_and_next_task(project: Path) -> None:
    runner = CliRunner()
    runner.invoke(ralph, ["init"])
    (project / ".ralph" / "backlog.md").write_text("- [x] a\n- [ ] b\n", "utf-8")

    result = runner.invoke(ralph, ["status"])

    assert result.exit_code == 0
    assert "1/2 tasks" in result.output
    assert "Next task (line 2): b" in result.output


def test_status_tolerates_undecodable_bytes_in_backlog(project: Path) -> None:
    runner = CliRunner()
    runner.invoke(ralph, ["init"])
    (project / ".ralph" / "backlog.md").write_bytes(b"- [ ] caf\xe9 task\n")

    result = runner.invoke(ralph, ["status"])

    assert result.exit_code == 0
    assert result.exception is None
    assert "0/1 tasks" in result.output
    assert "Next task (line 1): caf� task" in result.output


def test_run_without_folder_exits_with_error(project: Path) -> None:
    result = CliRunner().invoke(ralph, ["run"])

    assert result.exit_code == 1
    assert "Ralph folder not found" in result.output


@pytest.mark.parametrize("option", ["--hourly-budget", "--daily-budget"])
@pytest.mark.parametrize("value", ["0", "-3", "abc"])
def test_run_rejects_invalid_budget_values(project: Path, option: str, value: str) -> None:
    runner = CliRunner()
    runner.invoke(ralph, ["init"])

    result = runner.invoke(ralph, ["run", option, value])

    assert result.exit_code == 1
    assert f"Invalid {option.lstrip('-')}" in result.output


def test_run_rejects_unknown_agent(project: Path) -> None:
    runner = CliRunner()
    runner.invoke(ralph, ["init"])

    result = runner.invoke(ralph, ["run", "--agent", "gemini"])

    assert result.exit_code == 1
    assert "Invalid agent" in result.output


def test_run_completes_backlog_with_external_agent(project: Path, monkeypatch) -> None:
    runner = CliRunner()
    runner.invoke(ralph, ["init"])
    (project / ".ralph" / "backlog.md").write_text("- [ ] one\n- [ ] two\n", "utf-8")
    _use_agent_script(project, monkeypatch, _FAKE_AGENT)

    result = runner.invoke(ralph, ["run", "--agent", "claude"])

    assert result.exit_code == 0, result.output
    assert "Using agent: claude" in result.output
    assert "completed: one" in result.output
    assert "completed: two" in result.output
    assert "All tasks completed!" in result.output
    assert (project / ".ralph" / "backlog.md").read_text("utf-8") == "- [x] one\n- [x] two\n"


def test_run_stops_on_budget_with_success_exit_code(project: Path, monkeypatch) -> None:
    runner = CliRunner()
    runner.invoke(ralph, ["init"])
    (project / ".ralph" / "backlog.md").write_text("- [ ] one\n- [ ] two\n", "utf-8")
    _use_agent_script(project, monkeypatch, _FAKE_AGENT)

    result = runner.invoke(ralph, ["run", "--hourly-budget", "1"])

    assert result.exit_code == 0, result.output
    assert "Hourly budget exhausted (1)" in result.output
    assert "1/2 tasks" in result.output


def test_run_exits_non_zero_when_agent_fails(project: Path, monkeypatch) -> None:
    runner = CliRunner()
    runner.invoke(ralph, ["init"])
    _use_agent_script(project, monkeypatch, _FAILING_AGENT)

    result = runner.invoke(ralph, ["run"])

    assert result.exit_code == 1
    assert "model overloaded" in result.output
    assert "Agent failed" in result.output

"""
autoremedy — post-edit validation tests

File: tests/unit/verification_plane/test_validation_runner.py

Purpose
- Validate command selection by touched files and risk level, and the
  failure payload raised on the first failing command.

Functional requirements
- No subprocesses; a scripted executor returns canned results.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.domain.models import RiskLevel
from autoremedy.verification_plane.executor import CommandExecutor, CommandResult, CommandSpec
from autoremedy.verification_plane.validation_runner import (
    PlannedCommand,
    ValidationCommands,
    ValidationRunner,
    is_test_command,
    touches_typed_file,
)

if TYPE_CHECKING:
    from pathlib import Path

COMMANDS = ValidationCommands(
    lint="npm run lint",
    typecheck="npx vue-tsc --noEmit",
    build="npm run build",
)


def _ok(stdout: str = "") -> CommandResult:
    return CommandResult(argv=("ok",), exit_code=0, stdout=stdout, stderr="", duration_ms=5)


@dataclass(slots=True)
class ScriptedExecutor:
    results: deque[CommandResult]
    specs: list[CommandSpec] = field(default_factory=list)

    async def run(self, spec: CommandSpec) -> CommandResult:
        self.specs.append(spec)
        return self.results.popleft()


def _runner(
    executor: ScriptedExecutor,
    tmp_path: Path,
    commands: ValidationCommands = COMMANDS,
    **kwargs: float | int,
) -> ValidationRunner:
    return ValidationRunner(executor, commands, cwd=tmp_path, **kwargs)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        ("pytest -q", True),
        ("python -m pytest tests", True),
        ("python -m unittest discover", True),
        ("npm test", True),
        ("npm run test:unit", True),
        ("yarn test", True),
        ("npx jest --ci", True),
        ("vitest run", True),
        ("npm run lint", False),
        ("npm run build", False),
        ("ruff check .", False),
        ("npx vue-tsc --noEmit", False),
    ],
)
def test_is_test_command(command: str, expected: bool) -> None:
    assert is_test_command(command) is expected


def test_touches_typed_file() -> None:
    assert touches_typed_file(["README.md", "src/App.VUE"]) is True
    assert touches_typed_file(["pkg/module.pyi"]) is True
    assert touches_typed_file(["README.md", "docs/guide.rst", "src/app.js"]) is False
    assert touches_typed_file([]) is False


@pytest.mark.parametrize(
    ("paths", "level", "expected_kinds"),
    [
        (["README.md"], RiskLevel.LOW, ["lint"]),
        (["src/api.ts"], RiskLevel.LOW, ["lint", "typecheck"]),
        (["README.md"], RiskLevel.MEDIUM, ["lint", "build"]),
        (["src/api.ts"], RiskLevel.MEDIUM, ["lint", "typecheck", "build"]),
        (["src/App.vue"], RiskLevel.HIGH, ["lint", "typecheck", "build"]),
    ],
)
def test_plan_selects_commands_by_files_and_risk(
    tmp_path: Path, paths: list[str], level: RiskLevel, expected_kinds: list[str]
) -> None:
    runner = _runner(ScriptedExecutor(deque()), tmp_path)

    assert [item.kind for item in runner.plan(paths, level)] == expected_kinds


def test_plan_skips_unconfigured_and_test_commands(tmp_path: Path) -> None:
    commands = ValidationCommands(lint="npm test", typecheck="", build="vitest run")
    runner = _runner(ScriptedExecutor(deque()), tmp_path, commands)

    assert runner.plan(["src/api.ts"], RiskLevel.HIGH) == ()


def test_plan_returns_planned_commands() -> None:
    runner = ValidationRunner(
        ScriptedExecutor(deque()), ValidationCommands(lint="ruff check ."), cwd="/repo"
    )

    assert runner.plan(["a.py"], RiskLevel.LOW) == (PlannedCommand("lint", "ruff check ."),)


async def test_run_executes_plan_in_order(tmp_path: Path) -> None:
    executor = ScriptedExecutor(deque([_ok("lint ok"), _ok(), _ok()]))
    assert isinstance(executor, CommandExecutor)
    runner = _runner(executor, tmp_path, timeout_seconds=45.0)

    outcomes = await runner.run(["src/api.ts"], RiskLevel.MEDIUM)

    assert [outcome.command for outcome in outcomes] == [
        "npm run lint",
        "npx vue-tsc --noEmit",
        "npm run build",
    ]
    assert all(outcome.passed for outcome in outcomes)
    assert outcomes[0].output == "lint ok"
    assert [spec.argv for spec in executor.specs] == [
        ("npm", "run", "lint"),
        ("npx", "vue-tsc", "--noEmit"),
        ("npm", "run", "build"),
    ]
    assert {spec.cwd for spec in executor.specs} == {str(tmp_path)}
    assert {spec.timeout_seconds for spec in executor.specs} == {45.0}


async def test_first_failure_aborts_with_outcomes_so_far(tmp_path: Path) -> None:
    failing = CommandResult(
        argv=("npx",),
        exit_code=2,
        stdout="",
        stderr="src/api.ts(3,7): error TS2322",
        duration_ms=40,
    )
    executor = ScriptedExecutor(deque([_ok(), failing, _ok()]))
    runner = _runner(executor, tmp_path)

    with pytest.raises(RemediationError) as exc_info:
        await runner.run(["src/api.ts"], RiskLevel.MEDIUM)

    error = exc_info.value
    assert error.code is ErrorCode.VALIDATION_FAILED
    assert error.message == "typecheck command `npx vue-tsc --noEmit` exited with code 2"
    assert error.details["kind"] == "typecheck"
    assert error.details["exit_code"] == 2
    assert error.details["timed_out"] is False
    assert error.details["output"] == "src/api.ts(3,7): error TS2322"
    assert len(error.details["outcomes"]) == 2  # type: ignore[arg-type]
    assert len(executor.specs) == 2


async def test_timeout_is_reported_with_configured_limit(tmp_path: Path) -> None:
    timed_out = CommandResult(
        argv=("npm",),
        exit_code=None,
        stdout="partial",
        stderr="",
        duration_ms=5000,
        timed_out=True,
        error="command timed out after 5.000s",
    )
    runner = _runner(ScriptedExecutor(deque([timed_out])), tmp_path, timeout_seconds=5.0)

    with pytest.raises(RemediationError) as exc_info:
        await runner.run(["README.md"], RiskLevel.LOW)

    error = exc_info.value
    assert error.message == "lint command `npm run lint` timed out after 5s"
    assert error.details["exit_code"] == -1
    assert error.details["timed_out"] is True
    assert error.details["output"] == "partial\ncommand timed out after 5.000s"


async def test_launch_error_becomes_failed_outcome(tmp_path: Path) -> None:
    missing = CommandResult(
        argv=("npm",),
        exit_code=None,
        stdout="",
        stderr="",
        duration_ms=1,
        error="[Errno 2] No such file or directory: 'npm'",
    )
    runner = _runner(ScriptedExecutor(deque([missing])), tmp_path)

    with pytest.raises(RemediationError) as exc_info:
        await runner.run(["README.md"], RiskLevel.LOW)

    assert exc_info.value.message == "lint command `npm run lint` exited with code -1"
    assert "No such file or directory" in str(exc_info.value.details["output"])


async def test_failure_output_is_truncated(tmp_path: Path) -> None:
    noisy = CommandResult(
        argv=("npm",), exit_code=1, stdout="x" * 50, stderr="", duration_ms=1
    )
    runner = _runner(ScriptedExecutor(deque([noisy])), tmp_path, output_limit=10)

    with pytest.raises(RemediationError) as exc_info:
        await runner.run(["README.md"], RiskLevel.LOW)

    assert exc_info.value.details["output"] == "x" * 10


async def test_run_with_nothing_planned(tmp_path: Path) -> None:
    executor = ScriptedExecutor(deque())
    runner = _runner(executor, tmp_path, ValidationCommands())

    assert await runner.run(["src/api.ts"], RiskLevel.HIGH) == ()
    assert executor.specs == []

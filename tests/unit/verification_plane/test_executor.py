"""
autoremedy — local command executor tests

File: tests/unit/verification_plane/test_executor.py

Purpose
- Validate command spec validation and real subprocess capture, timeout,
  truncation and redaction behavior.

Functional requirements
- Subprocesses run the current interpreter only; no network.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import pytest

from autoremedy.verification_plane.executor import (
    CommandResult,
    CommandSpec,
    LocalSubprocessExecutor,
)

if TYPE_CHECKING:
    from pathlib import Path


def _python(code: str, **kwargs: object) -> CommandSpec:
    return CommandSpec(argv=(sys.executable, "-c", code), **kwargs)  # type: ignore[arg-type]


def test_command_spec_validation() -> None:
    with pytest.raises(ValueError, match="non-empty tuple"):
        CommandSpec(argv=())
    with pytest.raises(ValueError, match="non-empty tuple"):
        CommandSpec(argv=("echo", ""))
    with pytest.raises(ValueError, match="timeout_seconds must be > 0"):
        CommandSpec(argv=("echo",), timeout_seconds=0)
    with pytest.raises(ValueError, match="must not be empty"):
        CommandSpec.from_command_line("   ")


def test_command_spec_from_command_line_and_display() -> None:
    spec = CommandSpec.from_command_line(
        "npm run lint -- --fix 'src/a b.ts'", cwd="/repo", timeout_seconds=30
    )

    assert spec.argv == ("npm", "run", "lint", "--", "--fix", "src/a b.ts")
    assert spec.cwd == "/repo"
    assert spec.timeout_seconds == 30
    assert spec.display == "npm run lint -- --fix 'src/a b.ts'"


def test_build_env_inherits_or_isolates(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTOREMEDY_INHERITED", "yes")

    inherited = CommandSpec(argv=("env",), env={"EXTRA": "1"}).build_env()
    isolated = CommandSpec(argv=("env",), env={"EXTRA": "1"}, inherit_env=False).build_env()

    assert inherited["AUTOREMEDY_INHERITED"] == "yes"
    assert inherited["EXTRA"] == "1"
    assert isolated == {"EXTRA": "1"}


def test_command_result_success() -> None:
    base = {"argv": ("x",), "stdout": "", "stderr": "", "duration_ms": 1}

    assert CommandResult(exit_code=0, **base).success is True  # type: ignore[arg-type]
    assert CommandResult(exit_code=1, **base).success is False  # type: ignore[arg-type]
    errored = CommandResult(exit_code=0, error="boom", **base)  # type: ignore[arg-type]
    assert errored.success is False
    assert (
        CommandResult(exit_code=None, timed_out=True, **base).success  # type: ignore[arg-type]
        is False
    )


def test_executor_rejects_non_positive_default_timeout() -> None:
    with pytest.raises(ValueError, match="default_timeout_seconds must be > 0"):
        LocalSubprocessExecutor(default_timeout_seconds=0)


async def test_runs_process_and_captures_streams() -> None:
    executor = LocalSubprocessExecutor(default_timeout_seconds=30.0)

    result = await executor.run(
        _python("import sys; print('hello'); sys.stderr.write('warn\\r\\nnext'); sys.exit(3)")
    )

    assert result.exit_code == 3
    assert result.stdout == "hello\n"
    assert result.stderr == "warn\nnext"
    assert result.timed_out is False
    assert result.error is None
    assert result.success is False
    assert result.duration_ms >= 0


async def test_passes_environment_and_cwd(tmp_path: Path) -> None:
    executor = LocalSubprocessExecutor(default_timeout_seconds=30.0)

    result = await executor.run(
        _python(
            "import os; print(os.environ['AUTOREMEDY_SENTINEL']); print(os.getcwd())",
            env={"AUTOREMEDY_SENTINEL": "42"},
            cwd=str(tmp_path),
        )
    )

    assert result.success is True
    sentinel, cwd = result.stdout.splitlines()
    assert sentinel == "42"
    assert cwd.endswith(str(tmp_path).rsplit("/", 1)[-1])


async def test_output_is_truncated() -> None:
    executor = LocalSubprocessExecutor(default_timeout_seconds=30.0, max_output_chars=5)

    result = await executor.run(_python("print('abcdefghij')"))

    assert result.stdout == "abcde\n...[truncated 6 chars]"


async def test_output_is_redacted() -> None:
    executor = LocalSubprocessExecutor(default_timeout_seconds=30.0)

    result = await executor.run(_python("print('leaked ' + 'ghp_' + 'a' * 30)"))

    assert "ghp_" not in result.stdout
    assert "***REDACTED***" in result.stdout


async def test_timeout_kills_process() -> None:
    executor = LocalSubprocessExecutor()

    result = await executor.run(_python("import time; time.sleep(10)", timeout_seconds=0.2))

    assert result.timed_out is True
    assert result.exit_code is None
    assert result.error == "command timed out after 0.200s"
    assert result.success is False


async def test_missing_binary_is_reported_not_raised() -> None:
    executor = LocalSubprocessExecutor()

    result = await executor.run(CommandSpec(argv=("autoremedy-definitely-missing-binary",)))

    assert result.exit_code is None
    assert result.error is not None
    assert result.success is False

"""
autoremedy — post-edit validation

File: src/autoremedy/verification_plane/validation_runner.py

Purpose
- Run the project's own lint, type-check and build commands after edits are
  applied and before anything is committed.

Functional requirements
- Lint runs whenever a lint command is configured.
- Type-check runs when any touched file is typed (``.ts``, ``.tsx``, ``.vue``,
  ``.py``, ``.pyi``).
- Build additionally runs for MEDIUM and HIGH risk.
- Test commands are never selected, even when configured as lint/build.
- The first failing command aborts; the error carries every outcome so far.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import structlog

from autoremedy.constants import VALIDATION_OUTPUT_LIMIT
from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.domain.models import RiskLevel, ValidationOutcome
from autoremedy.verification_plane.executor import CommandSpec

if TYPE_CHECKING:
    from pathlib import Path

    from autoremedy.verification_plane.executor import CommandExecutor, CommandResult

TYPED_EXTENSIONS: Final[tuple[str, ...]] = (".ts", ".tsx", ".vue", ".py", ".pyi")

_TEST_COMMAND = re.compile(
    r"(^|\s)(pytest|jest|vitest|mocha|karma|playwright|cypress)(\s|$)"
    r"|\b(npm|yarn|pnpm)\s+(run\s+)?test\b"
    r"|\bpython\s+-m\s+(pytest|unittest)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class ValidationCommands:
    lint: str = ""
    typecheck: str = ""
    build: str = ""


@dataclass(frozen=True, slots=True)
class PlannedCommand:
    kind: str
    command: str


def is_test_command(command: str) -> bool:
    return bool(_TEST_COMMAND.search(command))


def touches_typed_file(paths: Sequence[str]) -> bool:
    return any(path.lower().endswith(TYPED_EXTENSIONS) for path in paths)


class ValidationRunner:
    """Selects and runs validation commands in the working copy."""

    def __init__(
        self,
        executor: CommandExecutor,
        commands: ValidationCommands,
        *,
        cwd: Path | str,
        timeout_seconds: float = 120.0,
        output_limit: int = VALIDATION_OUTPUT_LIMIT,
        logger: Any | None = None,
    ) -> None:
        self._executor = executor
        self._commands = commands
        self._cwd = str(cwd)
        self._timeout_seconds = timeout_seconds
        self._output_limit = output_limit
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def plan(
        self, touched_paths: Sequence[str], risk_level: RiskLevel
    ) -> tuple[PlannedCommand, ...]:
        planned: list[PlannedCommand] = []
        if self._commands.lint:
            planned.append(PlannedCommand("lint", self._commands.lint))
        if self._commands.typecheck and touches_typed_file(touched_paths):
            planned.append(PlannedCommand("typecheck", self._commands.typecheck))
        if self._commands.build and risk_level in (RiskLevel.MEDIUM, RiskLevel.HIGH):
            planned.append(PlannedCommand("build", self._commands.build))

        selected: list[PlannedCommand] = []
        for item in planned:
            if is_test_command(item.command):
                self._logger.warning("validation_test_command_skipped", kind=item.kind)
                continue
            selected.append(item)
        return tuple(selected)

    async def run(
        self, touched_paths: Sequence[str], risk_level: RiskLevel
    ) -> tuple[ValidationOutcome, ...]:
        """Run the planned commands in order; raise ``VALIDATION_FAILED`` on the first failure."""

        outcomes: list[ValidationOutcome] = []
        for item in self.plan(touched_paths, risk_level):
            spec = CommandSpec.from_command_line(
                item.command, cwd=self._cwd, timeout_seconds=self._timeout_seconds
            )
            result = await self._executor.run(spec)
            outcome = _to_outcome(item.command, result)
            outcomes.append(outcome)
            self._logger.info(
                "validation_command_finished",
                kind=item.kind,
                command=item.command,
                exit_code=outcome.exit_code,
                duration_ms=outcome.duration_ms,
                timed_out=outcome.timed_out,
            )
            if not outcome.passed:
                raise self._failure(item, outcome, outcomes, result.error)
        return tuple(outcomes)

    def _failure(
        self,
        item: PlannedCommand,
        outcome: ValidationOutcome,
        outcomes: Sequence[ValidationOutcome],
        launch_error: str | None,
    ) -> RemediationError:
        output = outcome.output or launch_error or ""
        if outcome.timed_out:
            reason = f"timed out after {self._timeout_seconds:g}s"
        else:
            reason = f"exited with code {outcome.exit_code}"
        return RemediationError(
            ErrorCode.VALIDATION_FAILED,
            f"{item.kind} command `{item.command}` {reason}",
            details={
                "kind": item.kind,
                "command": item.command,
                "exit_code": outcome.exit_code,
                "timed_out": outcome.timed_out,
                "output": output[: self._output_limit],
                "outcomes": [entry.to_dict() for entry in outcomes],
            },
        )


def _to_outcome(command: str, result: CommandResult) -> ValidationOutcome:
    stderr = result.stderr
    if result.error is not None:
        stderr = f"{stderr}\n{result.error}".strip()
    return ValidationOutcome(
        command=command,
        exit_code=result.exit_code if result.exit_code is not None else -1,
        stdout=result.stdout,
        stderr=stderr,
        duration_ms=result.duration_ms,
        timed_out=result.timed_out,
    )


__all__ = [
    "PlannedCommand",
    "TYPED_EXTENSIONS",
    "ValidationCommands",
    "ValidationRunner",
    "is_test_command",
    "touches_typed_file",
]

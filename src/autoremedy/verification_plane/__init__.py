"""
autoremedy — verification plane public API.

File: src/autoremedy/verification_plane/__init__.py

Purpose
- Export the gates a proposed change passes before commit: architecture
  validation of proposed contents and the project's own lint, type-check and
  build commands.

Non-functional requirements
- Keep import-time behavior deterministic and lightweight.
"""

from autoremedy.verification_plane.architecture import (
    ArchitectureValidator,
    ArchitectureViolation,
    FileUnderReview,
    RuleRegistry,
    Severity,
    ValidationReport,
    build_validator,
)
from autoremedy.verification_plane.executor import (
    CommandExecutor,
    CommandResult,
    CommandSpec,
    LocalSubprocessExecutor,
)
from autoremedy.verification_plane.validation_runner import (
    ValidationCommands,
    ValidationRunner,
    is_test_command,
)

__all__ = [
    "ArchitectureValidator",
    "ArchitectureViolation",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "FileUnderReview",
    "LocalSubprocessExecutor",
    "RuleRegistry",
    "Severity",
    "ValidationCommands",
    "ValidationReport",
    "ValidationRunner",
    "build_validator",
    "is_test_command",
]

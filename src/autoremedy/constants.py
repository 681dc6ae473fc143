"""Stable constants shared across remediation planes."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Git branch names.
DEFAULT_MAIN_BRANCH: Final[str] = "main"
DEFAULT_REMOTE: Final[str] = "origin"

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
ARTIFACT_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the repository root unless overridden by config).
ARTIFACTS_DIR: Final[PurePosixPath] = PurePosixPath(".autoremedy/artifacts")
OUTBOX_DIR: Final[PurePosixPath] = PurePosixPath(".autoremedy/outbox")

# Artifact file names handed between pipeline stages.
TRIAGE_RESULT_FILE: Final[str] = "triage-result.json"
FIX_PLAN_FILE: Final[str] = "fix-plan.json"
COMMIT_RESULT_FILE: Final[str] = "commit-result.json"
PR_RESULT_FILE: Final[str] = "pr-result.json"

# Labels written back to the issue tracker.
LABEL_AUTO_TRIAGE: Final[str] = "auto-triage"
LABEL_AUTO_FIX: Final[str] = "auto-fix"
LABEL_SECURITY: Final[str] = "security"
LABEL_HUMAN_REVIEW: Final[str] = "human-review-required"
LABEL_NEEDS_REVIEW: Final[str] = "needs-review"
LABEL_AUTOMATION_FAILED: Final[str] = "automation-failed"
LABEL_ARCHITECTURE_REVIEW: Final[str] = "architecture-review"
LABEL_CREATED_BY_AUTOFIX: Final[str] = "created-by-autofix"

# Output slices kept for validation failures and comments.
VALIDATION_OUTPUT_LIMIT: Final[int] = 2000
COMMENT_OUTPUT_LIMIT: Final[int] = 1500

__all__ = [
    "ARTIFACTS_DIR",
    "ARTIFACT_SCHEMA_VERSION",
    "COMMENT_OUTPUT_LIMIT",
    "COMMIT_RESULT_FILE",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_MAIN_BRANCH",
    "DEFAULT_REMOTE",
    "FIX_PLAN_FILE",
    "LABEL_ARCHITECTURE_REVIEW",
    "LABEL_AUTOMATION_FAILED",
    "LABEL_AUTO_FIX",
    "LABEL_AUTO_TRIAGE",
    "LABEL_CREATED_BY_AUTOFIX",
    "LABEL_HUMAN_REVIEW",
    "LABEL_NEEDS_REVIEW",
    "LABEL_SECURITY",
    "OUTBOX_DIR",
    "PR_RESULT_FILE",
    "TRIAGE_RESULT_FILE",
    "VALIDATION_OUTPUT_LIMIT",
]

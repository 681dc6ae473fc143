"""
autoremedy — branch, commit, push, rollback

File: src/autoremedy/integration_plane/commit_pipeline.py

Purpose
- Take applied, validated edits to the remote on an issue-scoped branch.
- Undo local state completely when any later stage fails.

What should be included in this file
- Branch naming ``<prefix>/<issue>-<slug>`` and conventional commit messages.
- ``CommitPipeline`` with idempotent branch acquisition, commit, push and
  rollback.

Functional requirements
- Only the touched paths are staged.
- Re-running an issue continues on its existing branch.
- Rollback hard-resets the working tree and returns to the default branch;
  a branch created by the failed run is deleted. Nothing is pushed unless
  the commit succeeded.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Final, TypeVar

import structlog

from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.domain.models import Classification, CommitRecord, Issue
from autoremedy.integration_plane.git_engine import (
    BranchResult,
    GitCommandError,
    GitEngine,
    GitEngineError,
)

if TYPE_CHECKING:
    from autoremedy.utils.concurrency import Deadline

T = TypeVar("T")

BRANCH_PREFIXES: Final[dict[Classification, str]] = {
    Classification.BUG: "fix",
    Classification.FEATURE: "feature",
    Classification.DOCS: "docs",
    Classification.CHORE: "chore",
    Classification.OTHER: "fix",
}
COMMIT_TYPES: Final[dict[Classification, str]] = {
    Classification.BUG: "fix",
    Classification.FEATURE: "feat",
    Classification.DOCS: "docs",
    Classification.CHORE: "chore",
    Classification.OTHER: "fix",
}
SLUG_WORDS: Final[int] = 5
SLUG_MAX_CHARS: Final[int] = 50
_SUBJECT_MAX_CHARS = 72

_CONVENTIONAL = re.compile(
    r"^(fix|feat|docs|chore|refactor|test|style|perf|build|ci)(\([^)]+\))?!?:\s+\S"
)
_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    words = _NON_SLUG.sub(" ", title.lower()).split()[:SLUG_WORDS]
    slug = "-".join(words)[:SLUG_MAX_CHARS].strip("-")
    return slug or "issue"


def branch_name(issue: Issue, classification: Classification) -> str:
    return f"{BRANCH_PREFIXES[classification]}/{issue.id}-{slugify(issue.title)}"


def commit_message(issue: Issue, classification: Classification, summary: str) -> str:
    """Conventional subject plus an issue reference; keeps a subject that is already typed."""

    lines = summary.strip().splitlines()
    subject = lines[0].strip() if lines else ""
    if not subject:
        subject = issue.title.strip()
    if not _CONVENTIONAL.match(subject):
        subject = f"{COMMIT_TYPES[classification]}: {subject[:1].lower()}{subject[1:]}"
    if len(subject) > _SUBJECT_MAX_CHARS:
        subject = subject[: _SUBJECT_MAX_CHARS - 3].rstrip() + "..."
    body = "\n".join(lines[1:]).strip()
    parts = [subject]
    if body:
        parts.append(body)
    parts.append(f"Fixes #{issue.id}")
    return "\n\n".join(parts)


class CommitPipeline:
    """Async facade over ``GitEngine``; each git call runs in a worker thread."""

    def __init__(
        self,
        engine: GitEngine,
        *,
        push: bool = True,
        logger: Any | None = None,
    ) -> None:
        self._engine = engine
        self._push = push
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def default_branch(self) -> str:
        return self._engine.main_branch

    async def acquire_branch(
        self,
        issue: Issue,
        classification: Classification,
        *,
        deadline: Deadline | None = None,
    ) -> BranchResult:
        name = branch_name(issue, classification)
        branch = await self._git(
            "branch", lambda: self._engine.checkout_or_create(name), deadline=deadline
        )
        self._logger.info(
            "branch_acquired", branch=branch.name, created=branch.created, base=branch.base
        )
        return branch

    async def commit(
        self,
        branch: BranchResult,
        paths: Sequence[str],
        message: str,
        *,
        deadline: Deadline | None = None,
    ) -> CommitRecord:
        """Stage ``paths``, commit, and push when enabled."""

        if not paths:
            raise RemediationError(
                ErrorCode.FILE_CHANGE_FAILED, "Edit plan produced no file changes to commit"
            )
        await self._git("stage", lambda: self._engine.stage(paths), deadline=deadline)
        result = await self._git("commit", lambda: self._engine.commit(message), deadline=deadline)
        self._logger.info(
            "commit_created", branch=result.branch, sha=result.commit, files=len(result.files)
        )

        pushed = False
        if self._push:
            await self._git("push", lambda: self._engine.push(branch.name), deadline=deadline)
            pushed = True
            self._logger.info("branch_pushed", branch=branch.name, remote=self._engine.remote)

        return CommitRecord(
            branch=result.branch,
            message=message,
            sha=result.commit,
            files_changed=result.files,
            pushed=pushed,
        )

    async def rollback(
        self, branch: BranchResult | None, *, created_paths: Sequence[str] = ()
    ) -> None:
        """Best-effort restore of the working copy; failures are logged, never raised."""

        target = branch.start_sha if branch is not None else "HEAD"
        steps: list[tuple[str, Callable[[], object]]] = [
            ("reset", lambda: self._engine.reset_hard(target))
        ]
        if created_paths:
            steps.append(("clean", lambda: self._engine.remove_untracked(created_paths)))
        steps.append(("checkout", lambda: self._engine.checkout(self.default_branch)))
        if branch is not None and branch.created:
            created_branch = branch.name
            steps.append(("delete_branch", lambda: self._engine.delete_branch(created_branch)))

        for step, operation in steps:
            try:
                await asyncio.to_thread(operation)
            except GitEngineError as exc:
                self._logger.error("rollback_step_failed", step=step, error=str(exc))
        self._logger.info(
            "rollback_completed", branch=branch.name if branch is not None else None
        )

    async def _git(
        self,
        operation: str,
        call: Callable[[], T],
        *,
        deadline: Deadline | None = None,
    ) -> T:
        if deadline is not None:
            deadline.check(f"git {operation}")
        try:
            return await asyncio.to_thread(call)
        except GitCommandError as exc:
            raise git_error(operation, exc) from exc
        except GitEngineError as exc:
            raise RemediationError(
                ErrorCode.GIT_ERROR,
                f"git {operation} failed: {exc}",
                details={"operation": operation},
            ) from exc


def git_error(operation: str, exc: GitCommandError) -> RemediationError:
    """Map a failed git command onto the remediation taxonomy."""

    details: dict[str, object] = {
        "operation": operation,
        "command": " ".join(exc.command),
        "returncode": exc.returncode,
        "stderr": exc.stderr.strip()[-1000:],
    }
    if exc.timed_out:
        return RemediationError(
            ErrorCode.TIMEOUT, f"git {operation} timed out", details={**details, "scope": "call"}
        )
    if exc.is_conflict:
        return RemediationError(
            ErrorCode.GIT_CONFLICT, f"git {operation} hit a conflict", details=details
        )
    return RemediationError(ErrorCode.GIT_ERROR, f"git {operation} failed", details=details)


__all__ = [
    "BRANCH_PREFIXES",
    "COMMIT_TYPES",
    "CommitPipeline",
    "SLUG_MAX_CHARS",
    "branch_name",
    "commit_message",
    "git_error",
    "slugify",
]

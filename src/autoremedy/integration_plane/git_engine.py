"""Deterministic Git helpers for remediation branches."""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

_BRANCH_NAME_RE = re.compile(r"^[A-Za-z0-9._/-]+$")
_FORBIDDEN_BRANCH_CHARS = (" ", "\t", "\r", "\n", ":", "~", "^", "?", "*", "[", "\\")
_CONFLICT_MARKERS = (
    "CONFLICT",
    "non-fast-forward",
    "[rejected]",
    "fetch first",
    "Updates were rejected",
)


class GitEngineError(RuntimeError):
    """Base error for git engine failures."""


class SanitizationError(GitEngineError):
    """Raised when a branch name is unsafe."""


class ProtectedBranchError(GitEngineError):
    """Raised when an operation is blocked on a protected branch."""


class GitCommandError(GitEngineError):
    """Raised when a git subprocess command exits non-zero or times out."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
        timed_out: bool = False,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        if timed_out:
            message = f"git command timed out: {' '.join(command)}"
        else:
            message = f"git command failed ({returncode}): {' '.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)

    @property
    def is_conflict(self) -> bool:
        output = f"{self.stdout}\n{self.stderr}"
        return any(marker in output for marker in _CONFLICT_MARKERS)


@dataclass(frozen=True, slots=True)
class GitResult:
    """Normalized subprocess result for deterministic git wrapper behavior."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True, slots=True)
class RepoInitResult:
    repo_path: Path
    created: bool
    main_branch: str


@dataclass(frozen=True, slots=True)
class BranchResult:
    """Branch checked out for a run; ``start_sha`` is its head before any commit."""

    name: str
    base: str
    created: bool
    start_sha: str


@dataclass(frozen=True, slots=True)
class CommitResult:
    branch: str
    commit: str
    files: tuple[str, ...]


class GitEngine:
    """Thin wrapper around the git CLI for one working copy."""

    def __init__(
        self,
        repo_path: Path | str,
        *,
        main_branch: str = "main",
        remote: str = "origin",
        timeout_seconds: float = 30.0,
        author_name: str = "",
        author_email: str = "",
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.repo_path = Path(repo_path).resolve()
        self.main_branch = main_branch
        self.remote = remote
        self.timeout_seconds = timeout_seconds
        self._author_name = author_name
        self._author_email = author_email
        self._env_overrides = dict(env_overrides or {})

    def init_or_open(self) -> RepoInitResult:
        """Open a repository or initialize it with an initial commit on the main branch."""
        self.repo_path.mkdir(parents=True, exist_ok=True)
        created = not (self.repo_path / ".git").exists()

        if created:
            self._run_git(["init", "--initial-branch", self.main_branch])
        else:
            self._run_git(["rev-parse", "--git-dir"])

        self._ensure_local_identity()

        if self._run_git(["rev-parse", "--verify", "HEAD"], check=False).returncode != 0:
            self._run_git(["symbolic-ref", "HEAD", f"refs/heads/{self.main_branch}"])
            self._run_git(
                ["commit", "--no-gpg-sign", "--allow-empty", "-m", "Initialize repository"]
            )

        return RepoInitResult(
            repo_path=self.repo_path, created=created, main_branch=self.main_branch
        )

    def current_branch(self) -> str:
        branch = self._run_git(["branch", "--show-current"]).stdout.strip()
        if not branch:
            raise GitEngineError("Detached HEAD is not supported for this operation.")
        return branch

    def head_sha(self, ref: str = "HEAD") -> str:
        return self._run_git(["rev-parse", ref]).stdout.strip()

    def branch_exists(self, branch: str) -> bool:
        ref = f"refs/heads/{branch}"
        return self._run_git(["show-ref", "--verify", "--quiet", ref], check=False).returncode == 0

    def has_remote(self) -> bool:
        remotes = self._run_git(["remote"], check=False).stdout.split()
        return self.remote in remotes

    def remote_branch_exists(self, branch: str) -> bool:
        if not self.has_remote():
            return False
        result = self._run_git(
            ["ls-remote", "--exit-code", "--heads", self.remote, branch], check=False
        )
        return result.returncode == 0 and bool(result.stdout.strip())

    def checkout_or_create(self, branch: str, *, base: str | None = None) -> BranchResult:
        """Check out ``branch`` if it exists locally or remotely, otherwise create it from ``base``.

        Re-running for the same issue therefore continues on the existing branch.
        """
        name = self.sanitize_branch_name(branch)
        base_branch = base if base is not None else self.main_branch
        self._assert_not_protected(name, action="work")

        if self.branch_exists(name):
            self._run_git(["checkout", name])
            return BranchResult(name, base_branch, created=False, start_sha=self.head_sha())

        if self.remote_branch_exists(name):
            self._run_git(["fetch", self.remote, name])
            self._run_git(["checkout", "-b", name, "--track", f"{self.remote}/{name}"])
            return BranchResult(name, base_branch, created=False, start_sha=self.head_sha())

        if not self.branch_exists(base_branch):
            raise GitEngineError(f"Branch does not exist: {base_branch}")
        self._run_git(["checkout", "-b", name, base_branch])
        return BranchResult(name, base_branch, created=True, start_sha=self.head_sha())

    def checkout(self, branch: str) -> None:
        self._run_git(["checkout", branch])

    def stage(self, paths: Sequence[str]) -> None:
        """Stage exactly ``paths`` (including deletions); nothing else in the tree."""
        if not paths:
            raise GitEngineError("No paths to stage.")
        safe = [self._normalize_path(path) for path in paths]
        self._run_git(["add", "--all", "--", *safe])

    def staged_paths(self) -> tuple[str, ...]:
        output = self._run_git(["diff", "--cached", "--name-only"]).stdout
        return tuple(line.strip() for line in output.splitlines() if line.strip())

    def commit(self, message: str) -> CommitResult:
        """Commit the index on the current (non-protected) branch."""
        branch = self.current_branch()
        self._assert_not_protected(branch, action="commit")

        if not message.strip():
            raise GitEngineError("Commit message cannot be empty.")
        files = self.staged_paths()
        if not files:
            raise GitEngineError("No staged changes to commit.")
        self._run_git(["commit", "--no-gpg-sign", "-F", "-"], input_text=message.strip() + "\n")
        return CommitResult(branch=branch, commit=self.head_sha(), files=files)

    def push(self, branch: str) -> None:
        self._assert_not_protected(branch, action="push")
        self._run_git(["push", "--set-upstream", self.remote, branch])

    def reset_hard(self, ref: str = "HEAD") -> None:
        self._run_git(["reset", "--hard", ref])

    def remove_untracked(self, paths: Sequence[str]) -> None:
        if not paths:
            return
        safe = [self._normalize_path(path) for path in paths]
        self._run_git(["clean", "-f", "--", *safe], check=False)

    def delete_branch(self, branch: str) -> None:
        self._assert_not_protected(branch, action="delete")
        self._run_git(["branch", "-D", branch])

    def sanitize_branch_name(self, value: str) -> str:
        if value == "":
            raise SanitizationError("branch name cannot be empty.")
        if any(ch in value for ch in _FORBIDDEN_BRANCH_CHARS):
            raise SanitizationError("branch name contains forbidden characters.")
        if ".." in value or "//" in value or value.endswith((".lock", "/", ".")):
            raise SanitizationError(f"branch name is not a valid ref: {value!r}")
        if value.startswith(("-", "/")):
            raise SanitizationError("branch name cannot start with '-' or '/'.")
        if not _BRANCH_NAME_RE.fullmatch(value):
            raise SanitizationError("branch name contains unsupported characters.")
        return value

    def _ensure_local_identity(self) -> None:
        if self._run_git(["config", "--local", "--get", "user.name"], check=False).returncode != 0:
            self._run_git(["config", "--local", "user.name", self._author_name or "autoremedy"])
        if self._run_git(["config", "--local", "--get", "user.email"], check=False).returncode != 0:
            email = self._author_email or "autoremedy@example.invalid"
            self._run_git(["config", "--local", "user.email", email])

    def _assert_not_protected(self, branch: str, *, action: str) -> None:
        if branch == self.main_branch:
            raise ProtectedBranchError(f"Cannot {action} directly on protected branch '{branch}'.")

    def _normalize_path(self, path: str) -> str:
        normalized = PurePosixPath(path.strip().removeprefix("./"))
        if normalized.is_absolute() or ".." in normalized.parts or ".git" in normalized.parts:
            raise GitEngineError(f"Path '{path}' is not allowed.")
        return normalized.as_posix()

    def _run_git(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
        input_text: str | None = None,
    ) -> GitResult:
        command = ("git", *args)
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
        if self._author_name:
            env["GIT_AUTHOR_NAME"] = env["GIT_COMMITTER_NAME"] = self._author_name
        if self._author_email:
            env["GIT_AUTHOR_EMAIL"] = env["GIT_COMMITTER_EMAIL"] = self._author_email
        env.update(self._env_overrides)

        try:
            completed = subprocess.run(
                command,
                cwd=self.repo_path,
                env=env,
                text=True,
                capture_output=True,
                input=input_text,
                check=False,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(
                command=command,
                returncode=-1,
                stdout=_as_text(exc.stdout),
                stderr=_as_text(exc.stderr),
                timed_out=True,
            ) from exc

        result = GitResult(
            command=command,
            cwd=self.repo_path.as_posix(),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

        if check and result.returncode != 0:
            raise GitCommandError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        return result


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


__all__ = [
    "BranchResult",
    "CommitResult",
    "GitCommandError",
    "GitEngine",
    "GitEngineError",
    "GitResult",
    "ProtectedBranchError",
    "RepoInitResult",
    "SanitizationError",
]

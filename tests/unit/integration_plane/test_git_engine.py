"""
autoremedy — test suite for integration plane git engine.

File: tests/unit/integration_plane/test_git_engine.py

Purpose
- Validate deterministic/safe GitEngine primitives over local temporary repositories.
"""

from __future__ import annotations

import os
import subprocess
from typing import TYPE_CHECKING

import pytest

from autoremedy.integration_plane.git_engine import (
    GitCommandError,
    GitEngine,
    GitEngineError,
    ProtectedBranchError,
    SanitizationError,
)

if TYPE_CHECKING:
    from pathlib import Path


def run_git(cwd: Path, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        text=True,
        capture_output=True,
        check=False,
    )
    if check and completed.returncode != 0:
        msg = (
            f"git command failed: git {' '.join(args)}\n"
            f"stdout:\n{completed.stdout}\nstderr:\n{completed.stderr}"
        )
        raise AssertionError(msg)
    return completed


@pytest.fixture(autouse=True)
def isolated_git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "home"
    xdg = tmp_path / "xdg"
    home.mkdir()
    xdg.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")


def init_engine(tmp_path: Path) -> tuple[GitEngine, Path]:
    repo = tmp_path / "repo"
    engine = GitEngine(repo)
    engine.init_or_open()
    return engine, repo


def commit_file(worktree: Path, rel_path: str, content: str, message: str) -> str:
    path = worktree / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    run_git(worktree, "add", "--all")
    run_git(worktree, "commit", "-m", message)
    return run_git(worktree, "rev-parse", "HEAD").stdout.strip()


def add_bare_remote(tmp_path: Path, repo: Path) -> Path:
    remote = tmp_path / "remote.git"
    run_git(tmp_path, "init", "--bare", str(remote))
    run_git(repo, "remote", "add", "origin", str(remote))
    return remote


def test_init_or_open_creates_main_with_initial_commit(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    engine = GitEngine(repo)

    first = engine.init_or_open()
    assert first.created is True
    assert first.main_branch == "main"
    assert engine.current_branch() == "main"
    assert run_git(repo, "log", "--format=%s").stdout.strip() == "Initialize repository"
    assert run_git(repo, "config", "--local", "user.name").stdout.strip() == "autoremedy"

    second = engine.init_or_open()
    assert second.created is False
    assert run_git(repo, "rev-list", "--count", "HEAD").stdout.strip() == "1"


def test_init_or_open_uses_configured_identity(tmp_path: Path) -> None:
    engine = GitEngine(tmp_path / "repo", author_name="Fix Bot", author_email="bot@example.org")
    engine.init_or_open()

    log = run_git(engine.repo_path, "log", "-1", "--format=%an <%ae>").stdout.strip()
    assert log == "Fix Bot <bot@example.org>"


@pytest.mark.parametrize(
    "unsafe",
    ["", "bad value", "..", "a..b", "-bad", "/bad", "bad:value", "bad\nvalue", "x.lock", "a//b"],
)
def test_sanitize_branch_name_rejects_unsafe_tokens(tmp_path: Path, unsafe: str) -> None:
    engine = GitEngine(tmp_path / "repo")

    with pytest.raises(SanitizationError):
        engine.sanitize_branch_name(unsafe)


def test_sanitize_branch_name_accepts_issue_branches(tmp_path: Path) -> None:
    engine = GitEngine(tmp_path / "repo")

    assert engine.sanitize_branch_name("fix/12-typo-in-readme") == "fix/12-typo-in-readme"


def test_checkout_or_create_creates_then_continues(tmp_path: Path) -> None:
    engine, repo = init_engine(tmp_path)
    main_sha = engine.head_sha()

    created = engine.checkout_or_create("docs/1-typo")
    assert created.created is True
    assert created.base == "main"
    assert created.start_sha == main_sha
    assert engine.current_branch() == "docs/1-typo"

    work_sha = commit_file(repo, "README.md", "# Fixed\n", "docs: fix")
    engine.checkout("main")

    continued = engine.checkout_or_create("docs/1-typo")
    assert continued.created is False
    assert continued.start_sha == work_sha
    assert engine.current_branch() == "docs/1-typo"


def test_checkout_or_create_refuses_main_and_missing_base(tmp_path: Path) -> None:
    engine, _repo = init_engine(tmp_path)

    with pytest.raises(ProtectedBranchError):
        engine.checkout_or_create("main")
    with pytest.raises(GitEngineError, match="Branch does not exist: develop"):
        engine.checkout_or_create("fix/2-x", base="develop")


def test_checkout_or_create_tracks_remote_branch(tmp_path: Path) -> None:
    engine, repo = init_engine(tmp_path)
    add_bare_remote(tmp_path, repo)
    engine.checkout_or_create("fix/3-remote")
    pushed_sha = commit_file(repo, "a.txt", "a\n", "fix: a")
    engine.push("fix/3-remote")
    engine.checkout("main")
    engine.delete_branch("fix/3-remote")
    assert engine.branch_exists("fix/3-remote") is False
    assert engine.remote_branch_exists("fix/3-remote") is True

    branch = engine.checkout_or_create("fix/3-remote")

    assert branch.created is False
    assert branch.start_sha == pushed_sha


def test_remote_branch_exists_without_remote(tmp_path: Path) -> None:
    engine, _repo = init_engine(tmp_path)

    assert engine.has_remote() is False
    assert engine.remote_branch_exists("anything") is False


def test_stage_and_commit_only_named_paths(tmp_path: Path) -> None:
    engine, repo = init_engine(tmp_path)
    engine.checkout_or_create("docs/4-guide")
    (repo / "docs").mkdir()
    (repo / "docs/guide.md").write_text("# Guide\n", encoding="utf-8")
    (repo / "scratch.txt").write_text("not part of the fix\n", encoding="utf-8")

    engine.stage(["./docs/guide.md"])
    result = engine.commit("docs: add guide\n\nFixes #4\n")

    assert result.branch == "docs/4-guide"
    assert result.files == ("docs/guide.md",)
    assert result.commit == engine.head_sha()
    assert run_git(repo, "log", "-1", "--format=%B").stdout.strip() == "docs: add guide\n\nFixes #4"
    assert "?? scratch.txt" in run_git(repo, "status", "--short").stdout


def test_stage_includes_deletions(tmp_path: Path) -> None:
    engine, repo = init_engine(tmp_path)
    engine.checkout_or_create("chore/5-cleanup")
    commit_file(repo, "old.txt", "old\n", "chore: add old")
    (repo / "old.txt").unlink()

    engine.stage(["old.txt"])

    assert engine.staged_paths() == ("old.txt",)
    assert engine.commit("chore: remove old").files == ("old.txt",)


@pytest.mark.parametrize("path", ["../escape.txt", "/tmp/absolute.txt", ".git/config", "a/../../b"])
def test_stage_rejects_forbidden_paths(tmp_path: Path, path: str) -> None:
    engine, _repo = init_engine(tmp_path)

    with pytest.raises(GitEngineError, match="is not allowed"):
        engine.stage([path])


def test_commit_guards(tmp_path: Path) -> None:
    engine, repo = init_engine(tmp_path)

    with pytest.raises(GitEngineError, match="No paths to stage"):
        engine.stage([])
    with pytest.raises(ProtectedBranchError):
        engine.commit("fix: on main")

    engine.checkout_or_create("fix/6-guards")
    with pytest.raises(GitEngineError, match="cannot be empty"):
        engine.commit("   ")
    with pytest.raises(GitEngineError, match="No staged changes"):
        engine.commit("fix: nothing")
    with pytest.raises(ProtectedBranchError):
        engine.push("main")
    with pytest.raises(ProtectedBranchError):
        engine.delete_branch("main")
    assert run_git(repo, "rev-list", "--count", "HEAD").stdout.strip() == "1"


def test_reset_and_remove_untracked_restore_working_copy(tmp_path: Path) -> None:
    engine, repo = init_engine(tmp_path)
    branch = engine.checkout_or_create("fix/7-reset")
    commit_file(repo, "tracked.txt", "v1\n", "fix: v1")
    (repo / "tracked.txt").write_text("v2\n", encoding="utf-8")
    (repo / "created.txt").write_text("new\n", encoding="utf-8")

    engine.reset_hard(branch.start_sha)
    engine.remove_untracked(["created.txt"])

    assert not (repo / "tracked.txt").exists()
    assert not (repo / "created.txt").exists()
    assert engine.head_sha() == branch.start_sha


def test_push_sets_upstream(tmp_path: Path) -> None:
    engine, repo = init_engine(tmp_path)
    remote = add_bare_remote(tmp_path, repo)
    engine.checkout_or_create("fix/8-push")
    sha = commit_file(repo, "a.txt", "a\n", "fix: a")

    engine.push("fix/8-push")

    heads = run_git(remote, "for-each-ref", "--format=%(refname) %(objectname)").stdout
    assert f"refs/heads/fix/8-push {sha}" in heads


def test_failed_command_raises_git_command_error(tmp_path: Path) -> None:
    engine, _repo = init_engine(tmp_path)

    with pytest.raises(GitCommandError) as exc_info:
        engine.checkout("does-not-exist")

    error = exc_info.value
    assert error.command == ("git", "checkout", "does-not-exist")
    assert error.returncode != 0
    assert str(error).startswith("git command failed (")
    assert error.is_conflict is False


def test_detached_head_is_rejected(tmp_path: Path) -> None:
    engine, repo = init_engine(tmp_path)
    run_git(repo, "checkout", "--detach")

    with pytest.raises(GitEngineError, match="Detached HEAD"):
        engine.current_branch()


@pytest.mark.parametrize(
    ("stderr", "expected"),
    [
        ("CONFLICT (content): Merge conflict in a.txt", True),
        (" ! [rejected]        fix/1 -> fix/1 (fetch first)", True),
        ("error: failed to push some refs (non-fast-forward)", True),
        ("fatal: not a git repository", False),
    ],
)
def test_git_command_error_conflict_detection(stderr: str, expected: bool) -> None:
    error = GitCommandError(command=("git", "push"), returncode=1, stdout="", stderr=stderr)

    assert error.is_conflict is expected
    assert str(error).endswith(stderr.strip())


def test_git_command_error_timeout_message() -> None:
    error = GitCommandError(
        command=("git", "fetch"), returncode=-1, stdout="", stderr="", timed_out=True
    )

    assert str(error) == "git command timed out: git fetch"

"""
autoremedy — commit pipeline tests

File: tests/unit/integration_plane/test_commit_pipeline.py

Purpose
- Validate branch naming, conventional commit messages, and the async
  branch/commit/push/rollback flow over real temporary repositories.
"""

from __future__ import annotations

import os
import subprocess
from typing import TYPE_CHECKING

import pytest

from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.domain.models import Classification, Issue
from autoremedy.integration_plane.commit_pipeline import (
    SLUG_MAX_CHARS,
    CommitPipeline,
    branch_name,
    commit_message,
    git_error,
    slugify,
)
from autoremedy.integration_plane.git_engine import GitCommandError, GitEngine
from autoremedy.utils.concurrency import Deadline

if TYPE_CHECKING:
    from pathlib import Path

ISSUE = Issue(id=12, title="Typo in README")


def run_git(cwd: Path, *args: str) -> str:
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    completed = subprocess.run(
        ["git", *args], cwd=cwd, env=env, text=True, capture_output=True, check=False
    )
    if completed.returncode != 0:
        raise AssertionError(f"git {' '.join(args)} failed:\n{completed.stderr}")
    return completed.stdout.strip()


@pytest.fixture(autouse=True)
def isolated_git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")


def init_repo(tmp_path: Path) -> tuple[GitEngine, Path]:
    repo = tmp_path / "repo"
    engine = GitEngine(repo)
    engine.init_or_open()
    (repo / "README.md").write_text("# Project\nTypo hre\n", encoding="utf-8")
    run_git(repo, "add", "README.md")
    run_git(repo, "commit", "-m", "Add readme")
    return engine, repo


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Typo in README", "typo-in-readme"),
        ("Fix: crash when saving!!", "fix-crash-when-saving"),
        ("one two three four five six seven", "one-two-three-four-five"),
        ("!!!", "issue"),
        ("Ünïcode only", "n-code-only"),
    ],
)
def test_slugify(title: str, expected: str) -> None:
    assert slugify(title) == expected


def test_slug_is_capped() -> None:
    slug = slugify(" ".join(["abcdefghijklmnop"] * 5))

    assert len(slug) <= SLUG_MAX_CHARS
    assert not slug.endswith("-")


@pytest.mark.parametrize(
    ("classification", "expected"),
    [
        (Classification.DOCS, "docs/12-typo-in-readme"),
        (Classification.BUG, "fix/12-typo-in-readme"),
        (Classification.FEATURE, "feature/12-typo-in-readme"),
        (Classification.CHORE, "chore/12-typo-in-readme"),
        (Classification.OTHER, "fix/12-typo-in-readme"),
    ],
)
def test_branch_name(classification: Classification, expected: str) -> None:
    assert branch_name(ISSUE, classification) == expected


def test_commit_message_adds_type_and_reference() -> None:
    message = commit_message(ISSUE, Classification.DOCS, "Fix the typo in README")

    assert message == "docs: fix the typo in README\n\nFixes #12"


def test_commit_message_keeps_conventional_subject_and_body() -> None:
    message = commit_message(
        ISSUE, Classification.BUG, "fix(readme): correct spelling\n\nThe word was misspelled."
    )

    assert message == "fix(readme): correct spelling\n\nThe word was misspelled.\n\nFixes #12"


def test_commit_message_falls_back_to_title_and_truncates() -> None:
    assert commit_message(ISSUE, Classification.CHORE, "  ") == "chore: typo in README\n\nFixes #12"

    subject = commit_message(ISSUE, Classification.BUG, "x" * 100).splitlines()[0]
    assert len(subject) == 72
    assert subject.startswith("fix: xxx")
    assert subject.endswith("...")


async def test_acquire_commit_without_push(tmp_path: Path) -> None:
    engine, repo = init_repo(tmp_path)
    pipeline = CommitPipeline(engine, push=False)

    branch = await pipeline.acquire_branch(ISSUE, Classification.DOCS)
    (repo / "README.md").write_text("# Project\nTypo here\n", encoding="utf-8")
    record = await pipeline.commit(branch, ["README.md"], "docs: fix typo\n\nFixes #12")

    assert branch.name == "docs/12-typo-in-readme"
    assert branch.created is True
    assert record.branch == "docs/12-typo-in-readme"
    assert record.files_changed == ("README.md",)
    assert record.pushed is False
    assert record.sha == run_git(repo, "rev-parse", "HEAD")
    assert pipeline.default_branch == "main"

    again = await pipeline.acquire_branch(ISSUE, Classification.DOCS)
    assert again.created is False
    assert again.start_sha == record.sha


async def test_commit_and_push_to_remote(tmp_path: Path) -> None:
    engine, repo = init_repo(tmp_path)
    remote = tmp_path / "remote.git"
    run_git(tmp_path, "init", "--bare", str(remote))
    run_git(repo, "remote", "add", "origin", str(remote))
    pipeline = CommitPipeline(engine, push=True)

    branch = await pipeline.acquire_branch(ISSUE, Classification.DOCS)
    (repo / "README.md").write_text("# Project\nTypo here\n", encoding="utf-8")
    record = await pipeline.commit(branch, ["README.md"], "docs: fix typo")

    assert record.pushed is True
    assert run_git(remote, "rev-parse", "refs/heads/docs/12-typo-in-readme") == record.sha


async def test_commit_requires_paths(tmp_path: Path) -> None:
    engine, _repo = init_repo(tmp_path)
    pipeline = CommitPipeline(engine, push=False)
    branch = await pipeline.acquire_branch(ISSUE, Classification.DOCS)

    with pytest.raises(RemediationError) as exc_info:
        await pipeline.commit(branch, [], "docs: nothing")

    assert exc_info.value.code is ErrorCode.FILE_CHANGE_FAILED


async def test_push_failure_is_a_git_error(tmp_path: Path) -> None:
    engine, repo = init_repo(tmp_path)
    pipeline = CommitPipeline(engine, push=True)
    branch = await pipeline.acquire_branch(ISSUE, Classification.DOCS)
    (repo / "README.md").write_text("changed\n", encoding="utf-8")

    with pytest.raises(RemediationError) as exc_info:
        await pipeline.commit(branch, ["README.md"], "docs: fix typo")

    error = exc_info.value
    assert error.code is ErrorCode.GIT_ERROR
    assert error.message == "git push failed"
    assert error.details["operation"] == "push"


async def test_engine_guard_errors_are_wrapped(tmp_path: Path) -> None:
    engine, _repo = init_repo(tmp_path)
    pipeline = CommitPipeline(engine, push=False)
    branch = await pipeline.acquire_branch(ISSUE, Classification.DOCS)

    with pytest.raises(RemediationError) as exc_info:
        await pipeline.commit(branch, ["../outside.txt"], "docs: escape")

    assert exc_info.value.code is ErrorCode.GIT_ERROR
    assert exc_info.value.message.startswith("git stage failed: Path '../outside.txt'")


async def test_expired_deadline_stops_before_git(tmp_path: Path) -> None:
    engine, _repo = init_repo(tmp_path)
    pipeline = CommitPipeline(engine, push=False)
    ticks = iter([0.0, 100.0])
    deadline = Deadline(10.0, clock=lambda: next(ticks))

    with pytest.raises(RemediationError) as exc_info:
        await pipeline.acquire_branch(ISSUE, Classification.DOCS, deadline=deadline)

    assert exc_info.value.code is ErrorCode.TIMEOUT
    assert engine.current_branch() == "main"


async def test_rollback_restores_tree_and_deletes_created_branch(tmp_path: Path) -> None:
    engine, repo = init_repo(tmp_path)
    pipeline = CommitPipeline(engine, push=False)
    branch = await pipeline.acquire_branch(ISSUE, Classification.DOCS)
    (repo / "README.md").write_text("broken\n", encoding="utf-8")
    (repo / "docs").mkdir()
    (repo / "docs/new.md").write_text("new\n", encoding="utf-8")

    await pipeline.rollback(branch, created_paths=["docs/new.md"])

    assert engine.current_branch() == "main"
    assert engine.branch_exists(branch.name) is False
    assert (repo / "README.md").read_text(encoding="utf-8") == "# Project\nTypo hre\n"
    assert not (repo / "docs/new.md").exists()


async def test_rollback_keeps_existing_branch_and_undoes_run_commit(tmp_path: Path) -> None:
    engine, repo = init_repo(tmp_path)
    pipeline = CommitPipeline(engine, push=False)
    first = await pipeline.acquire_branch(ISSUE, Classification.DOCS)
    (repo / "README.md").write_text("first attempt\n", encoding="utf-8")
    earlier = await pipeline.commit(first, ["README.md"], "docs: first attempt")
    engine.checkout("main")

    branch = await pipeline.acquire_branch(ISSUE, Classification.DOCS)
    (repo / "README.md").write_text("second attempt\n", encoding="utf-8")
    await pipeline.commit(branch, ["README.md"], "docs: second attempt")
    await pipeline.rollback(branch)

    assert engine.current_branch() == "main"
    assert engine.branch_exists(branch.name) is True
    assert run_git(repo, "rev-parse", branch.name) == earlier.sha


async def test_rollback_without_branch_is_best_effort(tmp_path: Path) -> None:
    engine, repo = init_repo(tmp_path)
    pipeline = CommitPipeline(engine, push=False)
    (repo / "README.md").write_text("dirty\n", encoding="utf-8")

    await pipeline.rollback(None)

    assert (repo / "README.md").read_text(encoding="utf-8") == "# Project\nTypo hre\n"


@pytest.mark.parametrize(
    ("stderr", "timed_out", "code"),
    [
        ("", True, ErrorCode.TIMEOUT),
        ("CONFLICT (content): Merge conflict", False, ErrorCode.GIT_CONFLICT),
        ("fatal: repository not found", False, ErrorCode.GIT_ERROR),
    ],
)
def test_git_error_mapping(stderr: str, timed_out: bool, code: ErrorCode) -> None:
    exc = GitCommandError(
        command=("git", "push"), returncode=1, stdout="", stderr=stderr, timed_out=timed_out
    )

    error = git_error("push", exc)

    assert error.code is code
    assert error.details["operation"] == "push"
    assert error.details["command"] == "git push"

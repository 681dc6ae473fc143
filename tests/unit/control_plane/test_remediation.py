"""
autoremedy — remediation pipeline tests

File: tests/unit/control_plane/test_remediation.py

Purpose
- Drive whole remediation runs over a real temporary repository with a
  scripted text generator, a scripted command executor and the local tracker.

Functional requirements
- Successful runs commit exactly the planned edit and open a pull request.
- Failed runs after branch acquisition leave no commit, no branch created by
  the run, and an unchanged working tree.
"""

from __future__ import annotations

import json
import os
import subprocess
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest

from autoremedy.config.schema import default_config
from autoremedy.control_plane.remediation import RemediationPipeline
from autoremedy.domain.errors import ErrorCode
from autoremedy.domain.models import (
    Classification,
    ClassificationResult,
    Issue,
    PullRequestRecord,
    SecurityReport,
    TriageResult,
)
from autoremedy.integration_plane.git_engine import GitEngine
from autoremedy.integration_plane.tracker import LocalIssueTracker, TrackerError
from autoremedy.triage_plane.report import triage_labels
from autoremedy.triage_plane.risk import RiskAssessor
from autoremedy.triage_plane.security_gate import SecurityGate
from autoremedy.utils.concurrency import Deadline
from autoremedy.verification_plane.executor import CommandResult, CommandSpec

if TYPE_CHECKING:
    from pathlib import Path

ORIGINAL_README = "# Project\n\nPlease recieve this.\n"
ISSUE = Issue(id=7, title="Typo in README", body="The word 'recieve' in README.md is misspelled.")
BRANCH = "docs/7-typo-in-readme"


def _plan(path: str = "README.md", search: str = "recieve", replace: str = "receive") -> str:
    return json.dumps(
        {
            "file_changes": [
                {"path": path, "search_replace": [{"search": search, "replace": replace}]}
            ],
            "commit_message": "Fix typo in README",
        }
    )


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


@dataclass(slots=True)
class ScriptedGenerator:
    responses: deque[str]
    prompts: list[str] = field(default_factory=list)

    async def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        self.prompts.append(prompt)
        return self.responses.popleft()


@dataclass(slots=True)
class ScriptedExecutor:
    exit_code: int = 0
    stdout: str = ""
    specs: list[CommandSpec] = field(default_factory=list)

    async def run(self, spec: CommandSpec) -> CommandResult:
        self.specs.append(spec)
        return CommandResult(
            argv=spec.argv, exit_code=self.exit_code, stdout=self.stdout, stderr="", duration_ms=3
        )


class PullRequestsDownTracker(LocalIssueTracker):
    async def create_pull_request(self, **kwargs: Any) -> PullRequestRecord:
        raise TrackerError("pull requests are disabled for this repository")


@dataclass(slots=True)
class Harness:
    repo: Path
    artifacts: Path
    tracker: LocalIssueTracker
    generator: ScriptedGenerator
    executor: ScriptedExecutor
    pipeline: RemediationPipeline

    @property
    def engine(self) -> GitEngine:
        return GitEngine(self.repo)

    def artifact(self, issue_id: int, name: str) -> dict[str, Any]:
        path = self.artifacts / f"issue-{issue_id}" / name
        payload: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        return payload

    def readme(self) -> str:
        return (self.repo / "README.md").read_text(encoding="utf-8")


def _harness(
    tmp_path: Path,
    responses: Sequence[str] = (),
    *,
    executor: ScriptedExecutor | None = None,
    tracker: LocalIssueTracker | None = None,
) -> Harness:
    repo = tmp_path / "repo"
    GitEngine(repo).init_or_open()
    (repo / "README.md").write_text(ORIGINAL_README, encoding="utf-8")
    run_git(repo, "add", "README.md")
    run_git(repo, "commit", "-m", "Add readme")

    config = default_config()
    config["pipeline"]["push"] = False
    config["validation"]["lint_command"] = "npm run lint"
    config["paths"]["artifacts_dir"] = str(tmp_path / "artifacts")

    tracker = tracker if tracker is not None else LocalIssueTracker(tmp_path / "outbox")
    generator = ScriptedGenerator(deque(responses))
    executor = executor if executor is not None else ScriptedExecutor()
    pipeline = RemediationPipeline.from_config(
        config, root=repo, tracker=tracker, generator=generator, executor=executor
    )
    return Harness(repo, tmp_path / "artifacts", tracker, generator, executor, pipeline)


def _triage(issue: Issue = ISSUE, paths: tuple[str, ...] = ("README.md",)) -> TriageResult:
    classification = ClassificationResult(
        classification=Classification.DOCS, confidence=0.8, reasoning="Keyword match"
    )
    security = SecurityGate().check_issue(issue, paths)
    risk = RiskAssessor().assess(paths, security, classification=Classification.DOCS)
    return TriageResult(
        issue_id=issue.id,
        classification=classification,
        risk=risk,
        security=security,
        affected_files=paths,
        labels=triage_labels(classification, risk),
    )


async def test_successful_run_commits_and_opens_pull_request(tmp_path: Path) -> None:
    harness = _harness(tmp_path, [_plan()])

    outcome = await harness.pipeline.remediate(ISSUE, _triage())

    assert outcome.success is True
    assert outcome.error is None
    assert outcome.commit is not None
    assert outcome.commit.branch == BRANCH
    assert outcome.commit.files_changed == ("README.md",)
    assert outcome.commit.pushed is False
    assert harness.readme() == "# Project\n\nPlease receive this.\n"
    assert run_git(harness.repo, "log", "-1", "--format=%B") == (
        "docs: fix typo in README\n\nFixes #7"
    )
    assert run_git(harness.repo, "rev-parse", BRANCH) == outcome.commit.sha
    assert [spec.argv for spec in harness.executor.specs] == [("npm", "run", "lint")]
    assert [item.command for item in outcome.validation] == ["npm run lint"]
    assert len(harness.generator.prompts) == 1
    assert "README.md" in harness.generator.prompts[0]

    record = outcome.pull_request
    assert record is not None
    assert record.number == 1
    assert record.head == BRANCH
    assert record.base == "main"
    assert record.draft is False
    assert await harness.tracker.find_pull_request(BRANCH) == record
    assert "A pull request has been created: #1" in harness.tracker.comments(7)[-1]

    assert harness.artifact(7, "fix-plan.json")["success"] is True
    commit_artifact = harness.artifact(7, "commit-result.json")
    assert commit_artifact["data"]["commit"]["sha"] == outcome.commit.sha
    assert harness.artifact(7, "pr-result.json")["data"]["number"] == 1


async def test_validation_failure_rolls_back_everything(tmp_path: Path) -> None:
    executor = ScriptedExecutor(exit_code=1, stdout="README.md: lint error")
    harness = _harness(tmp_path, [_plan()], executor=executor)
    main_sha = run_git(harness.repo, "rev-parse", "main")

    outcome = await harness.pipeline.remediate(ISSUE, _triage())

    assert outcome.success is False
    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.VALIDATION_FAILED
    assert outcome.rolled_back is True
    assert outcome.commit is None
    assert outcome.pull_request is None
    assert harness.readme() == ORIGINAL_README
    assert harness.engine.current_branch() == "main"
    assert harness.engine.branch_exists(BRANCH) is False
    assert run_git(harness.repo, "rev-parse", "HEAD") == main_sha
    assert run_git(harness.repo, "status", "--porcelain") == ""

    [comment] = harness.tracker.comments(7)
    assert "has been rolled back" in comment
    assert "**Failed Command**: `npm run lint`" in comment
    assert "README.md: lint error" in comment
    assert harness.tracker.labels(7) == ("automation-failed",)
    failure = harness.artifact(7, "commit-result.json")
    assert failure["success"] is False
    assert failure["error"]["code"] == "VALIDATION_FAILED"
    assert await harness.tracker.find_pull_request(BRANCH) is None


async def test_missing_search_text_rolls_back_created_branch(tmp_path: Path) -> None:
    harness = _harness(tmp_path, [_plan(search="not in the file")])

    outcome = await harness.pipeline.remediate(ISSUE, _triage())

    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.SEARCH_NOT_FOUND
    assert outcome.rolled_back is True
    assert harness.engine.branch_exists(BRANCH) is False
    assert harness.readme() == ORIGINAL_README
    assert harness.executor.specs == []


async def test_human_review_decision_never_reaches_generation(tmp_path: Path) -> None:
    harness = _harness(tmp_path, [_plan()])
    issue = Issue(id=8, title="Rotate the API key", body="The key lives in `src/auth.js`.")

    outcome = await harness.pipeline.remediate(issue, _triage(issue, ("src/auth.js",)))

    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.NOT_AUTO_FIX
    assert outcome.error.details["security_flagged"] is True
    assert outcome.rolled_back is False
    assert harness.generator.prompts == []
    assert harness.artifact(8, "fix-plan.json")["error"]["code"] == "NOT_AUTO_FIX"
    assert "Not suitable for automatic fixing" in harness.tracker.comments(8)[0]


async def test_unusable_generator_output_is_reported(tmp_path: Path) -> None:
    harness = _harness(tmp_path, ["I am not able to produce a plan for this."])

    outcome = await harness.pipeline.remediate(ISSUE, _triage())

    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.INVALID_AI_OUTPUT
    assert outcome.rolled_back is False
    assert harness.engine.branch_exists(BRANCH) is False
    assert "#### Quick Issue Template" in harness.tracker.comments(7)[0]
    assert harness.artifact(7, "fix-plan.json")["success"] is False


async def test_plan_touching_sensitive_path_is_blocked(tmp_path: Path) -> None:
    harness = _harness(tmp_path, [_plan(path=".env", search="A=1", replace="A=2")])

    outcome = await harness.pipeline.remediate(ISSUE, _triage())

    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.SECURITY_VIOLATION
    assert outcome.error.details == {"stage": "edit plan", "paths": [".env"]}
    assert not (harness.repo / ".env").exists()
    assert harness.engine.branch_exists(BRANCH) is False


async def test_issue_without_identifiable_files(tmp_path: Path) -> None:
    harness = _harness(tmp_path, [_plan()])
    issue = Issue(id=9, title="Zzxq qqzw")

    outcome = await harness.pipeline.remediate(issue, _triage(issue, ()))

    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.NO_FILES_FOUND
    assert harness.generator.prompts == []


async def test_triage_for_another_issue_is_rejected(tmp_path: Path) -> None:
    harness = _harness(tmp_path, [_plan()])
    other = Issue(id=99, title="Typo in README")

    outcome = await harness.pipeline.remediate(ISSUE, _triage(other))

    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.INVALID_INPUT
    assert "issue #99, not #7" in outcome.error.message


async def test_spent_deadline_stops_before_analysis(tmp_path: Path) -> None:
    harness = _harness(tmp_path, [_plan()])
    now = [0.0]
    deadline = Deadline(1.0, clock=lambda: now[0])
    now[0] = 50.0

    outcome = await harness.pipeline.remediate(ISSUE, _triage(), deadline=deadline)

    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.TIMEOUT
    assert outcome.error.details["operation"] == "project analysis"
    assert harness.generator.prompts == []


async def test_pull_request_failure_keeps_the_commit(tmp_path: Path) -> None:
    tracker = PullRequestsDownTracker(tmp_path / "outbox")
    harness = _harness(tmp_path, [_plan()], tracker=tracker)

    outcome = await harness.pipeline.remediate(ISSUE, _triage())

    assert outcome.error is not None
    assert outcome.error.code is ErrorCode.TRACKER_ERROR
    assert outcome.rolled_back is False
    assert outcome.commit is not None
    assert run_git(harness.repo, "rev-parse", BRANCH) == outcome.commit.sha
    assert harness.artifact(7, "commit-result.json")["success"] is True
    assert harness.artifact(7, "pr-result.json")["error"]["code"] == "TRACKER_ERROR"
    assert tracker.labels(7) == ("automation-failed",)

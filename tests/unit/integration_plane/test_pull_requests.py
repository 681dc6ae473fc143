"""
autoremedy — pull request generation tests

File: tests/unit/integration_plane/test_pull_requests.py

Purpose
- Validate title, labels, draft rules and body rendering, and the publisher's
  reuse of an existing pull request for the same branch.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from autoremedy.domain.models import (
    Classification,
    ClassificationResult,
    CommitRecord,
    Issue,
    PullRequestRecord,
    SecurityReport,
    TriageResult,
    ValidationOutcome,
)
from autoremedy.integration_plane.pull_requests import (
    MAX_REVIEWERS,
    PullRequestPublisher,
    is_draft,
    pull_request_body,
    pull_request_labels,
    pull_request_title,
    success_comment,
)
from autoremedy.integration_plane.tracker import LocalIssueTracker
from autoremedy.triage_plane.report import triage_labels
from autoremedy.triage_plane.risk import RiskAssessor

if TYPE_CHECKING:
    from pathlib import Path

ISSUE = Issue(id=7, title="typo in readme", body="The word 'recieve' is misspelled.")
DOCS = ClassificationResult(
    classification=Classification.DOCS, confidence=0.8, reasoning="Keyword match"
)
COMMIT = CommitRecord(
    branch="docs/7-typo-in-readme",
    message="docs: fix typo in readme\n\nFixes #7",
    sha="abc1234def5678",
    files_changed=("README.md",),
    pushed=True,
)
SIX_DOCS = tuple(f"docs/page{index}.md" for index in range(6))


def _triage(
    paths: tuple[str, ...] = ("README.md",), security: SecurityReport | None = None
) -> TriageResult:
    report = security if security is not None else SecurityReport()
    risk = RiskAssessor().assess(paths, report, classification=DOCS.classification)
    return TriageResult(
        issue_id=ISSUE.id,
        classification=DOCS,
        risk=risk,
        security=report,
        affected_files=paths,
        labels=triage_labels(DOCS, risk),
    )


def test_title_uses_verb_and_capitalizes() -> None:
    assert pull_request_title(ISSUE, Classification.DOCS) == "Fix #7: Typo in readme"
    assert pull_request_title(ISSUE, Classification.FEATURE) == "Add #7: Typo in readme"
    assert pull_request_title(ISSUE, Classification.CHORE) == "Update #7: Typo in readme"


def test_long_titles_are_truncated() -> None:
    issue = Issue(id=9, title="x" * 100)

    assert pull_request_title(issue, Classification.BUG) == f"Fix #9: {'X' + 'x' * 79}..."


def test_labels_and_draft_by_risk() -> None:
    low = _triage()
    medium = _triage(SIX_DOCS)
    flagged = _triage(security=SecurityReport(keyword_matches=("password",)))

    assert pull_request_labels(low) == ("auto-fix", "docs", "low-risk")
    assert pull_request_labels(medium) == ("auto-fix", "docs", "medium-risk", "needs-review")
    assert pull_request_labels(flagged) == (
        "auto-fix",
        "docs",
        "high-risk",
        "human-review-required",
        "security",
    )
    assert is_draft(low) is False
    assert is_draft(medium) is True
    assert is_draft(flagged) is True


def test_body_sections_for_low_risk_fix() -> None:
    outcome = ValidationOutcome(
        command="npm run lint", exit_code=0, stdout="All files pass", duration_ms=120
    )

    body = pull_request_body(ISSUE, _triage(), COMMIT, [outcome])

    assert body.startswith("## Summary\n\nFixes #7\n\ntypo in readme\n")
    assert "- `README.md`" in body
    assert "**Root Cause**: Keyword match" in body
    assert "**Issue Description**: The word 'recieve' is misspelled." in body
    assert "1. Check out this branch: `git checkout docs/7-typo-in-readme`" in body
    assert "3. Open `README.md` and verify the content reads correctly" in body
    assert "**Risk Level**: LOW (score 10/100)" in body
    assert "**Affected Areas**: README.md" in body
    assert "git revert abc1234def5678" in body
    assert "**Command**: `npm run lint`" in body
    assert "**Exit Code**: 0" in body
    assert "```\nAll files pass\n```" in body
    assert "- abc1234: docs: fix typo in readme" in body
    assert "MEDIUM RISK" not in body
    assert body.endswith("*This pull request was generated automatically.*\n")


def test_body_for_medium_risk_without_validation() -> None:
    issue = Issue(id=7, title="typo in readme", body="y" * 600)

    body = pull_request_body(issue, _triage(SIX_DOCS), COMMIT)

    assert "**MEDIUM RISK**: this pull request requires maintainer review." in body
    assert "No validation commands were configured." in body
    assert f"**Issue Description**: {'y' * 500}..." in body


def test_body_notes_security_flag_and_empty_commit() -> None:
    commit = CommitRecord(branch="docs/7-x", message="", sha="0" * 40)
    triage = _triage(security=SecurityReport(keyword_matches=("password",)))

    body = pull_request_body(ISSUE, triage, commit)

    assert "No file changes recorded." in body
    assert "**Security Note**" in body
    assert "- 0000000: No message" in body


async def test_publisher_creates_ready_pull_request_with_capped_reviewers(tmp_path: Path) -> None:
    tracker = LocalIssueTracker(tmp_path / "outbox")
    publisher = PullRequestPublisher(tracker, reviewers=("a", "b", "c", "d"))

    record = await publisher.publish(ISSUE, _triage(), COMMIT, base="main")

    assert record.number == 1
    assert record.title == "Fix #7: Typo in readme"
    assert record.head == "docs/7-typo-in-readme"
    assert record.base == "main"
    assert record.draft is False
    assert record.reviewers == ("a", "b", "c")
    assert len(record.reviewers) == MAX_REVIEWERS
    assert record.reused is False


async def test_publisher_opens_drafts_without_reviewers(tmp_path: Path) -> None:
    tracker = LocalIssueTracker(tmp_path / "outbox")
    publisher = PullRequestPublisher(tracker, reviewers=("a",))

    record = await publisher.publish(ISSUE, _triage(SIX_DOCS), COMMIT, base="main")

    assert record.draft is True
    assert record.reviewers == ()
    assert "needs-review" in record.labels


async def test_publisher_reuses_existing_pull_request(tmp_path: Path) -> None:
    tracker = LocalIssueTracker(tmp_path / "outbox")
    publisher = PullRequestPublisher(tracker)
    first = await publisher.publish(ISSUE, _triage(), COMMIT, base="main")

    second = await publisher.publish(ISSUE, _triage(), COMMIT, base="main")

    assert second.number == first.number
    assert second.reused is True
    assert await tracker.find_pull_request(COMMIT.branch) == first


@pytest.mark.parametrize(
    ("reused", "draft", "expected"),
    [
        (False, False, "A pull request has been created: #3"),
        (True, True, "A pull request has been updated: #3"),
    ],
)
def test_success_comment(reused: bool, draft: bool, expected: str) -> None:
    record = PullRequestRecord(
        number=3,
        title="t",
        head="h",
        base="main",
        draft=draft,
        url="https://example.invalid/pr/3",
        reused=reused,
    )

    comment = success_comment(record)

    assert comment.startswith("## Automated fix complete\n")
    assert expected in comment
    assert "[View pull request](https://example.invalid/pr/3)" in comment
    assert ("**draft mode**" in comment) is draft

"""
autoremedy — pull request generation

File: src/autoremedy/integration_plane/pull_requests.py

Purpose
- Describe a committed fix as a pull request: title, body, labels, draft
  flag and reviewers.

Functional requirements
- Title ``"<Verb> #<n>: <Title>"``.
- MEDIUM risk (decision DRAFT_PR) opens a draft labelled ``needs-review``.
- Reviewers are only requested on non-draft pull requests.
- An existing pull request for the branch is reused rather than duplicated.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Final

import structlog

from autoremedy.constants import (
    LABEL_AUTO_FIX,
    LABEL_HUMAN_REVIEW,
    LABEL_NEEDS_REVIEW,
    LABEL_SECURITY,
)
from autoremedy.domain.models import (
    Classification,
    CommitRecord,
    Decision,
    Issue,
    PullRequestRecord,
    RiskLevel,
    TriageResult,
    ValidationOutcome,
)

if TYPE_CHECKING:
    from autoremedy.integration_plane.tracker import IssueTracker

TITLE_VERBS: Final[dict[Classification, str]] = {
    Classification.BUG: "Fix",
    Classification.FEATURE: "Add",
    Classification.DOCS: "Fix",
    Classification.CHORE: "Update",
    Classification.OTHER: "Update",
}
VERIFICATION_STEPS: Final[dict[Classification, str]] = {
    Classification.DOCS: "Open `{path}` and verify the content reads correctly",
    Classification.BUG: "Test the scenario described in the issue to confirm the bug is fixed",
    Classification.FEATURE: "Test the new functionality against the issue requirements",
    Classification.CHORE: "Verify the maintenance changes don't break existing functionality",
    Classification.OTHER: "Verify the changes achieve the intended outcome",
}
MAX_REVIEWERS: Final[int] = 3
_TITLE_MAX_CHARS = 80
_BODY_EXCERPT_CHARS = 500
_OUTPUT_EXCERPT_CHARS = 1000


def pull_request_title(issue: Issue, classification: Classification) -> str:
    title = issue.title.strip()
    title = title[:1].upper() + title[1:]
    if len(title) > _TITLE_MAX_CHARS:
        title = title[:_TITLE_MAX_CHARS] + "..."
    return f"{TITLE_VERBS[classification]} #{issue.id}: {title}"


def pull_request_labels(triage: TriageResult) -> tuple[str, ...]:
    labels = [LABEL_AUTO_FIX, triage.classification.classification.value.lower()]
    level = triage.risk.level
    if level is RiskLevel.LOW:
        labels.append("low-risk")
    elif level is RiskLevel.MEDIUM:
        labels.extend(["medium-risk", LABEL_NEEDS_REVIEW])
    else:
        labels.extend(["high-risk", LABEL_HUMAN_REVIEW])
    if triage.risk.security_flagged:
        labels.append(LABEL_SECURITY)
    return tuple(dict.fromkeys(labels))


def is_draft(triage: TriageResult) -> bool:
    return triage.risk.decision is not Decision.AUTO_FIX or triage.risk.level is not RiskLevel.LOW


def pull_request_body(
    issue: Issue,
    triage: TriageResult,
    commit: CommitRecord,
    validation: Sequence[ValidationOutcome] = (),
) -> str:
    classification = triage.classification.classification
    files = commit.files_changed
    lines = ["## Summary", "", f"Fixes #{issue.id}", "", issue.title, "", "## What Changed", ""]
    lines.extend(f"- `{path}`" for path in files)
    if not files:
        lines.append("No file changes recorded.")

    lines.extend(["", "## Why", "", f"**Root Cause**: {triage.classification.reasoning}", ""])
    if issue.body:
        excerpt = issue.body[:_BODY_EXCERPT_CHARS]
        suffix = "..." if len(issue.body) > _BODY_EXCERPT_CHARS else ""
        lines.extend([f"**Issue Description**: {excerpt}{suffix}", ""])

    first = files[0] if files else "the file"
    step = VERIFICATION_STEPS[classification].format(path=first)
    lines.extend(
        [
            "## Manual Verification",
            "",
            "To verify this fix:",
            "",
            f"1. Check out this branch: `git checkout {commit.branch}`",
            f"2. Review the changes in: {', '.join(f'`{path}`' for path in files) or 'n/a'}",
            f"3. {step}",
            "",
            "## Risk Assessment",
            "",
            f"**Risk Level**: {triage.risk.level.value} (score {triage.risk.score}/100)",
            f"**Affected Areas**: {', '.join(triage.affected_files) or 'None specified'}",
            "",
        ]
    )
    if triage.risk.security_flagged:
        lines.extend(["**Security Note**: this change was flagged for security review.", ""])
    if triage.risk.level is RiskLevel.MEDIUM:
        lines.extend(["**MEDIUM RISK**: this pull request requires maintainer review.", ""])

    lines.extend(
        [
            "### Rollback Instructions",
            "",
            "If this change causes issues after merging:",
            "",
            "```bash",
            f"git revert {commit.sha}",
            "```",
            "",
            "<details>",
            "<summary>Validation Results</summary>",
            "",
        ]
    )
    if not validation:
        lines.extend(["No validation commands were configured.", ""])
    for outcome in validation:
        lines.extend(
            [
                f"**Command**: `{outcome.command}`",
                f"**Exit Code**: {outcome.exit_code}",
                f"**Duration**: {outcome.duration_ms}ms",
                "",
            ]
        )
        if outcome.output:
            lines.extend(["```", outcome.output[:_OUTPUT_EXCERPT_CHARS], "```", ""])
    subject = commit.message.splitlines()[0] if commit.message else "No message"
    lines.extend(
        [
            "</details>",
            "",
            "<details>",
            "<summary>Commits</summary>",
            "",
            f"- {commit.sha[:7]}: {subject}",
            "",
            "</details>",
            "",
            "---",
            "",
            "*This pull request was generated automatically.*",
        ]
    )
    return "\n".join(lines) + "\n"


class PullRequestPublisher:
    def __init__(
        self,
        tracker: IssueTracker,
        *,
        reviewers: Sequence[str] = (),
        logger: Any | None = None,
    ) -> None:
        self._tracker = tracker
        self._reviewers = tuple(reviewers)[:MAX_REVIEWERS]
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def publish(
        self,
        issue: Issue,
        triage: TriageResult,
        commit: CommitRecord,
        *,
        base: str,
        validation: Sequence[ValidationOutcome] = (),
    ) -> PullRequestRecord:
        existing = await self._tracker.find_pull_request(commit.branch)
        if existing is not None:
            self._logger.info("pull_request_reused", number=existing.number, head=commit.branch)
            return replace(existing, reused=True)

        draft = is_draft(triage)
        record = await self._tracker.create_pull_request(
            title=pull_request_title(issue, triage.classification.classification),
            body=pull_request_body(issue, triage, commit, validation),
            head=commit.branch,
            base=base,
            draft=draft,
            labels=pull_request_labels(triage),
            reviewers=() if draft else self._reviewers,
        )
        return record


def success_comment(record: PullRequestRecord) -> str:
    lines = [
        "## Automated fix complete",
        "",
        f"A pull request has been {'updated' if record.reused else 'created'}: #{record.number}",
        "",
    ]
    if record.url:
        lines.extend([f"[View pull request]({record.url})", ""])
    if record.draft:
        lines.append(
            "This pull request is in **draft mode** and requires human review before merging."
        )
    else:
        lines.append("The fix has been validated and is ready for review.")
    return "\n".join(lines) + "\n"


__all__ = [
    "MAX_REVIEWERS",
    "PullRequestPublisher",
    "TITLE_VERBS",
    "is_draft",
    "pull_request_body",
    "pull_request_labels",
    "pull_request_title",
    "success_comment",
]

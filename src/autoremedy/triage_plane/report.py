"""
autoremedy — triage labels and comment rendering

File: src/autoremedy/triage_plane/report.py

Purpose
- Turn a ``TriageResult`` into the label set and markdown comment written back
  to the issue tracker.
- Decide whether an issue should be triaged at all (bot authors, earlier runs).

Functional requirements
- Labels: ``auto-triage``, classification, ``<level>-risk``, plus ``security``
  and ``human-review-required`` when they apply.
- An issue carrying ``auto-triage``, a classification label and a risk label
  is considered triaged and is skipped.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Final

from autoremedy.constants import (
    LABEL_AUTO_TRIAGE,
    LABEL_CREATED_BY_AUTOFIX,
    LABEL_HUMAN_REVIEW,
    LABEL_SECURITY,
)
from autoremedy.domain.models import (
    Classification,
    ClassificationResult,
    Decision,
    Issue,
    RiskAssessment,
    TriageResult,
)

CLASSIFICATION_LABELS: Final[frozenset[str]] = frozenset(
    category.value.lower() for category in Classification if category is not Classification.OTHER
)
RISK_LABELS: Final[frozenset[str]] = frozenset({"low-risk", "medium-risk", "high-risk"})

DECISION_TEXT: Final[dict[Decision, str]] = {
    Decision.AUTO_FIX: (
        "**Auto-fix enabled**: this issue qualifies for an automatic fix. "
        "A pull request will be opened once the fix passes validation."
    ),
    Decision.DRAFT_PR: (
        "**Draft PR**: an automatic fix will be attempted and opened as a draft "
        "pull request for human review."
    ),
    Decision.HUMAN_REVIEW_REQUIRED: (
        "**Human review required**: this issue will not be fixed automatically."
    ),
}

_MAX_LISTED_FILES = 20


def risk_label(risk: RiskAssessment) -> str:
    return f"{risk.level.value.lower()}-risk"


def triage_labels(classification: ClassificationResult, risk: RiskAssessment) -> tuple[str, ...]:
    labels = [LABEL_AUTO_TRIAGE, classification.classification.value.lower(), risk_label(risk)]
    if risk.security_flagged:
        labels.append(LABEL_SECURITY)
    if risk.decision is Decision.HUMAN_REVIEW_REQUIRED:
        labels.append(LABEL_HUMAN_REVIEW)
    return tuple(dict.fromkeys(labels))


def triage_reasoning(classification: ClassificationResult, risk: RiskAssessment) -> str:
    return "; ".join(part for part in (classification.reasoning, risk.reasoning) if part)


def is_bot_authored(issue: Issue) -> bool:
    """Issues opened by automation, including this tool's own follow-ups."""

    return (
        issue.author.endswith("[bot]")
        or issue.author_type.lower() == "bot"
        or issue.has_label(LABEL_CREATED_BY_AUTOFIX)
    )


def already_triaged(issue: Issue) -> bool:
    labels = {label.lower() for label in issue.labels}
    return (
        LABEL_AUTO_TRIAGE in labels
        and bool(labels & CLASSIFICATION_LABELS)
        and bool(labels & RISK_LABELS)
    )


def skip_reason(issue: Issue) -> str | None:
    """Why triage should not run for ``issue``; ``None`` when it should."""

    if is_bot_authored(issue):
        return "bot-authored issue"
    if already_triaged(issue):
        return "issue already triaged"
    return None


def render_triage_comment(result: TriageResult, *, timestamp: str) -> str:
    classification = result.classification
    risk = result.risk
    lines = [
        "## Auto-Triage Complete",
        "",
        f"**Classification:** {classification.classification.value} "
        f"({round(classification.confidence * 100)}% confidence)",
        f"**Risk Level:** {risk.level.value} (score {risk.score}/100)",
        "",
    ]
    lines.extend(_security_section(result))
    lines.extend(
        [
            "### Auto-Fix Decision",
            DECISION_TEXT[risk.decision],
            "",
            "### Reasoning",
            triage_reasoning(classification, risk) or "No reasoning recorded.",
            "",
        ]
    )
    lines.extend(_affected_files_section(result.affected_files))
    details = json.dumps(result.to_dict(), indent=2, sort_keys=True)
    lines.extend(
        [
            "<details>",
            "<summary>Triage Details (JSON)</summary>",
            "",
            "```json",
            details,
            "```",
            "",
            "</details>",
            "",
            "---",
            f"*Triaged at {timestamp}*",
        ]
    )
    return "\n".join(lines) + "\n"


def _security_section(result: TriageResult) -> list[str]:
    security = result.security
    if not security.flagged:
        return ["### Security", "No security concerns detected.", ""]
    lines = ["### Security", "**Security-sensitive issue detected.**"]
    if security.keyword_matches:
        lines.append(f"- Keyword matches: {', '.join(security.keyword_matches)}")
    if security.path_matches:
        lines.append(f"- Sensitive paths: {', '.join(f'`{p}`' for p in security.path_matches)}")
    if security.blocked_change_types:
        lines.append(f"- Blocked change types: {', '.join(security.blocked_change_types)}")
    lines.append("")
    return lines


def _affected_files_section(paths: Sequence[str]) -> list[str]:
    if not paths:
        return ["### Affected Files", "No files identified.", ""]
    lines = ["### Affected Files"]
    lines.extend(f"- `{path}`" for path in paths[:_MAX_LISTED_FILES])
    if len(paths) > _MAX_LISTED_FILES:
        lines.append(f"- ... and {len(paths) - _MAX_LISTED_FILES} more")
    lines.append("")
    return lines


__all__ = [
    "CLASSIFICATION_LABELS",
    "DECISION_TEXT",
    "RISK_LABELS",
    "already_triaged",
    "is_bot_authored",
    "render_triage_comment",
    "risk_label",
    "skip_reason",
    "triage_labels",
    "triage_reasoning",
]

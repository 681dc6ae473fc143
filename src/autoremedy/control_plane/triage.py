"""
autoremedy — triage service

File: src/autoremedy/control_plane/triage.py

Purpose
- Decide, once per issue, whether it may be fixed automatically: classify,
  run the security gate, score risk, and write labels plus a comment back.

Functional requirements
- Bot-authored and already-triaged issues are skipped without side effects.
- The security gate runs over the issue text and every path the issue names
  before any file is fetched.
- A security flag always yields ``HUMAN_REVIEW_REQUIRED``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from autoremedy.control_plane.calls import provider_call, tracker_call
from autoremedy.domain.models import Issue, TriageResult
from autoremedy.triage_plane.issue_text import extract_file_paths
from autoremedy.triage_plane.report import render_triage_comment, skip_reason, triage_labels
from autoremedy.triage_plane.risk import RiskAssessor
from autoremedy.triage_plane.security_gate import SecurityGate

if TYPE_CHECKING:
    from autoremedy.integration_plane.tracker import IssueTracker
    from autoremedy.triage_plane.classifier import IssueClassifier
    from autoremedy.utils.concurrency import Deadline

Now = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class TriageOutcome:
    issue_id: int
    result: TriageResult | None = None
    skipped: str | None = None
    comment: str = ""

    @property
    def proceeds(self) -> bool:
        return self.result is not None and self.result.risk.proceeds


class TriageService:
    def __init__(
        self,
        tracker: IssueTracker,
        classifier: IssueClassifier,
        *,
        gate: SecurityGate | None = None,
        assessor: RiskAssessor | None = None,
        provider_timeout_seconds: float = 60.0,
        tracker_timeout_seconds: float = 30.0,
        now: Now | None = None,
        logger: Any | None = None,
    ) -> None:
        self._tracker = tracker
        self._classifier = classifier
        self._gate = gate if gate is not None else SecurityGate()
        self._assessor = assessor if assessor is not None else RiskAssessor(gate=self._gate)
        self._provider_timeout = provider_timeout_seconds
        self._tracker_timeout = tracker_timeout_seconds
        self._now = now if now is not None else (lambda: datetime.now(UTC))
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def assess(self, issue: Issue, *, deadline: Deadline | None = None) -> TriageResult:
        """Pure decision without tracker side effects."""

        classification = await provider_call(
            self._classifier.classify(issue),
            self._provider_timeout,
            operation="classification",
            deadline=deadline,
        )
        affected = extract_file_paths(issue.text)
        security = self._gate.check_issue(issue, affected)
        risk = self._assessor.assess(
            affected, security, classification=classification.classification
        )
        result = TriageResult(
            issue_id=issue.id,
            classification=classification,
            risk=risk,
            security=security,
            affected_files=affected,
            labels=triage_labels(classification, risk),
        )
        self._logger.info(
            "triage_decision",
            issue_id=issue.id,
            classification=classification.classification.value,
            level=risk.level.value,
            score=risk.score,
            decision=risk.decision.value,
            security_flagged=risk.security_flagged,
        )
        return result

    async def triage(
        self, issue: Issue, *, post: bool = True, deadline: Deadline | None = None
    ) -> TriageOutcome:
        reason = skip_reason(issue)
        if reason is not None:
            self._logger.info("triage_skipped", issue_id=issue.id, reason=reason)
            return TriageOutcome(issue_id=issue.id, skipped=reason)

        result = await self.assess(issue, deadline=deadline)
        comment = render_triage_comment(result, timestamp=self._now().isoformat())
        if post:
            await tracker_call(
                self._tracker.add_labels(issue.id, result.labels),
                self._tracker_timeout,
                operation="add triage labels",
                deadline=deadline,
            )
            await tracker_call(
                self._tracker.post_comment(issue.id, comment),
                self._tracker_timeout,
                operation="post triage comment",
                deadline=deadline,
            )
        return TriageOutcome(issue_id=issue.id, result=result, comment=comment)


__all__ = ["TriageOutcome", "TriageService"]

"""
autoremedy — triage plane

File: src/autoremedy/triage_plane/__init__.py

Purpose
- Triage plane: issue classification, security gating, risk scoring and the
  labels/comment that report the decision.

Functional requirements
- Security and HIGH-risk decisions are made here, before any file is fetched
  for editing.
"""

from autoremedy.triage_plane.classifier import (
    IssueClassifier,
    classify_by_keywords,
    parse_classification_response,
)
from autoremedy.triage_plane.issue_text import extract_file_paths
from autoremedy.triage_plane.report import (
    already_triaged,
    is_bot_authored,
    render_triage_comment,
    skip_reason,
    triage_labels,
    triage_reasoning,
)
from autoremedy.triage_plane.risk import RiskAssessor, validate_risk_assessment
from autoremedy.triage_plane.security_gate import SecurityGate

__all__ = [
    "IssueClassifier",
    "RiskAssessor",
    "SecurityGate",
    "already_triaged",
    "classify_by_keywords",
    "extract_file_paths",
    "is_bot_authored",
    "parse_classification_response",
    "render_triage_comment",
    "skip_reason",
    "triage_labels",
    "triage_reasoning",
    "validate_risk_assessment",
]

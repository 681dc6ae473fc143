"""
autoremedy — control plane

File: src/autoremedy/control_plane/__init__.py

Purpose
- Orchestration of triage and remediation runs: deadlines, artifacts,
  rollback and failure reporting.
"""

from autoremedy.control_plane.artifacts import ArtifactStore, artifacts_for
from autoremedy.control_plane.calls import provider_call, tracker_call
from autoremedy.control_plane.error_reporter import (
    GUIDANCE,
    ErrorReporter,
    Guidance,
    failure_labels,
    guidance_for,
    render_error_comment,
)
from autoremedy.control_plane.remediation import RemediationOutcome, RemediationPipeline
from autoremedy.control_plane.triage import TriageOutcome, TriageService

__all__ = [
    "GUIDANCE",
    "ArtifactStore",
    "ErrorReporter",
    "Guidance",
    "RemediationOutcome",
    "RemediationPipeline",
    "TriageOutcome",
    "TriageService",
    "artifacts_for",
    "failure_labels",
    "guidance_for",
    "provider_call",
    "render_error_comment",
    "tracker_call",
]

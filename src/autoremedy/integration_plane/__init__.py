"""
autoremedy — integration plane public API.

File: src/autoremedy/integration_plane/__init__.py

Purpose
- Export the seams where a run touches the outside world: the working tree
  (file changes), version control (branch, commit, push, rollback) and the
  issue tracker (labels, comments, pull requests).
"""

from autoremedy.integration_plane.commit_pipeline import (
    CommitPipeline,
    branch_name,
    commit_message,
    slugify,
)
from autoremedy.integration_plane.file_changes import (
    ApplyReport,
    FileChangeHandler,
    HallucinationThresholds,
    PreparedChange,
    detect_hallucination,
)
from autoremedy.integration_plane.git_engine import (
    BranchResult,
    GitCommandError,
    GitEngine,
    GitEngineError,
)
from autoremedy.integration_plane.pull_requests import (
    PullRequestPublisher,
    pull_request_body,
    pull_request_labels,
    pull_request_title,
    success_comment,
)
from autoremedy.integration_plane.tracker import IssueTracker, LocalIssueTracker, TrackerError

__all__ = [
    "ApplyReport",
    "BranchResult",
    "CommitPipeline",
    "FileChangeHandler",
    "GitCommandError",
    "GitEngine",
    "GitEngineError",
    "HallucinationThresholds",
    "IssueTracker",
    "LocalIssueTracker",
    "PreparedChange",
    "PullRequestPublisher",
    "TrackerError",
    "branch_name",
    "commit_message",
    "detect_hallucination",
    "pull_request_body",
    "pull_request_labels",
    "pull_request_title",
    "slugify",
    "success_comment",
]

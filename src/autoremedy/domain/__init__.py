"""Domain models, edit union and error taxonomy for remediation runs."""

from autoremedy.domain.edits import (
    FileChange,
    FullReplace,
    Insert,
    Patch,
    SearchReplace,
    SearchReplacePair,
    file_change_from_payload,
    file_change_to_dict,
)
from autoremedy.domain.errors import (
    ErrorCode,
    FileChangeError,
    RemediationError,
    error_code_for,
    is_retryable,
)
from autoremedy.domain.models import (
    Classification,
    ClassificationResult,
    CommitRecord,
    Decision,
    Issue,
    PullRequestRecord,
    RiskAssessment,
    RiskLevel,
    SecurityReport,
    TriageResult,
    ValidationOutcome,
    expected_decision,
)

__all__ = [
    "Classification",
    "ClassificationResult",
    "CommitRecord",
    "Decision",
    "ErrorCode",
    "FileChange",
    "FileChangeError",
    "FullReplace",
    "Insert",
    "Issue",
    "Patch",
    "PullRequestRecord",
    "RemediationError",
    "RiskAssessment",
    "RiskLevel",
    "SearchReplace",
    "SearchReplacePair",
    "SecurityReport",
    "TriageResult",
    "ValidationOutcome",
    "error_code_for",
    "expected_decision",
    "file_change_from_payload",
    "file_change_to_dict",
    "is_retryable",
]

"""
autoremedy — risk assessment

File: src/autoremedy/triage_plane/risk.py

Purpose
- Score file sensitivity and change scope into a 0..100 risk score, a level,
  and the auto-fix decision.

Functional requirements
- ``score = min(100, round(avg_sensitivity * 10 * scope_multiplier))``.
- Levels: < 30 LOW, < 60 MEDIUM, else HIGH; a security flag forces HIGH.
- Decision follows the shared matrix in ``domain.models.expected_decision``.
- Score is monotonic non-decreasing in average sensitivity and file count.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any, Final

import structlog

from autoremedy.domain.models import (
    MAX_RISK_SCORE,
    Classification,
    RiskAssessment,
    RiskLevel,
    SecurityReport,
    expected_decision,
)
from autoremedy.triage_plane.security_gate import SecurityGate

NO_FILES_SCORE: Final[int] = 10
LOW_THRESHOLD: Final[int] = 30
MEDIUM_THRESHOLD: Final[int] = 60

# Suffix lookup, checked in order before path heuristics.
SENSITIVITY_TABLE: Final[tuple[tuple[str, int], ...]] = (
    (".env", 10),
    (".env.production", 10),
    ("config/secrets.js", 10),
    ("auth.js", 9),
    ("login.js", 9),
    ("package.json", 8),
    ("docker-compose.yml", 7),
    ("Dockerfile", 7),
    ("pyproject.toml", 7),
    ("tsconfig.json", 5),
    ("vite.config.js", 5),
    ("vite.config.ts", 5),
    ("webpack.config.js", 5),
    ("README.md", 1),
    ("CHANGELOG.md", 1),
    (".md", 1),
    (".txt", 1),
)

SECURITY_PATH_SENSITIVITY: Final[int] = 8
DOCS_SENSITIVITY: Final[int] = 1
TEST_SENSITIVITY: Final[int] = 2
CONFIG_SENSITIVITY: Final[int] = 6
DEFAULT_SENSITIVITY: Final[int] = 4

_CLASSIFICATION_NOTES: Final[Mapping[Classification, str]] = {
    Classification.DOCS: "Documentation change (typically safe)",
    Classification.BUG: "Bug fix (requires validation)",
    Classification.FEATURE: "New feature (requires thorough review)",
}


def scope_multiplier(file_count: int) -> float:
    if file_count <= 1:
        return 1.0
    if file_count <= 3:
        return 1.5
    if file_count <= 5:
        return 2.0
    return 3.0


def level_for_score(score: int) -> RiskLevel:
    if score < LOW_THRESHOLD:
        return RiskLevel.LOW
    if score < MEDIUM_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class RiskAssessor:
    """Turns candidate paths and a security report into a ``RiskAssessment``."""

    def __init__(self, *, gate: SecurityGate | None = None, logger: Any | None = None) -> None:
        self._gate = gate if gate is not None else SecurityGate()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def file_sensitivity(self, path: str) -> int:
        """Sensitivity 0..10 for one repository-relative path."""

        for suffix, score in SENSITIVITY_TABLE:
            if path.endswith(suffix):
                return score
        if self._gate.is_sensitive_path(path):
            return SECURITY_PATH_SENSITIVITY
        lowered = path.lower()
        if lowered.endswith((".md", ".txt", ".rst")):
            return DOCS_SENSITIVITY
        if _is_test_path(lowered):
            return TEST_SENSITIVITY
        if "config/" in lowered or ".config." in lowered:
            return CONFIG_SENSITIVITY
        return DEFAULT_SENSITIVITY

    def average_sensitivity(self, paths: Sequence[str]) -> float:
        if not paths:
            return 0.0
        return sum(self.file_sensitivity(path) for path in paths) / len(paths)

    def score(self, paths: Sequence[str]) -> int:
        if not paths:
            return NO_FILES_SCORE
        raw = self.average_sensitivity(paths) * 10 * scope_multiplier(len(paths))
        return min(MAX_RISK_SCORE, _round_half_up(raw))

    def assess(
        self,
        paths: Sequence[str],
        security: SecurityReport,
        *,
        classification: Classification = Classification.OTHER,
    ) -> RiskAssessment:
        score = self.score(paths)
        level = RiskLevel.HIGH if security.flagged else level_for_score(score)
        decision = expected_decision(
            level=level,
            security_flagged=security.flagged,
            file_count=len(paths),
        )
        assessment = RiskAssessment(
            score=score,
            level=level,
            security_flagged=security.flagged,
            decision=decision,
            reasoning=_reasoning(level, security, len(paths), classification),
            file_count=len(paths),
            average_sensitivity=round(self.average_sensitivity(paths), 2),
        )
        self._logger.info(
            "risk_assessed",
            score=score,
            level=level.value,
            decision=decision.value,
            file_count=len(paths),
            security_flagged=security.flagged,
        )
        return assessment


def validate_risk_assessment(payload: Mapping[str, object]) -> tuple[str, ...]:
    """Problems found in a serialized assessment; empty when it is consistent."""

    try:
        RiskAssessment.from_dict(payload)
    except ValueError as exc:
        return tuple(line.strip() for line in str(exc).splitlines() if line.strip())
    return ()


def _is_test_path(lowered: str) -> bool:
    return (
        "test/" in lowered
        or "tests/" in lowered
        or "spec/" in lowered
        or "__tests__/" in lowered
        or ".test." in lowered
        or ".spec." in lowered
        or lowered.rsplit("/", 1)[-1].startswith("test_")
    )


def _reasoning(
    level: RiskLevel,
    security: SecurityReport,
    file_count: int,
    classification: Classification,
) -> str:
    reasons: list[str] = []
    if level is RiskLevel.HIGH:
        reasons.append("High risk due to sensitive files or extensive scope")
    elif level is RiskLevel.MEDIUM:
        reasons.append("Medium risk - affects multiple files or moderately sensitive code")
    else:
        reasons.append("Low risk - simple, isolated change")

    if security.flagged:
        reasons.append(security.summary)

    if file_count == 0:
        reasons.append("No affected files identified")
    elif file_count == 1:
        reasons.append("Single file modification")
    elif file_count <= 3:
        reasons.append(f"Affects {file_count} files")
    else:
        reasons.append(f"Extensive change affecting {file_count} files")

    note = _CLASSIFICATION_NOTES.get(classification)
    if note:
        reasons.append(note)
    return "; ".join(reasons)


__all__ = [
    "RiskAssessor",
    "SENSITIVITY_TABLE",
    "level_for_score",
    "scope_multiplier",
    "validate_risk_assessment",
]

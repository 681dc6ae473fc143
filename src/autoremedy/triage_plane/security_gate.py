"""
autoremedy — security gate

File: src/autoremedy/triage_plane/security_gate.py

Purpose
- Flag issues whose text or candidate paths touch credentials, secrets,
  infrastructure, or blocked change types.

What should be included in this file
- Keyword rules over issue title + body.
- Path rules over every candidate path.
- Blocking change types matched against both text and paths.

Functional requirements
- Pure and side-effect free; runs before any file is fetched for editing.
- Any single match flags the issue.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Final

from autoremedy.domain.models import Issue, SecurityReport


@dataclass(frozen=True, slots=True)
class _SecurityRule:
    rule_id: str
    pattern: re.Pattern[str]


@dataclass(frozen=True, slots=True)
class BlockedChangeType:
    """Change category that always requires a human, with the reason shown to reporters."""

    name: str
    reason: str
    patterns: tuple[re.Pattern[str], ...]

    def matches(self, text: str, paths: Iterable[str]) -> bool:
        if any(pattern.search(text) for pattern in self.patterns):
            return True
        return any(pattern.search(path) for path in paths for pattern in self.patterns)


def _rule(rule_id: str, pattern: str) -> _SecurityRule:
    return _SecurityRule(rule_id=rule_id, pattern=re.compile(pattern, re.IGNORECASE))


KEYWORD_RULES: Final[tuple[_SecurityRule, ...]] = (
    # credentials
    _rule("password", r"\b(password|passwd|pwd)\b"),
    _rule("secret", r"\b(secret|api[_\s-]?key|access[_\s-]?key)\b"),
    _rule("token", r"\b(token|bearer|jwt|oauth)\b"),
    _rule("auth", r"\b(credential|auth|authentication|authorization)\b"),
    _rule("key_material", r"\b(private[_\s-]?key|public[_\s-]?key)\b"),
    _rule("certificate", r"\b(certificate|cert|ssl|tls)\b"),
    # sensitive data
    _rule("personal_data", r"\b(ssn|social[_\s-]?security)\b"),
    _rule("payment_data", r"\b(credit[_\s-]?card|ccn|cvv)\b"),
    _rule("cryptography", r"\b(encryption|decrypt|cipher)\b"),
    # security operations
    _rule("vulnerability", r"\b(security|vulnerability|exploit)\b"),
    _rule("privilege", r"\b(permission|role|privilege)\b"),
    _rule("session", r"\b(session|cookie)\b"),
    # infrastructure
    _rule(
        "connection_string",
        r"\b(database[_\s-]?url|db[_\s-]?connection|connection[_\s-]?string)\b",
    ),
    _rule("superuser", r"\b(admin|root|sudo)\b"),
)

PATH_RULES: Final[tuple[_SecurityRule, ...]] = (
    _rule("env_file", r"(^|/)\.env"),
    _rule("secrets_config", r"config/(secrets|credentials)"),
    _rule("key_file", r"\.(pem|key|crt|cer|p12|pfx)$"),
    _rule("auth_module", r"auth(?!or)|login|session|oauth|jwt"),
    _rule(
        "ci_workflow",
        r"(^|/)\.github/workflows/|(^|/)\.gitlab-ci\.yml$|(^|/)\.circleci/|jenkinsfile",
    ),
    _rule("infrastructure", r"deploy|terraform|cloudformation|kubernetes|(^|/)k8s/|(^|/)helm/"),
    _rule("production_compose", r"docker-compose\.prod"),
    _rule("database", r"migration|(^|/)seeds?/"),
    _rule("access_control", r"security|permissions|(^|/)roles?/"),
    _rule("web_server_auth", r"\.htaccess|\.htpasswd"),
)

BLOCKED_CHANGE_TYPES: Final[tuple[BlockedChangeType, ...]] = (
    BlockedChangeType(
        name="DATABASE_MIGRATION",
        reason="Database schema changes can cause data loss or downtime",
        patterns=tuple(
            re.compile(pattern, re.IGNORECASE)
            for pattern in (
                r"database\s+migration",
                r"alter\s+table",
                r"drop\s+(table|column|database)",
                r"create\s+table",
                r"add\s+column",
                r"(^|/)migrations?/",
            )
        ),
    ),
    BlockedChangeType(
        name="CI_CD_PIPELINE",
        reason="CI/CD changes can break deployment pipelines",
        patterns=tuple(
            re.compile(pattern, re.IGNORECASE)
            for pattern in (
                r"\.github/workflows",
                r"\.gitlab-ci\.yml",
                r"\.circleci",
                r"jenkinsfile",
            )
        ),
    ),
    BlockedChangeType(
        name="INFRASTRUCTURE_CONFIG",
        reason="Infrastructure changes can take production systems down",
        patterns=tuple(
            re.compile(pattern, re.IGNORECASE)
            for pattern in (
                r"\bterraform\b|\.tf$",
                r"cloudformation",
                r"\bkubernetes\b|(^|/)k8s/",
                r"\bhelm\s+chart\b|(^|/)helm/",
                r"docker-compose\.prod",
            )
        ),
    ),
)


class SecurityGate:
    """Pattern-matches issue text and candidate paths against sensitive content."""

    def __init__(
        self,
        *,
        keyword_rules: Sequence[_SecurityRule] = KEYWORD_RULES,
        path_rules: Sequence[_SecurityRule] = PATH_RULES,
        blocked_change_types: Sequence[BlockedChangeType] = BLOCKED_CHANGE_TYPES,
    ) -> None:
        self._keyword_rules = tuple(keyword_rules)
        self._path_rules = tuple(path_rules)
        self._blocked_change_types = tuple(blocked_change_types)

    def check(self, text: str, paths: Sequence[str] = ()) -> SecurityReport:
        keyword_matches = tuple(
            rule.rule_id for rule in self._keyword_rules if rule.pattern.search(text)
        )
        path_matches = tuple(path for path in paths if self.is_sensitive_path(path))
        blocked = tuple(
            change.name for change in self._blocked_change_types if change.matches(text, paths)
        )
        return SecurityReport(
            keyword_matches=keyword_matches,
            path_matches=path_matches,
            blocked_change_types=blocked,
        )

    def check_issue(self, issue: Issue, paths: Sequence[str] = ()) -> SecurityReport:
        return self.check(issue.text, paths)

    def is_sensitive_path(self, path: str) -> bool:
        return any(rule.pattern.search(path) for rule in self._path_rules)

    def blocked_reasons(self, report: SecurityReport) -> tuple[str, ...]:
        names = set(report.blocked_change_types)
        return tuple(
            f"{change.name}: {change.reason}"
            for change in self._blocked_change_types
            if change.name in names
        )


__all__ = [
    "BLOCKED_CHANGE_TYPES",
    "BlockedChangeType",
    "KEYWORD_RULES",
    "PATH_RULES",
    "SecurityGate",
]

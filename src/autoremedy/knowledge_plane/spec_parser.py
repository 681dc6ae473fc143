"""
autoremedy — architecture document parser

File: src/autoremedy/knowledge_plane/spec_parser.py

Purpose
- Find free-text architecture/design documents in a repository and pull
  best-effort architectural statements out of them with regex extractors.

What should be included in this file
- Default document search paths (exact names and ``*`` segment globs).
- Extractors: layers, component responsibilities, data flow, prohibitions,
  requirements, directory conventions.
- Deduplication and a one-line summary.

Functional requirements
- Zero documents or zero matches is a valid, empty result, never an error.
- Extractors are pluggable; custom ones may be supplied at construction.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

import structlog

if TYPE_CHECKING:
    from autoremedy.knowledge_plane.repository import RepositoryReader

DEFAULT_SPEC_PATHS: Final[tuple[str, ...]] = (
    "ARCHITECTURE.md",
    "SIMPLIFIED_ARCHITECTURE.md",
    "docs/ARCHITECTURE.md",
    "docs/architecture.md",
    "specs/*/plan.md",
    "specs/*/research.md",
    "specs/*/data-model.md",
    "specs/*/spec.md",
    "spec/*/plan.md",
    "documentation/architecture.md",
    ".specify/*.md",
)

_MIN_RULE_LENGTH: Final[int] = 6
_MAX_RULE_LENGTH: Final[int] = 199
_PRESENTATIONAL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"dumb|presentational|stateless|pure", re.IGNORECASE
)


@dataclass(frozen=True, slots=True)
class SpecFinding:
    """One architectural statement lifted from a document."""

    kind: str
    subject: str
    detail: str
    source: str = ""
    presentational: bool = False


@dataclass(frozen=True, slots=True)
class RuleExtractor:
    key: str
    name: str
    patterns: tuple[re.Pattern[str], ...]
    build: Callable[[str, re.Match[str]], SpecFinding | None]

    def extract(self, content: str) -> list[SpecFinding]:
        findings: list[SpecFinding] = []
        for pattern in self.patterns:
            for match in pattern.finditer(content):
                finding = self.build(self.key, match)
                if finding is not None:
                    findings.append(finding)
        return findings


def _group(match: re.Match[str], index: int) -> str:
    try:
        value = match.group(index)
    except IndexError:
        return ""
    return (value or "").strip()


def _pair(kind: str, match: re.Match[str]) -> SpecFinding | None:
    return SpecFinding(kind=kind, subject=_group(match, 1), detail=_group(match, 2))


def _responsibility(kind: str, match: re.Match[str]) -> SpecFinding | None:
    detail = _group(match, 2)
    return SpecFinding(
        kind=kind,
        subject=_group(match, 1),
        detail=detail,
        presentational=bool(_PRESENTATIONAL_PATTERN.search(detail)),
    )


def _data_flow(kind: str, match: re.Match[str]) -> SpecFinding | None:
    return SpecFinding(kind=kind, subject=_group(match, 1), detail=match.group(0).strip())


def _bounded_rule(kind: str, match: re.Match[str]) -> SpecFinding | None:
    groups = [group for group in match.groups() if group]
    rule = groups[-1].strip() if groups else match.group(0).strip()
    if not _MIN_RULE_LENGTH <= len(rule) <= _MAX_RULE_LENGTH:
        return None
    subject = groups[0].strip() if len(groups) > 1 else ""
    return SpecFinding(kind=kind, subject=subject, detail=match.group(0).strip())


def _convention(kind: str, match: re.Match[str]) -> SpecFinding | None:
    first = _group(match, 1)
    second = _group(match, 2)
    return SpecFinding(kind=kind, subject=second or first, detail=first or second)


def _compile(*patterns: str, flags: int = re.IGNORECASE) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, flags) for pattern in patterns)


DEFAULT_EXTRACTORS: Final[tuple[RuleExtractor, ...]] = (
    RuleExtractor(
        key="layers",
        name="Layer Architecture",
        patterns=_compile(
            r"(\w+)\s+layer\s+(?:handles?|is\s+responsible\s+for|manages?)\s+([^\n.]+)",
            r"(\w+)\s+tier[:\s]+([^\n.]+)",
        ),
        build=_pair,
    ),
    RuleExtractor(
        key="components",
        name="Component Responsibilities",
        patterns=_compile(
            r"(Base\w+|base\s+components?)\s+(?:are|is)\s+"
            r"(dumb|presentational|stateless|pure)[^\n]*",
            r"(?:components?\s+in|files?\s+in)\s+[`']?([^`'\s]+)[`']?\s+"
            r"(?:are|should\s+be)\s+([^\n.]+)",
            r"(\w+)\s+components?\s+(?:handle|are\s+responsible\s+for|manage)\s+([^\n.]+)",
        ),
        build=_responsibility,
    ),
    RuleExtractor(
        key="data_flow",
        name="Data Flow Rules",
        patterns=_compile(
            r"(?:data\s*(?:fetching|loading)|API\s*calls?|HTTP\s+requests?)\s+"
            r"(?:happens?|occurs?|should\s+(?:be|happen)|is\s+done|are\s+made)\s+"
            r"(?:in|at|by|within)\s+([^\n.]+)",
            r"(composables?|services?|hooks?|stores?)\s+(?:handle|manage|are\s+responsible\s+for)"
            r"\s+(?:data\s+)?(?:fetching|loading|API)",
            r"fetch\s+(?:data|options?)\s+(?:in|from|using)\s+([^\n.]+)",
        ),
        build=_data_flow,
    ),
    RuleExtractor(
        key="prohibited",
        name="Prohibited Patterns",
        patterns=(
            *_compile(
                r"(\w+(?:\s+\w+)?)\s+(?:should|must)\s+(?:NOT|never)\s+([^\n.]+)",
                r"(?:do\s+NOT|never|don't|avoid)\s+([^\n.!]+)",
                r"([^\n.]+)\s+(?:is|are)\s+(?:prohibited|forbidden|not\s+allowed)",
            ),
            re.compile(r"\bNO\s+([A-Z][^\n.]+)"),
        ),
        build=_bounded_rule,
    ),
    RuleExtractor(
        key="required",
        name="Required Patterns",
        patterns=_compile(
            r"(?:MUST|ALWAYS|required\s+to)\s+([^\n.]+)",
            r"([^\n.]+)\s+(?:is|are)\s+(?:required|mandatory|necessary)",
        ),
        build=_bounded_rule,
    ),
    RuleExtractor(
        key="conventions",
        name="Directory Conventions",
        patterns=_compile(
            r"(\w+(?:\s+\w+)?)\s+(?:files?|components?)\s+(?:go|belong|are\s+placed)\s+"
            r"in\s+[`']?([^`'\s\n]+)[`']?",
            r"[`']?(src/\w+(?:/\w+)?)[`']?\s+(?:contains?|holds?|has)\s+([^\n.]+)",
        ),
        build=_convention,
    ),
)


@dataclass(frozen=True, slots=True)
class SpecRules:
    """Everything extracted from a repository's architecture documents."""

    sources: tuple[str, ...] = ()
    findings: Mapping[str, tuple[SpecFinding, ...]] = field(default_factory=dict)
    extractor_names: Mapping[str, str] = field(default_factory=dict)

    @property
    def has_specs(self) -> bool:
        return bool(self.sources)

    def of(self, kind: str) -> tuple[SpecFinding, ...]:
        return tuple(self.findings.get(kind, ()))

    @property
    def prohibited(self) -> tuple[SpecFinding, ...]:
        return self.of("prohibited")

    @property
    def required(self) -> tuple[SpecFinding, ...]:
        return self.of("required")

    @property
    def data_flow(self) -> tuple[SpecFinding, ...]:
        return self.of("data_flow")

    @property
    def presentational_components(self) -> tuple[SpecFinding, ...]:
        return tuple(finding for finding in self.of("components") if finding.presentational)

    @property
    def summary(self) -> str:
        if not self.has_specs:
            return "No specification documents found"
        parts = [
            f"{self.extractor_names.get(kind, kind)}: {len(items)}"
            for kind, items in self.findings.items()
            if items
        ]
        return ", ".join(parts) or "No rules extracted"


class SpecDocumentParser:
    """Locates architecture documents and runs the extractor set over them."""

    def __init__(
        self,
        *,
        extra_paths: Sequence[str] = (),
        extractors: Sequence[RuleExtractor] = DEFAULT_EXTRACTORS,
        logger: Any | None = None,
    ) -> None:
        self._spec_paths = tuple(dict.fromkeys((*DEFAULT_SPEC_PATHS, *extra_paths)))
        self._extractors = tuple(extractors)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def spec_paths(self) -> tuple[str, ...]:
        return self._spec_paths

    def find_spec_files(self, available_files: Iterable[str]) -> tuple[str, ...]:
        available = tuple(available_files)
        matches: dict[str, None] = {}
        for pattern in self._spec_paths:
            if "*" in pattern:
                regex = _glob_to_regex(pattern)
                for path in available:
                    if regex.fullmatch(path):
                        matches[path] = None
            elif pattern in available:
                matches[pattern] = None
        return tuple(matches)

    def parse(self, documents: Sequence[tuple[str, str]]) -> SpecRules:
        """Run every extractor over ``(path, content)`` pairs."""

        loaded = tuple((path, content) for path, content in documents if content.strip())
        if not loaded:
            return SpecRules(extractor_names=self._names())

        findings: dict[str, tuple[SpecFinding, ...]] = {}
        for extractor in self._extractors:
            collected: list[SpecFinding] = []
            for path, content in loaded:
                for finding in extractor.extract(content):
                    collected.append(
                        SpecFinding(
                            kind=finding.kind,
                            subject=finding.subject,
                            detail=finding.detail,
                            source=path,
                            presentational=finding.presentational,
                        )
                    )
            findings[extractor.key] = _deduplicate(collected)

        rules = SpecRules(
            sources=tuple(path for path, _ in loaded),
            findings=findings,
            extractor_names=self._names(),
        )
        self._logger.info(
            "spec_documents_parsed", sources=list(rules.sources), summary=rules.summary
        )
        return rules

    def parse_repository(self, repository: RepositoryReader) -> SpecRules:
        files = [entry.path for entry in repository.entries() if not entry.is_dir]
        documents: list[tuple[str, str]] = []
        for path in self.find_spec_files(files):
            content = repository.read_text(path)
            if content is None:
                self._logger.warning("spec_document_unreadable", path=path)
                continue
            documents.append((path, content))
        if not documents:
            self._logger.info("spec_documents_absent")
        return self.parse(documents)

    def _names(self) -> dict[str, str]:
        return {extractor.key: extractor.name for extractor in self._extractors}


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    escaped = re.escape(pattern).replace(r"\*", "[^/]+")
    return re.compile(escaped)


def _deduplicate(findings: Iterable[SpecFinding]) -> tuple[SpecFinding, ...]:
    seen: set[str] = set()
    unique: list[SpecFinding] = []
    for finding in findings:
        key = " ".join(
            f"{finding.kind}|{finding.subject}|{finding.detail}|{finding.source}".lower().split()
        )
        if key in seen:
            continue
        seen.add(key)
        unique.append(finding)
    return tuple(unique)


__all__ = [
    "DEFAULT_EXTRACTORS",
    "DEFAULT_SPEC_PATHS",
    "RuleExtractor",
    "SpecDocumentParser",
    "SpecFinding",
    "SpecRules",
]

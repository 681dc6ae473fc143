"""
autoremedy — declarative architecture rules

File: src/autoremedy/verification_plane/architecture/rules.py

Purpose
- Rule shapes evaluated per file: forbidden content, forbidden import,
  required import and export naming, each scoped by path globs.

What should be included in this file
- ``ArchitectureViolation`` and ``Severity``.
- ``FileUnderReview`` carrying new and (optionally) original content.
- Import and export extraction for JS/TS/Vue/Svelte and Python sources.

Functional requirements
- Rules are pure: the same file yields the same violations.
- A rule never looks at other files.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache
from typing import Final, Protocol, runtime_checkable


class Severity(StrEnum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass(frozen=True, slots=True)
class ArchitectureViolation:
    rule_id: str
    severity: Severity
    path: str
    message: str
    suggestion: str = ""
    line: int | None = None
    # Offending import, when the finding is about one.
    module: str | None = None

    def demoted(self) -> ArchitectureViolation:
        if self.severity is not Severity.ERROR:
            return self
        return ArchitectureViolation(
            rule_id=self.rule_id,
            severity=Severity.WARNING,
            path=self.path,
            message=self.message,
            suggestion=self.suggestion,
            line=self.line,
            module=self.module,
        )

    def sort_key(self) -> tuple[str, int, str, str]:
        return (self.path, self.line or 0, self.rule_id, self.message)

    def to_dict(self) -> dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "path": self.path,
            "line": self.line,
            "message": self.message,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True, slots=True)
class FileUnderReview:
    """Proposed content for one path; ``original`` is ``None`` for new files."""

    path: str
    content: str
    original: str | None = None


@runtime_checkable
class ArchitectureRule(Protocol):
    rule_id: str
    severity: Severity
    description: str

    def applies_to(self, path: str) -> bool: ...

    def check(self, file: FileUnderReview) -> list[ArchitectureViolation]: ...


_JS_IMPORT_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"""^\s*import\s+(?:[\w*{}\s,$]+\s+from\s+)?['"]([^'"]+)['"]""", re.MULTILINE),
    re.compile(r"""^\s*export\s+[\w*{}\s,$]+\s+from\s+['"]([^'"]+)['"]""", re.MULTILINE),
    re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)"""),
    re.compile(r"""\bimport\(\s*['"]([^'"]+)['"]\s*\)"""),
)
_PY_IMPORT_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^\s*import\s+([\w.]+)", re.MULTILINE),
    re.compile(r"^\s*from\s+([\w.]+)\s+import\s", re.MULTILINE),
)
_JS_EXPORT_PATTERN = re.compile(
    r"^\s*export\s+(?:default\s+)?(?:declare\s+)?(?:async\s+)?"
    r"(?:function\*?|class|const|let|var|interface|type|enum)\s+([A-Za-z_$][\w$]*)",
    re.MULTILINE,
)
_JS_EXPORT_LIST = re.compile(r"^\s*export\s*\{([^}]*)\}", re.MULTILINE)
_PY_EXPORT_PATTERN = re.compile(r"^(?:async\s+)?(?:def|class)\s+([A-Za-z]\w*)", re.MULTILINE)


def imported_modules(path: str, content: str) -> tuple[str, ...]:
    patterns = _PY_IMPORT_PATTERNS if path.endswith((".py", ".pyi")) else _JS_IMPORT_PATTERNS
    found: list[str] = []
    for pattern in patterns:
        found.extend(match.group(1) for match in pattern.finditer(content))
    return tuple(dict.fromkeys(found))


def exported_names(path: str, content: str) -> tuple[str, ...]:
    """Public names a module exposes; Python modules export top-level defs and classes."""

    if path.endswith((".py", ".pyi")):
        return tuple(dict.fromkeys(_PY_EXPORT_PATTERN.findall(content)))
    names = list(_JS_EXPORT_PATTERN.findall(content))
    for match in _JS_EXPORT_LIST.finditer(content):
        for item in match.group(1).split(","):
            name = item.strip().split(" as ")[-1].strip()
            if name:
                names.append(name)
    return tuple(dict.fromkeys(names))


@lru_cache(maxsize=256)
def compile_path_glob(pattern: str) -> re.Pattern[str]:
    """``**`` spans directories, ``*`` stays within one segment."""

    regex = ""
    index = 0
    while index < len(pattern):
        if pattern.startswith("**/", index):
            regex += "(?:.*/)?"
            index += 3
        elif pattern.startswith("**", index):
            regex += ".*"
            index += 2
        elif pattern[index] == "*":
            regex += "[^/]*"
            index += 1
        elif pattern[index] == "?":
            regex += "[^/]"
            index += 1
        else:
            regex += re.escape(pattern[index])
            index += 1
    return re.compile(f"^{regex}$")


def path_matches(path: str, globs: tuple[str, ...]) -> bool:
    return any(compile_path_glob(glob).match(path) for glob in globs)


def _line_of(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


@dataclass(frozen=True, slots=True)
class ForbiddenContentRule:
    rule_id: str
    description: str
    paths: tuple[str, ...]
    pattern: re.Pattern[str]
    severity: Severity = Severity.ERROR
    suggestion: str = ""

    def applies_to(self, path: str) -> bool:
        return path_matches(path, self.paths)

    def check(self, file: FileUnderReview) -> list[ArchitectureViolation]:
        match = self.pattern.search(file.content)
        if match is None:
            return []
        return [
            ArchitectureViolation(
                rule_id=self.rule_id,
                severity=self.severity,
                path=file.path,
                line=_line_of(file.content, match.start()),
                message=f"{self.description} (found `{match.group(0).strip()[:60]}`)",
                suggestion=self.suggestion,
            )
        ]


@dataclass(frozen=True, slots=True)
class ForbiddenImportRule:
    rule_id: str
    description: str
    paths: tuple[str, ...]
    modules: re.Pattern[str]
    severity: Severity = Severity.ERROR
    suggestion: str = ""

    def applies_to(self, path: str) -> bool:
        return path_matches(path, self.paths)

    def check(self, file: FileUnderReview) -> list[ArchitectureViolation]:
        return [
            ArchitectureViolation(
                rule_id=self.rule_id,
                severity=self.severity,
                path=file.path,
                message=f"{self.description}: imports `{module}`",
                suggestion=self.suggestion,
                module=module,
            )
            for module in imported_modules(file.path, file.content)
            if self.modules.search(module)
        ]


@dataclass(frozen=True, slots=True)
class RequiredImportRule:
    rule_id: str
    description: str
    paths: tuple[str, ...]
    modules: re.Pattern[str]
    severity: Severity = Severity.WARNING
    suggestion: str = ""

    def applies_to(self, path: str) -> bool:
        return path_matches(path, self.paths)

    def check(self, file: FileUnderReview) -> list[ArchitectureViolation]:
        if any(self.modules.search(module) for module in imported_modules(file.path, file.content)):
            return []
        return [
            ArchitectureViolation(
                rule_id=self.rule_id,
                severity=self.severity,
                path=file.path,
                message=f"{self.description}: no import matching `{self.modules.pattern}`",
                suggestion=self.suggestion,
            )
        ]


@dataclass(frozen=True, slots=True)
class ExportNamingRule:
    rule_id: str
    description: str
    paths: tuple[str, ...]
    name_pattern: re.Pattern[str]
    severity: Severity = Severity.WARNING
    suggestion: str = ""

    def applies_to(self, path: str) -> bool:
        return path_matches(path, self.paths)

    def check(self, file: FileUnderReview) -> list[ArchitectureViolation]:
        return [
            ArchitectureViolation(
                rule_id=self.rule_id,
                severity=self.severity,
                path=file.path,
                message=(
                    f"{self.description}: `{name}` does not match `{self.name_pattern.pattern}`"
                ),
                suggestion=self.suggestion,
            )
            for name in exported_names(file.path, file.content)
            if not self.name_pattern.fullmatch(name)
        ]


__all__ = [
    "ArchitectureRule",
    "ArchitectureViolation",
    "ExportNamingRule",
    "FileUnderReview",
    "ForbiddenContentRule",
    "ForbiddenImportRule",
    "RequiredImportRule",
    "Severity",
    "compile_path_glob",
    "exported_names",
    "imported_modules",
    "path_matches",
]

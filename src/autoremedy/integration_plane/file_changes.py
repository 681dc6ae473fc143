"""
autoremedy — file change application

File: src/autoremedy/integration_plane/file_changes.py

Purpose
- Apply a generated edit plan to the working copy, one strategy per edit.
- Guard full-file rewrites of existing files against fabricated content.

What should be included in this file
- Pure strategy functions (search/replace, insert, unified diff, full content).
- ``detect_hallucination`` with thresholds loaded from configuration.
- ``FileChangeHandler`` with a prepare/write split so proposed contents can be
  validated before anything touches disk, plus rollback.

Functional requirements
- A failed edit leaves its target file unmodified.
- Several edits to one path are applied in order against the running content.
- Edits see LF text; a file written with CRLF line endings keeps them.
- Paths resolve inside the repository root; escaping paths are rejected.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

import structlog

from autoremedy.domain.edits import FileChange, FullReplace, Insert, Patch, SearchReplace
from autoremedy.domain.errors import ErrorCode, FileChangeError, RemediationError
from autoremedy.utils.fs import atomic_write, resolve_within

BACKUP_SUFFIX: Final[str] = ".backup"
_SEARCH_EXCERPT_CHARS = 100

_BOILERPLATE_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^#\s*(Demo|Example|Sample|Test|Hello|Welcome)\b", re.IGNORECASE | re.MULTILINE),
    re.compile(r"<!DOCTYPE html>[\s\S]*<h1>.*(Demo|Example|Sample|Hello)", re.IGNORECASE),
    re.compile(r"export default \{\s*name:\s*['\"](App|Demo|Example|HelloWorld)['\"]"),
    re.compile(r"^//\s*(Demo|Example|Sample|TODO|Placeholder)\b", re.MULTILINE),
    re.compile(r"<template>\s*<div>\s*<h1>.*(Demo|Hello)", re.IGNORECASE),
    re.compile(r"console\.log\s*\(\s*['\"]Hello", re.IGNORECASE),
    re.compile(r"print\s*\(\s*['\"]Hello", re.IGNORECASE),
    re.compile(r"\bhello,?\s+world\b", re.IGNORECASE),
)
_IDENTIFIER_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"(?:function|const|let|var)\s+([A-Za-z_$][\w$]*)"),
    re.compile(r"class\s+([A-Za-z_$][\w$]*)"),
    re.compile(r"export\s+(?:default\s+)?(?:function|class|const)\s+([A-Za-z_$][\w$]*)"),
    re.compile(r"^\s*(?:async\s+)?def\s+([A-Za-z_]\w*)", re.MULTILINE),
)
_MIN_IDENTIFIER_LENGTH = 4
_HUNK_HEADER = re.compile(r"^@@\s*-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s*@@")


# --- Hallucination detection ---


@dataclass(frozen=True, slots=True)
class HallucinationThresholds:
    boilerplate_min_lines: int = 20
    identifier_min_lines: int = 30
    min_identifier_ratio: float = 0.3
    max_size_ratio: float = 0.5

    @classmethod
    def from_config(cls, section: Mapping[str, Any]) -> HallucinationThresholds:
        return cls(
            boilerplate_min_lines=int(section.get("boilerplate_min_lines", 20)),
            identifier_min_lines=int(section.get("identifier_min_lines", 30)),
            min_identifier_ratio=float(section.get("min_identifier_ratio", 0.3)),
            max_size_ratio=float(section.get("max_size_ratio", 0.5)),
        )


@dataclass(frozen=True, slots=True)
class HallucinationVerdict:
    suspected: bool
    reason: str = ""
    size_ratio: float = 1.0
    identifier_ratio: float = 1.0
    warnings: tuple[str, ...] = ()


def significant_identifiers(content: str) -> set[str]:
    found: set[str] = set()
    for pattern in _IDENTIFIER_PATTERNS:
        for match in pattern.finditer(content):
            if len(match.group(1)) >= _MIN_IDENTIFIER_LENGTH:
                found.add(match.group(1))
    return found


def looks_like_boilerplate(content: str) -> bool:
    return any(pattern.search(content) for pattern in _BOILERPLATE_PATTERNS)


def detect_hallucination(
    new_content: str,
    original: str,
    thresholds: HallucinationThresholds = HallucinationThresholds(),
) -> HallucinationVerdict:
    """Compare a full rewrite with the file it replaces."""

    original_lines = len(original.split("\n"))
    new_lines = len(new_content.split("\n"))
    size_ratio = new_lines / original_lines

    identifiers = significant_identifiers(original)
    preserved = sum(1 for name in identifiers if name in new_content)
    identifier_ratio = preserved / len(identifiers) if identifiers else 1.0
    shrunk = size_ratio < thresholds.max_size_ratio

    if original_lines > thresholds.boilerplate_min_lines and shrunk and looks_like_boilerplate(
        new_content
    ):
        return HallucinationVerdict(
            suspected=True,
            reason=(
                f"Suspicious replacement: original has {original_lines} lines, new content has "
                f"{new_lines} lines ({size_ratio:.0%}) and looks like boilerplate/demo code. "
                "Use search_replace for targeted edits instead."
            ),
            size_ratio=size_ratio,
            identifier_ratio=identifier_ratio,
        )
    if (
        original_lines > thresholds.identifier_min_lines
        and identifier_ratio < thresholds.min_identifier_ratio
        and shrunk
    ):
        return HallucinationVerdict(
            suspected=True,
            reason=(
                f"Suspicious replacement: only {identifier_ratio:.0%} of original identifiers "
                "preserved. This suggests fabricated content. Use search_replace for targeted "
                "edits."
            ),
            size_ratio=size_ratio,
            identifier_ratio=identifier_ratio,
        )

    warnings: list[str] = []
    if original_lines > 50 and size_ratio < 0.3:
        warnings.append(
            f"Large file reduction: {original_lines} -> {new_lines} lines ({size_ratio:.0%})"
        )
    if identifier_ratio < 0.5 and len(identifiers) > 5:
        warnings.append(
            f"Low identifier preservation: {preserved}/{len(identifiers)} identifiers kept"
        )
    return HallucinationVerdict(
        suspected=False,
        size_ratio=size_ratio,
        identifier_ratio=identifier_ratio,
        warnings=tuple(warnings),
    )


# --- Strategies ---


def apply_search_replace(content: str | None, change: SearchReplace) -> str:
    """Replace the first occurrence of each search text, pairs applied in order."""

    if content is None:
        raise FileChangeError(
            ErrorCode.SEARCH_NOT_FOUND,
            f"Cannot use search_replace on non-existent file: {change.path}",
            path=change.path,
        )
    updated = content
    for index, pair in enumerate(change.pairs):
        if pair.search not in updated:
            raise FileChangeError(
                ErrorCode.SEARCH_NOT_FOUND,
                f"Search text not found in {change.path}",
                path=change.path,
                details={"pair_index": index, "search": pair.search[:_SEARCH_EXCERPT_CHARS]},
            )
        updated = updated.replace(pair.search, pair.replace, 1)
    return updated


def apply_insert(content: str | None, change: Insert) -> str:
    lines = (content or "").split("\n")
    anchor = change.anchor_line
    if anchor < 0 or anchor > len(lines):
        raise FileChangeError(
            ErrorCode.INVALID_LINE,
            f"Invalid line number {anchor} for {change.path} ({len(lines)} lines)",
            path=change.path,
            details={"anchor_line": anchor, "line_count": len(lines)},
        )
    index = anchor + 1 if change.position == "after" else anchor
    lines.insert(min(index, len(lines)), change.text)
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class _Hunk:
    old_start: int
    old_count: int
    lines: tuple[tuple[str, str], ...]

    @property
    def old_block(self) -> list[str]:
        return [text for tag, text in self.lines if tag in (" ", "-")]

    @property
    def new_block(self) -> list[str]:
        return [text for tag, text in self.lines if tag in (" ", "+")]


def _parse_hunks(diff: str, path: str) -> list[_Hunk]:
    hunks: list[_Hunk] = []
    header: re.Match[str] | None = None
    body: list[tuple[str, str]] = []

    def close() -> None:
        if header is None:
            return
        while body and body[-1] == (" ", ""):
            body.pop()
        old_count = int(header.group(2)) if header.group(2) is not None else 1
        hunks.append(_Hunk(int(header.group(1)), old_count, tuple(body)))

    for raw in diff.splitlines():
        match = _HUNK_HEADER.match(raw)
        if match is not None:
            close()
            header, body = match, []
            continue
        if header is None or raw.startswith("\\"):
            continue
        if raw == "":
            body.append((" ", ""))
        elif raw[0] in " +-":
            body.append((raw[0], raw[1:]))
        else:
            raise FileChangeError(
                ErrorCode.FILE_CHANGE_FAILED,
                f"Malformed patch line for {path}: {raw[:60]!r}",
                path=path,
            )
    close()
    if not hunks:
        raise FileChangeError(
            ErrorCode.FILE_CHANGE_FAILED, f"Patch for {path} contains no hunks", path=path
        )
    return hunks


def _locate(lines: Sequence[str], block: Sequence[str], hint: int, floor: int) -> int | None:
    """Exact position of ``block`` nearest to ``hint``, never before ``floor``."""

    size = len(block)
    last = len(lines) - size
    if last < floor:
        return None
    hint = min(max(hint, floor), last)
    for distance in range(last - floor + 1):
        for candidate in (hint - distance, hint + distance):
            if floor <= candidate <= last and list(lines[candidate : candidate + size]) == block:
                return candidate
    return None


def apply_unified_diff(content: str | None, change: Patch) -> str:
    """Apply hunks with context verification, tolerating shifted line numbers."""

    original = content or ""
    lines = original.splitlines()
    trailing_newline = original.endswith("\n") or not original
    result: list[str] = []
    cursor = 0
    for number, hunk in enumerate(_parse_hunks(change.diff, change.path), start=1):
        old_block = hunk.old_block
        if not old_block:
            start: int | None = min(max(hunk.old_start, cursor), len(lines))
        else:
            start = _locate(lines, old_block, hunk.old_start - 1, cursor)
        if start is None:
            raise FileChangeError(
                ErrorCode.FILE_CHANGE_FAILED,
                f"Patch hunk {number} does not apply to {change.path}",
                path=change.path,
                details={"hunk": number, "old_start": hunk.old_start},
            )
        result.extend(lines[cursor:start])
        result.extend(hunk.new_block)
        cursor = start + len(old_block)
    result.extend(lines[cursor:])
    text = "\n".join(result)
    return text + "\n" if result and trailing_newline else text


# --- Handler ---


@dataclass(frozen=True, slots=True)
class PreparedChange:
    """Final content for one path after every edit targeting it."""

    path: str
    original: str | None
    content: str
    strategies: tuple[str, ...]
    warnings: tuple[str, ...] = ()

    @property
    def created(self) -> bool:
        return self.original is None

    @property
    def changed(self) -> bool:
        return self.original != self.content

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "strategies": list(self.strategies),
            "created": self.created,
            "changed": self.changed,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True, slots=True)
class ApplyReport:
    changes: tuple[PreparedChange, ...] = ()
    dry_run: bool = False
    backups: tuple[str, ...] = field(default_factory=tuple)

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(change.path for change in self.changes if change.changed)

    def to_dict(self) -> dict[str, object]:
        return {
            "dry_run": self.dry_run,
            "files": [change.to_dict() for change in self.changes],
            "backups": list(self.backups),
        }


class FileChangeHandler:
    """Applies edit plans inside ``root``; call ``rollback`` with the report to undo."""

    def __init__(
        self,
        root: Path | str,
        *,
        thresholds: HallucinationThresholds | None = None,
        write_backups: bool = False,
        dry_run: bool = False,
        logger: Any | None = None,
    ) -> None:
        self._root = Path(root).resolve()
        self._thresholds = thresholds if thresholds is not None else HallucinationThresholds()
        self._write_backups = write_backups
        self._dry_run = dry_run
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def root(self) -> Path:
        return self._root

    def prepare(self, changes: Sequence[FileChange]) -> tuple[PreparedChange, ...]:
        """Compute final contents without writing; raises on the first failing edit."""

        originals: dict[str, str | None] = {}
        endings: dict[str, str] = {}
        working: dict[str, str] = {}
        strategies: dict[str, list[str]] = {}
        warnings: dict[str, list[str]] = {}
        for change in changes:
            target = self._target(change.path)
            if change.path not in originals:
                original = _read_existing(target)
                originals[change.path] = original
                endings[change.path] = _line_ending(original)
                strategies[change.path] = []
                warnings[change.path] = []
                if original is not None:
                    working[change.path] = original.replace("\r\n", "\n")
            # Edits run against LF text; the file's own line ending is restored below.
            updated, notes = self._apply_one(change, working.get(change.path))
            working[change.path] = updated
            strategies[change.path].append(change.strategy)
            warnings[change.path].extend(notes)

        prepared: list[PreparedChange] = []
        for path, original in originals.items():
            prepared.append(
                PreparedChange(
                    path=path,
                    original=original,
                    content=_with_line_ending(working[path], endings[path]),
                    strategies=tuple(strategies[path]),
                    warnings=tuple(warnings[path]),
                )
            )
        return tuple(prepared)

    def write(self, prepared: Sequence[PreparedChange]) -> ApplyReport:
        backups: list[str] = []
        written: list[PreparedChange] = []
        try:
            for change in prepared:
                if not change.changed:
                    continue
                target = self._target(change.path)
                if not self._dry_run:
                    if self._write_backups and change.original is not None:
                        backup = target.with_name(target.name + BACKUP_SUFFIX)
                        atomic_write(backup, change.original)
                        backups.append(backup.relative_to(self._root).as_posix())
                    atomic_write(target, change.content)
                written.append(change)
                self._logger.info(
                    "file_change_applied",
                    path=change.path,
                    strategies=list(change.strategies),
                    created=change.created,
                    dry_run=self._dry_run,
                )
        except OSError as exc:
            self.rollback(ApplyReport(changes=tuple(written), backups=tuple(backups)))
            raise FileChangeError(
                ErrorCode.FILE_CHANGE_FAILED,
                f"Could not write changes: {exc}",
                path=str(getattr(exc, "filename", "") or ""),
            ) from exc
        return ApplyReport(changes=tuple(prepared), dry_run=self._dry_run, backups=tuple(backups))

    def apply(self, changes: Sequence[FileChange]) -> ApplyReport:
        return self.write(self.prepare(changes))

    def rollback(self, report: ApplyReport) -> None:
        """Restore originals and remove created files and backups."""

        if report.dry_run:
            return
        for change in report.changes:
            if not change.changed:
                continue
            target = self._target(change.path)
            if change.original is None:
                target.unlink(missing_ok=True)
            else:
                atomic_write(target, change.original)
            self._logger.info("file_change_rolled_back", path=change.path)
        for backup in report.backups:
            self._target(backup).unlink(missing_ok=True)

    def _apply_one(self, change: FileChange, current: str | None) -> tuple[str, list[str]]:
        match change:
            case SearchReplace():
                return apply_search_replace(current, change), []
            case Insert():
                return apply_insert(current, change), []
            case Patch():
                return apply_unified_diff(current, change), []
            case FullReplace():
                if current is None:
                    return change.content, []
                verdict = detect_hallucination(change.content, current, self._thresholds)
                if verdict.suspected:
                    self._logger.warning(
                        "hallucination_suspected",
                        path=change.path,
                        size_ratio=round(verdict.size_ratio, 3),
                        identifier_ratio=round(verdict.identifier_ratio, 3),
                    )
                    raise RemediationError(
                        ErrorCode.VALIDATION_FAILED,
                        f"{change.path}: {verdict.reason}",
                        details={
                            "kind": "hallucination",
                            "path": change.path,
                            "size_ratio": round(verdict.size_ratio, 3),
                            "identifier_ratio": round(verdict.identifier_ratio, 3),
                        },
                    )
                for note in verdict.warnings:
                    self._logger.warning("file_change_warning", path=change.path, warning=note)
                return change.content, list(verdict.warnings)

    def _target(self, relative_path: str) -> Path:
        try:
            return resolve_within(self._root, relative_path)
        except ValueError as exc:
            raise FileChangeError(
                ErrorCode.SECURITY_VIOLATION, str(exc), path=relative_path
            ) from exc


def _read_existing(target: Path) -> str | None:
    if not target.is_file():
        return None
    with target.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def _line_ending(text: str | None) -> str:
    """Return the dominant line ending of ``text``, LF when it has none."""

    if not text:
        return "\n"
    crlf = text.count("\r\n")
    return "\r\n" if crlf and crlf * 2 >= text.count("\n") else "\n"


def _with_line_ending(text: str, ending: str) -> str:
    if ending == "\n":
        return text
    return text.replace("\r\n", "\n").replace("\n", ending)


__all__ = [
    "ApplyReport",
    "BACKUP_SUFFIX",
    "FileChangeHandler",
    "HallucinationThresholds",
    "HallucinationVerdict",
    "PreparedChange",
    "apply_insert",
    "apply_search_replace",
    "apply_unified_diff",
    "detect_hallucination",
    "looks_like_boilerplate",
    "significant_identifiers",
]

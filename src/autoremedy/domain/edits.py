"""
autoremedy — proposed file edits

File: src/autoremedy/domain/edits.py

Purpose
- Closed set of edit shapes a generated plan may use: full replacement,
  exact search/replace pairs, unified-diff patch, and anchored insert.

Functional requirements
- Every edit carries exactly one strategy by construction.
- Loose JSON payloads are mapped onto the union in fixed priority order
  search_replace > insert > patch > content; anything else is NO_STRATEGY.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Literal, TypeAlias

from autoremedy.domain.errors import ErrorCode, FileChangeError
from autoremedy.domain.models import JSONValue, as_relative_path

InsertPosition: TypeAlias = Literal["after", "before"]


@dataclass(frozen=True, slots=True)
class SearchReplacePair:
    search: str
    replace: str

    def __post_init__(self) -> None:
        if not isinstance(self.search, str) or not self.search:
            raise ValueError("SearchReplacePair.search must be a non-empty string")
        if not isinstance(self.replace, str):
            raise ValueError("SearchReplacePair.replace must be a string")


@dataclass(frozen=True, slots=True)
class FullReplace:
    path: str
    content: str
    summary: str = ""

    @property
    def strategy(self) -> str:
        return "full_replace"


@dataclass(frozen=True, slots=True)
class SearchReplace:
    path: str
    pairs: tuple[SearchReplacePair, ...]
    summary: str = ""

    def __post_init__(self) -> None:
        if not self.pairs:
            raise ValueError("SearchReplace.pairs must not be empty")

    @property
    def strategy(self) -> str:
        return "search_replace"


@dataclass(frozen=True, slots=True)
class Patch:
    path: str
    diff: str
    summary: str = ""

    @property
    def strategy(self) -> str:
        return "patch"


@dataclass(frozen=True, slots=True)
class Insert:
    """Insert ``text`` before or after a zero-based anchor line."""

    path: str
    text: str
    anchor_line: int
    position: InsertPosition = "after"
    summary: str = ""

    @property
    def strategy(self) -> str:
        return "insert"


FileChange: TypeAlias = FullReplace | SearchReplace | Patch | Insert


def file_change_to_dict(change: FileChange) -> dict[str, JSONValue]:
    payload: dict[str, JSONValue] = {"path": change.path, "strategy": change.strategy}
    if change.summary:
        payload["summary"] = change.summary
    match change:
        case SearchReplace(pairs=pairs):
            payload["search_replace"] = [
                {"search": pair.search, "replace": pair.replace} for pair in pairs
            ]
        case Insert(text=text, anchor_line=anchor, position=position):
            payload["insert"] = text
            payload[f"{position}_line"] = anchor
        case Patch(diff=diff):
            payload["patch"] = diff
        case FullReplace(content=content):
            payload["content"] = content
    return payload


def file_change_from_payload(payload: Mapping[str, object]) -> FileChange:
    """Map one loosely-typed edit object onto the closed union."""

    raw_path = payload.get("path")
    try:
        path = as_relative_path(raw_path, "file_change.path")
    except ValueError as exc:
        raise FileChangeError(
            ErrorCode.INVALID_AI_OUTPUT,
            f"Edit has an invalid path: {exc}",
            path=str(raw_path),
        ) from exc
    summary = (
        payload.get("change_summary") or payload.get("summary") or payload.get("description") or ""
    )
    summary = summary.strip() if isinstance(summary, str) else ""

    search_replace = payload.get("search_replace")
    if isinstance(search_replace, Sequence) and not isinstance(search_replace, (str, bytes)):
        pairs = _parse_pairs(search_replace, path=path)
        if pairs:
            return SearchReplace(path=path, pairs=pairs, summary=summary)

    insert_text = payload.get("insert")
    if isinstance(insert_text, str):
        for position in ("after", "before"):
            anchor = payload.get(f"{position}_line")
            if isinstance(anchor, int) and not isinstance(anchor, bool):
                return Insert(
                    path=path,
                    text=insert_text,
                    anchor_line=anchor,
                    position=position,  # type: ignore[arg-type]
                    summary=summary,
                )

    patch = payload.get("patch")
    if isinstance(patch, str) and "@@" in patch:
        return Patch(path=path, diff=patch, summary=summary)

    content = payload.get("content")
    if isinstance(content, str):
        return FullReplace(path=path, content=content, summary=summary)

    raise FileChangeError(
        ErrorCode.NO_STRATEGY,
        f"No strategy found for change to {path}. "
        "Provide either 'content', 'search_replace', 'insert', or 'patch'.",
        path=path,
        details={"keys": sorted(str(key) for key in payload)},
    )


def _parse_pairs(raw: Sequence[object], *, path: str) -> tuple[SearchReplacePair, ...]:
    pairs: list[SearchReplacePair] = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise FileChangeError(
                ErrorCode.INVALID_AI_OUTPUT,
                f"search_replace[{index}] for {path} must be an object",
                path=path,
            )
        search = item.get("search")
        replace = item.get("replace")
        if not isinstance(search, str) or not search or not isinstance(replace, str):
            raise FileChangeError(
                ErrorCode.INVALID_AI_OUTPUT,
                f"search_replace[{index}] for {path} needs string 'search' and 'replace'",
                path=path,
            )
        pairs.append(SearchReplacePair(search=search, replace=replace))
    return tuple(pairs)


__all__ = [
    "FileChange",
    "FullReplace",
    "Insert",
    "InsertPosition",
    "Patch",
    "SearchReplace",
    "SearchReplacePair",
    "file_change_from_payload",
    "file_change_to_dict",
]

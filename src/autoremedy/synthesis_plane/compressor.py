"""Content compression that shrinks oversized files to a token allowance."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Final

from autoremedy.synthesis_plane.tokens import TokenEstimator

MARKUP_EXTENSIONS: Final[frozenset[str]] = frozenset({"vue", "svelte"})
CODE_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {"ts", "tsx", "js", "jsx", "mjs", "cjs", "py", "pyi"}
)

# Lower number survives first.
_MARKUP_SECTIONS: Final[tuple[tuple[str, int, re.Pattern[str]], ...]] = (
    ("script", 1, re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)),
    ("template", 2, re.compile(r"<template[^>]*>[\s\S]*</template>", re.IGNORECASE)),
    ("style", 3, re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)),
)

_SIGNATURE_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^(import|export|from)\s"),
    re.compile(r"^(export\s+)?(declare\s+)?(interface|type|enum)\s+\w+"),
    re.compile(r"^(export\s+)?(default\s+)?(async\s+)?function\*?\s+\w+"),
    re.compile(r"^(export\s+)?(default\s+)?(abstract\s+)?class\s+\w+"),
    re.compile(r"^(export\s+)?const\s+\w+\s*[:=]"),
    re.compile(r"^(async\s+)?def\s+\w+\s*\("),
    re.compile(r"^@\w+"),
)

_MIN_BODY_TOKENS: Final[int] = 100

TRUNCATION_MARKER: Final[str] = "/* ... TRUNCATED ... */"
BODY_MARKER: Final[str] = "// === BODY (truncated) ==="
MARKUP_MARKER: Final[str] = "<!-- TRUNCATED -->"


class CompressionError(ValueError):
    """Raised when no compressed form fits the requested allowance."""


@dataclass(frozen=True, slots=True)
class CompressionResult:
    content: str
    strategy: str
    tokens: int
    original_tokens: int

    @property
    def compressed(self) -> bool:
        return self.strategy != "full"


class ContentCompressor:
    """Shrink file content by type until its estimate fits ``max_tokens``.

    Every returned result satisfies ``0 <= tokens <= max_tokens``; when nothing
    useful fits, ``CompressionError`` is raised instead.
    """

    def __init__(self, estimator: TokenEstimator | None = None) -> None:
        self._estimator = estimator if estimator is not None else TokenEstimator()

    def estimate(self, text: str) -> int:
        return self._estimator.estimate(text)

    def compress(self, content: str, path: str, max_tokens: int) -> CompressionResult:
        if max_tokens <= 0:
            raise CompressionError(f"no token allowance left for {path}")

        original = self.estimate(content)
        if original <= max_tokens:
            return CompressionResult(content, "full", original, original)

        extension = PurePosixPath(path).suffix.lstrip(".").lower()
        if extension in MARKUP_EXTENSIONS:
            result = self._compress_markup(content, max_tokens)
        elif extension in CODE_EXTENSIONS:
            result = self._compress_code(content, max_tokens)
        else:
            result = None
        if result is None:
            result = self._truncate(content, max_tokens, marker=TRUNCATION_MARKER)

        tokens = self.estimate(result[0])
        if tokens > max_tokens:
            raise CompressionError(
                f"{path}: {result[1]} produced {tokens} tokens for a {max_tokens}-token allowance"
            )
        return CompressionResult(result[0], result[1], tokens, original)

    def truncate_to_tokens(self, content: str, max_tokens: int) -> str:
        """Largest line prefix of ``content`` whose estimate fits ``max_tokens``."""

        if self.estimate(content) <= max_tokens:
            return content
        lines = content.split("\n")
        keep = self._fit_lines(lines, max_tokens, suffix="")
        return "\n".join(lines[:keep])

    def _compress_markup(self, content: str, max_tokens: int) -> tuple[str, str] | None:
        sections: list[tuple[int, str, str]] = []
        for name, priority, pattern in _MARKUP_SECTIONS:
            match = pattern.search(content)
            if match is not None:
                sections.append((priority, name, match.group(0)))
        if not sections:
            return None
        sections.sort()

        kept: list[str] = []
        for _, _, body in sections:
            candidate = "\n\n".join([*kept, body])
            if self.estimate(candidate) <= max_tokens:
                kept.append(body)
                continue
            # The first section that overflows is cut to whatever allowance is left.
            prefix = "\n\n".join(kept) + "\n\n" if kept else ""
            lines = body.split("\n")
            keep = self._fit_lines(lines, max_tokens, prefix=prefix, suffix="\n" + MARKUP_MARKER)
            if keep:
                kept.append("\n".join(lines[:keep]) + "\n" + MARKUP_MARKER)
            elif kept and self.estimate(prefix + MARKUP_MARKER) <= max_tokens:
                kept.append(MARKUP_MARKER)
            break
        if not kept:
            return None
        return "\n\n".join(kept), "markup-sections"

    def _compress_code(self, content: str, max_tokens: int) -> tuple[str, str] | None:
        header: list[str] = []
        body: list[str] = []
        for line in content.split("\n"):
            stripped = line.strip()
            if any(pattern.match(stripped) for pattern in _SIGNATURE_PATTERNS):
                header.append(line)
            else:
                body.append(line)
        if not header:
            return None

        result = "\n".join(header)
        header_tokens = self.estimate(result)
        if header_tokens > max_tokens:
            return None

        remaining = max_tokens - header_tokens - self.estimate(BODY_MARKER)
        if remaining > _MIN_BODY_TOKENS and body:
            prefix = f"{result}\n\n{BODY_MARKER}\n"
            keep = self._fit_lines(body, max_tokens, prefix=prefix)
            if keep:
                result = prefix + "\n".join(body[:keep])
        return result, "code-signatures"

    def _truncate(self, content: str, max_tokens: int, *, marker: str) -> tuple[str, str]:
        lines = content.split("\n")
        suffix = "\n\n" + marker
        keep = self._fit_lines(lines, max_tokens, suffix=suffix)
        if keep == 0:
            keep = self._fit_lines(lines, max_tokens, suffix="")
            if keep == 0:
                raise CompressionError("not even one line fits the token allowance")
            return "\n".join(lines[:keep]), "truncated"
        return "\n".join(lines[:keep]) + suffix, "truncated"

    def _fit_lines(
        self,
        lines: list[str],
        max_tokens: int,
        *,
        prefix: str = "",
        suffix: str = "",
    ) -> int:
        """Binary search for the longest prefix of ``lines`` that fits with its frame."""

        low, high = 0, len(lines)
        while low < high:
            mid = (low + high + 1) // 2
            candidate = prefix + "\n".join(lines[:mid]) + suffix
            if self.estimate(candidate) <= max_tokens:
                low = mid
            else:
                high = mid - 1
        return low


__all__ = [
    "BODY_MARKER",
    "CODE_EXTENSIONS",
    "CompressionError",
    "CompressionResult",
    "ContentCompressor",
    "MARKUP_EXTENSIONS",
    "MARKUP_MARKER",
    "TRUNCATION_MARKER",
]

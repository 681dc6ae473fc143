"""File-path extraction from free-form issue text."""

from __future__ import annotations

import re
from typing import Final

from autoremedy.domain.models import as_relative_path

KNOWN_EXTENSIONS: Final[tuple[str, ...]] = (
    "md", "mdx", "txt", "rst",
    "ts", "tsx", "js", "jsx", "mjs", "cjs", "vue", "svelte",
    "py", "pyi",
    "json", "yaml", "yml", "toml", "ini", "cfg",
    "css", "scss", "less", "html",
    "sh", "env",
)  # fmt: skip

_EXTENSION_ALTERNATION = "|".join(sorted(KNOWN_EXTENSIONS, key=len, reverse=True))

_PATH_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    # `src/app.ts`, `.env`
    re.compile(r"`([\w\-./]*\.[A-Za-z0-9]+)`"),
    # "src/app.ts"
    re.compile(r"\"([\w\-./]+\.[A-Za-z0-9]+)\""),
    # [label](docs/guide.md)
    re.compile(r"\[[^\]]*\]\(([\w\-./]+\.[A-Za-z0-9]+)\)"),
    # bare nested paths: src/components/Button.vue
    re.compile(r"(?:^|\s)((?:[\w\-]+/)+[\w\-.]+\.[A-Za-z0-9]+)(?=[\s,;:)]|$)", re.MULTILINE),
    # bare file names with a known extension: README.md
    re.compile(
        rf"(?:^|[\s(])([\w\-]+(?:\.[\w\-]+)*\.(?:{_EXTENSION_ALTERNATION}))"
        r"(?=[\s,;:)!?]|\.?$|\.\s)",
        re.MULTILINE,
    ),
)


def extract_file_paths(text: str) -> tuple[str, ...]:
    """Repository-relative paths mentioned in ``text``, first mention first."""

    first_seen: dict[str, int] = {}
    for pattern in _PATH_PATTERNS:
        for match in pattern.finditer(text):
            candidate = match.group(1).strip()
            if not candidate or candidate.startswith(("http", "www.")) or "://" in candidate:
                continue
            if candidate.startswith("./"):
                candidate = candidate[2:]
            try:
                normalized = as_relative_path(candidate, "issue_text.path")
            except ValueError:
                continue
            position = match.start(1)
            if position < first_seen.get(normalized, len(text) + 1):
                first_seen[normalized] = position
    return tuple(sorted(first_seen, key=lambda path: (first_seen[path], path)))


__all__ = ["KNOWN_EXTENSIONS", "extract_file_paths"]

"""
autoremedy — candidate file discovery

File: src/autoremedy/knowledge_plane/file_discovery.py

Purpose
- Find the files an issue most likely touches and trim them to what fits the
  provider's token budget.

What should be included in this file
- Six scoring strategies whose scores accumulate per path: explicit mention,
  classifier hint, semantic keyword match, directory convention,
  model-assisted suggestion, import-graph expansion.
- Validation against the real tree and trimming by file count, total size and
  token budget, smaller files first.

Functional requirements
- Weight ordering is taken from configuration and is never reordered here.
- Model-assisted discovery runs only when fewer than three candidates exist.
- Import expansion starts from the five best candidates.
- An empty result is returned as-is; callers decide how to fail.
"""

from __future__ import annotations

import json
import math
import posixpath
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

import structlog

from autoremedy.domain.models import Classification, Issue
from autoremedy.synthesis_plane.prompt_templates import PromptTemplateEngine
from autoremedy.synthesis_plane.providers.base import ProviderError
from autoremedy.synthesis_plane.tokens import TokenBudget, TokenEstimator
from autoremedy.triage_plane.issue_text import extract_file_paths

if TYPE_CHECKING:
    from autoremedy.knowledge_plane.project_analyzer import ProjectContext
    from autoremedy.knowledge_plane.repository import RepositoryReader
    from autoremedy.synthesis_plane.providers.base import TextGenerator

MODEL_ASSIST_THRESHOLD: Final[int] = 3
IMPORT_SEED_COUNT: Final[int] = 5
SEMANTIC_RESULT_LIMIT: Final[int] = 30
CONVENTION_FILES_PER_DIR: Final[int] = 5
MODEL_FILE_LIST_LIMIT: Final[int] = 150
MIN_REMAINING_TOKENS: Final[int] = 200
MAX_KEYWORDS: Final[int] = 20

SOURCE_EXTENSIONS: Final[tuple[str, ...]] = (
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".vue", ".svelte", ".py",
)  # fmt: skip

_STOP_WORDS: Final[frozenset[str]] = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
        "her", "was", "one", "our", "out", "has", "have", "this", "that", "with",
        "from", "they", "been", "when", "will", "would", "there", "their", "what",
        "about", "which", "into", "should", "could", "does", "doesn", "it's",
        "bug", "fix", "issue", "error", "problem", "please", "after",
        "before", "also", "some", "then", "than", "them", "only", "just", "like",
        "need", "needs", "want", "using", "used", "use", "work", "working",
        "click", "clicking", "shows", "show", "instead", "expected",
    }
)  # fmt: skip

# Keyword fragment -> convention roles it points at.
CONVENTION_KEYWORDS: Final[Mapping[str, tuple[str, ...]]] = {
    "component": ("component",),
    "composable": ("composable",),
    "hook": ("hook", "composable"),
    "view": ("view", "page"),
    "page": ("page", "view"),
    "type": ("type",),
    "store": ("store",),
    "service": ("service", "source"),
    "util": ("source",),
    "api": ("source",),
}

_WORD_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9_\-]{2,}")
_CAMEL_SPLIT = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])")
_NAME_NORMALIZE = re.compile(r"[-_.\s]")

_IMPORT_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"""import\s+(?:[\w*{}\s,]+\s+from\s+)?['"]([^'"]+)['"]"""),
    re.compile(r"""export\s+[\w*{}\s,]+\s+from\s+['"]([^'"]+)['"]"""),
    re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)"""),
    re.compile(r"""import\(\s*['"]([^'"]+)['"]\s*\)"""),
)
_PYTHON_RELATIVE_IMPORT = re.compile(
    r"^\s*from\s+(\.+)([\w.]*)\s+import\s+([\w, ]+)", re.MULTILINE
)

_RESOLVE_SUFFIXES: Final[tuple[str, ...]] = (
    "", ".ts", ".tsx", ".js", ".jsx", ".vue", ".svelte",
    "/index.ts", "/index.tsx", "/index.js", "/index.jsx",
)  # fmt: skip
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True, slots=True)
class DiscoveryWeights:
    """Per-strategy weights, highest first."""

    explicit: int = 100
    hint: int = 90
    semantic: int = 50
    convention: int = 20
    model: int = 18
    imports: int = 12

    def __post_init__(self) -> None:
        ordered = (
            self.explicit,
            self.hint,
            self.semantic,
            self.convention,
            self.model,
            self.imports,
        )
        if any(weight <= 0 for weight in ordered):
            raise ValueError("discovery weights must be > 0")
        if any(higher <= lower for higher, lower in zip(ordered, ordered[1:])):
            raise ValueError(
                "discovery weights must decrease: explicit > hint > semantic > "
                "convention > model > import"
            )

    @classmethod
    def from_mapping(cls, weights: Mapping[str, int]) -> DiscoveryWeights:
        defaults = cls()
        return cls(
            explicit=int(weights.get("explicit", defaults.explicit)),
            hint=int(weights.get("hint", defaults.hint)),
            semantic=int(weights.get("semantic", defaults.semantic)),
            convention=int(weights.get("convention", defaults.convention)),
            model=int(weights.get("model", defaults.model)),
            imports=int(weights.get("import", defaults.imports)),
        )


@dataclass(slots=True)
class FileCandidate:
    """Accumulated score for one path; reasons record which strategies hit it."""

    path: str
    score: int = 0
    reasons: list[str] = field(default_factory=list)

    def add(self, score: int, reason: str) -> None:
        self.score += score
        self.reasons.append(reason)

    def to_dict(self) -> dict[str, object]:
        return {"path": self.path, "score": self.score, "reasons": list(self.reasons)}


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    files: tuple[FileCandidate, ...]
    candidates_found: int
    tokens_used: int
    skipped: tuple[str, ...] = ()

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(candidate.path for candidate in self.files)

    @property
    def empty(self) -> bool:
        return not self.files


class FileDiscovery:
    """Scores repository files against an issue and selects what fits the budget."""

    def __init__(
        self,
        context: ProjectContext,
        repository: RepositoryReader,
        *,
        weights: DiscoveryWeights | None = None,
        max_files: int = 10,
        max_file_size: int = 100_000,
        max_total_context: int = 200_000,
        token_limit: int = 40_000,
        estimator: TokenEstimator | None = None,
        generator: TextGenerator | None = None,
        templates: PromptTemplateEngine | None = None,
        logger: Any | None = None,
    ) -> None:
        if max_files <= 0:
            raise ValueError("max_files must be > 0")
        self._context = context
        self._repository = repository
        self._weights = weights if weights is not None else DiscoveryWeights()
        self._max_files = max_files
        self._max_file_size = max_file_size
        self._max_total_context = max_total_context
        self._token_limit = token_limit
        self._estimator = estimator if estimator is not None else TokenEstimator()
        self._generator = generator
        self._templates = templates
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def discover(
        self,
        issue: Issue,
        *,
        hints: Sequence[str] = (),
        classification: Classification = Classification.OTHER,
    ) -> DiscoveryResult:
        candidates: dict[str, FileCandidate] = {}
        keywords = extract_keywords(issue.text)

        self._merge(candidates, self.explicit_matches(issue), self._weights.explicit, "explicit")
        self._merge(candidates, self._existing(hints), self._weights.hint, "hint")
        for path, score in self.semantic_matches(keywords):
            candidates.setdefault(path, FileCandidate(path)).add(score, "semantic")
        self._merge(
            candidates, self.convention_matches(keywords), self._weights.convention, "convention"
        )

        if len(candidates) < MODEL_ASSIST_THRESHOLD and self._generator is not None:
            suggested = await self.model_suggestions(issue, classification)
            self._merge(candidates, suggested, self._weights.model, "model")

        seeds = [candidate.path for candidate in _ranked(candidates.values())[:IMPORT_SEED_COUNT]]
        self._merge(candidates, self.import_matches(seeds), self._weights.imports, "import")

        result = self.validate_and_limit(candidates.values())
        self._logger.info(
            "files_discovered",
            issue_id=issue.id,
            keywords=len(keywords),
            candidates=len(candidates),
            selected=list(result.paths),
            tokens_used=result.tokens_used,
        )
        return result

    def explicit_matches(self, issue: Issue) -> list[str]:
        """Paths named in the issue text that exist; bare names resolve by file name."""

        matched: list[str] = []
        for mentioned in extract_file_paths(issue.text):
            if self._repository.is_file(mentioned):
                matched.append(mentioned)
                continue
            if "/" in mentioned:
                continue
            matched.extend(entry.path for entry in self._context.files if entry.name == mentioned)
        return _unique(matched)

    def semantic_matches(self, keywords: Sequence[str]) -> list[tuple[str, int]]:
        if not keywords:
            return []
        weight = self._weights.semantic
        exact, contains, in_path, bonus = weight, weight * 3 // 5, weight * 3 // 10, weight // 10
        convention_dirs = tuple(self._context.conventions.values())
        normalized_keywords = [(keyword, _normalize_name(keyword)) for keyword in keywords]

        scored: list[tuple[str, int]] = []
        for entry in self._context.files:
            stem = _normalize_name(posixpath.splitext(entry.name)[0])
            lowered_path = entry.path.lower()
            score = 0
            for keyword, normalized in normalized_keywords:
                if not normalized:
                    continue
                if stem == normalized:
                    score += exact
                elif normalized in stem:
                    score += contains
                elif keyword in lowered_path:
                    score += in_path
            if score == 0:
                continue
            if self._context.framework.matches_file_pattern(entry.name):
                score += bonus
            if any(entry.path.startswith(f"{directory}/") for directory in convention_dirs):
                score += bonus
            scored.append((entry.path, score))

        scored.sort(key=lambda item: (-item[1], item[0]))
        return scored[:SEMANTIC_RESULT_LIMIT]

    def convention_matches(self, keywords: Sequence[str]) -> list[str]:
        roles: list[str] = []
        for fragment, fragment_roles in CONVENTION_KEYWORDS.items():
            if any(fragment in keyword for keyword in keywords):
                roles.extend(fragment_roles)

        matched: list[str] = []
        for role in _unique(roles):
            directory = self._context.conventions.get(role)
            if not directory:
                continue
            in_dir = [
                entry.path
                for entry in self._context.files
                if entry.path.startswith(f"{directory}/") and _is_source(entry.path)
            ]
            matched.extend(in_dir[:CONVENTION_FILES_PER_DIR])
        return _unique(matched)

    async def model_suggestions(self, issue: Issue, classification: Classification) -> list[str]:
        """Paths suggested by the text generator; failures degrade to no suggestions."""

        if self._generator is None:
            return []
        source_files = [entry.path for entry in self._context.files if _is_source(entry.path)]
        if not source_files:
            return []
        templates = self._templates if self._templates is not None else PromptTemplateEngine()
        rendered = templates.render(
            "discover_files",
            variables={
                "issue_number": str(issue.id),
                "title": issue.title,
                "body": issue.body[:1000],
                "classification": classification.value,
                "framework": self._context.framework.name,
                "file_list": "\n".join(source_files[:MODEL_FILE_LIST_LIMIT]),
            },
        )
        try:
            response = await self._generator.generate(
                rendered.prompt, temperature=0.1, max_tokens=512
            )
            suggested = _parse_path_array(response)
        except (ProviderError, ValueError) as exc:
            self._logger.warning("model_discovery_failed", issue_id=issue.id, error=str(exc))
            return []
        return self._existing(suggested)

    def import_matches(self, seeds: Sequence[str]) -> list[str]:
        found: list[str] = []
        for seed in seeds:
            content = self._repository.read_text(seed)
            if content is None:
                continue
            if seed.endswith(".py"):
                found.extend(self._python_imports(seed, content))
                continue
            for pattern in _IMPORT_PATTERNS:
                for match in pattern.finditer(content):
                    resolved = self._resolve_specifier(seed, match.group(1))
                    if resolved is not None and resolved != seed:
                        found.append(resolved)
        return _unique(found)

    def validate_and_limit(self, candidates: Iterable[FileCandidate]) -> DiscoveryResult:
        """Keep existing files, smallest first, until a ceiling or the budget is hit."""

        collected = list(candidates)
        ranked = _ranked(collected)[: self._max_files * 2]
        sized: list[tuple[FileCandidate, int]] = []
        for candidate in ranked:
            size = self._repository.file_size(candidate.path)
            if size is not None:
                sized.append((candidate, size))
        sized.sort(key=lambda item: (item[1], -item[0].score, item[0].path))

        budget = TokenBudget(self._token_limit, estimator=self._estimator)
        selected: list[FileCandidate] = []
        skipped: list[str] = []
        total_size = 0
        for candidate, size in sized:
            if len(selected) >= self._max_files:
                break
            if size > self._max_file_size:
                skipped.append(candidate.path)
                continue
            if total_size + size > self._max_total_context:
                break
            if budget.remaining() < MIN_REMAINING_TOKENS:
                break
            tokens = math.ceil(size * self._estimator.tokens_per_char)
            budget.consume(min(tokens, budget.remaining()))
            total_size += size
            selected.append(candidate)

        if skipped:
            self._logger.info("discovery_files_skipped", reason="too_large", paths=skipped)
        return DiscoveryResult(
            files=tuple(_ranked(selected)),
            candidates_found=len(collected),
            tokens_used=budget.used,
            skipped=tuple(skipped),
        )

    def _merge(
        self,
        candidates: dict[str, FileCandidate],
        paths: Iterable[str],
        weight: int,
        reason: str,
    ) -> None:
        for path in paths:
            candidates.setdefault(path, FileCandidate(path)).add(weight, reason)

    def _existing(self, paths: Iterable[str]) -> list[str]:
        return _unique(path for path in paths if self._repository.is_file(path))

    def _resolve_specifier(self, importer: str, specifier: str) -> str | None:
        if specifier.startswith("."):
            base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
        elif specifier.startswith(("@/", "~/")):
            base = "src/" + specifier[2:]
        elif specifier.startswith("#"):
            base = "src/" + specifier[1:].lstrip("/")
        else:
            return None
        if base.startswith("../") or base == "..":
            return None
        for suffix in _RESOLVE_SUFFIXES:
            candidate = base + suffix
            if self._repository.is_file(candidate):
                return candidate
        return None

    def _python_imports(self, importer: str, content: str) -> list[str]:
        resolved: list[str] = []
        for match in _PYTHON_RELATIVE_IMPORT.finditer(content):
            dots, module, names = match.groups()
            package = posixpath.dirname(importer)
            for _ in range(len(dots) - 1):
                package = posixpath.dirname(package)
            base = posixpath.join(package, *module.split(".")) if module else package
            targets = [base] if module else [
                posixpath.join(base, name.strip()) for name in names.split(",") if name.strip()
            ]
            for target in targets:
                for candidate in (f"{target}.py", f"{target}/__init__.py"):
                    if self._repository.is_file(candidate) and candidate != importer:
                        resolved.append(candidate)
                        break
        return resolved


def extract_keywords(text: str) -> list[str]:
    """Lower-cased search terms; compound identifiers also contribute their parts."""

    keywords: list[str] = []
    for token in _WORD_PATTERN.findall(text):
        lowered = token.lower().strip("-_")
        if len(lowered) < 3 or lowered in _STOP_WORDS:
            continue
        keywords.append(lowered)
        if any(character.isupper() for character in token[1:]) or "-" in token or "_" in token:
            for part in _split_identifier(token):
                if len(part) >= 3 and part not in _STOP_WORDS:
                    keywords.append(part)
    return _unique(keywords)[:MAX_KEYWORDS]


def _split_identifier(token: str) -> list[str]:
    parts: list[str] = []
    for chunk in re.split(r"[-_]", token):
        parts.extend(piece.lower() for piece in _CAMEL_SPLIT.findall(chunk))
    return parts


def _normalize_name(value: str) -> str:
    return _NAME_NORMALIZE.sub("", value.lower())


def _is_source(path: str) -> bool:
    return path.endswith(SOURCE_EXTENSIONS)


def _ranked(candidates: Iterable[FileCandidate]) -> list[FileCandidate]:
    return sorted(candidates, key=lambda candidate: (-candidate.score, candidate.path))


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _parse_path_array(response: str) -> list[str]:
    match = _JSON_ARRAY.search(response)
    if match is None:
        raise ValueError("model response did not contain a JSON array")
    parsed = json.loads(match.group(0))
    if not isinstance(parsed, list):
        raise ValueError("model response was not a JSON array")
    return [
        item.strip().removeprefix("./")
        for item in parsed
        if isinstance(item, str) and item.strip()
    ]


__all__ = [
    "CONVENTION_KEYWORDS",
    "DiscoveryResult",
    "DiscoveryWeights",
    "FileCandidate",
    "FileDiscovery",
    "extract_keywords",
]

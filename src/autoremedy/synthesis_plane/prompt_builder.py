"""
autoremedy — fix-plan prompt assembly

File: src/autoremedy/synthesis_plane/prompt_builder.py

Purpose
- Build the single instruction document sent to the text generator for an
  edit plan: issue summary, architecture rules, and as many file contents as
  the provider's input budget allows.

What should be included in this file
- Compact vs. standard template selection from the provider profile.
- Compact and full renderings of parsed architecture rules.
- Budget-driven inclusion of file contents with per-file compression.

Functional requirements
- The finished prompt's estimate never exceeds
  ``max_input_tokens - reserved_for_output``.
- Files are offered budget smallest-first so more files fit; the document
  lists them in discovery order.
- A file that cannot be compressed into its share is omitted, not cut mid-line.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any, Final

import structlog

from autoremedy.domain.models import Classification, Issue, RiskLevel
from autoremedy.synthesis_plane.compressor import CompressionError, ContentCompressor
from autoremedy.synthesis_plane.prompt_templates import PromptTemplateEngine, RenderedPrompt
from autoremedy.synthesis_plane.tokens import BudgetExceededError, ProviderLimits, TokenBudget

if TYPE_CHECKING:
    from autoremedy.knowledge_plane.project_analyzer import ProjectContext

COMPACT_TEMPLATE: Final[str] = "fix_plan_compact"
STANDARD_TEMPLATE: Final[str] = "fix_plan_standard"

COMPACT_BODY_CHARS: Final[int] = 300
STANDARD_BODY_CHARS: Final[int] = 1000
COMPACT_RULE_COUNT: Final[int] = 3
MIN_FILE_TOKENS: Final[int] = 40

_FENCE_LANGUAGES: Final[dict[str, str]] = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "jsx",
    ".vue": "vue",
    ".svelte": "svelte",
    ".py": "python",
    ".json": "json",
    ".md": "markdown",
    ".css": "css",
    ".scss": "scss",
    ".html": "html",
    ".yml": "yaml",
    ".yaml": "yaml",
}


@dataclass(frozen=True, slots=True)
class FileSection:
    path: str
    content: str
    strategy: str
    tokens: int

    @property
    def partial(self) -> bool:
        return self.strategy != "full"


@dataclass(frozen=True, slots=True)
class BuiltPrompt:
    """Rendered instruction document plus what went into it."""

    prompt: str
    template: str
    tokens: int
    input_limit: int
    max_output_tokens: int
    prompt_hash: str
    included: tuple[str, ...]
    compressed: tuple[str, ...]
    omitted: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "template": self.template,
            "tokens": self.tokens,
            "input_limit": self.input_limit,
            "max_output_tokens": self.max_output_tokens,
            "prompt_hash": self.prompt_hash,
            "included": list(self.included),
            "compressed": list(self.compressed),
            "omitted": list(self.omitted),
        }


class PromptBuilder:
    """Fits an issue, its architecture rules and candidate files into one prompt."""

    def __init__(
        self,
        limits: ProviderLimits,
        *,
        templates: PromptTemplateEngine | None = None,
        compressor: ContentCompressor | None = None,
        logger: Any | None = None,
    ) -> None:
        self._limits = limits
        self._estimator = limits.estimator()
        self._templates = templates if templates is not None else PromptTemplateEngine()
        self._compressor = (
            compressor if compressor is not None else ContentCompressor(self._estimator)
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def input_limit(self) -> int:
        return self._limits.max_input_tokens - self._limits.reserved_for_output

    @property
    def compact(self) -> bool:
        return self._limits.compact

    def build(
        self,
        issue: Issue,
        context: ProjectContext,
        files: Sequence[tuple[str, str]],
        *,
        classification: Classification = Classification.OTHER,
        risk_level: RiskLevel = RiskLevel.LOW,
    ) -> BuiltPrompt:
        """Render the edit-plan prompt; ``files`` are ``(path, content)`` in priority order."""

        template = COMPACT_TEMPLATE if self.compact else STANDARD_TEMPLATE
        architecture = (
            compact_architecture_rules(context)
            if self.compact
            else full_architecture_rules(context)
        )
        base_variables = self._base_variables(
            issue, context, classification, risk_level, architecture
        )

        skeleton = self._render(template, base_variables, sections=[], total_files=len(files))
        budget = TokenBudget(self.input_limit, estimator=self._estimator)
        try:
            budget.consume(self._estimator.estimate(skeleton))
        except BudgetExceededError:
            if self.compact:
                raise
            # Full rules do not fit; retry once with the compact rendering.
            base_variables["architecture"] = compact_architecture_rules(context)
            skeleton = self._render(template, base_variables, sections=[], total_files=len(files))
            budget.consume(self._estimator.estimate(skeleton))

        sections, omitted = self._fit_files(files, budget)
        rendered = self._render_prompt(template, base_variables, sections, len(files))
        tokens = self._estimator.estimate(rendered.prompt)
        while tokens > self.input_limit and sections:
            dropped = sections.pop()
            omitted.append(dropped.path)
            rendered = self._render_prompt(template, base_variables, sections, len(files))
            tokens = self._estimator.estimate(rendered.prompt)
        if tokens > self.input_limit:
            raise BudgetExceededError(
                f"prompt skeleton needs {tokens} tokens; input limit is {self.input_limit}"
            )

        built = BuiltPrompt(
            prompt=rendered.prompt,
            template=template,
            tokens=tokens,
            input_limit=self.input_limit,
            max_output_tokens=self._limits.max_output_tokens,
            prompt_hash=rendered.prompt_hash,
            included=tuple(section.path for section in sections),
            compressed=tuple(section.path for section in sections if section.partial),
            omitted=tuple(omitted),
        )
        self._logger.info(
            "prompt_built",
            issue_id=issue.id,
            template=template,
            tokens=tokens,
            input_limit=self.input_limit,
            included=len(built.included),
            compressed=len(built.compressed),
            omitted=len(built.omitted),
        )
        return built

    def _fit_files(
        self,
        files: Sequence[tuple[str, str]],
        budget: TokenBudget,
    ) -> tuple[list[FileSection], list[str]]:
        order = {path: index for index, (path, _) in enumerate(files)}
        by_size = sorted(
            files, key=lambda item: (self._estimator.estimate(item[1]), order[item[0]])
        )

        fitted: dict[str, FileSection] = {}
        omitted: list[str] = []
        for position, (path, content) in enumerate(by_size):
            files_left = len(by_size) - position
            overhead = self._estimator.estimate(self._section_frame(path, "", partial=True))
            share = budget.remaining() // files_left - overhead
            if share < MIN_FILE_TOKENS:
                omitted.append(path)
                continue
            try:
                result = self._compressor.compress(content, path, share)
            except CompressionError as exc:
                self._logger.info("prompt_file_omitted", path=path, reason=str(exc))
                omitted.append(path)
                continue
            section = FileSection(path, result.content, result.strategy, result.tokens)
            budget.consume(min(budget.remaining(), result.tokens + overhead))
            fitted[path] = section

        ordered = sorted(fitted.values(), key=lambda section: order[section.path])
        omitted.sort(key=lambda path: order[path])
        return ordered, omitted

    def _render_prompt(
        self,
        template: str,
        base_variables: dict[str, str],
        sections: Sequence[FileSection],
        total_files: int,
    ) -> RenderedPrompt:
        variables = dict(base_variables)
        variables["files"] = "\n".join(self._format_section(section) for section in sections)
        if template == STANDARD_TEMPLATE:
            variables["file_count"] = f"{len(sections)}/{total_files}"
        else:
            variables["has_partial_files"] = (
                "yes" if any(section.partial for section in sections) else "no"
            )
        return self._templates.render(template, variables=variables)

    def _render(
        self,
        template: str,
        base_variables: dict[str, str],
        *,
        sections: Sequence[FileSection],
        total_files: int,
    ) -> str:
        return self._render_prompt(template, base_variables, sections, total_files).prompt

    def _base_variables(
        self,
        issue: Issue,
        context: ProjectContext,
        classification: Classification,
        risk_level: RiskLevel,
        architecture: str,
    ) -> dict[str, str]:
        if self.compact:
            body = " ".join(issue.body[:COMPACT_BODY_CHARS].split())
        else:
            body = issue.body[:STANDARD_BODY_CHARS]
        variables = {
            "issue_number": str(issue.id),
            "title": issue.title,
            "body": body,
            "stack": context.framework.name,
            "classification": classification.value,
            "risk_level": risk_level.value,
            "framework_rules": context.framework.prompt_rules,
            "architecture": architecture,
        }
        if not self.compact:
            variables["language"] = context.language
        return variables

    def _format_section(self, section: FileSection) -> str:
        return self._section_frame(section.path, section.content, partial=section.partial)

    def _section_frame(self, path: str, content: str, *, partial: bool) -> str:
        if self.compact:
            marker = " [partial]" if partial else ""
            return f"### {path}{marker}\n{content}\n"
        language = _FENCE_LANGUAGES.get(PurePosixPath(path).suffix.lower(), "")
        marker = " (compressed)" if partial else ""
        return f"### {path}{marker}\n```{language}\n{content}\n```\n"


def compact_architecture_rules(context: ProjectContext) -> str:
    """Top data-flow rules and prohibitions only."""

    rules = context.spec_rules
    if not rules.has_specs:
        return ""
    lines: list[str] = []
    if rules.data_flow:
        lines.append("ARCHITECTURE:")
        lines.extend(f"- {finding.detail}" for finding in rules.data_flow[:COMPACT_RULE_COUNT])
    if rules.prohibited:
        lines.append("PROHIBITED:")
        lines.extend(f"- {finding.detail}" for finding in rules.prohibited[:COMPACT_RULE_COUNT])
    presentational = [finding.subject for finding in rules.presentational_components]
    if presentational:
        lines.append("BASE COMPONENTS (props/events only): " + ", ".join(presentational[:5]))
    return "\n".join(lines)


def full_architecture_rules(context: ProjectContext) -> str:
    rules = context.spec_rules
    if not rules.has_specs:
        return ""
    lines = ["## Architecture Rules", f"Sources: {', '.join(rules.sources)}"]
    headings = (
        ("layers", "### Layers"),
        ("components", "### Component Responsibilities"),
        ("data_flow", "### Data Flow"),
        ("prohibited", "### Prohibited"),
        ("required", "### Required"),
        ("conventions", "### Conventions"),
    )
    for kind, heading in headings:
        findings = rules.of(kind)
        if not findings:
            continue
        lines.append("")
        lines.append(heading)
        for finding in findings:
            if kind in ("prohibited", "required", "data_flow"):
                lines.append(f"- {finding.detail}")
            else:
                lines.append(f"- {finding.subject}: {finding.detail}")
    return "\n".join(lines)


__all__ = [
    "BuiltPrompt",
    "COMPACT_TEMPLATE",
    "FileSection",
    "PromptBuilder",
    "STANDARD_TEMPLATE",
    "compact_architecture_rules",
    "full_architecture_rules",
]

"""
autoremedy — architecture validator

File: src/autoremedy/verification_plane/architecture/validator.py

Purpose
- Run validator plugins over proposed file contents before anything is
  written, producing blocking errors and non-blocking warnings.

What should be included in this file
- ``ValidatorPlugin`` protocol with the rule-based, data-flow and contract
  plugins.
- ``ValidationReport`` with grouping helpers and markdown rendering.
- ``build_validator`` wiring framework defaults, synthesized rules and an
  optional YAML rules file into one registry.

Functional requirements
- Plugins see one file at a time; no plugin state is shared across runs.
- Without specification documents, ERRORs from advisory rules (the framework
  defaults) are reported as WARNINGs, so the validator never blocks on
  framework defaults alone. Rules from a rules file or synthesized from
  documents keep their declared severity.
- One finding per offending import: when several plugins flag the same
  import in the same file, only the most severe (first on ties) is kept.
- ``ensure_valid`` raises ``ARCHITECTURE_VIOLATION`` carrying the violations
  and their markdown rendering.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

import structlog

from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.verification_plane.architecture.registry import (
    RuleRegistry,
    default_rules,
    load_rules_yaml,
    synthesize_rules,
)
from autoremedy.verification_plane.architecture.rules import (
    ArchitectureViolation,
    FileUnderReview,
    Severity,
    exported_names,
    imported_modules,
    path_matches,
)

if TYPE_CHECKING:
    from autoremedy.knowledge_plane.project_analyzer import ProjectContext
    from autoremedy.knowledge_plane.spec_parser import SpecRules

HTTP_CLIENT_MODULES: Final[str] = (
    r"^(axios|ky|ofetch|node-fetch|cross-fetch|superagent|graphql-request|requests|httpx|aiohttp)$"
)
_UI_CONVENTION_KEYS: Final[tuple[str, ...]] = ("component", "view", "page", "route")
_LAYER_WORDS: Final[tuple[str, ...]] = ("composable", "hook", "service", "store")
_PATH_TOKEN = re.compile(r"`?((?:src|lib|app)/[\w./-]+)`?")


@runtime_checkable
class ValidatorPlugin(Protocol):
    plugin_id: str

    def check(self, file: FileUnderReview) -> list[ArchitectureViolation]: ...


class RuleBasedPlugin:
    """Evaluates every enabled registry rule that applies to the file's path."""

    plugin_id = "rules"

    def __init__(self, registry: RuleRegistry) -> None:
        self._registry = registry

    def check(self, file: FileUnderReview) -> list[ArchitectureViolation]:
        violations: list[ArchitectureViolation] = []
        for rule in self._registry.enabled_rules():
            if rule.applies_to(file.path):
                violations.extend(rule.check(file))
        return violations


@dataclass(frozen=True, slots=True)
class DataFlowConstraint:
    """Files under ``sources`` must not import modules matching ``blocked``."""

    sources: tuple[str, ...]
    blocked: re.Pattern[str]
    owner: str
    suggestion: str = ""


class DataFlowPlugin:
    plugin_id = "data-flow"

    def __init__(self, constraints: Sequence[DataFlowConstraint] = ()) -> None:
        self._constraints = tuple(constraints)

    @property
    def constraints(self) -> tuple[DataFlowConstraint, ...]:
        return self._constraints

    def check(self, file: FileUnderReview) -> list[ArchitectureViolation]:
        if not self._constraints:
            return []
        imports = imported_modules(file.path, file.content)
        violations: list[ArchitectureViolation] = []
        for constraint in self._constraints:
            if not path_matches(file.path, constraint.sources):
                continue
            for module in imports:
                if constraint.blocked.search(module):
                    name = file.path.rsplit("/", 1)[-1]
                    violations.append(
                        ArchitectureViolation(
                            rule_id="data-flow",
                            severity=Severity.ERROR,
                            path=file.path,
                            message=(
                                f"Data flow violation: `{name}` imports `{module}`; "
                                f"data access belongs in {constraint.owner}"
                            ),
                            suggestion=constraint.suggestion,
                            module=module,
                        )
                    )
        return violations


class ContractPlugin:
    """Flags exports present in the original file but missing from the new content."""

    plugin_id = "contract"

    def check(self, file: FileUnderReview) -> list[ArchitectureViolation]:
        if file.original is None:
            return []
        before = exported_names(file.path, file.original)
        after = set(exported_names(file.path, file.content))
        removed = [name for name in before if name not in after]
        if not removed:
            return []
        return [
            ArchitectureViolation(
                rule_id="contract-breaking",
                severity=Severity.WARNING,
                path=file.path,
                message=f"Potentially breaking change: removed exports: {', '.join(removed)}",
                suggestion=(
                    "Ensure no other modules depend on these exports, or keep a re-export."
                ),
            )
        ]


def data_flow_constraints(
    spec_rules: SpecRules, conventions: Mapping[str, str]
) -> tuple[DataFlowConstraint, ...]:
    """One constraint per data-flow statement whose owning layer can be located."""

    ui_dirs = tuple(
        f"{conventions[key].rstrip('/')}/**" for key in _UI_CONVENTION_KEYS if key in conventions
    )
    if not ui_dirs:
        return ()
    constraints: list[DataFlowConstraint] = []
    seen: set[str] = set()
    for finding in spec_rules.data_flow:
        owner = _owning_layer(f"{finding.subject} {finding.detail}", conventions)
        if owner is None or owner in seen:
            continue
        seen.add(owner)
        sources = tuple(glob for glob in ui_dirs if not glob.startswith(f"{owner}/"))
        if not sources:
            continue
        constraints.append(
            DataFlowConstraint(
                sources=sources,
                blocked=re.compile(HTTP_CLIENT_MODULES),
                owner=f"`{owner}`",
                suggestion=f"Call an existing module under `{owner}` instead of an HTTP client.",
            )
        )
    return tuple(constraints)


def _owning_layer(statement: str, conventions: Mapping[str, str]) -> str | None:
    explicit = _PATH_TOKEN.search(statement)
    if explicit is not None:
        return explicit.group(1).rstrip("/.")
    lowered = statement.lower()
    for word in _LAYER_WORDS:
        if word in lowered:
            return conventions.get(word, f"src/{word}s")
    return None


@dataclass(frozen=True, slots=True)
class ValidationReport:
    violations: tuple[ArchitectureViolation, ...] = ()
    files_checked: int = 0
    plugins: tuple[str, ...] = field(default_factory=tuple)

    @property
    def errors(self) -> tuple[ArchitectureViolation, ...]:
        return tuple(item for item in self.violations if item.severity is Severity.ERROR)

    @property
    def warnings(self) -> tuple[ArchitectureViolation, ...]:
        return tuple(item for item in self.violations if item.severity is Severity.WARNING)

    @property
    def infos(self) -> tuple[ArchitectureViolation, ...]:
        return tuple(item for item in self.violations if item.severity is Severity.INFO)

    @property
    def blocking(self) -> bool:
        return bool(self.errors)

    @property
    def passed(self) -> bool:
        return not self.blocking

    def by_file(self) -> dict[str, list[ArchitectureViolation]]:
        grouped: dict[str, list[ArchitectureViolation]] = {}
        for item in self.violations:
            grouped.setdefault(item.path, []).append(item)
        return grouped

    def by_rule(self) -> dict[str, list[ArchitectureViolation]]:
        grouped: dict[str, list[ArchitectureViolation]] = {}
        for item in self.violations:
            grouped.setdefault(item.rule_id, []).append(item)
        return grouped

    def to_dict(self) -> dict[str, object]:
        return {
            "passed": self.passed,
            "files_checked": self.files_checked,
            "plugins": list(self.plugins),
            "errors": [item.to_dict() for item in self.errors],
            "warnings": [item.to_dict() for item in self.warnings],
            "infos": [item.to_dict() for item in self.infos],
        }

    def to_markdown(self) -> str:
        if not self.violations:
            return "No architecture violations detected."
        lines = [
            f"**{len(self.errors)} error(s), {len(self.warnings)} warning(s)** "
            f"across {len(self.by_file())} file(s)",
            "",
        ]
        for path, items in self.by_file().items():
            lines.append(f"#### `{path}`")
            for item in items:
                location = f" (line {item.line})" if item.line is not None else ""
                lines.append(
                    f"- **{item.severity.value}** `{item.rule_id}`{location}: {item.message}"
                )
                if item.suggestion:
                    lines.append(f"  - Suggestion: {item.suggestion}")
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"


class ArchitectureValidator:
    """Runs plugins over proposed contents and partitions the findings by severity."""

    def __init__(
        self,
        plugins: Sequence[ValidatorPlugin],
        *,
        has_specs: bool = False,
        advisory_rules: Collection[str] | None = None,
        logger: Any | None = None,
    ) -> None:
        self._plugins = tuple(plugins)
        self._has_specs = has_specs
        # None: every rule is advisory.
        self._advisory = frozenset(advisory_rules) if advisory_rules is not None else None
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def plugin_ids(self) -> tuple[str, ...]:
        return tuple(plugin.plugin_id for plugin in self._plugins)

    def validate(self, files: Iterable[FileUnderReview]) -> ValidationReport:
        collected: list[ArchitectureViolation] = []
        checked = 0
        for file in files:
            checked += 1
            for plugin in self._plugins:
                collected.extend(plugin.check(file))

        if not self._has_specs:
            collected = [
                item.demoted() if self._is_advisory(item.rule_id) else item for item in collected
            ]
        unique = _one_per_import(dict.fromkeys(collected))
        violations = tuple(sorted(unique, key=ArchitectureViolation.sort_key))
        report = ValidationReport(
            violations=violations, files_checked=checked, plugins=self.plugin_ids
        )
        self._logger.info(
            "architecture_validated",
            files=checked,
            errors=len(report.errors),
            warnings=len(report.warnings),
            has_specs=self._has_specs,
        )
        for item in report.warnings:
            self._logger.warning(
                "architecture_warning", rule_id=item.rule_id, path=item.path, message=item.message
            )
        return report

    def _is_advisory(self, rule_id: str) -> bool:
        return self._advisory is None or rule_id in self._advisory

    def ensure_valid(self, files: Iterable[FileUnderReview]) -> ValidationReport:
        report = self.validate(files)
        if report.blocking:
            raise RemediationError(
                ErrorCode.ARCHITECTURE_VIOLATION,
                f"{len(report.errors)} architecture violation(s) block this change",
                details={
                    "violations": [item.to_dict() for item in report.errors],
                    "warnings": [item.to_dict() for item in report.warnings],
                    "markdown": report.to_markdown(),
                },
            )
        return report


_SEVERITY_RANK: Final[dict[Severity, int]] = {
    Severity.ERROR: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
}


def _one_per_import(items: Iterable[ArchitectureViolation]) -> list[ArchitectureViolation]:
    kept: list[ArchitectureViolation] = []
    by_import: dict[tuple[str, str], ArchitectureViolation] = {}
    for item in items:
        if item.module is None:
            kept.append(item)
            continue
        key = (item.path, item.module)
        current = by_import.get(key)
        if current is None or _SEVERITY_RANK[item.severity] < _SEVERITY_RANK[current.severity]:
            by_import[key] = item
    return [*kept, *by_import.values()]


def build_registry(
    context: ProjectContext,
    *,
    rules_yaml: str | None = None,
    disabled_rules: Sequence[str] = (),
) -> RuleRegistry:
    """Framework defaults, then synthesized rules, then file rules; later entries win per id."""

    registry = RuleRegistry(default_rules(context.framework), advisory=True)
    registry.extend(synthesize_rules(context.spec_rules, context.framework), replace=True)
    if rules_yaml:
        file_rules, file_disabled = load_rules_yaml(rules_yaml)
        registry.extend(file_rules, replace=True)
        for rule_id in file_disabled:
            registry.disable(rule_id)
    for rule_id in disabled_rules:
        registry.disable(rule_id)
    return registry


def build_validator(
    context: ProjectContext,
    *,
    rules_yaml: str | None = None,
    disabled_rules: Sequence[str] = (),
    logger: Any | None = None,
) -> ArchitectureValidator:
    registry = build_registry(context, rules_yaml=rules_yaml, disabled_rules=disabled_rules)
    plugins: list[ValidatorPlugin] = [
        RuleBasedPlugin(registry),
        DataFlowPlugin(data_flow_constraints(context.spec_rules, context.conventions)),
        ContractPlugin(),
    ]
    return ArchitectureValidator(
        plugins,
        has_specs=context.spec_rules.has_specs,
        advisory_rules=registry.advisory_rule_ids,
        logger=logger,
    )


__all__ = [
    "ArchitectureValidator",
    "ContractPlugin",
    "DataFlowConstraint",
    "DataFlowPlugin",
    "HTTP_CLIENT_MODULES",
    "RuleBasedPlugin",
    "ValidationReport",
    "ValidatorPlugin",
    "build_registry",
    "build_validator",
    "data_flow_constraints",
]

"""
autoremedy — architecture rule registry

File: src/autoremedy/verification_plane/architecture/registry.py

Purpose
- Hold the rules an ``ArchitectureValidator`` evaluates, as an explicit value
  passed to the validator rather than module state.

What should be included in this file
- Framework default rules.
- Rules synthesized from parsed architecture prohibitions.
- YAML rule files (``type`` entries or named ``template`` entries) and
  enable/disable by rule id.

Functional requirements
- Rule ids are unique within a registry.
- Unknown rule types or templates in a rules file raise ``RuleConfigError``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, Final

import yaml

from autoremedy.verification_plane.architecture.rules import (
    ArchitectureRule,
    ExportNamingRule,
    ForbiddenContentRule,
    ForbiddenImportRule,
    RequiredImportRule,
    Severity,
)

if TYPE_CHECKING:
    from autoremedy.knowledge_plane.frameworks import FrameworkProfile
    from autoremedy.knowledge_plane.spec_parser import SpecFinding, SpecRules

SOURCE_GLOBS: Final[tuple[str, ...]] = (
    "**/*.ts",
    "**/*.tsx",
    "**/*.js",
    "**/*.jsx",
    "**/*.vue",
    "**/*.svelte",
)
DATA_FETCHING_MODULES: Final[str] = (
    r"^(axios|ky|ofetch|node-fetch|cross-fetch|superagent|graphql-request|@apollo/client)$"
    r"|(^|/)(api|apis|services?|http)(/|$)"
)
STORE_MODULES: Final[str] = r"^(pinia|vuex|redux|@reduxjs/toolkit|zustand|mobx)$|(^|/)stores?(/|$)"
PRESENTATIONAL_IMPORT_RULE: Final[str] = "presentational-no-data-imports"
PRESENTATIONAL_FETCH_RULE: Final[str] = "presentational-no-fetch-calls"
_FETCH_CALL = r"(?<![\w.$])fetch\s*\(|\bwindow\.fetch\s*\(|\$fetch\s*\(|\buseFetch\s*\("

_FETCH_WORDS = re.compile(r"fetch|http|api\b|network|data\s+load|call\s+services?", re.IGNORECASE)
_STORE_WORDS = re.compile(r"\bstores?\b|pinia|vuex|redux|global\s+state", re.IGNORECASE)
_PRESENTATIONAL_WORDS = re.compile(
    r"presentational|dumb|base\s+components?|ui\s+components?|stateless", re.IGNORECASE
)
_CONSOLE_WORDS = re.compile(r"console\.(log|debug)", re.IGNORECASE)


class RuleConfigError(ValueError):
    """Raised for malformed rule definitions."""


class RuleRegistry:
    """Ordered, id-unique collection of rules with per-id enablement.

    Rules registered as ``advisory`` (the framework defaults) only warn when the
    project has no architecture documents; replacing one by id drops the flag.
    """

    def __init__(
        self, rules: Iterable[ArchitectureRule] = (), *, advisory: bool = False
    ) -> None:
        self._rules: dict[str, ArchitectureRule] = {}
        self._disabled: set[str] = set()
        self._advisory: set[str] = set()
        for rule in rules:
            self.register(rule, advisory=advisory)

    def register(
        self, rule: ArchitectureRule, *, replace: bool = False, advisory: bool = False
    ) -> None:
        if rule.rule_id in self._rules and not replace:
            raise RuleConfigError(f"duplicate rule id: {rule.rule_id}")
        self._rules[rule.rule_id] = rule
        if advisory:
            self._advisory.add(rule.rule_id)
        else:
            self._advisory.discard(rule.rule_id)

    def extend(
        self,
        rules: Iterable[ArchitectureRule],
        *,
        replace: bool = False,
        advisory: bool = False,
    ) -> None:
        for rule in rules:
            self.register(rule, replace=replace, advisory=advisory)

    def disable(self, rule_id: str) -> None:
        self._disabled.add(rule_id)

    def enable(self, rule_id: str) -> None:
        self._disabled.discard(rule_id)

    def contains(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def get(self, rule_id: str) -> ArchitectureRule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise KeyError(f"unknown rule id: {rule_id}") from None

    @property
    def rule_ids(self) -> tuple[str, ...]:
        return tuple(self._rules)

    @property
    def advisory_rule_ids(self) -> frozenset[str]:
        return frozenset(self._advisory)

    def enabled_rules(self) -> tuple[ArchitectureRule, ...]:
        return tuple(rule for rule_id, rule in self._rules.items() if rule_id not in self._disabled)

    def __len__(self) -> int:
        return len(self.enabled_rules())


def default_rules(framework: FrameworkProfile) -> list[ArchitectureRule]:
    """Rules every project gets, plus the framework's own conventions."""

    rules: list[ArchitectureRule] = [
        ForbiddenContentRule(
            rule_id="no-hardcoded-secrets",
            description="Hard-coded credential literal",
            paths=("**/*",),
            pattern=re.compile(
                r"""(api[_-]?key|secret|password|access[_-]?token)\s*[:=]\s*['"][^'"\s]{8,}['"]""",
                re.IGNORECASE,
            ),
            severity=Severity.ERROR,
            suggestion="Read secrets from the environment or a secret store.",
        ),
        ForbiddenContentRule(
            rule_id="no-debugger-statements",
            description="Debugger statement left in source",
            paths=SOURCE_GLOBS,
            pattern=re.compile(r"^\s*debugger;?\s*$", re.MULTILINE),
            severity=Severity.WARNING,
            suggestion="Remove the debugger statement.",
        ),
    ]
    rules.extend(presentational_rules(framework.presentational_dirs))

    if framework.key == "vue":
        rules.append(
            ForbiddenContentRule(
                rule_id="vue-composition-api",
                description="Options API component",
                paths=("**/*.vue",),
                pattern=re.compile(
                    r"export\s+default\s*(defineComponent\s*\()?\{[\s\S]*?\b(data\s*\(|methods\s*:)"
                ),
                severity=Severity.WARNING,
                suggestion="Use <script setup> with the Composition API.",
            )
        )
    elif framework.key == "react":
        rules.extend(
            [
                ForbiddenContentRule(
                    rule_id="react-function-components",
                    description="Class component",
                    paths=("**/*.tsx", "**/*.jsx"),
                    pattern=re.compile(r"class\s+\w+\s+extends\s+(React\.)?(Pure)?Component\b"),
                    severity=Severity.WARNING,
                    suggestion="Rewrite as a function component with hooks.",
                ),
                ExportNamingRule(
                    rule_id="react-component-naming",
                    description="Component exports use PascalCase",
                    paths=("src/components/**/*.tsx", "src/components/**/*.jsx"),
                    name_pattern=re.compile(r"[A-Z][A-Za-z0-9]*|[a-z]\w*Props|use[A-Z]\w*"),
                    severity=Severity.WARNING,
                ),
            ]
        )
    return rules


def synthesize_rules(spec_rules: SpecRules, framework: FrameworkProfile) -> list[ArchitectureRule]:
    """Translate recognizable prohibitions into enforceable rules; the rest are skipped."""

    presentational_globs = _presentational_globs(spec_rules, framework)
    rules: list[ArchitectureRule] = []
    seen: set[str] = set()

    def add(rule: ArchitectureRule) -> None:
        if rule.rule_id not in seen:
            seen.add(rule.rule_id)
            rules.append(rule)

    for finding in spec_rules.prohibited:
        statement = f"{finding.subject} {finding.detail}"
        targets_presentational = bool(_PRESENTATIONAL_WORDS.search(statement))
        if targets_presentational and _FETCH_WORDS.search(statement):
            for rule in presentational_rules(presentational_globs):
                add(rule)
        elif targets_presentational and _STORE_WORDS.search(statement):
            add(
                ForbiddenImportRule(
                    rule_id="spec-presentational-no-store",
                    description=_rule_text(finding),
                    paths=presentational_globs,
                    modules=re.compile(STORE_MODULES),
                    severity=Severity.ERROR,
                    suggestion="Pass state in through props and emit events instead.",
                )
            )
        elif _CONSOLE_WORDS.search(statement):
            add(
                ForbiddenContentRule(
                    rule_id="spec-no-console",
                    description=_rule_text(finding),
                    paths=SOURCE_GLOBS,
                    pattern=re.compile(r"\bconsole\.(log|debug)\s*\("),
                    severity=Severity.ERROR,
                    suggestion="Use the project's logger or remove the call.",
                )
            )
    return rules


def presentational_rules(globs: Iterable[str]) -> list[ArchitectureRule]:
    paths = tuple(_as_glob(item) for item in globs)
    if not paths:
        return []
    return [
        ForbiddenImportRule(
            rule_id=PRESENTATIONAL_IMPORT_RULE,
            description="Presentational components must not fetch data",
            paths=paths,
            modules=re.compile(DATA_FETCHING_MODULES),
            severity=Severity.ERROR,
            suggestion="Move data access into a composable or service; pass data in via props.",
        ),
        ForbiddenContentRule(
            rule_id=PRESENTATIONAL_FETCH_RULE,
            description="Presentational components must not perform network calls",
            paths=paths,
            pattern=re.compile(_FETCH_CALL),
            severity=Severity.ERROR,
            suggestion="Emit an event and let a container component load the data.",
        ),
    ]


def _presentational_globs(spec_rules: SpecRules, framework: FrameworkProfile) -> tuple[str, ...]:
    globs = [_as_glob(directory) for directory in framework.presentational_dirs]
    for finding in spec_rules.presentational_components:
        subject = finding.subject.strip().strip("`")
        if not subject:
            continue
        if "/" in subject:
            globs.append(_as_glob(subject.rstrip("/")))
        else:
            globs.append(f"**/{subject}*")
    return tuple(dict.fromkeys(globs)) or ("src/components/base/**",)


def _as_glob(directory: str) -> str:
    if "*" in directory:
        return directory
    return f"{directory.rstrip('/')}/**"


def _rule_text(finding: SpecFinding) -> str:
    return finding.detail[:120] or finding.subject


# --- YAML rule files ---

RuleTemplate = Callable[[str, Mapping[str, Any]], ArchitectureRule]


def _template_no_fetch(rule_id: str, params: Mapping[str, Any]) -> ArchitectureRule:
    return ForbiddenImportRule(
        rule_id=rule_id,
        description=str(params.get("description", "Data fetching is not allowed here")),
        paths=_paths(params),
        modules=re.compile(DATA_FETCHING_MODULES),
        severity=_severity(params.get("severity", "ERROR")),
        suggestion=str(params.get("suggestion", "")),
    )


def _template_no_store(rule_id: str, params: Mapping[str, Any]) -> ArchitectureRule:
    return ForbiddenImportRule(
        rule_id=rule_id,
        description=str(params.get("description", "Store access is not allowed here")),
        paths=_paths(params),
        modules=re.compile(STORE_MODULES),
        severity=_severity(params.get("severity", "ERROR")),
        suggestion=str(params.get("suggestion", "")),
    )


def _template_pascal_case_exports(rule_id: str, params: Mapping[str, Any]) -> ArchitectureRule:
    return ExportNamingRule(
        rule_id=rule_id,
        description=str(params.get("description", "Exports use PascalCase")),
        paths=_paths(params),
        name_pattern=re.compile(r"[A-Z][A-Za-z0-9]*"),
        severity=_severity(params.get("severity", "WARNING")),
        suggestion=str(params.get("suggestion", "")),
    )


RULE_TEMPLATES: Final[dict[str, RuleTemplate]] = {
    "no-data-fetching": _template_no_fetch,
    "no-store-access": _template_no_store,
    "pascal-case-exports": _template_pascal_case_exports,
}


_RULE_TYPES: Final[dict[str, tuple[Any, str]]] = {
    "forbidden_content": (ForbiddenContentRule, "ERROR"),
    "forbidden_import": (ForbiddenImportRule, "ERROR"),
    "required_import": (RequiredImportRule, "WARNING"),
    "export_naming": (ExportNamingRule, "WARNING"),
}


def load_rules_yaml(text: str) -> tuple[list[ArchitectureRule], tuple[str, ...]]:
    """Parse a rules document; returns the rules and the ids marked ``enabled: false``."""

    try:
        document = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuleConfigError(f"rules file is not valid YAML: {exc}") from exc
    if not isinstance(document, Mapping):
        raise RuleConfigError("rules file root must be a mapping")
    entries = document.get("rules", [])
    if not isinstance(entries, list):
        raise RuleConfigError("'rules' must be a list")

    rules: list[ArchitectureRule] = []
    disabled: list[str] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise RuleConfigError(f"rules[{index}] must be a mapping")
        rule = _rule_from_entry(entry, index)
        rules.append(rule)
        if entry.get("enabled", True) is False:
            disabled.append(rule.rule_id)
    return rules, tuple(disabled)


def _rule_from_entry(entry: Mapping[str, Any], index: int) -> ArchitectureRule:
    rule_id = entry.get("id")
    if not isinstance(rule_id, str) or not rule_id.strip():
        raise RuleConfigError(f"rules[{index}].id must be a non-empty string")
    rule_id = rule_id.strip()

    template = entry.get("template")
    if template is not None:
        factory = RULE_TEMPLATES.get(str(template))
        if factory is None:
            known = ", ".join(sorted(RULE_TEMPLATES))
            raise RuleConfigError(f"rules[{index}]: unknown template {template!r}; known: {known}")
        return factory(rule_id, entry)

    rule_type = entry.get("type")
    description = str(entry.get("description", rule_id))
    suggestion = str(entry.get("suggestion", ""))
    pattern = entry.get("pattern")
    if not isinstance(pattern, str) or not pattern:
        raise RuleConfigError(f"rules[{index}].pattern must be a non-empty string")
    try:
        compiled = re.compile(pattern, re.MULTILINE)
    except re.error as exc:
        raise RuleConfigError(f"rules[{index}].pattern is not a valid regex: {exc}") from exc

    shape = _RULE_TYPES.get(str(rule_type))
    if shape is None:
        raise RuleConfigError(f"rules[{index}]: unknown rule type {rule_type!r}")
    rule_class, default_severity = shape
    return rule_class(
        rule_id,
        description,
        _paths(entry),
        compiled,
        _severity(entry.get("severity", default_severity)),
        suggestion,
    )


def _paths(entry: Mapping[str, Any]) -> tuple[str, ...]:
    raw = entry.get("paths", entry.get("path"))
    if isinstance(raw, str) and raw:
        return (raw,)
    if isinstance(raw, list) and raw and all(isinstance(item, str) and item for item in raw):
        return tuple(raw)
    raise RuleConfigError("rule 'paths' must be a glob or a non-empty list of globs")


def _severity(value: object) -> Severity:
    try:
        return Severity(str(value).upper())
    except ValueError:
        raise RuleConfigError(f"unknown severity {value!r}") from None


__all__ = [
    "DATA_FETCHING_MODULES",
    "PRESENTATIONAL_FETCH_RULE",
    "PRESENTATIONAL_IMPORT_RULE",
    "RULE_TEMPLATES",
    "RuleConfigError",
    "RuleRegistry",
    "STORE_MODULES",
    "default_rules",
    "load_rules_yaml",
    "presentational_rules",
    "synthesize_rules",
]

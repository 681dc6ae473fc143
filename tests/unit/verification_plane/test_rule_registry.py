"""
autoremedy — rule registry tests

File: tests/unit/verification_plane/test_rule_registry.py

Purpose
- Validate registry bookkeeping, framework defaults, rules synthesized from
  architecture documents and YAML rule files.
"""

from __future__ import annotations

import re

import pytest

from autoremedy.knowledge_plane.frameworks import NODE, REACT, VUE, FrameworkProfile
from autoremedy.knowledge_plane.spec_parser import SpecFinding, SpecRules
from autoremedy.verification_plane.architecture.registry import (
    PRESENTATIONAL_FETCH_RULE,
    PRESENTATIONAL_IMPORT_RULE,
    RuleConfigError,
    RuleRegistry,
    default_rules,
    load_rules_yaml,
    presentational_rules,
    synthesize_rules,
)
from autoremedy.verification_plane.architecture.rules import (
    FileUnderReview,
    ForbiddenContentRule,
    ForbiddenImportRule,
    RequiredImportRule,
    Severity,
)


def _rule(rule_id: str) -> ForbiddenContentRule:
    return ForbiddenContentRule(
        rule_id=rule_id,
        description=rule_id,
        paths=("**/*",),
        pattern=re.compile("x"),
    )


def _prohibitions(*statements: tuple[str, str]) -> SpecRules:
    findings = tuple(
        SpecFinding(kind="prohibited", subject=subject, detail=detail)
        for subject, detail in statements
    )
    return SpecRules(sources=("ARCHITECTURE.md",), findings={"prohibited": findings})


def test_registry_keeps_insertion_order_and_rejects_duplicates() -> None:
    registry = RuleRegistry([_rule("a"), _rule("b")])

    assert registry.rule_ids == ("a", "b")
    assert len(registry) == 2
    assert registry.contains("a") is True
    with pytest.raises(RuleConfigError, match="duplicate rule id: a"):
        registry.register(_rule("a"))


def test_registry_replace_and_enablement() -> None:
    registry = RuleRegistry([_rule("a"), _rule("b")])
    replacement = _rule("a")

    registry.register(replacement, replace=True)
    registry.disable("b")

    assert registry.get("a") is replacement
    assert [rule.rule_id for rule in registry.enabled_rules()] == ["a"]
    assert len(registry) == 1
    assert registry.rule_ids == ("a", "b")

    registry.enable("b")
    assert len(registry) == 2


def test_registry_get_unknown_rule() -> None:
    with pytest.raises(KeyError, match="unknown rule id: missing"):
        RuleRegistry().get("missing")


@pytest.mark.parametrize(
    ("framework", "expected_ids"),
    [
        (
            VUE,
            [
                "no-hardcoded-secrets",
                "no-debugger-statements",
                PRESENTATIONAL_IMPORT_RULE,
                PRESENTATIONAL_FETCH_RULE,
                "vue-composition-api",
            ],
        ),
        (
            REACT,
            [
                "no-hardcoded-secrets",
                "no-debugger-statements",
                PRESENTATIONAL_IMPORT_RULE,
                PRESENTATIONAL_FETCH_RULE,
                "react-function-components",
                "react-component-naming",
            ],
        ),
        (NODE, ["no-hardcoded-secrets", "no-debugger-statements"]),
    ],
)
def test_default_rules_per_framework(
    framework: FrameworkProfile, expected_ids: list[str]
) -> None:
    rules = default_rules(framework)

    assert [rule.rule_id for rule in rules] == expected_ids


def test_default_secret_rule_flags_literal_credentials() -> None:
    [secret_rule] = [rule for rule in default_rules(NODE) if rule.rule_id == "no-hardcoded-secrets"]

    flagged = FileUnderReview(path="src/config.ts", content="const apiKey = 'abcd1234efgh'\n")
    env_read = FileUnderReview(
        path="src/config.ts", content="const apiKey = process.env.API_KEY\n"
    )

    assert [item.severity for item in secret_rule.check(flagged)] == [Severity.ERROR]
    assert secret_rule.check(env_read) == []


def test_presentational_fetch_rule_ignores_method_calls_named_fetch() -> None:
    _, fetch_rule = presentational_rules(["src/components/base"])

    direct = FileUnderReview(
        path="src/components/base/Card.vue", content="const data = await fetch('/api/users')\n"
    )
    method = FileUnderReview(
        path="src/components/base/Card.vue", content="const data = await store.fetch()\n"
    )

    assert fetch_rule.applies_to("src/components/base/Card.vue") is True
    assert len(fetch_rule.check(direct)) == 1
    assert fetch_rule.check(method) == []


def test_presentational_rules_without_directories() -> None:
    assert presentational_rules([]) == []


def test_synthesize_presentational_fetch_prohibition() -> None:
    spec_rules = _prohibitions(
        ("Presentational components", "Presentational components must not fetch data")
    )

    rules = synthesize_rules(spec_rules, NODE)

    assert [rule.rule_id for rule in rules] == [
        PRESENTATIONAL_IMPORT_RULE,
        PRESENTATIONAL_FETCH_RULE,
    ]
    paths = {rule.paths for rule in rules}  # type: ignore[attr-defined]
    assert paths == {("src/components/base/**",)}


def test_synthesize_store_and_console_prohibitions() -> None:
    spec_rules = _prohibitions(
        ("Base components", "Base components must not access the store"),
        ("Logging", "Never leave console.log calls in committed code"),
        ("Globals", "Do not use global variables"),
    )

    rules = synthesize_rules(spec_rules, VUE)

    assert [rule.rule_id for rule in rules] == ["spec-presentational-no-store", "spec-no-console"]
    store_rule, console_rule = rules
    assert isinstance(store_rule, ForbiddenImportRule)
    assert store_rule.paths == ("src/components/base/**",)
    assert store_rule.description == "Base components must not access the store"
    store_hit = FileUnderReview(
        path="src/components/base/Badge.vue",
        content="import { useCartStore } from '@/stores/cart'\n",
    )
    assert len(store_rule.check(store_hit)) == 1
    assert isinstance(console_rule, ForbiddenContentRule)
    assert console_rule.severity is Severity.ERROR


def test_synthesize_uses_named_presentational_components() -> None:
    spec_rules = SpecRules(
        sources=("ARCHITECTURE.md",),
        findings={
            "components": (
                SpecFinding(
                    kind="components",
                    subject="`src/ui/`",
                    detail="presentational only",
                    presentational=True,
                ),
                SpecFinding(
                    kind="components", subject="Badge", detail="dumb", presentational=True
                ),
            ),
            "prohibited": (
                SpecFinding(
                    kind="prohibited",
                    subject="UI components",
                    detail="UI components must not call services or the API",
                ),
            ),
        },
    )

    rules = synthesize_rules(spec_rules, NODE)

    assert rules[0].paths == ("src/ui/**", "**/Badge*")  # type: ignore[attr-defined]


def test_synthesize_deduplicates_rules() -> None:
    spec_rules = _prohibitions(
        ("Presentational components", "must not fetch data"),
        ("Presentational widgets", "must not make HTTP requests"),
    )

    rules = synthesize_rules(spec_rules, VUE)

    assert [rule.rule_id for rule in rules] == [
        PRESENTATIONAL_IMPORT_RULE,
        PRESENTATIONAL_FETCH_RULE,
    ]


def test_load_rules_yaml_types_templates_and_disabled_entries() -> None:
    text = """
rules:
  - id: no-lodash
    type: forbidden_import
    pattern: "^lodash$"
    paths: ["src/**"]
    description: Use native helpers
  - id: views-i18n
    type: required_import
    pattern: "^vue-i18n$"
    path: "src/views/**"
    severity: error
  - id: base-no-fetch
    template: no-data-fetching
    path: "src/components/base/**"
    enabled: false
"""

    rules, disabled = load_rules_yaml(text)

    assert [rule.rule_id for rule in rules] == ["no-lodash", "views-i18n", "base-no-fetch"]
    assert disabled == ("base-no-fetch",)
    no_lodash, views_i18n, base_no_fetch = rules
    assert isinstance(no_lodash, ForbiddenImportRule)
    assert no_lodash.severity is Severity.ERROR
    assert no_lodash.description == "Use native helpers"
    assert isinstance(views_i18n, RequiredImportRule)
    assert views_i18n.severity is Severity.ERROR
    assert views_i18n.paths == ("src/views/**",)
    assert isinstance(base_no_fetch, ForbiddenImportRule)
    assert base_no_fetch.description == "Data fetching is not allowed here"


def test_load_rules_yaml_empty_document() -> None:
    assert load_rules_yaml("") == ([], ())


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("rules: [", "not valid YAML"),
        ("- a\n- b\n", "root must be a mapping"),
        ("rules: {}\n", "'rules' must be a list"),
        ("rules:\n  - just-a-string\n", r"rules\[0\] must be a mapping"),
        ("rules:\n  - type: forbidden_import\n", r"rules\[0\]\.id"),
        ("rules:\n  - id: x\n    template: nope\n    path: a\n", "unknown template 'nope'"),
        ("rules:\n  - id: x\n    type: forbidden_import\n    path: a\n", "pattern must be"),
        (
            "rules:\n  - id: x\n    type: forbidden_import\n    pattern: '('\n    path: a\n",
            "valid regex",
        ),
        (
            "rules:\n  - id: x\n    type: mystery\n    pattern: a\n    path: a\n",
            "unknown rule type",
        ),
        ("rules:\n  - id: x\n    type: forbidden_import\n    pattern: a\n", "paths"),
        (
            "rules:\n  - id: x\n    type: forbidden_import\n    pattern: a\n"
            "    path: a\n    severity: critical\n",
            "unknown severity",
        ),
    ],
)
def test_load_rules_yaml_rejects_malformed_documents(text: str, message: str) -> None:
    with pytest.raises(RuleConfigError, match=message):
        load_rules_yaml(text)

"""
autoremedy — architecture rule primitive tests

File: tests/unit/verification_plane/test_architecture_rules.py

Purpose
- Validate import/export extraction, path globbing and the four rule shapes.

Functional requirements
- Pure functions over strings; no filesystem access.
"""

from __future__ import annotations

import re

import pytest

from autoremedy.verification_plane.architecture.rules import (
    ArchitectureRule,
    ArchitectureViolation,
    ExportNamingRule,
    FileUnderReview,
    ForbiddenContentRule,
    ForbiddenImportRule,
    RequiredImportRule,
    Severity,
    compile_path_glob,
    exported_names,
    imported_modules,
    path_matches,
)

VUE_COMPONENT = """<script setup lang="ts">
import { ref } from "vue"
import axios from 'axios'
import './card.css'
const Chart = () => import("./Chart.vue")
const legacy = require('lodash')
import axios2 from 'axios'
</script>
"""


def test_imported_modules_for_script_sources_are_ordered_and_deduplicated() -> None:
    assert imported_modules("src/components/Card.vue", VUE_COMPONENT) == (
        "vue",
        "axios",
        "./card.css",
        "lodash",
        "./Chart.vue",
    )


def test_imported_modules_for_python_sources() -> None:
    content = "import os\nfrom pathlib import Path\n\n\ndef run():\n    import json\n"

    assert imported_modules("pkg/module.py", content) == ("os", "json", "pathlib")


def test_exported_names_for_script_sources() -> None:
    content = (
        "export default function UserCard() {}\n"
        "export const formatName = (value) => value\n"
        "export interface CardProps { name: string }\n"
        "export { helper as renamedHelper, other }\n"
        "const internal = 1\n"
    )

    assert exported_names("src/components/UserCard.tsx", content) == (
        "UserCard",
        "formatName",
        "CardProps",
        "renamedHelper",
        "other",
    )


def test_exported_names_for_python_sources_skip_private_and_nested_definitions() -> None:
    content = (
        "def public():\n"
        "    def nested():\n"
        "        pass\n"
        "class Thing:\n"
        "    def method(self):\n"
        "        pass\n"
        "def _private():\n"
        "    pass\n"
        "async def fetch_all():\n"
        "    pass\n"
    )

    assert exported_names("pkg/module.py", content) == ("public", "Thing", "fetch_all")


@pytest.mark.parametrize(
    ("glob", "path", "expected"),
    [
        ("**/*.ts", "index.ts", True),
        ("**/*.ts", "src/deep/nested/index.ts", True),
        ("**/*.ts", "src/index.tsx", False),
        ("src/*.ts", "src/index.ts", True),
        ("src/*.ts", "src/utils/index.ts", False),
        ("src/components/base/**", "src/components/base/Button.vue", True),
        ("src/components/base/**", "src/components/base/forms/Input.vue", True),
        ("src/components/base/**", "src/components/Header.vue", False),
        ("src/?.js", "src/a.js", True),
        ("src/?.js", "src/ab.js", False),
        ("docs/file.md", "docs/file.md", True),
        ("docs/file.md", "docs/fileXmd", False),
    ],
)
def test_compile_path_glob(glob: str, path: str, expected: bool) -> None:
    assert bool(compile_path_glob(glob).match(path)) is expected


def test_path_matches_any_glob() -> None:
    globs = ("src/components/**", "**/*.vue")

    assert path_matches("App.vue", globs) is True
    assert path_matches("src/components/Button.tsx", globs) is True
    assert path_matches("src/utils/math.ts", globs) is False
    assert path_matches("anything", ()) is False


def test_forbidden_content_rule_reports_first_match_with_line_number() -> None:
    rule = ForbiddenContentRule(
        rule_id="no-console",
        description="Console logging",
        paths=("**/*.ts",),
        pattern=re.compile(r"console\.log\(.*\)"),
        suggestion="Use the logger.",
    )
    file = FileUnderReview(
        path="src/app.ts",
        content="const a = 1\nconst b = 2\nconsole.log(a + b)\nconsole.log(b)\n",
    )

    assert isinstance(rule, ArchitectureRule)
    assert rule.applies_to("src/app.ts") is True
    assert rule.applies_to("src/app.py") is False
    [violation] = rule.check(file)
    assert violation.rule_id == "no-console"
    assert violation.severity is Severity.ERROR
    assert violation.line == 3
    assert violation.message == "Console logging (found `console.log(a + b)`)"
    assert violation.suggestion == "Use the logger."


def test_forbidden_content_rule_passes_clean_content() -> None:
    rule = ForbiddenContentRule(
        rule_id="no-console",
        description="Console logging",
        paths=("**/*",),
        pattern=re.compile(r"console\.log"),
    )

    assert rule.check(FileUnderReview(path="a.ts", content="export const x = 1\n")) == []


def test_forbidden_import_rule_reports_each_matching_module() -> None:
    rule = ForbiddenImportRule(
        rule_id="no-http",
        description="HTTP clients are not allowed",
        paths=("src/components/**",),
        modules=re.compile(r"^(axios|ky)$"),
    )
    file = FileUnderReview(
        path="src/components/Card.vue",
        content="import axios from 'axios'\nimport ky from 'ky'\nimport { ref } from 'vue'\n",
    )

    messages = [violation.message for violation in rule.check(file)]

    assert messages == [
        "HTTP clients are not allowed: imports `axios`",
        "HTTP clients are not allowed: imports `ky`",
    ]


def test_required_import_rule() -> None:
    rule = RequiredImportRule(
        rule_id="use-i18n",
        description="Views must use i18n",
        paths=("src/views/**",),
        modules=re.compile(r"^vue-i18n$"),
    )

    with_import = FileUnderReview(
        path="src/views/Home.vue", content="import { useI18n } from 'vue-i18n'\n"
    )
    without_import = FileUnderReview(path="src/views/Home.vue", content="const x = 1\n")

    assert rule.check(with_import) == []
    [violation] = rule.check(without_import)
    assert violation.severity is Severity.WARNING
    assert violation.message == "Views must use i18n: no import matching `^vue-i18n$`"


def test_export_naming_rule_flags_each_nonconforming_export() -> None:
    rule = ExportNamingRule(
        rule_id="pascal",
        description="Exports use PascalCase",
        paths=("src/components/**",),
        name_pattern=re.compile(r"[A-Z][A-Za-z0-9]*"),
    )
    file = FileUnderReview(
        path="src/components/Card.tsx",
        content="export function Card() {}\nexport const cardHelper = 1\n",
    )

    [violation] = rule.check(file)

    assert violation.message == (
        "Exports use PascalCase: `cardHelper` does not match `[A-Z][A-Za-z0-9]*`"
    )


def test_violation_demotion_and_serialization() -> None:
    error = ArchitectureViolation(
        rule_id="r1",
        severity=Severity.ERROR,
        path="src/a.ts",
        message="bad",
        suggestion="fix it",
        line=4,
    )
    info = ArchitectureViolation(rule_id="r2", severity=Severity.INFO, path="a", message="m")

    demoted = error.demoted()

    assert demoted.severity is Severity.WARNING
    assert demoted.line == 4
    assert demoted.suggestion == "fix it"
    assert info.demoted() is info
    assert error.to_dict() == {
        "rule_id": "r1",
        "severity": "ERROR",
        "path": "src/a.ts",
        "line": 4,
        "message": "bad",
        "suggestion": "fix it",
    }
    assert error.sort_key() == ("src/a.ts", 4, "r1", "bad")
    assert info.sort_key() == ("a", 0, "r2", "m")

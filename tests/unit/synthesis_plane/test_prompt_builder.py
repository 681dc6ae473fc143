"""
autoremedy — fix-plan prompt assembly tests

File: tests/unit/synthesis_plane/test_prompt_builder.py

Purpose
- The built prompt never exceeds the provider's input limit.
- Template choice follows the provider profile; files keep discovery order.
- Architecture rules render compactly or in full.
"""

from __future__ import annotations

import pytest

from autoremedy.domain.models import Classification, Issue, RiskLevel
from autoremedy.knowledge_plane.frameworks import VUE
from autoremedy.knowledge_plane.project_analyzer import ProjectContext
from autoremedy.knowledge_plane.spec_parser import SpecDocumentParser
from autoremedy.synthesis_plane.prompt_builder import (
    COMPACT_TEMPLATE,
    STANDARD_TEMPLATE,
    PromptBuilder,
    compact_architecture_rules,
    full_architecture_rules,
)
from autoremedy.synthesis_plane.tokens import BudgetExceededError, ProviderLimits, limits_for

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st

    HYPOTHESIS_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - fallback path
    HYPOTHESIS_AVAILABLE = False

ARCHITECTURE = """The data layer handles persistence and caching.
Base components are presentational and receive props only.
API calls happen in composables.
Components must never call fetch directly.
"""

ISSUE = Issue(id=12, title="Button label overflows", body="The save button label wraps badly.")


def _context(with_rules: bool = False) -> ProjectContext:
    rules = (
        SpecDocumentParser().parse([("ARCHITECTURE.md", ARCHITECTURE)])
        if with_rules
        else SpecDocumentParser().parse([])
    )
    return ProjectContext(
        framework=VUE,
        language="TypeScript",
        project_type="Vite + Vue 3",
        conventions=dict(VUE.conventions),
        spec_rules=rules,
    )


def _source(lines: int) -> str:
    return "\n".join(f"export const value{index} = {index};" for index in range(lines)) + "\n"


def test_standard_profile_includes_small_files_in_discovery_order() -> None:
    builder = PromptBuilder(limits_for("anthropic"))
    files = [("src/b.ts", _source(40)), ("src/a.ts", _source(5))]

    built = builder.build(
        ISSUE, _context(), files, classification=Classification.BUG, risk_level=RiskLevel.LOW
    )

    assert built.template == STANDARD_TEMPLATE
    assert built.included == ("src/b.ts", "src/a.ts")
    assert built.omitted == ()
    assert built.compressed == ()
    assert built.prompt.index("### src/b.ts") < built.prompt.index("### src/a.ts")
    assert "```typescript" in built.prompt
    assert "## Files (2/2)" in built.prompt
    assert "- Risk: LOW" in built.prompt
    assert built.tokens <= built.input_limit == 42_000


def test_compact_profile_stays_within_limit_with_large_files() -> None:
    limits = limits_for("github-models")
    builder = PromptBuilder(limits)
    files = [("src/huge.ts", _source(4000)), ("src/small.ts", _source(3))]

    built = builder.build(ISSUE, _context(with_rules=True), files)

    assert builder.compact
    assert built.template == COMPACT_TEMPLATE
    assert built.tokens <= limits.max_input_tokens - limits.reserved_for_output
    assert "src/small.ts" in built.included
    assert "src/huge.ts" in built.compressed or "src/huge.ts" in built.omitted
    assert "PROHIBITED:" in built.prompt


def test_skeleton_that_cannot_fit_raises() -> None:
    tiny = ProviderLimits(
        name="tiny",
        max_input_tokens=120,
        max_output_tokens=40,
        tokens_per_char=0.25,
        reserved_for_prompt=10,
        reserved_for_output=60,
    )

    with pytest.raises(BudgetExceededError):
        PromptBuilder(tiny).build(ISSUE, _context(), [("src/a.ts", _source(3))])


def test_compact_rules_only_carry_data_flow_and_prohibitions() -> None:
    text = compact_architecture_rules(_context(with_rules=True))

    assert text.startswith("ARCHITECTURE:")
    assert "PROHIBITED:" in text
    assert "BASE COMPONENTS (props/events only): Base components" in text
    assert "persistence and caching" not in text


def test_full_rules_list_every_section() -> None:
    text = full_architecture_rules(_context(with_rules=True))

    assert text.startswith("## Architecture Rules\nSources: ARCHITECTURE.md")
    assert "### Layers\n- data: persistence and caching" in text
    assert "### Prohibited" in text


def test_rules_are_empty_without_documents() -> None:
    assert compact_architecture_rules(_context()) == ""
    assert full_architecture_rules(_context()) == ""


def test_built_prompt_serializes_for_artifacts() -> None:
    built = PromptBuilder(limits_for("openai")).build(ISSUE, _context(), [("a.md", "# A\n")])

    payload = built.to_dict()

    assert payload["template"] == STANDARD_TEMPLATE
    assert payload["included"] == ["a.md"]
    assert payload["prompt_hash"] == built.prompt_hash


if HYPOTHESIS_AVAILABLE:

    @settings(max_examples=25, deadline=None)
    @given(sizes=st.lists(st.integers(min_value=1, max_value=3000), min_size=1, max_size=6))
    def test_prompt_never_exceeds_input_limit(sizes: list[int]) -> None:
        limits = limits_for("github-models")
        files = [(f"src/file{index}.ts", _source(size)) for index, size in enumerate(sizes)]

        built = PromptBuilder(limits).build(ISSUE, _context(with_rules=True), files)

        assert built.tokens <= limits.max_input_tokens - limits.reserved_for_output
        assert set(built.included) | set(built.omitted) == {path for path, _ in files}

else:  # pragma: no cover - optional dependency path

    @pytest.mark.skip(reason="hypothesis not installed")
    def test_prompt_never_exceeds_input_limit() -> None:
        pass

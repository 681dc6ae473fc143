"""
autoremedy — candidate file discovery tests

File: tests/unit/knowledge_plane/test_file_discovery.py

Purpose
- Strategy scores accumulate per path and explicit mentions dominate.
- Model-assisted discovery only runs for thin candidate sets and tolerates failures.
- Trimming keeps the smallest files that fit the ceilings.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from autoremedy.domain.models import Issue
from autoremedy.knowledge_plane.file_discovery import (
    DiscoveryWeights,
    FileCandidate,
    FileDiscovery,
    extract_keywords,
)
from autoremedy.knowledge_plane.project_analyzer import ProjectAnalyzer
from autoremedy.knowledge_plane.repository import LocalRepository
from autoremedy.synthesis_plane.providers.base import ProviderServiceError, TextGenerator

if TYPE_CHECKING:
    from pathlib import Path


class ScriptedGenerator:
    def __init__(self, response: str) -> None:
        self.response = response
        self.calls = 0

    async def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        self.calls += 1
        return self.response


class FailingGenerator:
    async def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        raise ProviderServiceError("upstream unavailable", provider="fake")


def write(root: Path, rel_path: str, content: str) -> None:
    target = root / rel_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")


def make_discovery(
    root: Path, *, generator: TextGenerator | None = None, **limits: int
) -> FileDiscovery:
    repository = LocalRepository(root)
    context = ProjectAnalyzer(repository).analyze()
    return FileDiscovery(context, repository, generator=generator, **limits)


def vue_repo(root: Path) -> None:
    write(root, "package.json", json.dumps({"dependencies": {"vue": "^3.4", "vite": "^5"}}))
    write(
        root,
        "src/components/SaveButton.vue",
        "<script setup lang=\"ts\">\nimport { formatLabel } from '../utils/format'\n</script>\n",
    )
    write(root, "src/components/Header.vue", "<template><h1 /></template>\n")
    write(root, "src/utils/format.ts", "export const formatLabel = (s: string) => s.trim()\n")
    write(root, "README.md", "# Demo\n")


def test_extract_keywords_splits_identifiers_and_drops_stop_words() -> None:
    assert extract_keywords("The SaveButton label doesn't work") == [
        "savebutton",
        "save",
        "button",
        "label",
    ]


def test_weights_must_strictly_decrease() -> None:
    with pytest.raises(ValueError, match="must decrease"):
        DiscoveryWeights(semantic=95)
    with pytest.raises(ValueError, match="> 0"):
        DiscoveryWeights(imports=0)

    weights = DiscoveryWeights.from_mapping({"import": 5})
    assert weights.imports == 5
    assert weights.explicit == 100


@pytest.mark.asyncio
async def test_explicit_mention_ranks_first_and_imports_follow(tmp_path: Path) -> None:
    vue_repo(tmp_path)
    issue = Issue(
        id=4,
        title="SaveButton label is misaligned",
        body="The label in `src/components/SaveButton.vue` overflows.",
    )

    result = await make_discovery(tmp_path).discover(issue)

    assert result.paths[0] == "src/components/SaveButton.vue"
    top = result.files[0]
    assert "explicit" in top.reasons
    assert "semantic" in top.reasons
    assert "src/utils/format.ts" in result.paths
    format_candidate = next(c for c in result.files if c.path == "src/utils/format.ts")
    assert "import" in format_candidate.reasons
    assert result.tokens_used > 0


def test_bare_file_name_resolves_by_name(tmp_path: Path) -> None:
    vue_repo(tmp_path)
    issue = Issue(id=5, title="Header.vue has a stray margin")

    discovery = make_discovery(tmp_path)

    assert discovery.explicit_matches(issue) == ["src/components/Header.vue"]


@pytest.mark.asyncio
async def test_model_assist_runs_for_thin_candidate_sets(tmp_path: Path) -> None:
    write(tmp_path, "src/api/client.ts", "export const get = () => null\n")
    write(tmp_path, "src/main.ts", "console.log('boot')\n")
    generator = ScriptedGenerator('["./src/api/client.ts", "src/missing.ts"]')
    issue = Issue(id=6, title="Timeout too short", body="Requests give up quickly.")

    result = await make_discovery(tmp_path, generator=generator).discover(issue)

    assert generator.calls == 1
    assert result.paths == ("src/api/client.ts",)
    assert result.files[0].reasons == ["model"]


@pytest.mark.asyncio
async def test_model_assist_failure_degrades_to_empty(tmp_path: Path) -> None:
    write(tmp_path, "src/main.ts", "console.log('boot')\n")
    issue = Issue(id=6, title="Timeout too short", body="Requests give up quickly.")

    result = await make_discovery(tmp_path, generator=FailingGenerator()).discover(issue)

    assert result.empty
    assert result.candidates_found == 0


@pytest.mark.asyncio
async def test_model_assist_skipped_when_candidates_suffice(tmp_path: Path) -> None:
    vue_repo(tmp_path)
    generator = ScriptedGenerator("[]")
    issue = Issue(id=4, title="SaveButton component label", body="See `README.md`.")

    await make_discovery(tmp_path, generator=generator).discover(issue)

    assert generator.calls == 0


def test_python_relative_imports_are_followed(tmp_path: Path) -> None:
    write(tmp_path, "pyproject.toml", "[project]\nname = 'demo'\n")
    write(tmp_path, "pkg/__init__.py", "")
    write(tmp_path, "pkg/service.py", "from .helpers import clean\nfrom . import models\n")
    write(tmp_path, "pkg/helpers.py", "def clean(value):\n    return value\n")
    write(tmp_path, "pkg/models.py", "")

    found = make_discovery(tmp_path).import_matches(["pkg/service.py"])

    assert found == ["pkg/helpers.py", "pkg/models.py"]


def test_validate_and_limit_prefers_small_files_and_skips_oversized(tmp_path: Path) -> None:
    write(tmp_path, "small.md", "a" * 10)
    write(tmp_path, "medium.md", "b" * 50)
    write(tmp_path, "large.md", "c" * 500)
    discovery = make_discovery(tmp_path, max_files=3, max_file_size=400)

    result = discovery.validate_and_limit(
        [
            FileCandidate("large.md", 300),
            FileCandidate("medium.md", 200),
            FileCandidate("small.md", 100),
            FileCandidate("ghost.md", 400),
        ]
    )

    assert result.paths == ("medium.md", "small.md")
    assert result.skipped == ("large.md",)
    assert result.candidates_found == 4


def test_validate_and_limit_stops_at_total_context(tmp_path: Path) -> None:
    write(tmp_path, "a.md", "a" * 60)
    write(tmp_path, "b.md", "b" * 60)
    discovery = make_discovery(tmp_path, max_total_context=100)

    result = discovery.validate_and_limit([FileCandidate("a.md", 10), FileCandidate("b.md", 5)])

    assert result.paths == ("a.md",)

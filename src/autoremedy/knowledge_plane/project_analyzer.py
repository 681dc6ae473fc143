"""
autoremedy — project analysis

File: src/autoremedy/knowledge_plane/project_analyzer.py

Purpose
- Build the read-only ``ProjectContext`` once per run: framework, language,
  directory conventions, tree snapshot, parsed architecture documents and the
  project's own lint/type-check/build commands.

Functional requirements
- Framework detection tries detectors in order; the last always matches.
- TypeScript when a ``typescript`` dependency exists.
- Missing or malformed manifests degrade to defaults, never raise.
"""

from __future__ import annotations

import json
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from autoremedy.knowledge_plane.frameworks import (
    FrameworkProfile,
    detect_framework,
    framework_by_key,
)
from autoremedy.knowledge_plane.repository import RepoEntry, RepositoryReader
from autoremedy.knowledge_plane.spec_parser import SpecDocumentParser, SpecRules

_INDENT_SIZE_PATTERN = re.compile(r"indent_size\s*=\s*(\d+)")
_INDENT_TAB_PATTERN = re.compile(r"indent_style\s*=\s*tab")


@dataclass(frozen=True, slots=True)
class ToolCommands:
    """Project-declared validation commands; empty string means not available."""

    lint: str = ""
    typecheck: str = ""
    build: str = ""


@dataclass(frozen=True, slots=True)
class EditorConventions:
    indent_style: str = "space"
    indent_size: int = 2
    end_of_line: str = "lf"
    insert_final_newline: bool = True


@dataclass(frozen=True, slots=True)
class ProjectContext:
    framework: FrameworkProfile
    language: str
    project_type: str
    conventions: Mapping[str, str]
    structure: tuple[RepoEntry, ...] = ()
    spec_rules: SpecRules = field(default_factory=SpecRules)
    commands: ToolCommands = field(default_factory=ToolCommands)
    editor: EditorConventions = field(default_factory=EditorConventions)
    dependencies: Mapping[str, str] = field(default_factory=dict)

    @property
    def files(self) -> tuple[RepoEntry, ...]:
        return tuple(entry for entry in self.structure if not entry.is_dir)

    def to_summary(self) -> dict[str, object]:
        return {
            "framework": self.framework.name,
            "language": self.language,
            "project_type": self.project_type,
            "conventions": dict(self.conventions),
            "spec_sources": list(self.spec_rules.sources),
            "spec_summary": self.spec_rules.summary,
            "file_count": len(self.files),
        }


class ProjectAnalyzer:
    def __init__(
        self,
        repository: RepositoryReader,
        *,
        framework: str = "auto",
        spec_parser: SpecDocumentParser | None = None,
        logger: Any | None = None,
    ) -> None:
        self._repository = repository
        self._framework_override = framework
        self._spec_parser = spec_parser if spec_parser is not None else SpecDocumentParser()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def analyze(self) -> ProjectContext:
        package = self._load_package_json()
        dependencies = _merged_dependencies(package)

        if self._framework_override == "auto":
            framework = detect_framework(dependencies)
        else:
            framework = framework_by_key(self._framework_override)

        structure = self._repository.entries()
        spec_rules = self._spec_parser.parse_repository(self._repository)
        context = ProjectContext(
            framework=framework,
            language=self._detect_language(package, dependencies),
            project_type=framework.project_type(dependencies),
            conventions=dict(framework.conventions),
            structure=structure,
            spec_rules=spec_rules,
            commands=self._detect_commands(package),
            editor=self._load_editorconfig(),
            dependencies=dependencies,
        )
        self._logger.info(
            "project_analyzed",
            framework=framework.name,
            language=context.language,
            entries=len(structure),
            spec_summary=spec_rules.summary,
        )
        return context

    def _load_package_json(self) -> dict[str, Any]:
        raw = self._repository.read_text("package.json")
        if raw is None:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            self._logger.warning("package_json_invalid", error=str(exc))
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def _load_pyproject(self) -> dict[str, Any]:
        raw = self._repository.read_text("pyproject.toml")
        if raw is None:
            return {}
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            self._logger.warning("pyproject_invalid", error=str(exc))
            return {}

    def _detect_language(self, package: Mapping[str, Any], dependencies: Mapping[str, str]) -> str:
        if "typescript" in dependencies:
            return "TypeScript"
        if not package and self._repository.is_file("pyproject.toml"):
            return "Python"
        return "JavaScript"

    def _detect_commands(self, package: Mapping[str, Any]) -> ToolCommands:
        scripts = package.get("scripts")
        if isinstance(scripts, Mapping) and scripts:
            lint = ""
            if "lint" in scripts:
                lint = "npm run lint"
            if "lint:fix" in scripts:
                lint = "npm run lint:fix"
            typecheck = ""
            if "type-check" in scripts:
                typecheck = "npm run type-check"
            if "typecheck" in scripts:
                typecheck = "npm run typecheck"
            build = "npm run build" if "build" in scripts else ""
            return ToolCommands(lint=lint, typecheck=typecheck, build=build)

        tool = self._load_pyproject().get("tool")
        if isinstance(tool, Mapping):
            return ToolCommands(
                lint="ruff check ." if "ruff" in tool else "",
                typecheck="mypy ." if "mypy" in tool else "",
            )
        return ToolCommands()

    def _load_editorconfig(self) -> EditorConventions:
        raw = self._repository.read_text(".editorconfig")
        if raw is None:
            return EditorConventions()
        size_match = _INDENT_SIZE_PATTERN.search(raw)
        return EditorConventions(
            indent_style="tab" if _INDENT_TAB_PATTERN.search(raw) else "space",
            indent_size=int(size_match.group(1)) if size_match else 2,
        )


def _merged_dependencies(package: Mapping[str, Any]) -> dict[str, str]:
    merged: dict[str, str] = {}
    for key in ("dependencies", "devDependencies"):
        section = package.get(key)
        if isinstance(section, Mapping):
            merged.update({str(name): str(version) for name, version in section.items()})
    return merged


__all__ = [
    "EditorConventions",
    "ProjectAnalyzer",
    "ProjectContext",
    "ToolCommands",
]

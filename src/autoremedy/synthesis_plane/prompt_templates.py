"""
autoremedy — prompt template rendering

File: src/autoremedy/synthesis_plane/prompt_templates.py

Purpose
- Loads and renders packaged instruction templates with strict placeholders.

What should be included in this file
- Template lookup under the packaged ``templates/`` directory.
- Variable whitelist checks against the template's declared variables.
- Prompt hashing for run artifacts.

Functional requirements
- Must render prompts deterministically for same inputs.
- Untrusted values are inserted verbatim as text, never evaluated as template code.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import Environment, StrictUndefined, meta

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping


_TEMPLATE_NAME_RE = re.compile(r"^[a-z0-9_]+$")
_VERSION_RE = re.compile(r"\{#\s*version:\s*([^#]+?)\s*#\}")
TEMPLATE_SUFFIX = ".j2"


class PromptTemplateError(RuntimeError):
    """Base error for prompt template loading and rendering."""


class PromptTemplateNotFoundError(PromptTemplateError, FileNotFoundError):
    """Raised when a template file does not exist."""


class PromptTemplateVariableError(PromptTemplateError, ValueError):
    """Raised for missing/extra variables or whitelist violations."""


@dataclass(frozen=True, slots=True)
class PromptTemplateMetadata:
    """Template identity + reproducibility metadata for rendered prompts."""

    template_name: str
    template_version: str
    template_hash: str
    declared_variables: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RenderedPrompt:
    prompt: str
    prompt_hash: str
    template_metadata: PromptTemplateMetadata


class PromptTemplateEngine:
    """Deterministic instruction template loader + renderer."""

    def __init__(self, *, template_root: Path | str | None = None) -> None:
        root = Path(template_root) if template_root is not None else default_template_root()
        resolved_root = root.resolve()
        if not resolved_root.exists():
            raise PromptTemplateNotFoundError(f"template root does not exist: {resolved_root}")
        if not resolved_root.is_dir():
            raise NotADirectoryError(f"template root is not a directory: {resolved_root}")

        self._template_root = resolved_root
        self._sources: dict[str, str] = {}
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            newline_sequence="\n",
            keep_trailing_newline=True,
        )

    @property
    def template_root(self) -> Path:
        return self._template_root

    def declared_variables(self, name: str) -> tuple[str, ...]:
        source = self._load_source(_normalize_template_name(name))
        return tuple(sorted(meta.find_undeclared_variables(self._environment.parse(source))))

    def render(
        self,
        name: str,
        *,
        variables: Mapping[str, object],
        allowed_variables: Collection[str] | None = None,
    ) -> RenderedPrompt:
        """Render one template; every declared variable must be supplied and allowed."""

        template_name = _normalize_template_name(name)
        template_source = self._load_source(template_name)
        declared_variables = self.declared_variables(name)

        allowed_set = set(
            allowed_variables if allowed_variables is not None else declared_variables
        )
        unexpected_in_template = sorted(set(declared_variables) - allowed_set)
        if unexpected_in_template:
            raise PromptTemplateVariableError(
                "template uses variables not allowed by whitelist: "
                + ", ".join(unexpected_in_template)
            )

        variable_payload = _normalize_variable_mapping(variables)
        unexpected_inputs = sorted(set(variable_payload) - allowed_set)
        if unexpected_inputs:
            raise PromptTemplateVariableError(
                "unexpected variables were provided: " + ", ".join(unexpected_inputs)
            )

        missing_required = sorted(set(declared_variables) - set(variable_payload))
        if missing_required:
            raise PromptTemplateVariableError(
                "missing required template variables: " + ", ".join(missing_required)
            )

        rendered_values = {
            key: _normalize_newlines(_serialize_variable_value(value))
            for key, value in sorted(variable_payload.items())
        }
        template = self._environment.from_string(template_source)
        rendered_prompt = _normalize_newlines(template.render(**rendered_values))

        metadata = PromptTemplateMetadata(
            template_name=template_name,
            template_version=_extract_template_version(template_source),
            template_hash=_sha256_text(template_source),
            declared_variables=declared_variables,
        )
        return RenderedPrompt(
            prompt=rendered_prompt,
            prompt_hash=_sha256_text(rendered_prompt),
            template_metadata=metadata,
        )

    def _load_source(self, template_name: str) -> str:
        cached = self._sources.get(template_name)
        if cached is not None:
            return cached
        template_path = self._resolve_template_path(template_name)
        source = _normalize_newlines(template_path.read_text(encoding="utf-8"))
        self._sources[template_name] = source
        return source

    def _resolve_template_path(self, template_name: str) -> Path:
        candidate = (self._template_root / template_name).resolve()
        try:
            candidate.relative_to(self._template_root)
        except ValueError as exc:
            raise PromptTemplateError(
                f"template path escapes template root: {template_name!r}"
            ) from exc

        if not candidate.exists() or not candidate.is_file():
            raise PromptTemplateNotFoundError(
                f"template not found: {template_name!r} under {self._template_root}"
            )
        return candidate


def default_template_root() -> Path:
    return Path(__file__).resolve().parent / "templates"


def _normalize_template_name(name: str) -> str:
    if not isinstance(name, str):
        raise TypeError("template name must be a string")
    cleaned = name.strip()
    if cleaned.endswith(TEMPLATE_SUFFIX):
        cleaned = cleaned[: -len(TEMPLATE_SUFFIX)]
    if not _TEMPLATE_NAME_RE.fullmatch(cleaned):
        raise ValueError(f"invalid template name: {name!r}")
    return f"{cleaned}{TEMPLATE_SUFFIX}"


def _normalize_variable_mapping(variables: Mapping[str, object]) -> dict[str, object]:
    normalized: dict[str, object] = {}
    for key, value in variables.items():
        if not isinstance(key, str):
            raise TypeError("variable names must be strings")
        cleaned = key.strip()
        if not cleaned:
            raise ValueError("variable names must not be empty")
        normalized[cleaned] = value
    return normalized


def _serialize_variable_value(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8")
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    except TypeError:
        return str(value)


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _extract_template_version(template_source: str) -> str:
    match = _VERSION_RE.search(template_source)
    if match is None:
        return "unversioned"
    return match.group(1).strip()


def _sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


__all__ = [
    "PromptTemplateEngine",
    "PromptTemplateError",
    "PromptTemplateMetadata",
    "PromptTemplateNotFoundError",
    "PromptTemplateVariableError",
    "RenderedPrompt",
    "default_template_root",
]

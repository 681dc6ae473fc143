"""
autoremedy — configuration schema and validation.

File: src/autoremedy/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Typed section layout with built-in defaults.
- Validation rules for required fields, types, enums, ranges and the
  discovery weight ordering.
- Deterministic deep-merge and redaction helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject inline secrets; only ``*_env`` variable names are accepted.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from autoremedy.constants import (
    ARTIFACTS_DIR,
    CONFIG_SCHEMA_VERSION,
    DEFAULT_MAIN_BRANCH,
    DEFAULT_REMOTE,
    OUTBOX_DIR,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

PROVIDER_NAMES: Final[tuple[str, ...]] = ("anthropic", "openai")
PROVIDER_PROFILES: Final[tuple[str, ...]] = ("anthropic", "openai", "github-models")
FRAMEWORK_NAMES: Final[tuple[str, ...]] = ("auto", "vue", "react", "angular", "svelte", "node")

# Highest first; configured weights must stay strictly decreasing in this order.
DISCOVERY_WEIGHT_ORDER: Final[tuple[str, ...]] = (
    "explicit",
    "hint",
    "semantic",
    "convention",
    "model",
    "import",
)

_ENV_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_BRANCH_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "passwd", "apikey", "private", "credential", "credentials"}
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "access_token",
    "client_secret",
    "private_key",
    "password",
    "secret",
)

# Config paths normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "artifacts_dir"),
    ("paths", "outbox_dir"),
    ("architecture", "rules_file"),
)


class MetaConfig(TypedDict):
    schema_version: int


class ProviderConfig(TypedDict):
    name: Literal["anthropic", "openai"]
    model: str
    api_key_env: str
    profile: Literal["anthropic", "openai", "github-models"]
    temperature: float
    timeout_seconds: float
    max_retries: int
    initial_delay_seconds: float
    max_delay_seconds: float
    jitter_ratio: float


class PipelineConfig(TypedDict):
    default_branch: str
    remote: str
    push: bool
    run_timeout_seconds: float
    git_timeout_seconds: float
    tracker_timeout_seconds: float
    max_concurrent_runs: int
    author_name: str
    author_email: str


class DiscoveryConfig(TypedDict):
    max_files: int
    max_file_size: int
    max_total_context: int
    search_depth: int
    exclude_dirs: list[str]
    weights: dict[str, int]


class ValidationConfig(TypedDict):
    lint_command: str
    typecheck_command: str
    build_command: str
    detect_commands: bool
    command_timeout_seconds: float
    output_limit_chars: int


class FileChangesConfig(TypedDict):
    boilerplate_min_lines: int
    identifier_min_lines: int
    min_identifier_ratio: float
    max_size_ratio: float
    write_backups: bool


class ArchitectureConfig(TypedDict):
    framework: str
    spec_paths: list[str]
    rules_file: str
    disabled_rules: list[str]


class PathsConfig(TypedDict):
    artifacts_dir: str
    outbox_dir: str


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "console"]


class RemedyConfig(TypedDict):
    meta: MetaConfig
    provider: ProviderConfig
    pipeline: PipelineConfig
    discovery: DiscoveryConfig
    validation: ValidationConfig
    file_changes: FileChangesConfig
    architecture: ArchitectureConfig
    paths: PathsConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[RemedyConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "provider": {
        "name": "anthropic",
        "model": "claude-sonnet-4-5",
        "api_key_env": "ANTHROPIC_API_KEY",
        "profile": "anthropic",
        "temperature": 0.1,
        "timeout_seconds": 60.0,
        "max_retries": 3,
        "initial_delay_seconds": 1.0,
        "max_delay_seconds": 32.0,
        "jitter_ratio": 0.3,
    },
    "pipeline": {
        "default_branch": DEFAULT_MAIN_BRANCH,
        "remote": DEFAULT_REMOTE,
        "push": True,
        "run_timeout_seconds": 300.0,
        "git_timeout_seconds": 30.0,
        "tracker_timeout_seconds": 30.0,
        "max_concurrent_runs": 2,
        "author_name": "autoremedy",
        "author_email": "autoremedy@localhost",
    },
    "discovery": {
        "max_files": 10,
        "max_file_size": 100_000,
        "max_total_context": 200_000,
        "search_depth": 4,
        "exclude_dirs": [
            "node_modules",
            ".git",
            "dist",
            "build",
            "coverage",
            ".venv",
            "__pycache__",
            ".autoremedy",
        ],
        "weights": {
            "explicit": 100,
            "hint": 90,
            "semantic": 50,
            "convention": 20,
            "model": 18,
            "import": 12,
        },
    },
    "validation": {
        "lint_command": "",
        "typecheck_command": "",
        "build_command": "",
        "detect_commands": True,
        "command_timeout_seconds": 120.0,
        "output_limit_chars": 2000,
    },
    "file_changes": {
        "boilerplate_min_lines": 20,
        "identifier_min_lines": 30,
        "min_identifier_ratio": 0.3,
        "max_size_ratio": 0.5,
        "write_backups": False,
    },
    "architecture": {
        "framework": "auto",
        "spec_paths": [],
        "rules_file": "",
        "disabled_rules": [],
    },
    "paths": {
        "artifacts_dir": ARTIFACTS_DIR.as_posix(),
        "outbox_dir": OUTBOX_DIR.as_posix(),
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "console",
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> RemedyConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return a redacted representation for logs and artifacts."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact_value(config, parent_key=None)
    if isinstance(redacted, dict):
        return redacted
    return {}


_SectionValidator = Callable[[Mapping[str, object], str, _IssueCollector], dict[str, Any]]


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    validators: dict[str, _SectionValidator] = {
        "meta": _validate_meta,
        "provider": _validate_provider,
        "pipeline": _validate_pipeline,
        "discovery": _validate_discovery,
        "validation": _validate_validation,
        "file_changes": _validate_file_changes,
        "architecture": _validate_architecture,
        "paths": _validate_paths,
        "observability": _validate_observability,
    }
    _reject_unknown_keys(payload, set(validators), "", issues)
    _require_keys(payload, set(validators), "", issues)

    out: dict[str, Any] = {}
    for key in sorted(validators):
        raw = payload.get(key)
        if raw is None:
            continue
        section = _as_object(raw, key, issues)
        if section is None:
            continue
        out[key] = validators[key](section, key, issues)
    return out


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            if parsed != ConfigSchemaVersion:
                issues.add(
                    _join(path, "schema_version"),
                    f"schema version {parsed} is not supported (expected {ConfigSchemaVersion})",
                )
            out["schema_version"] = parsed
    return out


def _validate_provider(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    fields: dict[str, Callable[[object, str], object | None]] = {
        "name": lambda value, p: _as_enum(value, p, issues, allowed_values=PROVIDER_NAMES),
        "model": lambda value, p: _as_str(value, p, issues),
        "api_key_env": lambda value, p: _as_env_name(value, p, issues),
        "profile": lambda value, p: _as_enum(value, p, issues, allowed_values=PROVIDER_PROFILES),
        "temperature": lambda value, p: _as_float(value, p, issues, minimum=0.0, maximum=2.0),
        "timeout_seconds": lambda value, p: _as_float(value, p, issues, minimum=1.0),
        "max_retries": lambda value, p: _as_int(value, p, issues, minimum=0),
        "initial_delay_seconds": lambda value, p: _as_float(value, p, issues, minimum=0.0),
        "max_delay_seconds": lambda value, p: _as_float(value, p, issues, minimum=0.0),
        "jitter_ratio": lambda value, p: _as_float(value, p, issues, minimum=0.0, maximum=1.0),
    }
    out = _validate_fields(payload, path, issues, fields)
    initial = out.get("initial_delay_seconds")
    maximum = out.get("max_delay_seconds")
    if isinstance(initial, float) and isinstance(maximum, float) and initial > maximum:
        issues.add(
            _join(path, "initial_delay_seconds"), "must be <= provider.max_delay_seconds"
        )
    return out


def _validate_pipeline(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    fields: dict[str, Callable[[object, str], object | None]] = {
        "default_branch": lambda value, p: _as_branch_name(value, p, issues),
        "remote": lambda value, p: _as_str(value, p, issues),
        "push": lambda value, p: _as_bool(value, p, issues),
        "run_timeout_seconds": lambda value, p: _as_float(value, p, issues, minimum=1.0),
        "git_timeout_seconds": lambda value, p: _as_float(value, p, issues, minimum=1.0),
        "tracker_timeout_seconds": lambda value, p: _as_float(value, p, issues, minimum=1.0),
        "max_concurrent_runs": lambda value, p: _as_int(value, p, issues, minimum=1),
        "author_name": lambda value, p: _as_str(value, p, issues),
        "author_email": lambda value, p: _as_str(value, p, issues),
    }
    return _validate_fields(payload, path, issues, fields)


def _validate_discovery(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    fields: dict[str, Callable[[object, str], object | None]] = {
        "max_files": lambda value, p: _as_int(value, p, issues, minimum=1),
        "max_file_size": lambda value, p: _as_int(value, p, issues, minimum=1),
        "max_total_context": lambda value, p: _as_int(value, p, issues, minimum=1),
        "search_depth": lambda value, p: _as_int(value, p, issues, minimum=1),
        "exclude_dirs": lambda value, p: _as_str_list(value, p, issues),
        "weights": lambda value, p: _validate_weights(value, p, issues),
    }
    return _validate_fields(payload, path, issues, fields)


def _validate_weights(value: object, path: str, issues: _IssueCollector) -> dict[str, int] | None:
    payload = _as_object(value, path, issues)
    if payload is None:
        return None
    allowed = set(DISCOVERY_WEIGHT_ORDER)
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, int] = {}
    for key in DISCOVERY_WEIGHT_ORDER:
        if key in payload:
            parsed = _as_int(payload[key], _join(path, key), issues, minimum=1)
            if parsed is not None:
                out[key] = parsed

    for higher, lower in zip(DISCOVERY_WEIGHT_ORDER, DISCOVERY_WEIGHT_ORDER[1:]):
        if higher in out and lower in out and out[higher] <= out[lower]:
            issues.add(
                _join(path, lower),
                f"must be lower than {higher} ({out[higher]}) to keep the ranking order "
                + " > ".join(DISCOVERY_WEIGHT_ORDER),
            )
    return out


def _validate_validation(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    fields: dict[str, Callable[[object, str], object | None]] = {
        "lint_command": lambda value, p: _as_command(value, p, issues),
        "typecheck_command": lambda value, p: _as_command(value, p, issues),
        "build_command": lambda value, p: _as_command(value, p, issues),
        "detect_commands": lambda value, p: _as_bool(value, p, issues),
        "command_timeout_seconds": lambda value, p: _as_float(value, p, issues, minimum=1.0),
        "output_limit_chars": lambda value, p: _as_int(value, p, issues, minimum=100),
    }
    return _validate_fields(payload, path, issues, fields)


def _validate_file_changes(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    fields: dict[str, Callable[[object, str], object | None]] = {
        "boilerplate_min_lines": lambda value, p: _as_int(value, p, issues, minimum=1),
        "identifier_min_lines": lambda value, p: _as_int(value, p, issues, minimum=1),
        "min_identifier_ratio": lambda value, p: _as_float(
            value, p, issues, minimum=0.0, maximum=1.0
        ),
        "max_size_ratio": lambda value, p: _as_float(value, p, issues, minimum=0.0, maximum=1.0),
        "write_backups": lambda value, p: _as_bool(value, p, issues),
    }
    return _validate_fields(payload, path, issues, fields)


def _validate_architecture(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    fields: dict[str, Callable[[object, str], object | None]] = {
        "framework": lambda value, p: _as_enum(value, p, issues, allowed_values=FRAMEWORK_NAMES),
        "spec_paths": lambda value, p: _as_str_list(value, p, issues),
        "rules_file": lambda value, p: _as_optional_path(value, p, issues),
        "disabled_rules": lambda value, p: _as_str_list(value, p, issues),
    }
    return _validate_fields(payload, path, issues, fields)


def _validate_paths(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    fields: dict[str, Callable[[object, str], object | None]] = {
        "artifacts_dir": lambda value, p: _as_path_text(value, p, issues),
        "outbox_dir": lambda value, p: _as_path_text(value, p, issues),
    }
    return _validate_fields(payload, path, issues, fields)


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    fields: dict[str, Callable[[object, str], object | None]] = {
        "log_level": lambda value, p: _as_enum(
            value, p, issues, allowed_values=("DEBUG", "INFO", "WARNING", "ERROR")
        ),
        "log_format": lambda value, p: _as_enum(
            value, p, issues, allowed_values=("json", "console")
        ),
    }
    return _validate_fields(payload, path, issues, fields)


def _validate_fields(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    fields: Mapping[str, Callable[[object, str], object | None]],
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(fields), path, issues)
    _require_keys(payload, set(fields), path, issues)
    out: dict[str, Any] = {}
    for key in sorted(fields):
        if key not in payload:
            continue
        parsed = fields[key](payload[key], _join(path, key))
        if parsed is not None:
            out[key] = parsed
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_command(value: object, path: str, issues: _IssueCollector) -> str | None:
    """Commands may be empty (meaning: detect or skip)."""

    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if "test" in parsed.split():
        issues.add(path, "test commands are not run by the validation stage")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_optional_path(value: object, path: str, issues: _IssueCollector) -> str | None:
    if value == "":
        return ""
    return _as_path_text(value, path, issues)


def _as_branch_name(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not _BRANCH_NAME_PATTERN.fullmatch(parsed) or ".." in parsed:
        issues.add(path, "must be a valid git branch name")
        return None
    return parsed


def _as_env_name(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not _ENV_NAME_PATTERN.fullmatch(parsed):
        issues.add(path, "must be an env var name (example: ANTHROPIC_API_KEY)")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and parsed > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected array, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return out


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(
                key_path,
                "embedded secret values are forbidden; use an *_env key with an env var name",
            )
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env"):
        return False
    if any(phrase in normalized for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    tokens = tuple(token for token in normalized.split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: copy.deepcopy(value[key]) for key in sorted(value)}


def _redact_value(value: object, parent_key: str | None) -> object:
    if isinstance(value, Mapping):
        out: dict[str, object] = {}
        for key in sorted(value):
            if _looks_sensitive_key(key):
                out[key] = "<redacted>"
            else:
                out[key] = _redact_value(value[key], key)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, parent_key) for item in value]
    return value


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DISCOVERY_WEIGHT_ORDER",
    "FRAMEWORK_NAMES",
    "PATH_FIELDS",
    "PROVIDER_NAMES",
    "PROVIDER_PROFILES",
    "RemedyConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "redact_config",
    "validate_config",
]

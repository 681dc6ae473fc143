"""
autoremedy — unit tests for config schema validation

File: tests/unit/config/test_schema.py

Purpose
- Validate strict config schema behavior, structured errors, and redaction.

What this test file should cover
- Defaults validate successfully.
- Rejects unknown keys and invalid types with actionable paths.
- Rejects embedded secrets while accepting env-var references.
- Enforces the discovery weight ordering and the no-test-command rule.
"""

from __future__ import annotations

import pytest

from autoremedy.config.schema import (
    DISCOVERY_WEIGHT_ORDER,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)


def _issue_paths(config: dict[str, object]) -> list[str]:
    return [issue.path for issue in validate_config(config).issues]


def test_default_config_validates() -> None:
    result = validate_config(default_config())

    assert result.is_valid
    assert result.config is not None
    assert list(result.config["discovery"]["weights"]) == list(DISCOVERY_WEIGHT_ORDER)


def test_unknown_key_rejection_is_explicit() -> None:
    config = merge_config(default_config(), {"pipeline": {"auto_merge": True}})

    result = validate_config(config)

    assert not result.is_valid
    assert [(issue.path, issue.message) for issue in result.issues] == [
        ("pipeline.auto_merge", "unknown field")
    ]


def test_type_validation_reports_structured_paths() -> None:
    config = merge_config(
        default_config(),
        {"provider": {"max_retries": "three"}, "discovery": {"exclude_dirs": "dist"}},
    )

    assert _issue_paths(config) == ["discovery.exclude_dirs", "provider.max_retries"]


def test_range_violation_reports_exact_path() -> None:
    config = merge_config(default_config(), {"provider": {"temperature": 3.5}})

    with pytest.raises(ConfigValidationError) as exc_info:
        assert_valid_config(config)

    assert exc_info.value.issues[0].path == "provider.temperature"
    assert "must be <= 2.0" in exc_info.value.issues[0].message


def test_embedded_secret_is_rejected_but_api_key_env_is_allowed() -> None:
    config = merge_config(
        default_config(),
        {"provider": {"api_key": "sk-live-abc", "api_key_env": "MY_PROVIDER_KEY"}},
    )

    result = validate_config(config)

    assert [issue.path for issue in result.issues] == ["provider.api_key"]
    assert "embedded secret values are forbidden" in result.issues[0].message

    clean = merge_config(default_config(), {"provider": {"api_key_env": "MY_PROVIDER_KEY"}})
    assert validate_config(clean).is_valid


def test_api_key_env_must_look_like_an_env_var_name() -> None:
    config = merge_config(default_config(), {"provider": {"api_key_env": "sk-ant-123"}})

    assert _issue_paths(config) == ["provider.api_key_env"]


def test_weights_must_keep_ranking_order() -> None:
    config = merge_config(
        default_config(), {"discovery": {"weights": {"semantic": 10, "convention": 20}}}
    )

    result = validate_config(config)

    assert [issue.path for issue in result.issues] == ["discovery.weights.convention"]
    assert "explicit > hint > semantic > convention > model > import" in result.issues[0].message


def test_validation_commands_may_not_run_tests() -> None:
    config = merge_config(default_config(), {"validation": {"lint_command": "npm test"}})

    assert _issue_paths(config) == ["validation.lint_command"]

    allowed = merge_config(default_config(), {"validation": {"lint_command": "npm run lint"}})
    assert validate_config(allowed).is_valid


def test_branch_names_reject_traversal() -> None:
    config = merge_config(default_config(), {"pipeline": {"default_branch": "main..evil"}})

    assert _issue_paths(config) == ["pipeline.default_branch"]


def test_unsupported_schema_version_is_rejected() -> None:
    config = merge_config(default_config(), {"meta": {"schema_version": 99}})

    assert _issue_paths(config) == ["meta.schema_version"]


def test_redact_config_is_recursive_and_non_destructive() -> None:
    config = merge_config(
        default_config(),
        {"provider": {"accessToken": "abc"}, "pipeline": {"nested": {"password": "p"}}},
    )

    redacted = redact_config(config)

    assert redacted["provider"]["accessToken"] == "<redacted>"
    assert redacted["pipeline"]["nested"]["password"] == "<redacted>"
    assert redacted["provider"]["api_key_env"] == "ANTHROPIC_API_KEY"
    assert config["provider"]["accessToken"] == "abc"

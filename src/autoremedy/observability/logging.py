"""Structured logging setup (structlog) with secret redaction and run correlation."""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from typing import Any, Final

import structlog

_REDACTED_VALUE: Final[str] = "***REDACTED***"

_SENSITIVE_KEY_TERMS: Final[frozenset[str]] = frozenset(
    {
        "secret",
        "token",
        "password",
        "passphrase",
        "apikey",
        "authorization",
        "credential",
        "credentials",
        "cookie",
    }
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "private_key",
    "client_secret",
    "access_token",
)
_KEY_SPLIT: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9]+")

# Prompt and response bodies carry repository content; never log them verbatim.
_TRANSCRIPT_KEY_TERMS: Final[tuple[str, ...]] = ("prompt_text", "response_text")

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|client_secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_OPENAI_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-[A-Za-z0-9]{12,}\b")
_ANTHROPIC_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-ant-[A-Za-z0-9_-]{12,}\b")
_GITHUB_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b")

_CORRELATION_KEYS: Final[tuple[str, ...]] = ("run_id", "issue_id", "stage")


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    *,
    stream: Any | None = None,
) -> None:
    """Configure structlog for CLI runs.

    ``fmt`` is ``"json"`` (one object per line) or ``"console"``.
    """

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level: {level!r}")

    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    elif fmt == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        raise ValueError(f"unknown log format: {fmt!r}")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_event,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(
            file=stream if stream is not None else sys.stderr
        ),
        cache_logger_on_first_use=False,
    )


def redact_event(
    _logger: object, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor that masks secrets in keys and free text."""

    for key in list(event_dict):
        event_dict[key] = _redact_value(event_dict[key], key_context=key)
    return event_dict


def redact_text(text: str) -> str:
    # Bearer first: the assignment pattern would otherwise consume the scheme word only.
    redacted = _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", text)
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{_REDACTED_VALUE}", redacted
    )
    redacted = _ANTHROPIC_KEY_PATTERN.sub(_REDACTED_VALUE, redacted)
    redacted = _OPENAI_KEY_PATTERN.sub(_REDACTED_VALUE, redacted)
    return _GITHUB_TOKEN_PATTERN.sub(_REDACTED_VALUE, redacted)


def bind_run_context(**fields: object) -> None:
    """Bind correlation fields (``run_id``, ``issue_id``, ``stage``) for the current task."""

    unknown = sorted(set(fields) - set(_CORRELATION_KEYS))
    if unknown:
        raise ValueError(f"unsupported correlation keys: {unknown}")
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in fields.items() if value is not None}
    )


@contextmanager
def run_context(**fields: object) -> Iterator[None]:
    """Scope correlation fields to a block; previous bindings are restored on exit."""

    unknown = sorted(set(fields) - set(_CORRELATION_KEYS))
    if unknown:
        raise ValueError(f"unsupported correlation keys: {unknown}")
    with structlog.contextvars.bound_contextvars(
        **{key: value for key, value in fields.items() if value is not None}
    ):
        yield


def _redact_value(value: object, *, key_context: str | None) -> object:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return _REDACTED_VALUE
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, list):
        return [_redact_value(item, key_context=None) for item in value]
    if isinstance(value, tuple):
        return tuple(_redact_value(item, key_context=None) for item in value)
    if isinstance(value, Mapping):
        return {key: _redact_value(item, key_context=str(key)) for key, item in value.items()}
    return value


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    if key_lower.endswith("_env"):
        return False
    if any(term in key_lower for term in _TRANSCRIPT_KEY_TERMS):
        return True
    if any(phrase in key_lower for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    # Whole-word match so counters such as ``input_tokens`` stay visible.
    return any(part in _SENSITIVE_KEY_TERMS for part in _KEY_SPLIT.split(key_lower))


__all__ = [
    "bind_run_context",
    "configure_logging",
    "redact_event",
    "redact_text",
    "run_context",
]

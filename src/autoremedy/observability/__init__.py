"""Logging configuration and redaction."""

from autoremedy.observability.logging import (
    bind_run_context,
    configure_logging,
    redact_event,
    redact_text,
    run_context,
)

__all__ = [
    "bind_run_context",
    "configure_logging",
    "redact_event",
    "redact_text",
    "run_context",
]

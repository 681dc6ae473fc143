"""
autoremedy — text-generation providers

File: src/autoremedy/synthesis_plane/providers/__init__.py

Purpose
- Provider adapters behind the ``TextGenerator`` protocol plus the shared
  error taxonomy and retry policy.

Non-functional requirements
- Must never log secrets or raw API keys.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from autoremedy.synthesis_plane.providers.anthropic_adapter import AnthropicGenerator
from autoremedy.synthesis_plane.providers.base import (
    BackoffConfig,
    ProviderAuthenticationError,
    ProviderContextLengthError,
    ProviderError,
    ProviderInvalidRequestError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderServiceError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    TextGenerator,
    compute_backoff_delay,
    is_retryable_error,
    run_with_retries,
    to_remediation_error,
)
from autoremedy.synthesis_plane.providers.openai_adapter import OpenAIGenerator


def build_generator(provider: Mapping[str, Any], *, logger: Any | None = None) -> TextGenerator:
    """Instantiate the adapter named by the ``provider`` config section."""

    backoff = BackoffConfig.from_provider_config(provider)
    common: dict[str, Any] = {
        "model": provider["model"],
        "api_key_env": provider["api_key_env"],
        "timeout_seconds": float(provider["timeout_seconds"]),
        "backoff": backoff,
        "logger": logger,
    }
    name = provider["name"]
    if name == "anthropic":
        return AnthropicGenerator(**common)
    if name == "openai":
        return OpenAIGenerator(**common)
    raise ProviderUnavailableError(f"unknown provider {name!r}", provider=str(name))


__all__ = [
    "AnthropicGenerator",
    "BackoffConfig",
    "OpenAIGenerator",
    "ProviderAuthenticationError",
    "ProviderContextLengthError",
    "ProviderError",
    "ProviderInvalidRequestError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderServiceError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "TextGenerator",
    "build_generator",
    "compute_backoff_delay",
    "is_retryable_error",
    "run_with_retries",
    "to_remediation_error",
]

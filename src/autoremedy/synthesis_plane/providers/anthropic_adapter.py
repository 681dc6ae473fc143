"""
autoremedy — Anthropic text-generation adapter

File: src/autoremedy/synthesis_plane/providers/anthropic_adapter.py

Purpose
- ``TextGenerator`` backed by the Anthropic messages API.

Functional requirements
- The SDK is optional and imported lazily; a missing SDK is a configuration
  problem, not an import-time crash.
- API keys come from the configured environment variable only.
"""

from __future__ import annotations

import asyncio
import importlib
import os
import random as random_module
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, cast

import structlog

from autoremedy.synthesis_plane.providers.base import (
    BackoffConfig,
    ProviderAuthenticationError,
    ProviderError,
    ProviderResponseError,
    ProviderUnavailableError,
    RandomFn,
    SleepFn,
    map_sdk_exception,
    run_with_retries,
)


class _AnthropicMessagesAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _AnthropicClient(Protocol):
    messages: _AnthropicMessagesAPI


class AnthropicGenerator:
    """Anthropic messages adapter with optional SDK dependency and injected client support."""

    provider_name = "anthropic"

    def __init__(
        self,
        *,
        model: str,
        api_key_env: str = "ANTHROPIC_API_KEY",
        timeout_seconds: float | None = None,
        client: _AnthropicClient | None = None,
        backoff: BackoffConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
        random_fn: RandomFn = random_module.random,
        logger: Any | None = None,
    ) -> None:
        if not model.strip():
            raise ValueError("model cannot be empty")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.model = model.strip()
        self._api_key_env = api_key_env
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._backoff = backoff if backoff is not None else BackoffConfig()
        self._sleep = sleep
        self._random_fn = random_fn
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        payload: dict[str, object] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }

        async def operation() -> str:
            client = self._ensure_client()
            raw = await client.messages.create(**payload)
            return _extract_text(raw)

        return await run_with_retries(
            operation,
            map_exception=self._map_exception,
            backoff=self._backoff,
            sleep=self._sleep,
            random_fn=self._random_fn,
            on_retry=self._log_retry,
        )

    def _ensure_client(self) -> _AnthropicClient:
        if self._client is not None:
            return self._client
        self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _AnthropicClient:
        try:
            anthropic_module = importlib.import_module("anthropic")
        except ImportError as exc:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="anthropic SDK is not installed; install autoremedy[providers]",
            ) from exc

        async_anthropic = getattr(anthropic_module, "AsyncAnthropic", None)
        if async_anthropic is None:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="anthropic SDK does not expose AsyncAnthropic",
            )

        init_kwargs: dict[str, object] = {"api_key": self._resolve_api_key()}
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds
        # Retries are owned by run_with_retries.
        init_kwargs["max_retries"] = 0
        return cast("_AnthropicClient", async_anthropic(**init_kwargs))

    def _resolve_api_key(self) -> str:
        configured = os.getenv(self._api_key_env)
        if configured is None or not configured.strip():
            raise ProviderAuthenticationError(
                provider=self.provider_name,
                detail=f"missing Anthropic API key in configured env var {self._api_key_env}",
                http_status=401,
            )
        return configured

    def _map_exception(self, exc: Exception) -> ProviderError:
        return map_sdk_exception(exc, provider=self.provider_name)

    def _log_retry(self, attempt: int, error: ProviderError, delay_seconds: float) -> None:
        self._logger.warning(
            "provider_retry",
            provider=self.provider_name,
            attempt=attempt,
            code=error.code,
            delay_seconds=round(delay_seconds, 3),
        )


def _extract_text(raw_response: object) -> str:
    chunks: list[str] = []
    for item in _read_sequence(raw_response, "content"):
        if (_read_str(item, "type") or "").lower() != "text":
            continue
        text_value = _read_str(item, "text")
        if text_value:
            chunks.append(text_value)
    combined = "\n".join(chunks)
    if not combined.strip():
        raise ProviderResponseError(
            provider="anthropic", detail="response does not contain text content"
        )
    return combined


def _read_value(value: object, key: str) -> object | None:
    if isinstance(value, Mapping):
        return cast("object | None", value.get(key))
    return cast("object | None", getattr(value, key, None))


def _read_sequence(value: object, key: str) -> tuple[object, ...]:
    candidate = _read_value(value, key)
    if isinstance(candidate, Sequence) and not isinstance(candidate, (str, bytes, bytearray)):
        return tuple(candidate)
    return ()


def _read_str(value: object, key: str) -> str | None:
    candidate = _read_value(value, key)
    if isinstance(candidate, str) and candidate.strip():
        return candidate
    return None


__all__ = ["AnthropicGenerator"]

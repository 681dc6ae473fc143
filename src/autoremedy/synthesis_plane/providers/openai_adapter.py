"""OpenAI responses-API ``TextGenerator`` with an optional SDK dependency."""

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


class _OpenAIResponsesAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _OpenAIClient(Protocol):
    responses: _OpenAIResponsesAPI


class OpenAIGenerator:
    provider_name = "openai"

    def __init__(
        self,
        *,
        model: str,
        api_key_env: str = "OPENAI_API_KEY",
        timeout_seconds: float | None = None,
        client: _OpenAIClient | None = None,
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
            "input": prompt,
            "temperature": temperature,
            "max_output_tokens": max_tokens,
        }

        async def operation() -> str:
            client = self._ensure_client()
            raw = await client.responses.create(**payload)
            return _extract_text(raw)

        return await run_with_retries(
            operation,
            map_exception=self._map_exception,
            backoff=self._backoff,
            sleep=self._sleep,
            random_fn=self._random_fn,
            on_retry=self._log_retry,
        )

    def _ensure_client(self) -> _OpenAIClient:
        if self._client is None:
            self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _OpenAIClient:
        try:
            openai_module = importlib.import_module("openai")
        except ImportError as exc:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="openai SDK is not installed; install autoremedy[providers]",
            ) from exc

        async_openai = getattr(openai_module, "AsyncOpenAI", None)
        if async_openai is None:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="openai SDK does not expose AsyncOpenAI",
            )

        api_key = os.getenv(self._api_key_env)
        if api_key is None or not api_key.strip():
            raise ProviderAuthenticationError(
                provider=self.provider_name,
                detail=f"missing OpenAI API key in configured env var {self._api_key_env}",
                http_status=401,
            )
        init_kwargs: dict[str, object] = {"api_key": api_key, "max_retries": 0}
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds
        client = async_openai(**init_kwargs)
        if not hasattr(client, "responses"):
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="openai client missing responses API",
            )
        return cast("_OpenAIClient", client)

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
    direct = _read_value(raw_response, "output_text")
    if isinstance(direct, str) and direct.strip():
        return direct

    chunks: list[str] = []
    for item in _read_sequence(raw_response, "output"):
        for part in _read_sequence(item, "content"):
            text_value = _read_value(part, "text")
            if isinstance(text_value, str) and text_value.strip():
                chunks.append(text_value)
    if not chunks:
        raise ProviderResponseError(provider="openai", detail="response does not contain text")
    return "\n".join(chunks)


def _read_value(value: object, key: str) -> object | None:
    if isinstance(value, Mapping):
        return cast("object | None", value.get(key))
    return cast("object | None", getattr(value, key, None))


def _read_sequence(value: object, key: str) -> tuple[object, ...]:
    candidate = _read_value(value, key)
    if isinstance(candidate, Sequence) and not isinstance(candidate, (str, bytes, bytearray)):
        return tuple(candidate)
    return ()


__all__ = ["OpenAIGenerator"]

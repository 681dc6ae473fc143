"""
autoremedy — provider base contracts and shared retry utilities

File: src/autoremedy/synthesis_plane/providers/base.py

Purpose
- The text-generation seam: one instruction string in, raw text out.
- Normalized provider error taxonomy with retryability and retry-after hints.

What should be included in this file
- ``TextGenerator`` protocol implemented by every adapter and by test fakes.
- Error hierarchy shared by adapters.
- Bounded exponential backoff with jitter and ``run_with_retries``.

Functional requirements
- Only retryable errors (rate limits, timeouts, 5xx) are retried.
- A server-supplied ``retry_after_seconds`` replaces the computed delay.
- Provider errors translate to the remediation taxonomy at the pipeline seam.
"""

from __future__ import annotations

import asyncio
import random as random_module
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias, TypeVar, runtime_checkable

from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.observability.logging import redact_text

SleepFn: TypeAlias = Callable[[float], Awaitable[None]]
RandomFn: TypeAlias = Callable[[], float]


@runtime_checkable
class TextGenerator(Protocol):
    """Opaque ``prompt -> text`` function backed by a hosted model."""

    async def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        """Return the raw completion text for ``prompt``."""


class ProviderError(RuntimeError):
    """Base normalized provider error with deterministic machine-readable fields."""

    def __init__(
        self,
        *,
        provider: str,
        code: str,
        detail: str,
        retryable: bool,
        http_status: int | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        self.provider = _validate_non_empty_str(provider, "provider")
        self.code = _validate_non_empty_str(code, "code")
        self.detail = _normalize_detail(detail)
        self.retryable = bool(retryable)
        self.http_status = http_status
        if retry_after_seconds is not None and retry_after_seconds < 0:
            retry_after_seconds = None
        self.retry_after_seconds = retry_after_seconds

        parts = [
            f"provider={self.provider}",
            f"code={self.code}",
            f"retryable={str(self.retryable).lower()}",
        ]
        if self.http_status is not None:
            parts.append(f"http_status={self.http_status}")
        if self.retry_after_seconds is not None:
            parts.append(f"retry_after={self.retry_after_seconds:g}s")
        parts.append(f"detail={self.detail}")
        super().__init__(" ".join(parts))


class ProviderUnavailableError(ProviderError):
    """Raised when provider runtime/SDK is unavailable."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="unavailable", detail=detail, retryable=False)


class ProviderAuthenticationError(ProviderError):
    """Authentication/authorization failures."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="auth",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class ProviderInvalidRequestError(ProviderError):
    """Request payload invalid for provider API."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="invalid_request",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class ProviderContextLengthError(ProviderError):
    """Request exceeds provider context constraints."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="context_length",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class ProviderRateLimitError(ProviderError):
    """Provider rate-limit responses (retryable)."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = 429,
        retry_after_seconds: float | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="rate_limit",
            detail=detail,
            retryable=True,
            http_status=http_status,
            retry_after_seconds=retry_after_seconds,
        )


class ProviderTimeoutError(ProviderError):
    """Provider timeout failures (retryable)."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="timeout", detail=detail, retryable=True)


class ProviderServiceError(ProviderError):
    """Provider API/service failures."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        retryable: bool = True,
        http_status: int | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="service",
            detail=detail,
            retryable=retryable,
            http_status=http_status,
        )


class ProviderResponseError(ProviderError):
    """Raised when provider response normalization fails."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="response_invalid", detail=detail, retryable=False)


def is_retryable_error(error: BaseException) -> bool:
    """Return retryability classification for normalized provider errors."""

    return isinstance(error, ProviderError) and error.retryable


def to_remediation_error(error: ProviderError) -> RemediationError:
    """Translate a provider failure into the run taxonomy."""

    if isinstance(error, ProviderRateLimitError):
        code = ErrorCode.AI_RATE_LIMIT
    elif isinstance(error, ProviderTimeoutError):
        code = ErrorCode.AI_TIMEOUT
    elif isinstance(error, ProviderAuthenticationError | ProviderUnavailableError):
        code = ErrorCode.CONFIG_ERROR
    else:
        code = ErrorCode.AI_ERROR
    details: dict[str, object] = {"provider": error.provider, "provider_code": error.code}
    if error.http_status is not None:
        details["http_status"] = error.http_status
    if error.retry_after_seconds is not None:
        details["retry_after_seconds"] = error.retry_after_seconds
    return RemediationError(code, redact_text(error.detail), details=details)


@dataclass(frozen=True, slots=True)
class BackoffConfig:
    """Bounded exponential backoff policy."""

    max_retries: int = 3
    initial_delay_seconds: float = 1.0
    multiplier: float = 2.0
    max_delay_seconds: float = 32.0
    jitter_ratio: float = 0.3

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError("initial_delay_seconds must be <= max_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

    @classmethod
    def from_provider_config(cls, provider: Mapping[str, Any]) -> BackoffConfig:
        return cls(
            max_retries=int(provider["max_retries"]),
            initial_delay_seconds=float(provider["initial_delay_seconds"]),
            max_delay_seconds=float(provider["max_delay_seconds"]),
            jitter_ratio=float(provider["jitter_ratio"]),
        )


def compute_backoff_delay(
    *,
    retry_number: int,
    config: BackoffConfig,
    random_fn: RandomFn = random_module.random,
) -> float:
    """Return bounded exponential backoff delay for retry attempt N (1-based)."""

    if retry_number <= 0:
        raise ValueError("retry_number must be > 0")

    base_delay = config.initial_delay_seconds * (config.multiplier ** (retry_number - 1))
    bounded_delay = min(base_delay, config.max_delay_seconds)

    if config.jitter_ratio == 0.0:
        return bounded_delay

    random_value = random_fn()
    if not (0.0 <= random_value <= 1.0):
        raise ValueError("random_fn must return values in [0.0, 1.0]")

    max_jitter = bounded_delay * config.jitter_ratio
    jitter = ((random_value * 2.0) - 1.0) * max_jitter
    return max(0.0, min(config.max_delay_seconds, bounded_delay + jitter))


_CallbackT = TypeVar("_CallbackT")
RetryCallback: TypeAlias = Callable[[int, ProviderError, float], None]


async def run_with_retries(
    operation: Callable[[], Awaitable[_CallbackT]],
    *,
    map_exception: Callable[[Exception], ProviderError],
    backoff: BackoffConfig,
    sleep: SleepFn = asyncio.sleep,
    random_fn: RandomFn = random_module.random,
    on_retry: RetryCallback | None = None,
) -> _CallbackT:
    """Run an async operation with bounded retries based on ProviderError retryability."""

    retry_count = 0
    while True:
        try:
            return await operation()
        except Exception as exc:  # noqa: BLE001
            mapped = exc if isinstance(exc, ProviderError) else map_exception(exc)
            if not isinstance(mapped, ProviderError):
                raise TypeError("map_exception must return ProviderError") from exc

            if not mapped.retryable or retry_count >= backoff.max_retries:
                if mapped is exc:
                    raise
                raise mapped from exc

            retry_count += 1
            if mapped.retry_after_seconds is not None:
                delay_seconds = mapped.retry_after_seconds
            else:
                delay_seconds = compute_backoff_delay(
                    retry_number=retry_count,
                    config=backoff,
                    random_fn=random_fn,
                )
            if on_retry is not None:
                on_retry(retry_count, mapped, delay_seconds)
            await sleep(delay_seconds)


def map_sdk_exception(exc: Exception, *, provider: str) -> ProviderError:
    """Classify an SDK or transport exception by status code and class name."""

    if isinstance(exc, ProviderError):
        return exc

    status_code = read_status_code(exc)
    class_name = exc.__class__.__name__.lower()
    detail = exception_detail(exc)
    detail_lower = detail.lower()

    if status_code in {401, 403} or "auth" in class_name or "permission" in class_name:
        return ProviderAuthenticationError(detail, provider=provider, http_status=status_code)

    if status_code == 429 or "ratelimit" in class_name:
        return ProviderRateLimitError(
            detail,
            provider=provider,
            http_status=status_code,
            retry_after_seconds=read_retry_after(exc),
        )

    if isinstance(exc, asyncio.TimeoutError) or "timeout" in class_name:
        return ProviderTimeoutError(detail, provider=provider)

    if (
        status_code in {400, 413, 422}
        and "context" in detail_lower
        and "length" in detail_lower
    ) or "contextlength" in class_name:
        return ProviderContextLengthError(detail, provider=provider, http_status=status_code)

    if status_code is not None and 400 <= status_code < 500:
        return ProviderInvalidRequestError(detail, provider=provider, http_status=status_code)

    if "badrequest" in class_name or "invalidrequest" in class_name:
        return ProviderInvalidRequestError(detail, provider=provider)

    if status_code is not None and status_code >= 500:
        return ProviderServiceError(detail, provider=provider, http_status=status_code)

    return ProviderServiceError(detail, provider=provider, retryable=True)


def read_status_code(exc: BaseException) -> int | None:
    for key in ("status_code", "status", "http_status"):
        value = getattr(exc, key, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        nested = getattr(response, "status_code", None)
        if isinstance(nested, int):
            return nested
    return None


def read_retry_after(exc: BaseException) -> float | None:
    """``Retry-After`` header value in seconds, when the SDK error carries one."""

    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None) if response is not None else None
    if headers is None:
        return None
    raw = headers.get("retry-after") if hasattr(headers, "get") else None
    if raw is None:
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    return value if value >= 0 else None


def exception_detail(exc: BaseException) -> str:
    text = str(exc).strip()
    if text:
        return " ".join(text.split())
    return exc.__class__.__name__


def _validate_non_empty_str(value: str, name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{name} cannot be empty")
    return normalized


def _normalize_detail(value: object) -> str:
    text = str(value).strip()
    if not text:
        return "unknown error"
    return " ".join(text.split())


__all__ = [
    "BackoffConfig",
    "ProviderAuthenticationError",
    "ProviderContextLengthError",
    "ProviderError",
    "ProviderInvalidRequestError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderServiceError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "RandomFn",
    "RetryCallback",
    "SleepFn",
    "TextGenerator",
    "compute_backoff_delay",
    "exception_detail",
    "is_retryable_error",
    "map_sdk_exception",
    "read_retry_after",
    "read_status_code",
    "run_with_retries",
    "to_remediation_error",
]

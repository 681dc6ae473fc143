"""Timeout and error-translation guards for calls that leave the process."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar

from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.integration_plane.tracker import TrackerError
from autoremedy.synthesis_plane.providers.base import ProviderError, to_remediation_error
from autoremedy.utils.concurrency import run_with_timeout

if TYPE_CHECKING:
    from autoremedy.utils.concurrency import Deadline

T = TypeVar("T")


async def provider_call(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    *,
    operation: str,
    deadline: Deadline | None = None,
) -> T:
    """Await a text-generation call; provider failures surface as taxonomy errors."""

    try:
        return await run_with_timeout(
            awaitable, timeout_seconds, operation=operation, deadline=deadline
        )
    except ProviderError as exc:
        raise to_remediation_error(exc) from exc


async def tracker_call(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    *,
    operation: str,
    deadline: Deadline | None = None,
) -> T:
    try:
        return await run_with_timeout(
            awaitable, timeout_seconds, operation=operation, deadline=deadline
        )
    except TrackerError as exc:
        code = ErrorCode.TRACKER_RATE_LIMIT if exc.rate_limited else ErrorCode.TRACKER_ERROR
        raise RemediationError(
            code, f"{operation} failed: {exc}", details={"operation": operation}
        ) from exc


__all__ = ["provider_call", "tracker_call"]

"""Async deadline and timeout primitives for remediation runs."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable, Sequence
from contextlib import suppress
from typing import TypeVar

from autoremedy.domain.errors import ErrorCode, RemediationError

T = TypeVar("T")

Clock = Callable[[], float]


class Deadline:
    """Monotonic wall-clock budget for one run."""

    __slots__ = ("_clock", "_expires_at", "_total")

    def __init__(self, total_seconds: float, *, clock: Clock = time.monotonic) -> None:
        if total_seconds <= 0:
            raise ValueError("total_seconds must be > 0")
        self._clock = clock
        self._total = float(total_seconds)
        self._expires_at = clock() + self._total

    @property
    def total_seconds(self) -> float:
        return self._total

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def check(self, operation: str) -> None:
        """Raise ``TIMEOUT`` if the run budget is already spent."""

        if self.expired:
            raise RemediationError(
                ErrorCode.TIMEOUT,
                f"Run exceeded its {self._total:g}s deadline before {operation}",
                details={"operation": operation, "timeout_seconds": self._total, "scope": "run"},
            )

    def clamp(self, per_call_seconds: float) -> float:
        """Effective per-call timeout: the smaller of the call budget and what is left."""

        return min(per_call_seconds, self.remaining())


async def run_with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    *,
    operation: str,
    deadline: Deadline | None = None,
) -> T:
    """Await ``awaitable`` under a per-call timeout, clamped to ``deadline``.

    Expiry raises ``RemediationError(TIMEOUT)``; the wrapped task is cancelled.
    """

    effective = timeout_seconds if deadline is None else deadline.clamp(timeout_seconds)
    scope = "run" if deadline is not None and effective < timeout_seconds else "call"
    if effective <= 0:
        _close_unscheduled_coroutine(awaitable)
        raise RemediationError(
            ErrorCode.TIMEOUT,
            f"No time left to start {operation}",
            details={"operation": operation, "timeout_seconds": 0.0, "scope": "run"},
        )

    task: asyncio.Task[T] = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=effective)
    if task in done:
        return task.result()

    task.cancel()
    with suppress(asyncio.CancelledError):
        await task
    raise RemediationError(
        ErrorCode.TIMEOUT,
        f"{operation} timed out after {effective:g}s",
        details={"operation": operation, "timeout_seconds": effective, "scope": scope},
    )


async def run_many(
    runs: Sequence[Callable[[], Awaitable[T]]],
    *,
    max_concurrency: int,
) -> list[T | BaseException]:
    """Run independent issue pipelines with bounded concurrency.

    Results keep input order; a failing run yields its exception instead of
    cancelling its siblings.
    """

    if max_concurrency <= 0:
        raise ValueError("max_concurrency must be > 0")
    semaphore = asyncio.Semaphore(max_concurrency)

    async def _bounded(factory: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await factory()

    return await asyncio.gather(*(_bounded(factory) for factory in runs), return_exceptions=True)


def _close_unscheduled_coroutine(awaitable: Awaitable[object]) -> None:
    # Raw coroutine objects that are never scheduled must be closed explicitly.
    if inspect.iscoroutine(awaitable):
        awaitable.close()


__all__ = ["Clock", "Deadline", "run_many", "run_with_timeout"]

"""
autoremedy — remediation error taxonomy

File: src/autoremedy/domain/errors.py

Purpose
- One machine-readable code per failure class, shared by every plane.
- A single exception type that carries the code, a message, JSON details and
  retryability so the error reporter and artifacts never guess.

Functional requirements
- Transient codes (rate limits, provider timeouts) are retryable; everything
  else is surfaced immediately.
- ``to_dict`` output is the ``error`` payload of run artifacts.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping


class ErrorCode(StrEnum):
    """Fixed failure taxonomy for remediation runs."""

    CONFIG_ERROR = "CONFIG_ERROR"
    AI_ERROR = "AI_ERROR"
    AI_RATE_LIMIT = "AI_RATE_LIMIT"
    AI_TIMEOUT = "AI_TIMEOUT"
    TRACKER_ERROR = "TRACKER_ERROR"
    TRACKER_RATE_LIMIT = "TRACKER_RATE_LIMIT"
    GIT_ERROR = "GIT_ERROR"
    GIT_CONFLICT = "GIT_CONFLICT"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    SECURITY_VIOLATION = "SECURITY_VIOLATION"
    ARCHITECTURE_VIOLATION = "ARCHITECTURE_VIOLATION"
    INVALID_AI_OUTPUT = "INVALID_AI_OUTPUT"
    NO_FILES_FOUND = "NO_FILES_FOUND"
    SEARCH_NOT_FOUND = "SEARCH_NOT_FOUND"
    INVALID_LINE = "INVALID_LINE"
    NO_STRATEGY = "NO_STRATEGY"
    FILE_CHANGE_FAILED = "FILE_CHANGE_FAILED"
    NOT_AUTO_FIX = "NOT_AUTO_FIX"
    INVALID_INPUT = "INVALID_INPUT"
    TIMEOUT = "TIMEOUT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


RETRYABLE_CODES: Final[frozenset[ErrorCode]] = frozenset(
    {
        ErrorCode.AI_RATE_LIMIT,
        ErrorCode.AI_TIMEOUT,
        ErrorCode.TRACKER_RATE_LIMIT,
    }
)

# Codes raised after edits touch the working tree; all of them force a rollback.
APPLY_STAGE_CODES: Final[frozenset[ErrorCode]] = frozenset(
    {
        ErrorCode.SEARCH_NOT_FOUND,
        ErrorCode.INVALID_LINE,
        ErrorCode.NO_STRATEGY,
        ErrorCode.FILE_CHANGE_FAILED,
        ErrorCode.VALIDATION_FAILED,
        ErrorCode.ARCHITECTURE_VIOLATION,
    }
)


class RemediationError(RuntimeError):
    """Typed pipeline failure with a taxonomy code and JSON-safe details."""

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        *,
        details: Mapping[str, object] | None = None,
        retryable: bool | None = None,
    ) -> None:
        self.code = ErrorCode(code)
        self.message = message.strip() or self.code.value
        self.details: dict[str, object] = dict(details or {})
        self.retryable = self.code in RETRYABLE_CODES if retryable is None else bool(retryable)
        super().__init__(f"[{self.code.value}] {self.message}")

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": dict(self.details),
            "recoverable": self.retryable,
        }


class FileChangeError(RemediationError):
    """Raised when one proposed edit cannot be applied to its target file."""

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        *,
        path: str,
        details: Mapping[str, object] | None = None,
    ) -> None:
        self.path = path
        payload = {"path": path}
        payload.update(details or {})
        super().__init__(code, message, details=payload, retryable=False)


def is_retryable(error: BaseException) -> bool:
    """Return whether ``error`` is a transient remediation failure."""

    return isinstance(error, RemediationError) and error.retryable


def error_code_for(error: BaseException) -> ErrorCode:
    """Best-effort taxonomy code for arbitrary exceptions at the pipeline boundary."""

    if isinstance(error, RemediationError):
        return error.code
    if isinstance(error, TimeoutError):
        return ErrorCode.TIMEOUT

    message = str(error).lower()
    if "conflict" in message:
        return ErrorCode.GIT_CONFLICT
    if "git" in message:
        return ErrorCode.GIT_ERROR
    if "timed out" in message or "timeout" in message:
        return ErrorCode.TIMEOUT
    return ErrorCode.UNKNOWN_ERROR


__all__ = [
    "APPLY_STAGE_CODES",
    "ErrorCode",
    "FileChangeError",
    "RETRYABLE_CODES",
    "RemediationError",
    "error_code_for",
    "is_retryable",
]

"""
autoremedy — token estimation and budgets

File: src/autoremedy/synthesis_plane/tokens.py

Purpose
- Estimate text size in model tokens without a tokenizer dependency.
- Track a monotonic token budget for one prompt.
- Describe per-provider input/output ceilings.

Functional requirements
- ``estimate = ceil(max(words * 1.3, chars * tokens_per_char))``.
- ``TokenBudget.used`` never exceeds ``limit``; over-consumption raises.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

WORD_TOKEN_RATIO: Final[float] = 1.3

# Prompts at or below this input ceiling use the compact template.
COMPACT_INPUT_THRESHOLD: Final[int] = 10_000


class BudgetExceededError(ValueError):
    """Raised when a consumption would push a budget past its limit."""


@dataclass(frozen=True, slots=True)
class ProviderLimits:
    """Input/output ceilings and reservations for one provider profile."""

    name: str
    max_input_tokens: int
    max_output_tokens: int
    tokens_per_char: float
    reserved_for_prompt: int
    reserved_for_output: int

    def __post_init__(self) -> None:
        if self.max_input_tokens <= 0 or self.max_output_tokens <= 0:
            raise ValueError("token ceilings must be > 0")
        if not 0.0 < self.tokens_per_char <= 1.0:
            raise ValueError("tokens_per_char must be in (0, 1]")
        if self.reserved_for_prompt < 0 or self.reserved_for_output < 0:
            raise ValueError("reservations must be >= 0")
        if self.file_token_budget <= 0:
            raise ValueError("reservations leave no room for file content")

    @property
    def file_token_budget(self) -> int:
        """Tokens left for file contents after prompt and output reservations."""

        return self.max_input_tokens - self.reserved_for_prompt - self.reserved_for_output

    @property
    def compact(self) -> bool:
        return self.max_input_tokens < COMPACT_INPUT_THRESHOLD

    def estimator(self) -> TokenEstimator:
        return TokenEstimator(tokens_per_char=self.tokens_per_char)


PROVIDER_LIMITS: Final[dict[str, ProviderLimits]] = {
    "anthropic": ProviderLimits(
        name="anthropic",
        max_input_tokens=50_000,
        max_output_tokens=8_000,
        tokens_per_char=0.25,
        reserved_for_prompt=2_000,
        reserved_for_output=8_000,
    ),
    "openai": ProviderLimits(
        name="openai",
        max_input_tokens=30_000,
        max_output_tokens=4_096,
        tokens_per_char=0.25,
        reserved_for_prompt=1_500,
        reserved_for_output=4_096,
    ),
    # Most restrictive hosted tier; estimates are deliberately conservative.
    "github-models": ProviderLimits(
        name="github-models",
        max_input_tokens=8_000,
        max_output_tokens=2_000,
        tokens_per_char=0.30,
        reserved_for_prompt=1_200,
        reserved_for_output=2_000,
    ),
}


def limits_for(profile: str) -> ProviderLimits:
    try:
        return PROVIDER_LIMITS[profile]
    except KeyError:
        known = ", ".join(sorted(PROVIDER_LIMITS))
        raise ValueError(
            f"unknown provider profile {profile!r}; expected one of: {known}"
        ) from None


@dataclass(frozen=True, slots=True)
class TokenEstimator:
    tokens_per_char: float = 0.25

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        words = len(text.split())
        return math.ceil(max(words * WORD_TOKEN_RATIO, len(text) * self.tokens_per_char))


class TokenBudget:
    """Monotonic token budget for one instruction document."""

    __slots__ = ("_estimator", "_limit", "_used")

    def __init__(self, limit: int, *, estimator: TokenEstimator | None = None) -> None:
        if limit < 0:
            raise ValueError("limit must be >= 0")
        self._limit = limit
        self._used = 0
        self._estimator = estimator if estimator is not None else TokenEstimator()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def used(self) -> int:
        return self._used

    @property
    def estimator(self) -> TokenEstimator:
        return self._estimator

    def estimate(self, text: str) -> int:
        return self._estimator.estimate(text)

    def remaining(self) -> int:
        return self._limit - self._used

    def can_afford(self, tokens: int) -> bool:
        return tokens >= 0 and self._used + tokens <= self._limit

    def consume(self, tokens: int) -> int:
        """Record ``tokens`` as used and return what remains."""

        if tokens < 0:
            raise ValueError("tokens must be >= 0")
        if not self.can_afford(tokens):
            raise BudgetExceededError(
                f"consuming {tokens} tokens exceeds budget ({self._used}/{self._limit} used)"
            )
        self._used += tokens
        return self.remaining()

    def consume_text(self, text: str) -> int:
        return self.consume(self.estimate(text))

    def summary(self) -> str:
        percent = (self._used / self._limit * 100.0) if self._limit else 100.0
        return f"{self._used}/{self._limit} tokens ({percent:.1f}%)"


__all__ = [
    "BudgetExceededError",
    "COMPACT_INPUT_THRESHOLD",
    "PROVIDER_LIMITS",
    "ProviderLimits",
    "TokenBudget",
    "TokenEstimator",
    "limits_for",
]

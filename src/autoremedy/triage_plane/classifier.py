"""Issue classifier: keyword signals first, one text-generation call as fallback.

File: src/autoremedy/triage_plane/classifier.py

Purpose
- Label an issue BUG / FEATURE / DOCS / CHORE / OTHER with a confidence and a
  short rationale.
- Keyword classification is deterministic: same input, same output.

Fallback
- When keyword confidence is below the acceptance threshold or the top category
  is tied, a single generator call decides. Output that is not the expected
  JSON object raises ``INVALID_AI_OUTPUT``.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, Final

import structlog

from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.domain.models import Classification, ClassificationResult, Issue
from autoremedy.synthesis_plane.prompt_templates import PromptTemplateEngine

if TYPE_CHECKING:
    from autoremedy.synthesis_plane.providers.base import TextGenerator

# --- Confidence formula ---
_BASE_CONFIDENCE = 0.5
_PER_MATCH_CONFIDENCE = 0.15
_MAX_KEYWORD_CONFIDENCE = 0.9
ACCEPT_CONFIDENCE: Final[float] = 0.7

# --- Generator call parameters ---
_CLASSIFY_TEMPERATURE = 0.1
_CLASSIFY_MAX_TOKENS = 512
_RESPONSE_EXCERPT_CHARS = 500

# --- Keyword pattern sets; each matching pattern counts once ---
KEYWORD_PATTERNS: Final[dict[Classification, tuple[re.Pattern[str], ...]]] = {
    Classification.BUG: (
        re.compile(r"\b(bug|error|issue|broken|crash|fail|exception|incorrect|wrong)\b"),
        re.compile(r"\b(not working|doesn't work|does not work)\b"),
        re.compile(r"\b(fix|resolve|repair)\b"),
    ),
    Classification.FEATURE: (
        re.compile(r"\b(feature|enhancement|improve|add|implement|support)\b"),
        re.compile(r"\b(request|proposal|suggestion)\b"),
        re.compile(r"\b(would like|could we|can we)\b"),
    ),
    Classification.DOCS: (
        re.compile(r"\b(doc|documentation|readme|guide|tutorial)\b"),
        re.compile(r"\b(typo|spelling|grammar)\b"),
        re.compile(r"\b(clarify|explain|example)\b"),
    ),
    Classification.CHORE: (
        re.compile(r"\b(chore|refactor|cleanup|maintenance|update|upgrade)\b"),
        re.compile(r"\b(dependency|dependencies|package)\b"),
        re.compile(r"\b(lint|format|style)\b"),
    ),
}

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def keyword_scores(issue: Issue) -> dict[Classification, int]:
    """Number of matching pattern groups per category over ``title + body``."""
    text = f"{issue.title} {issue.body}".lower()
    return {
        category: sum(1 for pattern in patterns if pattern.search(text))
        for category, patterns in KEYWORD_PATTERNS.items()
    }


def keyword_confidence(max_matches: int) -> float:
    return min(_MAX_KEYWORD_CONFIDENCE, _BASE_CONFIDENCE + _PER_MATCH_CONFIDENCE * max_matches)


def classify_by_keywords(issue: Issue) -> ClassificationResult:
    """Deterministic keyword result; OTHER with base confidence when nothing matches."""
    scores = keyword_scores(issue)
    best = max(scores.values())
    if best == 0:
        return ClassificationResult(
            classification=Classification.OTHER,
            confidence=_BASE_CONFIDENCE,
            reasoning="Keyword-based classification: no category indicators found",
        )
    # Dict order breaks ties deterministically; callers check uniqueness separately.
    category = next(cat for cat, score in scores.items() if score == best)
    return ClassificationResult(
        classification=category,
        confidence=round(keyword_confidence(best), 2),
        reasoning=(
            f"Keyword-based classification: found {best} {category.value.lower()} indicators"
        ),
    )


def is_decisive(issue: Issue) -> bool:
    scores = keyword_scores(issue)
    best = max(scores.values())
    leaders = [category for category, score in scores.items() if score == best]
    return best > 0 and len(leaders) == 1 and keyword_confidence(best) >= ACCEPT_CONFIDENCE


class IssueClassifier:
    """Keyword classifier with an optional text-generation fallback."""

    def __init__(
        self,
        *,
        generator: TextGenerator | None = None,
        templates: PromptTemplateEngine | None = None,
        logger: Any | None = None,
    ) -> None:
        self._generator = generator
        self._templates = templates
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def classify(self, issue: Issue) -> ClassificationResult:
        keyword_result = classify_by_keywords(issue)
        if is_decisive(issue):
            self._log(issue, keyword_result)
            return keyword_result

        if self._generator is None:
            # Without a generator, the best keyword guess stands (OTHER when none matched).
            self._log(issue, keyword_result)
            return keyword_result

        result = await self._classify_with_generator(issue, self._generator)
        self._log(issue, result)
        return result

    async def _classify_with_generator(
        self, issue: Issue, generator: TextGenerator
    ) -> ClassificationResult:
        templates = self._templates if self._templates is not None else PromptTemplateEngine()
        rendered = templates.render(
            "classify",
            variables={"title": issue.title, "body": issue.body or "(no description)"},
        )
        response = await generator.generate(
            rendered.prompt,
            temperature=_CLASSIFY_TEMPERATURE,
            max_tokens=_CLASSIFY_MAX_TOKENS,
        )
        return parse_classification_response(response)

    def _log(self, issue: Issue, result: ClassificationResult) -> None:
        self._logger.info(
            "issue_classified",
            issue_id=issue.id,
            classification=result.classification.value,
            confidence=result.confidence,
            method=result.method,
        )


def parse_classification_response(response: str) -> ClassificationResult:
    """Validate ``{"classification", "confidence", "reasoning"}`` from generator output."""
    match = _JSON_OBJECT.search(response)
    if match is None:
        raise _invalid_output("Classification response contained no JSON object", response)
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise _invalid_output(
            f"Classification JSON could not be parsed: {exc.msg}", response
        ) from exc
    if not isinstance(payload, dict):
        raise _invalid_output("Classification response must be a JSON object", response)

    label = payload.get("classification")
    if not isinstance(label, str) or label.strip().upper() not in Classification.__members__:
        raise _invalid_output(f"Unknown classification label: {label!r}", response)

    confidence = payload.get("confidence", _BASE_CONFIDENCE)
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise _invalid_output("Classification confidence must be a number", response)
    if not 0.0 <= float(confidence) <= 1.0:
        raise _invalid_output("Classification confidence must be within 0..1", response)

    reasoning = payload.get("reasoning", "")
    return ClassificationResult(
        classification=Classification[label.strip().upper()],
        confidence=float(confidence),
        reasoning=reasoning.strip() if isinstance(reasoning, str) else "",
        method="model",
    )


def _invalid_output(message: str, response: str) -> RemediationError:
    return RemediationError(
        ErrorCode.INVALID_AI_OUTPUT,
        message,
        details={"response_excerpt": response[:_RESPONSE_EXCERPT_CHARS]},
    )


__all__ = [
    "ACCEPT_CONFIDENCE",
    "IssueClassifier",
    "KEYWORD_PATTERNS",
    "classify_by_keywords",
    "is_decisive",
    "keyword_confidence",
    "keyword_scores",
    "parse_classification_response",
]

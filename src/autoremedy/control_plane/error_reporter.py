"""
autoremedy — failure reporting

File: src/autoremedy/control_plane/error_reporter.py

Purpose
- Turn a surfaced ``RemediationError`` into a human explanation with concrete
  remediation steps, and write it back to the issue.

What should be included in this file
- Per-code guidance table covering the whole taxonomy.
- Markdown comment rendering with code-specific sections (failing command
  output, blocked paths, architecture violations, an issue template).
- ``ErrorReporter`` that posts the comment and failure labels.

Functional requirements
- Labels: ``automation-failed``; ``architecture-review`` additionally for
  architecture violations.
- Reporting never raises: a tracker failure while reporting is logged so the
  original error stays the one surfaced.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import structlog

from autoremedy.constants import (
    COMMENT_OUTPUT_LIMIT,
    LABEL_ARCHITECTURE_REVIEW,
    LABEL_AUTOMATION_FAILED,
)
from autoremedy.control_plane.calls import tracker_call
from autoremedy.domain.errors import ErrorCode, RemediationError

if TYPE_CHECKING:
    from autoremedy.integration_plane.tracker import IssueTracker


@dataclass(frozen=True, slots=True)
class Guidance:
    heading: str
    summary: str
    steps: tuple[str, ...]


_FALLBACK: Final[Guidance] = Guidance(
    heading="Unexpected failure",
    summary="The automated fix stopped on an error it could not classify.",
    steps=(
        "Check the run logs for the full error.",
        "Make sure the issue description is clear and names the affected files.",
        "Implement the fix manually if the change is too complex for automation.",
        "Report the failure to the maintainers if it looks like a tooling bug.",
    ),
)

GUIDANCE: Final[dict[ErrorCode, Guidance]] = {
    ErrorCode.CONFIG_ERROR: Guidance(
        "Configuration problem",
        "The automation is misconfigured (missing credentials, provider or settings).",
        (
            "Check that the provider API key environment variable is set.",
            "Run `autoremedy config` to inspect the effective configuration.",
        ),
    ),
    ErrorCode.AI_ERROR: Guidance(
        "Text generation failed",
        "The text-generation service returned an error.",
        (
            "Check the provider status and the run logs.",
            "Re-run the fix once the provider is healthy.",
        ),
    ),
    ErrorCode.AI_RATE_LIMIT: Guidance(
        "Rate limit reached",
        "The text-generation service rate limit was reached and retries were exhausted.",
        (
            "Wait for the rate limit to reset; this is temporary.",
            "Re-run the fix later.",
        ),
    ),
    ErrorCode.AI_TIMEOUT: Guidance(
        "Text generation timed out",
        "The text-generation service did not answer in time.",
        (
            "Re-run the fix; timeouts are usually transient.",
            "Reduce the number of files the issue touches.",
        ),
    ),
    ErrorCode.TRACKER_ERROR: Guidance(
        "Issue tracker request failed",
        "A request to the issue tracker failed.",
        ("Check tracker permissions and the run logs.", "Re-run the fix."),
    ),
    ErrorCode.TRACKER_RATE_LIMIT: Guidance(
        "Rate limit reached",
        "The issue tracker rate limit was reached.",
        ("Wait for the rate limit to reset; this is temporary.", "Re-run the fix later."),
    ),
    ErrorCode.GIT_ERROR: Guidance(
        "Git operation failed",
        "A git operation failed. Branch protection or permissions are common causes.",
        (
            "Check branch protection rules and that automation may push branches.",
            "Review the git output in the run logs.",
        ),
    ),
    ErrorCode.GIT_CONFLICT: Guidance(
        "Git conflict",
        "The fix branch conflicts with the remote state.",
        (
            "Resolve the conflict on the fix branch manually.",
            "Delete the stale fix branch and re-run the fix.",
        ),
    ),
    ErrorCode.VALIDATION_FAILED: Guidance(
        "Validation failed",
        "The generated fix failed the project's validation checks.",
        (
            "Review the failing command output below.",
            "Run the failing command locally against the affected files.",
            "Fix the issue manually and open a pull request.",
        ),
    ),
    ErrorCode.SECURITY_VIOLATION: Guidance(
        "Security block",
        "This fix would touch security-sensitive files or configuration.",
        (
            "A maintainer with appropriate access must implement this change.",
            "Route the change through the security review process.",
            "Never commit secrets such as API keys, passwords or private keys.",
        ),
    ),
    ErrorCode.ARCHITECTURE_VIOLATION: Guidance(
        "Architecture violation",
        "The generated fix breaks this project's architectural rules.",
        (
            "Review the violations below and the project's architecture documents.",
            "Implement the fix manually in the layer that owns the behavior.",
        ),
    ),
    ErrorCode.INVALID_AI_OUTPUT: Guidance(
        "Unusable generated output",
        "The generated output was not a valid edit plan "
        "(missing `file_changes` or `commit_message`).",
        (
            "Name the exact files to change, using repository paths.",
            "Describe the expected behavior (before and after).",
            "Paste a minimal snippet that shows the failure or the desired change.",
            "Re-run the fix after updating the issue.",
        ),
    ),
    ErrorCode.NO_FILES_FOUND: Guidance(
        "No files identified",
        "The files to modify could not be determined from the issue.",
        (
            "Specify exact file paths in the issue description, "
            "for example `src/components/Button.vue`.",
            "Re-run the fix after updating the issue.",
        ),
    ),
    ErrorCode.SEARCH_NOT_FOUND: Guidance(
        "Edit did not match the file",
        "A generated edit searched for text that is not in the file.",
        (
            "Quote the exact code to change in the issue.",
            "Re-run the fix; the file may have changed since the issue was written.",
        ),
    ),
    ErrorCode.INVALID_LINE: Guidance(
        "Edit targeted an invalid line",
        "A generated insert pointed outside the file.",
        ("Re-run the fix.", "Quote the surrounding code in the issue."),
    ),
    ErrorCode.NO_STRATEGY: Guidance(
        "Malformed edit",
        "A generated edit used no recognizable edit strategy.",
        ("Re-run the fix.",),
    ),
    ErrorCode.FILE_CHANGE_FAILED: Guidance(
        "Edit could not be applied",
        "The generated edits could not be written to the working tree.",
        ("Check the run logs for the failing path.", "Re-run the fix."),
    ),
    ErrorCode.NOT_AUTO_FIX: Guidance(
        "Not suitable for automatic fixing",
        "Triage determined that this issue must be handled by a person.",
        (
            "Implement the change manually.",
            "Automation does not handle architectural changes, business decisions "
            "or infrastructure updates.",
        ),
    ),
    ErrorCode.INVALID_INPUT: Guidance(
        "Invalid input",
        "The run received input it could not use.",
        ("Re-run triage for this issue before fixing it.",),
    ),
    ErrorCode.TIMEOUT: Guidance(
        "Timed out",
        "The automated fix exceeded its time limit.",
        (
            "Break the issue into smaller, focused issues.",
            "Specify fewer files to modify.",
        ),
    ),
}

_RESPONSE_PREVIEW_CHARS = 500


def guidance_for(code: ErrorCode) -> Guidance:
    return GUIDANCE.get(code, _FALLBACK)


def failure_labels(error: RemediationError) -> tuple[str, ...]:
    if error.code is ErrorCode.ARCHITECTURE_VIOLATION:
        return (LABEL_AUTOMATION_FAILED, LABEL_ARCHITECTURE_REVIEW)
    return (LABEL_AUTOMATION_FAILED,)


def render_error_comment(error: RemediationError, *, rolled_back: bool) -> str:
    guidance = guidance_for(error.code)
    lines = ["## Auto-Fix Failed", ""]
    if rolled_back:
        lines.extend(["The automated fix attempt failed and has been rolled back.", ""])
    lines.extend(
        [
            "### Error Details",
            "",
            f"**Error Code**: `{error.code.value}`",
            f"**Message**: {error.message}",
            "",
            f"### {guidance.heading}",
            "",
            guidance.summary,
            "",
        ]
    )
    lines.extend(_code_specific(error))
    lines.extend(["### How to Fix", ""])
    lines.extend(f"{index}. {step}" for index, step in enumerate(guidance.steps, start=1))
    lines.append("")
    if error.details:
        details = json.dumps(error.details, indent=2, sort_keys=True, default=str)
        lines.extend(
            [
                "<details>",
                "<summary>Technical Details</summary>",
                "",
                "```json",
                details[: COMMENT_OUTPUT_LIMIT * 2],
                "```",
                "",
                "</details>",
                "",
            ]
        )
    lines.extend(["---", "", "*Comment on this issue or tag a maintainer if you need help.*"])
    return "\n".join(lines) + "\n"


def _code_specific(error: RemediationError) -> list[str]:
    details = error.details
    match error.code:
        case ErrorCode.VALIDATION_FAILED if details.get("kind") == "hallucination":
            return [
                "The generated full-file rewrite of "
                f"`{details.get('path', '?')}` looked like fabricated content and was "
                "rejected. Targeted edits (search/replace) are required for this file.",
                "",
            ]
        case ErrorCode.VALIDATION_FAILED:
            lines: list[str] = []
            command = details.get("command")
            if isinstance(command, str) and command:
                lines.extend([f"**Failed Command**: `{command}`", ""])
            output = details.get("output")
            if isinstance(output, str) and output:
                lines.extend(
                    ["**Validation Output**:", "```", output[:COMMENT_OUTPUT_LIMIT], "```", ""]
                )
            return lines
        case ErrorCode.SECURITY_VIOLATION:
            paths = _string_list(details.get("paths")) or _string_list([details.get("path")])
            if not paths:
                return []
            lines = ["**Blocked Items**:"]
            lines.extend(f"- `{path}`" for path in paths)
            lines.extend(f"  - {reason}" for reason in _string_list(details.get("reasons")))
            lines.append("")
            return lines
        case ErrorCode.ARCHITECTURE_VIOLATION:
            markdown = details.get("markdown")
            return [markdown, ""] if isinstance(markdown, str) and markdown else []
        case ErrorCode.INVALID_AI_OUTPUT:
            lines = []
            excerpt = details.get("response_excerpt")
            if isinstance(excerpt, str) and excerpt:
                preview = excerpt[:_RESPONSE_PREVIEW_CHARS]
                lines.extend(["**Response Preview** (truncated):", "```", preview, "```", ""])
            lines.extend(
                [
                    "#### Quick Issue Template",
                    "```markdown",
                    "Title: Fix X in Y component",
                    "",
                    "Affected files:",
                    "- src/components/Example.vue",
                    "",
                    "Current behavior:",
                    "- ...",
                    "",
                    "Expected behavior:",
                    "- ...",
                    "```",
                    "",
                ]
            )
            return lines
        case _:
            return []


def _string_list(value: object) -> list[str]:
    if not isinstance(value, Sequence) or isinstance(value, str):
        return []
    return [item for item in value if isinstance(item, str) and item]


class ErrorReporter:
    """Posts failure comments and labels; failures to report are logged, not raised."""

    def __init__(
        self,
        tracker: IssueTracker,
        *,
        timeout_seconds: float = 30.0,
        logger: Any | None = None,
    ) -> None:
        self._tracker = tracker
        self._timeout_seconds = timeout_seconds
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def report(self, issue_id: int, error: RemediationError, *, rolled_back: bool) -> bool:
        self._logger.error(
            "remediation_failed",
            issue_id=issue_id,
            code=error.code.value,
            message=error.message,
            rolled_back=rolled_back,
        )
        try:
            await tracker_call(
                self._tracker.post_comment(
                    issue_id, render_error_comment(error, rolled_back=rolled_back)
                ),
                self._timeout_seconds,
                operation="post error comment",
            )
            await tracker_call(
                self._tracker.add_labels(issue_id, failure_labels(error)),
                self._timeout_seconds,
                operation="add failure labels",
            )
        except RemediationError as exc:
            self._logger.error("error_report_failed", issue_id=issue_id, error=exc.message)
            return False
        return True


__all__ = [
    "ErrorReporter",
    "GUIDANCE",
    "Guidance",
    "failure_labels",
    "guidance_for",
    "render_error_comment",
]

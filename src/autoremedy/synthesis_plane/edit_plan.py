"""Parsing of generated edit plans into the closed ``FileChange`` union."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from autoremedy.domain.edits import FileChange, file_change_from_payload, file_change_to_dict
from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.domain.models import JSONValue

RESPONSE_EXCERPT_CHARS: Final[int] = 500

_FENCE_PATTERN = re.compile(r"^```[\w-]*\s*\n?|\n?```\s*$")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True, slots=True)
class EditPlan:
    """Validated plan: at least one edit and a commit message."""

    changes: tuple[FileChange, ...]
    commit_message: str

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(change.path for change in self.changes))

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "file_changes": [file_change_to_dict(change) for change in self.changes],
            "commit_message": self.commit_message,
        }


def strip_code_fences(response: str) -> str:
    return _FENCE_PATTERN.sub("", response.strip()).strip()


def parse_edit_plan(response: str) -> EditPlan:
    """Parse raw generator output; anything malformed raises ``INVALID_AI_OUTPUT``."""

    text = strip_code_fences(response)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(text)
        if match is None:
            raise _invalid("Response did not contain a JSON object", response) from None
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise _invalid(f"Response JSON could not be parsed: {exc.msg}", response) from exc

    if not isinstance(payload, Mapping):
        raise _invalid("Edit plan must be a JSON object", response)

    raw_changes = payload.get("file_changes")
    if not isinstance(raw_changes, list) or not raw_changes:
        raise _invalid("Edit plan has no file_changes", response)

    commit_message = payload.get("commit_message")
    if not isinstance(commit_message, str) or not commit_message.strip():
        raise _invalid("Edit plan has no commit_message", response)

    changes: list[FileChange] = []
    for index, entry in enumerate(raw_changes):
        if not isinstance(entry, Mapping):
            raise _invalid(f"file_changes[{index}] must be an object", response)
        changes.append(file_change_from_payload(entry))

    return EditPlan(changes=tuple(changes), commit_message=commit_message.strip())


def _invalid(message: str, response: str) -> RemediationError:
    return RemediationError(
        ErrorCode.INVALID_AI_OUTPUT,
        message,
        details={"response_excerpt": response[:RESPONSE_EXCERPT_CHARS]},
    )


__all__ = ["EditPlan", "parse_edit_plan", "strip_code_fences"]

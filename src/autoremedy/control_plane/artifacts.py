"""
autoremedy — run artifacts

File: src/autoremedy/control_plane/artifacts.py

Purpose
- Persist the hand-off documents between pipeline stages: triage result, fix
  plan, commit result and pull-request result.

Functional requirements
- Every artifact is a JSON object with ``success`` and either ``data`` or
  ``error`` (``{code, message, details, recoverable}``).
- Writes are atomic; output is deterministic (sorted keys, trailing newline).
- Loading a failed or malformed triage artifact raises ``INVALID_INPUT``.
- Each issue owns one directory (``issue-<id>``) below the artifacts root.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from autoremedy.constants import ARTIFACT_SCHEMA_VERSION, TRIAGE_RESULT_FILE
from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.domain.models import TriageResult
from autoremedy.utils.fs import atomic_write


class ArtifactStore:
    def __init__(self, directory: Path | str, *, logger: Any | None = None) -> None:
        self._directory = Path(directory)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def directory(self) -> Path:
        return self._directory

    def path(self, name: str) -> Path:
        return self._directory / name

    def write_success(self, name: str, data: object) -> Path:
        return self._write(name, {"success": True, "data": data})

    def write_failure(self, name: str, error: RemediationError) -> Path:
        return self._write(name, {"success": False, "error": error.to_dict()})

    def read(self, name: str) -> dict[str, Any]:
        target = self.path(name)
        try:
            payload = json.loads(target.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise RemediationError(
                ErrorCode.INVALID_INPUT, f"Artifact not found: {target}"
            ) from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise RemediationError(
                ErrorCode.INVALID_INPUT, f"Artifact {target} is unreadable: {exc}"
            ) from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("success"), bool):
            raise RemediationError(
                ErrorCode.INVALID_INPUT, f"Artifact {target} lacks a boolean 'success' field"
            )
        return payload

    def load_triage(self) -> TriageResult:
        payload = self.read(TRIAGE_RESULT_FILE)
        if not payload["success"]:
            raise RemediationError(
                ErrorCode.INVALID_INPUT,
                "Triage result indicates failure",
                details={"error": payload.get("error", {})},
            )
        data = payload.get("data")
        if not isinstance(data, Mapping):
            raise RemediationError(ErrorCode.INVALID_INPUT, "Triage result has no data object")
        try:
            return TriageResult.from_dict(data)
        except ValueError as exc:
            raise RemediationError(
                ErrorCode.INVALID_INPUT, f"Triage result is invalid: {exc}"
            ) from exc

    def _write(self, name: str, envelope: dict[str, object]) -> Path:
        target = self.path(name)
        document = {"schema_version": ARTIFACT_SCHEMA_VERSION, **envelope}
        text = json.dumps(document, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
        atomic_write(target, text)
        self._logger.info("artifact_written", artifact=name, success=envelope["success"])
        return target


def artifacts_for(root: Path | str, issue_id: int, *, logger: Any | None = None) -> ArtifactStore:
    return ArtifactStore(Path(root) / f"issue-{issue_id}", logger=logger)


__all__ = ["ArtifactStore", "artifacts_for"]

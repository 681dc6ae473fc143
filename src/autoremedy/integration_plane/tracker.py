"""
autoremedy — issue tracker boundary

File: src/autoremedy/integration_plane/tracker.py

Purpose
- Protocol for the issue-tracking/code-hosting collaborator: labels,
  comments and pull requests.
- ``LocalIssueTracker`` implements it against a filesystem outbox so runs can
  be reviewed (or replayed by another tool) without network access.

Functional requirements
- Every write is atomic and the outbox state is deterministic JSON.
- Label application is idempotent; a pull request is unique per head branch.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog

from autoremedy.domain.models import Issue, PullRequestRecord
from autoremedy.utils.fs import atomic_write

_STATE_FILE = "state.json"
_COMMENTS_DIR = "comments"


class TrackerError(RuntimeError):
    """Raised when the tracker cannot serve a request."""

    def __init__(self, message: str, *, rate_limited: bool = False) -> None:
        super().__init__(message)
        self.rate_limited = rate_limited


@runtime_checkable
class IssueTracker(Protocol):
    async def get_issue(self, issue_id: int) -> Issue: ...

    async def add_labels(self, issue_id: int, labels: Sequence[str]) -> None: ...

    async def post_comment(self, issue_id: int, body: str) -> str: ...

    async def find_pull_request(self, head: str) -> PullRequestRecord | None: ...

    async def create_pull_request(
        self,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
        draft: bool,
        labels: Sequence[str],
        reviewers: Sequence[str],
    ) -> PullRequestRecord: ...


class LocalIssueTracker:
    """Filesystem outbox: ``state.json`` plus one markdown file per comment."""

    def __init__(
        self,
        outbox_dir: Path | str,
        *,
        issues: Mapping[int, Issue] | None = None,
        logger: Any | None = None,
    ) -> None:
        self._outbox = Path(outbox_dir)
        self._issues = dict(issues or {})
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def outbox_dir(self) -> Path:
        return self._outbox

    @property
    def issue_ids(self) -> tuple[int, ...]:
        return tuple(sorted(self._issues))

    @classmethod
    def from_issue_file(
        cls, outbox_dir: Path | str, issue_file: Path | str, *, logger: Any | None = None
    ) -> LocalIssueTracker:
        """Load one issue object or a list of them from a JSON file."""

        try:
            payload = json.loads(Path(issue_file).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise TrackerError(f"could not read issue file {issue_file}: {exc}") from exc
        items = payload if isinstance(payload, list) else [payload]
        issues: dict[int, Issue] = {}
        for item in items:
            if not isinstance(item, Mapping):
                raise TrackerError(f"issue file {issue_file} must hold objects")
            try:
                issue = Issue.from_tracker_payload(item)
            except ValueError as exc:
                raise TrackerError(f"invalid issue in {issue_file}: {exc}") from exc
            issues[issue.id] = issue
        return cls(outbox_dir, issues=issues, logger=logger)

    async def get_issue(self, issue_id: int) -> Issue:
        issue = self._issues.get(issue_id)
        if issue is None:
            raise TrackerError(f"issue #{issue_id} not found")
        labels = self._load_state()["labels"].get(str(issue_id), [])
        if not labels:
            return issue
        merged = tuple(dict.fromkeys((*issue.labels, *labels)))
        return replace(issue, labels=merged)

    async def add_labels(self, issue_id: int, labels: Sequence[str]) -> None:
        state = self._load_state()
        current: list[str] = state["labels"].setdefault(str(issue_id), [])
        for label in labels:
            if label not in current:
                current.append(label)
        self._save_state(state)
        self._logger.info("labels_applied", issue_id=issue_id, labels=list(labels))

    async def post_comment(self, issue_id: int, body: str) -> str:
        state = self._load_state()
        state["comment_count"] += 1
        number = state["comment_count"]
        relative = f"{_COMMENTS_DIR}/{issue_id}-{number:04d}.md"
        atomic_write(self._outbox / relative, body)
        state["comments"].append({"issue_id": issue_id, "file": relative})
        self._save_state(state)
        self._logger.info("comment_posted", issue_id=issue_id, file=relative)
        return relative

    async def find_pull_request(self, head: str) -> PullRequestRecord | None:
        for payload in self._load_state()["pull_requests"]:
            if payload["head"] == head:
                return PullRequestRecord.from_dict(payload)
        return None

    async def create_pull_request(
        self,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
        draft: bool,
        labels: Sequence[str],
        reviewers: Sequence[str],
    ) -> PullRequestRecord:
        state = self._load_state()
        if any(payload["head"] == head for payload in state["pull_requests"]):
            raise TrackerError(f"a pull request for {head} already exists")
        number = len(state["pull_requests"]) + 1
        body_file = f"pull_requests/{number}.md"
        atomic_write(self._outbox / body_file, body)
        record = PullRequestRecord(
            number=number,
            title=title,
            head=head,
            base=base,
            draft=draft,
            labels=tuple(labels),
            url=(self._outbox / body_file).as_posix(),
            reviewers=tuple(reviewers),
        )
        state["pull_requests"].append(record.to_dict())
        self._save_state(state)
        self._logger.info("pull_request_created", number=number, head=head, draft=draft)
        return record

    def comments(self, issue_id: int) -> list[str]:
        """Bodies of comments posted to ``issue_id`` in posting order."""

        return [
            (self._outbox / entry["file"]).read_text(encoding="utf-8")
            for entry in self._load_state()["comments"]
            if entry["issue_id"] == issue_id
        ]

    def labels(self, issue_id: int) -> tuple[str, ...]:
        return tuple(self._load_state()["labels"].get(str(issue_id), []))

    def _load_state(self) -> dict[str, Any]:
        path = self._outbox / _STATE_FILE
        if not path.exists():
            return {"labels": {}, "comments": [], "comment_count": 0, "pull_requests": []}
        try:
            state = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise TrackerError(f"outbox state is unreadable: {exc}") from exc
        if not isinstance(state, dict):
            raise TrackerError("outbox state must be a JSON object")
        return state

    def _save_state(self, state: Mapping[str, Any]) -> None:
        text = json.dumps(state, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
        try:
            atomic_write(self._outbox / _STATE_FILE, text)
        except OSError as exc:
            raise TrackerError(f"could not write outbox state: {exc}") from exc


__all__ = ["IssueTracker", "LocalIssueTracker", "TrackerError"]

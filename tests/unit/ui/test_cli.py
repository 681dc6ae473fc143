"""
autoremedy — CLI router tests

File: tests/unit/ui/test_cli.py

Purpose
- Validate argument parsing, JSON output and exit codes of the command
  handlers that run without a text-generation provider.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from autoremedy.integration_plane.tracker import LocalIssueTracker
from autoremedy.ui.cli import build_parser, run_cli

if TYPE_CHECKING:
    from pathlib import Path

DOCS_ISSUE = {
    "number": 7,
    "title": "Typo in README",
    "body": "The word 'recieve' in README.md is misspelled.",
    "user": {"login": "octocat", "type": "User"},
}
SECURITY_ISSUE = {
    "number": 8,
    "title": "Typo in README",
    "body": "The README spells password as 'pasword'.",
}


@pytest.fixture(autouse=True)
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


def write_issues(tmp_path: Path, payload: object) -> str:
    target = tmp_path / "issues.json"
    target.write_text(json.dumps(payload), encoding="utf-8")
    return str(target)


def test_parser_collects_remediation_options() -> None:
    args = build_parser().parse_args(
        ["fix", "issue.json", "--issue", "3", "--no-push", "--reviewer", "a", "--reviewer", "b"]
    )

    assert args.command == "fix"
    assert args.issue_file == "issue.json"
    assert args.issue_id == 3
    assert args.no_push is True
    assert args.no_pr is False
    assert args.reviewers == ["a", "b"]
    assert args.repo_root == "."


def test_subcommand_is_required(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        run_cli([])

    assert exc_info.value.code == 2
    assert "autoremedy" in capsys.readouterr().err


def test_config_json_is_redacted_effective_config(capsys: pytest.CaptureFixture[str]) -> None:
    assert run_cli(["config", "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["command"] == "config"
    assert payload["config"]["provider"]["name"] == "anthropic"
    assert payload["config"]["provider"]["api_key_env"] == "ANTHROPIC_API_KEY"


def test_missing_explicit_config_is_a_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = run_cli(["config", "--config", str(tmp_path / "missing.toml")])

    assert code == 2
    assert "config file not found" in capsys.readouterr().err


def test_keyword_triage_without_posting(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    issue_file = write_issues(tmp_path, DOCS_ISSUE)

    code = run_cli(["triage", issue_file, "--keyword-only", "--no-post", "--json"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    [row] = payload["issues"]
    assert row["issue_id"] == 7
    assert row["status"] == "triaged"
    assert row["classification"] == "DOCS"
    assert row["level"] == "LOW"
    assert row["decision"] == "AUTO_FIX"
    assert row["labels"] == ["auto-triage", "docs", "low-risk"]

    artifact = tmp_path / ".autoremedy" / "artifacts" / "issue-7" / "triage-result.json"
    envelope = json.loads(artifact.read_text(encoding="utf-8"))
    assert envelope["success"] is True
    assert envelope["data"]["issue_id"] == 7
    assert not (tmp_path / ".autoremedy" / "outbox" / "state.json").exists()


def test_triage_posts_labels_and_renders_table(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    bot_issue = {"number": 9, "title": "Bump", "author": "renovate[bot]"}
    issue_file = write_issues(tmp_path, [DOCS_ISSUE, bot_issue])

    code = run_cli(["triage", issue_file, "--keyword-only", "--no-color"])

    assert code == 0
    out = capsys.readouterr().out
    assert "Triage:" in out
    assert "#7" in out
    assert "skipped" in out
    assert "autoremedy fix" in out
    tracker = LocalIssueTracker(tmp_path / ".autoremedy" / "outbox")
    assert tracker.labels(7) == ("auto-triage", "docs", "low-risk")
    assert tracker.labels(9) == ()


@pytest.mark.parametrize(
    ("argv_tail", "message"),
    [
        (["--issue", "99"], "issue #99 is not in the issue file"),
        ([], "several issues"),
    ],
)
def test_fix_issue_selection_errors(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], argv_tail: list[str], message: str
) -> None:
    issue_file = write_issues(tmp_path, [DOCS_ISSUE, SECURITY_ISSUE])

    code = run_cli(["fix", issue_file, *argv_tail])

    assert code == 2
    assert message in capsys.readouterr().err


def test_fix_requires_a_triage_artifact(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    issue_file = write_issues(tmp_path, DOCS_ISSUE)

    code = run_cli(["fix", issue_file])

    assert code == 2
    err = capsys.readouterr().err
    assert "Artifact not found" in err
    assert "run `autoremedy triage` first" in err


def test_unreadable_issue_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

    code = run_cli(["triage", str(tmp_path / "broken.json"), "--keyword-only"])

    assert code == 2
    assert "could not read issue file" in capsys.readouterr().err


def test_empty_issue_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    issue_file = write_issues(tmp_path, [])

    assert run_cli(["triage", issue_file, "--keyword-only"]) == 2
    assert "holds no issues" in capsys.readouterr().err


def test_run_stops_at_human_review(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    issue_file = write_issues(tmp_path, SECURITY_ISSUE)

    code = run_cli(["run", issue_file, "--json"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    [row] = payload["triage"]
    assert row["decision"] == "HUMAN_REVIEW_REQUIRED"
    assert row["security_flagged"] is True
    assert payload["remediation"] == []
    tracker = LocalIssueTracker(tmp_path / ".autoremedy" / "outbox")
    assert "human-review-required" in tracker.labels(8)

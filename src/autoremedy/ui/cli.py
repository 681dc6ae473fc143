"""Command-line interface router for autoremedy."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Final

import structlog

from autoremedy.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from autoremedy.constants import TRIAGE_RESULT_FILE
from autoremedy.control_plane import (
    RemediationOutcome,
    RemediationPipeline,
    TriageOutcome,
    TriageService,
    artifacts_for,
)
from autoremedy.domain.errors import ErrorCode, RemediationError
from autoremedy.domain.models import Issue, TriageResult
from autoremedy.integration_plane.tracker import LocalIssueTracker, TrackerError
from autoremedy.observability.logging import configure_logging
from autoremedy.synthesis_plane.providers import build_generator
from autoremedy.triage_plane.classifier import IssueClassifier
from autoremedy.ui.render import CLIRenderer, create_renderer
from autoremedy.utils.concurrency import run_many

_PROVIDER_CODES: Final[frozenset[ErrorCode]] = frozenset(
    {ErrorCode.AI_ERROR, ErrorCode.AI_RATE_LIMIT, ErrorCode.AI_TIMEOUT}
)


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class TriageRow:
    issue_id: int
    outcome: TriageOutcome | None = None
    error: RemediationError | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"issue_id": self.issue_id}
        if self.error is not None:
            payload["status"] = "failed"
            payload["error"] = self.error.to_dict()
            return payload
        assert self.outcome is not None
        if self.outcome.skipped is not None:
            payload["status"] = "skipped"
            payload["reason"] = self.outcome.skipped
            return payload
        assert self.outcome.result is not None
        risk = self.outcome.result.risk
        payload.update(
            {
                "status": "triaged",
                "classification": self.outcome.result.classification.classification.value,
                "level": risk.level.value,
                "score": risk.score,
                "decision": risk.decision.value,
                "security_flagged": risk.security_flagged,
                "labels": list(self.outcome.result.labels),
            }
        )
        return payload


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="autoremedy",
        description=(
            "autoremedy — risk-gated, budget-aware issue remediation.\n\n"
            "Common workflows:\n"
            "  autoremedy triage issue.json     Classify and risk-score an issue\n"
            "  autoremedy fix issue.json        Fix a triaged issue and open a PR\n"
            "  autoremedy run issue.json        Triage, then fix what is safe to fix\n"
            "  autoremedy config                Show the effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo-root",
        default=".",
        help="Repository root directory (default: current working directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./autoremedy.toml if present).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and debug logs.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    common.add_argument("--json", action="store_true", help="Emit JSON output")

    issues = argparse.ArgumentParser(add_help=False)
    issues.add_argument("issue_file", help="JSON file with one issue object or a list of them")
    issues.add_argument(
        "--issue",
        dest="issue_id",
        type=int,
        default=None,
        help="Issue number to process when the file holds several issues.",
    )

    remediation = argparse.ArgumentParser(add_help=False)
    remediation.add_argument(
        "--no-pr",
        action="store_true",
        default=False,
        help="Stop after the validated commit; do not open a pull request.",
    )
    remediation.add_argument(
        "--no-push",
        action="store_true",
        default=False,
        help="Commit locally without pushing the fix branch.",
    )
    remediation.add_argument(
        "--reviewer",
        dest="reviewers",
        action="append",
        default=[],
        help="Request review from this user on non-draft pull requests (repeatable).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # triage --------------------------------------------------------------
    triage_parser = subparsers.add_parser(
        "triage",
        parents=[common, issues],
        help="Classify issues, run the security gate and score risk",
        description=(
            "Triage every issue in the file (or just --issue), apply labels, post the\n"
            "triage comment and write triage-result.json per issue.\n\n"
            "Examples:\n"
            "  autoremedy triage issue.json\n"
            "  autoremedy triage issues.json --issue 42 --json\n"
            "  autoremedy triage issue.json --keyword-only --no-post\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    triage_parser.add_argument(
        "--keyword-only",
        action="store_true",
        default=False,
        help="Classify with keyword rules only; never call the text-generation provider.",
    )
    triage_parser.add_argument(
        "--no-post",
        action="store_true",
        default=False,
        help="Do not write labels or comments back to the tracker.",
    )
    triage_parser.set_defaults(handler=_cmd_triage)

    # fix -----------------------------------------------------------------
    fix_parser = subparsers.add_parser(
        "fix",
        parents=[common, issues, remediation],
        help="Generate, validate and commit a fix for a triaged issue",
        description=(
            "Read triage-result.json for the issue and run the remediation pipeline.\n"
            "Any failure rolls the working tree back and is reported on the issue.\n\n"
            "Examples:\n"
            "  autoremedy fix issue.json\n"
            "  autoremedy fix issues.json --issue 42 --no-push\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    fix_parser.set_defaults(handler=_cmd_fix)

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common, issues, remediation],
        help="Triage issues, then fix the ones that may be fixed automatically",
        description=(
            "Triage runs concurrently (pipeline.max_concurrent_runs); fixes run one at\n"
            "a time because they share the working tree.\n\n"
            "Examples:\n"
            "  autoremedy run issue.json\n"
            "  autoremedy run issues.json --no-pr --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.set_defaults(handler=_cmd_run)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
        description=(
            "Display the effective config after merging defaults, file and env.\n"
            "Sensitive values are redacted.\n\n"
            "Examples:\n"
            "  autoremedy config\n"
            "  autoremedy config --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_triage(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args)
    tracker = _load_tracker(args, config, repo_root)
    issue_ids = _select_issue_ids(tracker, args.issue_id)
    artifacts_dir = _path_from_config(config, ("paths", "artifacts_dir"), repo_root)

    rows = asyncio.run(
        _triage_all(
            tracker,
            _triage_service(tracker, config, keyword_only=_flag(args, "keyword_only")),
            issue_ids,
            artifacts_dir=artifacts_dir,
            post=not _flag(args, "no_post"),
            max_concurrency=int(config["pipeline"]["max_concurrent_runs"]),
        )
    )
    exit_code = 1 if any(row.error is not None for row in rows) else 0

    if _flag(args, "json"):
        _emit_json({"command": "triage", "issues": [row.to_dict() for row in rows]})
        return exit_code

    renderer = _get_renderer(args)
    _render_triage(renderer, rows)
    if exit_code == 0:
        renderer.next_steps([f"autoremedy fix {args.issue_file} --issue <number>"])
    return exit_code


def _cmd_fix(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args, overrides=_remediation_overrides(args))
    tracker = _load_tracker(args, config, repo_root)
    issue_ids = _select_issue_ids(tracker, args.issue_id)
    if len(issue_ids) != 1:
        raise CLIError("the issue file holds several issues; choose one with --issue", 2)
    artifacts_dir = _path_from_config(config, ("paths", "artifacts_dir"), repo_root)

    try:
        triage = artifacts_for(artifacts_dir, issue_ids[0]).load_triage()
    except RemediationError as exc:
        raise CLIError(f"{exc.message}; run `autoremedy triage` first", exit_code=2) from exc

    pipeline = _remediation_pipeline(args, config, repo_root, tracker)
    outcome = asyncio.run(
        _remediate_one(pipeline, tracker, issue_ids[0], triage, open_pr=not _flag(args, "no_pr"))
    )
    exit_code = _exit_code_for(outcome.error)

    if _flag(args, "json"):
        _emit_json({"command": "fix", "outcome": outcome.to_dict()})
        return exit_code

    renderer = _get_renderer(args)
    _render_outcome(renderer, outcome)
    return exit_code


def _cmd_run(args: argparse.Namespace) -> int:
    repo_root = _repo_root(args)
    config = _load_effective_config(args, overrides=_remediation_overrides(args))
    tracker = _load_tracker(args, config, repo_root)
    issue_ids = _select_issue_ids(tracker, args.issue_id)
    artifacts_dir = _path_from_config(config, ("paths", "artifacts_dir"), repo_root)
    pipeline = _remediation_pipeline(args, config, repo_root, tracker)

    rows, outcomes = asyncio.run(
        _run_all(
            tracker,
            _triage_service(tracker, config, keyword_only=False),
            pipeline,
            issue_ids,
            artifacts_dir=artifacts_dir,
            open_pr=not _flag(args, "no_pr"),
            max_concurrency=int(config["pipeline"]["max_concurrent_runs"]),
        )
    )
    exit_code = 0
    for row in rows:
        if row.error is not None:
            exit_code = exit_code or _exit_code_for(row.error)
    for outcome in outcomes:
        exit_code = exit_code or _exit_code_for(outcome.error)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "run",
                "triage": [row.to_dict() for row in rows],
                "remediation": [outcome.to_dict() for outcome in outcomes],
            }
        )
        return exit_code

    renderer = _get_renderer(args)
    _render_triage(renderer, rows)
    for outcome in outcomes:
        renderer.section(f"Issue #{outcome.issue_id}:")
        _render_outcome(renderer, outcome)
    return exit_code


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    dumped = dump_effective_config(config)

    if _flag(args, "json"):
        _emit_json({"command": "config", "config": json.loads(dumped)})
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Config file", _optional_str(getattr(args, "config_path", None)) or "(default)")
    renderer.text(dumped)
    return 0


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def _triage_all(
    tracker: LocalIssueTracker,
    service: TriageService,
    issue_ids: Sequence[int],
    *,
    artifacts_dir: Path,
    post: bool,
    max_concurrency: int,
) -> list[TriageRow]:
    async def _one(issue_id: int) -> TriageRow:
        store = artifacts_for(artifacts_dir, issue_id)
        try:
            issue = await _get_issue(tracker, issue_id)
            outcome = await service.triage(issue, post=post)
        except RemediationError as exc:
            store.write_failure(TRIAGE_RESULT_FILE, exc)
            return TriageRow(issue_id, error=exc)
        if outcome.result is not None:
            store.write_success(TRIAGE_RESULT_FILE, outcome.result.to_dict())
        return TriageRow(issue_id, outcome=outcome)

    results = await run_many(
        [partial(_one, issue_id) for issue_id in issue_ids],
        max_concurrency=max_concurrency,
    )
    rows: list[TriageRow] = []
    for result in results:
        if isinstance(result, BaseException):
            raise result
        rows.append(result)
    return rows


async def _run_all(
    tracker: LocalIssueTracker,
    service: TriageService,
    pipeline: RemediationPipeline,
    issue_ids: Sequence[int],
    *,
    artifacts_dir: Path,
    open_pr: bool,
    max_concurrency: int,
) -> tuple[list[TriageRow], list[RemediationOutcome]]:
    rows = await _triage_all(
        tracker,
        service,
        issue_ids,
        artifacts_dir=artifacts_dir,
        post=True,
        max_concurrency=max_concurrency,
    )
    outcomes: list[RemediationOutcome] = []
    for row in rows:
        if row.outcome is None or row.outcome.result is None or not row.outcome.proceeds:
            continue
        outcomes.append(
            await _remediate_one(
                pipeline, tracker, row.issue_id, row.outcome.result, open_pr=open_pr
            )
        )
    return rows, outcomes


async def _remediate_one(
    pipeline: RemediationPipeline,
    tracker: LocalIssueTracker,
    issue_id: int,
    triage: TriageResult,
    *,
    open_pr: bool,
) -> RemediationOutcome:
    try:
        issue = await _get_issue(tracker, issue_id)
    except RemediationError as exc:
        raise CLIError(exc.message, exit_code=2) from exc
    if open_pr:
        return await pipeline.remediate(issue, triage)
    return await pipeline.fix(issue, triage)


async def _get_issue(tracker: LocalIssueTracker, issue_id: int) -> Issue:
    try:
        return await tracker.get_issue(issue_id)
    except TrackerError as exc:
        raise RemediationError(ErrorCode.TRACKER_ERROR, str(exc)) from exc


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    no_color = _flag(args, "no_color")
    verbose = _flag(args, "verbose")
    return create_renderer(no_color=no_color, verbose=verbose)


def _render_triage(renderer: CLIRenderer, rows: Sequence[TriageRow]) -> None:
    table: list[list[str]] = []
    for row in rows:
        payload = row.to_dict()
        status = str(payload["status"])
        if status == "triaged":
            detail = f"{payload['decision']} ({payload['level']}, score {payload['score']})"
            table.append([f"#{row.issue_id}", status, str(payload["classification"]), detail])
        elif status == "skipped":
            table.append([f"#{row.issue_id}", status, "-", str(payload["reason"])])
        else:
            assert row.error is not None
            reason = f"{row.error.code}: {row.error.message}"
            table.append([f"#{row.issue_id}", status, "-", reason])
    renderer.table(["Issue", "Status", "Classification", "Result"], table, title="Triage:")


def _render_outcome(renderer: CLIRenderer, outcome: RemediationOutcome) -> None:
    if outcome.error is not None:
        renderer.fail(f"{outcome.error.code}: {outcome.error.message}")
        renderer.kv("Rolled back", str(outcome.rolled_back).lower())
        return
    if outcome.commit is not None:
        renderer.ok(f"committed {outcome.commit.sha[:7]} on {outcome.commit.branch}")
        renderer.kv("Files", ", ".join(outcome.commit.files_changed))
        renderer.kv("Pushed", str(outcome.commit.pushed).lower())
    for item in outcome.validation:
        renderer.ok(f"{item.command} ({item.duration_ms} ms)")
    if outcome.pull_request is not None:
        record = outcome.pull_request
        state = "draft" if record.draft else "ready for review"
        verb = "reused" if record.reused else "opened"
        renderer.ok(f"pull request #{record.number} {verb} ({state})")
        if record.url:
            renderer.kv("Pull request", record.url)
    if outcome.warnings and renderer.verbose:
        renderer.section("Architecture warnings:")
        renderer.items(list(outcome.warnings))
    elif outcome.warnings:
        renderer.warning(f"{len(outcome.warnings)} architecture warning(s); rerun with -v")


# ---------------------------------------------------------------------------
# Helpers — config, paths, wiring
# ---------------------------------------------------------------------------


def _repo_root(args: argparse.Namespace) -> Path:
    raw = _require_str(getattr(args, "repo_root", None), "repo_root")
    candidate = Path(raw).expanduser().resolve()
    if not candidate.exists() or not candidate.is_dir():
        raise CLIError(f"repo root is not a directory: {candidate}", exit_code=2)
    return candidate


def _load_effective_config(
    args: argparse.Namespace, *, overrides: Mapping[str, object] | None = None
) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    try:
        config = load_config(config_path, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    observability = config["observability"]
    level = "DEBUG" if _flag(args, "verbose") else str(observability["log_level"])
    configure_logging(level, str(observability["log_format"]), stream=sys.stderr)
    return config


def _remediation_overrides(args: argparse.Namespace) -> dict[str, object]:
    return {"pipeline.push": False} if _flag(args, "no_push") else {}


def _path_from_config(
    config: Mapping[str, Any], field_path: tuple[str, ...], repo_root: Path
) -> Path:
    cursor: Any = config
    for part in field_path:
        cursor = cursor[part]
    path = Path(str(cursor)).expanduser()
    return path if path.is_absolute() else (repo_root / path).resolve()


def _load_tracker(
    args: argparse.Namespace, config: Mapping[str, Any], repo_root: Path
) -> LocalIssueTracker:
    issue_file = Path(_require_str(getattr(args, "issue_file", None), "issue_file")).expanduser()
    outbox_dir = _path_from_config(config, ("paths", "outbox_dir"), repo_root)
    try:
        return LocalIssueTracker.from_issue_file(outbox_dir, issue_file)
    except TrackerError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _select_issue_ids(tracker: LocalIssueTracker, issue_id: int | None) -> tuple[int, ...]:
    available = tracker.issue_ids
    if not available:
        raise CLIError("the issue file holds no issues", exit_code=2)
    if issue_id is None:
        return available
    if issue_id not in available:
        raise CLIError(f"issue #{issue_id} is not in the issue file", exit_code=2)
    return (issue_id,)


def _triage_service(
    tracker: LocalIssueTracker, config: Mapping[str, Any], *, keyword_only: bool
) -> TriageService:
    logger = structlog.get_logger("autoremedy.triage")
    generator = None if keyword_only else build_generator(config["provider"], logger=logger)
    return TriageService(
        tracker,
        IssueClassifier(generator=generator, logger=logger),
        provider_timeout_seconds=float(config["provider"]["timeout_seconds"]),
        tracker_timeout_seconds=float(config["pipeline"]["tracker_timeout_seconds"]),
        logger=logger,
    )


def _remediation_pipeline(
    args: argparse.Namespace,
    config: Mapping[str, Any],
    repo_root: Path,
    tracker: LocalIssueTracker,
) -> RemediationPipeline:
    logger = structlog.get_logger("autoremedy.remediation")
    return RemediationPipeline.from_config(
        config,
        root=repo_root,
        tracker=tracker,
        generator=build_generator(config["provider"], logger=logger),
        reviewers=tuple(getattr(args, "reviewers", ()) or ()),
        logger=logger,
    )


def _exit_code_for(error: RemediationError | None) -> int:
    if error is None:
        return 0
    if error.code is ErrorCode.CONFIG_ERROR:
        return 2
    if error.code in _PROVIDER_CODES:
        return 3
    return 1


# ---------------------------------------------------------------------------
# Helpers — argument coercion
# ---------------------------------------------------------------------------


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CLIError(f"missing required argument: {name}", exit_code=2)
    return value


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]

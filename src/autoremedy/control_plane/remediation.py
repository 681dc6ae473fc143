"""
autoremedy — remediation pipeline

File: src/autoremedy/control_plane/remediation.py

Purpose
- Drive one triaged issue from project analysis to a committed, validated fix
  and its pull request.

What should be included in this file
- ``RemediationPipeline`` wiring analyzer, discovery, prompt builder, text
  generation, architecture validation, file changes, validation commands and
  the commit pipeline.
- Whole-run deadline with per-call timeouts on every external call.
- Rollback of the working tree and branch on any failure after branch
  acquisition; failure reporting and artifacts for every outcome.

Functional requirements
- Only AUTO_FIX and DRAFT_PR decisions reach generation.
- Discovered and proposed paths pass the security gate before they are read
  or written.
- Architecture ERRORs block before anything is written to disk.
- No failure leaves a commit on the fix branch.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from autoremedy.config.schema import default_config
from autoremedy.constants import COMMIT_RESULT_FILE, FIX_PLAN_FILE, PR_RESULT_FILE
from autoremedy.control_plane.artifacts import ArtifactStore, artifacts_for
from autoremedy.control_plane.calls import provider_call, tracker_call
from autoremedy.control_plane.error_reporter import ErrorReporter
from autoremedy.domain.errors import ErrorCode, RemediationError, error_code_for
from autoremedy.domain.models import (
    CommitRecord,
    Issue,
    PullRequestRecord,
    TriageResult,
    ValidationOutcome,
)
from autoremedy.integration_plane.commit_pipeline import CommitPipeline, commit_message
from autoremedy.integration_plane.file_changes import (
    ApplyReport,
    FileChangeHandler,
    HallucinationThresholds,
)
from autoremedy.integration_plane.git_engine import GitEngine
from autoremedy.integration_plane.pull_requests import PullRequestPublisher, success_comment
from autoremedy.knowledge_plane.file_discovery import DiscoveryWeights, FileDiscovery
from autoremedy.knowledge_plane.project_analyzer import ProjectAnalyzer, ToolCommands
from autoremedy.knowledge_plane.repository import LocalRepository
from autoremedy.knowledge_plane.spec_parser import SpecDocumentParser
from autoremedy.observability.logging import run_context
from autoremedy.synthesis_plane.edit_plan import EditPlan, parse_edit_plan
from autoremedy.synthesis_plane.prompt_builder import PromptBuilder
from autoremedy.synthesis_plane.tokens import BudgetExceededError, limits_for
from autoremedy.triage_plane.security_gate import SecurityGate
from autoremedy.utils.concurrency import Clock, Deadline, run_with_timeout
from autoremedy.verification_plane.architecture import FileUnderReview, build_validator
from autoremedy.verification_plane.executor import LocalSubprocessExecutor
from autoremedy.verification_plane.validation_runner import ValidationCommands, ValidationRunner

if TYPE_CHECKING:
    from autoremedy.integration_plane.git_engine import BranchResult
    from autoremedy.integration_plane.tracker import IssueTracker
    from autoremedy.knowledge_plane.project_analyzer import ProjectContext
    from autoremedy.synthesis_plane.prompt_templates import PromptTemplateEngine
    from autoremedy.synthesis_plane.providers.base import TextGenerator
    from autoremedy.verification_plane.executor import CommandExecutor


@dataclass(frozen=True, slots=True)
class RemediationOutcome:
    issue_id: int
    plan: EditPlan | None = None
    commit: CommitRecord | None = None
    pull_request: PullRequestRecord | None = None
    validation: tuple[ValidationOutcome, ...] = ()
    warnings: tuple[str, ...] = ()
    error: RemediationError | None = None
    rolled_back: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, object]:
        return {
            "issue_id": self.issue_id,
            "success": self.success,
            "plan": self.plan.to_dict() if self.plan is not None else None,
            "commit": self.commit.to_dict() if self.commit is not None else None,
            "pull_request": (
                self.pull_request.to_dict() if self.pull_request is not None else None
            ),
            "validation": [outcome.to_dict() for outcome in self.validation],
            "warnings": list(self.warnings),
            "error": self.error.to_dict() if self.error is not None else None,
            "rolled_back": self.rolled_back,
        }


@dataclass(slots=True)
class _RunState:
    artifact: str = FIX_PLAN_FILE
    plan: EditPlan | None = None
    branch: BranchResult | None = None
    report: ApplyReport | None = None
    created_paths: tuple[str, ...] = ()
    validation: tuple[ValidationOutcome, ...] = ()
    warnings: tuple[str, ...] = ()
    commit: CommitRecord | None = None


@dataclass(frozen=True, slots=True)
class _Workspace:
    repository: LocalRepository
    context: ProjectContext


class RemediationPipeline:
    """One issue, one branch, one commit; everything else is rolled back."""

    def __init__(
        self,
        root: Path | str,
        tracker: IssueTracker,
        generator: TextGenerator,
        commits: CommitPipeline,
        *,
        config: Mapping[str, Any] | None = None,
        executor: CommandExecutor | None = None,
        artifacts_dir: Path | str | None = None,
        gate: SecurityGate | None = None,
        templates: PromptTemplateEngine | None = None,
        reviewers: Sequence[str] = (),
        clock: Clock = time.monotonic,
        logger: Any | None = None,
    ) -> None:
        self._root = Path(root).resolve()
        self._config: Mapping[str, Any] = config if config is not None else default_config()
        self._tracker = tracker
        self._generator = generator
        self._commits = commits
        self._executor = executor if executor is not None else LocalSubprocessExecutor()
        self._gate = gate if gate is not None else SecurityGate()
        self._templates = templates
        self._clock = clock
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

        directory = Path(
            artifacts_dir if artifacts_dir is not None else self._config["paths"]["artifacts_dir"]
        )
        self._artifacts_dir = directory if directory.is_absolute() else self._root / directory

        pipeline = self._config["pipeline"]
        self._tracker_timeout = float(pipeline["tracker_timeout_seconds"])
        self._provider_timeout = float(self._config["provider"]["timeout_seconds"])
        self._limits = limits_for(self._config["provider"]["profile"])
        self._reporter = ErrorReporter(
            tracker, timeout_seconds=self._tracker_timeout, logger=logger
        )
        self._publisher = PullRequestPublisher(tracker, reviewers=reviewers, logger=logger)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        root: Path | str,
        tracker: IssueTracker,
        generator: TextGenerator,
        executor: CommandExecutor | None = None,
        reviewers: Sequence[str] = (),
        logger: Any | None = None,
    ) -> RemediationPipeline:
        pipeline = config["pipeline"]
        engine = GitEngine(
            root,
            main_branch=pipeline["default_branch"],
            remote=pipeline["remote"],
            timeout_seconds=float(pipeline["git_timeout_seconds"]),
            author_name=pipeline["author_name"],
            author_email=pipeline["author_email"],
        )
        commits = CommitPipeline(engine, push=bool(pipeline["push"]), logger=logger)
        return cls(
            root,
            tracker,
            generator,
            commits,
            config=config,
            executor=executor,
            reviewers=reviewers,
            logger=logger,
        )

    def artifacts_for(self, issue_id: int) -> ArtifactStore:
        return artifacts_for(self._artifacts_dir, issue_id, logger=self._logger)

    def new_deadline(self) -> Deadline:
        return Deadline(float(self._config["pipeline"]["run_timeout_seconds"]), clock=self._clock)

    async def remediate(
        self, issue: Issue, triage: TriageResult, *, deadline: Deadline | None = None
    ) -> RemediationOutcome:
        """Fix, then open (or reuse) the pull request for the fix branch."""

        deadline = deadline if deadline is not None else self.new_deadline()
        outcome = await self.fix(issue, triage, deadline=deadline)
        if not outcome.success:
            return outcome
        return await self.open_pull_request(issue, triage, outcome, deadline=deadline)

    async def fix(
        self, issue: Issue, triage: TriageResult, *, deadline: Deadline | None = None
    ) -> RemediationOutcome:
        deadline = deadline if deadline is not None else self.new_deadline()
        state = _RunState()
        artifacts = self.artifacts_for(issue.id)
        with run_context(issue_id=issue.id, run_id=uuid.uuid4().hex[:12], stage="fix"):
            try:
                await self._fix(issue, triage, deadline, state, artifacts)
            except Exception as exc:  # noqa: BLE001
                error = _as_remediation_error(exc)
                rolled_back = await self._rollback(state)
                artifacts.write_failure(state.artifact, error)
                await self._reporter.report(issue.id, error, rolled_back=rolled_back)
                return RemediationOutcome(
                    issue_id=issue.id,
                    plan=state.plan,
                    validation=state.validation,
                    warnings=state.warnings,
                    error=error,
                    rolled_back=rolled_back,
                )

        self._logger.info(
            "remediation_committed",
            issue_id=issue.id,
            branch=state.commit.branch if state.commit else None,
            sha=state.commit.sha if state.commit else None,
        )
        return RemediationOutcome(
            issue_id=issue.id,
            plan=state.plan,
            commit=state.commit,
            validation=state.validation,
            warnings=state.warnings,
        )

    async def open_pull_request(
        self,
        issue: Issue,
        triage: TriageResult,
        outcome: RemediationOutcome,
        *,
        deadline: Deadline | None = None,
    ) -> RemediationOutcome:
        """Publish the committed fix; a failure here is reported but not rolled back."""

        artifacts = self.artifacts_for(issue.id)
        if outcome.commit is None:
            raise ValueError("open_pull_request requires a committed outcome")
        with run_context(issue_id=issue.id, stage="pull_request"):
            try:
                record = await tracker_call(
                    self._publisher.publish(
                        issue,
                        triage,
                        outcome.commit,
                        base=self._commits.default_branch,
                        validation=outcome.validation,
                    ),
                    self._tracker_timeout,
                    operation="publish pull request",
                    deadline=deadline,
                )
                await tracker_call(
                    self._tracker.post_comment(issue.id, success_comment(record)),
                    self._tracker_timeout,
                    operation="post success comment",
                    deadline=deadline,
                )
            except Exception as exc:  # noqa: BLE001
                error = _as_remediation_error(exc)
                artifacts.write_failure(PR_RESULT_FILE, error)
                await self._reporter.report(issue.id, error, rolled_back=False)
                return _replace_outcome(outcome, error=error)

        artifacts.write_success(PR_RESULT_FILE, record.to_dict())
        return _replace_outcome(outcome, pull_request=record)

    # --- stages ---

    async def _fix(
        self,
        issue: Issue,
        triage: TriageResult,
        deadline: Deadline,
        state: _RunState,
        artifacts: ArtifactStore,
    ) -> None:
        if triage.issue_id != issue.id:
            raise RemediationError(
                ErrorCode.INVALID_INPUT,
                f"Triage result is for issue #{triage.issue_id}, not #{issue.id}",
            )
        risk = triage.risk
        if not risk.proceeds:
            raise RemediationError(
                ErrorCode.NOT_AUTO_FIX,
                f"Triage decision is {risk.decision.value}; automatic fixing is not allowed",
                details={
                    "decision": risk.decision.value,
                    "level": risk.level.value,
                    "security_flagged": risk.security_flagged,
                },
            )
        classification = triage.classification.classification

        deadline.check("project analysis")
        workspace = self._analyze()
        discovery = await provider_call(
            self._discovery(workspace).discover(
                issue, hints=triage.affected_files, classification=classification
            ),
            self._provider_timeout,
            operation="file discovery",
            deadline=deadline,
        )
        if discovery.empty:
            raise RemediationError(
                ErrorCode.NO_FILES_FOUND,
                "Could not identify files to modify",
                details={"candidates_found": discovery.candidates_found},
            )
        self._check_paths(discovery.paths, stage="discovery")

        files: list[tuple[str, str]] = []
        for path in discovery.paths:
            content = workspace.repository.read_text(path)
            if content is not None:
                files.append((path, content))
        try:
            built = PromptBuilder(
                self._limits, templates=self._templates, logger=self._logger
            ).build(
                issue,
                workspace.context,
                files,
                classification=classification,
                risk_level=risk.level,
            )
        except BudgetExceededError as exc:
            raise RemediationError(
                ErrorCode.INVALID_INPUT, f"Issue does not fit the provider budget: {exc}"
            ) from exc

        response = await provider_call(
            self._generator.generate(
                built.prompt,
                temperature=float(self._config["provider"]["temperature"]),
                max_tokens=self._limits.max_output_tokens,
            ),
            self._provider_timeout,
            operation="edit plan generation",
            deadline=deadline,
        )
        plan = parse_edit_plan(response)
        self._check_paths(plan.paths, stage="edit plan")
        state.plan = plan
        artifacts.write_success(
            FIX_PLAN_FILE,
            {
                "issue_id": issue.id,
                "plan": plan.to_dict(),
                "prompt": built.to_dict(),
                "discovery": [candidate.to_dict() for candidate in discovery.files],
            },
        )

        state.artifact = COMMIT_RESULT_FILE
        state.branch = await self._commits.acquire_branch(
            issue, classification, deadline=deadline
        )
        handler = self._handler()
        prepared = handler.prepare(plan.changes)
        state.created_paths = tuple(change.path for change in prepared if change.created)

        validator = build_validator(
            workspace.context,
            rules_yaml=self._rules_yaml(),
            disabled_rules=self._config["architecture"]["disabled_rules"],
            logger=self._logger,
        )
        report = validator.ensure_valid(
            [
                FileUnderReview(change.path, change.content, change.original)
                for change in prepared
                if change.changed
            ]
        )
        state.warnings = tuple(
            f"{item.path}: {item.message}" for item in (*report.warnings, *report.infos)
        )

        state.report = handler.write(prepared)
        runner = ValidationRunner(
            self._executor,
            self._validation_commands(workspace.context),
            cwd=self._root,
            timeout_seconds=float(self._config["validation"]["command_timeout_seconds"]),
            output_limit=int(self._config["validation"]["output_limit_chars"]),
            logger=self._logger,
        )
        state.validation = await run_with_timeout(
            runner.run(state.report.paths, risk.level),
            deadline.total_seconds,
            operation="validation",
            deadline=deadline,
        )

        message = commit_message(issue, classification, plan.commit_message)
        state.commit = await self._commits.commit(
            state.branch, state.report.paths, message, deadline=deadline
        )
        artifacts.write_success(
            COMMIT_RESULT_FILE,
            {
                "issue_id": issue.id,
                "commit": state.commit.to_dict(),
                "changes": state.report.to_dict(),
                "validation": [outcome.to_dict() for outcome in state.validation],
                "warnings": list(state.warnings),
            },
        )

    async def _rollback(self, state: _RunState) -> bool:
        if state.branch is None and state.report is None:
            return False
        if state.report is not None:
            try:
                self._handler().rollback(state.report)
            except (OSError, RemediationError) as exc:
                self._logger.error("file_rollback_failed", error=str(exc))
        await self._commits.rollback(state.branch, created_paths=state.created_paths)
        return True

    # --- wiring ---

    def _analyze(self) -> _Workspace:
        discovery = self._config["discovery"]
        architecture = self._config["architecture"]
        repository = LocalRepository(
            self._root,
            exclude_dirs=discovery["exclude_dirs"],
            max_depth=int(discovery["search_depth"]),
        )
        analyzer = ProjectAnalyzer(
            repository,
            framework=architecture["framework"],
            spec_parser=SpecDocumentParser(
                extra_paths=architecture["spec_paths"], logger=self._logger
            ),
            logger=self._logger,
        )
        return _Workspace(repository=repository, context=analyzer.analyze())

    def _discovery(self, workspace: _Workspace) -> FileDiscovery:
        section = self._config["discovery"]
        return FileDiscovery(
            workspace.context,
            workspace.repository,
            weights=DiscoveryWeights.from_mapping(section["weights"]),
            max_files=int(section["max_files"]),
            max_file_size=int(section["max_file_size"]),
            max_total_context=int(section["max_total_context"]),
            token_limit=self._limits.file_token_budget,
            estimator=self._limits.estimator(),
            generator=self._generator,
            templates=self._templates,
            logger=self._logger,
        )

    def _handler(self) -> FileChangeHandler:
        section = self._config["file_changes"]
        return FileChangeHandler(
            self._root,
            thresholds=HallucinationThresholds.from_config(section),
            write_backups=bool(section["write_backups"]),
            logger=self._logger,
        )

    def _validation_commands(self, context: ProjectContext) -> ValidationCommands:
        section = self._config["validation"]
        detected = context.commands if section["detect_commands"] else ToolCommands()
        return ValidationCommands(
            lint=section["lint_command"] or detected.lint,
            typecheck=section["typecheck_command"] or detected.typecheck,
            build=section["build_command"] or detected.build,
        )

    def _rules_yaml(self) -> str | None:
        rules_file = self._config["architecture"]["rules_file"]
        if not rules_file:
            return None
        path = Path(rules_file)
        if not path.is_absolute():
            path = self._root / path
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise RemediationError(
                ErrorCode.CONFIG_ERROR, f"Could not read architecture rules file {path}: {exc}"
            ) from exc

    def _check_paths(self, paths: Sequence[str], *, stage: str) -> None:
        blocked = [path for path in paths if self._gate.is_sensitive_path(path)]
        if blocked:
            raise RemediationError(
                ErrorCode.SECURITY_VIOLATION,
                f"{stage} includes security-sensitive paths",
                details={"stage": stage, "paths": blocked},
            )


def _as_remediation_error(exc: Exception) -> RemediationError:
    if isinstance(exc, RemediationError):
        return exc
    return RemediationError(
        error_code_for(exc),
        str(exc) or exc.__class__.__name__,
        details={"exception": exc.__class__.__name__},
    )


def _replace_outcome(outcome: RemediationOutcome, **changes: Any) -> RemediationOutcome:
    values = {name: getattr(outcome, name) for name in RemediationOutcome.__dataclass_fields__}
    values.update(changes)
    return RemediationOutcome(**values)


__all__ = ["RemediationOutcome", "RemediationPipeline"]

"""Dataclass domain models with strict validation and canonical serialization."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum, StrEnum
from pathlib import PurePosixPath
from typing import NoReturn, TypeVar, cast

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TModel = TypeVar("TModel", bound="CanonicalModel")
TEnum = TypeVar("TEnum", bound=Enum)

_MAX_TEXT = 65_536
_MAX_COLLECTION = 512

MAX_RISK_SCORE = 100
AUTO_FIX_MAX_FILES = 3


class Classification(StrEnum):
    BUG = "BUG"
    FEATURE = "FEATURE"
    DOCS = "DOCS"
    CHORE = "CHORE"
    OTHER = "OTHER"


class RiskLevel(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Decision(StrEnum):
    AUTO_FIX = "AUTO_FIX"
    DRAFT_PR = "DRAFT_PR"
    HUMAN_REVIEW_REQUIRED = "HUMAN_REVIEW_REQUIRED"


class CanonicalModel:
    """Mixin for canonical dict/json serialization."""

    def to_dict(self) -> dict[str, JSONValue]:
        serialized = _serialize_value(self, self.__class__.__name__)
        if not isinstance(serialized, dict):
            _fail(self.__class__.__name__, "serialized model must be an object")
        return serialized

    def to_json(self) -> str:
        return _canonical_json(self.to_dict())

    @classmethod
    def from_json(cls: type[TModel], raw: str) -> TModel:
        if not isinstance(raw, str):
            _fail(cls.__name__, f"expected JSON string, got {type(raw).__name__}")
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            _fail(cls.__name__, f"invalid JSON: {exc}")
        if not isinstance(parsed, dict):
            _fail(cls.__name__, "JSON root must be an object")
        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls: type[TModel], data: Mapping[str, object]) -> TModel:
        _fail(cls.__name__, "from_dict is not implemented for this model type")


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str] | None = None,
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item

    allowed = required | (optional or set())
    unknown = sorted(key for key in parsed if key not in allowed)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in parsed)
    if missing:
        _fail(path, f"missing required fields: {missing}")

    return parsed


def _as_str(
    value: object,
    path: str,
    *,
    min_len: int = 1,
    max_len: int = _MAX_TEXT,
    strip: bool = True,
) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip() if strip else value
    if len(normalized) < min_len:
        _fail(path, f"must be at least {min_len} character(s)")
    if len(normalized) > max_len:
        _fail(path, f"must be <= {max_len} characters")
    return normalized


def _as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_int(
    value: object,
    path: str,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    if maximum is not None and value > maximum:
        _fail(path, f"must be <= {maximum}")
    return value


def _as_float(
    value: object,
    path: str,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        _fail(path, "must be finite")
    if minimum is not None and parsed < minimum:
        _fail(path, f"must be >= {minimum}")
    if maximum is not None and parsed > maximum:
        _fail(path, f"must be <= {maximum}")
    return parsed


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(str(item.value) for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _as_sequence(value: object, path: str) -> list[object]:
    if isinstance(value, (list, tuple)):
        return list(value)
    _fail(path, f"expected array, got {type(value).__name__}")


def _as_str_tuple(value: object, path: str, *, unique: bool = False) -> tuple[str, ...]:
    values = _as_sequence(value, path)
    if len(values) > _MAX_COLLECTION:
        _fail(path, f"too many items (>{_MAX_COLLECTION})")
    parsed = tuple(_as_str(item, f"{path}[{index}]") for index, item in enumerate(values))
    if unique and len(set(parsed)) != len(parsed):
        _fail(path, "contains duplicate values")
    return parsed


def as_relative_path(value: object, path: str) -> str:
    """Validate a repository-relative POSIX path (no absolute roots, no traversal)."""

    parsed = _as_str(value, path, max_len=1024)
    if "\x00" in parsed:
        _fail(path, "must not contain NUL bytes")
    pure = PurePosixPath(parsed.replace("\\", "/"))
    if pure.is_absolute():
        _fail(path, "must be a relative POSIX path")
    if any(part == ".." for part in pure.parts):
        _fail(path, "must not contain '..' traversal")
    normalized = pure.as_posix()
    if normalized in {"", "."}:
        _fail(path, "must name a file")
    return normalized


def _serialize_value(value: object, path: str) -> JSONValue:
    if value is None or isinstance(value, bool):
        return cast("JSONValue", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, str):
        return value
    if isinstance(value, Enum):
        raw = value.value
        if not isinstance(raw, str):
            _fail(path, "enum value must be string")
        return raw
    if isinstance(value, (tuple, list)):
        return [_serialize_value(item, f"{path}[]") for item in value]
    if isinstance(value, Mapping):
        out: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, "dict keys must be strings")
            out[key] = _serialize_value(item, f"{path}.{key}")
        return out
    if is_dataclass(value):
        out_obj: dict[str, JSONValue] = {}
        for dataclass_field in fields(value):
            out_obj[dataclass_field.name] = _serialize_value(
                getattr(value, dataclass_field.name),
                f"{path}.{dataclass_field.name}",
            )
        return out_obj

    _fail(path, f"cannot serialize value of type {type(value).__name__}")


def expected_decision(*, level: RiskLevel, security_flagged: bool, file_count: int) -> Decision:
    """Decision matrix shared by the risk assessor and model validation."""

    if security_flagged or level is RiskLevel.HIGH:
        return Decision.HUMAN_REVIEW_REQUIRED
    if level is RiskLevel.MEDIUM:
        return Decision.DRAFT_PR
    if level is RiskLevel.LOW and file_count <= AUTO_FIX_MAX_FILES:
        return Decision.AUTO_FIX
    return Decision.HUMAN_REVIEW_REQUIRED


@dataclass(frozen=True, slots=True)
class Issue(CanonicalModel):
    """Immutable issue report handed to a remediation run."""

    id: int
    title: str
    body: str = ""
    labels: tuple[str, ...] = ()
    author: str = ""
    author_type: str = "User"

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_int(self.id, "Issue.id", minimum=1))
        object.__setattr__(self, "title", _as_str(self.title, "Issue.title"))
        object.__setattr__(self, "body", _as_str(self.body or "", "Issue.body", min_len=0))
        object.__setattr__(self, "labels", _as_str_tuple(self.labels, "Issue.labels"))
        object.__setattr__(self, "author", _as_str(self.author, "Issue.author", min_len=0))
        object.__setattr__(
            self, "author_type", _as_str(self.author_type, "Issue.author_type", min_len=0)
        )

    @property
    def text(self) -> str:
        """Title and body joined for pattern matching."""

        return f"{self.title}\n{self.body}"

    def has_label(self, name: str) -> bool:
        wanted = name.lower()
        return any(label.lower() == wanted for label in self.labels)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Issue:
        parsed = _expect_object(
            data,
            "Issue",
            required={"id", "title"},
            optional={"body", "labels", "author", "author_type"},
        )
        return cls(
            id=_as_int(parsed["id"], "Issue.id", minimum=1),
            title=_as_str(parsed["title"], "Issue.title"),
            body=_as_str(parsed.get("body") or "", "Issue.body", min_len=0),
            labels=_as_str_tuple(parsed.get("labels", ()), "Issue.labels"),
            author=_as_str(parsed.get("author", ""), "Issue.author", min_len=0),
            author_type=_as_str(parsed.get("author_type", "User"), "Issue.author_type", min_len=0),
        )

    @classmethod
    def from_tracker_payload(cls, data: Mapping[str, object]) -> Issue:
        """Build an issue from a hosting-platform payload (``number``, ``user``, label objects)."""

        if "number" not in data and "id" not in data:
            _fail("Issue", "payload must carry 'number' or 'id'")
        raw_id = data.get("number", data.get("id"))

        labels: list[str] = []
        for index, label in enumerate(_as_sequence(data.get("labels") or [], "Issue.labels")):
            if isinstance(label, Mapping):
                labels.append(_as_str(label.get("name"), f"Issue.labels[{index}].name"))
            else:
                labels.append(_as_str(label, f"Issue.labels[{index}]"))

        author = ""
        author_type = "User"
        user = data.get("user")
        if isinstance(user, Mapping):
            login = user.get("login")
            author = login if isinstance(login, str) else ""
            kind = user.get("type")
            author_type = kind if isinstance(kind, str) and kind else "User"
        elif isinstance(data.get("author"), str):
            author = cast("str", data["author"])

        raw_body = data.get("body")
        return cls(
            id=_as_int(raw_id, "Issue.id", minimum=1),
            title=_as_str(data.get("title"), "Issue.title"),
            body=raw_body if isinstance(raw_body, str) else "",
            labels=tuple(labels),
            author=author,
            author_type=author_type,
        )


@dataclass(frozen=True, slots=True)
class ClassificationResult(CanonicalModel):
    classification: Classification
    confidence: float
    reasoning: str
    method: str = "keyword"

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "classification",
            _as_enum(Classification, self.classification, "ClassificationResult.classification"),
        )
        object.__setattr__(
            self,
            "confidence",
            _as_float(
                self.confidence, "ClassificationResult.confidence", minimum=0.0, maximum=1.0
            ),
        )
        object.__setattr__(
            self, "reasoning", _as_str(self.reasoning, "ClassificationResult.reasoning", min_len=0)
        )
        object.__setattr__(self, "method", _as_str(self.method, "ClassificationResult.method"))

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ClassificationResult:
        parsed = _expect_object(
            data,
            "ClassificationResult",
            required={"classification", "confidence"},
            optional={"reasoning", "method"},
        )
        return cls(
            classification=_as_enum(
                Classification, parsed["classification"], "ClassificationResult.classification"
            ),
            confidence=_as_float(parsed["confidence"], "ClassificationResult.confidence"),
            reasoning=_as_str(
                parsed.get("reasoning", ""), "ClassificationResult.reasoning", min_len=0
            ),
            method=_as_str(parsed.get("method", "keyword"), "ClassificationResult.method"),
        )


@dataclass(frozen=True, slots=True)
class SecurityReport(CanonicalModel):
    """Outcome of the security gate over issue text and candidate paths."""

    keyword_matches: tuple[str, ...] = ()
    path_matches: tuple[str, ...] = ()
    blocked_change_types: tuple[str, ...] = ()

    @property
    def flagged(self) -> bool:
        return bool(self.keyword_matches or self.path_matches or self.blocked_change_types)

    @property
    def summary(self) -> str:
        if not self.flagged:
            return "No security concerns detected"
        parts: list[str] = []
        if self.keyword_matches:
            parts.append(f"{len(self.keyword_matches)} security keyword(s)")
        if self.path_matches:
            parts.append(f"{len(self.path_matches)} sensitive path(s)")
        if self.blocked_change_types:
            parts.append(f"blocked change type(s): {', '.join(self.blocked_change_types)}")
        return "Security concerns: " + "; ".join(parts)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "flagged": self.flagged,
            "summary": self.summary,
            "keyword_matches": list(self.keyword_matches),
            "path_matches": list(self.path_matches),
            "blocked_change_types": list(self.blocked_change_types),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> SecurityReport:
        parsed = _expect_object(
            data,
            "SecurityReport",
            required=set(),
            optional={
                "flagged",
                "summary",
                "keyword_matches",
                "path_matches",
                "blocked_change_types",
            },
        )
        return cls(
            keyword_matches=_as_str_tuple(
                parsed.get("keyword_matches", ()), "SecurityReport.keyword_matches"
            ),
            path_matches=_as_str_tuple(
                parsed.get("path_matches", ()), "SecurityReport.path_matches"
            ),
            blocked_change_types=_as_str_tuple(
                parsed.get("blocked_change_types", ()), "SecurityReport.blocked_change_types"
            ),
        )


@dataclass(frozen=True, slots=True)
class RiskAssessment(CanonicalModel):
    score: int
    level: RiskLevel
    security_flagged: bool
    decision: Decision
    reasoning: str
    file_count: int = 0
    average_sensitivity: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "score",
            _as_int(self.score, "RiskAssessment.score", minimum=0, maximum=MAX_RISK_SCORE),
        )
        object.__setattr__(self, "level", _as_enum(RiskLevel, self.level, "RiskAssessment.level"))
        object.__setattr__(
            self,
            "security_flagged",
            _as_bool(self.security_flagged, "RiskAssessment.security_flagged"),
        )
        object.__setattr__(
            self, "decision", _as_enum(Decision, self.decision, "RiskAssessment.decision")
        )
        object.__setattr__(
            self, "reasoning", _as_str(self.reasoning, "RiskAssessment.reasoning", min_len=0)
        )
        object.__setattr__(
            self, "file_count", _as_int(self.file_count, "RiskAssessment.file_count", minimum=0)
        )
        object.__setattr__(
            self,
            "average_sensitivity",
            _as_float(
                self.average_sensitivity,
                "RiskAssessment.average_sensitivity",
                minimum=0.0,
                maximum=10.0,
            ),
        )
        if self.security_flagged and self.level is not RiskLevel.HIGH:
            _fail("RiskAssessment.level", "security-flagged assessments must be HIGH")
        expected = expected_decision(
            level=self.level,
            security_flagged=self.security_flagged,
            file_count=self.file_count,
        )
        if self.decision is not expected:
            _fail(
                "RiskAssessment.decision",
                f"{self.decision.value} contradicts level={self.level.value} "
                f"security_flagged={self.security_flagged} file_count={self.file_count} "
                f"(expected {expected.value})",
            )

    @property
    def proceeds(self) -> bool:
        """Whether the decision allows generation and apply stages to run."""

        return self.decision in {Decision.AUTO_FIX, Decision.DRAFT_PR}

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> RiskAssessment:
        parsed = _expect_object(
            data,
            "RiskAssessment",
            required={"score", "level", "security_flagged", "decision"},
            optional={"reasoning", "file_count", "average_sensitivity"},
        )
        return cls(
            score=_as_int(parsed["score"], "RiskAssessment.score"),
            level=_as_enum(RiskLevel, parsed["level"], "RiskAssessment.level"),
            security_flagged=_as_bool(
                parsed["security_flagged"], "RiskAssessment.security_flagged"
            ),
            decision=_as_enum(Decision, parsed["decision"], "RiskAssessment.decision"),
            reasoning=_as_str(parsed.get("reasoning", ""), "RiskAssessment.reasoning", min_len=0),
            file_count=_as_int(parsed.get("file_count", 0), "RiskAssessment.file_count"),
            average_sensitivity=_as_float(
                parsed.get("average_sensitivity", 0.0), "RiskAssessment.average_sensitivity"
            ),
        )


@dataclass(frozen=True, slots=True)
class TriageResult(CanonicalModel):
    """Persisted hand-off between triage and remediation."""

    issue_id: int
    classification: ClassificationResult
    risk: RiskAssessment
    security: SecurityReport
    affected_files: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "issue_id", _as_int(self.issue_id, "TriageResult.issue_id", minimum=1)
        )
        object.__setattr__(
            self,
            "affected_files",
            _as_str_tuple(self.affected_files, "TriageResult.affected_files"),
        )
        object.__setattr__(self, "labels", _as_str_tuple(self.labels, "TriageResult.labels"))

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "issue_id": self.issue_id,
            "classification": self.classification.to_dict(),
            "risk": self.risk.to_dict(),
            "security": self.security.to_dict(),
            "affected_files": list(self.affected_files),
            "labels": list(self.labels),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> TriageResult:
        parsed = _expect_object(
            data,
            "TriageResult",
            required={"issue_id", "classification", "risk"},
            optional={"security", "affected_files", "labels"},
        )
        classification = parsed["classification"]
        risk = parsed["risk"]
        security = parsed.get("security", {})
        if not isinstance(classification, Mapping):
            _fail("TriageResult.classification", "expected object")
        if not isinstance(risk, Mapping):
            _fail("TriageResult.risk", "expected object")
        if not isinstance(security, Mapping):
            _fail("TriageResult.security", "expected object")
        return cls(
            issue_id=_as_int(parsed["issue_id"], "TriageResult.issue_id", minimum=1),
            classification=ClassificationResult.from_dict(classification),
            risk=RiskAssessment.from_dict(risk),
            security=SecurityReport.from_dict(security),
            affected_files=_as_str_tuple(
                parsed.get("affected_files", ()), "TriageResult.affected_files"
            ),
            labels=_as_str_tuple(parsed.get("labels", ()), "TriageResult.labels"),
        )


@dataclass(frozen=True, slots=True)
class ValidationOutcome(CanonicalModel):
    """Captured result of one lint/type-check/build command."""

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False

    @property
    def passed(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part).strip()


@dataclass(frozen=True, slots=True)
class CommitRecord(CanonicalModel):
    """Commit created by a successful run."""

    branch: str
    message: str
    sha: str
    files_changed: tuple[str, ...] = ()
    pushed: bool = False


@dataclass(frozen=True, slots=True)
class PullRequestRecord(CanonicalModel):
    number: int
    title: str
    head: str
    base: str
    draft: bool
    labels: tuple[str, ...] = ()
    url: str = ""
    reviewers: tuple[str, ...] = field(default_factory=tuple)
    reused: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PullRequestRecord:
        parsed = _expect_object(
            data,
            "PullRequestRecord",
            required={"number", "title", "head", "base", "draft"},
            optional={"labels", "url", "reviewers", "reused"},
        )
        return cls(
            number=_as_int(parsed["number"], "PullRequestRecord.number", minimum=1),
            title=_as_str(parsed["title"], "PullRequestRecord.title"),
            head=_as_str(parsed["head"], "PullRequestRecord.head"),
            base=_as_str(parsed["base"], "PullRequestRecord.base"),
            draft=_as_bool(parsed["draft"], "PullRequestRecord.draft"),
            labels=_as_str_tuple(parsed.get("labels", ()), "PullRequestRecord.labels"),
            url=_as_str(parsed.get("url", ""), "PullRequestRecord.url", min_len=0),
            reviewers=_as_str_tuple(parsed.get("reviewers", ()), "PullRequestRecord.reviewers"),
            reused=_as_bool(parsed.get("reused", False), "PullRequestRecord.reused"),
        )


__all__ = [
    "AUTO_FIX_MAX_FILES",
    "CanonicalModel",
    "Classification",
    "ClassificationResult",
    "CommitRecord",
    "Decision",
    "Issue",
    "JSONValue",
    "MAX_RISK_SCORE",
    "PullRequestRecord",
    "RiskAssessment",
    "RiskLevel",
    "SecurityReport",
    "TriageResult",
    "ValidationOutcome",
    "as_relative_path",
    "expected_decision",
]

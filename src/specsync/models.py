from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .status import STATUS_CLOSED, STATUS_OPEN, extract_task_ids

_SPEC_KEYS = (
    "spec_number",
    "spec_name",
    "spec_title",
    "spec_branch",
    "spec_dir",
    "epic_issue",
    "epic_issue_id",
    "repository",
    "created_at",
    "updated_at",
    "issues",
    "pull_request",
)
_ISSUE_KEYS = ("number", "title", "type", "priority", "status", "url", "created_at", "tasks")
_PR_KEYS = ("number", "url", "created_at", "status")


def utc_timestamp() -> str:
    """Second-precision UTC timestamp, the format jq's ``now | todate`` emits."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _extra(raw: dict[str, Any], known: tuple[str, ...]) -> dict[str, Any]:
    return {str(k): v for k, v in raw.items() if k not in known}


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class IssueDescriptor:
    """One task group parsed from tasks.md (input side of a sync)."""

    title: str
    type: str = "feature"
    priority: str = "medium"
    goal: str = ""
    tasks: list[str] = field(default_factory=list)

    def task_ids(self) -> list[str]:
        return extract_task_ids(self.tasks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "type": self.type,
            "priority": self.priority,
            "goal": self.goal,
            "tasks": list(self.tasks),
        }


@dataclass
class SyncPayload:
    spec_number: str
    spec_name: str
    spec_title: str
    spec_branch: str
    spec_dir: str
    epic_title: str
    issues: list[IssueDescriptor]

    def to_dict(self) -> dict[str, Any]:
        return {
            "spec_number": self.spec_number,
            "spec_name": self.spec_name,
            "spec_title": self.spec_title,
            "spec_branch": self.spec_branch,
            "spec_dir": self.spec_dir,
            "epic_title": self.epic_title,
            "issues": [i.to_dict() for i in self.issues],
        }


@dataclass
class IssueRecord:
    number: int
    title: str
    type: str
    priority: str
    status: str = STATUS_OPEN
    url: str = ""
    created_at: str = field(default_factory=utc_timestamp)
    tasks: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def closed(self) -> bool:
        return self.status == STATUS_CLOSED

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> IssueRecord:
        tasks_raw = raw.get("tasks")
        return cls(
            number=int(raw["number"]),
            title=str(raw.get("title") or ""),
            type=str(raw.get("type") or "feature"),
            priority=str(raw.get("priority") or "medium"),
            status=str(raw.get("status") or STATUS_OPEN),
            url=str(raw.get("url") or ""),
            created_at=str(raw.get("created_at") or ""),
            tasks=[str(t) for t in tasks_raw] if isinstance(tasks_raw, list) else [],
            extra=_extra(raw, _ISSUE_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "number": self.number,
            "title": self.title,
            "type": self.type,
            "priority": self.priority,
            "status": self.status,
            "url": self.url,
            "created_at": self.created_at,
            "tasks": list(self.tasks),
        }
        out.update(self.extra)
        return out


@dataclass
class PullRequestRecord:
    number: int
    url: str
    created_at: str = field(default_factory=utc_timestamp)
    status: str = STATUS_OPEN
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> PullRequestRecord:
        return cls(
            number=int(raw["number"]),
            url=str(raw.get("url") or ""),
            created_at=str(raw.get("created_at") or ""),
            status=str(raw.get("status") or STATUS_OPEN),
            extra=_extra(raw, _PR_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "number": self.number,
            "url": self.url,
            "created_at": self.created_at,
            "status": self.status,
        }
        out.update(self.extra)
        return out


@dataclass
class Specification:
    """Mapping entry for one feature spec: its Epic, sub-issues and PR."""

    spec_number: str
    spec_name: str = ""
    spec_title: str = ""
    spec_branch: str = ""
    spec_dir: str = ""
    epic_issue: int | None = None
    epic_issue_id: str | None = None
    repository: str = ""
    created_at: str = field(default_factory=utc_timestamp)
    updated_at: str = field(default_factory=utc_timestamp)
    issues: list[IssueRecord] = field(default_factory=list)
    pull_request: PullRequestRecord | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def find_by_title(self, title: str) -> IssueRecord | None:
        for record in self.issues:
            if record.title == title:
                return record
        return None

    def find_by_tasks(self, task_ids: list[str]) -> IssueRecord | None:
        if not task_ids:
            return None
        wanted = set(task_ids)
        for record in self.issues:
            if record.tasks and set(record.tasks) == wanted:
                return record
        return None

    def find_by_number(self, number: int) -> IssueRecord | None:
        for record in self.issues:
            if record.number == number:
                return record
        return None

    def add_issue(self, record: IssueRecord) -> None:
        if self.find_by_number(record.number) is not None:
            raise ValueError(
                f"issue #{record.number} already tracked for spec {self.spec_number}"
            )
        self.issues.append(record)
        self.touch()

    def touch(self) -> None:
        self.updated_at = utc_timestamp()

    @classmethod
    def from_dict(cls, raw: dict[str, Any], spec_number: str | None = None) -> Specification:
        issues_raw = raw.get("issues")
        issues: list[IssueRecord] = []
        if isinstance(issues_raw, list):
            issues = [IssueRecord.from_dict(i) for i in issues_raw if isinstance(i, dict)]
        pr_raw = raw.get("pull_request")
        epic_id = raw.get("epic_issue_id")
        return cls(
            spec_number=str(raw.get("spec_number") or spec_number or ""),
            spec_name=str(raw.get("spec_name") or ""),
            spec_title=str(raw.get("spec_title") or ""),
            spec_branch=str(raw.get("spec_branch") or ""),
            spec_dir=str(raw.get("spec_dir") or ""),
            epic_issue=_optional_int(raw.get("epic_issue")),
            epic_issue_id=str(epic_id) if epic_id else None,
            repository=str(raw.get("repository") or ""),
            created_at=str(raw.get("created_at") or ""),
            updated_at=str(raw.get("updated_at") or ""),
            issues=issues,
            pull_request=PullRequestRecord.from_dict(pr_raw) if isinstance(pr_raw, dict) else None,
            extra=_extra(raw, _SPEC_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "spec_number": self.spec_number,
            "spec_name": self.spec_name,
            "spec_title": self.spec_title,
            "spec_branch": self.spec_branch,
            "spec_dir": self.spec_dir,
            "epic_issue": self.epic_issue,
            "epic_issue_id": self.epic_issue_id,
            "repository": self.repository,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "issues": [i.to_dict() for i in self.issues],
        }
        if self.pull_request is not None:
            out["pull_request"] = self.pull_request.to_dict()
        out.update(self.extra)
        return out


@dataclass
class MappingDocument:
    repository: str = ""
    specifications: dict[str, Specification] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    def get(self, spec_number: str) -> Specification | None:
        return self.specifications.get(spec_number)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> MappingDocument:
        specs_raw = raw.get("specifications")
        specs: dict[str, Specification] = {}
        if isinstance(specs_raw, dict):
            for number, payload in specs_raw.items():
                if isinstance(payload, dict):
                    specs[str(number)] = Specification.from_dict(payload, str(number))
        return cls(
            repository=str(raw.get("repository") or ""),
            specifications=specs,
            extra=_extra(raw, ("repository", "specifications")),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "repository": self.repository,
            "specifications": {k: v.to_dict() for k, v in self.specifications.items()},
        }
        out.update(self.extra)
        return out


__all__ = [
    "STATUS_OPEN",
    "STATUS_CLOSED",
    "IssueDescriptor",
    "SyncPayload",
    "IssueRecord",
    "PullRequestRecord",
    "Specification",
    "MappingDocument",
    "utc_timestamp",
]

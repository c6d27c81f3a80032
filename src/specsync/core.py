"""Issue reconciler: drive GitHub toward the state ``tasks.md`` describes.

One specification per run. The mapping is persisted after every mutating
step, so a failure part-way leaves every already-created issue recorded and a
re-run resumes instead of duplicating. GitHub is only touched where the live
state differs from the desired one: a second run over unchanged input issues
no mutation at all.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from . import ux
from .errors import InputError, classify_error
from .github_cli import CreatedIssue, IssueSnapshot, RepoInfo
from .labels import sync_labels
from .logging import StructuredLogger, get_logger
from .mapping_store import MappingStore
from .models import IssueDescriptor, IssueRecord, Specification, SyncPayload
from .status import (
    EPIC_LABEL,
    STATUS_CLOSED,
    STATUS_OPEN,
    aggregate_epic_labels,
    desired_issue_state,
    epic_state,
    spec_label,
    stale_aggregate_labels,
)
from .task_parser import read_task_states
from .templates import DocLinks, SpecDocuments, render_epic_body, render_task_body

CLOSE_COMMENT = "✅ All tasks completed. Closing automatically (synced from tasks.md)."
REOPEN_COMMENT = "🔄 Reopening: tasks.md shows incomplete tasks."
EPIC_CLOSE_COMMENT = "✅ All sub-issues completed. Closing Epic automatically."
EPIC_REOPEN_COMMENT = "🔄 Reopening Epic: sub-issues still in progress."


class GitHubClient(Protocol):
    """Surface of :class:`~specsync.github_cli.IssuesClient` used here."""

    def repo_info(self) -> RepoInfo: ...

    def repository_id(self, repo: RepoInfo) -> str: ...

    def issue_node_id(self, repo: RepoInfo, number: int) -> str | None: ...

    def create_issue(
        self, *, repository_id: str, title: str, body: str, parent_id: str | None = None
    ) -> CreatedIssue: ...

    def add_sub_issue(self, parent_id: str, sub_issue_id: str) -> None: ...

    def view_issue(self, number: int) -> IssueSnapshot: ...

    def edit_issue(self, number: int, *, body: str | None = None, title: str | None = None) -> None: ...

    def edit_labels(
        self, number: int, *, add: Iterable[str] = (), remove: Iterable[str] = ()
    ) -> None: ...

    def close_issue(self, number: int, *, comment: str | None = None) -> None: ...

    def reopen_issue(self, number: int, *, comment: str | None = None) -> None: ...

    def create_label(self, name: str, *, color: str, description: str) -> bool: ...


@dataclass
class _Changes:
    created: list[dict[str, Any]] = field(default_factory=list)
    closed: list[dict[str, Any]] = field(default_factory=list)
    reopened: list[dict[str, Any]] = field(default_factory=list)
    updated: list[dict[str, Any]] = field(default_factory=list)
    unchanged: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "created": self.created,
            "closed": self.closed,
            "reopened": self.reopened,
            "updated": self.updated,
            "unchanged": self.unchanged,
        }


def _entry(record: IssueRecord, **extra: Any) -> dict[str, Any]:
    return {"number": record.number, "title": record.title, **extra}


class IssueReconciler:
    def __init__(
        self,
        client: GitHubClient,
        store: MappingStore,
        *,
        tasks_file: str = "tasks.md",
        extra_labels: Sequence[dict[str, str]] = (),
        logger: StructuredLogger | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.tasks_file = tasks_file
        self.extra_labels = list(extra_labels)
        self._logger = logger or get_logger()
        self._repo: RepoInfo | None = None
        self._repository_id: str | None = None

    # --- helpers -----------------------------------------------------------
    def _repository_node_id(self) -> str:
        if self._repository_id is None:
            assert self._repo is not None
            self._repository_id = self.client.repository_id(self._repo)
        return self._repository_id

    def _task_states(self, payload: SyncPayload) -> dict[str, bool]:
        tasks_path = Path(payload.spec_dir) / self.tasks_file
        if not tasks_path.exists():
            ux.print_warning(f"tasks.md not found: {tasks_path} (all tasks treated as open)")
            self._logger.warning("tasks file missing", path=str(tasks_path))
        return read_task_states(tasks_path)

    def _check_task_ids(self, payload: SyncPayload, states: dict[str, bool]) -> None:
        """Every task ID a descriptor binds must be a checklist line of tasks.md."""
        if not (Path(payload.spec_dir) / self.tasks_file).exists():
            return
        unknown = [
            f"{descriptor.title}: {task_id}"
            for descriptor in payload.issues
            for task_id in descriptor.task_ids()
            if task_id not in states
        ]
        if unknown:
            raise InputError(
                f"{len(unknown)} task ID(s) not found in {self.tasks_file}",
                fragment="; ".join(unknown),
            )

    def _persist(self, spec: Specification) -> None:
        spec.touch()
        assert self._repo is not None
        self.store.save_specification(spec, self._repo.url)

    @staticmethod
    def _match(spec: Specification, descriptor: IssueDescriptor) -> IssueRecord | None:
        record = spec.find_by_title(descriptor.title)
        if record is not None:
            return record
        # Same task set under a new heading: a rename, not a new issue.
        return spec.find_by_tasks(descriptor.task_ids())

    def _specification(self, payload: SyncPayload) -> Specification:
        spec = self.store.get_specification(payload.spec_number)
        if spec is None:
            assert self._repo is not None
            spec = Specification(
                spec_number=payload.spec_number, repository=self._repo.url
            )
        spec.spec_name = payload.spec_name
        spec.spec_title = payload.spec_title
        spec.spec_branch = payload.spec_branch
        spec.spec_dir = payload.spec_dir
        return spec

    # --- epic ---------------------------------------------------------------
    def _ensure_epic(
        self, payload: SyncPayload, spec: Specification, body: str
    ) -> tuple[int, str, bool]:
        assert self._repo is not None
        if spec.epic_issue is not None:
            if spec.epic_issue_id:
                return spec.epic_issue, spec.epic_issue_id, False
            node_id = self.client.issue_node_id(self._repo, spec.epic_issue)
            if node_id:
                spec.epic_issue_id = node_id
                self._persist(spec)
                return spec.epic_issue, node_id, False
            ux.print_warning(f"Epic #{spec.epic_issue} not found on GitHub; creating a new one")
        replaced = spec.epic_issue
        ux.print_info(f"Creating Epic: {payload.epic_title}")
        created = self.client.create_issue(
            repository_id=self._repository_node_id(), title=payload.epic_title, body=body
        )
        spec.epic_issue = created.number
        spec.epic_issue_id = created.node_id
        self._persist(spec)
        self.client.edit_labels(created.number, add=[EPIC_LABEL, spec_label(payload.spec_number)])
        self._logger.log_issue_action("created", payload.epic_title, created.number, kind="epic")
        ux.print_success(f"Created Epic #{created.number}")
        if replaced is not None:
            self._relink_sub_issues(spec, created.node_id)
        return created.number, created.node_id, True

    def _relink_sub_issues(self, spec: Specification, parent_id: str) -> None:
        assert self._repo is not None
        for record in spec.issues:
            node_id = self.client.issue_node_id(self._repo, record.number)
            if node_id is None:
                ux.print_warning(f"Sub-issue #{record.number} not found on GitHub; not re-linked")
                continue
            self.client.add_sub_issue(parent_id, node_id)
            self._logger.log_issue_action(
                "relinked", record.title, record.number, epic=spec.epic_issue
            )

    def _reconcile_epic(
        self, payload: SyncPayload, spec: Specification, epic_number: int, body: str, created: bool
    ) -> dict[str, Any]:
        snapshot = self.client.view_issue(epic_number)
        actions: list[str] = ["created"] if created else []
        if snapshot.body.strip() != body.strip():
            self.client.edit_issue(epic_number, body=body)
            if not created:
                actions.append("body_updated")

        desired_labels = aggregate_epic_labels(spec.issues, payload.spec_number)
        add = [lbl for lbl in desired_labels if lbl not in snapshot.labels]
        remove = stale_aggregate_labels(snapshot.labels, desired_labels)
        if add or remove:
            self.client.edit_labels(epic_number, add=add, remove=remove)
            actions.append("labels_updated")

        state = snapshot.state
        target = epic_state([r.status for r in spec.issues])
        if target is not None and target != snapshot.state:
            if target == STATUS_CLOSED:
                self.client.close_issue(epic_number, comment=EPIC_CLOSE_COMMENT)
                ux.print_success(f"Closed Epic #{epic_number} (all sub-issues complete)")
                actions.append("closed")
            else:
                self.client.reopen_issue(epic_number, comment=EPIC_REOPEN_COMMENT)
                ux.print_info(f"Reopened Epic #{epic_number} (sub-issues in progress)")
                actions.append("reopened")
            self._logger.log_issue_action(actions[-1], payload.epic_title, epic_number, kind="epic")
            state = target
        return {
            "number": epic_number,
            "title": payload.epic_title,
            "state": state,
            "labels": desired_labels,
            "actions": actions,
        }

    # --- sub-issues ---------------------------------------------------------
    def _create_sub_issue(
        self,
        spec: Specification,
        descriptor: IssueDescriptor,
        *,
        body: str,
        parent_id: str,
        desired: str,
        changes: _Changes,
    ) -> None:
        ux.print_info(f"Creating sub-issue: {descriptor.title}")
        created = self.client.create_issue(
            repository_id=self._repository_node_id(),
            title=descriptor.title,
            body=body,
            parent_id=parent_id,
        )
        record = IssueRecord(
            number=created.number,
            title=descriptor.title,
            type=descriptor.type,
            priority=descriptor.priority,
            status=STATUS_OPEN,
            url=created.url,
            tasks=descriptor.task_ids(),
        )
        spec.add_issue(record)
        self._persist(spec)
        self.client.edit_labels(created.number, add=[spec_label(spec.spec_number)])
        self._logger.log_issue_action("created", descriptor.title, created.number)
        ux.print_success(f"Created sub-issue #{created.number}: {descriptor.title}")
        changes.created.append(_entry(record))
        if desired == STATUS_CLOSED:
            self.client.close_issue(created.number, comment=CLOSE_COMMENT)
            record.status = STATUS_CLOSED
            self._persist(spec)
            self._logger.log_issue_action("closed", descriptor.title, created.number)
            changes.closed.append(_entry(record))

    def _update_sub_issue(
        self,
        spec: Specification,
        record: IssueRecord,
        descriptor: IssueDescriptor,
        *,
        body: str,
        desired: str,
        changes: _Changes,
    ) -> None:
        before = record.to_dict()
        snapshot = self.client.view_issue(record.number)
        touched = False
        if record.title != descriptor.title:
            self.client.edit_issue(record.number, title=descriptor.title)
            ux.print_info(f"Renamed #{record.number}: {record.title!r} -> {descriptor.title!r}")
            record.title = descriptor.title
            touched = True
        if snapshot.body.strip() != body.strip():
            self.client.edit_issue(record.number, body=body)
            touched = True
        label = spec_label(spec.spec_number)
        if label not in snapshot.labels:
            self.client.edit_labels(record.number, add=[label])
            touched = True
        if desired != snapshot.state:
            if desired == STATUS_CLOSED:
                self.client.close_issue(record.number, comment=CLOSE_COMMENT)
                ux.print_success(f"Closed #{record.number} (all tasks completed)")
                changes.closed.append(_entry(record))
            else:
                self.client.reopen_issue(record.number, comment=REOPEN_COMMENT)
                ux.print_info(f"Reopened #{record.number} (tasks.md shows incomplete tasks)")
                changes.reopened.append(_entry(record))
            self._logger.log_issue_action(
                "closed" if desired == STATUS_CLOSED else "reopened", record.title, record.number
            )
        elif touched:
            changes.updated.append(_entry(record))
            self._logger.log_issue_action("updated", record.title, record.number)
        else:
            changes.unchanged.append(_entry(record))

        record.status = desired
        record.type = descriptor.type
        record.priority = descriptor.priority
        record.tasks = descriptor.task_ids()
        if record.to_dict() != before:
            self._persist(spec)

    # --- public API ---------------------------------------------------------
    def sync(self, payload: SyncPayload) -> dict[str, Any]:
        try:
            with self._logger.timed_operation("sync", spec=payload.spec_number):
                return self._sync(payload)
        except Exception as exc:
            info = classify_error(exc)
            self._logger.log_error(
                "sync_failed",
                category=info.category,
                transient=info.transient,
                original_type=info.original_type,
                error=info.message,
            )
            raise

    def _sync(self, payload: SyncPayload) -> dict[str, Any]:
        states = self._task_states(payload)
        self._check_task_ids(payload, states)
        self._repo = self.client.repo_info()
        ux.print_info(f"Repository: {self._repo.name_with_owner}")
        labels = sync_labels(self.client, payload.spec_number, self.extra_labels)
        self._logger.log_operation(
            "labels_synced", created=len(labels.created), existing=len(labels.existing)
        )
        self.store.ensure(self._repo.url)

        docs = SpecDocuments.load(payload.spec_dir)
        links = DocLinks(self._repo.url, payload.spec_branch, payload.spec_dir)
        spec = self._specification(payload)
        epic_body = render_epic_body(payload.spec_title, links, docs)
        epic_number, epic_id, epic_created = self._ensure_epic(payload, spec, epic_body)

        changes = _Changes()
        for descriptor in payload.issues:
            task_ids = descriptor.task_ids()
            desired = desired_issue_state(task_ids, states)
            body = render_task_body(
                epic_number=epic_number,
                title=descriptor.title,
                goal=descriptor.goal or descriptor.title,
                issue_type=descriptor.type,
                tasks=descriptor.tasks,
                states=states,
                links=links,
                docs=docs,
            )
            record = self._match(spec, descriptor)
            if record is None:
                self._create_sub_issue(
                    spec, descriptor, body=body, parent_id=epic_id, desired=desired, changes=changes
                )
            else:
                self._update_sub_issue(
                    spec, record, descriptor, body=body, desired=desired, changes=changes
                )

        epic = self._reconcile_epic(payload, spec, epic_number, epic_body, epic_created)
        summary = {
            "spec_number": payload.spec_number,
            "totals": {
                "issues": len(payload.issues),
                "created": len(changes.created),
                "closed": len(changes.closed),
                "reopened": len(changes.reopened),
                "updated": len(changes.updated),
                "unchanged": len(changes.unchanged),
            },
            "changes": changes.as_dict(),
            "epic": epic,
        }
        self._logger.log_operation("sync_complete", **summary["totals"])
        return summary

    def plan(self, payload: SyncPayload) -> dict[str, Any]:
        """Decisions ``sync`` would take, from the mapping alone; nothing is written."""
        self.store.load()
        states = self._task_states(payload)
        self._check_task_ids(payload, states)
        spec = self.store.get_specification(payload.spec_number)
        entries: list[dict[str, Any]] = []
        statuses: list[str] = []
        for descriptor in payload.issues:
            desired = desired_issue_state(descriptor.task_ids(), states)
            statuses.append(desired)
            record = self._match(spec, descriptor) if spec is not None else None
            if record is None:
                actions = ["create"] + (["close"] if desired == STATUS_CLOSED else [])
                entries.append({"title": descriptor.title, "number": None, "actions": actions, "state": desired})
                continue
            actions = []
            if record.title != descriptor.title:
                actions.append("rename")
            if record.status != desired:
                actions.append("close" if desired == STATUS_CLOSED else "reopen")
            entries.append(
                {"title": descriptor.title, "number": record.number, "actions": actions or ["keep"], "state": desired}
            )
        epic_number = spec.epic_issue if spec is not None else None
        totals = {
            "issues": len(entries),
            "create": sum(1 for e in entries if "create" in e["actions"]),
            "close": sum(1 for e in entries if "close" in e["actions"]),
            "reopen": sum(1 for e in entries if "reopen" in e["actions"]),
            "rename": sum(1 for e in entries if "rename" in e["actions"]),
            "keep": sum(1 for e in entries if e["actions"] == ["keep"]),
        }
        return {
            "spec_number": payload.spec_number,
            "totals": totals,
            "plan": entries,
            "epic": {
                "number": epic_number,
                "title": payload.epic_title,
                "actions": ["keep"] if epic_number is not None else ["create"],
                "state": epic_state(statuses),
            },
        }


__all__ = [
    "IssueReconciler",
    "GitHubClient",
    "CLOSE_COMMENT",
    "REOPEN_COMMENT",
    "EPIC_CLOSE_COMMENT",
    "EPIC_REOPEN_COMMENT",
]

"""Pull request composer.

Drafts ``[NNN] Title`` plus a body listing every tracked issue and a closing
footer, then creates the PR or updates the open one for the spec branch.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from . import git_utils, ux
from .errors import InputError
from .github_cli import PullRequestInfo
from .logging import StructuredLogger, get_logger
from .mapping_store import MappingStore
from .models import PullRequestRecord, Specification
from .preflight import require_branch_pushed
from .status import STATUS_OPEN
from .templates import pull_request_title, render_pull_request_body


class PullRequestClient(Protocol):
    def find_pull_request(self, head: str) -> PullRequestInfo | None: ...

    def create_pull_request(self, *, base: str, head: str, title: str, body: str) -> PullRequestInfo: ...

    def edit_pull_request(self, number: int, *, title: str, body: str) -> None: ...


class PullRequestComposer:
    def __init__(
        self,
        client: PullRequestClient,
        store: MappingStore,
        *,
        base: str = "main",
        commit_source: Callable[[str], list[str]] = git_utils.commit_log,
        branch_check: Callable[[str], None] | None = require_branch_pushed,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.base = base
        self._commit_source = commit_source
        self._branch_check = branch_check
        self._logger = logger or get_logger()

    def resolve(self, spec_number: str | None = None, branch: str | None = None) -> Specification:
        document = self.store.load()
        if spec_number:
            spec = document.get(spec_number)
            if spec is None:
                raise InputError(
                    f"Spec {spec_number} is not in the mapping; run issues-sync first",
                    fragment=spec_number,
                )
            return spec
        branch = branch or git_utils.current_branch()
        for spec in document.specifications.values():
            if branch and spec.spec_branch == branch:
                return spec
        raise InputError(
            "No synced specification matches the current branch; pass --spec NNN",
            fragment=branch or "<detached HEAD>",
        )

    def compose(self, spec: Specification) -> tuple[str, str]:
        commits = self._commit_source(self.base)
        title = pull_request_title(spec.spec_number, spec.spec_title)
        body = render_pull_request_body(
            spec_number=spec.spec_number,
            spec_title=spec.spec_title,
            branch=spec.spec_branch,
            epic_number=spec.epic_issue,
            issues=spec.issues,
            commits=commits,
        )
        return title, body

    def run(
        self, spec_number: str | None = None, *, dry_run: bool = False, branch: str | None = None
    ) -> dict[str, Any]:
        spec = self.resolve(spec_number, branch)
        if not spec.spec_branch:
            raise InputError(f"Spec {spec.spec_number} has no branch recorded")
        if self._branch_check is not None:
            self._branch_check(spec.spec_branch)
        title, body = self.compose(spec)
        result: dict[str, Any] = {
            "spec_number": spec.spec_number,
            "title": title,
            "body": body,
            "base": self.base,
            "head": spec.spec_branch,
        }
        if dry_run:
            result["action"] = "dry_run"
            return result

        existing = self.client.find_pull_request(spec.spec_branch)
        if existing is not None:
            self.client.edit_pull_request(existing.number, title=title, body=body)
            info = existing
            result["action"] = "updated"
            ux.print_success(f"Updated PR #{info.number}")
        else:
            info = self.client.create_pull_request(
                base=self.base, head=spec.spec_branch, title=title, body=body
            )
            result["action"] = "created"
            ux.print_success(f"Created PR #{info.number}")
        self._logger.log_operation(
            f"pull_request_{result['action']}", number=info.number, spec=spec.spec_number
        )

        previous = spec.pull_request
        if previous is None or previous.number != info.number or previous.url != info.url:
            spec.pull_request = PullRequestRecord(number=info.number, url=info.url, status=STATUS_OPEN)
            spec.touch()
            self.store.save_specification(spec)
        result["number"] = info.number
        result["url"] = info.url
        return result


__all__ = ["PullRequestComposer", "PullRequestClient"]

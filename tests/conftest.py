"""Pytest configuration for specsync tests.

Ensures the in-repo ``src`` directory is on ``sys.path`` so the package can be
imported without an editable install, forces mock mode so nothing reaches the
real GitHub CLI, and provides an in-memory GitHub used by the reconciler and
pull request tests.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Force mock mode for the entire test session to avoid real GitHub CLI calls
os.environ.setdefault("SPECSYNC_MOCK", "1")

from specsync import ux  # noqa: E402
from specsync.errors import GitHubAPIError  # noqa: E402
from specsync.github_cli import (  # noqa: E402
    CreatedIssue,
    IssueSnapshot,
    PullRequestInfo,
    RepoInfo,
)


class FakeGitHub:
    """In-memory stand-in for :class:`specsync.github_cli.IssuesClient`.

    ``calls`` records every mutation; reads are not recorded.
    """

    def __init__(self, repo: str = "acme/widgets") -> None:
        self.owner, self.name = repo.split("/")
        self.issues: dict[int, dict[str, Any]] = {}
        self.labels: dict[str, tuple[str, str]] = {}
        self.pulls: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.fail_on_create: int | None = None  # 1-based index of the failing createIssue
        self._creates = 0
        self._next = 1

    # repository
    def repo_info(self) -> RepoInfo:
        return RepoInfo(self.owner, self.name, f"https://github.com/{self.owner}/{self.name}")

    def repository_id(self, repo: RepoInfo) -> str:
        return "R_kgDOfake"

    def issue_node_id(self, repo: RepoInfo, number: int) -> str | None:
        issue = self.issues.get(number)
        return issue["node_id"] if issue else None

    # issues
    def create_issue(
        self, *, repository_id: str, title: str, body: str, parent_id: str | None = None
    ) -> CreatedIssue:
        self._creates += 1
        if self.fail_on_create is not None and self._creates >= self.fail_on_create:
            raise GitHubAPIError(
                f"Failed to create issue via GraphQL: {title}",
                payload=[{"type": "FORBIDDEN", "message": "Resource not accessible"}],
            )
        number = self._next
        self._next += 1
        self.issues[number] = {
            "title": title,
            "body": body,
            "state": "open",
            "labels": [],
            "node_id": f"I_{number}",
            "parent": parent_id,
            "comments": [],
        }
        self.calls.append(("create", number, title))
        return CreatedIssue(number, f"I_{number}", f"https://github.com/acme/widgets/issues/{number}")

    def view_issue(self, number: int) -> IssueSnapshot:
        issue = self.issues[number]
        return IssueSnapshot(
            number=number,
            state=issue["state"],
            title=issue["title"],
            body=issue["body"],
            labels=list(issue["labels"]),
        )

    def edit_issue(self, number: int, *, body: str | None = None, title: str | None = None) -> None:
        issue = self.issues[number]
        if body is not None:
            issue["body"] = body
            self.calls.append(("edit_body", number))
        if title is not None:
            issue["title"] = title
            self.calls.append(("edit_title", number, title))

    def edit_labels(
        self, number: int, *, add: Iterable[str] = (), remove: Iterable[str] = ()
    ) -> None:
        add, remove = list(add), list(remove)
        issue = self.issues[number]
        for label in add:
            if label not in issue["labels"]:
                issue["labels"].append(label)
        issue["labels"] = [lbl for lbl in issue["labels"] if lbl not in remove]
        self.calls.append(("labels", number, tuple(add), tuple(remove)))

    def close_issue(self, number: int, *, comment: str | None = None) -> None:
        self.issues[number]["state"] = "closed"
        self.issues[number]["comments"].append(comment)
        self.calls.append(("close", number))

    def reopen_issue(self, number: int, *, comment: str | None = None) -> None:
        self.issues[number]["state"] = "open"
        self.issues[number]["comments"].append(comment)
        self.calls.append(("reopen", number))

    def add_sub_issue(self, parent_id: str, sub_issue_id: str) -> None:
        number = int(sub_issue_id.removeprefix("I_"))
        self.issues[number]["parent"] = parent_id
        self.calls.append(("relink", number, parent_id))

    # labels
    def create_label(self, name: str, *, color: str, description: str) -> bool:
        if name in self.labels:
            return False
        self.labels[name] = (color, description)
        self.calls.append(("label_create", name))
        return True

    # pull requests
    def find_pull_request(self, head: str) -> PullRequestInfo | None:
        for number, pr in self.pulls.items():
            if pr["head"] == head and pr["state"] == "open":
                return PullRequestInfo(number, pr["url"])
        return None

    def create_pull_request(self, *, base: str, head: str, title: str, body: str) -> PullRequestInfo:
        number = 100 + len(self.pulls) + 1
        url = f"https://github.com/acme/widgets/pull/{number}"
        self.pulls[number] = {
            "base": base, "head": head, "title": title, "body": body, "state": "open", "url": url
        }
        self.calls.append(("pr_create", number))
        return PullRequestInfo(number, url)

    def edit_pull_request(self, number: int, *, title: str, body: str) -> None:
        self.pulls[number].update(title=title, body=body)
        self.calls.append(("pr_edit", number))

    # helpers
    def by_title(self, title: str) -> list[int]:
        return [n for n, issue in self.issues.items() if issue["title"] == title]


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture(autouse=True)
def _reset_quiet() -> Iterable[None]:
    yield
    ux.set_quiet(False)

"""GitHub collaborator built on the GitHub CLI (``gh``).

Single place for command construction & parsing so the reconciler and the PR
composer only deal with small typed results:

 - repository lookup and GraphQL node ids
 - GraphQL ``createIssue`` with optional ``parentIssueId`` (sub-issues)
 - issue view / edit / label edit / close / reopen
 - label creation (``False`` when the label already exists)
 - pull request find / create / edit

GraphQL goes through :class:`GitHubRestClient` when a token is present in the
environment (unless ``SPECSYNC_REST_DISABLED=1``) and through
``gh api graphql`` otherwise. Every failure raises :class:`GitHubAPIError`
with the raw payload attached; nothing is retried.

Mock mode (``SPECSYNC_MOCK=1``) prints each command instead of running it and
fabricates deterministic results.
"""

from __future__ import annotations

import json
import re
import shutil
import subprocess  # nosec B404 - subprocess is required for GitHub CLI invocation
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .env_auth import env_flag, select_token
from .errors import GitHubAPIError, PrerequisiteError
from .github_rest import SUB_ISSUES_FEATURE_HEADER, GitHubRestClient
from .status import STATUS_CLOSED, STATUS_OPEN

PR_NUMBER_PATTERN = re.compile(r"/pull/(\d+)")
LABEL_EXISTS_PATTERN = re.compile(r"already exists", re.IGNORECASE)

REPOSITORY_ID_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    id
  }
}
"""

ISSUE_ID_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) {
      id
    }
  }
}
"""

CREATE_ISSUE_MUTATION = """
mutation($repositoryId: ID!, $title: String!, $body: String!) {
  createIssue(input: {repositoryId: $repositoryId, title: $title, body: $body}) {
    issue { id number url }
  }
}
"""

CREATE_SUB_ISSUE_MUTATION = """
mutation($repositoryId: ID!, $title: String!, $body: String!, $parentIssueId: ID!) {
  createIssue(input: {
    repositoryId: $repositoryId
    title: $title
    body: $body
    parentIssueId: $parentIssueId
  }) {
    issue { id number url }
  }
}
"""

ADD_SUB_ISSUE_MUTATION = """
mutation($issueId: ID!, $subIssueId: ID!) {
  addSubIssue(input: {issueId: $issueId, subIssueId: $subIssueId, replaceParent: true}) {
    subIssue { id number }
  }
}
"""


@dataclass
class IssuesClientConfig:
    repo: str | None = None  # owner/repo; if None gh defaults to current directory remote
    mock: bool = False


@dataclass
class RepoInfo:
    owner: str
    name: str
    url: str

    @property
    def name_with_owner(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class CreatedIssue:
    number: int
    node_id: str
    url: str


@dataclass
class IssueSnapshot:
    number: int
    state: str  # open | closed
    title: str = ""
    body: str = ""
    labels: list[str] = field(default_factory=list)


@dataclass
class PullRequestInfo:
    number: int
    url: str
    state: str = STATUS_OPEN


def _describe(cmd: list[str]) -> str:
    # "gh issue edit 12" rather than the full command with its body text
    return " ".join(cmd[:4])


class IssuesClient:
    def __init__(self, cfg: IssuesClientConfig, rest_client: GitHubRestClient | None = None):
        self.cfg = cfg
        self._mock_counter = 1000
        self._gh_path = shutil.which("gh")
        if rest_client is not None:
            self._rest_client: GitHubRestClient | None = rest_client
        else:
            self._rest_client = self._build_rest_client()

    # --- internal helpers -------------------------------------------------
    def _build_rest_client(self) -> GitHubRestClient | None:
        if self.cfg.mock or env_flag("SPECSYNC_REST_DISABLED"):
            return None
        token = select_token()
        if not token:
            return None
        return GitHubRestClient(token=token)

    def _base_cmd(self, *parts: str, scoped: bool = True) -> list[str]:
        cmd: list[str] = [self._gh_path or "gh", *parts]
        if scoped and self.cfg.repo:
            cmd.extend(["-R", self.cfg.repo])
        return cmd

    def _run(self, cmd: list[str]) -> str:
        if self.cfg.mock:
            print("MOCK", " ".join(cmd), file=sys.stderr)
            return ""
        try:
            result = subprocess.run(  # nosec B603 B607 - command uses controlled arguments
                cmd, capture_output=True, text=True, check=False
            )
        except FileNotFoundError as exc:
            raise PrerequisiteError(
                "GitHub CLI (gh) not found", remediation="Install from: https://cli.github.com/"
            ) from exc
        if result.returncode != 0:
            streams = ((result.stderr or "").strip(), (result.stdout or "").strip())
            raw = "\n".join(s for s in streams if s)
            raise GitHubAPIError(f"Command failed: {_describe(cmd)}", payload=raw)
        return result.stdout

    def _next_mock_number(self) -> int:
        self._mock_counter += 1
        return self._mock_counter

    @staticmethod
    def _load_json(out: str, what: str) -> Any:
        try:
            return json.loads(out)
        except json.JSONDecodeError as exc:
            raise GitHubAPIError(f"Unparseable response for {what}", payload=out) from exc

    # --- GraphQL ----------------------------------------------------------
    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        variables = variables or {}
        if self.cfg.mock:
            return self._mock_graphql(query, variables)
        if self._rest_client is not None:
            return self._rest_client.graphql(query, variables)
        cmd = self._base_cmd(
            "api",
            "graphql",
            "-H",
            f"{SUB_ISSUES_FEATURE_HEADER[0]}: {SUB_ISSUES_FEATURE_HEADER[1]}",
            "-f",
            f"query={query}",
            scoped=False,
        )
        for key, value in variables.items():
            flag = "-F" if isinstance(value, int) and not isinstance(value, bool) else "-f"
            cmd.extend([flag, f"{key}={value}"])
        try:
            out = self._run(cmd)
        except GitHubAPIError as exc:
            # gh prints the GraphQL error body on stdout and exits non-zero.
            raise GitHubAPIError("GraphQL request failed", payload=exc.payload) from exc
        data = self._load_json(out, "graphql")
        if not isinstance(data, dict):
            raise GitHubAPIError("Unexpected GraphQL response shape", payload=out)
        if data.get("errors"):
            raise GitHubAPIError("GraphQL query failed", payload=data["errors"])
        return data

    def _mock_graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        print("MOCK gh api graphql", json.dumps(variables, sort_keys=True)[:120], file=sys.stderr)
        if "createIssue" in query:
            number = self._next_mock_number()
            return {
                "data": {
                    "createIssue": {
                        "issue": {
                            "id": f"I_mock{number}",
                            "number": number,
                            "url": f"https://github.com/mock/repo/issues/{number}",
                        }
                    }
                }
            }
        if "addSubIssue" in query:
            return {"data": {"addSubIssue": {"subIssue": {"id": variables.get("subIssueId")}}}}
        if "issue(number" in query:
            return {"data": {"repository": {"issue": {"id": f"I_mock{variables.get('number')}"}}}}
        return {"data": {"repository": {"id": "R_mock"}}}

    # --- repository ---------------------------------------------------------
    def repo_info(self) -> RepoInfo:
        if self.cfg.mock:
            owner, _, name = (self.cfg.repo or "mock/repo").partition("/")
            return RepoInfo(owner=owner, name=name, url=f"https://github.com/{owner}/{name}")
        parts = ["repo", "view"]
        if self.cfg.repo:
            parts.append(self.cfg.repo)
        parts.extend(["--json", "nameWithOwner,owner,name,url"])
        try:
            out = self._run(self._base_cmd(*parts, scoped=False))
        except GitHubAPIError as exc:
            raise PrerequisiteError(
                "Cannot determine GitHub repository",
                remediation="Run inside a clone with a GitHub remote, or pass --repo owner/name",
            ) from exc
        data = self._load_json(out, "repo view")
        owner = data.get("owner", {}).get("login") if isinstance(data.get("owner"), dict) else None
        name = data.get("name")
        if not owner or not name:
            raise GitHubAPIError("Repository lookup returned no owner/name", payload=out)
        url = data.get("url") or f"https://github.com/{owner}/{name}"
        return RepoInfo(owner=str(owner), name=str(name), url=str(url))

    def repository_id(self, repo: RepoInfo) -> str:
        data = self.graphql(REPOSITORY_ID_QUERY, {"owner": repo.owner, "repo": repo.name})
        node_id = ((data.get("data") or {}).get("repository") or {}).get("id")
        if not node_id:
            raise GitHubAPIError("Failed to get Repository ID via GraphQL", payload=data)
        return str(node_id)

    def issue_node_id(self, repo: RepoInfo, number: int) -> str | None:
        try:
            data = self.graphql(
                ISSUE_ID_QUERY, {"owner": repo.owner, "repo": repo.name, "number": number}
            )
        except GitHubAPIError as exc:
            if "could not resolve" in str(exc.payload).lower():
                return None
            raise
        issue = ((data.get("data") or {}).get("repository") or {}).get("issue") or {}
        node_id = issue.get("id")
        return str(node_id) if node_id else None

    # --- issues -------------------------------------------------------------
    def create_issue(
        self,
        *,
        repository_id: str,
        title: str,
        body: str,
        parent_id: str | None = None,
    ) -> CreatedIssue:
        variables: dict[str, Any] = {"repositoryId": repository_id, "title": title, "body": body}
        if parent_id:
            variables["parentIssueId"] = parent_id
            data = self.graphql(CREATE_SUB_ISSUE_MUTATION, variables)
        else:
            data = self.graphql(CREATE_ISSUE_MUTATION, variables)
        issue = (((data.get("data") or {}).get("createIssue")) or {}).get("issue") or {}
        number, node_id = issue.get("number"), issue.get("id")
        if not isinstance(number, int) or not node_id:
            raise GitHubAPIError(f"Failed to create issue via GraphQL: {title}", payload=data)
        return CreatedIssue(number=number, node_id=str(node_id), url=str(issue.get("url") or ""))

    def add_sub_issue(self, parent_id: str, sub_issue_id: str) -> None:
        """Attach an existing issue to ``parent_id``, detaching it from any previous parent."""
        variables = {"issueId": parent_id, "subIssueId": sub_issue_id}
        data = self.graphql(ADD_SUB_ISSUE_MUTATION, variables)
        if not ((data.get("data") or {}).get("addSubIssue") or {}).get("subIssue"):
            raise GitHubAPIError("Failed to link sub-issue via GraphQL", payload=data)

    def view_issue(self, number: int) -> IssueSnapshot:
        if self.cfg.mock:
            self._run(self._base_cmd("issue", "view", str(number)))
            return IssueSnapshot(number=number, state=STATUS_OPEN)
        out = self._run(
            self._base_cmd("issue", "view", str(number), "--json", "number,state,title,body,labels")
        )
        data = self._load_json(out, f"issue view {number}")
        labels = [
            lbl["name"]
            for lbl in data.get("labels") or []
            if isinstance(lbl, dict) and isinstance(lbl.get("name"), str)
        ]
        state = STATUS_CLOSED if str(data.get("state", "")).upper() == "CLOSED" else STATUS_OPEN
        return IssueSnapshot(
            number=number,
            state=state,
            title=str(data.get("title") or ""),
            body=str(data.get("body") or ""),
            labels=labels,
        )

    def edit_issue(self, number: int, *, body: str | None = None, title: str | None = None) -> None:
        cmd = self._base_cmd("issue", "edit", str(number))
        if title is not None:
            cmd.extend(["--title", title])
        if body is not None:
            cmd.extend(["--body", body])
        self._run(cmd)

    def edit_labels(
        self, number: int, *, add: Iterable[str] = (), remove: Iterable[str] = ()
    ) -> None:
        add_list, remove_list = list(add), list(remove)
        if not add_list and not remove_list:
            return
        cmd = self._base_cmd("issue", "edit", str(number))
        if add_list:
            cmd.extend(["--add-label", ",".join(add_list)])
        if remove_list:
            cmd.extend(["--remove-label", ",".join(remove_list)])
        self._run(cmd)

    def close_issue(self, number: int, *, comment: str | None = None) -> None:
        cmd = self._base_cmd("issue", "close", str(number))
        if comment:
            cmd.extend(["--comment", comment])
        self._run(cmd)

    def reopen_issue(self, number: int, *, comment: str | None = None) -> None:
        cmd = self._base_cmd("issue", "reopen", str(number))
        if comment:
            cmd.extend(["--comment", comment])
        self._run(cmd)

    # --- labels -------------------------------------------------------------
    def create_label(self, name: str, *, color: str, description: str) -> bool:
        """Create ``name``; ``False`` when it already exists."""
        cmd = self._base_cmd(
            "label", "create", name, "--color", color, "--description", description
        )
        try:
            self._run(cmd)
        except GitHubAPIError as exc:
            if LABEL_EXISTS_PATTERN.search(str(exc.payload or "")):
                return False
            raise
        return True

    # --- pull requests ------------------------------------------------------
    def find_pull_request(self, head: str) -> PullRequestInfo | None:
        if self.cfg.mock:
            self._run(self._base_cmd("pr", "list", "--head", head))
            return None
        out = self._run(
            self._base_cmd(
                "pr", "list", "--head", head, "--state", "open", "--json", "number,url,state",
                "--limit", "1",
            )
        )
        data = self._load_json(out, "pr list") if out.strip() else []
        if not isinstance(data, list) or not data:
            return None
        entry = data[0]
        return PullRequestInfo(number=int(entry["number"]), url=str(entry.get("url") or ""))

    def create_pull_request(self, *, base: str, head: str, title: str, body: str) -> PullRequestInfo:
        out = self._run(
            self._base_cmd(
                "pr", "create", "--base", base, "--head", head, "--title", title, "--body", body
            )
        )
        if self.cfg.mock:
            number = self._next_mock_number()
            return PullRequestInfo(number=number, url=f"https://github.com/mock/repo/pull/{number}")
        match = PR_NUMBER_PATTERN.search(out)
        if not match:
            raise GitHubAPIError("Could not read pull request number from gh output", payload=out)
        url = out.strip().splitlines()[-1]
        return PullRequestInfo(number=int(match.group(1)), url=url)

    def edit_pull_request(self, number: int, *, title: str, body: str) -> None:
        self._run(self._base_cmd("pr", "edit", str(number), "--title", title, "--body", body))


__all__ = [
    "IssuesClientConfig",
    "IssuesClient",
    "RepoInfo",
    "CreatedIssue",
    "IssueSnapshot",
    "PullRequestInfo",
]

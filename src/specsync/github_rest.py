from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import requests

from .errors import GitHubAPIError

DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"
USER_AGENT = "specsync/0.1.0"
HTTP_ERROR_STATUS = 400
# Required for createIssue(parentIssueId:) while sub-issues are in preview.
SUB_ISSUES_FEATURE_HEADER = ("GraphQL-Features", "sub_issues")


@dataclass
class GitHubRestClient:
    """Direct GraphQL transport used when a token is available.

    ``gh api graphql`` covers the same ground; this path avoids one process
    spawn per query and surfaces HTTP status codes.
    """

    token: str
    graphql_url: str = DEFAULT_GRAPHQL_URL
    session: requests.Session | None = None
    timeout: float = 30.0
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._session.headers.setdefault(*SUB_ISSUES_FEATURE_HEADER)

    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = {"query": query, "variables": variables or {}}
        try:
            response = self._session.request(
                "POST",
                self.graphql_url,
                json=payload,
                headers=self._session.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GitHubAPIError(f"GraphQL request failed: {exc}") from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GraphQL request failed with HTTP {response.status_code}",
                status=response.status_code,
                payload=response.text,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise GitHubAPIError("GraphQL response is not JSON", payload=response.text) from exc
        if not isinstance(data, dict):
            raise GitHubAPIError("Unexpected GraphQL response shape", payload=data)
        if data.get("errors"):
            raise GitHubAPIError("GraphQL query failed", payload=data["errors"])
        return data


__all__ = ["GitHubRestClient", "DEFAULT_GRAPHQL_URL", "SUB_ISSUES_FEATURE_HEADER"]

import json
from dataclasses import dataclass
from typing import Any

import pytest
import requests

from specsync.errors import GitHubAPIError
from specsync.github_rest import DEFAULT_GRAPHQL_URL, GitHubRestClient


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    @property
    def text(self) -> str:
        if isinstance(self.payload, (dict, list)):
            return json.dumps(self.payload)
        return str(self.payload)


class _DummySession:
    def __init__(self, responses: list[Any]):
        self._responses = responses
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append((method, url, {"headers": headers, "json": json}))
        if not self._responses:
            raise AssertionError("No response queued for request")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def test_graphql_posts_query_with_preview_header():
    session = _DummySession([_DummyResponse(200, {"data": {"repository": {"id": "R_1"}}})])
    client = GitHubRestClient(token="tkn", session=session)  # type: ignore[arg-type]

    data = client.graphql("query { viewer { login } }", {"owner": "acme"})

    assert data["data"]["repository"]["id"] == "R_1"
    method, url, kwargs = session.request_log[0]
    assert (method, url) == ("POST", DEFAULT_GRAPHQL_URL)
    assert kwargs["json"] == {"query": "query { viewer { login } }", "variables": {"owner": "acme"}}
    assert kwargs["headers"]["Authorization"] == "Bearer tkn"
    assert kwargs["headers"]["GraphQL-Features"] == "sub_issues"


def test_graphql_errors_raise_with_payload():
    errors = [{"type": "NOT_FOUND", "message": "Could not resolve to an Issue"}]
    session = _DummySession([_DummyResponse(200, {"data": None, "errors": errors})])
    client = GitHubRestClient(token="tkn", session=session)  # type: ignore[arg-type]

    with pytest.raises(GitHubAPIError) as excinfo:
        client.graphql("query { x }")
    assert excinfo.value.payload == errors


def test_http_error_status_recorded():
    session = _DummySession([_DummyResponse(502, "Bad Gateway")])
    client = GitHubRestClient(token="tkn", session=session)  # type: ignore[arg-type]

    with pytest.raises(GitHubAPIError) as excinfo:
        client.graphql("query { x }")
    assert excinfo.value.status == 502
    assert excinfo.value.payload == "Bad Gateway"


def test_non_json_response_raises():
    session = _DummySession([_DummyResponse(200, ValueError("no json"))])
    client = GitHubRestClient(token="tkn", session=session)  # type: ignore[arg-type]

    with pytest.raises(GitHubAPIError):
        client.graphql("query { x }")


def test_network_failure_is_not_retried():
    session = _DummySession([requests.ConnectionError("connection reset"), _DummyResponse(200, {"data": {}})])
    client = GitHubRestClient(token="tkn", session=session)  # type: ignore[arg-type]

    with pytest.raises(GitHubAPIError):
        client.graphql("query { x }")
    assert len(session.request_log) == 1

"""Error taxonomy & redaction.

Every failure specsync reports falls in one of three families:

- prerequisite errors (missing ``gh``, no authentication, not inside a git
  repository, branch not pushed) carry the exact remediation command;
- input errors (malformed payload, ambiguous ``tasks.md``) carry the
  offending fragment;
- API errors carry the raw GitHub payload.

All of them abort the run. ``classify_error`` gives a stable category for
structured logging; ``redact`` strips tokens before anything is printed.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gho_[A-Za-z0-9]{20,40}"),  # OAuth tokens issued to gh
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
]

_REDACTION_PLACEHOLDER = "<redacted>"

EXIT_FAILURE = 1
EXIT_USAGE = 2


class SpecSyncError(RuntimeError):
    """Base class for every error specsync raises on purpose."""

    exit_code = EXIT_FAILURE
    category = "generic"


class PrerequisiteError(SpecSyncError):
    category = "prerequisite"

    def __init__(self, message: str, *, remediation: str | None = None):
        super().__init__(message)
        self.remediation = remediation


class InputError(SpecSyncError):
    category = "input"

    def __init__(self, message: str, *, fragment: str | None = None):
        super().__init__(message)
        self.fragment = fragment


class UsageError(SpecSyncError):
    """Malformed command line arguments."""

    category = "usage"
    exit_code = EXIT_USAGE


class GitHubAPIError(SpecSyncError):
    """Raised when ``gh`` or the GitHub GraphQL API reports a failure."""

    category = "github"

    def __init__(
        self,
        message: str,
        *,
        payload: Any = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.payload = payload
        self.status = status


class MappingConflictError(SpecSyncError):
    """The mapping file changed on disk since it was last read."""

    category = "mapping"


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace token-looking substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    Known specsync errors keep their own category. Anything else is sorted by
    message keywords: rate limits and network trouble are flagged transient
    (informational only, nothing is retried), the rest is ``generic``.
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__

    if isinstance(exc, SpecSyncError):
        details: dict[str, Any] = {}
        if isinstance(exc, PrerequisiteError) and exc.remediation:
            details["remediation"] = exc.remediation
        if isinstance(exc, InputError) and exc.fragment:
            details["fragment"] = redact(exc.fragment)
        if isinstance(exc, GitHubAPIError) and exc.payload is not None:
            details["payload"] = redact(str(exc.payload))
        transient = isinstance(exc, GitHubAPIError) and "rate limit" in low
        return ErrorInfo(exc.category, redact(msg), name, transient=transient, details=details or None)
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True)
    if any(k in low for k in ("timeout", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name, transient=True)
    return ErrorInfo("generic", redact(msg), name)


__all__ = [
    "SpecSyncError",
    "PrerequisiteError",
    "InputError",
    "UsageError",
    "GitHubAPIError",
    "MappingConflictError",
    "ErrorInfo",
    "classify_error",
    "redact",
    "EXIT_FAILURE",
    "EXIT_USAGE",
]

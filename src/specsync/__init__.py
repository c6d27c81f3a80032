"""specsync - keep spec-kit ``tasks.md`` files and GitHub issues in step.

High-level public API:

from specsync import IssueReconciler, MappingStore, build_payload

payload = build_payload('specs/001-user-auth')
reconciler = IssueReconciler(client, MappingStore('.specify/memory/gh-issues-mapping.json'))
summary = reconciler.sync(payload)
print(summary['totals'])

The CLI (``specsync``, ``gh-issues-sync``, ``gh-labels-sync``) delegates to
this library.
"""

from __future__ import annotations

from .config import SyncConfig, load_config
from .core import IssueReconciler
from .mapping_store import MappingStore
from .models import IssueDescriptor, IssueRecord, MappingDocument, Specification, SyncPayload
from .payload import load_payload, parse_payload
from .pull_request import PullRequestComposer
from .task_parser import build_payload, parse_tasks

__version__ = "0.1.0"

__all__ = [
    "IssueReconciler",
    "PullRequestComposer",
    "MappingStore",
    "MappingDocument",
    "Specification",
    "IssueRecord",
    "IssueDescriptor",
    "SyncPayload",
    "SyncConfig",
    "load_config",
    "load_payload",
    "parse_payload",
    "build_payload",
    "parse_tasks",
    "__version__",
]

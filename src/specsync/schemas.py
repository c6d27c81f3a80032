"""JSON Schemas for the issues-sync payload and the mapping document.

The payload schema is strict on the fields the reconciler cannot work
without; the mapping schema stays shallow so documents written by older
tooling (extra keys, missing optional fields) still validate.
"""

from __future__ import annotations

from typing import Any

from .status import PRIORITY_LABELS, TYPE_LABELS

SCHEMA_KEY = "$schema"
SCHEMA_URL = "http://json-schema.org/draft-07/schema#"

SPEC_NUMBER_PATTERN = "^[0-9]{3}$"
# Sub-issue types map 1:1 onto labels; "epic" is reserved for the parent.
ISSUE_TYPES = [t for t in TYPE_LABELS if t != "epic"]
TASK_ID_PATTERN = "^T[0-9]{3}$"


def payload_schema() -> dict[str, Any]:
    return {
        SCHEMA_KEY: SCHEMA_URL,
        "title": "IssuesSyncPayload",
        "type": "object",
        "required": ["spec_number", "spec_branch", "spec_dir", "issues"],
        "properties": {
            "spec_number": {"type": "string", "pattern": SPEC_NUMBER_PATTERN},
            "spec_name": {"type": "string"},
            "spec_title": {"type": "string"},
            "spec_branch": {"type": "string", "minLength": 1},
            "spec_dir": {"type": "string", "minLength": 1},
            "epic_title": {"type": "string"},
            "issues": {
                "type": "array",
                "minItems": 1,
                "items": {
                    "type": "object",
                    "required": ["title", "tasks"],
                    "properties": {
                        "title": {"type": "string", "minLength": 1},
                        "type": {"enum": ISSUE_TYPES},
                        "priority": {"enum": list(PRIORITY_LABELS)},
                        "goal": {"type": "string"},
                        "tasks": {"type": "array", "items": {"type": "string"}},
                    },
                },
            },
        },
    }


def mapping_schema() -> dict[str, Any]:
    issue = {
        "type": "object",
        "required": ["number", "title", "status"],
        "properties": {
            "number": {"type": "integer"},
            "title": {"type": "string"},
            "type": {"type": "string"},
            "priority": {"type": "string"},
            "status": {"enum": ["open", "closed"]},
            "url": {"type": "string"},
            "created_at": {"type": "string"},
            "tasks": {"type": "array", "items": {"type": "string", "pattern": TASK_ID_PATTERN}},
        },
    }
    return {
        SCHEMA_KEY: SCHEMA_URL,
        "title": "GitHubIssuesMapping",
        "type": "object",
        "required": ["repository", "specifications"],
        "properties": {
            "repository": {"type": "string"},
            "specifications": {
                "type": "object",
                "additionalProperties": {
                    "type": "object",
                    "properties": {
                        "spec_number": {"type": "string"},
                        "epic_issue": {"type": ["integer", "null"]},
                        "epic_issue_id": {"type": ["string", "null"]},
                        "issues": {"type": "array", "items": issue},
                        "pull_request": {
                            "type": "object",
                            "required": ["number"],
                            "properties": {
                                "number": {"type": "integer"},
                                "url": {"type": "string"},
                                "created_at": {"type": "string"},
                                "status": {"type": "string"},
                            },
                        },
                    },
                },
            },
        },
    }


__all__ = ["payload_schema", "mapping_schema", "SPEC_NUMBER_PATTERN"]

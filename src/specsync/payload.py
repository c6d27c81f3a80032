"""Loading and validation of the issues-sync JSON payload."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, TextIO

from jsonschema import Draft7Validator

from .errors import InputError
from .models import IssueDescriptor, SyncPayload
from .schemas import payload_schema
from .task_parser import read_text, undecodable

_FRAGMENT_LIMIT = 200


def _fragment(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    if len(text) > _FRAGMENT_LIMIT:
        return text[:_FRAGMENT_LIMIT] + "..."
    return text


def read_payload_text(path: str | None, *, stdin: TextIO | None = None) -> str:
    if path is None:
        try:
            return (stdin or sys.stdin).read()
        except UnicodeDecodeError as exc:
            raise undecodable(exc, "Payload on stdin") from exc
    p = Path(path)
    if not p.exists():
        raise InputError(f"JSON file not found: {p}", fragment=str(p))
    return read_text(p)


def parse_payload(text: str) -> SyncPayload:
    """Validate ``text`` and build a :class:`SyncPayload`.

    Raises :class:`InputError` pointing at the offending fragment for
    malformed JSON or a missing/invalid field.
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        start = max(0, exc.pos - 40)
        raise InputError(
            f"Invalid JSON format in input: {exc.msg} at line {exc.lineno} column {exc.colno}",
            fragment=text[start:exc.pos + 40],
        ) from exc

    validator = Draft7Validator(payload_schema())
    errors = sorted(validator.iter_errors(raw), key=lambda e: list(e.absolute_path))
    if errors:
        first = errors[0]
        location = "/".join(str(p) for p in first.absolute_path) or "<root>"
        raise InputError(
            f"Invalid payload at {location}: {first.message}",
            fragment=_fragment(first.instance),
        )

    number = raw["spec_number"]
    name = raw.get("spec_name") or raw["spec_branch"]
    title = raw.get("spec_title") or name
    issues = [
        IssueDescriptor(
            title=entry["title"].strip(),
            type=entry.get("type") or "feature",
            priority=entry.get("priority") or "medium",
            goal=entry.get("goal") or entry["title"].strip(),
            tasks=list(entry["tasks"]),
        )
        for entry in raw["issues"]
    ]
    titles = [i.title for i in issues]
    dupes = sorted({t for t in titles if titles.count(t) > 1})
    if dupes:
        raise InputError("Duplicate issue titles in payload", fragment=", ".join(dupes))
    return SyncPayload(
        spec_number=number,
        spec_name=name,
        spec_title=title,
        spec_branch=raw["spec_branch"],
        spec_dir=raw["spec_dir"],
        epic_title=raw.get("epic_title") or f"[{number}] {title}",
        issues=issues,
    )


def load_payload(path: str | None, *, stdin: TextIO | None = None) -> SyncPayload:
    return parse_payload(read_payload_text(path, stdin=stdin))


__all__ = ["load_payload", "parse_payload", "read_payload_text"]

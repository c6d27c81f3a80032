"""Open/closed state computation.

Pure functions over task checklists; nothing here touches GitHub or disk.
``tasks.md`` is the single source of truth: a sub-issue is closed iff every
task ID bound to it is checked, and the Epic is closed iff every sub-issue is
closed. GitHub is reconciled toward these values, never the reverse.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Protocol

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"

TYPE_LABELS = ("epic", "feature", "bug", "docs", "refactor", "test", "enhancement")
PRIORITY_LABELS = ("critical", "high", "medium", "low")  # highest first
EPIC_LABEL = "epic"

TASK_ID_RE = re.compile(r"\bT\d{3}\b")
CHECKLIST_RE = re.compile(r"^\s*-\s+\[(?P<mark>[ xX])\]\s+(?P<rest>.*)$")
TASK_LINE_RE = re.compile(r"^\s*-\s+\[(?P<mark>[ xX])\]\s+(?P<task_id>T\d{3})\b")

_UNCHECKED_RE = re.compile(r"- \[ \]")
_CHECKED_RE = re.compile(r"- \[[xX]\]")


class _Aggregatable(Protocol):
    type: str
    priority: str


def spec_label(spec_number: str) -> str:
    return f"spec-{spec_number}"


def extract_task_ids(lines: Iterable[str]) -> list[str]:
    """Return the task ID of each line (first ``T###`` token), deduplicated in order."""
    seen: list[str] = []
    for line in lines:
        match = TASK_ID_RE.search(line)
        if match and match.group(0) not in seen:
            seen.append(match.group(0))
    return seen


def parse_checklist_states(text: str) -> dict[str, bool]:
    """Map every task ID found on a checklist line to its checked state.

    A task ID appearing on several lines counts as checked when any of them
    is checked.
    """
    states: dict[str, bool] = {}
    for line in text.splitlines():
        match = TASK_LINE_RE.match(line)
        if not match:
            continue
        checked = match.group("mark") in ("x", "X")
        task_id = match.group("task_id")
        states[task_id] = states.get(task_id, False) or checked
    return states


def all_tasks_done(task_ids: Iterable[str], states: dict[str, bool]) -> bool:
    """Conjunction over exactly ``task_ids``; unknown IDs count as unchecked."""
    return all(states.get(task_id, False) for task_id in task_ids)


def desired_issue_state(task_ids: Iterable[str], states: dict[str, bool]) -> str:
    return STATUS_CLOSED if all_tasks_done(task_ids, states) else STATUS_OPEN


def epic_state(statuses: Sequence[str]) -> str | None:
    """Closed iff every sub-issue is closed; ``None`` when there are none."""
    if not statuses:
        return None
    if all(s == STATUS_CLOSED for s in statuses):
        return STATUS_CLOSED
    return STATUS_OPEN


def checklist_with_status(lines: Iterable[str], states: dict[str, bool]) -> list[str]:
    """Rewrite checkboxes so each task line mirrors its state in tasks.md."""
    out: list[str] = []
    for line in lines:
        match = TASK_ID_RE.search(line)
        if match:
            if states.get(match.group(0), False):
                line = _UNCHECKED_RE.sub("- [x]", line, count=1)
            else:
                line = _CHECKED_RE.sub("- [ ]", line, count=1)
        out.append(line)
    return out


def highest_priority(priorities: Iterable[str]) -> str:
    present = set(priorities)
    for candidate in PRIORITY_LABELS:
        if candidate in present:
            return candidate
    return PRIORITY_LABELS[-1]


def primary_type(types: Iterable[str]) -> str | None:
    unique = sorted({t for t in types if t})
    if "feature" in unique:
        return "feature"
    return unique[0] if unique else None


def aggregate_epic_labels(issues: Sequence[_Aggregatable], spec_number: str) -> list[str]:
    """Labels the Epic should carry: epic, primary type, highest priority, spec tag."""
    labels = [EPIC_LABEL]
    kind = primary_type(i.type for i in issues)
    if kind and kind != EPIC_LABEL:
        labels.append(kind)
    labels.append(highest_priority(i.priority for i in issues))
    labels.append(spec_label(spec_number))
    return labels


def stale_aggregate_labels(current: Iterable[str], desired: Iterable[str]) -> list[str]:
    """Type/priority labels present on the Epic that the aggregate no longer wants."""
    managed = set(TYPE_LABELS) | set(PRIORITY_LABELS)
    wanted = set(desired)
    return sorted(lbl for lbl in set(current) if lbl in managed and lbl not in wanted)


__all__ = [
    "STATUS_OPEN",
    "STATUS_CLOSED",
    "TYPE_LABELS",
    "PRIORITY_LABELS",
    "EPIC_LABEL",
    "TASK_ID_RE",
    "TASK_LINE_RE",
    "CHECKLIST_RE",
    "spec_label",
    "extract_task_ids",
    "parse_checklist_states",
    "all_tasks_done",
    "desired_issue_state",
    "epic_state",
    "checklist_with_status",
    "highest_priority",
    "primary_type",
    "aggregate_epic_labels",
    "stale_aggregate_labels",
]

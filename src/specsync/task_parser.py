"""Deterministic parser for spec-kit ``tasks.md`` files.

A section starts at every level-2 heading; its checklist lines
(``- [ ] T001 ...`` / ``- [x] T001 ...``) become the tasks of one issue.
Heading conventions understood:

``## Phase 2: Foundational (Blocking Prerequisites)``
    ``Phase N:`` prefix dropped, trailing parenthetical qualifier dropped.
``## Phase 3: User Story 1 - Sign in (Priority: P1) 🎯 MVP``
    user story -> title ``US1: Sign in``, type ``feature``, priority from ``P1``.
``## US2: Audit log (P2)``
    short user story form.

Anything the rules cannot resolve raises :class:`TaskParseError` instead of
guessing.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .errors import InputError
from .models import IssueDescriptor, SyncPayload
from .status import CHECKLIST_RE, TASK_LINE_RE, parse_checklist_states

DEFAULT_PRIORITY = "medium"
PRIORITY_BY_LEVEL = {0: "critical", 1: "high", 2: "medium"}  # P3 and beyond -> low

_heading_re = re.compile(r"^##(?!#)\s+(?P<text>.+?)\s*#*\s*$")
_phase_re = re.compile(r"^phase\s+(?P<phase>\d+)\s*[:\-–—]\s*", re.IGNORECASE)
_story_re = re.compile(
    r"^(?:user\s+story|us)\s*(?P<story>\d+)\b\s*[:\-–—]?\s*(?P<title>.*)$",
    re.IGNORECASE,
)
_priority_re = re.compile(r"\(\s*(?:priority\s*:\s*)?p(?P<level>\d)\s*\)", re.IGNORECASE)
_trailing_paren_re = re.compile(r"\s*\([^()]*\)\s*$")
_goal_re = re.compile(
    r"^\s*\*\*(?:goal|purpose):?\*\*:?\s*(?P<goal>.+?)\s*$", re.IGNORECASE
)
_malformed_id_re = re.compile(r"^T\d+\b")
_spec_dir_re = re.compile(r"^(?P<number>\d{3})-(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)$")
_spec_heading_re = re.compile(r"^#\s+(?:feature\s+specification:\s*)?(?P<title>.+?)\s*$", re.IGNORECASE)

_TYPE_KEYWORDS: tuple[tuple[str, str], ...] = (
    (r"\bpolish|\bcross[- ]cutting", "enhancement"),
    (r"\btest", "test"),
    (r"\bdoc", "docs"),
    (r"\brefactor", "refactor"),
    (r"\bbug|\bfix", "bug"),
)


class TaskParseError(InputError):
    def __init__(self, message: str, *, line_no: int | None = None, fragment: str | None = None):
        where = f" (line {line_no})" if line_no is not None else ""
        super().__init__(f"{message}{where}", fragment=fragment)
        self.line_no = line_no


@dataclass
class ParsedSection:
    heading: str
    title: str
    type: str
    priority: str
    goal: str
    line_no: int
    phase: int | None = None
    story: int | None = None
    tasks: list[str] = field(default_factory=list)

    def to_descriptor(self) -> IssueDescriptor:
        return IssueDescriptor(
            title=self.title,
            type=self.type,
            priority=self.priority,
            goal=self.goal,
            tasks=list(self.tasks),
        )


def _strip_decorations(text: str) -> str:
    # Cut at the first pictograph ("🎯 MVP" and friends).
    for idx, ch in enumerate(text):
        if unicodedata.category(ch) == "So":
            text = text[:idx]
            break
    return text.strip(" \t-:–—")


def _priority_from(heading: str, line_no: int) -> str:
    levels = {int(m.group("level")) for m in _priority_re.finditer(heading)}
    if len(levels) > 1:
        raise TaskParseError(
            "Conflicting priority markers in heading", line_no=line_no, fragment=heading
        )
    if not levels:
        return DEFAULT_PRIORITY
    return PRIORITY_BY_LEVEL.get(levels.pop(), "low")


def infer_type(title: str) -> str:
    low = title.lower()
    for pattern, kind in _TYPE_KEYWORDS:
        if re.search(pattern, low):
            return kind
    return "feature"


def parse_heading(heading: str, line_no: int = 0) -> ParsedSection:
    """Resolve one ``##`` heading text into title, type and priority."""
    priority = _priority_from(heading, line_no)
    text = _priority_re.sub("", heading)
    text = _strip_decorations(text)

    phase: int | None = None
    m_phase = _phase_re.match(text)
    if m_phase:
        phase = int(m_phase.group("phase"))
        text = text[m_phase.end():]

    story: int | None = None
    m_story = _story_re.match(text)
    if m_story:
        story = int(m_story.group("story"))
        text = m_story.group("title")

    while _trailing_paren_re.search(text):
        text = _trailing_paren_re.sub("", text)
    text = _strip_decorations(text)
    if not text:
        raise TaskParseError("Heading has no title after cleanup", line_no=line_no, fragment=heading)

    if story is not None:
        title = f"US{story}: {text}"
        kind = "feature"
    else:
        title = text
        kind = infer_type(text)
    return ParsedSection(
        heading=heading,
        title=title,
        type=kind,
        priority=priority,
        goal="",
        line_no=line_no,
        phase=phase,
        story=story,
    )


def parse_tasks(lines: Iterable[str]) -> list[ParsedSection]:  # noqa: C901 - linear state machine
    """Parse tasks.md lines into sections that carry at least one task."""
    sections: list[ParsedSection] = []
    current: ParsedSection | None = None
    seen_ids: dict[str, int] = {}
    for line_no, raw in enumerate(lines, start=1):
        line = raw.rstrip("\n")
        heading = _heading_re.match(line)
        if heading:
            current = parse_heading(heading.group("text"), line_no)
            sections.append(current)
            continue
        checklist = CHECKLIST_RE.match(line)
        if checklist:
            task = TASK_LINE_RE.match(line)
            if not task:
                if _malformed_id_re.match(checklist.group("rest")):
                    raise TaskParseError(
                        "Task ID must be T followed by exactly three digits",
                        line_no=line_no,
                        fragment=line.strip(),
                    )
                continue
            if current is None:
                raise TaskParseError(
                    "Task line appears before any '## ' section heading",
                    line_no=line_no,
                    fragment=line.strip(),
                )
            task_id = task.group("task_id")
            if task_id in seen_ids:
                raise TaskParseError(
                    f"Task {task_id} already listed on line {seen_ids[task_id]}",
                    line_no=line_no,
                    fragment=line.strip(),
                )
            seen_ids[task_id] = line_no
            current.tasks.append(line.strip())
            continue
        if current is not None and not current.goal:
            goal = _goal_re.match(line)
            if goal:
                current.goal = goal.group("goal")

    with_tasks = [s for s in sections if s.tasks]
    titles: dict[str, int] = {}
    for section in with_tasks:
        if section.title in titles:
            raise TaskParseError(
                f"Duplicate section title '{section.title}' (first seen on line {titles[section.title]})",
                line_no=section.line_no,
                fragment=section.heading,
            )
        titles[section.title] = section.line_no
        if not section.goal:
            section.goal = section.title
    return with_tasks


def undecodable(exc: UnicodeDecodeError, source: str) -> InputError:
    """``InputError`` for bytes that are not UTF-8, showing the bytes around the fault."""
    window = exc.object[max(0, exc.start - 40) : exc.end + 40]
    return InputError(
        f"{source} is not valid UTF-8 (byte offset {exc.start})",
        fragment=window.decode("utf-8", "replace"),
    )


def read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise undecodable(exc, str(path)) from exc


def read_task_states(tasks_file: Path) -> dict[str, bool]:
    """Checked state of every task line in ``tasks_file`` (empty when absent)."""
    if not tasks_file.exists():
        return {}
    return parse_checklist_states(read_text(tasks_file))


def humanize(name: str) -> str:
    words = name.replace("_", "-").split("-")
    text = " ".join(w for w in words if w)
    return text[:1].upper() + text[1:]


def _spec_title(spec_dir: Path, fallback: str) -> str:
    spec_md = spec_dir / "spec.md"
    if not spec_md.exists():
        return fallback
    for line in read_text(spec_md).splitlines():
        m = _spec_heading_re.match(line)
        if m:
            return m.group("title").strip() or fallback
    return fallback


def build_payload(spec_dir: str | Path, *, tasks_file: str = "tasks.md") -> SyncPayload:
    """Build the issues-sync payload for a ``specs/NNN-name`` directory."""
    path = Path(spec_dir)
    m = _spec_dir_re.match(path.name)
    if not m:
        raise InputError(
            "Spec directory name must look like NNN-short-name", fragment=path.name
        )
    tasks_path = path / tasks_file
    if not tasks_path.exists():
        raise InputError(f"Task file not found: {tasks_path}", fragment=str(tasks_path))
    sections = parse_tasks(read_text(tasks_path).splitlines())
    if not sections:
        raise TaskParseError(f"No task sections found in {tasks_path}")
    number = m.group("number")
    title = _spec_title(path, humanize(m.group("name")))
    return SyncPayload(
        spec_number=number,
        spec_name=m.group("name"),
        spec_title=title,
        spec_branch=path.name,
        spec_dir=path.as_posix(),
        epic_title=f"[{number}] {title}",
        issues=[s.to_descriptor() for s in sections],
    )


__all__ = [
    "TaskParseError",
    "ParsedSection",
    "parse_heading",
    "parse_tasks",
    "infer_type",
    "read_task_states",
    "read_text",
    "build_payload",
    "humanize",
]

from pathlib import Path

import pytest

from specsync.errors import InputError
from specsync.task_parser import (
    TaskParseError,
    build_payload,
    humanize,
    infer_type,
    parse_heading,
    parse_tasks,
    read_task_states,
)

TASKS_MD = """\
# Tasks: User Authentication

**Input**: Design documents from `/specs/001-user-auth/`

## Phase 1: Setup (Shared Infrastructure)

**Purpose**: Project initialization

- [x] T001 Create project structure
- [x] T002 [P] Configure linting

## Phase 2: User Story 1 - Sign in with email (Priority: P1) 🎯 MVP

**Goal**: Users can sign in with email and password

- [ ] T010 [US1] Add login form
- [x] T011 [US1] Add session store

## Phase 3: Polish & Cross-Cutting Concerns

- [ ] T020 Update docs

## Notes

- Commit after each task
"""


def test_parse_tasks_sections_in_file_order() -> None:
    sections = parse_tasks(TASKS_MD.splitlines())
    assert [s.title for s in sections] == [
        "Setup",
        "US1: Sign in with email",
        "Polish & Cross-Cutting Concerns",
    ]
    setup, story, polish = sections
    assert (setup.type, setup.priority, setup.phase) == ("feature", "medium", 1)
    assert setup.goal == "Project initialization"
    assert setup.tasks == ["- [x] T001 Create project structure", "- [x] T002 [P] Configure linting"]
    assert (story.type, story.priority, story.story) == ("feature", "high", 1)
    assert story.goal == "Users can sign in with email and password"
    assert polish.type == "enhancement"
    assert polish.goal == polish.title


def test_parse_heading_short_story_form() -> None:
    section = parse_heading("US2: Audit log (P2)")
    assert section.title == "US2: Audit log"
    assert section.priority == "medium"
    assert section.story == 2


@pytest.mark.parametrize(
    ("heading", "priority"),
    [("Hotfix (P0)", "critical"), ("Thing (Priority: P1)", "high"), ("Later (P3)", "low"), ("Plain", "medium")],
)
def test_priority_markers(heading: str, priority: str) -> None:
    assert parse_heading(heading).priority == priority


def test_conflicting_priority_markers_rejected() -> None:
    with pytest.raises(TaskParseError) as excinfo:
        parse_heading("Thing (P1) (P2)", line_no=7)
    assert "line 7" in str(excinfo.value)
    assert excinfo.value.fragment == "Thing (P1) (P2)"


def test_heading_without_title_rejected() -> None:
    with pytest.raises(TaskParseError):
        parse_heading("(P1)")


@pytest.mark.parametrize(
    ("title", "kind"),
    [
        ("Integration tests", "test"),
        ("Documentation", "docs"),
        ("Refactor storage", "refactor"),
        ("Fix login crash", "bug"),
        ("Payments", "feature"),
    ],
)
def test_infer_type(title: str, kind: str) -> None:
    assert infer_type(title) == kind


def test_task_before_heading_is_an_error() -> None:
    with pytest.raises(TaskParseError) as excinfo:
        parse_tasks(["- [ ] T001 Orphan", "## Setup"])
    assert excinfo.value.line_no == 1


def test_malformed_task_id_is_an_error() -> None:
    with pytest.raises(TaskParseError) as excinfo:
        parse_tasks(["## Setup", "- [ ] T01 Too short"])
    assert "three digits" in str(excinfo.value)


def test_duplicate_task_id_is_an_error() -> None:
    with pytest.raises(TaskParseError) as excinfo:
        parse_tasks(["## Setup", "- [ ] T001 One", "## Auth", "- [ ] T001 Again"])
    assert "already listed on line 2" in str(excinfo.value)


def test_duplicate_section_title_is_an_error() -> None:
    lines = ["## Setup", "- [ ] T001 One", "## Phase 2: Setup", "- [ ] T002 Two"]
    with pytest.raises(TaskParseError):
        parse_tasks(lines)


def test_sections_without_tasks_are_dropped() -> None:
    sections = parse_tasks(["## Overview", "text", "## Setup", "- [ ] T001 One"])
    assert [s.title for s in sections] == ["Setup"]


def test_read_task_states(tmp_path: Path) -> None:
    tasks = tmp_path / "tasks.md"
    tasks.write_text(TASKS_MD)
    states = read_task_states(tasks)
    assert states["T001"] is True
    assert states["T010"] is False
    assert read_task_states(tmp_path / "missing.md") == {}


def test_build_payload_from_spec_dir(tmp_path: Path) -> None:
    spec_dir = tmp_path / "specs" / "001-user-auth"
    spec_dir.mkdir(parents=True)
    (spec_dir / "tasks.md").write_text(TASKS_MD)
    (spec_dir / "spec.md").write_text("# Feature Specification: User Authentication\n\n## Summary\n")

    payload = build_payload(spec_dir)

    assert payload.spec_number == "001"
    assert payload.spec_name == "user-auth"
    assert payload.spec_branch == "001-user-auth"
    assert payload.spec_title == "User Authentication"
    assert payload.epic_title == "[001] User Authentication"
    assert len(payload.issues) == 3
    assert payload.issues[1].task_ids() == ["T010", "T011"]


def test_build_payload_title_falls_back_to_directory_name(tmp_path: Path) -> None:
    spec_dir = tmp_path / "002-audit-log"
    spec_dir.mkdir()
    (spec_dir / "tasks.md").write_text("## Setup\n- [ ] T001 One\n")
    assert build_payload(spec_dir).spec_title == "Audit log"


def test_build_payload_rejects_bad_directory_name(tmp_path: Path) -> None:
    spec_dir = tmp_path / "user-auth"
    spec_dir.mkdir()
    with pytest.raises(InputError):
        build_payload(spec_dir)


def test_humanize() -> None:
    assert humanize("user_auth-flow") == "User auth flow"

from __future__ import annotations

import json
from pathlib import Path

import pytest

from specsync import cli
from specsync.cli import _first_positional, issues_sync_main, labels_sync_main, main

TASKS_MD = """\
# Tasks: Widgets

## Phase 1: Setup

- [x] T001 Create project structure
- [x] T002 Configure linting

## Phase 2: User Story 1 - Sign in (Priority: P1)

- [ ] T010 [US1] Add login form
"""


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SPECSYNC_MOCK", "1")
    spec_dir = tmp_path / "specs" / "001-widgets"
    spec_dir.mkdir(parents=True)
    (spec_dir / "tasks.md").write_text(TASKS_MD)
    return tmp_path


def test_parse_tasks_prints_payload(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["parse-tasks", "specs/001-widgets"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["spec_number"] == "001"
    assert payload["spec_branch"] == "001-widgets"
    assert [i["title"] for i in payload["issues"]] == ["Setup", "US1: Sign in"]


def test_malformed_payload_leaves_mapping_untouched(workspace: Path) -> None:
    mapping = workspace / "mapping.json"
    mapping.write_text('{"repository": "acme/widgets", "specifications": {}}\n')
    before = mapping.read_bytes()
    bad = workspace / "payload.json"
    bad.write_text('{"spec_number": "001", "issues": [}')

    code = main(["issues-sync", "--json", str(bad), "--mapping", str(mapping)])

    assert code == 1
    assert mapping.read_bytes() == before


def test_payload_not_utf8_exits_with_input_error(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    mapping = workspace / "mapping.json"
    mapping.write_text('{"repository": "https://github.com/acme/widgets", "specifications": {}}\n')
    before = mapping.read_bytes()
    bad = workspace / "payload.json"
    bad.write_bytes(b'{"spec_number": "001", "spec_title": "\xff\xfe"}')

    code = main(["issues-sync", "--json", str(bad), "--mapping", str(mapping)])

    assert code == 1
    assert mapping.read_bytes() == before
    assert "not valid UTF-8" in capsys.readouterr().err


def test_tasks_file_not_utf8_exits_with_input_error(workspace: Path) -> None:
    (workspace / "specs" / "001-widgets" / "tasks.md").write_bytes(b"## Setup\n- [ ] T001 \xff\n")
    assert main(["parse-tasks", "specs/001-widgets"]) == 1


def test_issues_sync_in_mock_mode_writes_mapping(workspace: Path) -> None:
    mapping = workspace / "state" / "mapping.json"
    summary_file = workspace / "summary.json"

    code = main(
        [
            "issues-sync",
            "--from-tasks",
            "specs/001-widgets",
            "--repo",
            "acme/widgets",
            "--mapping",
            str(mapping),
            "--summary-json",
            str(summary_file),
            "--quiet",
        ]
    )

    assert code == 0
    saved = json.loads(mapping.read_text())
    assert saved["repository"] == "https://github.com/acme/widgets"
    spec = saved["specifications"]["001"]
    assert spec["epic_issue"] is not None
    assert [i["title"] for i in spec["issues"]] == ["Setup", "US1: Sign in"]
    assert [i["status"] for i in spec["issues"]] == ["closed", "open"]
    summary = json.loads(summary_file.read_text())
    assert summary["totals"]["created"] == 2


def test_plan_changes_nothing(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    mapping = workspace / "mapping.json"
    code = main(["issues-sync", "--from-tasks", "specs/001-widgets", "--mapping", str(mapping), "--plan"])
    assert code == 0
    plan = json.loads(capsys.readouterr().out)
    assert plan["totals"]["create"] == 2
    assert not mapping.exists()


def test_status_json(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    mapping = workspace / "mapping.json"
    main(["issues-sync", "--from-tasks", "specs/001-widgets", "--mapping", str(mapping), "--quiet"])
    capsys.readouterr()

    assert main(["status", "--json", "--mapping", str(mapping)]) == 0
    data = json.loads(capsys.readouterr().out)
    assert [s["spec_number"] for s in data["specifications"]] == ["001"]


@pytest.mark.parametrize("value", ["12", "abc"])
def test_labels_sync_rejects_malformed_spec_number(workspace: Path, value: str) -> None:
    assert main(["labels-sync", value]) == 2
    assert labels_sync_main([value]) == 2


def test_pr_dry_run_prints_title(workspace: Path, capsys, monkeypatch) -> None:
    mapping = workspace / "mapping.json"
    main(["issues-sync", "--from-tasks", "specs/001-widgets", "--mapping", str(mapping), "--quiet"])
    capsys.readouterr()
    monkeypatch.setattr(cli.PullRequestComposer, "compose", lambda self, spec: ("[001] Widgets", "body\n"))

    assert main(["pr", "--spec", "001", "--dry-run", "--mapping", str(mapping)]) == 0
    assert capsys.readouterr().out == "[001] Widgets\n\nbody\n"


def test_issues_sync_alias_forwards_positional(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[list[str]] = []
    monkeypatch.setattr(cli, "main", lambda argv: seen.append(argv) or 0)

    issues_sync_main(["--mapping", "m.json", "payload.json"])
    issues_sync_main(["--quiet"])

    assert seen[0] == ["issues-sync", "--mapping", "m.json", "--json", "payload.json"]
    assert seen[1] == ["issues-sync", "--quiet", "--json-stdin"]


def test_first_positional_skips_option_values() -> None:
    assert _first_positional(["--repo", "acme/widgets", "--quiet"]) is None
    assert _first_positional(["--repo", "acme/widgets", "p.json"]) == 2


def test_missing_source_is_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["issues-sync"])
    assert excinfo.value.code == 2

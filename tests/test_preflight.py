from __future__ import annotations

import subprocess
from typing import Any

import pytest

from specsync import git_utils, preflight
from specsync.errors import PrerequisiteError


def test_missing_gh_names_install_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(preflight.shutil, "which", lambda name: None)
    with pytest.raises(PrerequisiteError) as excinfo:
        preflight.require_gh()
    assert excinfo.value.remediation == "Install from: https://cli.github.com/"


def test_unauthenticated_gh(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess(cmd, 1, "", "You are not logged into any GitHub hosts")

    monkeypatch.setattr(preflight.subprocess, "run", fake_run)
    with pytest.raises(PrerequisiteError) as excinfo:
        preflight.require_auth("/usr/bin/gh")
    assert excinfo.value.remediation == "gh auth login"


def test_unpushed_branch_names_push_command(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(git_utils, "branch_pushed", lambda branch: False)
    with pytest.raises(PrerequisiteError) as excinfo:
        preflight.require_branch_pushed("001-widgets")
    assert excinfo.value.remediation == "git push -u origin 001-widgets"


def test_mock_mode_skips_github_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(*args: Any, **kwargs: Any) -> None:
        raise AssertionError("must not be called in mock mode")

    monkeypatch.setattr(preflight, "require_gh", refuse)
    monkeypatch.setattr(preflight, "require_branch_pushed", refuse)
    monkeypatch.setattr(git_utils, "in_git_repo", lambda: True)
    preflight.run_preflight(mock=True, branch="001-widgets")


def test_outside_git_repository(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(git_utils, "in_git_repo", lambda: False)
    with pytest.raises(PrerequisiteError):
        preflight.run_preflight(mock=True)

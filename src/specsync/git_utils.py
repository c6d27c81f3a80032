from __future__ import annotations

import shutil
import subprocess  # nosec B404 - git is invoked with controlled arguments
from pathlib import Path

from .errors import PrerequisiteError


def _git(*args: str, cwd: str | Path | None = None) -> subprocess.CompletedProcess[str]:
    git = shutil.which("git")
    if git is None:
        raise PrerequisiteError("git not found on PATH", remediation="Install git: https://git-scm.com/")
    return subprocess.run(  # nosec B603 - argument list, no shell
        [git, *args], capture_output=True, text=True, check=False, cwd=cwd
    )


def in_git_repo(cwd: str | Path | None = None) -> bool:
    result = _git("rev-parse", "--is-inside-work-tree", cwd=cwd)
    return result.returncode == 0 and result.stdout.strip() == "true"


def current_branch(cwd: str | Path | None = None) -> str | None:
    result = _git("rev-parse", "--abbrev-ref", "HEAD", cwd=cwd)
    branch = result.stdout.strip()
    if result.returncode != 0 or not branch or branch == "HEAD":
        return None
    return branch


def branch_pushed(branch: str, remote: str = "origin", cwd: str | Path | None = None) -> bool:
    result = _git("ls-remote", "--exit-code", "--heads", remote, branch, cwd=cwd)
    return result.returncode == 0


def commit_log(base: str, head: str = "HEAD", cwd: str | Path | None = None) -> list[str]:
    """One ``<short sha> <subject>`` line per commit in ``base..head``, oldest first."""
    result = _git("log", "--reverse", "--format=%h %s", f"{base}..{head}", cwd=cwd)
    if result.returncode != 0:
        # Base ref may only exist on the remote.
        result = _git("log", "--reverse", "--format=%h %s", f"origin/{base}..{head}", cwd=cwd)
    if result.returncode != 0:
        return []
    return [line for line in result.stdout.splitlines() if line.strip()]


__all__ = ["in_git_repo", "current_branch", "branch_pushed", "commit_log"]

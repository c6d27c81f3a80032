"""Prerequisite checks run before any GitHub mutation.

Each check raises :class:`PrerequisiteError` with the command that fixes it.
Mock mode skips the GitHub-facing checks.
"""

from __future__ import annotations

import shutil
import subprocess  # nosec B404 - gh auth status probe

from . import git_utils
from .errors import PrerequisiteError


def require_gh() -> str:
    gh = shutil.which("gh")
    if gh is None:
        raise PrerequisiteError(
            "GitHub CLI (gh) not found", remediation="Install from: https://cli.github.com/"
        )
    return gh


def require_auth(gh: str) -> None:
    result = subprocess.run(  # nosec B603 - fixed argument list
        [gh, "auth", "status"], capture_output=True, text=True, check=False
    )
    if result.returncode != 0:
        raise PrerequisiteError("Not authenticated with GitHub", remediation="gh auth login")


def require_git_repo() -> None:
    if not git_utils.in_git_repo():
        raise PrerequisiteError(
            "Not in a git repository", remediation="cd into the repository clone (or git init)"
        )


def require_branch_pushed(branch: str) -> None:
    if not git_utils.branch_pushed(branch):
        raise PrerequisiteError(
            f"Branch '{branch}' is not pushed to remote",
            remediation=f"git push -u origin {branch}",
        )


def run_preflight(*, mock: bool, branch: str | None = None, require_git: bool = True) -> None:
    if not mock:
        require_auth(require_gh())
    if require_git:
        require_git_repo()
    if branch and not mock:
        require_branch_pushed(branch)


__all__ = [
    "require_gh",
    "require_auth",
    "require_git_repo",
    "require_branch_pushed",
    "run_preflight",
]

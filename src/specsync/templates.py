"""Markdown bodies for the Epic, its sub-issues and the pull request.

Rendering is a pure function of the spec directory contents and the mapping,
so re-rendering an unchanged spec yields byte-identical bodies and the
reconciler can skip the edit.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .models import IssueRecord
from .status import checklist_with_status
from .task_parser import read_text

SUMMARY_LINES = 5
PLAN_EXCERPT_LINES = 5

_story_prefix_re = re.compile(r"^US\d+:\s*", re.IGNORECASE)


def _read(path: Path) -> list[str]:
    if not path.exists():
        return []
    return read_text(path).splitlines()


def section_lines(lines: Sequence[str], heading: str, limit: int = SUMMARY_LINES) -> list[str]:
    """Non-empty lines under ``heading`` up to the next level-2 heading."""
    out: list[str] = []
    inside = False
    for line in lines:
        if inside and line.startswith("##"):
            break
        if inside and line.strip():
            out.append(line)
        if line.strip() == heading:
            inside = True
    return out[:limit]


def _story_block(lines: Sequence[str], needle: str | None = None) -> list[str]:
    """Lines of the first ``### User Story`` block whose heading contains ``needle``."""
    block: list[str] = []
    inside = False
    for line in lines:
        if inside:
            if line.startswith("---") or line.startswith("#"):
                break
            block.append(line)
            continue
        if line.startswith("### User Story") and (
            needle is None or needle.lower() in line.lower()
        ):
            inside = True
    return block


@dataclass
class SpecDocuments:
    """Read-only view of ``spec.md`` / ``plan.md`` in a spec directory."""

    spec_lines: list[str]
    plan_lines: list[str]

    @classmethod
    def load(cls, spec_dir: str | Path) -> SpecDocuments:
        root = Path(spec_dir)
        return cls(_read(root / "spec.md"), _read(root / "plan.md"))

    def overview(self) -> list[str]:
        summary = section_lines(self.spec_lines, "## Summary")
        if summary:
            return summary
        return [line for line in _story_block(self.spec_lines, "User Story 1")[:7] if line.strip()]

    def plan_summary(self) -> list[str]:
        return section_lines(self.plan_lines, "## Summary")

    def plan_excerpt(self, title: str) -> list[str]:
        needle = _story_prefix_re.sub("", title).lower()
        if not needle:
            return []
        for idx, line in enumerate(self.plan_lines):
            if needle in line.lower():
                window = self.plan_lines[idx : idx + PLAN_EXCERPT_LINES]
                return [ln for ln in window if not ln.startswith("#")]
        return []

    def acceptance_criteria(self, title: str) -> list[str]:
        needle = _story_prefix_re.sub("", title)
        if not needle:
            return []
        block = _story_block(self.spec_lines, needle)
        out: list[str] = []
        collecting = False
        for line in block:
            if "**Acceptance Scenarios**" in line:
                collecting = True
                continue
            if collecting:
                if not line.strip():
                    if out:
                        break
                    continue
                out.append(line)
        return out


@dataclass
class DocLinks:
    repo_url: str
    branch: str
    spec_dir: str

    def blob(self, name: str) -> str:
        return f"{self.repo_url}/blob/{self.branch}/{self.spec_dir}/{name}"

    @property
    def spec(self) -> str:
        return self.blob("spec.md")

    @property
    def plan(self) -> str:
        return self.blob("plan.md")

    @property
    def tasks(self) -> str:
        return self.blob("tasks.md")


def _join(*blocks: str) -> str:
    text = "\n\n".join(b.strip("\n") for b in blocks if b and b.strip())
    return text + "\n"


def render_epic_body(title: str, links: DocLinks, docs: SpecDocuments) -> str:
    header = (
        f"# {title}\n\n"
        f"**Branch:** `{links.branch}` | **Spec:** [`spec.md`]({links.spec}) | "
        f"**Plan:** [`plan.md`]({links.plan}) | **Tasks:** [`tasks.md`]({links.tasks})"
    )
    overview = "## Overview\n\n" + "\n".join(docs.overview())
    plan = "## Implementation Plan\n\n" + "\n".join(docs.plan_summary())
    instructions = f"""---

<details>
<summary><b>📋 Instructions for Team Members</b></summary>

### Getting Started

1. **Assign yourself** to sub-issues you'll work on
2. **Checkout spec branch:**
   ```bash
   git checkout {links.branch}
   git pull origin {links.branch}
   ```

3. **Work on tasks** from sub-issues

### Commit Convention

Make commits with conventional format:

```bash
git commit -m "type(scope): description

Task: T012
Refs: #<issue-number>"
```

**Types:** feat, fix, test, refactor, docs, chore
**Scope:** Optional (auth, api, db, setup, etc.)

### Completion

1. Check off tasks in `tasks.md` as you complete them and re-run the sync
2. Sub-issues close automatically when all their tasks are checked
3. When all sub-issues are closed, open the PR: `{links.branch} → main`

</details>

---

📖 **Documentation**: See [`spec.md`]({links.spec}) for detailed requirements and [`plan.md`]({links.plan}) for implementation approach."""
    return _join(header, overview, plan, instructions)


BUG_SECTIONS = """## Reproduction Steps

1. [Step 1]
2. [Step 2]
3. [Expected vs Actual behavior]

## Impact

- **Severity**: [High/Medium/Low]
- **Users Affected**: [Describe]
- **Workaround**: [If available]"""


def render_task_body(
    *,
    epic_number: int,
    title: str,
    goal: str,
    issue_type: str,
    tasks: Iterable[str],
    states: dict[str, bool],
    links: DocLinks,
    docs: SpecDocuments,
) -> str:
    header = (
        f"**Epic:** [#{epic_number}]({links.repo_url}/issues/{epic_number}) | "
        f"**Branch:** `{links.branch}` | **Docs:** [`spec.md`]({links.spec}) · "
        f"[`plan.md`]({links.plan}) · [`tasks.md`]({links.tasks})"
    )
    goal_block = "## Goal\n\n" + goal
    excerpt = "\n".join(docs.plan_excerpt(title))
    bug = BUG_SECTIONS if issue_type == "bug" else ""
    acceptance = ""
    if issue_type == "feature":
        criteria = docs.acceptance_criteria(title)
        if criteria:
            acceptance = "## Acceptance Criteria\n\n" + "\n".join(criteria)
    checklist = "## Tasks\n\n" + "\n".join(checklist_with_status(tasks, states))
    return _join(header, goal_block, excerpt, bug, acceptance, checklist)


def pull_request_title(spec_number: str, spec_title: str) -> str:
    return f"[{spec_number}] {spec_title}"


def render_pull_request_body(
    *,
    spec_number: str,
    spec_title: str,
    branch: str,
    epic_number: int | None,
    issues: Sequence[IssueRecord],
    commits: Sequence[str],
) -> str:
    done = sum(1 for i in issues if i.closed)
    summary = (
        f"## Summary\n\nImplements spec {spec_number}: **{spec_title}** "
        f"(branch `{branch}`)."
    )
    if epic_number is not None:
        summary += f"\n\nEpic: #{epic_number}"
    work_lines = [f"- [{'x' if i.closed else ' '}] #{i.number} {i.title}" for i in issues]
    work = f"## Completed Work ({done}/{len(issues)})\n\n" + (
        "\n".join(work_lines) or "_No tracked issues._"
    )
    commit_block = "## Commits\n\n" + ("\n".join(f"- {c}" for c in commits) or "_No commits._")
    closing = [f"Closes #{epic_number}"] if epic_number is not None else []
    closing.extend(f"Closes #{i.number}" for i in issues)
    footer = "---\n\n" + "\n".join(closing) if closing else ""
    return _join(summary, work, commit_block, footer)


__all__ = [
    "DocLinks",
    "SpecDocuments",
    "section_lines",
    "render_epic_body",
    "render_task_body",
    "pull_request_title",
    "render_pull_request_body",
]

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from .config import CONFIG_DEFAULT, SyncConfig
from .core import IssueReconciler
from .env_auth import env_flag
from .github_cli import IssuesClient, IssuesClientConfig
from .labels import sync_labels, validate_spec_number
from .mapping_store import MappingStore
from .models import SyncPayload
from .payload import load_payload
from .preflight import require_branch_pushed, run_preflight
from .pull_request import PullRequestComposer
from .runtime import execute_command, prepare_config
from .task_parser import build_payload
from .ux import print_info, print_success, print_summary_box

REPO_HELP = "Target repository owner/name (default: current directory's GitHub remote)"
_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help=f"YAML config file (default: {CONFIG_DEFAULT} if present)")
    common.add_argument("--repo", help=REPO_HELP)
    common.add_argument("--mapping", help="Mapping file path (overrides paths.mapping_file)")
    common.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational output (env: SPECSYNC_QUIET=1)",
    )
    return common


def _build_parser() -> argparse.ArgumentParser:
    """Construct top-level CLI parser with subcommands.

    Global options live on every subcommand so the console-script aliases can
    forward their arguments unchanged.
    """
    common = _common_options()
    p = _FormatterArgumentParser(
        prog="specsync", description="Sync spec-kit tasks.md with GitHub issues and pull requests"
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    ps = sub.add_parser(
        "issues-sync", parents=[common], help="Create/update the Epic and sub-issues for one spec"
    )
    source = ps.add_mutually_exclusive_group(required=True)
    source.add_argument("--json", dest="json_file", metavar="FILE", help="Payload JSON file")
    source.add_argument("--json-stdin", action="store_true", help="Read payload JSON from stdin")
    source.add_argument(
        "--from-tasks", metavar="SPEC_DIR", help="Parse SPEC_DIR/tasks.md instead of a payload"
    )
    ps.add_argument("--plan", action="store_true", help="Print intended actions; change nothing")
    ps.add_argument("--summary-json", metavar="FILE", help="Write the sync summary to FILE")

    pl = sub.add_parser("labels-sync", parents=[common], help="Ensure type/priority/spec labels exist")
    pl.add_argument("spec_number", nargs="?", help="3-digit spec number (adds spec-NNN)")

    pt = sub.add_parser(
        "parse-tasks", parents=[common], help="Print the issues-sync payload parsed from tasks.md"
    )
    pt.add_argument("spec_dir", help="Spec directory, e.g. specs/001-user-auth")
    pt.add_argument("--output", help="Write payload JSON to file instead of stdout")

    pp = sub.add_parser("pr", parents=[common], help="Create or update the spec pull request")
    pp.add_argument("--spec", help="3-digit spec number (default: match current branch)")
    pp.add_argument("--base", help="Base branch (default: pull_request.base or main)")
    pp.add_argument("--dry-run", action="store_true", help="Print title/body only")

    pst = sub.add_parser("status", parents=[common], help="Show tracked specs and issue states")
    pst.add_argument("--spec", help="Only this 3-digit spec number")
    pst.add_argument("--json", action="store_true", help="Emit machine readable JSON")
    return p


def _mock_mode() -> bool:
    return env_flag("SPECSYNC_MOCK")


def _client(cfg: SyncConfig) -> IssuesClient:
    return IssuesClient(IssuesClientConfig(repo=cfg.github_repo, mock=_mock_mode()))


def _load_sync_payload(cfg: SyncConfig, args: argparse.Namespace) -> SyncPayload:
    if args.from_tasks:
        return build_payload(args.from_tasks, tasks_file=cfg.tasks_file)
    if args.json_stdin:
        return load_payload(None, stdin=sys.stdin)
    return load_payload(args.json_file)


def _write_json(path: str | None, data: Any) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    if path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)


def _cmd_issues_sync(cfg: SyncConfig, args: argparse.Namespace) -> int:
    payload = _load_sync_payload(cfg, args)
    store = MappingStore(cfg.mapping_path)
    reconciler = IssueReconciler(
        _client(cfg), store, tasks_file=cfg.tasks_file, extra_labels=cfg.extra_labels
    )
    if args.plan:
        _write_json(None, reconciler.plan(payload))
        return 0

    mock = _mock_mode()
    run_preflight(mock=mock, branch=payload.spec_branch, require_git=not mock)
    print_info(f"Syncing spec {payload.spec_number}: {len(payload.issues)} issue(s)")
    summary = reconciler.sync(payload)
    totals = summary["totals"]
    epic = summary["epic"]
    print_summary_box(
        "Sync Summary",
        [
            ("Epic", f"#{epic['number']} ({epic['state']})"),
            ("Issues", totals["issues"]),
            ("Created", totals["created"]),
            ("Closed", totals["closed"]),
            ("Reopened", totals["reopened"]),
            ("Updated", totals["updated"]),
            ("Unchanged", totals["unchanged"]),
        ],
    )
    if args.summary_json:
        _write_json(args.summary_json, summary)
    return 0


def _cmd_labels_sync(cfg: SyncConfig, args: argparse.Namespace) -> int:
    spec_number = validate_spec_number(args.spec_number)
    mock = _mock_mode()
    run_preflight(mock=mock, require_git=not mock)
    result = sync_labels(_client(cfg), spec_number, cfg.extra_labels)
    print_summary_box(
        "Label Sync Summary",
        [("Created", len(result.created)), ("Already present", len(result.existing))],
    )
    print_success("Labels in sync")
    return 0


def _cmd_parse_tasks(cfg: SyncConfig, args: argparse.Namespace) -> int:
    payload = build_payload(args.spec_dir, tasks_file=cfg.tasks_file)
    _write_json(args.output, payload.to_dict())
    if args.output:
        print_success(f"Wrote {len(payload.issues)} issue descriptor(s) to {args.output}")
    return 0


def _cmd_pr(cfg: SyncConfig, args: argparse.Namespace) -> int:
    spec_number = validate_spec_number(args.spec)
    mock = _mock_mode()
    if not args.dry_run:
        run_preflight(mock=mock, require_git=not mock)
    composer = PullRequestComposer(
        _client(cfg),
        MappingStore(cfg.mapping_path),
        base=args.base or cfg.pr_base,
        branch_check=None if (mock or args.dry_run) else require_branch_pushed,
    )
    result = composer.run(spec_number, dry_run=args.dry_run)
    if args.dry_run:
        sys.stdout.write(f"{result['title']}\n\n{result['body']}")
    else:
        print_info(f"{result['action'].capitalize()} PR #{result['number']}: {result['url']}")
    return 0


def _cmd_status(cfg: SyncConfig, args: argparse.Namespace) -> int:
    spec_number = validate_spec_number(args.spec)
    document = MappingStore(cfg.mapping_path).load()
    specs = [
        spec
        for number, spec in sorted(document.specifications.items())
        if spec_number is None or number == spec_number
    ]
    if args.json:
        _write_json(None, {"repository": document.repository, "specifications": [s.to_dict() for s in specs]})
        return 0
    if not specs:
        print("No specifications tracked.")
        return 0
    for spec in specs:
        closed = sum(1 for i in spec.issues if i.closed)
        epic = f"#{spec.epic_issue}" if spec.epic_issue is not None else "-"
        print(f"[{spec.spec_number}] {spec.spec_title}  epic {epic}  {closed}/{len(spec.issues)} closed")
        for issue in spec.issues:
            mark = "x" if issue.closed else " "
            print(f"  [{mark}] #{issue.number} {issue.title} ({issue.priority}, {len(issue.tasks)} tasks)")
        if spec.pull_request is not None:
            print(f"  PR #{spec.pull_request.number} {spec.pull_request.url}")
    return 0


def _build_handlers(args: argparse.Namespace, cfg: SyncConfig) -> dict[str, Any]:
    return {
        "issues-sync": lambda: _cmd_issues_sync(cfg, args),
        "labels-sync": lambda: _cmd_labels_sync(cfg, args),
        "parse-tasks": lambda: _cmd_parse_tasks(cfg, args),
        "pr": lambda: _cmd_pr(cfg, args),
        "status": lambda: _cmd_status(cfg, args),
    }


def _dispatch(args: argparse.Namespace) -> int:
    cfg = prepare_config(args)
    handler = _build_handlers(args, cfg)[args.cmd]
    return int(handler())


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return execute_command(lambda: _dispatch(args), args.cmd)


def issues_sync_main(argv: list[str] | None = None) -> int:
    """``gh-issues-sync [FILE]``: payload from FILE, or stdin when omitted."""
    forwarded = list(sys.argv[1:] if argv is None else argv)
    sources = {"--json", "--json-stdin", "--from-tasks"}
    if not any(arg.split("=", 1)[0] in sources for arg in forwarded):
        idx = _first_positional(forwarded)
        if idx is None:
            forwarded.append("--json-stdin")
        else:
            forwarded[idx : idx + 1] = ["--json", forwarded[idx]]
    return main(["issues-sync", *forwarded])


_VALUE_OPTIONS = {"--config", "--repo", "--mapping", "--summary-json"}


def _first_positional(argv: list[str]) -> int | None:
    skip = False
    for idx, arg in enumerate(argv):
        if skip:
            skip = False
            continue
        if arg in _VALUE_OPTIONS:
            skip = True
            continue
        if not arg.startswith("-"):
            return idx
    return None


def labels_sync_main(argv: list[str] | None = None) -> int:
    """``gh-labels-sync [NNN]``."""
    forwarded = list(sys.argv[1:] if argv is None else argv)
    return main(["labels-sync", *forwarded])


__all__ = ["main", "issues_sync_main", "labels_sync_main"]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

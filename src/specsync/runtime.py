"""Runtime helpers for specsync CLI orchestration."""

from __future__ import annotations

import sys
import time
from collections.abc import Callable
from typing import Any, Protocol

from . import ux
from .config import SyncConfig, load_config_or_default
from .env_auth import EnvAuthConfig, env_flag, load_environment
from .errors import (
    EXIT_FAILURE,
    GitHubAPIError,
    InputError,
    PrerequisiteError,
    SpecSyncError,
    classify_error,
    redact,
)
from .logging import configure_logging, get_logger


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[[str | None], SyncConfig] = load_config_or_default
) -> SyncConfig:
    """Load config, apply CLI overrides, set up logging and the environment."""
    cfg = loader(getattr(args, "config", None))
    repo_override = getattr(args, "repo", None)
    if repo_override:
        cfg.github_repo = repo_override
    mapping_override = getattr(args, "mapping", None)
    if mapping_override:
        cfg.mapping_file = mapping_override
        cfg.source_file = None
    if getattr(args, "quiet", False) or env_flag("SPECSYNC_QUIET"):
        ux.set_quiet(True)
    level = "DEBUG" if env_flag("SPECSYNC_DEBUG") else cfg.logging_level
    configure_logging(json_logging=cfg.logging_json_enabled, level=level)
    load_environment(
        EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
    )
    return cfg


def report_error(exc: BaseException) -> None:
    """Single error block on stderr; tokens are redacted."""
    info = classify_error(exc)
    ux.print_error(info.message)
    if isinstance(exc, PrerequisiteError) and exc.remediation:
        print(f"  Fix: {exc.remediation}", file=sys.stderr)
    if isinstance(exc, InputError) and exc.fragment:
        print(f"  Offending input: {redact(exc.fragment)}", file=sys.stderr)
    if isinstance(exc, GitHubAPIError) and exc.payload is not None:
        print(f"  API response: {redact(str(exc.payload))}", file=sys.stderr)


def execute_command(handler: _HandlerCallable, command: str) -> int:
    """Run a command handler and map failures to exit codes.

    ``SpecSyncError`` subclasses carry their own exit code (usage errors are
    2, everything else 1). Unexpected exceptions propagate.
    """
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
    except SpecSyncError as exc:
        report_error(exc)
        info = classify_error(exc)
        get_logger().log_error(
            f"{command} failed",
            error=info.message,
            category=info.category,
            transient=info.transient,
        )
        exit_code = getattr(exc, "exit_code", EXIT_FAILURE)
    duration_ms = (time.monotonic() - start) * 1000
    get_logger().log_performance(command, duration_ms, exit_code=exit_code)
    return exit_code


__all__ = ["prepare_config", "execute_command", "report_error"]

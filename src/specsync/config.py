from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import SpecSyncError
from .mapping_store import DEFAULT_MAPPING_FILE

CONFIG_DEFAULT = "specsync.config.yaml"


class ConfigError(SpecSyncError):
    category = "config"


@dataclass
class SyncConfig:
    source_file: Path | None = None
    github_repo: str | None = None
    mapping_file: str = DEFAULT_MAPPING_FILE
    tasks_file: str = "tasks.md"
    pr_base: str = "main"
    extra_labels: list[dict[str, str]] = field(default_factory=list)
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "WARNING"
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None

    @property
    def mapping_path(self) -> Path:
        path = Path(self.mapping_file)
        if path.is_absolute() or self.source_file is None:
            return path
        return self.source_file.parent / path


def _resolve_env_var(value: Any) -> Any:
    """Resolve ``$NAME`` values from the environment (fallback: the literal)."""
    if isinstance(value, str) and value.startswith("$"):
        return os.getenv(value[1:], value)
    return value


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{key}' must be a mapping")
    return cast(dict[str, Any], value)


def _extra_labels(raw: Any) -> list[dict[str, str]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("labels.extra must be a list of {name, color, description}")
    out: list[dict[str, str]] = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ConfigError(f"Invalid extra label entry: {entry!r}")
        out.append(
            {
                "name": str(entry["name"]),
                "color": str(entry.get("color") or "EDEDED").lstrip("#"),
                "description": str(entry.get("description") or ""),
            }
        )
    return out


def load_config(path: str | Path) -> SyncConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")
    try:
        raw_any = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw_any, dict):
        raise ConfigError(f"Configuration root must be a mapping: {p}")
    raw = cast(dict[str, Any], raw_any)
    gh = _section(raw, "github")
    paths = _section(raw, "paths")
    pull_request = _section(raw, "pull_request")
    labels = _section(raw, "labels")
    logging_config = _section(raw, "logging")
    env_auth = _section(raw, "environment")

    return SyncConfig(
        source_file=p,
        github_repo=_resolve_env_var(gh.get("repo")),
        mapping_file=str(paths.get("mapping_file") or DEFAULT_MAPPING_FILE),
        tasks_file=str(paths.get("tasks_file") or "tasks.md"),
        pr_base=str(pull_request.get("base") or "main"),
        extra_labels=_extra_labels(labels.get("extra")),
        logging_json_enabled=bool(logging_config.get("json_enabled", False)),
        logging_level=str(logging_config.get("level", "WARNING")),
        env_auth_load_dotenv=bool(env_auth.get("load_dotenv", True)),
        env_auth_dotenv_path=env_auth.get("dotenv_path"),
    )


def load_config_or_default(path: str | Path | None) -> SyncConfig:
    """Explicit paths must exist; the default file is optional."""
    if path is None:
        default = Path(CONFIG_DEFAULT)
        return load_config(default) if default.exists() else SyncConfig()
    return load_config(path)


__all__ = ["SyncConfig", "ConfigError", "load_config", "load_config_or_default", "CONFIG_DEFAULT"]

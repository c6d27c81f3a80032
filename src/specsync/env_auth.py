"""Token discovery for the direct GraphQL transport.

``gh`` manages its own credentials; the token looked up here only decides
whether GraphQL calls may bypass ``gh api graphql``. ``.env`` files are
loaded with python-dotenv without overriding variables already set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

TOKEN_VARIABLES = ("SPECSYNC_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")
_DOTENV_CANDIDATES = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    load_dotenv: bool = True
    dotenv_path: str | None = None


def load_environment(config: EnvAuthConfig) -> Path | None:
    """Load the first existing dotenv file; return its path."""
    if not config.load_dotenv:
        return None
    candidates = [config.dotenv_path] if config.dotenv_path else list(_DOTENV_CANDIDATES)
    for candidate in candidates:
        env_file = Path(candidate)
        if env_file.exists():
            load_dotenv(env_file, override=False)
            get_logger().debug(f"Loaded environment variables from {env_file}")
            return env_file
    return None


def select_token() -> str | None:
    for name in TOKEN_VARIABLES:
        raw = os.environ.get(name)
        if raw is None:
            continue
        token = raw.strip()
        if token:
            return token
    return None


def env_flag(name: str) -> bool:
    value = os.environ.get(name)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


__all__ = ["EnvAuthConfig", "load_environment", "select_token", "env_flag", "TOKEN_VARIABLES"]

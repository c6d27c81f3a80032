from pathlib import Path

import pytest

from specsync.env_auth import EnvAuthConfig, env_flag, load_environment, select_token


@pytest.fixture(autouse=True)
def _clear_tokens(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SPECSYNC_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"):
        monkeypatch.delenv(name, raising=False)


def test_select_token_prefers_specsync_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GH_TOKEN", "from-gh")
    monkeypatch.setenv("SPECSYNC_GITHUB_TOKEN", "  from-specsync  ")
    assert select_token() == "from-specsync"


def test_blank_tokens_are_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "   ")
    assert select_token() is None


def test_env_flag_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SPECSYNC_TEST_FLAG", "yes")
    assert env_flag("SPECSYNC_TEST_FLAG")
    monkeypatch.setenv("SPECSYNC_TEST_FLAG", "0")
    assert not env_flag("SPECSYNC_TEST_FLAG")
    assert not env_flag("SPECSYNC_TEST_UNSET")


def test_load_environment_reads_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # register GH_TOKEN with monkeypatch so the value dotenv sets is undone
    monkeypatch.setenv("GH_TOKEN", "placeholder")
    monkeypatch.delenv("GH_TOKEN")
    env_file = tmp_path / "custom.env"
    env_file.write_text("GH_TOKEN=from-dotenv\n")
    loaded = load_environment(EnvAuthConfig(dotenv_path=str(env_file)))
    assert loaded == env_file
    assert select_token() == "from-dotenv"


def test_load_environment_disabled(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("GH_TOKEN=x\n")
    assert load_environment(EnvAuthConfig(load_dotenv=False, dotenv_path=str(env_file))) is None

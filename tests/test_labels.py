from __future__ import annotations

import pytest

from specsync.errors import GitHubAPIError, UsageError
from specsync.labels import label_definitions, sync_labels, validate_spec_number


def test_first_sync_creates_every_label(fake_github) -> None:
    result = sync_labels(fake_github, "001")
    assert len(result.created) == 12
    assert result.existing == []
    assert fake_github.labels["spec-001"] == ("D4C5F9", "Related to spec 001")
    assert fake_github.labels["epic"] == ("8B00FF", "Epic issue for entire feature")
    assert fake_github.labels["critical"][0] == "B60205"


def test_existing_labels_are_not_an_error(fake_github) -> None:
    sync_labels(fake_github)
    result = sync_labels(fake_github, "002")
    assert result.created == ["spec-002"]
    assert len(result.existing) == 11


def test_other_failures_propagate() -> None:
    class Broken:
        def create_label(self, name: str, *, color: str, description: str) -> bool:
            raise GitHubAPIError("Command failed: gh label create", payload="HTTP 401: Bad credentials")

    with pytest.raises(GitHubAPIError):
        sync_labels(Broken())


def test_extra_labels_from_config() -> None:
    names = [d.name for d in label_definitions(None, [{"name": "security", "color": "000000"}])]
    assert names[-1] == "security"
    assert "spec-" not in "".join(names)


@pytest.mark.parametrize("value", ["1", "01", "0001", "abc", "12a"])
def test_malformed_spec_number(value: str) -> None:
    with pytest.raises(UsageError) as excinfo:
        validate_spec_number(value)
    assert excinfo.value.exit_code == 2


def test_valid_spec_number() -> None:
    assert validate_spec_number("042") == "042"
    assert validate_spec_number(None) is None

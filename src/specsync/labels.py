"""Label synchronizer: make sure the type, priority and spec labels exist."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from .errors import UsageError
from .logging import get_logger
from .status import spec_label

SPEC_NUMBER_RE = re.compile(r"^[0-9]{3}$")
SPEC_LABEL_COLOR = "D4C5F9"


@dataclass(frozen=True)
class LabelDefinition:
    name: str
    color: str
    description: str


TYPE_LABEL_DEFINITIONS: tuple[LabelDefinition, ...] = (
    LabelDefinition("epic", "8B00FF", "Epic issue for entire feature"),
    LabelDefinition("feature", "0366D6", "New feature implementation"),
    LabelDefinition("bug", "D73A4A", "Bug fix"),
    LabelDefinition("docs", "0075CA", "Documentation"),
    LabelDefinition("refactor", "FBCA04", "Code refactoring"),
    LabelDefinition("test", "0E8A16", "Testing"),
    LabelDefinition("enhancement", "A2EEEF", "Enhancement to existing feature"),
)

PRIORITY_LABEL_DEFINITIONS: tuple[LabelDefinition, ...] = (
    LabelDefinition("critical", "B60205", "Critical priority - must be done"),
    LabelDefinition("high", "D93F0B", "High priority - important"),
    LabelDefinition("medium", "FBCA04", "Medium priority - normal"),
    LabelDefinition("low", "0E8A16", "Low priority - nice to have"),
)


class _LabelCreator(Protocol):
    def create_label(self, name: str, *, color: str, description: str) -> bool: ...


@dataclass
class LabelSyncResult:
    created: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.existing)


def validate_spec_number(value: str | None) -> str | None:
    if value is None or value == "":
        return None
    if not SPEC_NUMBER_RE.match(value):
        raise UsageError(f"Spec number must be 3 digits (e.g., 001), got: {value!r}")
    return value


def spec_label_definition(spec_number: str) -> LabelDefinition:
    return LabelDefinition(
        spec_label(spec_number), SPEC_LABEL_COLOR, f"Related to spec {spec_number}"
    )


def label_definitions(
    spec_number: str | None = None, extra: Iterable[dict[str, str]] = ()
) -> list[LabelDefinition]:
    definitions = [*TYPE_LABEL_DEFINITIONS, *PRIORITY_LABEL_DEFINITIONS]
    if spec_number:
        definitions.append(spec_label_definition(spec_number))
    for entry in extra:
        definitions.append(
            LabelDefinition(entry["name"], entry.get("color", "EDEDED"), entry.get("description", ""))
        )
    return definitions


def sync_labels(
    client: _LabelCreator,
    spec_number: str | None = None,
    extra: Iterable[dict[str, str]] = (),
) -> LabelSyncResult:
    """Create every known label; existing ones are left untouched.

    Creation is attempted unconditionally and the client reports an
    "already exists" answer as ``False``. Any other failure propagates.
    """
    validate_spec_number(spec_number)
    logger = get_logger()
    result = LabelSyncResult()
    for definition in label_definitions(spec_number, extra):
        if client.create_label(
            definition.name, color=definition.color, description=definition.description
        ):
            result.created.append(definition.name)
            logger.info(f"label created {definition.name}", operation="label_create")
        else:
            result.existing.append(definition.name)
    return result


__all__ = [
    "LabelDefinition",
    "LabelSyncResult",
    "TYPE_LABEL_DEFINITIONS",
    "PRIORITY_LABEL_DEFINITIONS",
    "label_definitions",
    "spec_label_definition",
    "sync_labels",
    "validate_spec_number",
]

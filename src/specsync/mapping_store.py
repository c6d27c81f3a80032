from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator

from .errors import InputError, MappingConflictError
from .models import MappingDocument, Specification
from .schemas import mapping_schema

DEFAULT_MAPPING_FILE = ".specify/memory/gh-issues-mapping.json"

logger = logging.getLogger(__name__)


def _digest(data: bytes | None) -> str | None:
    if data is None:
        return None
    return hashlib.sha256(data).hexdigest()


def serialize_document(document: MappingDocument) -> bytes:
    return (json.dumps(document.to_dict(), indent=2, ensure_ascii=False) + "\n").encode("utf-8")


class MappingStore:
    """File-backed mapping document with a compare-and-swap save.

    The store remembers the digest of the bytes it last read or wrote.
    ``save`` refuses to overwrite a file whose content changed in between
    (``MappingConflictError``), and writes through a temporary sibling plus
    ``replace`` so a crash never leaves a truncated document behind.
    """

    def __init__(self, path: str | Path = DEFAULT_MAPPING_FILE):
        self.path = Path(path)
        self._document: MappingDocument | None = None
        self._digest: str | None = None
        self._loaded = False

    @property
    def document(self) -> MappingDocument:
        if self._document is None:
            return self.load()
        return self._document

    def _read_bytes(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None

    def load(self) -> MappingDocument:
        data = self._read_bytes()
        self._digest = _digest(data)
        self._loaded = True
        if data is None:
            self._document = MappingDocument()
            return self._document
        try:
            raw: Any = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InputError(
                f"Mapping file {self.path} is not valid JSON: {exc}",
                fragment=data[:200].decode("utf-8", "replace"),
            ) from exc
        errors = list(Draft7Validator(mapping_schema()).iter_errors(raw))
        if errors:
            first = errors[0]
            location = "/".join(str(p) for p in first.absolute_path) or "<root>"
            raise InputError(
                f"Mapping file {self.path} is malformed at {location}: {first.message}",
                fragment=json.dumps(first.instance)[:200],
            )
        self._document = MappingDocument.from_dict(raw)
        return self._document

    def exists(self) -> bool:
        return self.path.exists()

    def ensure(self, repository: str) -> MappingDocument:
        """Load the document, creating an empty one for ``repository`` on first use."""
        document = self.load()
        if self._digest is None:
            document.repository = repository
            self.save()
            logger.info("created mapping file %s", self.path)
        return document

    def save(self) -> None:
        if not self._loaded:
            raise MappingConflictError(f"Mapping file {self.path} saved before it was loaded")
        on_disk = _digest(self._read_bytes())
        if on_disk != self._digest:
            raise MappingConflictError(
                f"Mapping file {self.path} was modified by another process; re-run the sync"
            )
        payload = serialize_document(self.document)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_bytes(payload)
        tmp.replace(self.path)
        self._digest = _digest(payload)

    def get_specification(self, spec_number: str) -> Specification | None:
        return self.document.get(spec_number)

    def save_specification(self, spec: Specification, repository: str | None = None) -> None:
        document = self.document
        document.specifications[spec.spec_number] = spec
        if repository:
            document.repository = repository
        self.save()
        logger.debug("persisted mapping for spec %s", spec.spec_number)


__all__ = ["MappingStore", "DEFAULT_MAPPING_FILE", "serialize_document"]

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from bitcache_core.errors import ArtifactIOError, MetadataParseError, NotFoundError
from bitcache_core.schemas import MetadataIndex

logger = logging.getLogger(__name__)


class MetadataStore:
    """Reads and rewrites the digest index file inside a checkout.

    There is no locking: every workflow owns a fresh clone, so there is a single
    writer per file. Concurrent publishers are arbitrated by the remote rejecting
    a push that is not based on its current head.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> MetadataIndex:
        if not self.exists():
            raise NotFoundError(f"Metadata file not found: {self.path.name}")

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ArtifactIOError(f"cannot read {self.path}: {exc}") from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MetadataParseError(f"Failed to parse metadata {self.path.name}: {exc}") from exc
        if not isinstance(payload, dict):
            raise MetadataParseError(f"Metadata root must be a JSON object: {self.path.name}")

        try:
            index = MetadataIndex.model_validate(payload)
        except ValidationError as exc:
            raise MetadataParseError(f"Invalid metadata {self.path.name}: {exc}") from exc

        logger.info("metadata load path=%s entries=%d", self.path.name, len(index))
        return index

    def load_or_empty(self) -> MetadataIndex:
        if not self.exists():
            logger.info("metadata missing path=%s; starting empty", self.path.name)
            return MetadataIndex()
        return self.load()

    def save(self, index: MetadataIndex) -> None:
        body = json.dumps(index.to_payload(), ensure_ascii=False, indent=2, sort_keys=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(f"{body}\n", encoding="utf-8")
        except OSError as exc:
            raise ArtifactIOError(f"cannot write {self.path}: {exc}") from exc
        logger.info("metadata save path=%s entries=%d", self.path.name, len(index))


def load_index(path: str | Path) -> MetadataIndex:
    return MetadataStore(path).load()


def save_index(index: MetadataIndex, path: str | Path) -> None:
    MetadataStore(path).save(index)

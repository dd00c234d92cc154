from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from bitcache_core.config import BitcacheConfig
from bitcache_core.errors import InvalidInputError, NotFoundError
from bitcache_core.gateway import RepositoryGateway
from bitcache_core.schemas import MetadataEntry
from bitcache_core.storage import MetadataStore

from .checkout import temporary_checkout
from .paths import copy_file, require_file_name, resolve_inside

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RetrieveResult:
    entry: MetadataEntry
    saved_to: Path


def normalize_md5(md5: str) -> str:
    normalized = md5.strip().lower()
    if not normalized:
        raise InvalidInputError("md5 must not be empty")
    return normalized


def retrieve_bitstream(
    *,
    repo_url: str,
    md5: str,
    gateway: RepositoryGateway,
    destination_dir: Path | None = None,
    config: BitcacheConfig | None = None,
) -> RetrieveResult:
    config = config or BitcacheConfig()
    key = normalize_md5(md5)
    destination_dir = Path.cwd() if destination_dir is None else Path(destination_dir)
    logger.info("retrieve start md5=%s", key)

    with temporary_checkout(prefix=config.temp_prefix) as checkout_dir:
        gateway.clone(repo_url, checkout_dir).raise_for_status()

        store = MetadataStore(checkout_dir / config.metadata_filename)
        if not store.exists():
            raise NotFoundError("Metadata file not found in repository")
        index = store.load()

        entry = index.get(key)
        if entry is None:
            raise NotFoundError(f"No binary found for MD5: {key}")

        binary_path = resolve_inside(checkout_dir, entry.binary_path, label="binary path")
        if not binary_path.is_file():
            raise NotFoundError(f"Binary file not found: {entry.binary_path}")

        file_name = require_file_name(binary_path, label="binary")
        destination = destination_dir / file_name
        copy_file(binary_path, destination)

    logger.info("retrieve done md5=%s saved_to=%s", key, destination)
    return RetrieveResult(entry=entry, saved_to=destination)

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from bitcache_core.config import BitcacheConfig
from bitcache_core.digest import md5_file
from bitcache_core.errors import ArtifactIOError, InvalidInputError
from bitcache_core.gateway import RepositoryGateway, commit_and_push
from bitcache_core.schemas import MetadataEntry, rfc3339_now
from bitcache_core.storage import MetadataStore

from .checkout import temporary_checkout
from .paths import copy_file, require_file_name, resolve_inside

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PublishResult:
    md5: str
    entry: MetadataEntry
    replaced: MetadataEntry | None
    committed: bool


def publish_bitstream(
    *,
    repo_url: str,
    source: Path,
    bitstream: Path,
    target_path: Path | str,
    gateway: RepositoryGateway,
    config: BitcacheConfig | None = None,
) -> PublishResult:
    """Store `bitstream` in the repository under the digest of `source`.

    The checkout is discarded on every exit path, so a failure at any step
    leaves nothing behind locally and nothing pushed remotely.
    """
    config = config or BitcacheConfig()
    source = Path(source)
    bitstream = Path(bitstream)

    bitstream_name = require_file_name(bitstream, label="bitstream")
    source_name = require_file_name(source, label="source")
    if not bitstream.is_file():
        raise ArtifactIOError(f"bitstream file not found: {bitstream}")

    md5 = md5_file(source)
    logger.info("publish start md5=%s source=%s bitstream=%s", md5, source_name, bitstream_name)

    with temporary_checkout(prefix=config.temp_prefix) as checkout_dir:
        gateway.clone(repo_url, checkout_dir).raise_for_status()

        store = MetadataStore(checkout_dir / config.metadata_filename)
        index = store.load_or_empty()

        target_dir = resolve_inside(checkout_dir, target_path, label="target path")
        relative_target = target_dir.relative_to(checkout_dir.resolve())
        if relative_target.parts and relative_target.parts[0] == ".git":
            raise InvalidInputError(f"target path must not point into .git: {target_path}")
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArtifactIOError(f"cannot create target directory {target_path}: {exc}") from exc

        destination = target_dir / bitstream_name
        if destination.is_dir():
            raise InvalidInputError(f"target already holds a directory named {bitstream_name}")
        if destination == store.path.resolve():
            raise InvalidInputError(
                f"bitstream would overwrite the metadata file {config.metadata_filename}"
            )
        binary_path = destination.relative_to(checkout_dir.resolve()).as_posix()
        copy_file(bitstream, destination)
        logger.info("publish copied binary_path=%s", binary_path)

        entry = MetadataEntry(
            md5=md5,
            binary_path=binary_path,
            source_file=source_name,
            timestamp=rfc3339_now(),
        )
        replaced = index.upsert(entry)
        if replaced is not None:
            logger.info(
                "publish replaces entry md5=%s previous_binary_path=%s",
                md5,
                replaced.binary_path,
            )
        store.save(index)

        commit = commit_and_push(gateway, checkout_dir, config.commit_message(md5))

    logger.info("publish done md5=%s committed=%s", md5, not commit.skipped)
    return PublishResult(md5=md5, entry=entry, replaced=replaced, committed=not commit.skipped)

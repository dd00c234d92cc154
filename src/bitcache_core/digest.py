from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from .errors import ArtifactIOError

logger = logging.getLogger(__name__)


def md5_bytes(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def md5_file(path: str | Path) -> str:
    """Digest the whole file content; used as a lookup key, not for security."""
    file_path = Path(path)
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise ArtifactIOError(f"cannot read {file_path}: {exc.strerror or exc}") from exc

    digest = md5_bytes(data)
    logger.info("digest path=%s size=%d md5=%s", file_path, len(data), digest)
    return digest

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


@contextmanager
def temporary_checkout(prefix: str = "bitcache-") -> Iterator[Path]:
    """Yield a not-yet-existing `repo` path inside a private temporary directory.

    The whole directory tree is removed when the block exits, whether it
    completes or raises.
    """
    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        checkout_dir = Path(tmp) / "repo"
        logger.info("checkout create dir=%s", checkout_dir)
        try:
            yield checkout_dir
        finally:
            logger.info("checkout cleanup dir=%s", tmp)

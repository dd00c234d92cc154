"""bitcache library: digest index, git gateway and workflows."""

from .config import BitcacheConfig, load_config
from .schemas import MetadataEntry, MetadataIndex

__all__ = [
    "BitcacheConfig",
    "MetadataEntry",
    "MetadataIndex",
    "load_config",
]

"""Storage layer for the JSON digest index."""

from .metadata import MetadataStore, load_index, save_index

__all__ = ["MetadataStore", "load_index", "save_index"]

"""Publish and retrieve workflows over a temporary checkout."""

from .checkout import temporary_checkout
from .publish import PublishResult, publish_bitstream
from .retrieve import RetrieveResult, normalize_md5, retrieve_bitstream

__all__ = [
    "PublishResult",
    "RetrieveResult",
    "normalize_md5",
    "publish_bitstream",
    "retrieve_bitstream",
    "temporary_checkout",
]

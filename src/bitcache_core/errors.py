from __future__ import annotations


class BitcacheError(Exception):
    """Base class for every failure surfaced to the operator."""


class ArtifactIOError(BitcacheError):
    """A file could not be read, written or copied."""


class MetadataParseError(BitcacheError, ValueError):
    """The metadata document is not valid JSON or does not match the schema."""


class NotFoundError(BitcacheError, LookupError):
    """Metadata file, digest key or stored binary is missing."""


class InvalidInputError(BitcacheError, ValueError):
    """A path or argument cannot be used as given."""


class ConfigError(BitcacheError, ValueError):
    """The configuration file is unreadable or invalid."""


class GatewayError(BitcacheError):
    def __init__(self, operation: str, diagnostic: str, *, returncode: int | None = None) -> None:
        self.operation = operation
        self.diagnostic = diagnostic.strip()
        self.returncode = returncode
        detail = self.diagnostic or "no diagnostic output"
        if returncode is None:
            super().__init__(f"git {operation} failed: {detail}")
        else:
            super().__init__(f"git {operation} failed (exit={returncode}): {detail}")

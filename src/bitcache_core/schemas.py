from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator, model_validator

_LEGACY_WRAPPER_KEY = "entries"


def now_in_utc() -> datetime:
    return datetime.now(tz=UTC)


def rfc3339_now() -> str:
    return now_in_utc().isoformat()


class DTOBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class MetadataEntry(DTOBase):
    md5: str
    binary_path: str
    source_file: str
    timestamp: str

    @field_validator("md5", mode="before")
    @classmethod
    def normalize_md5(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("md5", "binary_path", "source_file", "timestamp")
    @classmethod
    def validate_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("metadata fields must not be empty")
        return value


class MetadataIndex(RootModel[dict[str, MetadataEntry]]):
    """Digest -> entry map persisted as one flat JSON object."""

    root: dict[str, MetadataEntry] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def normalize_document(cls, value: Any) -> Any:
        # Older writers wrapped the map as {"entries": {...}}; keys compare lowercased.
        if (
            isinstance(value, dict)
            and set(value) == {_LEGACY_WRAPPER_KEY}
            and isinstance(value[_LEGACY_WRAPPER_KEY], dict)
        ):
            value = value[_LEGACY_WRAPPER_KEY]
        if isinstance(value, dict):
            return {
                key.strip().lower() if isinstance(key, str) else key: entry
                for key, entry in value.items()
            }
        return value

    @model_validator(mode="after")
    def validate_keys_match_entries(self) -> MetadataIndex:
        for key, entry in self.root.items():
            if key != entry.md5:
                raise ValueError(f"metadata key {key} does not match entry md5 {entry.md5}")
        return self

    def get(self, md5: str) -> MetadataEntry | None:
        return self.root.get(md5)

    def upsert(self, entry: MetadataEntry) -> MetadataEntry | None:
        previous = self.root.get(entry.md5)
        self.root[entry.md5] = entry
        return previous

    def to_payload(self) -> dict[str, dict[str, str]]:
        return {key: self.root[key].model_dump(mode="json") for key in sorted(self.root)}

    def __contains__(self, md5: object) -> bool:
        return md5 in self.root

    def __len__(self) -> int:
        return len(self.root)

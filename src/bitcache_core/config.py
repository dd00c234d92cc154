from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_METADATA_FILENAME = "bitcache_metadata.json"
DEFAULT_COMMIT_MESSAGE = "Add bitstream for source MD5: {md5}"


class BitcacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    git_executable: str = "git"
    metadata_filename: str = DEFAULT_METADATA_FILENAME
    commit_message_template: str = DEFAULT_COMMIT_MESSAGE
    ssh_key: str | None = None
    temp_prefix: str = "bitcache-"

    @field_validator("git_executable")
    @classmethod
    def validate_git_executable(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("git_executable must not be empty")
        return normalized

    @field_validator("metadata_filename")
    @classmethod
    def validate_metadata_filename(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized or normalized in {".", ".."}:
            raise ValueError("metadata_filename must not be empty")
        if "/" in normalized or "\\" in normalized:
            raise ValueError("metadata_filename must be a bare file name at repository root")
        return normalized

    @field_validator("commit_message_template")
    @classmethod
    def validate_commit_message_template(cls, value: str) -> str:
        if "{md5}" not in value:
            raise ValueError("commit_message_template must contain the {md5} placeholder")
        return value

    @field_validator("ssh_key")
    @classmethod
    def validate_ssh_key(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    def commit_message(self, md5: str) -> str:
        return self.commit_message_template.replace("{md5}", md5)


def load_config(path: str | Path | None = None) -> BitcacheConfig:
    if path is None:
        return BitcacheConfig()

    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read configuration {config_path}: {exc}") from exc

    try:
        payload = _parse_yaml_or_json(raw)
        return BitcacheConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _parse_yaml_or_json(raw: str) -> dict[str, Any]:
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        parsed = _parse_yaml(raw)
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed


def _parse_yaml(raw: str) -> dict[str, Any]:
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ValueError(f"Configuration is neither JSON nor YAML: {exc}") from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed

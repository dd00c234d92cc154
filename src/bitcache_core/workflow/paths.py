from __future__ import annotations

import shutil
from pathlib import Path, PurePosixPath, PureWindowsPath

from bitcache_core.errors import ArtifactIOError, InvalidInputError


def require_file_name(path: Path, *, label: str) -> str:
    name = path.name
    if not name or name in {".", ".."}:
        raise InvalidInputError(f"Invalid {label} path (no file name): {path}")
    return name


def resolve_inside(root: Path, relative: str | Path, *, label: str) -> Path:
    """Join `relative` under `root`, refusing absolute paths and `..` escapes."""
    text = str(relative)
    if PurePosixPath(text).is_absolute() or PureWindowsPath(text).is_absolute():
        raise InvalidInputError(f"{label} must be relative to the repository root: {text}")

    root_resolved = root.resolve()
    candidate = (root_resolved / text).resolve()
    if candidate != root_resolved and root_resolved not in candidate.parents:
        raise InvalidInputError(f"{label} escapes the repository: {text}")
    return candidate


def copy_file(src: Path, dst: Path) -> None:
    try:
        shutil.copyfile(src, dst)
    except OSError as exc:
        raise ArtifactIOError(f"cannot copy {src} to {dst}: {exc}") from exc

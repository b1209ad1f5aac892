"""Storage-root path helpers."""

import os
from pathlib import Path, PurePosixPath

SIDECAR_SUFFIX = ".asset.json"


def leaf_name(client_name: str) -> str:
    """Return the last component of a client-supplied (possibly relative) name.

    Browsers send ``webkitRelativePath``-style names with ``/`` and some
    clients send Windows separators, so both are treated as separators.
    """
    raw = str(client_name).replace("\\", "/")
    parts = [p for p in PurePosixPath(raw).parts if p not in ("", ".", "..", "/")]
    if not parts:
        raise ValueError(f"Upload name has no usable file name: {client_name!r}")
    return parts[-1]


def check_storage_name(name: str) -> str:
    """Return ``name`` if it is a single plain path component, else raise ValueError."""
    text = str(name)
    if (not text or text in (".", "..") or "/" in text or "\\" in text
            or "\x00" in text or text.startswith(".")):
        raise ValueError(f"Not a storage name: {name!r}")
    return text


def sidecar_path(storage_root, storage_name: str) -> Path:
    """Return the metadata record path paired with a storage name."""
    return Path(storage_root) / f"{storage_name}{SIDECAR_SUFFIX}"


def content_path(storage_root, storage_name: str) -> Path:
    """Return the content file/directory path for a storage name."""
    return Path(storage_root) / check_storage_name(storage_name)


def is_within(root, candidate) -> bool:
    """Return whether ``candidate`` resolves inside ``root`` (symlinks followed)."""
    root_real = os.path.realpath(root)
    cand_real = os.path.realpath(candidate)
    try:
        return os.path.commonpath([root_real, cand_real]) == root_real
    except ValueError:
        return False


def safe_member_path(asset_dir, member: str) -> Path:
    """Resolve a folder member's relative path, refusing traversal outside ``asset_dir``."""
    raw = str(member).replace("\\", "/")
    p = PurePosixPath(raw)
    if not raw or p.is_absolute() or ".." in p.parts:
        raise ValueError(f"Member path escapes the asset directory: {member!r}")
    target = Path(asset_dir).joinpath(*p.parts)
    if not is_within(asset_dir, target):
        raise ValueError(f"Member path escapes the asset directory: {member!r}")
    return target

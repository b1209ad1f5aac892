"""Collision-resistant storage names for uploaded files and folders."""

import collections
import logging
import os
import re
import secrets
import threading
import time
from typing import Optional, Tuple

from ..config import COMPOUND_EXTENSIONS
from .paths import SIDECAR_SUFFIX
from .records import AssetKind

logger = logging.getLogger("scan_depot")

_UNSAFE_CHARS = re.compile(r'[\x00-\x1f\x7f<>:"/\\|?*]+')
# A user name must never look like a sidecar or a sidecar temp file.
_SIDECAR_RUN = re.compile(re.escape(SIDECAR_SUFFIX), re.IGNORECASE)
_DEFAULT_MAX_BASE_LENGTH = 100
_RANDOM_SPAN = 1_000_000_000

_issue_lock = threading.Lock()
_recently_issued = collections.deque(maxlen=4096)
_recently_issued_set = set()


def split_extension(name: str) -> Tuple[str, str]:
    """Split ``name`` into (stem, extension), keeping compound suffixes whole.

    ``brain.nii.gz`` -> (``brain``, ``.nii.gz``); ``scan.DCM`` -> (``scan``,
    ``.DCM``); dotfiles and extension-less names get an empty extension.
    """
    lower = name.lower()
    for compound in COMPOUND_EXTENSIONS:
        if lower.endswith(compound) and len(name) > len(compound):
            cut = len(name) - len(compound)
            return name[:cut], name[cut:]
    stem, ext = os.path.splitext(name)
    return stem, ext


def sanitize_base_name(base_name: str, fallback: str,
                       max_length: int = _DEFAULT_MAX_BASE_LENGTH) -> str:
    """Reduce a user-supplied label to something safe as a single path component."""
    cleaned = _UNSAFE_CHARS.sub("_", str(base_name or ""))
    cleaned = _SIDECAR_RUN.sub("_asset_json", cleaned)
    cleaned = cleaned.strip(" .").replace("..", "_").strip(" .")
    if len(cleaned) > max_length:
        logger.warning(
            "Base name too long (%d chars), truncating to %d", len(cleaned), max_length
        )
        cleaned = cleaned[:max_length].rstrip(". ")
    if not cleaned:
        cleaned = _SIDECAR_RUN.sub("_asset_json", fallback)
    return cleaned


def _disambiguator() -> str:
    millis = time.time_ns() // 1_000_000
    return f"{millis}-{secrets.randbelow(_RANDOM_SPAN)}"


def generate_storage_name(
    base_name: str,
    kind: AssetKind,
    storage_root: str,
    fallback: str = "upload",
    max_length: int = _DEFAULT_MAX_BASE_LENGTH,
) -> str:
    """Return a storage name not yet used under ``storage_root``.

    Single files keep their (possibly compound) extension after the
    disambiguator so ``scan.dcm`` becomes ``scan-<ms>-<rand>.dcm``; folders get
    ``<label>-<ms>-<rand>``. Nothing is created on disk.
    """
    kind = AssetKind(kind)
    ext = ""
    stem = base_name
    if kind is AssetKind.SINGLE_FILE:
        stem, ext = split_extension(str(base_name or ""))
        ext = _UNSAFE_CHARS.sub("", ext)
    stem = sanitize_base_name(stem, fallback, max_length)

    while True:
        candidate = f"{stem}-{_disambiguator()}{ext}"
        if SIDECAR_SUFFIX in candidate.lower():
            continue
        with _issue_lock:
            if candidate in _recently_issued_set:
                continue
            if (os.path.lexists(os.path.join(storage_root, candidate))
                    or os.path.lexists(os.path.join(storage_root, candidate + SIDECAR_SUFFIX))):
                logger.debug("Storage name %s already taken; drawing again.", candidate)
                continue
            if len(_recently_issued) == _recently_issued.maxlen:
                _recently_issued_set.discard(_recently_issued[0])
            _recently_issued.append(candidate)
            _recently_issued_set.add(candidate)
        return candidate


def folder_base_name(original_name: Optional[str], fallback: str) -> str:
    """Return the directory label for an archive name (extension removed)."""
    if not original_name:
        return fallback
    stem, _ = split_extension(os.path.basename(str(original_name).replace("\\", "/")))
    return stem or fallback

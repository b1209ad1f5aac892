"""Folder ingestion: a batch of files uploaded together becomes one folder asset."""

import logging
import os
from typing import Optional, Sequence, Set

from ..core import (
    AssetKind, AssetRecord, EmptyBatchError, FolderOrigin,
    StorageWriteFailedError, split_extension, utc_timestamp,
)
from .base import UploadedFile, check_size, place_upload, progress, remove_path

logger = logging.getLogger("scan_depot.ingest")


def unique_member_name(leaf: str, taken: Set[str]) -> str:
    """Return ``leaf``, or ``stem-N.ext`` if a batch member already uses that name.

    Comparison is case-insensitive so the result is safe on case-folding
    filesystems. ``taken`` is updated.
    """
    candidate = leaf
    stem, ext = split_extension(leaf)
    n = 0
    while candidate.casefold() in taken:
        n += 1
        candidate = f"{stem}-{n}{ext}"
    taken.add(candidate.casefold())
    return candidate


def store_folder(registry, label: Optional[str],
                 files: Sequence[UploadedFile]) -> AssetRecord:
    """Persist a batch of uploads as one assembled folder asset.

    Client-side directory structure is flattened to leaf names. Every file is
    size-checked before anything is written; if placing any file fails, the
    directory is removed and StorageWriteFailedError propagates without a
    record being committed.
    """
    cfg = registry.config
    if not files:
        raise EmptyBatchError("Folder upload contains no files")
    for upload in files:
        check_size(upload, cfg.max_upload_bytes)
    leaves = [upload.display_name() for upload in files]

    display_label = (label or "").strip() or cfg.folder_fallback_label
    storage_name, asset_dir = registry.allocate_directory(
        display_label, fallback=cfg.folder_fallback_label
    )

    members = []
    total = 0
    taken: Set[str] = set()
    try:
        for upload, leaf in progress(
            zip(files, leaves), cfg.show_progress, f"Storing {display_label}", len(files)
        ):
            member = unique_member_name(leaf, taken)
            if member != leaf:
                logger.warning(
                    "Duplicate file name %s in folder %s; stored as %s",
                    leaf, display_label, member,
                )
            total += place_upload(upload, asset_dir / member)
            members.append(member)
    except OSError as exc:
        remove_path(asset_dir)
        raise StorageWriteFailedError(
            f"Failed to assemble folder {display_label}: {exc}"
        ) from exc

    record = AssetRecord(
        id=storage_name,
        original_name=display_label,
        kind=AssetKind.FOLDER,
        origin=FolderOrigin.ASSEMBLED,
        size=total,
        file_count=len(members),
        members=members,
        upload_date=utc_timestamp(),
        storage_path=os.fspath(asset_dir),
    )
    try:
        registry.commit(record)
    except StorageWriteFailedError:
        remove_path(asset_dir)
        raise
    logger.info(
        "Stored folder %s as %s (%d files, %d bytes)",
        display_label, storage_name, len(members), total,
    )
    return record

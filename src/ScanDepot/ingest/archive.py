"""Archive ingestion: a zip upload is extracted, classified and kept as a folder asset.

Extraction first preserves the archive's internal layout. The whole
extracted tree is then scanned recursively, because imaging exports commonly
nest one directory per series. Recognized imaging files are lifted to the top
of the asset directory under their leaf names; everything else is discarded,
so the directory's children are exactly the members.
"""

import logging
import os
import shutil
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence

from ..core import (
    AssetKind, AssetRecord, CorruptArchiveError, FolderOrigin,
    NoRecognizedContentError, ScannedFile, SizeExceededError,
    StorageWriteFailedError, UnsupportedTypeError, classify_tree,
    is_archive_file, utc_timestamp,
)
from ..core.naming import folder_base_name
from .base import UploadedFile, check_size, progress, remove_path
from .folder import unique_member_name

logger = logging.getLogger("scan_depot.ingest")

# Metadata entries macOS Finder adds to archives; never imaging content.
_MACOS_METADATA_DIR = "__MACOSX"
_APPLEDOUBLE_PREFIX = "._"


def _safe_entry_parts(entry_name: str) -> Optional[List[str]]:
    """Return the path components of a zip entry, or None if it must be skipped."""
    raw = entry_name.replace("\\", "/")
    p = PurePosixPath(raw)
    if p.is_absolute() or (len(raw) >= 2 and raw[1] == ":"):
        return None
    parts = [part for part in p.parts if part not in ("", ".")]
    if not parts or ".." in parts:
        return None
    return parts


def extract_archive(archive_path: str, dest_dir, max_total_bytes: int = 0,
                    show_progress: bool = False) -> int:
    """Extract every file entry of ``archive_path`` under ``dest_dir``.

    Entries that would land outside ``dest_dir`` (absolute names, ``..``)
    and macOS resource-fork entries are skipped with a log line. Returns the
    number of files written.

    Raises SizeExceededError when the declared uncompressed total is over
    ``max_total_bytes`` (0 = unlimited), the zipfile/zlib errors for damaged
    archives, FileExistsError, IsADirectoryError or NotADirectoryError when
    one entry name is used both as a file and as a directory, and OSError
    for other write failures.
    """
    dest_dir = Path(dest_dir)
    written = 0
    with zipfile.ZipFile(archive_path, "r") as zf:
        infos = [info for info in zf.infolist() if not info.is_dir()]
        declared = sum(info.file_size for info in infos)
        if max_total_bytes and declared > max_total_bytes:
            raise SizeExceededError(
                f"Archive expands to {declared:,} bytes, over the "
                f"{max_total_bytes:,} byte extraction limit"
            )
        for info in progress(infos, show_progress, "Extracting", len(infos)):
            parts = _safe_entry_parts(info.filename)
            if parts is None:
                logger.warning("Skipping unsafe archive entry: %r", info.filename)
                continue
            if parts[0] == _MACOS_METADATA_DIR or parts[-1].startswith(_APPLEDOUBLE_PREFIX):
                logger.debug("Skipping macOS metadata entry: %s", info.filename)
                continue
            target = dest_dir.joinpath(*parts)
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, open(target, "wb") as out:
                shutil.copyfileobj(src, out, 1024 * 1024)
            written += 1
    return written


def flatten_members(asset_dir, recognized: Sequence[ScannedFile]) -> List[str]:
    """Move recognized files to the top of ``asset_dir`` under unique leaf names.

    Returns the member names in scan order and removes everything else under
    ``asset_dir``. OSError propagates.
    """
    asset_dir = Path(asset_dir)
    members = []
    taken = set()
    for entry in recognized:
        member = unique_member_name(entry.name, taken)
        if member != entry.relpath:
            # A top-level directory may already carry the leaf name.
            while os.path.lexists(asset_dir / member):
                member = unique_member_name(entry.name, taken)
            os.replace(entry.path, asset_dir / member)
            if member != entry.name:
                logger.warning(
                    "Duplicate file name %s in archive; stored %s as %s",
                    entry.name, entry.relpath, member,
                )
        members.append(member)

    keep = set(members)
    for child in sorted(os.listdir(asset_dir)):
        if child in keep:
            continue
        path = asset_dir / child
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            os.remove(path)
    return members


def store_archive(registry, upload: UploadedFile) -> AssetRecord:
    """Extract a zip upload into a new folder asset of recognized imaging files.

    Raises SizeExceededError, UnsupportedTypeError, CorruptArchiveError,
    NoRecognizedContentError or StorageWriteFailedError. Every failure after
    the asset directory was allocated removes that directory first.
    """
    cfg = registry.config
    check_size(upload, cfg.max_upload_bytes)
    archive_name = upload.display_name()
    if not is_archive_file(archive_name, cfg):
        raise UnsupportedTypeError(f"{archive_name}: not a zip archive")

    label = folder_base_name(archive_name, cfg.archive_fallback_label)
    storage_name, asset_dir = registry.allocate_directory(
        label, fallback=cfg.archive_fallback_label
    )

    try:
        written = extract_archive(
            upload.path, asset_dir, cfg.max_extracted_bytes, cfg.show_progress
        )
    except SizeExceededError:
        remove_path(asset_dir)
        raise
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError,
            NotImplementedError, RuntimeError,
            FileExistsError, NotADirectoryError, IsADirectoryError) as exc:
        # RuntimeError: encrypted entries; NotImplementedError: unsupported
        # compression; the directory errors: an entry used both as file and dir.
        remove_path(asset_dir)
        raise CorruptArchiveError(f"Failed to extract {archive_name}: {exc}") from exc
    except OSError as exc:
        remove_path(asset_dir)
        raise StorageWriteFailedError(
            f"Failed to write extracted content of {archive_name}: {exc}"
        ) from exc
    logger.info("Extracted %d file(s) from %s into %s", written, archive_name, storage_name)
    upload.discard()

    scan = classify_tree(os.fspath(asset_dir), cfg)
    if not scan.recognized:
        remove_path(asset_dir)
        raise NoRecognizedContentError(
            f"{archive_name} contains no recognized imaging files "
            f"({len(scan.rejected)} other file(s) discarded)"
        )

    try:
        members = flatten_members(asset_dir, scan.recognized)
    except OSError as exc:
        remove_path(asset_dir)
        raise StorageWriteFailedError(
            f"Failed to discard non-imaging content of {archive_name}: {exc}"
        ) from exc
    if scan.rejected:
        logger.info(
            "Discarded %d non-imaging file(s) from %s", len(scan.rejected), archive_name
        )

    record = AssetRecord(
        id=storage_name,
        original_name=label,
        kind=AssetKind.FOLDER,
        origin=FolderOrigin.EXTRACTED,
        size=scan.total_size,
        file_count=len(scan.recognized),
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
        "Stored archive %s as %s (%d files, %d bytes)",
        archive_name, storage_name, record.file_count, record.size,
    )
    return record

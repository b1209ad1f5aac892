"""Single-file ingestion: one upload becomes one single-file asset."""

import logging
import os

from ..core import (
    AssetKind, AssetRecord, SizeExceededError, StorageWriteFailedError,
    UnsupportedTypeError, is_acceptable_upload, utc_timestamp,
)
from .base import UploadedFile, check_size, place_upload, remove_path

logger = logging.getLogger("scan_depot.ingest")

_PLACE_ATTEMPTS = 8


def store_file(registry, upload: UploadedFile) -> AssetRecord:
    """Persist one uploaded file and commit its metadata record.

    Raises SizeExceededError, UnsupportedTypeError or StorageWriteFailedError;
    on failure no content and no sidecar is left behind.
    """
    cfg = registry.config
    check_size(upload, cfg.max_upload_bytes)
    original_name = upload.display_name()
    if not is_acceptable_upload(original_name, upload.content_type, cfg):
        raise UnsupportedTypeError(
            f"{original_name}: unsupported file type "
            f"(declared media type: {upload.content_type or 'none'}). "
            "Upload DICOM, NIfTI, raster images or a zip archive."
        )

    for _ in range(_PLACE_ATTEMPTS):
        storage_name = registry.new_storage_name(original_name, AssetKind.SINGLE_FILE)
        dest = registry.root / storage_name
        try:
            size = place_upload(upload, dest)
        except FileExistsError:
            # Someone else owns dest; leave it alone and draw again.
            logger.warning("Storage name %s was taken concurrently, retrying", storage_name)
            continue
        except OSError as exc:
            remove_path(dest)
            raise StorageWriteFailedError(
                f"Failed to store {original_name}: {exc}"
            ) from exc
        break
    else:
        raise StorageWriteFailedError(
            f"Failed to store {original_name}: no free storage name after "
            f"{_PLACE_ATTEMPTS} attempts"
        )

    if size > cfg.max_upload_bytes:
        remove_path(dest)
        raise SizeExceededError(
            f"{original_name}: {size:,} bytes exceeds the "
            f"{cfg.max_upload_bytes:,} byte limit"
        )

    record = AssetRecord(
        id=storage_name,
        original_name=original_name,
        kind=AssetKind.SINGLE_FILE,
        size=size,
        file_count=1,
        upload_date=utc_timestamp(),
        storage_path=os.fspath(dest),
        content_type=upload.content_type,
    )
    try:
        registry.commit(record)
    except StorageWriteFailedError:
        remove_path(dest)
        raise
    logger.info("Stored file %s as %s (%d bytes)", original_name, storage_name, size)
    return record

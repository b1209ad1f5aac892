"""Core utilities -- re-exports all public symbols for convenience."""

from .errors import (
    RegistryError,
    SizeExceededError,
    UnsupportedTypeError,
    EmptyBatchError,
    CorruptArchiveError,
    NoRecognizedContentError,
    StorageWriteFailedError,
    NotFoundError,
    MetadataCorruptError,
)
from .records import AssetRecord, AssetKind, FolderOrigin, utc_timestamp, parse_timestamp
from .classify import is_imaging_file, is_acceptable_upload, is_archive_file
from .naming import generate_storage_name, split_extension, sanitize_base_name
from .scanning import ScannedFile, TreeScan, iter_files, classify_tree
from .metadata import write_sidecar, read_sidecar, cleanup_temp_files
from .paths import (
    SIDECAR_SUFFIX, leaf_name, check_storage_name, sidecar_path, content_path,
    is_within, safe_member_path,
)
from .logging import setup_logging

__all__ = [
    "RegistryError", "SizeExceededError", "UnsupportedTypeError",
    "EmptyBatchError", "CorruptArchiveError", "NoRecognizedContentError",
    "StorageWriteFailedError", "NotFoundError", "MetadataCorruptError",
    "AssetRecord", "AssetKind", "FolderOrigin", "utc_timestamp", "parse_timestamp",
    "is_imaging_file", "is_acceptable_upload", "is_archive_file",
    "generate_storage_name", "split_extension", "sanitize_base_name",
    "ScannedFile", "TreeScan", "iter_files", "classify_tree",
    "write_sidecar", "read_sidecar", "cleanup_temp_files",
    "SIDECAR_SUFFIX", "leaf_name", "check_storage_name", "sidecar_path",
    "content_path", "is_within", "safe_member_path",
    "setup_logging",
]

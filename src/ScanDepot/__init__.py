"""Provide package metadata and the public entry points for `ScanDepot`."""

import logging as _logging

__version__ = "1.0.0"
_logger = _logging.getLogger("scan_depot")

from .config import RegistryConfig  # noqa: E402
from .core import (  # noqa: E402
    AssetKind,
    AssetRecord,
    FolderOrigin,
    RegistryError,
)
from .ingest import UploadedFile, store_archive, store_file, store_folder  # noqa: E402
from .registry import AssetListing, AssetRegistry, DownloadTarget, MemberEntry  # noqa: E402

__all__ = [
    "__version__",
    "RegistryConfig",
    "AssetRegistry", "AssetListing", "DownloadTarget", "MemberEntry",
    "AssetRecord", "AssetKind", "FolderOrigin",
    "RegistryError",
    "UploadedFile", "store_file", "store_folder", "store_archive",
]

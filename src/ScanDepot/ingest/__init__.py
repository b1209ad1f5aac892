"""Ingestion paths -- one module per upload shape."""

from .base import UploadedFile, check_size, place_upload
from .single import store_file
from .folder import store_folder, unique_member_name
from .archive import store_archive, extract_archive

__all__ = [
    "UploadedFile", "check_size", "place_upload",
    "store_file", "store_folder", "unique_member_name",
    "store_archive", "extract_archive",
]

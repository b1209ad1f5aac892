"""Filesystem-backed asset registry.

`AssetRegistry` is the single source of truth for which assets exist. Each
asset is one content object (file or directory) plus one sidecar metadata
record under the storage root. The sidecar is the commit point: ingestion
writes content first and the sidecar last; deletion removes content first
and the sidecar last. Nothing is cached; every read goes back to disk.
"""

import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .config import RegistryConfig
from .core import (
    SIDECAR_SUFFIX, AssetKind, AssetRecord, EmptyBatchError,
    MetadataCorruptError, NotFoundError, StorageWriteFailedError,
    check_storage_name, cleanup_temp_files, content_path, generate_storage_name,
    is_archive_file, read_sidecar, safe_member_path, sidecar_path,
    write_sidecar,
)
from .core.metadata import is_temp_sidecar

logger = logging.getLogger("scan_depot")


@dataclass
class SkippedRecord:
    """A sidecar `list()` could not use."""

    sidecar: str
    reason: str


@dataclass
class AssetListing:
    """Result of `AssetRegistry.list()`: newest first, plus consistency findings."""

    assets: List[AssetRecord] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)
    missing_content: List[str] = field(default_factory=list)

    def __iter__(self):
        return iter(self.assets)

    def __len__(self):
        return len(self.assets)

    @property
    def total_bytes(self) -> int:
        return sum(a.size for a in self.assets)

    def summaries(self) -> List[dict]:
        return [a.summary() for a in self.assets]


@dataclass(frozen=True)
class DownloadTarget:
    """Where an asset's bytes live and what name to present them under."""

    id: str
    path: Path
    original_name: str
    is_folder: bool
    size: int
    content_type: Optional[str] = None


@dataclass(frozen=True)
class MemberEntry:
    """One member file of a folder asset."""

    name: str
    relpath: str
    path: Path
    size: int


class AssetRegistry:
    """List, resolve and delete assets stored under one storage root."""

    def __init__(self, config: Optional[RegistryConfig] = None):
        """Bind to the configured storage root, creating it if needed."""
        self.config = config or RegistryConfig()
        self.root = Path(self.config.storage_root).expanduser().resolve()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageWriteFailedError(
                f"Cannot create storage root {self.root}: {exc}"
            ) from exc
        cleanup_temp_files(os.fspath(self.root))
        logger.debug("Asset registry bound to %s", self.root)

    # -- naming / allocation -------------------------------------------------

    def new_storage_name(self, base_name: str, kind: AssetKind,
                         fallback: str = "upload") -> str:
        """Return an unused storage name derived from ``base_name``."""
        return generate_storage_name(
            base_name, kind, os.fspath(self.root),
            fallback=fallback, max_length=self.config.max_base_name_length,
        )

    def allocate_directory(self, label: str, fallback: str) -> Tuple[str, Path]:
        """Create a fresh, empty asset directory and return (storage name, path)."""
        while True:
            name = self.new_storage_name(label, AssetKind.FOLDER, fallback=fallback)
            path = self.root / name
            try:
                path.mkdir()
            except FileExistsError:
                continue
            except OSError as exc:
                raise StorageWriteFailedError(
                    f"Cannot create asset directory {name}: {exc}"
                ) from exc
            return name, path

    # -- persistence primitive -----------------------------------------------

    def commit(self, record: AssetRecord) -> None:
        """Write ``record``'s sidecar; after this the asset exists."""
        check_storage_name(record.id)
        try:
            write_sidecar(os.fspath(sidecar_path(self.root, record.id)), record)
        except OSError as exc:
            raise StorageWriteFailedError(
                f"Failed to write metadata for {record.id}: {exc}"
            ) from exc
        logger.debug("Committed metadata for %s", record.id)

    # -- reads ---------------------------------------------------------------

    def _content_path(self, asset_id: str) -> Path:
        try:
            return content_path(self.root, asset_id)
        except ValueError as exc:
            raise NotFoundError(f"No asset with id {asset_id!r}") from exc

    def get(self, asset_id: str) -> AssetRecord:
        """Return the record for ``asset_id``.

        Raises NotFoundError if there is no sidecar and MetadataCorruptError
        if the sidecar cannot be parsed.
        """
        self._content_path(asset_id)
        path = sidecar_path(self.root, asset_id)
        try:
            record = read_sidecar(os.fspath(path))
        except FileNotFoundError as exc:
            raise NotFoundError(f"No asset with id {asset_id!r}") from exc
        except (OSError, ValueError, TypeError) as exc:
            raise MetadataCorruptError(
                f"Metadata record for {asset_id} is unreadable: {exc}"
            ) from exc
        if record.id != asset_id:
            raise MetadataCorruptError(
                f"Metadata record {path.name} names a different asset ({record.id})"
            )
        return record

    def list(self, strict: bool = False) -> AssetListing:
        """Read every sidecar and return the assets, most recent upload first.

        A sidecar that cannot be parsed is skipped and reported in
        ``AssetListing.skipped`` (or raises MetadataCorruptError when
        ``strict``). A record whose content is gone stays in the listing and
        its id is reported in ``AssetListing.missing_content``.
        """
        listing = AssetListing()
        try:
            names = sorted(os.listdir(self.root))
        except OSError as exc:
            raise StorageWriteFailedError(
                f"Cannot read storage root {self.root}: {exc}"
            ) from exc

        for name in names:
            if not name.endswith(SIDECAR_SUFFIX):
                continue
            asset_id = name[:-len(SIDECAR_SUFFIX)]
            try:
                record = self.get(asset_id)
            except NotFoundError:
                # Deleted between listdir() and read.
                continue
            except MetadataCorruptError as exc:
                if strict:
                    raise
                logger.warning("Skipping corrupt metadata record %s: %s", name, exc)
                listing.skipped.append(SkippedRecord(sidecar=name, reason=str(exc)))
                continue
            if not os.path.lexists(self.root / asset_id):
                logger.warning("Asset %s has a metadata record but no content", asset_id)
                listing.missing_content.append(asset_id)
            listing.assets.append(record)

        listing.assets.sort(key=lambda r: (r.uploaded_at, r.id), reverse=True)
        return listing

    def resolve_download(self, asset_id: str) -> DownloadTarget:
        """Map an id to its content path and original display name."""
        record = self.get(asset_id)
        path = self._content_path(asset_id)
        if not path.exists():
            raise NotFoundError(f"Content of asset {asset_id} is missing")
        return DownloadTarget(
            id=record.id,
            path=path,
            original_name=record.original_name,
            is_folder=record.is_folder,
            size=record.size,
            content_type=record.content_type,
        )

    def folder_contents(self, asset_id: str) -> List[MemberEntry]:
        """Return the member files of a folder asset, in member order."""
        record = self.get(asset_id)
        if not record.is_folder:
            raise NotFoundError(f"Asset {asset_id} is not a folder")
        asset_dir = self._content_path(asset_id)
        entries = []
        for member in record.members:
            try:
                path = safe_member_path(asset_dir, member)
                size = path.stat().st_size
            except (ValueError, OSError) as exc:
                logger.warning("Member %s of %s is unavailable: %s", member, asset_id, exc)
                continue
            entries.append(MemberEntry(
                name=member.rsplit("/", 1)[-1], relpath=member, path=path, size=size,
            ))
        return entries

    def resolve_member(self, asset_id: str, member: str) -> Path:
        """Return the path of one listed member file of a folder asset."""
        record = self.get(asset_id)
        if not record.is_folder or member not in record.members:
            raise NotFoundError(f"Asset {asset_id} has no member {member!r}")
        try:
            path = safe_member_path(self._content_path(asset_id), member)
        except ValueError as exc:
            raise NotFoundError(str(exc)) from exc
        if not path.is_file():
            raise NotFoundError(f"Member {member!r} of {asset_id} is missing")
        return path

    # -- delete / reconcile --------------------------------------------------

    def delete(self, asset_id: str) -> Optional[AssetRecord]:
        """Remove an asset's content, then its metadata record.

        Raises NotFoundError if no sidecar exists, so deleting twice is an
        error. Content already gone (an interrupted earlier delete) is
        tolerated. Returns the deleted record, or None when its sidecar was
        corrupt.
        """
        path = self._content_path(asset_id)
        meta = sidecar_path(self.root, asset_id)
        try:
            record = self.get(asset_id)
        except MetadataCorruptError as exc:
            if not meta.exists():
                raise NotFoundError(f"No asset with id {asset_id!r}") from exc
            logger.warning("Deleting %s despite corrupt metadata: %s", asset_id, exc)
            record = None

        try:
            if path.is_dir() and not path.is_symlink():
                if record is not None and not record.is_folder:
                    logger.warning("Asset %s is recorded as a file but stored as a directory", asset_id)
                shutil.rmtree(path)
            elif os.path.lexists(path):
                os.remove(path)
            else:
                logger.warning("Content of %s already missing; removing metadata only", asset_id)
        except OSError as exc:
            raise StorageWriteFailedError(
                f"Failed to remove content of {asset_id}: {exc}"
            ) from exc

        try:
            os.remove(meta)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageWriteFailedError(
                f"Removed content of {asset_id} but not its metadata: {exc}"
            ) from exc
        logger.info("Deleted asset %s", asset_id)
        return record

    def find_orphans(self, min_age_seconds: float = 0.0) -> List[str]:
        """Return storage names of content objects that have no metadata record.

        These are left by ingestions interrupted before commit. Objects
        younger than ``min_age_seconds`` are ignored so an in-flight upload
        is not reported.
        """
        now = time.time()
        orphans = []
        for name in sorted(os.listdir(self.root)):
            if name.startswith(".") or name.endswith(SIDECAR_SUFFIX) or is_temp_sidecar(name):
                continue
            if sidecar_path(self.root, name).exists():
                continue
            try:
                age = now - os.lstat(self.root / name).st_mtime
            except FileNotFoundError:
                continue
            if age < min_age_seconds:
                continue
            orphans.append(name)
        return orphans

    def prune_orphans(self, min_age_seconds: float = 3600.0) -> List[str]:
        """Remove content objects with no metadata record; return their names."""
        removed = []
        for name in self.find_orphans(min_age_seconds):
            path = self.root / name
            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                else:
                    os.remove(path)
            except OSError as exc:
                logger.error("Failed to remove orphan %s: %s", name, exc)
                continue
            logger.info("Removed orphaned content %s", name)
            removed.append(name)
        return removed

    # -- ingestion entry points ----------------------------------------------

    def spool(self, filename: str, stream, content_type: Optional[str] = None):
        """Copy an incoming byte stream to the spool directory as an owned upload."""
        from .ingest import UploadedFile
        return UploadedFile.from_stream(
            filename, stream, content_type, spool_dir=self.config.spool_dir or None
        )

    def store_file(self, upload) -> AssetRecord:
        from .ingest import store_file
        return store_file(self, upload)

    def store_folder(self, label: Optional[str], files) -> AssetRecord:
        from .ingest import store_folder
        return store_folder(self, label, files)

    def store_archive(self, upload) -> AssetRecord:
        from .ingest import store_archive
        return store_archive(self, upload)

    def ingest(self, files: Sequence, label: Optional[str] = None) -> AssetRecord:
        """Route an untyped batch by shape.

        One ``.zip`` goes to archive extraction, one other file to the
        single-file store, and several files (or any batch given a label)
        to the folder assembler.
        """
        files = list(files)
        if not files:
            raise EmptyBatchError("Upload contains no files")
        if len(files) == 1 and label is None:
            upload = files[0]
            if is_archive_file(upload.filename, self.config):
                return self.store_archive(upload)
            return self.store_file(upload)
        return self.store_folder(label, files)

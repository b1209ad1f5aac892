"""Upload value type and helpers shared by the three ingestion paths."""

import io
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Optional

from tqdm import tqdm

from ..core import SizeExceededError, leaf_name, UnsupportedTypeError

logger = logging.getLogger("scan_depot.ingest")


@dataclass
class UploadedFile:
    """One uploaded file as handed over by the HTTP layer.

    ``filename`` is the client-supplied name and may carry a relative
    directory prefix (folder uploads). ``path`` is where the bytes sit now.
    When ``owned`` is true the file is a spool the registry may move or
    delete; otherwise it belongs to the caller and is only ever copied.
    """

    filename: str
    path: str
    size: Optional[int] = None
    content_type: Optional[str] = None
    owned: bool = False

    @property
    def declared_size(self) -> int:
        if self.size is not None:
            return int(self.size)
        return os.path.getsize(self.path)

    @classmethod
    def from_path(cls, path: str, filename: Optional[str] = None,
                  content_type: Optional[str] = None) -> "UploadedFile":
        """Wrap a caller-owned file on disk (it is copied, never moved)."""
        return cls(
            filename=filename or os.path.basename(path),
            path=str(path),
            size=os.path.getsize(path),
            content_type=content_type,
            owned=False,
        )

    @classmethod
    def from_stream(cls, filename: str, stream: BinaryIO,
                    content_type: Optional[str] = None,
                    spool_dir: Optional[str] = None) -> "UploadedFile":
        """Spool a binary stream to a temporary file the registry then owns."""
        if spool_dir:
            os.makedirs(spool_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix="upload-", suffix=".part", dir=spool_dir or None)
        try:
            with os.fdopen(fd, "wb") as out:
                shutil.copyfileobj(stream, out, 1024 * 1024)
        except BaseException:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise
        return cls(
            filename=filename,
            path=tmp_path,
            size=os.path.getsize(tmp_path),
            content_type=content_type,
            owned=True,
        )

    @classmethod
    def from_bytes(cls, filename: str, data: bytes,
                   content_type: Optional[str] = None,
                   spool_dir: Optional[str] = None) -> "UploadedFile":
        """Spool in-memory bytes to a temporary file the registry then owns."""
        return cls.from_stream(filename, io.BytesIO(data), content_type, spool_dir)

    def display_name(self) -> str:
        """Return the leaf file name, or raise UnsupportedTypeError if there is none."""
        try:
            return leaf_name(self.filename)
        except ValueError as exc:
            raise UnsupportedTypeError(str(exc)) from exc

    def discard(self) -> None:
        """Delete the spooled bytes if the registry owns them."""
        if not self.owned:
            return
        try:
            os.remove(self.path)
            logger.debug("Removed spooled upload %s", self.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove spooled upload %s: %s", self.path, exc)


def check_size(upload: UploadedFile, limit: int) -> None:
    """Raise SizeExceededError when the declared size is over ``limit``."""
    size = upload.declared_size
    if size > limit:
        raise SizeExceededError(
            f"{upload.filename}: {size:,} bytes exceeds the {limit:,} byte limit"
        )


def place_upload(upload: UploadedFile, dest) -> int:
    """Move (owned spool) or copy (caller file) an upload to ``dest``; return its size.

    ``dest`` must not exist yet. OSError propagates.
    """
    dest = str(dest)
    if os.path.lexists(dest):
        raise FileExistsError(dest)
    if upload.owned:
        shutil.move(upload.path, dest)
    else:
        shutil.copyfile(upload.path, dest)
    return os.path.getsize(dest)


def remove_path(path) -> None:
    """Remove a file or directory tree left by a failed ingestion, logging failures."""
    path = str(path)
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)
        else:
            return
        logger.info("Rolled back %s", path)
    except OSError as exc:
        logger.error("Rollback of %s failed: %s", path, exc)


def progress(iterable: Iterable, enabled: bool, desc: str, total: Optional[int] = None):
    """Wrap ``iterable`` in a tqdm bar when progress display is enabled."""
    return tqdm(iterable, total=total, desc=desc, unit="file", disable=not enabled, leave=False)

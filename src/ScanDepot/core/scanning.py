"""Recursive directory scanning and classification of extracted trees."""

import logging
import os
from dataclasses import dataclass, field
from typing import Iterator, List

from .classify import is_imaging_file
from .paths import is_within

logger = logging.getLogger("scan_depot")


@dataclass(frozen=True)
class ScannedFile:
    """One regular file found under a scanned root."""

    relpath: str
    path: str
    size: int

    @property
    def name(self) -> str:
        return self.relpath.rsplit("/", 1)[-1]


@dataclass
class TreeScan:
    """Result of classifying every file under a root."""

    recognized: List[ScannedFile] = field(default_factory=list)
    rejected: List[ScannedFile] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.recognized)


def iter_files(root: str) -> Iterator[ScannedFile]:
    """Yield every regular file under ``root``, depth-first in name order.

    Symlinks are never followed out of ``root``; entries whose real path
    escapes it are skipped with a warning.
    """
    root_real = os.path.realpath(root)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for fname in sorted(filenames):
            fpath = os.path.join(dirpath, fname)
            if not is_within(root_real, fpath):
                logger.warning(
                    "Skipping file outside scan root via symlink/path traversal: %s", fpath
                )
                continue
            if not os.path.isfile(fpath):
                continue
            rel = os.path.relpath(fpath, root).replace(os.sep, "/")
            yield ScannedFile(relpath=rel, path=fpath, size=os.path.getsize(fpath))


def classify_tree(root: str, config=None) -> TreeScan:
    """Split every file under ``root`` into recognized imaging files and the rest."""
    scan = TreeScan()
    for entry in iter_files(root):
        if is_imaging_file(entry.name, config):
            scan.recognized.append(entry)
        else:
            scan.rejected.append(entry)
    logger.debug(
        "Classified %s: %d recognized, %d rejected",
        root, len(scan.recognized), len(scan.rejected),
    )
    return scan


"""Upload classification by file name and declared media type."""

import logging
from pathlib import PurePosixPath
from typing import Iterable, Optional

from ..config import ClassifierConfig, RegistryConfig

logger = logging.getLogger("scan_depot")

_DEFAULT_CLASSIFIER = ClassifierConfig()


def _classifier(config) -> ClassifierConfig:
    if config is None:
        return _DEFAULT_CLASSIFIER
    if isinstance(config, RegistryConfig):
        return config.classifier
    return config


def _name_of(filename: str) -> str:
    return PurePosixPath(str(filename).replace("\\", "/")).name.lower()


def _matches(filename: str, extensions: Iterable[str]) -> bool:
    """Case-insensitive suffix match, so compound suffixes like ``.nii.gz`` work."""
    name = _name_of(filename)
    for ext in extensions:
        ext = ext.lower()
        if name.endswith(ext) and len(name) > len(ext):
            return True
    return False


def is_imaging_file(filename: str, config=None) -> bool:
    """Return whether ``filename`` is a recognized scan-slice or volume file."""
    return _matches(filename, _classifier(config).imaging_extensions)


def is_archive_file(filename: str, config=None) -> bool:
    """Return whether ``filename`` carries an archive extension."""
    return _matches(filename, _classifier(config).archive_extensions)


def is_acceptable_upload(filename: str, content_type: Optional[str] = None,
                         config=None) -> bool:
    """Return whether an upload may enter the registry at all.

    Either signal is sufficient: an accepted extension (imaging, raster or
    archive) or a declared media type on the allowlist.
    """
    cfg = _classifier(config)
    if _matches(filename, [*cfg.imaging_extensions, *cfg.raster_extensions,
                           *cfg.archive_extensions]):
        return True
    if content_type:
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type in {m.lower() for m in cfg.accepted_media_types}:
            logger.debug(
                "Accepting %s on declared media type %s", filename, media_type
            )
            return True
    return False

"""Define typed configuration models for the asset registry.

Use `RegistryConfig` to load, validate, and persist runtime settings.
"""

import os
import logging
import yaml
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger("scan_depot.config")

MIB = 1024 * 1024

# Scan-slice and compressed-volume formats the viewers can open.
IMAGING_EXTENSIONS: List[str] = [".dcm", ".dicom", ".nii", ".nii.gz"]
RASTER_EXTENSIONS: List[str] = [".jpg", ".jpeg", ".png", ".tif", ".tiff"]
ARCHIVE_EXTENSIONS: List[str] = [".zip"]

ACCEPTED_MEDIA_TYPES: List[str] = [
    "application/dicom",
    "image/dicom",
    "application/octet-stream",
    "image/jpeg",
    "image/png",
    "image/tiff",
    "application/zip",
    "application/x-zip-compressed",
]

# Multi-part suffixes kept whole when splitting a name from its extension.
COMPOUND_EXTENSIONS: List[str] = [".nii.gz", ".tar.gz"]


@dataclass
class ClassifierConfig:
    """Store the extension and media-type allowlists."""

    imaging_extensions: List[str] = field(default_factory=lambda: list(IMAGING_EXTENSIONS))
    raster_extensions: List[str] = field(default_factory=lambda: list(RASTER_EXTENSIONS))
    archive_extensions: List[str] = field(default_factory=lambda: list(ARCHIVE_EXTENSIONS))
    accepted_media_types: List[str] = field(default_factory=lambda: list(ACCEPTED_MEDIA_TYPES))


_SUPPORTED_CONFIG_VERSION = 1


@dataclass
class RegistryConfig:
    """Master registry configuration."""

    config_version: int = 1
    storage_root: str = "./uploads"
    spool_dir: str = ""

    max_upload_bytes: int = 500 * MIB
    max_extracted_bytes: int = 2048 * MIB  # 0 = unlimited
    folder_fallback_label: str = "dicom-series"
    archive_fallback_label: str = "archive"
    max_base_name_length: int = 100

    log_level: str = "INFO"
    log_file: str = ""
    show_progress: bool = False

    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    @classmethod
    def from_yaml(cls, path: str) -> "RegistryConfig":
        """Load registry configuration from YAML or return defaults."""
        if not os.path.exists(path):
            logger.info("Config file '%s' not found. Using defaults.", path)
            config = cls()
            config.validate()
            return config
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(
                f"Failed to parse YAML config '{path}': {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ValueError(
                f"Config file '{path}' must contain a YAML mapping, "
                f"got {type(data).__name__}"
            )
        yaml_version = data.get("config_version", 1)
        if isinstance(yaml_version, int) and yaml_version > _SUPPORTED_CONFIG_VERSION:
            logger.warning(
                "Config file '%s' has config_version=%d, but this build only "
                "supports up to version %d. Some settings may be ignored.",
                path, yaml_version, _SUPPORTED_CONFIG_VERSION,
            )
        config = cls()
        _merge_dict_to_dataclass(config, data)
        try:
            config.validate()
        except ValueError as exc:
            raise ValueError(f"{path}: {exc}") from exc
        return config

    def to_yaml(self, path: str):
        """Write registry configuration to a YAML file."""
        import dataclasses
        import threading as _th
        data = dataclasses.asdict(self)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        ext = os.path.splitext(path)[1]
        tmp_path = f"{path}.tmp.{os.getpid()}.{_th.get_ident()}{ext}"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, path)
        finally:
            if os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass

    def validate(self):
        """Validate configuration values. Raises ValueError on invalid config."""
        errors = []

        if not isinstance(self.storage_root, str) or not self.storage_root.strip():
            errors.append("storage_root must be a non-empty path")

        valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level.upper() not in valid_log_levels:
            errors.append(
                f"log_level must be one of {sorted(valid_log_levels)}, "
                f"got '{self.log_level}'"
            )

        if self.max_upload_bytes < 1:
            errors.append("max_upload_bytes must be >= 1")
        if self.max_extracted_bytes < 0:
            errors.append("max_extracted_bytes must be >= 0 (0 = unlimited)")
        if self.max_base_name_length < 8:
            errors.append("max_base_name_length must be >= 8")
        if not self.folder_fallback_label.strip():
            errors.append("folder_fallback_label must not be empty")
        if not self.archive_fallback_label.strip():
            errors.append("archive_fallback_label must not be empty")

        cls_cfg = self.classifier
        if not cls_cfg.imaging_extensions:
            errors.append(
                "classifier.imaging_extensions must not be empty; no archive "
                "member would ever be recognized"
            )
        if not cls_cfg.archive_extensions:
            errors.append("classifier.archive_extensions must not be empty")
        for list_name in ("imaging_extensions", "raster_extensions", "archive_extensions"):
            for ext in getattr(cls_cfg, list_name):
                if not isinstance(ext, str) or not ext.startswith(".") or len(ext) < 2:
                    errors.append(
                        f"classifier.{list_name} entries must look like '.ext', got {ext!r}"
                    )
        for media_type in cls_cfg.accepted_media_types:
            if not isinstance(media_type, str) or "/" not in media_type:
                errors.append(
                    "classifier.accepted_media_types entries must look like "
                    f"'type/subtype', got {media_type!r}"
                )

        if errors:
            raise ValueError(
                "Configuration validation failed:\n" +
                "\n".join(f"  - {e}" for e in errors)
            )

        # Lower-case the allowlists once so classification stays a plain lookup.
        cls_cfg.imaging_extensions = [e.lower() for e in cls_cfg.imaging_extensions]
        cls_cfg.raster_extensions = [e.lower() for e in cls_cfg.raster_extensions]
        cls_cfg.archive_extensions = [e.lower() for e in cls_cfg.archive_extensions]
        cls_cfg.accepted_media_types = [m.lower() for m in cls_cfg.accepted_media_types]


def _merge_dict_to_dataclass(obj, data: dict, _path: str = ""):
    import dataclasses
    for key, value in data.items():
        if hasattr(obj, key):
            field_val = getattr(obj, key)
            if dataclasses.is_dataclass(field_val) and isinstance(value, dict):
                _merge_dict_to_dataclass(field_val, value, f"{_path}{key}.")
            else:
                full_key = f"{_path}{key}"
                if value is None and field_val is not None:
                    logger.warning(
                        "Config key '%s' is null but field default is %s. "
                        "Using default value.",
                        full_key, type(field_val).__name__,
                    )
                    continue
                expected_type = type(field_val)
                # bool is an int subclass; never let YAML true/false stand in for a size.
                type_ok = isinstance(value, expected_type) and not (
                    expected_type is int and isinstance(value, bool)
                )
                if (field_val is not None
                        and not type_ok
                        and not (expected_type is int
                                 and isinstance(value, float)
                                 and value == int(value))):
                    logger.warning(
                        "Config type mismatch for '%s': expected %s, got %s (%r). "
                        "Using default value.",
                        full_key, expected_type.__name__, type(value).__name__, value,
                    )
                    continue
                if (expected_type is int and isinstance(value, float)
                        and value == int(value)):
                    value = int(value)
                setattr(obj, key, value)
        else:
            full_key = f"{_path}{key}"
            logger.warning("Unknown config key ignored: '%s'", full_key)

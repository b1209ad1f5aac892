"""File and registry builders shared by the test modules."""

import os
import zipfile

from ScanDepot.config import RegistryConfig
from ScanDepot.registry import AssetRegistry


def make_registry(root_dir, **overrides):
    """Build a registry rooted at ``root_dir/uploads`` with config overrides."""
    config = RegistryConfig()
    config.storage_root = os.path.join(root_dir, "uploads")
    for key, value in overrides.items():
        setattr(config, key, value)
    return AssetRegistry(config)


def write_file(path, size, fill=b"\x00"):
    """Write ``size`` bytes to ``path`` (parents created) and return the path."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as f:
        f.write(fill * size)
    return path


def make_zip(path, entries):
    """Create a zip at ``path`` from a {entry name: bytes-or-size} mapping.

    Entries are written in mapping order.
    """
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries.items():
            if isinstance(content, int):
                content = b"\x01" * content
            zf.writestr(name, content)
    return path

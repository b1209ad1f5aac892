"""Atomic sidecar metadata I/O."""

import json
import logging
import os
import re
import threading
import uuid

from .paths import SIDECAR_SUFFIX
from .records import AssetRecord

logger = logging.getLogger("scan_depot")

TEMP_MARKER = SIDECAR_SUFFIX + ".tmp."

# <id>.asset.json.tmp.<pid>.<thread id>.<8 hex>, as written by write_sidecar.
_TEMP_NAME = re.compile(
    r"^(?P<id>.+)" + re.escape(TEMP_MARKER) + r"(?P<pid>\d+)\.(?P<tid>\d+)\.[0-9a-f]{8}$"
)


def is_temp_sidecar(name: str) -> bool:
    """Return whether ``name`` is an in-flight (or abandoned) sidecar temp file."""
    return _TEMP_NAME.match(name) is not None


def write_sidecar(path: str, record: AssetRecord) -> None:
    """Write ``record`` to ``path`` atomically (temp file, fsync, replace).

    Readers either see the previous file or the complete new one. OSError
    propagates after the temporary file is removed.
    """
    path = str(path)
    tmp_path = f"{path}.tmp.{os.getpid()}.{threading.get_ident()}.{uuid.uuid4().hex[:8]}"
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                pass


def read_sidecar(path: str) -> AssetRecord:
    """Load one sidecar.

    Raises OSError when the file cannot be read and ValueError when its
    content is not a valid record.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON: {exc}") from exc
    return AssetRecord.from_dict(data)


def cleanup_temp_files(storage_root: str) -> int:
    """Remove orphaned temporary sidecars from previous crashes.

    Only removes temp files whose writer PID is no longer running, so an
    in-flight write from this or any other live process is left alone.
    """
    current_pid = os.getpid()
    removed = 0

    def _pid_alive(pid: int) -> bool:
        if pid == current_pid:
            return True
        try:
            os.kill(pid, 0)
            return True
        except (OSError, PermissionError):
            return False

    try:
        names = os.listdir(storage_root)
    except OSError:
        return 0
    for name in names:
        match = _TEMP_NAME.match(name)
        if match is None:
            continue
        if _pid_alive(int(match.group("pid"))):
            continue
        try:
            os.remove(os.path.join(storage_root, name))
            removed += 1
        except OSError:
            pass
    if removed:
        logger.info("Removed %d orphaned temporary sidecar(s) from %s", removed, storage_root)
    return removed

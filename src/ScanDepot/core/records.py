"""Asset record dataclass."""

import dataclasses
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

RECORD_VERSION = 1


class AssetKind(str, Enum):
    """Enumerate the two shapes an asset can take on disk."""

    SINGLE_FILE = "single-file"
    FOLDER = "folder"


class FolderOrigin(str, Enum):
    """Enumerate how a folder asset came to exist."""

    ASSEMBLED = "assembled"
    EXTRACTED = "extracted"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{now.microsecond // 1000:03d}Z"
    )


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp written by `utc_timestamp` (or any ISO-8601 form)."""
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class AssetRecord:
    """Single asset entry, persisted as its sidecar metadata record."""

    id: str
    original_name: str
    kind: AssetKind
    size: int
    file_count: int
    upload_date: str
    storage_path: str
    members: List[str] = field(default_factory=list)
    origin: Optional[FolderOrigin] = None
    content_type: Optional[str] = None
    record_version: int = RECORD_VERSION

    def __post_init__(self) -> None:
        """Coerce enum fields and reject impossible kind/origin/count combinations."""
        self.kind = AssetKind(self.kind)
        if self.origin is not None:
            self.origin = FolderOrigin(self.origin)

        if not self.id or "/" in self.id or "\\" in self.id or self.id in (".", ".."):
            raise ValueError(f"AssetRecord.id must be a plain storage name, got: {self.id!r}")
        if self.size < 0:
            raise ValueError(f"AssetRecord.size must be >= 0, got {self.size}")
        parse_timestamp(self.upload_date)

        if self.kind is AssetKind.SINGLE_FILE:
            if self.origin is not None:
                raise ValueError("single-file assets cannot carry a folder origin")
            if self.file_count != 1:
                raise ValueError(
                    f"single-file assets must have file_count=1, got {self.file_count}"
                )
            if self.members:
                raise ValueError("single-file assets cannot list members")
            return

        if self.origin is None:
            raise ValueError("folder assets must carry an origin")
        for member in self.members:
            if (not member or member in (".", "..")
                    or any(c in member for c in ("/", "\\", "\x00"))):
                raise ValueError(f"folder member must be a plain file name, got: {member!r}")
        if len(set(self.members)) != len(self.members):
            raise ValueError("folder members must be distinct")
        if self.file_count != len(self.members):
            raise ValueError(
                f"file_count={self.file_count} disagrees with {len(self.members)} members"
            )

    @property
    def is_folder(self) -> bool:
        return self.kind is AssetKind.FOLDER

    @property
    def from_zip(self) -> bool:
        return self.origin is FolderOrigin.EXTRACTED

    @property
    def uploaded_at(self) -> datetime:
        return parse_timestamp(self.upload_date)

    def to_dict(self) -> dict:
        """Return dataclass fields as a plain, JSON-ready dictionary."""
        data = asdict(self)
        data["kind"] = self.kind.value
        data["origin"] = self.origin.value if self.origin is not None else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AssetRecord":
        """Build a record from a sidecar mapping, ignoring unknown keys."""
        if not isinstance(data, dict):
            raise ValueError(f"metadata record must be a mapping, got {type(data).__name__}")
        known = {f.name for f in dataclasses.fields(cls)}
        required = [
            f.name for f in dataclasses.fields(cls)
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
        ]
        missing = [name for name in required if name not in data]
        if missing:
            raise ValueError(f"missing required fields: {', '.join(missing)}")
        filtered = {k: v for k, v in data.items() if k in known}
        for int_field in ("size", "file_count", "record_version"):
            if int_field in filtered and (
                isinstance(filtered[int_field], bool)
                or not isinstance(filtered[int_field], int)
            ):
                raise ValueError(f"field '{int_field}' must be an integer")
        if not isinstance(filtered.get("members", []), list):
            raise ValueError("field 'members' must be a list")
        return cls(**filtered)

    def summary(self) -> dict:
        """Return the public summary handed to the HTTP layer."""
        out = {
            "id": self.id,
            "originalName": self.original_name,
            "size": self.size,
            "uploadDate": self.upload_date,
            "kind": self.kind.value,
            "isFolder": self.is_folder,
        }
        if self.is_folder:
            out["fileCount"] = self.file_count
        if self.from_zip:
            out["fromZip"] = True
        return out

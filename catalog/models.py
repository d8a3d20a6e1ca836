"""Dataclasses shared by the scanner, the catalog store and the API layer."""
from __future__ import annotations

import os
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(slots=True)
class MediaRecord:
    """A catalogued media file keyed by its absolute path."""

    id: str
    path: str
    filename: str
    folder_path: str
    size: int
    duration: Optional[float] = None
    thumbnail_path: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def seed(cls, path: str, size: int, *, thumbnail_path: Optional[str] = None) -> "MediaRecord":
        """Fresh record for a file found on disk; ids are always newly issued."""

        folder_path, filename = os.path.split(path)
        now = utc_now()
        return cls(
            id=new_id(),
            path=path,
            filename=filename,
            folder_path=folder_path,
            size=int(size),
            thumbnail_path=thumbnail_path,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MediaRecord":
        duration = row["duration"]
        return cls(
            id=row["id"],
            path=row["path"],
            filename=row["filename"],
            folder_path=row["folder_path"],
            size=int(row["size"] or 0),
            duration=float(duration) if duration is not None else None,
            thumbnail_path=row["thumbnail_path"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class MountedRoot:
    id: str
    path: str
    name: str
    scan_depth: int = 2
    created_at: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MountedRoot":
        return cls(
            id=row["id"],
            path=row["path"],
            name=row["name"],
            scan_depth=int(row["scan_depth"]),
            created_at=row["created_at"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class FilterSpec:
    """Structured list request: facets OR within a set and AND across sets."""

    folder_path: Optional[str] = None
    tag_ids: List[str] = field(default_factory=list)
    participant_ids: List[str] = field(default_factory=list)
    language_ids: List[str] = field(default_factory=list)
    search_query: Optional[str] = None
    sort_by: str = "filename"
    sort_order: str = "asc"
    limit: int = 100
    offset: int = 0


@dataclass(slots=True)
class VideoPage:
    records: List[MediaRecord]
    total: int
    has_more: bool


@dataclass(slots=True)
class FolderNode:
    path: str
    name: str
    children: List["FolderNode"] = field(default_factory=list)
    video_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "children": [child.to_dict() for child in self.children],
            "video_count": self.video_count,
        }

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(slots=True)
class WalkResult:
    """Output of one directory walk: seed records plus the flat count index."""

    seeds: List[MediaRecord]
    counts: Dict[str, int]
    dirs_scanned: int = 0
    skipped_dirs: int = 0
    skipped_files: int = 0


@dataclass(slots=True)
class ScanResult:
    total: int
    new: int
    folder_tree: FolderNode
    records: List[MediaRecord]
    dirs_scanned: int = 0
    skipped_dirs: int = 0
    skipped_files: int = 0
    duration_seconds: float = 0.0


__all__ = [
    "FilterSpec",
    "FolderNode",
    "MediaRecord",
    "MountedRoot",
    "ScanResult",
    "VideoPage",
    "WalkResult",
    "new_id",
    "utc_now",
]

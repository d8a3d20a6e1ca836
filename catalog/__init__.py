"""Catalog persistence and querying for the video library."""
from __future__ import annotations

from .errors import LibraryError, MoveError, RecordNotFoundError, RootNotFoundError, ScanCommitError
from .models import (
    FilterSpec,
    FolderNode,
    MediaRecord,
    MountedRoot,
    ScanResult,
    VideoPage,
    WalkResult,
)
from .query import QueryPlan, compile_filter
from .store import CatalogStore

__all__ = [
    "CatalogStore",
    "FilterSpec",
    "FolderNode",
    "LibraryError",
    "MediaRecord",
    "MountedRoot",
    "MoveError",
    "QueryPlan",
    "RecordNotFoundError",
    "RootNotFoundError",
    "ScanCommitError",
    "ScanResult",
    "VideoPage",
    "WalkResult",
    "compile_filter",
]

"""Error hierarchy for catalog and scan operations."""
from __future__ import annotations

from typing import Optional


class LibraryError(RuntimeError):
    """Base exception for library failures surfaced to callers."""


class RootNotFoundError(LibraryError):
    """Raised when a folder to scan or browse is not an existing directory."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Folder does not exist or is not a directory: {path}")
        self.path = path


class RecordNotFoundError(LibraryError, LookupError):
    """Raised when a lookup by id or path matches nothing."""

    def __init__(self, key: str, *, by: str = "id", kind: str = "video") -> None:
        super().__init__(f"No {kind} with {by} {key!r}")
        self.key = key
        self.by = by
        self.kind = kind


class MoveError(LibraryError):
    """Raised when moving a media file fails; the catalog is left untouched."""

    def __init__(self, old_path: str, new_path: str, reason: str) -> None:
        super().__init__(f"Failed to move {old_path} -> {new_path}: {reason}")
        self.old_path = old_path
        self.new_path = new_path
        self.reason = reason


class ScanCommitError(LibraryError):
    """Raised when the catalog rejects a scan's commit phase."""

    def __init__(self, folder_path: str, attempted: int, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Scan of {folder_path} failed while committing {attempted} records: {cause}")
        self.folder_path = folder_path
        self.attempted = attempted
        self.__cause__ = cause


__all__ = [
    "LibraryError",
    "MoveError",
    "RecordNotFoundError",
    "RootNotFoundError",
    "ScanCommitError",
]

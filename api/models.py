"""Pydantic schemas for the VideoLibrary local API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health response summarising server readiness."""

    ok: bool = Field(True, description="Indicates the API server is reachable.")
    version: str = Field(..., description="Application version string.")
    time_utc: str = Field(..., description="Current UTC timestamp in ISO8601 format.")
    roots: int = Field(..., ge=0, description="Number of registered library roots.")
    videos: int = Field(..., ge=0, description="Number of catalogued media files.")


class VideoRecord(BaseModel):
    """One catalogued media file."""

    id: str
    path: str = Field(..., description="Absolute path of the media file; unique across the catalog.")
    filename: str
    folder_path: str = Field(..., description="Directory that directly contains the file.")
    size: int = Field(..., ge=0, description="File size in bytes at scan time.")
    duration: Optional[float] = Field(None, description="Duration in seconds when known; never set by scans.")
    thumbnail_path: Optional[str] = Field(None, description="Sibling image sharing the file stem, if any.")
    created_at: str
    updated_at: str


class VideoDetailResponse(VideoRecord):
    """A media file together with its facet memberships."""

    tags: List[Dict[str, Any]] = Field(default_factory=list)
    participants: List[Dict[str, Any]] = Field(default_factory=list)
    languages: List[Dict[str, Any]] = Field(default_factory=list)


class PaginatedResponse(BaseModel):
    """Base schema for paginated list endpoints."""

    limit: int = Field(..., description="Maximum number of rows returned in this page.")
    offset: int = Field(..., description="Zero-based offset that produced this page.")
    next_offset: Optional[int] = Field(
        None,
        description="Offset to request the next page, or null when this page is the last.",
    )
    total: int = Field(..., ge=0, description="Total number of records matching the filter.")
    has_more: bool = Field(..., description="True when records exist beyond this page.")


class VideosResponse(PaginatedResponse):
    results: List[VideoRecord]


class FolderNodeModel(BaseModel):
    """Folder with the number of media files found in it or below it."""

    path: str
    name: str
    video_count: int = Field(..., ge=0)
    children: List["FolderNodeModel"] = Field(default_factory=list)


class ScanRequest(BaseModel):
    folder_path: str = Field(..., min_length=1, description="Directory to scan.")
    depth: Optional[int] = Field(
        None, ge=0, description="Override the registered or default scan depth for this run."
    )


class ScanResponse(BaseModel):
    """Outcome of a full-replace scan."""

    folder_path: str
    total: int = Field(..., ge=0, description="Media files discovered by the walk.")
    new: int = Field(..., ge=0, description="Discovered paths that were not catalogued before.")
    dirs_scanned: int = Field(0, ge=0)
    skipped_dirs: int = Field(0, ge=0, description="Directories that could not be listed.")
    skipped_files: int = Field(0, ge=0, description="Media files with unreadable metadata or undecodable names.")
    duration_seconds: float = Field(0.0, ge=0)
    folder_tree: FolderNodeModel
    records: List[VideoRecord] = Field(
        default_factory=list, description="Records committed for the scanned folder, in walk order."
    )


class RootModel(BaseModel):
    """A registered library root."""

    id: str
    path: str
    name: str
    scan_depth: int = Field(..., ge=0, description="Directory levels below the root that scans descend.")
    created_at: str


class RootsResponse(BaseModel):
    roots: List[RootModel]


class RootCreateRequest(BaseModel):
    path: str = Field(..., min_length=1)
    depth: Optional[int] = Field(None, ge=0, description="Scan depth; defaults to scan.default_depth.")
    name: Optional[str] = Field(None, description="Display name; defaults to the directory name.")


class RootDepthRequest(BaseModel):
    path: str = Field(..., min_length=1)
    depth: int = Field(..., ge=0)


class RootDeleteResponse(BaseModel):
    path: str
    cleared: int = Field(..., ge=0, description="Catalog records removed together with the root.")


class MoveRequest(BaseModel):
    old_path: str = Field(..., min_length=1, description="Current absolute path of the media file.")
    new_folder: str = Field(..., min_length=1, description="Existing directory to move the file into.")


class DeleteResponse(BaseModel):
    id: str
    deleted: bool


FolderNodeModel.model_rebuild()

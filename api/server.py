"""FastAPI application exposing the video library over local HTTP."""
from __future__ import annotations

import logging
import mimetypes
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog.errors import (
    LibraryError,
    MoveError,
    RecordNotFoundError,
    RootNotFoundError,
)
from catalog.models import FilterSpec, FolderNode, MediaRecord, MountedRoot
from catalog.service import LibraryService

from .auth import APIKeyAuth
from .models import (
    DeleteResponse,
    FolderNodeModel,
    HealthResponse,
    MoveRequest,
    RootCreateRequest,
    RootDeleteResponse,
    RootDepthRequest,
    RootModel,
    RootsResponse,
    ScanRequest,
    ScanResponse,
    VideoDetailResponse,
    VideoRecord,
    VideosResponse,
)

LOGGER = logging.getLogger("videolibrary.api")


@dataclass(slots=True)
class APIServerConfig:
    """Runtime configuration for the FastAPI application."""

    service: LibraryService
    api_key: Optional[str]
    cors_origins: Sequence[str]
    app_version: str = "dev"
    lan_only: bool = True


_LOCAL_CLIENT_SENTINELS = {
    "127.0.0.1",
    "::1",
    "localhost",
    "testclient",
}


def _normalise_remote_host(host: Optional[str]) -> Optional[str]:
    if host is None:
        return None
    value = host.strip().lower()
    if not value:
        return None
    if value.startswith("::ffff:"):
        value = value.split("::ffff:")[-1]
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    if "%" in value:  # strip IPv6 scope id
        value = value.split("%", 1)[0]
    return value


def _is_loopback_host(host: Optional[str]) -> bool:
    value = _normalise_remote_host(host)
    if value is None:
        return True
    if value in _LOCAL_CLIENT_SENTINELS:
        return True
    return value.startswith("127.")


def _error_status(exc: LibraryError) -> int:
    if isinstance(exc, RecordNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, RootNotFoundError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, MoveError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _video(record: MediaRecord) -> VideoRecord:
    return VideoRecord(**record.to_dict())


def _root(root: MountedRoot) -> RootModel:
    return RootModel(**root.to_dict())


def _tree(node: FolderNode) -> FolderNodeModel:
    return FolderNodeModel.model_validate(node.to_dict())


def create_app(config: APIServerConfig) -> FastAPI:
    """Create a FastAPI application bound to the given configuration."""

    app = FastAPI(
        title="VideoLibrary Local API",
        version=config.app_version,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    allowed_origins: List[str] = [origin for origin in config.cors_origins if origin]
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_methods=["GET", "POST", "PATCH", "DELETE"],
            allow_headers=["*"],
        )

    auth_dependency = APIKeyAuth(config.api_key)
    service = config.service
    lan_only = bool(config.lan_only)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[override]
        start = time.perf_counter()
        response: Optional[Response] = None
        client_host = request.client.host if request.client else None
        try:
            if lan_only and not _is_loopback_host(client_host):
                LOGGER.warning("Rejected non-local HTTP request from %s", client_host or "<unknown>")
                response = JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": "LAN access disabled"})
            else:
                response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            status_code = response.status_code if response is not None else 500
            LOGGER.info(
                "%s %s -> %s (%.1f ms) ip=%s",
                request.method,
                request.url.path,
                status_code,
                duration_ms,
                client_host or "-",
            )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_request: Request, exc: HTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "invalid parameters", "details": exc.errors()},
        )

    @app.exception_handler(LibraryError)
    async def library_exception_handler(request: Request, exc: LibraryError):
        code = _error_status(exc)
        if code >= 500:
            LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content={"error": str(exc)})

    @app.get("/health", response_model=HealthResponse)
    def health_check() -> HealthResponse:
        return HealthResponse(
            ok=True,
            version=config.app_version,
            time_utc=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            roots=len(service.list_roots()),
            videos=service.store.count(),
        )

    # ------------------------------------------------------------------
    # Roots
    # ------------------------------------------------------------------
    @app.get("/v1/roots", response_model=RootsResponse)
    def list_roots() -> RootsResponse:
        return RootsResponse(roots=[_root(root) for root in service.list_roots()])

    @app.post("/v1/roots", response_model=RootModel)
    def register_root(payload: RootCreateRequest, _: Optional[str] = Depends(auth_dependency)) -> RootModel:
        return _root(service.register_root(payload.path, payload.depth, name=payload.name))

    @app.patch("/v1/roots/depth", response_model=RootModel)
    def set_root_depth(payload: RootDepthRequest, _: Optional[str] = Depends(auth_dependency)) -> RootModel:
        return _root(service.set_depth(payload.path, payload.depth))

    @app.delete("/v1/roots", response_model=RootDeleteResponse)
    def unregister_root(
        path: str = Query(..., min_length=1, description="Registered root to forget."),
        _: Optional[str] = Depends(auth_dependency),
    ) -> RootDeleteResponse:
        cleared = service.unregister_root(path)
        return RootDeleteResponse(path=path, cleared=cleared)

    # ------------------------------------------------------------------
    # Scanning and browsing
    # ------------------------------------------------------------------
    @app.post("/v1/scan", response_model=ScanResponse)
    def scan_folder(payload: ScanRequest, _: Optional[str] = Depends(auth_dependency)) -> ScanResponse:
        result = service.scan(payload.folder_path, depth=payload.depth)
        return ScanResponse(
            folder_path=result.folder_tree.path,
            total=result.total,
            new=result.new,
            dirs_scanned=result.dirs_scanned,
            skipped_dirs=result.skipped_dirs,
            skipped_files=result.skipped_files,
            duration_seconds=result.duration_seconds,
            folder_tree=_tree(result.folder_tree),
            records=[_video(record) for record in result.records],
        )

    @app.get("/v1/tree", response_model=FolderNodeModel)
    def folder_tree(
        path: str = Query(..., min_length=1, description="Directory to preview."),
        recursive: bool = Query(False, description="Expand every level instead of one."),
    ) -> FolderNodeModel:
        return _tree(service.get_folder_tree(path, recursive=recursive))

    # ------------------------------------------------------------------
    # Videos
    # ------------------------------------------------------------------
    @app.get("/v1/videos", response_model=VideosResponse)
    def list_videos(
        folder_path: Optional[str] = Query(None, description="Only files under this folder prefix."),
        tag_id: Optional[List[str]] = Query(None, description="Tag ids; any of them matches."),
        participant_id: Optional[List[str]] = Query(None, description="Participant ids; any of them matches."),
        language_id: Optional[List[str]] = Query(None, description="Language ids; any of them matches."),
        q: Optional[str] = Query(None, description="Filename substring."),
        sort_by: str = Query("filename"),
        sort_order: str = Query("asc"),
        limit: Optional[int] = Query(None),
        offset: int = Query(0, ge=0),
    ) -> VideosResponse:
        spec = FilterSpec(
            folder_path=folder_path or None,
            tag_ids=list(tag_id or []),
            participant_ids=list(participant_id or []),
            language_ids=list(language_id or []),
            search_query=q or None,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit if limit is not None else service.store.default_limit,
            offset=offset,
        )
        page = service.list(spec)
        effective_limit = max(1, min(spec.limit, service.store.max_page_size))
        next_offset = offset + len(page.records) if page.has_more else None
        return VideosResponse(
            limit=effective_limit,
            offset=offset,
            next_offset=next_offset,
            total=page.total,
            has_more=page.has_more,
            results=[_video(record) for record in page.records],
        )

    @app.get("/v1/videos/by-path", response_model=VideoRecord)
    def video_by_path(path: str = Query(..., min_length=1)) -> VideoRecord:
        return _video(service.get_by_path(path))

    @app.post("/v1/videos/move", response_model=VideoRecord)
    def move_video(payload: MoveRequest, _: Optional[str] = Depends(auth_dependency)) -> VideoRecord:
        return _video(service.move(payload.old_path, payload.new_folder))

    @app.get("/v1/videos/{video_id}", response_model=VideoDetailResponse)
    def video_detail(video_id: str) -> VideoDetailResponse:
        return VideoDetailResponse(**service.get_with_facets(video_id))

    @app.delete("/v1/videos/{video_id}", response_model=DeleteResponse)
    def delete_video(video_id: str, _: Optional[str] = Depends(auth_dependency)) -> DeleteResponse:
        if not service.delete(video_id):
            raise HTTPException(status_code=404, detail="video not found")
        return DeleteResponse(id=video_id, deleted=True)

    @app.get("/v1/thumbnail")
    def thumbnail(path: str = Query(..., min_length=1, description="Media file whose thumbnail to fetch.")) -> Response:
        thumb = service.thumbnail_for(path)
        if thumb is None:
            raise HTTPException(status_code=404, detail="thumbnail not found")
        try:
            payload = Path(thumb).read_bytes()
        except OSError:
            raise HTTPException(status_code=404, detail="thumbnail not found")
        mime = mimetypes.guess_type(thumb)[0] or "application/octet-stream"
        return Response(content=payload, media_type=mime, headers={"Cache-Control": "max-age=3600"})

    return app


__all__ = ["APIServerConfig", "create_app"]

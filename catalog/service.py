"""Library operations: scanning, browsing, querying and file moves.

:class:`LibraryService` is the single entry point used by the HTTP layer and
the CLI. Scans follow a full-replace policy: the directory walk runs without
touching the catalog, then every record under the scanned folder is swapped
for the fresh walk output in one store transaction.
"""
from __future__ import annotations

import dataclasses
import enum
import logging
import os
import shutil
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from core.paths import normalize_folder, resolve_working_dir
from core.settings import load_settings, merge_defaults, resolve_catalog_db_path
from scanner.classify import PathClassifier
from scanner.tree import build_folder_tree, build_full_tree
from scanner.walker import DirectoryWalker

from .errors import MoveError, RecordNotFoundError, RootNotFoundError, ScanCommitError
from .models import FilterSpec, FolderNode, MediaRecord, MountedRoot, ScanResult, VideoPage
from .store import CatalogStore

LOGGER = logging.getLogger("videolibrary.scan")
CATALOG_LOGGER = logging.getLogger("videolibrary.catalog")


class ScanState(str, enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


class LibraryService:
    """Coordinate the walker, tree builder and catalog store."""

    def __init__(
        self,
        store: CatalogStore,
        settings: Optional[Mapping[str, Any]] = None,
        *,
        classifier: Optional[PathClassifier] = None,
    ) -> None:
        self.store = store
        self.settings = merge_defaults(dict(settings or {}))
        scan_settings = self.settings["scan"]
        self.default_depth = int(scan_settings.get("default_depth", 2))
        self.classifier = classifier or PathClassifier.from_settings(self.settings)
        self._walker = DirectoryWalker(self.classifier)
        self._states: Dict[str, ScanState] = {}
        self._state_lock = threading.Lock()

    @classmethod
    def open(
        cls,
        working_dir: Optional[Path] = None,
        *,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> "LibraryService":
        """Build a service backed by the catalog database of *working_dir*."""

        home = Path(working_dir) if working_dir is not None else resolve_working_dir()
        resolved = merge_defaults(dict(settings)) if settings is not None else load_settings(home)
        query_settings = resolved["query"]
        store = CatalogStore(
            resolve_catalog_db_path(resolved, home),
            prefix_mode=resolved["scan"]["prefix_match"],
            default_limit=int(query_settings["default_limit"]),
            max_page_size=int(query_settings["max_page_size"]),
        )
        return cls(store, resolved)

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> "LibraryService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    @property
    def prefix_mode(self) -> str:
        return self.store.prefix_mode

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------
    def scan_state(self, folder_path: str) -> ScanState:
        key = normalize_folder(folder_path)
        with self._state_lock:
            return self._states.get(key, ScanState.IDLE)

    def _set_state(self, folder: str, state: ScanState) -> None:
        with self._state_lock:
            self._states[folder] = state

    def _existing_folder(self, folder_path: str) -> str:
        folder = normalize_folder(folder_path)
        if not os.path.isdir(folder):
            raise RootNotFoundError(folder)
        return folder

    def _resolve_depth(self, folder: str, depth: Optional[int]) -> int:
        if depth is not None:
            return int(depth)
        root = self.store.get_root(folder)
        return root.scan_depth if root is not None else self.default_depth

    def scan(self, folder_path: str, *, depth: Optional[int] = None) -> ScanResult:
        """Walk *folder_path* and replace its catalog entries with what was found."""

        folder = self._existing_folder(folder_path)
        max_depth = self._resolve_depth(folder, depth)
        started = time.perf_counter()
        self._set_state(folder, ScanState.SCANNING)
        LOGGER.info("Scanning %s (depth=%s)", folder, max_depth)
        try:
            walked = self._walker.walk(folder, max_depth)
            tree = build_folder_tree(folder, walked.counts, prefix_mode=self.prefix_mode)
        except Exception:
            self._set_state(folder, ScanState.FAILED)
            raise

        self._set_state(folder, ScanState.COMMITTING)
        try:
            cleared, new = self.store.replace_folder(folder, walked.seeds)
        except sqlite3.Error as exc:
            self._set_state(folder, ScanState.FAILED)
            LOGGER.error("Commit failed for %s after walking %s files: %s", folder, len(walked.seeds), exc)
            raise ScanCommitError(folder, len(walked.seeds), exc) from exc
        except Exception:
            self._set_state(folder, ScanState.FAILED)
            LOGGER.exception("Commit failed for %s after walking %s files", folder, len(walked.seeds))
            raise

        self._set_state(folder, ScanState.DONE)
        elapsed = time.perf_counter() - started
        LOGGER.info(
            "Scan of %s finished: total=%s new=%s cleared=%s skipped_dirs=%s in %.2fs",
            folder,
            len(walked.seeds),
            new,
            cleared,
            walked.skipped_dirs,
            elapsed,
        )
        return ScanResult(
            total=len(walked.seeds),
            new=new,
            folder_tree=tree,
            records=list(walked.seeds),
            dirs_scanned=walked.dirs_scanned,
            skipped_dirs=walked.skipped_dirs,
            skipped_files=walked.skipped_files,
            duration_seconds=elapsed,
        )

    def get_folder_tree(self, folder_path: str, *, recursive: bool = False) -> FolderNode:
        """Preview the folder tree of *folder_path* without touching the catalog."""

        folder = self._existing_folder(folder_path)
        walked = self._walker.walk(folder, self._resolve_depth(folder, None))
        if recursive:
            return build_full_tree(folder, walked.counts, prefix_mode=self.prefix_mode)
        return build_folder_tree(folder, walked.counts, prefix_mode=self.prefix_mode)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list(self, spec: Optional[FilterSpec] = None) -> VideoPage:
        spec = spec or FilterSpec()
        if spec.folder_path:
            spec = dataclasses.replace(spec, folder_path=normalize_folder(spec.folder_path))
        records = self.store.list(spec)
        total = self.store.count(spec)
        offset = max(0, int(spec.offset or 0))
        return VideoPage(records=records, total=total, has_more=offset + len(records) < total)

    def get_by_id(self, video_id: str) -> MediaRecord:
        record = self.store.get_by_id(video_id)
        if record is None:
            raise RecordNotFoundError(video_id)
        return record

    def get_by_path(self, path: str) -> MediaRecord:
        record = self.store.get_by_path(path)
        if record is None:
            raise RecordNotFoundError(path, by="path")
        return record

    def get_with_facets(self, video_id: str) -> Dict[str, Any]:
        record = self.get_by_id(video_id)
        payload = record.to_dict()
        payload.update(self.store.video_facets(record.id))
        return payload

    def thumbnail_for(self, path: str) -> Optional[str]:
        record = self.store.get_by_path(path)
        if record is not None and record.thumbnail_path and os.path.isfile(record.thumbnail_path):
            return record.thumbnail_path
        return self.classifier.find_thumbnail(path)

    def subtitle_for(self, path: str) -> Optional[str]:
        return self.classifier.find_subtitle(path)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def delete(self, video_id: str) -> bool:
        removed = self.store.delete(video_id)
        if removed:
            CATALOG_LOGGER.info("Deleted video %s from catalog", video_id)
        return removed

    def move(self, old_path: str, new_folder: str) -> MediaRecord:
        """Move a catalogued file into *new_folder* and follow it in the catalog.

        The record is checked before the file is touched; a failed move
        raises :class:`MoveError` and leaves the catalog as it was.
        """

        self.get_by_path(old_path)
        filename = os.path.basename(old_path)
        if not filename:
            raise MoveError(old_path, new_folder, "invalid file path")
        new_folder = normalize_folder(new_folder)
        new_path = os.path.join(new_folder, filename)
        if not os.path.isdir(new_folder):
            raise MoveError(old_path, new_path, "destination folder does not exist")
        if os.path.lexists(new_path):
            raise MoveError(old_path, new_path, "destination already exists")
        try:
            shutil.move(old_path, new_path)
        except OSError as exc:
            raise MoveError(old_path, new_path, str(exc)) from exc

        moved = self.store.move_record(old_path, new_path)
        if moved is None:
            raise RecordNotFoundError(old_path, by="path")
        CATALOG_LOGGER.info("Moved %s -> %s", old_path, new_path)
        return moved

    # ------------------------------------------------------------------
    # Mounted roots
    # ------------------------------------------------------------------
    def register_root(
        self,
        path: str,
        depth: Optional[int] = None,
        *,
        name: Optional[str] = None,
    ) -> MountedRoot:
        folder = self._existing_folder(path)
        root = self.store.add_root(
            folder,
            depth=self.default_depth if depth is None else int(depth),
            name=name,
        )
        CATALOG_LOGGER.info("Registered root %s (depth=%s)", root.path, root.scan_depth)
        return root

    def set_depth(self, path: str, depth: int) -> MountedRoot:
        folder = normalize_folder(path)
        if not self.store.set_root_depth(folder, depth):
            raise RecordNotFoundError(folder, by="path", kind="root")
        root = self.store.get_root(folder)
        assert root is not None
        return root

    def unregister_root(self, path: str) -> int:
        folder = normalize_folder(path)
        removed = self.store.remove_root(folder)
        CATALOG_LOGGER.info("Unregistered root %s (%s records cleared)", folder, removed)
        return removed

    def list_roots(self) -> List[MountedRoot]:
        return self.store.list_roots()


__all__ = ["LibraryService", "ScanState"]

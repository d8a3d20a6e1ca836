"""Depth-bounded directory walk producing catalog seeds and folder counts."""
from __future__ import annotations

import logging
import os
from typing import List, Optional

from catalog.models import MediaRecord, WalkResult

from .classify import DEFAULT_CLASSIFIER, EntryKind, PathClassifier, is_storable_path

LOGGER = logging.getLogger("videolibrary.scan.walker")


class DirectoryWalker:
    """Collect media files below a root without following directory symlinks.

    ``max_depth`` bounds recursion: the root is depth 0 and a directory at
    depth ``d`` is only descended into while ``d < max_depth``. Unreadable
    directories, files whose metadata cannot be read and names that are not
    valid UTF-8 are skipped and counted.
    """

    def __init__(self, classifier: Optional[PathClassifier] = None) -> None:
        self.classifier = classifier or DEFAULT_CLASSIFIER

    def walk(self, root: str, max_depth: int) -> WalkResult:
        if max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        result = WalkResult(seeds=[], counts={})
        self._walk_dir(root, 0, int(max_depth), result)
        LOGGER.debug(
            "Walked %s depth=%s: %s media in %s dirs (skipped %s dirs, %s files)",
            root,
            max_depth,
            len(result.seeds),
            result.dirs_scanned,
            result.skipped_dirs,
            result.skipped_files,
        )
        return result

    def _walk_dir(self, dir_path: str, depth: int, max_depth: int, result: WalkResult) -> None:
        try:
            iterator = os.scandir(dir_path)
        except OSError as exc:
            result.skipped_dirs += 1
            LOGGER.debug("Cannot enumerate %s: %s", dir_path, exc)
            return

        result.dirs_scanned += 1
        subdirs: List[str] = []
        with iterator as entries:
            for entry in entries:
                if self.classifier.is_skipped(entry.name):
                    continue
                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                except OSError:
                    continue
                if is_dir:
                    if not is_storable_path(entry.path):
                        result.skipped_dirs += 1
                        LOGGER.debug("Skipping undecodable directory name %r", entry.path)
                    elif depth < max_depth:
                        subdirs.append(entry.path)
                    continue
                if self.classifier.classify(entry.name).kind is not EntryKind.MEDIA:
                    continue
                if _links_to_directory(entry):
                    continue
                if not is_storable_path(entry.path):
                    result.skipped_files += 1
                    LOGGER.debug("Skipping undecodable file name %r", entry.path)
                    continue
                seed = self._seed_for(entry)
                if seed is None:
                    result.skipped_files += 1
                    continue
                result.seeds.append(seed)
                result.counts[dir_path] = result.counts.get(dir_path, 0) + 1

        for subdir in subdirs:
            self._walk_dir(subdir, depth + 1, max_depth, result)

    def _seed_for(self, entry: os.DirEntry) -> Optional[MediaRecord]:
        try:
            # symlinked files count when they resolve to a regular file
            if not entry.is_file():
                return None
            size = entry.stat().st_size
        except OSError as exc:
            LOGGER.debug("stat failed for %s: %s", entry.path, exc)
            return None
        return MediaRecord.seed(
            entry.path,
            size,
            thumbnail_path=self.classifier.find_thumbnail(entry.path),
        )


def _links_to_directory(entry: os.DirEntry) -> bool:
    try:
        return entry.is_symlink() and entry.is_dir()
    except OSError:
        return False


def walk(root: str, max_depth: int, *, classifier: Optional[PathClassifier] = None) -> WalkResult:
    return DirectoryWalker(classifier).walk(root, max_depth)


__all__ = ["DirectoryWalker", "walk"]

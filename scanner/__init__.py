"""Filesystem discovery for the video library: classify, walk, summarise."""
from __future__ import annotations

from .classify import (
    Classification,
    EntryKind,
    PathClassifier,
    classify,
    find_subtitle,
    find_thumbnail,
    is_storable_path,
)
from .tree import aggregate_count, build_folder_tree, build_full_tree
from .walker import DirectoryWalker, walk

__all__ = [
    "Classification",
    "DirectoryWalker",
    "EntryKind",
    "PathClassifier",
    "aggregate_count",
    "build_folder_tree",
    "build_full_tree",
    "classify",
    "find_subtitle",
    "find_thumbnail",
    "is_storable_path",
    "walk",
]

"""Turn a flat folder-count index into a browsable folder tree.

``build_folder_tree`` lists exactly one directory: it returns the root plus
its immediate subfolders, each annotated with the number of media files found
in it or anywhere below it during the walk. Deeper levels come from calling
the builder again with a child as the new root; ``build_full_tree`` does that
recursively for callers that want the whole picture.
"""
from __future__ import annotations

import logging
import os
from typing import List, Mapping, Optional

from catalog.models import FolderNode
from core.paths import folder_contains

from .classify import is_storable_path

LOGGER = logging.getLogger("videolibrary.scan.tree")


def aggregate_count(folder: str, counts: Mapping[str, int], *, prefix_mode: str = "textual") -> int:
    """Sum the direct counts of *folder* and every indexed path it contains.

    In ``textual`` mode containment is ``str.startswith`` on the raw path, so
    a sibling sharing a name prefix (``foo`` / ``foobar``) is counted too.
    """

    return sum(
        count for path, count in counts.items() if folder_contains(folder, path, mode=prefix_mode)
    )


def _display_name(path: str) -> str:
    name = os.path.basename(path.rstrip(os.sep))
    return name or path


def _list_subdirectories(root: str) -> List[os.DirEntry]:
    try:
        iterator = os.scandir(root)
    except OSError as exc:
        LOGGER.debug("Cannot list %s for folder tree: %s", root, exc)
        return []
    subdirs: List[os.DirEntry] = []
    with iterator as entries:
        for entry in entries:
            if entry.name.startswith(".") or not is_storable_path(entry.path):
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry)
            except OSError:
                continue
    return subdirs


def build_folder_tree(
    root: str,
    counts: Mapping[str, int],
    *,
    prefix_mode: str = "textual",
) -> FolderNode:
    children: List[FolderNode] = []
    for entry in _list_subdirectories(root):
        video_count = aggregate_count(entry.path, counts, prefix_mode=prefix_mode)
        if video_count > 0:
            children.append(FolderNode(path=entry.path, name=entry.name, video_count=video_count))

    children.sort(key=lambda node: node.name.lower())
    direct = counts.get(root, 0)
    return FolderNode(
        path=root,
        name=_display_name(root),
        children=children,
        video_count=direct + sum(child.video_count for child in children),
    )


def build_full_tree(
    root: str,
    counts: Mapping[str, int],
    *,
    prefix_mode: str = "textual",
    max_levels: Optional[int] = None,
) -> FolderNode:
    """Expand :func:`build_folder_tree` below every included child.

    ``max_levels`` caps how many levels below *root* are expanded; ``None``
    expands until no child with a positive count is left.
    """

    node = build_folder_tree(root, counts, prefix_mode=prefix_mode)
    if max_levels is not None and max_levels <= 1:
        return node
    remaining = None if max_levels is None else max_levels - 1
    expanded = [
        build_full_tree(child.path, counts, prefix_mode=prefix_mode, max_levels=remaining)
        for child in node.children
    ]
    # the parent total was summed from these counts
    for original, rebuilt in zip(node.children, expanded):
        rebuilt.video_count = original.video_count
    node.children = expanded
    return node


__all__ = ["aggregate_count", "build_folder_tree", "build_full_tree"]

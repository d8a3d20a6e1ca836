"""Name-based classification of directory entries.

The classifier never touches the filesystem: callers hand it the entry name
(and whether the entry is a directory) and get back what the walker should do
with it. The sidecar lookups at the bottom of the module are the only helpers
here that stat anything.
"""
from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from core.settings import DEFAULT_SETTINGS

_SCAN_DEFAULTS: Mapping[str, Any] = DEFAULT_SETTINGS["scan"]


class EntryKind(str, enum.Enum):
    SKIP = "skip"
    MEDIA = "media"
    IMAGE = "image"
    DIRECTORY = "directory"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class Classification:
    kind: EntryKind
    ext: str = ""


def _normalize_exts(values: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for value in values:
        token = str(value).strip().lower().lstrip(".")
        if token:
            seen.setdefault(token, None)
    return tuple(seen)


def extension_of(name: str) -> str:
    """Return the lowercased extension of *name* without the dot."""

    _, ext = os.path.splitext(name)
    return ext[1:].lower()


class PathClassifier:
    """Decide whether an entry is media, an image, a directory or noise."""

    def __init__(
        self,
        *,
        video_extensions: Sequence[str] = _SCAN_DEFAULTS["video_extensions"],
        image_extensions: Sequence[str] = _SCAN_DEFAULTS["image_extensions"],
        subtitle_extensions: Sequence[str] = _SCAN_DEFAULTS["subtitle_extensions"],
        skip_names: Sequence[str] = _SCAN_DEFAULTS["skip_names"],
    ) -> None:
        self.video_extensions = _normalize_exts(video_extensions)
        self.image_extensions = _normalize_exts(image_extensions)
        self.subtitle_extensions = _normalize_exts(subtitle_extensions)
        self.skip_names = frozenset(str(name) for name in skip_names)
        self._video_set = frozenset(self.video_extensions)
        self._image_set = frozenset(self.image_extensions)

    @classmethod
    def from_settings(cls, settings: Optional[Mapping[str, Any]]) -> "PathClassifier":
        scan = settings.get("scan") if isinstance(settings, Mapping) else None
        if not isinstance(scan, Mapping):
            return cls()
        return cls(
            video_extensions=scan.get("video_extensions") or _SCAN_DEFAULTS["video_extensions"],
            image_extensions=scan.get("image_extensions") or _SCAN_DEFAULTS["image_extensions"],
            subtitle_extensions=scan.get("subtitle_extensions") or _SCAN_DEFAULTS["subtitle_extensions"],
            skip_names=scan.get("skip_names") or (),
        )

    def is_skipped(self, name: str) -> bool:
        return name.startswith(".") or name in self.skip_names

    def classify(self, name: str, *, is_dir: bool = False) -> Classification:
        if not name or self.is_skipped(name):
            return Classification(EntryKind.SKIP)
        if is_dir:
            return Classification(EntryKind.DIRECTORY)
        ext = extension_of(name)
        if ext in self._video_set:
            return Classification(EntryKind.MEDIA, ext)
        if ext in self._image_set:
            return Classification(EntryKind.IMAGE, ext)
        return Classification(EntryKind.OTHER, ext)

    def find_thumbnail(self, video_path: str) -> Optional[str]:
        return _find_sidecar(video_path, self.image_extensions)

    def find_subtitle(self, video_path: str) -> Optional[str]:
        return _find_sidecar(video_path, self.subtitle_extensions)


def _find_sidecar(video_path: str, extensions: Sequence[str]) -> Optional[str]:
    folder, filename = os.path.split(video_path)
    stem, _ = os.path.splitext(filename)
    if not stem:
        return None
    for ext in extensions:
        candidate = os.path.join(folder, f"{stem}.{ext}")
        if os.path.isfile(candidate):
            return candidate
    return None


DEFAULT_CLASSIFIER = PathClassifier()


def classify(name: str, *, is_dir: bool = False) -> Classification:
    return DEFAULT_CLASSIFIER.classify(name, is_dir=is_dir)


def find_thumbnail(video_path: str) -> Optional[str]:
    """First ``<stem>.<image ext>`` next to *video_path*, in preference order."""

    return DEFAULT_CLASSIFIER.find_thumbnail(video_path)


def find_subtitle(video_path: str) -> Optional[str]:
    return DEFAULT_CLASSIFIER.find_subtitle(video_path)


def is_storable_path(path: str) -> bool:
    """False when *path* carries undecodable bytes as lone surrogates.

    ``os.scandir`` hands such names back via ``surrogateescape``; they cannot
    be bound as SQLite text or rendered as JSON.
    """

    try:
        path.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


__all__ = [
    "Classification",
    "DEFAULT_CLASSIFIER",
    "EntryKind",
    "PathClassifier",
    "classify",
    "extension_of",
    "find_subtitle",
    "find_thumbnail",
    "is_storable_path",
]

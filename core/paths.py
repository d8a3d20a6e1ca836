from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

__all__ = [
    "PREFIX_MODES",
    "ensure_working_dir_structure",
    "folder_contains",
    "get_catalog_db_path",
    "get_data_dir",
    "get_default_settings_paths",
    "get_logs_dir",
    "normalize_folder",
    "resolve_working_dir",
]

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

PREFIX_MODES = ("textual", "segment")


def _expand_path(value: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(value))
    return Path(expanded).resolve()


def _ensure_writable_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(path, os.W_OK)


def _prepare_working_dir(candidate: Path) -> Optional[Path]:
    if not _ensure_writable_dir(candidate):
        return None
    try:
        get_data_dir(candidate).mkdir(parents=True, exist_ok=True)
    except OSError:
        return None
    return candidate


def resolve_working_dir() -> Path:
    """Resolve the VideoLibrary working directory, creating it if required."""

    env_home = os.environ.get("VIDEOLIBRARY_HOME")
    if env_home:
        try:
            env_path: Optional[Path] = _expand_path(env_home)
        except (OSError, RuntimeError):
            env_path = None
        if env_path is not None:
            prepared = _prepare_working_dir(env_path)
            if prepared is not None:
                return prepared

    prepared = _prepare_working_dir(Path.home() / ".videolibrary")
    if prepared is not None:
        return prepared

    fallback = _PROJECT_ROOT / ".videolibrary"
    get_data_dir(fallback).mkdir(parents=True, exist_ok=True)
    return fallback


def get_data_dir(working_dir: Path) -> Path:
    return working_dir / "data"


def get_catalog_db_path(working_dir: Path) -> Path:
    return get_data_dir(working_dir) / "library.db"


def get_logs_dir(working_dir: Path) -> Path:
    return working_dir / "logs"


def ensure_working_dir_structure(working_dir: Path) -> None:
    for directory in (working_dir, get_data_dir(working_dir), get_logs_dir(working_dir)):
        directory.mkdir(parents=True, exist_ok=True)


def get_default_settings_paths(working_dir: Path) -> list[Path]:
    """Return the search order for settings.json files."""

    return [working_dir / "settings.json", _PROJECT_ROOT / "settings.json"]


def normalize_folder(path: str | os.PathLike[str]) -> str:
    """Return the absolute, separator-normalised form used as a catalog key.

    Walk counts, ``folder_path`` columns and mounted roots are all compared as
    plain strings, so every entry point funnels user input through here.
    """

    text = os.fspath(path)
    if not text:
        raise ValueError("folder path must not be empty")
    return os.path.normpath(os.path.abspath(os.path.expanduser(text)))


def folder_contains(folder: str, candidate: str, *, mode: str = "textual") -> bool:
    """Return True when *candidate* counts as *folder* or lies beneath it.

    ``textual`` is a raw ``str.startswith`` check, so ``/media/foo`` also
    claims ``/media/foobar``. ``segment`` compares whole path components.
    """

    if mode == "segment":
        if candidate == folder:
            return True
        base = folder if folder.endswith(os.sep) else folder + os.sep
        return candidate.startswith(base)
    return candidate.startswith(folder)

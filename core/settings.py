from __future__ import annotations

import copy
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict

from .paths import get_catalog_db_path, get_default_settings_paths, get_logs_dir
from .settings_schema import SETTINGS_VALIDATOR

__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_VERSION",
    "load_settings",
    "merge_defaults",
    "resolve_catalog_db_path",
    "save_settings",
]

LOGGER = logging.getLogger("videolibrary.settings")

SETTINGS_VERSION = 1


DEFAULT_SETTINGS: Dict[str, Any] = {
    "version": SETTINGS_VERSION,
    "scan": {
        "default_depth": 2,
        "prefix_match": "textual",
        "skip_names": ["node_modules", "Library", ".Trash"],
        "video_extensions": [
            "mp4",
            "mkv",
            "avi",
            "webm",
            "mov",
            "wmv",
            "flv",
            "m4v",
            "mpg",
            "mpeg",
            "3gp",
            "ts",
        ],
        # order is the thumbnail lookup preference
        "image_extensions": ["jpg", "jpeg", "png", "webp"],
        "subtitle_extensions": ["srt", "ass", "ssa", "sub", "vtt"],
    },
    "catalog": {
        "db_path": None,
    },
    "query": {
        "default_limit": 100,
        "max_page_size": 500,
    },
    "api": {
        "host": "127.0.0.1",
        "port": 8757,
        "api_key": None,
        "cors_origins": ["http://localhost", "http://127.0.0.1"],
        "lan_only": True,
    },
    "logging": {
        "level": "INFO",
        "json_file": True,
    },
}


def merge_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    def _merge(default: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in default.items():
            if isinstance(value, dict):
                current = payload.get(key)
                if isinstance(current, dict):
                    result[key] = _merge(value, current)
                else:
                    result[key] = _merge(value, {})
            elif isinstance(value, list):
                current = payload.get(key)
                result[key] = list(current) if isinstance(current, list) else list(value)
            else:
                result[key] = payload.get(key, value)
        for key, value in payload.items():
            if key not in result:
                result[key] = value
        return result

    return _merge(DEFAULT_SETTINGS, data or {})


def _apply_migrations(settings: Dict[str, Any]) -> Dict[str, Any]:
    version = settings.get("version")
    try:
        version_int = int(version)
    except (TypeError, ValueError):
        version_int = 0
    if version_int < SETTINGS_VERSION:
        settings["version"] = SETTINGS_VERSION
    return settings


def _repair_invalid(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Reset values that fail validation back to their defaults."""

    for dotted in SETTINGS_VALIDATOR.invalid_values(settings):
        section, key = dotted.split(".", 1)
        LOGGER.warning("Invalid setting %s=%r; using default", dotted, settings[section].get(key))
        settings[section][key] = copy.deepcopy(DEFAULT_SETTINGS[section][key])
    return settings


def _log_unknown_keys(settings: Dict[str, Any], working_dir: Path) -> None:
    unknown = list(SETTINGS_VALIDATOR.unknown_keys(settings))
    if not unknown:
        return
    logs_dir = get_logs_dir(working_dir)
    payload = {
        "ts": time.time(),
        "unknown": unknown,
    }
    target = logs_dir / "settings_unknown.json"
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
    except OSError:
        return


def load_settings(working_dir: Path) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for candidate in get_default_settings_paths(working_dir):
        try:
            with open(candidate, "r", encoding="utf-8") as handle:
                loaded = json.load(handle)
        except FileNotFoundError:
            continue
        except json.JSONDecodeError:
            LOGGER.warning("Ignoring malformed settings file %s", candidate)
            continue
        except OSError:
            continue
        if isinstance(loaded, dict):
            data = loaded
            break
    merged = merge_defaults(data)
    merged = _apply_migrations(merged)
    merged = _repair_invalid(merged)
    merged.setdefault("working_dir", str(working_dir))
    _log_unknown_keys(merged, working_dir)
    return merged


def save_settings(settings: Dict[str, Any], working_dir: Path) -> None:
    merged = merge_defaults(dict(settings))
    merged = _apply_migrations(merged)
    merged.setdefault("working_dir", str(working_dir))
    path = working_dir / "settings.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(merged, handle, ensure_ascii=False, indent=2)


def resolve_catalog_db_path(settings: Dict[str, Any], working_dir: Path) -> Path:
    catalog = settings.get("catalog") if isinstance(settings.get("catalog"), dict) else {}
    configured = catalog.get("db_path")
    if isinstance(configured, str) and configured.strip():
        return Path(configured).expanduser()
    return get_catalog_db_path(working_dir)

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .paths import get_logs_dir, resolve_working_dir

LOG_FILENAME = "videolibrary.log.jsonl"

_RESERVED_ATTRS = set(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


class JsonLogFormatter(logging.Formatter):
    """Render each record as one JSON line, keeping serialisable ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_ATTRS or key in payload:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = repr(value)
            payload[key] = value
        return json.dumps(payload, ensure_ascii=False)


def configure_json_logging(
    name: str = "videolibrary",
    *,
    working_dir: Optional[Path] = None,
    level: str | int = logging.INFO,
) -> logging.Logger:
    """Attach the JSONL file handler to *name* once per log file."""

    logs_dir = get_logs_dir(working_dir or resolve_working_dir())
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = str(logs_dir / LOG_FILENAME)
    logger = logging.getLogger(name)
    logger.setLevel(_coerce_level(level))
    if not any(getattr(handler, "baseFilename", None) == log_path for handler in logger.handlers):
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(JsonLogFormatter())
        logger.addHandler(handler)
    return logger


def configure_from_settings(settings: Mapping[str, Any], working_dir: Path) -> Optional[logging.Logger]:
    section = settings.get("logging") if isinstance(settings.get("logging"), Mapping) else {}
    if not section.get("json_file", True):
        logging.getLogger("videolibrary").setLevel(_coerce_level(section.get("level", "INFO")))
        return None
    return configure_json_logging(working_dir=working_dir, level=section.get("level", "INFO"))


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO

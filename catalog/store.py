"""SQLite persistence for catalogued media, mounted roots and facet links."""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from core.db import connect, placeholders, transaction
from core.paths import PREFIX_MODES

from .models import FilterSpec, MediaRecord, MountedRoot, new_id, utc_now
from .query import VIDEO_COLUMNS, compile_filter, folder_prefix_clause
from .schema import FACET_TABLES, ensure_schema

LOGGER = logging.getLogger("videolibrary.catalog.store")

_UPSERT_SQL = """
    INSERT INTO videos (
        id, path, filename, folder_path, size, duration, thumbnail_path, created_at, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(path) DO UPDATE SET
        filename=excluded.filename,
        folder_path=excluded.folder_path,
        size=excluded.size,
        duration=excluded.duration,
        thumbnail_path=excluded.thumbnail_path,
        updated_at=excluded.updated_at
"""

_VIDEO_SELECT = "SELECT " + ", ".join(VIDEO_COLUMNS) + " FROM videos"


class CatalogStore:
    """Thread-safe catalog over a single SQLite connection.

    Every public method holds one re-entrant lock for its duration.
    :meth:`replace_folder` keeps it across the whole clear-and-insert so a
    concurrent reader never sees a half-replaced folder.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = ":memory:",
        *,
        prefix_mode: str = "textual",
        default_limit: int = 100,
        max_page_size: int = 500,
    ) -> None:
        if prefix_mode not in PREFIX_MODES:
            raise ValueError(f"Unknown prefix mode: {prefix_mode!r}")
        self.db_path = str(db_path)
        self.prefix_mode = prefix_mode
        self.default_limit = int(default_limit)
        self.max_page_size = int(max_page_size)
        self._lock = threading.RLock()
        self._conn = connect(self.db_path)
        ensure_schema(self._conn)

    # ------------------------------------------------------------------
    # Context management
    # ------------------------------------------------------------------
    def __enter__(self) -> "CatalogStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Media records
    # ------------------------------------------------------------------
    def _upsert_params(self, record: MediaRecord, now: str) -> Tuple[Any, ...]:
        return (
            record.id or new_id(),
            record.path,
            record.filename,
            record.folder_path,
            int(record.size),
            record.duration,
            record.thumbnail_path,
            record.created_at or now,
            now,
        )

    def upsert(self, record: MediaRecord) -> MediaRecord:
        """Insert *record* or refresh the row already stored under its path."""

        with self._lock:
            self._conn.execute(_UPSERT_SQL, self._upsert_params(record, utc_now()))
            stored = self.get_by_path(record.path)
        assert stored is not None
        return stored

    def upsert_many(self, records: Iterable[MediaRecord]) -> int:
        with self._lock, transaction(self._conn):
            return self._upsert_rows(records)

    def _upsert_rows(self, records: Iterable[MediaRecord]) -> int:
        now = utc_now()
        written = 0
        for record in records:
            self._conn.execute(_UPSERT_SQL, self._upsert_params(record, now))
            written += 1
        return written

    def clear_prefix(self, folder_path: str) -> int:
        with self._lock:
            return self._clear_prefix(folder_path)

    def _clear_prefix(self, folder_path: str) -> int:
        clause = folder_prefix_clause(folder_path, mode=self.prefix_mode, column="folder_path")
        cursor = self._conn.execute(f"DELETE FROM videos WHERE {clause.sql}", clause.params)
        return max(cursor.rowcount, 0)

    def replace_folder(self, folder_path: str, records: Sequence[MediaRecord]) -> Tuple[int, int]:
        """Swap every record under *folder_path* for *records* in one transaction.

        Returns ``(cleared, new)`` where ``new`` counts the paths that were not
        catalogued before the swap.
        """

        with self._lock:
            known = self._known_paths([record.path for record in records])
            with transaction(self._conn):
                cleared = self._clear_prefix(folder_path)
                self._upsert_rows(records)
        new = sum(1 for record in records if record.path not in known)
        LOGGER.debug("Replaced %s: cleared=%s written=%s new=%s", folder_path, cleared, len(records), new)
        return cleared, new

    def _known_paths(self, paths: Sequence[str]) -> set:
        known: set = set()
        # stay below SQLite's bound-parameter limit
        chunk = 500
        for start in range(0, len(paths), chunk):
            batch = paths[start : start + chunk]
            rows = self._conn.execute(
                f"SELECT path FROM videos WHERE path IN ({placeholders(len(batch))})", batch
            )
            known.update(row["path"] for row in rows)
        return known

    def delete(self, video_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM videos WHERE id = ?", (video_id,))
            return cursor.rowcount > 0

    def get_by_id(self, video_id: str) -> Optional[MediaRecord]:
        with self._lock:
            row = self._conn.execute(f"{_VIDEO_SELECT} WHERE id = ?", (video_id,)).fetchone()
        return MediaRecord.from_row(row) if row else None

    def get_by_path(self, path: str) -> Optional[MediaRecord]:
        with self._lock:
            row = self._conn.execute(f"{_VIDEO_SELECT} WHERE path = ?", (path,)).fetchone()
        return MediaRecord.from_row(row) if row else None

    def list(self, spec: Optional[FilterSpec] = None) -> List[MediaRecord]:
        plan = compile_filter(
            spec or FilterSpec(),
            prefix_mode=self.prefix_mode,
            default_limit=self.default_limit,
            max_page_size=self.max_page_size,
        )
        sql, params = plan.select_sql()
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [MediaRecord.from_row(row) for row in rows]

    def count(self, spec: Optional[FilterSpec] = None) -> int:
        plan = compile_filter(spec or FilterSpec(), prefix_mode=self.prefix_mode)
        sql, params = plan.count_sql()
        with self._lock:
            row = self._conn.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    def move_record(self, old_path: str, new_path: str) -> Optional[MediaRecord]:
        """Point the record at *old_path* to *new_path*; ``None`` if unknown."""

        folder_path, filename = os.path.split(new_path)
        with self._lock:
            if self.get_by_path(old_path) is None:
                return None
            with transaction(self._conn):
                # a stale row at the destination would violate the path key
                self._conn.execute(
                    "DELETE FROM videos WHERE path = ? AND path <> ?", (new_path, old_path)
                )
                self._conn.execute(
                    """
                    UPDATE videos
                    SET path = ?, filename = ?, folder_path = ?, updated_at = ?
                    WHERE path = ?
                    """,
                    (new_path, filename, folder_path, utc_now(), old_path),
                )
            return self.get_by_path(new_path)

    # ------------------------------------------------------------------
    # Mounted roots
    # ------------------------------------------------------------------
    def add_root(self, path: str, *, depth: int = 2, name: Optional[str] = None) -> MountedRoot:
        if int(depth) < 0:
            raise ValueError("scan depth must be non-negative")
        display = name or os.path.basename(path.rstrip("/\\")) or path
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO mounted_folders (id, path, name, scan_depth, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    name=excluded.name,
                    scan_depth=excluded.scan_depth
                """,
                (new_id(), path, display, int(depth), utc_now()),
            )
            root = self.get_root(path)
        assert root is not None
        return root

    def get_root(self, path: str) -> Optional[MountedRoot]:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, path, name, scan_depth, created_at FROM mounted_folders WHERE path = ?",
                (path,),
            ).fetchone()
        return MountedRoot.from_row(row) if row else None

    def list_roots(self) -> List[MountedRoot]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, path, name, scan_depth, created_at FROM mounted_folders ORDER BY name COLLATE NOCASE, path"
            ).fetchall()
        return [MountedRoot.from_row(row) for row in rows]

    def set_root_depth(self, path: str, depth: int) -> bool:
        if int(depth) < 0:
            raise ValueError("scan depth must be non-negative")
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE mounted_folders SET scan_depth = ? WHERE path = ?", (int(depth), path)
            )
            return cursor.rowcount > 0

    def remove_root(self, path: str) -> int:
        """Forget a root and every record catalogued beneath it."""

        with self._lock, transaction(self._conn):
            self._conn.execute("DELETE FROM mounted_folders WHERE path = ?", (path,))
            return self._clear_prefix(path)

    # ------------------------------------------------------------------
    # Facets
    # ------------------------------------------------------------------
    def register_facet_value(self, facet: str, value_id: str, name: str, **extra: Any) -> None:
        table = _facet_table(facet)
        columns: Dict[str, Any] = {"id": value_id}
        if table.entity_table == "languages":
            columns["code"] = extra.pop("code", name)
        columns["name"] = name
        if table.entity_table == "tags" and "color" in extra:
            columns["color"] = extra.pop("color")
        if extra:
            raise ValueError(f"Unsupported fields for {facet}: {sorted(extra)}")
        names = ", ".join(columns)
        with self._lock:
            self._conn.execute(
                f"INSERT OR IGNORE INTO {table.entity_table} ({names}) VALUES ({placeholders(len(columns))})",
                tuple(columns.values()),
            )

    def set_video_facet(self, video_id: str, facet: str, ids: Iterable[str]) -> None:
        table = _facet_table(facet)
        with self._lock, transaction(self._conn):
            self._conn.execute(f"DELETE FROM {table.link_table} WHERE video_id = ?", (video_id,))
            self._conn.executemany(
                f"INSERT OR IGNORE INTO {table.link_table} (video_id, {table.link_column}) VALUES (?, ?)",
                [(video_id, value) for value in dict.fromkeys(ids)],
            )

    def video_facets(self, video_id: str) -> Dict[str, List[Dict[str, Any]]]:
        result: Dict[str, List[Dict[str, Any]]] = {}
        with self._lock:
            for facet, table in FACET_TABLES.items():
                rows = self._conn.execute(
                    f"""
                    SELECT e.* FROM {table.entity_table} e
                    JOIN {table.link_table} l ON l.{table.link_column} = e.id
                    WHERE l.video_id = ?
                    ORDER BY e.name COLLATE NOCASE
                    """,
                    (video_id,),
                ).fetchall()
                result[facet] = [dict(row) for row in rows]
        return result


def _facet_table(facet: str):
    try:
        return FACET_TABLES[facet]
    except KeyError:
        raise ValueError(f"Unknown facet: {facet!r}") from None


__all__ = ["CatalogStore"]

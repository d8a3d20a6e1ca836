"""SQLite schema for the library catalog."""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Dict

SCHEMA_VERSION = 1

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS mounted_folders (
    id TEXT PRIMARY KEY,
    path TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    scan_depth INTEGER NOT NULL DEFAULT 2,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    path TEXT NOT NULL UNIQUE,
    filename TEXT NOT NULL,
    folder_path TEXT NOT NULL,
    size INTEGER NOT NULL DEFAULT 0,
    duration REAL,
    thumbnail_path TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tags (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    color TEXT NOT NULL DEFAULT '#6366f1'
);

CREATE TABLE IF NOT EXISTS participants (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS languages (
    id TEXT PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS video_tags (
    video_id TEXT NOT NULL,
    tag_id TEXT NOT NULL,
    PRIMARY KEY (video_id, tag_id),
    FOREIGN KEY (video_id) REFERENCES videos(id) ON DELETE CASCADE,
    FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS video_participants (
    video_id TEXT NOT NULL,
    participant_id TEXT NOT NULL,
    PRIMARY KEY (video_id, participant_id),
    FOREIGN KEY (video_id) REFERENCES videos(id) ON DELETE CASCADE,
    FOREIGN KEY (participant_id) REFERENCES participants(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS video_languages (
    video_id TEXT NOT NULL,
    language_id TEXT NOT NULL,
    PRIMARY KEY (video_id, language_id),
    FOREIGN KEY (video_id) REFERENCES videos(id) ON DELETE CASCADE,
    FOREIGN KEY (language_id) REFERENCES languages(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_videos_folder ON videos(folder_path);
CREATE INDEX IF NOT EXISTS idx_videos_filename ON videos(filename);
"""


@dataclass(frozen=True, slots=True)
class FacetTable:
    """Taxonomy entity table plus the association table linking it to videos."""

    facet: str
    entity_table: str
    link_table: str
    link_column: str
    alias: str


FACET_TABLES: Dict[str, FacetTable] = {
    "tags": FacetTable("tags", "tags", "video_tags", "tag_id", "vt"),
    "participants": FacetTable("participants", "participants", "video_participants", "participant_id", "vp"),
    "languages": FacetTable("languages", "languages", "video_languages", "language_id", "vl"),
}


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(_SCHEMA_SQL)
    conn.execute(f"PRAGMA user_version={int(SCHEMA_VERSION)}")


__all__ = ["FACET_TABLES", "FacetTable", "SCHEMA_VERSION", "ensure_schema"]

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

__all__ = [
    "DEFAULT_BUSY_TIMEOUT_MS",
    "LIKE_ESCAPE",
    "configure_connection",
    "connect",
    "escape_like",
    "placeholders",
    "transaction",
]

DEFAULT_BUSY_TIMEOUT_MS = 5000
LIKE_ESCAPE = "\\"


def connect(
    db_path: str | Path,
    *,
    timeout: float = 5.0,
    check_same_thread: bool = False,
) -> sqlite3.Connection:
    """Return a configured SQLite connection with sane defaults.

    ``:memory:`` is passed through untouched so tests can run without a file.
    Transactions are managed explicitly through :func:`transaction`.
    """

    target = str(db_path)
    if target != ":memory:":
        Path(target).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        target,
        timeout=timeout,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    configure_connection(conn, enable_wal=target != ":memory:")
    return conn


def configure_connection(conn: sqlite3.Connection, *, enable_wal: bool = True) -> None:
    conn.execute(f"PRAGMA busy_timeout={int(DEFAULT_BUSY_TIMEOUT_MS)}")
    if enable_wal:
        try:
            conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.DatabaseError:
            pass
    # association rows rely on ON DELETE CASCADE
    conn.execute("PRAGMA foreign_keys=ON")


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so *value* matches literally (use ``ESCAPE '\\'``)."""

    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def placeholders(count: int) -> str:
    if count <= 0:
        raise ValueError("placeholders() needs at least one slot")
    return ",".join("?" for _ in range(count))

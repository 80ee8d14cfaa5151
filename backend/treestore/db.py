from __future__ import annotations

import sqlite3
from pathlib import Path


def connect(path: Path, *, timeout: float = 5.0) -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    # Autocommit mode: transactions are opened explicitly by the repository.
    conn = sqlite3.connect(path, timeout=timeout, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def init_db(path: Path, *, timeout: float = 5.0) -> None:
    conn = connect(path, timeout=timeout)
    try:
        conn.execute("BEGIN IMMEDIATE")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
              id TEXT PRIMARY KEY,
              applied_at TEXT NOT NULL
            );
            """
        )
        _apply_migrations(conn)
        conn.execute("COMMIT")
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


def _apply_migrations(conn: sqlite3.Connection) -> None:
    migrations: list[tuple[str, str]] = [
        ("001_initial", _MIG_001_INITIAL),
    ]
    applied = {row["id"] for row in conn.execute("SELECT id FROM schema_migrations")}
    for mid, sql in migrations:
        if mid in applied:
            continue
        # executescript() would commit the open transaction, so run statements one by one.
        for stmt in sql.split(";"):
            if stmt.strip():
                conn.execute(stmt)
        conn.execute(
            "INSERT INTO schema_migrations(id, applied_at) VALUES(?, datetime('now'))",
            (mid,),
        )


_MIG_001_INITIAL = r"""
CREATE TABLE IF NOT EXISTS root_containers (
  id TEXT PRIMARY KEY,
  singleton INTEGER NOT NULL DEFAULT 1 UNIQUE CHECK (singleton = 1),
  name TEXT NOT NULL,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS nodes (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL CHECK (length(name) > 0),
  kind TEXT NOT NULL CHECK (kind IN ('file', 'folder')),
  size INTEGER NOT NULL DEFAULT 0 CHECK (size >= 0),
  content_ref TEXT,
  text TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  root_id TEXT NOT NULL,
  parent_id TEXT,
  FOREIGN KEY(root_id) REFERENCES root_containers(id),
  FOREIGN KEY(parent_id) REFERENCES nodes(id)
);

CREATE INDEX IF NOT EXISTS idx_nodes_root_parent
ON nodes(root_id, parent_id);

CREATE INDEX IF NOT EXISTS idx_nodes_parent
ON nodes(parent_id)
"""

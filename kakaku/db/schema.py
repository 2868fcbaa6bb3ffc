"""Database schema definitions and migration helpers."""

from __future__ import annotations

import sqlite3
from pathlib import Path

_SCHEMA_VERSION = 1

# Server-assigned timestamps: UTC, millisecond precision.
_NOW = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

_DDL = f"""
CREATE TABLE IF NOT EXISTS stores (
    store_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    place_id TEXT,
    lat REAL,
    lng REAL,
    region TEXT,
    created_at TEXT NOT NULL DEFAULT {_NOW},
    updated_at TEXT NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_stores_name ON stores(name);

CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    normalized_name TEXT NOT NULL UNIQUE,
    aliases TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL DEFAULT {_NOW},
    updated_at TEXT NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS entries (
    id TEXT PRIMARY KEY,
    store_id TEXT NOT NULL REFERENCES stores(store_id),
    store_name TEXT NOT NULL,
    place_id TEXT,
    product_id TEXT NOT NULL REFERENCES products(id),
    raw_product_name TEXT NOT NULL DEFAULT '',
    normalized_name TEXT NOT NULL DEFAULT '',
    attributes TEXT NOT NULL DEFAULT '[]',
    price INTEGER NOT NULL DEFAULT 0,
    currency TEXT NOT NULL DEFAULT 'JPY',
    tax_included INTEGER NOT NULL DEFAULT 1,
    date TEXT NOT NULL,
    region TEXT,
    user_id TEXT,
    thanks_count INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active',
    source TEXT NOT NULL DEFAULT 'user',
    import_id TEXT,
    created_at TEXT NOT NULL DEFAULT {_NOW},
    updated_at TEXT NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_entries_name ON entries(normalized_name, status, created_at);
CREATE INDEX IF NOT EXISTS idx_entries_store ON entries(store_id);
CREATE INDEX IF NOT EXISTS idx_entries_created ON entries(status, created_at);

CREATE TABLE IF NOT EXISTS raw_imports (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    store_json TEXT NOT NULL DEFAULT '{{}}',
    receipt_image_path TEXT NOT NULL DEFAULT '',
    extracted_text TEXT,
    raw_items_json TEXT NOT NULL DEFAULT '[]',
    ai_model TEXT NOT NULL,
    ai_created_at TEXT,
    ai_confidence REAL,
    status TEXT NOT NULL DEFAULT 'draft',
    created_at TEXT NOT NULL DEFAULT {_NOW},
    updated_at TEXT NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    thanks_received INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);
"""


def ensure_schema(db_path: str | Path) -> sqlite3.Connection:
    """Open (or create) the database and ensure the schema is up to date.

    The connection runs in autocommit mode and may be shared between
    threads; callers serialize access and open transactions explicitly.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An open sqlite3.Connection with the schema applied.
    """
    db_path = Path(db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        str(db_path), check_same_thread=False, isolation_level=None
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    try:
        row = conn.execute("SELECT version FROM schema_version").fetchone()
        current_version = row["version"] if row else 0
    except sqlite3.OperationalError:
        current_version = 0

    if current_version < _SCHEMA_VERSION:
        conn.executescript(_DDL)
        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (_SCHEMA_VERSION,),
        )

    return conn

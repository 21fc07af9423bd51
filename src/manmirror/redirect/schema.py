"""SQLite schema of the persisted redirect index."""

from __future__ import annotations

import sqlite3


SCHEMA_VERSION = 1
PRAGMA_BUSY_TIMEOUT_MS = 5000


def apply_runtime_pragmas(connection: sqlite3.Connection) -> None:
    """The index file is written once and then only read."""

    connection.execute(f"PRAGMA busy_timeout={PRAGMA_BUSY_TIMEOUT_MS};")
    connection.execute("PRAGMA journal_mode=DELETE;")
    connection.execute("PRAGMA synchronous=NORMAL;")


def ensure_schema(connection: sqlite3.Connection) -> None:
    """Create index tables if missing."""

    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS entries (
            name TEXT NOT NULL,
            release TEXT NOT NULL,
            package TEXT NOT NULL,
            section TEXT NOT NULL,
            language TEXT NOT NULL,
            PRIMARY KEY (name, release, package, section, language)
        ) WITHOUT ROWID;

        CREATE TABLE IF NOT EXISTS languages (
            language TEXT PRIMARY KEY
        ) WITHOUT ROWID;

        CREATE TABLE IF NOT EXISTS sections (
            section TEXT PRIMARY KEY
        ) WITHOUT ROWID;

        CREATE TABLE IF NOT EXISTS releases (
            alias TEXT PRIMARY KEY,
            release TEXT NOT NULL
        ) WITHOUT ROWID;

        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        ) WITHOUT ROWID;
        """
    )


def read_schema_version(connection: sqlite3.Connection) -> int | None:
    row = connection.execute("SELECT value FROM meta WHERE key = 'schema_version'").fetchone()
    if row is None:
        return None
    return int(row[0])

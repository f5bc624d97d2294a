"""Numbered SQL migrations layered on top of schema.sql.

Files in ``migrations/`` are named ``NNN_description.sql``; the highest
applied number is kept in ``schema_version``.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"
_MIGRATION_NAME = re.compile(r"^(\d+)_(.+)\.sql$")


def strip_pragmas(sql: str) -> str:
    # Connection-level PRAGMAs are set once in get_connection
    return "\n".join(
        line for line in sql.splitlines() if not line.strip().upper().startswith("PRAGMA")
    )


def current_version(conn: sqlite3.Connection) -> int:
    conn.execute(
        """CREATE TABLE IF NOT EXISTS schema_version (
               version     INTEGER PRIMARY KEY,
               description TEXT NOT NULL,
               applied_at  TEXT NOT NULL DEFAULT (datetime('now'))
           )"""
    )
    row = conn.execute("SELECT MAX(version) AS v FROM schema_version").fetchone()
    return row[0] or 0


def pending_migrations(conn: sqlite3.Connection, migrations_dir: Path = MIGRATIONS_DIR):
    """(version, path) pairs newer than the applied version, lowest first."""
    applied = current_version(conn)
    found = []
    if not migrations_dir.exists():
        return found
    for path in migrations_dir.glob("*.sql"):
        match = _MIGRATION_NAME.match(path.name)
        if not match:
            logger.warning(f"Ignoring migration file without a version prefix: {path.name}")
            continue
        version = int(match.group(1))
        if version > applied:
            found.append((version, path))
    return sorted(found)


def run_migrations(conn: sqlite3.Connection, migrations_dir: Path = MIGRATIONS_DIR) -> list[int]:
    """Apply pending migrations and return the versions applied."""
    applied = []
    for version, path in pending_migrations(conn, migrations_dir):
        logger.info(f"Applying migration {version}: {path.name}")
        conn.executescript(strip_pragmas(path.read_text(encoding="utf-8")))
        conn.execute(
            "INSERT INTO schema_version (version, description) VALUES (?, ?)",
            (version, path.stem),
        )
        conn.commit()
        applied.append(version)
    return applied

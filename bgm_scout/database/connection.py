import sqlite3
import logging
from pathlib import Path

from ..errors import ConfigurationError
from .migrator import run_migrations, strip_pragmas

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open the channel store with WAL journaling and foreign keys on."""
    try:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
    except (OSError, sqlite3.OperationalError) as e:
        raise ConfigurationError(f"Cannot open database at {db_path}: {e}") from e
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_database(db_path: str) -> sqlite3.Connection:
    """Open the store, create the base schema and apply pending migrations."""
    conn = get_connection(db_path)
    conn.executescript(strip_pragmas(SCHEMA_PATH.read_text(encoding="utf-8")))
    run_migrations(conn)
    logger.debug(f"Database initialized at {db_path}")
    return conn

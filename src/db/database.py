import logging
import os
import sqlite3

from core.errors import StorageError

logger = logging.getLogger(__name__)

CURRENT_DB_VERSION = 2

def connect(sqlite_path: str) -> sqlite3.Connection:
    """Open (and migrate) a library database. Any sqlite/OS failure becomes StorageError."""
    try:
        parent = os.path.dirname(sqlite_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        logger.info("Database file path: %s", sqlite_path)

        db = sqlite3.connect(sqlite_path, check_same_thread=False)
        db.row_factory = sqlite3.Row

        existing_version = int(db.execute("PRAGMA user_version").fetchone()[0])
        upgrade_database_if_needed(db, existing_version)
    except (sqlite3.Error, OSError) as e:
        raise StorageError(f"Cannot open library database: {e}") from e

    return db

def upgrade_database_if_needed(db: sqlite3.Connection, existing_version: int) -> None:
    logger.debug("Existing database version: %s", existing_version)

    if existing_version >= CURRENT_DB_VERSION:
        return

    # v1
    if existing_version <= 0:
        logger.info("Migrate database version 1...")
        db.execute("PRAGMA journal_mode=WAL")
        db.execute("PRAGMA user_version=1")
        db.executescript("""
            CREATE TABLE IF NOT EXISTS tracks (
                name TEXT PRIMARY KEY,
                data BLOB NOT NULL,
                mime_type TEXT NOT NULL
            );
        """)
        db.commit()

    # v2
    if existing_version <= 1:
        logger.info("Migrate database version 2...")
        db.execute("PRAGMA user_version=2")
        db.executescript("""
            ALTER TABLE tracks ADD COLUMN size_bytes INTEGER NOT NULL DEFAULT 0;
            UPDATE tracks SET size_bytes = length(data);
        """)
        db.commit()

def debug_print_schema(db: sqlite3.Connection) -> None:
    cur = db.execute("PRAGMA table_info(tracks)")
    logger.info("[tracks table schema]")
    for _cid, name, col_type, _notnull, _default, _pk in cur.fetchall():
        logger.info("- %s (%s)", name, col_type)

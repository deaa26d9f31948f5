from __future__ import annotations

import logging
import sqlite3
from threading import Lock
from typing import List

from core.errors import NotFoundError, StorageError, ValidationError
from core.models import Track
from db.database import connect, debug_print_schema

logger = logging.getLogger(__name__)

AUDIO_MIME_PREFIX = "audio/"


def validate_mime_type(mime_type: str | None) -> None:
    if not mime_type or not mime_type.startswith(AUDIO_MIME_PREFIX):
        raise ValidationError(f"not an audio file: {mime_type or 'unknown type'}")


class BlobStore:
    """
    SQLite-backed keyed storage for audio payloads.

    Every call is its own transaction. Writes go through one lock, so concurrent
    puts to the same name are applied one after the other and the last one wins.
    """

    def __init__(self, db: sqlite3.Connection) -> None:
        self._conn = db
        self._lock = Lock()

    @classmethod
    def open(cls, path: str) -> "BlobStore":
        return cls(connect(path))

    def put(self, name: str, data: bytes, mime_type: str) -> None:
        validate_mime_type(mime_type)
        if not name:
            raise ValidationError("track name is empty")

        payload = bytes(data)
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute(
                        """
                        INSERT INTO tracks (name, data, mime_type, size_bytes)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(name) DO UPDATE SET
                            data = excluded.data,
                            mime_type = excluded.mime_type,
                            size_bytes = excluded.size_bytes
                        """,
                        (name, sqlite3.Binary(payload), mime_type, len(payload)),
                    )
            except sqlite3.Error as e:
                raise StorageError(f"Failed to save {name}: {e}") from e
        logger.debug("Stored %s (%d bytes, %s)", name, len(payload), mime_type)

    def get(self, name: str) -> Track:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT name, data, mime_type FROM tracks WHERE name = ? LIMIT 1",
                    (name,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to load {name}: {e}") from e
        if row is None:
            raise NotFoundError(name)
        return Track.from_row(row)

    def get_all(self) -> List[Track]:
        """All stored tracks. Order is whatever sqlite returns; callers must sort."""
        try:
            with self._lock:
                rows = self._conn.execute("SELECT name, data, mime_type FROM tracks").fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to fetch tracks: {e}") from e
        return [Track.from_row(row) for row in rows]

    def names(self) -> List[str]:
        try:
            with self._lock:
                rows = self._conn.execute("SELECT name FROM tracks").fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to fetch tracks: {e}") from e
        return [row["name"] for row in rows]

    def delete(self, name: str) -> None:
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute("DELETE FROM tracks WHERE name = ?", (name,))
            except sqlite3.Error as e:
                raise StorageError(f"Failed to remove {name}: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def log_schema(self) -> None:
        debug_print_schema(self._conn)

# db/session_store.py
from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from threading import Lock
from typing import Optional

from core.errors import StorageError
from core.models import LoopMode

logger = logging.getLogger(__name__)

KEY_TRACK = "current_track_name"
KEY_POSITION = "position_seconds"
KEY_LOOP = "loop_mode"
KEY_RANDOM = "random_mode"


@dataclass(frozen=True)
class SessionSnapshot:
    current_track_name: Optional[str] = None
    position_seconds: float = 0.0
    loop_mode: LoopMode = LoopMode.NONE
    random_mode: bool = False
    loop_mode_saved: bool = False
    random_mode_saved: bool = False


class SessionStore:
    """
    Small durable key/value settings that let a session resume after a restart.
    Lives in its own sqlite file, separate from the audio blobs.
    """

    def __init__(self, db: sqlite3.Connection) -> None:
        self._conn = db
        self._lock = Lock()
        try:
            with self._conn:
                self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS session_data (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                    """
                )
        except sqlite3.Error as e:
            raise StorageError(f"Cannot prepare session store: {e}") from e

    @classmethod
    def open(cls, path: str) -> "SessionStore":
        try:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            conn = sqlite3.connect(path, check_same_thread=False)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open session store: {e}") from e
        return cls(conn)

    @classmethod
    def in_memory(cls) -> "SessionStore":
        return cls(sqlite3.connect(":memory:", check_same_thread=False))

    # -------------------------------
    # RAW ACCESS
    # -------------------------------
    def _get(self, key: str) -> Optional[str]:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM session_data WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read session setting {key}: {e}") from e
        return row[0] if row else None

    def _set(self, **values: Optional[str]) -> None:
        # None removes the key; all values in one call share a transaction.
        try:
            with self._lock, self._conn:
                for key, value in values.items():
                    if value is None:
                        self._conn.execute("DELETE FROM session_data WHERE key = ?", (key,))
                    else:
                        self._conn.execute(
                            """
                            INSERT INTO session_data (key, value) VALUES (?, ?)
                            ON CONFLICT(key) DO UPDATE SET value = excluded.value
                            """,
                            (key, value),
                        )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write session settings: {e}") from e

    # -------------------------------
    # SESSION
    # -------------------------------
    def load(self) -> SessionSnapshot:
        track = self._get(KEY_TRACK)
        raw_position = self._get(KEY_POSITION)
        raw_loop = self._get(KEY_LOOP)
        raw_random = self._get(KEY_RANDOM)

        try:
            position = max(0.0, float(raw_position)) if raw_position is not None else 0.0
        except ValueError:
            logger.warning("Discarding unreadable saved position %r", raw_position)
            position = 0.0
        if position != position:  # NaN
            position = 0.0

        return SessionSnapshot(
            current_track_name=track or None,
            position_seconds=position,
            loop_mode=LoopMode.parse(raw_loop),
            random_mode=raw_random == "true",
            loop_mode_saved=raw_loop is not None,
            random_mode_saved=raw_random is not None,
        )

    def set_current_track(self, name: str) -> None:
        self._set(**{KEY_TRACK: name, KEY_POSITION: "0"})

    def set_position(self, seconds: float) -> None:
        self._set(**{KEY_POSITION: repr(float(max(0.0, seconds)))})

    def clear_track(self) -> None:
        self._set(**{KEY_TRACK: None, KEY_POSITION: None})

    def set_loop_mode(self, mode: LoopMode) -> None:
        self._set(**{KEY_LOOP: mode.value})

    def set_random_mode(self, enabled: bool) -> None:
        self._set(**{KEY_RANDOM: "true" if enabled else "false"})

    def close(self) -> None:
        with self._lock:
            self._conn.close()

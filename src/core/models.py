# core/models.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Optional
import sqlite3

from core.utils import format_time


@dataclass(frozen=True)
class Track:
    name: str
    data: bytes
    mime_type: str

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Track":
        return Track(
            name=row["name"],
            data=bytes(row["data"]),
            mime_type=row["mime_type"],
        )


@dataclass(frozen=True)
class UploadItem:
    file_name: str
    mime_type: str
    data: bytes


@dataclass
class ImportReport:
    saved: list[str] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)  # (file_name, reason)
    storage_error: Optional[Exception] = None


class LoopMode(Enum):
    NONE = "none"
    TRACK = "track"
    PLAYLIST = "playlist"

    @staticmethod
    def parse(value: str | None) -> "LoopMode":
        # Older session files stored a plain boolean loop flag.
        if value in ("true", "1"):
            return LoopMode.TRACK
        try:
            return LoopMode(value)
        except ValueError:
            return LoopMode.NONE


class ControllerStatus(Enum):
    IDLE = auto()
    LOADING = auto()
    PAUSED = auto()
    PLAYING = auto()


@dataclass
class PlaybackState:
    status: ControllerStatus = ControllerStatus.IDLE
    current_index: Optional[int] = None
    current_track_name: Optional[str] = None
    position_seconds: float = 0.0
    duration_seconds: float = 0.0
    loop_mode: LoopMode = LoopMode.NONE
    random_mode: bool = False
    temporary: bool = False  # playing an unsaved upload while storage is down

    @property
    def is_playing(self) -> bool:
        return self.status == ControllerStatus.PLAYING

    @property
    def has_track(self) -> bool:
        return self.current_track_name is not None or self.temporary

    def clear_track(self) -> None:
        self.status = ControllerStatus.IDLE
        self.current_index = None
        self.current_track_name = None
        self.position_seconds = 0.0
        self.duration_seconds = 0.0
        self.temporary = False

    def snapshot(self) -> "PlaybackState":
        return replace(self)

    def time_display(self) -> str:
        if not self.has_track:
            return "0:00 / 0:00"
        return f"{format_time(self.position_seconds)} / {format_time(self.duration_seconds)}"

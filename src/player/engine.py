# src/player/engine.py
from __future__ import annotations

from enum import Enum, auto

from PySide6.QtCore import QObject, Signal

from core.utils import clamp


class EngineStatus(Enum):
    EMPTY = auto()
    LOADED = auto()
    PLAYING = auto()
    PAUSED = auto()


class PlaybackEngine(QObject):
    """
    Single-resource audio transport. Knows nothing about playlists or looping.

    Every event carries the load id returned by the `load()` that created the
    resource it came from, so listeners can drop events of a superseded track.
    """
    metadataReady = Signal(int, float)   # load_id, duration seconds
    timeUpdate = Signal(int, float)      # load_id, position seconds
    ended = Signal(int)                  # load_id
    started = Signal(int)                # load_id; play() succeeded
    failed = Signal(int, str)            # load_id, reason; play() refused

    def __init__(self):
        super().__init__()
        self.status = EngineStatus.EMPTY
        self.load_id = 0
        self.duration = 0.0
        self._load_counter = 0

    def _begin_load(self) -> int:
        self._load_counter += 1
        self.load_id = self._load_counter
        self.duration = 0.0
        self.status = EngineStatus.LOADED
        return self.load_id

    def load(self, data: bytes, mime_type: str = "", name: str | None = None) -> int:
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def seek(self, seconds: float) -> float:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def position(self) -> float:
        raise NotImplementedError

    def clamp_position(self, seconds: float) -> float:
        if self.duration > 0:
            return clamp(float(seconds), 0.0, self.duration)
        return max(0.0, float(seconds))

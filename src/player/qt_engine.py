# src/player/qt_engine.py
from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QTimer, QBuffer, QByteArray, QIODevice, QUrl
from PySide6.QtMultimedia import QMediaPlayer, QAudioOutput

from core.errors import PlaybackError
from player.engine import EngineStatus, PlaybackEngine

logger = logging.getLogger(__name__)

TICK_INTERVAL_MS = 500


class QtPlaybackEngine(PlaybackEngine):
    """QMediaPlayer fed from an in-memory buffer."""

    def __init__(self, volume_0_to_1: float = 0.7):
        super().__init__()

        self.audio = QAudioOutput()
        self.media = QMediaPlayer()
        self.media.setAudioOutput(self.audio)
        self.audio.setVolume(min(1.0, max(0.0, float(volume_0_to_1))))

        self._buffer: Optional[QBuffer] = None
        self._bytes: Optional[QByteArray] = None
        self._play_pending = False
        self._at_end = False

        self.media.durationChanged.connect(self._on_duration)
        self.media.positionChanged.connect(self._on_position)
        self.media.playbackStateChanged.connect(self._on_state_changed)
        self.media.mediaStatusChanged.connect(self._on_media_status)
        self.media.errorOccurred.connect(self._on_error)

        # positionChanged is not guaranteed while nothing changes; keep a steady tick
        self._tick = QTimer(self)
        self._tick.setInterval(TICK_INTERVAL_MS)
        self._tick.timeout.connect(self._emit_tick)

    # ----------------------------
    # Qt handlers
    # ----------------------------

    def _on_duration(self, ms: int) -> None:
        if ms <= 0 or self.status == EngineStatus.EMPTY:
            return
        self.duration = ms / 1000.0
        self.metadataReady.emit(self.load_id, self.duration)

    def _on_position(self, ms: int) -> None:
        if self.status == EngineStatus.EMPTY:
            return
        self.timeUpdate.emit(self.load_id, max(0, ms) / 1000.0)

    def _emit_tick(self) -> None:
        if self.status == EngineStatus.PLAYING:
            self.timeUpdate.emit(self.load_id, self.position())

    def _on_state_changed(self, state: QMediaPlayer.PlaybackState) -> None:
        if state == QMediaPlayer.PlaybackState.PlayingState:
            self.status = EngineStatus.PLAYING
            self._tick.start()
            if self._play_pending:
                self._play_pending = False
                self.started.emit(self.load_id)
        else:
            self._tick.stop()
            if self.status == EngineStatus.PLAYING:
                self.status = EngineStatus.PAUSED

    def _on_media_status(self, status: QMediaPlayer.MediaStatus) -> None:
        if status == QMediaPlayer.MediaStatus.EndOfMedia:
            # one ended per pass; replaying (seek/play) leaves EndOfMedia and re-arms it
            if self._at_end:
                return
            self._at_end = True
            self.status = EngineStatus.PAUSED
            self._tick.stop()
            self.ended.emit(self.load_id)
            return

        self._at_end = False
        if status == QMediaPlayer.MediaStatus.InvalidMedia:
            self._fail("Cannot decode audio data")

    def _on_error(self, _error, message: str) -> None:
        self._fail(message or "Unknown playback error")

    def _fail(self, reason: str) -> None:
        logger.warning("Playback failed for load %s: %s", self.load_id, reason)
        self._play_pending = False
        self._tick.stop()
        if self.status == EngineStatus.PLAYING:
            self.status = EngineStatus.PAUSED
        self.failed.emit(self.load_id, reason)

    # ----------------------------
    # Public API
    # ----------------------------

    def load(self, data: bytes, mime_type: str = "", name: str | None = None) -> int:
        self._release()
        load_id = self._begin_load()

        self._bytes = QByteArray(bytes(data))
        self._buffer = QBuffer(self._bytes)
        if not self._buffer.open(QIODevice.OpenModeFlag.ReadOnly):
            self._buffer = None
            self._bytes = None
            self.status = EngineStatus.EMPTY
            raise PlaybackError("Cannot open audio buffer")

        # The URL is only a format hint for the backend.
        self.media.setSourceDevice(self._buffer, QUrl(name or f"track-{load_id}"))
        logger.debug("Loaded %s as load %s (%s, %d bytes)", name, load_id, mime_type, len(data))
        return load_id

    def play(self) -> None:
        if self.status == EngineStatus.EMPTY or self._buffer is None:
            self.failed.emit(self.load_id, "No track loaded")
            return
        if self.media.mediaStatus() == QMediaPlayer.MediaStatus.InvalidMedia:
            self.failed.emit(self.load_id, "Audio data is not playable")
            return
        if self.media.playbackState() == QMediaPlayer.PlaybackState.PlayingState:
            self.started.emit(self.load_id)
            return
        self._at_end = False
        self._play_pending = True
        self.media.play()

    def pause(self) -> None:
        self._play_pending = False
        self.media.pause()
        if self.status == EngineStatus.PLAYING:
            self.status = EngineStatus.PAUSED

    def seek(self, seconds: float) -> float:
        target = self.clamp_position(seconds)
        self.media.setPosition(int(target * 1000))
        return target

    def stop(self) -> None:
        self._release()
        self.status = EngineStatus.EMPTY
        self.duration = 0.0

    def position(self) -> float:
        return max(0, int(self.media.position())) / 1000.0

    def _release(self) -> None:
        self._play_pending = False
        self._at_end = False
        self._tick.stop()
        self.media.stop()
        self.media.setSource(QUrl())
        if self._buffer is not None:
            self._buffer.close()
        self._buffer = None
        self._bytes = None

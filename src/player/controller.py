# src/player/controller.py
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from PySide6.QtCore import QObject, Signal

from core.config import DEFAULT_POSITION_SAVE_INTERVAL, DEFAULT_UI_TICK_INTERVAL
from core.errors import NotFoundError, PlaybackError, StorageError
from core.models import ControllerStatus, ImportReport, LoopMode, PlaybackState, UploadItem
from core.state import AppState
from core.utils import clamp
from library.importer import first_playable, import_batch
from library.index import LibraryIndex
from player.engine import PlaybackEngine

logger = logging.getLogger(__name__)

LOOP_CYCLE = [LoopMode.NONE, LoopMode.TRACK, LoopMode.PLAYLIST]


@dataclass(frozen=True)
class TrackEntry:
    name: str
    active: bool
    playing: bool


class PlaybackController(QObject):
    """
    Owns the playback session: the library index, the playback state and the
    request token that ties engine events to the selection that caused them.

    States: IDLE (nothing loaded), LOADING (fetch in flight), PAUSED, PLAYING.
    Every public method catches the player errors it can hit, puts the state
    back into a consistent shape and reports once on the status channel.
    """
    stateChanged = Signal(object)           # PlaybackState snapshot
    libraryChanged = Signal(list)           # ordered track names
    positionChanged = Signal(float, float)  # position, duration (throttled)

    def __init__(
        self,
        app_state: AppState,
        engine: PlaybackEngine,
        store=None,
        session=None,
        *,
        position_save_interval: float = DEFAULT_POSITION_SAVE_INTERVAL,
        ui_tick_interval: float = DEFAULT_UI_TICK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        super().__init__()
        self.app_state = app_state
        self.engine = engine
        self.store = store
        self.session = session
        self.index = LibraryIndex()
        self.state = PlaybackState()

        self.position_save_interval = position_save_interval
        self.ui_tick_interval = ui_tick_interval
        self._clock = clock
        self._rng = rng or random.Random()

        self._storage_ok = store is not None
        self._token = 0
        self._load_id: Optional[int] = None
        self._play_pending = False
        self._pending_seek: Optional[float] = None
        self._last_saved_at: Optional[float] = None
        self._last_ui_at: Optional[float] = None

        # One subscription for the whole session; stale events are dropped by load id.
        engine.metadataReady.connect(self._on_metadata)
        engine.timeUpdate.connect(self._on_time_update)
        engine.ended.connect(self._on_ended)
        engine.started.connect(self._on_started)
        engine.failed.connect(self._on_failed)

    # ----------------------------
    # Helpers
    # ----------------------------

    @property
    def storage_available(self) -> bool:
        return self._storage_ok

    def _report(self, message: str, notify_type: str = "info") -> None:
        self.app_state.notify(message, notify_type)

    def _emit_state(self) -> None:
        self.stateChanged.emit(self.state.snapshot())

    def _next_token(self) -> int:
        self._token += 1
        self._play_pending = False
        self._pending_seek = None
        return self._token

    def _storage_failed(self, err: StorageError) -> None:
        if self._storage_ok:
            logger.error("Blob storage failed, continuing without it: %s", err)
        self._storage_ok = False
        self.app_state.notify_once(
            "storage",
            f"Storage unavailable: {err} (falling back to temporary playback)",
            "error",
        )

    def _persist(self, action: str, *args) -> None:
        if self.session is None:
            return
        try:
            getattr(self.session, action)(*args)
        except StorageError as e:
            self.app_state.notify_once("session", f"Could not save session: {e}", "warn")

    def _require_store(self):
        if not self._storage_ok or self.store is None:
            raise StorageError("storage not initialized")
        return self.store

    def _unload(self, forget: bool = True) -> None:
        """Drop the active track: engine and state, and the persisted selection if `forget`."""
        self._next_token()
        self._load_id = None
        self.engine.stop()
        self.state.clear_track()
        if forget:
            self._persist("clear_track")

    def _flush_position(self) -> None:
        if self.state.current_track_name is None:
            return
        self._persist("set_position", self.state.position_seconds)
        self._last_saved_at = self._clock()

    # ----------------------------
    # Startup / library
    # ----------------------------

    def startup(self) -> PlaybackState:
        """Rebuild the index, restore loop/random settings and reload the last track paused."""
        if not self._storage_ok:
            self._storage_failed(StorageError("storage not initialized"))
        self.refresh_library()

        snapshot = None
        if self.session is not None:
            try:
                snapshot = self.session.load()
            except StorageError as e:
                self.app_state.notify_once("session", f"Could not read saved session: {e}", "warn")

        if snapshot is not None:
            self.state.loop_mode = snapshot.loop_mode
            self.state.random_mode = snapshot.random_mode
            if snapshot.loop_mode_saved:
                self._report(f"Looping: {snapshot.loop_mode.value} (loaded from storage)")
            if snapshot.random_mode_saved:
                self._report(
                    f"Random playback {'enabled' if snapshot.random_mode else 'disabled'} (loaded from storage)"
                )
            self._resume(snapshot.current_track_name, snapshot.position_seconds)
        else:
            self._resume(None, 0.0)

        self._emit_state()
        return self.state.snapshot()

    def _resume(self, name: Optional[str], position: float) -> None:
        if not name or not self.index.contains(name):
            if name and self._storage_ok:
                logger.info("Saved track %s is no longer in the library", name)
                self._persist("clear_track")
            self.state.clear_track()
            self._report("No valid track to resume", "warn")
            return

        token = self._next_token()
        self.state.status = ControllerStatus.LOADING
        try:
            track = self._require_store().get(name)
        except NotFoundError:
            self._persist("clear_track")
            self.state.clear_track()
            self._report("No valid track to resume", "warn")
            return
        except StorageError as e:
            self._storage_failed(e)
            self.state.clear_track()
            self.refresh_library()
            self._report("No valid track to resume", "warn")
            return

        if token != self._token:
            return
        try:
            self._load_id = self.engine.load(track.data, track.mime_type, track.name)
        except PlaybackError as e:
            self.state.clear_track()
            self._report(f"Playback error: {e}", "error")
            return

        self.state.current_track_name = name
        self.state.current_index = self.index.index_of(name)
        self.state.position_seconds = position
        self.state.duration_seconds = 0.0
        self.state.temporary = False
        self.state.status = ControllerStatus.PAUSED
        # duration is unknown until metadata arrives; the seek is applied then
        self._pending_seek = position
        self._report(f"Loaded: {name} at {int(position)}s (press Play)")

    def refresh_library(self) -> list[str]:
        """Recompute the index from the store and re-anchor the active track."""
        if self._storage_ok and self.store is not None:
            try:
                self.index.rebuild(self.store)
            except StorageError as e:
                self._storage_failed(e)
        if not self._storage_ok:
            self.index.replace([])

        name = self.state.current_track_name
        if name is not None:
            if self.index.contains(name):
                self.state.current_index = self.index.index_of(name)
            else:
                logger.info("Active track %s disappeared from the library", name)
                self._unload(forget=self._storage_ok)

        names = self.index.names()
        self.libraryChanged.emit(names)
        return names

    def entries(self) -> list[TrackEntry]:
        return [
            TrackEntry(
                name=name,
                active=(i == self.state.current_index),
                playing=(i == self.state.current_index and self.state.is_playing),
            )
            for i, name in enumerate(self.index)
        ]

    # ----------------------------
    # Uploads / removal
    # ----------------------------

    def import_files(self, items: Iterable[UploadItem]) -> ImportReport:
        items = list(items)
        if not items:
            self._report("No audio files selected", "warn")
            return ImportReport()

        if not self._storage_ok:
            report = ImportReport()
            item = first_playable(items)
            for other in items:
                if other is not item:
                    report.skipped.append((other.file_name, "storage unavailable"))
            if item is None:
                self._report("No audio files selected", "warn")
                return report
            self._report("Storage unavailable; playing first file temporarily", "warn")
            self.play_temporary(item)
            return report

        self._report("Saving files...")
        report = import_batch(self.store, items)
        for name in report.saved:
            self._report(f"Saved: {name}", "success")
        for name, reason in report.skipped:
            self._report(f"Skipped {name} ({reason})", "warn")
        if report.storage_error is not None:
            self._storage_failed(report.storage_error)

        self.refresh_library()
        self._emit_state()
        return report

    def remove_track(self, name: str) -> bool:
        try:
            self._require_store().delete(name)
        except StorageError as e:
            self._storage_failed(e)
            self.refresh_library()
            self._emit_state()
            return False

        if self.state.current_track_name == name:
            self._unload()
        self._report(f"Removed: {name}")
        self.refresh_library()
        self._emit_state()
        return True

    # ----------------------------
    # Selection / transport
    # ----------------------------

    def select_track(self, name: str) -> bool:
        token = self._next_token()
        self.state.status = ControllerStatus.LOADING
        self._emit_state()

        try:
            track = self._require_store().get(name)
        except NotFoundError as e:
            if token == self._token:
                self._unload()
                self._report(str(e), "error")
                self.refresh_library()
                self._emit_state()
            return False
        except StorageError as e:
            if token == self._token:
                self._unload(forget=False)
                self._storage_failed(e)
                self.refresh_library()
                self._emit_state()
            return False

        if token != self._token:
            logger.debug("Discarding stale selection of %s (token %s)", name, token)
            return False

        try:
            self._load_id = self.engine.load(track.data, track.mime_type, track.name)
        except PlaybackError as e:
            self._unload()
            self._report(f"Playback error: {e}", "error")
            self._emit_state()
            return False

        if not self.index.contains(name):
            self.refresh_library()

        self.state.current_track_name = name
        self.state.current_index = self.index.index_of(name)
        self.state.position_seconds = 0.0
        self.state.duration_seconds = 0.0
        self.state.temporary = False
        self.state.status = ControllerStatus.PAUSED
        # before playback starts, so a crash mid-load still resumes here
        self._persist("set_current_track", name)
        self._last_saved_at = self._clock()

        self._report(f"Loaded: {name}")
        self._emit_state()
        return True

    def play_temporary(self, item: UploadItem) -> bool:
        """Play an upload straight from memory (storage down). Nothing is persisted."""
        self._next_token()
        try:
            self._load_id = self.engine.load(item.data, item.mime_type, item.file_name)
        except PlaybackError as e:
            self._load_id = None
            self.state.clear_track()
            self._report(f"Playback error: {e}", "error")
            self._emit_state()
            return False
        self.state.clear_track()
        self.state.temporary = True
        self.state.status = ControllerStatus.PAUSED
        self._emit_state()
        self.play()
        return True

    def play(self) -> None:
        if self.state.status == ControllerStatus.PLAYING or self._play_pending:
            return

        if not self.state.has_track:
            if self.index.length == 0:
                self._report("No track loaded to play", "warn")
                return
            # blind play picks the first track
            if not self.select_track(self.index.name_at(0)):
                return

        self._play_pending = True
        try:
            self.engine.play()
        except PlaybackError as e:
            self._on_failed(self._load_id, str(e))

    def pause(self) -> None:
        if self.state.status != ControllerStatus.PLAYING and not self._play_pending:
            return
        self._play_pending = False
        self.engine.pause()
        self.state.status = ControllerStatus.PAUSED
        self._flush_position()
        self._report("Paused")
        self._emit_state()

    def toggle_play_pause(self) -> None:
        if self.state.status == ControllerStatus.PLAYING or self._play_pending:
            self.pause()
        else:
            self.play()

    # "Stop" in the UI only ever paused at the current position.
    stop = pause

    def seek(self, seconds: float) -> None:
        if not self.state.has_track or self._load_id is None:
            self._report("No track loaded to seek", "warn")
            return
        if self.state.duration_seconds > 0:
            target = clamp(float(seconds), 0.0, self.state.duration_seconds)
        else:
            target = max(0.0, float(seconds))

        target = self.engine.seek(target)
        self._pending_seek = None
        self.state.position_seconds = target
        if not self.state.temporary:
            self._flush_position()
        self._report(f"Seek to {int(target)}s")
        self.positionChanged.emit(target, self.state.duration_seconds)
        self._emit_state()

    # ----------------------------
    # Navigation
    # ----------------------------

    def _play_index(self, index: int) -> None:
        if self.select_track(self.index.name_at(index)):
            self.play()

    def previous(self) -> None:
        n = self.index.length
        if n == 0:
            return
        current = self.state.current_index
        index = n - 1 if current is None else (current - 1 + n) % n
        self._play_index(index)

    def next(self) -> None:
        n = self.index.length
        if n == 0:
            return
        if self.state.random_mode:
            # uniform over the whole library; may pick the same track again
            index = self._rng.randrange(n)
        else:
            current = self.state.current_index
            index = 0 if current is None else (current + 1) % n
        self._play_index(index)

    # ----------------------------
    # Modes
    # ----------------------------

    def set_loop_mode(self, mode: LoopMode) -> None:
        self.state.loop_mode = mode
        self._persist("set_loop_mode", mode)
        self._report(f"Looping: {mode.value}")
        self._emit_state()

    def cycle_loop_mode(self) -> LoopMode:
        i = LOOP_CYCLE.index(self.state.loop_mode)
        mode = LOOP_CYCLE[(i + 1) % len(LOOP_CYCLE)]
        self.set_loop_mode(mode)
        return mode

    def set_random_mode(self, enabled: bool) -> None:
        self.state.random_mode = bool(enabled)
        self._persist("set_random_mode", self.state.random_mode)
        self._report(f"Random playback {'enabled' if enabled else 'disabled'}")
        self._emit_state()

    def shutdown(self) -> None:
        if self.state.status == ControllerStatus.PLAYING:
            self.state.position_seconds = self.engine.clamp_position(self.engine.position())
        self._flush_position()

    # ----------------------------
    # Engine events
    # ----------------------------

    def _is_stale(self, load_id: Optional[int], event: str) -> bool:
        if load_id is None or load_id != self._load_id:
            logger.debug("Ignoring stale %s for load %s (current %s)", event, load_id, self._load_id)
            return True
        return False

    def _on_metadata(self, load_id: int, duration: float) -> None:
        if self._is_stale(load_id, "metadata"):
            return
        self.state.duration_seconds = max(0.0, float(duration))
        if self._pending_seek is not None:
            target = clamp(self._pending_seek, 0.0, self.state.duration_seconds)
            self._pending_seek = None
            self.state.position_seconds = self.engine.seek(target)
        elif self.state.position_seconds > self.state.duration_seconds:
            self.state.position_seconds = self.state.duration_seconds
        self.positionChanged.emit(self.state.position_seconds, self.state.duration_seconds)
        self._emit_state()

    def _on_time_update(self, load_id: int, seconds: float) -> None:
        if self._is_stale(load_id, "time update"):
            return
        if self._pending_seek is not None:
            # resume seek not applied yet; keep the restored position
            return
        position = max(0.0, float(seconds))
        if self.state.duration_seconds > 0:
            position = min(position, self.state.duration_seconds)
        self.state.position_seconds = position

        now = self._clock()
        if self._last_ui_at is None or now - self._last_ui_at >= self.ui_tick_interval:
            self._last_ui_at = now
            self.positionChanged.emit(position, self.state.duration_seconds)

        if self.state.temporary or self.state.current_track_name is None:
            return
        if self._last_saved_at is None or now - self._last_saved_at >= self.position_save_interval:
            self._flush_position()

    def _on_started(self, load_id: int) -> None:
        if self._is_stale(load_id, "start"):
            return
        self._play_pending = False
        self.state.status = ControllerStatus.PLAYING
        self._report(f"Playing: {self.state.current_track_name or 'temporary file'}")
        self._emit_state()

    def _on_failed(self, load_id: Optional[int], reason: str) -> None:
        if self._is_stale(load_id, "failure"):
            return
        self._play_pending = False
        self.state.status = ControllerStatus.PAUSED if self.state.has_track else ControllerStatus.IDLE
        self._report(f"Playback error: {reason}", "error")
        self._emit_state()

    def _on_ended(self, load_id: int) -> None:
        if self._is_stale(load_id, "end"):
            return
        self._play_pending = False
        mode = self.state.loop_mode

        if self.state.temporary:
            if mode == LoopMode.NONE:
                self._finish()
            else:
                self.state.position_seconds = self.engine.seek(0.0)
                self.state.status = ControllerStatus.PAUSED
                self.play()
            return

        if mode == LoopMode.TRACK and self.state.current_track_name is not None:
            if self.select_track(self.state.current_track_name):
                self.play()
        elif mode == LoopMode.PLAYLIST:
            self.next()
        else:
            self._finish()

    def _finish(self) -> None:
        self.state.status = ControllerStatus.PAUSED
        self.state.position_seconds = self.state.duration_seconds
        self._flush_position()
        self.positionChanged.emit(self.state.position_seconds, self.state.duration_seconds)
        self._emit_state()

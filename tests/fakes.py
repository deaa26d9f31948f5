from __future__ import annotations

from PySide6.QtCore import QCoreApplication

from player.engine import EngineStatus, PlaybackEngine


def ensure_qt_app() -> QCoreApplication:
    return QCoreApplication.instance() or QCoreApplication([])


class FakeEngine(PlaybackEngine):
    """Scripted engine: play() starts (or fails) synchronously, events are fired by hand."""

    def __init__(self) -> None:
        super().__init__()
        self.loaded: list[str | None] = []
        self.seeks: list[float] = []
        self.play_calls = 0
        self.stop_calls = 0
        self.fail_play: str | None = None
        self.auto_start = True
        self._position = 0.0

    def load(self, data: bytes, mime_type: str = "", name: str | None = None) -> int:
        load_id = self._begin_load()
        self.loaded.append(name)
        self._position = 0.0
        return load_id

    def play(self) -> None:
        self.play_calls += 1
        if self.fail_play:
            self.failed.emit(self.load_id, self.fail_play)
        elif self.auto_start:
            self.status = EngineStatus.PLAYING
            self.started.emit(self.load_id)

    def pause(self) -> None:
        self.status = EngineStatus.PAUSED

    def seek(self, seconds: float) -> float:
        target = self.clamp_position(seconds)
        self._position = target
        self.seeks.append(target)
        return target

    def stop(self) -> None:
        self.stop_calls += 1
        self.status = EngineStatus.EMPTY
        self.duration = 0.0

    def position(self) -> float:
        return self._position

    # -- event helpers --

    def ready(self, duration: float, load_id: int | None = None) -> None:
        self.duration = duration
        self.metadataReady.emit(self.load_id if load_id is None else load_id, duration)

    def tick(self, seconds: float, load_id: int | None = None) -> None:
        self._position = seconds
        self.timeUpdate.emit(self.load_id if load_id is None else load_id, seconds)

    def finish(self, load_id: int | None = None) -> None:
        self.status = EngineStatus.PAUSED
        self.ended.emit(self.load_id if load_id is None else load_id)


class ScriptedRng:
    def __init__(self, values: list[int]) -> None:
        self.values = list(values)
        self.calls: list[int] = []

    def randrange(self, n: int) -> int:
        self.calls.append(n)
        return self.values.pop(0)

import unittest

from player.engine import EngineStatus

from fakes import ensure_qt_app

try:
    from PySide6.QtMultimedia import QMediaPlayer
except ImportError:  # no audio backend libraries on this machine
    QMediaPlayer = None


def setUpModule() -> None:
    ensure_qt_app()


@unittest.skipIf(QMediaPlayer is None, "Qt Multimedia is not available")
class TestQtPlaybackEngineEvents(unittest.TestCase):
    def setUp(self) -> None:
        from player.qt_engine import QtPlaybackEngine

        self.engine = QtPlaybackEngine()
        self.load_id = self.engine._begin_load()
        self.events = []
        self.engine.metadataReady.connect(lambda i, d: self.events.append(("metadata", i, d)))
        self.engine.timeUpdate.connect(lambda i, s: self.events.append(("time", i, s)))
        self.engine.ended.connect(lambda i: self.events.append(("ended", i)))
        self.engine.started.connect(lambda i: self.events.append(("started", i)))
        self.engine.failed.connect(lambda i, r: self.events.append(("failed", i, r)))

    def ended_events(self) -> list:
        return [e for e in self.events if e[0] == "ended"]

    def test_end_of_media_is_reported_once_per_pass(self) -> None:
        self.engine._on_media_status(QMediaPlayer.MediaStatus.EndOfMedia)
        self.engine._on_media_status(QMediaPlayer.MediaStatus.EndOfMedia)

        self.assertEqual(self.ended_events(), [("ended", self.load_id)])
        self.assertEqual(self.engine.status, EngineStatus.PAUSED)

    def test_replaying_same_track_reports_end_again(self) -> None:
        self.engine._on_media_status(QMediaPlayer.MediaStatus.EndOfMedia)
        # seek to 0 + play moves the player back to buffered media
        self.engine._on_media_status(QMediaPlayer.MediaStatus.BufferedMedia)
        self.engine._on_media_status(QMediaPlayer.MediaStatus.EndOfMedia)

        self.assertEqual(self.ended_events(), [("ended", self.load_id), ("ended", self.load_id)])

    def test_end_carries_the_current_load_id(self) -> None:
        self.engine._on_media_status(QMediaPlayer.MediaStatus.EndOfMedia)
        second = self.engine._begin_load()
        self.engine._on_media_status(QMediaPlayer.MediaStatus.LoadedMedia)
        self.engine._on_media_status(QMediaPlayer.MediaStatus.EndOfMedia)

        self.assertEqual(self.ended_events(), [("ended", self.load_id), ("ended", second)])

    def test_started_only_answers_a_pending_play(self) -> None:
        self.engine._on_state_changed(QMediaPlayer.PlaybackState.PlayingState)
        self.assertEqual(self.events, [])
        self.assertEqual(self.engine.status, EngineStatus.PLAYING)

        self.engine._on_state_changed(QMediaPlayer.PlaybackState.PausedState)
        self.assertEqual(self.engine.status, EngineStatus.PAUSED)

        self.engine._play_pending = True
        self.engine._on_state_changed(QMediaPlayer.PlaybackState.PlayingState)
        self.engine._on_state_changed(QMediaPlayer.PlaybackState.PlayingState)
        self.assertEqual(self.events, [("started", self.load_id)])

    def test_invalid_media_is_reported_as_failure(self) -> None:
        self.engine._play_pending = True
        self.engine._on_media_status(QMediaPlayer.MediaStatus.InvalidMedia)

        self.assertEqual(self.events, [("failed", self.load_id, "Cannot decode audio data")])
        self.assertFalse(self.engine._play_pending)

    def test_duration_and_position_are_tagged_with_load_id(self) -> None:
        self.engine._on_duration(90500)
        self.engine._on_position(1500)

        self.assertEqual(self.events, [("metadata", self.load_id, 90.5), ("time", self.load_id, 1.5)])
        self.assertEqual(self.engine.duration, 90.5)

    def test_events_after_stop_are_dropped(self) -> None:
        self.engine.stop()
        self.events.clear()

        self.engine._on_duration(5000)
        self.engine._on_position(1000)

        self.assertEqual(self.events, [])
        self.assertEqual(self.engine.status, EngineStatus.EMPTY)


if __name__ == "__main__":
    unittest.main()

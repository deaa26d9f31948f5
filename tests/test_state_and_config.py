import os
import tempfile
import unittest

from core.config import DEFAULT_POSITION_SAVE_INTERVAL, load_settings
from core.models import ControllerStatus, LoopMode, PlaybackState
from core.state import AppState
from core.utils import format_time

from fakes import ensure_qt_app


def setUpModule() -> None:
    ensure_qt_app()


class TestStatusChannel(unittest.TestCase):
    def test_history_is_most_recent_first_and_bounded(self) -> None:
        state = AppState(history_limit=3)
        seen = []
        state.notification.connect(seen.append)
        for i in range(5):
            state.notify(f"msg {i}")

        self.assertEqual([n.message for n in state.history], ["msg 4", "msg 3", "msg 2"])
        self.assertEqual(len(seen), 5)
        self.assertEqual(state.latest().message, "msg 4")

    def test_notify_once(self) -> None:
        state = AppState()
        self.assertTrue(state.notify_once("storage", "down"))
        self.assertFalse(state.notify_once("storage", "down again"))
        self.assertEqual([n.message for n in state.history], ["down"])
        self.assertEqual(state.history[0].notify_type, "error")


class TestSettings(unittest.TestCase):
    def test_env_overrides_and_invalid_values(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            data_dir = os.path.join(tmpdir, "data")
            settings = load_settings({
                "FUS_DATA_DIR": data_dir,
                "FUS_POSITION_SAVE_INTERVAL": "soon",
                "FUS_UI_TICK_INTERVAL": "0.5",
                "FUS_DEBUG_SCHEMA": "1",
                "FUS_LOG_LEVEL": "debug",
            })
            self.assertTrue(os.path.isdir(data_dir))
            self.assertEqual(settings.position_save_interval, DEFAULT_POSITION_SAVE_INTERVAL)
            self.assertEqual(settings.ui_tick_interval, 0.5)
            self.assertTrue(settings.debug_schema)
            self.assertEqual(settings.log_level, "DEBUG")
            self.assertEqual(settings.library_path, os.path.join(data_dir, "library.sqlite3"))
            self.assertNotEqual(settings.library_path, settings.session_path)


class TestPlaybackStateHelpers(unittest.TestCase):
    def test_format_time(self) -> None:
        self.assertEqual(format_time(0), "0:00")
        self.assertEqual(format_time(59.9), "0:59")
        self.assertEqual(format_time(61), "1:01")
        self.assertEqual(format_time(3725), "62:05")
        self.assertEqual(format_time(float("nan")), "0:00")
        self.assertEqual(format_time(-4), "0:00")

    def test_time_display(self) -> None:
        state = PlaybackState()
        self.assertEqual(state.time_display(), "0:00 / 0:00")
        state.current_track_name = "a.mp3"
        state.current_index = 0
        state.position_seconds = 42.0
        state.duration_seconds = 185.0
        self.assertEqual(state.time_display(), "0:42 / 3:05")

    def test_clear_track(self) -> None:
        state = PlaybackState(
            status=ControllerStatus.PLAYING,
            current_index=1,
            current_track_name="b",
            position_seconds=3.0,
            loop_mode=LoopMode.PLAYLIST,
            random_mode=True,
        )
        state.clear_track()
        self.assertEqual(state.status, ControllerStatus.IDLE)
        self.assertIsNone(state.current_index)
        self.assertIsNone(state.current_track_name)
        self.assertFalse(state.is_playing)
        # modes are session settings, not track state
        self.assertEqual(state.loop_mode, LoopMode.PLAYLIST)
        self.assertTrue(state.random_mode)

    def test_loop_mode_parse(self) -> None:
        self.assertEqual(LoopMode.parse("playlist"), LoopMode.PLAYLIST)
        self.assertEqual(LoopMode.parse(None), LoopMode.NONE)
        self.assertEqual(LoopMode.parse("bogus"), LoopMode.NONE)


if __name__ == "__main__":
    unittest.main()

import tempfile
import unittest
from pathlib import Path

from core.models import LoopMode
from db.session_store import KEY_LOOP, SessionStore


class TestSessionStore(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = str(Path(self._tmp.name) / "session.sqlite3")
        self.session = SessionStore.open(self.path)

    def tearDown(self) -> None:
        self.session.close()
        self._tmp.cleanup()

    def test_defaults_when_empty(self) -> None:
        snap = self.session.load()
        self.assertIsNone(snap.current_track_name)
        self.assertEqual(snap.position_seconds, 0.0)
        self.assertEqual(snap.loop_mode, LoopMode.NONE)
        self.assertFalse(snap.random_mode)
        self.assertFalse(snap.loop_mode_saved)
        self.assertFalse(snap.random_mode_saved)

    def test_values_survive_reopen(self) -> None:
        self.session.set_current_track("song.mp3")
        self.session.set_position(42.0)
        self.session.set_loop_mode(LoopMode.PLAYLIST)
        self.session.set_random_mode(True)
        self.session.close()

        self.session = SessionStore.open(self.path)
        snap = self.session.load()
        self.assertEqual(snap.current_track_name, "song.mp3")
        self.assertEqual(snap.position_seconds, 42.0)
        self.assertEqual(snap.loop_mode, LoopMode.PLAYLIST)
        self.assertTrue(snap.random_mode)

    def test_selecting_a_track_resets_position(self) -> None:
        self.session.set_current_track("a.mp3")
        self.session.set_position(10.5)
        self.session.set_current_track("b.mp3")
        self.assertEqual(self.session.load().position_seconds, 0.0)

    def test_clear_track_removes_track_and_position(self) -> None:
        self.session.set_current_track("a.mp3")
        self.session.set_position(10.5)
        self.session.set_loop_mode(LoopMode.TRACK)
        self.session.clear_track()

        snap = self.session.load()
        self.assertIsNone(snap.current_track_name)
        self.assertEqual(snap.position_seconds, 0.0)
        self.assertEqual(snap.loop_mode, LoopMode.TRACK)

    def test_legacy_boolean_loop_flag(self) -> None:
        self.session._set(**{KEY_LOOP: "true"})
        self.assertEqual(self.session.load().loop_mode, LoopMode.TRACK)
        self.session._set(**{KEY_LOOP: "false"})
        self.assertEqual(self.session.load().loop_mode, LoopMode.NONE)

    def test_garbage_position_reads_as_zero(self) -> None:
        self.session._set(position_seconds="abc")
        self.assertEqual(self.session.load().position_seconds, 0.0)
        self.session._set(position_seconds="-3")
        self.assertEqual(self.session.load().position_seconds, 0.0)


if __name__ == "__main__":
    unittest.main()

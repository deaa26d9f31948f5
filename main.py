import argparse
import logging
import signal
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QTimer

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from core.config import Settings, load_settings
from core.errors import StorageError
from core.models import ControllerStatus, LoopMode
from core.state import AppState
from db.blob_store import BlobStore
from db.session_store import SessionStore
from library.importer import iter_audio_paths, load_batch
from player.controller import PlaybackController

logger = logging.getLogger("fusplayer")


def init_controller(settings: Settings, app_state: AppState) -> PlaybackController:
    from player.qt_engine import QtPlaybackEngine

    store = None
    try:
        store = BlobStore.open(settings.library_path)
        if settings.debug_schema:
            store.log_schema()
    except StorageError as e:
        # the controller reports this once on startup
        logger.error("Error setting up storage: %s", e)

    try:
        session = SessionStore.open(settings.session_path)
    except StorageError as e:
        app_state.notify(f"Session settings will not be saved: {e}", "warn")
        session = SessionStore.in_memory()

    return PlaybackController(
        app_state,
        QtPlaybackEngine(),
        store,
        session,
        position_save_interval=settings.position_save_interval,
        ui_tick_interval=settings.ui_tick_interval,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fusplayer", description="Local audio library player")
    sub = parser.add_subparsers(dest="command", required=True)

    p_add = sub.add_parser("add", help="store audio files (directories are scanned)")
    p_add.add_argument("paths", nargs="+")

    sub.add_parser("list", help="list stored tracks")

    p_rm = sub.add_parser("remove", help="remove a stored track")
    p_rm.add_argument("name")

    p_play = sub.add_parser("play", help="play a track (or resume the last one)")
    p_play.add_argument("name", nargs="?")

    p_loop = sub.add_parser("loop", help="set loop mode")
    p_loop.add_argument("mode", choices=[m.value for m in LoopMode])

    p_rand = sub.add_parser("random", help="toggle random playback")
    p_rand.add_argument("value", choices=["on", "off"])

    sub.add_parser("status", help="show the saved session")
    return parser


def run_playback(qt_app: QCoreApplication, controller: PlaybackController, name: str | None) -> int:
    def on_state(state) -> None:
        finished = (
            state.status == ControllerStatus.PAUSED
            and state.duration_seconds > 0
            and state.position_seconds >= state.duration_seconds
        )
        if finished or state.status == ControllerStatus.IDLE:
            qt_app.quit()

    def on_position(_position: float, _duration: float) -> None:
        print(f"\r{controller.state.time_display()}  ", end="", flush=True)

    controller.positionChanged.connect(on_position)

    if name:
        if not controller.select_track(name):
            return 1
    controller.play()
    if controller.state.status == ControllerStatus.IDLE:
        return 1
    controller.stateChanged.connect(on_state)

    signal.signal(signal.SIGINT, lambda *_: qt_app.quit())
    # lets the interpreter run the SIGINT handler while Qt owns the thread
    pulse = QTimer()
    pulse.start(200)
    pulse.timeout.connect(lambda: None)

    code = qt_app.exec()
    print()
    return code


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    qt_app = QCoreApplication(sys.argv[:1])
    qt_app.setApplicationName("fusplayer")

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app_state = AppState()
    controller = init_controller(settings, app_state)
    controller.startup()

    try:
        if args.command == "add":
            items, unreadable = load_batch(iter_audio_paths(args.paths))
            for file_name, reason in unreadable:
                app_state.notify(f"Skipped {file_name} ({reason})", "warn")
            report = controller.import_files(items)
            if controller.state.temporary:
                return run_playback(qt_app, controller, None)
            return 0 if report.saved else 1

        if args.command == "list":
            for entry in controller.entries():
                marker = ">" if entry.active else " "
                print(f"{marker} {entry.name}")
            return 0

        if args.command == "remove":
            return 0 if controller.remove_track(args.name) else 1

        if args.command == "play":
            return run_playback(qt_app, controller, args.name)

        if args.command == "loop":
            controller.set_loop_mode(LoopMode(args.mode))
            return 0

        if args.command == "random":
            controller.set_random_mode(args.value == "on")
            return 0

        if args.command == "status":
            state = controller.state
            print(f"track:  {state.current_track_name or '-'}")
            print(f"time:   {state.time_display()}")
            print(f"loop:   {state.loop_mode.value}")
            print(f"random: {'on' if state.random_mode else 'off'}")
            return 0
    finally:
        controller.shutdown()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

# core/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_POSITION_SAVE_INTERVAL = 1.0
DEFAULT_UI_TICK_INTERVAL = 0.25


@dataclass(frozen=True)
class Settings:
    data_dir: str
    position_save_interval: float = DEFAULT_POSITION_SAVE_INTERVAL
    ui_tick_interval: float = DEFAULT_UI_TICK_INTERVAL
    debug_schema: bool = False
    log_level: str = "INFO"

    @property
    def library_path(self) -> str:
        return os.path.join(self.data_dir, "library.sqlite3")

    @property
    def session_path(self) -> str:
        return os.path.join(self.data_dir, "session.sqlite3")


def _float_env(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number), using %s", key, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring %s=%r (negative), using %s", key, raw, default)
        return default
    return value


def default_data_dir() -> str:
    from PySide6.QtCore import QStandardPaths

    base = QStandardPaths.writableLocation(QStandardPaths.AppDataLocation)
    if not base:
        base = os.path.join(os.path.expanduser("~"), ".fusplayer")
    return base


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env

    data_dir = env.get("FUS_DATA_DIR") or default_data_dir()
    os.makedirs(data_dir, exist_ok=True)

    return Settings(
        data_dir=data_dir,
        position_save_interval=_float_env(env, "FUS_POSITION_SAVE_INTERVAL", DEFAULT_POSITION_SAVE_INTERVAL),
        ui_tick_interval=_float_env(env, "FUS_UI_TICK_INTERVAL", DEFAULT_UI_TICK_INTERVAL),
        debug_schema=env.get("FUS_DEBUG_SCHEMA") == "1",
        log_level=(env.get("FUS_LOG_LEVEL") or "INFO").upper(),
    )

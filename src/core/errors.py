# core/errors.py
from __future__ import annotations


class PlayerError(Exception):
    """Base class for every failure the player reports on the status channel."""


class ValidationError(PlayerError):
    """An uploaded item was rejected (e.g. its mime type is not audio/*)."""


class StorageError(PlayerError):
    """The blob or session store could not be read or written."""


class NotFoundError(PlayerError):
    def __init__(self, name: str):
        super().__init__(f"Track not found: {name}")
        self.name = name


class PlaybackError(PlayerError):
    """The engine refused to start playback."""

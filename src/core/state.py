from __future__ import annotations
import logging
from dataclasses import dataclass
from PySide6.QtCore import QObject, Signal, Slot

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 200

@dataclass(frozen=True)
class Notify:
    message: str
    notify_type: str = "info"   # info/success/warn/error

class AppState(QObject):
    """
    Single human-readable status channel shared by every component.
    `history` is most recent first; nothing published here is fatal.
    """
    notification = Signal(object)   # emits Notify

    def __init__(self, history_limit: int = HISTORY_LIMIT):
        super().__init__()
        self.history: list[Notify] = []
        self.history_limit = history_limit
        self._reported_once: set[str] = set()

    @Slot(str, str)
    def notify(self, message: str, notify_type: str = "info"):
        item = Notify(message=message, notify_type=notify_type)
        if notify_type in ("warn", "error"):
            logger.warning(message)
        else:
            logger.info(message)

        self.history.insert(0, item)
        del self.history[self.history_limit:]
        self.notification.emit(item)

    def notify_once(self, key: str, message: str, notify_type: str = "error") -> bool:
        """Publish `message` only the first time `key` is seen this session."""
        if key in self._reported_once:
            logger.debug("Suppressed repeated report %s: %s", key, message)
            return False
        self._reported_once.add(key)
        self.notify(message, notify_type)
        return True

    def latest(self) -> Notify | None:
        return self.history[0] if self.history else None

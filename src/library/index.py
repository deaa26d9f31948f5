# library/index.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


def track_sort_key(name: str) -> str:
    # Plain code-point order on the stored name; stable across backends and locales.
    return name


class LibraryIndex:
    """
    Ordered view of the names held in the blob store.

    The order is always imposed here (lexicographic by name); the backing
    store's enumeration order is never relied on.
    """

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names: List[str] = []
        self._positions: dict[str, int] = {}
        self.replace(names)

    def replace(self, names: Iterable[str]) -> None:
        self._names = sorted(set(names), key=track_sort_key)
        self._positions = {name: i for i, name in enumerate(self._names)}

    def rebuild(self, store) -> "LibraryIndex":
        self.replace(store.names())
        logger.debug("Library index rebuilt: %d tracks", len(self._names))
        return self

    def index_of(self, name: str) -> Optional[int]:
        return self._positions.get(name)

    def name_at(self, index: int) -> str:
        if index < 0 or index >= len(self._names):
            raise IndexError(f"track index {index} out of range (0..{len(self._names) - 1})")
        return self._names[index]

    def contains(self, name: str) -> bool:
        return name in self._positions

    @property
    def length(self) -> int:
        return len(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self):
        return iter(list(self._names))

    def names(self) -> List[str]:
        return list(self._names)

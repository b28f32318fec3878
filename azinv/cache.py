"""
Run-scoped lookup caches.

A cache lives for one collection run and is passed explicitly to the code
that needs it. Entries are inserted once and never evicted.
"""
from typing import Callable, Dict, Generic, Hashable, TypeVar

K = TypeVar('K', bound=Hashable)
V = TypeVar('V')


class RunCache(Generic[K, V]):
    """Insert-if-absent map with a loader callback."""

    def __init__(self, name: str = ""):
        self.name = name
        self._entries: Dict[K, V] = {}
        self.hits = 0
        self.misses = 0

    def get_or_load(self, key: K, loader: Callable[[], V]) -> V:
        """Return the cached value for key, calling loader only on first use."""
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        value = loader()
        self._entries[key] = value
        return value

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

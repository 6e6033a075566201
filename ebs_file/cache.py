"""
Block caches for SnapshotFile.

A cache is purely advisory. A miss, or an add() that is refused, only
means the reader goes to the remote service; neither is ever an error.

Caches are owned by the caller and may be shared across any number of
readers and snapshots, and may outlive all of them. SnapshotFile calls
get()/add() from whatever threads call read_at(), so a cache shared by
concurrent readers must tolerate concurrent get()/add().
"""

import threading
from typing import Hashable, Optional, Protocol, Tuple, TypeVar, runtime_checkable

import cachetools

K = TypeVar("K", bound=Hashable, contravariant=True)
V = TypeVar("V")

DEFAULT_MAX_BLOCKS = 64  # 32 MiB with 512 KiB blocks


@runtime_checkable
class Cache(Protocol[K, V]):
    """
    Key -> value store with best-effort semantics.
    """

    def add(self, key: K, value: V) -> bool:
        """Store value under key. Returns whether the cache accepted it."""
        ...

    def get(self, key: K) -> Tuple[Optional[V], bool]:
        """Return (value, True) on a hit and (None, False) on a miss."""
        ...


class NullCache:
    """Cache that stores nothing: every get() misses, every add() is refused."""

    def add(self, key: Hashable, value: bytes) -> bool:
        return False

    def get(self, key: Hashable) -> Tuple[Optional[bytes], bool]:
        return None, False


class LRUCache:
    """
    Thread-safe in-memory cache bounded by number of entries.

    Entries live in a cachetools.LRUCache, so when full the least recently
    used entry is evicted. The lock is held only around cache operations,
    never while a caller fetches data.
    """

    def __init__(self, max_blocks: int = DEFAULT_MAX_BLOCKS) -> None:
        if max_blocks < 0:
            raise ValueError(f"max_blocks must be non-negative; got {max_blocks}")

        self.max_blocks = max_blocks
        self._entries: cachetools.LRUCache[Hashable, bytes] = cachetools.LRUCache(
            maxsize=max_blocks
        )
        self._lock = threading.Lock()

    def add(self, key: Hashable, value: bytes) -> bool:
        if self.max_blocks == 0:
            return False

        with self._lock:
            self._entries[key] = value

        return True

    def get(self, key: Hashable) -> Tuple[Optional[bytes], bool]:
        with self._lock:
            # Lookup through __getitem__ marks the entry as most recently used
            value = self._entries.get(key)
        if value is None:
            return None, False
        return value, True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

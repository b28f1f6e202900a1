"""A size-bounded, thread-safe LRU cache and the values it stores."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Hashable, Protocol, Tuple, runtime_checkable


class CacheError(Exception):
    """Raised when a cache operation cannot be carried out."""


class ElementNotFoundError(CacheError, LookupError):
    """Raised when a key is not present in the cache."""

    def __init__(self, message: str = "unable to find element") -> None:
        super().__init__(message)


@runtime_checkable
class CacheValue(Protocol):
    """A value that can report how much of the cache's capacity it uses."""

    def size(self) -> int:
        """Return the size of this entry, e.g. its length in bytes."""
        ...


class _SerializedFilter(Protocol):
    def n_bytes(self) -> bytes: ...


class _SizedBlock(Protocol):
    def serialize_size(self) -> int: ...


@dataclass(frozen=True)
class FilterCacheKey:
    """Key under which a compact filter is cached."""

    block_hash: bytes
    filter_type: int


@dataclass
class CacheableFilter:
    """Wraps a compact filter so that its serialized length is its size."""

    filter: Any

    def size(self) -> int:
        return len(self.filter.n_bytes())


@dataclass
class CacheableBlock:
    """Wraps a block so that its serialized size is its cache size."""

    block: Any

    def size(self) -> int:
        return int(self.block.serialize_size())


def _value_size(value: CacheValue) -> int:
    try:
        return int(value.size())
    except Exception as err:
        raise CacheError(f"couldn't determine size of cache value: {err}") from err


class LRUCache:
    """Least-recently-used cache whose total entry size never exceeds capacity."""

    def __init__(self, capacity: int) -> None:
        self._capacity = capacity
        self._size = 0
        self._entries: "OrderedDict[Hashable, Tuple[CacheValue, int]]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        """Total size of all entries currently held."""
        with self._lock:
            return self._size

    def _evict(self, needed: int) -> bool:
        if needed > self._capacity:
            raise CacheError(
                f"can't evict {needed} elements in size, "
                f"since capacity is {self._capacity}"
            )
        evicted = False
        while self._capacity - self._size < needed:
            if not self._entries:
                raise CacheError(
                    "all elements got evicted, yet still need to evict "
                    f"{needed - (self._capacity - self._size)}, likelihood "
                    "of error during size calculation"
                )
            _, (_, entry_size) = self._entries.popitem(last=False)
            self._size -= entry_size
            evicted = True
        return evicted

    def put(self, key: Hashable, value: CacheValue) -> bool:
        """Store ``value`` under ``key`` as the most recently used entry.

        Returns True if other entries had to be evicted to make room.
        Raises CacheError if the value is larger than the whole cache.
        """
        value_size = _value_size(value)
        if value_size > self._capacity:
            raise CacheError(
                f"can't insert entry of size {value_size} into cache "
                f"with capacity {self._capacity}"
            )

        with self._lock:
            existing = self._entries.pop(key, None)
            if existing is not None:
                self._size -= existing[1]

            evicted = self._evict(value_size)
            self._entries[key] = (value, value_size)
            self._size += value_size
            return evicted

    def get(self, key: Hashable) -> CacheValue:
        """Return the value for ``key`` and mark it most recently used.

        Raises ElementNotFoundError if the key is absent.
        """
        with self._lock:
            try:
                value, _ = self._entries[key]
            except KeyError:
                raise ElementNotFoundError() from None
            self._entries.move_to_end(key)
            return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
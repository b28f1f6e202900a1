"""A persistent index from header hashes to heights, with per-type chain tips."""

from __future__ import annotations

import enum
import os
import sqlite3
import threading
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from .wire import ChainHash

_HEIGHT_BYTES = 4

# One lock serialises all index transactions, since several indexes may share
# one database connection.
_DB_LOCK = threading.RLock()


class HeaderType(enum.IntEnum):
    """The kinds of header kept in the index."""

    BLOCK = 0
    REGULAR_FILTER = 1

    @property
    def header_size(self) -> int:
        """Size in bytes of one header of this type."""
        return 80 if self is HeaderType.BLOCK else 32

    @property
    def tip_key(self) -> bytes:
        """Index key under which the tip hash of this header chain is kept."""
        return b"bitcoin" if self is HeaderType.BLOCK else b"regular"


class HashNotFoundError(LookupError):
    """Raised when a hash is not present in the index."""

    def __init__(self, message: str = "target hash not found in index") -> None:
        super().__init__(message)


class HeightNotFoundError(LookupError):
    """Raised when the height of the chain tip cannot be found."""

    def __init__(self, message: str = "target height not found in index") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class HeaderEntry:
    """A (hash, height) pair to be written into the index."""

    hash: ChainHash
    height: int


def _height_bytes(height: int) -> bytes:
    return int(height).to_bytes(_HEIGHT_BYTES, "big")


class HeaderIndex:
    """Index over one header type, stored in an SQLite database.

    ``db`` is either a path to the database file or an open connection that
    several indexes can share. Block and filter indexes share the hash to
    height entries; each keeps its own chain tip.
    """

    def __init__(
        self,
        db: Union[str, "os.PathLike[str]", sqlite3.Connection],
        index_type: HeaderType,
    ) -> None:
        self.index_type = HeaderType(index_type)
        if isinstance(db, sqlite3.Connection):
            self._conn = db
            self._owns_conn = False
        else:
            self._conn = sqlite3.connect(os.fspath(db), check_same_thread=False)
            self._owns_conn = True
        with _DB_LOCK, self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS header_index "
                "(key BLOB PRIMARY KEY, value BLOB NOT NULL)"
            )

    def __enter__(self) -> "HeaderIndex":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection if this index opened it."""
        if self._owns_conn:
            self._conn.close()

    def _get(self, key: Optional[bytes]) -> Optional[bytes]:
        if key is None:
            return None
        row = self._conn.execute(
            "SELECT value FROM header_index WHERE key = ?", (bytes(key),)
        ).fetchone()
        return None if row is None else bytes(row[0])

    def _put(self, key: bytes, value: bytes) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO header_index (key, value) VALUES (?, ?)",
            (bytes(key), bytes(value)),
        )

    def add_headers(self, batch: Iterable[HeaderEntry]) -> None:
        """Write a batch of entries and move the tip to the highest one.

        The whole batch is written in one transaction, sorted by hash.
        """
        entries = sorted(batch, key=lambda entry: bytes(entry.hash))
        if not entries:
            return

        tip_hash = bytes(32)
        tip_height = 0
        with _DB_LOCK, self._conn:
            for entry in entries:
                self._put(entry.hash, _height_bytes(entry.height))
                if entry.height >= tip_height:
                    tip_hash = bytes(entry.hash)
                    tip_height = entry.height
            self._put(self.index_type.tip_key, tip_hash)

    def put_heights(self, entries: Iterable[HeaderEntry]) -> None:
        """Record hash to height entries without touching the chain tip."""
        with _DB_LOCK, self._conn:
            for entry in entries:
                self._put(entry.hash, _height_bytes(entry.height))

    def height_from_hash(self, block_hash: bytes) -> int:
        """Return the height recorded for ``block_hash``.

        Raises HashNotFoundError if the hash is unknown.
        """
        with _DB_LOCK:
            height_bytes = self._get(block_hash)
        if height_bytes is None:
            raise HashNotFoundError()
        return int.from_bytes(height_bytes, "big")

    def chain_tip(self) -> Tuple[ChainHash, int]:
        """Return the hash and height of the best known entry.

        Raises HeightNotFoundError if no tip has been recorded.
        """
        with _DB_LOCK:
            tip_hash = self._get(self.index_type.tip_key)
            tip_height = self._get(tip_hash)
        if tip_hash is None or tip_height is None or len(tip_height) != _HEIGHT_BYTES:
            raise HeightNotFoundError()
        return ChainHash(tip_hash), int.from_bytes(tip_height, "big")

    def truncate_index(self, new_tip: bytes, delete: bool = False) -> None:
        """Point the chain tip at ``new_tip``.

        With ``delete`` set, the entry of the previous tip is removed as well.
        """
        tip_key = self.index_type.tip_key
        with _DB_LOCK, self._conn:
            if delete:
                prev_tip = self._get(tip_key)
                if prev_tip is not None:
                    self._conn.execute(
                        "DELETE FROM header_index WHERE key = ?", (prev_tip,)
                    )
            self._put(tip_key, bytes(new_tip))
"""A block header store: a flat file of headers plus a hash to height index."""

from __future__ import annotations

import os
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple, Union

from .chainsync import ChainParams
from .flatfile import HeaderFile, HeaderNotFoundError
from .index import HashNotFoundError, HeaderEntry, HeaderIndex, HeaderType
from .wire import BlockHeader, ChainHash

# Number of previous blocks used to compute the median block time.
MEDIAN_TIME_BLOCKS = 11

# Largest number of hashes a block locator may hold.
MAX_BLOCK_LOCATORS_PER_MSG = 500

BLOCK_HEADERS_FILE = "block_headers.bin"

DatabaseArg = Union[str, "os.PathLike[str]", sqlite3.Connection]


@dataclass(frozen=True)
class BlockStamp:
    """A block identified by its height and hash, optionally with its time."""

    height: int
    hash: ChainHash
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class StoredBlockHeader:
    """A block header together with its height in the main chain."""

    header: BlockHeader
    height: int

    def block_hash(self) -> ChainHash:
        return self.header.block_hash()

    def to_index_entry(self) -> HeaderEntry:
        return HeaderEntry(hash=self.block_hash(), height=self.height)


def calc_past_median_time(headers: Sequence[BlockHeader]) -> datetime:
    """Return the median timestamp of ``headers``.

    Like the consensus rules, an even number of headers yields the upper of
    the two middle timestamps rather than their average.
    """
    if not headers:
        raise ValueError("cannot compute median time of no headers")
    timestamps = sorted(int(header.timestamp.timestamp()) for header in headers)
    return datetime.fromtimestamp(timestamps[len(headers) // 2], tz=timezone.utc)


class BlockHeaderStore:
    """Block headers kept in a flat file and indexed by hash.

    ``file_path`` is the directory holding the flat file, ``db`` the index
    database (a path or an open SQLite connection). A new store is seeded
    with the genesis header of ``params``; an existing one has its flat file
    trimmed back to the tip recorded in the index.
    """

    def __init__(
        self, file_path: Union[str, "os.PathLike[str]"], db: DatabaseArg,
        params: ChainParams,
    ) -> None:
        self._lock = threading.RLock()
        self._file = HeaderFile(
            os.path.join(os.fspath(file_path), BLOCK_HEADERS_FILE), HeaderType.BLOCK
        )
        try:
            self._index = HeaderIndex(db, HeaderType.BLOCK)
        except Exception:
            self._file.close()
            raise
        try:
            self._initialize(params)
        except Exception:
            self.close()
            raise

    def _initialize(self, params: ChainParams) -> None:
        file_size = self._file.size()
        if file_size == 0:
            if params.genesis_header is None:
                raise ValueError(f"chain {params.name} has no genesis header")
            self.write_headers(StoredBlockHeader(params.genesis_header, 0))
            return

        tip_hash, tip_height = self._index.chain_tip()
        file_height = file_size // self._file.header_size - 1
        latest = self._read_header(file_height)
        if latest.block_hash() == tip_hash:
            return

        # The file got ahead of the index: drop headers the index never saw.
        while file_height > tip_height:
            self._file.truncate_one()
            file_height -= 1

    def __enter__(self) -> "BlockHeaderStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the flat file and the index."""
        self._file.close()
        self._index.close()

    def _read_header(self, height: int) -> BlockHeader:
        return BlockHeader.from_bytes(self._file.read_raw(height))

    def chain_tip(self) -> Tuple[BlockHeader, int]:
        """Return the best known header and its height."""
        with self._lock:
            _, tip_height = self._index.chain_tip()
            return self._read_header(tip_height), tip_height

    def height_from_hash(self, block_hash: bytes) -> int:
        """Return the height of the header with ``block_hash``."""
        return self._index.height_from_hash(block_hash)

    def fetch_header(self, block_hash: bytes) -> Tuple[BlockHeader, int]:
        """Return the header with ``block_hash`` and its height."""
        with self._lock:
            height = self._index.height_from_hash(block_hash)
            return self._read_header(height), height

    def fetch_header_by_height(self, height: int) -> BlockHeader:
        """Return the header at ``height``, read straight from the flat file."""
        with self._lock:
            return self._read_header(height)

    def fetch_header_ancestors(
        self, num_headers: int, stop_hash: bytes
    ) -> Tuple[List[BlockHeader], int]:
        """Return ``num_headers + 1`` headers ending at ``stop_hash``.

        The height of the first header returned comes with them.
        """
        with self._lock:
            end_height = self._index.height_from_hash(stop_hash)
            start_height = end_height - num_headers
            if start_height < 0:
                raise ValueError(
                    f"cannot fetch {num_headers} ancestors of height {end_height}"
                )
            raws = self._file.read_range(start_height, end_height)
            return [BlockHeader.from_bytes(raw) for raw in raws], start_height

    def write_headers(self, *args: StoredBlockHeader) -> None:
        """Append headers to the flat file, then index them in one batch."""
        with self._lock:
            self._file.append(b"".join(header.header.serialize() for header in args))
            self._index.add_headers([header.to_index_entry() for header in args])

    def rollback_last_block(self) -> BlockStamp:
        """Remove the tip header from file and index; return the new tip."""
        with self._lock:
            _, tip_height = self._index.chain_tip()
            prev_header = self._read_header(tip_height - 1)
            prev_hash = prev_header.block_hash()
            self._file.truncate_one()
            self._index.truncate_index(prev_hash, True)
            return BlockStamp(
                height=tip_height - 1, hash=prev_hash, timestamp=prev_header.timestamp
            )

    def block_locator_from_hash(self, block_hash: bytes) -> List[ChainHash]:
        """Build a block locator rooted at ``block_hash``.

        It steps back one block at a time for the first ten entries, then
        doubles the step until the genesis block is reached.
        """
        with self._lock:
            locator = [ChainHash(block_hash)]
            try:
                height = self._index.height_from_hash(block_hash)
            except LookupError:
                return locator
            if height == 0:
                return locator

            decrement = 1
            while height > 0 and len(locator) < MAX_BLOCK_LOCATORS_PER_MSG:
                if len(locator) > 10:
                    decrement *= 2
                height = max(0, height - decrement)
                locator.append(self._read_header(height).block_hash())
            return locator

    def latest_block_locator(self) -> List[ChainHash]:
        """Build a block locator rooted at the current chain tip."""
        with self._lock:
            tip_hash, _ = self._index.chain_tip()
            return self.block_locator_from_hash(tip_hash)

    def check_connectivity(self) -> None:
        """Verify that the headers on disk link up and agree with the index.

        Raises ValueError describing the first inconsistency found.
        """
        with self._lock:
            _, tip_height = self._index.chain_tip()
            header = self._read_header(tip_height)
            for height in range(tip_height - 1, 0, -1):
                try:
                    new_header = self._read_header(height)
                except HeaderNotFoundError as err:
                    raise ValueError(
                        f"Couldn't retrieve header {header.prev_block}: {err}"
                    ) from err
                new_hash = new_header.block_hash()
                try:
                    index_height = self._index.height_from_hash(new_hash)
                except HashNotFoundError:
                    raise ValueError(
                        f"index and on-disk file out of sync at height: {height}"
                    ) from None
                if index_height != height:
                    raise ValueError("index height isn't monotonically increasing")
                if new_hash != header.prev_block:
                    raise ValueError(
                        f"Block {new_hash} doesn't match block "
                        f"{header.block_hash()}'s PrevBlock ({header.prev_block})"
                    )
                header = new_header
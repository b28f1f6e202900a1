"""A filter header store: a flat file of filter headers plus the shared index."""

from __future__ import annotations

import os
import sqlite3
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .block_store import BlockStamp
from .chainsync import ChainParams
from .flatfile import HeaderFile, HeaderNotFoundError
from .index import HeaderEntry, HeaderIndex, HeaderType
from .wire import ChainHash

REGULAR_FILTER_HEADERS_FILE = "reg_filter_headers.bin"

DatabaseArg = Union[str, "os.PathLike[str]", sqlite3.Connection]


@dataclass(frozen=True)
class FilterHeader:
    """A filter header together with the hash and height of its block."""

    header_hash: ChainHash
    filter_hash: ChainHash
    height: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "header_hash", ChainHash(self.header_hash))
        object.__setattr__(self, "filter_hash", ChainHash(self.filter_hash))

    def to_index_entry(self) -> HeaderEntry:
        return HeaderEntry(hash=self.header_hash, height=self.height)


class FilterHeaderStore:
    """Filter headers kept in a flat file, located through the block index.

    The block headers are expected to be indexed before their filter
    headers are written; this store only moves its own chain tip. A new
    store is seeded with ``genesis_filter_hash``, the filter header of the
    genesis block of ``params``. If ``header_state_assertion`` is given and
    the header on disk at its height differs, the on-disk state is wiped
    and rebuilt from genesis.
    """

    def __init__(
        self,
        file_path: Union[str, "os.PathLike[str]"],
        db: DatabaseArg,
        filter_type: HeaderType,
        params: ChainParams,
        header_state_assertion: Optional[FilterHeader] = None,
        genesis_filter_hash: Optional[bytes] = None,
    ) -> None:
        filter_type = HeaderType(filter_type)
        if filter_type is not HeaderType.REGULAR_FILTER:
            raise ValueError(f"unknown filter type: {filter_type!r}")

        self._lock = threading.RLock()
        self._params = params
        self._genesis_filter_hash = (
            None if genesis_filter_hash is None else ChainHash(genesis_filter_hash)
        )
        self._path = os.path.join(os.fspath(file_path), REGULAR_FILTER_HEADERS_FILE)
        self._file = HeaderFile(self._path, filter_type)
        try:
            self._index = HeaderIndex(db, filter_type)
        except Exception:
            self._file.close()
            raise
        try:
            self._initialize(header_state_assertion)
        except Exception:
            self.close()
            raise

    def _initialize(self, assertion: Optional[FilterHeader]) -> None:
        if self._file.size() == 0:
            self._write_genesis()
            return

        if assertion is not None and self._maybe_reset_header_state(assertion):
            self._file = HeaderFile(self._path, HeaderType.REGULAR_FILTER)
            self._write_genesis()
            return

        tip_hash, tip_height = self._index.chain_tip()
        file_height = self._file.size() // self._file.header_size - 1
        latest = self._read_header(file_height)
        if latest == tip_hash:
            return

        # The file got ahead of the index: drop headers the index never saw.
        while file_height > tip_height:
            self._file.truncate_one()
            file_height -= 1

    def _write_genesis(self) -> None:
        if self._genesis_filter_hash is None:
            raise ValueError("a genesis filter header is needed to seed the store")
        if self._params.genesis_header is None:
            raise ValueError(f"chain {self._params.name} has no genesis header")
        self.write_headers(
            FilterHeader(
                header_hash=self._params.genesis_header.block_hash(),
                filter_hash=self._genesis_filter_hash,
                height=0,
            )
        )

    def _maybe_reset_header_state(self, assertion: FilterHeader) -> bool:
        try:
            asserted = self.fetch_header_by_height(assertion.height)
        except HeaderNotFoundError:
            return False
        if asserted == assertion.filter_hash:
            return False
        # The file must be closed before removal on some platforms.
        self._file.close()
        os.remove(self._path)
        return True

    def __enter__(self) -> "FilterHeaderStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the flat file and the index."""
        self._file.close()
        self._index.close()

    def _read_header(self, height: int) -> ChainHash:
        return ChainHash(self._file.read_raw(height))

    def fetch_header(self, block_hash: bytes) -> ChainHash:
        """Return the filter header of the block with ``block_hash``."""
        with self._lock:
            height = self._index.height_from_hash(block_hash)
            return self._read_header(height)

    def fetch_header_by_height(self, height: int) -> ChainHash:
        """Return the filter header at ``height``."""
        with self._lock:
            return self._read_header(height)

    def fetch_header_ancestors(
        self, num_headers: int, stop_hash: bytes
    ) -> Tuple[List[ChainHash], int]:
        """Return ``num_headers + 1`` filter headers ending at block ``stop_hash``.

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
            return [ChainHash(raw) for raw in raws], start_height

    def write_headers(self, *args: FilterHeader) -> None:
        """Append filter headers and move the tip to the last one's block."""
        if not args:
            return
        with self._lock:
            self._file.append(b"".join(bytes(header.filter_hash) for header in args))
            new_tip = args[-1].to_index_entry().hash
            self._index.truncate_index(new_tip, False)

    def chain_tip(self) -> Tuple[ChainHash, int]:
        """Return the latest filter header and its height."""
        with self._lock:
            _, tip_height = self._index.chain_tip()
            return self._read_header(tip_height), tip_height

    def rollback_last_block(self, new_tip: bytes) -> BlockStamp:
        """Remove the last filter header and point the tip at block ``new_tip``.

        The returned stamp carries the new tip's height and filter header.
        """
        with self._lock:
            _, tip_height = self._index.chain_tip()
            new_height = tip_height - 1
            new_header = self._read_header(new_height)
            self._file.truncate_one()
            self._index.truncate_index(new_tip, False)
            return BlockStamp(height=new_height, hash=new_header)
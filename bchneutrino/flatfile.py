"""Flat files holding fixed-size headers, addressed by height."""

from __future__ import annotations

import os
import threading
from typing import List, Union

from .index import HeaderType

PathLike = Union[str, "os.PathLike[str]"]


class HeaderNotFoundError(LookupError):
    """Raised when a header cannot be read from the flat file."""


class HeaderFile:
    """An append-only file of equally sized raw headers.

    The header stored at height ``h`` starts at byte ``h * header_size``.
    New headers are always appended to the end of the file, which is created
    if it does not exist yet.
    """

    def __init__(self, path: PathLike, header_type: HeaderType) -> None:
        self.header_type = HeaderType(header_type)
        self.header_size = self.header_type.header_size
        self.name = os.fspath(path)
        self._lock = threading.RLock()
        self._file = open(self.name, "a+b", buffering=0)

    def __enter__(self) -> "HeaderFile":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def append(self, data: bytes) -> None:
        """Append raw header bytes to the end of the file."""
        with self._lock:
            self._file.write(bytes(data))
            self._file.flush()

    def _read_at(self, offset: int, length: int) -> bytes:
        with self._lock:
            self._file.seek(offset)
            return self._file.read(length)

    def read_raw(self, height: int) -> bytes:
        """Return the raw header stored at ``height``.

        Raises HeaderNotFoundError if the file holds no header there.
        """
        if height < 0:
            raise HeaderNotFoundError(f"no header at height {height}")
        raw = self._read_at(height * self.header_size, self.header_size)
        if len(raw) != self.header_size:
            raise HeaderNotFoundError(f"no header at height {height}")
        return raw

    def read_range(self, start_height: int, end_height: int) -> List[bytes]:
        """Return the raw headers from ``start_height`` to ``end_height`` inclusive.

        The whole range is read in a single call. Raises ValueError for an
        empty or negative range and HeaderNotFoundError if the file ends
        before ``end_height``.
        """
        if start_height < 0 or end_height < start_height:
            raise ValueError(
                f"invalid header range {start_height}..{end_height}"
            )
        count = end_height - start_height + 1
        size = self.header_size
        raw = self._read_at(start_height * size, count * size)
        if len(raw) != count * size:
            raise HeaderNotFoundError(
                f"headers {start_height}..{end_height} are not all on disk"
            )
        return [raw[offset:offset + size] for offset in range(0, len(raw), size)]

    def truncate_one(self) -> None:
        """Remove the last header from the end of the file.

        Raises ValueError if the file holds no complete header.
        """
        with self._lock:
            new_size = self.size() - self.header_size
            if new_size < 0:
                raise ValueError("no header left to truncate")
            self._file.truncate(new_size)

    def size(self) -> int:
        """Return the current length of the file in bytes."""
        with self._lock:
            return os.fstat(self._file.fileno()).st_size

    def close(self) -> None:
        """Close the underlying file. Calling it again has no effect."""
        with self._lock:
            self._file.close()

    @property
    def closed(self) -> bool:
        return self._file.closed
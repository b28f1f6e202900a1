"""Block header and hash types in their on-the-wire encoding."""

from __future__ import annotations

import hashlib
import string
import struct
from dataclasses import dataclass
from datetime import datetime, timezone

HASH_SIZE = 32
MAX_HASH_STRING_SIZE = HASH_SIZE * 2
BLOCK_HEADER_SIZE = 80

_HEADER_STRUCT = struct.Struct("<i32s32sIII")
_HEX_DIGITS = frozenset(string.hexdigits)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def double_sha256(data: bytes) -> bytes:
    """Return SHA-256 applied twice to ``data``."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


class ChainHash(bytes):
    """A 32-byte hash kept in internal byte order.

    Its string form is the byte-reversed hex encoding used for display.
    """

    def __new__(cls, data: bytes = bytes(HASH_SIZE)) -> "ChainHash":
        data = bytes(data)
        if len(data) != HASH_SIZE:
            raise ValueError(
                f"invalid hash length of {len(data)}, want {HASH_SIZE}"
            )
        return super().__new__(cls, data)

    @classmethod
    def from_str(cls, hex_str: str) -> "ChainHash":
        """Parse the byte-reversed hex form; short strings are zero-padded."""
        if len(hex_str) > MAX_HASH_STRING_SIZE:
            raise ValueError(
                f"max hash string length is {MAX_HASH_STRING_SIZE} bytes"
            )
        if not _HEX_DIGITS.issuperset(hex_str):
            raise ValueError(f"invalid hex in hash string: {hex_str!r}")
        if len(hex_str) % 2:
            hex_str = "0" + hex_str
        decoded = bytes.fromhex(hex_str).rjust(HASH_SIZE, b"\x00")
        return cls(decoded[::-1])

    def __str__(self) -> str:
        return bytes(self[::-1]).hex()

    def __repr__(self) -> str:
        return f"ChainHash('{self}')"


ZERO_HASH = ChainHash()


def _normalize_timestamp(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


@dataclass(frozen=True)
class BlockHeader:
    """An 80-byte block header. Timestamps are kept to whole seconds in UTC."""

    version: int = 0
    prev_block: ChainHash = ZERO_HASH
    merkle_root: ChainHash = ZERO_HASH
    timestamp: datetime = _EPOCH
    bits: int = 0
    nonce: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "prev_block", ChainHash(self.prev_block))
        object.__setattr__(self, "merkle_root", ChainHash(self.merkle_root))
        object.__setattr__(self, "timestamp", _normalize_timestamp(self.timestamp))

    def serialize(self) -> bytes:
        """Encode the header into its 80-byte wire form."""
        try:
            return _HEADER_STRUCT.pack(
                self.version,
                self.prev_block,
                self.merkle_root,
                int(self.timestamp.timestamp()),
                self.bits,
                self.nonce,
            )
        except struct.error as err:
            raise ValueError(f"unable to serialize block header: {err}") from err

    @classmethod
    def from_bytes(cls, data: bytes) -> "BlockHeader":
        """Decode a header from exactly 80 bytes."""
        if len(data) != BLOCK_HEADER_SIZE:
            raise ValueError(
                f"block header must be {BLOCK_HEADER_SIZE} bytes, got {len(data)}"
            )
        version, prev, merkle, ts, bits, nonce = _HEADER_STRUCT.unpack(data)
        return cls(
            version=version,
            prev_block=ChainHash(prev),
            merkle_root=ChainHash(merkle),
            timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
            bits=bits,
            nonce=nonce,
        )

    def block_hash(self) -> ChainHash:
        """Return the double SHA-256 hash of the serialized header."""
        return ChainHash(double_sha256(self.serialize()))
from datetime import datetime, timezone

import pytest

from bchneutrino.wire import (
    BLOCK_HEADER_SIZE,
    ZERO_HASH,
    BlockHeader,
    ChainHash,
    double_sha256,
)

GENESIS_MERKLE = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"


def mainnet_genesis() -> BlockHeader:
    return BlockHeader(
        version=1,
        prev_block=ZERO_HASH,
        merkle_root=ChainHash.from_str(GENESIS_MERKLE),
        timestamp=datetime.fromtimestamp(1231006505, tz=timezone.utc),
        bits=0x1D00FFFF,
        nonce=2083236893,
    )


def test_genesis_block_hash():
    assert (
        str(mainnet_genesis().block_hash())
        == "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"
    )


def test_serialize_length_and_round_trip():
    header = mainnet_genesis()
    raw = header.serialize()
    assert len(raw) == BLOCK_HEADER_SIZE
    assert BlockHeader.from_bytes(raw) == header
    assert BlockHeader.from_bytes(raw).block_hash() == header.block_hash()


def test_header_links_to_previous():
    genesis = mainnet_genesis()
    child = BlockHeader(
        prev_block=genesis.block_hash(),
        timestamp=datetime(2020, 1, 1, tzinfo=timezone.utc),
        bits=7,
        nonce=9,
    )
    decoded = BlockHeader.from_bytes(child.serialize())
    assert decoded.prev_block == genesis.block_hash()
    assert decoded.nonce == 9
    assert decoded.bits == 7


def test_from_bytes_rejects_wrong_length():
    raw = mainnet_genesis().serialize()
    with pytest.raises(ValueError):
        BlockHeader.from_bytes(raw[:-1])
    with pytest.raises(ValueError):
        BlockHeader.from_bytes(raw + b"\x00")


def test_naive_timestamp_is_utc_and_truncated():
    header = BlockHeader(timestamp=datetime(2021, 5, 6, 7, 8, 9, 123456))
    assert header.timestamp == datetime(2021, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    assert BlockHeader.from_bytes(header.serialize()).timestamp == header.timestamp


def test_serialize_out_of_range_raises():
    with pytest.raises(ValueError):
        BlockHeader(nonce=-1).serialize()


def test_chain_hash_string_round_trip():
    text = GENESIS_MERKLE
    parsed = ChainHash.from_str(text)
    assert str(parsed) == text
    assert bytes(parsed) == bytes.fromhex(text)[::-1]


def test_chain_hash_short_string_is_padded():
    assert ChainHash.from_str("1") == b"\x01" + bytes(31)


def test_chain_hash_rejects_bad_input():
    with pytest.raises(ValueError):
        ChainHash.from_str("0" * 65)
    with pytest.raises(ValueError):
        ChainHash.from_str("zz")
    with pytest.raises(ValueError):
        ChainHash(b"\x00" * 31)


def test_chain_hash_is_hashable_and_equal_to_bytes():
    parsed = ChainHash.from_str(GENESIS_MERKLE)
    assert {parsed: 1}[ChainHash(bytes(parsed))] == 1
    assert ZERO_HASH == bytes(32)


def test_double_sha256_of_empty():
    assert (
        double_sha256(b"").hex()
        == "5df6e0e2761359d30a8275058e299fcc0381534545f55cf43e41983f5d4c9456"
    )
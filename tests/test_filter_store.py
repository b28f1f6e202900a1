import hashlib
import sqlite3

import pytest

from bchneutrino.chainsync import SIMNET_PARAMS
from bchneutrino.filter_store import FilterHeader, FilterHeaderStore
from bchneutrino.flatfile import HeaderNotFoundError
from bchneutrino.index import HeaderEntry, HeaderIndex, HeaderType
from bchneutrino.wire import ChainHash, double_sha256

GENESIS_FILTER = ChainHash(double_sha256(b"genesis filter"))


def make_chain(num_headers):
    return [
        FilterHeader(
            header_hash=ChainHash(double_sha256(bytes([i]))),
            filter_hash=ChainHash(hashlib.sha256(bytes([i])).digest()),
            height=i,
        )
        for i in range(1, num_headers + 1)
    ]


def open_store(tmp_path, db, assertion=None):
    return FilterHeaderStore(
        tmp_path, db, HeaderType.REGULAR_FILTER, SIMNET_PARAMS,
        assertion, GENESIS_FILTER,
    )


def preload_block_index(db, chain):
    HeaderIndex(db, HeaderType.BLOCK).put_heights(
        HeaderEntry(hash=h.header_hash, height=h.height) for h in chain
    )


@pytest.fixture
def db(tmp_path):
    conn = sqlite3.connect(str(tmp_path / "test.db"), check_same_thread=False)
    yield conn
    conn.close()


def test_genesis_filter_header_written(tmp_path, db):
    store = open_store(tmp_path, db)
    try:
        assert store.fetch_header_by_height(0) == GENESIS_FILTER
        with pytest.raises(HeaderNotFoundError):
            store.fetch_header_by_height(1)
    finally:
        store.close()


def test_missing_genesis_filter_rejected(tmp_path, db):
    with pytest.raises(ValueError):
        FilterHeaderStore(tmp_path, db, HeaderType.REGULAR_FILTER, SIMNET_PARAMS)


def test_unknown_filter_type_rejected(tmp_path, db):
    with pytest.raises(ValueError):
        FilterHeaderStore(
            tmp_path, db, HeaderType.BLOCK, SIMNET_PARAMS, None, GENESIS_FILTER
        )


def test_filter_header_store_operations(tmp_path, db):
    store = open_store(tmp_path, db)
    try:
        chain = make_chain(100)
        preload_block_index(db, chain)
        store.write_headers(*chain)

        last = chain[-1]
        tip_header, tip_height = store.chain_tip()
        assert tip_header == last.filter_hash
        assert tip_height == last.height

        for header in chain:
            assert store.fetch_header_by_height(header.height) == header.filter_hash
            assert store.fetch_header(header.header_hash) == header.filter_hash

        second_to_last = chain[-2]
        stamp = store.rollback_last_block(second_to_last.header_hash)
        assert stamp.height == second_to_last.height
        assert stamp.hash == second_to_last.filter_hash

        tip_header, tip_height = store.chain_tip()
        assert tip_header == second_to_last.filter_hash
        assert tip_height == second_to_last.height
    finally:
        store.close()


def test_write_no_headers_keeps_tip(tmp_path, db):
    store = open_store(tmp_path, db)
    try:
        chain = make_chain(3)
        preload_block_index(db, chain)
        store.write_headers(*chain)
        store.write_headers()
        assert store.chain_tip() == (chain[-1].filter_hash, 3)
    finally:
        store.close()


def test_filter_header_store_recovery(tmp_path, db):
    store = open_store(tmp_path, db)
    chain = make_chain(10)
    preload_block_index(db, chain)
    store.write_headers(*chain)

    # Simulate a partial write by rolling the index back five entries.
    index = HeaderIndex(db, HeaderType.REGULAR_FILTER)
    for i in range(5):
        index.truncate_index(chain[len(chain) - i - 2].header_hash, True)
    store.close()

    store = open_store(tmp_path, db)
    try:
        tip_hash, tip_height = store.chain_tip()
        assert tip_height == 5
        assert tip_hash == chain[4].filter_hash
        assert tip_hash != chain[5].filter_hash
        with pytest.raises(HeaderNotFoundError):
            store.fetch_header_by_height(6)
    finally:
        store.close()


def test_fetch_header_ancestors(tmp_path, db):
    store = open_store(tmp_path, db)
    try:
        chain = make_chain(100)
        preload_block_index(db, chain)
        store.write_headers(*chain)

        headers, start_height = store.fetch_header_ancestors(
            99, chain[-1].header_hash
        )
        assert start_height == 1
        assert len(headers) == 100
        assert headers == [h.filter_hash for h in chain]
    finally:
        store.close()


@pytest.mark.parametrize(
    "assertion, should_remove",
    [
        (make_chain(10)[3], False),
        (FilterHeader(header_hash=bytes(32), filter_hash=bytes(32), height=5), True),
        (FilterHeader(header_hash=bytes(32), filter_hash=bytes(32), height=500), False),
    ],
    ids=["correct assertion", "incorrect assertion", "assertion not found"],
)
def test_filter_header_state_assertion(tmp_path, db, assertion, should_remove):
    chain = make_chain(10)
    store = open_store(tmp_path, db)
    preload_block_index(db, chain)
    store.write_headers(*chain)
    store.close()

    store = open_store(tmp_path, db, assertion)
    try:
        if should_remove:
            with pytest.raises(HeaderNotFoundError):
                store.fetch_header_by_height(10)
            assert store.fetch_header_by_height(0) == GENESIS_FILTER
        else:
            assert store.fetch_header_by_height(10) == chain[-1].filter_hash
    finally:
        store.close()
from datetime import datetime, timezone

from bchneutrino.notifications import BlockNtfn, Connected, Disconnected
from bchneutrino.wire import BlockHeader


def make_header(nonce: int) -> BlockHeader:
    return BlockHeader(
        version=1,
        timestamp=datetime(2020, 1, 1, tzinfo=timezone.utc),
        nonce=nonce,
    )


def test_connected_tip_is_its_header():
    header = make_header(1)
    ntfn = Connected(header, 7)
    assert ntfn.header == header
    assert ntfn.height == 7
    assert ntfn.chain_tip == header
    assert isinstance(ntfn, BlockNtfn)


def test_disconnected_keeps_new_tip():
    stale = make_header(2)
    tip = make_header(3)
    ntfn = Disconnected(stale, 9, tip)
    assert ntfn.header == stale
    assert ntfn.height == 9
    assert ntfn.chain_tip == tip
    assert isinstance(ntfn, BlockNtfn)


def test_connected_str():
    header = make_header(4)
    assert str(Connected(header, 5)) == (
        f"block connected (height=5, hash={header.block_hash()})"
    )


def test_disconnected_str():
    header = make_header(5)
    tip = make_header(6)
    assert str(Disconnected(header, 12, tip)) == (
        f"block disconnected (height=12, hash={header.block_hash()})"
    )


def test_notifications_compare_by_value():
    header = make_header(7)
    assert Connected(header, 3) == Connected(make_header(7), 3)
    assert Connected(header, 3) != Connected(header, 4)
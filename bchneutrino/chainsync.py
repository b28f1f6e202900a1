"""Chain parameters and the filter header checkpoint control."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

from .wire import ZERO_HASH, BlockHeader, ChainHash


class Network(enum.IntEnum):
    """Network magic values identifying each chain."""

    MAINNET = 0xE8F3E1E3
    TESTNET = 0xFABFB5DA
    TESTNET3 = 0xF4E5F3F4
    SIMNET = 0x12141C16


class FilterType(enum.IntEnum):
    """Compact filter types."""

    REGULAR = 0


class CheckpointMismatchError(ValueError):
    """Raised when a filter header disagrees with a known checkpoint."""

    def __init__(self, message: str = "checkpoint doesn't match") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class ChainParams:
    """The parameters of a chain that the header stores depend on."""

    name: str
    net: Network
    genesis_header: Optional[BlockHeader] = None


_GENESIS_MERKLE_ROOT = ChainHash.from_str(
    "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"
)


def _genesis(timestamp: int, bits: int, nonce: int) -> BlockHeader:
    return BlockHeader(
        version=1,
        prev_block=ZERO_HASH,
        merkle_root=_GENESIS_MERKLE_ROOT,
        timestamp=datetime.fromtimestamp(timestamp, tz=timezone.utc),
        bits=bits,
        nonce=nonce,
    )


MAINNET_PARAMS = ChainParams(
    "mainnet", Network.MAINNET, _genesis(1231006505, 0x1D00FFFF, 2083236893)
)
TESTNET3_PARAMS = ChainParams(
    "testnet3", Network.TESTNET3, _genesis(1296688602, 0x1D00FFFF, 414098458)
)
REGTEST_PARAMS = ChainParams(
    "regtest", Network.TESTNET, _genesis(1296688602, 0x207FFFFF, 2)
)
SIMNET_PARAMS = ChainParams(
    "simnet", Network.SIMNET, _genesis(1401292357, 0x207FFFFF, 2)
)


def _hashes(entries: Mapping[int, str]) -> dict:
    return {height: ChainHash.from_str(text) for height, text in entries.items()}


FILTER_HEADER_CHECKPOINTS: Mapping[Network, Mapping[int, ChainHash]] = {
    Network.MAINNET: _hashes({
        100000: "075e4781d68abed9a923a0deb6bf2f73e9b5cdb15b7f1ff07b719bfa8b05de0f",
        200000: "2e77f07befefcf07b7b8fd158c4dc3d28502f89667b921730ed4ff56dfa5da93",
        300000: "b36d11b85d9cf49f974a71d8c0534223dc65fe3f3ed49479d81e4d89a4439d2a",
        400000: "9b9c91f0e234418281506470dfecb3284c6863a00643e037481fe3fbc24242d4",
        500000: "a90ee1fd88c0007747b1750f59b6325157857ded949cc91394d8aafada6d1358",
        540000: "c87b13603861d20fc37679966513a306b785013aa8cfba71b79be8aa7453482e",
    }),
    Network.TESTNET3: _hashes({
        100000: "06be769fee8fee75dcc9c4165b1838fed8c8f780efb464cefe3a1e7eecb64603",
        200000: "1c8266e0f7fd7463f652f9c97841c7aa4150d845637104e8404a3246d6d45938",
        400000: "f6101ef9d252396045fac30ca2b8991866a08b20d9df5347af994ae1e3d0e463",
        600000: "e0dceedc20598d5b68f90782c59d0279a91e3d02016d70ae8d32d3195c316c2d",
        800000: "4d1749da2c71bdcb8d5c3315fbf53089ee57bb4a1c92f89353b099ab9e1cfb32",
        1000000: "9e3b4677dd3f6371f6c1acdb2a32fc81ae24d51506ce6a430755153cde266933",
        1200000: "49cb93219a1ce7360e4743528e61dc9c640cdb372b63087f269ce3be7fb465ee",
        1300000: "c28ecc10a583bb6232f05ce29074ba4dece8d438cc37d66cbdd7464ff67ee448",
    }),
}


def control_cf_header(
    params: ChainParams,
    filter_type: int,
    height: int,
    filter_header: ChainHash,
    checkpoints: Optional[Mapping[Network, Mapping[int, ChainHash]]] = None,
) -> bool:
    """Check a filter header against the known checkpoints.

    Returns True if a checkpoint exists at ``height`` and matches, False if
    there is no checkpoint to check against. Raises CheckpointMismatchError
    if the checkpoint differs and ValueError for an unsupported filter type.
    """
    if filter_type != FilterType.REGULAR:
        raise ValueError(f"unsupported filter type {filter_type}")

    if checkpoints is None:
        checkpoints = FILTER_HEADER_CHECKPOINTS

    control = checkpoints.get(params.net)
    if control is None:
        return False

    expected = control.get(height)
    if expected is None:
        return False

    if bytes(filter_header) != bytes(expected):
        raise CheckpointMismatchError()
    return True
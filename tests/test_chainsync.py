import pytest

from bchneutrino.chainsync import (
    FILTER_HEADER_CHECKPOINTS,
    MAINNET_PARAMS,
    SIMNET_PARAMS,
    TESTNET3_PARAMS,
    CheckpointMismatchError,
    FilterType,
    Network,
    control_cf_header,
)
from bchneutrino.wire import ChainHash

GOOD = "4a242283a406a7c089f671bb8df7671e5d5e9ba577cea1047d30a7f4919df193"
BAD = "000000000006a7c089f671bb8df7671e5d5e9ba577cea1047d30a7f4919df193"


@pytest.fixture
def checkpoints():
    return {Network.MAINNET: {999: ChainHash.from_str(GOOD)}}


def test_control_at_checkpoint_height_succeeds(checkpoints):
    header = ChainHash.from_str(GOOD)
    assert control_cf_header(
        MAINNET_PARAMS, FilterType.REGULAR, 999, header, checkpoints
    ) is True


def test_control_mismatch_raises(checkpoints):
    header = ChainHash.from_str(BAD)
    with pytest.raises(CheckpointMismatchError):
        control_cf_header(MAINNET_PARAMS, FilterType.REGULAR, 999, header, checkpoints)


def test_control_unknown_height_passes(checkpoints):
    header = ChainHash.from_str(BAD)
    assert control_cf_header(
        MAINNET_PARAMS, FilterType.REGULAR, 99, header, checkpoints
    ) is False


def test_control_unknown_network_passes(checkpoints):
    header = ChainHash.from_str(BAD)
    assert control_cf_header(
        SIMNET_PARAMS, FilterType.REGULAR, 999, header, checkpoints
    ) is False


def test_unsupported_filter_type(checkpoints):
    with pytest.raises(ValueError, match="unsupported filter type"):
        control_cf_header(MAINNET_PARAMS, 1, 999, ChainHash.from_str(GOOD), checkpoints)


def test_default_checkpoints():
    good = FILTER_HEADER_CHECKPOINTS[Network.MAINNET][100000]
    assert control_cf_header(MAINNET_PARAMS, FilterType.REGULAR, 100000, good) is True
    with pytest.raises(CheckpointMismatchError):
        control_cf_header(
            MAINNET_PARAMS, FilterType.REGULAR, 100000, ChainHash.from_str(BAD)
        )
    assert str(FILTER_HEADER_CHECKPOINTS[Network.TESTNET3][1300000]) == (
        "c28ecc10a583bb6232f05ce29074ba4dece8d438cc37d66cbdd7464ff67ee448"
    )


def test_mainnet_params_genesis():
    assert str(MAINNET_PARAMS.genesis_header.block_hash()) == (
        "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"
    )
    assert TESTNET3_PARAMS.net == Network.TESTNET3
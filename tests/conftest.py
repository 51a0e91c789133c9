import os
import shutil
import tempfile

import pytest

from ledgersync.protocol.config.params import NetworkConfig
from ledgersync.protocol.types.block import Block, BlockHeader, GENESIS_HASH


@pytest.fixture
def network():
    # Byron epochs 0-1 (slots 0-19), Shelley from epoch 2 (slot 20), 20 slots per epoch
    return NetworkConfig(
        network_id="unittest",
        network_magic=7,
        byron_epoch_length=10,
        shelley_epoch_length=20,
        shelley_start_epoch=2,
        stability_window=10,
        genesis_stake={"stake_a": 100, "stake_b": 300},
        snapshot_interval_slots=10,
        snapshot_keep_count=3,
    )


@pytest.fixture
def state_dir():
    temp_dir = tempfile.mkdtemp()
    path = os.path.join(temp_dir, "ledger-state")
    yield path
    shutil.rmtree(temp_dir)


def make_blocks(slots, prev_hash=GENESIS_HASH, first_block_no=0, fees=0, stake_deltas=None):
    """Build a correctly linked chain of blocks at the given slots."""
    blocks = []
    for i, slot in enumerate(slots):
        blk = Block(
            header=BlockHeader(slot=slot, block_no=first_block_no + i, prev_hash=prev_hash),
            fees=fees,
            stake_deltas=stake_deltas or {},
        )
        prev_hash = blk.hash()
        blocks.append(blk)
    return blocks


@pytest.fixture
def chain():
    return make_blocks

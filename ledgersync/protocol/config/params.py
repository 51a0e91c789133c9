# MIT License
# Copyright (c) 2025 Hashborn

from typing import Dict, Optional
from ..types.ledger import ProtocolParams

# Snapshot file layout
LEDGER_STATE_EXTENSION = ".lstate"

# Snapshot policy
SNAPSHOT_INTERVAL_SLOTS = 10_000     # Lagging mode: save on multiples of this
SNAPSHOT_KEEP_COUNT = 8              # Valid snapshot files kept after cleanup


class NetworkConfig:
    def __init__(self,
                 network_id: str,
                 network_magic: int,
                 # Epoch calendar
                 byron_epoch_length: int = 21_600,
                 shelley_epoch_length: int = 432_000,
                 shelley_start_epoch: int = 208,
                 # Reward calculation starts this many slots into an epoch
                 stability_window: int = 129_600,
                 # Genesis
                 genesis_stake: Optional[Dict[str, int]] = None,
                 genesis_params: Optional[ProtocolParams] = None,
                 # Snapshots
                 snapshot_interval_slots: int = SNAPSHOT_INTERVAL_SLOTS,
                 snapshot_keep_count: int = SNAPSHOT_KEEP_COUNT,
                 snapshot_format_version: int = 1,
                 snapshot_compress_level: int = 6):
        self.network_id = network_id
        self.network_magic = network_magic
        self.byron_epoch_length = byron_epoch_length
        self.shelley_epoch_length = shelley_epoch_length
        self.shelley_start_epoch = shelley_start_epoch
        self.stability_window = stability_window
        self.genesis_stake = dict(genesis_stake or {})
        self.genesis_params = genesis_params or ProtocolParams()
        self.snapshot_interval_slots = snapshot_interval_slots
        self.snapshot_keep_count = snapshot_keep_count
        self.snapshot_format_version = snapshot_format_version
        self.snapshot_compress_level = snapshot_compress_level


NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        network_id="devnet",
        network_magic=42,
        byron_epoch_length=100,
        shelley_epoch_length=500,
        shelley_start_epoch=2,
        stability_window=150,
        genesis_stake={
            "stake_test1": 1_000_000,
            "stake_test2": 500_000,
        },
    ),
    "testnet": NetworkConfig(
        network_id="testnet",
        network_magic=1097911063,
        byron_epoch_length=21_600,
        shelley_epoch_length=432_000,
        shelley_start_epoch=74,
        stability_window=129_600,
    ),
    "mainnet": NetworkConfig(
        network_id="mainnet",
        network_magic=764824073,
        byron_epoch_length=21_600,
        shelley_epoch_length=432_000,
        shelley_start_epoch=208,
        stability_window=129_600,
    ),
}

# Default to devnet for now
CURRENT_NETWORK = NETWORKS["devnet"]

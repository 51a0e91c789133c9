# MIT License
# Copyright (c) 2025 Hashborn

"""
Ledger State Data Structures
"""

from dataclasses import dataclass, field, replace
from typing import Optional

from ...protocol.config.params import NetworkConfig
from ...protocol.types.ledger import (
    LedgerState,
    ProtocolParams,
    RewardUpdate,
    ShelleyLedgerState,
    Stake,
    ledger_params,
    ledger_stake_set,
)


@dataclass(frozen=True)
class EpochInfo:
    """
    Two-era epoch calendar: fixed-length Byron epochs up to the hard fork,
    fixed-length Shelley epochs after it.
    """
    byron_epoch_length: int
    shelley_epoch_length: int
    shelley_start_epoch: int

    @property
    def shelley_start_slot(self) -> int:
        return self.shelley_start_epoch * self.byron_epoch_length

    def epoch_of(self, slot: int) -> int:
        if slot < self.shelley_start_slot:
            return slot // self.byron_epoch_length
        return self.shelley_start_epoch + (slot - self.shelley_start_slot) // self.shelley_epoch_length

    def first_slot(self, epoch_no: int) -> int:
        if epoch_no <= self.shelley_start_epoch:
            return epoch_no * self.byron_epoch_length
        return self.shelley_start_slot + (epoch_no - self.shelley_start_epoch) * self.shelley_epoch_length


@dataclass(frozen=True)
class LedgerConfig:
    network_id: str
    epoch_info: EpochInfo
    stability_window: int
    genesis_params: ProtocolParams = field(default_factory=ProtocolParams)

    @classmethod
    def from_network(cls, network: NetworkConfig) -> "LedgerConfig":
        return cls(
            network_id=network.network_id,
            epoch_info=EpochInfo(
                byron_epoch_length=network.byron_epoch_length,
                shelley_epoch_length=network.shelley_epoch_length,
                shelley_start_epoch=network.shelley_start_epoch,
            ),
            stability_window=network.stability_window,
            genesis_params=network.genesis_params,
        )


@dataclass(frozen=True)
class CodecConfig:
    network_id: str
    format_version: int = 1
    compress_level: int = 6

    @classmethod
    def from_network(cls, network: NetworkConfig) -> "CodecConfig":
        return cls(
            network_id=network.network_id,
            format_version=network.snapshot_format_version,
            compress_level=network.snapshot_compress_level,
        )


@dataclass(frozen=True)
class CardanoLedgerState:
    """
    Current ledger state plus the configs needed to advance and serialize it.
    Only `state` ever changes; config and codec are fixed at startup.
    """
    state: LedgerState
    config: LedgerConfig
    codec: CodecConfig

    def with_state(self, state: LedgerState) -> "CardanoLedgerState":
        return replace(self, state=state)


@dataclass(frozen=True)
class EpochUpdate:
    """
    Per-epoch aggregates handed downstream for the block that starts an epoch.

    The reward update comes from the state before the boundary. Params and
    stake are read from the state after it, and only exist in the Shelley era;
    reading them for a Byron boundary raises EraMismatchError.
    """
    epoch_no: int
    new_state: LedgerState
    reward_update: RewardUpdate

    @property
    def param_update(self) -> ProtocolParams:
        return ledger_params(self.new_state)

    @property
    def stake_update(self) -> Stake:
        # The "set" snapshot rather than "mark": stake addresses in the newer
        # snapshot may not have reached the database yet, so these values
        # become active in the current epoch plus one.
        return ledger_stake_set(self.new_state)

    @property
    def is_shelley(self) -> bool:
        return isinstance(self.new_state, ShelleyLedgerState)


@dataclass(frozen=True)
class LedgerStateSnapshot:
    state: CardanoLedgerState
    epoch_update: Optional[EpochUpdate] = None   # Only set for the single block at the epoch boundary

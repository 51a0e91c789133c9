# MIT License
# Copyright (c) 2025 Hashborn

import logging
import threading
from typing import Callable, Optional, Tuple, TypeVar

from .types import CardanoLedgerState, CodecConfig, LedgerConfig
from ...protocol.config.params import CURRENT_NETWORK, NetworkConfig
from ...protocol.types.ledger import ByronLedgerState, Stake

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerStateVar:
    """
    The single authoritative current ledger state.

    Every read and write goes through one lock, so nobody sees a half-updated
    value and read-modify-write cycles (see `modify`) cannot interleave. The
    stored value is immutable and safe to hand out.
    """

    def __init__(self, initial: CardanoLedgerState):
        self._lock = threading.RLock()
        self._value = initial

    def read(self) -> CardanoLedgerState:
        with self._lock:
            return self._value

    def replace(self, new_state: CardanoLedgerState):
        with self._lock:
            self._value = new_state

    def modify(self, fn: Callable[[CardanoLedgerState], Tuple[CardanoLedgerState, T]]) -> T:
        """
        Run `fn(current)` inside the critical section. `fn` returns the value
        to store and a result for the caller. If `fn` raises, nothing is stored.
        """
        with self._lock:
            new_value, result = fn(self._value)
            self._value = new_value
            return result


def genesis_ledger_state(network: NetworkConfig) -> CardanoLedgerState:
    return CardanoLedgerState(
        state=ByronLedgerState(tip=None, stake=Stake(stake=dict(network.genesis_stake))),
        config=LedgerConfig.from_network(network),
        codec=CodecConfig.from_network(network),
    )


def init_ledger_state_var(network: Optional[NetworkConfig] = None) -> LedgerStateVar:
    """Create the state var holding the genesis (origin, Byron) ledger state."""
    if network is None:
        network = CURRENT_NETWORK
    logger.info(f"Initializing ledger state from {network.network_id} genesis")
    return LedgerStateVar(genesis_ledger_state(network))

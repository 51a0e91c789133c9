# MIT License
# Copyright (c) 2025 Hashborn

"""
Ledger State

Current ledger state, block application and epoch boundary detection.
"""

from .types import CardanoLedgerState, EpochUpdate, LedgerStateSnapshot
from .state_var import LedgerStateVar, init_ledger_state_var
from .applier import BlockApplier

__all__ = [
    "CardanoLedgerState",
    "EpochUpdate",
    "LedgerStateSnapshot",
    "LedgerStateVar",
    "init_ledger_state_var",
    "BlockApplier",
]

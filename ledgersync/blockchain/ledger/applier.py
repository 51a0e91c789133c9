# MIT License
# Copyright (c) 2025 Hashborn

"""
Block Applier

Advances the ledger state var by one block and detects epoch boundaries.
"""

import logging
from typing import Optional, Tuple

from .rules import LedgerRules, ReferenceLedgerRules
from .state_var import LedgerStateVar
from .types import CardanoLedgerState, EpochUpdate, LedgerStateSnapshot
from ..observability import metrics
from ...protocol.types.block import Block
from ...protocol.types.common import HashMismatchError
from ...protocol.types.ledger import (
    RewardUpdate,
    ledger_reward_update,
    ledger_tip,
    ledger_tip_hash,
    ledger_tip_slot,
)

logger = logging.getLogger(__name__)


class BlockApplier:
    def __init__(self, state_var: LedgerStateVar, rules: Optional[LedgerRules] = None):
        self.state_var = state_var
        self.rules = rules if rules is not None else ReferenceLedgerRules()

    def apply_block(self, block: Block) -> LedgerStateSnapshot:
        """
        Apply a block on top of the current ledger state.

        The transition re-applies without validating the block, so the only
        check made here is that the block extends the current tip. A mismatch
        means the caller fed the wrong block and raises HashMismatchError
        (a LedgerPanic) before anything is written.

        Returns:
            LedgerStateSnapshot with the new state, and an EpochUpdate if this
            block moved the ledger into the next epoch.
        """
        snapshot = self.state_var.modify(lambda old: self._apply(old, block))

        metrics.blocks_applied_total.inc()
        tip = ledger_tip(snapshot.state.state)
        metrics.update_ledger_metrics(
            tip.slot if tip else None,
            tip.block_no if tip else None,
            self.ledger_epoch_no(snapshot.state),
        )
        if snapshot.epoch_update is not None:
            metrics.epoch_updates_total.inc()
            logger.info(f"Epoch boundary: entered epoch {snapshot.epoch_update.epoch_no} at slot {block.slot}")

        return snapshot

    def _apply(self, old: CardanoLedgerState, block: Block) -> Tuple[CardanoLedgerState, LedgerStateSnapshot]:
        tip_hash = ledger_tip_hash(old.state)
        if tip_hash != block.prev_hash:
            err = HashMismatchError(block.slot, tip_hash, block.prev_hash)
            logger.critical(str(err))
            raise err

        new = old.with_state(self.rules.apply_transition(old.config, block, old.state))

        old_epoch = self.ledger_epoch_no(old)
        new_epoch = self.ledger_epoch_no(new)
        epoch_update = None
        if new_epoch == old_epoch + 1:
            epoch_update = self._epoch_update(new, new_epoch, ledger_reward_update(old.state))

        return new, LedgerStateSnapshot(state=new, epoch_update=epoch_update)

    def ledger_epoch_no(self, cls: CardanoLedgerState) -> int:
        slot = ledger_tip_slot(cls.state)
        if slot is None:
            return 0    # An empty chain is in epoch 0
        return self.rules.epoch_of(cls.config, slot)

    @staticmethod
    def _epoch_update(new: CardanoLedgerState, epoch_no: int,
                      rewards: Optional[RewardUpdate]) -> EpochUpdate:
        # Rewards come from the state before the boundary: the transition into
        # the new epoch pays them out and clears them.
        return EpochUpdate(
            epoch_no=epoch_no,
            new_state=new.state,
            reward_update=rewards if rewards is not None else RewardUpdate.empty(),
        )

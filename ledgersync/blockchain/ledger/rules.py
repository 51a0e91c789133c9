# MIT License
# Copyright (c) 2025 Hashborn

"""
Ledger Rules

The state transition and epoch calendar consumed by the block applier.
`LedgerRules` is the interface; `ReferenceLedgerRules` is a deterministic
two-era implementation (Byron, then Shelley after the configured hard fork).
"""

import logging
from typing import Dict, Protocol

from .types import LedgerConfig
from ...protocol.types.block import Block
from ...protocol.types.ledger import (
    ByronLedgerState,
    LedgerState,
    RewardUpdate,
    ShelleyLedgerState,
    Stake,
    StakeSnapshots,
    Tip,
    ledger_tip_slot,
)

logger = logging.getLogger(__name__)


class LedgerRules(Protocol):
    def apply_transition(self, config: LedgerConfig, block: Block, state: LedgerState) -> LedgerState:
        """Re-apply an already validated block. Total for a correctly linked block."""
        ...

    def epoch_of(self, config: LedgerConfig, slot: int) -> int:
        ...


class ReferenceLedgerRules:
    """
    Tick-then-reapply over the two-era ledger:

    - tick: cross any epoch boundaries between the tip and the block's slot
      (Byron -> Shelley translation, reward payout, stake snapshot rotation)
    - reapply: add the block's stake deltas and fees, compute the pending
      reward update once the stability window has passed, move the tip
    """

    def epoch_of(self, config: LedgerConfig, slot: int) -> int:
        return config.epoch_info.epoch_of(slot)

    def apply_transition(self, config: LedgerConfig, block: Block, state: LedgerState) -> LedgerState:
        ticked = self._tick(config, block.slot, state)
        return self._reapply(config, block, ticked)

    # --- Tick ---

    def _tick(self, config: LedgerConfig, slot: int, state: LedgerState) -> LedgerState:
        epoch_info = config.epoch_info
        tip_slot = ledger_tip_slot(state)
        from_epoch = epoch_info.epoch_of(tip_slot) if tip_slot is not None else 0
        to_epoch = epoch_info.epoch_of(slot)

        if isinstance(state, ByronLedgerState):
            if to_epoch < epoch_info.shelley_start_epoch:
                return state
            state = self._translate_to_shelley(config, state)
            from_epoch = epoch_info.shelley_start_epoch

        for epoch_no in range(from_epoch + 1, to_epoch + 1):
            state = self._new_epoch(state)
            logger.debug(f"Ticked into epoch {epoch_no}")

        return state

    def _translate_to_shelley(self, config: LedgerConfig, state: ByronLedgerState) -> ShelleyLedgerState:
        logger.info(f"Translating ledger state to Shelley at epoch {config.epoch_info.shelley_start_epoch}")
        return ShelleyLedgerState(
            tip=state.tip,
            stake=state.stake,
            params=config.genesis_params,
        )

    def _new_epoch(self, state: ShelleyLedgerState) -> ShelleyLedgerState:
        stake = state.stake.stake
        treasury = state.treasury
        fee_pot = state.fee_pot

        # Pay out the pending reward update
        ru = state.reward_update
        if ru is not None:
            stake = dict(stake)
            for addr, amount in ru.rewards.items():
                stake[addr] = stake.get(addr, 0) + amount
            treasury += ru.delta_treasury
            fee_pot += ru.delta_fees

        # go <- set <- mark <- current distribution
        snapshots = StakeSnapshots(
            pstake_mark=Stake(stake=dict(stake)),
            pstake_set=state.snapshots.pstake_mark,
            pstake_go=state.snapshots.pstake_set,
        )
        return state.model_copy(update={
            "stake": Stake(stake=stake),
            "snapshots": snapshots,
            "reward_update": None,
            "treasury": treasury,
            "fee_pot": fee_pot,
        })

    # --- Reapply ---

    def _reapply(self, config: LedgerConfig, block: Block, state: LedgerState) -> LedgerState:
        stake = self._apply_stake_deltas(state.stake, block.stake_deltas)
        tip = Tip(slot=block.slot, block_no=block.header.block_no, hash=block.hash())

        if isinstance(state, ByronLedgerState):
            return state.model_copy(update={"tip": tip, "stake": stake})

        new_state = state.model_copy(update={
            "tip": tip,
            "stake": stake,
            "fee_pot": state.fee_pot + block.fees,
        })
        epoch_start = config.epoch_info.first_slot(config.epoch_info.epoch_of(block.slot))
        if new_state.reward_update is None and block.slot - epoch_start >= config.stability_window:
            new_state = new_state.model_copy(update={"reward_update": self._reward_update(new_state)})
        return new_state

    @staticmethod
    def _apply_stake_deltas(stake: Stake, deltas: Dict[str, int]) -> Stake:
        if not deltas:
            return stake
        updated = dict(stake.stake)
        for addr, delta in deltas.items():
            amount = updated.get(addr, 0) + delta
            if amount:
                updated[addr] = amount
            else:
                updated.pop(addr, None)
        return Stake(stake=updated)

    @staticmethod
    def _reward_update(state: ShelleyLedgerState) -> RewardUpdate:
        """
        Split the fee pot: the treasury cut first, the rest pro-rata over the
        'go' snapshot. Rounding dust goes to the treasury.
        """
        pot = state.fee_pot
        to_treasury = int(pot * state.params.treasury_cut)
        distributable = pot - to_treasury

        go = state.snapshots.pstake_go
        total = go.total()
        rewards: Dict[str, int] = {}
        if total > 0 and distributable > 0:
            for addr, amount in go.stake.items():
                share = distributable * amount // total
                if share:
                    rewards[addr] = share

        return RewardUpdate(
            delta_treasury=pot - sum(rewards.values()),
            delta_reserves=0,
            delta_fees=-pot,
            rewards=rewards,
        )

"""
Era-tagged ledger state.

A ledger state is exactly one of the per-era variants below, discriminated on
the `era` field. Accessors branch on the variant and treat a request for a
field the era does not have as a defect (EraMismatchError).
"""

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import Annotated, Dict, Literal, Optional, Union
from .common import EraMismatchError
from .block import GENESIS_HASH


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Tip(_Frozen):
    slot: int = Field(..., ge=0)
    block_no: int = Field(..., ge=0)
    hash: str


class ProtocolParams(_Frozen):
    min_fee_a: int = 44
    min_fee_b: int = 155_381
    max_block_size: int = 65_536
    key_deposit: int = 2_000_000
    pool_deposit: int = 500_000_000
    monetary_expansion: float = 0.003    # rho
    treasury_cut: float = 0.2            # tau
    protocol_major: int = 2
    protocol_minor: int = 0


class RewardUpdate(_Frozen):
    delta_treasury: int = 0
    delta_reserves: int = 0
    delta_fees: int = 0
    rewards: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> "RewardUpdate":
        return cls()


class Stake(_Frozen):
    stake: Dict[str, int] = Field(default_factory=dict)

    def total(self) -> int:
        return sum(self.stake.values())


class StakeSnapshots(_Frozen):
    pstake_mark: Stake = Field(default_factory=Stake)
    pstake_set: Stake = Field(default_factory=Stake)
    pstake_go: Stake = Field(default_factory=Stake)


class ByronLedgerState(_Frozen):
    era: Literal["byron"] = "byron"
    tip: Optional[Tip] = None    # None = origin
    stake: Stake = Field(default_factory=Stake)


class ShelleyLedgerState(_Frozen):
    era: Literal["shelley"] = "shelley"
    tip: Optional[Tip] = None
    stake: Stake = Field(default_factory=Stake)
    params: ProtocolParams = Field(default_factory=ProtocolParams)
    reward_update: Optional[RewardUpdate] = None
    snapshots: StakeSnapshots = Field(default_factory=StakeSnapshots)
    fee_pot: int = 0
    treasury: int = 0


LedgerState = Annotated[
    Union[ByronLedgerState, ShelleyLedgerState],
    Field(discriminator="era"),
]

ledger_state_adapter: TypeAdapter = TypeAdapter(LedgerState)


def _unknown_era(state) -> EraMismatchError:
    return EraMismatchError(f"Unknown ledger state variant: {type(state).__name__}")


def ledger_tip(state: LedgerState) -> Optional[Tip]:
    if isinstance(state, (ByronLedgerState, ShelleyLedgerState)):
        return state.tip
    raise _unknown_era(state)


def ledger_tip_hash(state: LedgerState) -> str:
    """Tip hash, or GENESIS_HASH for an empty chain."""
    tip = ledger_tip(state)
    return tip.hash if tip is not None else GENESIS_HASH


def ledger_tip_slot(state: LedgerState) -> Optional[int]:
    """Tip slot, or None at origin."""
    tip = ledger_tip(state)
    return tip.slot if tip is not None else None


def ledger_params(state: LedgerState) -> ProtocolParams:
    if isinstance(state, ShelleyLedgerState):
        return state.params
    if isinstance(state, ByronLedgerState):
        raise EraMismatchError("ledger_params: ByronLedgerState but should be Shelley")
    raise _unknown_era(state)


def ledger_stake_set(state: LedgerState) -> Stake:
    """
    The 'set' stake snapshot (the one taken at the start of the previous epoch).
    """
    if isinstance(state, ShelleyLedgerState):
        return state.snapshots.pstake_set
    if isinstance(state, ByronLedgerState):
        raise EraMismatchError("ledger_stake_set: ByronLedgerState but should be Shelley")
    raise _unknown_era(state)


def ledger_reward_update(state: LedgerState) -> Optional[RewardUpdate]:
    """
    Pending reward update, from the time rewards are computed until the end of
    the epoch. None for the first blocks of an epoch and for Byron states
    (which does happen on the Byron/Shelley boundary).
    """
    if isinstance(state, ShelleyLedgerState):
        return state.reward_update
    if isinstance(state, ByronLedgerState):
        return None
    raise _unknown_era(state)

# MIT License
# Copyright (c) 2025 Hashborn

"""
Ledger Sync

Drives the ledger state forward and backward as blocks arrive or the chain
rolls back, keeping the derived database and the on-disk snapshots in step.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Union

from .ledger.applier import BlockApplier
from .ledger.codec import SnapshotCodec
from .ledger.rules import LedgerRules
from .ledger.state_var import genesis_ledger_state, init_ledger_state_var
from .ledger.types import CardanoLedgerState, LedgerStateSnapshot
from .snapshot.snapshot_manager import SnapshotManager
from .storage.db import StorageDB
from ..protocol.config.params import CURRENT_NETWORK, NetworkConfig
from ..protocol.types.block import Block
from ..protocol.types.common import SyncState
from ..protocol.types.ledger import ledger_tip_slot

logger = logging.getLogger(__name__)


class LedgerSync:
    def __init__(
        self,
        state_dir: Union[str, Path],
        db: StorageDB,
        network: Optional[NetworkConfig] = None,
        rules: Optional[LedgerRules] = None,
        codec: Optional[SnapshotCodec] = None,
    ):
        self.network = network if network is not None else CURRENT_NETWORK
        self.db = db
        self.state_var = init_ledger_state_var(self.network)
        self.applier = BlockApplier(self.state_var, rules)
        self.snapshots = SnapshotManager(
            state_dir,
            self.state_var,
            codec,
            save_interval=self.network.snapshot_interval_slots,
            keep_count=self.network.snapshot_keep_count,
        )
        self._lock = threading.RLock()

    @property
    def ledger(self) -> CardanoLedgerState:
        return self.state_var.read()

    @property
    def tip_slot(self) -> Optional[int]:
        return ledger_tip_slot(self.state_var.read().state)

    def start(self) -> bool:
        """
        Load the newest snapshot not after the database's last block.

        Returns:
            True if a snapshot was loaded, False if starting from genesis
        """
        with self._lock:
            last = self.db.get_last_block()
            if last is None:
                logger.info("Database is empty, starting from genesis ledger state")
                return False

            slot_no = last[0]
            loaded = self.snapshots.load_ledger_state(slot_no)
            if loaded is None:
                logger.warning(f"No ledger state snapshot at or before slot {slot_no}, starting from genesis")
                self._reset_to_genesis()
                return False

            loaded_slot = ledger_tip_slot(loaded.state)
            if loaded_slot is not None and loaded_slot < slot_no:
                # Blocks after the snapshot are replayed by the caller
                self.db.delete_after_slot(loaded_slot)
                self.db.transaction_commit()
            return True

    def roll_forward(self, block: Block, sync_state: SyncState) -> LedgerStateSnapshot:
        """
        Apply `block`, record it (and any epoch update) in the database in one
        commit, then snapshot the ledger state according to `sync_state`.
        """
        with self._lock:
            old = self.state_var.read()
            snapshot = self.applier.apply_block(block)
            epoch_no = self.applier.ledger_epoch_no(snapshot.state)

            try:
                self.db.insert_block(block.slot, block.header.block_no, block.hash(), epoch_no)
                update = snapshot.epoch_update
                if update is not None and update.is_shelley:
                    self.db.insert_epoch_update(block.slot, update)
                self.db.transaction_commit()
            except BaseException:
                # Undo both sides so the block can be applied again
                logger.error(f"Failed to record block at slot {block.slot}, reverting ledger state")
                self.db.transaction_rollback()
                self.state_var.replace(old)
                raise

            self.snapshots.save_ledger_state(snapshot.state, sync_state)
            return snapshot

    def roll_backward(self, slot_no: int) -> bool:
        """
        Roll the database and ledger state back to `slot_no`.

        Returns:
            True if a ledger state snapshot was loaded
        """
        with self._lock:
            deleted = self.db.delete_after_slot(slot_no)
            self.db.transaction_commit()
            logger.info(f"Rollback to slot {slot_no}: deleted {deleted} block(s)")

            loaded = self.snapshots.load_ledger_state(slot_no)
            if loaded is None:
                logger.warning(f"Rollback to slot {slot_no}: no ledger state snapshot available, replaying from genesis")
                self._reset_to_genesis()
                return False

            loaded_slot = ledger_tip_slot(loaded.state)
            if loaded_slot is not None and loaded_slot < slot_no:
                # The snapshot is older than the rollback point; drop the gap so
                # the caller re-fetches it from the snapshot tip
                self.db.delete_after_slot(loaded_slot)
                self.db.transaction_commit()
            return True

    def _reset_to_genesis(self):
        self.state_var.replace(genesis_ledger_state(self.network))
        self.db.delete_after_slot(-1)
        self.db.transaction_commit()

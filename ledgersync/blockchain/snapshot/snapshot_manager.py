# MIT License
# Copyright (c) 2025 Hashborn

"""
Snapshot Manager

Handles saving ledger state snapshots according to the sync state, and
loading the newest usable snapshot on startup or after a rollback.
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Optional, Union

from .cleanup import (
    cleanup_ledger_state_files,
    partition_files,
    remove_stale_temp_files,
    safe_remove_file,
)
from .files import LedgerStateFile, ledger_state_path, list_ledger_state_files_ordered
from ..ledger.codec import GzipJsonCodec, SnapshotCodec
from ..ledger.state_var import LedgerStateVar
from ..ledger.types import CardanoLedgerState
from ..observability import metrics
from ...protocol.config.params import SNAPSHOT_INTERVAL_SLOTS, SNAPSHOT_KEEP_COUNT
from ...protocol.types.common import DecodeError, SyncState
from ...protocol.types.ledger import LedgerState, ledger_tip_slot

logger = logging.getLogger(__name__)


class SnapshotManager:
    """
    Manages ledger state snapshots for fast restarts.

    Snapshots are written as:
    - <state_dir>/<slot>.lstate

    Save, cleanup and load all take the same lock, so two of them never work
    on the directory at the same time. Stale temporary files from an
    interrupted save are swept on construction.
    """

    def __init__(
        self,
        state_dir: Union[str, Path],
        state_var: LedgerStateVar,
        codec: Optional[SnapshotCodec] = None,
        save_interval: int = SNAPSHOT_INTERVAL_SLOTS,
        keep_count: int = SNAPSHOT_KEEP_COUNT,
    ):
        """
        Initialize snapshot manager.

        Args:
            state_dir: Directory holding the ledger state files
            state_var: The current ledger state
            codec: Snapshot encoder/decoder (default: GzipJsonCodec)
            save_interval: Lagging mode only saves at multiples of this slot count
            keep_count: Number of snapshots kept by cleanup
        """
        if save_interval <= 0:
            raise ValueError(f"save_interval must be positive, got {save_interval}")
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        # Leftovers from a crash during a previous run's save
        remove_stale_temp_files(self.state_dir)
        self.state_var = state_var
        self.codec = codec if codec is not None else GzipJsonCodec()
        self.save_interval = save_interval
        self.keep_count = keep_count
        self._lock = threading.Lock()

    def should_save(self, slot_no: int, sync_state: SyncState) -> bool:
        if sync_state == SyncState.FOLLOWING:
            # If following, save every state.
            return True
        # Genesis and the first EBB are weird so do not store them.
        if slot_no == 0:
            return False
        # Only save state occasionally.
        return slot_no % self.save_interval == 0

    def save_ledger_state(self, ledger: CardanoLedgerState, sync_state: SyncState) -> Optional[Path]:
        """
        Make `ledger` the current state and snapshot it if the policy says so.

        Args:
            ledger: Ledger state to store
            sync_state: FOLLOWING saves every state, LAGGING only periodically

        Returns:
            Path of the written snapshot, or None if nothing was written
        """
        self.state_var.replace(ledger)
        slot_no = self._slot_no(ledger.state)
        if not self.should_save(slot_no, sync_state):
            return None

        with self._lock:
            start = time.monotonic()
            data = self.codec.encode(ledger.codec, ledger.state)
            path = ledger_state_path(self.state_dir, slot_no)
            self._write_atomic(path, data)

            metrics.snapshots_saved_total.labels(sync_state=sync_state.value).inc()
            metrics.snapshot_save_seconds.observe(time.monotonic() - start)
            metrics.snapshot_size_bytes.set(len(data))
            logger.info(f"Saved ledger state at slot {slot_no} ({len(data) / 1024:.2f} KB)")

            cleanup_ledger_state_files(self.state_dir, slot_no, self.keep_count)
        return path

    def load_ledger_state(self, slot_no: int) -> Optional[CardanoLedgerState]:
        """
        Load the newest snapshot that is not after `slot_no`.

        Snapshots after `slot_no` are deleted first (they belong to a fork we
        rolled back from). Files that cannot be read or decoded are skipped.

        Args:
            slot_no: Highest acceptable snapshot slot

        Returns:
            The new current state, or None if no snapshot could be loaded (the
            current state is then left unchanged)
        """
        # Read current state to get the LedgerConfig and CodecConfig.
        current = self.state_var.read()

        with self._lock:
            files = list_ledger_state_files_ordered(self.state_dir)
            invalid, valid = partition_files(files, slot_no)
            for lsf in invalid:
                if safe_remove_file(lsf.path):
                    metrics.snapshot_files_deleted_total.labels(reason="rollback").inc()
            if invalid:
                logger.info(f"Removed {len(invalid)} ledger state file(s) after slot {slot_no}")

            # Want the highest numbered snapshot.
            for lsf in valid:
                state = self._load_file(current, lsf)
                if state is None:
                    continue
                loaded = current.with_state(state)
                self.state_var.replace(loaded)
                logger.info(f"Loaded ledger state from {lsf.path.name} (slot {lsf.slot_no})")
                return loaded

        logger.info(f"No usable ledger state file at or before slot {slot_no}")
        return None

    def read_ledger_state(self) -> CardanoLedgerState:
        return self.state_var.read()

    def cleanup(self, slot_no: int):
        with self._lock:
            return cleanup_ledger_state_files(self.state_dir, slot_no, self.keep_count)

    def _load_file(self, current: CardanoLedgerState, lsf: LedgerStateFile) -> Optional[LedgerState]:
        try:
            data = lsf.path.read_bytes()
        except OSError as e:
            logger.warning(f"Failed to read ledger state file {lsf.path}: {e}")
            metrics.snapshot_load_failures_total.inc()
            return None

        try:
            return self.codec.decode(current.codec, data)
        except DecodeError as e:
            logger.warning(f"Failed to decode ledger state file {lsf.path}: {e}")
            metrics.snapshot_load_failures_total.inc()
            return None

    @staticmethod
    def _slot_no(state: LedgerState) -> int:
        slot = ledger_tip_slot(state)
        return slot if slot is not None else 0

    @staticmethod
    def _write_atomic(path: Path, data: bytes):
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            with open(tmp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError:
            safe_remove_file(tmp_path)
            raise

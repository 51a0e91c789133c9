# MIT License
# Copyright (c) 2025 Hashborn

"""
Snapshot retention and rollback cleanup.
"""

import logging
from pathlib import Path
from typing import List, Sequence, Tuple, Union

from .files import LedgerStateFile, list_ledger_state_files_ordered
from ..observability import metrics
from ...protocol.config.params import LEDGER_STATE_EXTENSION, SNAPSHOT_KEEP_COUNT

logger = logging.getLogger(__name__)


def partition_files(files: Sequence[LedgerStateFile], boundary_slot: int
                    ) -> Tuple[List[LedgerStateFile], List[LedgerStateFile]]:
    """
    Split into (invalid, valid). Invalid files are for slots after
    `boundary_slot`: after a rollback they belong to an abandoned fork.
    Input order is preserved.
    """
    invalid = [f for f in files if f.slot_no > boundary_slot]
    valid = [f for f in files if f.slot_no <= boundary_slot]
    return invalid, valid


def reconcile(files: Sequence[LedgerStateFile], boundary_slot: int, keep_count: int
              ) -> Tuple[List[LedgerStateFile], List[LedgerStateFile]]:
    """
    Decide which files to delete and which to keep.

    Args:
        files: Ledger state files, newest first
        boundary_slot: Highest slot the current chain can vouch for
        keep_count: Number of valid files to keep

    Returns:
        (to_delete, to_keep). All invalid files are deleted; of the valid
        ones the newest `keep_count` are kept.
    """
    invalid, valid = partition_files(files, boundary_slot)
    keep_count = max(keep_count, 0)
    return invalid + valid[keep_count:], valid[:keep_count]


def safe_remove_file(path: Union[str, Path]) -> bool:
    """Remove `path`, ignoring OS errors. Returns True if it was removed."""
    try:
        Path(path).unlink()
        return True
    except OSError as e:
        logger.debug(f"Could not remove {path}: {e}")
        return False


def cleanup_ledger_state_files(state_dir: Union[str, Path], slot_no: int,
                               keep_count: int = SNAPSHOT_KEEP_COUNT) -> List[LedgerStateFile]:
    """
    Remove ledger state files newer than `slot_no` (rollback) and all but the
    `keep_count` most recent of the rest.

    Returns:
        The files selected for deletion.
    """
    files = list_ledger_state_files_ordered(state_dir)
    to_delete, _ = reconcile(files, slot_no, keep_count)

    for lsf in to_delete:
        reason = "rollback" if lsf.slot_no > slot_no else "retention"
        if safe_remove_file(lsf.path):
            metrics.snapshot_files_deleted_total.labels(reason=reason).inc()

    if to_delete:
        logger.info(f"Ledger state cleanup at slot {slot_no}: removing {len(to_delete)} file(s)")
    return to_delete


def remove_stale_temp_files(state_dir: Union[str, Path]) -> int:
    """
    Remove temporary files left by a save that never reached its rename.
    Only safe while no save is in progress on `state_dir`.
    """
    path = Path(state_dir)
    if not path.is_dir():
        return 0

    removed = 0
    for tmp_path in path.glob(f".*{LEDGER_STATE_EXTENSION}.tmp"):
        if safe_remove_file(tmp_path):
            removed += 1
    if removed:
        logger.info(f"Removed {removed} stale temporary ledger state file(s) from {path}")
    return removed

# MIT License
# Copyright (c) 2025 Hashborn

"""
Ledger State Snapshots

Periodic on-disk checkpoints of the ledger state, with bounded retention and
rollback-safe loading.
"""

from .snapshot_manager import SnapshotManager
from .files import LedgerStateFile, list_ledger_state_files_ordered, list_ledger_state_slot_nos
from .cleanup import cleanup_ledger_state_files, reconcile

__all__ = [
    "SnapshotManager",
    "LedgerStateFile",
    "list_ledger_state_files_ordered",
    "list_ledger_state_slot_nos",
    "cleanup_ledger_state_files",
    "reconcile",
]

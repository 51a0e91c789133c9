# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics

Ledger state metrics in Prometheus format.

Metrics:
- Ledger tip slot, block number, epoch
- Blocks applied, epoch updates emitted
- Snapshot saves (count, duration), load failures, deleted files
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# LEDGER METRICS
# ═══════════════════════════════════════════════════════════════════

ledger_tip_slot = Gauge(
    'ledgersync_ledger_tip_slot',
    'Slot number of the current ledger tip',
    registry=metrics_registry
)

ledger_tip_block_no = Gauge(
    'ledgersync_ledger_tip_block_no',
    'Block number of the current ledger tip',
    registry=metrics_registry
)

ledger_epoch = Gauge(
    'ledgersync_ledger_epoch',
    'Epoch number of the current ledger state',
    registry=metrics_registry
)

blocks_applied_total = Counter(
    'ledgersync_blocks_applied_total',
    'Total number of blocks applied to the ledger state',
    registry=metrics_registry
)

epoch_updates_total = Counter(
    'ledgersync_epoch_updates_total',
    'Total number of epoch boundary updates emitted',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# SNAPSHOT METRICS
# ═══════════════════════════════════════════════════════════════════

snapshots_saved_total = Counter(
    'ledgersync_snapshots_saved_total',
    'Total number of ledger state snapshots written',
    ['sync_state'],
    registry=metrics_registry
)

snapshot_save_seconds = Histogram(
    'ledgersync_snapshot_save_seconds',
    'Time to encode and write a ledger state snapshot',
    buckets=[0.01, 0.05, 0.1, 0.5, 1, 5, 10, 30],
    registry=metrics_registry
)

snapshot_size_bytes = Gauge(
    'ledgersync_snapshot_size_bytes',
    'Size of the most recently written snapshot',
    registry=metrics_registry
)

snapshot_load_failures_total = Counter(
    'ledgersync_snapshot_load_failures_total',
    'Snapshot files skipped on load because they could not be read or decoded',
    registry=metrics_registry
)

snapshot_files_deleted_total = Counter(
    'ledgersync_snapshot_files_deleted_total',
    'Snapshot files removed by cleanup',
    ['reason'],
    registry=metrics_registry
)


def update_ledger_metrics(tip_slot, tip_block_no, epoch_no):
    """
    Update ledger tip gauges.

    Args:
        tip_slot: Tip slot (None at origin)
        tip_block_no: Tip block number (None at origin)
        epoch_no: Current epoch number
    """
    ledger_tip_slot.set(tip_slot if tip_slot is not None else 0)
    ledger_tip_block_no.set(tip_block_no if tip_block_no is not None else 0)
    ledger_epoch.set(epoch_no)

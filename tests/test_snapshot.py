import os
import threading
from pathlib import Path

import pytest

from ledgersync.blockchain.ledger.applier import BlockApplier
from ledgersync.blockchain.ledger.codec import GzipJsonCodec
from ledgersync.blockchain.ledger.state_var import init_ledger_state_var
from ledgersync.blockchain.ledger.types import CodecConfig
from ledgersync.blockchain.snapshot.cleanup import (
    cleanup_ledger_state_files,
    reconcile,
    remove_stale_temp_files,
    safe_remove_file,
)
from ledgersync.blockchain.snapshot.files import (
    LedgerStateFile,
    list_ledger_state_files_ordered,
    list_ledger_state_slot_nos,
)
from ledgersync.blockchain.snapshot.snapshot_manager import SnapshotManager
from ledgersync.protocol.types.common import SyncState
from ledgersync.protocol.types.ledger import ByronLedgerState, Tip, ledger_tip_slot


def touch(state_dir, name, data=b"x"):
    os.makedirs(state_dir, exist_ok=True)
    path = Path(state_dir) / name
    path.write_bytes(data)
    return path


def lsfs(*slots):
    return [LedgerStateFile(slot_no=s, path=Path(f"/nonexistent/{s}.lstate")) for s in slots]


def byron_at(slot):
    return ByronLedgerState(tip=Tip(slot=slot, block_no=slot, hash=f"{slot:064x}"))


@pytest.fixture
def state_var(network):
    return init_ledger_state_var(network)


@pytest.fixture
def manager(state_dir, state_var):
    return SnapshotManager(state_dir, state_var, save_interval=10_000, keep_count=8)


def write_snapshot(manager, slot):
    ledger = manager.state_var.read()
    data = manager.codec.encode(ledger.codec, byron_at(slot))
    return touch(manager.state_dir, f"{slot}.lstate", data)


# --- Directory index ---

def test_list_newest_first(state_dir):
    for name in ["5.lstate", "100.lstate", "20.lstate", "notes.txt", "7.lstate.tmp"]:
        touch(state_dir, name)

    files = list_ledger_state_files_ordered(state_dir)

    assert [f.slot_no for f in files] == [100, 20, 5]
    assert files[0].path == Path(state_dir) / "100.lstate"


def test_unparsable_stem_is_slot_zero(state_dir):
    touch(state_dir, "junk.lstate")
    touch(state_dir, "-3.lstate")
    touch(state_dir, "12.lstate")

    files = list_ledger_state_files_ordered(state_dir)

    assert [f.slot_no for f in files] == [12, 0, 0]
    assert {f.path.name for f in files[1:]} == {"junk.lstate", "-3.lstate"}


def test_list_missing_directory(state_dir):
    assert list_ledger_state_files_ordered(os.path.join(state_dir, "missing")) == []
    assert list_ledger_state_slot_nos(os.path.join(state_dir, "missing")) == []


def test_list_slot_nos(state_dir):
    for slot in [3, 30, 300]:
        touch(state_dir, f"{slot}.lstate")
    assert list_ledger_state_slot_nos(state_dir) == [300, 30, 3]


# --- Cleaner ---

def test_reconcile_rollback_purge():
    to_delete, to_keep = reconcile(lsfs(300, 200, 100), boundary_slot=150, keep_count=8)

    assert sorted(f.slot_no for f in to_delete) == [200, 300]
    assert [f.slot_no for f in to_keep] == [100]


def test_reconcile_retention_bound():
    files = lsfs(*range(20, 0, -1))
    to_delete, to_keep = reconcile(files, boundary_slot=20, keep_count=8)

    assert [f.slot_no for f in to_keep] == list(range(20, 12, -1))
    assert sorted(f.slot_no for f in to_delete) == list(range(1, 13))


def test_reconcile_invalid_deleted_regardless_of_keep_count():
    to_delete, to_keep = reconcile(lsfs(50, 40, 30), boundary_slot=35, keep_count=100)

    assert sorted(f.slot_no for f in to_delete) == [40, 50]
    assert [f.slot_no for f in to_keep] == [30]


def test_reconcile_boundary_is_inclusive():
    to_delete, to_keep = reconcile(lsfs(150, 100), boundary_slot=150, keep_count=8)
    assert to_delete == []
    assert [f.slot_no for f in to_keep] == [150, 100]


def test_cleanup_on_disk(state_dir):
    for slot in range(1, 13):
        touch(state_dir, f"{slot * 10}.lstate")
    touch(state_dir, "500.lstate")   # from an abandoned fork

    deleted = cleanup_ledger_state_files(state_dir, 120, keep_count=8)

    assert list_ledger_state_slot_nos(state_dir) == [120, 110, 100, 90, 80, 70, 60, 50]
    assert sorted(f.slot_no for f in deleted) == [10, 20, 30, 40, 500]


def test_safe_remove_missing_file(state_dir):
    assert safe_remove_file(Path(state_dir) / "does-not-exist.lstate") is False


def test_cleanup_swallows_deletion_errors(state_dir, monkeypatch):
    for slot in [1, 2, 3]:
        touch(state_dir, f"{slot}.lstate")

    def failing_unlink(self, *args, **kwargs):
        raise PermissionError("read-only")

    monkeypatch.setattr(Path, "unlink", failing_unlink)
    deleted = cleanup_ledger_state_files(state_dir, 1, keep_count=0)

    assert len(deleted) == 3
    monkeypatch.undo()
    assert list_ledger_state_slot_nos(state_dir) == [3, 2, 1]


# --- Save policy ---

def test_lagging_mode_thinning(manager):
    assert manager.should_save(10_000, SyncState.LAGGING)
    assert manager.should_save(20_000, SyncState.LAGGING)
    assert not manager.should_save(0, SyncState.LAGGING)
    assert not any(manager.should_save(s, SyncState.LAGGING) for s in range(10_001, 20_000))


def test_following_mode_saves_every_state(manager):
    assert all(manager.should_save(s, SyncState.FOLLOWING) for s in [0, 1, 9_999, 10_001])


def test_save_following_writes_and_keeps_bound(state_dir, state_var, chain):
    manager = SnapshotManager(state_dir, state_var, keep_count=3)
    applier = BlockApplier(state_var)

    for blk in chain([1, 2, 3, 4, 5, 6]):
        snapshot = applier.apply_block(blk)
        path = manager.save_ledger_state(snapshot.state, SyncState.FOLLOWING)
        assert path == Path(state_dir) / f"{blk.slot}.lstate"

    assert list_ledger_state_slot_nos(state_dir) == [6, 5, 4]
    assert not [p for p in Path(state_dir).iterdir() if p.name.endswith(".tmp")]


def test_save_lagging_only_on_interval(state_dir, state_var, chain):
    manager = SnapshotManager(state_dir, state_var, save_interval=10, keep_count=8)
    applier = BlockApplier(state_var)

    written = []
    for blk in chain(range(0, 36)):
        snapshot = applier.apply_block(blk)
        if manager.save_ledger_state(snapshot.state, SyncState.LAGGING) is not None:
            written.append(blk.slot)

    assert written == [10, 20, 30]
    assert list_ledger_state_slot_nos(state_dir) == [30, 20, 10]


def test_save_replaces_current_state(manager):
    ledger = manager.state_var.read().with_state(byron_at(5))

    assert manager.save_ledger_state(ledger, SyncState.LAGGING) is None
    assert manager.state_var.read() is ledger


def test_save_cleans_up_rolled_back_files(manager):
    write_snapshot(manager, 900)
    write_snapshot(manager, 400)

    ledger = manager.state_var.read().with_state(byron_at(500))
    manager.save_ledger_state(ledger, SyncState.FOLLOWING)

    assert list_ledger_state_slot_nos(manager.state_dir) == [500, 400]


# --- Load policy ---

def test_load_falls_back_past_corrupt_file(manager):
    write_snapshot(manager, 400)
    corrupt = touch(manager.state_dir, "500.lstate", b"not a ledger state")

    loaded = manager.load_ledger_state(1000)

    assert loaded is not None
    assert ledger_tip_slot(loaded.state) == 400
    assert manager.state_var.read() is loaded
    # Corrupt files are skipped, not deleted
    assert corrupt.exists()


def test_load_after_rollback_deletes_future_snapshots(manager):
    for slot in [100, 200, 300]:
        write_snapshot(manager, slot)

    loaded = manager.load_ledger_state(150)

    assert ledger_tip_slot(loaded.state) == 100
    assert list_ledger_state_slot_nos(manager.state_dir) == [100]


def test_load_keeps_config_and_codec(manager):
    before = manager.state_var.read()
    write_snapshot(manager, 40)

    loaded = manager.load_ledger_state(40)

    assert loaded.config is before.config
    assert loaded.codec is before.codec
    assert loaded.state == byron_at(40)


def test_load_nothing_usable_leaves_state(manager):
    before = manager.state_var.read()
    touch(manager.state_dir, "10.lstate", b"\x1f\x8b garbage")
    touch(manager.state_dir, "20.lstate", b"")

    assert manager.load_ledger_state(100) is None
    assert manager.state_var.read() is before


def test_load_empty_directory(manager):
    before = manager.state_var.read()
    assert manager.load_ledger_state(100) is None
    assert manager.state_var.read() is before


def test_load_skips_other_network(manager):
    foreign_codec = CodecConfig(network_id="elsewhere")
    touch(manager.state_dir, "30.lstate", GzipJsonCodec().encode(foreign_codec, byron_at(30)))
    write_snapshot(manager, 20)

    loaded = manager.load_ledger_state(100)

    assert ledger_tip_slot(loaded.state) == 20


def test_invalid_save_interval(state_dir, state_var):
    with pytest.raises(ValueError):
        SnapshotManager(state_dir, state_var, save_interval=0)


def test_manager_cleanup_uses_keep_count(state_dir, state_var):
    manager = SnapshotManager(state_dir, state_var, keep_count=2)
    for slot in [10, 20, 30, 40]:
        write_snapshot(manager, slot)

    deleted = manager.cleanup(35)

    assert sorted(f.slot_no for f in deleted) == [10, 40]
    assert list_ledger_state_slot_nos(state_dir) == [30, 20]
    assert manager.read_ledger_state() is state_var.read()


# --- Stale temporary files ---

def test_manager_sweeps_stale_temp_files(state_dir, state_var):
    stale = touch(state_dir, ".70.lstate.tmp", b"half written")
    kept = touch(state_dir, "60.lstate")
    other = touch(state_dir, "notes.tmp")

    SnapshotManager(state_dir, state_var)

    assert not stale.exists()
    assert kept.exists()
    assert other.exists()


def test_remove_stale_temp_files_missing_directory(state_dir):
    assert remove_stale_temp_files(os.path.join(state_dir, "missing")) == 0


# --- Concurrency ---

def test_concurrent_save_and_load(state_dir, network, chain):
    # Ledger states for slots 1..30, built ahead of time
    builder = BlockApplier(init_ledger_state_var(network))
    ledgers = [builder.apply_block(blk).state for blk in chain(range(1, 31))]

    manager = SnapshotManager(state_dir, init_ledger_state_var(network), keep_count=3)
    loaded = []
    errors = []
    saving = threading.Event()
    saving.set()

    def saver():
        try:
            for ledger in ledgers:
                manager.save_ledger_state(ledger, SyncState.FOLLOWING)
        except Exception as e:
            errors.append(e)
        finally:
            saving.clear()

    def loader():
        try:
            while saving.is_set():
                result = manager.load_ledger_state(1_000_000)
                loaded.append(None if result is None else ledger_tip_slot(result.state))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=saver), threading.Thread(target=loader)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    # Once a snapshot exists, a load always finds a readable one
    first = next((i for i, slot in enumerate(loaded) if slot is not None), len(loaded))
    assert None not in loaded[first:]
    assert list_ledger_state_slot_nos(state_dir) == [30, 29, 28]
    assert not [p for p in Path(state_dir).iterdir() if p.name.endswith(".tmp")]

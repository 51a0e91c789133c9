import argparse
import logging
import sys
from pathlib import Path

from ..ledger.codec import GzipJsonCodec
from ..ledger.types import CodecConfig, LedgerConfig
from ..snapshot.cleanup import cleanup_ledger_state_files
from ..snapshot.files import list_ledger_state_files_ordered
from ...protocol.config.params import NETWORKS, SNAPSHOT_KEEP_COUNT
from ...protocol.types.common import DecodeError
from ...protocol.types.ledger import ShelleyLedgerState, ledger_tip


def cmd_list(args):
    """Print snapshot slot numbers, newest first."""
    files = list_ledger_state_files_ordered(args.state_dir)
    if not files:
        print(f"No ledger state files in {args.state_dir}")
        return 0
    for lsf in files:
        print(f"{lsf.slot_no}\t{lsf.path.name}\t{lsf.path.stat().st_size} bytes")
    return 0


def cmd_prune(args):
    """Drop snapshots after --slot and keep the --keep most recent of the rest."""
    deleted = cleanup_ledger_state_files(args.state_dir, args.slot, args.keep)
    for lsf in deleted:
        print(f"Deleted {lsf.path.name}")
    print(f"Removed {len(deleted)} file(s)")
    return 0


def cmd_inspect(args):
    """Decode a snapshot file and print its tip."""
    network = NETWORKS[args.network]
    codec_config = CodecConfig.from_network(network)
    ledger_config = LedgerConfig.from_network(network)

    path = Path(args.file)
    try:
        state = GzipJsonCodec().decode(codec_config, path.read_bytes())
    except (OSError, DecodeError) as e:
        print(f"Cannot load {path}: {e}", file=sys.stderr)
        return 1

    tip = ledger_tip(state)
    print(f"File:  {path}")
    print(f"Era:   {state.era}")
    if tip is None:
        print("Tip:   origin")
        return 0
    print(f"Tip:   slot {tip.slot}, block {tip.block_no}, hash {tip.hash}")
    print(f"Epoch: {ledger_config.epoch_info.epoch_of(tip.slot)}")
    print(f"Stake: {state.stake.total()} across {len(state.stake.stake)} address(es)")
    if isinstance(state, ShelleyLedgerState):
        print(f"Pending reward update: {'yes' if state.reward_update is not None else 'no'}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Ledger state snapshot tool")
    parser.add_argument("--state-dir", default="./ledger-state", help="Ledger state directory")
    parser.add_argument("--network", default="devnet", choices=sorted(NETWORKS), help="Network config")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List snapshots, newest first")

    prune_parser = subparsers.add_parser("prune", help="Remove rolled-back and excess snapshots")
    prune_parser.add_argument("--slot", type=int, required=True, help="Highest slot to keep")
    prune_parser.add_argument("--keep", type=int, default=SNAPSHOT_KEEP_COUNT, help="Snapshots to keep")

    inspect_parser = subparsers.add_parser("inspect", help="Decode a snapshot file")
    inspect_parser.add_argument("file", help="Path to a .lstate file")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "list":
        return cmd_list(args)
    elif args.command == "prune":
        return cmd_prune(args)
    elif args.command == "inspect":
        return cmd_inspect(args)


if __name__ == "__main__":
    sys.exit(main())

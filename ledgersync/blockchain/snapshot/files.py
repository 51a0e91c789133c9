# MIT License
# Copyright (c) 2025 Hashborn

"""
Ledger state snapshot files.

The directory listing is the index: each snapshot is `<slot>.lstate`.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from ...protocol.config.params import LEDGER_STATE_EXTENSION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerStateFile:
    slot_no: int
    path: Path


def ledger_state_path(state_dir: Union[str, Path], slot_no: int) -> Path:
    return Path(state_dir) / f"{slot_no}{LEDGER_STATE_EXTENSION}"


def is_ledger_state_file(path: Path) -> bool:
    return path.suffix == LEDGER_STATE_EXTENSION


def _parse_slot_no(stem: str) -> int:
    # Digits only: int() would also take signs, whitespace and underscores
    if not stem.isascii() or not stem.isdigit():
        raise ValueError(stem)
    return int(stem)


def list_ledger_state_files_ordered(state_dir: Union[str, Path]) -> List[LedgerStateFile]:
    """
    List the ledger state files in `state_dir`, most recent (highest slot) first.
    """
    state_dir = Path(state_dir)
    if not state_dir.is_dir():
        return []

    files = []
    for path in state_dir.iterdir():
        if not path.is_file() or not is_ledger_state_file(path):
            continue
        try:
            slot_no = _parse_slot_no(path.stem)
        except ValueError:
            # Should never happen; sorts last and is the first to be cleaned up.
            logger.warning(f"Unparsable ledger state file name {path.name}, treating as slot 0")
            slot_no = 0
        files.append(LedgerStateFile(slot_no=slot_no, path=path))

    files.sort(key=lambda f: f.slot_no, reverse=True)
    return files


def list_ledger_state_slot_nos(state_dir: Union[str, Path]) -> List[int]:
    return [f.slot_no for f in list_ledger_state_files_ordered(state_dir)]

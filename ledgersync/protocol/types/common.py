from enum import Enum


class SyncState(str, Enum):
    FOLLOWING = "following"   # Caught up with the network tip
    LAGGING = "lagging"       # Still replaying historical blocks


class ProtocolError(Exception):
    pass


class LedgerStateError(ProtocolError):
    pass


class DecodeError(LedgerStateError):
    """Snapshot bytes could not be turned back into a ledger state."""
    pass


class LedgerPanic(BaseException):
    """
    Unrecoverable ledger condition.

    Derives from BaseException so the usual `except Exception` handlers in
    callers do not swallow it; continuing after one would corrupt the ledger.
    """
    pass


class HashMismatchError(LedgerPanic):
    def __init__(self, slot: int, tip_hash: str, prev_hash: str):
        self.slot = slot
        self.tip_hash = tip_hash
        self.prev_hash = prev_hash
        super().__init__(
            f"apply_block: Hash mismatch when applying block with slot no {slot}: "
            f"{tip_hash} /= {prev_hash}"
        )


class EraMismatchError(LedgerPanic):
    pass

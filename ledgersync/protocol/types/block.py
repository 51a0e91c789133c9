from pydantic import BaseModel, Field
from typing import Dict
from ..crypto.hash import sha256_hex

GENESIS_HASH = "0" * 64


class BlockHeader(BaseModel):
    slot: int = Field(..., ge=0)    # absolute slot number
    block_no: int = Field(..., ge=0)
    prev_hash: str                  # hex hash of previous header (GENESIS_HASH for the first block)
    issuer: str = ""                # pool / delegate id

    def hash(self) -> str:
        # Hash covers the header only
        payload = (
            str(self.slot)
            + str(self.block_no)
            + self.prev_hash
            + self.issuer
        )
        return sha256_hex(payload.encode("utf-8"))


class Block(BaseModel):
    header: BlockHeader

    # Body: net stake movements and fees collected by the block
    stake_deltas: Dict[str, int] = Field(default_factory=dict)
    fees: int = 0

    def hash(self) -> str:
        return self.header.hash()

    @property
    def prev_hash(self) -> str:
        return self.header.prev_hash

    @property
    def slot(self) -> int:
        return self.header.slot

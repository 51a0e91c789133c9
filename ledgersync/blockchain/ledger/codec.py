# MIT License
# Copyright (c) 2025 Hashborn

"""
Ledger State Codec

Binary encoding of ledger states for on-disk snapshots. The reference codec
stores a gzip-compressed JSON envelope with a SHA256 digest of the state.
"""

import gzip
import json
import zlib
from typing import Any, Dict, Protocol

from pydantic import BaseModel, Field, ValidationError

from .types import CodecConfig
from ...protocol.crypto.hash import sha256_hex
from ...protocol.types.common import DecodeError
from ...protocol.types.ledger import LedgerState, ledger_state_adapter


class SnapshotCodec(Protocol):
    def encode(self, codec: CodecConfig, state: LedgerState) -> bytes:
        ...

    def decode(self, codec: CodecConfig, data: bytes) -> LedgerState:
        """Raises DecodeError if `data` is not a valid encoding."""
        ...


class SnapshotEnvelope(BaseModel):
    version: int = Field(..., description="Snapshot format version")
    network_id: str = Field(..., description="Network the state belongs to")
    hash: str = Field(..., description="SHA256 of the canonical state JSON")
    state: Dict[str, Any] = Field(..., description="Ledger state (JSON form)")


def _canonical_json(data: Dict[str, Any]) -> bytes:
    # Sort keys for deterministic hashing
    return json.dumps(data, sort_keys=True, separators=(',', ':')).encode()


class GzipJsonCodec:
    def encode(self, codec: CodecConfig, state: LedgerState) -> bytes:
        state_data = ledger_state_adapter.dump_python(state, mode="json")
        envelope = SnapshotEnvelope(
            version=codec.format_version,
            network_id=codec.network_id,
            hash=sha256_hex(_canonical_json(state_data)),
            state=state_data,
        )
        return gzip.compress(envelope.model_dump_json().encode(), compresslevel=codec.compress_level)

    def decode(self, codec: CodecConfig, data: bytes) -> LedgerState:
        try:
            raw = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise DecodeError(f"Ledger state file: bad compression: {e}") from e

        try:
            envelope = SnapshotEnvelope.model_validate_json(raw)
        except ValidationError as e:
            raise DecodeError(f"Ledger state file: bad envelope: {e}") from e

        if envelope.version != codec.format_version:
            raise DecodeError(
                f"Ledger state file: format version {envelope.version}, expected {codec.format_version}"
            )
        if envelope.network_id != codec.network_id:
            raise DecodeError(
                f"Ledger state file: network {envelope.network_id}, expected {codec.network_id}"
            )
        if sha256_hex(_canonical_json(envelope.state)) != envelope.hash:
            raise DecodeError("Ledger state file: hash verification failed")

        try:
            return ledger_state_adapter.validate_python(envelope.state)
        except ValidationError as e:
            raise DecodeError(f"Ledger state file: bad ledger state: {e}") from e

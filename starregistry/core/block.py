"""
Block Record

The immutable ledger entry.

Rules:
- No UPDATE
- No DELETE
- Ever

Chain Integrity Rules:
- height equals the block's position in the chain (0 for genesis)
- previous_hash is None for genesis ONLY
- hash is verifiable from (height, time, previous_hash, body)
"""

import hmac
import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from .hasher import Hasher
from ..schemas.star import BlockData, GenesisData, block_payload_adapter


@dataclass(frozen=True)
class Block:
    """
    One entry in the chain.

    The body is the hex encoding of the payload's JSON, stored verbatim.
    A block built with `create()` is a draft: the ledger fills in height,
    time, previous_hash and hash when it appends, producing a new sealed
    block. Neither is ever modified in place.
    """
    body: str
    height: Optional[int] = None
    time: Optional[int] = None
    previous_hash: Optional[str] = None
    hash: Optional[str] = None

    @classmethod
    def create(cls, payload: Union[GenesisData, BlockData]) -> "Block":
        """Draft a block around a genesis sentinel or a star claim."""
        return cls(body=Hasher.encode(payload).encode("utf-8").hex())

    @property
    def is_genesis(self) -> bool:
        return self.height == 0

    @property
    def is_sealed(self) -> bool:
        return self.hash is not None

    def hash_content(self) -> dict[str, Any]:
        """Everything the hash covers. The hash itself is left out."""
        return {
            "height": self.height,
            "time": self.time,
            "previous_hash": self.previous_hash,
            "body": self.body,
        }

    def compute_hash(self) -> str:
        return Hasher.hash_data(self.hash_content())

    def validate(self) -> bool:
        """
        Recompute the self-hash and compare it to the stored one.

        Does not look at neighbours; chain linkage is checked by the ledger.
        """
        if self.hash is None:
            return False
        return hmac.compare_digest(
            self.compute_hash().encode("utf-8"), self.hash.encode("utf-8")
        )

    def decoded_body(self) -> Union[GenesisData, BlockData]:
        """
        Decode the body back into its payload.

        Raises:
            ValueError: If the body is not hex-encoded JSON of a known payload
        """
        raw = bytes.fromhex(self.body).decode("utf-8")
        return block_payload_adapter.validate_python(json.loads(raw))

    def to_dict(self) -> dict[str, Any]:
        """Raw block fields, as stored."""
        return {
            "height": self.height,
            "time": self.time,
            "previous_hash": self.previous_hash,
            "hash": self.hash,
            "body": self.body,
        }

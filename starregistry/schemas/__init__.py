# Payload schemas for the star registry ledger

from .star import (
    GENESIS_DATA,
    BlockData,
    BlockPayload,
    GenesisData,
    Star,
    StarOwnership,
    block_payload_adapter,
)

__all__ = [
    "GENESIS_DATA",
    "BlockData",
    "BlockPayload",
    "GenesisData",
    "Star",
    "StarOwnership",
    "block_payload_adapter",
]

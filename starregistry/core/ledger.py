"""
Ledger - The Heart of the System

An in-memory, append-only chain of blocks.
Nothing is "edited". Blocks are appended.

The ledger:
- Creates the genesis block on construction
- Assigns height, time and chain linkage on append
- Produces block hashes
- Answers lookups by hash, height and wallet address
- Reports (never repairs) integrity problems

Rules (enforced in code):
- Height is derived from the block list, never tracked separately
- previous_hash is None ONLY for the genesis block (height 0)
- Appends are serialized by a single lock, so two writers can never
  claim the same height or the same predecessor
- Readers work on a snapshot taken under the same lock

The ledger trusts its caller for block CONTENT. Authentication happens in
OwnershipService before anything reaches append().
"""

import logging
import time
from dataclasses import replace
from threading import Lock
from typing import Optional

from ..schemas import BlockData, GenesisData, StarOwnership
from .block import Block
from .clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base exception for ledger errors."""
    pass


class BlockNotFoundError(LedgerError):
    """Raised when a lookup by hash or height finds no block."""
    pass


class SubmissionError(LedgerError):
    """Raised when a star submission is rejected. No block is created."""
    pass


class ExpiredChallengeError(SubmissionError):
    """Raised when the signed challenge is older than the freshness window."""
    pass


class InvalidSignatureError(SubmissionError):
    """Raised when the signature does not prove control of the address."""
    pass


class MalformedChallengeError(SubmissionError):
    """Raised when the message is not a challenge issued for this address."""
    pass


class Ledger:
    """
    The chain of blocks.

    CHAIN INTEGRITY GUARANTEES:
    - Heights are 0, 1, 2, ... with no gaps or repeats
    - Every block after genesis links to the hash of its predecessor
    - Stored blocks are frozen; appending never touches existing blocks
    """

    def __init__(self, clock: Optional[Clock] = None):
        """
        Create a ledger and its genesis block.

        Args:
            clock: Source of block timestamps. Defaults to the system clock.
        """
        self._clock = clock or SystemClock()
        self._blocks: list[Block] = []
        self._lock = Lock()
        self.initialize()

    def initialize(self) -> "Ledger":
        """Create the genesis block if the chain is empty. Safe to call again."""
        with self._lock:
            if self._blocks:
                return self
            genesis = self._seal(Block.create(GenesisData()))
        logger.info(f"Genesis block created (hash={genesis.hash[:16]}...)")
        return self

    @property
    def height(self) -> int:
        """Height of the tail block; -1 for an empty chain."""
        with self._lock:
            return len(self._blocks) - 1

    @property
    def blocks(self) -> list[Block]:
        """Snapshot of the whole chain."""
        with self._lock:
            return list(self._blocks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._blocks)

    # ================================================================
    # APPEND
    # ================================================================

    def _seal(self, block: Block) -> Block:
        """
        Assign identity and linkage, then push. Caller must hold the lock.
        """
        previous_hash = self._blocks[-1].hash if self._blocks else None
        sealed = replace(
            block,
            height=len(self._blocks),
            time=self._clock.now_seconds(),
            previous_hash=previous_hash,
            hash=None,
        )
        sealed = replace(sealed, hash=sealed.compute_hash())
        self._blocks.append(sealed)
        return sealed

    def append(self, block: Block) -> Block:
        """
        Append a block at the tail.

        This is APPEND ONLY. The draft passed in is not modified; the
        returned block is the sealed copy that now lives in the chain.

        Returns:
            The stored block with height, time, previous_hash and hash set
        """
        start = time.perf_counter()
        with self._lock:
            sealed = self._seal(block)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"Block {sealed.height} appended (hash={sealed.hash[:16]}..., "
            f"{duration_ms:.2f}ms)"
        )
        return sealed

    # ================================================================
    # LOOKUPS
    # ================================================================

    def get_block_by_hash(self, block_hash: str) -> Block:
        """
        Find the block with the given hash.

        Raises:
            BlockNotFoundError: If no block has this hash
        """
        for block in self.blocks:
            if block.hash == block_hash:
                return block
        raise BlockNotFoundError(f"No block with hash {block_hash}")

    def get_block_by_height(self, height: int) -> Block:
        """
        Find the block at the given height.

        Raises:
            BlockNotFoundError: If the chain is not that tall (or height < 0)
        """
        blocks = self.blocks
        if 0 <= height < len(blocks):
            return blocks[height]
        raise BlockNotFoundError(f"No block at height {height}")

    def get_stars_by_wallet_address(self, address: str) -> list[StarOwnership]:
        """
        All stars registered by a wallet, in chain order.

        The genesis block is never included.
        """
        stars = []
        for block in self.blocks:
            if block.is_genesis:
                continue
            data = block.decoded_body()
            if isinstance(data, BlockData) and data.wallet_address == address:
                stars.append(StarOwnership(owner=address, star=data.star))
        return stars

    # ================================================================
    # INTEGRITY
    # ================================================================

    def validate_chain(self) -> list[str]:
        """
        Check every block's self-hash and every link.

        One bad block does not stop the scan: every problem found is
        reported. An empty list means the chain is intact.
        """
        errors = []
        blocks = self.blocks

        for position, block in enumerate(blocks):
            if block.height != position:
                errors.append(
                    f"Block at position {position} claims height {block.height}"
                )

            if not block.validate():
                errors.append(f"Hash is not valid in block {block.height}")

            if position == 0:
                if block.previous_hash is not None:
                    errors.append(
                        f"Genesis block has previous block hash {block.previous_hash}"
                    )
                continue

            previous = blocks[position - 1]
            if block.previous_hash != previous.hash:
                errors.append(
                    f"Chain is broken at block {block.height}. "
                    f"The stored previous block hash {block.previous_hash} "
                    f"is not equal with the previous block {previous.height} "
                    f"hash {previous.hash}"
                )

        if errors:
            logger.error(
                f"Chain validation found {len(errors)} problem(s) "
                f"across {len(blocks)} blocks"
            )
        return errors

"""
Ownership Service

The gate in front of the ledger.

Two steps, no stored session:
1. issue_challenge(address) -> "<address>:<unix_seconds>:starRegistry"
2. submit_star(address, message, signature, star) -> appended Block

The challenge is stateless: everything needed to check it later is inside
the string itself, and the claimant's signature binds it to the wallet.

Rejections (nothing is appended):
- MalformedChallengeError: not a challenge for this address and domain
- ExpiredChallengeError: older than the freshness window
- InvalidSignatureError: the wallet did not sign this message
"""

import logging
from typing import Optional

from ..schemas import BlockData, Star
from .block import Block
from .clock import Clock, SystemClock
from .ledger import (
    ExpiredChallengeError,
    InvalidSignatureError,
    Ledger,
    MalformedChallengeError,
)
from .signer import SignatureVerifier, WalletSigner

logger = logging.getLogger(__name__)


CHALLENGE_DOMAIN = "starRegistry"
CHALLENGE_WINDOW_SECONDS = 5 * 60


class OwnershipService:
    """
    Issues ownership challenges and turns signed responses into blocks.

    Holds no per-claimant state, so any number of challenges may be
    outstanding at once.
    """

    def __init__(
        self,
        ledger: Ledger,
        clock: Optional[Clock] = None,
        verify_signature: Optional[SignatureVerifier] = None,
        window_seconds: int = CHALLENGE_WINDOW_SECONDS,
        domain: str = CHALLENGE_DOMAIN,
    ):
        """
        Args:
            ledger: The ledger that accepted claims are appended to
            clock: Time source; should be the ledger's clock
            verify_signature: Wallet signature check (default: WalletSigner.verify)
            window_seconds: Maximum challenge age at submission
            domain: Tag that marks a string as one of our challenges
        """
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._verify_signature = verify_signature or WalletSigner.verify
        self._window_seconds = window_seconds
        self._domain = domain

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def issue_challenge(self, address: str) -> str:
        """
        Return the message the wallet owner must sign.

        Raises:
            ValueError: If the address is empty or contains ':', which could
                        never be parsed back out of the challenge
        """
        if not address or ":" in address:
            raise ValueError(f"Cannot issue a challenge for address '{address}'")
        return f"{address}:{self._clock.now_seconds()}:{self._domain}"

    def _parse_challenge(self, address: str, message: str) -> int:
        """
        Split a challenge into its parts and return the embedded timestamp.

        Raises:
            MalformedChallengeError: If the message was not issued for this address
        """
        parts = message.split(":")
        if len(parts) != 3:
            raise MalformedChallengeError(
                f"Challenge must have the form <address>:<time>:{self._domain}"
            )

        challenge_address, raw_time, domain = parts
        if domain != self._domain:
            raise MalformedChallengeError(
                f"Challenge domain '{domain}' is not '{self._domain}'"
            )
        if challenge_address != address:
            raise MalformedChallengeError(
                "Challenge was issued for a different wallet address"
            )

        try:
            return int(raw_time)
        except ValueError:
            raise MalformedChallengeError(
                f"Challenge timestamp '{raw_time}' is not an integer"
            ) from None

    def submit_star(
        self,
        address: str,
        message: str,
        signature: str,
        star: Star,
    ) -> Block:
        """
        Register a star for a wallet.

        Steps:
        1. Parse the challenge and read its timestamp
        2. Reject it unless it is strictly younger than the window
        3. Reject it unless the wallet signed it
        4. Wrap the claim in a block and append it

        Returns:
            The appended block
        """
        issued_at = self._parse_challenge(address, message)
        elapsed = self._clock.now_seconds() - issued_at

        if elapsed < 0:
            raise MalformedChallengeError(
                f"Challenge timestamp is {-elapsed}s in the future"
            )
        if elapsed >= self._window_seconds:
            logger.warning(
                f"Rejected star for {address}: challenge is {elapsed}s old "
                f"(window {self._window_seconds}s)"
            )
            raise ExpiredChallengeError(
                f"Challenge expired: issued {elapsed}s ago, "
                f"must be submitted within {self._window_seconds}s"
            )

        if not self._verify_signature(message, address, signature):
            logger.warning(f"Rejected star for {address}: invalid signature")
            raise InvalidSignatureError(
                f"Signature does not prove control of address {address}"
            )

        block = self._ledger.append(
            Block.create(BlockData(message=message, wallet_address=address, star=star))
        )
        logger.info(f"Star registered for {address} at height {block.height}")
        return block

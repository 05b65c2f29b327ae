# Core ledger services
from .hasher import Hasher, CanonicalSerializationError
from .block import Block
from .clock import Clock, SystemClock
from .ledger import (
    Ledger,
    LedgerError,
    BlockNotFoundError,
    SubmissionError,
    ExpiredChallengeError,
    InvalidSignatureError,
    MalformedChallengeError,
)
from .signer import SignatureVerifier, WalletSigner
from .ownership import (
    OwnershipService,
    CHALLENGE_DOMAIN,
    CHALLENGE_WINDOW_SECONDS,
)

__all__ = [
    "Hasher",
    "CanonicalSerializationError",
    "Block",
    "Clock",
    "SystemClock",
    "Ledger",
    "LedgerError",
    "BlockNotFoundError",
    "SubmissionError",
    "ExpiredChallengeError",
    "InvalidSignatureError",
    "MalformedChallengeError",
    "SignatureVerifier",
    "WalletSigner",
    "OwnershipService",
    "CHALLENGE_DOMAIN",
    "CHALLENGE_WINDOW_SECONDS",
]

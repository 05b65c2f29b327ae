"""
Wallet Signing Service

Uses Ed25519 for proving control of a wallet address.
A claimant signs the ownership challenge with their wallet key;
the registry only ever sees the address, the message and the signature.

Wallet address format:
    base58check(version byte 0x00 + 32-byte Ed25519 public key)

The address embeds the full public key, so a signature can be checked
against nothing but the address it claims to come from.
"""

import base64
from typing import Protocol, Tuple

import base58
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey


ADDRESS_VERSION = b"\x00"
PUBLIC_KEY_LENGTH = 32


class SignatureVerifier(Protocol):
    """Anything that can check a wallet signature over a message."""

    def __call__(self, message: str, address: str, signature: str) -> bool: ...


class WalletSigner:
    """
    Ed25519 wallet keys and message signatures.

    Private keys and signatures are base64 strings; addresses are base58check.
    """

    @staticmethod
    def generate_wallet() -> Tuple[str, str]:
        """
        Generate a new wallet.

        Returns:
            Tuple of (private_key_b64, address)
        """
        signing_key = SigningKey.generate()
        private_b64 = base64.b64encode(bytes(signing_key)).decode("utf-8")
        address = WalletSigner.address_from_public_key(bytes(signing_key.verify_key))
        return private_b64, address

    @staticmethod
    def address_from_public_key(public_key: bytes) -> str:
        """Encode a raw Ed25519 public key as a wallet address."""
        if len(public_key) != PUBLIC_KEY_LENGTH:
            raise ValueError(
                f"Ed25519 public key must be {PUBLIC_KEY_LENGTH} bytes, "
                f"got {len(public_key)}"
            )
        return base58.b58encode_check(ADDRESS_VERSION + public_key).decode("ascii")

    @staticmethod
    def address_from_private_key(private_key_b64: str) -> str:
        """Derive the wallet address that belongs to a private key."""
        signing_key = SigningKey(base64.b64decode(private_key_b64))
        return WalletSigner.address_from_public_key(bytes(signing_key.verify_key))

    @staticmethod
    def public_key_from_address(address: str) -> bytes:
        """
        Recover the public key embedded in a wallet address.

        Raises:
            ValueError: If the checksum, version byte or key length is wrong
        """
        payload = base58.b58decode_check(address)
        if payload[:1] != ADDRESS_VERSION:
            raise ValueError(f"Unknown address version byte {payload[:1].hex()}")
        public_key = payload[1:]
        if len(public_key) != PUBLIC_KEY_LENGTH:
            raise ValueError(
                f"Address carries {len(public_key)} key bytes, "
                f"expected {PUBLIC_KEY_LENGTH}"
            )
        return public_key

    @staticmethod
    def is_valid_address(address: str) -> bool:
        """Check an address decodes to a well-formed public key."""
        try:
            WalletSigner.public_key_from_address(address)
        except ValueError:
            return False
        return True

    @staticmethod
    def sign(message: str, private_key_b64: str) -> str:
        """
        Sign a message with a wallet key.

        Args:
            message: The string to sign (typically an ownership challenge)
            private_key_b64: Base64-encoded private key

        Returns:
            Base64-encoded signature
        """
        signing_key = SigningKey(base64.b64decode(private_key_b64))
        signed = signing_key.sign(message.encode("utf-8"))
        return base64.b64encode(signed.signature).decode("utf-8")

    @staticmethod
    def verify(message: str, address: str, signature_b64: str) -> bool:
        """
        Verify that the owner of `address` signed exactly `message`.

        Malformed addresses and signatures count as invalid.

        Returns:
            True if signature is valid, False otherwise
        """
        try:
            verify_key = VerifyKey(WalletSigner.public_key_from_address(address))
            signature_bytes = base64.b64decode(signature_b64, validate=True)
            verify_key.verify(message.encode("utf-8"), signature_bytes)
            return True
        except (BadSignatureError, ValueError, TypeError):
            return False

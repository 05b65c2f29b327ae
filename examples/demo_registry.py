"""
Demonstration: Star Ownership Flow

Two wallets register stars, one forged submission is turned away,
and the chain is validated at the end.

Run with: python -m examples.demo_registry
"""

from starregistry.core import (
    InvalidSignatureError,
    Ledger,
    OwnershipService,
    WalletSigner,
)
from starregistry.schemas import Star


def main():
    print("=" * 60)
    print("Star Registry - Ownership Demonstration")
    print("=" * 60)
    print()

    ledger = Ledger()
    registry = OwnershipService(ledger)

    genesis = ledger.get_block_by_height(0)
    print("[OK] Ledger initialized")
    print(f"   Height: {ledger.height}")
    print(f"   Genesis Hash: {genesis.hash[:16]}...")
    print()

    alice_key, alice = WalletSigner.generate_wallet()
    bob_key, bob = WalletSigner.generate_wallet()

    # ================================================================
    # STEP 1: REGISTER STARS
    # ================================================================
    print("=" * 60)
    print("STEP 1: REGISTER STARS")
    print("=" * 60)

    claims = [
        (alice, alice_key, Star(dec="68° 52' 56.9", ra="16h 29m 1.0s", story="Found it on a camping trip")),
        (alice, alice_key, Star(dec="-26° 29' 24.9", ra="13h 3m 33.35s", story="Second star")),
        (bob, bob_key, Star(dec="7° 24' 25.4", ra="5h 55m 10.3s", story="Betelgeuse, obviously")),
    ]

    for address, private_key, star in claims:
        message = registry.issue_challenge(address)
        signature = WalletSigner.sign(message, private_key)
        block = registry.submit_star(address, message, signature, star)
        print(f"[OK] Block {block.height} | {address[:12]}... | {star.story}")
        print(f"   Hash: {block.hash[:16]}...")
        print(f"   Previous: {block.previous_hash[:16]}...")
    print()

    # ================================================================
    # STEP 2: FORGED SUBMISSION
    # ================================================================
    print("=" * 60)
    print("STEP 2: FORGED SUBMISSION")
    print("=" * 60)

    message = registry.issue_challenge(alice)
    forged = WalletSigner.sign(message, bob_key)
    try:
        registry.submit_star(alice, message, forged, Star(dec="0", ra="0", story="Not mine"))
    except InvalidSignatureError as e:
        print(f"[REJECTED] {e}")
    print(f"   Height unchanged: {ledger.height}")
    print()

    # ================================================================
    # OWNERSHIP AND INTEGRITY
    # ================================================================
    print("=" * 60)
    print("OWNERSHIP")
    print("=" * 60)

    for address in (alice, bob):
        stars = ledger.get_stars_by_wallet_address(address)
        print(f"  {address[:12]}... owns {len(stars)} star(s)")
        for record in stars:
            print(f"    - {record.star.story} (dec {record.star.dec}, ra {record.star.ra})")
    print()

    errors = ledger.validate_chain()
    print("=" * 60)
    print(f"CHAIN VALID: {'[YES]' if not errors else '[NO]'}")
    print("=" * 60)
    for error in errors:
        print(f"  {error}")


if __name__ == "__main__":
    main()

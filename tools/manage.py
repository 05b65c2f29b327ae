#!/usr/bin/env python3
"""
Star Registry Wallet CLI

The registry never holds private keys. These commands are what a claimant
runs on their own machine to take part in the ownership flow:
- new-wallet: Generate a wallet key and its address
- address: Print the address that belongs to a private key
- sign: Sign an ownership challenge
- verify: Check a signature against an address

Usage:
    python -m tools.manage <command> [options]

Examples:
    python -m tools.manage new-wallet
    python -m tools.manage sign --private-key <KEY> --message "<address>:1700000000:starRegistry"
    python -m tools.manage verify --address <ADDR> --message "<msg>" --signature <SIG>
"""

import argparse
import sys
from typing import Optional, Sequence

from starregistry.core import WalletSigner


def cmd_new_wallet(args):
    """Generate a new wallet."""
    private_key, address = WalletSigner.generate_wallet()

    print("[OK] Wallet created")
    print(f"  Address: {address}")
    print("\n  Private key (KEEP SECRET!):")
    print(f"  {private_key}")


def cmd_address(args):
    """Print the address for a private key."""
    try:
        print(WalletSigner.address_from_private_key(args.private_key))
    except ValueError as e:
        print(f"[FAIL] Invalid private key: {e}", file=sys.stderr)
        return 1


def cmd_sign(args):
    """Sign a challenge message."""
    try:
        print(WalletSigner.sign(args.message, args.private_key))
    except ValueError as e:
        print(f"[FAIL] Invalid private key: {e}", file=sys.stderr)
        return 1


def cmd_verify(args):
    """Verify a signature. Exit code 0 means valid."""
    if WalletSigner.verify(args.message, args.address, args.signature):
        print("[OK] Signature valid")
        return 0
    print("[FAIL] Signature INVALID")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Star Registry Wallet CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser(
        "new-wallet",
        help="Generate a wallet key and address"
    )

    p_address = subparsers.add_parser(
        "address",
        help="Print the address for a private key"
    )
    p_address.add_argument("--private-key", required=True, help="Base64 private key")

    p_sign = subparsers.add_parser(
        "sign",
        help="Sign an ownership challenge"
    )
    p_sign.add_argument("--private-key", required=True, help="Base64 private key")
    p_sign.add_argument("--message", required=True, help="Challenge to sign")

    p_verify = subparsers.add_parser(
        "verify",
        help="Verify a signature against an address"
    )
    p_verify.add_argument("--address", required=True, help="Wallet address")
    p_verify.add_argument("--message", required=True, help="Signed message")
    p_verify.add_argument("--signature", required=True, help="Base64 signature")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "new-wallet": cmd_new_wallet,
        "address": cmd_address,
        "sign": cmd_sign,
        "verify": cmd_verify,
    }

    return commands[args.command](args) or 0


if __name__ == "__main__":
    sys.exit(main())

"""
Shared pytest fixtures for the star registry test suite.

- A controllable clock, so freshness boundaries can be hit exactly
- Fresh ledger / ownership service pairs sharing that clock
- Wallets with real Ed25519 keys
"""

import pytest

from starregistry.core import Ledger, OwnershipService, WalletSigner
from starregistry.schemas import Star


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: int = 1000):
        self.now = now

    def now_seconds(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FrozenClock(now=1000)


@pytest.fixture
def ledger(clock):
    return Ledger(clock=clock)


@pytest.fixture
def registry(ledger, clock):
    return OwnershipService(ledger, clock=clock)


@pytest.fixture
def wallet():
    """A claimant wallet: {"private": key, "address": address}."""
    private, address = WalletSigner.generate_wallet()
    return {"private": private, "address": address}


@pytest.fixture
def other_wallet():
    private, address = WalletSigner.generate_wallet()
    return {"private": private, "address": address}


@pytest.fixture
def sample_star():
    return Star(dec="5", ra="10", story="test")

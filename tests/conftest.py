"""
conftest.py - Shared pytest fixtures for ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Empty and funded ledgers (global rate 5e10 per tick, t=0)
- A pool in front of a ledger
"""

import pytest

from rebase_ledger import InterestLedger, Pool, UNIT


@pytest.fixture
def ledger():
    """Fresh ledger at t=0 with a global rate of 5e10."""
    return InterestLedger("test", initial_rate=5 * 10 ** 10, verbose=False)


@pytest.fixture
def funded_ledger(ledger):
    """Ledger where alice minted 100 units at t=0."""
    ledger.mint("alice", 100 * UNIT)
    return ledger


@pytest.fixture
def pool(ledger):
    """Pool with the default in-memory payout."""
    return Pool(ledger)

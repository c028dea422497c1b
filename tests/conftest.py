"""
conftest.py - Shared pytest fixtures for lending ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Bare ledgers (no assets, no prices)
- Market ledgers (STX whitelisted and priced at height 10)
- A loan-opening helper with the reference terms
"""

import pytest

from loan_ledger import LendingLedger
from tests.market import OWNER, ASSET, make_market


@pytest.fixture
def empty_ledger():
    """Fresh ledger with no assets and no prices."""
    return LendingLedger("test", owner=OWNER, verbose=False)


@pytest.fixture
def market():
    """STX whitelisted and priced at 100 at height 10."""
    return make_market()


@pytest.fixture
def open_loan(market):
    """
    Callable opening an active loan on the market fixture.

    Defaults: amount=1000, collateral=2000 STX, 500 bp, 1440 height units.
    """
    def _open(borrower="alice", amount=1000, collateral=2000, asset=ASSET, rate=500, duration=1440):
        return market.create_loan(borrower, amount, collateral, asset, rate, duration)
    return _open

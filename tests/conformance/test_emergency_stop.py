"""
Emergency Stop Conformance Tests

INVARIANT: While halted, only the halt toggle can change state.

    emergency_stopped ⟹ ∀ operation O ≠ toggle_emergency_stop:
        O raises EmergencyStop and writes nothing

The halt check precedes authorization and argument validation.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from loan_ledger import EmergencyStop, NotAuthorized
from tests.market import make_market, ledger_snapshot
from tests.strategies import operations


def _halted_market():
    ledger = make_market()
    loan_id = ledger.create_loan("alice", 1000, 2000, "STX", 500, 1440)
    ledger.request_loan("bob", 1000, 2000, "STX", 500, 1440)
    ledger.toggle_emergency_stop("owner")
    return ledger, loan_id


class TestEmergencyStopProperties:

    @given(operations())
    @settings(max_examples=200, deadline=None)
    def test_every_mutation_rejected_while_halted(self, op):
        name, *args = op
        if name in ("toggle_emergency_stop", "advance"):
            return
        ledger, _ = _halted_market()
        before = ledger_snapshot(ledger)
        with pytest.raises(EmergencyStop):
            getattr(ledger, name)(*args)
        assert ledger_snapshot(ledger) == before

    @given(st.integers(min_value=1, max_value=6))
    @settings(max_examples=20)
    def test_toggle_parity(self, toggles):
        ledger = make_market()
        for _ in range(toggles):
            ledger.toggle_emergency_stop("owner")
        assert ledger.emergency_stopped == (toggles % 2 == 1)
        assert ledger.is_active() == (toggles % 2 == 0)


class TestEmergencyStopEdgeCases:

    def test_halt_reported_before_authorization(self):
        ledger, _ = _halted_market()
        with pytest.raises(EmergencyStop):
            ledger.set_owner("mallory", "mallory")

    def test_only_owner_toggles(self):
        ledger, _ = _halted_market()
        with pytest.raises(NotAuthorized):
            ledger.toggle_emergency_stop("alice")
        assert ledger.emergency_stopped

    def test_queries_still_answer(self):
        ledger, loan_id = _halted_market()
        assert ledger.amount_owed(loan_id) == 1050
        assert not ledger.is_liquidatable(loan_id)
        assert ledger.get_fresh_price("STX") == 100

    def test_height_still_advances(self):
        ledger, _ = _halted_market()
        ledger.advance_height(500)
        assert ledger.current_height == 500

    def test_resume_restores_operations(self):
        ledger, loan_id = _halted_market()
        ledger.toggle_emergency_stop("owner")
        assert ledger.repay_loan("alice", loan_id, 1050) == 0

"""
test_reputation.py - Unit tests for the reputation tracker
"""

import pytest

from loan_ledger import (
    UserReputation, apply_outcome, update_reputation, clamp_score,
    REPUTATION_MAX, REPUTATION_MIN,
)
from tests.fake_view import FakeView


class TestApplyOutcome:

    def test_success_from_default(self):
        rep = apply_outcome(UserReputation("alice"), success=True, borrowed=1000)
        assert rep.score == 110
        assert rep.successful_repayments == 1
        assert rep.defaults == 0
        assert rep.total_borrowed == 1000

    def test_failure_from_default(self):
        rep = apply_outcome(UserReputation("alice"), success=False, borrowed=500)
        assert rep.score == 80
        assert rep.defaults == 1
        assert rep.successful_repayments == 0
        assert rep.total_borrowed == 500

    def test_success_caps_at_max(self):
        rep = apply_outcome(UserReputation("alice", score=195), success=True)
        assert rep.score == REPUTATION_MAX

    def test_failure_floors_at_min(self):
        rep = apply_outcome(UserReputation("alice", score=15), success=False)
        assert rep.score == REPUTATION_MIN

    def test_step_is_flat(self):
        small = apply_outcome(UserReputation("a"), success=False, borrowed=1)
        large = apply_outcome(UserReputation("a"), success=False, borrowed=10**12)
        assert small.score == large.score

    def test_input_unchanged(self):
        original = UserReputation("alice")
        apply_outcome(original, success=True)
        assert original.score == 100

    @pytest.mark.parametrize("raw,expected", [(-5, 0), (0, 0), (150, 150), (200, 200), (260, 200)])
    def test_clamp(self, raw, expected):
        assert clamp_score(raw) == expected


class TestUpdateReputation:

    def test_unseen_user_starts_at_default(self):
        rep = update_reputation(FakeView(), "bob", success=True)
        assert rep.user == "bob"
        assert rep.score == 110

    def test_reads_existing_record(self):
        view = FakeView(reputations=[UserReputation("bob", 3, 1, 5000, 150)])
        rep = update_reputation(view, "bob", success=False, borrowed=100)
        assert (rep.successful_repayments, rep.defaults, rep.total_borrowed, rep.score) == (3, 2, 5100, 130)

"""
reputation.py - Reputation Tracker

A user's score moves by flat steps on each loan closure, regardless of loan
size, and is clamped to [REPUTATION_MIN, REPUTATION_MAX].

update_reputation() has no deduplication. The loan lifecycle functions call
it exactly once per loan, at the moment the loan reaches a terminal state.
"""

from __future__ import annotations
from dataclasses import replace

from .core import (
    LedgerView, UserReputation,
    REPUTATION_MIN, REPUTATION_MAX,
    REPUTATION_SUCCESS_STEP, REPUTATION_FAILURE_STEP,
)


def clamp_score(score: int) -> int:
    return max(REPUTATION_MIN, min(REPUTATION_MAX, score))


def apply_outcome(reputation: UserReputation, success: bool, borrowed: int = 0) -> UserReputation:
    """
    Return the reputation after one loan outcome.

    PURE FUNCTION.

    Args:
        reputation: Current record
        success: True for a full repayment, False for a default or liquidation
        borrowed: Principal of the closed loan, added to total_borrowed

    Returns:
        New UserReputation with exactly one counter incremented
    """
    if success:
        return replace(
            reputation,
            successful_repayments=reputation.successful_repayments + 1,
            total_borrowed=reputation.total_borrowed + borrowed,
            score=clamp_score(reputation.score + REPUTATION_SUCCESS_STEP),
        )
    return replace(
        reputation,
        defaults=reputation.defaults + 1,
        total_borrowed=reputation.total_borrowed + borrowed,
        score=clamp_score(reputation.score - REPUTATION_FAILURE_STEP),
    )


def update_reputation(view: LedgerView, user: str, success: bool, borrowed: int = 0) -> UserReputation:
    """Read the user's record (defaults if unseen) and apply one outcome."""
    return apply_outcome(view.get_reputation(user), success, borrowed)

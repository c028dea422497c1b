"""
Core types and pure functions for the collateral-backed lending ledger.

This module provides the foundational data structures and protocols for the ledger:
1. Constants: staleness window, loan bounds, reputation bounds
2. Enums: LoanStatus with its transition table
3. Exceptions: LedgerError and the flat taxonomy of operation failures
4. Immutable records: Loan, UserLoans, UserReputation, PriceEntry
5. Configuration: RiskParameters
6. Change-sets: LedgerUpdate (what an operation writes), OperationRecord (audit)
7. Protocols: LedgerView for read-only ledger access

All arithmetic in the ledger is integer-only. Amounts are in the smallest
currency unit, prices are integers, interest rates are basis points.
No function in this module can mutate ledger state.
"""

from __future__ import annotations
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import (
    Any, Dict, FrozenSet, Optional, Protocol, Tuple, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# A price older than this many height units is stale.
MAX_PRICE_AGE = 1440

# Loan duration bounds, in height units.
MIN_DURATION = 144
MAX_DURATION = 52560

# Interest rates are expressed in basis points: 10000 = 100%.
BASIS_POINTS = 10000
MAX_INTEREST_RATE = 5000

# Collateral value as a percentage of principal, integer-truncated.
MIN_COLLATERAL_RATIO = 200

# Liquidation threshold as a percentage of the price at origination.
LIQUIDATION_THRESHOLD_PERCENT = 80

# Bounded collections.
MAX_LENDERS = 20
MAX_ACTIVE_LOANS = 20
MAX_ASSET_SYMBOL_LENGTH = 32

# Reputation score bounds and flat steps.
REPUTATION_MIN = 0
REPUTATION_MAX = 200
REPUTATION_DEFAULT = 100
REPUTATION_SUCCESS_STEP = 10
REPUTATION_FAILURE_STEP = 20


# ============================================================================
# ENUMS
# ============================================================================

class LoanStatus(Enum):
    """
    Lifecycle status of a loan.

    PENDING -> ACTIVE -> {REPAID | DEFAULTED | LIQUIDATED}

    The three terminal states are absorbing.
    """
    PENDING = "pending"
    ACTIVE = "active"
    REPAID = "repaid"
    DEFAULTED = "defaulted"
    LIQUIDATED = "liquidated"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    def can_transition_to(self, target: LoanStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self]


_TERMINAL_STATUSES: FrozenSet[LoanStatus] = frozenset({
    LoanStatus.REPAID, LoanStatus.DEFAULTED, LoanStatus.LIQUIDATED,
})

# Every status must appear as a key; terminal statuses map to the empty set.
ALLOWED_TRANSITIONS: Dict[LoanStatus, FrozenSet[LoanStatus]] = {
    LoanStatus.PENDING: frozenset({LoanStatus.ACTIVE}),
    LoanStatus.ACTIVE: frozenset({
        LoanStatus.REPAID, LoanStatus.DEFAULTED, LoanStatus.LIQUIDATED,
    }),
    LoanStatus.REPAID: frozenset(),
    LoanStatus.DEFAULTED: frozenset(),
    LoanStatus.LIQUIDATED: frozenset(),
}


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger operation failures."""
    pass


class NotAuthorized(LedgerError):
    """Raised when the caller lacks the identity an operation requires."""
    pass


class InvalidAmount(LedgerError):
    """Raised when an amount, identifier or bounded collection is out of range."""
    pass


class InsufficientCollateral(LedgerError):
    """Raised when the collateral ratio is below the minimum at origination."""
    pass


class LoanNotFound(LedgerError):
    """Raised when no loan exists with the given id."""
    pass


class LoanAlreadyActive(LedgerError):
    """Raised when activating a loan that is already active."""
    pass


class LoanNotActive(LedgerError):
    """Raised when an operation requires an active loan and the loan is not active."""
    pass


class LoanNotDefaulted(LedgerError):
    """Raised when marking a loan defaulted before its term has expired."""
    pass


class InvalidLiquidation(LedgerError):
    """Raised when liquidating a loan whose collateral is not below its threshold."""
    pass


class InvalidRepayment(LedgerError):
    """Raised when a repayment would exceed the amount owed."""
    pass


class InvalidDuration(LedgerError):
    """Raised when a loan duration is outside the allowed bounds."""
    pass


class InvalidInterestRate(LedgerError):
    """Raised when an interest rate exceeds the maximum."""
    pass


class EmergencyStop(LedgerError):
    """Raised when a mutating operation is attempted while the ledger is halted."""
    pass


class PriceFeedFailure(LedgerError):
    """Raised when no fresh price is available for an asset."""
    pass


class InvalidCollateralAsset(LedgerError):
    """Raised when an asset is not whitelisted as collateral."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def is_uint(value: Any) -> bool:
    """True for non-negative ints. Booleans are rejected."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def require_positive(name: str, value: Any) -> int:
    """Return value if it is a positive integer, else raise InvalidAmount."""
    if not is_uint(value) or value == 0:
        raise InvalidAmount(f"{name} must be a positive integer, got {value!r}")
    return value


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class RiskParameters:
    """
    Tunable risk settings of a ledger, fixed at construction.

    Defaults are the module constants. All values are integers in the
    ledger's own units (height units, basis points, percent).
    """
    max_price_age: int = MAX_PRICE_AGE
    min_duration: int = MIN_DURATION
    max_duration: int = MAX_DURATION
    max_interest_rate: int = MAX_INTEREST_RATE
    min_collateral_ratio: int = MIN_COLLATERAL_RATIO
    liquidation_threshold_percent: int = LIQUIDATION_THRESHOLD_PERCENT
    max_lenders: int = MAX_LENDERS
    max_active_loans: int = MAX_ACTIVE_LOANS

    def __post_init__(self):
        for f in fields(self):
            name, value = f.name, getattr(self, f.name)
            if not is_uint(value):
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if self.max_price_age == 0:
            raise ValueError("max_price_age must be positive")
        if self.min_duration > self.max_duration:
            raise ValueError(
                f"min_duration ({self.min_duration}) cannot exceed "
                f"max_duration ({self.max_duration})"
            )
        if self.max_interest_rate > BASIS_POINTS:
            raise ValueError(
                f"max_interest_rate cannot exceed {BASIS_POINTS}, got {self.max_interest_rate}"
            )
        if not 0 < self.liquidation_threshold_percent <= 100:
            raise ValueError(
                "liquidation_threshold_percent must be in (0, 100], "
                f"got {self.liquidation_threshold_percent}"
            )
        if self.max_lenders == 0 or self.max_active_loans == 0:
            raise ValueError("max_lenders and max_active_loans must be positive")


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Loan:
    """
    Immutable snapshot of a loan record.

    Each state change creates a NEW instance via dataclasses.replace().
    Terminal loans are retained, never deleted.

    Attributes:
        loan_id: Monotonically assigned identifier, never reused
        borrower: Identity that opened the loan and owes the debt
        amount: Principal, in the smallest currency unit
        collateral_amount: Collateral pledged, in the collateral asset's units
        collateral_asset: Whitelisted asset symbol
        interest_rate: Basis points charged flat over the term
        start_height: Height at which the loan became active (request height while pending)
        duration: Term length in height units
        status: Lifecycle status
        lenders: Ordered participant identities
        repaid_amount: Cumulative repayments
        liquidation_threshold: Collateral price below which the loan may be liquidated
    """
    loan_id: int
    borrower: str
    amount: int
    collateral_amount: int
    collateral_asset: str
    interest_rate: int
    start_height: int
    duration: int
    status: LoanStatus
    lenders: Tuple[str, ...] = ()
    repaid_amount: int = 0
    liquidation_threshold: int = 0

    def transition(self, target: LoanStatus) -> Loan:
        """Return a copy in the target status. Illegal transitions raise LoanNotActive."""
        if not self.status.can_transition_to(target):
            raise LoanNotActive(
                f"Loan {self.loan_id} cannot move from {self.status.value} to {target.value}"
            )
        return replace(self, status=target)

    def __repr__(self) -> str:
        return (
            f"Loan(#{self.loan_id} {self.status.value} {self.borrower}: "
            f"{self.amount} vs {self.collateral_amount} {self.collateral_asset})"
        )


@dataclass(frozen=True, slots=True)
class UserLoans:
    """Per-user index of currently active loan ids and outstanding principal."""
    user: str
    active_loans: Tuple[int, ...] = ()
    total_borrowed: int = 0


@dataclass(frozen=True, slots=True)
class UserReputation:
    """Per-user repayment history and bounded reputation score."""
    user: str
    successful_repayments: int = 0
    defaults: int = 0
    total_borrowed: int = 0
    score: int = REPUTATION_DEFAULT


@dataclass(frozen=True, slots=True)
class PriceEntry:
    """Last-known price of an asset and the height it was written at."""
    asset: str
    price: int
    last_updated: int


# ============================================================================
# CHANGE-SETS
# ============================================================================

@dataclass(frozen=True, slots=True)
class LedgerUpdate:
    """
    Everything one operation writes - represents INTENT.

    Built by the pure compute_* functions and committed by the ledger as a
    single unit. Records are self-keyed (loan_id, user, asset), so a
    change-set is simply the list of records to overwrite.

    Attributes:
        operation: Name of the operation that produced this update
        caller: Identity that invoked the operation
        loans: Loan records to write
        user_loans: Active-loan index entries to write
        reputations: Reputation records to write
        assets: (asset, active) whitelist flags to write
        prices: Price entries to write
        owner: New owner identity, if changed
        emergency_stop: New halt flag, if changed
        next_loan_id: New id counter value, if advanced
        result: Value returned to the caller on success
    """
    operation: str
    caller: str
    loans: Tuple[Loan, ...] = ()
    user_loans: Tuple[UserLoans, ...] = ()
    reputations: Tuple[UserReputation, ...] = ()
    assets: Tuple[Tuple[str, bool], ...] = ()
    prices: Tuple[PriceEntry, ...] = ()
    owner: Optional[str] = None
    emergency_stop: Optional[bool] = None
    next_loan_id: Optional[int] = None
    result: Any = True

    def is_empty(self) -> bool:
        return not (
            self.loans or self.user_loans or self.reputations or self.assets
            or self.prices or self.owner is not None
            or self.emergency_stop is not None or self.next_loan_id is not None
        )

    def __repr__(self) -> str:
        return (
            f"LedgerUpdate({self.operation} by {self.caller}: {len(self.loans)} loans, "
            f"{len(self.user_loans)} indices, {len(self.reputations)} reputations)"
        )


@dataclass(frozen=True, slots=True)
class OperationRecord:
    """Audit entry for one committed operation."""
    sequence: int
    height: int
    caller: str
    operation: str
    result: Any = None


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    The compute_* functions accept a LedgerView and never mutate it.
    LendingLedger implements this protocol; tests use FakeView.
    """

    @property
    def current_height(self) -> int:
        """Return the current logical height."""
        ...

    @property
    def owner(self) -> str:
        ...

    @property
    def emergency_stopped(self) -> bool:
        ...

    @property
    def next_loan_id(self) -> int:
        ...

    @property
    def params(self) -> RiskParameters:
        ...

    def get_loan(self, loan_id: int) -> Optional[Loan]:
        """Return the loan, or None if no loan has this id."""
        ...

    def get_user_loans(self, user: str) -> UserLoans:
        """Return the user's active-loan index (empty for unseen users)."""
        ...

    def get_reputation(self, user: str) -> UserReputation:
        """Return the user's reputation (defaults for unseen users)."""
        ...

    def get_price_entry(self, asset: str) -> Optional[PriceEntry]:
        ...

    def is_asset_allowed(self, asset: str) -> bool:
        ...


def require_loan(view: LedgerView, loan_id: int) -> Loan:
    """Return the loan or raise LoanNotFound."""
    loan = view.get_loan(loan_id) if is_uint(loan_id) else None
    if loan is None:
        raise LoanNotFound(f"Loan {loan_id!r} not found")
    return loan

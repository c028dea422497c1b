"""
loans.py - Loan Ledger: lifecycle state machine and collateral arithmetic

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Integers in, integers out; no LedgerView
   - Division truncates (floor), matching the reference arithmetic exactly

2. PREDICATES (is_*):
   - Read prices through get_fresh_price(), the only path time enters valuation

3. CHANGE-SET BUILDERS (compute_*):
   - Take (view, caller, ...), validate everything, return a LedgerUpdate
   - Never mutate; LendingLedger commits the update atomically

Lifecycle:
    PENDING -> ACTIVE -> {REPAID | DEFAULTED | LIQUIDATED}

Key Formulas:
    collateral_ratio = collateral_amount * 100 // amount        (must be >= 200)
    liquidation_threshold = price * 80 // 100                   (at activation)
    interest = amount * interest_rate // 10000                  (flat, whole term)
    amount_owed = amount + interest
    liquidatable <=> ACTIVE and fresh price < liquidation_threshold

The asymmetry between creation and liquidation is deliberate: an unreadable
price aborts creation with PriceFeedFailure, but makes a loan "not
liquidatable" rather than failing the check.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Tuple

from .core import (
    LedgerView, LedgerUpdate, Loan, LoanStatus, UserLoans,
    BASIS_POINTS, MIN_COLLATERAL_RATIO, LIQUIDATION_THRESHOLD_PERCENT,
    InvalidAmount, InsufficientCollateral, InvalidDuration, InvalidInterestRate,
    InvalidCollateralAsset, InvalidLiquidation, InvalidRepayment,
    LoanAlreadyActive, LoanNotActive, LoanNotDefaulted, NotAuthorized,
    PriceFeedFailure,
    is_uint, require_positive, require_loan,
)
from .access import require_owner
from .assets import validate_asset_symbol
from .pricing_source import get_fresh_price
from .reputation import update_reputation


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_collateral_ratio(collateral_amount: int, loan_amount: int) -> int:
    """
    Collateral as an integer percentage of principal.

    PURE FUNCTION. Truncating division: (collateral * 100) // loan_amount.
    Never compared as a fraction.

    Raises:
        InvalidAmount: If loan_amount is not positive
    """
    require_positive("loan amount", loan_amount)
    return (collateral_amount * 100) // loan_amount


def is_collateral_sufficient(
    collateral_amount: int,
    loan_amount: int,
    min_ratio: int = MIN_COLLATERAL_RATIO,
) -> bool:
    return calculate_collateral_ratio(collateral_amount, loan_amount) >= min_ratio


def calculate_liquidation_threshold(price: int, percent: int = LIQUIDATION_THRESHOLD_PERCENT) -> int:
    return (price * percent) // 100


def calculate_interest(amount: int, interest_rate: int) -> int:
    """Flat interest for the whole term, truncated."""
    return (amount * interest_rate) // BASIS_POINTS


def calculate_amount_owed(loan: Loan) -> int:
    """Principal plus interest, before repayments."""
    return loan.amount + calculate_interest(loan.amount, loan.interest_rate)


def calculate_outstanding(loan: Loan) -> int:
    """What is still owed after repayments."""
    return calculate_amount_owed(loan) - loan.repaid_amount


def calculate_expiry_height(loan: Loan) -> int:
    return loan.start_height + loan.duration


# ============================================================================
# PREDICATES
# ============================================================================

def is_expired(loan: Loan, height: int) -> bool:
    return height >= calculate_expiry_height(loan)


def is_collateral_above_liquidation_threshold(view: LedgerView, loan: Loan) -> bool:
    """
    True while the fresh collateral price is at or above the loan's threshold.

    Raises:
        PriceFeedFailure: If no fresh price is available
    """
    price = get_fresh_price(view, loan.collateral_asset)
    return price >= loan.liquidation_threshold


def is_liquidatable(view: LedgerView, loan: Loan) -> bool:
    """
    True iff the loan is active and its collateral has provably fallen below
    the threshold.

    A stale or missing price returns False: liquidation requires fresh data.
    """
    if loan.status is not LoanStatus.ACTIVE:
        return False
    try:
        return not is_collateral_above_liquidation_threshold(view, loan)
    except PriceFeedFailure:
        return False


# ============================================================================
# VALIDATION
# ============================================================================

def validate_loan_terms(
    view: LedgerView,
    amount: int,
    collateral_amount: int,
    collateral_asset: str,
    interest_rate: int,
    duration: int,
) -> None:
    """
    Validate origination terms against the view's risk parameters.

    Raises:
        InvalidAmount: Non-positive principal, negative collateral or a malformed asset symbol
        InvalidDuration: duration outside [min_duration, max_duration]
        InvalidInterestRate: interest_rate above max_interest_rate
        InvalidCollateralAsset: asset not whitelisted
        InsufficientCollateral: collateral ratio below the minimum (zero collateral included)
    """
    params = view.params
    require_positive("amount", amount)
    if not is_uint(collateral_amount):
        raise InvalidAmount(f"collateral amount must be a non-negative integer, got {collateral_amount!r}")
    validate_asset_symbol(collateral_asset)

    if not is_uint(duration) or not params.min_duration <= duration <= params.max_duration:
        raise InvalidDuration(
            f"duration must be in [{params.min_duration}, {params.max_duration}], got {duration!r}"
        )
    if not is_uint(interest_rate) or interest_rate > params.max_interest_rate:
        raise InvalidInterestRate(
            f"interest rate must be at most {params.max_interest_rate}, got {interest_rate!r}"
        )
    if not view.is_asset_allowed(collateral_asset):
        raise InvalidCollateralAsset(f"asset {collateral_asset} is not whitelisted")

    ratio = calculate_collateral_ratio(collateral_amount, amount)
    if ratio < params.min_collateral_ratio:
        raise InsufficientCollateral(
            f"collateral ratio {ratio}% below minimum {params.min_collateral_ratio}%"
        )


def _require_index_room(view: LedgerView, user: str) -> None:
    if len(view.get_user_loans(user).active_loans) >= view.params.max_active_loans:
        raise InvalidAmount(
            f"{user} already has {view.params.max_active_loans} active loans"
        )


# ============================================================================
# ACTIVE-LOAN INDEX
# ============================================================================

def _open_in_index(view: LedgerView, loan: Loan) -> UserLoans:
    index = view.get_user_loans(loan.borrower)
    return replace(
        index,
        active_loans=index.active_loans + (loan.loan_id,),
        total_borrowed=index.total_borrowed + loan.amount,
    )


def _close_in_index(view: LedgerView, loan: Loan) -> UserLoans:
    index = view.get_user_loans(loan.borrower)
    return replace(
        index,
        active_loans=tuple(i for i in index.active_loans if i != loan.loan_id),
        total_borrowed=max(0, index.total_borrowed - loan.amount),
    )


def _close_loan(
    view: LedgerView,
    loan: Loan,
    target: LoanStatus,
    caller: str,
    operation: str,
    result=True,
) -> LedgerUpdate:
    """
    Build the change-set for a terminal transition.

    Loan status, the borrower's index and the borrower's reputation are
    written together. This is the only caller of update_reputation().
    """
    closed = loan.transition(target)
    reputation = update_reputation(
        view, loan.borrower, success=target is LoanStatus.REPAID, borrowed=loan.amount
    )
    return LedgerUpdate(
        operation=operation,
        caller=caller,
        loans=(closed,),
        user_loans=(_close_in_index(view, loan),),
        reputations=(reputation,),
        result=result,
    )


# ============================================================================
# CHANGE-SET BUILDERS
# ============================================================================

def compute_create_loan(
    view: LedgerView,
    caller: str,
    amount: int,
    collateral_amount: int,
    collateral_asset: str,
    interest_rate: int,
    duration: int,
) -> LedgerUpdate:
    """
    Open an active loan for caller.

    Requires a fresh collateral price to record the liquidation threshold;
    a stale or missing price aborts creation.

    Returns:
        LedgerUpdate whose result is the new loan id

    Raises:
        InvalidAmount, InvalidDuration, InvalidInterestRate,
        InvalidCollateralAsset, InsufficientCollateral: see validate_loan_terms()
        InvalidAmount: If caller already has the maximum number of active loans
        PriceFeedFailure: If the collateral asset has no fresh price

    Example:
        update = compute_create_loan(view, "alice", 1000, 2000, "STX", 500, 1440)
        ledger._commit(update)  # LendingLedger.create_loan() does this
    """
    validate_loan_terms(view, amount, collateral_amount, collateral_asset, interest_rate, duration)
    _require_index_room(view, caller)
    price = get_fresh_price(view, collateral_asset)

    loan_id = view.next_loan_id
    loan = Loan(
        loan_id=loan_id,
        borrower=caller,
        amount=amount,
        collateral_amount=collateral_amount,
        collateral_asset=collateral_asset,
        interest_rate=interest_rate,
        start_height=view.current_height,
        duration=duration,
        status=LoanStatus.ACTIVE,
        liquidation_threshold=calculate_liquidation_threshold(
            price, view.params.liquidation_threshold_percent
        ),
    )
    return LedgerUpdate(
        operation="create_loan",
        caller=caller,
        loans=(loan,),
        user_loans=(_open_in_index(view, loan),),
        next_loan_id=loan_id + 1,
        result=loan_id,
    )


def compute_request_loan(
    view: LedgerView,
    caller: str,
    amount: int,
    collateral_amount: int,
    collateral_asset: str,
    interest_rate: int,
    duration: int,
) -> LedgerUpdate:
    """
    Record a pending loan awaiting a lender.

    Same term validation as compute_create_loan() but no price read; the
    threshold is recorded when the loan is funded.
    """
    validate_loan_terms(view, amount, collateral_amount, collateral_asset, interest_rate, duration)

    loan_id = view.next_loan_id
    loan = Loan(
        loan_id=loan_id,
        borrower=caller,
        amount=amount,
        collateral_amount=collateral_amount,
        collateral_asset=collateral_asset,
        interest_rate=interest_rate,
        start_height=view.current_height,
        duration=duration,
        status=LoanStatus.PENDING,
    )
    return LedgerUpdate(
        operation="request_loan",
        caller=caller,
        loans=(loan,),
        next_loan_id=loan_id + 1,
        result=loan_id,
    )


def _with_lender(view: LedgerView, loan: Loan, lender: str) -> Tuple[str, ...]:
    if lender in loan.lenders:
        return loan.lenders
    if len(loan.lenders) >= view.params.max_lenders:
        raise InvalidAmount(f"loan {loan.loan_id} already has {view.params.max_lenders} lenders")
    return loan.lenders + (lender,)


def compute_fund_loan(view: LedgerView, caller: str, loan_id: int) -> LedgerUpdate:
    """
    Activate a pending loan with caller as lender.

    The term starts at the funding height and the liquidation threshold is
    taken from the current fresh price.

    Raises:
        LoanNotFound: Unknown loan id
        NotAuthorized: caller is the borrower
        LoanAlreadyActive: loan is already active
        LoanNotActive: loan is terminal
        InvalidCollateralAsset: asset was de-listed since the request
        InvalidAmount: borrower's active index or the lender list is full
        PriceFeedFailure: no fresh collateral price
    """
    loan = require_loan(view, loan_id)
    if caller == loan.borrower:
        raise NotAuthorized(f"borrower cannot fund their own loan {loan_id}")
    if loan.status is LoanStatus.ACTIVE:
        raise LoanAlreadyActive(f"loan {loan_id} is already active")
    if loan.status is not LoanStatus.PENDING:
        raise LoanNotActive(f"loan {loan_id} is {loan.status.value}")
    if not view.is_asset_allowed(loan.collateral_asset):
        raise InvalidCollateralAsset(f"asset {loan.collateral_asset} is not whitelisted")
    _require_index_room(view, loan.borrower)
    lenders = _with_lender(view, loan, caller)
    price = get_fresh_price(view, loan.collateral_asset)

    activated = replace(
        loan.transition(LoanStatus.ACTIVE),
        start_height=view.current_height,
        lenders=lenders,
        liquidation_threshold=calculate_liquidation_threshold(
            price, view.params.liquidation_threshold_percent
        ),
    )
    return LedgerUpdate(
        operation="fund_loan",
        caller=caller,
        loans=(activated,),
        user_loans=(_open_in_index(view, activated),),
    )


def compute_add_lender(view: LedgerView, caller: str, loan_id: int) -> LedgerUpdate:
    """Record caller as a participating lender of a pending or active loan."""
    loan = require_loan(view, loan_id)
    if loan.status.is_terminal:
        raise LoanNotActive(f"loan {loan_id} is {loan.status.value}")
    if caller == loan.borrower:
        raise NotAuthorized(f"borrower cannot lend to their own loan {loan_id}")
    if caller in loan.lenders:
        raise InvalidAmount(f"{caller} is already a lender of loan {loan_id}")
    updated = replace(loan, lenders=_with_lender(view, loan, caller))
    return LedgerUpdate(operation="add_lender", caller=caller, loans=(updated,))


def compute_repayment(view: LedgerView, caller: str, loan_id: int, amount: int) -> LedgerUpdate:
    """
    Apply a repayment from the borrower.

    When the outstanding amount reaches zero the loan becomes REPAID, leaves
    the borrower's active index, and the borrower's reputation improves.

    Returns:
        LedgerUpdate whose result is the amount still outstanding

    Raises:
        LoanNotFound, LoanNotActive, NotAuthorized, InvalidAmount
        InvalidRepayment: If amount exceeds what is outstanding
    """
    loan = require_loan(view, loan_id)
    if loan.status is not LoanStatus.ACTIVE:
        raise LoanNotActive(f"loan {loan_id} is {loan.status.value}")
    if caller != loan.borrower:
        raise NotAuthorized(f"only the borrower can repay loan {loan_id}")
    require_positive("repayment", amount)

    outstanding = calculate_outstanding(loan)
    if amount > outstanding:
        raise InvalidRepayment(
            f"repayment {amount} exceeds outstanding {outstanding} on loan {loan_id}"
        )

    repaid = replace(loan, repaid_amount=loan.repaid_amount + amount)
    remaining = outstanding - amount
    if remaining == 0:
        return _close_loan(view, repaid, LoanStatus.REPAID, caller, "repay_loan", result=0)
    return LedgerUpdate(operation="repay_loan", caller=caller, loans=(repaid,), result=remaining)


def compute_liquidation(view: LedgerView, caller: str, loan_id: int) -> LedgerUpdate:
    """
    Liquidate an active loan whose collateral price fell below its threshold.

    Any caller may liquidate.

    Raises:
        LoanNotFound, LoanNotActive
        InvalidLiquidation: If the price is at or above the threshold, or stale
    """
    loan = require_loan(view, loan_id)
    if loan.status is not LoanStatus.ACTIVE:
        raise LoanNotActive(f"loan {loan_id} is {loan.status.value}")
    if not is_liquidatable(view, loan):
        raise InvalidLiquidation(
            f"loan {loan_id} collateral is not provably below threshold {loan.liquidation_threshold}"
        )
    return _close_loan(view, loan, LoanStatus.LIQUIDATED, caller, "liquidate_loan")


def compute_default(view: LedgerView, caller: str, loan_id: int) -> LedgerUpdate:
    """
    Mark an active loan defaulted once its term has expired unpaid.

    Raises:
        LoanNotFound, LoanNotActive
        LoanNotDefaulted: If the current height is before start + duration
    """
    loan = require_loan(view, loan_id)
    if loan.status is not LoanStatus.ACTIVE:
        raise LoanNotActive(f"loan {loan_id} is {loan.status.value}")
    if not is_expired(loan, view.current_height):
        raise LoanNotDefaulted(
            f"loan {loan_id} runs until height {calculate_expiry_height(loan)}, "
            f"current height is {view.current_height}"
        )
    return _close_loan(view, loan, LoanStatus.DEFAULTED, caller, "mark_defaulted")


def compute_refresh_liquidation_threshold(view: LedgerView, caller: str, loan_id: int) -> LedgerUpdate:
    """
    Re-derive an active loan's threshold from the current fresh price.

    Returns:
        LedgerUpdate whose result is the new threshold
    """
    require_owner(view, caller, "refresh_liquidation_threshold")
    loan = require_loan(view, loan_id)
    if loan.status is not LoanStatus.ACTIVE:
        raise LoanNotActive(f"loan {loan_id} is {loan.status.value}")
    price = get_fresh_price(view, loan.collateral_asset)
    threshold = calculate_liquidation_threshold(price, view.params.liquidation_threshold_percent)
    return LedgerUpdate(
        operation="refresh_liquidation_threshold",
        caller=caller,
        loans=(replace(loan, liquidation_threshold=threshold),),
        result=threshold,
    )

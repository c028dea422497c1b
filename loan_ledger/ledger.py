"""
ledger.py - Stateful Lending Ledger Engine

The LendingLedger class is the engine context object for the lending system.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Exposes the operation surface, each method wrapped by the access guard
    - Commits LedgerUpdates atomically (every record is written or none is)
    - Owns the logical height and the three global singletons
    - Always logs committed operations
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Set
import threading

from .core import (
    # Types
    Loan, LoanStatus, UserLoans, UserReputation, PriceEntry,
    RiskParameters, LedgerUpdate, OperationRecord,
    # Helpers
    require_loan,
)
from .access import (
    guarded, is_authorized as _is_authorized, is_active as _is_active,
    compute_set_owner, compute_toggle_emergency_stop,
)
from .assets import compute_add_asset, compute_remove_asset
from .pricing_source import compute_update_price, get_fresh_price as _get_fresh_price
from .loans import (
    compute_create_loan, compute_request_loan, compute_fund_loan, compute_add_lender,
    compute_repayment, compute_liquidation, compute_default,
    compute_refresh_liquidation_threshold,
    calculate_outstanding, is_liquidatable as _is_liquidatable,
)


class LendingLedger:
    """
    Collateral-backed lending ledger with access gate and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to
    the pure compute_* functions that build change-sets.

    Design Principles:
        - Always validates: every operation runs its full validation before
          any write; a failed operation leaves no trace.
        - Always logs: every committed operation is recorded in operation_log.

    Thread Safety:
        Every mutating operation runs under a single re-entrant lock, so
        operations from several threads are serialized.

    Example:
        ledger = LendingLedger("main", owner="admin", verbose=False)
        ledger.add_asset("admin", "STX")
        ledger.advance_height(10)
        ledger.update_price("admin", "STX", 100)
        loan_id = ledger.create_loan("alice", 1000, 2000, "STX", 500, 1440)
        ledger.repay_loan("alice", loan_id, 1050)
    """

    def __init__(
        self,
        name: str,
        owner: str,
        initial_height: int = 0,
        params: Optional[RiskParameters] = None,
        verbose: bool = True,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            owner: Initial owner identity
            initial_height: Starting logical height (default: 0)
            params: Risk parameters (default: RiskParameters())
            verbose: Print applied and rejected operations (default: True)
        """
        if not owner or not owner.strip():
            raise ValueError("owner cannot be empty")
        if initial_height < 0:
            raise ValueError(f"initial_height cannot be negative, got {initial_height}")
        self.name = name
        self.verbose = verbose
        self._params = params or RiskParameters()
        self._current_height = initial_height
        self._owner = owner
        self._emergency_stop = False
        self._next_loan_id = 1
        self.loans: Dict[int, Loan] = {}
        self.user_loans: Dict[str, UserLoans] = {}
        self.reputations: Dict[str, UserReputation] = {}
        self.assets: Dict[str, bool] = {}
        self.prices: Dict[str, PriceEntry] = {}
        self.operation_log: List[OperationRecord] = []
        self._lock = threading.RLock()

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_height(self) -> int:
        return self._current_height

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def emergency_stopped(self) -> bool:
        return self._emergency_stop

    @property
    def next_loan_id(self) -> int:
        return self._next_loan_id

    @property
    def params(self) -> RiskParameters:
        return self._params

    def get_loan(self, loan_id: int) -> Optional[Loan]:
        return self.loans.get(loan_id)

    def get_user_loans(self, user: str) -> UserLoans:
        return self.user_loans.get(user) or UserLoans(user=user)

    def get_reputation(self, user: str) -> UserReputation:
        return self.reputations.get(user) or UserReputation(user=user)

    def get_price_entry(self, asset: str) -> Optional[PriceEntry]:
        return self.prices.get(asset)

    def is_asset_allowed(self, asset: str) -> bool:
        return self.assets.get(asset, False)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def is_authorized(self, caller: str) -> bool:
        return _is_authorized(self, caller)

    def is_active(self) -> bool:
        return _is_active(self)

    def is_allowed(self, asset: str) -> bool:
        return self.is_asset_allowed(asset)

    def get_fresh_price(self, asset: str) -> int:
        """Fresh price at the current height; raises PriceFeedFailure otherwise."""
        return _get_fresh_price(self, asset)

    def is_liquidatable(self, loan_id: int) -> bool:
        return _is_liquidatable(self, require_loan(self, loan_id))

    def amount_owed(self, loan_id: int) -> int:
        """Principal plus interest not yet repaid (0 once repaid)."""
        return calculate_outstanding(require_loan(self, loan_id))

    def list_loans(self, status: Optional[LoanStatus] = None) -> List[Loan]:
        """All loans in id order, optionally filtered by status."""
        return [
            self.loans[i] for i in sorted(self.loans)
            if status is None or self.loans[i].status is status
        ]

    def list_users(self) -> Set[str]:
        return set(self.user_loans) | set(self.reputations)

    # ========================================================================
    # HEIGHT MANAGEMENT
    # ========================================================================

    def advance_height(self, new_height: int) -> None:
        """
        Advance the logical clock. Height can only move forward.

        Raises:
            ValueError: If new_height is below the current height
        """
        with self._lock:
            if new_height < self._current_height:
                raise ValueError(
                    f"Cannot move height backwards: {new_height} < {self._current_height}"
                )
            self._current_height = new_height

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    @guarded("set_owner", owner_only=True)
    def set_owner(self, caller: str, new_owner: str) -> str:
        return self._commit(compute_set_owner(self, caller, new_owner))

    @guarded("toggle_emergency_stop", owner_only=True, halt_exempt=True)
    def toggle_emergency_stop(self, caller: str) -> bool:
        """Flip the halt flag and return its new value. Callable while halted."""
        return self._commit(compute_toggle_emergency_stop(self, caller))

    @guarded("add_asset", owner_only=True)
    def add_asset(self, caller: str, asset: str) -> bool:
        return self._commit(compute_add_asset(self, caller, asset))

    @guarded("remove_asset", owner_only=True)
    def remove_asset(self, caller: str, asset: str) -> bool:
        return self._commit(compute_remove_asset(self, caller, asset))

    @guarded("update_price", owner_only=True)
    def update_price(self, caller: str, asset: str, price: int) -> bool:
        return self._commit(compute_update_price(self, caller, asset, price))

    @guarded("create_loan")
    def create_loan(
        self,
        caller: str,
        amount: int,
        collateral_amount: int,
        collateral_asset: str,
        interest_rate: int,
        duration: int,
    ) -> int:
        """Open an active loan for caller. Returns the new loan id."""
        return self._commit(compute_create_loan(
            self, caller, amount, collateral_amount, collateral_asset, interest_rate, duration
        ))

    @guarded("request_loan")
    def request_loan(
        self,
        caller: str,
        amount: int,
        collateral_amount: int,
        collateral_asset: str,
        interest_rate: int,
        duration: int,
    ) -> int:
        """Record a pending loan for caller. Returns the new loan id."""
        return self._commit(compute_request_loan(
            self, caller, amount, collateral_amount, collateral_asset, interest_rate, duration
        ))

    @guarded("fund_loan")
    def fund_loan(self, caller: str, loan_id: int) -> bool:
        return self._commit(compute_fund_loan(self, caller, loan_id))

    @guarded("add_lender")
    def add_lender(self, caller: str, loan_id: int) -> bool:
        return self._commit(compute_add_lender(self, caller, loan_id))

    @guarded("repay_loan")
    def repay_loan(self, caller: str, loan_id: int, amount: int) -> int:
        """Repay part or all of a loan. Returns the amount still outstanding."""
        return self._commit(compute_repayment(self, caller, loan_id, amount))

    @guarded("liquidate_loan")
    def liquidate_loan(self, caller: str, loan_id: int) -> bool:
        return self._commit(compute_liquidation(self, caller, loan_id))

    @guarded("mark_defaulted")
    def mark_defaulted(self, caller: str, loan_id: int) -> bool:
        return self._commit(compute_default(self, caller, loan_id))

    @guarded("refresh_liquidation_threshold", owner_only=True)
    def refresh_liquidation_threshold(self, caller: str, loan_id: int) -> int:
        """Re-derive an active loan's threshold from the fresh price. Returns it."""
        return self._commit(compute_refresh_liquidation_threshold(self, caller, loan_id))

    # ========================================================================
    # COMMIT
    # ========================================================================

    def _commit(self, update: LedgerUpdate) -> Any:
        """
        Write every record of a validated change-set and log it.

        Nothing here can fail: compute_* functions have already validated,
        so the writes below are applied as one unit.

        Returns:
            update.result
        """
        for loan in update.loans:
            self.loans[loan.loan_id] = loan
        for index in update.user_loans:
            self.user_loans[index.user] = index
        for reputation in update.reputations:
            self.reputations[reputation.user] = reputation
        for asset, active in update.assets:
            self.assets[asset] = active
        for entry in update.prices:
            self.prices[entry.asset] = entry
        if update.owner is not None:
            self._owner = update.owner
        if update.emergency_stop is not None:
            self._emergency_stop = update.emergency_stop
        if update.next_loan_id is not None:
            self._next_loan_id = update.next_loan_id

        record = OperationRecord(
            sequence=len(self.operation_log),
            height=self._current_height,
            caller=update.caller,
            operation=update.operation,
            result=update.result,
        )
        self.operation_log.append(record)

        if self.verbose:
            print(
                f"✓ APPLIED {update.operation} by {update.caller} "
                f"@ height {self._current_height} -> {update.result!r}"
            )
        return update.result

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> LendingLedger:
        """
        Create an independent copy of this ledger.

        Records are frozen dataclasses, so copying the maps is enough for
        full independence.
        """
        with self._lock:
            cloned = LendingLedger.__new__(LendingLedger)
            cloned.name = self.name
            cloned.verbose = self.verbose
            cloned._params = self._params
            cloned._current_height = self._current_height
            cloned._owner = self._owner
            cloned._emergency_stop = self._emergency_stop
            cloned._next_loan_id = self._next_loan_id
            cloned.loans = dict(self.loans)
            cloned.user_loans = dict(self.user_loans)
            cloned.reputations = dict(self.reputations)
            cloned.assets = dict(self.assets)
            cloned.prices = dict(self.prices)
            cloned.operation_log = list(self.operation_log)
            cloned._lock = threading.RLock()
            return cloned

    def __repr__(self) -> str:
        return (
            f"LendingLedger({self.name!r}, owner={self._owner!r}, height={self._current_height}, "
            f"loans={len(self.loans)}, halted={self._emergency_stop})"
        )

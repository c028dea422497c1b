"""
loan_ledger - Collateral-Backed Lending Ledger

Tracks loans, enforces collateralization and price-gated liquidation against a
cached price feed, and maintains per-user reputation, all behind an owner
access gate and an emergency halt.

Usage:
    from loan_ledger import LendingLedger

    ledger = LendingLedger("main", owner="admin", verbose=False)
    ledger.add_asset("admin", "STX")
    ledger.advance_height(10)
    ledger.update_price("admin", "STX", 100)

    loan_id = ledger.create_loan("alice", 1000, 2000, "STX", 500, 1440)
    ledger.repay_loan("alice", loan_id, 1050)
"""

# Core types
from .core import (
    LoanStatus,
    ALLOWED_TRANSITIONS,
    Loan,
    UserLoans,
    UserReputation,
    PriceEntry,
    RiskParameters,
    LedgerUpdate,
    OperationRecord,
    LedgerView,
    require_loan,
    # Errors
    LedgerError,
    NotAuthorized,
    InvalidAmount,
    InsufficientCollateral,
    LoanNotFound,
    LoanAlreadyActive,
    LoanNotActive,
    LoanNotDefaulted,
    InvalidLiquidation,
    InvalidRepayment,
    InvalidDuration,
    InvalidInterestRate,
    EmergencyStop,
    PriceFeedFailure,
    InvalidCollateralAsset,
    # Constants
    MAX_PRICE_AGE,
    MIN_DURATION,
    MAX_DURATION,
    BASIS_POINTS,
    MAX_INTEREST_RATE,
    MIN_COLLATERAL_RATIO,
    LIQUIDATION_THRESHOLD_PERCENT,
    MAX_LENDERS,
    MAX_ACTIVE_LOANS,
    MAX_ASSET_SYMBOL_LENGTH,
    REPUTATION_MIN,
    REPUTATION_MAX,
    REPUTATION_DEFAULT,
    REPUTATION_SUCCESS_STEP,
    REPUTATION_FAILURE_STEP,
)

# Ledger
from .ledger import LendingLedger

# Access gate
from .access import (
    guarded,
    is_authorized,
    is_active,
    require_owner,
    compute_set_owner,
    compute_toggle_emergency_stop,
)

# Asset registry
from .assets import (
    validate_asset_symbol,
    is_allowed,
    compute_add_asset,
    compute_remove_asset,
)

# Price oracle cache and feeds
from .pricing_source import (
    read_fresh_price,
    get_fresh_price,
    compute_update_price,
    PriceFeed,
    StaticPriceFeed,
    HeightSeriesPriceFeed,
    publish_prices,
)

# Reputation
from .reputation import (
    clamp_score,
    apply_outcome,
    update_reputation,
)

# Loans
from .loans import (
    calculate_collateral_ratio,
    is_collateral_sufficient,
    calculate_liquidation_threshold,
    calculate_interest,
    calculate_amount_owed,
    calculate_outstanding,
    calculate_expiry_height,
    is_expired,
    is_collateral_above_liquidation_threshold,
    is_liquidatable,
    validate_loan_terms,
    compute_create_loan,
    compute_request_loan,
    compute_fund_loan,
    compute_add_lender,
    compute_repayment,
    compute_liquidation,
    compute_default,
    compute_refresh_liquidation_threshold,
)

__all__ = [
    # Core
    'LoanStatus', 'ALLOWED_TRANSITIONS', 'Loan', 'UserLoans', 'UserReputation',
    'PriceEntry', 'RiskParameters', 'LedgerUpdate', 'OperationRecord', 'LedgerView',
    'require_loan',
    # Errors
    'LedgerError', 'NotAuthorized', 'InvalidAmount', 'InsufficientCollateral',
    'LoanNotFound', 'LoanAlreadyActive', 'LoanNotActive', 'LoanNotDefaulted',
    'InvalidLiquidation', 'InvalidRepayment', 'InvalidDuration', 'InvalidInterestRate',
    'EmergencyStop', 'PriceFeedFailure', 'InvalidCollateralAsset',
    # Constants
    'MAX_PRICE_AGE', 'MIN_DURATION', 'MAX_DURATION', 'BASIS_POINTS', 'MAX_INTEREST_RATE',
    'MIN_COLLATERAL_RATIO', 'LIQUIDATION_THRESHOLD_PERCENT', 'MAX_LENDERS',
    'MAX_ACTIVE_LOANS', 'MAX_ASSET_SYMBOL_LENGTH', 'REPUTATION_MIN', 'REPUTATION_MAX',
    'REPUTATION_DEFAULT', 'REPUTATION_SUCCESS_STEP', 'REPUTATION_FAILURE_STEP',
    # Ledger
    'LendingLedger',
    # Access gate
    'guarded', 'is_authorized', 'is_active', 'require_owner',
    'compute_set_owner', 'compute_toggle_emergency_stop',
    # Asset registry
    'validate_asset_symbol', 'is_allowed', 'compute_add_asset', 'compute_remove_asset',
    # Pricing
    'read_fresh_price', 'get_fresh_price', 'compute_update_price',
    'PriceFeed', 'StaticPriceFeed', 'HeightSeriesPriceFeed', 'publish_prices',
    # Reputation
    'clamp_score', 'apply_outcome', 'update_reputation',
    # Loans
    'calculate_collateral_ratio', 'is_collateral_sufficient',
    'calculate_liquidation_threshold', 'calculate_interest', 'calculate_amount_owed',
    'calculate_outstanding', 'calculate_expiry_height', 'is_expired',
    'is_collateral_above_liquidation_threshold', 'is_liquidatable', 'validate_loan_terms',
    'compute_create_loan', 'compute_request_loan', 'compute_fund_loan',
    'compute_add_lender', 'compute_repayment', 'compute_liquidation',
    'compute_default', 'compute_refresh_liquidation_threshold',
]

__version__ = '1.0.0'

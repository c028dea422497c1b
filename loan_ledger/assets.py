"""
assets.py - Asset Registry: the collateral whitelist

Assets are soft-deleted: remove_asset clears the active flag but keeps the
entry, so past loans that reference the asset keep a meaningful symbol.
"""

from __future__ import annotations

from .core import (
    LedgerView, LedgerUpdate,
    InvalidAmount,
    MAX_ASSET_SYMBOL_LENGTH,
)
from .access import require_owner


def validate_asset_symbol(asset: str) -> str:
    """Return asset if it is a non-empty, bounded-length symbol, else raise InvalidAmount."""
    if not isinstance(asset, str) or not asset.strip():
        raise InvalidAmount("asset symbol cannot be empty")
    if len(asset) > MAX_ASSET_SYMBOL_LENGTH:
        raise InvalidAmount(
            f"asset symbol longer than {MAX_ASSET_SYMBOL_LENGTH} characters: {asset!r}"
        )
    return asset


def is_allowed(view: LedgerView, asset: str) -> bool:
    """Whitelist lookup. Unknown assets are not allowed."""
    return view.is_asset_allowed(asset)


def _compute_set_asset(view: LedgerView, caller: str, asset: str, active: bool, operation: str) -> LedgerUpdate:
    require_owner(view, caller, operation)
    validate_asset_symbol(asset)
    return LedgerUpdate(operation=operation, caller=caller, assets=((asset, active),))


def compute_add_asset(view: LedgerView, caller: str, asset: str) -> LedgerUpdate:
    """Whitelist asset. Re-adding an active asset succeeds."""
    return _compute_set_asset(view, caller, asset, True, "add_asset")


def compute_remove_asset(view: LedgerView, caller: str, asset: str) -> LedgerUpdate:
    """De-list asset. Removing an inactive or unknown asset succeeds."""
    return _compute_set_asset(view, caller, asset, False, "remove_asset")

"""
access.py - Access Gate: owner identity and emergency halt

Every mutating LendingLedger method is wrapped by guarded(), which:
    1. Serializes the call under the ledger's single-writer lock
    2. Rejects the call with EmergencyStop while halted (unless halt_exempt)
    3. Rejects non-owner callers with NotAuthorized (if owner_only)
    4. Reports rejections when verbose, then re-raises

The compute_* functions here build the change-sets for the two
administrative operations that touch the gate itself.
"""

from __future__ import annotations
from functools import wraps
from typing import Any, Callable, TypeVar

from .core import (
    LedgerView, LedgerUpdate, LedgerError,
    NotAuthorized, InvalidAmount, EmergencyStop,
)


F = TypeVar("F", bound=Callable[..., Any])


def is_authorized(view: LedgerView, caller: str) -> bool:
    """True iff caller is the current owner."""
    return caller == view.owner


def is_active(view: LedgerView) -> bool:
    """True iff the emergency halt is not set."""
    return not view.emergency_stopped


def require_owner(view: LedgerView, caller: str, operation: str) -> None:
    """Raise NotAuthorized unless caller is the current owner."""
    if not is_authorized(view, caller):
        raise NotAuthorized(f"{operation} requires the owner, called by {caller!r}")


def guarded(operation: str, owner_only: bool = False, halt_exempt: bool = False) -> Callable[[F], F]:
    """
    Decorate a ledger method taking (self, caller, ...) with the access checks.

    Args:
        operation: Name reported in rejections
        owner_only: Require caller to be the current owner
        halt_exempt: Skip the emergency-halt check (the halt toggle only)

    Example:
        class LendingLedger:
            @guarded("add_asset", owner_only=True)
            def add_asset(self, caller, asset):
                return self._commit(compute_add_asset(self, caller, asset))
    """
    def decorator(method: F) -> F:
        @wraps(method)
        def wrapper(ledger, caller: str, *args, **kwargs):
            with ledger._lock:
                try:
                    if not halt_exempt and not is_active(ledger):
                        raise EmergencyStop(f"{operation} rejected: ledger is halted")
                    if owner_only:
                        require_owner(ledger, caller, operation)
                    return method(ledger, caller, *args, **kwargs)
                except LedgerError as e:
                    if ledger.verbose:
                        print(f"✗ REJECTED {operation}: {type(e).__name__}: {e}")
                    raise
        return wrapper  # type: ignore[return-value]
    return decorator


def compute_set_owner(view: LedgerView, caller: str, new_owner: str) -> LedgerUpdate:
    """
    Transfer ownership to new_owner.

    Raises:
        NotAuthorized: If caller is not the current owner
        InvalidAmount: If new_owner is not a non-empty string or already the owner
    """
    require_owner(view, caller, "set_owner")
    if not isinstance(new_owner, str) or not new_owner.strip():
        raise InvalidAmount(f"new owner must be a non-empty string, got {new_owner!r}")
    if new_owner == view.owner:
        raise InvalidAmount(f"{new_owner!r} is already the owner")
    return LedgerUpdate(operation="set_owner", caller=caller, owner=new_owner, result=new_owner)


def compute_toggle_emergency_stop(view: LedgerView, caller: str) -> LedgerUpdate:
    """Flip the halt flag. Returns the new flag value as the result."""
    require_owner(view, caller, "toggle_emergency_stop")
    stopped = not view.emergency_stopped
    return LedgerUpdate(
        operation="toggle_emergency_stop",
        caller=caller,
        emergency_stop=stopped,
        result=stopped,
    )

"""
pricing_source.py - Price Oracle Cache and simulation price feeds

The ledger caches one PriceEntry per asset. Staleness is evaluated lazily at
read time by read_fresh_price(); nothing sweeps the cache in the background.
Every valuation in the ledger goes through get_fresh_price().

Feeds:
- PriceFeed: Protocol for external price sources
- StaticPriceFeed: Height-independent prices
- HeightSeriesPriceFeed: Height-varying prices with historical data

Feeds never write to the ledger themselves. publish_prices() pushes feed
values through the owner-gated update_price operation.
"""

from __future__ import annotations
from bisect import bisect_right
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Set, Tuple, runtime_checkable

from .core import (
    LedgerView, LedgerUpdate, PriceEntry,
    InvalidCollateralAsset, PriceFeedFailure,
    MAX_PRICE_AGE,
    require_positive,
)
from .access import require_owner
from .assets import validate_asset_symbol

if TYPE_CHECKING:
    from .ledger import LendingLedger


# ============================================================================
# ORACLE CACHE
# ============================================================================

def read_fresh_price(
    entry: Optional[PriceEntry],
    now: int,
    max_age: int = MAX_PRICE_AGE,
    asset: Optional[str] = None,
) -> int:
    """
    Return the cached price if it is fresh.

    PURE FUNCTION - the height is passed in explicitly.

    A price is fresh iff price > 0 and (now - last_updated) < max_age.
    An entry exactly max_age old is stale. asset only labels the error
    raised for a missing entry.

    Raises:
        PriceFeedFailure: If there is no entry, or it is non-positive or stale
    """
    if entry is None:
        raise PriceFeedFailure(f"no price recorded for {asset}" if asset else "no price recorded")
    if entry.price <= 0:
        raise PriceFeedFailure(f"invalid price {entry.price} for {entry.asset}")
    age = now - entry.last_updated
    if age >= max_age:
        raise PriceFeedFailure(
            f"stale price for {entry.asset}: updated at {entry.last_updated}, "
            f"{age} >= {max_age} height units old"
        )
    return entry.price


def get_fresh_price(view: LedgerView, asset: str) -> int:
    """Fresh price of asset at the view's current height, or PriceFeedFailure."""
    return read_fresh_price(
        view.get_price_entry(asset), view.current_height, view.params.max_price_age, asset=asset
    )


def compute_update_price(view: LedgerView, caller: str, asset: str, price: int) -> LedgerUpdate:
    """
    Overwrite the cached price of a whitelisted asset at the current height.

    Raises:
        NotAuthorized: If caller is not the owner
        InvalidAmount: If asset is empty or price is not a positive integer
        InvalidCollateralAsset: If asset is not whitelisted
    """
    require_owner(view, caller, "update_price")
    validate_asset_symbol(asset)
    require_positive("price", price)
    if not view.is_asset_allowed(asset):
        raise InvalidCollateralAsset(f"asset {asset} is not whitelisted")
    entry = PriceEntry(asset=asset, price=price, last_updated=view.current_height)
    return LedgerUpdate(operation="update_price", caller=caller, prices=(entry,))


# ============================================================================
# FEEDS
# ============================================================================

@runtime_checkable
class PriceFeed(Protocol):
    """
    Protocol for external price sources.

    Implementations must provide get_price() and assets().
    """

    def get_price(self, asset: str, height: int) -> Optional[int]:
        """Get the price of an asset at a specific height."""
        ...

    def assets(self) -> Set[str]:
        """Assets this feed can price."""
        ...


class StaticPriceFeed:
    """
    Price feed with static prices (height-independent).
    """

    def __init__(self, prices: Dict[str, int]):
        self.prices = dict(prices)

    def get_price(self, asset: str, height: int) -> Optional[int]:
        """Get static price (height is ignored)."""
        return self.prices.get(asset)

    def assets(self) -> Set[str]:
        return set(self.prices)

    def update_price(self, asset: str, price: int):
        self.prices[asset] = price

    def update_prices(self, prices: Dict[str, int]):
        self.prices.update(prices)

    def __repr__(self):
        return f"StaticPriceFeed({len(self.prices)} prices)"


class HeightSeriesPriceFeed:
    """
    Price feed with height-varying prices.

    Uses the most recent observation at or before the requested height.

    Supports two initialization patterns:
    - Empty initialization for incremental addition via add_price()
    - Batch initialization with complete price paths for simulations
    """

    def __init__(self, price_paths: Optional[Dict[str, List[Tuple[int, int]]]] = None):
        """
        Initialize the feed.

        Args:
            price_paths: Optional dict mapping asset symbols to lists of
                         (height, price) tuples. If None, creates an empty feed.

        Examples:
            feed = HeightSeriesPriceFeed()
            feed.add_price('STX', 10, 100)

            feed = HeightSeriesPriceFeed({
                'STX': [(0, 100), (100, 95), (200, 70)],
                'BTC': [(0, 60000), (100, 61000)],
            })
        """
        self.price_history: Dict[str, List[Tuple[int, int]]] = {}

        if price_paths:
            for asset, path in price_paths.items():
                if not path:
                    continue
                self.price_history[asset] = sorted(path, key=lambda x: x[0])

    def add_price(self, asset: str, height: int, price: int):
        """Add a price observation for an asset at a specific height."""
        history = self.price_history.setdefault(asset, [])
        history.append((height, price))
        history.sort(key=lambda x: x[0])

    def add_prices(self, prices: Dict[str, int], height: int):
        """Add several observations at the same height."""
        for asset, price in prices.items():
            self.add_price(asset, height, price)

    def get_price(self, asset: str, height: int) -> Optional[int]:
        """
        Get the price at or before the specified height.

        Returns None if no observation exists at or before the height.
        """
        history = self.price_history.get(asset)
        if not history:
            return None

        heights = [h for h, _ in history]
        idx = bisect_right(heights, height)
        if idx == 0:
            return None
        return history[idx - 1][1]

    def assets(self) -> Set[str]:
        return set(self.price_history)

    def get_all_heights(self, asset: Optional[str] = None) -> List[int]:
        """
        Sorted unique observation heights, for one asset or across all of them.
        """
        if asset:
            return [h for h, _ in self.price_history.get(asset, [])]

        all_heights: Set[int] = set()
        for path in self.price_history.values():
            all_heights.update(h for h, _ in path)
        return sorted(all_heights)

    def __repr__(self):
        total = sum(len(history) for history in self.price_history.values())
        return f"HeightSeriesPriceFeed({len(self.price_history)} assets, {total} observations)"


def publish_prices(ledger: LendingLedger, caller: str, feed: PriceFeed) -> Dict[str, int]:
    """
    Push the feed's prices at the ledger's current height into the oracle cache.

    Only whitelisted assets the feed can price are published; each one is a
    separate update_price operation. Every price is validated before the
    first is written, so a bad feed value publishes nothing.

    Returns:
        Mapping of asset -> price actually published
    """
    with ledger._lock:
        height = ledger.current_height
        published: Dict[str, int] = {}
        for asset in sorted(feed.assets()):
            if not ledger.is_allowed(asset):
                continue
            price = feed.get_price(asset, height)
            if price is not None:
                published[asset] = price

        # Halted ledgers reject in update_price with EmergencyStop
        if ledger.is_active():
            for asset, price in published.items():
                compute_update_price(ledger, caller, asset, price)
        for asset, price in published.items():
            ledger.update_price(caller, asset, price)
    return published

"""
test_pricing_source.py - Unit tests for pricing_source.py

Tests:
- read_fresh_price: freshness window, boundary at exactly MAX_PRICE_AGE
- get_fresh_price / update_price through the ledger
- StaticPriceFeed: static prices, updates
- HeightSeriesPriceFeed: height-varying prices (incremental and batch initialization)
- publish_prices: pushes whitelisted feed prices through update_price
"""

import pytest

from loan_ledger import (
    PriceEntry, PriceFeed, RiskParameters,
    read_fresh_price, get_fresh_price, compute_update_price,
    StaticPriceFeed, HeightSeriesPriceFeed, publish_prices,
    PriceFeedFailure, InvalidAmount, InvalidCollateralAsset, NotAuthorized, EmergencyStop,
    MAX_PRICE_AGE,
)
from tests.fake_view import FakeView
from tests.market import ledger_snapshot


class TestReadFreshPrice:
    """Tests for the pure staleness check."""

    def test_fresh(self):
        entry = PriceEntry("STX", 100, last_updated=10)
        assert read_fresh_price(entry, 10) == 100
        assert read_fresh_price(entry, 10 + MAX_PRICE_AGE - 1) == 100

    def test_exactly_max_age_is_stale(self):
        entry = PriceEntry("STX", 100, last_updated=10)
        with pytest.raises(PriceFeedFailure, match="stale"):
            read_fresh_price(entry, 10 + MAX_PRICE_AGE)

    def test_missing(self):
        with pytest.raises(PriceFeedFailure):
            read_fresh_price(None, 0)

    def test_non_positive_price(self):
        with pytest.raises(PriceFeedFailure):
            read_fresh_price(PriceEntry("STX", 0, last_updated=0), 0)

    def test_custom_max_age(self):
        entry = PriceEntry("STX", 100, last_updated=0)
        assert read_fresh_price(entry, 9, max_age=10) == 100
        with pytest.raises(PriceFeedFailure):
            read_fresh_price(entry, 10, max_age=10)


class TestGetFreshPrice:

    def test_reads_view_height(self):
        view = FakeView(prices={"STX": (100, 10)}, height=500)
        assert get_fresh_price(view, "STX") == 100

    def test_unknown_asset(self):
        with pytest.raises(PriceFeedFailure, match="BTC"):
            get_fresh_price(FakeView(), "BTC")

    def test_missing_entry_names_asset(self):
        with pytest.raises(PriceFeedFailure, match="no price recorded for BTC"):
            read_fresh_price(None, 0, asset="BTC")

    def test_uses_view_params(self):
        view = FakeView(prices={"STX": (100, 0)}, height=50, params=RiskParameters(max_price_age=50))
        with pytest.raises(PriceFeedFailure):
            get_fresh_price(view, "STX")


class TestComputeUpdatePrice:

    def test_writes_current_height(self):
        view = FakeView(assets={"STX"}, height=42)
        update = compute_update_price(view, "owner", "STX", 120)
        assert update.prices == (PriceEntry("STX", 120, 42),)

    @pytest.mark.parametrize("price", [0, -5, 1.5, True])
    def test_invalid_price(self, price):
        with pytest.raises(InvalidAmount):
            compute_update_price(FakeView(assets={"STX"}), "owner", "STX", price)

    def test_empty_asset(self):
        with pytest.raises(InvalidAmount):
            compute_update_price(FakeView(), "owner", "", 100)

    def test_not_whitelisted(self):
        with pytest.raises(InvalidCollateralAsset):
            compute_update_price(FakeView(), "owner", "STX", 100)

    def test_non_owner(self):
        with pytest.raises(NotAuthorized):
            compute_update_price(FakeView(assets={"STX"}), "alice", "STX", 100)


class TestLedgerPrices:

    def test_update_and_read(self, market):
        assert market.get_fresh_price("STX") == 100
        market.advance_height(20)
        market.update_price("owner", "STX", 79)
        assert market.get_fresh_price("STX") == 79
        assert market.get_price_entry("STX").last_updated == 20

    def test_price_goes_stale(self, market):
        market.advance_height(10 + MAX_PRICE_AGE - 1)
        assert market.get_fresh_price("STX") == 100
        market.advance_height(10 + MAX_PRICE_AGE)
        with pytest.raises(PriceFeedFailure):
            market.get_fresh_price("STX")

    def test_removed_asset_cannot_be_priced(self, market):
        market.remove_asset("owner", "STX")
        with pytest.raises(InvalidCollateralAsset):
            market.update_price("owner", "STX", 100)


class TestStaticPriceFeed:
    """Tests for StaticPriceFeed."""

    def test_get_price_ignores_height(self):
        feed = StaticPriceFeed({"STX": 100, "BTC": 60000})
        assert feed.get_price("STX", 0) == feed.get_price("STX", 10_000) == 100

    def test_unknown_asset(self):
        assert StaticPriceFeed({"STX": 100}).get_price("ETH", 0) is None

    def test_updates(self):
        feed = StaticPriceFeed({"STX": 100})
        feed.update_price("STX", 90)
        feed.update_prices({"BTC": 60000})
        assert feed.get_price("STX", 0) == 90
        assert feed.assets() == {"STX", "BTC"}

    def test_protocol(self):
        assert isinstance(StaticPriceFeed({}), PriceFeed)

    def test_repr(self):
        assert "StaticPriceFeed" in repr(StaticPriceFeed({"STX": 1}))


class TestHeightSeriesPriceFeed:
    """Tests for HeightSeriesPriceFeed."""

    def test_create_empty(self):
        feed = HeightSeriesPriceFeed()
        assert feed.price_history == {}
        assert feed.get_price("STX", 100) is None

    def test_add_price_out_of_order(self):
        feed = HeightSeriesPriceFeed()
        feed.add_price("STX", 20, 95)
        feed.add_price("STX", 10, 100)
        assert feed.get_all_heights("STX") == [10, 20]

    def test_most_recent_at_or_before(self):
        feed = HeightSeriesPriceFeed({"STX": [(10, 100), (20, 95), (30, 70)]})
        assert feed.get_price("STX", 9) is None
        assert feed.get_price("STX", 10) == 100
        assert feed.get_price("STX", 25) == 95
        assert feed.get_price("STX", 1000) == 70

    def test_batch_skips_empty_paths(self):
        feed = HeightSeriesPriceFeed({"STX": [(0, 1)], "BTC": []})
        assert feed.assets() == {"STX"}

    def test_add_prices_and_union_heights(self):
        feed = HeightSeriesPriceFeed()
        feed.add_prices({"STX": 100, "BTC": 60000}, 10)
        feed.add_price("BTC", 5, 59000)
        assert feed.get_all_heights() == [5, 10]

    def test_protocol(self):
        assert isinstance(HeightSeriesPriceFeed(), PriceFeed)


class TestPublishPrices:

    def test_publishes_whitelisted_only(self, market):
        feed = StaticPriceFeed({"STX": 90, "BTC": 60000})
        published = publish_prices(market, "owner", feed)
        assert published == {"STX": 90}
        assert market.get_fresh_price("STX") == 90
        assert market.get_price_entry("BTC") is None

    def test_follows_ledger_height(self, market):
        feed = HeightSeriesPriceFeed({"STX": [(0, 100), (50, 60)]})
        market.advance_height(60)
        assert publish_prices(market, "owner", feed) == {"STX": 60}
        assert market.get_price_entry("STX").last_updated == 60

    def test_skips_assets_without_observation(self, market):
        feed = HeightSeriesPriceFeed({"STX": [(100, 60)]})
        assert publish_prices(market, "owner", feed) == {}

    def test_requires_owner(self, market):
        with pytest.raises(NotAuthorized):
            publish_prices(market, "alice", StaticPriceFeed({"STX": 1}))

    def test_bad_price_publishes_nothing(self, market):
        market.add_asset("owner", "XYZ")
        before = ledger_snapshot(market)
        feed = StaticPriceFeed({"STX": 90, "XYZ": 0})
        with pytest.raises(InvalidAmount):
            publish_prices(market, "owner", feed)
        assert ledger_snapshot(market) == before
        assert market.get_fresh_price("STX") == 100
        assert market.get_price_entry("XYZ") is None

    def test_halted_publishes_nothing(self, market):
        market.toggle_emergency_stop("owner")
        with pytest.raises(EmergencyStop):
            publish_prices(market, "owner", StaticPriceFeed({"STX": 90}))
        assert market.get_price_entry("STX").price == 100

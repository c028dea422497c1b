"""
test_assets.py - Unit tests for the asset registry
"""

import pytest

from loan_ledger import (
    validate_asset_symbol, is_allowed, compute_add_asset, compute_remove_asset,
    InvalidAmount, NotAuthorized, EmergencyStop,
    MAX_ASSET_SYMBOL_LENGTH,
)
from tests.fake_view import FakeView


class TestValidateAssetSymbol:

    def test_valid(self):
        assert validate_asset_symbol("STX") == "STX"

    @pytest.mark.parametrize("asset", ["", "   ", None])
    def test_empty(self, asset):
        with pytest.raises(InvalidAmount):
            validate_asset_symbol(asset)

    def test_length_bound(self):
        validate_asset_symbol("A" * MAX_ASSET_SYMBOL_LENGTH)
        with pytest.raises(InvalidAmount):
            validate_asset_symbol("A" * (MAX_ASSET_SYMBOL_LENGTH + 1))


class TestComputeAssets:

    def test_add(self):
        update = compute_add_asset(FakeView(), "owner", "STX")
        assert update.assets == (("STX", True),)

    def test_remove(self):
        update = compute_remove_asset(FakeView(assets={"STX"}), "owner", "STX")
        assert update.assets == (("STX", False),)

    def test_non_owner(self):
        with pytest.raises(NotAuthorized):
            compute_add_asset(FakeView(), "alice", "STX")

    def test_is_allowed_defaults_false(self):
        assert not is_allowed(FakeView(), "BTC")
        assert is_allowed(FakeView(assets={"BTC"}), "BTC")


class TestLedgerAssets:

    def test_add_then_remove(self, empty_ledger):
        assert not empty_ledger.is_allowed("STX")
        empty_ledger.add_asset("owner", "STX")
        assert empty_ledger.is_allowed("STX")
        empty_ledger.remove_asset("owner", "STX")
        assert not empty_ledger.is_allowed("STX")
        # Soft delete keeps the entry
        assert empty_ledger.assets == {"STX": False}

    def test_idempotent(self, empty_ledger):
        empty_ledger.add_asset("owner", "STX")
        empty_ledger.add_asset("owner", "STX")
        assert empty_ledger.is_allowed("STX")
        empty_ledger.remove_asset("owner", "BTC")
        empty_ledger.remove_asset("owner", "BTC")
        assert not empty_ledger.is_allowed("BTC")

    def test_empty_symbol(self, empty_ledger):
        with pytest.raises(InvalidAmount):
            empty_ledger.add_asset("owner", "")
        with pytest.raises(InvalidAmount):
            empty_ledger.remove_asset("owner", "")

    def test_non_owner(self, empty_ledger):
        with pytest.raises(NotAuthorized):
            empty_ledger.add_asset("alice", "STX")
        assert not empty_ledger.is_allowed("STX")

    def test_halted(self, empty_ledger):
        empty_ledger.toggle_emergency_stop("owner")
        with pytest.raises(EmergencyStop):
            empty_ledger.add_asset("owner", "STX")

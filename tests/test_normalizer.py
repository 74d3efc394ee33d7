"""
Tests for tick normalization.
"""

import math

import pytest

from tradeflow.engine.data_types import Side, Tick
from tradeflow.engine.normalizer import SIDE_ALIASES, normalize_tick


class TestFieldAliases:
    """Field-name variants resolve to one canonical tick."""

    def test_canonical_names(self):
        tick = normalize_tick(
            {"timestamp": 1000, "side": "BUY", "volume": 2.5, "price": 101.25, "symbol": "ES"}
        )

        assert tick == Tick(timestamp=1000, side=Side.BUY, volume=2.5, price=101.25, symbol="ES")

    def test_short_bridge_names(self):
        """The socket bridge sends ts/s/v/p/sym."""
        tick = normalize_tick({"ts": 1000, "s": "BID", "v": 3, "p": 99.5, "sym": "NQ"})

        assert tick.timestamp == 1000
        assert tick.side is Side.SELL
        assert tick.volume == 3.0
        assert tick.price == 99.5
        assert tick.symbol == "NQ"

    @pytest.mark.parametrize("key", ["volume", "v", "qty", "quantity", "q", "size"])
    def test_volume_aliases(self, key):
        tick = normalize_tick({"ts": 1, "side": "B", key: 4})
        assert tick.volume == 4.0

    def test_exchange_style_maker_flag(self):
        """Binance aggTrade: 's' is the symbol and 'm' marks a maker buyer."""
        seller = normalize_tick({"T": 5, "s": "BTCUSDT", "q": "0.5", "p": "42000", "m": True})
        buyer = normalize_tick({"T": 6, "s": "BTCUSDT", "q": "0.5", "p": "42000", "m": False})

        assert seller.side is Side.SELL
        assert buyer.side is Side.BUY
        assert seller.volume == 0.5

    def test_numeric_strings_are_parsed(self):
        tick = normalize_tick({"timestamp": "1700000000000", "side": "ask", "volume": "7"})
        assert tick.timestamp == 1_700_000_000_000
        assert tick.volume == 7.0


class TestSideResolution:
    """Side conventions: trade at the ask = aggressive buy."""

    @pytest.mark.parametrize("value", ["BUY", "buy", "B", "ASK", "ask", "LONG", " Buy "])
    def test_buy_aliases(self, value):
        assert normalize_tick({"ts": 1, "side": value, "v": 1}).side is Side.BUY

    @pytest.mark.parametrize("value", ["SELL", "sell", "S", "BID", "bid", "SHORT"])
    def test_sell_aliases(self, value):
        assert normalize_tick({"ts": 1, "side": value, "v": 1}).side is Side.SELL

    def test_alias_table_is_complete(self):
        assert {v for v in SIDE_ALIASES.values()} == {Side.BUY, Side.SELL}

    def test_unknown_side_rejected(self):
        assert normalize_tick({"ts": 1, "side": "MID", "v": 1}) is None

    def test_missing_side_rejected(self):
        assert normalize_tick({"ts": 1, "v": 1}) is None


class TestRejection:
    """Malformed records yield None instead of raising."""

    def test_non_mapping(self):
        assert normalize_tick(None) is None
        assert normalize_tick("BUY 1 2") is None
        assert normalize_tick([1, "BUY", 2]) is None

    def test_missing_timestamp_without_default(self):
        assert normalize_tick({"side": "BUY", "volume": 1}) is None

    def test_missing_timestamp_uses_default(self):
        tick = normalize_tick({"side": "BUY", "volume": 1}, default_ts=4242)
        assert tick.timestamp == 4242

    def test_negative_volume(self):
        assert normalize_tick({"ts": 1, "side": "BUY", "volume": -1}) is None

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), "abc", True])
    def test_non_numeric_volume(self, bad):
        assert normalize_tick({"ts": 1, "side": "BUY", "volume": bad}) is None

    def test_non_finite_timestamp(self):
        assert normalize_tick({"ts": float("nan"), "side": "BUY", "volume": 1}) is None


class TestDefaults:
    """Optional fields."""

    def test_missing_volume_is_zero(self):
        tick = normalize_tick({"ts": 1, "side": "SELL"})
        assert tick.volume == 0.0

    def test_missing_price_is_nan(self):
        tick = normalize_tick({"ts": 1, "side": "SELL", "v": 1})
        assert math.isnan(tick.price)

    def test_unparseable_price_is_nan(self):
        tick = normalize_tick({"ts": 1, "side": "SELL", "v": 1, "p": "n/a"})
        assert math.isnan(tick.price)

    def test_tick_passes_through(self):
        original = Tick(timestamp=9, side=Side.BUY, volume=1.0)
        assert normalize_tick(original) is original

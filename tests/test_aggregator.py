"""
Tests for window aggregation.
"""

import pytest
from conftest import alternating, burst, make_tick

from tradeflow.engine.aggregator import compute_window_stats
from tradeflow.engine.data_types import DominanceMetric, Side


class TestVolumeMetric:
    """Ratios and imbalance measured on volume."""

    def test_empty_window(self):
        stats = compute_window_stats([], 200, DominanceMetric.VOLUME, 0)

        assert stats.buy_ratio == 0.0
        assert stats.sell_ratio == 0.0
        assert stats.imbalance == 0.0
        assert stats.trades_per_sec == 0.0

    def test_counts_and_rates(self):
        ticks = [make_tick(0, "BUY", 3), make_tick(50, "BUY", 1), make_tick(100, "SELL", 4)]

        stats = compute_window_stats(ticks, 200, DominanceMetric.VOLUME, 100)

        assert stats.buy_vol == 4.0
        assert stats.sell_vol == 4.0
        assert stats.buy_count == 2
        assert stats.sell_count == 1
        assert stats.total_vol == 8.0
        assert stats.trades_per_sec == pytest.approx(15.0)  # 3 / 0.2s
        assert stats.vol_per_sec == pytest.approx(40.0)
        assert stats.imbalance == 0.0

    def test_per_side_rates(self):
        ticks = burst(0, 10, 10, "BUY", 2) + burst(0, 5, 10, "SELL", 1)

        rates = compute_window_stats(ticks, 1000, DominanceMetric.VOLUME, 100).rates

        assert rates.buy_trades_per_sec == pytest.approx(10.0)
        assert rates.sell_trades_per_sec == pytest.approx(5.0)
        assert rates.buy_vol_per_sec == pytest.approx(20.0)
        assert rates.sell_vol_per_sec == pytest.approx(5.0)
        assert rates.trades_per_sec(Side.SELL) == pytest.approx(5.0)

    def test_ratios_sum_to_one(self):
        ticks = [make_tick(0, "BUY", 7), make_tick(1, "SELL", 3)]

        stats = compute_window_stats(ticks, 200, DominanceMetric.VOLUME, 1)

        assert stats.buy_ratio == pytest.approx(0.7)
        assert stats.sell_ratio == pytest.approx(0.3)
        assert stats.buy_ratio + stats.sell_ratio == pytest.approx(1.0)
        assert stats.imbalance == pytest.approx(0.4)
        assert stats.ratio(Side.BUY) == stats.buy_ratio

    def test_zero_volume_ticks(self):
        """Only zero-volume ticks: ratios stay 0 but trades still count."""
        ticks = burst(0, 4, 10, "BUY", 0)

        stats = compute_window_stats(ticks, 200, DominanceMetric.VOLUME, 30)

        assert stats.buy_ratio == 0.0
        assert stats.imbalance == 0.0
        assert stats.trades_per_sec == pytest.approx(20.0)

    def test_non_positive_window_has_zero_rates(self):
        ticks = burst(0, 4, 10)

        stats = compute_window_stats(ticks, 0, DominanceMetric.VOLUME, 30)

        assert stats.trades_per_sec == 0.0
        assert stats.vol_per_sec == 0.0
        assert stats.buy_ratio == 1.0


class TestCountMetric:
    """Ratios and imbalance measured on trade counts."""

    def test_count_ignores_size(self):
        ticks = [make_tick(0, "BUY", 100), make_tick(1, "SELL", 1), make_tick(2, "SELL", 1)]

        stats = compute_window_stats(ticks, 200, DominanceMetric.COUNT, 2)

        assert stats.sell_ratio == pytest.approx(2 / 3)
        assert stats.imbalance == pytest.approx(-1 / 3)

    def test_balanced(self):
        stats = compute_window_stats(alternating(0, 10, 1), 200, DominanceMetric.COUNT, 9)
        assert stats.imbalance == 0.0

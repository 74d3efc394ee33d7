"""
Window aggregation.

Statistics are recomputed from scratch over the window contents on every
ingestion. The window is capped, so the O(n) pass stays bounded and the
numbers can never drift from what the window actually holds.
"""

from typing import Iterable

from .data_types import DominanceMetric, SideRates, Tick, WindowStats


def compute_window_stats(
    ticks: Iterable[Tick],
    window_ms: int,
    metric: DominanceMetric,
    now_ts: int,
) -> WindowStats:
    """
    Aggregate buy/sell flow over a window.

    Args:
        ticks: Current window contents
        window_ms: Window length; rates are normalized by window_ms / 1000
        metric: Whether ratios/imbalance use volume or trade counts
        now_ts: Timestamp of the ingestion that triggered the recompute

    Returns:
        WindowStats. Ratios and imbalance are 0 for an empty window.
    """
    buy_vol = sell_vol = 0.0
    buy_count = sell_count = 0

    for tick in ticks:
        if tick.is_buy:
            buy_vol += tick.volume
            buy_count += 1
        else:
            sell_vol += tick.volume
            sell_count += 1

    window_sec = window_ms / 1000
    if window_sec > 0:
        rates = SideRates(
            buy_trades_per_sec=buy_count / window_sec,
            sell_trades_per_sec=sell_count / window_sec,
            buy_vol_per_sec=buy_vol / window_sec,
            sell_vol_per_sec=sell_vol / window_sec,
        )
    else:
        rates = SideRates()

    if metric is DominanceMetric.COUNT:
        buy_metric, sell_metric = float(buy_count), float(sell_count)
    else:
        buy_metric, sell_metric = buy_vol, sell_vol
    denom = buy_metric + sell_metric

    if denom > 0:
        buy_ratio = buy_metric / denom
        sell_ratio = sell_metric / denom
        imbalance = (buy_metric - sell_metric) / denom
    else:
        buy_ratio = sell_ratio = imbalance = 0.0

    return WindowStats(
        now_ts=now_ts,
        window_ms=window_ms,
        metric=metric,
        buy_vol=buy_vol,
        sell_vol=sell_vol,
        buy_count=buy_count,
        sell_count=sell_count,
        trades_per_sec=rates.buy_trades_per_sec + rates.sell_trades_per_sec,
        vol_per_sec=rates.buy_vol_per_sec + rates.sell_vol_per_sec,
        buy_ratio=buy_ratio,
        sell_ratio=sell_ratio,
        imbalance=imbalance,
        rates=rates,
    )
